"""Prometheus metrics definitions for v4signer.

All metrics use the ``v4signer_`` prefix.  Counters are process-local and
reset to zero on restart.  Until init_metrics() is called the module-level
references stay ``None`` and the record_* helpers do nothing.
"""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, REGISTRY

# Flag indicating whether metrics have been initialised via init_metrics().
_initialized: bool = False
_registry: CollectorRegistry | None = None

# ---------------------------------------------------------------------------
# Signatures issued  (labels: kind, algorithm)
# ---------------------------------------------------------------------------
signatures_total: Counter | None = None

# ---------------------------------------------------------------------------
# Rejected signing requests  (labels: kind, error)
# ---------------------------------------------------------------------------
signing_errors_total: Counter | None = None


def init_metrics(registry: CollectorRegistry = REGISTRY) -> None:
    """Create and register all Prometheus metrics.

    Call once when metrics are enabled.  Subsequent calls are no-ops.

    Args:
        registry: Registry to register collectors in.  Tests pass a private
            CollectorRegistry.
    """
    global _initialized, _registry, signatures_total, signing_errors_total

    if _initialized:
        return

    _registry = registry

    signatures_total = Counter(
        "v4signer_signatures_total",
        "Total signatures issued by kind and algorithm",
        ["kind", "algorithm"],
        registry=registry,
    )

    signing_errors_total = Counter(
        "v4signer_signing_errors_total",
        "Total signing requests rejected by kind and error code",
        ["kind", "error"],
        registry=registry,
    )

    _initialized = True


def reset_metrics() -> None:
    """Unregister the current collectors so init_metrics() can run again."""
    global _initialized, _registry, signatures_total, signing_errors_total
    if _registry is not None:
        for collector in (signatures_total, signing_errors_total):
            if collector is not None:
                _registry.unregister(collector)
    _initialized = False
    _registry = None
    signatures_total = None
    signing_errors_total = None


def record_signature(kind: str, algorithm: str) -> None:
    if signatures_total is not None:
        signatures_total.labels(kind=kind, algorithm=algorithm).inc()


def record_error(kind: str, error: str) -> None:
    if signing_errors_total is not None:
        signing_errors_total.labels(kind=kind, error=error).inc()
