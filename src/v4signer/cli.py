"""CLI entry point for v4signer."""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from v4signer import metrics
from v4signer.addressing import UrlStyle, addressing_mode
from v4signer.config import V4SignerConfig, load_config
from v4signer.conformance import load_cases, run_suite
from v4signer.credentials import SigningCredential
from v4signer.errors import SigningError
from v4signer.logging_config import configure_logging
from v4signer.policy import PolicyConditions, PolicyInput
from v4signer.signer import V4Signer
from v4signer.signing import ResourceRef, SigningRequest, action_for

logger = logging.getLogger("v4signer")


def _key_value(separator: str):
    def parse(text: str) -> tuple[str, str]:
        name, sep, value = text.partition(separator)
        if not sep or not name:
            raise argparse.ArgumentTypeError(f"expected NAME{separator}VALUE, got {text!r}")
        return name.strip(), value.strip()

    return parse


def _timestamp(text: str) -> datetime:
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid ISO-8601 timestamp: {text!r}")


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (defaults apply when omitted)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config, default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        default=None,
        choices=["text", "json"],
        help="Log format: 'text' (human-readable) or 'json' (structured)",
    )
    parser.add_argument(
        "--key-file",
        type=Path,
        default=None,
        help="Service account JSON key file",
    )
    parser.add_argument("--client-email", type=str, default=None, help="Credential identity")
    parser.add_argument("--hmac-secret", type=str, default=None, help="HMAC secret (base64)")


def _add_resource(parser: argparse.ArgumentParser, object_required: bool) -> None:
    parser.add_argument("--bucket", required=True, help="Bucket name")
    parser.add_argument(
        "--object", dest="object_name", required=object_required, help="Object name"
    )
    parser.add_argument("--expiration", type=int, default=None, help="Validity in seconds")
    parser.add_argument(
        "--timestamp",
        type=_timestamp,
        default=None,
        help="Signing time as ISO-8601 (default: now)",
    )
    parser.add_argument(
        "--url-style",
        choices=[style.value for style in UrlStyle],
        default=None,
        help="Addressing style (default: PATH_STYLE)",
    )
    parser.add_argument("--bound-hostname", default=None, help="Bucket-bound hostname")
    parser.add_argument("--scheme", choices=["https", "http"], default=None)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        prog="v4signer",
        description="v4signer - V4 signed URLs and POST policies for object storage",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    url = sub.add_parser("url", help="Generate a signed URL")
    _add_common(url)
    _add_resource(url, object_required=False)
    url.add_argument("--method", default="GET", help="HTTP method (default: GET)")
    url.add_argument(
        "--header", action="append", type=_key_value(":"), default=[], help="NAME:VALUE"
    )
    url.add_argument(
        "--query", action="append", type=_key_value("="), default=[], help="NAME=VALUE"
    )

    policy = sub.add_parser("policy", help="Generate a signed POST policy")
    _add_common(policy)
    _add_resource(policy, object_required=True)
    policy.add_argument("--content-length-range", type=int, nargs=2, metavar=("MIN", "MAX"))
    policy.add_argument(
        "--starts-with", nargs=2, action="append", default=[], metavar=("FIELD", "PREFIX")
    )
    policy.add_argument(
        "--field", action="append", type=_key_value("="), default=[], help="NAME=VALUE"
    )
    policy.add_argument("--acl", default=None)
    policy.add_argument("--success-action-status", default=None)
    policy.add_argument("--success-action-redirect", default=None)

    conformance = sub.add_parser("conformance", help="Run a conformance fixture file")
    _add_common(conformance)
    conformance.add_argument("fixture", type=Path, help="JSON fixture file")

    return parser.parse_args(argv)


def _load_credential(args: argparse.Namespace) -> SigningCredential:
    if args.key_file is not None:
        return SigningCredential.from_service_account_file(args.key_file)
    if args.client_email and args.hmac_secret:
        return SigningCredential(client_email=args.client_email, private_key=args.hmac_secret)
    raise SigningError(
        "MissingCredential", "Provide --key-file or both --client-email and --hmac-secret."
    )


def _signing_request(args: argparse.Namespace, config: V4SignerConfig) -> SigningRequest:
    return SigningRequest(
        resource=ResourceRef(args.bucket, args.object_name),
        action=action_for(args.method, args.object_name is not None),
        expiration=(
            args.expiration
            if args.expiration is not None
            else config.signer.default_expiration
        ),
        timestamp=args.timestamp or datetime.now(timezone.utc),
        extension_headers=dict(args.header),
        query_params=dict(args.query),
        addressing=addressing_mode(args.url_style, args.bound_hostname),
        scheme=args.scheme or config.signer.scheme,
    )


def _policy_input(args: argparse.Namespace, config: V4SignerConfig) -> PolicyInput:
    return PolicyInput(
        resource=ResourceRef(args.bucket, args.object_name),
        expiration=(
            args.expiration
            if args.expiration is not None
            else config.signer.default_expiration
        ),
        timestamp=args.timestamp or datetime.now(timezone.utc),
        conditions=PolicyConditions(
            content_length_range=tuple(args.content_length_range)
            if args.content_length_range
            else None,
            starts_with=tuple(tuple(pair) for pair in args.starts_with),
        ),
        fields=dict(args.field),
        acl=args.acl,
        success_action_status=args.success_action_status,
        success_action_redirect=args.success_action_redirect,
        addressing=addressing_mode(args.url_style, args.bound_hostname),
        scheme=args.scheme or config.signer.scheme,
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the v4signer CLI.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Process exit code.
    """
    args = parse_args(argv)

    logging.basicConfig(level=logging.INFO, stream=sys.stderr)

    try:
        config = load_config(args.config) if args.config is not None else V4SignerConfig()
    except FileNotFoundError:
        logger.error("Config file not found: %s", args.config)
        return 1
    except Exception as exc:
        logger.error("Failed to load config: %s", exc)
        return 1

    if args.log_level is not None:
        config.logging.level = args.log_level
    if args.log_format is not None:
        config.logging.format = args.log_format
    configure_logging(level=config.logging.level, fmt=config.logging.format)

    if config.observability.metrics:
        metrics.init_metrics()

    try:
        signer = V4Signer(_load_credential(args), config.signer)
        if args.command == "url":
            print(signer.generate_signed_url(_signing_request(args, config)).url)
        elif args.command == "policy":
            document = signer.generate_signed_post_policy(_policy_input(args, config))
            print(json.dumps({"url": document.url, "fields": document.fields}, indent=2))
        else:
            try:
                suite = load_cases(args.fixture)
            except ValueError as exc:
                logger.error("Failed to load fixture %s: %s", args.fixture, exc)
                return 1
            results = run_suite(signer, suite)
            for result in results:
                print(f"{'PASS' if result.passed else 'FAIL'} {result.description}")
                for mismatch in result.mismatches:
                    print(f"    {mismatch}")
            if not all(result.passed for result in results):
                return 1
    except SigningError as exc:
        logger.error("%s: %s", exc.code, exc.message)
        return 2
    except FileNotFoundError as exc:
        logger.error("File not found: %s", exc.filename)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
