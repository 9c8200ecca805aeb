"""Signed URL assembly."""

from dataclasses import dataclass

from v4signer.addressing import ResolvedAddress
from v4signer.encoding import encode_query_component
from v4signer.signing import SIGNATURE_PARAM


@dataclass(frozen=True)
class SignedURL:
    """A presigned URL and the pieces it was built from.

    Attributes:
        url: The absolute URL.
        signature: Lowercase hex signature (also the last query parameter).
        query_params: Signed query parameters, signature excluded.
    """

    url: str
    signature: str
    query_params: dict[str, str]

    def __str__(self) -> str:
        return self.url


def assemble_url(
    scheme: str, address: ResolvedAddress, canonical_query: str, signature: str
) -> str:
    """Concatenate origin, path and the canonical query with the signature appended.

    No normalization beyond the canonical encoding already applied.

    Args:
        scheme: "https" or "http"; ignored when the host carries a scheme.
        address: The resolved host and encoded path.
        canonical_query: The canonical query string that was signed.
        signature: The hex signature.

    Returns:
        scheme://host/path?canonical_query&X-Goog-Signature=signature
    """
    signature_param = f"{SIGNATURE_PARAM}={encode_query_component(signature)}"
    query = f"{canonical_query}&{signature_param}" if canonical_query else signature_param
    return f"{address.origin(scheme)}{address.path}?{query}"
