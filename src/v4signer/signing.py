"""V4 canonical request construction and signature computation.

Implements the query-string (presigned URL) variant of the V4 signing
algorithm: auth query parameters, canonical request, string-to-sign, and
the final HMAC-SHA256 or RSA-SHA256 signature.

References:
    - https://cloud.google.com/storage/docs/access-control/signing-urls-manually
"""

import enum
import hashlib
import hmac
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from v4signer.addressing import AddressingMode, PathStyle, ResolvedAddress
from v4signer.credentials import SigningCredential
from v4signer.encoding import canonical_query_string, canonicalize_headers
from v4signer.errors import (
    ExpirationRangeError,
    QueryParamCollisionError,
    UnsupportedActionError,
)
from v4signer.scope import (
    DEFAULT_LOCATION,
    DEFAULT_SERVICE,
    CredentialScope,
    build_scope,
    derive_signing_key,
    format_timestamp,
)

logger = logging.getLogger(__name__)

# Constants
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"
MAX_EXPIRATION = 604800  # 7 days in seconds
SIGNATURE_PARAM = "X-Goog-Signature"

AUTH_QUERY_PARAMS = (
    "X-Goog-Algorithm",
    "X-Goog-Credential",
    "X-Goog-Date",
    "X-Goog-Expires",
    "X-Goog-SignedHeaders",
    SIGNATURE_PARAM,
)
_RESERVED_QUERY_PARAMS = frozenset(name.lower() for name in AUTH_QUERY_PARAMS)


class Action(enum.Enum):
    """What a signed URL grants; each action signs exactly one HTTP method."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    RESUMABLE = "resumable"
    LIST = "list"

    @property
    def method(self) -> str:
        return _ACTION_METHODS[self]


_ACTION_METHODS = {
    Action.READ: "GET",
    Action.WRITE: "PUT",
    Action.DELETE: "DELETE",
    Action.RESUMABLE: "POST",
    Action.LIST: "GET",
}

_OBJECT_ACTIONS = {
    "GET": Action.READ,
    "POST": Action.RESUMABLE,
    "PUT": Action.WRITE,
    "DELETE": Action.DELETE,
}

_BUCKET_ACTIONS = {
    "GET": Action.LIST,
}


def action_for(method: str, has_object: bool) -> Action:
    """Map an HTTP method to the signing action for an object or bucket.

    Raises:
        UnsupportedActionError: If the method has no action for that kind of
            resource (e.g. PUT on a bucket).
    """
    table = _OBJECT_ACTIONS if has_object else _BUCKET_ACTIONS
    try:
        return table[method.upper()]
    except KeyError:
        raise UnsupportedActionError(method, "object" if has_object else "bucket")


@dataclass(frozen=True)
class ResourceRef:
    """The bucket and optional object being signed for."""

    bucket: str
    object_name: str | None = None


@dataclass(frozen=True)
class SigningRequest:
    """Everything needed to sign one URL.

    Attributes:
        resource: Target bucket and optional object.
        action: What the URL grants; determines the HTTP method.
        expiration: Validity window in seconds, in (0, 604800].
        timestamp: The signing time ("now"), supplied by the caller.
        extension_headers: Headers the eventual request must carry; they are
            signed and must be sent verbatim by the client.
        query_params: Extra query parameters to sign into the URL.
        addressing: PathStyle(), VirtualHostedStyle() or BoundHostname(host).
        scheme: URL scheme, "https" unless overridden.
        content_type: Signed as the content-type header.
        content_md5: Signed as the content-md5 header.
        response_type: Sent as response-content-type.
        response_disposition: Sent as response-content-disposition.
        prompt_save_as: Shorthand for an attachment content disposition.
        generation: Object generation to address.
    """

    resource: ResourceRef
    action: Action
    expiration: int
    timestamp: datetime
    extension_headers: Mapping[str, Any] = field(default_factory=dict)
    query_params: Mapping[str, Any] = field(default_factory=dict)
    addressing: AddressingMode = field(default_factory=PathStyle)
    scheme: str = "https"
    content_type: str | None = None
    content_md5: str | None = None
    response_type: str | None = None
    response_disposition: str | None = None
    prompt_save_as: str | None = None
    generation: int | str | None = None

    @property
    def method(self) -> str:
        return self.action.method


@dataclass(frozen=True)
class CanonicalRequest:
    """The exact artifact that gets hashed into the string-to-sign."""

    method: str
    canonical_uri: str
    canonical_query: str
    canonical_headers: str
    signed_headers: str
    payload_hash: str = UNSIGNED_PAYLOAD

    def render(self) -> str:
        """Join the parts with newlines into the canonical request string."""
        return "\n".join(
            [
                self.method,
                self.canonical_uri,
                self.canonical_query,
                self.canonical_headers,
                self.signed_headers,
                self.payload_hash,
            ]
        )


@dataclass(frozen=True)
class SignatureResult:
    """Output of sign(): the signature plus the signed query parameters.

    Attributes:
        signature: Lowercase hex signature.
        query_params: Auth parameters merged with the caller's parameters
            (signature excluded).
        canonical_query: The canonical query string that was signed.
        canonical_request: The canonical request that was signed.
        string_to_sign: The string-to-sign.
    """

    signature: str
    query_params: dict[str, str]
    canonical_query: str
    canonical_request: CanonicalRequest
    string_to_sign: str


# -- Validation ----------------------------------------------------------------


def check_expiration(expiration: int) -> None:
    """Raise ExpirationRangeError unless 0 < expiration <= 604800."""
    if isinstance(expiration, bool) or not isinstance(expiration, int):
        raise ExpirationRangeError(expiration)
    if expiration <= 0 or expiration > MAX_EXPIRATION:
        raise ExpirationRangeError(expiration)


def check_query_params(params: Mapping[str, Any]) -> None:
    """Reject caller query parameters that shadow an auth parameter name."""
    for name in params:
        if name.lower() in _RESERVED_QUERY_PARAMS:
            raise QueryParamCollisionError(name)


# -- Building blocks -----------------------------------------------------------


def build_headers(request: SigningRequest, address: ResolvedAddress) -> dict[str, Any]:
    """Collect the headers to sign: extension headers plus host and content headers.

    The host header always comes from the resolved address; a caller-supplied
    host header is replaced.
    """
    # Request attributes replace any same-named extension header.
    implied: dict[str, Any] = {}
    if request.content_type is not None:
        implied["content-type"] = request.content_type
    if request.content_md5 is not None:
        implied["content-md5"] = request.content_md5
    if request.action is Action.RESUMABLE:
        implied["x-goog-resumable"] = "start"
    implied["host"] = address.host_header

    headers: dict[str, Any] = {}
    for name, value in request.extension_headers.items():
        if name.lower() in implied:
            logger.debug("Replacing extension header %s", name)
            continue
        headers[name] = value
    headers.update(implied)
    return headers


def build_extra_query_params(request: SigningRequest) -> dict[str, str]:
    """Caller query parameters plus response overrides and generation."""
    params = {
        name: "" if value is None else str(value)
        for name, value in request.query_params.items()
    }
    if request.response_type is not None:
        params["response-content-type"] = request.response_type
    if request.prompt_save_as is not None:
        params["response-content-disposition"] = (
            f'attachment; filename="{request.prompt_save_as}"'
        )
    if request.response_disposition is not None:
        params["response-content-disposition"] = request.response_disposition
    if request.generation is not None:
        params["generation"] = str(request.generation)
    return params


def build_auth_query_params(
    credential: SigningCredential,
    scope: CredentialScope,
    timestamp: str,
    expiration: int,
    signed_headers: str,
) -> dict[str, str]:
    """The five X-Goog-* parameters that precede the signature."""
    return {
        "X-Goog-Algorithm": credential.algorithm,
        "X-Goog-Credential": f"{credential.client_email}/{scope}",
        "X-Goog-Date": timestamp,
        "X-Goog-Expires": str(expiration),
        "X-Goog-SignedHeaders": signed_headers,
    }


def build_canonical_request(
    method: str,
    path: str,
    query_params: Mapping[str, Any],
    headers: Mapping[str, Any],
) -> CanonicalRequest:
    """Canonicalize the query and headers into a CanonicalRequest.

    Args:
        method: HTTP method (uppercase).
        path: Already-encoded absolute path.
        query_params: The full parameter set, signature excluded.
        headers: Headers to sign.
    """
    canonical_headers, signed_headers = canonicalize_headers(headers)
    return CanonicalRequest(
        method=method,
        canonical_uri=path or "/",
        canonical_query=canonical_query_string(query_params),
        canonical_headers=canonical_headers,
        signed_headers=signed_headers,
    )


def build_string_to_sign(
    algorithm: str, timestamp: str, scope: CredentialScope, canonical_request: str
) -> str:
    """ALGORITHM, timestamp, scope and the hex SHA-256 of the canonical request."""
    canonical_hash = hashlib.sha256(canonical_request.encode("utf-8")).hexdigest()
    return f"{algorithm}\n{timestamp}\n{scope}\n{canonical_hash}"


def compute_signature(
    credential: SigningCredential, scope: CredentialScope, string_to_sign: str
) -> str:
    """Sign a string with the credential and return lowercase hex.

    HMAC credentials use HMAC-SHA256 with the derived signing key (64 hex
    chars); RSA credentials use RSASSA-PKCS1-v1_5 with SHA-256.
    """
    if credential.is_rsa:
        key = credential.rsa_private_key()
        return key.sign(string_to_sign.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256()).hex()
    signing_key = derive_signing_key(credential, scope)
    return hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()


# -- Entry point ---------------------------------------------------------------


def sign(
    request: SigningRequest,
    credential: SigningCredential,
    address: ResolvedAddress,
    location: str = DEFAULT_LOCATION,
    service: str = DEFAULT_SERVICE,
) -> SignatureResult:
    """Sign a request for query-string authentication.

    Args:
        request: The signing request.
        credential: The signing credential.
        address: The resolved host and path of the resource.
        location: Credential scope location.
        service: Credential scope service name.

    Returns:
        The signature and the signed query parameters.

    Raises:
        ExpirationRangeError: If the expiration is outside (0, 604800].
        QueryParamCollisionError: If a caller parameter uses a reserved name.
        InvalidCredentialError: If the credential key material is malformed.
    """
    check_expiration(request.expiration)
    extra_params = build_extra_query_params(request)
    check_query_params(extra_params)
    credential.validate()

    scope = build_scope(request.timestamp, location, service)
    timestamp = format_timestamp(request.timestamp)

    headers = build_headers(request, address)
    _, signed_headers = canonicalize_headers(headers)

    query_params = build_auth_query_params(
        credential, scope, timestamp, request.expiration, signed_headers
    )
    query_params.update(extra_params)

    canonical_request = build_canonical_request(
        request.method, address.path, query_params, headers
    )
    rendered = canonical_request.render()
    logger.debug("Canonical request:\n%s", rendered)

    string_to_sign = build_string_to_sign(credential.algorithm, timestamp, scope, rendered)
    signature = compute_signature(credential, scope, string_to_sign)

    return SignatureResult(
        signature=signature,
        query_params=query_params,
        canonical_query=canonical_request.canonical_query,
        canonical_request=canonical_request,
        string_to_sign=string_to_sign,
    )
