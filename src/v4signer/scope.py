"""Credential scope construction and signing-key derivation.

References:
    - https://cloud.google.com/storage/docs/authentication/signatures
"""

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timezone

from v4signer.credentials import SigningCredential

# Constants
KEY_PREFIX = "GOOG4"
SCOPE_TERMINATOR = "goog4_request"
DEFAULT_LOCATION = "auto"
DEFAULT_SERVICE = "storage"

TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"
DATESTAMP_FORMAT = "%Y%m%d"


@dataclass(frozen=True)
class CredentialScope:
    """Dated signing-key derivation context.

    Attributes:
        date: UTC calendar date (YYYYMMDD).
        location: Storage location, "auto" by default.
        service: Service name, "storage" by default.
        terminator: Always "goog4_request".
    """

    date: str
    location: str = DEFAULT_LOCATION
    service: str = DEFAULT_SERVICE
    terminator: str = SCOPE_TERMINATOR

    def __str__(self) -> str:
        return f"{self.date}/{self.location}/{self.service}/{self.terminator}"


def to_utc(timestamp: datetime) -> datetime:
    """Convert a timestamp to UTC; naive datetimes are taken to be UTC already."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def format_timestamp(timestamp: datetime) -> str:
    """Format a timestamp as YYYYMMDDTHHMMSSZ in UTC."""
    return to_utc(timestamp).strftime(TIMESTAMP_FORMAT)


def format_datestamp(timestamp: datetime) -> str:
    """Format the UTC calendar date of a timestamp as YYYYMMDD."""
    return to_utc(timestamp).strftime(DATESTAMP_FORMAT)


def build_scope(
    timestamp: datetime,
    location: str = DEFAULT_LOCATION,
    service: str = DEFAULT_SERVICE,
) -> CredentialScope:
    """Build the credential scope for a request made at ``timestamp``."""
    return CredentialScope(date=format_datestamp(timestamp), location=location, service=service)


def derive_signing_key(credential: SigningCredential, scope: CredentialScope) -> bytes:
    """Derive the signing key via the HMAC-SHA256 chain.

    key0 = "GOOG4" + secret, then HMAC over date, location, service and
    "goog4_request" in turn.

    Args:
        credential: An HMAC credential.
        scope: The credential scope of the request.

    Returns:
        The 32-byte signing key.

    Raises:
        InvalidCredentialError: If the credential has no well-formed HMAC
            secret.
    """
    secret = credential.hmac_secret()
    k_date = hmac.new(
        (KEY_PREFIX + secret).encode("utf-8"),
        scope.date.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    k_location = hmac.new(k_date, scope.location.encode("utf-8"), hashlib.sha256).digest()
    k_service = hmac.new(k_location, scope.service.encode("utf-8"), hashlib.sha256).digest()
    return hmac.new(k_service, scope.terminator.encode("utf-8"), hashlib.sha256).digest()
