"""Signing credentials for v4signer.

A SigningCredential carries either an HMAC secret (signed with the
GOOG4-HMAC-SHA256 key chain) or a service-account RSA private key in PEM
form (signed with GOOG4-RSA-SHA256). Key material is never logged and never
shown by repr().
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from v4signer.errors import InvalidCredentialError

logger = logging.getLogger(__name__)

HMAC_ALGORITHM = "GOOG4-HMAC-SHA256"
RSA_ALGORITHM = "GOOG4-RSA-SHA256"

_PEM_MARKER = "-----BEGIN"


@dataclass(frozen=True)
class SigningCredential:
    """Service-account identity plus private key material.

    Attributes:
        client_email: Identity placed in the X-Goog-Credential scope.
        private_key: An HMAC secret (base64) or a PEM-encoded RSA private key.
        issuer_id: Optional issuer identifier (service-account client id or
            HMAC access id). Informational only.
    """

    client_email: str
    private_key: str = field(repr=False)
    issuer_id: str | None = None

    @property
    def is_rsa(self) -> bool:
        """True if the key material is a PEM private key."""
        return self.private_key.lstrip().startswith(_PEM_MARKER)

    @property
    def algorithm(self) -> str:
        """The X-Goog-Algorithm value this credential signs with."""
        return RSA_ALGORITHM if self.is_rsa else HMAC_ALGORITHM

    def validate(self) -> None:
        """Check that the key material parses in its expected format.

        Raises:
            InvalidCredentialError: If the email is empty or the key is
                malformed.
        """
        if not self.client_email:
            raise InvalidCredentialError("The credential has no client email.")
        if self.is_rsa:
            self.rsa_private_key()
        else:
            self.hmac_secret()

    def hmac_secret(self) -> str:
        """Return the HMAC secret after checking it is well-formed base64.

        Raises:
            InvalidCredentialError: If the credential holds an RSA key or the
                secret is empty or not valid base64.
        """
        if self.is_rsa:
            raise InvalidCredentialError("An RSA credential has no HMAC secret.")
        if not self.private_key:
            raise InvalidCredentialError("The HMAC secret is empty.")
        try:
            base64.b64decode(self.private_key, validate=True)
        except (binascii.Error, ValueError):
            raise InvalidCredentialError("The HMAC secret is not valid base64.")
        return self.private_key

    def rsa_private_key(self) -> RSAPrivateKey:
        """Load the PEM private key.

        Raises:
            InvalidCredentialError: If the PEM cannot be parsed or is not an
                RSA key.
        """
        try:
            key = serialization.load_pem_private_key(
                self.private_key.encode("utf-8"), password=None
            )
        except (ValueError, TypeError, UnsupportedAlgorithm):
            raise InvalidCredentialError("The private key is not a valid PEM private key.")
        if not isinstance(key, RSAPrivateKey):
            raise InvalidCredentialError("The private key is not an RSA key.")
        return key

    @classmethod
    def from_service_account_info(cls, info: dict[str, Any]) -> "SigningCredential":
        """Build a credential from a parsed service-account key document.

        Args:
            info: The decoded JSON key; needs 'client_email' and
                'private_key', reads 'client_id' when present.

        Raises:
            InvalidCredentialError: If a required field is missing.
        """
        missing = [name for name in ("client_email", "private_key") if not info.get(name)]
        if missing:
            raise InvalidCredentialError(
                f"Service account info is missing required fields: {', '.join(missing)}"
            )
        return cls(
            client_email=info["client_email"],
            private_key=info["private_key"],
            issuer_id=info.get("client_id"),
        )

    @classmethod
    def from_service_account_file(cls, path: Path | str) -> "SigningCredential":
        """Load a credential from a service-account JSON key file.

        Raises:
            FileNotFoundError: If the file does not exist.
            InvalidCredentialError: If the file is not a valid key document.
        """
        with open(path, "r") as fh:
            try:
                info = json.load(fh)
            except json.JSONDecodeError as exc:
                raise InvalidCredentialError(f"Service account file is not valid JSON: {exc}")
        if not isinstance(info, dict):
            raise InvalidCredentialError("Service account file must contain a JSON object.")
        logger.debug("Loaded service account key from %s", path)
        return cls.from_service_account_info(info)
