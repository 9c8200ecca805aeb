"""Shared pytest fixtures for v4signer tests.

Signing is deterministic given a credential and a timestamp, so every test
uses the fixed timestamp below. The RSA key is generated once per session.
"""

import hashlib
import hmac
import urllib.parse
from datetime import datetime, timezone

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from v4signer import metrics
from v4signer.credentials import SigningCredential
from v4signer.signer import V4Signer

CLIENT_EMAIL = "test-iam-credentials@dummy-project-id.iam.gserviceaccount.com"
HMAC_SECRET = "bGoa+V7g/yqDXvKRqq+JTFn4uQZbPiQJo4pf9RzJ"
NOW = datetime(2020, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def timestamp() -> datetime:
    """The fixed signing time: 2020-01-01T00:00:00Z."""
    return NOW


@pytest.fixture
def hmac_credential() -> SigningCredential:
    """An HMAC credential with a well-formed base64 secret."""
    return SigningCredential(client_email=CLIENT_EMAIL, private_key=HMAC_SECRET)


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    """A 2048-bit RSA key shared by the whole session."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_pem(rsa_key) -> str:
    """The RSA key as an unencrypted PKCS#8 PEM string."""
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


@pytest.fixture
def rsa_credential(rsa_pem) -> SigningCredential:
    """A service-account style credential holding the session RSA key."""
    return SigningCredential(client_email=CLIENT_EMAIL, private_key=rsa_pem, issuer_id="1234")


@pytest.fixture
def signer(hmac_credential) -> V4Signer:
    """A V4Signer with default settings and the HMAC credential."""
    return V4Signer(hmac_credential)


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Leave the global metrics state as each test found it."""
    yield
    metrics.reset_metrics()


def _quote(value: str, safe: str) -> str:
    return urllib.parse.quote(value.encode("utf-8"), safe=safe)


def build_reference_url(
    host: str,
    path: str,
    method: str = "GET",
    expiration: int = 600,
    headers: dict | None = None,
    query: dict | None = None,
    scheme: str = "https",
    secret: str = HMAC_SECRET,
    client_email: str = CLIENT_EMAIL,
    when: datetime = NOW,
) -> str:
    """Sign a URL from first principles, sharing no code with the engine.

    ``host`` is a bare host name and ``path`` the already-encoded path.
    """
    date = when.strftime("%Y%m%d")
    stamp = when.strftime("%Y%m%dT%H%M%SZ")
    scope = f"{date}/auto/storage/goog4_request"

    all_headers = {"host": host}
    all_headers.update({name.lower(): value for name, value in (headers or {}).items()})
    names = sorted(all_headers)
    canonical_headers = "".join(f"{name}:{all_headers[name]}\n" for name in names)
    signed_headers = ";".join(names)

    params = {
        "X-Goog-Algorithm": "GOOG4-HMAC-SHA256",
        "X-Goog-Credential": f"{client_email}/{scope}",
        "X-Goog-Date": stamp,
        "X-Goog-Expires": str(expiration),
        "X-Goog-SignedHeaders": signed_headers,
    }
    params.update(query or {})
    pairs = sorted((_quote(k, "-_.~"), _quote(v, "-_.~")) for k, v in params.items())
    canonical_query = "&".join(f"{k}={v}" for k, v in pairs)

    canonical_request = "\n".join(
        [method, path, canonical_query, canonical_headers, signed_headers, "UNSIGNED-PAYLOAD"]
    )
    string_to_sign = "\n".join(
        [
            "GOOG4-HMAC-SHA256",
            stamp,
            scope,
            hashlib.sha256(canonical_request.encode()).hexdigest(),
        ]
    )
    key = ("GOOG4" + secret).encode()
    for part in (date, "auto", "storage", "goog4_request"):
        key = hmac.new(key, part.encode(), hashlib.sha256).digest()
    signature = hmac.new(key, string_to_sign.encode(), hashlib.sha256).hexdigest()
    return f"{scheme}://{host}{path}?{canonical_query}&X-Goog-Signature={signature}"


@pytest.fixture
def reference_url():
    """Independent signed-URL construction for end-to-end comparisons."""
    return build_reference_url
