"""Tests for V4 canonical request construction and signing.

Tests cover:
- HTTP method to action mapping
- Expiration bounds and reserved query parameter names
- Canonical request and string-to-sign construction
- HMAC signatures checked against an independent reference computation
- RSA signatures verified with the public key
- Extension, content and resumable headers
"""

import hashlib
import hmac
from datetime import datetime, timezone

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from v4signer.addressing import PathStyle, VirtualHostedStyle, resolve
from v4signer.credentials import SigningCredential
from v4signer.errors import (
    ExpirationRangeError,
    InvalidCredentialError,
    QueryParamCollisionError,
    UnsupportedActionError,
)
from v4signer.scope import build_scope
from v4signer.signing import (
    MAX_EXPIRATION,
    UNSIGNED_PAYLOAD,
    Action,
    CanonicalRequest,
    ResourceRef,
    SigningRequest,
    action_for,
    build_string_to_sign,
    check_expiration,
    sign,
)


# ---- Reference helpers -----------------------------------------------------


def _reference_signature(secret: str, string_to_sign: str, date: str) -> str:
    """HMAC chain and final signature computed independently of the engine."""
    key = ("GOOG4" + secret).encode()
    for part in (date, "auto", "storage", "goog4_request"):
        key = hmac.new(key, part.encode(), hashlib.sha256).digest()
    return hmac.new(key, string_to_sign.encode(), hashlib.sha256).hexdigest()


def _request(**overrides) -> SigningRequest:
    kwargs = dict(
        resource=ResourceRef("validation-bucket", "test.txt"),
        action=Action.READ,
        expiration=600,
        timestamp=datetime(2020, 1, 1, tzinfo=timezone.utc),
    )
    kwargs.update(overrides)
    return SigningRequest(**kwargs)


def _sign(credential, **overrides):
    request = _request(**overrides)
    address = resolve(
        request.resource.bucket, request.resource.object_name, request.addressing
    )
    return sign(request, credential, address)


EXPECTED_CREDENTIAL_QUERY = (
    "test-iam-credentials%40dummy-project-id.iam.gserviceaccount.com"
    "%2F20200101%2Fauto%2Fstorage%2Fgoog4_request"
)


# ---- Action mapping ---------------------------------------------------------


class TestActionFor:
    """Tests for action_for()."""

    @pytest.mark.parametrize(
        "method,action",
        [
            ("GET", Action.READ),
            ("POST", Action.RESUMABLE),
            ("PUT", Action.WRITE),
            ("DELETE", Action.DELETE),
        ],
    )
    def test_object_methods(self, method, action):
        """Object methods map to their actions."""
        assert action_for(method, has_object=True) is action

    def test_bucket_get_is_list(self):
        """GET on a bucket lists it."""
        assert action_for("GET", has_object=False) is Action.LIST

    def test_lowercase_method(self):
        """Method names are case-insensitive."""
        assert action_for("get", has_object=True) is Action.READ

    @pytest.mark.parametrize(
        "method,has_object",
        [("PATCH", True), ("HEAD", True), ("PUT", False), ("POST", False), ("DELETE", False)],
    )
    def test_unsupported(self, method, has_object):
        """Methods with no action for the target are rejected."""
        with pytest.raises(UnsupportedActionError):
            action_for(method, has_object)

    def test_action_methods(self):
        """Each action signs its HTTP method."""
        assert Action.READ.method == "GET"
        assert Action.WRITE.method == "PUT"
        assert Action.DELETE.method == "DELETE"
        assert Action.RESUMABLE.method == "POST"
        assert Action.LIST.method == "GET"


# ---- Validation -------------------------------------------------------------


class TestCheckExpiration:
    """Expiration must be in (0, 604800]."""

    @pytest.mark.parametrize("expiration", [1, 600, MAX_EXPIRATION])
    def test_in_range(self, expiration):
        """Values in (0, 604800] pass."""
        check_expiration(expiration)

    @pytest.mark.parametrize("expiration", [0, -1, MAX_EXPIRATION + 1])
    def test_out_of_range(self, expiration):
        """Values outside the window are rejected."""
        with pytest.raises(ExpirationRangeError):
            check_expiration(expiration)

    @pytest.mark.parametrize("expiration", ["600", 600.0, True])
    def test_not_an_integer(self, expiration):
        """Strings, floats and bools are rejected."""
        with pytest.raises(ExpirationRangeError):
            check_expiration(expiration)


class TestValidationOrder:
    """Input errors surface before any key material is touched."""

    def test_expiration_checked_before_credential(self):
        """A bad expiration wins over a bad credential."""
        bad = SigningCredential(client_email="a@b.c", private_key="not base64!!")
        with pytest.raises(ExpirationRangeError):
            _sign(bad, expiration=0)

    def test_collision_checked_before_credential(self):
        """A query collision wins over a bad credential."""
        bad = SigningCredential(client_email="a@b.c", private_key="not base64!!")
        with pytest.raises(QueryParamCollisionError):
            _sign(bad, query_params={"X-Goog-Signature": "x"})

    def test_malformed_credential(self):
        """With valid inputs the credential error surfaces."""
        bad = SigningCredential(client_email="a@b.c", private_key="not base64!!")
        with pytest.raises(InvalidCredentialError):
            _sign(bad)


class TestQueryParamCollision:
    """Caller parameters may not shadow auth parameters."""

    @pytest.mark.parametrize(
        "name",
        [
            "X-Goog-Signature",
            "X-Goog-Algorithm",
            "X-Goog-Credential",
            "X-Goog-Date",
            "X-Goog-Expires",
            "X-Goog-SignedHeaders",
            "x-goog-signature",
        ],
    )
    def test_reserved_names(self, hmac_credential, name):
        """Auth parameter names are rejected in any case."""
        with pytest.raises(QueryParamCollisionError) as exc_info:
            _sign(hmac_credential, query_params={name: "x"})
        assert exc_info.value.extra_fields == {"ParameterName": name}

    def test_other_names_allowed(self, hmac_credential):
        """Other X-Goog-* names pass through."""
        result = _sign(hmac_credential, query_params={"X-Goog-Foo": "bar"})
        assert result.query_params["X-Goog-Foo"] == "bar"


# ---- Canonical request ------------------------------------------------------


class TestCanonicalRequest:
    """Tests for the canonical request and string-to-sign."""

    def test_render(self):
        """Six lines plus UNSIGNED-PAYLOAD, blank line after the headers."""
        canonical = CanonicalRequest(
            method="GET",
            canonical_uri="/b/o",
            canonical_query="a=1",
            canonical_headers="host:example.com\n",
            signed_headers="host",
        )
        assert canonical.render() == "GET\n/b/o\na=1\nhost:example.com\n\nhost\nUNSIGNED-PAYLOAD"

    def test_end_to_end_canonical_request(self, hmac_credential):
        """The GET example's full canonical request."""
        result = _sign(hmac_credential)
        expected_query = (
            "X-Goog-Algorithm=GOOG4-HMAC-SHA256"
            f"&X-Goog-Credential={EXPECTED_CREDENTIAL_QUERY}"
            "&X-Goog-Date=20200101T000000Z"
            "&X-Goog-Expires=600"
            "&X-Goog-SignedHeaders=host"
        )
        assert result.canonical_query == expected_query
        assert result.canonical_request.render() == (
            "GET\n"
            "/validation-bucket/test.txt\n"
            f"{expected_query}\n"
            "host:storage.googleapis.com\n"
            "\n"
            "host\n"
            f"{UNSIGNED_PAYLOAD}"
        )

    def test_string_to_sign(self, hmac_credential):
        """Algorithm, timestamp, scope, then the request hash."""
        result = _sign(hmac_credential)
        lines = result.string_to_sign.split("\n")
        canonical_hash = hashlib.sha256(
            result.canonical_request.render().encode("utf-8")
        ).hexdigest()
        assert lines == [
            "GOOG4-HMAC-SHA256",
            "20200101T000000Z",
            "20200101/auto/storage/goog4_request",
            canonical_hash,
        ]

    def test_build_string_to_sign(self, timestamp):
        """The last line is the SHA-256 of the canonical request."""
        scope = build_scope(timestamp)
        result = build_string_to_sign("GOOG4-HMAC-SHA256", "20200101T000000Z", scope, "")
        assert result.endswith("\n" + hashlib.sha256(b"").hexdigest())

    def test_auth_query_params(self, hmac_credential):
        """The five auth parameters, without the signature."""
        result = _sign(hmac_credential)
        assert result.query_params == {
            "X-Goog-Algorithm": "GOOG4-HMAC-SHA256",
            "X-Goog-Credential": (
                f"{hmac_credential.client_email}/20200101/auto/storage/goog4_request"
            ),
            "X-Goog-Date": "20200101T000000Z",
            "X-Goog-Expires": "600",
            "X-Goog-SignedHeaders": "host",
        }

    def test_bucket_list_path(self, hmac_credential):
        """A LIST signs the bucket path with GET."""
        result = _sign(
            hmac_credential, resource=ResourceRef("validation-bucket"), action=Action.LIST
        )
        assert result.canonical_request.canonical_uri == "/validation-bucket"
        assert result.canonical_request.method == "GET"

    def test_virtual_hosted_host_header(self, hmac_credential):
        """The host header carries the bucket in virtual-hosted style."""
        result = _sign(hmac_credential, addressing=VirtualHostedStyle())
        assert result.canonical_request.canonical_headers == (
            "host:validation-bucket.storage.googleapis.com\n"
        )
        assert result.canonical_request.canonical_uri == "/test.txt"


# ---- Signatures -------------------------------------------------------------


class TestHmacSignature:
    """HMAC signatures match the reference computation."""

    def test_matches_reference(self, hmac_credential):
        """The signature equals an independent HMAC chain."""
        result = _sign(hmac_credential)
        expected = _reference_signature(
            hmac_credential.private_key, result.string_to_sign, "20200101"
        )
        assert result.signature == expected

    def test_signature_is_64_lowercase_hex(self, hmac_credential):
        """HMAC signatures are 64 lowercase hex digits."""
        signature = _sign(hmac_credential).signature
        assert len(signature) == 64
        assert signature == signature.lower()
        int(signature, 16)

    def test_deterministic(self, hmac_credential):
        """Same request, same result."""
        assert _sign(hmac_credential) == _sign(hmac_credential)

    def test_signature_changes_with_expiration(self, hmac_credential):
        """Expiration is part of what is signed."""
        assert _sign(hmac_credential).signature != _sign(hmac_credential, expiration=601).signature

    def test_signature_changes_with_method(self, hmac_credential):
        """The method is part of what is signed."""
        read = _sign(hmac_credential).signature
        write = _sign(hmac_credential, action=Action.WRITE).signature
        assert read != write

    def test_signature_excluded_from_query_params(self, hmac_credential):
        """The signature never enters the canonical query."""
        result = _sign(hmac_credential)
        assert "X-Goog-Signature" not in result.query_params
        assert "X-Goog-Signature" not in result.canonical_query


class TestRsaSignature:
    """RSA credentials sign with RSASSA-PKCS1-v1_5 / SHA-256."""

    def test_algorithm_param(self, rsa_credential):
        """RSA credentials advertise GOOG4-RSA-SHA256."""
        result = _sign(rsa_credential)
        assert result.query_params["X-Goog-Algorithm"] == "GOOG4-RSA-SHA256"
        assert result.string_to_sign.startswith("GOOG4-RSA-SHA256\n")

    def test_signature_verifies(self, rsa_credential, rsa_key):
        """The signature verifies with the public key."""
        result = _sign(rsa_credential)
        rsa_key.public_key().verify(
            bytes.fromhex(result.signature),
            result.string_to_sign.encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )

    def test_signature_length(self, rsa_credential):
        """A 2048-bit key gives 512 hex digits."""
        assert len(_sign(rsa_credential).signature) == 512

    def test_deterministic(self, rsa_credential):
        """PKCS#1 v1.5 signatures carry no randomness."""
        assert _sign(rsa_credential).signature == _sign(rsa_credential).signature


# ---- Headers and query extras ------------------------------------------------


class TestSignedHeaders:
    """Extension, content and resumable headers are signed."""

    def test_extension_headers(self, hmac_credential):
        """Extension headers join host in SignedHeaders."""
        result = _sign(hmac_credential, extension_headers={"X-Goog-Meta-Owner": "  alice  "})
        assert result.query_params["X-Goog-SignedHeaders"] == "host;x-goog-meta-owner"
        assert result.canonical_request.canonical_headers == (
            "host:storage.googleapis.com\nx-goog-meta-owner:alice\n"
        )

    def test_caller_host_header_replaced(self, hmac_credential):
        """A caller Host header is replaced by the resolved host."""
        result = _sign(hmac_credential, extension_headers={"Host": "evil.example"})
        assert result.canonical_request.canonical_headers == "host:storage.googleapis.com\n"
        assert result.query_params["X-Goog-SignedHeaders"] == "host"

    def test_resumable_adds_header(self, hmac_credential):
        """RESUMABLE adds x-goog-resumable: start."""
        result = _sign(hmac_credential, action=Action.RESUMABLE)
        assert result.canonical_request.method == "POST"
        assert result.query_params["X-Goog-SignedHeaders"] == "host;x-goog-resumable"
        assert "x-goog-resumable:start\n" in result.canonical_request.canonical_headers

    def test_resumable_header_not_duplicated(self, hmac_credential):
        """A caller x-goog-resumable is not doubled."""
        result = _sign(
            hmac_credential,
            action=Action.RESUMABLE,
            extension_headers={"X-Goog-Resumable": "start"},
        )
        assert "x-goog-resumable:start\n" in result.canonical_request.canonical_headers
        assert "start,start" not in result.canonical_request.canonical_headers

    def test_content_headers(self, hmac_credential):
        """content_type and content_md5 become signed headers."""
        result = _sign(
            hmac_credential,
            action=Action.WRITE,
            content_type="text/plain",
            content_md5="rL0Y20zC+Fzt72VPzMSk2A==",
        )
        assert result.query_params["X-Goog-SignedHeaders"] == "content-md5;content-type;host"
        assert result.canonical_request.canonical_headers == (
            "content-md5:rL0Y20zC+Fzt72VPzMSk2A==\n"
            "content-type:text/plain\n"
            "host:storage.googleapis.com\n"
        )

    def test_header_order_does_not_change_signature(self, hmac_credential):
        """Header order has no effect on the signature."""
        forward = {"x-goog-meta-a": "1", "x-goog-meta-b": "2"}
        backward = {"x-goog-meta-b": "2", "x-goog-meta-a": "1"}
        first = _sign(hmac_credential, extension_headers=forward)
        second = _sign(hmac_credential, extension_headers=backward)
        assert first.signature == second.signature


class TestExtraQueryParams:
    """Caller query parameters and response overrides are signed."""

    def test_caller_params_signed(self, hmac_credential):
        """Caller parameters sort into the canonical query."""
        result = _sign(hmac_credential, query_params={"userProject": "my-project"})
        assert result.canonical_query.endswith("&userProject=my-project")

    def test_prompt_save_as(self, hmac_credential):
        """prompt_save_as sets response-content-disposition."""
        result = _sign(hmac_credential, prompt_save_as="report.pdf")
        assert result.query_params["response-content-disposition"] == (
            'attachment; filename="report.pdf"'
        )

    def test_response_disposition_wins_over_prompt(self, hmac_credential):
        """An explicit disposition beats prompt_save_as."""
        result = _sign(
            hmac_credential, prompt_save_as="report.pdf", response_disposition="inline"
        )
        assert result.query_params["response-content-disposition"] == "inline"

    def test_response_type_and_generation(self, hmac_credential):
        """response_type and generation become parameters."""
        result = _sign(hmac_credential, response_type="application/json", generation=1234)
        assert result.query_params["response-content-type"] == "application/json"
        assert result.query_params["generation"] == "1234"

    def test_path_style_default(self):
        """Requests default to path-style addressing."""
        assert _request().addressing == PathStyle()
