"""Signed POST policy documents for browser-based uploads.

The policy is a JSON document of upload conditions, base64-encoded and signed
with the same key chain as signed URLs. The base64 string itself is the
string-to-sign. The output is an action URL plus the hidden form fields an
HTML form needs to post to it.

References:
    - https://cloud.google.com/storage/docs/xml-api/post-object-forms
"""

import base64
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from v4signer.addressing import DEFAULT_ENDPOINT, AddressingMode, PathStyle, resolve
from v4signer.credentials import SigningCredential
from v4signer.errors import InvalidConditionError
from v4signer.scope import (
    DEFAULT_LOCATION,
    DEFAULT_SERVICE,
    build_scope,
    format_timestamp,
    to_utc,
)
from v4signer.signing import ResourceRef, check_expiration, compute_signature

logger = logging.getLogger(__name__)

EXPIRATION_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Fields the caller may pass as arguments; each becomes a condition and a field.
ARGUMENT_FIELDS = ("acl", "success_action_redirect", "success_action_status")

# Fields generated by the signer that callers may not supply.
RESERVED_FIELDS = frozenset(
    {
        "bucket",
        "key",
        "policy",
        "x-goog-algorithm",
        "x-goog-credential",
        "x-goog-date",
        "x-goog-signature",
    }
)

# Form fields with this prefix are ignored by the server and left out of the policy.
IGNORED_FIELD_PREFIX = "x-ignore-"


@dataclass(frozen=True)
class PolicyConditions:
    """Upload constraints beyond exact-match fields.

    Attributes:
        content_length_range: Inclusive (min, max) upload size in bytes.
        starts_with: (field, prefix) pairs, e.g. ("$key", "uploads/").
    """

    content_length_range: tuple[int, int] | None = None
    starts_with: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class PolicyInput:
    """Everything needed to sign one POST policy."""

    resource: ResourceRef
    expiration: int
    timestamp: datetime
    conditions: PolicyConditions = field(default_factory=PolicyConditions)
    fields: Mapping[str, Any] = field(default_factory=dict)
    acl: str | None = None
    success_action_status: int | str | None = None
    success_action_redirect: str | None = None
    addressing: AddressingMode = field(default_factory=PathStyle)
    scheme: str = "https"


@dataclass(frozen=True)
class PolicyDocument:
    """A signed policy: form action URL, hidden form fields, and the decoded policy."""

    url: str
    fields: dict[str, str]
    policy: dict[str, Any]


def validate_conditions(conditions: PolicyConditions) -> None:
    """Check content-length-range bounds and starts-with field names.

    Raises:
        InvalidConditionError: On a negative bound, min > max, or a
            starts-with field that does not begin with '$'.
    """
    if conditions.content_length_range is not None:
        try:
            low, high = conditions.content_length_range
        except (TypeError, ValueError):
            raise InvalidConditionError("content-length-range must be a (min, max) pair.")
        for bound in (low, high):
            if isinstance(bound, bool) or not isinstance(bound, int):
                raise InvalidConditionError("content-length-range bounds must be integers.")
        if low < 0 or high < 0:
            raise InvalidConditionError("content-length-range bounds must not be negative.")
        if low > high:
            raise InvalidConditionError(
                f"content-length-range minimum {low} is greater than maximum {high}."
            )
    for pair in conditions.starts_with:
        if len(pair) != 2:
            raise InvalidConditionError("starts-with conditions must be (field, prefix) pairs.")
        name, _ = pair
        if not name.startswith("$"):
            raise InvalidConditionError(f"starts-with field {name!r} must begin with '$'.")


def _split_fields(policy_input: PolicyInput) -> tuple[dict[str, str], dict[str, str]]:
    """Separate argument-only fields from passthrough fields.

    Field names match argument names case-insensitively. Argument values
    given explicitly win over entries of the same name in ``fields``.
    Returns (argument_fields, passthrough_fields).
    """
    passthrough = {name: str(value) for name, value in policy_input.fields.items()}
    for name in passthrough:
        if name.lower() in RESERVED_FIELDS:
            raise InvalidConditionError(f"Field {name!r} is generated by the signer.")

    arguments: dict[str, str] = {}
    for name in ARGUMENT_FIELDS:
        explicit = getattr(policy_input, name)
        consumed = None
        for key in [key for key in passthrough if key.lower() == name]:
            consumed = passthrough.pop(key)
        value = explicit if explicit is not None else consumed
        if value is not None:
            arguments[name] = str(value)
    return arguments, passthrough


def build_conditions(
    conditions: PolicyConditions,
    field_conditions: Mapping[str, str],
    bucket: str,
    key: str,
    timestamp: str,
    credential: str,
    algorithm: str,
) -> list[Any]:
    """Assemble the policy's conditions array."""
    result: list[Any] = []
    if conditions.content_length_range is not None:
        low, high = conditions.content_length_range
        result.append(["content-length-range", low, high])
    for name, prefix in conditions.starts_with:
        result.append(["starts-with", name, prefix])
    for name in sorted(field_conditions):
        result.append({name: field_conditions[name]})
    result.append({"bucket": bucket})
    result.append({"key": key})
    result.append({"x-goog-date": timestamp})
    result.append({"x-goog-credential": credential})
    result.append({"x-goog-algorithm": algorithm})
    return result


def encode_policy(policy: Mapping[str, Any]) -> str:
    """Compact JSON with non-ASCII escaped as \\uXXXX, then base64."""
    document = json.dumps(policy, separators=(",", ":"), ensure_ascii=True)
    return base64.b64encode(document.encode("utf-8")).decode("ascii")


def policy_url(
    scheme: str, bucket: str, mode: AddressingMode, endpoint: str = DEFAULT_ENDPOINT
) -> str:
    """The form action URL: the bucket root under the addressing mode, with a trailing '/'."""
    address = resolve(bucket, None, mode, endpoint)
    return address.origin(scheme) + address.path.rstrip("/") + "/"


def sign_policy(
    policy_input: PolicyInput,
    credential: SigningCredential,
    location: str = DEFAULT_LOCATION,
    service: str = DEFAULT_SERVICE,
    endpoint: str = DEFAULT_ENDPOINT,
) -> PolicyDocument:
    """Build, encode and sign a POST policy.

    Args:
        policy_input: Resource, expiration, conditions and fields.
        credential: The signing credential.
        location: Credential scope location.
        service: Credential scope service name.
        endpoint: The storage endpoint host.

    Returns:
        The signed policy with its form URL and fields.

    Raises:
        ExpirationRangeError: If the expiration is outside (0, 604800].
        InvalidConditionError: On malformed conditions or reserved fields.
        InvalidCredentialError: If the credential key material is malformed.
    """
    check_expiration(policy_input.expiration)
    validate_conditions(policy_input.conditions)
    if not policy_input.resource.object_name:
        raise InvalidConditionError("A POST policy requires an object name.")
    arguments, passthrough = _split_fields(policy_input)
    credential.validate()

    bucket = policy_input.resource.bucket
    key = policy_input.resource.object_name
    scope = build_scope(policy_input.timestamp, location, service)
    timestamp = format_timestamp(policy_input.timestamp)
    x_goog_credential = f"{credential.client_email}/{scope}"

    field_conditions = dict(arguments)
    for name, value in passthrough.items():
        if not name.startswith(IGNORED_FIELD_PREFIX):
            field_conditions[name] = value

    expires_at = to_utc(policy_input.timestamp) + timedelta(seconds=policy_input.expiration)
    policy = {
        "conditions": build_conditions(
            policy_input.conditions,
            field_conditions,
            bucket,
            key,
            timestamp,
            x_goog_credential,
            credential.algorithm,
        ),
        "expiration": expires_at.strftime(EXPIRATION_FORMAT),
    }
    encoded = encode_policy(policy)
    signature = compute_signature(credential, scope, encoded)
    logger.debug("Signed POST policy for %s/%s expiring %s", bucket, key, policy["expiration"])

    fields = dict(passthrough)
    fields.update(arguments)
    fields.update(
        {
            "key": key,
            "x-goog-algorithm": credential.algorithm,
            "x-goog-credential": x_goog_credential,
            "x-goog-date": timestamp,
            "x-goog-signature": signature,
            "policy": encoded,
        }
    )
    return PolicyDocument(
        url=policy_url(policy_input.scheme, bucket, policy_input.addressing, endpoint),
        fields=fields,
        policy=policy,
    )
