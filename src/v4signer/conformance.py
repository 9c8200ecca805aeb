"""Conformance fixture loading and comparison.

Fixtures are a JSON array of cases (or an object whose ``signingV4Tests``
key holds the array). A case with ``expectedUrl`` is a signed-URL case; a
case with ``policyInput`` is a POST-policy case. URL cases are compared
structurally: origin, path, and the order-insensitive query mapping.
"""

import json
import logging
import urllib.parse
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from v4signer.addressing import AddressingMode, UrlStyle, addressing_mode
from v4signer.errors import SigningError
from v4signer.policy import PolicyConditions, PolicyInput
from v4signer.signer import V4Signer
from v4signer.signing import ResourceRef, SigningRequest, action_for

logger = logging.getLogger(__name__)


class _Case(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SignedUrlCase(_Case):
    """One signed-URL fixture case."""

    description: str = ""
    bucket: str
    object_name: str | None = Field(default=None, alias="object")
    url_style: UrlStyle | None = Field(default=None, alias="urlStyle")
    bucket_bound_hostname: str | None = Field(default=None, alias="bucketBoundHostname")
    scheme: str = "https"
    headers: dict[str, Any] = Field(default_factory=dict)
    query_parameters: dict[str, str] = Field(default_factory=dict, alias="queryParameters")
    method: str
    expiration: int
    timestamp: datetime
    expected_url: str = Field(alias="expectedUrl")


class PolicyConditionsCase(_Case):
    """Fixture form of policy conditions."""

    content_length_range: list[int] | None = Field(default=None, alias="contentLengthRange")
    starts_with: list[str] | None = Field(default=None, alias="startsWith")
    acl: str | None = None


class PolicyInputCase(_Case):
    """Fixture form of a policy signing input."""

    scheme: str = "https"
    bucket: str
    object_name: str = Field(alias="object")
    expiration: int
    timestamp: datetime
    url_style: UrlStyle | None = Field(default=None, alias="urlStyle")
    bucket_bound_hostname: str | None = Field(default=None, alias="bucketBoundHostname")
    conditions: PolicyConditionsCase | None = None
    fields: dict[str, str] = Field(default_factory=dict)


class PolicyOutputCase(_Case):
    """Expected output of a policy case."""

    url: str
    fields: dict[str, str] = Field(default_factory=dict)
    expected_decoded_policy: str | None = Field(default=None, alias="expectedDecodedPolicy")


class SignedPolicyCase(_Case):
    """One POST-policy fixture case."""

    description: str = ""
    policy_input: PolicyInputCase = Field(alias="policyInput")
    policy_output: PolicyOutputCase = Field(alias="policyOutput")


@dataclass
class ConformanceSuite:
    url_cases: list[SignedUrlCase] = field(default_factory=list)
    policy_cases: list[SignedPolicyCase] = field(default_factory=list)


@dataclass
class CaseResult:
    description: str
    passed: bool
    mismatches: list[str] = field(default_factory=list)


# -- Loading -------------------------------------------------------------------


def parse_cases(data: Any) -> ConformanceSuite:
    """Split raw fixture data into URL and policy cases.

    Args:
        data: A list of case dicts, or a dict with a ``signingV4Tests`` list.

    Raises:
        ValueError: If the data is neither shape.
        pydantic.ValidationError: If a case is malformed.
    """
    if isinstance(data, dict):
        data = data.get("signingV4Tests")
    if not isinstance(data, list):
        raise ValueError("Fixture must be a JSON array or an object with 'signingV4Tests'.")

    suite = ConformanceSuite()
    for raw in data:
        if raw.get("expectedUrl"):
            suite.url_cases.append(SignedUrlCase.model_validate(raw))
        elif raw.get("policyInput"):
            suite.policy_cases.append(SignedPolicyCase.model_validate(raw))
        else:
            logger.warning(
                "Skipping fixture case without expected output: %s", raw.get("description")
            )
    return suite


def load_cases(path: Path | str) -> ConformanceSuite:
    """Load a conformance fixture file."""
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    suite = parse_cases(data)
    logger.info(
        "Loaded %d URL cases and %d policy cases from %s",
        len(suite.url_cases),
        len(suite.policy_cases),
        path,
    )
    return suite


# -- Case translation ----------------------------------------------------------


def _case_addressing(
    style: UrlStyle | None, scheme: str, bound_hostname: str | None
) -> AddressingMode:
    domain = f"{scheme}://{bound_hostname}" if bound_hostname else None
    return addressing_mode(style, domain)


def url_case_request(case: SignedUrlCase) -> SigningRequest:
    """Translate a URL case into a SigningRequest.

    Raises:
        UnsupportedActionError: If the method has no action for the resource.
        InvalidAddressingError: If a bound hostname case lacks a hostname.
    """
    return SigningRequest(
        resource=ResourceRef(case.bucket, case.object_name),
        action=action_for(case.method, case.object_name is not None),
        expiration=case.expiration,
        timestamp=case.timestamp,
        extension_headers=case.headers,
        query_params=case.query_parameters,
        addressing=_case_addressing(case.url_style, case.scheme, case.bucket_bound_hostname),
        scheme=case.scheme,
    )


def policy_case_input(case: SignedPolicyCase) -> PolicyInput:
    """Translate a policy case into a PolicyInput.

    acl, success_action_status and success_action_redirect are lifted out of
    the fixture's fields (and acl out of its conditions) into arguments.
    """
    source = case.policy_input
    fields = dict(source.fields)
    acl = fields.pop("acl", None)
    success_action_status = fields.pop("success_action_status", None)
    success_action_redirect = fields.pop("success_action_redirect", None)

    conditions = PolicyConditions()
    if source.conditions is not None:
        raw = source.conditions
        if raw.acl is not None:
            acl = raw.acl
        conditions = PolicyConditions(
            content_length_range=tuple(raw.content_length_range)
            if raw.content_length_range is not None
            else None,
            starts_with=(tuple(raw.starts_with),) if raw.starts_with else (),
        )

    return PolicyInput(
        resource=ResourceRef(source.bucket, source.object_name),
        expiration=source.expiration,
        timestamp=source.timestamp,
        conditions=conditions,
        fields=fields,
        acl=acl,
        success_action_status=success_action_status,
        success_action_redirect=success_action_redirect,
        addressing=_case_addressing(source.url_style, source.scheme, source.bucket_bound_hostname),
        scheme=source.scheme,
    )


# -- Comparison ----------------------------------------------------------------


def compare_urls(actual: str, expected: str) -> list[str]:
    """Structural URL comparison; returns human-readable mismatches."""
    got = urllib.parse.urlsplit(actual)
    want = urllib.parse.urlsplit(expected)
    mismatches = []
    if (got.scheme, got.netloc) != (want.scheme, want.netloc):
        mismatches.append(
            f"origin: {got.scheme}://{got.netloc} != {want.scheme}://{want.netloc}"
        )
    if got.path != want.path:
        mismatches.append(f"path: {got.path} != {want.path}")
    got_query = urllib.parse.parse_qs(got.query, keep_blank_values=True)
    want_query = urllib.parse.parse_qs(want.query, keep_blank_values=True)
    for name in sorted(set(got_query) | set(want_query)):
        if got_query.get(name) != want_query.get(name):
            mismatches.append(f"query {name}: {got_query.get(name)} != {want_query.get(name)}")
    return mismatches


def run_url_case(signer: V4Signer, case: SignedUrlCase) -> CaseResult:
    """Sign a URL case and compare it with the expected URL."""
    try:
        signed = signer.generate_signed_url(url_case_request(case))
    except SigningError as exc:
        return CaseResult(case.description, False, [f"{exc.code}: {exc.message}"])
    mismatches = compare_urls(signed.url, case.expected_url)
    return CaseResult(case.description, not mismatches, mismatches)


def run_policy_case(signer: V4Signer, case: SignedPolicyCase) -> CaseResult:
    """Sign a policy case and compare URL, fields and (if given) the decoded policy."""
    try:
        document = signer.generate_signed_post_policy(policy_case_input(case))
    except SigningError as exc:
        return CaseResult(case.description, False, [f"{exc.code}: {exc.message}"])

    expected = case.policy_output
    mismatches = []
    if document.url != expected.url:
        mismatches.append(f"url: {document.url} != {expected.url}")
    for name in sorted(set(document.fields) | set(expected.fields)):
        if document.fields.get(name) != expected.fields.get(name):
            mismatches.append(
                f"field {name}: {document.fields.get(name)!r} != {expected.fields.get(name)!r}"
            )
    if expected.expected_decoded_policy is not None:
        if document.policy != json.loads(expected.expected_decoded_policy):
            mismatches.append("decoded policy differs")
    return CaseResult(case.description, not mismatches, mismatches)


def run_suite(signer: V4Signer, suite: ConformanceSuite) -> list[CaseResult]:
    """Run every case in the suite, URL cases first."""
    results = [run_url_case(signer, case) for case in suite.url_cases]
    results.extend(run_policy_case(signer, case) for case in suite.policy_cases)
    failed = sum(1 for result in results if not result.passed)
    logger.info("Conformance run: %d passed, %d failed", len(results) - failed, failed)
    return results
