"""V4 signed URLs and signed POST policies for cloud object storage."""

from v4signer.addressing import (
    AddressingMode,
    BoundHostname,
    PathStyle,
    ResolvedAddress,
    UrlStyle,
    VirtualHostedStyle,
    addressing_mode,
    resolve,
)
from v4signer.assembler import SignedURL, assemble_url
from v4signer.credentials import SigningCredential
from v4signer.errors import (
    ExpirationRangeError,
    InvalidAddressingError,
    InvalidConditionError,
    InvalidCredentialError,
    QueryParamCollisionError,
    SigningError,
    UnsupportedActionError,
)
from v4signer.policy import PolicyConditions, PolicyDocument, PolicyInput, sign_policy
from v4signer.scope import CredentialScope, build_scope, derive_signing_key
from v4signer.signer import V4Signer
from v4signer.signing import Action, ResourceRef, SigningRequest, action_for, sign

__all__ = [
    "Action",
    "action_for",
    "AddressingMode",
    "addressing_mode",
    "assemble_url",
    "BoundHostname",
    "build_scope",
    "CredentialScope",
    "derive_signing_key",
    "ExpirationRangeError",
    "InvalidAddressingError",
    "InvalidConditionError",
    "InvalidCredentialError",
    "PathStyle",
    "PolicyConditions",
    "PolicyDocument",
    "PolicyInput",
    "QueryParamCollisionError",
    "resolve",
    "ResolvedAddress",
    "ResourceRef",
    "sign",
    "sign_policy",
    "SignedURL",
    "SigningCredential",
    "SigningError",
    "SigningRequest",
    "UnsupportedActionError",
    "UrlStyle",
    "V4Signer",
    "VirtualHostedStyle",
]
