"""Signing error definitions for v4signer.

Every error is a deterministic input-validation failure. They are raised
synchronously before any signature is computed and are never retried.
"""


class SigningError(Exception):
    """A request-configuration error with a stable code and message.

    Attributes:
        code: Machine-readable error code (e.g. "ExpirationRange").
        message: Human-readable error description.
        extra_fields: Additional key-value context for the caller.
    """

    def __init__(
        self,
        code: str,
        message: str,
        extra_fields: dict[str, str] | None = None,
    ) -> None:
        """Initialize the signing error.

        Args:
            code: Error code.
            message: Error description.
            extra_fields: Optional extra context (never key material).
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.extra_fields = extra_fields or {}


# -- Pre-defined errors --------------------------------------------------------


class InvalidCredentialError(SigningError):
    """The credential's key material is malformed or unusable."""

    def __init__(self, message: str = "The signing credential is not valid.") -> None:
        super().__init__(code="InvalidCredential", message=message)


class InvalidAddressingError(SigningError):
    """The requested addressing mode cannot be resolved."""

    def __init__(
        self, message: str = "A bucket-bound hostname is required for this addressing mode."
    ) -> None:
        super().__init__(code="InvalidAddressing", message=message)


class ExpirationRangeError(SigningError):
    """The expiration window is outside (0, 604800] seconds."""

    def __init__(self, expiration: int | None = None, maximum: int = 604800) -> None:
        super().__init__(
            code="ExpirationRange",
            message=f"Expiration must be greater than 0 and at most {maximum} seconds.",
            extra_fields={"Expiration": str(expiration)} if expiration is not None else {},
        )


class InvalidConditionError(SigningError):
    """A POST policy condition or field is malformed."""

    def __init__(self, message: str = "Invalid policy condition.") -> None:
        super().__init__(code="InvalidCondition", message=message)


class QueryParamCollisionError(SigningError):
    """A caller query parameter collides with a reserved authentication parameter."""

    def __init__(self, name: str = "") -> None:
        super().__init__(
            code="QueryParamCollision",
            message=f"Query parameter {name!r} is reserved for request authentication.",
            extra_fields={"ParameterName": name} if name else {},
        )


class UnsupportedActionError(SigningError):
    """The HTTP method has no signing action for the given resource kind."""

    def __init__(self, method: str = "", resource_kind: str = "object") -> None:
        super().__init__(
            code="UnsupportedAction",
            message=f"HTTP method {method!r} cannot be signed for a {resource_kind}.",
            extra_fields={"Method": method} if method else {},
        )
