"""Addressing modes: how a bucket/object maps to a host and path."""

import enum
import urllib.parse
from dataclasses import dataclass
from typing import Union

from v4signer.encoding import encode_path
from v4signer.errors import InvalidAddressingError

DEFAULT_ENDPOINT = "storage.googleapis.com"


class UrlStyle(enum.Enum):
    """Wire names for the addressing styles."""

    PATH_STYLE = "PATH_STYLE"
    VIRTUAL_HOSTED_STYLE = "VIRTUAL_HOSTED_STYLE"
    BUCKET_BOUND_HOSTNAME = "BUCKET_BOUND_HOSTNAME"


@dataclass(frozen=True)
class PathStyle:
    """https://endpoint/bucket/object"""


@dataclass(frozen=True)
class VirtualHostedStyle:
    """https://bucket.endpoint/object"""


@dataclass(frozen=True)
class BoundHostname:
    """A caller-owned domain bound to the bucket, e.g. a CDN or CNAME.

    Attributes:
        host: The domain exactly as given. It may be scheme-qualified
            ("https://cdn.example.com"), in which case that scheme wins over
            the request's scheme.
    """

    host: str

    def __post_init__(self) -> None:
        if not self.host or not self.host.strip():
            raise InvalidAddressingError()


AddressingMode = Union[PathStyle, VirtualHostedStyle, BoundHostname]


def addressing_mode(
    style: UrlStyle | str | None = None, bound_hostname: str | None = None
) -> AddressingMode:
    """Build an AddressingMode from a style name and optional hostname.

    Args:
        style: A UrlStyle or its string value. None means path style.
        bound_hostname: Required for BUCKET_BOUND_HOSTNAME, ignored otherwise.

    Raises:
        InvalidAddressingError: If the style is unknown or a bound hostname
            is missing.
    """
    if style is None:
        return PathStyle()
    try:
        style = UrlStyle(style)
    except ValueError:
        raise InvalidAddressingError(f"Unknown URL style: {style!r}")

    if style is UrlStyle.BUCKET_BOUND_HOSTNAME:
        return BoundHostname(bound_hostname or "")
    if style is UrlStyle.VIRTUAL_HOSTED_STYLE:
        return VirtualHostedStyle()
    return PathStyle()


@dataclass(frozen=True)
class ResolvedAddress:
    """The host and canonical (already encoded) path of a resource.

    Attributes:
        host: Endpoint host, bucket subdomain, or bound hostname as given.
        path: Encoded absolute path, always starting with '/'.
    """

    host: str
    path: str

    @property
    def host_header(self) -> str:
        """The value of the canonical 'host' header, without any scheme."""
        if "://" in self.host:
            return urllib.parse.urlsplit(self.host).netloc
        return self.host.rstrip("/")

    def origin(self, scheme: str) -> str:
        """scheme://host, keeping the host's own scheme when it has one."""
        if "://" in self.host:
            return self.host.rstrip("/")
        return f"{scheme}://{self.host_header}"


def resolve(
    bucket: str,
    object_name: str | None,
    mode: AddressingMode,
    endpoint: str = DEFAULT_ENDPOINT,
) -> ResolvedAddress:
    """Compute host and path for a bucket/object under an addressing mode.

    For bucket operations path style keeps the bucket in the path
    (``/bucket``, no trailing slash); the other modes resolve to ``/``.

    Args:
        bucket: The bucket name.
        object_name: The object name, or None for bucket operations.
        mode: PathStyle(), VirtualHostedStyle() or BoundHostname(host).
        endpoint: The storage endpoint host.

    Returns:
        The resolved address. Object names are encoded per segment.

    Raises:
        InvalidAddressingError: If the mode is not a known variant.
    """
    object_path = "/" + encode_path(object_name) if object_name else ""

    if isinstance(mode, PathStyle):
        return ResolvedAddress(host=endpoint, path=f"/{bucket}{object_path}")
    if isinstance(mode, VirtualHostedStyle):
        return ResolvedAddress(host=f"{bucket}.{endpoint}", path=object_path or "/")
    if isinstance(mode, BoundHostname):
        return ResolvedAddress(host=mode.host, path=object_path or "/")
    raise InvalidAddressingError(f"Unsupported addressing mode: {mode!r}")
