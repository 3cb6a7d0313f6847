"""Exception types raised by the deployerd components.

Everything a single poll tick can fail with derives from DeployerError so the
poll loop can isolate it. ConfigError is only raised before the loop starts.
"""

from __future__ import annotations


class DeployerError(Exception):
    """Base exception for deployerd errors."""

    pass


class ConfigError(DeployerError):
    """Raised when startup configuration is invalid or incomplete."""

    pass


class TransportError(DeployerError):
    """Raised when a request to the hosting API cannot complete."""

    pass


class NotFoundError(DeployerError):
    """Raised when the repository or the expected branch reference is missing."""

    def __init__(self, message: str, *, ref: str | None = None) -> None:
        self.ref = ref
        super().__init__(message)


class MalformedResponseError(DeployerError):
    """Raised when an API response does not have the expected shape."""

    pass


class EmptyPayloadError(DeployerError):
    """Raised when a snapshot download returns zero bytes."""

    pass


class DecodeError(DeployerError):
    """Raised when archive bytes are not a readable gzip tar stream."""

    pass


class DestinationIOError(DeployerError, OSError):
    """Raised when the destination directory cannot be created or written."""

    pass
