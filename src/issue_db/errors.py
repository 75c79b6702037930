"""Exceptions raised by the issue database client."""

from __future__ import annotations


class IssueDBError(Exception):
    """Base exception for issue database errors."""

    pass


class AuthenticationError(IssueDBError):
    """No credential is available, or the server rejected it."""

    pass


class RemoteError(IssueDBError):
    """A network call failed or the server answered with an error status."""

    def __init__(
        self, message: str, *, status_code: int | None = None, retryable: bool = False
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class ProtocolViolationError(IssueDBError):
    """A successful response was malformed or omitted data it should contain."""

    pass


class IDParsingError(ProtocolViolationError):
    """An ordering key returned by the server is not an unsigned 128-bit integer."""

    pass


class APIError(IssueDBError):
    """The server answered well-formed data describing a failed lookup."""

    pass
