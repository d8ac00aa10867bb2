from __future__ import annotations


class ClientError(ValueError):
    """Malformed or incomplete request; surfaced as HTTP 400 and never retried."""

    def __init__(self, message: str = "Missing required fields", status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class UpstreamError(RuntimeError):
    """A third-party data API answered with an error or an unreadable body."""
