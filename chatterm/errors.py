"""Exception hierarchy for ChatTerm."""

from __future__ import annotations


class ChatTermError(Exception):
    """Base class for every error raised by ChatTerm."""


class AuthError(ChatTermError):
    """Token acquisition or exchange failed."""


class ApiError(ChatTermError):
    """The chat API answered with an error or could not be reached."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ParseError(ChatTermError):
    """A response body could not be decoded."""


class ModelNotFoundError(ChatTermError):
    """No available model matches the requested name."""


class PlaceholderError(ChatTermError):
    """A file handed to holefill has no placeholder to fill."""
