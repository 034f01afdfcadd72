"""Moderation errors surfaced to API callers as ``{"message": ...}``."""


class ModerationError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidTransition(ModerationError):
    """Requested status edge is not allowed from the current status."""
    status_code = 400


class ValidationError(ModerationError):
    """Missing or malformed input such as a required reason."""
    status_code = 400


class Forbidden(ModerationError):
    status_code = 403


class NotFound(ModerationError):
    status_code = 404
