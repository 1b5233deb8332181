from typing import Dict, Optional


class InkSnapError(Exception):
    """Base class for failures surfaced by the client components."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(InkSnapError):
    """Local input rejected before anything was sent."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class GatewayError(InkSnapError):
    """The gateway refused or failed a call."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        field_errors: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.field_errors = field_errors or {}


class UploadError(InkSnapError):
    """An attachment could not be stored; nothing else was attempted."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthorizationError(InkSnapError):
    """A scoped mutation matched no row the caller may change."""
