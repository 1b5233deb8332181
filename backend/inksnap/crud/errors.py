from typing import Dict, Optional


class GatewayDenied(Exception):
    """Base class for requests the data layer refuses.

    Route handlers turn these into ``error_response`` payloads; the in-process
    gateway turns them into client ``GatewayError``s with the same status.
    """

    status_code = 400

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.field_errors = field_errors or {}


class InvalidRequest(GatewayDenied):
    status_code = 400


class PolicyError(GatewayDenied):
    status_code = 403


class NotFoundError(GatewayDenied):
    status_code = 404


class ConflictError(GatewayDenied):
    status_code = 409
