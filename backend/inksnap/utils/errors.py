import logging
from typing import Dict, Optional

from fastapi import HTTPException, status

from ..crud.errors import GatewayDenied

logger = logging.getLogger(__name__)


def error_response(
    message: str,
    field_errors: Optional[Dict[str, str]] = None,
    code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
) -> HTTPException:
    """Build the ``{"message", "field_errors"}`` error detail every endpoint returns.

    Refusals (4xx) are logged at warning level, upstream failures at error.
    """
    field_errors = field_errors or {}
    level = logging.ERROR if code >= 500 else logging.WARNING
    logger.log(level, "%s %s %s", code, message, field_errors)
    return HTTPException(status_code=code, detail={"message": message, "field_errors": field_errors})


def denied_response(exc: GatewayDenied) -> HTTPException:
    """Translate a crud-layer refusal into its HTTP error."""
    return error_response(exc.message, exc.field_errors, exc.status_code)
