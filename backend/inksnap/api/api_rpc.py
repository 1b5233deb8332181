from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from ..crud.crud_rpc import call_rpc
from ..crud.errors import GatewayDenied
from ..database import get_db
from ..utils import denied_response
from .dependencies import get_current_identity

router = APIRouter()


@router.post("/rpc/{name}")
def run_rpc(
    name: str,
    params: Optional[Dict[str, Any]] = Body(default=None),
    db: Session = Depends(get_db),
    identity: str = Depends(get_current_identity),
):
    """Invoke a named procedure: ``list_conversations_with_details``,
    ``start_or_get_conversation``, ``search_artists`` or ``unread_total``."""
    try:
        return call_rpc(db, name, identity, params or {})
    except GatewayDenied as exc:
        raise denied_response(exc)
