import logging
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Body, Depends, Request, status
from sqlalchemy.orm import Session

from .. import crud
from ..crud.errors import GatewayDenied, InvalidRequest
from ..database import get_db
from ..realtime.bus import hub
from ..utils import denied_response
from .dependencies import get_current_identity

logger = logging.getLogger(__name__)

router = APIRouter()

RESERVED_PARAMS = {"order", "limit", "embed", "access_token"}


def parse_filters(params) -> Dict[str, Any]:
    """Turn ``col=eq.value`` query parameters into equality filters."""
    filters: Dict[str, Any] = {}
    for name, raw in params.items():
        if name in RESERVED_PARAMS:
            continue
        op, sep, value = raw.partition(".")
        if not sep or op not in ("eq", "is"):
            raise InvalidRequest(
                f"Unsupported filter '{raw}' for '{name}'; use eq.<value>.",
                {name: "unsupported_operator"},
            )
        if op == "is" and value.lower() != "null":
            raise InvalidRequest(f"Only is.null is supported for '{name}'.", {name: "unsupported_operator"})
        filters[name] = value
    return filters


def parse_order(raw: Optional[str]) -> Tuple[Optional[str], bool]:
    if not raw:
        return None, False
    column, _, direction = raw.partition(".")
    direction = direction.lower() or "asc"
    if direction not in ("asc", "desc"):
        raise InvalidRequest(f"Invalid order direction '{direction}'.", {"order": "invalid"})
    return column, direction == "desc"


def parse_limit(raw: Optional[str]) -> Optional[int]:
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise InvalidRequest("limit must be an integer.", {"limit": "invalid"})


@router.get("/rest/{table}/count")
def count_table_rows(
    table: str,
    request: Request,
    db: Session = Depends(get_db),
    identity: str = Depends(get_current_identity),
):
    try:
        filters = parse_filters(request.query_params)
        return {"count": crud.crud_rest.count_rows(db, table, identity, filters)}
    except GatewayDenied as exc:
        raise denied_response(exc)


@router.get("/rest/{table}")
def select_table_rows(
    table: str,
    request: Request,
    db: Session = Depends(get_db),
    identity: str = Depends(get_current_identity),
) -> List[Dict[str, Any]]:
    """Rows of ``table`` visible to the caller.

    Query parameters: ``col=eq.value`` filters, ``order=col[.asc|.desc]``,
    ``limit=n`` and ``embed=a,b`` for related profile cards.
    """
    params = request.query_params
    try:
        filters = parse_filters(params)
        order, descending = parse_order(params.get("order"))
        limit = parse_limit(params.get("limit"))
        embed = [e.strip() for e in (params.get("embed") or "").split(",") if e.strip()]
        return crud.crud_rest.select_rows(
            db,
            table,
            identity,
            filters=filters,
            order=order,
            descending=descending,
            limit=limit,
            embed=embed,
        )
    except GatewayDenied as exc:
        raise denied_response(exc)


@router.post("/rest/{table}", status_code=status.HTTP_201_CREATED)
async def insert_table_row(
    table: str,
    values: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    identity: str = Depends(get_current_identity),
) -> Dict[str, Any]:
    try:
        row = crud.crud_rest.insert_row(db, table, identity, values)
    except GatewayDenied as exc:
        raise denied_response(exc)
    await hub.publish(table, row)
    return row


@router.patch("/rest/{table}")
def update_table_rows(
    table: str,
    request: Request,
    values: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    identity: str = Depends(get_current_identity),
) -> List[Dict[str, Any]]:
    """Update matching rows; an empty list means nothing the caller may write matched."""
    try:
        filters = parse_filters(request.query_params)
        return crud.crud_rest.update_rows(db, table, identity, values, filters)
    except GatewayDenied as exc:
        raise denied_response(exc)


@router.delete("/rest/{table}")
def delete_table_rows(
    table: str,
    request: Request,
    db: Session = Depends(get_db),
    identity: str = Depends(get_current_identity),
):
    try:
        filters = parse_filters(request.query_params)
        return {"deleted": crud.crud_rest.delete_rows(db, table, identity, filters)}
    except GatewayDenied as exc:
        raise denied_response(exc)
