"""Named remote procedures callable over ``/rpc/{name}``.

Each procedure takes ``(db, actor_id, params)`` and returns JSON-ready data.
The HTTP router and the in-process gateway dispatch through ``RPCS`` so both
see identical behaviour.
"""

from typing import Any, Callable, Dict, Mapping, Type

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from ..schemas.rpc import SearchArtistsParams, StartConversationParams
from . import crud_conversation, crud_profile
from .errors import InvalidRequest, NotFoundError, PolicyError

RPC = Callable[[Session, str, Mapping[str, Any]], Any]


def _parse(model: Type[BaseModel], params: Mapping[str, Any]):
    try:
        return model.model_validate(dict(params or {}))
    except ValidationError as exc:
        field_errors = {
            ".".join(str(p) for p in err.get("loc", ())) or "params": err.get("type", "invalid")
            for err in exc.errors()
        }
        raise InvalidRequest("Invalid RPC parameters.", field_errors)


def _own_identity(actor_id: str, params: Mapping[str, Any]) -> str:
    identity = (params or {}).get("identity_id") or actor_id
    if identity != actor_id:
        raise PolicyError("You can only read your own conversations.", {"identity_id": "forbidden"})
    return identity


def list_conversations_with_details(db: Session, actor_id: str, params: Mapping[str, Any]):
    return crud_conversation.list_conversations_with_details(db, _own_identity(actor_id, params))


def start_or_get_conversation(db: Session, actor_id: str, params: Mapping[str, Any]):
    p = _parse(StartConversationParams, params)
    return crud_conversation.start_or_get_conversation(db, actor_id, p.identity_a, p.identity_b)


def search_artists(db: Session, actor_id: str, params: Mapping[str, Any]):
    p = _parse(SearchArtistsParams, params)
    return crud_profile.search_artists(
        db,
        keyword=p.keyword,
        lat=p.latitude,
        lon=p.longitude,
        location_text=p.location_text,
        limit=p.limit,
    )


def unread_total(db: Session, actor_id: str, params: Mapping[str, Any]):
    return {"total": crud_conversation.unread_total(db, _own_identity(actor_id, params))}


RPCS: Dict[str, RPC] = {
    "list_conversations_with_details": list_conversations_with_details,
    "start_or_get_conversation": start_or_get_conversation,
    "search_artists": search_artists,
    "unread_total": unread_total,
}


def call_rpc(db: Session, name: str, actor_id: str, params: Mapping[str, Any] | None = None) -> Any:
    fn = RPCS.get(name)
    if fn is None:
        raise NotFoundError(f"Unknown procedure '{name}'", {"name": "unknown"})
    return fn(db, actor_id, params or {})
