"""In-process gateway: the crud layer and realtime hub without the HTTP hop."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from ..crud import crud_profile, crud_rest
from ..crud.crud_rpc import call_rpc
from ..crud.errors import GatewayDenied
from ..database import SessionLocal, get_db_session
from ..realtime.bus import RealtimeHub, Subscription, hub as default_hub
from ..services import geocode as geocode_service
from ..services import storage
from ..utils.json import dumps, loads
from .errors import GatewayError, UploadError
from .gateway import Gateway, RealtimeSubscription, RowCallback

logger = logging.getLogger(__name__)


def _plain(value: Any) -> Any:
    """Round-trip through JSON so callers get the same types as over HTTP."""
    return loads(dumps(value))


class LocalSubscription(RealtimeSubscription):
    def __init__(self, hub: RealtimeHub, sub: Subscription):
        self._hub = hub
        self._sub = sub

    async def unsubscribe(self) -> None:
        self._hub.unsubscribe(self._sub)


class LocalGateway(Gateway):
    def __init__(
        self,
        identity_id: str,
        session_factory: Optional[Callable[[], Session]] = None,
        hub: Optional[RealtimeHub] = None,
    ):
        self.identity_id = identity_id
        self._factory = session_factory or SessionLocal
        self._hub = hub if hub is not None else default_hub

    def _run(self, fn, *args, **kwargs):
        with get_db_session(self._factory) as db:
            try:
                return _plain(fn(db, *args, **kwargs))
            except GatewayDenied as exc:
                logger.info("Gateway refused %s: %s", getattr(fn, "__name__", fn), exc.message)
                raise GatewayError(exc.message, exc.status_code, exc.field_errors) from exc

    async def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        order: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        embed: Sequence[str] = (),
    ) -> List[Dict[str, Any]]:
        return self._run(
            crud_rest.select_rows,
            table,
            self.identity_id,
            filters=filters,
            order=order,
            descending=descending,
            limit=limit,
            embed=embed,
        )

    async def count(self, table: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        return self._run(crud_rest.count_rows, table, self.identity_id, filters)

    async def insert(self, table: str, values: Mapping[str, Any]) -> Dict[str, Any]:
        row = self._run(crud_rest.insert_row, table, self.identity_id, dict(values))
        await self._hub.publish(table, row)
        return row

    async def update(self, table: str, values: Mapping[str, Any], filters: Mapping[str, Any]) -> List[Dict[str, Any]]:
        return self._run(crud_rest.update_rows, table, self.identity_id, dict(values), filters)

    async def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        return self._run(crud_rest.delete_rows, table, self.identity_id, filters)

    async def rpc(self, name: str, **params: Any) -> Any:
        return self._run(call_rpc, name, self.identity_id, params)

    async def upload(
        self,
        data: bytes,
        filename: str,
        folder: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> Dict[str, str]:
        try:
            return await storage.upload_image(data, filename=filename, folder=folder, content_type=content_type)
        except storage.StorageError as exc:
            raise UploadError(str(exc), 400) from exc

    async def delete_uploads(self, public_ids: Iterable[str]) -> List[str]:
        try:
            return await storage.delete_images(list(public_ids))
        except storage.StorageError as exc:
            raise GatewayError(str(exc), 502) from exc

    async def geocode(self, address: str) -> Optional[Dict[str, Any]]:
        result = await geocode_service.geocode_address(address)
        if result is None:
            return None
        return {
            "latitude": result.latitude,
            "longitude": result.longitude,
            "display_name": result.display_name,
        }

    async def delete_account(self) -> Dict[str, int]:
        profile = self._run(crud_rest.select_rows, "profiles", self.identity_id, {"id": self.identity_id})
        counts = self._run(crud_profile.delete_account, self.identity_id)
        photo_id = profile[0].get("profile_photo_public_id") if profile else None
        if photo_id:
            try:
                await storage.delete_images([photo_id])
            except storage.StorageError:
                logger.warning("Profile photo %s left behind for %s", photo_id, self.identity_id)
        return counts

    async def subscribe(self, table: str, column: str, value: Any, callback: RowCallback) -> RealtimeSubscription:
        async def deliver(payload: Dict[str, Any]) -> None:
            result = callback(_plain(payload["record"]))
            if inspect.isawaitable(result):
                await result

        try:
            sub = self._hub.subscribe(table, column, value, self.identity_id, callback=deliver)
        except GatewayDenied as exc:
            raise GatewayError(exc.message, exc.status_code, exc.field_errors) from exc
        return LocalSubscription(self._hub, sub)
