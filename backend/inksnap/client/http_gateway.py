"""Gateway over the HTTP API using ``httpx.AsyncClient``.

Realtime subscriptions hold one streaming GET per subscription and parse
server-sent events in a background task.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import httpx

from ..core.config import settings
from ..realtime.sse import SSEParser
from .errors import GatewayError, UploadError
from .gateway import Gateway, RealtimeSubscription, RowCallback

logger = logging.getLogger(__name__)


def encode_filter(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return "eq.true" if value else "eq.false"
    if isinstance(value, (datetime, date)):
        return f"eq.{value.isoformat()}"
    return f"eq.{value}"


def _filter_params(filters: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    return {name: encode_filter(value) for name, value in (filters or {}).items()}


def _error_message(response: httpx.Response) -> tuple[str, Dict[str, str]]:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}", {}
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict):
        return str(detail.get("message") or f"HTTP {response.status_code}"), dict(detail.get("field_errors") or {})
    if isinstance(detail, str):
        return detail, {}
    return f"HTTP {response.status_code}", {}


class HttpSubscription(RealtimeSubscription):
    def __init__(self, task: asyncio.Task):
        self._task = task

    async def unsubscribe(self) -> None:
        if self._task.done():
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class HttpGateway(Gateway):
    def __init__(
        self,
        access_token: str,
        identity_id: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.identity_id = identity_id
        root = (base_url or settings.INKSNAP_API_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=f"{root}{settings.API_V1_STR}",
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout or settings.HTTP_TIMEOUT,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, error_cls=GatewayError, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise error_cls(f"Could not reach the server: {exc}") from exc
        if response.status_code >= 400:
            message, field_errors = _error_message(response)
            logger.info("%s %s -> %s %s", method, path, response.status_code, message)
            if error_cls is UploadError:
                raise UploadError(message, response.status_code)
            raise GatewayError(message, response.status_code, field_errors)
        if not response.content:
            return None
        return response.json()

    async def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        order: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        embed: Sequence[str] = (),
    ) -> List[Dict[str, Any]]:
        params = _filter_params(filters)
        if order:
            params["order"] = f"{order}.desc" if descending else f"{order}.asc"
        if limit is not None:
            params["limit"] = str(limit)
        if embed:
            params["embed"] = ",".join(embed)
        return await self._request("GET", f"/rest/{table}", params=params) or []

    async def count(self, table: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        body = await self._request("GET", f"/rest/{table}/count", params=_filter_params(filters))
        return int((body or {}).get("count", 0))

    async def insert(self, table: str, values: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", f"/rest/{table}", json=_jsonable(values))

    async def update(self, table: str, values: Mapping[str, Any], filters: Mapping[str, Any]) -> List[Dict[str, Any]]:
        return await self._request(
            "PATCH", f"/rest/{table}", params=_filter_params(filters), json=_jsonable(values)
        ) or []

    async def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        body = await self._request("DELETE", f"/rest/{table}", params=_filter_params(filters))
        return int((body or {}).get("deleted", 0))

    async def rpc(self, name: str, **params: Any) -> Any:
        return await self._request("POST", f"/rpc/{name}", json=_jsonable(params))

    async def upload(
        self,
        data: bytes,
        filename: str,
        folder: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> Dict[str, str]:
        files = {"file": (filename, data, content_type or "application/octet-stream")}
        form = {"folder": folder} if folder else None
        return await self._request("POST", "/functions/upload", error_cls=UploadError, files=files, data=form)

    async def delete_uploads(self, public_ids: Iterable[str]) -> List[str]:
        body = await self._request("POST", "/functions/delete-upload", json={"public_ids": list(public_ids)})
        return list((body or {}).get("deleted", []))

    async def geocode(self, address: str) -> Optional[Dict[str, Any]]:
        return await self._request("POST", "/functions/geocode", json={"address": address})

    async def delete_account(self) -> Dict[str, int]:
        body = await self._request("POST", "/functions/delete-account")
        return dict((body or {}).get("deleted", {}))

    async def subscribe(self, table: str, column: str, value: Any, callback: RowCallback) -> RealtimeSubscription:
        """Open the event stream and return once the server confirms it."""
        ready = asyncio.get_running_loop().create_future()
        params = {"column": column, "value": str(value)}

        async def _consume() -> None:
            parser = SSEParser()
            try:
                async with self._client.stream("GET", f"/realtime/{table}", params=params, timeout=None) as res:
                    if res.status_code >= 400:
                        await res.aread()
                        message, field_errors = _error_message(res)
                        raise GatewayError(message, res.status_code, field_errors)
                    async for line in res.aiter_lines():
                        event = parser.feed(line)
                        if event is None:
                            continue
                        if event.event == "ready":
                            if not ready.done():
                                ready.set_result(True)
                            continue
                        record = (event.json() or {}).get("record")
                        if record is None:
                            continue
                        result = callback(record)
                        if inspect.isawaitable(result):
                            await result
            except asyncio.CancelledError:
                raise
            except GatewayError as exc:
                if not ready.done():
                    ready.set_exception(exc)
                else:
                    logger.warning("Realtime stream on %s ended: %s", table, exc.message)
            except httpx.HTTPError as exc:
                if not ready.done():
                    ready.set_exception(GatewayError(f"Could not open realtime stream: {exc}"))
                else:
                    logger.warning("Realtime stream on %s dropped: %s", table, exc)
            finally:
                if not ready.done():
                    ready.set_exception(GatewayError("Realtime stream closed before it was ready."))

        task = asyncio.create_task(_consume())
        try:
            await asyncio.wait_for(asyncio.shield(ready), timeout=settings.HTTP_TIMEOUT)
        except asyncio.TimeoutError:
            # Nobody awaits ``ready`` after this; the consumer must not fail it.
            ready.cancel()
            task.cancel()
            raise GatewayError("Timed out opening realtime stream.")
        except GatewayError:
            task.cancel()
            raise
        return HttpSubscription(task)


def _jsonable(values: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, (datetime, date)):
            value = value.isoformat()
        elif isinstance(value, enum.Enum):
            value = value.value
        out[key] = value
    return out
