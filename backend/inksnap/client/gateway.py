"""The remote data gateway as seen by the client components.

A ``Gateway`` acts on behalf of one signed-in identity. ``HttpGateway`` talks
to the FastAPI service; ``LocalGateway`` calls the same crud layer and
realtime hub in-process. Components only depend on this interface.
"""

from __future__ import annotations

import abc
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

RowCallback = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


class RealtimeSubscription(abc.ABC):
    """Handle for one filtered insert subscription."""

    @abc.abstractmethod
    async def unsubscribe(self) -> None:
        ...


class Gateway(abc.ABC):
    identity_id: Optional[str] = None

    @abc.abstractmethod
    async def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        order: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        embed: Sequence[str] = (),
    ) -> List[Dict[str, Any]]:
        ...

    @abc.abstractmethod
    async def count(self, table: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        ...

    @abc.abstractmethod
    async def insert(self, table: str, values: Mapping[str, Any]) -> Dict[str, Any]:
        ...

    @abc.abstractmethod
    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        filters: Mapping[str, Any],
    ) -> List[Dict[str, Any]]:
        """Return the updated rows; an empty list means no permitted row matched."""

    @abc.abstractmethod
    async def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        ...

    @abc.abstractmethod
    async def rpc(self, name: str, **params: Any) -> Any:
        ...

    @abc.abstractmethod
    async def upload(
        self,
        data: bytes,
        filename: str,
        folder: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> Dict[str, str]:
        """Store a file and return ``{"url", "public_id"}``. Raises ``UploadError``."""

    @abc.abstractmethod
    async def delete_uploads(self, public_ids: Iterable[str]) -> List[str]:
        ...

    @abc.abstractmethod
    async def geocode(self, address: str) -> Optional[Dict[str, Any]]:
        """Coordinates for ``address`` or ``None`` when nothing was found."""

    @abc.abstractmethod
    async def delete_account(self) -> Dict[str, int]:
        ...

    @abc.abstractmethod
    async def subscribe(
        self,
        table: str,
        column: str,
        value: Any,
        callback: RowCallback,
    ) -> RealtimeSubscription:
        """Call ``callback(row)`` for each permitted insert where ``column == value``."""

    async def aclose(self) -> None:
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
