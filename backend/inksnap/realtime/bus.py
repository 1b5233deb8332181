"""Realtime insert notifications.

``RealtimeHub`` keeps the in-process subscriptions: each one is scoped to a
table and an equality filter (``conversation_id = 42``) and belongs to an
acting identity, so rows are only delivered to subscribers the table's read
policy admits. When ``WS_BUS_ENABLED`` is set, every publish is also pushed to
Redis (``rt-topic:<table>``) and events from other processes are replayed
into the local hub.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from inksnap.core.config import settings
from inksnap.crud.policies import get_policy
from inksnap.services.redis_client import get_redis
from inksnap.utils.json import dumps, loads

logger = logging.getLogger(__name__)

INSTANCE_ID = os.getenv("INSTANCE_ID", "inst-" + os.urandom(4).hex())
TOPIC_PREFIX = "rt-topic:"

Callback = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]

_ids = itertools.count(1)


@dataclass(eq=False)
class Subscription:
    table: str
    column: str
    value: Any
    actor_id: str
    callback: Optional[Callback] = None
    queue: Optional[asyncio.Queue] = None
    id: int = field(default_factory=lambda: next(_ids))
    dropped: int = 0

    def matches(self, table: str, row: Mapping[str, Any]) -> bool:
        if table != self.table:
            return False
        # Query strings carry values as text; compare loosely on that form.
        return str(row.get(self.column)) == str(self.value)


def bus_enabled() -> bool:
    return bool(settings.WS_BUS_ENABLED)


async def publish_topic(topic: str, envelope: Dict[str, Any]) -> None:
    """Publish an envelope to rt-topic:<topic>. No-op when the bus is disabled."""
    if not bus_enabled():
        return
    env = dict(envelope)
    env.setdefault("v", 1)
    env.setdefault("topic", topic)
    try:
        await get_redis().publish(f"{TOPIC_PREFIX}{topic}", dumps(env))
    except Exception:
        logger.warning("Realtime bus publish failed for %s", topic, exc_info=True)


class RealtimeHub:
    def __init__(self) -> None:
        self._subs: Dict[int, Subscription] = {}
        self._consumer: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._subs)

    def subscribe(
        self,
        table: str,
        column: str,
        value: Any,
        actor_id: str,
        callback: Optional[Callback] = None,
        queue_size: Optional[int] = None,
    ) -> Subscription:
        """Register interest in inserts on ``table`` where ``column == value``.

        Without a callback the subscription gets a bounded queue for the
        caller to drain (the SSE endpoint does this).
        """
        get_policy(table).column(column)
        sub = Subscription(table=table, column=column, value=value, actor_id=actor_id, callback=callback)
        if callback is None:
            sub.queue = asyncio.Queue(maxsize=queue_size or settings.REALTIME_QUEUE_SIZE)
        self._subs[sub.id] = sub
        logger.debug("Realtime subscribe #%s %s.%s=%s by %s", sub.id, table, column, value, actor_id)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        if self._subs.pop(sub.id, None) is not None:
            logger.debug("Realtime unsubscribe #%s", sub.id)

    async def publish(self, table: str, row: Dict[str, Any], event: str = "INSERT") -> int:
        """Deliver ``row`` locally and, when enabled, to other processes."""
        delivered = await self.deliver(table, row, event)
        await publish_topic(table, {"type": event, "table": table, "record": row, "origin": INSTANCE_ID})
        return delivered

    async def deliver(self, table: str, row: Dict[str, Any], event: str = "INSERT") -> int:
        policy = get_policy(table)
        delivered = 0
        for sub in list(self._subs.values()):
            if not sub.matches(table, row) or not policy.can_read(row, sub.actor_id):
                continue
            payload = {"type": event, "table": table, "record": row}
            if sub.callback is not None:
                try:
                    result = sub.callback(payload)
                    if inspect.isawaitable(result):
                        await result
                except Exception:
                    logger.exception("Realtime callback #%s failed", sub.id)
                    continue
            elif sub.queue is not None:
                try:
                    sub.queue.put_nowait(payload)
                except asyncio.QueueFull:
                    sub.dropped += 1
                    logger.warning("Realtime queue full for #%s; dropped %s event(s)", sub.id, sub.dropped)
                    continue
            delivered += 1
        return delivered

    async def handle_bus_message(self, topic: str, envelope: Dict[str, Any]) -> None:
        if envelope.get("origin") == INSTANCE_ID:
            return
        record = envelope.get("record")
        if isinstance(record, dict):
            await self.deliver(envelope.get("table") or topic, record, envelope.get("type") or "INSERT")

    async def start_consumer(self) -> None:
        """PSUBSCRIBE to the bus and replay remote events locally."""
        if not bus_enabled() or self._consumer is not None:
            return
        pubsub = get_redis().pubsub()
        await pubsub.psubscribe(f"{TOPIC_PREFIX}*")

        async def _loop() -> None:
            try:
                async for msg in pubsub.listen():
                    if not isinstance(msg, dict) or msg.get("type") != "pmessage":
                        continue
                    topic = str(msg.get("channel")).replace(TOPIC_PREFIX, "", 1)
                    try:
                        payload = loads(msg.get("data") or "{}")
                    except ValueError:
                        logger.warning("Ignoring malformed bus payload on %s", topic)
                        continue
                    await self.handle_bus_message(topic, payload)
            finally:
                await pubsub.aclose()

        self._consumer = asyncio.create_task(_loop())
        logger.info("Realtime bus consumer started (%s)", INSTANCE_ID)

    async def stop_consumer(self) -> None:
        if self._consumer is None:
            return
        self._consumer.cancel()
        try:
            await self._consumer
        except asyncio.CancelledError:
            pass
        self._consumer = None


hub = RealtimeHub()

__all__ = [
    "RealtimeHub",
    "Subscription",
    "bus_enabled",
    "hub",
    "publish_topic",
]
