"""Transient, dismissible user notifications.

Components push a ``Notification`` when an action fails (or needs a warning);
a presentation layer reads ``Notifier.active()`` and may dismiss entries.
Entries expire on their own after ``ttl`` seconds.
"""

from __future__ import annotations

import enum
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5.0


class Variant(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


_ids = itertools.count(1)


@dataclass
class Notification:
    title: str
    message: str = ""
    variant: Variant = Variant.INFO
    ttl: float = DEFAULT_TTL_SECONDS
    created_at: float = field(default_factory=time.monotonic)
    id: int = field(default_factory=lambda: next(_ids))

    def expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


class Notifier:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._items: List[Notification] = []
        self._listeners: List[Callable[[Notification], None]] = []

    def push(
        self,
        title: str,
        message: str = "",
        variant: Variant = Variant.INFO,
        ttl: Optional[float] = None,
    ) -> Notification:
        item = Notification(
            title=title,
            message=message,
            variant=variant,
            ttl=DEFAULT_TTL_SECONDS if ttl is None else ttl,
            created_at=self._clock(),
        )
        self._items.append(item)
        for listener in list(self._listeners):
            listener(item)
        return item

    def info(self, title: str, message: str = "") -> Notification:
        return self.push(title, message, Variant.INFO)

    def success(self, title: str, message: str = "") -> Notification:
        return self.push(title, message, Variant.SUCCESS)

    def warning(self, title: str, message: str = "") -> Notification:
        return self.push(title, message, Variant.WARNING)

    def error(self, title: str, message: str = "") -> Notification:
        return self.push(title, message, Variant.ERROR)

    def dismiss(self, notification_id: int) -> bool:
        before = len(self._items)
        self._items = [n for n in self._items if n.id != notification_id]
        return len(self._items) != before

    def active(self) -> List[Notification]:
        now = self._clock()
        self._items = [n for n in self._items if not n.expired(now)]
        return list(self._items)

    def listen(self, listener: Callable[[Notification], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)
