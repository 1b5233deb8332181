import enum
import logging
from typing import Optional

from .errors import InkSnapError
from .gateway import Gateway
from .notifications import Notifier

logger = logging.getLogger(__name__)


class LoadState(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"
    CLOSED = "closed"


class Component:
    """A mounted piece of UI state.

    Every await in a component is followed by a ``mounted`` check; results
    that arrive after ``unmount()`` are discarded. Public actions catch
    failures here and turn them into notifications.
    """

    def __init__(self, gateway: Gateway, notifier: Optional[Notifier] = None):
        self.gateway = gateway
        self.notifier = notifier if notifier is not None else Notifier()
        self.state = LoadState.IDLE
        self.error: Optional[str] = None
        self.mounted = True

    def unmount(self) -> None:
        self.mounted = False

    def report(self, title: str, exc: Exception) -> None:
        message = exc.message if isinstance(exc, InkSnapError) else str(exc)
        logger.warning("%s: %s", title, message)
        if self.mounted:
            self.notifier.error(title, message)
