import asyncio
import logging
from typing import Optional

from .component import Component, LoadState
from .errors import GatewayError, InkSnapError, ValidationError
from .gateway import Gateway
from .notifications import Notifier

logger = logging.getLogger(__name__)


class FollowTracker(Component):
    """Follow state of one viewer towards one profile, plus its follower count."""

    def __init__(
        self,
        gateway: Gateway,
        target_id: str,
        viewer_id: Optional[str] = None,
        notifier: Optional[Notifier] = None,
    ):
        super().__init__(gateway, notifier)
        self.target_id = target_id
        self.viewer_id = viewer_id
        self.follower_count = 0
        self.is_following = False
        self.busy = False

    async def _viewer_follows(self) -> bool:
        if not self.viewer_id or self.viewer_id == self.target_id:
            return False
        count = await self.gateway.count(
            "follows", {"follower_id": self.viewer_id, "following_id": self.target_id}
        )
        return count > 0

    async def load(self) -> None:
        self.state = LoadState.LOADING
        try:
            count, following = await asyncio.gather(
                self.gateway.count("follows", {"following_id": self.target_id}),
                self._viewer_follows(),
            )
        except InkSnapError as exc:
            if self.mounted:
                self.state = LoadState.ERROR
                self.report("Could not load followers", exc)
            return
        if not self.mounted:
            return
        self.follower_count = count
        self.is_following = following
        self.state = LoadState.READY

    async def refresh(self) -> None:
        await self.load()

    def _check(self) -> None:
        if not self.viewer_id:
            raise ValidationError("You need to be logged in to follow artists.")
        if self.viewer_id == self.target_id:
            raise ValidationError("You cannot follow yourself.", "following_id")

    async def follow(self) -> bool:
        if self.busy or self.is_following:
            return self.is_following
        self.busy = True
        try:
            self._check()
            await self.gateway.insert(
                "follows", {"follower_id": self.viewer_id, "following_id": self.target_id}
            )
        except GatewayError as exc:
            if exc.status_code == 409:
                # Already following from another session; resync.
                await self.refresh()
                return self.is_following
            self.report("Could not follow", exc)
            return False
        except InkSnapError as exc:
            self.report("Could not follow", exc)
            return False
        finally:
            self.busy = False
        if self.mounted:
            self.is_following = True
            self.follower_count += 1
        return True

    async def unfollow(self) -> bool:
        if self.busy or not self.is_following:
            return False
        self.busy = True
        try:
            self._check()
            deleted = await self.gateway.delete(
                "follows", {"follower_id": self.viewer_id, "following_id": self.target_id}
            )
        except InkSnapError as exc:
            self.report("Could not unfollow", exc)
            return False
        finally:
            self.busy = False
        if self.mounted:
            self.is_following = False
            if deleted:
                self.follower_count = max(0, self.follower_count - deleted)
        return True

    async def toggle(self) -> bool:
        if self.is_following:
            await self.unfollow()
        else:
            await self.follow()
        return self.is_following
