import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..schemas.booking import ConventionDateRead
from ..schemas.profile import ProfileRead
from ..schemas.review import ReviewRead
from .component import Component, LoadState
from .errors import GatewayError, InkSnapError
from .gateway import Gateway
from .notifications import Notifier

logger = logging.getLogger(__name__)


@dataclass
class ArtistProfile:
    artist: ProfileRead
    follower_count: int = 0
    reviews: List[ReviewRead] = field(default_factory=list)
    convention_dates: List[ConventionDateRead] = field(default_factory=list)
    is_following: bool = False

    @property
    def average_rating(self) -> float:
        if not self.reviews:
            return 0.0
        return round(sum(r.stars for r in self.reviews) / len(self.reviews), 2)


class ArtistProfileLoader(Component):
    """Everything the public artist page shows, loaded in one pass."""

    def __init__(self, gateway: Gateway, viewer_id: Optional[str] = None, notifier: Optional[Notifier] = None):
        super().__init__(gateway, notifier)
        self.viewer_id = viewer_id
        self.data: Optional[ArtistProfile] = None

    async def _follower_count(self, artist_id: str) -> int:
        try:
            return await self.gateway.count("follows", {"following_id": artist_id})
        except GatewayError as exc:
            logger.warning("Follower count unavailable for %s: %s", artist_id, exc.message)
            return 0

    async def load(self, username: str) -> Optional[ArtistProfile]:
        self.state = LoadState.LOADING
        self.data = None
        try:
            rows = await self.gateway.select(
                "profiles", {"username": username, "is_artist": True}, limit=1
            )
            if not rows:
                raise GatewayError(f"The profile for @{username} could not be found or is not an artist.", 404)
            artist = ProfileRead.model_validate(rows[0])

            follower_count, review_rows, convention_rows = await asyncio.gather(
                self._follower_count(artist.id),
                self.gateway.select(
                    "reviews",
                    {"artist_id": artist.id},
                    order="created_at",
                    descending=True,
                    embed=("reviewer",),
                ),
                self.gateway.select("convention_dates", {"artist_id": artist.id}, order="start_date"),
            )

            is_following = False
            if self.viewer_id and self.viewer_id != artist.id:
                is_following = bool(await self.gateway.count(
                    "follows", {"follower_id": self.viewer_id, "following_id": artist.id}
                ))
        except InkSnapError as exc:
            if self.mounted:
                self.state = LoadState.ERROR
                self.error = exc.message
                title = "Artist Not Found" if getattr(exc, "status_code", None) == 404 else "Error Loading Profile"
                self.report(title, exc)
            return None
        if not self.mounted:
            return None

        self.data = ArtistProfile(
            artist=artist,
            follower_count=follower_count,
            reviews=[ReviewRead.model_validate(r) for r in review_rows],
            convention_dates=[ConventionDateRead.model_validate(c) for c in convention_rows],
            is_following=is_following,
        )
        self.state = LoadState.READY
        self.error = None
        return self.data

    def add_review(self, review: ReviewRead) -> None:
        if self.data is not None:
            self.data.reviews.insert(0, review)
