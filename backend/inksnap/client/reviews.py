import logging
from typing import Optional

from ..schemas.profile import ProfileCard
from ..schemas.review import ReviewRead
from .component import Component
from .errors import InkSnapError, ValidationError
from .notifications import Notifier
from .session import SessionContext

logger = logging.getLogger(__name__)

MAX_COMMENT_CHARS = 2000


class ReviewComposer(Component):
    """Review form for one artist; checks everything it can before inserting."""

    def __init__(self, session: SessionContext, notifier: Optional[Notifier] = None):
        super().__init__(session.gateway, notifier if notifier is not None else session.notifier)
        self.session = session
        self.submitting = False

    async def check(self, artist_id: str, stars: int, comment: str) -> str:
        """Return the cleaned comment or raise ``ValidationError``."""
        reviewer_id = self.session.identity_id
        if reviewer_id is None:
            raise ValidationError("You need to be logged in to leave reviews.")
        if reviewer_id == artist_id:
            raise ValidationError("You cannot review yourself.", "artist_id")
        if not isinstance(stars, int) or not 1 <= stars <= 5:
            raise ValidationError("Rating must be between 1 and 5 stars.", "stars")
        text = (comment or "").strip()
        if not text:
            raise ValidationError("Please write a comment.", "comment")
        if len(text) > MAX_COMMENT_CHARS:
            raise ValidationError(f"Comments are limited to {MAX_COMMENT_CHARS} characters.", "comment")
        existing = await self.gateway.count("reviews", {"reviewer_id": reviewer_id, "artist_id": artist_id})
        if existing:
            raise ValidationError("You can only leave one review per artist.", "artist_id")
        return text

    async def create(self, artist_id: str, stars: int, comment: str) -> ReviewRead:
        text = await self.check(artist_id, stars, comment)
        row = await self.gateway.insert(
            "reviews",
            {
                "artist_id": artist_id,
                "reviewer_id": self.session.identity_id,
                "stars": stars,
                "comment": text,
            },
        )
        review = ReviewRead.model_validate(row)
        profile = self.session.profile
        review.reviewer = ProfileCard(
            id=profile.id,
            name=profile.name,
            username=profile.username,
            profile_photo_url=profile.profile_photo_url,
            is_artist=profile.is_artist,
        )
        return review

    async def submit(self, artist_id: str, stars: int, comment: str) -> Optional[ReviewRead]:
        if self.submitting:
            return None
        self.submitting = True
        try:
            review = await self.create(artist_id, stars, comment)
        except InkSnapError as exc:
            self.report("Review not posted", exc)
            return None
        finally:
            self.submitting = False
        if self.mounted:
            self.notifier.success("Review posted!", "Thank you for your feedback.")
        return review
