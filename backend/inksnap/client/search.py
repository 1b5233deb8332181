import logging
from typing import Any, Dict, List, Optional

from ..schemas.profile import ArtistSearchResult
from .component import Component, LoadState
from .errors import GatewayError, InkSnapError
from .gateway import Gateway

logger = logging.getLogger(__name__)


async def search_artists(
    gateway: Gateway,
    keyword: Optional[str] = None,
    location_text: Optional[str] = None,
    limit: int = 50,
) -> List[ArtistSearchResult]:
    """Find artists by keyword, ranked by distance when the location geocodes.

    When geocoding finds nothing the location text is matched instead.
    Raises ``GatewayError`` if the search itself fails.
    """
    params: Dict[str, Any] = {"keyword": (keyword or "").strip() or None, "limit": limit}
    place = (location_text or "").strip()
    if place:
        try:
            coords = await gateway.geocode(place)
        except GatewayError as exc:
            logger.info("Geocoding %r failed, using text search: %s", place, exc.message)
            coords = None
        if coords:
            params.update(latitude=coords["latitude"], longitude=coords["longitude"])
        else:
            params["location_text"] = place
    rows = await gateway.rpc("search_artists", **params)
    return [ArtistSearchResult.model_validate(row) for row in rows or []]


class ArtistSearch(Component):
    def __init__(self, gateway: Gateway, notifier=None):
        super().__init__(gateway, notifier)
        self.results: List[ArtistSearchResult] = []

    async def run(self, keyword: Optional[str] = None, location_text: Optional[str] = None) -> List[ArtistSearchResult]:
        self.state = LoadState.LOADING
        try:
            results = await search_artists(self.gateway, keyword, location_text)
        except InkSnapError as exc:
            if self.mounted:
                self.state = LoadState.ERROR
                self.report("Search failed", exc)
            return []
        if self.mounted:
            self.results = results
            self.state = LoadState.READY
        return results
