"""Address geocoding via the Google Geocoding API.

``geocode_address(address)`` returns a ``GeocodeResult`` or ``None`` when
geocoding is unavailable (no key configured, provider unreachable, no
match). Callers treat ``None`` as "no coordinates" and fall back to
text-only behaviour.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from inksnap.core.config import settings

logger = logging.getLogger(__name__)

GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


@dataclass
class GeocodeResult:
    latitude: float
    longitude: float
    display_name: Optional[str] = None


async def geocode_address(address: str) -> Optional[GeocodeResult]:
    if not address or not address.strip():
        return None
    api_key = settings.GOOGLE_MAPS_API_KEY
    if not api_key:
        logger.debug("Geocoding disabled; no GOOGLE_MAPS_API_KEY")
        return None

    try:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(settings.GEOCODE_TIMEOUT, connect=1.0)
        ) as http:
            res = await http.get(GOOGLE_GEOCODE_URL, params={"address": address.strip(), "key": api_key})
            res.raise_for_status()
            data = res.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Geocoding failed for address %r: %s", address, exc)
        return None

    results = data.get("results") or []
    if not results:
        return None
    first = results[0]
    loc = (first.get("geometry") or {}).get("location") or {}
    lat, lng = loc.get("lat"), loc.get("lng")
    if lat is None or lng is None:
        return None
    return GeocodeResult(
        latitude=float(lat),
        longitude=float(lng),
        display_name=first.get("formatted_address"),
    )
