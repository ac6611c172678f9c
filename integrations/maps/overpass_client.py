"""
Wayquest Backend - Overpass Client
Landmark lookup against the OpenStreetMap Overpass API
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import httpx
from loguru import logger

from app.core.config import settings
from app.core.exceptions import LandmarkLookupError
from app.schemas.location import Coordinate, Landmark


# === Base Landmark Lookup ===

class BaseLandmarkLookup(ABC):
    """Abstract source of landmark candidates for quest placement"""

    @abstractmethod
    async def fetch_landmarks(
        self,
        origin: Coordinate,
        radius_meters: float,
        category_hint: str
    ) -> List[Landmark]:
        """Named features around origin; may raise on transient failure"""
        pass


class NullLandmarkLookup(BaseLandmarkLookup):
    """Lookup that never finds anything"""

    async def fetch_landmarks(
        self,
        origin: Coordinate,
        radius_meters: float,
        category_hint: str
    ) -> List[Landmark]:
        return []


# === Overpass Client ===

class OverpassClient(BaseLandmarkLookup):
    """
    Overpass API client.

    Milestone lookups ask for historic monuments first and widen to
    general points of interest when fewer than MIN_HISTORIC_RESULTS come
    back. Local lookups go straight to general points of interest.
    Results are cached in-process per rounded origin and radius.
    """

    MIN_HISTORIC_RESULTS = 5
    MAX_HISTORIC_RADIUS = 5000

    HISTORIC_QUERY = """
        node["historic"~"monument|ruins|castle|archaeological_site"](around:{radius},{lat},{lng});
        way["historic"~"monument|ruins|castle|archaeological_site"](around:{radius},{lat},{lng});
    """

    GENERAL_QUERY = """
        node["tourism"~"attraction|artwork|viewpoint|museum"](around:{radius},{lat},{lng});
        node["leisure"~"park|playground"](around:{radius},{lat},{lng});
        node["amenity"~"place_of_worship|cafe|restaurant|fountain|library"](around:{radius},{lat},{lng});
        node["shop"="mall"](around:{radius},{lat},{lng});
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        cache_ttl_seconds: Optional[int] = None,
        max_cache_entries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_url = api_url or settings.OVERPASS_API_URL
        self.timeout = timeout or settings.OVERPASS_TIMEOUT_SECONDS
        self.cache_ttl_seconds = (
            cache_ttl_seconds if cache_ttl_seconds is not None else settings.LANDMARK_CACHE_TTL_SECONDS
        )
        self.max_cache_entries = max_cache_entries or settings.LANDMARK_CACHE_MAX_ENTRIES
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._cache: Dict[str, Tuple[float, List[Landmark]]] = {}

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ================================================================
    # LANDMARKS
    # ================================================================

    async def fetch_landmarks(
        self,
        origin: Coordinate,
        radius_meters: float,
        category_hint: str = "local"
    ) -> List[Landmark]:
        """
        Fetch named landmarks around a point.

        Args:
            origin: Search center
            radius_meters: Search radius
            category_hint: "milestone" (historic first) or "local"

        Returns:
            Landmarks with a name and coordinates

        Raises:
            LandmarkLookupError: Overpass unreachable or returned an error
        """
        radius = int(radius_meters)
        cache_key = f"{category_hint}_{origin.lat:.3f}_{origin.lng:.3f}_{radius}"
        cached = self._get_from_cache(cache_key)
        if cached is not None:
            logger.debug(f"Returning cached landmarks for {cache_key}")
            return cached

        elements: List[Dict[str, Any]] = []
        if category_hint == "milestone":
            elements = await self._query(
                self.HISTORIC_QUERY, origin, min(radius, self.MAX_HISTORIC_RADIUS)
            )

        if len(elements) < self.MIN_HISTORIC_RESULTS:
            if category_hint == "milestone":
                logger.info("Few monuments found, expanding landmark search...")
            general = await self._query(self.GENERAL_QUERY, origin, radius)
            seen = {(e.get("type"), e["id"]) for e in elements}
            elements.extend(e for e in general if (e.get("type"), e["id"]) not in seen)

        landmarks = [
            landmark for landmark in (self._parse_element(e) for e in elements)
            if landmark is not None
        ]

        self._store_in_cache(cache_key, landmarks)
        logger.info(f"Overpass returned {len(landmarks)} named landmarks within {radius}m")
        return landmarks

    async def _query(self, body: str, origin: Coordinate, radius: int) -> List[Dict[str, Any]]:
        query = f"""
            [out:json][timeout:25];
            (
                {body.format(radius=radius, lat=origin.lat, lng=origin.lng)}
            );
            out body center;
        """

        try:
            response = await self.client.post(self.api_url, data={"data": query})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Overpass query error: {e}")
            raise LandmarkLookupError(str(e)) from e
        except ValueError as e:
            logger.error(f"Overpass returned invalid JSON: {e}")
            raise LandmarkLookupError("Invalid response body") from e

        return [e for e in data.get("elements", []) if "id" in e]

    def _parse_element(self, element: Dict[str, Any]) -> Optional[Landmark]:
        """Nodes carry lat/lon, ways carry a center; unnamed features are dropped"""
        tags = {k: str(v) for k, v in (element.get("tags") or {}).items()}
        if not tags.get("name"):
            return None

        lat = element.get("lat")
        lng = element.get("lon")
        if lat is None or lng is None:
            center = element.get("center") or {}
            lat, lng = center.get("lat"), center.get("lon")
        if lat is None or lng is None:
            return None

        return Landmark(
            id=f"{element.get('type', 'node')}-{element['id']}",
            coordinate=Coordinate(lat=lat, lng=lng),
            tags=tags,
        )

    # ================================================================
    # CACHE
    # ================================================================

    def _get_from_cache(self, key: str) -> Optional[List[Landmark]]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        stored_at, landmarks = entry
        if time.time() - stored_at > self.cache_ttl_seconds:
            del self._cache[key]
            return None
        return landmarks

    def _store_in_cache(self, key: str, landmarks: List[Landmark]) -> None:
        """Insert an entry, dropping expired ones and then the oldest over the cap"""
        now = time.time()
        self._cache = {
            k: entry for k, entry in self._cache.items()
            if now - entry[0] <= self.cache_ttl_seconds
        }
        self._cache.pop(key, None)
        while len(self._cache) >= self.max_cache_entries:
            del self._cache[next(iter(self._cache))]
        self._cache[key] = (now, landmarks)

    def clear_cache(self) -> None:
        self._cache.clear()


# Global client instance
overpass_client = OverpassClient()
