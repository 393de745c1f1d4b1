"""Nominatim (OpenStreetMap) geocoding client."""

from typing import Any

import httpx

from silvaplan import __version__
from silvaplan.utils.logging import get_logger
from silvaplan.utils.rate_limit import RateLimiter

logger = get_logger(__name__)

NOMINATIM_BASE_URL = "https://nominatim.openstreetmap.org"
SEARCH_RESULT_LIMIT = 5

_DEFAULT = object()


class NominatimClient:
    """Thin async wrapper around the Nominatim search and reverse endpoints.

    Every failure (network error, non-2xx status, non-JSON or unexpected
    body) is logged and returned as None; callers decide whether that is
    fatal.
    """

    def __init__(
        self,
        base_url: str = NOMINATIM_BASE_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        rate_limiter: RateLimiter | None | object = _DEFAULT,
    ):
        """Initialize the client.

        Args:
            base_url: Nominatim server URL
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
            rate_limiter: Limiter shared by all calls; None disables throttling.
                Defaults to the public server's usage policy of one request per second.
        """
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport
        self.rate_limiter = RateLimiter("1/second") if rate_limiter is _DEFAULT else rate_limiter
        self.headers = {
            "Accept": "application/json",
            "User-Agent": f"silvaplan/{__version__}",
        }

    async def search(
        self, *, q: str | None = None, street: str | None = None, city: str | None = None
    ) -> list[dict[str, Any]] | None:
        """Forward search by free text or structured street/city parameters."""
        params: dict[str, Any] = {
            "format": "jsonv2",
            "addressdetails": 1,
            "limit": SEARCH_RESULT_LIMIT,
        }
        if q:
            params["q"] = q
        if street:
            params["street"] = street
        if city:
            params["city"] = city

        data = await self._get("/search", params)
        if not isinstance(data, list):
            return None
        return data

    async def reverse(self, lat: float, lng: float) -> dict[str, Any] | None:
        """Reverse lookup of a coordinate."""
        params = {"format": "jsonv2", "lat": lat, "lon": lng, "addressdetails": 1}
        data = await self._get("/reverse", params)
        if not isinstance(data, dict):
            return None
        return data

    async def _get(self, path: str, params: dict[str, Any]) -> Any | None:
        if isinstance(self.rate_limiter, RateLimiter):
            await self.rate_limiter.acquire("nominatim")

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, headers=self.headers, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.get(path, params=params)
        except httpx.HTTPError as e:
            logger.warning(f"Nominatim request {path} failed: {e}")
            return None

        if response.is_error:
            logger.warning(f"Nominatim request {path} returned HTTP {response.status_code}")
            return None

        try:
            return response.json()
        except ValueError:
            logger.warning(f"Nominatim request {path} returned a non-JSON body")
            return None
