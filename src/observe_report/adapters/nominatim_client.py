"""OpenStreetMap Nominatim reverse-geocoding client."""

from dataclasses import dataclass
from typing import Protocol

import httpx


class GeocodingClient(Protocol):
    """Interface for reverse geocoding lookups."""

    async def reverse(self, latitude: float, longitude: float) -> dict[str, object]:
        """Return the raw reverse-geocoding payload for a point."""


@dataclass
class HttpxNominatimClient(GeocodingClient):
    """HTTPX-backed Nominatim client."""

    base_url: str
    user_agent: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, base_url: str, user_agent: str) -> "HttpxNominatimClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            user_agent=user_agent,
            http_client=httpx.AsyncClient(),
        )

    async def reverse(self, latitude: float, longitude: float) -> dict[str, object]:
        """Look up the address nearest to a point."""
        response = await self.http_client.get(
            f"{self.base_url}/reverse",
            params={
                "format": "json",
                "lat": latitude,
                "lon": longitude,
                "zoom": 18,
                "addressdetails": 1,
            },
            headers={"User-Agent": self.user_agent},
            timeout=10,
        )
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
