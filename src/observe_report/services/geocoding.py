"""Reverse geocoding of raw coordinates into address components."""

import logging
from dataclasses import dataclass

import httpx

from observe_report.adapters.nominatim_client import GeocodingClient
from observe_report.domain.observations import IncidentLocation, with_derived_address
from observe_report.errors import GeocodingError, ValidationError
from observe_report.services.cache import Cache

_CITY_KEYS = ("city", "town", "village", "hamlet", "municipality")

_logger = logging.getLogger(__name__)


@dataclass
class GeocodingService:
    """Resolves coordinates to an incident location, with caching."""

    client: GeocodingClient
    cache: Cache
    ttl_seconds: int = 86400

    async def reverse(self, latitude: float, longitude: float) -> IncidentLocation:
        """Return the structured address for a point."""
        if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
            raise ValidationError("latitude/longitude out of range")
        cache_key = f"geocode:reverse:{latitude:.6f}:{longitude:.6f}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, IncidentLocation):
            return cached

        try:
            payload = await self.client.reverse(latitude, longitude)
        except (httpx.HTTPError, ValueError) as exc:
            _logger.warning("Reverse geocoding failed: %s", exc)
            raise GeocodingError("Reverse geocoding failed") from exc

        location = _parse_location(payload, latitude, longitude)
        self.cache.set(cache_key, location, ttl_seconds=self.ttl_seconds)
        return location


def _parse_location(
    payload: dict[str, object], latitude: float, longitude: float
) -> IncidentLocation:
    address = payload.get("address")
    if not isinstance(address, dict):
        address = {}
    city = next((address[key] for key in _CITY_KEYS if address.get(key)), None)
    location = IncidentLocation(
        street_number=address.get("house_number"),
        street_name=address.get("road"),
        city=city,
        state=address.get("state"),
        zip_code=address.get("postcode"),
        latitude=latitude,
        longitude=longitude,
    )
    return with_derived_address(location)
