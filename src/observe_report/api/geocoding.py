"""Reverse geocoding endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Query, Request

from observe_report.api.deps import get_container, require_identity
from observe_report.domain.observations import IncidentLocation

if TYPE_CHECKING:
    from observe_report.containers import AppContainer

router = APIRouter(prefix="/api/geocode", tags=["geocoding"])


@router.get(
    "/reverse",
    response_model=IncidentLocation,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    dependencies=[Depends(require_identity)],
)
async def reverse_geocode(
    request: Request, lat: float = Query(...), lon: float = Query(...)
) -> IncidentLocation:
    """Resolve coordinates into structured address components."""
    container: AppContainer = get_container(request)
    return await container.geocoding_service.reverse(lat, lon)
