"""Observation record, search and exchange endpoints."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Body, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from observe_report.api.deps import get_container, require_identity
from observe_report.api.models import ExportRequest
from observe_report.domain.identity import Identity  # noqa: TC001
from observe_report.domain.observations import (
    AdditionalNote,
    ImageRef,
    ObservationRecord,
)
from observe_report.errors import ValidationError

if TYPE_CHECKING:
    from observe_report.containers import AppContainer

router = APIRouter(prefix="/api/observations", tags=["observations"])

_EXPORT_FILENAME = "observations.json"


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ObservationRecord,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def create_observation(
    request: Request,
    payload: dict[str, Any] = Body(...),
    identity: Identity = Depends(require_identity),
) -> ObservationRecord:
    """Store a new observation under the next id."""
    container: AppContainer = get_container(request)
    return container.observation_service.create(payload, actor_id=identity.id)


@router.get(
    "",
    response_model=list[ObservationRecord],
    response_model_by_alias=True,
    response_model_exclude_none=True,
    dependencies=[Depends(require_identity)],
)
async def list_observations(request: Request) -> list[ObservationRecord]:
    container: AppContainer = get_container(request)
    return container.observation_service.list_all()


@router.post(
    "/search",
    response_model=list[ObservationRecord],
    response_model_by_alias=True,
    response_model_exclude_none=True,
    dependencies=[Depends(require_identity)],
)
async def search_observations(
    request: Request, payload: dict[str, Any] | None = Body(default=None)
) -> list[ObservationRecord]:
    """Run a sparse filter; the body is either ``{"filter": {...}}`` or the filter."""
    container: AppContainer = get_container(request)
    criteria = payload or {}
    if "filter" in criteria:
        criteria = criteria["filter"] or {}
    if not isinstance(criteria, dict):
        raise ValidationError("filter must be a JSON object")
    return container.search_service.search(criteria)


@router.post("/export", dependencies=[Depends(require_identity)])
async def export_observations(
    request: Request, payload: ExportRequest | None = None
) -> JSONResponse:
    """Return an export document as a downloadable attachment."""
    container: AppContainer = get_container(request)
    ids = payload.ids if payload is not None else None
    document = container.exchange_service.export(ids)
    return JSONResponse(
        content=document.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers={
            "Content-Disposition": f"attachment; filename={_EXPORT_FILENAME}"
        },
    )


@router.post("/import")
async def import_observations(
    request: Request, identity: Identity = Depends(require_identity)
) -> dict[str, object]:
    """Import a previously exported document; failures are reported per record."""
    container: AppContainer = get_container(request)
    raw = await request.body()
    document: str | bytes | dict[str, Any] = raw
    try:
        body = json.loads(raw)
    except ValueError:
        body = None
    if isinstance(body, dict) and "data" in body:
        data = body["data"]
        document = data if isinstance(data, str | dict) else json.dumps(data)
    result = await container.exchange_service.import_document(
        document, actor_id=identity.id
    )
    return result.model_dump(by_alias=True)


@router.get(
    "/{observation_id}",
    response_model=ObservationRecord,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    dependencies=[Depends(require_identity)],
)
async def get_observation(observation_id: int, request: Request) -> ObservationRecord:
    container: AppContainer = get_container(request)
    return container.observation_service.get(observation_id)


@router.patch(
    "/{observation_id}",
    response_model=ObservationRecord,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def update_observation(
    observation_id: int,
    request: Request,
    payload: dict[str, Any] = Body(...),
    identity: Identity = Depends(require_identity),
) -> ObservationRecord:
    """Replace the supplied top-level keys of a record."""
    container: AppContainer = get_container(request)
    return container.observation_service.update(
        observation_id, payload, actor_id=identity.id
    )


@router.post(
    "/{observation_id}/images",
    response_model=ObservationRecord,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def add_image(
    observation_id: int,
    image: ImageRef,
    request: Request,
    identity: Identity = Depends(require_identity),
) -> ObservationRecord:
    container: AppContainer = get_container(request)
    return container.observation_service.add_image(
        observation_id, image, actor_id=identity.id
    )


@router.delete(
    "/{observation_id}/images",
    response_model=ObservationRecord,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def remove_image(
    observation_id: int,
    request: Request,
    url: str = Query(..., min_length=1),
    identity: Identity = Depends(require_identity),
) -> ObservationRecord:
    container: AppContainer = get_container(request)
    return container.observation_service.remove_image(
        observation_id, url, actor_id=identity.id
    )


@router.post(
    "/{observation_id}/notes",
    response_model=ObservationRecord,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def add_note(
    observation_id: int,
    note: AdditionalNote,
    request: Request,
    identity: Identity = Depends(require_identity),
) -> ObservationRecord:
    """Append a follow-up note to a record."""
    container: AppContainer = get_container(request)
    return container.observation_service.add_note(
        observation_id, note, actor_id=identity.id
    )


@router.get("/{observation_id}/history", dependencies=[Depends(require_identity)])
async def observation_history(
    observation_id: int, request: Request, limit: int = Query(50, ge=1, le=500)
) -> list[dict[str, object]]:
    """Return the audit trail of a record, oldest first."""
    container: AppContainer = get_container(request)
    container.observation_service.get(observation_id)
    return container.audit_service.history(observation_id, limit=limit)


@router.post("/{observation_id}/images/upload", status_code=status.HTTP_201_CREATED)
async def upload_image(
    observation_id: int,
    request: Request,
    name: str | None = Query(default=None),
    description: str | None = Query(default=None),
    geocode: bool = Query(default=True),
    identity: Identity = Depends(require_identity),
) -> dict[str, object]:
    """Attach a raw image body; EXIF capture time and position become metadata."""
    container: AppContainer = get_container(request)
    image, record = await container.image_service.upload(
        observation_id,
        await request.body(),
        content_type=request.headers.get("content-type"),
        filename=name,
        description=description,
        actor_id=identity.id,
        geocode=geocode,
    )
    return {
        "message": "Image uploaded successfully",
        "image": image.model_dump(mode="json", by_alias=True, exclude_none=True),
        "observation": record.model_dump(mode="json", by_alias=True, exclude_none=True),
    }
