"""Serving of stored image uploads."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse

from observe_report.api.deps import get_container, require_identity
from observe_report.errors import NotFound
from observe_report.services.images import UPLOAD_URL_PREFIX

if TYPE_CHECKING:
    from observe_report.containers import AppContainer

router = APIRouter(prefix=UPLOAD_URL_PREFIX, tags=["uploads"])


@router.get("/{stored_name}", dependencies=[Depends(require_identity)])
async def get_upload(stored_name: str, request: Request) -> FileResponse:
    container: AppContainer = get_container(request)
    path = container.image_service.resolve(stored_name)
    if path is None:
        raise NotFound(f"Upload {stored_name} not found")
    return FileResponse(path)
