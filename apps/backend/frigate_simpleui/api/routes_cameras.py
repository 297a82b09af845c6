from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from frigate_simpleui.config.schema import CameraRecord, RetainMode
from frigate_simpleui.errors import StateConflictError, ValidationError
from frigate_simpleui.util.security import scrub_sensitive, validate_camera_name

router = APIRouter(prefix="/cameras", tags=["cameras"])


class CameraPayload(BaseModel):
    name: str
    rtsp_url: str | None = None
    sub_stream_url: str | None = None
    custom_url: str | None = None
    force_h264: bool | None = None
    enable_aac: bool | None = None
    enable_opus: bool | None = None
    detect_width: int | None = None
    detect_height: int | None = None
    detect_fps: int | None = None
    objects: list[str] | None = None
    record_enabled: bool | None = None
    retain_days: int | None = None
    retain_mode: RetainMode | None = None
    motion_threshold: int | None = None
    motion_contour_area: int | None = None
    motion_improve_contrast: bool | None = None
    snapshots_enabled: bool | None = None
    snapshots_timestamp: bool | None = None
    snapshots_bounding_box: bool | None = None
    snapshots_retain_days: int | None = None

    def changes(self) -> dict[str, Any]:
        return {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}


class StreamTestPayload(BaseModel):
    name: str = ""
    rtsp_url: str = ""


def _camera_dict(camera: CameraRecord, redact: bool = False) -> dict[str, Any]:
    data = camera.model_dump()
    return scrub_sensitive(data) if redact else data


@router.get("")
def list_cameras(request: Request, redact: bool = False) -> dict[str, object]:
    store = request.app.state.simpleui.store
    return {"ok": True, "items": [_camera_dict(c, redact) for c in store.list_all()]}


@router.post("")
def upsert_camera(payload: CameraPayload, request: Request) -> dict[str, object]:
    store = request.app.state.simpleui.store
    changes = payload.changes()
    try:
        camera = store.upsert(changes, unique_rtsp=True)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StateConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"ok": True, "message": "Camera added/updated successfully", "camera": _camera_dict(camera)}


@router.post("/add")
def add_camera(payload: CameraPayload, request: Request) -> dict[str, object]:
    store = request.app.state.simpleui.store
    changes = payload.changes()
    try:
        camera = store.add(changes, unique_rtsp=True)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StateConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"ok": True, "message": f"Camera {camera.name} added", "camera": _camera_dict(camera)}


@router.post("/reload")
def reload_cameras(request: Request) -> dict[str, object]:
    result = request.app.state.simpleui.reconciler.load()
    if not result.ok:
        raise HTTPException(status_code=502, detail=result.message)
    return {"ok": True, "message": result.message, "cameras": result.cameras}


@router.post("/test")
def test_stream(payload: StreamTestPayload, request: Request) -> dict[str, object]:
    state = request.app.state.simpleui
    rtsp_url = payload.rtsp_url
    if payload.name and not rtsp_url:
        existing = state.store.find_by_name(payload.name)
        if existing is not None:
            rtsp_url = existing.rtsp_url
    if not payload.name and not rtsp_url:
        raise HTTPException(status_code=400, detail="Camera name or RTSP URL is required")
    result = state.stream_tester.test(payload.name, rtsp_url)
    return {"ok": result.ok, "method": result.method, "message": result.message}


@router.get("/{name}")
def get_camera(name: str, request: Request, redact: bool = False) -> dict[str, object]:
    try:
        name = validate_camera_name(name)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    camera = request.app.state.simpleui.store.find_by_name(name)
    if camera is None:
        raise HTTPException(status_code=404, detail="Camera not found")
    return {"ok": True, "camera": _camera_dict(camera, redact)}


@router.delete("/{name}")
def delete_camera(name: str, request: Request) -> dict[str, object]:
    if not request.app.state.simpleui.store.remove(name):
        raise HTTPException(status_code=404, detail="Camera not found")
    return {"ok": True, "message": f"Camera {name} removed"}
