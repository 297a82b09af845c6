from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from frigate_simpleui.errors import ValidationError

router = APIRouter(prefix="/detector", tags=["detector"])


class DetectorPayload(BaseModel):
    enabled: bool | None = None
    device: str | None = None


@router.get("")
def get_detector(request: Request) -> dict[str, object]:
    detector = request.app.state.simpleui.store.get_detector_config()
    return {"ok": True, "detector": detector.model_dump()}


@router.post("")
def update_detector(payload: DetectorPayload, request: Request) -> dict[str, object]:
    changes = payload.model_dump(exclude_none=True)
    if "device" in changes:
        changes["device"] = changes["device"].lower()
    try:
        detector = request.app.state.simpleui.store.set_detector_config(changes)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"ok": True, "message": "Detector configuration updated", "detector": detector.model_dump()}
