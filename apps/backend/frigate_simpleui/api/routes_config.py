from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from frigate_simpleui.errors import ParseError
from frigate_simpleui.frigate.reconciler import parse_document

router = APIRouter(prefix="/config", tags=["config"])


class RawConfigPayload(BaseModel):
    yaml: str


def _save(request: Request, restart: bool) -> dict[str, object]:
    result = request.app.state.simpleui.reconciler.save(restart=restart)
    if not result.ok:
        raise HTTPException(status_code=502, detail=result.message)
    return {"ok": True, "message": result.message}


@router.get("/yaml")
def get_yaml(request: Request) -> dict[str, object]:
    return {"ok": True, "yaml": request.app.state.simpleui.synthesizer.render()}


@router.post("/yaml")
def push_yaml(payload: RawConfigPayload, request: Request) -> dict[str, object]:
    try:
        parse_document(payload.yaml)
    except ParseError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    result = request.app.state.simpleui.reconciler.push_raw(payload.yaml)
    if not result.ok:
        raise HTTPException(status_code=502, detail=result.message)
    return {"ok": True, "message": result.message}


@router.post("/save")
def save_config(request: Request) -> dict[str, object]:
    return _save(request, restart=False)


@router.post("/save-and-restart")
def save_and_restart(request: Request) -> dict[str, object]:
    return _save(request, restart=True)


@router.get("/objects")
def get_objects(request: Request) -> dict[str, object]:
    return {"ok": True, "objects": request.app.state.simpleui.store.get_available_labels()}


@router.post("/reload")
def reload_config(request: Request) -> dict[str, object]:
    result = request.app.state.simpleui.reconciler.load()
    if not result.ok:
        raise HTTPException(status_code=502, detail=result.message)
    return {"ok": True, "message": result.message, "cameras": result.cameras}
