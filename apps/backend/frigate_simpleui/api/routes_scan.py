from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from frigate_simpleui.camera.discovery import DiscoveredDevice, list_interfaces
from frigate_simpleui.camera.negotiate import BULK_DEFAULT_USERNAME, bulk_add, derive_settings
from frigate_simpleui.errors import TransportError
from frigate_simpleui.util.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/scan", tags=["scan"])


class DevicePayload(BaseModel):
    ip: str
    manufacturer: str = "Unknown"
    model: str = "Unknown"
    onvif_url: str = ""


class BulkAddPayload(BaseModel):
    devices: list[DevicePayload] = Field(default_factory=list)
    username: str = BULK_DEFAULT_USERNAME
    password: str = ""


@router.get("/interfaces")
def get_interfaces() -> dict[str, object]:
    return {"ok": True, "interfaces": [asdict(i) for i in list_interfaces()]}


@router.post("/all")
def scan_all(request: Request) -> dict[str, object]:
    devices = request.app.state.simpleui.scanner.scan()
    logger.info("Found %d ONVIF devices on the network", len(devices))
    return {"ok": True, "devices": [d.to_dict() for d in devices]}


@router.get("/streams")
def get_streams(
    request: Request,
    ip: str = "",
    onvif_url: str = "",
    username: str = "",
    password: str = "",
) -> dict[str, object]:
    if not ip or not onvif_url:
        raise HTTPException(status_code=400, detail="Device IP and ONVIF URL are required")
    negotiator = request.app.state.simpleui.negotiator
    try:
        result = negotiator(ip, onvif_url, username, password)
    except TransportError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    body = result.to_dict()
    return {
        "ok": True,
        "streams": body["streams"],
        "capabilities": body["capabilities"],
        "suggested": asdict(derive_settings(result.capabilities)),
    }


@router.post("/bulk-add")
def bulk_add_devices(payload: BulkAddPayload, request: Request) -> dict[str, object]:
    state = request.app.state.simpleui
    if not payload.devices:
        raise HTTPException(status_code=400, detail="No cameras found to add")
    devices = [
        DiscoveredDevice(
            ip=d.ip,
            manufacturer=d.manufacturer,
            model=d.model,
            onvif_url=d.onvif_url or f"http://{d.ip}/onvif/device_service",
        )
        for d in payload.devices
    ]
    outcomes = bulk_add(state.store, devices, payload.username, payload.password, negotiator=state.negotiator)
    added = sum(1 for o in outcomes if o.ok)
    return {
        "ok": True,
        "message": f"Added {added} of {len(outcomes)} cameras",
        "added": added,
        "results": [o.to_dict() for o in outcomes],
    }
