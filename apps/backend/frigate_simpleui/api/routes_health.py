from __future__ import annotations

from fastapi import APIRouter, Request

from frigate_simpleui import __version__
from frigate_simpleui.errors import TransportError

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def get_health(request: Request) -> dict[str, object]:
    state = request.app.state.simpleui
    settings = state.settings
    try:
        frigate_message = state.client.ping()
        frigate_reachable = True
    except TransportError as exc:
        frigate_message = str(exc)
        frigate_reachable = False
    return {
        "ok": True,
        "version": __version__,
        "bind": settings.bind,
        "port": settings.port,
        "frigate_url": settings.frigate.url,
        "frigate_reachable": frigate_reachable,
        "frigate_message": frigate_message,
        "go2rtc_url": settings.go2rtc.url,
        "cameras": len(state.store),
        "detector": state.store.get_detector_config().model_dump(),
    }
