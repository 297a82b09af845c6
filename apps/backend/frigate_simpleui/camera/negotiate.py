from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass, field
from typing import Any
from urllib.parse import urlparse

from onvif import ONVIFCamera
from onvif.exceptions import ONVIFError
from zeep.exceptions import Error as ZeepError
from zeep.transports import Transport

from frigate_simpleui.config.defaults import (
    DEFAULT_DETECT_HEIGHT,
    DEFAULT_DETECT_WIDTH,
    MAX_DETECT_HEIGHT,
    MAX_DETECT_WIDTH,
    ONVIF_TIMEOUT_SECONDS,
)
from frigate_simpleui.config.schema import CameraRecord
from frigate_simpleui.errors import SimpleUIError, TransportError
from frigate_simpleui.frigate.store import CameraStore
from frigate_simpleui.util.logging import get_logger
from frigate_simpleui.util.security import inject_credentials, sanitize_rtsp_url

from .discovery import DiscoveredDevice

logger = get_logger(__name__)

ONVIF_FAILURES = (ONVIFError, ZeepError, OSError)
BULK_DEFAULT_USERNAME = "admin"
BULK_RETAIN_DAYS = 7


@dataclass(frozen=True)
class Resolution:
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height


@dataclass
class Capabilities:
    video_encoders: list[str] = field(default_factory=list)
    audio_encoders: list[str] = field(default_factory=list)
    resolutions: list[Resolution] = field(default_factory=list)


@dataclass
class StreamUrls:
    main_stream: str = ""
    sub_stream: str = ""


@dataclass
class NegotiationResult:
    streams: StreamUrls = field(default_factory=StreamUrls)
    capabilities: Capabilities = field(default_factory=Capabilities)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DerivedSettings:
    force_h264: bool
    enable_aac: bool
    enable_opus: bool
    detect_width: int
    detect_height: int


@dataclass
class BulkOutcome:
    device: DiscoveredDevice
    ok: bool
    name: str = ""
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"device": self.device.to_dict(), "ok": self.ok, "name": self.name, "message": self.message}


def parse_service_url(onvif_url: str) -> tuple[str, int]:
    url = onvif_url.strip()
    if not url.startswith(("http://", "https://")):
        url = f"http://{url}"
    parsed = urlparse(url)
    if not parsed.hostname:
        raise TransportError(f"Invalid ONVIF URL: {onvif_url}")
    try:
        port = parsed.port or 80
    except ValueError as exc:
        raise TransportError(f"Invalid ONVIF URL: {onvif_url}") from exc
    return parsed.hostname, port


def negotiate(
    device_ip: str,
    onvif_url: str,
    username: str = "",
    password: str = "",
    timeout_seconds: float = ONVIF_TIMEOUT_SECONDS,
) -> NegotiationResult:
    """Read media profiles from one device: first profile is main, second is sub."""
    host, port = parse_service_url(onvif_url or f"http://{device_ip}/onvif/device_service")
    logger.info("Getting stream URLs for camera at %s:%s with username %s", host, port, username or "(none)")

    try:
        transport = Transport(timeout=timeout_seconds, operation_timeout=timeout_seconds)
        camera = ONVIFCamera(host, port, username, password, transport=transport)
        media = camera.create_media_service()
        profiles = list(media.GetProfiles() or [])
    except ONVIF_FAILURES as exc:
        logger.error("Error connecting to camera at %s: %s", device_ip, exc)
        raise TransportError(f"Failed to connect to {device_ip}: {exc}") from exc

    result = NegotiationResult(capabilities=collect_capabilities(profiles))
    if not profiles:
        return result

    try:
        main = _stream_uri(media, profiles[0])
    except ONVIF_FAILURES as exc:
        logger.error("Error getting main stream URI: %s", exc)
        raise TransportError(f"Failed to get main stream URI from {device_ip}: {exc}") from exc
    result.streams.main_stream = inject_credentials(main, username, password)

    if len(profiles) > 1:
        try:
            sub = inject_credentials(_stream_uri(media, profiles[1]), username, password)
        except ONVIF_FAILURES as exc:
            logger.error("Error getting sub-stream URI: %s", exc)
        else:
            result.streams.sub_stream = "" if sub == result.streams.main_stream else sub

    logger.info(
        "Camera %s main=%s sub=%s",
        device_ip,
        sanitize_rtsp_url(result.streams.main_stream),
        sanitize_rtsp_url(result.streams.sub_stream) or "(none)",
    )
    return result


def collect_capabilities(profiles: Iterable[Any]) -> Capabilities:
    caps = Capabilities()
    for profile in profiles:
        video = getattr(profile, "VideoEncoderConfiguration", None)
        if video is not None:
            encoding = str(getattr(video, "Encoding", "") or "")
            if encoding and encoding not in caps.video_encoders:
                caps.video_encoders.append(encoding)
            size = getattr(video, "Resolution", None)
            if size is not None and getattr(size, "Width", None) and getattr(size, "Height", None):
                resolution = Resolution(width=int(size.Width), height=int(size.Height))
                if resolution not in caps.resolutions:
                    caps.resolutions.append(resolution)
        audio = getattr(profile, "AudioEncoderConfiguration", None)
        if audio is not None:
            encoding = str(getattr(audio, "Encoding", "") or "")
            if encoding and encoding not in caps.audio_encoders:
                caps.audio_encoders.append(encoding)
    return caps


def derive_settings(capabilities: Capabilities) -> DerivedSettings:
    width, height = pick_detect_resolution(capabilities.resolutions)
    video = [e.upper() for e in capabilities.video_encoders]
    audio = [e.upper() for e in capabilities.audio_encoders]
    return DerivedSettings(
        force_h264=bool(video) and "H264" not in video,
        enable_aac="AAC" in audio,
        enable_opus=bool(audio),
        detect_width=width,
        detect_height=height,
    )


def pick_detect_resolution(resolutions: Iterable[Resolution]) -> tuple[int, int]:
    candidates = list(resolutions)
    if not candidates:
        return DEFAULT_DETECT_WIDTH, DEFAULT_DETECT_HEIGHT
    # max() keeps the first of equal keys, so ties fall back to advertised order
    best = max(candidates, key=lambda r: (r.area, r.width))
    return scale_to_limit(best.width, best.height)


def scale_to_limit(width: int, height: int) -> tuple[int, int]:
    if width <= MAX_DETECT_WIDTH and height <= MAX_DETECT_HEIGHT:
        return width, height
    scale = min(MAX_DETECT_WIDTH / width, MAX_DETECT_HEIGHT / height)
    return int(width * scale + 0.5), int(height * scale + 0.5)


def draft_from_negotiation(name: str, result: NegotiationResult, **overrides: Any) -> CameraRecord:
    derived = derive_settings(result.capabilities)
    values: dict[str, Any] = {
        "name": name,
        "rtsp_url": result.streams.main_stream,
        "sub_stream_url": result.streams.sub_stream,
        "force_h264": derived.force_h264,
        "enable_aac": derived.enable_aac,
        "enable_opus": derived.enable_opus,
        "detect_width": derived.detect_width,
        "detect_height": derived.detect_height,
    }
    values.update(overrides)
    return CameraRecord.model_validate(values)


def bulk_camera_name(manufacturer: str, index: int) -> str:
    base = re.sub(r"[^a-z0-9]", "_", (manufacturer or "").lower()) or "camera"
    return f"{base}_{index + 1}"


def bulk_add(
    store: CameraStore,
    devices: Iterable[DiscoveredDevice],
    username: str = BULK_DEFAULT_USERNAME,
    password: str = "",
    negotiator: Callable[..., NegotiationResult] = negotiate,
) -> list[BulkOutcome]:
    """Negotiate and add devices one at a time; a failing device never stops the rest."""
    outcomes: list[BulkOutcome] = []
    for index, device in enumerate(devices):
        name = bulk_camera_name(device.manufacturer, index)
        try:
            result = negotiator(device.ip, device.onvif_url, username, password)
        except TransportError as exc:
            outcomes.append(BulkOutcome(device=device, ok=False, name=name, message=str(exc)))
            continue

        main = result.streams.main_stream
        if not main:
            outcomes.append(BulkOutcome(device=device, ok=False, name=name, message="No valid stream URL found"))
            continue
        try:
            draft = draft_from_negotiation(
                name, result, record_enabled=True, retain_days=BULK_RETAIN_DAYS, retain_mode="motion"
            )
            store.add(draft, unique_rtsp=True)
        except (SimpleUIError, ValueError) as exc:
            outcomes.append(BulkOutcome(device=device, ok=False, name=name, message=str(exc)))
            continue
        outcomes.append(BulkOutcome(device=device, ok=True, name=name, message=f"Added camera {name}"))

    added = sum(1 for o in outcomes if o.ok)
    logger.info("Bulk add finished: %d of %d cameras added", added, len(outcomes))
    return outcomes


def _stream_uri(media: Any, profile: Any) -> str:
    response = media.GetStreamUri(
        {
            "StreamSetup": {"Stream": "RTP-Unicast", "Transport": {"Protocol": "RTSP"}},
            "ProfileToken": profile.token,
        }
    )
    return str(getattr(response, "Uri", "") or "")
