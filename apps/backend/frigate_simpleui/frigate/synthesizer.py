from __future__ import annotations

from typing import Any

import yaml

from frigate_simpleui.config.defaults import (
    CONFIG_FORMAT_VERSION,
    DETECTOR_KEY,
    DETECTOR_TYPE,
    MISSING_STREAM_PLACEHOLDER,
    RESTREAM_INPUT_TEMPLATE,
)
from frigate_simpleui.config.schema import AppSettings, CameraRecord
from frigate_simpleui.util.logging import get_logger
from frigate_simpleui.util.security import sanitize_rtsp_url

from .store import CameraStore, StoreSnapshot
from .streams import camera_source, opus_restream

logger = get_logger(__name__)

SECTION_BANNERS = {
    "mqtt": "MQTT configuration",
    "go2rtc": "Use go2rtc as media source",
    "detectors": "Detector settings",
    "ffmpeg": "FFMPEG configuration",
    "cameras": "Camera configurations",
}


class ConfigDumper(yaml.SafeDumper):
    """Indents block sequences under their parent key."""

    def increase_indent(self, flow: bool = False, indentless: bool = False) -> None:
        return super().increase_indent(flow, False)


class ConfigSynthesizer:
    """Projects the current store contents into a Frigate config document."""

    def __init__(self, store: CameraStore, settings: AppSettings) -> None:
        self.store = store
        self.settings = settings

    def build(self) -> dict[str, Any]:
        return build_document(self.store.snapshot(), self.settings)

    def render(self) -> str:
        return render_document(self.build())


def build_document(snapshot: StoreSnapshot, settings: AppSettings) -> dict[str, Any]:
    document: dict[str, Any] = {
        "mqtt": settings.mqtt.model_dump(),
        "go2rtc": {
            "streams": {},
            "webrtc": {
                "candidates": list(settings.webrtc.candidates),
                "listen": settings.webrtc.listen,
            },
        },
    }
    if snapshot.detector.enabled:
        document["detectors"] = {DETECTOR_KEY: {"type": DETECTOR_TYPE, "device": snapshot.detector.device}}
    document["ffmpeg"] = {
        "input_args": "preset-rtsp-restream",
        "output_args": {"record": "preset-record-generic-audio-copy"},
    }
    document["cameras"] = {}

    for camera in snapshot.cameras:
        document["go2rtc"]["streams"][camera.name] = stream_entries(camera)
        document["cameras"][camera.name] = camera_section(camera)
    return document


def stream_entries(camera: CameraRecord) -> list[str]:
    """go2rtc entries in order: main source, OPUS restream, sub stream."""
    if camera.custom_url:
        logger.info("Using custom URL for camera %s", camera.name)
        return [camera.custom_url]
    if not camera.rtsp_url:
        logger.warning("Camera %s has no RTSP URL", camera.name)
        return [MISSING_STREAM_PLACEHOLDER]

    entries = [camera_source(camera.rtsp_url, camera.force_h264, camera.enable_aac).render()]
    if camera.enable_opus:
        entries.append(opus_restream(camera.name).render())
    if camera.sub_stream_url:
        entries.append(camera.sub_stream_url)
    logger.debug("Camera %s streams: %s", camera.name, [sanitize_rtsp_url(e) for e in entries])
    return entries


def camera_section(camera: CameraRecord) -> dict[str, Any]:
    return {
        "enabled": True,
        "ffmpeg": {
            "inputs": [
                {
                    "path": RESTREAM_INPUT_TEMPLATE.format(name=camera.name),
                    "roles": ["record", "detect"],
                }
            ]
        },
        "detect": {
            "fps": camera.detect_fps,
            "width": camera.detect_width,
            "height": camera.detect_height,
        },
        "objects": {"track": list(camera.objects)},
        "record": {
            "enabled": camera.record_enabled,
            "retain": {"days": camera.retain_days, "mode": camera.retain_mode},
        },
        "motion": {
            "threshold": camera.motion_threshold,
            "contour_area": camera.motion_contour_area,
            "improve_contrast": camera.motion_improve_contrast,
        },
        "snapshots": {
            "enabled": camera.snapshots_enabled,
            "timestamp": camera.snapshots_timestamp,
            "bounding_box": camera.snapshots_bounding_box,
            "retain": {"default": camera.snapshots_retain_days},
        },
    }


def render_document(document: dict[str, Any]) -> str:
    """Dump each top-level section under its banner, then the version marker."""
    blocks = []
    for key, value in document.items():
        text = yaml.dump(
            {key: value},
            Dumper=ConfigDumper,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
            width=float("inf"),
        )
        banner = SECTION_BANNERS.get(key)
        blocks.append(f"# {banner}\n{text}" if banner else text)
    return "\n".join(blocks) + f"\nversion: {CONFIG_FORMAT_VERSION}\n"
