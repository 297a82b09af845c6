from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import yaml

from frigate_simpleui.config.defaults import (
    DEFAULT_AVAILABLE_LABELS,
    DEFAULT_DETECTOR_DEVICE,
    DEFAULT_DETECT_FPS,
    DEFAULT_DETECT_HEIGHT,
    DEFAULT_DETECT_WIDTH,
    DEFAULT_MOTION_CONTOUR_AREA,
    DEFAULT_MOTION_IMPROVE_CONTRAST,
    DEFAULT_MOTION_THRESHOLD,
    DEFAULT_OBJECTS,
    DEFAULT_RECORD_ENABLED,
    DEFAULT_RETAIN_DAYS,
    DEFAULT_RETAIN_MODE,
    DEFAULT_SNAPSHOT_RETAIN_DAYS,
    DETECTOR_KEY,
    DETECTOR_TYPE,
    MISSING_STREAM_PLACEHOLDER,
)
from frigate_simpleui.config.schema import CameraRecord, DetectorConfig
from frigate_simpleui.errors import ParseError, TransportError
from frigate_simpleui.util.logging import get_logger
from frigate_simpleui.util.security import CAMERA_NAME_RE, sanitize_rtsp_url

from .client import FrigateClient, SaveResult
from .store import CameraStore
from .streams import AAC, H264, OPUS, StreamSource, is_opus_restream
from .synthesizer import ConfigSynthesizer

logger = get_logger(__name__)

RETAIN_MODES = {"motion", "active_objects", "all"}
TRUE_STRINGS = {"true", "yes", "on", "1"}
FALSE_STRINGS = {"false", "no", "off", "0"}


@dataclass
class LoadResult:
    ok: bool
    message: str
    cameras: int = 0


class ConfigReconciler:
    """Keeps the in-memory store in step with Frigate's config file.

    ``load`` is a hard resync: the remote document wins and unsaved local
    edits are dropped. ``save`` renders the store and pushes it back.
    """

    def __init__(self, store: CameraStore, client: FrigateClient, synthesizer: ConfigSynthesizer) -> None:
        self.store = store
        self.client = client
        self.synthesizer = synthesizer

    def load(self) -> LoadResult:
        logger.info("Loading raw config from %s", self.client.base_url)
        try:
            document = parse_document(self.client.get_raw_config())
        except (TransportError, ParseError) as exc:
            logger.error("Error loading raw config: %s", exc)
            self.store.clear()
            return LoadResult(ok=False, message=str(exc))

        labels = self.fetch_available_labels()
        detector = extract_detector(document, self.store.get_detector_config())
        cameras = extract_cameras(document)
        self.store.replace_all(cameras, detector=detector, labels=labels)
        logger.info("Extracted %d cameras from the raw config", len(cameras))
        return LoadResult(ok=True, message=f"Loaded {len(cameras)} cameras", cameras=len(cameras))

    def fetch_available_labels(self) -> list[str]:
        try:
            labels = extract_labels(self.client.get_filtered_config())
        except (TransportError, ParseError) as exc:
            logger.warning("Could not fetch detector labels (%s), using default objects", exc)
            return list(DEFAULT_AVAILABLE_LABELS)
        if not labels:
            logger.warning("Could not find labelmap in config, using default objects")
            return list(DEFAULT_AVAILABLE_LABELS)
        logger.info("Found %d detectable objects in labelmap", len(labels))
        return labels

    def save(self, restart: bool = False) -> SaveResult:
        text = self.synthesizer.render()
        try:
            return self.client.save_config(text, restart=restart)
        except TransportError as exc:
            logger.error("Error saving config: %s", exc)
            return SaveResult(ok=False, message=str(exc))

    def push_raw(self, yaml_text: str) -> SaveResult:
        """Send a hand-edited document to Frigate, then resync from it."""
        try:
            parse_document(yaml_text)
        except ParseError as exc:
            return SaveResult(ok=False, message=str(exc))
        try:
            result = self.client.save_config(yaml_text, restart=False)
        except TransportError as exc:
            return SaveResult(ok=False, message=str(exc))
        if result.ok:
            self.load()
        return result


def parse_document(text: str) -> dict[str, Any]:
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ParseError(f"Frigate config is not valid YAML: {exc}") from exc
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ParseError("Frigate config is not a mapping")
    return document


def extract_cameras(document: dict[str, Any]) -> list[CameraRecord]:
    cameras = document.get("cameras")
    if not isinstance(cameras, dict):
        logger.info("No cameras found in raw config")
        return []

    table = _go2rtc_streams(document)
    records: list[CameraRecord] = []
    seen: set[str] = set()
    for raw_name, section in cameras.items():
        name = str(raw_name)
        # names are unique case-insensitively; the first spelling wins
        if name.lower() in seen:
            logger.warning("Skipping camera %s: another camera already uses this name", name)
            continue
        seen.add(name.lower())
        if not CAMERA_NAME_RE.fullmatch(name):
            logger.warning("Camera %s has a name this UI cannot edit", name)
        section = section if isinstance(section, dict) else {}
        try:
            records.append(extract_camera(name, section, table.get(name, [])))
        except ValueError as exc:
            logger.warning("Skipping camera %s: %s", name, exc)
    return records


def extract_camera(name: str, section: dict[str, Any], entries: list[str]) -> CameraRecord:
    rtsp_url, sub_stream_url, custom_url = resolve_streams(name, section, entries)
    sources = [StreamSource.parse(entry) for entry in entries]

    detect = _section(section, "detect")
    objects = _section(section, "objects")
    record = _section(section, "record")
    retain = _section(record, "retain")
    motion = _section(section, "motion")
    snapshots = _section(section, "snapshots")
    snapshot_retain = _section(snapshots, "retain")

    retain_mode = str(retain.get("mode") or DEFAULT_RETAIN_MODE)
    if retain_mode not in RETAIN_MODES:
        logger.warning("Camera %s has unknown retain mode %s", name, retain_mode)
        retain_mode = DEFAULT_RETAIN_MODE

    track = objects.get("track")
    camera = CameraRecord(
        name=name,
        rtsp_url=rtsp_url,
        sub_stream_url=sub_stream_url,
        custom_url=custom_url,
        force_h264=any(s.has(H264) for s in sources),
        enable_aac=any(s.has(AAC) for s in sources),
        enable_opus=any(s.has(OPUS) for s in sources),
        detect_width=_positive_int(detect.get("width"), DEFAULT_DETECT_WIDTH),
        detect_height=_positive_int(detect.get("height"), DEFAULT_DETECT_HEIGHT),
        detect_fps=_positive_int(detect.get("fps"), DEFAULT_DETECT_FPS),
        objects=[str(o) for o in track] if isinstance(track, list) else list(DEFAULT_OBJECTS),
        record_enabled=_bool(record.get("enabled"), DEFAULT_RECORD_ENABLED),
        retain_days=_int(retain.get("days"), DEFAULT_RETAIN_DAYS),
        retain_mode=retain_mode,
        motion_threshold=_int(motion.get("threshold"), DEFAULT_MOTION_THRESHOLD),
        motion_contour_area=_int(motion.get("contour_area"), DEFAULT_MOTION_CONTOUR_AREA),
        motion_improve_contrast=_bool(motion.get("improve_contrast"), DEFAULT_MOTION_IMPROVE_CONTRAST),
        snapshots_enabled=_bool(snapshots.get("enabled"), True),
        snapshots_timestamp=_bool(snapshots.get("timestamp"), True),
        snapshots_bounding_box=_bool(snapshots.get("bounding_box"), True),
        snapshots_retain_days=_int(snapshot_retain.get("default"), DEFAULT_SNAPSHOT_RETAIN_DAYS),
    )
    logger.info(
        "Camera %s: stream=%s h264=%s aac=%s opus=%s",
        name,
        sanitize_rtsp_url(camera.rtsp_url) if camera.rtsp_url else "custom",
        camera.force_h264,
        camera.enable_aac,
        camera.enable_opus,
    )
    return camera


def resolve_streams(name: str, section: dict[str, Any], entries: list[str]) -> tuple[str, str, str]:
    """Returns ``(rtsp_url, sub_stream_url, custom_url)``; exactly one of rtsp/custom is set."""
    pairs = [(entry, StreamSource.parse(entry)) for entry in entries]
    pairs = [(entry, source) for entry, source in pairs if not is_opus_restream(source, name)]

    if pairs:
        first_entry, first = pairs[0]
        if not first.is_rtsp:
            logger.info("Custom URL detected for camera %s", name)
            return "", "", first_entry
        sub_stream_url = ""
        if len(pairs) > 1 and pairs[1][1].is_rtsp:
            sub_stream_url = pairs[1][1].target
        return first.target, sub_stream_url, ""

    inputs = _section(section, "ffmpeg").get("inputs")
    if isinstance(inputs, list) and inputs and isinstance(inputs[0], dict) and inputs[0].get("path"):
        return str(inputs[0]["path"]), "", ""

    logger.warning("Camera %s has no stream URL, using placeholder", name)
    return MISSING_STREAM_PLACEHOLDER, "", ""


def extract_labels(filtered: dict[str, Any]) -> list[str]:
    labelmap: Any = None
    detectors = filtered.get("detectors")
    if isinstance(detectors, dict):
        for detector in detectors.values():
            model = detector.get("model") if isinstance(detector, dict) else None
            if isinstance(model, dict) and model.get("labelmap"):
                labelmap = model["labelmap"]
                break

    model = filtered.get("model")
    if labelmap is None and isinstance(model, dict):
        labelmap = model.get("merged_labelmap") or model.get("labelmap")

    if isinstance(labelmap, dict):
        values = labelmap.values()
    elif isinstance(labelmap, list):
        values = labelmap
    else:
        return []
    return list(dict.fromkeys(str(v) for v in values if v))


def extract_detector(document: dict[str, Any], previous: DetectorConfig) -> DetectorConfig:
    detectors = document.get("detectors")
    section: Any = None
    if isinstance(detectors, dict):
        section = detectors.get(DETECTOR_KEY)
        if not isinstance(section, dict):
            section = next(
                (d for d in detectors.values() if isinstance(d, dict) and d.get("type") == DETECTOR_TYPE),
                None,
            )
    if isinstance(section, dict):
        device = _detector_device(section.get("device"), previous.device)
        logger.info("Loaded detector configuration: enabled=True device=%s", device)
        return DetectorConfig(enabled=True, device=device)
    logger.info("Coral detector not found in config, setting to disabled")
    return DetectorConfig(enabled=False, device=previous.device)


def _go2rtc_streams(document: dict[str, Any]) -> dict[str, list[str]]:
    streams = _section(_section(document, "go2rtc"), "streams")
    table: dict[str, list[str]] = {}
    for name, value in streams.items():
        if isinstance(value, str):
            table[str(name)] = [value]
        elif isinstance(value, list):
            table[str(name)] = [str(v) for v in value if isinstance(v, str)]
    return table


def _detector_device(value: Any, fallback: str) -> str:
    if value is None:
        return DEFAULT_DETECTOR_DEVICE
    text = str(value).lower()
    for device in ("pci", "usb"):
        if text.startswith(device):
            return device
    logger.warning("Unknown detector device %s, keeping %s", value, fallback)
    return fallback


def _section(parent: dict[str, Any], key: str) -> dict[str, Any]:
    value = parent.get(key)
    return value if isinstance(value, dict) else {}


def _int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _positive_int(value: Any, default: int) -> int:
    number = _int(value, default)
    return number if number > 0 else default


def _bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    return default
