from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from frigate_simpleui.config.defaults import DEFAULT_AVAILABLE_LABELS
from frigate_simpleui.config.schema import CameraRecord, DetectorConfig
from frigate_simpleui.errors import StateConflictError, ValidationError
from frigate_simpleui.util.logging import get_logger
from frigate_simpleui.util.security import validate_camera_name, validate_rtsp_url

logger = get_logger(__name__)

DUPLICATE_RTSP_MESSAGE = "Camera with this RTSP URL already exists"


@dataclass(frozen=True)
class StoreSnapshot:
    cameras: tuple[CameraRecord, ...]
    detector: DetectorConfig


class CameraStore:
    """In-memory camera records plus the global detector settings.

    Every public method takes the store lock, so a reader never sees a
    half-replaced record set. Camera names compare case-insensitively.
    Records handed out are copies; mutate the store through its methods.
    """

    def __init__(self, detector: DetectorConfig | None = None) -> None:
        self._lock = threading.RLock()
        self._cameras: list[CameraRecord] = []
        self._detector = detector or DetectorConfig()
        self._labels: list[str] = list(DEFAULT_AVAILABLE_LABELS)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cameras)

    def replace_all(
        self,
        cameras: Iterable[CameraRecord],
        detector: DetectorConfig | None = None,
        labels: Iterable[str] | None = None,
    ) -> None:
        fresh = [camera.model_copy(deep=True) for camera in cameras]
        with self._lock:
            self._cameras = fresh
            if detector is not None:
                self._detector = detector.model_copy()
            if labels is not None:
                self._labels = list(labels)

    def clear(self) -> None:
        with self._lock:
            self._cameras = []

    def list_all(self) -> list[CameraRecord]:
        with self._lock:
            return [camera.model_copy(deep=True) for camera in self._cameras]

    def find_by_name(self, name: str) -> CameraRecord | None:
        with self._lock:
            idx = self._index_of(name)
            return self._cameras[idx].model_copy(deep=True) if idx >= 0 else None

    def find_by_rtsp_url(self, rtsp_url: str, exclude: str = "") -> CameraRecord | None:
        if not rtsp_url:
            return None
        with self._lock:
            for camera in self._cameras:
                if camera.rtsp_url == rtsp_url and camera.name.lower() != exclude.lower():
                    return camera.model_copy(deep=True)
        return None

    def upsert(self, record: CameraRecord | Mapping[str, Any], unique_rtsp: bool = False) -> CameraRecord:
        """Merge by name; with ``unique_rtsp`` another camera on the same RTSP URL is a conflict."""
        changes = _changes_of(record)
        name = validate_camera_name(str(changes.get("name", "")))
        with self._lock:
            idx = self._index_of(name)
            if idx >= 0:
                existing = self._cameras[idx]
                merged = existing.model_dump()
                merged.update(changes)
                merged["name"] = existing.name
                if changes.get("rtsp_url") and "custom_url" not in changes:
                    merged["custom_url"] = ""
            else:
                merged = dict(changes)
            camera = _normalize(merged)
            duplicate = self.find_by_rtsp_url(camera.rtsp_url, exclude=camera.name) if unique_rtsp else None
            if duplicate is not None and changes.get("rtsp_url"):
                raise StateConflictError(DUPLICATE_RTSP_MESSAGE)
            if idx >= 0:
                self._cameras[idx] = camera
                logger.info(
                    "Updated camera %s (h264=%s aac=%s opus=%s)",
                    camera.name, camera.force_h264, camera.enable_aac, camera.enable_opus,
                )
            else:
                self._cameras.append(camera)
                logger.info(
                    "Added camera %s (h264=%s aac=%s opus=%s)",
                    camera.name, camera.force_h264, camera.enable_aac, camera.enable_opus,
                )
            return camera.model_copy(deep=True)

    def add(self, record: CameraRecord | Mapping[str, Any], unique_rtsp: bool = False) -> CameraRecord:
        """Like :meth:`upsert` but refuses to touch an existing camera."""
        changes = _changes_of(record)
        name = validate_camera_name(str(changes.get("name", "")))
        with self._lock:
            if self._index_of(name) >= 0:
                raise StateConflictError(f"Camera {name} already exists")
            return self.upsert(changes, unique_rtsp=unique_rtsp)

    def remove(self, name: str) -> bool:
        with self._lock:
            idx = self._index_of(name)
            if idx < 0:
                logger.warning("Camera %s not found", name)
                return False
            removed = self._cameras.pop(idx)
        logger.info("Removed camera %s", removed.name)
        return True

    def get_detector_config(self) -> DetectorConfig:
        with self._lock:
            return self._detector.model_copy()

    def set_detector_config(self, config: DetectorConfig | Mapping[str, Any]) -> DetectorConfig:
        with self._lock:
            current = self._detector.model_dump()
            current.update(config.model_dump() if isinstance(config, DetectorConfig) else dict(config))
            try:
                self._detector = DetectorConfig.model_validate(current)
            except ValueError as exc:
                raise ValidationError("Detector device must be either pci or usb") from exc
            logger.info("Detector config: enabled=%s device=%s", self._detector.enabled, self._detector.device)
            return self._detector.model_copy()

    def get_available_labels(self) -> list[str]:
        with self._lock:
            return list(self._labels)

    def snapshot(self) -> StoreSnapshot:
        with self._lock:
            return StoreSnapshot(
                cameras=tuple(camera.model_copy(deep=True) for camera in self._cameras),
                detector=self._detector.model_copy(),
            )

    def _index_of(self, name: str) -> int:
        wanted = str(name or "").lower()
        for idx, camera in enumerate(self._cameras):
            if camera.name.lower() == wanted:
                return idx
        return -1


def _changes_of(record: CameraRecord | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(record, CameraRecord):
        changes = record.model_dump(exclude_unset=True)
        changes["name"] = record.name
        return changes
    return dict(record)


def _normalize(values: dict[str, Any]) -> CameraRecord:
    try:
        camera = CameraRecord.model_validate(values)
    except ValueError as exc:
        raise ValidationError(f"Invalid camera settings: {exc}") from exc

    if camera.custom_url:
        return camera.model_copy(update={"rtsp_url": "", "sub_stream_url": ""})
    if not camera.rtsp_url:
        raise ValidationError("RTSP URL is required when not using a custom URL")
    validate_rtsp_url(camera.rtsp_url)
    if camera.sub_stream_url:
        validate_rtsp_url(camera.sub_stream_url)
    return camera
