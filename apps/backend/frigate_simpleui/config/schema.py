from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from .defaults import (
    APP_VERSION,
    DEFAULT_BIND,
    DEFAULT_DETECT_FPS,
    DEFAULT_DETECT_HEIGHT,
    DEFAULT_DETECT_WIDTH,
    DEFAULT_DETECTOR_DEVICE,
    DEFAULT_FRIGATE_URL,
    DEFAULT_GO2RTC_URL,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MOTION_CONTOUR_AREA,
    DEFAULT_MOTION_IMPROVE_CONTRAST,
    DEFAULT_MOTION_THRESHOLD,
    DEFAULT_MQTT_HOST,
    DEFAULT_MQTT_PASSWORD,
    DEFAULT_MQTT_PORT,
    DEFAULT_MQTT_USER,
    DEFAULT_OBJECTS,
    DEFAULT_PORT,
    DEFAULT_RECORD_ENABLED,
    DEFAULT_RETAIN_DAYS,
    DEFAULT_RETAIN_MODE,
    DEFAULT_SNAPSHOT_RETAIN_DAYS,
    DEFAULT_WEBRTC_CANDIDATES,
    DEFAULT_WEBRTC_LISTEN,
    HTTP_TIMEOUT_SECONDS,
    MAX_RETAIN_DAYS,
    MIN_RETAIN_DAYS,
)

RetainMode = Literal["motion", "active_objects", "all"]
DetectorDevice = Literal["pci", "usb"]


class CameraRecord(BaseModel):
    name: str
    rtsp_url: str = ""
    sub_stream_url: str = ""
    custom_url: str = ""
    force_h264: bool = False
    enable_aac: bool = False
    enable_opus: bool = False
    detect_width: int = Field(default=DEFAULT_DETECT_WIDTH, ge=1)
    detect_height: int = Field(default=DEFAULT_DETECT_HEIGHT, ge=1)
    detect_fps: int = Field(default=DEFAULT_DETECT_FPS, ge=1)
    objects: list[str] = Field(default_factory=lambda: list(DEFAULT_OBJECTS))
    record_enabled: bool = DEFAULT_RECORD_ENABLED
    retain_days: int = DEFAULT_RETAIN_DAYS
    retain_mode: RetainMode = DEFAULT_RETAIN_MODE
    motion_threshold: int = DEFAULT_MOTION_THRESHOLD
    motion_contour_area: int = DEFAULT_MOTION_CONTOUR_AREA
    motion_improve_contrast: bool = DEFAULT_MOTION_IMPROVE_CONTRAST
    snapshots_enabled: bool = True
    snapshots_timestamp: bool = True
    snapshots_bounding_box: bool = True
    snapshots_retain_days: int = DEFAULT_SNAPSHOT_RETAIN_DAYS

    @field_validator("retain_days")
    @classmethod
    def clamp_retain_days(cls, value: int) -> int:
        return min(MAX_RETAIN_DAYS, max(MIN_RETAIN_DAYS, value))

    @field_validator("objects")
    @classmethod
    def unique_objects(cls, value: list[str]) -> list[str]:
        cleaned = list(dict.fromkeys(str(v).strip() for v in value if str(v).strip()))
        return cleaned or list(DEFAULT_OBJECTS)


class DetectorConfig(BaseModel):
    enabled: bool = True
    device: DetectorDevice = DEFAULT_DETECTOR_DEVICE


class FrigateEndpoint(BaseModel):
    url: str = DEFAULT_FRIGATE_URL
    timeout_seconds: float = HTTP_TIMEOUT_SECONDS

    @field_validator("url")
    @classmethod
    def url_not_empty(cls, value: str) -> str:
        if not value.strip():
            msg = "frigate url cannot be empty"
            raise ValueError(msg)
        return value.rstrip("/")


class Go2RtcEndpoint(BaseModel):
    url: str = DEFAULT_GO2RTC_URL
    timeout_seconds: float = 5.0

    @field_validator("url")
    @classmethod
    def strip_slash(cls, value: str) -> str:
        return value.rstrip("/")


class MqttSettings(BaseModel):
    enabled: bool = True
    host: str = DEFAULT_MQTT_HOST
    port: int = DEFAULT_MQTT_PORT
    topic_prefix: str = "frigate"
    client_id: str = "frigate"
    user: str = DEFAULT_MQTT_USER
    password: str = DEFAULT_MQTT_PASSWORD


class WebRtcSettings(BaseModel):
    candidates: list[str] = Field(default_factory=lambda: list(DEFAULT_WEBRTC_CANDIDATES))
    listen: str = DEFAULT_WEBRTC_LISTEN


class AppSettings(BaseModel):
    version: str = APP_VERSION
    bind: str = DEFAULT_BIND
    port: int = DEFAULT_PORT
    log_level: str = DEFAULT_LOG_LEVEL
    log_dir: str | None = None
    frigate: FrigateEndpoint = Field(default_factory=FrigateEndpoint)
    go2rtc: Go2RtcEndpoint = Field(default_factory=Go2RtcEndpoint)
    mqtt: MqttSettings = Field(default_factory=MqttSettings)
    webrtc: WebRtcSettings = Field(default_factory=WebRtcSettings)
    detector_device: DetectorDevice = DEFAULT_DETECTOR_DEVICE

    @field_validator("port")
    @classmethod
    def valid_port(cls, value: int) -> int:
        if not 0 < value < 65536:
            msg = "port must be between 1 and 65535"
            raise ValueError(msg)
        return value
