from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from frigate_simpleui.util.logging import get_logger

from .schema import AppSettings

logger = get_logger(__name__)

CONFIG_PATH_ENV = "SIMPLEUI_CONFIG"


def load_settings(
    config_path: str | None = None,
    env: Mapping[str, str] | None = None,
    **overrides: Any,
) -> AppSettings:
    """Defaults < JSON settings file < environment < explicit overrides (CLI flags)."""
    environ = os.environ if env is None else env
    path = config_path or environ.get(CONFIG_PATH_ENV)
    raw = _read_json(Path(path).expanduser(), default={}) if path else {}
    merged = apply_env(raw, environ)
    for key, value in overrides.items():
        if value is None:
            continue
        if key == "frigate_url":
            merged.setdefault("frigate", {})["url"] = value
        else:
            merged[key] = value
    return AppSettings.model_validate(merged)


def apply_env(raw: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    out = dict(raw)
    frigate = dict(out.get("frigate") or {})
    go2rtc = dict(out.get("go2rtc") or {})
    mqtt = dict(out.get("mqtt") or {})
    webrtc = dict(out.get("webrtc") or {})

    if env.get("FRIGATE_URL"):
        frigate["url"] = env["FRIGATE_URL"]
    if env.get("GO2RTC_URL"):
        go2rtc["url"] = env["GO2RTC_URL"]
    if env.get("MQTT_HOST"):
        mqtt["host"] = env["MQTT_HOST"]
    if env.get("MQTT_PORT"):
        try:
            mqtt["port"] = int(env["MQTT_PORT"])
        except ValueError:
            logger.warning("Ignoring non-numeric MQTT_PORT=%s", env["MQTT_PORT"])
    if env.get("MQTT_USER"):
        mqtt["user"] = env["MQTT_USER"]
    if env.get("MQTT_PASSWORD"):
        mqtt["password"] = env["MQTT_PASSWORD"]
    if env.get("WEBRTC_CANDIDATES"):
        webrtc["candidates"] = [c.strip() for c in env["WEBRTC_CANDIDATES"].split(",") if c.strip()]
    if env.get("WEBRTC_LISTEN"):
        webrtc["listen"] = env["WEBRTC_LISTEN"]
    if env.get("DETECTOR_DEVICE"):
        out["detector_device"] = env["DETECTOR_DEVICE"]
    if env.get("LOG_LEVEL"):
        out["log_level"] = env["LOG_LEVEL"]

    out["frigate"] = frigate
    out["go2rtc"] = go2rtc
    out["mqtt"] = mqtt
    out["webrtc"] = webrtc
    return out


def _read_json(path: Path, default: dict[str, Any]) -> dict[str, Any]:
    if not path.exists():
        return default
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        logger.warning("Settings file %s is not valid JSON, using defaults", path)
        return default
    return payload if isinstance(payload, dict) else default
