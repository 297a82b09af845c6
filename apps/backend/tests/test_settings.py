from __future__ import annotations

import json

import pytest

from frigate_simpleui.config.settings import load_settings


def test_defaults_without_file_or_env() -> None:
    settings = load_settings(env={})
    assert settings.port == 3001
    assert settings.frigate.url == "http://127.0.0.1:5000"
    assert settings.go2rtc.url == "http://127.0.0.1:1984"
    assert settings.detector_device == "pci"


def test_env_overrides_file_and_flags_override_env(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps({"port": 4000, "frigate": {"url": "http://file:5000"}, "mqtt": {"host": "file-broker"}}),
        encoding="utf-8",
    )
    env = {
        "FRIGATE_URL": "http://env:5000/",
        "MQTT_PORT": "1884",
        "WEBRTC_CANDIDATES": "10.0.0.3:8555, stun:8555",
        "DETECTOR_DEVICE": "usb",
    }

    settings = load_settings(str(path), env=env, port=5001, bind=None)

    assert settings.port == 5001
    assert settings.frigate.url == "http://env:5000"
    assert settings.mqtt.host == "file-broker"
    assert settings.mqtt.port == 1884
    assert settings.webrtc.candidates == ["10.0.0.3:8555", "stun:8555"]
    assert settings.detector_device == "usb"

    assert load_settings(str(path), env=env, frigate_url="http://flag:5000").frigate.url == "http://flag:5000"


def test_settings_file_from_environment(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"bind": "0.0.0.0"}), encoding="utf-8")
    assert load_settings(env={"SIMPLEUI_CONFIG": str(path)}).bind == "0.0.0.0"


def test_unreadable_settings_file_falls_back_to_defaults(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_settings(str(path), env={}).port == 3001


def test_non_numeric_mqtt_port_is_ignored() -> None:
    assert load_settings(env={"MQTT_PORT": "abc"}).mqtt.port == 1883


def test_invalid_port_rejected() -> None:
    with pytest.raises(ValueError):
        load_settings(env={}, port=70000)
