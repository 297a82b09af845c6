from __future__ import annotations

import pytest

from fake_frigate import FakeFrigate, build_state
from frigate_simpleui.config.defaults import (
    DEFAULT_AVAILABLE_LABELS,
    DEFAULT_DETECT_FPS,
    DEFAULT_DETECT_WIDTH,
    MISSING_STREAM_PLACEHOLDER,
)
from frigate_simpleui.config.schema import DetectorConfig
from frigate_simpleui.errors import ParseError
from frigate_simpleui.frigate.reconciler import (
    extract_cameras,
    extract_detector,
    extract_labels,
    parse_document,
)


def test_load_populates_store_from_raw_config() -> None:
    state = build_state(FakeFrigate())

    result = state.reconciler.load()

    assert result.ok is True
    assert result.cameras == 3
    front = state.store.find_by_name("front_door")
    assert front is not None
    assert front.rtsp_url == "rtsp://u:p@10.0.0.5/stream"
    assert front.sub_stream_url == "rtsp://u:p@10.0.0.5/sub"
    assert front.force_h264 is True
    assert front.enable_aac is False
    assert front.enable_opus is True
    assert (front.detect_width, front.detect_height, front.detect_fps) == (1280, 720, 5)
    assert front.objects == ["person", "dog"]
    assert front.record_enabled is True
    assert front.retain_days == 10
    assert front.retain_mode == "all"
    assert front.motion_improve_contrast is False
    assert front.snapshots_enabled is False
    assert front.snapshots_bounding_box is False
    assert front.snapshots_retain_days == 14


def test_load_applies_defaults_for_sparse_camera() -> None:
    state = build_state(FakeFrigate())
    state.reconciler.load()

    garage = state.store.find_by_name("garage")
    assert garage is not None
    assert garage.rtsp_url == "rtsp://admin:pw@10.0.0.6/main"
    assert garage.sub_stream_url == ""
    assert garage.detect_fps == 3
    assert garage.objects == ["person", "car"]
    assert garage.record_enabled is False
    assert garage.retain_days == 3
    assert garage.motion_threshold == 30
    assert garage.snapshots_enabled is True
    assert garage.snapshots_retain_days == 60


def test_load_detects_custom_url() -> None:
    state = build_state(FakeFrigate())
    state.reconciler.load()

    doorbell = state.store.find_by_name("doorbell")
    assert doorbell is not None
    assert doorbell.custom_url == "exec:ffmpeg -i /dev/video0 -f rtsp {output}"
    assert doorbell.rtsp_url == ""
    assert doorbell.sub_stream_url == ""


def test_load_reads_labels_and_detector() -> None:
    state = build_state(FakeFrigate())
    state.reconciler.load()

    assert state.store.get_available_labels() == ["person", "bicycle", "car", "bird", "cat", "dog"]
    assert state.store.get_detector_config() == DetectorConfig(enabled=True, device="usb")


def test_load_failure_clears_store() -> None:
    frigate = FakeFrigate()
    state = build_state(frigate)
    assert state.reconciler.load().ok is True
    assert len(state.store) == 3

    frigate.fail = True
    result = state.reconciler.load()

    assert result.ok is False
    assert "Cannot reach Frigate" in result.message
    assert len(state.store) == 0


def test_load_rejects_malformed_yaml() -> None:
    state = build_state(FakeFrigate(raw_config="cameras: [unclosed"))

    result = state.reconciler.load()

    assert result.ok is False
    assert len(state.store) == 0


def test_load_falls_back_to_default_labels_when_labelmap_missing() -> None:
    state = build_state(FakeFrigate(filtered_config={"cameras": {}}))
    state.reconciler.load()
    assert state.store.get_available_labels() == DEFAULT_AVAILABLE_LABELS


def test_load_render_load_round_trip_preserves_records() -> None:
    frigate = FakeFrigate()
    state = build_state(frigate)
    state.reconciler.load()
    before = state.store.list_all()

    assert state.reconciler.save().ok is True
    assert state.reconciler.load().ok is True

    assert state.store.list_all() == before
    assert frigate.saved[0][0] == "saveonly"


def test_save_and_restart_uses_restart_option() -> None:
    frigate = FakeFrigate()
    state = build_state(frigate)
    state.reconciler.load()

    result = state.reconciler.save(restart=True)

    assert result.ok is True
    assert frigate.saved[-1][0] == "restart"
    assert "version: 0.14" in frigate.saved[-1][1]


def test_save_reports_rejection() -> None:
    frigate = FakeFrigate(save_response={"success": False, "message": "Invalid config"})
    state = build_state(frigate)

    result = state.reconciler.save()

    assert result.ok is False
    assert result.message == "Invalid config"


def test_push_raw_saves_and_reloads() -> None:
    frigate = FakeFrigate(raw_config="cameras: {}\n")
    state = build_state(frigate)
    state.reconciler.load()
    assert len(state.store) == 0

    custom = "go2rtc:\n  streams:\n    porch: [rtsp://10.0.0.9/live]\ncameras:\n  porch: {}\n"
    result = state.reconciler.push_raw(custom)

    assert result.ok is True
    assert frigate.saved == [("saveonly", custom)]
    porch = state.store.find_by_name("porch")
    assert porch is not None
    assert porch.rtsp_url == "rtsp://10.0.0.9/live"


def test_extract_cameras_uses_ffmpeg_input_when_go2rtc_missing() -> None:
    document = {"cameras": {"yard": {"ffmpeg": {"inputs": [{"path": "rtsp://10.0.0.7/h264"}]}}}}
    cameras = extract_cameras(document)
    assert cameras[0].rtsp_url == "rtsp://10.0.0.7/h264"


def test_extract_cameras_uses_placeholder_when_no_stream() -> None:
    cameras = extract_cameras({"cameras": {"yard": {}}})
    assert cameras[0].rtsp_url == MISSING_STREAM_PLACEHOLDER


def test_extract_cameras_replaces_non_positive_detect_values() -> None:
    document = {
        "go2rtc": {"streams": {"yard": ["rtsp://10.0.0.8/main"]}},
        "cameras": {"yard": {"detect": {"width": 0, "height": 720, "fps": -1}}},
    }

    cameras = extract_cameras(document)

    assert len(cameras) == 1
    assert cameras[0].detect_width == DEFAULT_DETECT_WIDTH
    assert cameras[0].detect_height == 720
    assert cameras[0].detect_fps == DEFAULT_DETECT_FPS


def test_load_keeps_first_of_names_differing_only_in_case() -> None:
    raw = "cameras:\n  Yard:\n    detect: {fps: 4}\n  yard:\n    detect: {fps: 9}\n"
    state = build_state(FakeFrigate(raw_config=raw))
    state.reconciler.load()

    assert [(c.name, c.detect_fps) for c in state.store.list_all()] == [("Yard", 4)]
    assert state.store.remove("yard") is True
    assert len(state.store) == 0


def test_extract_cameras_reads_aac_directive_from_any_entry() -> None:
    document = {
        "go2rtc": {"streams": {"yard": ["rtsp://10.0.0.7/main", "ffmpeg:rtsp://10.0.0.7/sub#audio=aac"]}},
        "cameras": {"yard": {}},
    }
    camera = extract_cameras(document)[0]
    assert camera.enable_aac is True
    assert camera.force_h264 is False
    assert camera.sub_stream_url == "rtsp://10.0.0.7/sub"


def test_extract_labels_prefers_detector_model_labelmap() -> None:
    filtered = {
        "detectors": {"ov": {"model": {"labelmap": {"0": "person", "1": "person", "2": "fox"}}}},
        "model": {"merged_labelmap": {"0": "car"}},
    }
    assert extract_labels(filtered) == ["person", "fox"]


def test_extract_detector_accepts_any_edgetpu_entry() -> None:
    document = {"detectors": {"tpu0": {"type": "edgetpu", "device": "usb:0"}}}
    assert extract_detector(document, DetectorConfig()) == DetectorConfig(enabled=True, device="usb")


def test_extract_detector_disabled_keeps_previous_device() -> None:
    previous = DetectorConfig(enabled=True, device="usb")
    assert extract_detector({"detectors": {"cpu1": {"type": "cpu"}}}, previous) == DetectorConfig(
        enabled=False, device="usb"
    )


def test_parse_document_rejects_non_mapping() -> None:
    with pytest.raises(ParseError):
        parse_document("- a\n- b\n")
    assert parse_document("") == {}
