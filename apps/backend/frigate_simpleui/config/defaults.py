from __future__ import annotations

APP_VERSION = "0.1.0"
DEFAULT_BIND = "127.0.0.1"
DEFAULT_PORT = 3001
DEFAULT_LOG_LEVEL = "info"

DEFAULT_FRIGATE_URL = "http://127.0.0.1:5000"
DEFAULT_GO2RTC_URL = "http://127.0.0.1:1984"
HTTP_TIMEOUT_SECONDS = 10.0
PING_TIMEOUT_SECONDS = 3.0
FRIGATE_ALIVE_TEXT = "Frigate is running. Alive and healthy!"

DEFAULT_MQTT_HOST = "127.0.0.1"
DEFAULT_MQTT_PORT = 1883
DEFAULT_MQTT_USER = "mqtt-user"
DEFAULT_MQTT_PASSWORD = "mqttpassword"
DEFAULT_WEBRTC_CANDIDATES = ["localhost:8555", "127.0.0.1:8555", "stun:8555"]
DEFAULT_WEBRTC_LISTEN = ":8555/tcp"

DISCOVERY_TIMEOUT_SECONDS = 5.0
DISCOVERY_CACHE_SECONDS = 15.0
ONVIF_TIMEOUT_SECONDS = 5.0

MAX_DETECT_WIDTH = 1920
MAX_DETECT_HEIGHT = 1080
DEFAULT_DETECT_WIDTH = 1024
DEFAULT_DETECT_HEIGHT = 768
DEFAULT_DETECT_FPS = 3
DEFAULT_OBJECTS = ["person", "car"]
DEFAULT_AVAILABLE_LABELS = ["person", "car", "cat", "dog", "truck", "bicycle"]

DEFAULT_RECORD_ENABLED = False
DEFAULT_RETAIN_DAYS = 3
MIN_RETAIN_DAYS = 1
MAX_RETAIN_DAYS = 90
DEFAULT_RETAIN_MODE = "motion"

DEFAULT_MOTION_THRESHOLD = 30
DEFAULT_MOTION_CONTOUR_AREA = 15
DEFAULT_MOTION_IMPROVE_CONTRAST = True

DEFAULT_SNAPSHOT_RETAIN_DAYS = 60

DEFAULT_DETECTOR_DEVICE = "pci"
DETECTOR_KEY = "coral"
DETECTOR_TYPE = "edgetpu"

MISSING_STREAM_PLACEHOLDER = "rtsp://missing/url"
RESTREAM_INPUT_TEMPLATE = "rtsp://127.0.0.1:8554/{name}?video&audio"
CONFIG_FORMAT_VERSION = "0.14"
