from __future__ import annotations

import re
from typing import Any
from urllib.parse import SplitResult, urlsplit, urlunsplit

from frigate_simpleui.errors import ValidationError

RTSP_PASSWORD_RE = re.compile(r"(rtsps?://[^:@/]+:)([^@/]+)(@)", re.IGNORECASE)
PASSWORD_PAIR_RE = re.compile(r"(password\s*[=:]\s*)([^\s,;]+)", re.IGNORECASE)
TOKEN_RE = re.compile(r"(token\s*[=:]\s*)([^\s,;]+)", re.IGNORECASE)
CAMERA_NAME_RE = re.compile(r"^[A-Za-z0-9_]{1,32}$")
RTSP_SCHEMES = ("rtsp://", "rtsps://")


def sanitize_rtsp_url(url: str) -> str:
    try:
        parts: SplitResult = urlsplit(url)
        if parts.scheme.lower() not in {"rtsp", "rtsps"}:
            return url
        hostname = parts.hostname or ""
        user = parts.username
        redacted_user = user if user else "user"
        port = f":{parts.port}" if parts.port else ""
        netloc = f"{redacted_user}:***@{hostname}{port}" if user or parts.password else f"{hostname}{port}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
    except ValueError:
        return RTSP_PASSWORD_RE.sub(r"\1***\3", url)


def is_rtsp_url(value: str) -> bool:
    return value.lower().startswith(RTSP_SCHEMES)


def inject_credentials(uri: str, username: str | None, password: str | None) -> str:
    if not username or not uri.lower().startswith("rtsp://"):
        return uri
    return f"rtsp://{username}:{password or ''}@{uri[len('rtsp://'):]}"


def validate_camera_name(name: str) -> str:
    value = str(name or "")
    if not value:
        raise ValidationError("Camera name is required")
    if len(value) > 32:
        raise ValidationError("Camera name must be 32 characters or less")
    if not CAMERA_NAME_RE.fullmatch(value):
        raise ValidationError("Camera name can only contain letters, numbers, and underscores")
    return value


def validate_rtsp_url(source: str) -> str:
    value = str(source)
    if not value or any(ch.isspace() for ch in value):
        raise ValidationError("Invalid RTSP source")

    parts: SplitResult = urlsplit(value)
    if parts.scheme.lower() not in {"rtsp", "rtsps"}:
        raise ValidationError("Invalid RTSP source")
    if not parts.hostname:
        raise ValidationError("Invalid RTSP source")
    if "\\" in parts.path:
        raise ValidationError("Invalid RTSP source")

    try:
        _ = parts.port
    except ValueError as exc:
        raise ValidationError("Invalid RTSP source") from exc

    return value


def redact_secrets(text: str) -> str:
    text = RTSP_PASSWORD_RE.sub(r"\1***\3", text)
    text = PASSWORD_PAIR_RE.sub(r"\1***", text)
    text = TOKEN_RE.sub(r"\1***", text)
    return text


def scrub_sensitive(obj: Any) -> Any:
    if isinstance(obj, dict):
        out: dict[str, Any] = {}
        for key, value in obj.items():
            lowered = str(key).lower()
            if "password" in lowered or "token" in lowered or "secret" in lowered:
                out[key] = "***"
            elif lowered.endswith("url") and isinstance(value, str):
                out[key] = sanitize_rtsp_url(value)
            else:
                out[key] = scrub_sensitive(value)
        return out
    if isinstance(obj, list):
        return [scrub_sensitive(v) for v in obj]
    if isinstance(obj, str):
        return redact_secrets(obj)
    return obj
