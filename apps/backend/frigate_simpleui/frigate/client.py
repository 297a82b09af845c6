from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx

from frigate_simpleui.config.defaults import FRIGATE_ALIVE_TEXT, HTTP_TIMEOUT_SECONDS, PING_TIMEOUT_SECONDS
from frigate_simpleui.errors import ParseError, TransportError
from frigate_simpleui.util.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SaveResult:
    ok: bool
    message: str


class FrigateClient:
    """Frigate's config endpoints: raw YAML read, filtered JSON read, save."""

    def __init__(
        self,
        base_url: str,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def ping(self) -> str:
        """Checks Frigate answers its liveness endpoint; raises TransportError otherwise."""
        response = self._request("GET", "/api/", timeout=PING_TIMEOUT_SECONDS)
        text = response.text.strip().strip('"')
        if text != FRIGATE_ALIVE_TEXT:
            raise TransportError(f"Frigate at {self.base_url} answered with unexpected data")
        return "Frigate is running"

    def get_raw_config(self) -> str:
        response = self._request("GET", "/api/config/raw", headers={"Accept": "text/plain"})
        text = response.text
        # some Frigate versions wrap the YAML in a JSON string
        if response.headers.get("content-type", "").startswith("application/json"):
            try:
                decoded = json.loads(text)
            except json.JSONDecodeError:
                return text
            if isinstance(decoded, str):
                return decoded
        return text

    def get_filtered_config(self) -> dict[str, Any]:
        response = self._request("GET", "/api/config", headers={"Accept": "application/json"})
        try:
            payload = response.json()
        except ValueError as exc:
            raise ParseError("Frigate returned a non-JSON config") from exc
        if not isinstance(payload, dict):
            raise ParseError("Frigate config is not a mapping")
        return payload

    def save_config(self, yaml_text: str, restart: bool = False) -> SaveResult:
        save_option = "restart" if restart else "saveonly"
        try:
            response = self._client.post(
                "/api/config/save",
                params={"save_option": save_option},
                content=yaml_text.encode("utf-8"),
                headers={"Content-Type": "text/plain", "Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"Error saving config to Frigate: {exc}") from exc

        message = _response_message(response)
        if response.is_success and _response_success(response):
            logger.info("Config saved to Frigate (%s): %s", save_option, message)
            return SaveResult(ok=True, message=message or "Configuration saved")
        logger.error("Frigate rejected config: %s", message)
        return SaveResult(ok=False, message=message or f"Frigate answered HTTP {response.status_code}")

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportError(f"Frigate {path} answered HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Cannot reach Frigate at {self.base_url}{path}: {exc}") from exc
        return response


def _response_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(payload, dict):
        return str(payload.get("message", ""))
    return ""


def _response_success(response: httpx.Response) -> bool:
    try:
        payload = response.json()
    except ValueError:
        return True
    if isinstance(payload, dict) and "success" in payload:
        return bool(payload["success"])
    return True
