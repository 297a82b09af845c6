from __future__ import annotations

import re
import socket
import threading
import time
import uuid
from collections.abc import Callable, Iterable
from concurrent.futures import Future
from dataclasses import asdict, dataclass
from urllib.parse import unquote, urlparse

import psutil

from frigate_simpleui.config.defaults import DISCOVERY_CACHE_SECONDS, DISCOVERY_TIMEOUT_SECONDS
from frigate_simpleui.util.logging import get_logger

logger = get_logger(__name__)

MULTICAST_GROUP = ("239.255.255.250", 3702)
NAME_SCOPE = "onvif://www.onvif.org/name/"
HARDWARE_SCOPE = "onvif://www.onvif.org/hardware/"
UNKNOWN = "Unknown"

_PROBE_MATCH_RE = re.compile(r"<(?:\w+:)?ProbeMatch\b[^>]*>(.*?)</(?:\w+:)?ProbeMatch>", re.IGNORECASE | re.DOTALL)
_XADDRS_RE = re.compile(r"<(?:\w+:)?XAddrs\b[^>]*>(.*?)</(?:\w+:)?XAddrs>", re.IGNORECASE | re.DOTALL)
_SCOPES_RE = re.compile(r"<(?:\w+:)?Scopes\b[^>]*>(.*?)</(?:\w+:)?Scopes>", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class DiscoveredDevice:
    ip: str
    manufacturer: str
    model: str
    onvif_url: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class NetworkInterface:
    name: str
    address: str
    netmask: str


def build_probe() -> bytes:
    probe = f"""<?xml version=\"1.0\" encoding=\"UTF-8\"?>
<e:Envelope xmlns:e=\"http://www.w3.org/2003/05/soap-envelope\"
            xmlns:w=\"http://schemas.xmlsoap.org/ws/2004/08/addressing\"
            xmlns:d=\"http://schemas.xmlsoap.org/ws/2005/04/discovery\"
            xmlns:dn=\"http://www.onvif.org/ver10/network/wsdl\">
  <e:Header>
    <w:MessageID>uuid:{uuid.uuid4()}</w:MessageID>
    <w:To>urn:schemas-xmlsoap-org:ws:2005:04:discovery</w:To>
    <w:Action>http://schemas.xmlsoap.org/ws/2005/04/discovery/Probe</w:Action>
  </e:Header>
  <e:Body>
    <d:Probe>
      <d:Types>dn:NetworkVideoTransmitter</d:Types>
    </d:Probe>
  </e:Body>
</e:Envelope>"""
    return probe.encode("utf-8")


def send_probe(timeout_seconds: float = DISCOVERY_TIMEOUT_SECONDS) -> list[DiscoveredDevice]:
    """Multicast one WS-Discovery probe and collect answers until the window closes."""
    responses: list[str] = []
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    try:
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 2)
        sock.sendto(build_probe(), MULTICAST_GROUP)
        deadline = time.monotonic() + timeout_seconds
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            sock.settimeout(remaining)
            try:
                data, _ = sock.recvfrom(65535)
            except socket.timeout:
                break
            responses.append(data.decode("utf-8", errors="ignore"))
    finally:
        sock.close()

    return parse_probe_matches(responses)


def parse_probe_matches(responses: Iterable[str]) -> list[DiscoveredDevice]:
    devices: dict[str, DiscoveredDevice] = {}
    for text in responses:
        blocks = _PROBE_MATCH_RE.findall(text) or [text]
        for block in blocks:
            xaddrs = [x for found in _XADDRS_RE.findall(block) for x in found.split()]
            if not xaddrs:
                continue
            scopes = [s for found in _SCOPES_RE.findall(block) for s in found.split()]
            try:
                device = normalize_device(xaddrs, scopes)
            except ValueError as exc:
                logger.warning("Ignoring ONVIF answer with unusable XAddrs %s: %s", xaddrs, exc)
                continue
            devices.setdefault(device.onvif_url, device)
    return list(devices.values())


def normalize_device(xaddrs: list[str], scopes: list[str]) -> DiscoveredDevice:
    """First XAddr that parses wins; raises ValueError when none does."""
    onvif_url, ip = "", ""
    errors: list[str] = []
    for xaddr in xaddrs:
        try:
            ip = urlparse(xaddr).hostname or ""
        except ValueError as exc:
            errors.append(f"{xaddr}: {exc}")
            continue
        onvif_url = xaddr
        break
    if errors and not onvif_url:
        raise ValueError("; ".join(errors))

    manufacturer = UNKNOWN
    name_scope = next((s for s in scopes if NAME_SCOPE in s), None)
    if name_scope:
        words = unquote(name_scope.rstrip("/").split("/")[-1]).split()
        manufacturer = words[0] if words else UNKNOWN

    model = UNKNOWN
    hardware_scope = next((s for s in scopes if HARDWARE_SCOPE in s), None)
    if hardware_scope:
        model = unquote(hardware_scope.rstrip("/").split("/")[-1]) or UNKNOWN

    return DiscoveredDevice(ip=ip, manufacturer=manufacturer, model=model, onvif_url=onvif_url)


class DiscoveryScanner:
    """Process-wide ONVIF scan with a short result cache.

    A scan started less than ``ttl_seconds`` ago is reused, including one that
    is still running; concurrent callers wait on the same future.
    """

    def __init__(
        self,
        probe: Callable[[float], list[DiscoveredDevice]] = send_probe,
        ttl_seconds: float = DISCOVERY_CACHE_SECONDS,
        timeout_seconds: float = DISCOVERY_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._probe = probe
        self._ttl = ttl_seconds
        self._timeout = timeout_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: Future[list[DiscoveredDevice]] | None = None
        self._started_at = 0.0

    def scan(self) -> list[DiscoveredDevice]:
        owner = False
        with self._lock:
            now = self._clock()
            if self._pending is None or now - self._started_at >= self._ttl:
                self._pending = Future()
                self._started_at = now
                owner = True
            pending = self._pending

        if owner:
            logger.info("Starting ONVIF probe (%.0fs)", self._timeout)
            try:
                devices = self._run_probe()
            except Exception:
                logger.exception("ONVIF probe crashed")
                devices = []
            pending.set_result(devices)
        return list(pending.result())

    def _run_probe(self) -> list[DiscoveredDevice]:
        try:
            devices = self._probe(self._timeout)
        except (OSError, ValueError) as exc:
            logger.warning("ONVIF probe failed: %s", exc)
            return []
        logger.info("ONVIF probe complete, found %d devices", len(devices))
        return devices


def list_interfaces() -> list[NetworkInterface]:
    """Non-loopback IPv4 interfaces; shown to the user, never used to filter scans."""
    result: list[NetworkInterface] = []
    for name, addresses in psutil.net_if_addrs().items():
        for addr in addresses:
            if addr.family != socket.AF_INET or addr.address.startswith("127."):
                continue
            result.append(NetworkInterface(name=name, address=addr.address, netmask=addr.netmask or ""))
    return result
