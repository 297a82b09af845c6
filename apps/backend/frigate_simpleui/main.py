from __future__ import annotations

from collections.abc import Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
import threading

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from frigate_simpleui import __version__
from frigate_simpleui.api import (
    routes_cameras,
    routes_config,
    routes_detector,
    routes_health,
    routes_scan,
)
from frigate_simpleui.camera.discovery import DiscoveryScanner
from frigate_simpleui.camera.negotiate import NegotiationResult, negotiate
from frigate_simpleui.camera.stream_test import StreamTester
from frigate_simpleui.config.schema import AppSettings, DetectorConfig
from frigate_simpleui.config.settings import load_settings
from frigate_simpleui.frigate.client import FrigateClient
from frigate_simpleui.frigate.reconciler import ConfigReconciler
from frigate_simpleui.frigate.store import CameraStore
from frigate_simpleui.frigate.synthesizer import ConfigSynthesizer
from frigate_simpleui.util.logging import get_logger, setup_logging
from frigate_simpleui.util.paths import resolve_log_dir

logger = get_logger(__name__)


@dataclass
class SimpleUIState:
    settings: AppSettings
    store: CameraStore
    client: FrigateClient
    synthesizer: ConfigSynthesizer
    reconciler: ConfigReconciler
    scanner: DiscoveryScanner
    stream_tester: StreamTester
    negotiator: Callable[..., NegotiationResult] = negotiate
    _shutdown_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _shutdown_complete: bool = field(default=False, init=False, repr=False)

    @classmethod
    def create(
        cls,
        settings: AppSettings,
        frigate_transport: httpx.BaseTransport | None = None,
        scanner: DiscoveryScanner | None = None,
        stream_tester: StreamTester | None = None,
    ) -> "SimpleUIState":
        store = CameraStore(detector=DetectorConfig(device=settings.detector_device))
        client = FrigateClient(
            settings.frigate.url,
            timeout=settings.frigate.timeout_seconds,
            transport=frigate_transport,
        )
        synthesizer = ConfigSynthesizer(store, settings)
        reconciler = ConfigReconciler(store, client, synthesizer)
        return cls(
            settings=settings,
            store=store,
            client=client,
            synthesizer=synthesizer,
            reconciler=reconciler,
            scanner=scanner or DiscoveryScanner(),
            stream_tester=stream_tester
            or StreamTester(settings.go2rtc.url, timeout_seconds=settings.go2rtc.timeout_seconds),
        )

    def shutdown(self) -> None:
        with self._shutdown_lock:
            if self._shutdown_complete:
                return
            self._shutdown_complete = True
        self.client.close()


def create_app(
    settings: AppSettings | None = None,
    config_path: str | None = None,
    bind: str | None = None,
    port: int | None = None,
    frigate_url: str | None = None,
    log_level: str | None = None,
    load_on_start: bool = True,
) -> FastAPI:
    if settings is None:
        settings = load_settings(config_path, bind=bind, port=port, frigate_url=frigate_url, log_level=log_level)
    setup_logging(settings.log_level, resolve_log_dir(settings.log_dir))
    state = SimpleUIState.create(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if load_on_start:
            result = app.state.simpleui.reconciler.load()
            if not result.ok:
                logger.warning("Starting with an empty camera list: %s", result.message)
        try:
            yield
        finally:
            app.state.simpleui.shutdown()

    app = FastAPI(title="Frigate SimpleUI", version=__version__, lifespan=lifespan)
    app.state.simpleui = state

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(routes_health.router, prefix="/api")
    app.include_router(routes_cameras.router, prefix="/api")
    app.include_router(routes_scan.router, prefix="/api")
    app.include_router(routes_config.router, prefix="/api")
    app.include_router(routes_detector.router, prefix="/api")

    return app
