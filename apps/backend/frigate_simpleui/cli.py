from __future__ import annotations

import argparse
from dataclasses import asdict, is_dataclass
import json
import signal
import sys

import uvicorn

from frigate_simpleui.camera.discovery import DiscoveryScanner
from frigate_simpleui.camera.negotiate import derive_settings, negotiate
from frigate_simpleui.config.defaults import DEFAULT_BIND, DEFAULT_PORT
from frigate_simpleui.config.settings import load_settings
from frigate_simpleui.errors import SimpleUIError
from frigate_simpleui.main import SimpleUIState, create_app
from frigate_simpleui.util.logging import setup_logging

_KNOWN_COMMANDS = {"serve", "scan", "probe", "render"}


def _add_serve_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=None, help="Path to a JSON settings file")
    parser.add_argument("--bind", default=None, help=f"Bind host (default {DEFAULT_BIND})")
    parser.add_argument("--port", type=int, default=None, help=f"Bind port (default {DEFAULT_PORT})")
    parser.add_argument("--frigate-url", default=None, help="Frigate base URL")
    parser.add_argument("--log-level", default=None, help="Log level (default info)")


def _build_parser(prog: str) -> argparse.ArgumentParser:
    """Parser used when no command is given: behaves like ``serve``."""
    parser = argparse.ArgumentParser(prog=prog, description="Frigate camera configuration backend")
    _add_serve_arguments(parser)
    return parser


def _build_command_parser(prog: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, description="Frigate camera configuration backend")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API server")
    _add_serve_arguments(serve)

    scan = subparsers.add_parser("scan", help="Discover ONVIF cameras on the local network")
    scan.add_argument("--timeout", type=float, default=5.0, help="Probe window in seconds")

    probe = subparsers.add_parser("probe", help="Read stream URLs and encoders from one ONVIF camera")
    probe.add_argument("--ip", required=True, help="Camera IP address")
    probe.add_argument("--onvif-url", default=None, help="ONVIF device service URL")
    probe.add_argument("--username", default="", help="ONVIF username")
    probe.add_argument("--password", default="", help="ONVIF password")

    render = subparsers.add_parser("render", help="Load the Frigate config and print the generated YAML")
    render.add_argument("--config", default=None, help="Path to a JSON settings file")
    render.add_argument("--frigate-url", default=None, help="Frigate base URL")

    return parser


def _run(parsed: argparse.Namespace) -> int:
    settings = load_settings(
        parsed.config,
        bind=parsed.bind,
        port=parsed.port,
        frigate_url=parsed.frigate_url,
        log_level=parsed.log_level,
    )
    if settings.bind == "0.0.0.0":
        print("[warning] LAN access enabled. This API can rewrite the Frigate config; keep it on trusted networks.")

    app = create_app(settings=settings)
    print(f"Frigate SimpleUI API running at http://{settings.bind}:{settings.port}")
    config = uvicorn.Config(
        app,
        host=settings.bind,
        port=settings.port,
        log_level=settings.log_level,
        workers=1,
        timeout_graceful_shutdown=2,
    )
    server = uvicorn.Server(config)
    previous_handlers: dict[int, object] = {}
    run_exit_code: int | None = None

    def _shutdown_state() -> None:
        app_state = getattr(app, "state", None)
        simpleui_state = getattr(app_state, "simpleui", None)
        if simpleui_state is not None:
            simpleui_state.shutdown()

    def _request_exit(signum: int, _frame: object) -> None:
        if signum in {signal.SIGINT, signal.SIGTERM}:
            server.should_exit = True

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous_handlers[sig] = signal.getsignal(sig)
            signal.signal(sig, _request_exit)
        except (AttributeError, ValueError):
            continue

    try:
        try:
            server.run()
        except KeyboardInterrupt:
            server.should_exit = True
        except SystemExit as exc:
            if server.should_exit:
                run_exit_code = 0
            else:
                code = exc.code
                run_exit_code = code if isinstance(code, int) else 1
    finally:
        _shutdown_state()
        for sig, handler in previous_handlers.items():
            try:
                signal.signal(sig, handler)
            except (AttributeError, ValueError):
                continue
    if run_exit_code is not None:
        return run_exit_code
    if bool(getattr(server, "started", False)) or server.should_exit:
        return 0
    return 1


def _print_result(result: object) -> None:
    if is_dataclass(result):
        payload = asdict(result)
    else:
        payload = result
    print(json.dumps(payload, indent=2, sort_keys=True))


def _render(parsed: argparse.Namespace) -> int:
    settings = load_settings(parsed.config, frigate_url=parsed.frigate_url)
    state = SimpleUIState.create(settings)
    try:
        result = state.reconciler.load()
        if not result.ok:
            print(f"[error] {result.message}")
            return 1
        sys.stdout.write(state.synthesizer.render())
    finally:
        state.shutdown()
    return 0


def _dispatch_command(parsed: argparse.Namespace) -> int:
    if parsed.command == "serve":
        return _run(parsed)
    setup_logging("warning")
    if parsed.command == "scan":
        devices = DiscoveryScanner(timeout_seconds=parsed.timeout).scan()
        _print_result([d.to_dict() for d in devices])
        return 0
    if parsed.command == "probe":
        onvif_url = parsed.onvif_url or f"http://{parsed.ip}/onvif/device_service"
        result = negotiate(parsed.ip, onvif_url, parsed.username, parsed.password)
        payload = result.to_dict()
        payload["suggested"] = asdict(derive_settings(result.capabilities))
        _print_result(payload)
        return 0
    if parsed.command == "render":
        return _render(parsed)
    raise ValueError(f"Unknown command: {parsed.command}")


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        if args and args[0] in _KNOWN_COMMANDS:
            parser = _build_command_parser("frigate-simpleui")
            parsed = parser.parse_args(args)
            return _dispatch_command(parsed)
        parser = _build_parser("frigate-simpleui")
        parsed = parser.parse_args(args)
        return _run(parsed)
    except KeyboardInterrupt:
        return 0
    except (SimpleUIError, ValueError, OSError) as exc:
        print(f"[error] {exc}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
