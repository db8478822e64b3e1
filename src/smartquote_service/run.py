from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

import uvicorn

from smartquote.config.loader import CONFIG_ENV_VAR, load_config

from .app import create_app


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="SmartQuote HTTP service")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.yaml (defaults to $SMARTQUOTE_CONFIG or ~/.smartquote/config.yaml).",
    )
    parser.add_argument("--host", type=str, default=None, help="Override service host")
    parser.add_argument("--port", type=int, default=None, help="Override service port")
    return parser.parse_args(argv)


def _set_config_path(path: Path | None) -> None:
    if path is not None:
        os.environ[CONFIG_ENV_VAR] = str(Path(path).expanduser())


def serve_from_config(cfg) -> int:
    """Public entry to run the service from an already-loaded config."""
    service_cfg = cfg.service
    app = create_app(cfg)
    print(
        f"[smartquote] listening on http://{service_cfg.host}:{service_cfg.port} "
        f"(catalogue: {cfg.catalogue.path})",
        flush=True,
    )
    config = uvicorn.Config(
        app,
        host=service_cfg.host,
        port=int(service_cfg.port),
        log_level="info",
        timeout_graceful_shutdown=1,
    )
    server = uvicorn.Server(config)
    try:
        server.run()
    except KeyboardInterrupt:  # pragma: no cover - CLI convenience
        pass
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    if args.port is not None and (args.port <= 0 or args.port > 65535):
        raise SystemExit("Service port must be between 1 and 65535")

    _set_config_path(args.config)
    cfg = load_config()
    if args.host:
        cfg.service.host = args.host
    if args.port is not None:
        cfg.service.port = int(args.port)
    return serve_from_config(cfg)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main(sys.argv[1:]))
