#!/usr/bin/env python3
"""Launch the scoring HTTP service."""

from __future__ import annotations

import argparse
from pathlib import Path

import uvicorn

from plscore.api import create_app
from plscore.config import Settings
from plscore.logging_config import configure_logging

DEFAULT_CONFIG = Path("config/config.yaml")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the lead scoring API")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG)
    parser.add_argument("--host", type=str, default=None, help="Override serving.host")
    parser.add_argument("--port", type=int, default=None, help="Override serving.port")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = Settings.from_yaml(args.config)
    configure_logging(settings.logging.level, settings.logging.format)
    app = create_app(settings=settings)
    uvicorn.run(app, host=args.host or settings.serving.host, port=args.port or settings.serving.port)


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
