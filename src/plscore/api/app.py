"""FastAPI application factory wiring routes, dependencies and middleware."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from functools import lru_cache
from pathlib import Path

from fastapi import FastAPI, Request
from prometheus_client import make_asgi_app
from sqlalchemy.orm import Session, sessionmaker

from plscore import __version__
from plscore.config import Settings
from plscore.core.protocols import StaticAccessPolicy
from plscore.scoring import ScoringEngine
from plscore.storage import build_engine, build_session_factory

from .deps import get_engine, get_session
from .routes import health, maintenance, scoring

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/config.yaml")


def get_settings(config_path: Path | str | None = None) -> Settings:
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    return Settings.from_yaml(path)


@lru_cache(maxsize=1)
def _settings_cached() -> Settings:
    return get_settings()


def create_app(settings: Settings | None = None, session_factory: sessionmaker[Session] | None = None) -> FastAPI:
    resolved_settings = settings or _settings_cached()
    app = FastAPI(title="plscore", version=__version__)

    if session_factory is None:
        session_factory = build_session_factory(build_engine(resolved_settings.database))

    app.include_router(health.router, prefix="/api")
    app.include_router(scoring.router, prefix="/api")
    app.include_router(maintenance.router, prefix="/api")

    if resolved_settings.serving.enable_metrics:
        app.mount("/metrics", make_asgi_app())
        logger.info("Prometheus metrics endpoint enabled at /metrics")

    def _session_scope() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    @lru_cache(maxsize=1)
    def _engine_cached() -> ScoringEngine:
        policy = StaticAccessPolicy(allow_reset=resolved_settings.serving.allow_frequency_reset)
        return ScoringEngine.from_settings(resolved_settings, access_policy=policy)

    app.dependency_overrides[get_session] = _session_scope
    app.dependency_overrides[get_engine] = _engine_cached

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time
        logger.info("%s %s - %s - %.3fs", request.method, request.url.path, response.status_code, duration)
        return response

    return app


__all__ = ["create_app", "get_settings"]
