"""Abstract tracking interface so maintenance jobs are backend agnostic."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any


class JobTracker(ABC):
    """Record parameters and outcome metrics of one job run."""

    @contextmanager
    def start_run(self, run_name: str, tags: dict[str, str] | None = None) -> Iterator[None]:
        self._on_start(run_name=run_name, tags=tags)
        try:
            yield
        finally:
            self._on_end()

    @abstractmethod
    def _on_start(self, run_name: str, tags: dict[str, str] | None = None) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def _on_end(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def log_params(self, params: dict[str, Any]) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def log_metrics(self, metrics: dict[str, float], step: int | None = None) -> None:  # pragma: no cover
        raise NotImplementedError


class NullJobTracker(JobTracker):
    """Tracker used when no backend is configured; ignores every call."""

    def _on_start(self, run_name: str, tags: dict[str, str] | None = None) -> None:  # pragma: no cover - trivial
        return

    def _on_end(self) -> None:  # pragma: no cover - trivial
        return

    def log_params(self, params: dict[str, Any]) -> None:  # pragma: no cover - trivial
        return

    def log_metrics(self, metrics: dict[str, float], step: int | None = None) -> None:  # pragma: no cover - trivial
        return


__all__ = ["JobTracker", "NullJobTracker"]
