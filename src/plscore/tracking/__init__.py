"""Tracking exports."""

from __future__ import annotations

from plscore.config.settings import TrackingConfig

from .mlflow_tracker import MLflowJobTracker
from .tracker import JobTracker, NullJobTracker


def build_tracker(config: TrackingConfig) -> JobTracker:
    if config.backend == "mlflow":
        return MLflowJobTracker(
            tracking_uri=config.tracking_uri,
            experiment_name=config.experiment_name,
            run_name_prefix=config.run_name_prefix,
        )
    return NullJobTracker()


__all__ = ["JobTracker", "MLflowJobTracker", "NullJobTracker", "build_tracker"]
