"""MLflow implementation of the job tracking abstraction."""

from __future__ import annotations

from typing import Any

import mlflow

from .tracker import JobTracker


class MLflowJobTracker(JobTracker):
    """Log each maintenance run as an MLflow run of one experiment."""

    def __init__(
        self,
        tracking_uri: str,
        experiment_name: str,
        run_name_prefix: str = "cron",
    ) -> None:
        self.tracking_uri = tracking_uri
        self.experiment_name = experiment_name
        self.run_name_prefix = run_name_prefix
        self._active_run_id: str | None = None

    def _ensure_experiment(self) -> None:
        mlflow.set_tracking_uri(self.tracking_uri)
        mlflow.set_experiment(self.experiment_name)

    def _on_start(self, run_name: str, tags: dict[str, str] | None = None) -> None:
        self._ensure_experiment()
        run = mlflow.start_run(run_name=f"{self.run_name_prefix}-{run_name}")
        self._active_run_id = run.info.run_id
        if tags:
            mlflow.set_tags(tags)

    def _on_end(self) -> None:
        if self._active_run_id is not None:
            mlflow.end_run()
            self._active_run_id = None

    def log_params(self, params: dict[str, Any]) -> None:
        mlflow.log_params(params)

    def log_metrics(self, metrics: dict[str, float], step: int | None = None) -> None:
        mlflow.log_metrics(metrics, step=step)


__all__ = ["MLflowJobTracker"]
