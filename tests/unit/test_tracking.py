import logging
from types import SimpleNamespace

from plscore.config.settings import TrackingConfig
from plscore.logging_config import configure_logging
from plscore.tracking import MLflowJobTracker, NullJobTracker, build_tracker
from plscore.tracking import mlflow_tracker


def test_mlflow_tracker_logs_run(monkeypatch) -> None:
    calls = []
    fake = SimpleNamespace(
        set_tracking_uri=lambda uri: calls.append(("uri", uri)),
        set_experiment=lambda name: calls.append(("experiment", name)),
        start_run=lambda run_name: calls.append(("start", run_name))
        or SimpleNamespace(info=SimpleNamespace(run_id="abc")),
        set_tags=lambda tags: calls.append(("tags", tags)),
        log_params=lambda params: calls.append(("params", params)),
        log_metrics=lambda metrics, step=None: calls.append(("metrics", metrics)),
        end_run=lambda: calls.append(("end", None)),
    )
    monkeypatch.setattr(mlflow_tracker, "mlflow", fake)
    tracker = MLflowJobTracker("file:./mlruns", "pls", run_name_prefix="cron")

    with tracker.start_run("2024-01-01", tags={"job": "cron"}):
        tracker.log_params({"fields": "stage_id"})
        tracker.log_metrics({"leads": 3.0})

    assert calls == [
        ("uri", "file:./mlruns"),
        ("experiment", "pls"),
        ("start", "cron-2024-01-01"),
        ("tags", {"job": "cron"}),
        ("params", {"fields": "stage_id"}),
        ("metrics", {"leads": 3.0}),
        ("end", None),
    ]


def test_build_tracker() -> None:
    assert isinstance(build_tracker(TrackingConfig()), NullJobTracker)
    tracker = build_tracker(TrackingConfig(backend="mlflow", experiment_name="pls"))
    assert isinstance(tracker, MLflowJobTracker)
    assert tracker.experiment_name == "pls"


def test_configure_logging() -> None:
    root = logging.getLogger()
    previous_level, previous_handlers = root.level, list(root.handlers)
    try:
        configure_logging("debug", "%(levelname)s %(message)s")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert root.handlers[0].formatter._fmt == "%(levelname)s %(message)s"
    finally:
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)
