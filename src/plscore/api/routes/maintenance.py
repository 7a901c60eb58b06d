"""Maintenance endpoints triggering the batch jobs."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from prometheus_client import Counter, Histogram
from sqlalchemy.orm import Session

from plscore.api.deps import get_engine, get_session
from plscore.api.schemas import MaintenanceRequest, MaintenanceResponse
from plscore.core.exceptions import ScoringAccessError
from plscore.scoring import ScoringEngine

router = APIRouter(prefix="/maintenance", tags=["maintenance"])

job_runs_counter = Counter("plscore_maintenance_runs_total", "Maintenance jobs triggered", ["job", "status"])
job_duration = Histogram("plscore_maintenance_duration_seconds", "Maintenance job duration", ["job"])


@router.post("/rebuild", response_model=MaintenanceResponse)
def rebuild_frequencies(
    request: MaintenanceRequest,
    session: Annotated[Session, Depends(get_session)],
    engine: Annotated[ScoringEngine, Depends(get_engine)],
) -> MaintenanceResponse:
    try:
        report = engine.rebuild_frequency_table(
            session, request.start_date, transaction_boundary=request.transaction_boundary
        )
    except ScoringAccessError as exc:
        job_runs_counter.labels(job="rebuild", status="forbidden").inc()
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    session.commit()
    job_runs_counter.labels(job="rebuild", status="success").inc()
    job_duration.labels(job="rebuild").observe(report.duration)
    return MaintenanceResponse(job="rebuild", report=report.to_dict())


@router.post("/refresh", response_model=MaintenanceResponse)
def refresh_probabilities(
    request: MaintenanceRequest,
    session: Annotated[Session, Depends(get_session)],
    engine: Annotated[ScoringEngine, Depends(get_engine)],
) -> MaintenanceResponse:
    report = engine.refresh_all_open_probabilities(
        session, request.start_date, transaction_boundary=request.transaction_boundary
    )
    session.commit()
    status = "partial" if report.failed else "success"
    job_runs_counter.labels(job="refresh", status=status).inc()
    job_duration.labels(job="refresh").observe(report.duration)
    return MaintenanceResponse(job="refresh", report=report.to_dict())


__all__ = ["router"]
