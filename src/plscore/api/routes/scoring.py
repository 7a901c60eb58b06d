"""Scoring endpoints: probability computation and won/lost transitions."""

from __future__ import annotations

import logging
import time
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from prometheus_client import Counter, Histogram
from sqlalchemy import select
from sqlalchemy.orm import Session

from plscore.api.deps import get_engine, get_session
from plscore.api.schemas import ProbabilityRequest, ProbabilityResponse, TransitionRequest, TransitionResponse
from plscore.scoring import ScoringEngine
from plscore.storage.models import Lead

logger = logging.getLogger(__name__)

router = APIRouter(tags=["scoring"])

leads_scored_counter = Counter("plscore_leads_scored_total", "Leads scored through the API", ["status"])
scoring_latency = Histogram(
    "plscore_scoring_duration_seconds",
    "Time spent computing probabilities",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0],
)
transitions_counter = Counter("plscore_transitions_total", "Leads applied to the frequency table", ["to_state"])


def _load_leads(session: Session, lead_ids: list[int]) -> list[Lead]:
    leads = list(session.scalars(select(Lead).where(Lead.id.in_(lead_ids)).order_by(Lead.id)))
    missing = sorted(set(lead_ids) - {lead.id for lead in leads})
    if missing:
        raise HTTPException(status_code=404, detail=f"Unknown leads: {missing}")
    return leads


@router.post("/probabilities", response_model=ProbabilityResponse)
def compute_probabilities(
    request: ProbabilityRequest,
    session: Annotated[Session, Depends(get_session)],
    engine: Annotated[ScoringEngine, Depends(get_engine)],
) -> ProbabilityResponse:
    start = time.perf_counter()
    try:
        leads = _load_leads(session, request.lead_ids)
        probabilities = engine.recompute_probabilities(session, leads, batch_mode=request.batch_mode)
        persisted = 0
        if request.persist:
            persisted = engine.apply_computed_probabilities(session, leads, probabilities)
            session.commit()
    finally:
        scoring_latency.observe(time.perf_counter() - start)

    unscored = [lead_id for lead_id in request.lead_ids if lead_id not in probabilities]
    leads_scored_counter.labels(status="scored").inc(len(probabilities))
    leads_scored_counter.labels(status="unscored").inc(len(unscored))
    return ProbabilityResponse(probabilities=probabilities, unscored=unscored, persisted=persisted)


@router.post("/transitions", response_model=TransitionResponse)
def apply_transition(
    request: TransitionRequest,
    session: Annotated[Session, Depends(get_session)],
    engine: Annotated[ScoringEngine, Depends(get_engine)],
) -> TransitionResponse:
    """Report a won/lost transition before the CRM writes it."""

    leads = _load_leads(session, request.lead_ids)
    applied = engine.on_state_transition(session, leads, request.from_state, request.to_state)
    session.commit()
    transitions_counter.labels(to_state=request.to_state.value).inc(applied)
    logger.info(
        "Applied %s -> %s transition for %s leads", request.from_state.value, request.to_state.value, applied
    )
    return TransitionResponse(applied=applied)


__all__ = ["router"]
