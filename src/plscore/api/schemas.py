"""Pydantic request/response models of the HTTP surface."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

from plscore.core.config import TransactionBoundary
from plscore.scoring.states import LeadState


class ProbabilityRequest(BaseModel):
    lead_ids: list[int] = Field(..., min_length=1)
    batch_mode: bool | None = None
    persist: bool = False


class ProbabilityResponse(BaseModel):
    probabilities: dict[int, float]
    unscored: list[int] = Field(default_factory=list)
    persisted: int = 0


class TransitionRequest(BaseModel):
    lead_ids: list[int] = Field(..., min_length=1)
    from_state: LeadState
    to_state: LeadState


class TransitionResponse(BaseModel):
    applied: int


class MaintenanceRequest(BaseModel):
    start_date: date | None = None
    transaction_boundary: TransactionBoundary | None = None


class MaintenanceResponse(BaseModel):
    job: str
    report: dict[str, float]


__all__ = [
    "MaintenanceRequest",
    "MaintenanceResponse",
    "ProbabilityRequest",
    "ProbabilityResponse",
    "TransitionRequest",
    "TransitionResponse",
]
