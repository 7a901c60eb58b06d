"""Predictive lead scoring: frequency table, classifier and update strategies."""

from .classifier import GLOBAL_BUCKET, FrequencyTables, NaiveBayesClassifier
from .engine import CronReport, ScoringEngine
from .frequencies import LAPLACE_SMOOTHING, FrequencyStore
from .increment import LiveIncrementer
from .rebuild import BatchRebuilder, RebuildReport, RefreshReport
from .states import LeadState, lead_state, transition_effects

__all__ = [
    "BatchRebuilder",
    "CronReport",
    "FrequencyStore",
    "FrequencyTables",
    "GLOBAL_BUCKET",
    "LAPLACE_SMOOTHING",
    "LeadState",
    "LiveIncrementer",
    "NaiveBayesClassifier",
    "RebuildReport",
    "RefreshReport",
    "ScoringEngine",
    "lead_state",
    "transition_effects",
]
