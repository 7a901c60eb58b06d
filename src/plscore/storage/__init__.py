"""Relational storage primitives."""

from .database import build_engine, build_session_factory, init_db
from .models import Base, Country, Lead, ScoringFrequency, Source, Stage, Tag, Team, lead_tag_rel

__all__ = [
    "Base",
    "Country",
    "Lead",
    "ScoringFrequency",
    "Source",
    "Stage",
    "Tag",
    "Team",
    "build_engine",
    "build_session_factory",
    "init_db",
    "lead_tag_rel",
]
