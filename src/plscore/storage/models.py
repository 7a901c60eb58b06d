"""Relational schema read and written by the scoring engine."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


lead_tag_rel = Table(
    "lead_tag_rel",
    Base.metadata,
    Column("lead_id", ForeignKey("leads.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Team(Base):
    """Sales team; frequencies are split per team."""

    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Stage(Base):
    """Pipeline stage, ordered by sequence then id."""

    __tablename__ = "stages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_won: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    team_id: Mapped[int | None] = mapped_column(ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)


class Country(Base):
    __tablename__ = "countries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(2), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)


class Source(Base):
    __tablename__ = "sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)


class Lead(Base):
    """Lead/opportunity.

    Won: ``probability == 100``. Lost: ``probability == 0`` and archived
    (``active`` false). Anything else is open.
    """

    __tablename__ = "leads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.current_timestamp())

    stage_id: Mapped[int | None] = mapped_column(ForeignKey("stages.id"), nullable=True)
    team_id: Mapped[int | None] = mapped_column(ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    country_id: Mapped[int | None] = mapped_column(ForeignKey("countries.id"), nullable=True)
    source_id: Mapped[int | None] = mapped_column(ForeignKey("sources.id"), nullable=True)
    lang_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    email_state: Mapped[str | None] = mapped_column(String(16), nullable=True)
    phone_state: Mapped[str | None] = mapped_column(String(16), nullable=True)

    probability: Mapped[float | None] = mapped_column(Float, nullable=True)
    automated_probability: Mapped[float | None] = mapped_column(Float, nullable=True)

    stage: Mapped[Stage | None] = relationship(Stage)
    team: Mapped[Team | None] = relationship(Team)
    tags: Mapped[list[Tag]] = relationship(Tag, secondary=lead_tag_rel, order_by=Tag.id)

    __table_args__ = (
        Index("ix_leads_team_created", "team_id", "created_at"),
        Index("ix_leads_probability", "probability"),
    )

    @property
    def is_automated_probability(self) -> bool:
        """Probability still follows the engine (equal to 2 decimal digits)."""

        if self.probability is None or self.automated_probability is None:
            return self.probability is None and self.automated_probability is None
        return round(self.probability, 2) == round(self.automated_probability, 2)


class ScoringFrequency(Base):
    """Won/lost counts per (team, variable, value); a NULL team is the no-team bucket."""

    __tablename__ = "scoring_frequencies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    variable: Mapped[str] = mapped_column(String(64), nullable=False)
    value: Mapped[str] = mapped_column(String(64), nullable=False)
    won_count: Mapped[float] = mapped_column(Float, nullable=False, default=0.1)
    lost_count: Mapped[float] = mapped_column(Float, nullable=False, default=0.1)
    team_id: Mapped[int | None] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"), nullable=True)

    __table_args__ = (Index("ix_scoring_frequencies_variable_team", "variable", "team_id"),)


__all__ = [
    "Base",
    "Country",
    "Lead",
    "ScoringFrequency",
    "Source",
    "Stage",
    "Tag",
    "Team",
    "lead_tag_rel",
]
