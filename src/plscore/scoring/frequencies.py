"""Frequency table: won/lost counts per (team, field, value).

Both the live increment and the full rebuild go through :meth:`FrequencyStore.apply`.
Counts never drop below :data:`LAPLACE_SMOOTHING`; with no observation a value
would otherwise zero out the whole Bayesian product. Adding 0.1 instead of 1
keeps small datasets from being flattened.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import pandas as pd
from sqlalchemy import delete, func, insert, or_, select
from sqlalchemy.orm import Session

from plscore.features.extractor import LeadValues
from plscore.features.schema import STAGE_FIELD, frequency_value
from plscore.storage.models import ScoringFrequency, Stage

from .states import LeadState

logger = logging.getLogger(__name__)

LAPLACE_SMOOTHING = 0.1
NO_TEAM_KEY = 0

TeamId = int | None
FrequencyKey = tuple[TeamId, str, str]


@dataclass
class OutcomeCounts:
    """Won/lost tally for one (field, value) couple."""

    won: float = 0.0
    lost: float = 0.0

    def add(self, won: float, lost: float) -> None:
        self.won += won
        self.lost += lost


FrequencyDeltas = dict[TeamId, dict[tuple[str, str], OutcomeCounts]]


def clamp_count(count: float) -> float:
    return max(count, LAPLACE_SMOOTHING)


def _round_half_up(count: float) -> float:
    return float(math.floor(count + 0.5))


class FrequencyStore:
    """Read and write access to the ``scoring_frequencies`` table."""

    # Stage helpers

    def stage_sequences(self, session: Session) -> list[tuple[int, int]]:
        """``(stage_id, sequence)`` of every stage, ordered by sequence then id."""

        stmt = select(Stage.id, Stage.sequence).order_by(Stage.sequence, Stage.id)
        return [(stage_id, sequence) for stage_id, sequence in session.execute(stmt)]

    def first_stage_id(self, session: Session) -> int | None:
        stmt = select(Stage.id).where(Stage.team_id.is_(None)).order_by(Stage.sequence, Stage.id).limit(1)
        return session.scalar(stmt)

    def won_stage_ids(self, session: Session) -> set[int]:
        return set(session.scalars(select(Stage.id).where(Stage.is_won.is_(True))))

    # Counting

    def prepare(
        self,
        leads_values: Iterable[LeadValues],
        stages: Sequence[tuple[int, int]],
        target_state: LeadState | None = None,
    ) -> FrequencyDeltas:
        """Count won/lost outcomes per team for every (field, value) of ``leads_values``.

        With ``target_state`` each lead counts towards that state, its stored
        probability being the pre-transition value. Without it, probability 100
        counts as won and 0 as lost.

        A won lead counts on every stage. A lost lead counts on its own stage and
        every earlier one, so the first stage sees every closed lead.
        """

        all_stage_ids = [stage_id for stage_id, _ in stages]
        sequences = dict(stages)
        deltas: FrequencyDeltas = defaultdict(lambda: defaultdict(OutcomeCounts))

        for lead in leads_values:
            if target_state is not None:
                won = lead.weight if target_state is LeadState.WON else 0
                lost = lead.weight if target_state is LeadState.LOST else 0
            else:
                won = lead.weight if lead.probability == 100 else 0
                lost = lead.weight if lead.probability == 0 else 0
            if not won and not lost:
                continue

            team_counts = deltas[lead.team_id]
            for name, value in lead.values:
                if name != STAGE_FIELD:
                    team_counts[(name, frequency_value(value))].add(won, lost)
                    continue
                if won:
                    stage_ids = all_stage_ids
                elif value in sequences:
                    stage_ids = [stage_id for stage_id, sequence in stages if sequence <= sequences[value]]
                else:
                    stage_ids = [value]
                for stage_id in stage_ids:
                    team_counts[(name, frequency_value(stage_id))].add(won, lost)

        return {team_id: dict(counts) for team_id, counts in deltas.items()}

    # Reading

    def load_existing(
        self, session: Session, fields: Iterable[str], team_ids: Iterable[TeamId]
    ) -> dict[FrequencyKey, ScoringFrequency]:
        """Entries of ``fields`` for the given teams; ``None`` selects the no-team bucket."""

        fields = sorted(set(fields))
        real_team_ids = sorted({team_id for team_id in team_ids if team_id})
        if not fields:
            return {}
        stmt = select(ScoringFrequency).where(
            ScoringFrequency.variable.in_(fields),
            or_(ScoringFrequency.team_id.in_(real_team_ids), ScoringFrequency.team_id.is_(None)),
        )
        return {(entry.team_id, entry.variable, entry.value): entry for entry in session.scalars(stmt)}

    def load_frame(self, session: Session, fields: Iterable[str]) -> pd.DataFrame:
        """Entries of ``fields`` as a DataFrame ordered by team then id.

        The no-team bucket is reported under :data:`NO_TEAM_KEY`.
        """

        columns = ["id", "team_id", "variable", "value", "won_count", "lost_count"]
        fields = sorted(set(fields))
        if not fields:
            return pd.DataFrame(columns=columns)
        stmt = (
            select(
                ScoringFrequency.id,
                func.coalesce(ScoringFrequency.team_id, NO_TEAM_KEY).label("team_id"),
                ScoringFrequency.variable,
                ScoringFrequency.value,
                ScoringFrequency.won_count,
                ScoringFrequency.lost_count,
            )
            .where(ScoringFrequency.variable.in_(fields))
            .order_by(ScoringFrequency.team_id.asc(), ScoringFrequency.id.asc())
        )
        return pd.DataFrame([tuple(row) for row in session.execute(stmt)], columns=columns)

    # Writing

    def apply(
        self,
        session: Session,
        deltas: FrequencyDeltas,
        step: int,
        existing: dict[FrequencyKey, ScoringFrequency] | None = None,
    ) -> tuple[int, int]:
        """Add ``deltas * step`` to the table, returning ``(updated, created)``.

        Known couples are updated in place and clamped to the smoothing floor.
        Unknown couples are inserted with the smoothing constant added.
        """

        existing = existing or {}
        updated = 0
        to_create: list[dict[str, object]] = []
        for team_id, counts in deltas.items():
            for (name, value), delta in counts.items():
                entry = existing.get((team_id, name, value))
                if entry is not None:
                    entry.won_count = clamp_count(entry.won_count + delta.won * step)
                    entry.lost_count = clamp_count(entry.lost_count + delta.lost * step)
                    updated += 1
                    continue
                to_create.append(
                    {
                        "variable": name,
                        "value": value,
                        "won_count": max(delta.won * step, 0) + LAPLACE_SMOOTHING,
                        "lost_count": max(delta.lost * step, 0) + LAPLACE_SMOOTHING,
                        "team_id": team_id or None,
                    }
                )

        if to_create:
            session.execute(insert(ScoringFrequency), to_create)
        session.flush()
        return updated, len(to_create)

    def truncate(self, session: Session) -> int:
        result = session.execute(delete(ScoringFrequency))
        return result.rowcount or 0

    def merge_into_no_team(self, session: Session, team_ids: Iterable[int]) -> int:
        """Fold the entries of ``team_ids`` into the no-team bucket and drop them.

        Used before teams are removed so their history keeps feeding the global
        statistics. Void entries (both counts at the smoothing floor) are
        skipped. When the no-team bucket already has the couple, both sides are
        rounded half-up to whole counts before being summed.
        """

        team_ids = sorted(set(team_ids))
        if not team_ids:
            return 0
        frequencies = list(
            session.scalars(
                select(ScoringFrequency)
                .where(ScoringFrequency.team_id.in_(team_ids))
                .order_by(ScoringFrequency.id)
            )
        )
        if not frequencies:
            return 0

        variables = sorted({entry.variable for entry in frequencies})
        no_team = {
            (entry.variable, entry.value): entry
            for entry in session.scalars(
                select(ScoringFrequency).where(
                    ScoringFrequency.team_id.is_(None), ScoringFrequency.variable.in_(variables)
                )
            )
        }

        merged = 0
        for entry in frequencies:
            if round(entry.won_count, 2) <= LAPLACE_SMOOTHING and round(entry.lost_count, 2) <= LAPLACE_SMOOTHING:
                continue
            match = no_team.get((entry.variable, entry.value))
            if match is not None:
                match.won_count = clamp_count(_round_half_up(match.won_count) + _round_half_up(entry.won_count))
                match.lost_count = clamp_count(_round_half_up(match.lost_count) + _round_half_up(entry.lost_count))
            else:
                created = ScoringFrequency(
                    variable=entry.variable,
                    value=entry.value,
                    won_count=clamp_count(entry.won_count),
                    lost_count=clamp_count(entry.lost_count),
                    team_id=None,
                )
                session.add(created)
                no_team[(entry.variable, entry.value)] = created
            merged += 1

        for entry in frequencies:
            session.delete(entry)
        session.flush()
        logger.info("Merged %s frequencies of teams %s into the no-team bucket", merged, team_ids)
        return merged


__all__ = [
    "LAPLACE_SMOOTHING",
    "NO_TEAM_KEY",
    "FrequencyDeltas",
    "FrequencyKey",
    "FrequencyStore",
    "OutcomeCounts",
    "clamp_count",
]
