"""Naive Bayes estimation of the probability that a lead will be won.

Following Bayes' theorem, the chance to win under a set of conditions is
proportional to the chance to win under each condition separately times the
overall chance to win. A won score and a lost score are computed that way and
normalised::

    S(won | A, B) = P(A | won) * P(B | won) * P(won)
    probability   = S(won) / (S(won) + S(lost))

Each condition is one (field, value) couple of the lead, ``P(A | won)`` being
the won count of the couple over the won total of its field.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

import pandas as pd
from sqlalchemy.orm import Session

from plscore.core.config import TAG_MIN_SAMPLES
from plscore.features.extractor import LeadValues
from plscore.features.schema import STAGE_FIELD, TAG_FIELD, frequency_value

from .frequencies import NO_TEAM_KEY, FrequencyStore

logger = logging.getLogger(__name__)

GLOBAL_BUCKET = -1
MIN_PROBABILITY = 0.01
MAX_PROBABILITY = 99.99

Counts = tuple[float, float]


@dataclass
class FrequencyTables:
    """Aggregated frequencies per team bucket.

    ``GLOBAL_BUCKET`` aggregates every entry, no-team bucket included, and
    scores leads whose team has no frequency at all.
    """

    teams: set[int] = field(default_factory=set)
    value_counts: dict[tuple[int, str, str], Counts] = field(default_factory=dict)
    field_totals: dict[tuple[int, str], Counts] = field(default_factory=dict)
    team_totals: dict[int, Counts] = field(default_factory=dict)

    @classmethod
    def from_frame(
        cls, frame: pd.DataFrame, first_stage_id: int | None, *, tag_min_samples: float = TAG_MIN_SAMPLES
    ) -> FrequencyTables:
        teams = {int(team_id) for team_id in frame["team_id"].unique() if int(team_id) != NO_TEAM_KEY}
        frame = _drop_rare_tags(frame, tag_min_samples)

        combined = pd.concat(
            [frame.loc[frame["team_id"] != NO_TEAM_KEY], frame.assign(team_id=GLOBAL_BUCKET)],
            ignore_index=True,
        )
        by_value = combined.groupby(["team_id", "variable", "value"])[["won_count", "lost_count"]].sum()
        by_field = combined.groupby(["team_id", "variable"])[["won_count", "lost_count"]].sum()

        value_counts = {
            (int(team_id), variable, value): (float(won), float(lost))
            for (team_id, variable, value), won, lost in zip(
                by_value.index, by_value["won_count"], by_value["lost_count"]
            )
        }
        field_totals = {
            (int(team_id), variable): (float(won), float(lost))
            for (team_id, variable), won, lost in zip(by_field.index, by_field["won_count"], by_field["lost_count"])
        }

        # Every closed lead went through the first stage: its counts are the
        # team won/lost totals without counting a lead once per stage.
        team_totals: dict[int, Counts] = {}
        for team_id in teams | {GLOBAL_BUCKET}:
            if first_stage_id is None:
                team_totals[team_id] = (0.0, 0.0)
                continue
            team_totals[team_id] = value_counts.get(
                (team_id, STAGE_FIELD, frequency_value(first_stage_id)), (0.0, 0.0)
            )

        return cls(teams=teams, value_counts=value_counts, field_totals=field_totals, team_totals=team_totals)

    def score(self, lead: LeadValues) -> float | None:
        """Won probability in percent, or ``None`` when the lead's team cannot be scored."""

        team_id = lead.team_id if lead.team_id in self.teams else GLOBAL_BUCKET
        team_won, team_lost = self.team_totals.get(team_id, (0.0, 0.0))
        if not team_won or not team_lost:
            return None

        team_total = team_won + team_lost
        score_won = team_won / team_total
        score_lost = team_lost / team_total
        for name, value in lead.values:
            counts = self.value_counts.get((team_id, name, frequency_value(value)))
            if counts is None:
                continue
            if name == STAGE_FIELD:
                total_won, total_lost = team_won, team_lost
            else:
                total_won, total_lost = self.field_totals.get((team_id, name), (0.0, 0.0))
            if not total_won or not total_lost:
                continue
            score_won *= counts[0] / total_won
            score_lost *= counts[1] / total_lost

        if not score_won + score_lost:
            return None
        probability = round(100 * score_won / (score_won + score_lost), 2)
        return min(max(probability, MIN_PROBABILITY), MAX_PROBABILITY)


def _drop_rare_tags(frame: pd.DataFrame, tag_min_samples: float) -> pd.DataFrame:
    """Remove tags observed fewer than ``tag_min_samples`` times over all teams."""

    is_tag = frame["variable"] == TAG_FIELD
    if not is_tag.any():
        return frame
    tag_totals = frame.loc[is_tag].groupby("value")[["won_count", "lost_count"]].sum().sum(axis=1)
    rare = tag_totals.index[tag_totals < tag_min_samples]
    if len(rare):
        logger.debug("Ignoring %s tags below %s samples", len(rare), tag_min_samples)
    return frame.loc[~(is_tag & frame["value"].isin(rare))]


class NaiveBayesClassifier:
    """Score leads from the current content of the frequency table."""

    def __init__(self, store: FrequencyStore | None = None, *, tag_min_samples: float = TAG_MIN_SAMPLES):
        self.store = store or FrequencyStore()
        self.tag_min_samples = tag_min_samples

    def build_tables(self, session: Session, fields: list[str]) -> FrequencyTables:
        frame = self.store.load_frame(session, fields)
        return FrequencyTables.from_frame(
            frame, self.store.first_stage_id(session), tag_min_samples=self.tag_min_samples
        )

    def predict(self, session: Session, leads_values: Mapping[int, LeadValues]) -> dict[int, float]:
        """Probability per lead id.

        A lead without stage scores 0 and a lead in a won stage scores 100.
        Leads of teams lacking won or lost history are left out of the result.
        """

        probabilities: dict[int, float] = {}
        if not leads_values:
            return probabilities

        won_stage_ids = self.store.won_stage_ids(session)
        fields = sorted({name for lead in leads_values.values() for name in lead.fields})
        tables = self.build_tables(session, fields)

        for lead_id, lead in leads_values.items():
            if not lead.has_stage:
                probabilities[lead_id] = 0.0
                continue
            if any(name == STAGE_FIELD and value in won_stage_ids for name, value in lead.values):
                probabilities[lead_id] = 100.0
                continue
            probability = tables.score(lead)
            if probability is not None:
                probabilities[lead_id] = probability

        skipped = len(leads_values) - len(probabilities)
        if skipped:
            logger.debug("%s leads left unscored for lack of won/lost history", skipped)
        return probabilities


__all__ = ["GLOBAL_BUCKET", "FrequencyTables", "NaiveBayesClassifier"]
