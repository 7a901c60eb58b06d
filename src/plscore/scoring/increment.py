"""Live increment of the frequency table on won/lost transitions.

The update must run before the lead is written: once the new values are
stored, the state the lead is leaving (and so the count to decrement) is lost.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Mapping, Sequence, Set
from datetime import date
from typing import Any

from sqlalchemy.orm import Session

from plscore.core.config import ScoringConfig
from plscore.features.extractor import FeatureExtractor
from plscore.storage.models import Lead

from .frequencies import FrequencyStore
from .states import LeadState, lead_state, transition_effects

logger = logging.getLogger(__name__)


class LiveIncrementer:
    """Keep frequencies in sync with each lead reaching or leaving won/lost."""

    def __init__(self, extractor: FeatureExtractor, store: FrequencyStore, config: ScoringConfig):
        self.extractor = extractor
        self.store = store
        self.config = config

    def on_state_transition(
        self,
        session: Session,
        leads: Sequence[Lead],
        from_state: LeadState | str | None,
        to_state: LeadState | str | None,
        *,
        start_date: date | None = None,
    ) -> int:
        """Apply the frequency effects of moving ``leads`` between states.

        Leads must still hold their pre-transition values. Only leads created on
        or after the cutoff date count. Returns the number of leads applied.
        """

        effects = transition_effects(LeadState(from_state), LeadState(to_state))
        if not effects or not leads:
            return 0

        start_date = start_date or self.config.safe_start_date()
        if start_date is None:
            logger.debug("No valid lead scoring start date, frequencies left untouched")
            return 0

        eligible = [lead for lead in leads if lead.created_at is None or lead.created_at.date() >= start_date]
        if not eligible:
            return 0

        leads_values = self.extractor.extract_records(eligible)
        stages = self.store.stage_sequences(session)
        fields = {name for values in leads_values.values() for name in values.fields}
        team_ids = {values.team_id for values in leads_values.values()}

        for state, step in effects:
            deltas = self.store.prepare(leads_values.values(), stages, target_state=state)
            existing = self.store.load_existing(session, fields, team_ids)
            updated, created = self.store.apply(session, deltas, step, existing)
            logger.debug(
                "Live increment %s (%+d) for %s leads: %s updated, %s created",
                state.value,
                step,
                len(eligible),
                updated,
                created,
            )
        return len(eligible)

    def target_state(self, lead: Lead, changes: Mapping[str, Any], won_stage_ids: Set[int]) -> LeadState:
        """State ``lead`` ends up in once ``changes`` are written.

        Same rules as :func:`lead_state` applied to the written values, so an
        archived lead only counts as lost once its probability is 0. Moving a
        won lead to another stage without a new probability reopens it.
        """

        if changes.get("stage_id") in won_stage_ids:
            return LeadState.WON
        if lead_state(lead) is LeadState.WON and "stage_id" in changes and "probability" not in changes:
            return LeadState.OPEN

        probability = changes.get("probability", lead.probability)
        active = changes.get("active", lead.active)
        if probability == 100:
            return LeadState.WON
        if not active and probability == 0:
            return LeadState.LOST
        return LeadState.OPEN

    def handle_write(
        self,
        session: Session,
        leads: Sequence[Lead],
        changes: Mapping[str, Any],
        *,
        start_date: date | None = None,
    ) -> int:
        """Dispatch the transitions implied by a pending write of ``changes``.

        Covers marking lost (archived at probability 0), restoring a lost lead,
        reaching a won stage and moving out of one. Call before writing.
        """

        if not {"stage_id", "active", "probability"} & set(changes):
            return 0

        won_stage_ids = frozenset(self.store.won_stage_ids(session))
        groups: dict[tuple[LeadState, LeadState], list[Lead]] = defaultdict(list)
        for lead in leads:
            from_state = lead_state(lead)
            to_state = self.target_state(lead, changes, won_stage_ids)
            if from_state is not to_state:
                groups[(from_state, to_state)].append(lead)

        applied = 0
        for (from_state, to_state), group in groups.items():
            applied += self.on_state_transition(session, group, from_state, to_state, start_date=start_date)
        return applied


__all__ = ["LiveIncrementer"]
