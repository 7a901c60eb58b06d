"""Won/lost state machine driving live frequency updates."""

from __future__ import annotations

from enum import Enum

from plscore.storage.models import Lead


class LeadState(str, Enum):
    """Outcome state of a lead as seen by the frequency table."""

    OPEN = "none"
    WON = "won"
    LOST = "lost"

    @classmethod
    def _missing_(cls, value: object) -> LeadState | None:
        if value is None or value in ("", "open"):
            return cls.OPEN
        return None


def lead_state(lead: Lead) -> LeadState:
    """Current state of a persisted lead."""

    if lead.probability == 100:
        return LeadState.WON
    if not lead.active and lead.probability == 0:
        return LeadState.LOST
    return LeadState.OPEN


def transition_effects(from_state: LeadState, to_state: LeadState) -> list[tuple[LeadState, int]]:
    """Frequency side effects of moving from ``from_state`` to ``to_state``.

    Each effect is ``(counted_state, step)``: leaving a closed state removes the
    lead from its count (-1), reaching one adds it (+1). Re-writing the same
    state has no effect.
    """

    if from_state == to_state:
        return []
    effects: list[tuple[LeadState, int]] = []
    if from_state is not LeadState.OPEN:
        effects.append((from_state, -1))
    if to_state is not LeadState.OPEN:
        effects.append((to_state, 1))
    return effects


__all__ = ["LeadState", "lead_state", "transition_effects"]
