"""Static descriptor of the lead columns usable as scoring features."""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import InstrumentedAttribute

from plscore.storage.models import Lead

STAGE_FIELD = "stage_id"
TEAM_FIELD = "team_id"
TAG_FIELD = "tag"
TAGS_WHITELIST_NAME = "tag_ids"

# An unset quality flag is itself meaningful and is kept as ``False``.
QUALITY_FIELDS: frozenset[str] = frozenset({"email_state", "phone_state"})

SCALAR_FEATURES: dict[str, InstrumentedAttribute[Any]] = {
    STAGE_FIELD: Lead.stage_id,
    TEAM_FIELD: Lead.team_id,
    "country_id": Lead.country_id,
    "source_id": Lead.source_id,
    "lang_code": Lead.lang_code,
    "email_state": Lead.email_state,
    "phone_state": Lead.phone_state,
}

KNOWN_FIELDS: frozenset[str] = frozenset(SCALAR_FEATURES) | {TAGS_WHITELIST_NAME}


def frequency_value(value: Any) -> str:
    """String form under which a feature value is stored in the frequency table."""

    return str(value)


__all__ = [
    "KNOWN_FIELDS",
    "QUALITY_FIELDS",
    "SCALAR_FEATURES",
    "STAGE_FIELD",
    "TAGS_WHITELIST_NAME",
    "TAG_FIELD",
    "TEAM_FIELD",
    "frequency_value",
]
