"""Configuration model for the predictive lead scoring engine."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from typing import Any, Literal, cast

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

TransactionBoundary = Literal["sub_batch", "whole_job"]

DEFAULT_PLS_FIELDS = "phone_state,email_state,country_id,source_id,lang_code,tag_ids"

# Benchmarked values: large compute chunks, small update transactions.
PLS_COMPUTE_BATCH_STEP = 50000
PLS_UPDATE_BATCH_STEP = 5000
TAG_MIN_SAMPLES = 50


class ScoringConfig(BaseModel):
    """Raw scoring parameters as stored in external configuration.

    ``fields`` and ``start_date`` are kept as the strings they are stored as and
    only interpreted through :meth:`safe_fields` and :meth:`safe_start_date`, so a
    stale or malformed value never prevents the settings from loading.
    """

    fields: str = Field(default=DEFAULT_PLS_FIELDS)
    start_date: str | None = Field(default=None)
    compute_batch_size: int = Field(default=PLS_COMPUTE_BATCH_STEP, ge=1)
    update_batch_size: int = Field(default=PLS_UPDATE_BATCH_STEP, ge=1)
    tag_min_samples: float = Field(default=TAG_MIN_SAMPLES, ge=0)
    bulk_threshold: int = Field(default=1000, ge=1)
    transaction_boundary: TransactionBoundary = "sub_batch"

    @field_validator("start_date", mode="before")
    @classmethod
    def _stringify_date(cls, value: Any) -> Any:
        # YAML parses bare ISO dates into ``date`` objects.
        if isinstance(value, date):
            return value.isoformat()
        return value

    def safe_fields(self, known_fields: Iterable[str]) -> list[str]:
        """Whitelisted field names that exist in ``known_fields``, in config order."""

        known = set(known_fields)
        requested = [name.strip() for name in (self.fields or "").split(",") if name.strip()]
        safe: list[str] = []
        for name in requested:
            if name not in known:
                logger.debug("Ignoring unknown lead scoring field '%s'", name)
                continue
            if name not in safe:
                safe.append(name)
        return safe

    def safe_start_date(self) -> date | None:
        """Parsed cutoff date or ``None`` when unset or malformed."""

        if not self.start_date:
            return None
        try:
            return date.fromisoformat(self.start_date.strip()[:10])
        except ValueError:
            logger.info("Lead scoring start date '%s' is not a valid date", self.start_date)
            return None

    @classmethod
    def from_mapping(cls, mapping: dict[str, Any]) -> ScoringConfig:
        """Build configuration from an in-memory mapping (useful for tests)."""

        return cast("ScoringConfig", cls.model_validate(mapping))


__all__ = [
    "DEFAULT_PLS_FIELDS",
    "PLS_COMPUTE_BATCH_STEP",
    "PLS_UPDATE_BATCH_STEP",
    "TAG_MIN_SAMPLES",
    "ScoringConfig",
    "TransactionBoundary",
]
