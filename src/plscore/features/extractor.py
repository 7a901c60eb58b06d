"""Extraction of the (field, value) pairs used to score leads."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import ColumnElement, select
from sqlalchemy.orm import Session

from plscore.core.config import ScoringConfig
from plscore.storage.models import Lead, lead_tag_rel

from .schema import (
    KNOWN_FIELDS,
    QUALITY_FIELDS,
    SCALAR_FEATURES,
    STAGE_FIELD,
    TAG_FIELD,
    TAGS_WHITELIST_NAME,
    TEAM_FIELD,
)

logger = logging.getLogger(__name__)

Criteria = Sequence[ColumnElement[bool]]


@dataclass
class LeadValues:
    """Scoring view of one lead: its team plus every (field, value) pair."""

    lead_id: int
    team_id: int | None
    values: list[tuple[str, Any]] = field(default_factory=list)
    probability: float | None = None
    weight: int = 1

    @property
    def fields(self) -> set[str]:
        return {name for name, _ in self.values}

    @property
    def has_stage(self) -> bool:
        return STAGE_FIELD in self.fields


class FeatureExtractor:
    """Turn leads into scoring pairs.

    The configured whitelist is resolved once, against the static lead schema,
    when the extractor is built. Stage and team are always part of it; team is
    kept apart from the pairs as :attr:`LeadValues.team_id`.
    """

    def __init__(self, config: ScoringConfig):
        self.config = config
        whitelist = config.safe_fields(KNOWN_FIELDS)
        self.use_tags = TAGS_WHITELIST_NAME in whitelist
        self.scalar_fields: list[str] = [STAGE_FIELD]
        for name in whitelist:
            if name in (STAGE_FIELD, TEAM_FIELD, TAGS_WHITELIST_NAME) or name in self.scalar_fields:
                continue
            self.scalar_fields.append(name)

    @property
    def fields(self) -> list[str]:
        """Every pair name this extractor can produce."""

        return self.scalar_fields + ([TAG_FIELD] if self.use_tags else [])

    def _pair(self, name: str, value: Any) -> tuple[str, Any] | None:
        if value:
            return name, value
        if name in QUALITY_FIELDS:
            return name, False
        return None

    def extract_records(self, leads: Iterable[Lead]) -> dict[int, LeadValues]:
        """Per-record extraction from already loaded leads."""

        result: dict[int, LeadValues] = {}
        for lead in leads:
            values: list[tuple[str, Any]] = []
            for name in self.scalar_fields:
                pair = self._pair(name, getattr(lead, name))
                if pair is not None:
                    values.append(pair)
            if self.use_tags:
                values.extend((TAG_FIELD, tag.id) for tag in lead.tags)
            result[lead.id] = LeadValues(
                lead_id=lead.id,
                team_id=lead.team_id or None,
                values=values,
                probability=lead.probability,
            )
        return result

    def extract_bulk(self, session: Session, criteria: Criteria) -> dict[int, LeadValues]:
        """Bulk extraction for every lead matching ``criteria``.

        Issues one query for scalar columns and one for tag associations,
        whatever the number of matching leads.
        """

        columns = [Lead.id, Lead.team_id, Lead.probability] + [SCALAR_FEATURES[name] for name in self.scalar_fields]
        stmt = select(*columns).where(*criteria).order_by(Lead.team_id.asc(), Lead.id.desc())

        result: dict[int, LeadValues] = {}
        for row in session.execute(stmt).mappings():
            values: list[tuple[str, Any]] = []
            for name in self.scalar_fields:
                pair = self._pair(name, row[name])
                if pair is not None:
                    values.append(pair)
            result[row["id"]] = LeadValues(
                lead_id=row["id"],
                team_id=row["team_id"] or None,
                values=values,
                probability=row["probability"],
            )

        if self.use_tags and result:
            tag_stmt = (
                select(lead_tag_rel.c.lead_id, lead_tag_rel.c.tag_id)
                .join(Lead, Lead.id == lead_tag_rel.c.lead_id)
                .where(*criteria)
                .order_by(Lead.team_id.asc(), Lead.id.asc(), lead_tag_rel.c.tag_id.asc())
            )
            for lead_id, tag_id in session.execute(tag_stmt):
                if tag_id and lead_id in result:
                    result[lead_id].values.append((TAG_FIELD, tag_id))

        logger.debug("Extracted scoring values for %s leads", len(result))
        return result

    def extract(self, session: Session, leads: Sequence[Lead], *, bulk: bool | None = None) -> dict[int, LeadValues]:
        """Extract ``leads`` with the strategy suited to their number.

        ``bulk=None`` picks bulk queries above ``config.bulk_threshold`` leads.
        Bulk mode reads committed or flushed state from the store.
        """

        if bulk is None:
            bulk = len(leads) > self.config.bulk_threshold
        if not bulk:
            return self.extract_records(leads)
        session.flush()
        return self.extract_bulk(session, [Lead.id.in_([lead.id for lead in leads])])


__all__ = ["Criteria", "FeatureExtractor", "LeadValues"]
