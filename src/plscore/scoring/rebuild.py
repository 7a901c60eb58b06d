"""One shot rebuild of the frequency table and bulk probability refresh.

Used by the scheduled job and whenever the scoring criteria (fields, start
date) change. The refresh may touch a huge number of leads, so it computes by
chunks and writes by small batches, each batch in its own transaction: a
concurrent update simply waits for the short lock instead of the whole job.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from collections.abc import Iterator, Sequence
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import TypeVar

from sqlalchemy import ColumnElement, and_, case, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from plscore.core.config import ScoringConfig, TransactionBoundary
from plscore.core.exceptions import ScoringAccessError
from plscore.core.protocols import AccessPolicy, StaticAccessPolicy
from plscore.features.extractor import FeatureExtractor
from plscore.storage.models import Lead

from .classifier import NaiveBayesClassifier
from .frequencies import FrequencyStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RebuildReport:
    """Outcome of a frequency table rebuild."""

    deleted: int = 0
    closed_leads: int = 0
    created: int = 0
    duration: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {key: float(value) for key, value in asdict(self).items()}


@dataclass
class RefreshReport:
    """Outcome of an automated probability refresh."""

    leads: int = 0
    computed: int = 0
    transactions: int = 0
    failed: int = 0
    duration: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {key: float(value) for key, value in asdict(self).items()}


def split_every(size: int, items: Sequence[T]) -> Iterator[Sequence[T]]:
    for index in range(0, len(items), size):
        yield items[index : index + size]


def _start_of(day: date) -> datetime:
    return datetime.combine(day, datetime.min.time())


def open_probability_criterion() -> ColumnElement[bool]:
    """Probability unset or strictly between 0 and 100."""

    return or_(Lead.probability.is_(None), and_(Lead.probability > 0, Lead.probability < 100))


def closed_lead_criteria(start_date: date) -> list[ColumnElement[bool]]:
    """Won (probability 100) or lost (probability 0 and archived) since ``start_date``."""

    return [
        Lead.created_at >= _start_of(start_date),
        or_(Lead.probability == 100, and_(Lead.probability == 0, Lead.active.is_(False))),
    ]


def pending_lead_criteria(start_date: date) -> list[ColumnElement[bool]]:
    """Open leads with a stage, created since ``start_date``."""

    return [
        Lead.stage_id.is_not(None),
        Lead.created_at >= _start_of(start_date),
        open_probability_criterion(),
    ]


class BatchRebuilder:
    """Two-phase maintenance job over the whole lead table."""

    def __init__(
        self,
        extractor: FeatureExtractor,
        classifier: NaiveBayesClassifier,
        store: FrequencyStore,
        config: ScoringConfig,
        access_policy: AccessPolicy | None = None,
    ):
        self.extractor = extractor
        self.classifier = classifier
        self.store = store
        self.config = config
        self.access_policy = access_policy or StaticAccessPolicy()

    def rebuild_frequency_table(
        self,
        session: Session,
        start_date: date | None = None,
        *,
        transaction_boundary: TransactionBoundary | None = None,
    ) -> RebuildReport:
        """Empty the frequency table and rebuild it from every closed lead."""

        if not self.access_policy.can_reset_frequencies():
            raise ScoringAccessError("You don't have the access needed to rebuild the lead scoring frequencies.")

        report = RebuildReport()
        start_date = start_date or self.config.safe_start_date()
        if start_date is None:
            logger.info("Predictive Lead Scoring : no valid start date, frequency table left untouched")
            return report

        started = time.time()
        report.deleted = self.store.truncate(session)

        leads_values = self.extractor.extract_bulk(session, closed_lead_criteria(start_date))
        report.closed_leads = len(leads_values)
        deltas = self.store.prepare(leads_values.values(), self.store.stage_sequences(session))
        _, report.created = self.store.apply(session, deltas, 1)

        if (transaction_boundary or self.config.transaction_boundary) == "sub_batch":
            session.commit()
        report.duration = time.time() - started
        logger.info(
            "Predictive Lead Scoring : frequency table rebuilt (%s closed leads / %s frequencies)",
            report.closed_leads,
            report.created,
        )
        return report

    def compute_chunk(self, session: Session, lead_ids: Sequence[int]) -> dict[int, float]:
        """Classify one chunk of open leads with bulk extraction."""

        criteria = [Lead.active.is_(True), Lead.id.in_(list(lead_ids)), open_probability_criterion()]
        return self.classifier.predict(session, self.extractor.extract_bulk(session, criteria))

    def refresh_all_open_probabilities(
        self,
        session: Session,
        start_date: date | None = None,
        *,
        transaction_boundary: TransactionBoundary | None = None,
    ) -> RefreshReport:
        """Recompute ``automated_probability`` of every open lead.

        ``probability`` follows only where it was unset or still equal to the
        previous automated value; manual overrides are kept. With the
        ``sub_batch`` boundary each update batch is committed on its own; with
        ``whole_job`` batches run in savepoints and the caller commits.
        """

        report = RefreshReport()
        start_date = start_date or self.config.safe_start_date()
        if start_date is None:
            logger.info("Predictive Lead Scoring : no valid start date, probabilities left untouched")
            return report
        boundary = transaction_boundary or self.config.transaction_boundary

        started = time.time()
        session.flush()
        lead_ids = list(session.scalars(select(Lead.id).where(*pending_lead_criteria(start_date)).order_by(Lead.id)))
        report.leads = len(lead_ids)

        probabilities: dict[int, float] = {}
        for chunk in split_every(self.config.compute_batch_size, lead_ids):
            probabilities.update(self.compute_chunk(session, chunk))
        report.computed = len(probabilities)
        logger.info("Predictive Lead Scoring : new automated probabilities computed for %s leads", report.computed)

        # One UPDATE per probability value keeps round trips low.
        leads_by_probability: dict[float, list[int]] = defaultdict(list)
        for lead_id, probability in sorted(probabilities.items()):
            leads_by_probability[probability].append(lead_id)

        for probability, probability_lead_ids in leads_by_probability.items():
            for batch in split_every(self.config.update_batch_size, probability_lead_ids):
                report.transactions += 1
                try:
                    self._write_batch(session, probability, batch, boundary)
                except SQLAlchemyError as exc:
                    report.failed += 1
                    logger.warning("Predictive Lead Scoring : update transaction failed. Error: %s", exc)

        session.expire_all()
        report.duration = time.time() - started
        logger.info(
            "Predictive Lead Scoring : all automated probabilities updated "
            "(%s leads / %s transactions (%s failed) / %.2f seconds)",
            report.leads,
            report.transactions,
            report.failed,
            report.duration,
        )
        return report

    def _write_batch(
        self, session: Session, probability: float, lead_ids: Sequence[int], boundary: TransactionBoundary
    ) -> None:
        stmt = (
            update(Lead)
            .where(Lead.id.in_(list(lead_ids)))
            .values(
                automated_probability=probability,
                probability=case(
                    (or_(Lead.probability == Lead.automated_probability, Lead.probability.is_(None)), probability),
                    else_=Lead.probability,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        if boundary == "whole_job":
            with session.begin_nested():
                session.execute(stmt)
            return
        try:
            session.execute(stmt)
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise


__all__ = [
    "BatchRebuilder",
    "RebuildReport",
    "RefreshReport",
    "closed_lead_criteria",
    "open_probability_criterion",
    "pending_lead_criteria",
    "split_every",
]
