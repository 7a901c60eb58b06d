"""Facade wiring extraction, classification and both frequency update strategies."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from plscore.core.config import ScoringConfig, TransactionBoundary
from plscore.core.protocols import AccessPolicy, StaticAccessPolicy
from plscore.features.extractor import Criteria, FeatureExtractor, LeadValues
from plscore.storage.models import Lead
from plscore.tracking import JobTracker, NullJobTracker, build_tracker

from .classifier import NaiveBayesClassifier
from .frequencies import FrequencyStore
from .increment import LiveIncrementer
from .rebuild import BatchRebuilder, RebuildReport, RefreshReport
from .states import LeadState

if TYPE_CHECKING:
    from plscore.config.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class CronReport:
    rebuild: RebuildReport = field(default_factory=RebuildReport)
    refresh: RefreshReport = field(default_factory=RefreshReport)
    duration: float = 0.0

    def to_metrics(self) -> dict[str, float]:
        metrics = {f"rebuild_{key}": value for key, value in self.rebuild.to_dict().items()}
        metrics.update({f"refresh_{key}": value for key, value in self.refresh.to_dict().items()})
        metrics["duration"] = self.duration
        return metrics


class ScoringEngine:
    """Entry points used by the CRM, the HTTP service and the scheduler.

    Nothing is read from ambient state: the whitelist, the cutoff date and the
    batch sizes come from ``config``; teams come from the leads themselves.
    """

    def __init__(
        self,
        config: ScoringConfig,
        *,
        access_policy: AccessPolicy | None = None,
        tracker: JobTracker | None = None,
    ):
        self.config = config
        self.store = FrequencyStore()
        self.extractor = FeatureExtractor(config)
        self.classifier = NaiveBayesClassifier(self.store, tag_min_samples=config.tag_min_samples)
        self.incrementer = LiveIncrementer(self.extractor, self.store, config)
        self.rebuilder = BatchRebuilder(
            self.extractor,
            self.classifier,
            self.store,
            config,
            access_policy=access_policy or StaticAccessPolicy(),
        )
        self.tracker = tracker or NullJobTracker()

    @classmethod
    def from_settings(cls, settings: Settings, *, access_policy: AccessPolicy | None = None) -> ScoringEngine:
        return cls(settings.scoring, access_policy=access_policy, tracker=build_tracker(settings.tracking))

    # Scoring

    def _extract(
        self,
        session: Session,
        leads: Sequence[Lead] | None,
        lead_ids: Sequence[int] | None,
        criteria: Criteria | None,
        batch_mode: bool | None,
    ) -> Mapping[int, LeadValues]:
        if criteria is not None:
            return self.extractor.extract_bulk(session, criteria)
        if lead_ids is not None:
            ids = list(dict.fromkeys(lead_ids))
            if batch_mode or (batch_mode is None and len(ids) > self.config.bulk_threshold):
                return self.extractor.extract_bulk(session, [Lead.id.in_(ids)])
            records = session.scalars(select(Lead).where(Lead.id.in_(ids)).order_by(Lead.id)).all()
            return self.extractor.extract_records(records)
        return self.extractor.extract(session, list(leads or []), bulk=batch_mode)

    def recompute_probabilities(
        self,
        session: Session,
        leads: Sequence[Lead] | None = None,
        *,
        lead_ids: Sequence[int] | None = None,
        criteria: Criteria | None = None,
        batch_mode: bool | None = None,
    ) -> dict[int, float]:
        """Won probability of the targeted leads, without writing anything.

        Target leads either as loaded records, as ids or as SQL criteria over the
        lead table (criteria always go through bulk extraction).
        """

        leads_values = self._extract(session, leads, lead_ids, criteria, batch_mode)
        return self.classifier.predict(session, leads_values)

    def apply_computed_probabilities(
        self, session: Session, leads: Sequence[Lead], probabilities: Mapping[int, float] | None = None
    ) -> int:
        """Store fresh automated probabilities on ``leads``.

        ``probability`` follows when it was unset or still automated and the lead
        is active. Returns the number of leads updated.
        """

        if probabilities is None:
            probabilities = self.recompute_probabilities(session, leads)
        updated = 0
        for lead in leads:
            if lead.id not in probabilities:
                continue
            follows = lead.active and (lead.probability is None or lead.is_automated_probability)
            lead.automated_probability = probabilities[lead.id]
            if follows:
                lead.probability = lead.automated_probability
            updated += 1
        session.flush()
        return updated

    def reset_to_automated(self, leads: Iterable[Lead]) -> int:
        """Drop manual overrides: ``probability`` takes the automated value again."""

        count = 0
        for lead in leads:
            lead.probability = lead.automated_probability
            count += 1
        return count

    # Live updates

    def on_state_transition(
        self,
        session: Session,
        leads: Sequence[Lead],
        from_state: LeadState | str | None,
        to_state: LeadState | str | None,
    ) -> int:
        return self.incrementer.on_state_transition(session, leads, from_state, to_state)

    def handle_write(self, session: Session, leads: Sequence[Lead], changes: Mapping[str, Any]) -> int:
        return self.incrementer.handle_write(session, leads, changes)

    def merge_team_frequencies(self, session: Session, team_ids: Iterable[int]) -> int:
        """Keep the history of teams about to be removed in the no-team bucket."""

        return self.store.merge_into_no_team(session, team_ids)

    # Maintenance

    def rebuild_frequency_table(
        self,
        session: Session,
        start_date: date | None = None,
        *,
        transaction_boundary: TransactionBoundary | None = None,
    ) -> RebuildReport:
        return self.rebuilder.rebuild_frequency_table(
            session, start_date, transaction_boundary=transaction_boundary
        )

    def refresh_all_open_probabilities(
        self,
        session: Session,
        start_date: date | None = None,
        *,
        transaction_boundary: TransactionBoundary | None = None,
    ) -> RefreshReport:
        return self.rebuilder.refresh_all_open_probabilities(
            session, start_date, transaction_boundary=transaction_boundary
        )

    def run_cron(self, session: Session, *, transaction_boundary: TransactionBoundary | None = None) -> CronReport:
        """Scheduled job: rebuild the frequency table then refresh open leads."""

        report = CronReport()
        started = time.time()
        start_date = self.config.safe_start_date()
        with self.tracker.start_run(run_name=(start_date or date.today()).isoformat(), tags={"job": "cron"}):
            self.tracker.log_params(
                {
                    "start_date": start_date.isoformat() if start_date else "",
                    "fields": ",".join(self.extractor.fields),
                    "transaction_boundary": transaction_boundary or self.config.transaction_boundary,
                }
            )
            report.rebuild = self.rebuild_frequency_table(
                session, start_date, transaction_boundary=transaction_boundary
            )
            report.refresh = self.refresh_all_open_probabilities(
                session, start_date, transaction_boundary=transaction_boundary
            )
            session.commit()
            report.duration = time.time() - started
            self.tracker.log_metrics(report.to_metrics())

        logger.info("Predictive Lead Scoring : cron duration = %.2f seconds", report.duration)
        return report


__all__ = ["CronReport", "ScoringEngine"]
