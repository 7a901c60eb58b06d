from datetime import datetime

import pytest
from fixtures.sample_data import frequency_snapshot, make_lead, seed_closed_leads
from sqlalchemy import select

from plscore.core.config import ScoringConfig
from plscore.features import FeatureExtractor
from plscore.scoring import BatchRebuilder, FrequencyStore, LeadState, LiveIncrementer, NaiveBayesClassifier
from plscore.storage.models import Lead


@pytest.fixture
def incrementer(scoring_config):
    return LiveIncrementer(FeatureExtractor(scoring_config), FrequencyStore(), scoring_config)


@pytest.fixture
def baseline(session, catalog, scoring_config):
    """Frequencies of three won US leads and two lost Canadian leads."""

    seed_closed_leads(session, catalog)
    store = FrequencyStore()
    extractor = FeatureExtractor(scoring_config)
    BatchRebuilder(extractor, NaiveBayesClassifier(store), store, scoring_config).rebuild_frequency_table(session)
    return frequency_snapshot(session)


def _counts(session):
    return {(row[1], row[2]): row[3:] for row in frequency_snapshot(session)}


def test_reversal_restores_frequencies(session, catalog, incrementer, baseline) -> None:
    lead = make_lead(session, stage_id=catalog.qualified, probability=40, country_id=catalog.us)

    assert incrementer.on_state_transition(session, [lead], LeadState.OPEN, LeadState.WON) == 1
    assert frequency_snapshot(session) != baseline
    assert incrementer.on_state_transition(session, [lead], "won", None) == 1

    after = frequency_snapshot(session)
    assert [row[:3] for row in after] == [row[:3] for row in baseline]
    assert [row[3:] for row in after] == [pytest.approx(row[3:]) for row in baseline]


def test_lost_transition_counts_earlier_stages(session, catalog, incrementer, baseline) -> None:
    lead = make_lead(session, stage_id=catalog.qualified, probability=10, country_id=catalog.ca)

    incrementer.on_state_transition(session, [lead], LeadState.OPEN, LeadState.LOST)

    counts = _counts(session)
    assert counts[("country_id", str(catalog.ca))] == pytest.approx((0.1, 3.1))
    assert counts[("stage_id", str(catalog.new))] == pytest.approx((3.1, 3.1))
    assert counts[("stage_id", str(catalog.qualified))] == pytest.approx((3.1, 3.1))
    assert counts[("stage_id", str(catalog.proposition))] == pytest.approx((3.1, 0.1))


def test_same_state_and_old_leads_are_ignored(session, catalog, incrementer, baseline) -> None:
    old = make_lead(session, stage_id=catalog.new, country_id=catalog.us, created_at=datetime(2023, 12, 31, 23))
    recent = make_lead(session, stage_id=catalog.new, country_id=catalog.us)

    assert incrementer.on_state_transition(session, [old], LeadState.OPEN, LeadState.WON) == 0
    assert incrementer.on_state_transition(session, [recent], LeadState.WON, LeadState.WON) == 0
    assert frequency_snapshot(session) == baseline


def test_missing_start_date_is_a_no_op(session, catalog, baseline) -> None:
    config = ScoringConfig(fields="country_id", start_date="someday")
    incrementer = LiveIncrementer(FeatureExtractor(config), FrequencyStore(), config)
    lead = make_lead(session, stage_id=catalog.new, country_id=catalog.us)

    assert incrementer.on_state_transition(session, [lead], LeadState.OPEN, LeadState.WON) == 0
    assert frequency_snapshot(session) == baseline


def test_handle_write_archive(session, catalog, incrementer, baseline) -> None:
    lead = make_lead(session, stage_id=catalog.qualified, probability=25, country_id=catalog.ca)

    assert incrementer.handle_write(session, [lead], {"active": False, "probability": 0}) == 1

    counts = _counts(session)
    assert counts[("country_id", str(catalog.ca))] == pytest.approx((0.1, 3.1))
    assert counts[("stage_id", str(catalog.qualified))] == pytest.approx((3.1, 3.1))


def test_handle_write_reaching_won_stage(session, catalog, incrementer, baseline) -> None:
    lead = make_lead(session, stage_id=catalog.qualified, probability=25, country_id=catalog.us)

    assert incrementer.handle_write(session, [lead], {"stage_id": catalog.won}) == 1

    counts = _counts(session)
    assert counts[("country_id", str(catalog.us))] == pytest.approx((4.1, 0.1))
    for stage_id in (catalog.new, catalog.qualified, catalog.proposition, catalog.won):
        assert counts[("stage_id", str(stage_id))][0] == pytest.approx(4.1)


def test_handle_write_leaving_won(session, catalog, incrementer, baseline) -> None:
    won_lead = session.scalars(select(Lead).where(Lead.probability == 100).order_by(Lead.id)).first()

    applied = incrementer.handle_write(session, [won_lead], {"stage_id": catalog.proposition, "probability": 60})

    assert applied == 1
    counts = _counts(session)
    assert counts[("country_id", str(catalog.us))] == pytest.approx((2.1, 0.1))
    assert counts[("stage_id", str(catalog.won))] == pytest.approx((2.1, 0.1))


def test_handle_write_restoring_lost(session, catalog, incrementer, baseline) -> None:
    lost_lead = session.scalars(
        select(Lead).where(Lead.active.is_(False), Lead.country_id == catalog.ca).order_by(Lead.id)
    ).first()

    assert incrementer.handle_write(session, [lost_lead], {"active": True}) == 1

    counts = _counts(session)
    assert counts[("country_id", str(catalog.ca))] == pytest.approx((0.1, 1.1))
    assert counts[("stage_id", str(catalog.new))] == pytest.approx((3.1, 1.1))


def test_handle_write_groups_transitions(session, catalog, incrementer, baseline) -> None:
    won_lead = session.scalars(select(Lead).where(Lead.probability == 100).order_by(Lead.id)).first()
    open_lead = make_lead(session, stage_id=catalog.new, probability=50, country_id=catalog.us)

    assert incrementer.handle_write(session, [won_lead, open_lead], {"active": False, "probability": 0}) == 2

    counts = _counts(session)
    # Won lead moved from won to lost, open lead reached lost.
    assert counts[("country_id", str(catalog.us))] == pytest.approx((2.1, 2.1))


def test_archive_and_restore_open_lead_keeps_frequencies(session, catalog, incrementer, baseline) -> None:
    lead = make_lead(session, stage_id=catalog.qualified, probability=30, country_id=catalog.us)

    assert incrementer.handle_write(session, [lead], {"active": False}) == 0
    lead.active = False
    session.flush()
    assert incrementer.handle_write(session, [lead], {"active": True}) == 0
    lead.active = True
    session.flush()

    assert frequency_snapshot(session) == baseline


def test_archiving_won_lead_keeps_it_won(session, catalog, incrementer, baseline) -> None:
    won_lead = session.scalars(select(Lead).where(Lead.probability == 100).order_by(Lead.id)).first()

    assert incrementer.handle_write(session, [won_lead], {"active": False}) == 0
    assert frequency_snapshot(session) == baseline


def test_handle_write_ignores_unrelated_changes(session, catalog, incrementer, baseline) -> None:
    lead = make_lead(session, stage_id=catalog.new, country_id=catalog.us)

    assert incrementer.handle_write(session, [lead], {"name": "Renamed"}) == 0
    assert incrementer.handle_write(session, [lead], {"stage_id": catalog.qualified}) == 0
    assert frequency_snapshot(session) == baseline
