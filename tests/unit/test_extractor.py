from fixtures.sample_data import make_lead
from sqlalchemy import select

from plscore.core.config import ScoringConfig
from plscore.features import FeatureExtractor, LeadValues
from plscore.storage.models import Lead


def _seed(session, catalog):
    first = make_lead(
        session,
        stage_id=catalog.new,
        team_id=catalog.team_eu,
        country_id=catalog.us,
        source_id=catalog.web,
        lang_code="fr_BE",
        email_state="correct",
        tag_ids=[catalog.tags[1], catalog.tags[0]],
    )
    second = make_lead(session, stage_id=catalog.qualified, lang_code="", email_state="", probability=0)
    third = make_lead(session, stage_id=None, country_id=catalog.ca, probability=35.5)
    session.commit()
    session.expire_all()
    return first.id, second.id, third.id


def test_whitelist_is_resolved_once() -> None:
    extractor = FeatureExtractor(ScoringConfig(fields="lang_code,team_id,unknown,stage_id,tag_ids"))
    assert extractor.scalar_fields == ["stage_id", "lang_code"]
    assert extractor.use_tags is True
    assert extractor.fields == ["stage_id", "lang_code", "tag"]


def test_extract_records(session, catalog) -> None:
    first_id, second_id, third_id = _seed(session, catalog)
    extractor = FeatureExtractor(ScoringConfig())
    leads = session.scalars(select(Lead).order_by(Lead.id)).all()

    result = extractor.extract_records(leads)

    assert result[first_id] == LeadValues(
        lead_id=first_id,
        team_id=catalog.team_eu,
        values=[
            ("stage_id", catalog.new),
            ("phone_state", False),
            ("email_state", "correct"),
            ("country_id", catalog.us),
            ("source_id", catalog.web),
            ("lang_code", "fr_BE"),
            ("tag", catalog.tags[0]),
            ("tag", catalog.tags[1]),
        ],
    )
    # Unset quality flags are kept, other empty values are not.
    assert result[second_id].values == [
        ("stage_id", catalog.qualified),
        ("phone_state", False),
        ("email_state", False),
    ]
    assert result[second_id].team_id is None
    assert result[second_id].probability == 0
    assert not result[third_id].has_stage


def test_bulk_matches_per_record(session, catalog) -> None:
    ids = _seed(session, catalog)
    extractor = FeatureExtractor(ScoringConfig())
    leads = session.scalars(select(Lead).order_by(Lead.id)).all()

    per_record = extractor.extract_records(leads)
    bulk = extractor.extract_bulk(session, [Lead.id.in_(ids)])

    assert bulk == per_record


def test_extract_picks_strategy_from_threshold(session, catalog, monkeypatch) -> None:
    _seed(session, catalog)
    extractor = FeatureExtractor(ScoringConfig(bulk_threshold=2))
    leads = session.scalars(select(Lead).order_by(Lead.id)).all()
    calls = []
    monkeypatch.setattr(extractor, "extract_bulk", lambda session, criteria: calls.append("bulk") or {})
    monkeypatch.setattr(extractor, "extract_records", lambda leads: calls.append("records") or {})

    extractor.extract(session, leads)
    extractor.extract(session, leads[:2])
    extractor.extract(session, leads[:1], bulk=True)

    assert calls == ["bulk", "records", "bulk"]


def test_bulk_criteria_filter(session, catalog) -> None:
    first_id, _, _ = _seed(session, catalog)
    extractor = FeatureExtractor(ScoringConfig(fields="country_id,tag_ids"))

    result = extractor.extract_bulk(session, [Lead.team_id == catalog.team_eu])

    assert list(result) == [first_id]
    assert result[first_id].values == [
        ("stage_id", catalog.new),
        ("country_id", catalog.us),
        ("tag", catalog.tags[0]),
        ("tag", catalog.tags[1]),
    ]
