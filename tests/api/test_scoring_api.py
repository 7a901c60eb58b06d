from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from fixtures.sample_data import make_lead, seed_closed_leads
from sqlalchemy import select

from plscore.api import create_app
from plscore.config import Settings
from plscore.config.settings import DatabaseConfig, ServingConfig
from plscore.storage.models import Lead, ScoringFrequency


def _settings(allow_reset: bool = True) -> Settings:
    return Settings(
        database=DatabaseConfig(url="sqlite://"),
        scoring={"fields": "country_id", "start_date": "2024-01-01"},
        serving=ServingConfig(allow_frequency_reset=allow_reset),
    )


@pytest.fixture
def client(session_factory) -> TestClient:
    return TestClient(create_app(settings=_settings(), session_factory=session_factory))


@pytest.fixture
def trained(session, catalog, client):
    seed_closed_leads(session, catalog)
    response = client.post("/api/maintenance/rebuild", json={})
    assert response.status_code == 200
    return response.json()


def test_health_endpoints(client) -> None:
    assert client.get("/api/health").json() == {"status": "ok"}
    response = client.get("/api/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


def test_rebuild_reports_counts(trained) -> None:
    assert trained["job"] == "rebuild"
    assert trained["report"]["closed_leads"] == 5.0


def test_rebuild_forbidden_without_reset_rights(session_factory, session, catalog) -> None:
    client = TestClient(create_app(settings=_settings(allow_reset=False), session_factory=session_factory))

    response = client.post("/api/maintenance/rebuild", json={})

    assert response.status_code == 403


def test_compute_and_persist_probabilities(session, catalog, client, trained) -> None:
    scored = make_lead(session, stage_id=catalog.new, country_id=catalog.us)
    no_stage = make_lead(session, stage_id=None, country_id=catalog.us)
    session.commit()

    response = client.post("/api/probabilities", json={"lead_ids": [scored.id, no_stage.id], "persist": True})

    assert response.status_code == 200
    payload = response.json()
    assert payload["probabilities"][str(no_stage.id)] == 0.0
    assert 0.01 <= payload["probabilities"][str(scored.id)] <= 99.99
    assert payload["unscored"] == []
    assert payload["persisted"] == 2
    session.expire_all()
    stored = session.get(Lead, scored.id)
    assert stored.automated_probability == payload["probabilities"][str(scored.id)]


def test_unknown_leads_return_404(client, catalog) -> None:
    response = client.post("/api/probabilities", json={"lead_ids": [9999]})
    assert response.status_code == 404


def test_empty_request_is_rejected(client) -> None:
    assert client.post("/api/probabilities", json={"lead_ids": []}).status_code == 422


def test_transition_updates_frequencies(session, catalog, client, trained) -> None:
    lead = make_lead(session, stage_id=catalog.new, country_id=catalog.be)
    session.commit()

    response = client.post(
        "/api/transitions", json={"lead_ids": [lead.id], "from_state": "none", "to_state": "won"}
    )

    assert response.status_code == 200
    assert response.json() == {"applied": 1}
    session.expire_all()
    stmt = select(ScoringFrequency).where(
        ScoringFrequency.variable == "country_id", ScoringFrequency.value == str(catalog.be)
    )
    entry = session.scalars(stmt).one()
    assert entry.won_count == pytest.approx(1.1)


def test_refresh_endpoint(session, catalog, client, trained) -> None:
    make_lead(session, stage_id=catalog.new, country_id=catalog.us)
    session.commit()

    response = client.post("/api/maintenance/refresh", json={"transaction_boundary": "sub_batch"})

    assert response.status_code == 200
    report = response.json()["report"]
    assert report["leads"] == 1.0
    assert report["failed"] == 0.0


def test_metrics_endpoint(client) -> None:
    client.get("/api/health")
    response = client.get("/metrics/")
    assert response.status_code == 200
    assert "plscore_leads_scored" in response.text
