import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
TESTS_DIR = PROJECT_ROOT / "tests"
for path in (SRC_DIR, TESTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from fixtures.sample_data import Catalog, seed_catalog  # noqa: E402

from plscore.config.settings import DatabaseConfig  # noqa: E402
from plscore.core.config import ScoringConfig  # noqa: E402
from plscore.storage import build_engine, build_session_factory, init_db  # noqa: E402


@pytest.fixture
def db_engine():
    engine = build_engine(DatabaseConfig(url="sqlite://"))
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def catalog(session) -> Catalog:
    return seed_catalog(session)


@pytest.fixture
def scoring_config() -> ScoringConfig:
    return ScoringConfig(fields="country_id", start_date="2024-01-01")
