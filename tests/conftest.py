"""
Pytest configuration and shared fixtures.

Every test that touches storage gets its own SQLite file under ``tmp_path``
so batch-processing tests can open one connection per worker thread.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from app.services.ai.recommendation_engine import RecommendationEngine
from app.services.application.analytics_engine import AnalyticsEngine
from app.services.application.analytics_store import AnalyticsStore
from app.services.application.recommendation_feedback_service import RecommendationFeedbackService
from app.utils.cache import RecommendationCache
from infrastructure.database.repositories import (
    AnalyticsRepository,
    PlantRepository,
    RecommendationRepository,
)
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

# Keep test output readable
logging.getLogger("app").setLevel(logging.WARNING)
logging.getLogger("infrastructure").setLevel(logging.WARNING)


class ManualClock:
    """Monotonic-style clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ========================== Database Fixtures ==============================


@pytest.fixture
def database(tmp_path):
    """File-backed SQLite handler with the schema created."""
    handler = SQLiteDatabaseHandler(str(tmp_path / "growlab.db"))
    handler.init_db()
    yield handler
    handler.close_all()


@pytest.fixture
def plant_repo(database):
    return PlantRepository(database)


@pytest.fixture
def analytics_repo(database):
    return AnalyticsRepository(database)


@pytest.fixture
def recommendation_repo(database):
    return RecommendationRepository(database)


# ========================== Service Fixtures ==============================


@pytest.fixture
def analytics_store(analytics_repo):
    return AnalyticsStore(analytics_repo)


@pytest.fixture
def analytics_engine(plant_repo, analytics_store):
    """Engine pinned to the real clock; records must look fresh to the store."""
    return AnalyticsEngine(plant_repo, analytics_store)


@pytest.fixture
def cache_clock():
    return ManualClock()


@pytest.fixture
def recommendation_cache(cache_clock):
    return RecommendationCache(ttl_seconds=3600, maxsize=64, clock=cache_clock)


@pytest.fixture
def recommendation_engine(plant_repo, analytics_store, recommendation_repo, recommendation_cache):
    return RecommendationEngine(plant_repo, analytics_store, recommendation_repo, recommendation_cache)


@pytest.fixture
def feedback_service(recommendation_repo, recommendation_cache):
    return RecommendationFeedbackService(recommendation_repo, recommendation_cache)


# ========================== Seed Fixtures ==============================


@pytest.fixture
def seed_plant(plant_repo):
    """Create a plant; ``days_in_stage`` back-dates the stage start from now."""

    def _seed(
        *,
        name="Test Plant",
        strain="Blue Dream",
        stage="vegetative",
        growing_medium="soil",
        tent_id=1,
        days_in_stage=10,
        node_count=None,
    ):
        started = datetime.now(timezone.utc) - timedelta(days=days_in_stage, hours=1)
        return plant_repo.create_plant(
            name=name,
            strain=strain,
            stage=stage,
            growing_medium=growing_medium,
            tent_id=tent_id,
            planted_at=started - timedelta(days=20),
            stage_started_at=started,
            node_count=node_count,
        )

    return _seed


@pytest.fixture
def seed_environment(plant_repo):
    """Record one environment sample ``hours_ago`` hours in the past."""

    def _seed(*, tent_id=1, hours_ago=1.0, **readings):
        return plant_repo.record_environment(
            tent_id=tent_id,
            timestamp=datetime.now(timezone.utc) - timedelta(hours=hours_ago),
            **readings,
        )

    return _seed


@pytest.fixture
def seed_activity(plant_repo):
    """Record one activity ``days_ago`` days in the past."""

    def _seed(plant_id, activity_type, *, days_ago=1.0, **fields):
        return plant_repo.record_activity(
            plant_id=plant_id,
            activity_type=activity_type,
            timestamp=datetime.now(timezone.utc) - timedelta(days=days_ago),
            **fields,
        )

    return _seed
