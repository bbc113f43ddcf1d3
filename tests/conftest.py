"""
Pytest Configuration and Fixtures.

Every test gets its own in-memory SQLite database with the full schema.
"""
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from learnplan.database import Base  # noqa: E402
from learnplan.crud import create_child, create_flashcard, create_subject, create_topic  # noqa: E402
from learnplan.engine import SchedulingEngine  # noqa: E402
from learnplan.schemas import ChildCreate  # noqa: E402
import learnplan.models  # noqa: E402,F401


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture
def session_factory():
    """sessionmaker bound to a fresh in-memory database"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def planner(db):
    """SchedulingEngine over the test database"""
    return SchedulingEngine.for_db(db)


@pytest.fixture
def child(db):
    return create_child(db, ChildCreate(name="Asha", grade="3rd"))


@pytest.fixture
def topic(db, child):
    subject = create_subject(db, child.id, "Math")
    return create_topic(db, subject.id, "Fractions", estimated_minutes=30)


@pytest.fixture
def flashcard(db, topic):
    return create_flashcard(db, topic.id, "1/2 + 1/4?", "3/4")
