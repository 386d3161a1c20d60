"""
Pytest configuration and fixtures.

For shared test utilities, see tests/__init__.py
"""

import os

# database.database builds its engine at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "db: marks tests as requiring database (deselect with '-m \"not db\"')"
    )


@pytest.fixture
def engine():
    from tests import create_test_engine
    engine = create_test_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    from tests import create_session_factory
    session = create_session_factory(engine)()
    yield session
    session.close()
