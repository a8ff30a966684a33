"""
Pytest configuration and fixtures for soulcrush tests.
"""

import os
import tempfile
from pathlib import Path

import pytest
import structlog

# Set test database path before importing any modules
os.environ['DATABASE_PATH'] = str(Path(tempfile.gettempdir()) / 'test_soulcrush.db')


@pytest.fixture(scope="function")
def test_db_path():
    """Create a temporary database path for testing."""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        db_path = Path(f.name)

    yield db_path

    # Cleanup, including WAL files
    for path in (db_path, Path(str(db_path) + '-wal'), Path(str(db_path) + '-shm')):
        if path.exists():
            path.unlink()


@pytest.fixture(scope="function")
def test_db(test_db_path):
    """Create and initialize a test database."""
    from soulcrush.database.connection import init_database

    init_database(test_db_path, cascade_company_delete=False)

    yield test_db_path


@pytest.fixture(scope="function")
def service(test_db):
    """ApplicationService bound to the test database."""
    from soulcrush.services.application_service import ApplicationService

    return ApplicationService(test_db)


@pytest.fixture
def acme_request():
    return {
        "company": {
            "name": "Acme",
            "website": "https://acme.com",
            "ceo": "J",
            "industry": "Tech",
        },
        "status": "ToDo",
    }


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by CLI tests."""
    yield
    structlog.reset_defaults()


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks integration tests")
