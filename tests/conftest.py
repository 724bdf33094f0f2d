"""
Pytest configuration and shared fixtures.
"""

import pytest
import httpx

from medbot.config import Settings
from medbot.database import DatabaseManager
from medbot.drug_cache import DrugCache
from medbot.openfda_client import OpenFDAClient
from medbot.search_accounting import SearchAccounting

OPENFDA_TEST_URL = "https://api.fda.test"


@pytest.fixture
def test_settings(tmp_path):
    """Settings pointing at a temporary database, with file logging off."""
    return Settings(
        DB_PATH=str(tmp_path / "medbot.db"),
        LOG_DIR="",
        OPENFDA_BASE_URL=OPENFDA_TEST_URL,
        OPENFDA_API_KEY="",
        OPENFDA_TIMEOUT_SECONDS=2.0,
        CACHE_TTL_HOURS=24,
        SERVE_STALE_ON_ERROR=False,
        SEED_SAMPLE_DATA=False,
    )


@pytest.fixture
def db(test_settings):
    """Initialized database manager on a temporary file."""
    manager = DatabaseManager(test_settings)
    manager.initialize()
    return manager


@pytest.fixture
def cache(db):
    return DrugCache(db, ttl_hours=24)


@pytest.fixture
def accounting(db):
    return SearchAccounting(db)


@pytest.fixture
def make_openfda_client(test_settings):
    """Build an OpenFDAClient whose HTTP traffic goes to `handler`."""
    def _make(handler, config=None):
        transport = httpx.MockTransport(handler)
        return OpenFDAClient(config or test_settings,
                             http_client=httpx.AsyncClient(transport=transport))
    return _make


@pytest.fixture
def aspirin_label():
    """A drug label result shaped like openFDA's /drug/label.json."""
    return {
        "openfda": {
            "brand_name": ["Aspirin", "Bayer Aspirin"],
            "generic_name": ["Acetylsalicylic acid"],
            "manufacturer_name": ["Bayer HealthCare LLC."],
        },
        "indications_and_usage": [
            "Temporarily relieves headache, muscle pain and minor arthritis pain."
        ],
    }


@pytest.fixture
def recall_result():
    """An enforcement report shaped like openFDA's /drug/enforcement.json."""
    return {
        "recall_number": "D-0123-2024",
        "product_description": "Aspirin 81 mg chewable tablets, 36 count bottle",
        "reason_for_recall": "Failed dissolution specifications",
        "classification": "Class II",
        "report_date": "20240315",
        "status": "Ongoing",
    }


# Pytest configuration
def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
