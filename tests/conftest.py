"""
Shared pytest configuration and fixtures for election-lens.

This module provides common test fixtures and utilities used across
all test modules.
"""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from data.database import ElectionDatabase, close_database  # noqa: E402
from data.loader import ElectionDataLoader  # noqa: E402


@pytest.fixture
def temp_db_path(tmp_path):
    """Provide a path for a fresh DuckDB file, released after the test."""
    db_path = str(tmp_path / "election.duckdb")
    try:
        yield db_path
    finally:
        close_database(db_path)


@pytest.fixture
def temp_db(temp_db_path):
    """Provide a database unit of work on a fresh file with the schema applied."""
    db = ElectionDatabase(temp_db_path)
    yield db
    db.close()


@pytest.fixture
def loader(temp_db_path):
    """Provide a data loader bound to the temporary database."""
    data_loader = ElectionDataLoader(temp_db_path)
    yield data_loader
    data_loader.close()


@pytest.fixture
def sample_poll():
    """Provide a two-question poll document."""
    return {
        "slug": "election-mood",
        "title": {"bn": "নির্বাচনী মনোভাব", "en": "Election mood"},
        "isGroup": True,
        "questions": [
            {
                "question": {"bn": "আপনি কি ভোট দেবেন?", "en": "Will you vote?"},
                "tooltip": {"bn": "", "en": "Choose one"},
                "options": [
                    {"key": "yes", "label": {"bn": "হ্যাঁ", "en": "Yes"}},
                    {"key": "no", "label": {"bn": "না", "en": "No"}},
                ],
            },
            {
                "question": {"bn": "কে জিতবে?", "en": "Who will win?"},
                "options": [
                    {"key": "a", "label": {"bn": "ক", "en": "A"}, "votes": 3},
                    {"key": "b", "label": {"bn": "খ", "en": "B"}},
                ],
            },
        ],
    }


@pytest.fixture
def sample_candidates_2026():
    """Provide 2026 constituencies with their candidate lists."""
    return [
        {
            "constituency_id": "dhaka-1",
            "division": "Dhaka",
            "district": "Dhaka",
            "election_date": "2026-02-12",
            "candidate_list": [
                {
                    "candidate_name": "Rahim",
                    "party_name": "Bangladesh Nationalist Party",
                    "popularity_vote": 4,
                    "electoral_vote": 0,
                },
                {
                    "candidate_name": "Karim",
                    "party_name": "Jatiya Party",
                },
            ],
        },
        {
            "constituency_id": "sylhet-1",
            "division": "Sylhet",
            "district": "Sylhet",
            "election_date": "2026-02-12",
            "candidate_list": [
                {
                    "candidate_name": "Salma",
                    "party_name": "Jatiya Party",
                },
            ],
        },
    ]


def make_result(
    constituency_id,
    parliament,
    winner,
    difference=1000,
    runner_up="Bangladesh Nationalist Party",
    election_date=None,
):
    """Build one election result document with a winner and a runner-up."""
    return {
        "constituencyId": constituency_id,
        "constituencyName": constituency_id.replace("-", " ").title(),
        "parliamentNumber": parliament,
        "Winner": winner,
        "Difference": difference,
        "Difference_Percentage": "1.00%",
        "electionDate": election_date,
        "candidates": [
            {"name": f"{winner} candidate", "party": winner, "votes": 50000 + difference},
            {"name": f"{runner_up} candidate", "party": runner_up, "votes": 50000},
        ],
    }


@pytest.fixture
def result_factory():
    """Provide the election result document builder."""
    return make_result


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (medium speed, database required)",
    )
    config.addinivalue_line(
        "markers",
        "invariant: marks tests as classification and counting invariant validation",
    )
    config.addinivalue_line(
        "markers", "smoke: marks tests as smoke tests (basic functionality check)"
    )
