"""
Pytest Configuration and Shared Fixtures

Provides common fixtures and configuration for all test modules.
"""

import pytest
from datetime import date, timedelta
from typing import Any, Dict, List

from src.database import Base, configure_engine, create_db_engine
from src.database.session import get_session_factory


# ============================================================================
# Mock Data Fixtures
# ============================================================================

@pytest.fixture
def three_page_rows() -> List[Dict[str, Any]]:
    """One education, one money and one system page."""
    return [
        {"url": "https://www.alanranger.com/blog-on-photography/x", "impressions": 100, "clicks": 2, "position": 5},
        {"url": "https://www.alanranger.com/photography-workshops", "impressions": 200, "clicks": 20, "position": 2},
        {"url": "https://www.alanranger.com/terms", "impressions": 10, "clicks": 0, "position": 30},
    ]


@pytest.fixture
def three_query_rows() -> List[Dict[str, Any]]:
    """Query × page rows landing on the three pages above."""
    return [
        {"query": "what is aperture", "page": "https://www.alanranger.com/blog-on-photography/x",
         "impressions": 100, "clicks": 2, "position": 5},
        {"query": "photography workshops", "page": "https://www.alanranger.com/photography-workshops",
         "impressions": 200, "clicks": 20, "position": 2},
        {"query": "terms", "page": "https://www.alanranger.com/terms",
         "impressions": 10, "clicks": 0, "position": 30},
    ]


@pytest.fixture
def ok_schema_audit() -> Dict[str, Any]:
    """Schema audit with two pages, one carrying Event schema."""
    return {
        "status": "ok",
        "data": {
            "totalPages": 2,
            "pagesWithSchema": 1,
            "schemaTypes": [{"type": "Organization"}, {"type": "WebSite"}, {"type": "Event"}],
            "richEligible": {"Event": True},
            "pages": [
                {
                    "url": "https://www.alanranger.com/beginners-photography-lessons",
                    "hasSchema": True,
                    "schemaTypes": ["Event"],
                },
                {
                    "url": "https://www.alanranger.com/photography-workshops",
                    "hasSchema": False,
                    "schemaTypes": [],
                },
            ],
        },
    }


@pytest.fixture
def daily_series() -> List[Dict[str, Any]]:
    """28 days of trusted site totals ending 2025-12-05."""
    end = date(2025, 12, 5)
    return [
        {
            "date": end - timedelta(days=offset),
            "clicks": 10,
            "impressions": 500,
            "ctr": 0.02,
            "position": 12.0,
        }
        for offset in range(28)
    ]


@pytest.fixture
def keyword_rows() -> List[Dict[str, Any]]:
    """Keyword rows with AI citation fields."""
    return [
        {
            "keyword": "photography workshops",
            "has_ai_overview": True,
            "ai_alan_citations_count": 2,
            "ai_alan_citations": [
                "https://www.alanranger.com/photography-workshops",
                {"url": "https://www.alanranger.com/blog-on-photography/aperture"},
            ],
        },
        {
            "keyword": "what is iso",
            "has_ai_overview": True,
            "ai_alan_citations_count": 1,
            "ai_alan_citations": ["https://www.alanranger.com/blog-on-photography/iso"],
        },
        {
            "keyword": "camera club",
            "has_ai_overview": False,
            "ai_alan_citations_count": 0,
            "ai_alan_citations": [],
        },
    ]


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite engine with all tables."""
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    configure_engine(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Session bound to the in-memory engine."""
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()


# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (database, HTTP app)")
    config.addinivalue_line("markers", "slow: Slow tests")
