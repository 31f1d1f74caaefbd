"""
Test Suite for Audit Runs and the HTTP API

Covers:
- Assembling an audit from collected inputs
- A full audit against a stubbed Search Console
- Segment, audit, portfolio and cron endpoints
"""

import json
from datetime import date

import httpx
import pytest
from fastapi.testclient import TestClient

from api.deps import settings_dependency
from api.index import app
from src import __version__
from src.audit import assemble_audit, default_window, run_full_audit
from src.collector import GSCClient
from src.database import get_db, to_jsonable, upsert_audit_result, upsert_gsc_timeseries, upsert_page_metrics_28d
from src.models import PageRow, SearchData
from src.scoring import round_half_up
from src.utils.config import Settings

SITE = "https://www.alanranger.com"


@pytest.fixture
def search_data(three_query_rows):
    return SearchData.from_dict({
        "averagePosition": 1,
        "ctr": 0.1,
        "totalClicks": 22,
        "totalImpressions": 310,
        "queryPages": three_query_rows,
    })


@pytest.fixture
def audit_result(search_data, three_page_rows, ok_schema_audit):
    return assemble_audit(
        SITE,
        search_data,
        [PageRow.from_dict(r) for r in three_page_rows],
        date(2025, 11, 8),
        date(2025, 12, 5),
        schema_audit=ok_schema_audit,
        review_snapshot=None,
        audit_date=date(2025, 12, 7),
    )


# ============================================================================
# Audit assembly
# ============================================================================

class TestAssembleAudit:

    def test_three_page_scenario(self, audit_result):
        assert audit_result.scores.visibility == 100
        assert audit_result.scores.content_schema == 31
        assert [r.url for r in audit_result.money_pages.rows] == [f"{SITE}/photography-workshops"]
        assert len(audit_result.money_page_priority) == 1
        assert audit_result.money_segment_summary["all_money"].impressions == 200
        assert audit_result.money_pages_summary.count == 1
        assert audit_result.search_totals["total_clicks"] == 22
        assert audit_result.backlink_metrics is None
        assert audit_result.created_at.tzinfo is not None

    def test_snippet_readiness_matches_pillars(self, audit_result):
        scores = audit_result.scores
        expected = round_half_up(0.4 * scores.content_schema + 0.35 * scores.visibility + 0.25 * scores.authority.score)
        assert audit_result.snippet_readiness == expected

    def test_serialisable(self, audit_result):
        data = to_jsonable(audit_result)
        assert data["audit_date"] == "2025-12-07"
        assert data["scores"]["visibility"] == 100
        assert json.dumps(data)

    def test_default_window(self):
        start, end = default_window(date(2025, 12, 5))
        assert (start, end) == (date(2025, 11, 8), date(2025, 12, 5))


class SearchConsoleStub:
    """Serves canned Search Analytics rows keyed by requested dimensions."""

    def __init__(self, page_rows, query_rows):
        self.tables = {
            (): [{"clicks": 22, "impressions": 310, "ctr": 0.071, "position": 1.0}],
            ("query",): [{"keys": [r["query"]], "clicks": r["clicks"], "impressions": r["impressions"],
                          "position": r["position"]} for r in query_rows],
            ("query", "page"): [{"keys": [r["query"], r["page"]], "clicks": r["clicks"],
                                 "impressions": r["impressions"], "position": r["position"]} for r in query_rows],
            ("page",): [{"keys": [r["url"]], "clicks": r["clicks"], "impressions": r["impressions"],
                         "position": r["position"]} for r in page_rows],
        }

    def __call__(self, request):
        if request.url.host == "oauth2.googleapis.com":
            return httpx.Response(200, json={"access_token": "tok"})
        body = json.loads(request.content)
        rows = self.tables[tuple(body["dimensions"])]
        start = body["startRow"]
        return httpx.Response(200, json={"rows": rows[start:start + body["rowLimit"]]})


class TestRunFullAudit:

    @pytest.mark.asyncio
    async def test_collects_and_scores(self, three_page_rows, three_query_rows, ok_schema_audit):
        transport = httpx.MockTransport(SearchConsoleStub(three_page_rows, three_query_rows))
        async with GSCClient("id", "secret", "refresh", transport=transport) as gsc:
            result = await run_full_audit(
                SITE, gsc, date_start=date(2025, 11, 8), date_end=date(2025, 12, 5),
                schema_audit=ok_schema_audit,
            )

        assert result.search_totals["total_impressions"] == 310
        assert result.scores.visibility == 100
        assert len(result.money_pages.rows) == 1
        assert result.backlink_metrics is None
        assert result.date_start == date(2025, 11, 8)


# ============================================================================
# HTTP API
# ============================================================================

@pytest.fixture
def make_client(db_session):
    """TestClient factory with the test session and explicit settings."""
    def _make(**settings_overrides):
        settings = Settings(_env_file=None, **{
            "SITE_URL": SITE,
            "GSC_CLIENT_ID": None,
            "GSC_CLIENT_SECRET": None,
            "GSC_REFRESH_TOKEN": None,
            "DATAFORSEO_LOGIN": None,
            "DATAFORSEO_PASSWORD": None,
            "CRON_SECRET": None,
            "ADMIN_KEY": None,
            **settings_overrides,
        })
        app.dependency_overrides[get_db] = lambda: db_session
        app.dependency_overrides[settings_dependency] = lambda: settings
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


@pytest.mark.integration
class TestSegmentEndpoints:

    def test_page(self, make_client):
        response = make_client().post("/api/segments/page", json={"url": f"{SITE}/photo-workshops-uk/wales/"})
        assert response.status_code == 200
        assert response.json() == {"path": "/photo-workshops-uk/wales", "segment": "money", "sub_segment": "product"}

    def test_page_override(self, make_client):
        response = make_client().post("/api/segments/page", json={"url": "/terms", "kind_override": "support"})
        assert response.json()["segment"] == "support"
        assert response.json()["sub_segment"] is None

    def test_keyword(self, make_client):
        response = make_client().post("/api/segments/keyword", json={"keyword": "what is iso", "page_type": "Blog"})
        data = response.json()
        assert data["segment"] == "education"
        assert data["confidence"] == 0.85

    def test_invalid_keyword(self, make_client):
        data = make_client().post("/api/segments/keyword", json={"keyword": 123}).json()
        assert data["segment"] == "other"
        assert data["confidence"] == 0.0

    def test_root(self, make_client):
        assert make_client().get("/").json()["version"] == __version__


@pytest.mark.integration
class TestAuditEndpoints:

    def test_latest_not_found(self, make_client):
        assert make_client().get("/api/audit/latest").status_code == 404

    def test_latest(self, make_client, db_session, audit_result):
        upsert_audit_result(db_session, audit_result)
        db_session.commit()

        response = make_client().get("/api/audit/latest", params={"property_url": SITE})
        assert response.status_code == 200
        data = response.json()
        assert data["visibility_score"] == 100
        assert data["audit_date"] == "2025-12-07"

    def test_run_without_gsc_credentials(self, make_client):
        response = make_client().post("/api/audit/run", json={})
        assert response.status_code == 503

    def test_run_requires_admin_key(self, make_client):
        client = make_client(ADMIN_KEY="letmein")
        assert client.post("/api/audit/run", json={}).status_code == 401
        assert client.post("/api/audit/run", json={}, headers={"x-admin-key": "letmein"}).status_code == 503


@pytest.mark.integration
class TestPortfolioEndpoints:

    def test_no_runs(self, make_client):
        assert make_client().get("/api/portfolio/segment-metrics").status_code == 404

    def test_backfill_then_read(self, make_client, db_session, daily_series):
        upsert_gsc_timeseries(db_session, SITE, daily_series)
        upsert_page_metrics_28d(db_session, "run-a", SITE, [
            {"page_url": f"{SITE}/photography-workshops", "clicks_28d": 10, "impressions_28d": 200, "position_28d": 3},
        ], date(2025, 11, 8), date(2025, 12, 5))
        db_session.commit()
        client = make_client()

        backfill = client.post("/api/portfolio/backfill-segments", json={}).json()
        assert backfill["runs"] == 1
        assert backfill["succeeded"] == 1
        assert backfill["rows"] == 18

        metrics = client.get("/api/portfolio/segment-metrics").json()
        assert metrics["run_id"] == "run-a"
        assert len(metrics["rows"]) == 18

        scoped = client.get("/api/portfolio/segment-metrics", params={"scope": "active_cycles_only"}).json()
        assert len(scoped["rows"]) == 9

        windows = client.post("/api/portfolio/backfill-windows", json={"run_id": "run-a"}).json()
        assert windows["success"] is True
        assert windows["rows"] == 12


@pytest.mark.integration
class TestCronEndpoints:

    def test_secret_required(self, make_client):
        client = make_client(CRON_SECRET="s3cret")
        assert client.get("/api/cron/keyword-ranking-ai").status_code == 401
        assert client.get("/api/cron/keyword-ranking-ai", headers={"x-cron-secret": "nope"}).status_code == 401

        ok = client.get("/api/cron/keyword-ranking-ai", params={"secret": "s3cret"})
        assert ok.status_code == 200
        assert ok.json()["status"] == "skipped"

    def test_missing_credentials(self, make_client):
        response = make_client().get("/api/cron/keyword-ranking-ai", params={"keywords": "photography workshops"})
        assert response.status_code == 503


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
