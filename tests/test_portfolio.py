"""
Test Suite for Portfolio Segment Aggregation

Covers:
- Segment membership and tracked-page matching
- Calibration of the all_pages scope
- AI citation attribution
- 1/7/28-day sub-segment windows
"""

import pytest
from datetime import date

from src.portfolio import (
    CalibrationScale,
    PageMetrics,
    PortfolioSegment,
    Scope,
    aggregate_segment,
    attribute_ai_citations,
    build_portfolio_segment_rows,
    build_subsegment_window_rows,
    compute_calibration,
    is_tracked,
    page_segments,
    primary_segment,
    tracked_patterns,
)


@pytest.fixture
def run_pages():
    """Landing, event, blog and academy pages: 35 clicks, 500 impressions."""
    return [
        {"page_url": "https://www.alanranger.com/photography-workshops",
         "clicks_28d": 10, "impressions_28d": 200, "position_28d": 3},
        {"page_url": "https://www.alanranger.com/beginners-photography-lessons",
         "clicks_28d": 5, "impressions_28d": 100, "position_28d": 5},
        {"page_url": "https://www.alanranger.com/blog-on-photography/aperture",
         "clicks_28d": 20, "impressions_28d": 150, "position_28d": 6},
        {"page_url": "https://www.alanranger.com/free-online-photography-course",
         "clicks_28d": 0, "impressions_28d": 50, "position_28d": 10},
    ]


@pytest.fixture
def overview_series():
    """Trusted totals: 70 clicks, 550 impressions."""
    return [
        {"date": date(2025, 12, 1), "clicks": 40, "impressions": 300},
        {"date": date(2025, 12, 2), "clicks": 30, "impressions": 250},
    ]


def _row(rows, segment, scope=Scope.ALL_PAGES):
    return next(r for r in rows if r.segment == segment.value and r.scope == scope.value)


class TestSegmentMembership:

    def test_primary_segments(self):
        assert primary_segment("/blog-on-photography/aperture") is PortfolioSegment.BLOG
        assert primary_segment("/free-online-photography-course") is PortfolioSegment.ACADEMY
        assert primary_segment("/photography-workshops") is PortfolioSegment.LANDING
        assert primary_segment("/beginners-photography-lessons") is PortfolioSegment.EVENT
        assert primary_segment("/photo-workshops-uk/wales") is PortfolioSegment.PRODUCT
        assert primary_segment("/about-alan-ranger") is PortfolioSegment.OTHER

    def test_money_pages_roll_up(self):
        assert page_segments("/photography-workshops") == [
            PortfolioSegment.SITE, PortfolioSegment.LANDING, PortfolioSegment.MONEY,
        ]
        assert page_segments("/terms") == [PortfolioSegment.SITE, PortfolioSegment.OTHER]

    def test_tracked_patterns(self):
        patterns = tracked_patterns([
            "https://www.alanranger.com/beginners-photography-lessons/",
            "/photo-workshops-uk",
            None,
        ])
        assert patterns == ["beginners-photography-lessons", "photo-workshops-uk"]
        assert is_tracked("https://alanranger.com/photo-workshops-uk/wales", patterns)
        assert not is_tracked("https://www.alanranger.com/photography-workshops", patterns)

    def test_no_patterns_tracks_nothing(self):
        assert not is_tracked("https://www.alanranger.com/photography-workshops", [])


class TestCalibration:

    def test_scale_from_overview(self):
        pages = [PageMetrics("https://www.alanranger.com/a", clicks=50, impressions=500)]
        scale = compute_calibration([{"clicks": 100, "impressions": 550}], pages)
        assert scale.impressions == pytest.approx(1.1)
        assert scale.clicks == pytest.approx(2.0)

    def test_scale_stays_one_without_series(self):
        pages = [PageMetrics("https://www.alanranger.com/a", clicks=50, impressions=500)]
        assert compute_calibration([], pages) == CalibrationScale()

    def test_scale_stays_one_when_a_side_is_zero(self):
        pages = [PageMetrics("https://www.alanranger.com/a", clicks=0, impressions=500)]
        scale = compute_calibration([{"clicks": 10, "impressions": 0}], pages)
        assert scale == CalibrationScale()


class TestAggregateSegment:

    def test_weighted_average_position(self):
        totals = aggregate_segment([
            PageMetrics("/a", clicks=1, impressions=100, position=2),
            PageMetrics("/b", clicks=1, impressions=100, position=6),
        ])
        assert totals.avg_position == pytest.approx(4.0)
        assert totals.pages_count == 2

    def test_zero_impression_pages_excluded_from_position(self):
        totals = aggregate_segment([
            PageMetrics("/a", clicks=0, impressions=100, position=3),
            PageMetrics("/b", clicks=0, impressions=0, position=50),
        ])
        assert totals.avg_position == pytest.approx(3.0)

    def test_empty(self):
        totals = aggregate_segment([])
        assert totals.avg_position is None
        assert totals.impressions == 0


class TestPortfolioSegmentRows:

    def test_rows_for_both_scopes(self, run_pages, overview_series):
        rows = build_portfolio_segment_rows("run-1", "https://www.alanranger.com", run_pages, overview_series)
        assert len(rows) == 18
        assert rows[0].segment == "site" and rows[0].scope == "all_pages"
        assert rows[9].segment == "site" and rows[9].scope == "active_cycles_only"

    def test_all_pages_scope_is_calibrated(self, run_pages, overview_series):
        rows = build_portfolio_segment_rows("run-1", "https://www.alanranger.com", run_pages, overview_series)

        site = _row(rows, PortfolioSegment.SITE)
        assert site.impressions_28d == pytest.approx(550)
        assert site.clicks_28d == pytest.approx(70)
        assert site.pages_count == 4

        academy = _row(rows, PortfolioSegment.ACADEMY)
        assert academy.impressions_28d == pytest.approx(55)

        money = _row(rows, PortfolioSegment.MONEY)
        assert money.pages_count == 2
        assert money.impressions_28d == pytest.approx(330)
        assert money.clicks_28d == pytest.approx(30)
        assert money.ctr_28d == pytest.approx(30 / 330)
        assert money.position_28d == pytest.approx((3 * 200 + 5 * 100) / 300)

    def test_active_scope_is_tracked_and_raw(self, run_pages, overview_series):
        patterns = tracked_patterns(["https://www.alanranger.com/beginners-photography-lessons"])
        rows = build_portfolio_segment_rows(
            "run-1", "https://www.alanranger.com", run_pages, overview_series, tracked_patterns=patterns
        )

        site = _row(rows, PortfolioSegment.SITE, Scope.ACTIVE_CYCLES_ONLY)
        assert site.pages_count == 1
        assert site.impressions_28d == 100

        tracked = _row(rows, PortfolioSegment.ALL_TRACKED)
        assert tracked.pages_count == 1
        assert tracked.impressions_28d == pytest.approx(110)

        blog = _row(rows, PortfolioSegment.BLOG, Scope.ACTIVE_CYCLES_ONLY)
        assert blog.pages_count == 0
        assert blog.position_28d is None

    def test_unreadable_rows_skipped(self, run_pages):
        rows = build_portfolio_segment_rows("run-1", "https://www.alanranger.com", run_pages + [{"clicks": 5}])
        assert _row(rows, PortfolioSegment.SITE).pages_count == 4

    def test_idempotent(self, run_pages, overview_series, keyword_rows):
        first = build_portfolio_segment_rows("run-1", "s", run_pages, overview_series, keywords=keyword_rows)
        second = build_portfolio_segment_rows("run-1", "s", run_pages, overview_series, keywords=keyword_rows)
        assert [r.to_dict() for r in first] == [r.to_dict() for r in second]


class TestCitationAttribution:

    def test_counts_per_segment(self, keyword_rows):
        counts = attribute_ai_citations(keyword_rows)

        assert counts[PortfolioSegment.SITE].citations == 3
        assert counts[PortfolioSegment.SITE].overview_count == 2
        assert counts[PortfolioSegment.LANDING].citations == 1
        assert counts[PortfolioSegment.MONEY].overview_count == 1
        assert counts[PortfolioSegment.BLOG].citations == 2
        assert counts[PortfolioSegment.BLOG].overview_count == 2
        assert counts[PortfolioSegment.EVENT].citations == 0

    def test_tracked_citations(self, keyword_rows):
        counts = attribute_ai_citations(keyword_rows, ["photography-workshops"])
        assert counts[PortfolioSegment.ALL_TRACKED].citations == 1
        assert counts[PortfolioSegment.ALL_TRACKED].overview_count == 1

    def test_site_uses_stored_count(self):
        counts = attribute_ai_citations([
            {"has_ai_overview": True, "ai_alan_citations_count": 5,
             "ai_alan_citations": ["https://www.alanranger.com/photography-workshops"]},
        ])
        assert counts[PortfolioSegment.SITE].citations == 5
        assert counts[PortfolioSegment.LANDING].citations == 1

    def test_malformed_rows(self):
        counts = attribute_ai_citations([
            "not a row",
            {"ai_alan_citations": "nope", "ai_alan_citations_count": None},
            {"ai_alan_citations": [None, 7, {"href": "x"}]},
        ])
        assert counts[PortfolioSegment.SITE].citations == 0

    def test_rows_carry_citations(self, run_pages, keyword_rows):
        rows = build_portfolio_segment_rows("run-1", "s", run_pages, keywords=keyword_rows)
        assert _row(rows, PortfolioSegment.SITE).ai_citations_28d == 3
        assert _row(rows, PortfolioSegment.BLOG).ai_overview_present_count == 2


class TestSubsegmentWindows:

    @pytest.fixture
    def page_rows(self):
        return [
            {"page_url": "/photography-workshops", "date": date(2025, 12, 5),
             "clicks": 2, "impressions": 100, "position": 4},
            {"page_url": "/beginners-photography-lessons", "date": "2025-12-01",
             "clicks": 1, "impressions": 50, "position": 8},
            {"page_url": "/blog-on-photography/x", "date": date(2025, 12, 5),
             "clicks": 9, "impressions": 200, "position": 3},
            {"page_url": "/photography-workshops", "date": date(2025, 11, 1),
             "clicks": 99, "impressions": 999, "position": 1},
        ]

    @pytest.fixture
    def segment_rows(self):
        return [
            {"segment": "site", "pages_count": 10},
            {"segment": "landing", "pages_count": 3},
            {"segment": "event", "pages_count": 2},
        ]

    def test_window_rows(self, daily_series, page_rows, segment_rows):
        rows = build_subsegment_window_rows("run-1", "s", daily_series, page_rows, segment_rows)
        assert len(rows) == 12
        assert {r.window_days for r in rows} == {1, 7, 28}
        assert all(r.date_end == date(2025, 12, 5) for r in rows)

        by_key = {(r.window_days, r.segment): r for r in rows}

        landing_1 = by_key[(1, "landing")]
        assert landing_1.date_start == date(2025, 12, 5)
        assert landing_1.clicks == 2
        assert landing_1.avg_position == pytest.approx(4.0)
        assert landing_1.pages_count == 3

        other_1 = by_key[(1, "other")]
        assert other_1.clicks == 8
        assert other_1.impressions == 400
        assert other_1.avg_position == pytest.approx((500 * 12 - 100 * 4) / 400)
        assert other_1.pages_count == 5

        assert by_key[(1, "event")].impressions == 0
        assert by_key[(7, "event")].impressions == 50
        assert by_key[(7, "other")].impressions == 7 * 500 - 150
        assert by_key[(28, "landing")].clicks == 2
        assert by_key[(28, "product")].avg_position is None

    def test_other_floored_at_zero(self, page_rows):
        site = [{"date": date(2025, 12, 5), "clicks": 1, "impressions": 10, "position": 5}]
        rows = build_subsegment_window_rows("run-1", "s", site, page_rows, windows=(1,))
        other = next(r for r in rows if r.segment == "other")
        assert other.clicks == 0
        assert other.impressions == 0
        assert other.avg_position is None

    def test_no_site_series(self, page_rows):
        assert build_subsegment_window_rows("run-1", "s", [], page_rows) == []

    def test_unreadable_site_date_skipped(self, page_rows):
        """A garbage date neither anchors the window nor aborts the pass."""
        site = [
            {"date": "2025-12-01", "clicks": 4, "impressions": 300, "position": 6},
            {"date": "garbage", "clicks": 50, "impressions": 5000, "position": 1},
        ]
        rows = build_subsegment_window_rows("run-1", "s", site, page_rows, windows=(1,))

        assert len(rows) == 4
        assert all(r.date_end == date(2025, 12, 1) for r in rows)
        other = next(r for r in rows if r.segment == "other")
        assert other.impressions == 300 - 50
        assert other.clicks == 3

    def test_only_unreadable_site_dates(self, page_rows):
        assert build_subsegment_window_rows("run-1", "s", [{"date": "garbage"}], page_rows) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
