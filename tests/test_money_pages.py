"""
Test Suite for the Money Page Analyzer

Covers:
- Opportunity classification boundaries and schema-gap phrasing
- Lost clicks, batch-relative impact and the priority grid
- The money-pages table and overview
"""

import pytest

from src.models import PageRow
from src.scoring import (
    Level,
    OpportunityCategory,
    build_money_page_metrics,
    build_money_pages_summary,
    build_money_segment_summary,
    classify_opportunity,
    compute_difficulty_level,
    compute_money_pages_behaviour,
    compute_money_pages_metrics,
    compute_site_aggregate,
    derive_priority_level,
    expected_ctr_for_position,
)
from src.segment import MoneySubSegment


class TestClassifyOpportunity:
    """HIGH_OPPORTUNITY / MAINTAIN / VISIBILITY_FIX."""

    def test_low_ctr_at_good_position_is_high_opportunity(self):
        result = classify_opportunity({"avg_position": 5, "impressions": 500, "ctr": 0.01})
        assert result.category is OpportunityCategory.HIGH_OPPORTUNITY
        assert result.color == "amber"

    def test_good_ctr_at_good_position_is_maintain(self):
        result = classify_opportunity({"avg_position": 5, "impressions": 500, "ctr": 0.06})
        assert result.category is OpportunityCategory.MAINTAIN
        assert result.color == "green"

    def test_too_few_impressions_is_visibility_fix(self):
        result = classify_opportunity({"avg_position": 5, "impressions": 99, "ctr": 0.01})
        assert result.category is OpportunityCategory.VISIBILITY_FIX
        assert result.color == "red"

    def test_band_targets(self):
        """5% up to position 6, 3% up to 10, 2% up to 15."""
        assert classify_opportunity(
            {"avg_position": 9, "impressions": 200, "ctr": 0.029}
        ).category is OpportunityCategory.HIGH_OPPORTUNITY
        assert classify_opportunity(
            {"avg_position": 12, "impressions": 200, "ctr": 0.021}
        ).category is OpportunityCategory.VISIBILITY_FIX
        assert classify_opportunity(
            {"avg_position": 12, "impressions": 200, "ctr": 0.019}
        ).category is OpportunityCategory.HIGH_OPPORTUNITY

    def test_position_above_three_required(self):
        result = classify_opportunity({"avg_position": 2, "impressions": 500, "ctr": 0.01})
        assert result.category is OpportunityCategory.VISIBILITY_FIX

    def test_missing_metrics_default(self):
        result = classify_opportunity({})
        assert result.category is OpportunityCategory.VISIBILITY_FIX
        assert "avg position 99.0" in result.recommendation

    def test_schema_gap_names_all_when_absent(self):
        result = classify_opportunity(
            {"avg_position": 5, "impressions": 500, "ctr": 0.01}, has_schema=False
        )
        assert "Product/Event/FAQ schema" in result.recommendation

    def test_schema_gap_names_only_missing(self):
        result = classify_opportunity(
            {"avg_position": 5, "impressions": 500, "ctr": 0.01},
            has_schema=True,
            schema_types=[{"type": "Event"}],
        )
        assert "Add Product/FAQPage schema" in result.recommendation

    def test_no_schema_note_when_complete(self):
        result = classify_opportunity(
            {"avg_position": 5, "impressions": 500, "ctr": 0.01},
            has_schema=True,
            schema_types=["Product", "Event", "FAQPage"],
        )
        assert "schema" not in result.recommendation


class TestExpectedCtr:
    def test_step_function(self):
        assert expected_ctr_for_position(3) == 0.10
        assert expected_ctr_for_position(6) == 0.07
        assert expected_ctr_for_position(10) == 0.05
        assert expected_ctr_for_position(20) == 0.03
        assert expected_ctr_for_position(21) == 0.02


class TestPriorityGrid:
    """Impact, difficulty and the priority lookup."""

    def test_difficulty_bands(self):
        assert compute_difficulty_level(5, MoneySubSegment.LANDING, False) is Level.LOW
        assert compute_difficulty_level(10, MoneySubSegment.LANDING, False) is Level.MEDIUM
        assert compute_difficulty_level(11, MoneySubSegment.LANDING, False) is Level.HIGH

    def test_difficulty_escalates_without_key_schema(self):
        assert compute_difficulty_level(4, MoneySubSegment.EVENT, False) is Level.MEDIUM
        assert compute_difficulty_level(8, MoneySubSegment.PRODUCT, False) is Level.HIGH
        assert compute_difficulty_level(4, MoneySubSegment.EVENT, True) is Level.LOW

    @pytest.mark.parametrize("impact,difficulty,expected", [
        (Level.HIGH, Level.LOW, Level.HIGH),
        (Level.HIGH, Level.MEDIUM, Level.HIGH),
        (Level.HIGH, Level.HIGH, Level.MEDIUM),
        (Level.MEDIUM, Level.LOW, Level.MEDIUM),
        (Level.MEDIUM, Level.HIGH, Level.LOW),
        (Level.LOW, Level.LOW, Level.LOW),
    ])
    def test_priority_table(self, impact, difficulty, expected):
        assert derive_priority_level(impact, difficulty) is expected

    def test_impact_is_batch_relative(self, ok_schema_audit):
        pages = [
            {"url": "https://www.alanranger.com/photography-workshops", "impressions": 1000, "ctr": 0.0, "position": 2},
            {"url": "https://www.alanranger.com/beginners-photography-lessons", "impressions": 500, "ctr": 0.0, "position": 2},
            {"url": "https://www.alanranger.com/photo-workshops-uk/peak-district", "impressions": 100, "ctr": 0.0, "position": 2},
            {"url": "https://www.alanranger.com/terms", "impressions": 5000, "ctr": 0.0, "position": 2},
        ]
        metrics = build_money_page_metrics(pages, schema_audit=ok_schema_audit)

        assert [m.url for m in metrics] == [p["url"] for p in pages[:3]]
        assert metrics[0].lost_clicks == pytest.approx(100.0)
        assert [m.impact_level for m in metrics] == [Level.HIGH, Level.MEDIUM, Level.LOW]
        # The event page carries Event schema; the product page has none
        assert metrics[1].difficulty_level is Level.LOW
        assert metrics[2].difficulty_level is Level.MEDIUM
        assert metrics[0].priority_level is Level.HIGH

        # Dropping the largest page re-bands the rest
        rebanded = build_money_page_metrics(pages[1:3], schema_audit=ok_schema_audit)
        assert rebanded[0].impact_level is Level.HIGH

    def test_key_schema_read_whatever_the_audit_status(self, ok_schema_audit):
        page = {"url": "https://www.alanranger.com/beginners-photography-lessons",
                "impressions": 500, "ctr": 0.0, "position": 2}
        partial = {**ok_schema_audit, "status": "partial"}

        assert build_money_page_metrics([page], schema_audit=partial)[0].difficulty_level is Level.LOW
        assert build_money_page_metrics([page], schema_audit=None)[0].difficulty_level is Level.MEDIUM

    def test_all_low_when_nothing_lost(self):
        metrics = build_money_page_metrics([
            {"url": "/photography-workshops", "impressions": 100, "ctr": 0.5, "position": 2},
        ])
        assert metrics[0].impact_level is Level.LOW
        assert metrics[0].lost_clicks == 0

    def test_percent_ctr_normalised(self):
        metrics = build_money_page_metrics([
            {"url": "/photography-workshops", "impressions": 100, "ctr": 4.0, "position": 2},
        ])
        assert metrics[0].ctr == pytest.approx(0.04)

    def test_segment_summary(self):
        metrics = build_money_page_metrics([
            {"url": "/photography-workshops", "impressions": 100, "clicks": 5, "position": 2},
            {"url": "/beginners-photography-lessons", "impressions": 300, "clicks": 15, "position": 6},
        ])
        summary = build_money_segment_summary(metrics, {"all_money": 61.0})
        assert summary["all_money"].impressions == 400
        assert summary["all_money"].avg_position == pytest.approx(4.0)
        assert summary["all_money"].behaviour_score == 61.0
        assert summary["event_pages"].clicks == 15
        assert summary["product_pages"].impressions == 0


class TestMoneyPagesTable:
    """Overview card and sorted rows."""

    def test_only_money_pages_and_sorted(self, three_page_rows):
        rows = three_page_rows + [
            {"url": "https://www.alanranger.com/photography-courses-coventry", "impressions": 800, "clicks": 4, "position": 7},
        ]
        site = compute_site_aggregate(rows)
        metrics = compute_money_pages_metrics(rows, site_aggregate=site)

        assert [r.url for r in metrics.rows] == [
            "https://www.alanranger.com/photography-courses-coventry",
            "https://www.alanranger.com/photography-workshops",
        ]
        assert metrics.rows[0].category is OpportunityCategory.HIGH_OPPORTUNITY
        assert metrics.rows[1].category is OpportunityCategory.MAINTAIN
        assert metrics.overview.money_impressions == 1000
        assert metrics.overview.money_coverage_count == 2
        assert metrics.overview.site_total_impressions == 1110
        assert metrics.summary_by_sub_segment["landing"].count == 2

    def test_unreadable_row_skipped(self):
        metrics = compute_money_pages_metrics([
            {"url": "/photography-workshops", "impressions": 100, "clicks": 1, "position": 4},
            None,
        ])
        assert len(metrics.rows) == 1

    def test_summary_and_behaviour(self, three_page_rows, three_query_rows):
        metrics = compute_money_pages_metrics(three_page_rows, compute_site_aggregate(three_page_rows))
        behaviour = compute_money_pages_behaviour(three_query_rows, metrics.rows)
        summary = build_money_pages_summary(metrics, behaviour)

        assert behaviour.impressions == 200
        assert behaviour.top10_share == 1.0
        assert summary.count == 1
        assert summary.share_of_impressions == pytest.approx(200 / 310)
        assert summary.behaviour_score == behaviour.score

    def test_summary_none_without_money_pages(self):
        metrics = compute_money_pages_metrics([PageRow(url="/terms", impressions=10)])
        assert build_money_pages_summary(metrics) is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
