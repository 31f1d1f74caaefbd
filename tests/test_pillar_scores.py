"""
Test Suite for the Pillar Score Calculator

Tests the audit pillars:
- Visibility
- Behaviour / Ranking per segment variant and Authority
- Reviews and Backlinks
- Content/Schema, Local Entity and Service Area
- Snippet readiness
"""

import pytest
from datetime import date

from src.scoring import (
    ReviewSnapshot,
    calculate_pillar_scores,
    calculate_snippet_readiness,
    compute_backlink_score,
    compute_behaviour_score,
    compute_content_schema,
    compute_local_entity,
    compute_ranking_score,
    compute_review_score,
    compute_segmented_scores,
    compute_service_area,
    compute_visibility,
    resolve_site_reviews,
    round_half_up,
    snapshot_from_settings,
    weighted_average_position,
)
from src.utils.config import Settings


class TestHelpers:

    def test_round_half_up(self):
        assert round_half_up(78.5) == 79
        assert round_half_up(2.5) == 3
        assert round_half_up(78.4) == 78

    def test_weighted_average_position(self):
        assert weighted_average_position([(2, 100), (6, 100)]) == pytest.approx(4.0)

    def test_weighted_average_ignores_empty_pairs(self):
        assert weighted_average_position([(2, 100), (None, 500), (9, 0)]) == pytest.approx(2.0)
        assert weighted_average_position([]) is None


class TestVisibility:
    """1 → 100, 40 → 10, linear between."""

    def test_endpoints(self):
        assert compute_visibility(1) == 100
        assert compute_visibility(40) == 10

    def test_midpoint(self):
        assert compute_visibility(20.5) == 55

    def test_clamped_and_default(self):
        assert compute_visibility(0.4) == 100
        assert compute_visibility(90) == 10
        assert compute_visibility(None) == 10

    def test_monotonic(self):
        scores = [compute_visibility(p) for p in range(1, 41)]
        assert scores == sorted(scores, reverse=True)


class TestBehaviourAndRanking:

    def test_neutral_without_ranking_rows(self):
        assert compute_behaviour_score([]) == 50
        assert compute_ranking_score([{"query": "x", "impressions": 10, "position": 35}]) == 50

    def test_behaviour_caps_at_targets(self):
        score = compute_behaviour_score([{"query": "a", "impressions": 100, "clicks": 20, "position": 2}])
        assert score == pytest.approx(100)

    def test_top10_ctr_falls_back_to_overall(self):
        score = compute_behaviour_score([{"query": "a", "impressions": 100, "clicks": 2, "position": 15}])
        # CTR 2%: 0.5 × 40 + 0.5 × 20
        assert score == pytest.approx(30)

    def test_ranking_score(self):
        score = compute_ranking_score([
            {"query": "a", "impressions": 100, "clicks": 1, "position": 1},
            {"query": "b", "impressions": 100, "clicks": 1, "position": 19},
        ])
        # avg position 10 → 100 − 9/19 × 90; half the impressions in the top 10
        assert score == pytest.approx(0.5 * (100 - 9 / 19 * 90) + 0.5 * 50)

    def test_three_row_scenario_money_variant(self, three_query_rows):
        """Only the workshops row feeds the money variant."""
        scores = compute_segmented_scores(three_query_rows)

        assert scores["behaviour"].money == pytest.approx(100)
        assert scores["behaviour"].all == pytest.approx(0.5 * 100 + 0.5 * (22 / 300) / 0.10 * 100)
        assert scores["behaviour"].non_education == pytest.approx(100)
        assert scores["ranking"].money == pytest.approx(0.5 * (100 - 1 / 19 * 90) + 50)


class TestReviewsAndBacklinks:

    def test_review_average(self):
        assert compute_review_score(gbp_rating=4.5, gbp_count=40, site_rating=4.6, site_count=610) == 91

    def test_review_single_source(self):
        assert compute_review_score(site_rating=4.6, site_count=610) == 92
        assert compute_review_score(gbp_rating=4.0, gbp_count=12) == 80

    def test_review_neutral(self):
        assert compute_review_score() == 50

    def test_backlinks(self):
        metrics = {"referringDomains": 50, "totalBacklinks": 2000, "followRatio": 0.8}
        assert compute_backlink_score(metrics) == 71

    def test_backlinks_absent(self):
        assert compute_backlink_score(None) == 0
        assert compute_backlink_score({"referringDomains": 0, "totalBacklinks": 0, "followRatio": 1}) == 0

    def test_snapshot_from_settings(self):
        settings = Settings(TRUSTPILOT_RATING=4.7, TRUSTPILOT_REVIEW_COUNT=700,
                            TRUSTPILOT_SNAPSHOT_DATE=date(2026, 1, 2))
        snapshot = snapshot_from_settings(settings)
        assert snapshot.site_rating == 4.7
        assert snapshot.last_updated == "2026-01-02"

    def test_live_reviews_override_snapshot(self):
        snapshot = ReviewSnapshot(site_rating=4.6, site_review_count=610, last_updated="2025-12-07")
        live = resolve_site_reviews({"siteRating": 4.9, "siteReviewCount": 650}, snapshot)
        assert live.site_rating == 4.9
        assert live.last_updated == "2025-12-07"

        partial = resolve_site_reviews({"siteRating": 4.9}, snapshot)
        assert partial is snapshot


class TestContentAndLocal:

    def test_content_schema(self, ok_schema_audit):
        result = compute_content_schema(ok_schema_audit)
        assert result.foundation_score == 50
        assert result.coverage_score == 50
        assert result.diversity_score == pytest.approx(20)
        assert result.score == 31

    def test_content_schema_requires_ok_status(self, ok_schema_audit):
        assert compute_content_schema(None).score == 0
        assert compute_content_schema({**ok_schema_audit, "status": "error"}).score == 0

    def test_local_entity_fallback(self):
        assert compute_local_entity(None, ctr=0.10, visibility=100) == 85
        assert compute_service_area(None, 85) == 80

    def test_local_entity_from_signals(self):
        signals = {
            "status": "ok",
            "data": {
                "napConsistencyScore": 80,
                "knowledgePanelDetected": True,
                "locations": [{"name": "Coventry"}],
                "serviceAreas": ["Coventry", "Warwick", "Solihull", "Rugby"],
            },
        }
        assert compute_local_entity(signals, ctr=0, visibility=0) == 95
        # 4 areas × 12.5 scaled by NAP 80%
        assert compute_service_area(signals, 95) == 40


class TestCalculatePillarScores:

    def test_full_record(self, three_query_rows, ok_schema_audit):
        scores = calculate_pillar_scores(
            {"averagePosition": 1, "ctr": 0.1, "queryPages": three_query_rows},
            schema_audit=ok_schema_audit,
            backlink_metrics={"referringDomains": 50, "totalBacklinks": 2000, "followRatio": 0.8},
            review_snapshot=None,
        )

        assert scores.visibility == 100
        assert scores.review_score == 50
        assert scores.backlink_score == 71
        assert scores.content_schema == 31
        assert scores.local_entity == 85
        assert scores.service_area == 80
        assert scores.authority.by_segment["money"].behaviour == 100
        assert scores.authority.score == scores.authority.by_segment["all"].total
        assert scores.site_reviews is None

    def test_defaults_with_empty_search_data(self):
        scores = calculate_pillar_scores({}, review_snapshot=None)
        assert scores.visibility == 10
        assert scores.authority.by_segment["all"].behaviour == 50
        assert scores.brand_overlay.brand_avg_position is None

    def test_snapshot_feeds_review_score(self):
        snapshot = ReviewSnapshot(site_rating=4.6, site_review_count=610)
        scores = calculate_pillar_scores({}, review_snapshot=snapshot)
        assert scores.review_score == 92

    @pytest.mark.parametrize("local_signals,expected", [
        ({"status": "error", "data": {"gbpRating": 4.0, "gbpReviewCount": 12}}, 80),
        ({"gbpRating": 4.0, "gbpReviewCount": 12}, 80),
        ({"status": "error", "gbpRating": 4.0}, 50),
        (None, 50),
    ])
    def test_gbp_rating_read_whatever_the_status(self, local_signals, expected):
        scores = calculate_pillar_scores({}, local_signals=local_signals, review_snapshot=None)
        assert scores.review_score == expected

    def test_snippet_readiness(self, three_query_rows, ok_schema_audit):
        scores = calculate_pillar_scores(
            {"averagePosition": 1, "queryPages": three_query_rows},
            schema_audit=ok_schema_audit,
            review_snapshot=None,
        )
        expected = round_half_up(
            0.4 * scores.content_schema + 0.35 * scores.visibility + 0.25 * scores.authority.score
        )
        assert calculate_snippet_readiness(scores) == expected


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
