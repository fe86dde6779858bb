"""
Tests for repository health scoring and reports.
"""

from datetime import datetime, timedelta

import pytest

from contribux.enums import HealthStatus
from contribux.exceptions import InvalidWeights
from contribux.scoring import HealthSignals, HealthWeights, RepositorySnapshot, health_report, repository_health

NOW = datetime(2025, 6, 1)


class TestRepositoryHealth:
    def test_no_signals_scores_zero(self):
        assert repository_health(HealthSignals(), now=NOW) == 0.0

    def test_all_signals_maxed(self):
        signals = HealthSignals(
            last_activity_at=NOW - timedelta(days=1),
            median_response_hours=2,
            pr_merge_rate=1.0,
            issue_close_rate=1.0,
            has_contributing_guide=True,
        )
        assert repository_health(signals, now=NOW) == pytest.approx(100.0)

    @pytest.mark.parametrize(
        "days,points",
        [(3, 30.0), (7, 30.0), (20, 20.0), (60, 10.0), (365, 0.0)],
    )
    def test_recency_buckets(self, days, points):
        signals = HealthSignals(last_activity_at=NOW - timedelta(days=days))
        assert repository_health(signals, now=NOW) == pytest.approx(points)

    @pytest.mark.parametrize(
        "hours,points",
        [(12, 25.0), (72, 15.0), (24 * 20, 10.0), (24 * 90, 0.0)],
    )
    def test_responsiveness_buckets(self, hours, points):
        assert repository_health(HealthSignals(median_response_hours=hours), now=NOW) == pytest.approx(points)

    def test_rates_are_clamped(self):
        signals = HealthSignals(pr_merge_rate=1.7, issue_close_rate=-0.4)
        assert repository_health(signals, now=NOW) == pytest.approx(20.0)

    def test_accepts_repository_snapshot(self):
        repo = RepositorySnapshot(id=1, full_name="octo/a", signals=HealthSignals(pr_merge_rate=0.5))
        assert repository_health(repo, now=NOW) == pytest.approx(10.0)

    def test_custom_weights(self):
        weights = HealthWeights(contributing_guide=40.0)
        signals = HealthSignals(has_contributing_guide=True)
        assert repository_health(signals, now=NOW, weights=weights) == pytest.approx(40.0)

    def test_unsorted_buckets_rejected(self):
        with pytest.raises(InvalidWeights):
            HealthWeights(recency_points=((30, 20.0), (7, 30.0)))


class TestHealthReport:
    def test_strengths_and_improvements(self):
        repo = RepositorySnapshot(
            id=3,
            full_name="octo/pyweb",
            activity_score=85,
            community_score=75,
            documentation_score=40,
            contributor_friendliness=60,
        )

        report = health_report(repo, health_score=65.0, total_opportunities=4, open_opportunities=2)

        assert report.status == HealthStatus.GOOD
        assert report.strengths == ("active_development", "strong_community")
        assert report.improvement_areas == ("improve_docs",)
        assert report.to_dict()["open_opportunities"] == 2

    @pytest.mark.parametrize(
        "score,status",
        [
            (95.0, HealthStatus.EXCELLENT),
            (80.0, HealthStatus.EXCELLENT),
            (45.0, HealthStatus.FAIR),
            (10.0, HealthStatus.NEEDS_IMPROVEMENT),
        ],
    )
    def test_status_buckets(self, score, status):
        repo = RepositorySnapshot(id=1, full_name="octo/a")
        assert health_report(repo, health_score=score).status == status
