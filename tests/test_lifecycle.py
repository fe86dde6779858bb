"""
Tests for the opportunity status state machine.
"""

from datetime import datetime, timedelta

import pytest

from contribux.enums import OpportunityStatus as S
from contribux.exceptions import DataIntegrityWarning, InvalidTransition
from contribux.scoring import can_transition, staleness_target, transition

NOW = datetime(2025, 6, 1)
STALE_AFTER = timedelta(days=30)
CLOSE_AFTER = timedelta(days=90)


class TestTransition:
    @pytest.mark.parametrize(
        "current,target",
        [
            (S.OPEN, S.IN_PROGRESS),
            (S.OPEN, S.STALE),
            (S.IN_PROGRESS, S.COMPLETED),
            (S.IN_PROGRESS, S.ABANDONED),
            (S.ABANDONED, S.OPEN),
            (S.STALE, S.CLOSED),
        ],
    )
    def test_allowed(self, current, target):
        assert transition(current, target) == target

    def test_accepts_strings(self):
        assert transition("open", "in_progress") == S.IN_PROGRESS

    @pytest.mark.parametrize(
        "current,target",
        [(S.COMPLETED, S.OPEN), (S.CLOSED, S.IN_PROGRESS), (S.STALE, S.OPEN), (S.IN_PROGRESS, S.STALE)],
    )
    def test_rejected(self, current, target):
        assert not can_transition(current, target)
        with pytest.raises(InvalidTransition) as exc_info:
            transition(current, target)
        assert exc_info.value.current == current.value

    def test_completion_without_start_warns(self):
        with pytest.warns(DataIntegrityWarning):
            result = transition(S.OPEN, S.COMPLETED, opportunity_id=7)
        assert result == S.COMPLETED


class TestStalenessTarget:
    def test_idle_open_becomes_stale(self):
        assert staleness_target(S.OPEN, NOW - timedelta(days=31), NOW, STALE_AFTER, CLOSE_AFTER) == S.STALE

    def test_recent_open_unchanged(self):
        assert staleness_target(S.OPEN, NOW - timedelta(days=5), NOW, STALE_AFTER, CLOSE_AFTER) is None

    def test_idle_stale_closes(self):
        assert staleness_target(S.STALE, NOW - timedelta(days=91), NOW, STALE_AFTER, CLOSE_AFTER) == S.CLOSED

    def test_other_statuses_untouched(self):
        last = NOW - timedelta(days=365)
        assert staleness_target(S.IN_PROGRESS, last, NOW, STALE_AFTER, CLOSE_AFTER) is None
