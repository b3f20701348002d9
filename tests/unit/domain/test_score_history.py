"""Tests for the rolling score history."""

from datetime import UTC, datetime, timedelta

from chartpulse.domain.entities import (
    SCORE_HISTORY_WINDOW_DAYS,
    ScoreHistoryEntry,
    append_score_history,
)

NOW = datetime(2026, 5, 20, 3, 0, tzinfo=UTC)


def _entry(days_ago: float, composite: float = 10.0) -> ScoreHistoryEntry:
    return ScoreHistoryEntry(
        date=NOW - timedelta(days=days_ago),
        composite_score=composite,
        momentum_score=5.0,
        reach_score=1.0,
    )


class TestAppendScoreHistory:
    """Test append-then-prune behaviour."""

    def test_entry_older_than_window_is_dropped(self) -> None:
        """A 40-day-old entry disappears on the next append."""
        history = [_entry(40), _entry(10)]

        result = append_score_history(history, _entry(0, composite=42.0), NOW)

        assert [round((NOW - e.date).days) for e in result] == [10, 0]
        assert result[-1].composite_score == 42.0

    def test_two_runs_on_same_day_keep_both_entries(self) -> None:
        """There is no per-day dedup."""
        history = append_score_history([], _entry(0.1), NOW)
        history = append_score_history(history, _entry(0), NOW)

        assert len(history) == 2

    def test_entry_on_window_edge_is_kept(self) -> None:
        history = [_entry(SCORE_HISTORY_WINDOW_DAYS)]

        result = append_score_history(history, _entry(0), NOW)

        assert len(result) == 2

    def test_original_list_is_not_mutated(self) -> None:
        history = [_entry(1)]
        append_score_history(history, _entry(0), NOW)
        assert len(history) == 1

    def test_naive_dates_are_compared_as_utc(self) -> None:
        naive_old = ScoreHistoryEntry(
            date=(NOW - timedelta(days=31)).replace(tzinfo=None),
            composite_score=1.0,
            momentum_score=1.0,
        )

        result = append_score_history([naive_old], _entry(0), NOW)

        assert len(result) == 1


class TestScoreHistoryEntry:
    """Test history entry serialization."""

    def test_track_entry_has_no_reach(self) -> None:
        """Track entries omit reach_score entirely."""
        entry = ScoreHistoryEntry(date=NOW, composite_score=3.0, momentum_score=2.0)

        data = entry.to_dict()

        assert "reach_score" not in data
        assert ScoreHistoryEntry.from_dict(data) == entry

    def test_artist_entry_round_trip(self) -> None:
        entry = _entry(2)
        assert ScoreHistoryEntry.from_dict(entry.to_dict()) == entry
