"""Tests for cross-provider artist name matching."""

import pytest

from chartpulse.domain.value_objects import (
    MatchRule,
    any_name_matches,
    match_rule,
    names_match,
)


class TestMatchRule:
    """Rules are applied in order, first hit wins."""

    @pytest.mark.parametrize(
        ("target", "candidate", "expected"),
        [
            ("Beach House", "beach house", MatchRule.EXACT),
            ("  Beach House ", "BEACH HOUSE", MatchRule.EXACT),
            ("The Mountain Goats", "Mountain Goats", MatchRule.WITHOUT_ARTICLE),
            ("Mountain Goats", "The Mountain Goats", MatchRule.WITHOUT_ARTICLE),
            ("Goats", "Mountain Goats", MatchRule.CONTAINS),
            ("Car Seat Headrest (live)", "Car Seat Headrest", MatchRule.CONTAINS),
        ],
    )
    def test_rule_order(self, target: str, candidate: str, expected: MatchRule) -> None:
        assert match_rule(target, candidate) is expected

    def test_unrelated_names_do_not_match(self) -> None:
        assert match_rule("Beach House", "Real Estate") is None
        assert names_match("Beach House", "Real Estate") is False

    def test_empty_names_never_match(self) -> None:
        """An empty string would otherwise be contained in everything."""
        assert names_match("", "Beach House") is False
        assert names_match("Beach House", "   ") is False

    def test_only_leading_article_is_stripped(self) -> None:
        """'the' in the middle of a name is part of the name."""
        assert match_rule("Florence and the Machine", "Florence and Machine") is None


class TestAnyNameMatches:
    def test_one_of_several_credits_matches(self) -> None:
        assert any_name_matches("Big Thief", ["Someone Else", "big thief"]) is True

    def test_no_candidates(self) -> None:
        assert any_name_matches("Big Thief", []) is False
