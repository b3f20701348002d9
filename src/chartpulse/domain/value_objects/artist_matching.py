"""Artist name matching across providers.

Hey future me - providers share NO key, so when we search Spotify for "Mountain Goats"
we need to decide whether the result "The Mountain Goats" is the same act. The rule set
is deliberately dumb and ordered, first hit wins:

1. exact match, case-insensitive            "beach house" == "Beach House"
2. equal after stripping one leading "the " "The Mountain Goats" == "Mountain Goats"
3. substring containment, either direction   "Goats" in "Mountain Goats"

No edit distance, no phonetics, no scoring. False positives ("Goats" vs "Mountain Goats")
are accepted - best-effort dedup is all we promise. Don't "improve" this without
deciding what to do with every artist already bridged under the old rules.

Examples:
    >>> names_match("Mountain Goats", "The Mountain Goats")
    True
    >>> names_match("Mountain Goats", "Goats")
    True
    >>> names_match("Beach House", "Real Estate")
    False
"""

from collections.abc import Iterable
from enum import Enum

LEADING_ARTICLE = "the "


class MatchRule(str, Enum):
    """Which rule produced a positive match."""

    EXACT = "exact"
    WITHOUT_ARTICLE = "without_article"
    CONTAINS = "contains"


def _strip_leading_article(name: str) -> str:
    if name.startswith(LEADING_ARTICLE):
        return name[len(LEADING_ARTICLE) :]
    return name


def match_rule(target: str, candidate: str) -> MatchRule | None:
    """Return the first rule under which two artist names match, or None.

    Args:
        target: Name we are looking for (our Unified Artist's name)
        candidate: Name a provider returned

    Returns:
        The matching rule, or None when no rule applies
    """
    left = (target or "").strip().lower()
    right = (candidate or "").strip().lower()

    # Empty names would "contain" each other - never a match
    if not left or not right:
        return None

    if left == right:
        return MatchRule.EXACT

    if _strip_leading_article(left) == _strip_leading_article(right):
        return MatchRule.WITHOUT_ARTICLE

    if left in right or right in left:
        return MatchRule.CONTAINS

    return None


def names_match(target: str, candidate: str) -> bool:
    """Fuzzy equality for artist names (see module docstring for the rules)."""
    return match_rule(target, candidate) is not None


def any_name_matches(target: str, candidates: Iterable[str]) -> bool:
    """True if at least one candidate name matches the target."""
    return any(names_match(target, candidate) for candidate in candidates)
