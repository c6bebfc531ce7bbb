"""Unit tests for team name normalization.

Test Strategy:
1. Test punctuation, accent, case and whitespace normalization
2. Test full names, tri-codes and nicknames resolve to one key
3. Test alternate scoreboard codes
4. Test unknown names pass through normalized

Each test follows the pattern:
- Given: A team name as a feed spells it
- When: normalize() / normalize_team_name() is called
- Then: Output matches the expected comparison key
"""
import pytest
from wagerbook.services.sync.name_normalizer import normalize, normalize_team_name, team_names_equal


class TestNormalize:
    """Plain string normalization."""

    # Punctuation and Case
    # ─────────────────────────────────────────────────────────────

    def test_removes_punctuation(self):
        """Should strip dots and other punctuation."""
        assert normalize("Philadelphia 76ers.") == "philadelphia 76ers"
        assert normalize("L.A. Lakers") == "la lakers"

    def test_lowercases_and_collapses_whitespace(self):
        assert normalize("  Boston   CELTICS ") == "boston celtics"

    def test_removes_accents(self):
        assert normalize("Montréal Équipe") == "montreal equipe"

    # Edge Cases
    # ─────────────────────────────────────────────────────────────

    def test_empty_and_none(self):
        assert normalize("") == ""
        assert normalize(None) == ""


class TestNormalizeTeamName:
    """Team aliases resolve to the normalized full name."""

    @pytest.mark.parametrize("spelling", [
        "Boston Celtics", "BOS", "bos", "Celtics", "boston  celtics",
    ])
    def test_celtics_spellings(self, spelling):
        assert normalize_team_name(spelling) == "boston celtics"

    @pytest.mark.parametrize("spelling,expected", [
        ("LA Clippers", "los angeles clippers"),
        ("LAC", "los angeles clippers"),
        ("GS", "golden state warriors"),
        ("Golden State", "golden state warriors"),
        ("BKN", "brooklyn nets"),
        ("BK", "brooklyn nets"),
        ("NY Knicks", "new york knicks"),
        ("Portland Trailblazers", "portland trail blazers"),
        ("Trail Blazers", "portland trail blazers"),
        ("76ers", "philadelphia 76ers"),
    ])
    def test_alternate_codes(self, spelling, expected):
        assert normalize_team_name(spelling) == expected

    def test_unknown_name_passes_through(self):
        assert normalize_team_name("Springfield Atoms") == "springfield atoms"

    def test_team_names_equal(self):
        assert team_names_equal("PHI", "Philadelphia 76ers")
        assert not team_names_equal("Los Angeles Lakers", "Los Angeles Clippers")
