"""Team name normalization for matching records across feeds.

The odds feed reports full names ("Boston Celtics"), the results feed
often reports tri-codes ("BOS") or short forms ("LA Clippers"). Both are
reduced to one canonical key before comparison:

- Accents: "Montréal" → "montreal"
- Punctuation: "Philadelphia 76ers." → "philadelphia 76ers"
- Case and extra spaces: "BOSTON  CELTICS" → "boston celtics"
- Aliases: "BOS", "Celtics" → "boston celtics"
"""
import re
import unicodedata
from typing import Dict


# Canonical full name -> 3-letter abbreviation (odds feed naming)
TEAM_NAME_TO_ABBREV = {
    "Atlanta Hawks": "ATL",
    "Boston Celtics": "BOS",
    "Brooklyn Nets": "BKN",
    "Charlotte Hornets": "CHA",
    "Chicago Bulls": "CHI",
    "Cleveland Cavaliers": "CLE",
    "Dallas Mavericks": "DAL",
    "Denver Nuggets": "DEN",
    "Detroit Pistons": "DET",
    "Golden State Warriors": "GSW",
    "Houston Rockets": "HOU",
    "Indiana Pacers": "IND",
    "Los Angeles Clippers": "LAC",
    "Los Angeles Lakers": "LAL",
    "Memphis Grizzlies": "MEM",
    "Miami Heat": "MIA",
    "Milwaukee Bucks": "MIL",
    "Minnesota Timberwolves": "MIN",
    "New Orleans Pelicans": "NOP",
    "New York Knicks": "NYK",
    "Oklahoma City Thunder": "OKC",
    "Orlando Magic": "ORL",
    "Philadelphia 76ers": "PHI",
    "Phoenix Suns": "PHX",
    "Portland Trail Blazers": "POR",
    "Sacramento Kings": "SAC",
    "San Antonio Spurs": "SAS",
    "Toronto Raptors": "TOR",
    "Utah Jazz": "UTA",
    "Washington Wizards": "WAS",
}

# Alternate codes and short forms seen in scoreboards
_EXTRA_ALIASES = {
    "Brooklyn Nets": ["BK", "BRK"],
    "Charlotte Hornets": ["CHO"],
    "Golden State Warriors": ["GS", "Golden State"],
    "Los Angeles Clippers": ["LA Clippers"],
    "Los Angeles Lakers": ["LA Lakers"],
    "New Orleans Pelicans": ["NO", "NOR"],
    "New York Knicks": ["NY", "NY Knicks"],
    "Phoenix Suns": ["PHO"],
    "San Antonio Spurs": ["SA"],
    "Utah Jazz": ["UTAH"],
    "Washington Wizards": ["WSH"],
    "Portland Trail Blazers": ["Portland Trailblazers", "Trail Blazers"],
}


def normalize(name: str) -> str:
    """
    Reduce a name to lowercase ASCII words separated by single spaces.

    Examples:
        >>> normalize("Philadelphia 76ers.")
        'philadelphia 76ers'
        >>> normalize("  L.A.  Lakers ")
        'la lakers'
    """
    if not name:
        return ""

    decomposed = unicodedata.normalize('NFD', name)
    name = ''.join(c for c in decomposed if unicodedata.category(c) != 'Mn')
    name = name.lower()
    name = re.sub(r'[^\w\s]', '', name)
    return ' '.join(name.split())


def _build_alias_map() -> Dict[str, str]:
    aliases = {}
    for full_name, abbrev in TEAM_NAME_TO_ABBREV.items():
        canonical = normalize(full_name)
        aliases[canonical] = canonical
        aliases[normalize(abbrev)] = canonical
        # Nickname alone ("Celtics")
        aliases.setdefault(normalize(full_name.rsplit(" ", 1)[-1]), canonical)
        for extra in _EXTRA_ALIASES.get(full_name, []):
            aliases[normalize(extra)] = canonical
    return aliases


TEAM_ALIASES = _build_alias_map()


def normalize_team_name(team_name: str) -> str:
    """
    Canonical comparison key for a team name.

    Known NBA names, tri-codes and short forms map to the normalized full
    name; anything else is returned normalized but otherwise unchanged.

    Examples:
        >>> normalize_team_name("BOS")
        'boston celtics'
        >>> normalize_team_name("LA Clippers")
        'los angeles clippers'
        >>> normalize_team_name("Boston Celtics")
        'boston celtics'
    """
    key = normalize(team_name)
    return TEAM_ALIASES.get(key, key)


def team_names_equal(name1: str, name2: str) -> bool:
    """Check if two team names refer to the same team after normalization."""
    return normalize_team_name(name1) == normalize_team_name(name2)
