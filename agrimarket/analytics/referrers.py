"""
Referrer Classification

Maps a referrer URL to a traffic-source label through an ordered rule table.
Best-effort heuristic: the first matching rule wins, anything unmatched is
"Other", and a missing referrer is "Direct".
"""

import re
from dataclasses import dataclass
from typing import Any, Optional, Pattern, Sequence
from urllib.parse import urlsplit

DIRECT = "Direct"
OTHER = "Other"

# Values the tracker uses for "no referrer"
DIRECT_MARKERS = frozenset({"", "$direct", "direct"})


@dataclass(frozen=True)
class ReferrerRule:
    """Hostname pattern and the source label it maps to"""
    pattern: Pattern[str]
    label: str

    def matches(self, hostname: str) -> bool:
        return self.pattern.search(hostname) is not None


def _rule(pattern: str, label: str) -> ReferrerRule:
    return ReferrerRule(pattern=re.compile(pattern), label=label)


REFERRER_RULES: Sequence[ReferrerRule] = (
    _rule(r"google\.", "Google"),
    _rule(r"(^|\.)bing\.com$", "Bing"),
    _rule(r"duckduckgo\.", "DuckDuckGo"),
    _rule(r"(^|\.)yahoo\.", "Yahoo"),
    _rule(r"facebook\.|(^|\.)fb\.(com|me)$", "Facebook"),
    _rule(r"twitter\.|(^|\.)t\.co$|(^|\.)x\.com$", "Twitter"),
    _rule(r"instagram\.", "Instagram"),
    _rule(r"linkedin\.|(^|\.)lnkd\.in$", "LinkedIn"),
    _rule(r"youtube\.|(^|\.)youtu\.be$", "YouTube"),
    _rule(r"tiktok\.", "TikTok"),
    _rule(r"pinterest\.", "Pinterest"),
    _rule(r"whatsapp\.|(^|\.)wa\.me$", "WhatsApp"),
)


def referrer_hostname(referrer: str) -> Optional[str]:
    """Lower-cased hostname of a referrer URL, or None when it is not a URL."""
    try:
        hostname = urlsplit(referrer.strip()).hostname
    except ValueError:
        return None
    return hostname.lower() if hostname else None


def classify_referrer(referrer: Any, rules: Sequence[ReferrerRule] = REFERRER_RULES) -> str:
    """
    Classify a referrer value into a traffic-source label.

    Examples:
        classify_referrer("https://www.google.co.za/search?q=maize") == "Google"
        classify_referrer(None) == "Direct"
        classify_referrer("not a url") == "Other"
    """
    if referrer is None:
        return DIRECT
    if not isinstance(referrer, str):
        return OTHER
    if referrer.strip().lower() in DIRECT_MARKERS:
        return DIRECT

    hostname = referrer_hostname(referrer)
    if hostname is None:
        return OTHER

    for rule in rules:
        if rule.matches(hostname):
            return rule.label
    return OTHER
