from __future__ import annotations
import re
from typing import Iterable, List


# Common Arabic function words ignored when comparing requests
STOP_WORDS = frozenset({"في", "من", "إلى", "على", "عن", "مع", "هذا", "هذه", "التي", "الذي"})

_ARABIC_RUN = re.compile(r"[\u0621-\u0652]+")


def _unique(tokens: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(tokens))


def extract_keywords(text: str) -> List[str]:
    """Lowercased whitespace tokens longer than two characters, minus stop words, first-seen order."""
    if not text:
        return []
    return _unique(w for w in text.lower().split() if len(w) > 2 and w not in STOP_WORDS)


def calculate_similarity(keywords: Iterable[str], text: str) -> float:
    """
    Overlap between a keyword set and the keywords of `text`, normalized by
    the larger of the two sets (not by their union).
    """
    if not text:
        return 0.0
    k1 = set(keywords)
    k2 = set(extract_keywords(text))
    if not k1 or not k2:
        return 0.0
    return len(k1 & k2) / max(len(k1), len(k2))


def extract_tags(text: str, limit: int = 5) -> List[str]:
    """Up to `limit` distinct Arabic-script words from `text`, no stop-word filtering."""
    return _unique(_ARABIC_RUN.findall(text.lower()))[:limit]
