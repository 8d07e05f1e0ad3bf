"""
Keyword extraction for topic matching between market titles.
"""

import re
from typing import Optional

# Articles, auxiliaries, prepositions, conjunctions and common filler words.
STOP_WORDS = frozenset([
    "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
    "will", "would", "could", "should", "may", "might", "shall", "can",
    "do", "does", "did", "have", "has", "had", "having",
    "in", "on", "at", "to", "for", "of", "with", "by", "from", "as",
    "and", "or", "not", "no", "yes", "but", "if", "than", "that", "this",
    "it", "its", "what", "which", "who", "whom", "how", "when", "where",
    "before", "after", "above", "below", "between", "over", "under",
    "more", "most", "other", "some", "any", "all", "each", "every",
    "about", "up", "out", "into", "through", "during", "against",
    "next", "new", "first", "last", "get", "become", "per",
])

MIN_KEYWORD_LENGTH = 3

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


def extract_keywords(text: Optional[str]) -> list[str]:
    """
    Extract significant lowercase tokens from free text.

    Punctuation becomes whitespace; tokens shorter than three characters and
    stop words are dropped. Order and duplicates are preserved.

    Args:
        text: Market or event title (may be empty or None)

    Returns:
        List of keywords
    """
    if not text:
        return []

    cleaned = _NON_ALNUM.sub(" ", text.lower())
    return [
        word for word in cleaned.split()
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOP_WORDS
    ]


def keyword_similarity(keywords_a: list[str], keywords_b: list[str]) -> float:
    """
    Jaccard similarity between two keyword lists, treated as sets.

    Returns:
        0-1 where 1 means identical topics; 0 if either side is empty
    """
    if not keywords_a or not keywords_b:
        return 0.0

    set_a = set(keywords_a)
    set_b = set(keywords_b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)
