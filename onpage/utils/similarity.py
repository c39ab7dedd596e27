"""
Similarity Kernel

Pure string/text similarity functions used by the healing strategies.

- string_similarity: normalized Levenshtein (selectors, ids, class names)
- text_similarity: Jaccard over lower-cased word sets (free text)

Edit distance is O(len(a) * len(b)); callers bound their candidate sets.
"""

import re


_WHITESPACE = re.compile(r"\s+")


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


def string_similarity(a: str, b: str) -> float:
    """
    1 - distance / max(len(a), len(b)).

    Equal strings score 1; an empty operand scores 0.
    """
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    distance = levenshtein_distance(a, b)
    return 1.0 - distance / max(len(a), len(b))


def normalize_text(text: str) -> str:
    """Collapse whitespace runs and trim."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", str(text)).strip()


def normalize_key(text: str) -> str:
    """normalize_text + lower-case, for dedup keys."""
    return normalize_text(text).lower()


def text_similarity(a: str, b: str) -> float:
    """Jaccard index of the whitespace-separated token sets."""
    if not a or not b:
        return 0.0
    clean_a = normalize_key(a)
    clean_b = normalize_key(b)
    if not clean_a or not clean_b:
        return 0.0
    if clean_a == clean_b:
        return 1.0
    words_a = set(clean_a.split(" "))
    words_b = set(clean_b.split(" "))
    union = words_a | words_b
    return len(words_a & words_b) / len(union)
