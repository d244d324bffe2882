"""Near-duplicate title detection.

A lexical heuristic: titles are lowercased, trimmed and split on whitespace
into token sets, and compared by Jaccard similarity. It runs over the whole
corpus on every call, which is fine for an internal knowledge base.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

DEFAULT_THRESHOLD = 0.8


@dataclass(frozen=True)
class SimilarMatch(Generic[T]):
    match: T
    similarity: int  # percent, 0..100


def tokenize(title: str | None) -> frozenset[str]:
    if not title:
        return frozenset()
    return frozenset(title.lower().strip().split())


def jaccard(left: frozenset[str], right: frozenset[str]) -> float:
    union = left | right
    if not union:
        # Two empty titles carry no evidence of duplication
        return 0.0
    return len(left & right) / len(union)


def similarity_percent(left: str | None, right: str | None) -> int:
    return round(jaccard(tokenize(left), tokenize(right)) * 100)


def find_similar(
    candidate_title: str | None,
    corpus: Iterable[T],
    threshold: float = DEFAULT_THRESHOLD,
    title_of=None,
) -> list[SimilarMatch[T]]:
    """Rank corpus entries whose title similarity reaches ``threshold``.

    ``corpus`` may hold plain strings or arbitrary objects; pass ``title_of``
    to extract the title from each object. The result is sorted by
    similarity, highest first, and equal scores keep their corpus order.
    """
    extract = title_of or (lambda item: item)
    candidate_tokens = tokenize(candidate_title)
    matches: list[SimilarMatch[T]] = []
    for item in corpus:
        percent = round(jaccard(candidate_tokens, tokenize(extract(item))) * 100)
        if percent / 100 >= threshold:
            matches.append(SimilarMatch(match=item, similarity=percent))
    # sorted() is stable, so ties stay in corpus order
    return sorted(matches, key=lambda m: m.similarity, reverse=True)
