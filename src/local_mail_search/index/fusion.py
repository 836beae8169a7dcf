"""Reciprocal Rank Fusion of keyword and semantic result lists.

RRF scores each email by summing ``weight / (k + rank)`` over every ranked
list it appears in, where ``rank`` is the 1-based position in that list.

Provides:
- merge(): Fuse a keyword ranking and a semantic ranking
- rank_items(): Turn an ordered list of ids into RankedItems
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

DEFAULT_K = 60.0
DEFAULT_KEYWORD_WEIGHT = 1.0
DEFAULT_SEMANTIC_WEIGHT = 1.5


class MatchSource(str, Enum):
    """Which ranked lists contributed to a merged result."""

    KEYWORD = "keyword"
    SEMANTIC = "semantic"
    BOTH = "both"


@dataclass(frozen=True)
class RankedItem:
    """An email at a 1-based position in one source's ranking."""

    email_id: str
    rank: int


@dataclass(frozen=True)
class MergedResult:
    """A fused result. Higher score means more relevant."""

    email_id: str
    score: float
    match_source: MatchSource


def rank_items(email_ids: Iterable[str]) -> list[RankedItem]:
    """
    Convert an ordered id list (best first) into RankedItems.

    Example:
        >>> rank_items(["a", "b"])
        [RankedItem(email_id='a', rank=1), RankedItem(email_id='b', rank=2)]
    """
    return [
        RankedItem(email_id=email_id, rank=position)
        for position, email_id in enumerate(email_ids, start=1)
    ]


def merge(
    keyword_results: Sequence[RankedItem],
    semantic_results: Sequence[RankedItem],
    k: float = DEFAULT_K,
    keyword_weight: float = DEFAULT_KEYWORD_WEIGHT,
    semantic_weight: float = DEFAULT_SEMANTIC_WEIGHT,
) -> list[MergedResult]:
    """
    Merge keyword and semantic rankings with Reciprocal Rank Fusion.

    An email found by both sources gets the sum of both contributions and
    ``MatchSource.BOTH``. A zero weight zeroes that source's contribution
    but still keeps its emails in the output.

    Ties are broken by discovery order: emails from the keyword list in
    keyword order, then emails only found semantically in semantic order.

    Args:
        keyword_results: Ranked list from the lexical index (best first)
        semantic_results: Ranked list from the vector index (best first)
        k: RRF constant; larger values flatten rank influence (default: 60)
        keyword_weight: Weight of the keyword source (default: 1.0)
        semantic_weight: Weight of the semantic source (default: 1.5)

    Returns:
        One MergedResult per distinct email, sorted by score descending
    """
    # dicts preserve insertion order, which is the tie-break order
    scores: dict[str, float] = {}
    in_keyword: set[str] = set()
    in_semantic: set[str] = set()

    for item in keyword_results:
        scores[item.email_id] = scores.get(item.email_id, 0.0) + (
            keyword_weight / (k + item.rank)
        )
        in_keyword.add(item.email_id)

    for item in semantic_results:
        scores[item.email_id] = scores.get(item.email_id, 0.0) + (
            semantic_weight / (k + item.rank)
        )
        in_semantic.add(item.email_id)

    merged = []
    for email_id, score in scores.items():
        if email_id in in_keyword and email_id in in_semantic:
            source = MatchSource.BOTH
        elif email_id in in_semantic:
            source = MatchSource.SEMANTIC
        else:
            source = MatchSource.KEYWORD
        merged.append(
            MergedResult(email_id=email_id, score=score, match_source=source)
        )

    # sorted() is stable, so equal scores keep discovery order
    return sorted(merged, key=lambda result: result.score, reverse=True)
