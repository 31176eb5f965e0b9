"""Name canonicalisation, similarity scoring, and match decisions."""

from __future__ import annotations

import re
import unicodedata
from collections import Counter
from typing import List, Sequence

from .structures import (
    AssetCatalogEntry,
    MatchDecision,
    MatchStatus,
    ScoredCandidate,
)

MIN_CONFIDENCE = 0.6
AMBIGUITY_MARGIN = 0.04
TOP_CANDIDATES = 3

TOKEN_WEIGHT = 0.55
BIGRAM_WEIGHT = 0.45
CONTAINMENT_BONUS = 0.08

STOP_WORDS = frozenset(
    {"image", "img", "screenshot", "copy", "final", "default"}
)

# Host tools append " 2", " 3", ... to duplicated layer names.
NUMERIC_SUFFIX_PATTERN = re.compile(r"(?:\s+\d+)+$")
DASH_PATTERN = re.compile(r"[‐‑‒–—―−﹘﹣－]")
SEPARATOR_PATTERN = re.compile(r"[_\-.]+")
WHITESPACE_PATTERN = re.compile(r"\s+")


def canonicalize(name: str) -> str:
    """Normalise a layer name or file stem into a comparable form."""

    value = NUMERIC_SUFFIX_PATTERN.sub("", name.strip())
    value = unicodedata.normalize("NFKC", value)
    value = DASH_PATTERN.sub("-", value)
    value = SEPARATOR_PATTERN.sub(" ", value)
    value = value.lower()
    value = WHITESPACE_PATTERN.sub(" ", value).strip()
    # "hero_2" only exposes its numeric suffix once separators become spaces.
    return NUMERIC_SUFFIX_PATTERN.sub("", value)


def tokenize(canonical: str) -> set[str]:
    """Return the informative word tokens of a canonical name."""

    return {
        token
        for token in canonical.split(" ")
        if len(token) >= 2 and not token.isdigit() and token not in STOP_WORDS
    }


def token_dice(left: str, right: str) -> float:
    left_tokens = tokenize(left)
    right_tokens = tokenize(right)
    if not left_tokens or not right_tokens:
        return 0.0
    shared = len(left_tokens & right_tokens)
    return 2.0 * shared / (len(left_tokens) + len(right_tokens))


def bigrams(value: str) -> Counter[str]:
    if len(value) < 2:
        return Counter([value]) if value else Counter()
    return Counter(value[idx:idx + 2] for idx in range(len(value) - 1))


def bigram_dice(left: str, right: str) -> float:
    left_grams = bigrams(left)
    right_grams = bigrams(right)
    total = sum(left_grams.values()) + sum(right_grams.values())
    if not left_grams or not right_grams:
        return 0.0
    shared = sum((left_grams & right_grams).values())
    return 2.0 * shared / total


def similarity(left: str, right: str) -> float:
    """Score two canonical names in the range [0, 1]."""

    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    score = TOKEN_WEIGHT * token_dice(left, right) + BIGRAM_WEIGHT * bigram_dice(left, right)
    if left in right or right in left:
        score += CONTAINMENT_BONUS
    return min(1.0, score)


def rank_candidates(
    canonical_name: str,
    candidates: Sequence[AssetCatalogEntry],
) -> List[ScoredCandidate]:
    """Score every candidate against the name, best first."""

    scored = [
        ScoredCandidate(entry=entry, score=similarity(canonical_name, canonicalize(entry.stem)))
        for entry in candidates
    ]
    scored.sort(key=lambda candidate: candidate.score, reverse=True)
    return scored


def classify(best: float | None, second: float | None) -> MatchStatus:
    """Classify a ranking from its two leading scores."""

    if best is None:
        return MatchStatus.NO_CANDIDATE
    if best < MIN_CONFIDENCE:
        return MatchStatus.LOW_CONFIDENCE
    if second is not None and best - second < AMBIGUITY_MARGIN:
        return MatchStatus.AMBIGUOUS
    return MatchStatus.MATCHED


def decide_match(
    node_name: str,
    candidates: Sequence[AssetCatalogEntry],
) -> MatchDecision:
    """Rank the candidates for a node name and decide whether to use one."""

    ranked = rank_candidates(canonicalize(node_name), candidates)
    best = ranked[0] if ranked else None
    second = ranked[1] if len(ranked) > 1 else None
    status = classify(
        best.score if best else None,
        second.score if second else None,
    )
    return MatchDecision(
        status=status,
        best=best,
        second=second,
        top=ranked[:TOP_CANDIDATES],
    )
