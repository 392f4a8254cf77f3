"""
Lexicon sentiment scoring for news items that arrive without a score.

A word-valence sum with simple negation handling, squashed into [-1, 1] with
the VADER normalization ``s / sqrt(s^2 + alpha)``.
"""

import math
import re

from sitmon.analysis.config import NEGATIONS, NORMALIZATION_ALPHA, SENTIMENT_LEXICON

NEGATION_SCALAR = -0.74

_TOKEN_RE = re.compile(r"[a-z][a-z'\-]*")


def _normalize(score: float) -> float:
    norm = score / math.sqrt(score * score + NORMALIZATION_ALPHA)
    return max(-1.0, min(1.0, norm))


def score_sentiment(
    text: str, lexicon: dict[str, float] | None = None
) -> float | None:
    """Compound score in [-1, 1], or None when no lexicon word occurs."""
    lexicon = lexicon if lexicon is not None else SENTIMENT_LEXICON
    tokens = _TOKEN_RE.findall(text.lower())

    total = 0.0
    hits = 0
    for i, token in enumerate(tokens):
        valence = lexicon.get(token)
        if valence is None:
            continue
        hits += 1
        # Check up to 3 preceding tokens for negation
        if any(prev in NEGATIONS for prev in tokens[max(0, i - 3) : i]):
            valence *= NEGATION_SCALAR
        total += valence

    if hits == 0:
        return None
    return round(_normalize(total), 4)
