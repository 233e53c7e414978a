from __future__ import annotations

import math
import re
from typing import Sequence


_TOKEN_RE = re.compile(r"[a-z0-9]+")
# Small English stopword list mirroring what full-text parsers drop from queries.
_STOPWORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "has", "how",
        "in", "is", "it", "its", "of", "on", "or", "that", "the", "this", "to", "was",
        "were", "what", "when", "where", "which", "who", "why", "will", "with",
    }
)
_SIBILANT_PLURALS = ("sses", "xes", "zes", "ches", "shes")


def _stem(token: str) -> str:
    # Light suffix stripping so "policies"/"policy" and "invoices"/"invoice" meet.
    if len(token) <= 3:
        return token
    if token.endswith("ies") and len(token) > 4:
        return token[:-3] + "y"
    if token.endswith(_SIBILANT_PLURALS):
        return token[:-2]
    if token.endswith("ing") and len(token) > 5:
        return token[:-3]
    if token.endswith("ed") and len(token) > 4:
        return token[:-2]
    if token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def lexemes(text: str) -> list[str]:
    return [_stem(token) for token in _TOKEN_RE.findall((text or "").lower()) if token not in _STOPWORDS]


def query_terms(query_text: str) -> list[str]:
    return list(dict.fromkeys(lexemes(query_text)))


def lexical_match(terms: Sequence[str], content_lexemes: Sequence[str]) -> bool:
    # Every query term must appear, like plainto_tsquery's AND of lexemes.
    if not terms:
        return False
    present = set(content_lexemes)
    return all(term in present for term in terms)


def text_rank(terms: Sequence[str], content_lexemes: Sequence[str]) -> float:
    # Frequency-based relevance in [0, 1): more hits rank higher, longer chunks dilute.
    if not terms or not content_lexemes:
        return 0.0
    wanted = set(terms)
    hits = sum(1 for lexeme in content_lexemes if lexeme in wanted)
    if hits == 0:
        return 0.0
    density = hits / (1.0 + math.log(len(content_lexemes)))
    return density / (1.0 + density)


def cosine_similarity(left: Sequence[float], right: Sequence[float]) -> float:
    dot = 0.0
    left_norm = 0.0
    right_norm = 0.0
    for a, b in zip(left, right):
        dot += a * b
        left_norm += a * a
        right_norm += b * b
    if left_norm == 0.0 or right_norm == 0.0:
        return 0.0
    return dot / (math.sqrt(left_norm) * math.sqrt(right_norm))
