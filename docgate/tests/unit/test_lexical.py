from __future__ import annotations

import pytest

from docgate.providers.retrieval.lexical import (
    cosine_similarity,
    lexemes,
    lexical_match,
    query_terms,
    text_rank,
)


def test_query_terms_drop_stopwords_and_stem() -> None:
    assert query_terms("What are the refund policies?") == ["refund", "policy"]


def test_lexical_match_requires_every_term() -> None:
    content = lexemes("Our refund policy covers annual plans.")
    assert lexical_match(query_terms("refund policies"), content)
    assert not lexical_match(query_terms("refund timeline"), content)


def test_empty_query_never_matches() -> None:
    assert not lexical_match(query_terms("the and of"), lexemes("the and of"))


def test_text_rank_grows_with_hits() -> None:
    terms = query_terms("invoice")
    once = text_rank(terms, lexemes("invoice sent to the customer today"))
    twice = text_rank(terms, lexemes("invoice sent, invoice paid, customer today"))
    assert 0.0 < once < twice < 1.0
    assert text_rank(terms, lexemes("nothing relevant here")) == 0.0


def test_cosine_similarity() -> None:
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 0.0]) == 0.0
