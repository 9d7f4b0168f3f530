"""Tests for the word-overlap similarity provider."""

import pytest

from cortex.protocols import SimilarityProvider
from cortex.similarity import WordOverlapSimilarity


@pytest.fixture
def sim():
    return WordOverlapSimilarity()


def test_satisfies_protocol(sim):
    assert isinstance(sim, SimilarityProvider)


@pytest.mark.parametrize(
    "a,b,expected",
    [
        ("Always validate input", "always validate input", 1.0),
        ("  padded  ", "padded", 1.0),
        ("validate input", "Always validate input", 0.8),
        ("delete old branches", "delete old tags", 2 * 2 / 6),
        ("alpha beta", "gamma delta", 0.0),
        ("", "anything", 0.0),
        ("   ", "", 1.0),
    ],
)
def test_score(sim, a, b, expected):
    assert sim.score(a, b) == pytest.approx(expected)


def test_score_is_symmetric(sim):
    assert sim.score("a b c", "b c d e") == sim.score("b c d e", "a b c")


def test_repeated_words_count_once(sim):
    assert sim.score("go go go", "go") == 1.0


def test_rank_filters_and_orders(sim):
    candidates = ["validate input early", "cache results", "validate input"]
    ranked = sim.rank("validate input", candidates, 0.5)

    assert [m.index for m in ranked] == [2, 0]
    assert ranked[0].score == 1.0
    assert ranked[0].text == "validate input"
    assert ranked[1].score == pytest.approx(0.8)


def test_rank_ties_keep_candidate_order(sim):
    ranked = sim.rank("x", ["x y", "x z"], 0.1)
    assert [m.index for m in ranked] == [0, 1]


def test_rank_empty(sim):
    assert sim.rank("anything", [], 0.0) == []
