from __future__ import annotations

import pytest

from scorer import LevenshteinScorer, score


@pytest.mark.parametrize("word", ["", "a", "hello", "pronunciation", "naïve"])
def test_identical_strings_score_100(word: str) -> None:
    assert score(word, word) == 100


def test_empty_candidate_scores_zero() -> None:
    assert score("hello", "") == 0
    assert score("", "hello") == 0


def test_two_empty_strings_are_identical() -> None:
    assert score("", "") == 100
    assert score("   ", "") == 100


def test_single_deletion() -> None:
    assert score("hello", "helo") == 80


def test_completely_different_words() -> None:
    assert score("cat", "dog") == 0


@pytest.mark.parametrize(
    "a,b",
    [("hello", "yellow"), ("apple", "apples"), ("through", "threw"), ("kitten", "sitting")],
)
def test_symmetric(a: str, b: str) -> None:
    assert score(a, b) == score(b, a)


def test_case_and_whitespace_are_ignored() -> None:
    assert score("  Hello", "HELLO \n") == 100


def test_rounds_half_up() -> None:
    # distance 3 over length 8 -> 62.5
    assert score("abcdefgh", "abcdexyz") == 63


def test_longer_transcript_is_normalised_by_longer_length() -> None:
    # "hello world" vs "hello": distance 6, length 11 -> 45.45
    assert score("hello", "hello world") == 45


def test_result_always_in_range() -> None:
    for a, b in [("a", "zzzzzzzzzz"), ("x", "y"), ("word", "sword play")]:
        assert 0 <= score(a, b) <= 100


def test_scorer_strategy_matches_function() -> None:
    assert LevenshteinScorer().score("hello", "helo") == score("hello", "helo")
