import pytest

from app.models.assessment import Choice, ScoreTally
from app.services.scoring import (
    IncompleteAssessment,
    derive_type,
    dominant_pole_label,
    score_answers,
    tally_answers,
)


def test_all_a_answers_give_estj():
    answers = {index: Choice.A for index in range(48)}
    result = score_answers(answers)
    assert result.mbti_type == "ESTJ"
    assert result.scores.as_dict() == {
        "E": 12, "I": 0, "S": 12, "N": 0, "T": 12, "F": 0, "J": 12, "P": 0,
    }


def test_all_b_answers_give_infp():
    answers = {index: Choice.B for index in range(48)}
    assert score_answers(answers).mbti_type == "INFP"


def test_ties_resolve_to_second_letter(make_answers):
    answers = make_answers(E=6, S=7, T=6, J=8)
    result = score_answers(answers)
    assert result.scores.as_dict() == {
        "E": 6, "I": 6, "S": 7, "N": 5, "T": 6, "F": 6, "J": 8, "P": 4,
    }
    assert result.mbti_type == "ISFJ"


def test_all_ties_give_infp(make_answers):
    assert score_answers(make_answers(E=6, S=6, T=6, J=6)).mbti_type == "INFP"


@pytest.mark.parametrize(
    "counts, expected",
    [
        ({"E": 7, "S": 5, "T": 7, "J": 5}, "ENTP"),
        ({"E": 0, "S": 12, "T": 1, "J": 11}, "ISFJ"),
        ({"E": 9, "S": 3, "T": 2, "J": 10}, "ENFJ"),
    ],
)
def test_majority_per_dimension(make_answers, counts, expected):
    assert score_answers(make_answers(**counts)).mbti_type == expected


def test_scoring_is_deterministic(make_answers):
    answers = make_answers(E=4, S=9, T=7, J=2)
    first = score_answers(answers)
    second = score_answers(answers)
    assert first == second


def test_dimension_pairs_sum_to_twelve(make_answers):
    tally = tally_answers(make_answers(E=3, S=10, T=6, J=1))
    assert tally.total() == 48
    for first, second in (("E", "I"), ("S", "N"), ("T", "F"), ("J", "P")):
        assert tally[first] + tally[second] == 12


def test_missing_answer_raises_incomplete_assessment():
    answers = {index: Choice.A for index in range(47)}
    with pytest.raises(IncompleteAssessment) as exc_info:
        score_answers(answers)
    assert exc_info.value.answered == 47
    assert exc_info.value.expected == 48


def test_gap_in_answers_is_incomplete():
    answers = {index: Choice.B for index in range(48) if index != 20}
    with pytest.raises(IncompleteAssessment) as exc_info:
        tally_answers(answers)
    assert exc_info.value.answered == 47


@pytest.mark.parametrize("extra_index", [48, -1])
def test_answer_outside_question_range_is_rejected(extra_index):
    answers = {index: Choice.A for index in range(48)}
    answers[extra_index] = Choice.A
    with pytest.raises(ValueError, match="outside 0..47") as exc_info:
        tally_answers(answers)
    assert not isinstance(exc_info.value, IncompleteAssessment)


def test_empty_answers_are_incomplete():
    with pytest.raises(IncompleteAssessment):
        tally_answers({})


def test_invalid_choice_value_is_rejected():
    answers = {index: Choice.A for index in range(48)}
    answers[5] = "C"
    with pytest.raises(ValueError):
        tally_answers(answers)


def test_derive_type_from_tally():
    tally = ScoreTally(E=5, I=7, S=8, N=4, T=6, F=6, J=12, P=0)
    assert derive_type(tally) == "ISFJ"


def test_dominant_pole_label():
    tally = ScoreTally(E=7, I=5, S=6, N=6, T=0, F=12, J=12, P=0)
    assert dominant_pole_label(tally, "EI") == "E (7/12)"
    assert dominant_pole_label(tally, "SN") == "N (6/12)"
    assert dominant_pole_label(tally, "TF") == "F (12/12)"
