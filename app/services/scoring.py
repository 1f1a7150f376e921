from __future__ import annotations

import logging
from typing import Mapping, Sequence

from app.models.assessment import (
    DIMENSION_LETTERS,
    DIMENSIONS,
    QUESTIONS_PER_DIMENSION,
    AssessmentResult,
    Choice,
    Question,
    ScoreTally,
    TRAIT_LETTERS,
)
from app.services.question_bank import QUESTIONS

logger = logging.getLogger(__name__)


class IncompleteAssessment(ValueError):
    """Scoring was requested before every question had an answer."""

    def __init__(self, answered: int, expected: int) -> None:
        super().__init__(
            f"Expected {expected} answers before scoring, got {answered}."
        )
        self.answered = answered
        self.expected = expected


def tally_answers(
    answers: Mapping[int, Choice],
    questions: Sequence[Question] = QUESTIONS,
) -> ScoreTally:
    unknown = sorted(
        index for index in answers if not 0 <= index < len(questions)
    )
    if unknown:
        raise ValueError(
            f"Answers reference questions outside 0..{len(questions) - 1}: {unknown}."
        )

    missing = [index for index in range(len(questions)) if index not in answers]
    if missing:
        raise IncompleteAssessment(len(questions) - len(missing), len(questions))

    counts = dict.fromkeys(TRAIT_LETTERS, 0)
    for index, question in enumerate(questions):
        choice = Choice(answers[index])
        counts[question.letter_for(choice)] += 1
    return ScoreTally.from_counts(counts)


def derive_type(tally: ScoreTally) -> str:
    # Strict comparison: a tie resolves to the second letter (I, N, F, P).
    letters = []
    for dimension in DIMENSIONS:
        first, second = DIMENSION_LETTERS[dimension]
        letters.append(first if tally[first] > tally[second] else second)
    return "".join(letters)


def score_answers(
    answers: Mapping[int, Choice],
    questions: Sequence[Question] = QUESTIONS,
) -> AssessmentResult:
    tally = tally_answers(answers, questions)
    mbti_type = derive_type(tally)
    logger.info("Scored assessment type=%s scores=%s", mbti_type, tally.as_dict())
    return AssessmentResult(mbti_type=mbti_type, scores=tally)


def answers_from_sequence(choices: Sequence[Choice]) -> dict[int, Choice]:
    return {index: Choice(choice) for index, choice in enumerate(choices)}


def dominant_pole_label(tally: ScoreTally, dimension: str) -> str:
    first, second = DIMENSION_LETTERS[dimension]
    letter = first if tally[first] > tally[second] else second
    return f"{letter} ({tally[letter]}/{QUESTIONS_PER_DIMENSION})"
