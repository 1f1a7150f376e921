from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Mapping, Optional, Sequence

from pydantic import BaseModel, Field, field_validator

Dimension = Literal["EI", "SN", "TF", "JP"]

DIMENSIONS: tuple[Dimension, ...] = ("EI", "SN", "TF", "JP")

DIMENSION_LETTERS: Mapping[str, tuple[str, str]] = {
    "EI": ("E", "I"),
    "SN": ("S", "N"),
    "TF": ("T", "F"),
    "JP": ("J", "P"),
}

DIMENSION_NAMES: Mapping[str, str] = {
    "EI": "Extraversion vs Introversion",
    "SN": "Sensing vs Intuition",
    "TF": "Thinking vs Feeling",
    "JP": "Judging vs Perceiving",
}

TRAIT_LETTERS: tuple[str, ...] = ("E", "I", "S", "N", "T", "F", "J", "P")

QUESTIONS_PER_DIMENSION = 12
TOTAL_QUESTIONS = QUESTIONS_PER_DIMENSION * len(DIMENSIONS)


class Choice(str, Enum):
    A = "A"
    B = "B"


@dataclass(frozen=True)
class Question:
    id: int
    prompt: str
    option_a: str
    option_b: str
    dimension: Dimension
    a_value: str
    b_value: str

    def letter_for(self, choice: Choice) -> str:
        return self.a_value if choice is Choice.A else self.b_value


@dataclass(frozen=True)
class ScoreTally:
    E: int = 0
    I: int = 0  # noqa: E741
    S: int = 0
    N: int = 0
    T: int = 0
    F: int = 0
    J: int = 0
    P: int = 0

    def __getitem__(self, letter: str) -> int:
        if letter not in TRAIT_LETTERS:
            raise KeyError(letter)
        return getattr(self, letter)

    def as_dict(self) -> dict[str, int]:
        return {letter: getattr(self, letter) for letter in TRAIT_LETTERS}

    def total(self) -> int:
        return sum(self.as_dict().values())

    @classmethod
    def from_counts(cls, counts: Mapping[str, int]) -> "ScoreTally":
        return cls(**{letter: int(counts.get(letter, 0)) for letter in TRAIT_LETTERS})


@dataclass(frozen=True)
class AssessmentResult:
    mbti_type: str
    scores: ScoreTally


@dataclass(frozen=True)
class ResultRecord:
    """Latest stored result for a user.

    Only the first-pole counts are stored; the opposite pole of each dimension
    is ``12 - count``.
    """

    user_id: str
    mbti_type: str
    extraversion_score: int
    sensing_score: int
    thinking_score: int
    judging_score: int
    completed_at: datetime
    id: Optional[Any] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_result(
        cls,
        user_id: str,
        mbti_type: str,
        tally: ScoreTally,
        completed_at: datetime,
    ) -> "ResultRecord":
        return cls(
            user_id=user_id,
            mbti_type=mbti_type,
            extraversion_score=tally.E,
            sensing_score=tally.S,
            thinking_score=tally.T,
            judging_score=tally.J,
            completed_at=completed_at,
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "mbti_type": self.mbti_type,
            "extraversion_score": self.extraversion_score,
            "sensing_score": self.sensing_score,
            "thinking_score": self.thinking_score,
            "judging_score": self.judging_score,
            "completed_at": self.completed_at.isoformat(),
        }

    def to_tally(self) -> ScoreTally:
        full = QUESTIONS_PER_DIMENSION
        return ScoreTally(
            E=self.extraversion_score,
            I=full - self.extraversion_score,
            S=self.sensing_score,
            N=full - self.sensing_score,
            T=self.thinking_score,
            F=full - self.thinking_score,
            J=self.judging_score,
            P=full - self.judging_score,
        )


@dataclass(frozen=True)
class Career:
    title: str
    description: str = ""
    industry: str = ""


@dataclass(frozen=True)
class SkillCourse:
    title: str
    description: str = ""
    category: str = ""


@dataclass(frozen=True)
class PersonalityProfile:
    title: str
    description: str
    traits: Sequence[str]
    strengths: Sequence[str]
    challenges: Sequence[str]
    work_style: str


@dataclass(frozen=True)
class AccessStatus:
    has_confirmed_order: bool = False
    has_enrollment: bool = False

    @property
    def has_access(self) -> bool:
        return self.has_confirmed_order or self.has_enrollment


# --- HTTP payloads -----------------------------------------------------------


class QuestionResponse(BaseModel):
    id: int
    prompt: str
    option_a: str
    option_b: str
    dimension: str

    @classmethod
    def from_domain(cls, question: Question) -> "QuestionResponse":
        return cls(
            id=question.id,
            prompt=question.prompt,
            option_a=question.option_a,
            option_b=question.option_b,
            dimension=question.dimension,
        )


class StartSessionRequest(BaseModel):
    retake: bool = False


class AnswerRequest(BaseModel):
    choice: Choice


class SubmitAssessmentRequest(BaseModel):
    answers: list[Choice] = Field(
        ..., description="One A/B choice per question, in question order."
    )
    retake: bool = False

    @field_validator("answers")
    @classmethod
    def validate_answers(cls, value: list[Choice]) -> list[Choice]:
        if len(value) > TOTAL_QUESTIONS:
            raise ValueError(f"Expected at most {TOTAL_QUESTIONS} answers.")
        return value


class CareerResponse(BaseModel):
    title: str
    description: str
    industry: str


class SkillCourseResponse(BaseModel):
    title: str
    description: str
    category: str


class ProfileResponse(BaseModel):
    mbti_type: str
    title: str
    description: str
    traits: list[str]
    strengths: list[str]
    challenges: list[str]
    work_style: str

    @classmethod
    def from_domain(cls, mbti_type: str, profile: PersonalityProfile) -> "ProfileResponse":
        return cls(
            mbti_type=mbti_type,
            title=profile.title,
            description=profile.description,
            traits=list(profile.traits),
            strengths=list(profile.strengths),
            challenges=list(profile.challenges),
            work_style=profile.work_style,
        )


class AssessmentReport(BaseModel):
    mbti_type: str
    scores: dict[str, int]
    dimensions: dict[str, str] = Field(default_factory=dict)
    profile: ProfileResponse
    careers: list[CareerResponse] = Field(default_factory=list)
    courses: list[SkillCourseResponse] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    is_retake: bool = False
    message: str = ""


class SessionResponse(BaseModel):
    session_id: str
    status: Literal["in_progress", "complete"]
    current_index: int = 0
    total_questions: int
    answered: int = 0
    is_retake: bool = False
    answers: dict[int, Choice] = Field(default_factory=dict)
    question: Optional[QuestionResponse] = None
    report: Optional[AssessmentReport] = None


class ResultRecordResponse(BaseModel):
    mbti_type: str
    scores: dict[str, int]
    completed_at: datetime

    @classmethod
    def from_domain(cls, record: ResultRecord) -> "ResultRecordResponse":
        return cls(
            mbti_type=record.mbti_type,
            scores=record.to_tally().as_dict(),
            completed_at=record.completed_at,
        )


class AccessResponse(BaseModel):
    has_access: bool
    has_confirmed_order: bool
    has_enrollment: bool
    has_previous_result: bool = False


def parse_mbti_type(value: str) -> str:
    normalized = value.strip().upper()
    if len(normalized) != len(DIMENSIONS):
        raise ValueError("MBTI type must have exactly four letters.")
    for letter, dimension in zip(normalized, DIMENSIONS):
        if letter not in DIMENSION_LETTERS[dimension]:
            raise ValueError(f"Invalid letter '{letter}' for dimension {dimension}.")
    return normalized
