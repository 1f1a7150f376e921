from __future__ import annotations

from collections import Counter
from typing import Sequence

from app.models.assessment import (
    DIMENSION_LETTERS,
    DIMENSIONS,
    QUESTIONS_PER_DIMENSION,
    Question,
)

# --- Question configuration ---

QUESTIONS: Sequence[Question] = (
    # Extraversion vs Introversion
    Question(1, "At a party, you would rather:", "Interact with many people", "Talk to a few close friends", "EI", "E", "I"),
    Question(2, "You feel more energized by:", "Being around people", "Spending time alone", "EI", "E", "I"),
    Question(3, "When making decisions, you:", "Talk it through with others", "Think it through privately", "EI", "E", "I"),
    Question(4, "In group projects, you prefer to:", "Lead discussions", "Work independently first", "EI", "E", "I"),
    Question(5, "You are more comfortable with:", "Speaking in public", "Writing your thoughts", "EI", "E", "I"),
    Question(6, "After a long day, you prefer to:", "Go out with friends", "Stay home and relax", "EI", "E", "I"),
    Question(7, "You tend to:", "Think out loud", "Think before speaking", "EI", "E", "I"),
    Question(8, "In conversations, you:", "Share personal details easily", "Keep personal matters private", "EI", "E", "I"),
    Question(9, "You work better:", "With background noise", "In complete silence", "EI", "E", "I"),
    Question(10, "When stressed, you:", "Seek support from others", "Deal with it alone", "EI", "E", "I"),
    Question(11, "You prefer to:", "Have many acquaintances", "Have few close friends", "EI", "E", "I"),
    Question(12, "In meetings, you:", "Speak up frequently", "Listen more than talk", "EI", "E", "I"),
    # Sensing vs Intuition
    Question(13, "You prefer information that is:", "Concrete and factual", "Abstract and theoretical", "SN", "S", "N"),
    Question(14, "You focus more on:", "Present realities", "Future possibilities", "SN", "S", "N"),
    Question(15, "You trust more in:", "Experience", "Intuition", "SN", "S", "N"),
    Question(16, "You prefer to work with:", "Proven methods", "New approaches", "SN", "S", "N"),
    Question(17, "You are more interested in:", "Details and specifics", "The big picture", "SN", "S", "N"),
    Question(18, "You prefer instructions that are:", "Step-by-step", "General guidelines", "SN", "S", "N"),
    Question(19, "You are more drawn to:", "Practical applications", "Theoretical concepts", "SN", "S", "N"),
    Question(20, "When learning, you prefer:", "Hands-on experience", "Conceptual understanding", "SN", "S", "N"),
    Question(21, "You notice more:", "What is actually there", "What could be there", "SN", "S", "N"),
    Question(22, "You value more:", "Common sense", "Innovation", "SN", "S", "N"),
    Question(23, "You prefer to:", "Follow established procedures", "Explore new possibilities", "SN", "S", "N"),
    Question(24, "You are more likely to:", "Remember facts and details", "Remember impressions and meanings", "SN", "S", "N"),
    # Thinking vs Feeling
    Question(25, "When making decisions, you rely more on:", "Logic and analysis", "Personal values and feelings", "TF", "T", "F"),
    Question(26, "You are more concerned with:", "Being right", "Being tactful", "TF", "T", "F"),
    Question(27, "You value more:", "Justice and fairness", "Mercy and compassion", "TF", "T", "F"),
    Question(28, "In conflicts, you focus on:", "The issues at hand", "The people involved", "TF", "T", "F"),
    Question(29, "You prefer to be seen as:", "Competent", "Caring", "TF", "T", "F"),
    Question(30, "When giving feedback, you:", "Focus on improvement areas", "Consider the person's feelings", "TF", "T", "F"),
    Question(31, "You make decisions based on:", "Objective criteria", "Personal impact", "TF", "T", "F"),
    Question(32, "You are more motivated by:", "Achievement", "Appreciation", "TF", "T", "F"),
    Question(33, "In debates, you:", "Argue the facts", "Consider all viewpoints", "TF", "T", "F"),
    Question(34, "You prefer to:", "Be firm and tough-minded", "Be gentle and tender-hearted", "TF", "T", "F"),
    Question(35, "You are more interested in:", "Principles and laws", "People and their stories", "TF", "T", "F"),
    Question(36, "When criticized, you:", "Focus on the validity", "Feel personally affected", "TF", "T", "F"),
    # Judging vs Perceiving
    Question(37, "You prefer to:", "Plan ahead", "Be spontaneous", "JP", "J", "P"),
    Question(38, "You work better with:", "Deadlines", "Open-ended timeframes", "JP", "J", "P"),
    Question(39, "You prefer your life to be:", "Structured and organized", "Flexible and adaptable", "JP", "J", "P"),
    Question(40, "When starting a project, you:", "Make a detailed plan", "Jump right in", "JP", "J", "P"),
    Question(41, "You prefer to:", "Settle matters quickly", "Keep options open", "JP", "J", "P"),
    Question(42, "Your workspace tends to be:", "Neat and organized", "Flexible and varied", "JP", "J", "P"),
    Question(43, "You prefer to:", "Follow a schedule", "Go with the flow", "JP", "J", "P"),
    Question(44, "When making plans, you:", "Stick to them", "Change as needed", "JP", "J", "P"),
    Question(45, "You feel better when things are:", "Decided and settled", "Open to change", "JP", "J", "P"),
    Question(46, "You prefer assignments that are:", "Clear and specific", "Open to interpretation", "JP", "J", "P"),
    Question(47, "In your daily routine, you:", "Follow a set pattern", "Vary your activities", "JP", "J", "P"),
    Question(48, "You are more comfortable with:", "Having everything planned", "Leaving room for surprises", "JP", "J", "P"),
)


def validate_question_bank(questions: Sequence[Question]) -> None:
    """Check the structural invariants of a question bank.

    Ids must run 1..n in order, every dimension must hold exactly
    ``QUESTIONS_PER_DIMENSION`` items, and each item's A/B options must name
    one letter from each pole of its own dimension.
    """
    for position, question in enumerate(questions, start=1):
        if question.id != position:
            raise ValueError(
                f"Question at position {position} has id {question.id}."
            )
        if question.dimension not in DIMENSION_LETTERS:
            raise ValueError(
                f"Question {question.id} has unknown dimension {question.dimension!r}."
            )
        poles = set(DIMENSION_LETTERS[question.dimension])
        if {question.a_value, question.b_value} != poles:
            raise ValueError(
                f"Question {question.id} must map A/B to {sorted(poles)}, "
                f"got {question.a_value}/{question.b_value}."
            )

    per_dimension = Counter(question.dimension for question in questions)
    for dimension in DIMENSIONS:
        if per_dimension.get(dimension, 0) != QUESTIONS_PER_DIMENSION:
            raise ValueError(
                f"Expected {QUESTIONS_PER_DIMENSION} questions for {dimension}, "
                f"got {per_dimension.get(dimension, 0)}."
            )


def question_count() -> int:
    return len(QUESTIONS)


def get_question(index: int) -> Question:
    if not 0 <= index < len(QUESTIONS):
        raise IndexError(f"Question index {index} out of range.")
    return QUESTIONS[index]


validate_question_bank(QUESTIONS)
