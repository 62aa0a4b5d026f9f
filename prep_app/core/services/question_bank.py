"""Validation and normalization of question-bank entries before they are stored."""

from __future__ import annotations

from dataclasses import replace

from prep_app.constants.quiz_constants import MAX_OPTIONS, MIN_OPTIONS
from prep_app.core.models import Difficulty, Question, SubQuestion


class QuestionValidationError(ValueError):
    """Raised when a question fails a field-level check."""


def prepare_question(question: Question) -> Question:
    """Validate and normalize a base question and its sub-questions."""
    text = _require_text(question.text, "Question is required.")
    options = _validate_options(question.options)
    _validate_correct_index(question.correct_option_index, options)
    explanation = _require_text(question.explanation, "Explanation is required.")
    subject = _require_text(question.subject, "Subject is required.")
    difficulty = _normalize_difficulty(question.difficulty)

    subs = tuple(
        _prepare_sub_question(sub, parent_option_count=len(options), default_subject=subject)
        for sub in question.sub_questions
    )
    return replace(
        question,
        text=text,
        options=options,
        explanation=explanation,
        subject=subject,
        difficulty=difficulty,
        sub_questions=subs,
    )


def _prepare_sub_question(
    sub: SubQuestion,
    parent_option_count: int,
    default_subject: str,
) -> SubQuestion:
    text = _require_text(sub.text, "Sub-question text is required.")
    options = _validate_options(sub.options)
    _validate_correct_index(sub.correct_option_index, options)
    if not 0 <= sub.trigger_option_index < parent_option_count:
        raise QuestionValidationError(
            f"Sub-question trigger must be between 0 and {parent_option_count - 1}."
        )
    explanation = _require_text(sub.explanation, "Sub-question explanation is required.")
    return replace(
        sub,
        text=text,
        options=options,
        explanation=explanation,
        subject=sub.subject.strip() or default_subject,
        difficulty=_normalize_difficulty(sub.difficulty),
    )


def _require_text(value: str, message: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise QuestionValidationError(message)
    return cleaned


def _validate_options(options: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    if not MIN_OPTIONS <= len(options) <= MAX_OPTIONS:
        raise QuestionValidationError(
            f"Each question must have between {MIN_OPTIONS} and {MAX_OPTIONS} options."
        )
    cleaned = tuple(str(option).strip() for option in options)
    if any(not option for option in cleaned):
        raise QuestionValidationError("All options must be filled.")
    return cleaned


def _validate_correct_index(index: int, options: tuple[str, ...]) -> None:
    if not isinstance(index, int) or not 0 <= index < len(options):
        raise QuestionValidationError(
            f"Correct option index must be between 0 and {len(options) - 1}."
        )


def _normalize_difficulty(value: Difficulty | str) -> Difficulty:
    try:
        return Difficulty(value)
    except ValueError as exc:
        raise QuestionValidationError("Difficulty must be easy, medium or hard.") from exc
