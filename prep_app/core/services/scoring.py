"""Score, percentage and progress derived from a quiz session's ledger."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import math

from prep_app.core.models import (
    AnsweredItem,
    FlowMode,
    LedgerRecord,
    QuizResult,
    QuizSession,
    utc_now,
)


@dataclass(slots=True)
class ReviewRow:
    """Snapshot of one answered item for the results screen."""

    text: str
    options: list[str]
    user_answer_index: int
    correct_option_index: int
    is_correct: bool
    is_sub_question: bool
    explanation: str


def score(session: QuizSession) -> int:
    return sum(1 for entry in session.ledger if entry.is_correct)


def total_answered(session: QuizSession) -> int:
    return len(session.ledger)


def percentage_of(correct: int, total: int) -> int:
    """Whole-number percentage with halves rounded up; 0 when ``total`` is 0."""
    if total <= 0:
        return 0
    return int(math.floor(100 * correct / total + 0.5))


def percentage(session: QuizSession) -> int:
    return percentage_of(score(session), total_answered(session))


def progress_fraction(session: QuizSession) -> float:
    """Fraction of the combined base + triggered sequence that is behind the user.

    Never decreases during a session and is exactly 1.0 once it is terminal.
    """
    if session.terminal:
        return 1.0
    base_count = len(session.base_questions)
    if session.mode is FlowMode.SUB and session.active_sub_questions:
        sub_count = len(session.active_sub_questions)
        fraction = (session.base_index + (session.sub_index + 1) / sub_count) / base_count
        if fraction >= 1.0:
            # Last follow-up of the last question: hold the previous value until the end.
            fraction = (session.base_index + session.sub_index / sub_count) / base_count
        return fraction
    return session.base_index / base_count


def to_ledger_record(entry: AnsweredItem) -> LedgerRecord:
    item = entry.item
    return LedgerRecord(
        question_id=item.id,
        text=item.text,
        options=list(item.options),
        correct_option_index=item.correct_option_index,
        user_answer_index=entry.user_answer_index,
        is_correct=entry.is_correct,
        is_sub_question=entry.is_sub_question,
        explanation=item.explanation,
        subject=item.subject,
    )


def build_review(session: QuizSession) -> list[ReviewRow]:
    """Return one row per ledger entry, in answer order."""
    return [
        ReviewRow(
            text=entry.item.text,
            options=list(entry.item.options),
            user_answer_index=entry.user_answer_index,
            correct_option_index=entry.item.correct_option_index,
            is_correct=entry.is_correct,
            is_sub_question=entry.is_sub_question,
            explanation=entry.item.explanation,
        )
        for entry in session.ledger
    ]


def build_result(session: QuizSession, completed_at: datetime | None = None) -> QuizResult:
    """Package a terminal session for the result store."""
    if not session.terminal:
        raise ValueError("Only finished sessions can be turned into results.")
    if session.user_id is None:
        raise ValueError("Session has no user to attribute the result to.")
    return QuizResult(
        user_id=session.user_id,
        quiz_type=session.quiz_type,
        items=[to_ledger_record(entry) for entry in session.ledger],
        score=score(session),
        total_questions=total_answered(session),
        percentage=percentage(session),
        completed_at=completed_at or utc_now(),
        subject=session.subject,
    )
