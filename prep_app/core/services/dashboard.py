"""Progress statistics derived from a user's stored quiz results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta

from prep_app.constants.quiz_constants import RECENT_QUIZ_COUNT
from prep_app.core.models import QuizResult, QuizType, utc_now
from prep_app.core.services.scoring import percentage_of


@dataclass(slots=True)
class RecentQuiz:
    """Summary row for the "recent quizzes" list."""

    label: str
    quiz_type: QuizType
    percentage: int
    score: int
    total: int
    completed_on: date


@dataclass(slots=True)
class DashboardStats:
    """Snapshot returned to the dashboard page."""

    total_quizzes: int = 0
    average_score: int = 0
    best_score: int = 0
    current_streak: int = 0
    today_quiz_completed: bool = False
    recent_quizzes: list[RecentQuiz] = field(default_factory=list)
    subject_breakdown: dict[str, int] = field(default_factory=dict)


def build_dashboard(results: list[QuizResult], today: date | None = None) -> DashboardStats:
    """Summarize ``results`` as of ``today`` (defaults to the current UTC date).

    Days are calendar days of the UTC ``completed_at`` timestamps.
    """
    today = today or utc_now().date()
    if not results:
        return DashboardStats()

    ordered = sorted(results, key=lambda r: r.completed_at, reverse=True)
    percentages = [r.percentage for r in ordered]

    return DashboardStats(
        total_quizzes=len(ordered),
        average_score=percentage_of(sum(percentages), 100 * len(percentages)),
        best_score=max(percentages),
        current_streak=_current_streak({r.completed_at.date() for r in ordered}, today),
        today_quiz_completed=any(
            r.quiz_type is QuizType.DAILY and r.completed_at.date() == today for r in ordered
        ),
        recent_quizzes=[_recent_row(r) for r in ordered[:RECENT_QUIZ_COUNT]],
        subject_breakdown=_subject_breakdown(ordered),
    )


def _current_streak(days: set[date], today: date) -> int:
    # A streak stays alive until the end of the day after the last quiz.
    cursor = today if today in days else today - timedelta(days=1)
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def _recent_row(result: QuizResult) -> RecentQuiz:
    if result.subject:
        label = result.subject
    else:
        label = f"{result.quiz_type.value.capitalize()} Quiz"
    return RecentQuiz(
        label=label,
        quiz_type=result.quiz_type,
        percentage=result.percentage,
        score=result.score,
        total=result.total_questions,
        completed_on=result.completed_at.date(),
    )


def _subject_breakdown(results: list[QuizResult]) -> dict[str, int]:
    correct: dict[str, int] = {}
    answered: dict[str, int] = {}
    for result in results:
        for item in result.items:
            subject = item.subject or result.subject or "General"
            answered[subject] = answered.get(subject, 0) + 1
            if item.is_correct:
                correct[subject] = correct.get(subject, 0) + 1
    return {
        subject: percentage_of(correct.get(subject, 0), total)
        for subject, total in sorted(answered.items())
    }
