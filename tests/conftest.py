from __future__ import annotations

from datetime import datetime, timezone

import pytest

from prep_app.core.models import (
    Difficulty,
    LedgerRecord,
    Question,
    QuizResult,
    QuizType,
    SubQuestion,
)
from prep_app.storage.memory_store import InMemoryDataService


def make_sub(
    sub_id: str = "s1",
    trigger: int = 0,
    correct: int = 0,
    order: int = 0,
    options: tuple[str, ...] = ("Yes", "No"),
    text: str | None = None,
) -> SubQuestion:
    return SubQuestion(
        id=sub_id,
        text=text or f"Follow-up {sub_id}",
        options=options,
        correct_option_index=correct,
        trigger_option_index=trigger,
        order=order,
        explanation=f"Explanation for {sub_id}.",
    )


def make_question(
    question_id: str = "q1",
    correct: int = 0,
    options: tuple[str, ...] = ("Alpha", "Beta", "Gamma"),
    subs: tuple[SubQuestion, ...] = (),
    subject: str = "Mathematics",
    text: str | None = None,
) -> Question:
    return Question(
        id=question_id,
        text=text or f"Question {question_id}?",
        options=options,
        correct_option_index=correct,
        explanation=f"Explanation for {question_id}.",
        subject=subject,
        difficulty=Difficulty.MEDIUM,
        sub_questions=subs,
    )


def make_result(
    user_id: str = "user-1",
    percentage: int = 50,
    completed_at: datetime | None = None,
    quiz_type: QuizType = QuizType.DAILY,
    subject: str | None = None,
    items: list[LedgerRecord] | None = None,
) -> QuizResult:
    return QuizResult(
        user_id=user_id,
        quiz_type=quiz_type,
        items=items or [],
        score=percentage // 10,
        total_questions=10,
        percentage=percentage,
        completed_at=completed_at or datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc),
        subject=subject,
    )


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def branching_question() -> Question:
    """Option 1 triggers two follow-ups (orders 1 and 2); option 0 triggers one."""
    return make_question(
        "branch",
        correct=2,
        subs=(
            make_sub("second", trigger=1, order=2),
            make_sub("zero", trigger=0, order=1),
            make_sub("first", trigger=1, order=1),
        ),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def data_service() -> InMemoryDataService:
    return InMemoryDataService(
        [
            make_question("m1", subject="Mathematics", subs=(make_sub("m1s", trigger=1, correct=1),)),
            make_question("m2", subject="Mathematics"),
            make_question("g1", subject="Geography", correct=1),
        ]
    )
