"""Domain models for the exam-preparation application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime. All stored timestamps use this form."""
    return datetime.now(timezone.utc)


class Difficulty(str, Enum):
    """Difficulty tag attached to every question."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class QuizType(str, Enum):
    """Kind of quiz a result was recorded for."""

    DAILY = "daily"
    SUBJECT = "subject"
    MOCK = "mock"


class FlowMode(str, Enum):
    """Which cursor of the quiz flow is active."""

    BASE = "base"
    SUB = "sub"


class FlowPhase(str, Enum):
    """Whether the current item is awaiting an answer or showing its explanation."""

    ANSWERING = "answering"
    EXPLAINING = "explaining"


@dataclass(frozen=True, slots=True)
class SubQuestion:
    """Follow-up question presented when its trigger option is chosen on the parent."""

    id: str
    text: str
    options: tuple[str, ...]
    correct_option_index: int
    trigger_option_index: int
    order: int = 0
    explanation: str = ""
    subject: str = ""
    difficulty: Difficulty = Difficulty.EASY


@dataclass(frozen=True, slots=True)
class Question:
    """Base multiple-choice question. ``sub_questions`` is always present, possibly empty."""

    id: str
    text: str
    options: tuple[str, ...]
    correct_option_index: int
    explanation: str = ""
    subject: str = ""
    difficulty: Difficulty = Difficulty.EASY
    sub_questions: tuple[SubQuestion, ...] = ()
    created_at: datetime | None = None


QuizItem = Question | SubQuestion


@dataclass(frozen=True, slots=True)
class AnsweredItem:
    """Ledger entry created when an answered item leaves its explanation phase."""

    item: QuizItem
    user_answer_index: int
    is_correct: bool
    is_sub_question: bool


@dataclass(slots=True)
class QuizSession:
    """State of one user's quiz attempt. Mutated only by ``QuizFlowEngine``."""

    base_questions: tuple[Question, ...]
    remaining_time_seconds: int
    base_index: int = 0
    active_sub_questions: tuple[SubQuestion, ...] = ()
    sub_index: int = 0
    ledger: list[AnsweredItem] = field(default_factory=list)
    mode: FlowMode = FlowMode.BASE
    phase: FlowPhase = FlowPhase.ANSWERING
    selected_option_index: int | None = None
    terminal: bool = False
    timed_out: bool = False
    quiz_type: QuizType = QuizType.DAILY
    subject: str | None = None
    user_id: str | None = None
    started_at: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class LedgerRecord:
    """Flattened, persistable view of an ``AnsweredItem``."""

    question_id: str
    text: str
    options: list[str]
    correct_option_index: int
    user_answer_index: int
    is_correct: bool
    is_sub_question: bool
    explanation: str = ""
    subject: str = ""


@dataclass(slots=True)
class QuizResult:
    """Completed quiz handed to the result store."""

    user_id: str
    quiz_type: QuizType
    items: list[LedgerRecord]
    score: int
    total_questions: int
    percentage: int
    completed_at: datetime
    subject: str | None = None
    id: str | None = None


@dataclass(slots=True)
class AuthUser:
    """Identity returned by the hosted auth service."""

    user_id: str
    email: str
    access_token: str | None = None


@dataclass(slots=True)
class UserProfile:
    """Profile row kept alongside the auth identity."""

    user_id: str
    email: str = ""
    full_name: str = ""
    avatar_url: str | None = None
    updated_at: datetime | None = None
