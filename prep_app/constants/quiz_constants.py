"""Quiz-related constants shared across the core and server layers."""

import os

from prep_app.core.models import QuizType

QUIZ_QUESTION_COUNTS: dict[QuizType, int] = {
    QuizType.DAILY: int(os.getenv("PREP_DAILY_QUESTIONS", "5")),
    QuizType.SUBJECT: int(os.getenv("PREP_SUBJECT_QUESTIONS", "10")),
    QuizType.MOCK: int(os.getenv("PREP_MOCK_QUESTIONS", "25")),
}
QUIZ_TIME_BUDGET_SECONDS: dict[QuizType, int] = {
    QuizType.DAILY: int(os.getenv("PREP_DAILY_SECONDS", "600")),
    QuizType.SUBJECT: int(os.getenv("PREP_SUBJECT_SECONDS", "900")),
    QuizType.MOCK: int(os.getenv("PREP_MOCK_SECONDS", "1800")),
}

MIN_OPTIONS: int = 2
MAX_OPTIONS: int = 6
RECENT_QUIZ_COUNT: int = 3

SUBJECTS: tuple[str, ...] = (
    "General Knowledge",
    "Indian Constitution",
    "Indian History",
    "Geography",
    "Science & Technology",
    "Current Affairs",
    "Mathematics",
    "Reasoning",
    "English Language",
)
