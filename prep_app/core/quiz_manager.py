"""Business logic shared by the web server: quiz sessions, question bank and progress."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from threading import Lock
import time
from typing import Callable

from prep_app.constants.quiz_constants import QUIZ_QUESTION_COUNTS, QUIZ_TIME_BUDGET_SECONDS
from prep_app.core.models import (
    AuthUser,
    FlowMode,
    FlowPhase,
    Question,
    QuizItem,
    QuizResult,
    QuizType,
    UserProfile,
)
from prep_app.core.quiz_exporter import serialize_questions
from prep_app.core.quiz_importer import parse_quiz_text
from prep_app.core.services import scoring
from prep_app.core.services.dashboard import DashboardStats, build_dashboard
from prep_app.core.services.quiz_flow import QuizFlowEngine
from prep_app.core.services.scoring import ReviewRow
from prep_app.storage.base import DataServiceError, QuizDataService

logger = logging.getLogger(__name__)


class NoQuestionsError(LookupError):
    """Raised when the question bank has nothing to build a quiz from."""


class NoActiveQuizError(LookupError):
    """Raised when a user has no quiz in progress or finished."""


@dataclass(slots=True)
class QuizSnapshot:
    """Read-only view of a user's quiz for rendering."""

    quiz_type: QuizType
    subject: str | None
    mode: FlowMode
    phase: FlowPhase
    terminal: bool
    timed_out: bool
    current_item: QuizItem | None
    selected_option_index: int | None
    base_position: int
    base_count: int
    sub_position: int
    sub_count: int
    remaining_time_seconds: int
    progress: float
    score: int
    total_answered: int
    percentage: int
    result_saved: bool
    review: list[ReviewRow] = field(default_factory=list)

    @property
    def last_answer_correct(self) -> bool | None:
        """Correctness of the shown answer while its explanation is visible."""
        if self.phase is not FlowPhase.EXPLAINING or self.current_item is None:
            return None
        return self.selected_option_index == self.current_item.correct_option_index


@dataclass(slots=True)
class _ActiveQuiz:
    engine: QuizFlowEngine
    last_sync: float
    access_token: str | None = None
    result: QuizResult | None = None


class QuizManager:
    """Facade over the data service and the per-user quiz-flow engines."""

    def __init__(
        self,
        data_service: QuizDataService,
        clock: Callable[[], float] = time.monotonic,
        question_counts: dict[QuizType, int] | None = None,
        time_budgets: dict[QuizType, int] | None = None,
    ) -> None:
        self._lock = Lock()
        self._data = data_service
        self._clock = clock
        self._question_counts = dict(question_counts or QUIZ_QUESTION_COUNTS)
        self._time_budgets = dict(time_budgets or QUIZ_TIME_BUDGET_SECONDS)
        self._quizzes: dict[str, _ActiveQuiz] = {}

    # --- Quiz Flow ---

    def start_quiz(
        self,
        user_id: str,
        quiz_type: QuizType,
        subject: str | None = None,
        access_token: str | None = None,
    ) -> QuizSnapshot:
        """Load questions for ``quiz_type`` and start a fresh session, discarding any other.

        ``access_token`` is kept with the session and used when its result is saved.
        """
        if quiz_type is QuizType.SUBJECT and not subject:
            raise ValueError("A subject quiz needs a subject.")
        questions = self._data.fetch_questions(
            limit=self._question_counts[quiz_type],
            subject=subject if quiz_type is QuizType.SUBJECT else None,
        )
        if not questions:
            raise NoQuestionsError("No questions available.")

        engine = QuizFlowEngine.start(
            questions,
            time_budget_seconds=self._time_budgets[quiz_type],
            quiz_type=quiz_type,
            subject=subject if quiz_type is QuizType.SUBJECT else None,
            user_id=user_id,
        )
        with self._lock:
            active = _ActiveQuiz(engine=engine, last_sync=self._clock(), access_token=access_token)
            self._quizzes[user_id] = active
            logger.info(
                "Started %s quiz for %s with %d questions",
                quiz_type.value,
                user_id,
                len(questions),
            )
            # A zero time budget ends the quiz before the first request.
            self._finish_if_terminal(active)
            return self._snapshot(active)

    def get_quiz_state(self, user_id: str) -> QuizSnapshot:
        with self._lock:
            active = self._get_active(user_id)
            self._finish_if_terminal(active)
            return self._snapshot(active)

    def select_option(self, user_id: str, option_index: int) -> QuizSnapshot:
        with self._lock:
            active = self._get_active(user_id)
            self._finish_if_terminal(active)
            active.engine.select_option(option_index)
            return self._snapshot(active)

    def advance(self, user_id: str) -> QuizSnapshot:
        with self._lock:
            active = self._get_active(user_id)
            # The timer may have ended the quiz since the last request.
            self._finish_if_terminal(active)
            active.engine.advance()
            self._finish_if_terminal(active)
            return self._snapshot(active)

    def discard_quiz(self, user_id: str) -> None:
        with self._lock:
            if self._quizzes.pop(user_id, None) is not None:
                logger.info("Discarded quiz for %s", user_id)

    def has_quiz(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._quizzes

    # --- Progress ---

    def get_dashboard(self, user_id: str, access_token: str | None = None) -> DashboardStats:
        return build_dashboard(self._data.list_results(user_id, access_token=access_token))

    def get_results(self, user_id: str, access_token: str | None = None) -> list[QuizResult]:
        return self._data.list_results(user_id, access_token=access_token)

    # --- Accounts & Profiles ---

    def sign_in(self, email: str, password: str) -> AuthUser:
        return self._data.sign_in(email.strip(), password)

    def sign_up(self, email: str, password: str, full_name: str = "") -> AuthUser:
        user = self._data.sign_up(email.strip(), password, full_name.strip())
        logger.info("Registered user %s", user.user_id)
        return user

    def get_profile(self, user_id: str, access_token: str | None = None) -> UserProfile:
        profile = self._data.get_profile(user_id, access_token=access_token)
        return profile or UserProfile(user_id=user_id)

    def update_profile(
        self,
        user_id: str,
        full_name: str,
        avatar_url: str | None,
        access_token: str | None = None,
    ) -> UserProfile:
        current = self.get_profile(user_id, access_token=access_token)
        cleaned_avatar = (avatar_url or "").strip() or None
        return self._data.upsert_profile(
            UserProfile(
                user_id=user_id,
                email=current.email,
                full_name=full_name.strip(),
                avatar_url=cleaned_avatar,
            ),
            access_token=access_token,
        )

    # --- Question Bank ---

    def list_questions(self, subject: str | None = None) -> list[Question]:
        return self._data.fetch_questions(subject=subject)

    def get_question(self, question_id: str) -> Question:
        return self._data.get_question(question_id)

    def add_question(self, question: Question) -> Question:
        return self._data.create_question(question)

    def update_question(self, question_id: str, question: Question) -> Question:
        return self._data.update_question(question_id, question)

    def delete_question(self, question_id: str) -> None:
        self._data.delete_question(question_id)

    def import_questions(self, text: str) -> list[Question]:
        """Parse the text import format and store every question it contains."""
        parsed = parse_quiz_text(text)
        stored = [self._data.create_question(question) for question in parsed]
        logger.info("Imported %d questions", len(stored))
        return stored

    def export_questions(self) -> str:
        questions = self._data.fetch_questions()
        if not questions:
            raise NoQuestionsError("No questions to export.")
        return serialize_questions(questions)

    # --- Internals ---

    def _get_active(self, user_id: str) -> _ActiveQuiz:
        active = self._quizzes.get(user_id)
        if active is None:
            raise NoActiveQuizError("No quiz in progress.")
        self._sync_timer(active)
        return active

    def _sync_timer(self, active: _ActiveQuiz) -> None:
        now = self._clock()
        elapsed = int(now - active.last_sync)
        if elapsed <= 0:
            return
        active.last_sync += elapsed
        active.engine.tick(elapsed)

    def _finish_if_terminal(self, active: _ActiveQuiz) -> None:
        session = active.engine.session
        if not session.terminal or active.result is not None:
            return
        result = scoring.build_result(session)
        if session.timed_out:
            logger.info("Quiz for %s timed out", session.user_id)
        try:
            active.result = self._data.save_result(result, access_token=active.access_token)
        except DataServiceError:
            # Left unset so the next request retries the write.
            logger.exception("Could not save quiz result for %s", session.user_id)
            return
        logger.info(
            "Completed %s quiz for %s: %d/%d",
            session.quiz_type.value,
            session.user_id,
            result.score,
            result.total_questions,
        )

    def _snapshot(self, active: _ActiveQuiz) -> QuizSnapshot:
        engine = active.engine
        session = engine.session
        return QuizSnapshot(
            quiz_type=session.quiz_type,
            subject=session.subject,
            mode=session.mode,
            phase=session.phase,
            terminal=session.terminal,
            timed_out=session.timed_out,
            current_item=engine.get_current_item(),
            selected_option_index=session.selected_option_index,
            base_position=session.base_index + 1,
            base_count=len(session.base_questions),
            sub_position=session.sub_index + 1 if session.mode is FlowMode.SUB else 0,
            sub_count=len(session.active_sub_questions),
            remaining_time_seconds=session.remaining_time_seconds,
            progress=scoring.progress_fraction(session),
            score=scoring.score(session),
            total_answered=scoring.total_answered(session),
            percentage=scoring.percentage(session),
            result_saved=active.result is not None,
            review=scoring.build_review(session) if session.terminal else [],
        )
