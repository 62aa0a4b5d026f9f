"""State machine that walks base questions and their triggered sub-questions."""

from __future__ import annotations

import logging

from prep_app.core.models import (
    AnsweredItem,
    FlowMode,
    FlowPhase,
    Question,
    QuizItem,
    QuizSession,
    QuizType,
    SubQuestion,
)

logger = logging.getLogger(__name__)


class QuizFlowError(Exception):
    """Base class for rejected quiz-flow operations."""


class ValidationError(QuizFlowError):
    """Raised when user input is missing or out of range. No state is changed."""


class InvalidStateError(QuizFlowError):
    """Raised when a mutating call is not allowed in the current state."""


def triggered_sub_questions(question: Question, option_index: int) -> tuple[SubQuestion, ...]:
    """Return the sub-questions presented when ``option_index`` is chosen on ``question``.

    Matches are ordered by ``order``; equal ``order`` values keep their position
    in ``question.sub_questions``. Trigger indices outside the parent's options
    never match.
    """
    if not 0 <= option_index < len(question.options):
        return ()
    matches = [
        (sub.order, position, sub)
        for position, sub in enumerate(question.sub_questions)
        if sub.trigger_option_index == option_index
    ]
    matches.sort(key=lambda entry: (entry[0], entry[1]))
    return tuple(entry[2] for entry in matches)


class QuizFlowEngine:
    """Drives a ``QuizSession`` one item at a time."""

    def __init__(self, session: QuizSession) -> None:
        if not session.base_questions:
            raise ValueError("A quiz session needs at least one question.")
        self._session = session

    @classmethod
    def start(
        cls,
        questions: list[Question],
        time_budget_seconds: int,
        quiz_type: QuizType = QuizType.DAILY,
        subject: str | None = None,
        user_id: str | None = None,
    ) -> QuizFlowEngine:
        session = QuizSession(
            base_questions=tuple(questions),
            remaining_time_seconds=max(0, int(time_budget_seconds)),
            quiz_type=quiz_type,
            subject=subject,
            user_id=user_id,
        )
        engine = cls(session)
        if session.remaining_time_seconds == 0:
            engine._terminate(timed_out=True)
        return engine

    @property
    def session(self) -> QuizSession:
        return self._session

    # --- Read access ---

    def is_terminal(self) -> bool:
        return self._session.terminal

    def get_mode(self) -> FlowMode:
        return self._session.mode

    def get_phase(self) -> FlowPhase:
        return self._session.phase

    def get_current_item(self) -> QuizItem | None:
        """Return the item being answered, or None once the session is terminal."""
        session = self._session
        if session.terminal:
            return None
        if session.mode is FlowMode.SUB:
            return session.active_sub_questions[session.sub_index]
        return session.base_questions[session.base_index]

    def get_current_selection(self) -> int | None:
        return self._session.selected_option_index

    def get_ledger(self) -> tuple[AnsweredItem, ...]:
        return tuple(self._session.ledger)

    def get_remaining_time(self) -> int:
        return self._session.remaining_time_seconds

    # --- Transitions ---

    def select_option(self, index: int) -> None:
        """Record ``index`` as the tentative answer for the current item."""
        self._ensure_active()
        if self._session.phase is FlowPhase.EXPLAINING:
            raise InvalidStateError("The answer is locked while the explanation is shown.")
        item = self.get_current_item()
        if not 0 <= index < len(item.options):
            raise ValidationError(f"Option index {index} is out of range.")
        self._session.selected_option_index = index

    def advance(self) -> None:
        """Reveal the explanation, or record the answer and move to the next item."""
        self._ensure_active()
        session = self._session
        if session.selected_option_index is None:
            raise ValidationError("no answer selected")

        if session.phase is FlowPhase.ANSWERING:
            session.phase = FlowPhase.EXPLAINING
            return

        answer = session.selected_option_index
        self._record(answer)
        session.selected_option_index = None

        if session.mode is FlowMode.SUB:
            if session.sub_index + 1 < len(session.active_sub_questions):
                session.sub_index += 1
            else:
                session.active_sub_questions = ()
                session.sub_index = 0
                session.mode = FlowMode.BASE
                self._advance_base()
        else:
            question = session.base_questions[session.base_index]
            subs = triggered_sub_questions(question, answer)
            if subs:
                session.active_sub_questions = subs
                session.sub_index = 0
                session.mode = FlowMode.SUB
            else:
                self._advance_base()

        if not session.terminal:
            session.phase = FlowPhase.ANSWERING

    def tick(self, seconds: int = 1) -> None:
        """Count the timer down. Ticks at zero or after termination have no effect."""
        session = self._session
        if session.terminal or seconds <= 0:
            return
        session.remaining_time_seconds = max(0, session.remaining_time_seconds - seconds)
        if session.remaining_time_seconds == 0:
            # A confirmed or tentative answer still counts; an unanswered item is dropped.
            if session.selected_option_index is not None:
                self._record(session.selected_option_index)
                session.selected_option_index = None
            self._terminate(timed_out=True)

    # --- Internals ---

    def _ensure_active(self) -> None:
        if self._session.terminal:
            raise InvalidStateError("The quiz has already finished.")

    def _record(self, answer: int) -> None:
        item = self.get_current_item()
        self._session.ledger.append(
            AnsweredItem(
                item=item,
                user_answer_index=answer,
                is_correct=answer == item.correct_option_index,
                is_sub_question=self._session.mode is FlowMode.SUB,
            )
        )

    def _advance_base(self) -> None:
        session = self._session
        if session.base_index + 1 < len(session.base_questions):
            session.base_index += 1
        else:
            self._terminate(timed_out=False)

    def _terminate(self, timed_out: bool) -> None:
        session = self._session
        session.terminal = True
        session.timed_out = timed_out
        session.selected_option_index = None
        logger.debug(
            "Quiz session finished (timed_out=%s, answered=%d)",
            timed_out,
            len(session.ledger),
        )
