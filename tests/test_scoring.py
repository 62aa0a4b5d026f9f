from __future__ import annotations

from datetime import datetime, timezone

import pytest

from conftest import make_question, make_sub
from prep_app.core.models import AnsweredItem, FlowMode, QuizSession, QuizType
from prep_app.core.services import scoring
from prep_app.core.services.quiz_flow import QuizFlowEngine


def session_with_ledger(*correctness: bool) -> QuizSession:
    question = make_question("q1", correct=0)
    session = QuizSession(base_questions=(question,), remaining_time_seconds=60)
    for is_correct in correctness:
        session.ledger.append(
            AnsweredItem(
                item=question,
                user_answer_index=0 if is_correct else 1,
                is_correct=is_correct,
                is_sub_question=False,
            )
        )
    return session


class TestScore:
    def test_two_of_three(self):
        session = session_with_ledger(True, False, True)
        assert scoring.score(session) == 2
        assert scoring.total_answered(session) == 3
        assert scoring.percentage(session) == 67

    def test_empty_ledger(self):
        session = session_with_ledger()
        assert scoring.score(session) == 0
        assert scoring.percentage(session) == 0

    @pytest.mark.parametrize(
        ("correct", "total", "expected"),
        [(1, 3, 33), (1, 8, 13), (1, 200, 1), (0, 5, 0), (5, 5, 100), (3, 0, 0)],
    )
    def test_percentage_rounds_halves_up(self, correct, total, expected):
        assert scoring.percentage_of(correct, total) == expected


class TestProgress:
    def test_base_mode_counts_completed_questions(self):
        engine = QuizFlowEngine.start([make_question("q1"), make_question("q2")], 60)
        assert scoring.progress_fraction(engine.session) == 0.0
        engine.select_option(1)
        engine.advance()
        engine.advance()
        assert scoring.progress_fraction(engine.session) == 0.5

    def test_sub_mode_includes_follow_up_position(self):
        question = make_question(
            "q1", subs=(make_sub("s1", trigger=0, order=1), make_sub("s2", trigger=0, order=2))
        )
        engine = QuizFlowEngine.start([question, make_question("q2")], 60)
        engine.select_option(0)
        engine.advance()
        engine.advance()
        assert engine.get_mode() is FlowMode.SUB
        assert scoring.progress_fraction(engine.session) == pytest.approx(0.25)
        engine.select_option(0)
        engine.advance()
        engine.advance()
        assert scoring.progress_fraction(engine.session) == pytest.approx(0.5)

    def test_last_follow_up_stays_below_one(self):
        question = make_question("q1", subs=(make_sub("s1", trigger=0),))
        engine = QuizFlowEngine.start([question], 60)
        engine.select_option(0)
        engine.advance()
        engine.advance()
        assert engine.get_mode() is FlowMode.SUB
        assert scoring.progress_fraction(engine.session) < 1.0
        engine.select_option(0)
        engine.advance()
        engine.advance()
        assert scoring.progress_fraction(engine.session) == 1.0

    def test_terminal_is_one(self):
        engine = QuizFlowEngine.start([make_question("q1"), make_question("q2")], 3)
        engine.tick(3)
        assert scoring.progress_fraction(engine.session) == 1.0


class TestResults:
    def _finished_session(self) -> QuizSession:
        question = make_question("q1", correct=0, subs=(make_sub("s1", trigger=1, correct=0),))
        engine = QuizFlowEngine.start(
            [question], 60, quiz_type=QuizType.SUBJECT, subject="Mathematics", user_id="u1"
        )
        for option in (1, 0):
            engine.select_option(option)
            engine.advance()
            engine.advance()
        return engine.session

    def test_build_review_follows_answer_order(self):
        rows = scoring.build_review(self._finished_session())
        assert [row.text for row in rows] == ["Question q1?", "Follow-up s1"]
        assert [row.is_correct for row in rows] == [False, True]
        assert [row.is_sub_question for row in rows] == [False, True]
        assert rows[0].user_answer_index == 1
        assert rows[0].correct_option_index == 0
        assert rows[0].explanation == "Explanation for q1."

    def test_build_result(self):
        completed = datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)
        result = scoring.build_result(self._finished_session(), completed_at=completed)
        assert result.user_id == "u1"
        assert result.quiz_type is QuizType.SUBJECT
        assert result.subject == "Mathematics"
        assert result.score == 1
        assert result.total_questions == 2
        assert result.percentage == 50
        assert result.completed_at == completed
        assert [item.question_id for item in result.items] == ["q1", "s1"]
        assert result.items[1].is_sub_question

    def test_default_completion_time_is_utc(self):
        session = self._finished_session()
        result = scoring.build_result(session)
        assert session.started_at.tzinfo is timezone.utc
        assert result.completed_at.tzinfo is timezone.utc
        assert result.completed_at >= session.started_at

    def test_build_result_requires_terminal_session(self):
        engine = QuizFlowEngine.start([make_question()], 60, user_id="u1")
        with pytest.raises(ValueError):
            scoring.build_result(engine.session)

    def test_build_result_requires_user(self):
        engine = QuizFlowEngine.start([make_question()], 0)
        with pytest.raises(ValueError):
            scoring.build_result(engine.session)
