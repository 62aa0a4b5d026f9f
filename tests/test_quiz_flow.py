from __future__ import annotations

import pytest

from conftest import make_question, make_sub
from prep_app.core.models import FlowMode, FlowPhase, QuizType
from prep_app.core.services import scoring
from prep_app.core.services.quiz_flow import (
    InvalidStateError,
    QuizFlowEngine,
    ValidationError,
    triggered_sub_questions,
)


def answer(engine: QuizFlowEngine, option: int) -> None:
    """Select, reveal the explanation, then move on."""
    engine.select_option(option)
    engine.advance()
    engine.advance()


class TestTriggeredSubQuestions:
    def test_orders_by_order_field(self, branching_question):
        subs = triggered_sub_questions(branching_question, 1)
        assert [sub.id for sub in subs] == ["first", "second"]

    def test_equal_order_keeps_listed_sequence(self):
        question = make_question(
            subs=(
                make_sub("b", trigger=0, order=1),
                make_sub("a", trigger=0, order=1),
                make_sub("c", trigger=0, order=0),
            )
        )
        assert [sub.id for sub in triggered_sub_questions(question, 0)] == ["c", "b", "a"]

    def test_no_match_returns_empty(self, branching_question):
        assert triggered_sub_questions(branching_question, 2) == ()

    def test_out_of_range_trigger_never_matches(self):
        question = make_question(
            options=("A", "B"),
            subs=(make_sub("bad", trigger=5), make_sub("neg", trigger=-1)),
        )
        assert triggered_sub_questions(question, 0) == ()
        assert triggered_sub_questions(question, 1) == ()
        assert triggered_sub_questions(question, 5) == ()
        assert triggered_sub_questions(question, -1) == ()


class TestStart:
    def test_initial_state(self):
        engine = QuizFlowEngine.start([make_question("q1"), make_question("q2")], 60)
        assert not engine.is_terminal()
        assert engine.get_mode() is FlowMode.BASE
        assert engine.get_phase() is FlowPhase.ANSWERING
        assert engine.get_current_item().id == "q1"
        assert engine.get_current_selection() is None
        assert engine.get_ledger() == ()
        assert engine.get_remaining_time() == 60
        assert engine.session.quiz_type is QuizType.DAILY

    def test_empty_question_list_is_rejected(self):
        with pytest.raises(ValueError):
            QuizFlowEngine.start([], 60)

    def test_zero_budget_is_terminal_at_once(self):
        engine = QuizFlowEngine.start([make_question()], 0)
        assert engine.is_terminal()
        assert engine.session.timed_out
        assert engine.get_current_item() is None
        assert engine.get_ledger() == ()


class TestSelectOption:
    def test_selection_can_change_before_advance(self):
        engine = QuizFlowEngine.start([make_question()], 60)
        engine.select_option(0)
        engine.select_option(2)
        assert engine.get_current_selection() == 2
        assert engine.get_ledger() == ()

    @pytest.mark.parametrize("index", [-1, 3, 99])
    def test_out_of_range_is_rejected_without_change(self, index):
        engine = QuizFlowEngine.start([make_question()], 60)
        engine.select_option(1)
        with pytest.raises(ValidationError):
            engine.select_option(index)
        assert engine.get_current_selection() == 1

    def test_locked_while_explaining(self):
        engine = QuizFlowEngine.start([make_question()], 60)
        engine.select_option(1)
        engine.advance()
        with pytest.raises(InvalidStateError):
            engine.select_option(0)
        assert engine.get_current_selection() == 1

    def test_rejected_after_terminal(self):
        engine = QuizFlowEngine.start([make_question()], 60)
        answer(engine, 0)
        with pytest.raises(InvalidStateError):
            engine.select_option(0)


class TestAdvance:
    def test_requires_selection(self):
        engine = QuizFlowEngine.start([make_question()], 60)
        with pytest.raises(ValidationError, match="no answer selected"):
            engine.advance()
        assert engine.get_phase() is FlowPhase.ANSWERING

    def test_first_advance_reveals_explanation(self):
        engine = QuizFlowEngine.start([make_question()], 60)
        engine.select_option(0)
        engine.advance()
        assert engine.get_phase() is FlowPhase.EXPLAINING
        assert engine.get_ledger() == ()
        assert engine.get_current_item().id == "q1"

    def test_second_advance_records_and_moves_on(self):
        engine = QuizFlowEngine.start([make_question("q1", correct=1), make_question("q2")], 60)
        answer(engine, 1)
        ledger = engine.get_ledger()
        assert len(ledger) == 1
        assert ledger[0].item.id == "q1"
        assert ledger[0].user_answer_index == 1
        assert ledger[0].is_correct
        assert not ledger[0].is_sub_question
        assert engine.get_current_item().id == "q2"
        assert engine.get_phase() is FlowPhase.ANSWERING
        assert engine.get_current_selection() is None

    def test_rejected_after_terminal(self):
        engine = QuizFlowEngine.start([make_question()], 60)
        answer(engine, 0)
        with pytest.raises(InvalidStateError):
            engine.advance()


class TestBranching:
    def test_selected_trigger_presents_its_sub_questions_in_order(self, branching_question):
        engine = QuizFlowEngine.start([branching_question, make_question("next")], 60)
        answer(engine, 1)

        presented = []
        while engine.get_mode() is FlowMode.SUB:
            presented.append(engine.get_current_item().id)
            answer(engine, 0)

        assert presented == ["first", "second"]
        assert engine.get_current_item().id == "next"
        assert "zero" not in [entry.item.id for entry in engine.get_ledger()]

    def test_option_without_sub_questions_goes_to_next_base(self):
        question = make_question("q1", subs=(make_sub("only-zero", trigger=0),))
        engine = QuizFlowEngine.start([question, make_question("q2")], 60)
        answer(engine, 1)
        assert engine.get_mode() is FlowMode.BASE
        assert engine.get_current_item().id == "q2"

    def test_option_without_sub_questions_on_last_base_terminates(self):
        question = make_question("q1", subs=(make_sub("only-zero", trigger=0),))
        engine = QuizFlowEngine.start([question], 60)
        answer(engine, 1)
        assert engine.is_terminal()
        assert not engine.session.timed_out
        assert len(engine.get_ledger()) == 1

    def test_sub_questions_of_last_base_run_before_termination(self):
        question = make_question("q1", subs=(make_sub("s1", trigger=0, correct=1),))
        engine = QuizFlowEngine.start([question], 60)
        answer(engine, 0)
        assert not engine.is_terminal()
        assert engine.get_mode() is FlowMode.SUB
        answer(engine, 1)
        assert engine.is_terminal()
        ledger = engine.get_ledger()
        assert [entry.is_sub_question for entry in ledger] == [False, True]
        assert all(entry.is_correct for entry in ledger)

    def test_sub_question_answer_does_not_branch_further(self):
        nested_trigger = make_sub("s1", trigger=0, options=("A", "B", "C"))
        question = make_question("q1", subs=(nested_trigger,))
        engine = QuizFlowEngine.start([question, make_question("q2")], 60)
        answer(engine, 0)
        answer(engine, 0)
        assert engine.get_mode() is FlowMode.BASE
        assert engine.get_current_item().id == "q2"

    def test_sub_cursor_is_cleared_after_returning_to_base(self):
        question = make_question("q1", subs=(make_sub("s1", trigger=0),))
        engine = QuizFlowEngine.start([question, make_question("q2")], 60)
        answer(engine, 0)
        answer(engine, 0)
        assert engine.session.active_sub_questions == ()
        assert engine.session.sub_index == 0


class TestTimer:
    def test_tick_counts_down(self):
        engine = QuizFlowEngine.start([make_question()], 10)
        engine.tick()
        engine.tick(3)
        assert engine.get_remaining_time() == 6
        assert not engine.is_terminal()

    def test_timeout_while_answering_without_selection_records_nothing(self):
        engine = QuizFlowEngine.start([make_question("q1"), make_question("q2")], 5)
        answer(engine, 0)
        engine.tick(5)
        assert engine.is_terminal()
        assert engine.session.timed_out
        assert len(engine.get_ledger()) == 1
        assert engine.get_remaining_time() == 0

    def test_timeout_with_tentative_answer_records_it(self):
        engine = QuizFlowEngine.start([make_question("q1", correct=2)], 5)
        engine.select_option(2)
        engine.tick(10)
        assert engine.is_terminal()
        ledger = engine.get_ledger()
        assert len(ledger) == 1
        assert ledger[0].is_correct

    def test_timeout_while_explaining_records_shown_answer(self):
        engine = QuizFlowEngine.start([make_question("q1", correct=0)], 5)
        engine.select_option(1)
        engine.advance()
        engine.tick(5)
        assert [entry.user_answer_index for entry in engine.get_ledger()] == [1]

    def test_ticks_after_terminal_have_no_effect(self):
        engine = QuizFlowEngine.start([make_question()], 2)
        engine.tick(2)
        ledger = engine.get_ledger()
        engine.tick()
        engine.tick(100)
        assert engine.get_remaining_time() == 0
        assert engine.get_ledger() == ledger

    def test_non_positive_tick_is_ignored(self):
        engine = QuizFlowEngine.start([make_question()], 5)
        engine.tick(0)
        engine.tick(-3)
        assert engine.get_remaining_time() == 5


class TestInvariants:
    def test_progress_is_monotonic_and_ends_at_one(self, branching_question):
        questions = [branching_question, make_question("q2"), make_question("q3")]
        engine = QuizFlowEngine.start(questions, 600)
        session = engine.session
        seen = [scoring.progress_fraction(session)]

        for option in (1, 0, 0, 2, 1):
            engine.select_option(option)
            engine.advance()
            seen.append(scoring.progress_fraction(session))
            engine.advance()
            seen.append(scoring.progress_fraction(session))
            assert (scoring.progress_fraction(session) == 1.0) == engine.is_terminal()

        assert engine.is_terminal()
        assert seen == sorted(seen)
        assert seen[-1] == 1.0

    def test_ledger_grows_by_one_per_completed_item(self, branching_question):
        engine = QuizFlowEngine.start([branching_question, make_question("q2")], 600)
        lengths = []
        for option in (1, 0, 1, 0):
            engine.select_option(option)
            engine.advance()
            lengths.append(len(engine.get_ledger()))
            engine.advance()
            lengths.append(len(engine.get_ledger()))
        assert lengths == [0, 1, 1, 2, 2, 3, 3, 4]
        assert engine.is_terminal()

        frozen = engine.get_ledger()
        engine.tick(1000)
        with pytest.raises(InvalidStateError):
            engine.select_option(0)
        assert engine.get_ledger() == frozen


class TestScenario:
    def test_two_questions_with_one_follow_up(self):
        q1 = make_question("q1", correct=0, subs=(make_sub("s1", trigger=0, correct=1),))
        q2 = make_question("q2", correct=0)
        engine = QuizFlowEngine.start([q1, q2], 600)

        answer(engine, 0)
        assert engine.get_mode() is FlowMode.SUB
        assert engine.get_current_item().id == "s1"

        answer(engine, 1)
        assert engine.get_mode() is FlowMode.BASE
        assert engine.get_current_item().id == "q2"

        answer(engine, 2)
        assert engine.is_terminal()
        assert len(engine.get_ledger()) == 3
        assert scoring.score(engine.session) == 2
        assert scoring.percentage(engine.session) == 67
