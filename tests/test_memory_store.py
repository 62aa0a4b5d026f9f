from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from conftest import make_question, make_result, make_sub
from prep_app.core.services.question_bank import QuestionValidationError
from prep_app.storage.base import AuthenticationError, QuestionNotFoundError
from prep_app.storage.memory_store import InMemoryDataService


class TestQuestions:
    def test_fetch_is_newest_first_with_limit_and_subject(self, data_service):
        assert [q.text for q in data_service.fetch_questions()] == [
            "Question g1?",
            "Question m2?",
            "Question m1?",
        ]
        assert len(data_service.fetch_questions(limit=2)) == 2
        maths = data_service.fetch_questions(subject="Mathematics")
        assert {q.subject for q in maths} == {"Mathematics"}
        assert len(maths) == 2

    def test_create_assigns_ids(self):
        store = InMemoryDataService()
        stored = store.create_question(make_question("", subs=(make_sub(""),)))
        assert stored.id
        assert stored.sub_questions[0].id
        assert stored.created_at is not None
        assert store.get_question(stored.id) == stored

    def test_create_validates(self):
        store = InMemoryDataService()
        with pytest.raises(QuestionValidationError):
            store.create_question(replace(make_question(), subject=""))
        assert store.fetch_questions() == []

    def test_update_keeps_id_and_creation_time(self, data_service):
        original = data_service.fetch_questions(subject="Geography")[0]
        updated = data_service.update_question(original.id, replace(original, text="Changed?"))
        assert updated.id == original.id
        assert updated.created_at == original.created_at
        assert updated.created_at.tzinfo is timezone.utc
        assert data_service.get_question(original.id).text == "Changed?"

    def test_unknown_ids_raise(self, data_service):
        with pytest.raises(QuestionNotFoundError):
            data_service.get_question("missing")
        with pytest.raises(QuestionNotFoundError):
            data_service.update_question("missing", make_question())
        with pytest.raises(QuestionNotFoundError):
            data_service.delete_question("missing")

    def test_delete(self, data_service):
        question = data_service.fetch_questions()[0]
        data_service.delete_question(question.id)
        assert len(data_service.fetch_questions()) == 2


class TestResults:
    def test_results_are_per_user_newest_first(self):
        store = InMemoryDataService()
        store.save_result(make_result("u1", completed_at=datetime(2024, 1, 1, tzinfo=timezone.utc)))
        store.save_result(make_result("u2", completed_at=datetime(2024, 1, 2, tzinfo=timezone.utc)))
        saved = store.save_result(make_result("u1", completed_at=datetime(2024, 1, 3, tzinfo=timezone.utc)))
        assert saved.id is not None
        results = store.list_results("u1")
        assert [r.completed_at.day for r in results] == [3, 1]


class TestAccounts:
    def test_sign_up_then_sign_in(self):
        store = InMemoryDataService()
        created = store.sign_up("Asha@Example.com", "hunter22", "Asha")
        signed_in = store.sign_in("asha@example.com", "hunter22")
        assert signed_in.user_id == created.user_id
        assert store.get_profile(created.user_id).full_name == "Asha"

    def test_wrong_password(self):
        store = InMemoryDataService()
        store.sign_up("a@example.com", "hunter22")
        with pytest.raises(AuthenticationError):
            store.sign_in("a@example.com", "wrong")
        with pytest.raises(AuthenticationError):
            store.sign_in("nobody@example.com", "hunter22")

    @pytest.mark.parametrize(
        ("email", "password"),
        [("not-an-email", "hunter22"), ("a@example.com", "short")],
    )
    def test_sign_up_rejects_bad_input(self, email, password):
        with pytest.raises(AuthenticationError):
            InMemoryDataService().sign_up(email, password)

    def test_duplicate_sign_up(self):
        store = InMemoryDataService()
        store.sign_up("a@example.com", "hunter22")
        with pytest.raises(AuthenticationError, match="already registered"):
            store.sign_up("A@example.com", "hunter22")

    def test_upsert_profile(self):
        store = InMemoryDataService()
        user = store.sign_up("a@example.com", "hunter22")
        profile = store.get_profile(user.user_id)
        updated = store.upsert_profile(replace(profile, full_name="New Name"))
        assert updated.updated_at.tzinfo is timezone.utc
        assert store.get_profile(user.user_id).full_name == "New Name"
        assert store.get_profile("someone-else") is None
