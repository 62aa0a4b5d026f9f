"""In-process data service used for local development and tests."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from threading import Lock
from uuid import uuid4

from werkzeug.security import check_password_hash, generate_password_hash

from prep_app.core.models import AuthUser, Question, QuizResult, UserProfile, utc_now
from prep_app.core.services.question_bank import prepare_question
from prep_app.storage.base import (
    AuthenticationError,
    QuestionNotFoundError,
    QuizDataService,
)


class InMemoryDataService(QuizDataService):
    """Keeps questions, results, accounts and profiles in dictionaries."""

    def __init__(self, questions: list[Question] | None = None) -> None:
        self._lock = Lock()
        self._questions: dict[str, Question] = {}
        self._results: list[QuizResult] = []
        self._accounts: dict[str, tuple[str, str]] = {}
        self._profiles: dict[str, UserProfile] = {}
        self._clock = utc_now()
        for question in questions or []:
            self.create_question(question)

    # --- Questions ---

    def fetch_questions(self, limit: int | None = None, subject: str | None = None) -> list[Question]:
        with self._lock:
            rows = [
                q for q in self._questions.values()
                if subject is None or q.subject == subject
            ]
        rows.sort(key=lambda q: q.created_at, reverse=True)
        return rows if limit is None else rows[:limit]

    def get_question(self, question_id: str) -> Question:
        with self._lock:
            question = self._questions.get(question_id)
        if question is None:
            raise QuestionNotFoundError(f"Question {question_id} not found.")
        return question

    def create_question(self, question: Question) -> Question:
        prepared = prepare_question(question)
        with self._lock:
            question_id = uuid4().hex
            stored = replace(
                prepared,
                id=question_id,
                created_at=self._next_timestamp(),
                sub_questions=tuple(
                    replace(sub, id=sub.id or uuid4().hex) for sub in prepared.sub_questions
                ),
            )
            self._questions[question_id] = stored
        return stored

    def update_question(self, question_id: str, question: Question) -> Question:
        prepared = prepare_question(question)
        with self._lock:
            existing = self._questions.get(question_id)
            if existing is None:
                raise QuestionNotFoundError(f"Question {question_id} not found.")
            stored = replace(
                prepared,
                id=existing.id,
                created_at=existing.created_at,
                sub_questions=tuple(
                    replace(sub, id=sub.id or uuid4().hex) for sub in prepared.sub_questions
                ),
            )
            self._questions[question_id] = stored
        return stored

    def delete_question(self, question_id: str) -> None:
        with self._lock:
            if self._questions.pop(question_id, None) is None:
                raise QuestionNotFoundError(f"Question {question_id} not found.")

    # --- Results ---

    def save_result(self, result: QuizResult, access_token: str | None = None) -> QuizResult:
        stored = replace(result, id=result.id or uuid4().hex)
        with self._lock:
            self._results.append(stored)
        return stored

    def list_results(self, user_id: str, access_token: str | None = None) -> list[QuizResult]:
        with self._lock:
            rows = [r for r in self._results if r.user_id == user_id]
        return sorted(rows, key=lambda r: r.completed_at, reverse=True)

    # --- Accounts ---

    def sign_in(self, email: str, password: str) -> AuthUser:
        key = email.strip().lower()
        with self._lock:
            account = self._accounts.get(key)
        if account is None or not check_password_hash(account[1], password):
            raise AuthenticationError("Invalid login credentials.")
        return AuthUser(user_id=account[0], email=key)

    def sign_up(self, email: str, password: str, full_name: str = "") -> AuthUser:
        key = email.strip().lower()
        if not key or "@" not in key:
            raise AuthenticationError("A valid email address is required.")
        if len(password) < 6:
            raise AuthenticationError("Password should be at least 6 characters.")
        with self._lock:
            if key in self._accounts:
                raise AuthenticationError("User already registered.")
            user_id = uuid4().hex
            self._accounts[key] = (user_id, generate_password_hash(password))
            self._profiles[user_id] = UserProfile(
                user_id=user_id,
                email=key,
                full_name=full_name.strip(),
                updated_at=utc_now(),
            )
        return AuthUser(user_id=user_id, email=key)

    def get_profile(self, user_id: str, access_token: str | None = None) -> UserProfile | None:
        with self._lock:
            return self._profiles.get(user_id)

    def upsert_profile(self, profile: UserProfile, access_token: str | None = None) -> UserProfile:
        stored = replace(profile, updated_at=utc_now())
        with self._lock:
            self._profiles[profile.user_id] = stored
        return stored

    def _next_timestamp(self) -> datetime:
        # Strictly increasing so "newest first" is stable for bulk inserts.
        self._clock = max(utc_now(), self._clock + timedelta(microseconds=1))
        return self._clock
