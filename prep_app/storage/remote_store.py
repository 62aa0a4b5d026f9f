"""Data service backed by a hosted Supabase-style REST backend.

Tables are reached through PostgREST conventions (``/rest/v1/<table>`` with
``column=eq.value`` filters) and accounts through the GoTrue endpoints under
``/auth/v1``. Question rows carry their sub-questions through an embedded
``sub_questions`` select so a quiz is loaded with one request.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any

import requests

from prep_app.constants.backend_constants import (
    REQUEST_TIMEOUT_SECONDS,
    SUPABASE_ANON_KEY,
    SUPABASE_URL,
)
from prep_app.core.models import (
    AuthUser,
    Difficulty,
    LedgerRecord,
    Question,
    QuizResult,
    QuizType,
    SubQuestion,
    UserProfile,
    utc_now,
)
from prep_app.core.services.question_bank import prepare_question
from prep_app.core.services.scoring import percentage_of
from prep_app.storage.base import (
    AuthenticationError,
    DataServiceError,
    QuestionNotFoundError,
    QuizDataService,
)

logger = logging.getLogger(__name__)

_QUESTION_SELECT = "*,sub_questions(*)"


class RemoteDataService(QuizDataService):
    """Talks to the hosted backend over HTTP with ``requests``."""

    def __init__(
        self,
        base_url: str = SUPABASE_URL,
        api_key: str = SUPABASE_ANON_KEY,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url or not api_key:
            raise ValueError("Backend URL and API key are required.")
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._http = session or requests.Session()

    # --- Questions ---

    def fetch_questions(self, limit: int | None = None, subject: str | None = None) -> list[Question]:
        params: dict[str, Any] = {"select": _QUESTION_SELECT, "order": "created_at.desc"}
        if subject is not None:
            params["subject"] = f"eq.{subject}"
        if limit is not None:
            params["limit"] = limit
        rows = self._rest("GET", "questions", params=params)
        return [_question_from_row(row) for row in rows]

    def get_question(self, question_id: str) -> Question:
        rows = self._rest(
            "GET",
            "questions",
            params={"select": _QUESTION_SELECT, "id": f"eq.{question_id}"},
        )
        if not rows:
            raise QuestionNotFoundError(f"Question {question_id} not found.")
        return _question_from_row(rows[0])

    def create_question(self, question: Question) -> Question:
        prepared = prepare_question(question)
        rows = self._rest(
            "POST",
            "questions",
            json=_question_to_row(prepared),
            prefer="return=representation",
        )
        question_id = str(rows[0]["id"])
        try:
            self._insert_sub_questions(question_id, prepared.sub_questions)
        except DataServiceError:
            # No question is stored without its follow-ups.
            logger.error("Removing question %s after its sub-questions failed to save", question_id)
            self._rest("DELETE", "questions", params={"id": f"eq.{question_id}"})
            raise
        logger.info("Created question %s", question_id)
        return self.get_question(question_id)

    def update_question(self, question_id: str, question: Question) -> Question:
        """Replace a question's fields and sub-questions.

        New sub-question rows are written before the old ones are removed, so a
        failed write leaves the previous follow-ups in place.
        """
        prepared = prepare_question(question)
        rows = self._rest(
            "PATCH",
            "questions",
            params={"id": f"eq.{question_id}"},
            json=_question_to_row(prepared),
            prefer="return=representation",
        )
        if not rows:
            raise QuestionNotFoundError(f"Question {question_id} not found.")
        new_ids = self._insert_sub_questions(question_id, prepared.sub_questions)
        stale = {"question_id": f"eq.{question_id}"}
        if new_ids:
            stale["id"] = f"not.in.({','.join(new_ids)})"
        self._rest("DELETE", "sub_questions", params=stale)
        logger.info("Updated question %s", question_id)
        return self.get_question(question_id)

    def delete_question(self, question_id: str) -> None:
        self._rest("DELETE", "sub_questions", params={"question_id": f"eq.{question_id}"})
        rows = self._rest(
            "DELETE",
            "questions",
            params={"id": f"eq.{question_id}"},
            prefer="return=representation",
        )
        if not rows:
            raise QuestionNotFoundError(f"Question {question_id} not found.")
        logger.info("Deleted question %s", question_id)

    def _insert_sub_questions(self, question_id: str, subs: tuple[SubQuestion, ...]) -> list[str]:
        """Insert ``subs`` for ``question_id`` and return the ids of the new rows."""
        if not subs:
            return []
        rows = self._rest(
            "POST",
            "sub_questions",
            json=[_sub_question_to_row(question_id, sub) for sub in subs],
            prefer="return=representation",
        )
        return [str(row["id"]) for row in rows if "id" in row]

    # --- Results ---
    # Result and profile rows are guarded by row-level security, so these calls
    # carry the signed-in user's access token when one is available.

    def save_result(self, result: QuizResult, access_token: str | None = None) -> QuizResult:
        rows = self._rest(
            "POST",
            "quiz_results",
            json=_result_to_row(result),
            prefer="return=representation",
            access_token=access_token,
        )
        return _result_from_row(rows[0]) if rows else result

    def list_results(self, user_id: str, access_token: str | None = None) -> list[QuizResult]:
        rows = self._rest(
            "GET",
            "quiz_results",
            params={"user_id": f"eq.{user_id}", "order": "completed_at.desc"},
            access_token=access_token,
        )
        return [_result_from_row(row) for row in rows]

    # --- Accounts ---

    def sign_in(self, email: str, password: str) -> AuthUser:
        payload = self._auth(
            "token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        user = payload.get("user") or {}
        if "id" not in user:
            raise AuthenticationError("Sign-in response did not include a user.")
        return AuthUser(
            user_id=str(user["id"]),
            email=user.get("email", email),
            access_token=payload.get("access_token"),
        )

    def sign_up(self, email: str, password: str, full_name: str = "") -> AuthUser:
        payload = self._auth(
            "signup",
            json={"email": email, "password": password, "data": {"full_name": full_name}},
        )
        # Depending on email confirmation settings the user is nested or top-level.
        user = payload.get("user") or payload
        if "id" not in user:
            raise AuthenticationError("Sign-up response did not include a user.")
        return AuthUser(
            user_id=str(user["id"]),
            email=user.get("email", email),
            access_token=payload.get("access_token"),
        )

    def get_profile(self, user_id: str, access_token: str | None = None) -> UserProfile | None:
        rows = self._rest(
            "GET",
            "profiles",
            params={"user_id": f"eq.{user_id}"},
            access_token=access_token,
        )
        return _profile_from_row(rows[0]) if rows else None

    def upsert_profile(self, profile: UserProfile, access_token: str | None = None) -> UserProfile:
        row = {
            "user_id": profile.user_id,
            "email": profile.email,
            "full_name": profile.full_name,
            "avatar_url": profile.avatar_url,
            "updated_at": _format_timestamp(utc_now()),
        }
        rows = self._rest(
            "POST",
            "profiles",
            params={"on_conflict": "user_id"},
            json=row,
            prefer="resolution=merge-duplicates,return=representation",
            access_token=access_token,
        )
        return _profile_from_row(rows[0]) if rows else profile

    # --- Transport ---

    def _headers(
        self,
        prefer: str | None = None,
        access_token: str | None = None,
    ) -> dict[str, str]:
        """``apikey`` is always the project key; the bearer is the user's token when given."""
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {access_token or self._api_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _rest(
        self,
        method: str,
        table: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
        prefer: str | None = None,
        access_token: str | None = None,
    ) -> list[dict[str, Any]]:
        url = f"{self._base_url}/rest/v1/{table}"
        try:
            response = self._http.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._headers(prefer, access_token),
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as exc:
            logger.error("%s %s failed: %s", method, table, exc)
            raise DataServiceError(f"Backend request to '{table}' failed.") from exc
        if not response.content:
            return []
        try:
            body = response.json()
        except ValueError as exc:
            logger.error("%s %s returned a non-JSON body", method, table)
            raise DataServiceError(f"Backend response from '{table}' was not JSON.") from exc
        return body if isinstance(body, list) else [body]

    def _auth(
        self,
        endpoint: str,
        json: dict[str, Any],
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}/auth/v1/{endpoint}"
        try:
            response = self._http.request(
                "POST",
                url,
                params=params,
                json=json,
                headers=self._headers(),
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as exc:
            logger.error("Auth request %s failed: %s", endpoint, exc)
            raise DataServiceError("Authentication service unavailable.") from exc
        if response.status_code in (400, 401, 403, 422):
            body = _safe_json(response)
            message = body.get("error_description") or body.get("msg") or "Invalid login credentials."
            raise AuthenticationError(message)
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            logger.error("Auth request %s failed: %s", endpoint, exc)
            raise DataServiceError("Authentication service unavailable.") from exc
        return _safe_json(response)


def _safe_json(response: requests.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    # PostgREST omits the offset for "timestamp without time zone" columns.
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _question_from_row(row: dict[str, Any]) -> Question:
    subs = [
        SubQuestion(
            id=str(sub["id"]),
            text=sub.get("question", ""),
            options=tuple(str(option) for option in sub.get("options") or []),
            correct_option_index=int(sub.get("correct_answer", 0)),
            trigger_option_index=int(sub.get("trigger_option", -1)),
            order=int(sub.get("display_order") or 0),
            explanation=sub.get("explanation") or "",
            subject=row.get("subject") or "",
            difficulty=Difficulty(sub.get("difficulty") or row.get("difficulty") or "easy"),
        )
        for sub in row.get("sub_questions") or []
    ]
    return Question(
        id=str(row["id"]),
        text=row.get("question", ""),
        options=tuple(str(option) for option in row.get("options") or []),
        correct_option_index=int(row.get("correct_answer", 0)),
        explanation=row.get("explanation") or "",
        subject=row.get("subject") or "",
        difficulty=Difficulty(row.get("difficulty") or "easy"),
        sub_questions=tuple(subs),
        created_at=_parse_timestamp(row.get("created_at")),
    )


def _question_to_row(question: Question) -> dict[str, Any]:
    return {
        "question": question.text,
        "options": list(question.options),
        "correct_answer": question.correct_option_index,
        "explanation": question.explanation,
        "subject": question.subject,
        "difficulty": question.difficulty.value,
    }


def _sub_question_to_row(question_id: str, sub: SubQuestion) -> dict[str, Any]:
    return {
        "question_id": question_id,
        "question": sub.text,
        "options": list(sub.options),
        "correct_answer": sub.correct_option_index,
        "explanation": sub.explanation,
        "difficulty": sub.difficulty.value,
        "trigger_option": sub.trigger_option_index,
        "display_order": sub.order,
    }


def _result_to_row(result: QuizResult) -> dict[str, Any]:
    return {
        "user_id": result.user_id,
        "quiz_type": result.quiz_type.value,
        "subject": result.subject,
        "questions": [
            {
                "id": item.question_id,
                "question": item.text,
                "options": item.options,
                "correct_answer": item.correct_option_index,
                "explanation": item.explanation,
                "subject": item.subject,
                "is_sub_question": item.is_sub_question,
            }
            for item in result.items
        ],
        "user_answers": [item.user_answer_index for item in result.items],
        "score": result.score,
        "total_questions": result.total_questions,
        "completed_at": _format_timestamp(result.completed_at),
    }


def _result_from_row(row: dict[str, Any]) -> QuizResult:
    questions = row.get("questions") or []
    answers = row.get("user_answers") or []
    items = []
    for question, answer in zip(questions, answers):
        correct = int(question.get("correct_answer", 0))
        items.append(
            LedgerRecord(
                question_id=str(question.get("id", "")),
                text=question.get("question", ""),
                options=[str(option) for option in question.get("options") or []],
                correct_option_index=correct,
                user_answer_index=int(answer),
                is_correct=int(answer) == correct,
                is_sub_question=bool(question.get("is_sub_question", False)),
                explanation=question.get("explanation") or "",
                subject=question.get("subject") or "",
            )
        )
    score = int(row.get("score", 0))
    total = int(row.get("total_questions", len(items)))
    return QuizResult(
        id=str(row["id"]) if row.get("id") is not None else None,
        user_id=str(row["user_id"]),
        quiz_type=QuizType(row.get("quiz_type") or "daily"),
        items=items,
        score=score,
        total_questions=total,
        percentage=percentage_of(score, total),
        completed_at=_parse_timestamp(row.get("completed_at")) or utc_now(),
        subject=row.get("subject"),
    )


def _profile_from_row(row: dict[str, Any]) -> UserProfile:
    return UserProfile(
        user_id=str(row["user_id"]),
        email=row.get("email") or "",
        full_name=row.get("full_name") or "",
        avatar_url=row.get("avatar_url"),
        updated_at=_parse_timestamp(row.get("updated_at")),
    )
