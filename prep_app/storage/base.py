"""Interface to the hosted data service: questions, results, auth and profiles."""

from __future__ import annotations

from abc import ABC, abstractmethod

from prep_app.core.models import AuthUser, Question, QuizResult, UserProfile


class DataServiceError(Exception):
    """Raised when the backend cannot be reached or rejects a request."""


class QuestionNotFoundError(DataServiceError):
    """Raised when a question id does not exist."""


class AuthenticationError(DataServiceError):
    """Raised when sign-in or sign-up is refused."""


class QuizDataService(ABC):
    """Question repository, result sink, auth and profile store.

    Result and profile calls take the access token returned by ``sign_in`` or
    ``sign_up`` so a hosted backend can apply per-user row security. Stores
    without per-user security ignore it.
    """

    @abstractmethod
    def fetch_questions(self, limit: int | None = None, subject: str | None = None) -> list[Question]:
        """Return questions newest first, with sub-questions attached."""

    @abstractmethod
    def get_question(self, question_id: str) -> Question:
        """Return one question or raise ``QuestionNotFoundError``."""

    @abstractmethod
    def create_question(self, question: Question) -> Question:
        """Store a new question and return it with its assigned id."""

    @abstractmethod
    def update_question(self, question_id: str, question: Question) -> Question:
        """Replace a question's fields, keeping its id and creation time."""

    @abstractmethod
    def delete_question(self, question_id: str) -> None:
        """Remove a question and its sub-questions."""

    @abstractmethod
    def save_result(self, result: QuizResult, access_token: str | None = None) -> QuizResult:
        """Persist a completed quiz on behalf of the user holding ``access_token``."""

    @abstractmethod
    def list_results(self, user_id: str, access_token: str | None = None) -> list[QuizResult]:
        """Return a user's results newest first."""

    @abstractmethod
    def sign_in(self, email: str, password: str) -> AuthUser:
        """Exchange credentials for an identity."""

    @abstractmethod
    def sign_up(self, email: str, password: str, full_name: str = "") -> AuthUser:
        """Register a new account."""

    @abstractmethod
    def get_profile(self, user_id: str, access_token: str | None = None) -> UserProfile | None:
        """Return the profile row, or None when the user has none yet."""

    @abstractmethod
    def upsert_profile(self, profile: UserProfile, access_token: str | None = None) -> UserProfile:
        """Create or update a profile row."""
