"""FastAPI server that exposes the quiz page and the JSON endpoints behind it."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
import logging
import secrets
from threading import Lock
from typing import Iterator

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import HTMLResponse, PlainTextResponse
from pydantic import BaseModel, Field
import uvicorn

from prep_app.constants.about import (
    APP_ABOUT_TEXT,
    APP_LICENSE,
    APP_NAME,
    APP_VERSION,
    HELP_TEXT,
)
from prep_app.constants.network_constants import (
    ADMIN_COOKIE,
    COOKIE_MAX_AGE_SECONDS,
    DEFAULT_HOST,
    DEFAULT_PORT,
    IDENTITY_COOKIE,
)
from prep_app.constants.quiz_constants import MAX_OPTIONS, MIN_OPTIONS, SUBJECTS
from prep_app.core.markdown_math_renderer import renderer
from prep_app.core.models import (
    AuthUser,
    Difficulty,
    Question,
    QuizType,
    SubQuestion,
)
from prep_app.core.quiz_importer import QuizImportError
from prep_app.core.quiz_manager import NoActiveQuizError, NoQuestionsError, QuizManager, QuizSnapshot
from prep_app.core.services.admin_gate import AdminGate, AdminLockedError
from prep_app.core.services.dashboard import DashboardStats
from prep_app.core.services.quiz_flow import InvalidStateError, ValidationError
from prep_app.storage.base import AuthenticationError, DataServiceError, QuestionNotFoundError

logger = logging.getLogger(__name__)

_QUIZ_PAGE_HTML = """<!doctype html>
<html lang=\"en\">
  <head>
    <meta charset=\"utf-8\" />
    <title>PrepQuiz</title>
    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
    <style>
      :root { font-family: 'Inter', system-ui, sans-serif; background: #0b1120; color: #f5f7ff; }
      body { margin: 0 auto; max-width: 46rem; padding: 1.5rem; display: flex; flex-direction: column; gap: 1rem; }
      .card { background: #111a30; border-radius: 0.75rem; padding: 1.5rem; box-shadow: 0 0.5rem 1.5rem rgba(0, 0, 0, 0.4); }
      .hidden { display: none; }
      input, select { width: 100%; box-sizing: border-box; margin-bottom: 0.75rem; padding: 0.6rem; border-radius: 0.5rem; border: 1px solid #334155; background: #0b1120; color: #f5f7ff; }
      .primary-button { border: none; border-radius: 0.75rem; padding: 0.85rem 1.5rem; font-size: 1rem; background: #1f9aa5; color: #fff; cursor: pointer; transition: transform 120ms ease, background 120ms ease; }
      .primary-button:hover { transform: translateY(-2px); background: #16808a; }
      .primary-button:disabled { opacity: 0.6; cursor: not-allowed; }
      .meta { display: flex; justify-content: space-between; color: #94a3b8; font-size: 0.95rem; }
      .badge { display: inline-block; padding: 0.15rem 0.6rem; border-radius: 999px; background: #1e293b; margin-right: 0.4rem; }
      #question-container { min-height: 4rem; font-size: 1.1rem; line-height: 1.6; }
      .options-list { display: flex; flex-direction: column; gap: 0.6rem; }
      .option-button { text-align: left; border: 2px solid transparent; border-radius: 0.75rem; padding: 0.9rem; font-size: 1rem; background: #1e293b; color: #fff; cursor: pointer; }
      .option-button.selected { border-color: #1f9aa5; }
      .option-button.correct { background: #14532d; }
      .option-button.wrong { background: #7f1d1d; }
      .option-button:disabled { cursor: default; }
      .progress-track { width: 100%; height: 0.5rem; background: rgba(31, 154, 165, 0.25); border-radius: 999px; overflow: hidden; margin-top: 0.5rem; }
      #progress-fill { height: 100%; background: #1f9aa5; width: 0%; transition: width 200ms ease; }
      #timer { font-family: monospace; color: #facc15; }
      #explanation { margin-top: 1rem; padding: 1rem; border-radius: 0.75rem; background: #1e293b; }
      #status { min-height: 1.25rem; color: #f87171; }
      .review-item { border-top: 1px solid #334155; padding-top: 0.75rem; margin-top: 0.75rem; }
    </style>
    <script>
      window.MathJax = { tex: { inlineMath: [['$','$']], displayMath: [['$$','$$']] }, svg: { fontCache: 'global' } };
    </script>
    <script defer src=\"https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js\"></script>
  </head>
  <body>
    <section class=\"card\" id=\"sign-in-card\">
      <h1>PrepQuiz</h1>
      <p>Sign in to start practising.</p>
      <input id=\"email\" type=\"email\" placeholder=\"Email\" />
      <input id=\"password\" type=\"password\" placeholder=\"Password\" />
      <button id=\"sign-in-button\" class=\"primary-button\">Sign In</button>
      <p id=\"sign-in-status\"></p>
    </section>
    <section class=\"card hidden\" id=\"start-card\">
      <h2>Choose a quiz</h2>
      <p id=\"dashboard-summary\"></p>
      <select id=\"quiz-type\">
        <option value=\"daily\">Daily quiz</option>
        <option value=\"subject\">Subject quiz</option>
        <option value=\"mock\">Mock exam</option>
      </select>
      <select id=\"subject\" class=\"hidden\"></select>
      <button id=\"start-button\" class=\"primary-button\">Start Quiz</button>
    </section>
    <section class=\"card hidden\" id=\"quiz-card\">
      <div class=\"meta\"><span id=\"position\"></span><span id=\"timer\"></span></div>
      <div class=\"progress-track\"><div id=\"progress-fill\"></div></div>
      <p id=\"badges\"></p>
      <div id=\"question-container\"></div>
      <div id=\"options-container\" class=\"options-list\"></div>
      <div id=\"explanation\" class=\"hidden\"></div>
      <p id=\"status\"></p>
      <button id=\"advance-button\" class=\"primary-button\">Next Question</button>
    </section>
    <section class=\"card hidden\" id=\"result-card\">
      <h2 id=\"result-title\">Quiz Completed!</h2>
      <p id=\"result-score\"></p>
      <div id=\"review\"></div>
      <button id=\"again-button\" class=\"primary-button\">Back to Dashboard</button>
    </section>
    <script>
      const signInCard = document.getElementById('sign-in-card');
      const startCard = document.getElementById('start-card');
      const quizCard = document.getElementById('quiz-card');
      const resultCard = document.getElementById('result-card');
      const quizTypeSelect = document.getElementById('quiz-type');
      const subjectSelect = document.getElementById('subject');
      const optionsContainer = document.getElementById('options-container');
      const explanationEl = document.getElementById('explanation');
      const statusEl = document.getElementById('status');
      const advanceButton = document.getElementById('advance-button');
      let timerHandle = null;

      function setVisibility(element, isVisible) {
        element.classList.toggle('hidden', !isVisible);
      }

      function showOnly(card) {
        [signInCard, startCard, quizCard, resultCard].forEach(c => setVisibility(c, c === card));
      }

      function formatTime(seconds) {
        const mins = Math.floor(seconds / 60);
        const secs = seconds % 60;
        return `${mins}:${String(secs).padStart(2, '0')}`;
      }

      async function api(path, method = 'GET', body = undefined) {
        const response = await fetch(path, {
          method,
          headers: { 'Content-Type': 'application/json' },
          body: body === undefined ? undefined : JSON.stringify(body)
        });
        const payload = await response.json().catch(() => ({}));
        if (!response.ok) {
          throw new Error(payload.detail || 'Request failed.');
        }
        return payload;
      }

      async function loadDashboard() {
        const stats = await api('/dashboard');
        document.getElementById('dashboard-summary').textContent =
          `${stats.total_quizzes} quizzes • average ${stats.average_score}% • ${stats.current_streak} day streak`;
        const subjects = await api('/subjects');
        subjectSelect.innerHTML = '';
        subjects.subjects.forEach(name => {
          const option = document.createElement('option');
          option.value = name;
          option.textContent = name;
          subjectSelect.appendChild(option);
        });
        showOnly(startCard);
      }

      function renderState(state) {
        if (state.terminal) {
          renderResult(state);
          return;
        }
        showOnly(quizCard);
        const item = state.item;
        const position = state.mode === 'sub'
          ? `Question ${state.base_position} of ${state.base_count} • follow-up ${state.sub_position} of ${state.sub_count}`
          : `Question ${state.base_position} of ${state.base_count}`;
        document.getElementById('position').textContent = position;
        document.getElementById('timer').textContent = formatTime(state.remaining_time_seconds);
        document.getElementById('progress-fill').style.width = `${Math.round(state.progress * 100)}%`;
        document.getElementById('badges').innerHTML =
          `<span class=\"badge\">${item.subject}</span><span class=\"badge\">${item.difficulty}</span>`;
        document.getElementById('question-container').innerHTML = item.html;
        const explaining = state.phase === 'explaining';
        optionsContainer.innerHTML = '';
        item.options_html.forEach((label, index) => {
          const button = document.createElement('button');
          button.className = 'option-button';
          button.innerHTML = `<strong>${String.fromCharCode(65 + index)}.</strong> ${label}`;
          if (state.selected_option_index === index) button.classList.add('selected');
          if (explaining) {
            button.disabled = true;
            if (index === state.correct_option_index) button.classList.add('correct');
            else if (index === state.selected_option_index) button.classList.add('wrong');
          } else {
            button.addEventListener('click', () => selectOption(index));
          }
          optionsContainer.appendChild(button);
        });
        setVisibility(explanationEl, explaining);
        if (explaining) {
          explanationEl.innerHTML = `<h4>${state.last_answer_correct ? '✓ Correct!' : '✗ Incorrect'}</h4>${state.explanation_html}`;
        }
        advanceButton.textContent = explaining ? 'Continue' : 'Check Answer';
        if (window.MathJax && window.MathJax.typesetPromise) {
          window.MathJax.typesetPromise();
        }
      }

      function renderResult(state) {
        stopTimer();
        showOnly(resultCard);
        document.getElementById('result-title').textContent = state.timed_out ? '⏱ Time is up!' : '🎉 Quiz Completed!';
        document.getElementById('result-score').textContent =
          `${state.score}/${state.total_answered} • Score: ${state.percentage}%`;
        const review = document.getElementById('review');
        review.innerHTML = '';
        state.review.forEach(row => {
          const div = document.createElement('div');
          div.className = 'review-item';
          const options = row.options.map((opt, i) => {
            const mark = i === row.correct_option_index ? ' ✓' : (i === row.user_answer_index ? ' ✗' : '');
            return `<li>${opt}${mark}</li>`;
          }).join('');
          div.innerHTML = `<strong>${row.is_sub_question ? 'Follow-up: ' : ''}${row.text}</strong><ul>${options}</ul><p>${row.explanation}</p>`;
          review.appendChild(div);
        });
      }

      function startTimer() {
        stopTimer();
        timerHandle = setInterval(refreshState, 1000);
      }

      function stopTimer() {
        if (timerHandle) {
          clearInterval(timerHandle);
          timerHandle = null;
        }
      }

      async function refreshState() {
        try {
          renderState(await api('/quiz/state'));
        } catch (error) {
          stopTimer();
        }
      }

      async function selectOption(index) {
        statusEl.textContent = '';
        try {
          renderState(await api('/quiz/select', 'POST', { option_index: index }));
        } catch (error) {
          statusEl.textContent = error.message;
        }
      }

      advanceButton.addEventListener('click', async () => {
        statusEl.textContent = '';
        try {
          renderState(await api('/quiz/advance', 'POST'));
        } catch (error) {
          statusEl.textContent = error.message === 'no answer selected'
            ? 'Please select an answer before proceeding.'
            : error.message;
        }
      });

      document.getElementById('sign-in-button').addEventListener('click', async () => {
        const status = document.getElementById('sign-in-status');
        status.textContent = 'Signing in…';
        try {
          await api('/auth/sign-in', 'POST', {
            email: document.getElementById('email').value,
            password: document.getElementById('password').value
          });
          status.textContent = '';
          await loadDashboard();
        } catch (error) {
          status.textContent = error.message;
        }
      });

      quizTypeSelect.addEventListener('change', () => {
        setVisibility(subjectSelect, quizTypeSelect.value === 'subject');
      });

      document.getElementById('start-button').addEventListener('click', async () => {
        const body = { quiz_type: quizTypeSelect.value };
        if (quizTypeSelect.value === 'subject') body.subject = subjectSelect.value;
        try {
          renderState(await api('/quiz/start', 'POST', body));
          startTimer();
        } catch (error) {
          document.getElementById('dashboard-summary').textContent = error.message;
        }
      });

      document.getElementById('again-button').addEventListener('click', async () => {
        await api('/quiz/discard', 'POST').catch(() => ({}));
        await loadDashboard();
      });

      api('/auth/me').then(loadDashboard).catch(() => showOnly(signInCard));
    </script>
  </body>
</html>
"""


# --- Payloads ---


class SignInPayload(BaseModel):
    """Credentials for the hosted auth service."""

    email: str
    password: str


class SignUpPayload(SignInPayload):
    full_name: str = ""


class StartQuizPayload(BaseModel):
    quiz_type: QuizType = QuizType.DAILY
    subject: str | None = None


class SelectOptionPayload(BaseModel):
    option_index: int


class ProfilePayload(BaseModel):
    full_name: str = ""
    avatar_url: str | None = None


class AdminLoginPayload(BaseModel):
    password: str


class SubQuestionPayload(BaseModel):
    """Follow-up question as submitted by the admin form."""

    id: str | None = None
    question: str
    options: list[str] = Field(..., min_length=MIN_OPTIONS, max_length=MAX_OPTIONS)
    correct_answer: int = Field(..., ge=0)
    explanation: str = ""
    difficulty: Difficulty = Difficulty.EASY
    trigger_option: int = Field(..., ge=0)
    order: int = 0


class QuestionPayload(BaseModel):
    """Question as submitted by the admin form."""

    question: str
    options: list[str] = Field(..., min_length=MIN_OPTIONS, max_length=MAX_OPTIONS)
    correct_answer: int = Field(..., ge=0)
    explanation: str = ""
    subject: str = ""
    difficulty: Difficulty = Difficulty.EASY
    sub_questions: list[SubQuestionPayload] = Field(default_factory=list)

    def to_question(self) -> Question:
        return Question(
            id="",
            text=self.question,
            options=tuple(self.options),
            correct_option_index=self.correct_answer,
            explanation=self.explanation,
            subject=self.subject,
            difficulty=self.difficulty,
            sub_questions=tuple(
                SubQuestion(
                    id=sub.id or "",
                    text=sub.question,
                    options=tuple(sub.options),
                    correct_option_index=sub.correct_answer,
                    trigger_option_index=sub.trigger_option,
                    order=sub.order,
                    explanation=sub.explanation,
                    difficulty=sub.difficulty,
                )
                for sub in self.sub_questions
            ),
        )


class ImportPayload(BaseModel):
    text: str


# --- Serialization ---


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _question_to_dict(question: Question) -> dict[str, object]:
    return {
        "id": question.id,
        "question": question.text,
        "options": list(question.options),
        "correct_answer": question.correct_option_index,
        "explanation": question.explanation,
        "subject": question.subject,
        "difficulty": question.difficulty.value,
        "created_at": _iso(question.created_at),
        "sub_questions": [
            {
                "id": sub.id,
                "question": sub.text,
                "options": list(sub.options),
                "correct_answer": sub.correct_option_index,
                "explanation": sub.explanation,
                "difficulty": sub.difficulty.value,
                "trigger_option": sub.trigger_option_index,
                "order": sub.order,
            }
            for sub in question.sub_questions
        ],
    }


def _snapshot_to_dict(snapshot: QuizSnapshot) -> dict[str, object]:
    payload: dict[str, object] = {
        "quiz_type": snapshot.quiz_type.value,
        "subject": snapshot.subject,
        "mode": snapshot.mode.value,
        "phase": snapshot.phase.value,
        "terminal": snapshot.terminal,
        "timed_out": snapshot.timed_out,
        "selected_option_index": snapshot.selected_option_index,
        "base_position": snapshot.base_position,
        "base_count": snapshot.base_count,
        "sub_position": snapshot.sub_position,
        "sub_count": snapshot.sub_count,
        "remaining_time_seconds": snapshot.remaining_time_seconds,
        "progress": snapshot.progress,
        "score": snapshot.score,
        "total_answered": snapshot.total_answered,
        "percentage": snapshot.percentage,
        "result_saved": snapshot.result_saved,
        "item": None,
        "correct_option_index": None,
        "explanation_html": None,
        "last_answer_correct": snapshot.last_answer_correct,
        "review": [
            {
                "text": row.text,
                "options": row.options,
                "user_answer_index": row.user_answer_index,
                "correct_option_index": row.correct_option_index,
                "is_correct": row.is_correct,
                "is_sub_question": row.is_sub_question,
                "explanation": row.explanation,
            }
            for row in snapshot.review
        ],
    }
    item = snapshot.current_item
    if item is not None:
        payload["item"] = {
            "id": item.id,
            "html": renderer.render_fragment(item.text),
            "options": list(item.options),
            "options_html": [renderer.render_inline(option) for option in item.options],
            "subject": item.subject,
            "difficulty": item.difficulty.value,
            "is_sub_question": isinstance(item, SubQuestion),
        }
        # Only reveal the answer once the explanation phase has started
        if snapshot.last_answer_correct is not None:
            payload["correct_option_index"] = item.correct_option_index
            payload["explanation_html"] = renderer.render_fragment(item.explanation)
    return payload


def _dashboard_to_dict(stats: DashboardStats) -> dict[str, object]:
    return {
        "total_quizzes": stats.total_quizzes,
        "average_score": stats.average_score,
        "best_score": stats.best_score,
        "current_streak": stats.current_streak,
        "today_quiz_completed": stats.today_quiz_completed,
        "recent_quizzes": [
            {
                "label": row.label,
                "quiz_type": row.quiz_type.value,
                "percentage": row.percentage,
                "score": row.score,
                "total": row.total,
                "date": row.completed_on.isoformat(),
            }
            for row in stats.recent_quizzes
        ],
        "subject_breakdown": stats.subject_breakdown,
    }


@contextmanager
def _http_errors() -> Iterator[None]:
    """Translate domain errors into HTTP errors."""
    try:
        yield
    except (ValidationError, QuizImportError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except InvalidStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except (NoActiveQuizError, NoQuestionsError, QuestionNotFoundError) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except AuthenticationError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except AdminLockedError as exc:
        raise HTTPException(status_code=429, detail=str(exc)) from exc
    except DataServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


def _get_quiz_manager_dependency(quiz_manager: QuizManager):
    def dependency() -> QuizManager:
        return quiz_manager

    return dependency


def create_api_app(quiz_manager: QuizManager, admin_gate: AdminGate) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz manager."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION)
    quiz_manager_dep = _get_quiz_manager_dependency(quiz_manager)
    signed_in: dict[str, AuthUser] = {}
    signed_in_lock = Lock()

    def _issue_identity(response: Response, user: AuthUser) -> None:
        token = secrets.token_urlsafe(32)
        with signed_in_lock:
            signed_in[token] = user
        response.set_cookie(
            key=IDENTITY_COOKIE,
            value=token,
            max_age=COOKIE_MAX_AGE_SECONDS,
            samesite="lax",
            httponly=True,
        )

    def current_user(request: Request) -> AuthUser:
        token = request.cookies.get(IDENTITY_COOKIE)
        with signed_in_lock:
            user = signed_in.get(token) if token else None
        if user is None:
            raise HTTPException(status_code=401, detail="Not signed in.")
        return user

    def admin_token(request: Request, response: Response) -> str:
        token = request.cookies.get(ADMIN_COOKIE)
        if not token:
            token = secrets.token_urlsafe(32)
            response.set_cookie(key=ADMIN_COOKIE, value=token, samesite="strict", httponly=True)
        return token

    def require_admin(request: Request) -> None:
        if not admin_gate.is_authenticated(request.cookies.get(ADMIN_COOKIE)):
            raise HTTPException(status_code=403, detail="Admin access required.")

    @app.get("/", response_class=HTMLResponse)
    def serve_quiz_page() -> str:
        return _QUIZ_PAGE_HTML

    @app.get("/health")
    def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/subjects")
    def list_subjects() -> dict[str, object]:
        return {"subjects": list(SUBJECTS)}

    @app.get("/about")
    def about() -> dict[str, str]:
        return {
            "name": APP_NAME,
            "version": APP_VERSION,
            "license": APP_LICENSE,
            "about": APP_ABOUT_TEXT,
            "import_help": HELP_TEXT,
        }

    # --- Auth ---

    @app.post("/auth/sign-in")
    def sign_in(
        payload: SignInPayload,
        response: Response,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            user = manager.sign_in(payload.email, payload.password)
        _issue_identity(response, user)
        return {"user_id": user.user_id, "email": user.email}

    @app.post("/auth/sign-up", status_code=201)
    def sign_up(
        payload: SignUpPayload,
        response: Response,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            user = manager.sign_up(payload.email, payload.password, payload.full_name)
        _issue_identity(response, user)
        return {"user_id": user.user_id, "email": user.email}

    @app.post("/auth/sign-out")
    def sign_out(
        request: Request,
        response: Response,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        token = request.cookies.get(IDENTITY_COOKIE)
        with signed_in_lock:
            user = signed_in.pop(token, None) if token else None
        if user is not None:
            manager.discard_quiz(user.user_id)
        response.delete_cookie(IDENTITY_COOKIE)
        return {"signed_out": user is not None}

    @app.get("/auth/me")
    def who_am_i(user: AuthUser = Depends(current_user)) -> dict[str, object]:
        return {"user_id": user.user_id, "email": user.email}

    # --- Quiz ---

    @app.post("/quiz/start", status_code=201)
    def start_quiz(
        payload: StartQuizPayload,
        user: AuthUser = Depends(current_user),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            snapshot = manager.start_quiz(
                user.user_id,
                payload.quiz_type,
                payload.subject,
                access_token=user.access_token,
            )
        return _snapshot_to_dict(snapshot)

    @app.get("/quiz/state")
    def get_quiz_state(
        user: AuthUser = Depends(current_user),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            snapshot = manager.get_quiz_state(user.user_id)
        return _snapshot_to_dict(snapshot)

    @app.post("/quiz/select")
    def select_option(
        payload: SelectOptionPayload,
        user: AuthUser = Depends(current_user),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            snapshot = manager.select_option(user.user_id, payload.option_index)
        return _snapshot_to_dict(snapshot)

    @app.post("/quiz/advance")
    def advance(
        user: AuthUser = Depends(current_user),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            snapshot = manager.advance(user.user_id)
        return _snapshot_to_dict(snapshot)

    @app.post("/quiz/discard")
    def discard_quiz(
        user: AuthUser = Depends(current_user),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        manager.discard_quiz(user.user_id)
        return {"discarded": True}

    # --- Progress & Profile ---

    @app.get("/dashboard")
    def get_dashboard(
        user: AuthUser = Depends(current_user),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            stats = manager.get_dashboard(user.user_id, access_token=user.access_token)
        return _dashboard_to_dict(stats)

    @app.get("/profile")
    def get_profile(
        user: AuthUser = Depends(current_user),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            profile = manager.get_profile(user.user_id, access_token=user.access_token)
        return {
            "user_id": profile.user_id,
            "email": profile.email or user.email,
            "full_name": profile.full_name,
            "avatar_url": profile.avatar_url,
            "updated_at": _iso(profile.updated_at),
        }

    @app.put("/profile")
    def update_profile(
        payload: ProfilePayload,
        user: AuthUser = Depends(current_user),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            profile = manager.update_profile(
                user.user_id,
                payload.full_name,
                payload.avatar_url,
                access_token=user.access_token,
            )
        return {
            "user_id": profile.user_id,
            "full_name": profile.full_name,
            "avatar_url": profile.avatar_url,
            "updated_at": _iso(profile.updated_at),
        }

    # --- Admin ---

    @app.post("/admin/login")
    def admin_login(
        payload: AdminLoginPayload,
        response: Response,
        token: str = Depends(admin_token),
    ) -> dict[str, object]:
        with _http_errors():
            accepted = admin_gate.attempt(token, payload.password)
        if not accepted:
            # Returned, not raised: the admin cookie set above must reach the browser.
            response.status_code = 403
            return {
                "authenticated": False,
                "detail": "Incorrect password.",
                "attempts_left": admin_gate.remaining_attempts(token),
            }
        return {"authenticated": True}

    @app.post("/admin/logout")
    def admin_logout(request: Request) -> dict[str, object]:
        token = request.cookies.get(ADMIN_COOKIE)
        if token:
            admin_gate.logout(token)
        return {"authenticated": False}

    @app.get("/admin/questions", dependencies=[Depends(require_admin)])
    def list_questions(
        subject: str | None = None,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            questions = manager.list_questions(subject=subject)
        return {"questions": [_question_to_dict(q) for q in questions]}

    @app.post("/admin/questions", status_code=201, dependencies=[Depends(require_admin)])
    def create_question(
        payload: QuestionPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            question = manager.add_question(payload.to_question())
        return _question_to_dict(question)

    @app.put("/admin/questions/{question_id}", dependencies=[Depends(require_admin)])
    def update_question(
        question_id: str,
        payload: QuestionPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            question = manager.update_question(question_id, payload.to_question())
        return _question_to_dict(question)

    @app.delete("/admin/questions/{question_id}", dependencies=[Depends(require_admin)])
    def delete_question(
        question_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            manager.delete_question(question_id)
        return {"deleted": question_id}

    @app.post("/admin/questions/import", status_code=201, dependencies=[Depends(require_admin)])
    def import_questions(
        payload: ImportPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            questions = manager.import_questions(payload.text)
        return {"imported": len(questions), "questions": [_question_to_dict(q) for q in questions]}

    @app.get(
        "/admin/questions/export",
        response_class=PlainTextResponse,
        dependencies=[Depends(require_admin)],
    )
    def export_questions(manager: QuizManager = Depends(quiz_manager_dep)) -> str:
        with _http_errors():
            return manager.export_questions()

    return app


def run_api_server(
    quiz_manager: QuizManager,
    admin_gate: AdminGate,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve the FastAPI application with uvicorn until interrupted."""
    app = create_api_app(quiz_manager, admin_gate)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)
    logger.info("Serving %s on http://%s:%d/", APP_NAME, host, port)
    server.run()
