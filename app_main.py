"""Application entry point for the PrepQuiz web server."""

from __future__ import annotations

from pathlib import Path

from prep_app.constants.backend_constants import (
    ADMIN_MAX_ATTEMPTS,
    ADMIN_PASSWORD,
    SEED_FILE,
    SUPABASE_ANON_KEY,
    SUPABASE_URL,
)
from prep_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from prep_app.core.quiz_importer import load_quiz_from_file
from prep_app.core.quiz_manager import QuizManager
from prep_app.core.services.admin_gate import AdminGate
from prep_app.server.api_server import run_api_server
from prep_app.storage.base import QuizDataService
from prep_app.storage.memory_store import InMemoryDataService
from prep_app.storage.remote_store import RemoteDataService
from prep_app.utils.logging_config import configure_logging


def _build_data_service(logger) -> QuizDataService:
    """Use the hosted backend when configured, otherwise an in-process store."""
    if SUPABASE_URL and SUPABASE_ANON_KEY:
        logger.info("Using hosted backend at %s", SUPABASE_URL)
        return RemoteDataService(base_url=SUPABASE_URL, api_key=SUPABASE_ANON_KEY)

    questions = []
    if SEED_FILE:
        imported = load_quiz_from_file(Path(SEED_FILE))
        questions = imported.questions
        logger.info("Seeded %d questions from %s", len(questions), SEED_FILE)
    logger.warning("SUPABASE_URL not set; data is kept in memory only.")
    return InMemoryDataService(questions)


def main() -> None:
    """Initialize logging, wire the services, and serve the web app."""
    logger = configure_logging()
    logger.info("Starting PrepQuiz...")

    quiz_manager = QuizManager(_build_data_service(logger))
    admin_gate = AdminGate(ADMIN_PASSWORD, max_attempts=ADMIN_MAX_ATTEMPTS)
    run_api_server(quiz_manager, admin_gate, host=DEFAULT_HOST, port=DEFAULT_PORT)


if __name__ == "__main__":
    main()
