from __future__ import annotations

import logging

import app_main
from prep_app.storage.memory_store import InMemoryDataService
from prep_app.storage.remote_store import RemoteDataService
from prep_app.utils.logging_config import configure_logging

logger = logging.getLogger(__name__)


def test_configure_logging_returns_package_logger():
    assert configure_logging(logging.DEBUG).name == "prep_app"


def test_without_backend_uses_seeded_memory_store(monkeypatch):
    monkeypatch.setattr(app_main, "SUPABASE_URL", "")
    service = app_main._build_data_service(logger)
    assert isinstance(service, InMemoryDataService)
    assert service.fetch_questions()


def test_empty_seed_file_setting_starts_empty(monkeypatch):
    monkeypatch.setattr(app_main, "SUPABASE_URL", "")
    monkeypatch.setattr(app_main, "SEED_FILE", None)
    assert app_main._build_data_service(logger).fetch_questions() == []


def test_backend_settings_select_remote_store(monkeypatch):
    monkeypatch.setattr(app_main, "SUPABASE_URL", "https://backend.example.com")
    monkeypatch.setattr(app_main, "SUPABASE_ANON_KEY", "anon-key")
    assert isinstance(app_main._build_data_service(logger), RemoteDataService)
