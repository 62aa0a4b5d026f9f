"""Hosted backend and admin settings. Environment variables override defaults."""

import os
from pathlib import Path

SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
SUPABASE_ANON_KEY: str = os.getenv("SUPABASE_ANON_KEY", "")
REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("PREP_REQUEST_TIMEOUT", "10"))

ADMIN_PASSWORD: str = os.getenv("PREP_ADMIN_PASSWORD", "admin123")
ADMIN_MAX_ATTEMPTS: int = int(os.getenv("PREP_ADMIN_MAX_ATTEMPTS", "5"))

# Questions loaded into the in-memory store when no hosted backend is configured.
SEED_FILE: str | None = os.getenv(
    "PREP_SEED_FILE",
    str(Path(__file__).resolve().parent.parent / "data" / "sample_questions.txt"),
) or None
