"""Network configuration constants for the web server."""

import os

DEFAULT_HOST: str = os.getenv("PREP_HOST", "0.0.0.0")
DEFAULT_PORT: int = int(os.getenv("PREP_PORT", "8000"))
IDENTITY_COOKIE: str = "prepquiz_user"
ADMIN_COOKIE: str = "prepquiz_admin"
COOKIE_MAX_AGE_SECONDS: int = 60 * 60 * 24 * 30
