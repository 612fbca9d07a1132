import os
from pathlib import Path

# Base directory is the directory containing this file (backend/)
BASE_DIR = Path(__file__).resolve().parent

# Database Paths
DB_PATH = Path(os.getenv("DB_PATH", str(BASE_DIR / "fleet.db")))

# Environment
APP_ENV = os.getenv("APP_ENV", "development").strip().lower()

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()

# Bulk import limits
MAX_IMPORT_ROWS = int(os.getenv("MAX_IMPORT_ROWS", "5000"))

# Listing defaults
DEFAULT_PAGE_LIMIT = int(os.getenv("DEFAULT_PAGE_LIMIT", "50"))


def _parse_origins(raw: str) -> list[str]:
    values = [value.strip() for value in raw.split(",")]
    return [value for value in values if value]


FRONTEND_ORIGINS = _parse_origins(
    os.getenv(
        "FRONTEND_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000",
    )
)

if "*" in FRONTEND_ORIGINS:
    raise RuntimeError("Insecure CORS configuration: wildcard origins are not allowed.")

if MAX_IMPORT_ROWS < 1:
    raise RuntimeError("Invalid MAX_IMPORT_ROWS. Must be a positive integer.")
