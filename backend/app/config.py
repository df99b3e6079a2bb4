"""
Service configuration — single source of truth for environment-driven settings.

Import from here in routes, services and workers rather than calling
os.getenv() ad hoc. Values are read once at import time.
"""
from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


# ── Database ──────────────────────────────────────────────────────────────────
DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./passports.db")

# ── Auth ──────────────────────────────────────────────────────────────────────
JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "changethis_use_a_real_secret_in_production_64chars")
JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "480"))

# Emails registered with these addresses get the author role on sign-up.
BOOTSTRAP_AUTHOR_EMAILS: list[str] = [e.lower() for e in _csv(os.getenv("BOOTSTRAP_AUTHOR_EMAILS", ""))]

# ── Uploads ───────────────────────────────────────────────────────────────────
UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(100 * 1024 * 1024)))

EXCEL_EXTENSIONS: tuple[str, ...] = (".xlsx", ".xls", ".csv")
IFC_EXTENSIONS: tuple[str, ...] = (".ifc",)

# ── IFC processing ────────────────────────────────────────────────────────────
IFC_PARSER: str = os.getenv("IFC_PARSER", "stub")                     # "stub" | "ifcopenshell"
IFC_STUB_DELAY_SECONDS: float = float(os.getenv("IFC_STUB_DELAY_SECONDS", "2.0"))
IFC_PROCESSING_TIMEOUT_SECONDS: float = float(os.getenv("IFC_PROCESSING_TIMEOUT_SECONDS", "300"))

# "inline" runs IFC jobs as FastAPI background tasks, "celery" hands them to a worker
IMPORT_WORKER: str = os.getenv("IMPORT_WORKER", "inline")
CELERY_BROKER_URL: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND: str = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

# ── Client-side job polling ───────────────────────────────────────────────────
POLL_INTERVAL_SECONDS: float = float(os.getenv("POLL_INTERVAL_SECONDS", "1.0"))
POLL_MAX_ATTEMPTS: int = int(os.getenv("POLL_MAX_ATTEMPTS", "120"))
POLL_IDLE_TIMEOUT_SECONDS: float = float(os.getenv("POLL_IDLE_TIMEOUT_SECONDS", "180"))

# ── HTTP / logging ────────────────────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json").lower()
CORS_ORIGINS: list[str] = _csv(os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5000"))

APP_VERSION = "1.0.0"
