"""
conftest.py — Shared pytest fixtures for the Material Passport backend test suite.

Environment:
    Settings in ``app.config`` are read once at import time, so the test
    environment (a throwaway SQLite database, a temporary upload directory, a
    zero-delay IFC stub, plain-text logs) is set here before any ``app.*``
    import happens.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``app.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import asyncio
import itertools
import os
import sys
import tempfile

import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any app imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

_TMP_DIR = tempfile.mkdtemp(prefix="passport-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-passport-suite"
os.environ["IFC_PARSER"] = "stub"
os.environ["IFC_STUB_DELAY_SECONDS"] = "0"
os.environ["IMPORT_WORKER"] = "inline"
os.environ["LOG_FORMAT"] = "text"
os.environ["BOOTSTRAP_AUTHOR_EMAILS"] = "founder@example.com"


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def db_schema():
    """Drop and recreate every table so each test starts from an empty store."""
    from app.db import init_db
    asyncio.run(init_db(reset=True))


@pytest.fixture
def session_factory(db_schema):
    """The application's async session factory, bound to the fresh test schema."""
    from app.db import AsyncSessionLocal
    return AsyncSessionLocal


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def client(db_schema):
    """FastAPI TestClient; entering the context runs the app lifespan."""
    from fastapi.testclient import TestClient
    from app.main import app
    with TestClient(app) as test_client:
        yield test_client


_user_counter = itertools.count(1)


@pytest.fixture
def make_user(db_schema):
    """
    Factory that inserts a user with the given role and returns
    ``(user_id, headers)`` where headers carry a valid bearer token.
    """
    from app.api.auth_routes import create_access_token
    from app.db import AsyncSessionLocal
    from app.models.orm_models import User

    def _make(role: str = "author"):
        email = f"{role}{next(_user_counter)}@example.com"

        async def _insert():
            async with AsyncSessionLocal() as session:
                user = User(email=email, role=role, first_name=role.capitalize())
                session.add(user)
                await session.commit()
                return user.id

        user_id = asyncio.run(_insert())
        token = create_access_token({"sub": user_id, "email": email, "role": role})
        return user_id, {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def author(make_user):
    return make_user("author")


@pytest.fixture
def member(make_user):
    return make_user("member")


@pytest.fixture
def viewer(make_user):
    return make_user("viewer")


# ---------------------------------------------------------------------------
# Shared sample payloads
# ---------------------------------------------------------------------------

@pytest.fixture
def complete_passport_payload():
    """
    A passport payload with every required field filled and one usable
    constituent — scores 100 % and is saved as ``complete``.
    """
    return {
        "name": "Cross Laminated Timber Panel",
        "category": "Timber",
        "density": "470",
        "volume": "2.5",
        "strengthClass": "CL24h",
        "serviceLife": 60,
        "fireResistance": "REI 60",
        "contentReference": "EPD-CLT-2023-001",
        "constituents": [
            {"material": "Spruce", "percentage": 97},
            {"material": "PUR adhesive", "percentage": 3},
        ],
        "svhcFlag": False,
        "reachCompliance": True,
        "vocClass": "A+",
        "gtin": "04012345678901",
        "manufacturer": "Nordic Timber AB",
        "bomObjectGuid": "1L0gFlRWK7BhUXyL2PDKLz",
        "disassemblyRating": "excellent",
        "recyclabilityPercentage": "85",
        "gwpA1": "0.89",
        "gwpA2": "0.12",
        "gwpA3": "1.44",
        "stageDReduction": "1.89",
    }
