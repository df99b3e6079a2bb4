"""
test_plumbing.py — Logging, middleware, health and background-task wiring.

Tests cover:
  - JSON log records carrying request/job extras
  - X-Request-ID / X-Process-Time and security headers on every response
  - unexpected exceptions rendered as a 500 {"message", "code"} body
  - /health
  - the Celery tasks executed eagerly in-process (no broker involved)
"""

import asyncio
import json
import logging

import pytest

from app.services.logging_config import JSONFormatter


class TestJsonFormatter:
    """JSONFormatter output shape."""

    def _record(self, **extra):
        record = logging.LogRecord(
            name="passport-import", level=logging.INFO, pathname=__file__, lineno=1,
            msg="Import job %s", args=("completed",), exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_core_fields(self):
        entry = json.loads(JSONFormatter().format(self._record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "passport-import"
        assert entry["message"] == "Import job completed"
        assert "timestamp" in entry

    def test_extras_are_copied(self):
        entry = json.loads(JSONFormatter().format(self._record(job_id=12, request_id="abc", duration_ms=3.5)))
        assert entry["job_id"] == 12
        assert entry["request_id"] == "abc"
        assert entry["duration_ms"] == 3.5
        assert "passport_id" not in entry


class TestMiddleware:
    """Headers added by RequestTimingMiddleware and SecurityHeadersMiddleware."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "active"
        assert response.json()["ifc_parser"] == "stub"

    def test_request_id_generated(self, client):
        response = client.get("/health")
        assert len(response.headers["x-request-id"]) == 36
        assert float(response.headers["x-process-time"]) >= 0

    def test_request_id_propagated(self, client):
        response = client.get("/health", headers={"X-Request-ID": "trace-me"})
        assert response.headers["x-request-id"] == "trace-me"

    def test_security_headers(self, client):
        response = client.get("/health")
        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["x-frame-options"] == "DENY"

    @pytest.mark.parametrize("incoming", ["has spaces in it", "x" * 65, "id;drop"])
    def test_malformed_request_id_is_replaced(self, client, incoming):
        response = client.get("/health", headers={"X-Request-ID": incoming})
        assert response.headers["x-request-id"] != incoming
        assert len(response.headers["x-request-id"]) == 36

    def test_error_responses_also_carry_request_id(self, client, author):
        _, headers = author
        response = client.get("/api/passports/1", headers=headers)
        assert response.status_code == 404
        assert "x-request-id" in response.headers


class TestUnhandledErrors:
    """Unexpected exceptions still leave as a {"message", "code"} JSON body."""

    def test_unexpected_error_is_500_json(self, db_schema, make_user, monkeypatch):
        from fastapi.testclient import TestClient
        from app.api import passport_routes
        from app.main import app

        def _explode(passport):
            raise RuntimeError("scoring backend unavailable")

        monkeypatch.setattr(passport_routes, "compute_completion", _explode)
        _, headers = make_user("member")

        with TestClient(app, raise_server_exceptions=False) as quiet_client:
            response = quiet_client.post(
                "/api/passports", json={"name": "A", "category": "B"}, headers=headers,
            )

        assert response.status_code == 500
        assert response.json() == {"message": "Unexpected server error", "code": "internal_error"}


class TestCeleryTasks:
    """Task bodies run eagerly with .apply(); no broker is contacted."""

    def test_process_ifc_import_task(self, session_factory, tmp_path):
        from app.models.orm_models import ImportJob, User
        from app.services.import_engine import create_job
        from app.workers.tasks import process_ifc_import

        async def _new_job():
            async with session_factory() as session:
                user = User(email="worker@example.com", role="member")
                session.add(user)
                await session.flush()
                job = await create_job(session, "ifc", "tower.ifc", user.id)
                await session.commit()
                return job.id

        job_id = asyncio.run(_new_job())
        path = tmp_path / "tower.ifc"
        path.write_text("ISO-10303-21;")

        result = process_ifc_import.apply(args=(job_id, str(path))).get()

        assert result == {"job_id": job_id, "status": "completed"}

        async def _load():
            async with session_factory() as session:
                return await session.get(ImportJob, job_id)

        job = asyncio.run(_load())
        assert len(job.result_data) == 3
        assert not path.exists()

    def test_fail_stale_import_jobs_task(self, session_factory):
        from app.workers.tasks import fail_stale_import_jobs

        result = fail_stale_import_jobs.apply(kwargs={"max_age_seconds": 3600}).get()

        assert result == {"failed": 0}
