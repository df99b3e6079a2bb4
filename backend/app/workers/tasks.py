"""
Celery Tasks — IFC import processing and stale-job cleanup.

Both tasks wrap the async service code in a fresh event loop; the database
engine is disposed afterwards so pooled connections never outlive their loop.
"""
import logging
import asyncio
from app import config
from app.workers.celery_app import celery_app

logger = logging.getLogger("passport-celery")


def _run_async(coro):
    """Run an async coroutine in a sync Celery task context (new event loop)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _with_engine_cleanup(coro):
    from app.db import engine
    try:
        return await coro
    finally:
        await engine.dispose()


@celery_app.task(bind=True, name="tasks.process_ifc_import")
def process_ifc_import(self, job_id: int, file_path: str):
    """Parse an uploaded IFC model and move the import job to completed or failed."""
    from app.services.import_engine import run_ifc_import

    # Eager runs have no result backend to report progress to
    if not self.request.is_eager:
        self.update_state(state="PROGRESS", meta={"step": "Parsing IFC model", "job_id": job_id})
    status = _run_async(_with_engine_cleanup(run_ifc_import(job_id, file_path)))
    logger.info(f"IFC import finished: {status}", extra={"job_id": job_id})
    return {"job_id": job_id, "status": status}


@celery_app.task(name="tasks.fail_stale_import_jobs")
def fail_stale_import_jobs(max_age_seconds: float = None):
    """Fail jobs stuck in processing longer than twice the IFC timeout (e.g. after a worker crash)."""
    from app.db import AsyncSessionLocal
    from app.services.import_engine import fail_stale_jobs

    if max_age_seconds is None:
        max_age_seconds = config.IFC_PROCESSING_TIMEOUT_SECONDS * 2

    async def _sweep():
        async with AsyncSessionLocal() as session:
            count = await fail_stale_jobs(session, max_age_seconds)
            await session.commit()
            return count

    count = _run_async(_with_engine_cleanup(_sweep()))
    if count:
        logger.warning(f"Failed {count} stale import jobs")
    return {"failed": count}
