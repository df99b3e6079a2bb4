"""
import_engine.py — Import job lifecycle and file processing.

Job states:

    processing ──► completed   (result_data written)
         │
         └───────► failed      (error_message written)

A job is created in ``processing`` and leaves it exactly once.  Terminal
transitions are a single guarded UPDATE (``WHERE status = 'processing'``) that
writes status, payload and finished_at together, so a concurrent poll sees
either the old row or the finished one and a terminal job is never rewritten.

Spreadsheets are processed synchronously inside the request; IFC models are
processed by ``run_ifc_import`` in the background with a bounded timeout.
"""

import asyncio
import io
import json
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

import pandas as pd
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app import config
from app.errors import InvalidJobTransition, UpstreamProcessingError
from app.models.orm_models import ImportJob
from app.services.ifc_parser import IfcParser, get_ifc_parser

logger = logging.getLogger("passport-import")

JOB_TYPE_EXCEL = "excel"
JOB_TYPE_IFC = "ifc"
JOB_TYPES = (JOB_TYPE_EXCEL, JOB_TYPE_IFC)

STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_FAILED)

EXCEL_FAILURE_MESSAGE = "Failed to process Excel file"
IFC_FAILURE_MESSAGE = "Failed to process IFC file"
IFC_TIMEOUT_MESSAGE = "IFC processing timed out"
IFC_CANCELLED_MESSAGE = "IFC processing cancelled"
STALE_JOB_MESSAGE = "Import job abandoned before completion"


# ─── State machine ────────────────────────────────────────────────────────────

async def create_job(session: AsyncSession, job_type: str, filename: str, author_id: str) -> ImportJob:
    if job_type not in JOB_TYPES:
        raise ValueError(f"Unknown import job type: {job_type}")
    job = ImportJob(type=job_type, filename=filename, status=STATUS_PROCESSING, author_id=author_id)
    session.add(job)
    await session.flush()
    await session.refresh(job)
    logger.info("Import job created", extra={"job_id": job.id})
    return job


async def _finish(
    session: AsyncSession,
    job: ImportJob,
    status: str,
    result_data: Any = None,
    error_message: Optional[str] = None,
) -> ImportJob:
    if job.status in TERMINAL_STATUSES:
        raise InvalidJobTransition(f"Import job {job.id} is already {job.status}")

    result = await session.execute(
        update(ImportJob)
        .where(ImportJob.id == job.id, ImportJob.status == STATUS_PROCESSING)
        .values(
            status=status,
            result_data=result_data,
            error_message=error_message,
            finished_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidJobTransition(f"Import job {job.id} is no longer processing")

    await session.refresh(job)
    logger.info("Import job %s", status, extra={"job_id": job.id})
    return job


async def complete_job(session: AsyncSession, job: ImportJob, result_data: Any) -> ImportJob:
    return await _finish(session, job, STATUS_COMPLETED, result_data=result_data)


async def fail_job(session: AsyncSession, job: ImportJob, error_message: str) -> ImportJob:
    return await _finish(session, job, STATUS_FAILED, error_message=error_message)


async def fail_stale_jobs(session: AsyncSession, max_age_seconds: float) -> int:
    """Fail every job still processing after ``max_age_seconds``. Returns how many were failed."""
    now = datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=max_age_seconds)
    result = await session.execute(
        update(ImportJob)
        .where(ImportJob.status == STATUS_PROCESSING, ImportJob.created_at < cutoff)
        .values(status=STATUS_FAILED, error_message=STALE_JOB_MESSAGE, finished_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


# ─── Spreadsheets (synchronous path) ─────────────────────────────────────────

def read_tabular_rows(filename: str, contents: bytes) -> List[dict]:
    """
    Read the first sheet of an Excel workbook (or a CSV file) into plain
    JSON-ready records, one per row, in file order.

    Blank rows are dropped and empty cells become None.  Any reader failure is
    raised as UpstreamProcessingError.
    """
    ext = os.path.splitext(filename or "")[-1].lower()
    try:
        if ext == ".csv":
            df = pd.read_csv(io.BytesIO(contents))
        else:
            df = pd.read_excel(io.BytesIO(contents), sheet_name=0)
        # Nullable dtypes keep whole-number columns integral when a cell is blank
        df = df.dropna(how="all").convert_dtypes()
        # to_json handles numpy scalars, missing values and timestamps in one pass
        return json.loads(df.to_json(orient="records", date_format="iso"))
    except Exception as exc:
        logger.error(f"Spreadsheet parse error for {filename}: {exc}")
        raise UpstreamProcessingError(EXCEL_FAILURE_MESSAGE) from exc


# ─── IFC models (asynchronous path) ──────────────────────────────────────────

async def run_ifc_import(
    job_id: int,
    file_path: str,
    parser: Optional[IfcParser] = None,
    timeout_seconds: Optional[float] = None,
    session_factory: Optional[async_sessionmaker] = None,
) -> Optional[str]:
    """
    Parse an uploaded IFC model and move the job to its terminal state.

    The parser runs under ``asyncio.wait_for`` so a hung parser fails the job
    instead of leaving it in ``processing`` forever.  Cancellation also fails
    the job before propagating.  Returns the final job status.
    """
    if session_factory is None:
        from app.db import AsyncSessionLocal
        session_factory = AsyncSessionLocal
    parser = parser or get_ifc_parser()
    timeout = config.IFC_PROCESSING_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds

    result_data: Optional[list] = None
    error_message: Optional[str] = None
    cancelled = False
    try:
        candidates = await asyncio.wait_for(parser.parse(file_path), timeout=timeout)
        result_data = [c.to_dict() for c in candidates]
    except asyncio.TimeoutError:
        logger.error(f"IFC parse timed out after {timeout}s", extra={"job_id": job_id})
        error_message = IFC_TIMEOUT_MESSAGE
    except asyncio.CancelledError:
        logger.warning("IFC parse cancelled", extra={"job_id": job_id})
        error_message = IFC_CANCELLED_MESSAGE
        cancelled = True
    except Exception as exc:
        logger.error(f"IFC parse failed: {exc}", extra={"job_id": job_id}, exc_info=True)
        error_message = IFC_FAILURE_MESSAGE
    finally:
        if os.path.exists(file_path):
            os.remove(file_path)

    async with session_factory() as session:
        job = await session.get(ImportJob, job_id)
        if job is None:
            logger.error("Import job vanished before completion", extra={"job_id": job_id})
            status = None
        elif job.status in TERMINAL_STATUSES:
            logger.warning(f"Import job already {job.status}; result discarded", extra={"job_id": job_id})
            status = job.status
        else:
            if error_message is None:
                await complete_job(session, job, result_data)
            else:
                await fail_job(session, job, error_message)
            await session.commit()
            status = job.status

    if cancelled:
        raise asyncio.CancelledError()
    return status
