"""
Import API — spreadsheet and IFC uploads, job polling, component promotion.

Spreadsheets are parsed inside the request and the rows come back in the same
response.  IFC models are saved to disk and processed in the background; the
client polls ``GET /api/import/{job_id}`` until the job is completed or failed.
"""
import os
import uuid
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, File, UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app import config
from app.api.deps import ensure_authorized, ensure_can_link_passport, get_current_user, require_operation
from app.db import get_db
from app.errors import NotFoundError, UpstreamProcessingError, ValidationError
from app.models.orm_models import Component, ImportJob, User
from app.models.passport_schema import (
    ComponentOut,
    ComponentPromotionOut,
    ComponentPromotionRequest,
    ImportJobOut,
)
from app.services.access_policy import Operation
from app.services.import_engine import (
    EXCEL_FAILURE_MESSAGE,
    JOB_TYPE_EXCEL,
    JOB_TYPE_IFC,
    STATUS_COMPLETED,
    complete_job,
    create_job,
    fail_job,
    read_tabular_rows,
    run_ifc_import,
)

logger = logging.getLogger("passport-api.import")

router = APIRouter(prefix="/api/import", tags=["Import"])

_CHUNK_SIZE = 1024 * 1024
_IMPORT_FORBIDDEN = "Viewers cannot import files"


def _check_extension(filename: str, allowed: tuple) -> None:
    ext = os.path.splitext(filename or "")[-1].lower()
    if ext not in allowed:
        raise ValidationError(f"Unsupported file type; expected one of {', '.join(allowed)}")


async def _read_upload(file: UploadFile) -> bytes:
    contents = await file.read(config.MAX_UPLOAD_BYTES + 1)
    if len(contents) > config.MAX_UPLOAD_BYTES:
        raise ValidationError("File exceeds the upload size limit")
    if not contents:
        raise ValidationError("Uploaded file is empty")
    return contents


async def _save_upload(file: UploadFile, dest_dir: str) -> str:
    """Stream an upload to ``dest_dir`` under a random name and return its path."""
    ext = os.path.splitext(file.filename or "")[-1].lower()
    path = os.path.join(dest_dir, f"{uuid.uuid4().hex}{ext}")
    os.makedirs(dest_dir, exist_ok=True)

    written = 0
    with open(path, "wb") as fh:
        while True:
            chunk = await file.read(_CHUNK_SIZE)
            if not chunk:
                break
            written += len(chunk)
            if written > config.MAX_UPLOAD_BYTES:
                break
            fh.write(chunk)
    if written > config.MAX_UPLOAD_BYTES or written == 0:
        os.remove(path)
        raise ValidationError("File exceeds the upload size limit" if written else "Uploaded file is empty")
    return path


def _dispatch_ifc(background_tasks: BackgroundTasks, job_id: int, file_path: str) -> str:
    """Hand the IFC job to Celery when configured, otherwise run it as a background task."""
    if config.IMPORT_WORKER == "celery":
        try:
            from app.workers.tasks import process_ifc_import
            process_ifc_import.delay(job_id, file_path)
            logger.info("IFC job dispatched to Celery", extra={"job_id": job_id})
            return "celery"
        except Exception as exc:
            logger.warning(f"Celery not available ({exc}); running IFC job inline", extra={"job_id": job_id})
    background_tasks.add_task(run_ifc_import, job_id, file_path)
    return "inline"


async def _get_job(db: AsyncSession, job_id: int) -> ImportJob:
    job = await db.get(ImportJob, job_id)
    if job is None:
        raise NotFoundError("Import job not found")
    return job


# ─── Uploads ─────────────────────────────────────────────────────────────────

@router.post("/excel")
async def import_excel(
    file: UploadFile = File(...),
    current_user: User = Depends(require_operation(Operation.IMPORT, _IMPORT_FORBIDDEN)),
    db: AsyncSession = Depends(get_db),
):
    _check_extension(file.filename, config.EXCEL_EXTENSIONS)
    contents = await _read_upload(file)

    job = await create_job(db, JOB_TYPE_EXCEL, file.filename, current_user.id)
    try:
        rows = read_tabular_rows(file.filename, contents)
    except UpstreamProcessingError:
        await fail_job(db, job, EXCEL_FAILURE_MESSAGE)
        # Committed here so the failed job survives the error response
        await db.commit()
        raise

    await complete_job(db, job, rows)
    await db.commit()
    return {
        "jobId": job.id,
        "status": job.status,
        "message": f"Successfully imported {len(rows)} rows",
        "data": rows,
    }


@router.post("/ifc")
async def import_ifc(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    current_user: User = Depends(require_operation(Operation.IMPORT, _IMPORT_FORBIDDEN)),
    db: AsyncSession = Depends(get_db),
):
    _check_extension(file.filename, config.IFC_EXTENSIONS)
    path = await _save_upload(file, config.UPLOAD_DIR)

    job = await create_job(db, JOB_TYPE_IFC, file.filename, current_user.id)
    await db.commit()

    worker = _dispatch_ifc(background_tasks, job.id, path)
    logger.info(f"IFC import queued ({worker})", extra={"job_id": job.id})
    return {
        "jobId": job.id,
        "status": job.status,
        "message": "IFC file processing started",
    }


# ─── Jobs ────────────────────────────────────────────────────────────────────

@router.get("/{job_id}", response_model=ImportJobOut)
async def get_import_job(
    job_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    job = await _get_job(db, job_id)
    ensure_authorized(current_user, Operation.IMPORT, job.author_id)
    return ImportJobOut.model_validate(job)


@router.post("/{job_id}/components", response_model=ComponentPromotionOut, status_code=201)
async def promote_components(
    job_id: int,
    payload: ComponentPromotionRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Turn selected candidates of a completed IFC import into Component records."""
    job = await _get_job(db, job_id)
    ensure_authorized(current_user, Operation.IMPORT, job.author_id)
    if job.type != JOB_TYPE_IFC or job.status != STATUS_COMPLETED:
        raise ValidationError("Only completed IFC imports can be promoted to components")

    candidates = {c.get("externalGuid"): c for c in (job.result_data or []) if c.get("externalGuid")}
    requested = list(dict.fromkeys(payload.external_guids))
    if any(guid not in candidates for guid in requested):
        raise ValidationError("Unknown IFC element id")

    await ensure_can_link_passport(db, current_user, payload.passport_id)

    result = await db.execute(
        select(Component.ifc_guid).where(
            Component.author_id == current_user.id,
            Component.ifc_guid.in_(requested),
        )
    )
    existing = set(result.scalars().all())

    created, skipped = [], []
    for guid in requested:
        if guid in existing:
            skipped.append(guid)
            continue
        candidate = candidates[guid]
        component = Component(
            name=candidate.get("name") or guid,
            category=payload.category,
            description=candidate.get("materialLabel"),
            ifc_guid=guid,
            passport_id=payload.passport_id,
            author_id=current_user.id,
        )
        db.add(component)
        created.append(component)

    await db.commit()
    for component in created:
        await db.refresh(component)

    logger.info(f"Promoted {len(created)} components, skipped {len(skipped)}", extra={"job_id": job.id})
    return ComponentPromotionOut(
        job_id=job.id,
        created=[ComponentOut.model_validate(c) for c in created],
        skipped=skipped,
    )
