"""
Material Passport API v1.0
FastAPI backend for BAMB-style material passports: derived fields, completion
tracking, role-based access, spreadsheet/IFC import and JSON export.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import JSONResponse

from app import config
from app.errors import PassportServiceError, ValidationError
from app.services.logging_config import setup_logging
from app.services.middleware import RequestTimingMiddleware, SecurityHeadersMiddleware

setup_logging(level=config.LOG_LEVEL, json_output=config.LOG_FORMAT != "text")
logger = logging.getLogger("passport-api")

if config.JWT_SECRET_KEY.startswith("changethis"):
    logger.warning("JWT_SECRET_KEY not set; running with the development secret")


@asynccontextmanager
async def lifespan(app: FastAPI):
    from app.db import init_db
    await init_db()
    logger.info("Passport service started.")
    yield


app = FastAPI(
    title="Material Passport API",
    version=config.APP_VERSION,
    description="BAMB material passports for circular construction",
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Error handlers: every failure leaves as {"message", "code"}
# ---------------------------------------------------------------------------
@app.exception_handler(PassportServiceError)
async def passport_error_handler(request: Request, exc: PassportServiceError):
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(
        level,
        f"{exc.code}: {exc.message}",
        extra={"request_id": getattr(request.state, "request_id", None), "http_status": exc.status_code},
    )
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message, "code": exc.code})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info(
        f"Request validation failed: {exc.errors()}",
        extra={"request_id": getattr(request.state, "request_id", None)},
    )
    return JSONResponse(
        status_code=ValidationError.status_code,
        content={"message": ValidationError.default_message, "code": ValidationError.code},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(
        f"Unhandled error on {request.method} {request.url.path}",
        extra={"request_id": getattr(request.state, "request_id", None), "http_status": 500},
    )
    return JSONResponse(
        status_code=PassportServiceError.status_code,
        content={"message": PassportServiceError.default_message, "code": PassportServiceError.code},
    )


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Requested-With"],
)
app.add_middleware(SecurityHeadersMiddleware)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

# Routers
from app.api.auth_routes import router as auth_router
from app.api.passport_routes import router as passport_router
from app.api.component_routes import router as component_router
from app.api.import_routes import router as import_router
from app.api.deps import get_current_user
from app.db import get_db
from app.models.orm_models import Component, MaterialPassport, User
from app.models.passport_schema import DashboardStats
from app.services.access_policy import Operation, owner_filter
from app.services.completion_engine import STATUS_COMPLETE, STATUS_DRAFT

app.include_router(auth_router)
app.include_router(passport_router)
app.include_router(component_router)
app.include_router(import_router)


@app.get("/health")
async def health_check():
    return {
        "status": "active",
        "version": config.APP_VERSION,
        "ifc_parser": config.IFC_PARSER,
        "import_worker": config.IMPORT_WORKER,
    }


@app.get("/api/dashboard/stats", response_model=DashboardStats)
async def dashboard_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Passport and component counts, scoped to the caller's records unless they are an author."""
    owner_id = owner_filter(current_user.role, Operation.LIST, current_user.id)

    passports = select(MaterialPassport.status, func.count(MaterialPassport.id)).group_by(MaterialPassport.status)
    components = select(func.count(Component.id))
    if owner_id is not None:
        passports = passports.where(MaterialPassport.author_id == owner_id)
        components = components.where(Component.author_id == owner_id)

    by_status = {status: count for status, count in (await db.execute(passports)).all()}
    total_components = await db.scalar(components)

    return DashboardStats(
        total_passports=sum(by_status.values()),
        completed=by_status.get(STATUS_COMPLETE, 0),
        in_progress=by_status.get(STATUS_DRAFT, 0),
        total_components=total_components or 0,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
