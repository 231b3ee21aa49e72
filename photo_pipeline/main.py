from fastapi import FastAPI, HTTPException, Depends, status, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.exc import OperationalError, DisconnectionError
from typing import Optional
import asyncio
import traceback
import logging

from photo_pipeline.models.schemas import (
    MigrationRequest,
    StoreLocationRequest,
    TriggerAccepted,
    RunStatusResponse,
)
from photo_pipeline.database import SessionLocal, check_database_connection
from photo_pipeline.config.pipeline_config import PipelineSettings
from photo_pipeline.services.auth_service import require_admin_token, AuthServiceError
from photo_pipeline.services.factory import Pipeline, build_pipeline
from photo_pipeline.services.status_service import RunType, StatusRecorder
from photo_pipeline.services.storage_service import StorageUnavailableError

app = FastAPI(
    title="Location Photo Pipeline",
    description="Copies location photos from Google Places into durable storage",
    version="1.0.0"
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SCHEDULED_HEADERS = ("x-scheduled", "x-netlify-scheduled")


@app.on_event("startup")
async def startup_event():
    """Build settings and the process-scoped pipeline"""
    settings = PipelineSettings.from_env()
    app.state.settings = settings
    app.state.status_recorder = StatusRecorder(SessionLocal)
    try:
        app.state.pipeline = build_pipeline(
            settings, SessionLocal, status_recorder=app.state.status_recorder
        )
        logger.info(f"[STARTUP] Photo pipeline ready (bucket: {settings.storage_bucket})")
    except StorageUnavailableError as e:
        # /health and /api/photos/status only need the database; triggers answer 503
        app.state.pipeline = None
        logger.error(f"[STARTUP] Photo pipeline unavailable: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    """Give in-flight runs a chance to finish"""
    pipeline = getattr(app.state, "pipeline", None)
    if pipeline is not None and pipeline.task_runner.pending:
        logger.info(f"[SHUTDOWN] Waiting for {pipeline.task_runner.pending} background tasks")
        await pipeline.task_runner.drain(timeout=30)


@app.exception_handler(OperationalError)
@app.exception_handler(DisconnectionError)
async def database_exception_handler(request: Request, exc: Exception):
    """Handle database connection errors gracefully"""
    logger.error(f"Database error: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=503,
        content={
            "detail": "Database connection error. Please try again in a moment.",
            "error_type": type(exc).__name__
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions with detailed logging"""
    if isinstance(exc, HTTPException):
        raise exc
    error_traceback = traceback.format_exc()
    logger.error(f"Unhandled exception: {str(exc)}\n{error_traceback}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": f"Internal server error: {str(exc)}",
            "error_type": type(exc).__name__
        }
    )


bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> PipelineSettings:
    """Settings built at startup"""
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        settings = PipelineSettings.from_env()
        request.app.state.settings = settings
    return settings


def get_pipeline(request: Request) -> Pipeline:
    """Pipeline built at startup; 503 if storage could not be set up"""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Photo pipeline is not configured"
        )
    return pipeline


def get_status_recorder(request: Request) -> StatusRecorder:
    """Status recorder; independent of storage being configured"""
    recorder = getattr(request.app.state, "status_recorder", None)
    if recorder is None:
        recorder = StatusRecorder(SessionLocal)
        request.app.state.status_recorder = recorder
    return recorder


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: PipelineSettings = Depends(get_settings),
) -> None:
    """Reject the request unless it carries the admin bearer token"""
    token = credentials.credentials if credentials else None
    try:
        require_admin_token(token, settings.admin_token)
    except AuthServiceError as e:
        logger.warning(f"[AUTH] Rejected admin request: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


@app.get("/health")
async def health_check():
    """Health check endpoint that verifies database connectivity"""
    loop = asyncio.get_running_loop()
    if await loop.run_in_executor(None, check_database_connection):
        return {
            "status": "healthy",
            "database": "connected"
        }
    return JSONResponse(
        status_code=503,
        content={
            "status": "unhealthy",
            "database": "disconnected"
        }
    )


@app.post(
    "/api/photos/migrate",
    response_model=TriggerAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_admin)],
)
async def migrate_photos(
    body: Optional[MigrationRequest] = None,
    pipeline: Pipeline = Depends(get_pipeline),
):
    """Start a whole-catalog photo migration in the background"""
    force = body.force if body else False
    orchestrator = pipeline.new_orchestrator()
    pipeline.task_runner.spawn(
        orchestrator.run_catalog(RunType.MANUAL, force=force),
        description=f"manual photo migration (force={force})",
    )
    return TriggerAccepted(
        message="Photo migration started in background",
        run_type=RunType.MANUAL.value,
        force=force,
    )


@app.post(
    "/api/places/scheduled-update",
    response_model=TriggerAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_admin)],
)
async def scheduled_update(
    request: Request,
    body: Optional[MigrationRequest] = None,
    pipeline: Pipeline = Depends(get_pipeline),
):
    """Catalog refresh; run type is "scheduled" when the scheduler header is present"""
    scheduled = any(request.headers.get(h) is not None for h in SCHEDULED_HEADERS)
    run_type = RunType.SCHEDULED if scheduled else RunType.MANUAL
    force = body.force if body else False

    orchestrator = pipeline.new_orchestrator()
    pipeline.task_runner.spawn(
        orchestrator.run_catalog(run_type, force=force),
        description=f"{run_type.value} places update",
    )
    return TriggerAccepted(
        message="Places update started in background",
        run_type=run_type.value,
        force=force,
    )


@app.post(
    "/api/photos/store-location",
    response_model=TriggerAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_admin)],
)
async def store_location_photos(
    body: StoreLocationRequest,
    pipeline: Pipeline = Depends(get_pipeline),
):
    """Store photos for one (usually new or edited) location in the background"""
    if not body.location_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Location ID is required"
        )

    orchestrator = pipeline.new_orchestrator()
    pipeline.task_runner.spawn(
        orchestrator.run_single(body.location_id, force=body.force),
        description=f"photo storage for {body.location_id}",
    )
    return TriggerAccepted(
        message="Photo processing started in background",
        run_type=RunType.MANUAL.value,
        location_id=body.location_id,
        force=body.force,
    )


async def _delete_stored_photos(pipeline: Pipeline, location_id: str) -> int:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None, pipeline.storage_writer.delete_location_photos, location_id
    )


@app.delete(
    "/api/photos/locations/{location_id}",
    response_model=TriggerAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_admin)],
)
async def delete_location_photos(
    location_id: str,
    pipeline: Pipeline = Depends(get_pipeline),
):
    """Delete a location's stored photos in the background"""
    pipeline.task_runner.spawn(
        _delete_stored_photos(pipeline, location_id),
        description=f"photo deletion for {location_id}",
    )
    return TriggerAccepted(
        message="Photo deletion started in background",
        location_id=location_id,
    )


@app.get(
    "/api/photos/status",
    response_model=RunStatusResponse,
    dependencies=[Depends(require_admin)],
)
def get_run_status(recorder: StatusRecorder = Depends(get_status_recorder)):
    """Counters and info for the latest photo runs"""
    current = recorder.get_status()
    if current is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No runs recorded yet"
        )
    return RunStatusResponse(**current)
