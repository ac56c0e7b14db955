"""HTTP routes over ``GenerationService``."""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, BinaryIO, Iterator, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from .errors import BundleNotFound, InvalidBundleName, JobNotFound
from .service import ConfigurationIncomplete, GenerationService, build_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/generate", tags=["generate"])


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(min_length=1)
    user_id: str = Field(min_length=1, alias="userId")
    webhook_url: Optional[str] = Field(default=None, alias="webhookUrl")


def _service(request: Request) -> GenerationService:
    return request.app.state.service


def _stream(handle: BinaryIO, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
    with handle:
        yield from iter(lambda: handle.read(chunk_size), b"")


@router.post("")
async def generate(body: GenerateRequest, request: Request):
    """Start a generation job and return its id immediately."""
    try:
        job = await _service(request).submit(body.prompt, body.user_id, body.webhook_url)
    except ConfigurationIncomplete as e:
        return JSONResponse(status_code=500, content={"error": str(e), "success": False})
    return {
        "success": True,
        "message": "Flutter project generation started",
        "jobId": job.id,
        "statusUrl": f"/generate/status/{job.id}",
        "estimatedTime": "2-3 minutes",
        "webhookConfigured": bool(body.webhook_url),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/status/{job_id}")
async def status(job_id: str, request: Request):
    try:
        job = await _service(request).get_status(job_id)
    except JobNotFound:
        return JSONResponse(status_code=404, content={"error": "Job not found", "jobId": job_id})
    return {"success": True, "job": job.view()}


@router.get("/jobs")
async def jobs(request: Request):
    """List all jobs (debugging aid)."""
    summaries = await _service(request).list_jobs()
    return {"success": True, "jobs": summaries, "total": len(summaries)}


@router.get("/health")
async def health(request: Request):
    return await _service(request).health()


@router.get("/download/{filename}")
async def download(filename: str, request: Request):
    try:
        path = _service(request).resolve_download(filename)
        # An open handle keeps streaming even if the reaper unlinks the bundle meanwhile
        handle = path.open("rb")
    except InvalidBundleName:
        return JSONResponse(status_code=400, content={"error": "Invalid file type"})
    except (BundleNotFound, FileNotFoundError):
        return JSONResponse(
            status_code=404, content={"error": "File not found or may have been cleaned up"},
        )
    size = os.fstat(handle.fileno()).st_size
    return StreamingResponse(
        _stream(handle),
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Content-Length": str(size),
        },
    )


def create_app(service: Optional[GenerationService] = None) -> FastAPI:
    """Build the FastAPI application around ``service`` (or one built from the environment)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app.state.service = service or build_service()
        logger.info("Service started: workspace=%s", app.state.service.workspace.root)
        yield
        await app.state.service.shutdown()
        logger.info("Service stopped")

    app = FastAPI(title="apkforge", lifespan=lifespan)
    app.include_router(router)

    @app.exception_handler(404)
    async def not_found(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": "Not found"})

    return app
