"""Post generation routes: on-demand generation and artifact listing."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from storefront.errors import ProcessError
from storefront.generation.invoker import JOB_KINDS, GenerationJob
from storefront.generation.posts import list_posts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["posts"])


class GenerateRequest(BaseModel):
    type: str | None = None
    count: int | None = None
    duration: int | None = None


def _error(detail: str, status_code: int) -> JSONResponse:
    return JSONResponse({"status": "error", "detail": detail}, status_code=status_code)


@router.get("/list")
async def posts_list(request: Request):
    try:
        files = list_posts(request.app.state.settings.posts_dir)
    except OSError as e:
        logger.error("Could not list posts: %s", e)
        return _error(str(e), 500)
    return {"status": "ok", "files": files}


@router.post("/generate")
async def posts_generate(body: GenerateRequest, request: Request):
    if body.type not in JOB_KINDS:
        return _error(f"invalid type, expected one of {', '.join(JOB_KINDS)}", 400)

    job = GenerationJob(kind=body.type, count=body.count, duration=body.duration)
    try:
        return await request.app.state.invoker.run_job(job)
    except ProcessError as e:
        return _error(str(e), 500)
