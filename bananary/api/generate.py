# FILE: bananary/api/generate.py
# =========================================================
# Image / video generation with credit charge + refund
# =========================================================

"""
Flow:
- Image: consume credits -> call the generative API -> refund on failure -> save history.
  Two-step transformations call the API twice (step one output feeds step two).
- Video: consume credits -> queue a background job that starts the operation and polls it.
  The client polls /generate/status/{job_id}. Failure or timeout refunds the job's credits.
  The finished video is served through /generate/video/{job_id}, which adds the API key server-side.
"""

import logging
import time
import uuid
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from bananary.api.deps import get_current_user
from bananary.core.config import get_gemini_api_key
from bananary.core.database import SessionLocal, get_db
from bananary.schemas.generate import (
    ImageGenerateRequest,
    ImageGenerateResponse,
    JobStatusResponse,
    TransformationItem,
    TransformationsResponse,
    VideoGenerateRequest,
    VideoJobResponse,
)
from bananary.services import config_service, credit_service, gemini_service, history_service
from bananary.services.gemini_service import GenerationError
from bananary.services.prompt_service import PromptError, resolve_prompt, step_two_prompt
from bananary.services.transformation_catalog import TRANSFORMATIONS, get_transformation

logger = logging.getLogger("bananary.generate")

router = APIRouter(prefix="/api", tags=["generate"])

# ⚠️ In-memory job state = 1 uvicorn worker
JOB_STATUS: Dict[str, Dict[str, Any]] = {}

JOB_CLEANUP_AFTER_SECONDS = 60 * 60


def _now_ts() -> float:
    return time.time()


def init_job_state(job_id: str, user_id: str, cost: int) -> Dict[str, Any]:
    return {
        "job_id": job_id,
        "user_id": user_id,
        "cost": cost,
        "status": "queued",          # queued | running | done | error
        "step": "queued",
        "message": "Queued…",
        "video_uri": None,
        "history_id": None,
        "error": None,
        "started_at": _now_ts(),
        "updated_at": _now_ts(),
    }


def set_status(job_id: str, status: str, step: str, message: Optional[str] = None):
    job = JOB_STATUS.get(job_id)
    if not job:
        return
    job["status"] = status
    job["step"] = step
    if message is not None:
        job["message"] = message
    job["updated_at"] = _now_ts()


def cleanup_jobs():
    now = _now_ts()
    to_delete = []
    for job_id, job in JOB_STATUS.items():
        started = float(job.get("started_at") or 0)
        if job["status"] in {"done", "error"} and started and (now - started) > JOB_CLEANUP_AFTER_SECONDS:
            to_delete.append(job_id)
    for job_id in to_delete:
        JOB_STATUS.pop(job_id, None)


def _split_data_url(url: str) -> Tuple[str, str]:
    """data:<mime>;base64,<data> -> (data, mime)"""
    header, _, data = url.partition(",")
    mime = header[len("data:"):].split(";", 1)[0] or "image/png"
    return data, mime


def _require_api_key():
    try:
        get_gemini_api_key()
    except RuntimeError as exc:
        logger.error("%s", exc)
        raise HTTPException(status_code=503, detail="Generation service is not configured")


async def _consume_or_402(db: AsyncSession, user_id: str, cost: int, description: str, ref_id: str) -> int:
    try:
        return await credit_service.consume(db, user_id, cost, description, ref_id=ref_id)
    except credit_service.InsufficientCreditsError as exc:
        raise HTTPException(
            status_code=402,
            detail=f"Insufficient credits: {exc.required} required, {exc.balance} available",
        )


# ─────────────────────────────────────────────
# CATALOG
# ─────────────────────────────────────────────
@router.get("/transformations", response_model=TransformationsResponse)
async def list_transformations(db: AsyncSession = Depends(get_db)):
    costs = await config_service.credit_costs(db)
    return TransformationsResponse(
        transformations=[TransformationItem(**t) for t in TRANSFORMATIONS],
        costs={
            "image": costs["credits.image_cost"],
            "enhanced": costs["credits.enhanced_cost"],
            "video": costs["credits.video_cost"],
        },
    )


# ─────────────────────────────────────────────
# IMAGE
# ─────────────────────────────────────────────
@router.post("/generate/image", response_model=ImageGenerateResponse)
async def generate_image(
        req: ImageGenerateRequest,
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    transformation = get_transformation(req.transformation_key)
    if not transformation:
        raise HTTPException(status_code=404, detail="Unknown transformation")
    if transformation.get("is_video"):
        raise HTTPException(status_code=400, detail="Use /api/generate/video for video transformations")

    try:
        prompt = resolve_prompt(transformation, req.prompt)
    except PromptError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    if not req.image and not transformation.get("is_primary_optional"):
        raise HTTPException(status_code=400, detail="An image is required")
    two_step = bool(transformation.get("is_two_step"))
    needs_secondary = transformation.get("is_multi_image") and not transformation.get("is_secondary_optional")
    if needs_secondary and not req.secondary_image:
        raise HTTPException(status_code=400, detail="A second image is required")

    _require_api_key()

    # Two-step transformations always run on the standard model without a mask
    enhanced = req.enhanced_mode and not two_step
    key = "credits.enhanced_cost" if enhanced else "credits.image_cost"
    cost = await config_service.get_int(db, key)
    generation_id = str(uuid.uuid4())
    balance = await _consume_or_402(
        db, user["id"], cost, f"Image generation: {transformation['key']}", ref_id=generation_id
    )

    image = (req.image.data, req.image.mime_type) if req.image else None
    secondary = (req.secondary_image.data, req.secondary_image.mime_type) if req.secondary_image else None
    mask = req.mask.data if req.mask else None
    options = dict(
        enhanced_mode=enhanced,
        aspect_ratio=req.aspect_ratio,
        image_size=req.image_size,
        google_search=req.google_search,
    )

    step_one_url = None
    try:
        if two_step:
            step_one = await gemini_service.edit_image(prompt, image=image)
            step_one_url = step_one["image_url"]
            result = await gemini_service.edit_image(
                step_two_prompt(transformation),
                image=_split_data_url(step_one_url),
                secondary_image=secondary,
            )
        else:
            result = await gemini_service.edit_image(
                prompt, image=image, mask=mask, secondary_image=secondary, **options
            )
    except GenerationError as exc:
        await credit_service.refund(
            db, user["id"], cost, f"Refund: image generation failed ({transformation['key']})", ref_id=generation_id
        )
        logger.warning("Generation %s failed for user %s: %s", generation_id, user["id"], exc)
        raise HTTPException(status_code=502, detail=str(exc))
    except Exception:
        await db.rollback()
        await credit_service.refund(
            db, user["id"], cost, f"Refund: image generation failed ({transformation['key']})", ref_id=generation_id
        )
        raise

    history_id = None
    if req.save_history:
        item = await history_service.save_item(
            db,
            user["id"],
            type="image",
            transformation_key=transformation["key"],
            original_image_url=req.image.as_data_url() if req.image else None,
            result_image_url=result["image_url"],
            secondary_image_url=step_one_url,
            prompt=prompt,
        )
        history_id = item.id

    return ImageGenerateResponse(
        image_url=result["image_url"],
        text=result.get("text"),
        secondary_image_url=step_one_url,
        credits_used=cost,
        balance=balance,
        history_id=history_id,
    )


# ─────────────────────────────────────────────
# VIDEO
# ─────────────────────────────────────────────
@router.post("/generate/video", response_model=VideoJobResponse)
async def generate_video(
        req: VideoGenerateRequest,
        background_tasks: BackgroundTasks,
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    cleanup_jobs()
    _require_api_key()

    cost = await config_service.get_int(db, "credits.video_cost")
    job_id = str(uuid.uuid4())
    balance = await _consume_or_402(db, user["id"], cost, "Video generation", ref_id=job_id)

    JOB_STATUS[job_id] = init_job_state(job_id, user["id"], cost)
    background_tasks.add_task(_video_worker, job_id, req)
    return VideoJobResponse(message="Video generation started", job_id=job_id, credits_used=cost, balance=balance)


async def _video_worker(job_id: str, req: VideoGenerateRequest):
    job = JOB_STATUS.get(job_id)
    if not job:
        return
    user_id = job["user_id"]

    async def progress(message: str):
        set_status(job_id, "running", "generating", message)

    set_status(job_id, "running", "starting", "Initializing video generation...")
    image = (req.image.data, req.image.mime_type) if req.image else None
    try:
        video_uri = await gemini_service.wait_for_video(req.prompt, image, req.aspect_ratio, on_progress=progress)
    except Exception as e:
        if isinstance(e, GenerationError):
            logger.warning("Video job %s failed: %s", job_id, e)
        else:
            logger.exception("Video job %s crashed", job_id)
        job["error"] = str(e) if isinstance(e, GenerationError) else "An unknown error occurred during video generation."
        try:
            async with SessionLocal() as db:
                await credit_service.refund(db, user_id, job["cost"], "Refund: video generation failed", ref_id=job_id)
        except Exception:
            logger.exception("Refund for video job %s failed", job_id)
        set_status(job_id, "error", "failed", "Video generation failed.")
        return

    job["video_uri"] = video_uri
    try:
        if req.save_history:
            async with SessionLocal() as db:
                item = await history_service.save_item(
                    db,
                    user_id,
                    type="video",
                    transformation_key="videoGeneration",
                    original_image_url=req.image.as_data_url() if req.image else None,
                    result_video_url=video_uri,
                    prompt=req.prompt,
                )
            job["history_id"] = item.id
    except Exception:
        logger.exception("Saving history for video job %s failed", job_id)
    set_status(job_id, "done", "done", "Video ready.")


async def proxy_video(uri: str) -> StreamingResponse:
    """Serve a generated video; the API key is only added on the server side."""
    try:
        content, media_type = await gemini_service.download_video(uri)
    except GenerationError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return StreamingResponse(iter([content]), media_type=media_type)


def _owned_job(job_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    job = JOB_STATUS.get(job_id)
    if not job or str(job.get("user_id")) != str(user["id"]):
        raise HTTPException(status_code=404, detail="Job not found")
    return job


# ─────────────────────────────────────────────
# POLL STATUS / DOWNLOAD
# ─────────────────────────────────────────────
@router.get("/generate/status/{job_id}", response_model=JobStatusResponse)
async def get_generation_status(job_id: str, user=Depends(get_current_user)):
    job = _owned_job(job_id, user)

    return JobStatusResponse(
        job_id=job_id,
        status=job["status"],
        step=job["step"],
        progress_message=job.get("message"),
        video_url=f"/api/generate/video/{job_id}" if job.get("video_uri") else None,
        history_id=job.get("history_id"),
        error=job.get("error"),
        started_at=job["started_at"],
        updated_at=job["updated_at"],
    )


@router.get("/generate/video/{job_id}")
async def download_generated_video(job_id: str, user=Depends(get_current_user)):
    job = _owned_job(job_id, user)
    if not job.get("video_uri"):
        raise HTTPException(status_code=404, detail="Video not ready")
    return await proxy_video(job["video_uri"])
