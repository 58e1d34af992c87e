# FILE: bananary/services/gemini_service.py
"""Client for the hosted generative image/video API (Gemini-compatible proxy)."""

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import httpx

from bananary.core.config import (
    GEMINI_BASE_URL,
    GEMINI_REQUEST_TIMEOUT,
    VIDEO_POLL_SECONDS,
    VIDEO_TIMEOUT_SECONDS,
    get_gemini_api_key,
)
from bananary.services.prompt_service import apply_mask

logger = logging.getLogger("bananary.gemini")

IMAGE_MODEL = "gemini-2.5-flash-image-preview"
ENHANCED_IMAGE_MODEL = "gemini-3-pro-image-preview"
VIDEO_MODEL = "veo-2.0-generate-001"

RATE_LIMIT_MESSAGE = "You've likely exceeded the request limit. Please wait a moment before trying again."
SERVER_ERROR_MESSAGE = (
    "An unexpected server error occurred. This might be a temporary issue. Please try again in a few moments."
)
NO_IMAGE_MESSAGE = (
    "The model did not return an image. It might have refused the request. "
    "Please try a different image or prompt."
)

# (base64 data, mime type)
ImagePart = Tuple[str, str]
ProgressCallback = Callable[[str], Awaitable[None]]


class GenerationError(Exception):
    """User-presentable failure from the generative API."""


def _error_message(resp: httpx.Response) -> str:
    body = resp.text
    try:
        err = json.loads(body).get("error") or {}
    except (ValueError, AttributeError):
        return f"HTTP {resp.status_code}: {body[:500]}"
    if not isinstance(err, dict) or not err.get("message"):
        return f"HTTP {resp.status_code}: {body[:500]}"
    if err.get("status") == "RESOURCE_EXHAUSTED":
        return RATE_LIMIT_MESSAGE
    if err.get("code") == 500 or err.get("status") == "UNKNOWN":
        return SERVER_ERROR_MESSAGE
    return err["message"]


async def _post(client: httpx.AsyncClient, url: str, body: Dict[str, Any]) -> Dict[str, Any]:
    try:
        resp = await client.post(url, params={"key": get_gemini_api_key()}, json=body)
    except httpx.HTTPError as exc:
        logger.error("Request to %s failed: %s", url, exc)
        raise GenerationError(f"Could not reach the generation service: {exc}") from exc
    if resp.status_code >= 400:
        message = _error_message(resp)
        logger.warning("Generation API error %s: %s", resp.status_code, message)
        raise GenerationError(message)
    return resp.json()


def build_image_request(
        prompt: str,
        image: Optional[ImagePart] = None,
        mask: Optional[str] = None,
        secondary_image: Optional[ImagePart] = None,
        enhanced_mode: bool = False,
        aspect_ratio: Optional[str] = None,
        image_size: Optional[str] = None,
        google_search: Optional[bool] = None,
) -> Dict[str, Any]:
    parts = []
    if image:
        parts.append({"inlineData": {"data": image[0], "mimeType": image[1]}})
    if mask:
        parts.append({"inlineData": {"data": mask, "mimeType": "image/png"}})
    if secondary_image:
        parts.append({"inlineData": {"data": secondary_image[0], "mimeType": secondary_image[1]}})
    parts.append({"text": apply_mask(prompt, bool(mask))})

    body: Dict[str, Any] = {
        "contents": [{"parts": parts}],
        "generationConfig": {"responseModalities": ["IMAGE", "TEXT"]},
    }
    if enhanced_mode:
        if aspect_ratio:
            body["generationConfig"]["aspectRatio"] = aspect_ratio
        if image_size:
            body["generationConfig"]["imageSize"] = image_size
        if google_search is not None:
            body["google_search"] = google_search
    return body


def parse_image_response(data: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """Returns {"image_url", "text"}; raises GenerationError when no image came back."""
    candidate = (data.get("candidates") or [{}])[0]
    image_url = None
    texts = []
    for part in (candidate.get("content") or {}).get("parts") or []:
        if part.get("text"):
            texts.append(part["text"])
        elif part.get("inlineData"):
            inline = part["inlineData"]
            image_url = f"data:{inline.get('mimeType', 'image/png')};base64,{inline.get('data', '')}"

    text = "\n".join(texts) or None
    if image_url:
        return {"image_url": image_url, "text": text}

    if text:
        raise GenerationError(f'The model responded: "{text}"')
    if candidate.get("finishReason") == "SAFETY":
        blocked = ", ".join(r.get("category", "") for r in candidate.get("safetyRatings") or [] if r.get("blocked"))
        raise GenerationError(
            f"The request was blocked for safety reasons. Categories: {blocked or 'Unknown'}. "
            "Please modify your prompt or image."
        )
    raise GenerationError(NO_IMAGE_MESSAGE)


async def edit_image(
        prompt: str,
        image: Optional[ImagePart] = None,
        mask: Optional[str] = None,
        secondary_image: Optional[ImagePart] = None,
        enhanced_mode: bool = False,
        aspect_ratio: Optional[str] = None,
        image_size: Optional[str] = None,
        google_search: Optional[bool] = None,
) -> Dict[str, Optional[str]]:
    model = ENHANCED_IMAGE_MODEL if enhanced_mode else IMAGE_MODEL
    body = build_image_request(
        prompt, image, mask, secondary_image, enhanced_mode, aspect_ratio, image_size, google_search
    )
    logger.info("edit_image model=%s parts=%d", model, len(body["contents"][0]["parts"]))
    async with httpx.AsyncClient(timeout=GEMINI_REQUEST_TIMEOUT) as client:
        data = await _post(client, f"{GEMINI_BASE_URL}/{model}:generateContent", body)
    return parse_image_response(data)


async def start_video(prompt: str, image: Optional[ImagePart] = None, aspect_ratio: str = "16:9") -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "prompt": prompt,
        "config": {"numberOfVideos": 1, "aspectRatio": aspect_ratio},
    }
    if image:
        body["image"] = {"imageBytes": image[0], "mimeType": image[1]}
    async with httpx.AsyncClient(timeout=GEMINI_REQUEST_TIMEOUT) as client:
        operation = await _post(client, f"{GEMINI_BASE_URL}/{VIDEO_MODEL}:generateVideos", body)
    logger.info("Video operation started: %s", operation.get("name"))
    return operation


async def poll_operation(name: str) -> Dict[str, Any]:
    async with httpx.AsyncClient(timeout=GEMINI_REQUEST_TIMEOUT) as client:
        try:
            resp = await client.get(f"{GEMINI_BASE_URL}/operations/{name}", params={"key": get_gemini_api_key()})
        except httpx.HTTPError as exc:
            raise GenerationError(f"Polling failed: {exc}") from exc
    if resp.status_code >= 400:
        raise GenerationError(f"Polling failed: HTTP {resp.status_code}")
    return resp.json()


def video_uri(operation: Dict[str, Any]) -> str:
    if operation.get("error"):
        raise GenerationError(operation["error"].get("message") or "Video generation failed during operation.")
    videos = (operation.get("response") or {}).get("generatedVideos") or []
    uri = ((videos[0] if videos else {}).get("video") or {}).get("uri")
    if not uri:
        raise GenerationError("Video generation completed, but no download link was found.")
    return uri


def is_provider_uri(uri: str) -> bool:
    """True when `uri` is served by the generation API host (the only host that gets the key)."""
    try:
        url = httpx.URL(uri)
    except httpx.InvalidURL:
        return False
    return url.scheme in ("http", "https") and url.host == httpx.URL(GEMINI_BASE_URL).host


async def download_video(uri: str) -> Tuple[bytes, str]:
    """Fetch a generated video with the server key. Returns (content, content type)."""
    if not is_provider_uri(uri):
        raise GenerationError("Video link does not belong to the generation service.")
    async with httpx.AsyncClient(timeout=GEMINI_REQUEST_TIMEOUT, follow_redirects=True) as client:
        try:
            resp = await client.get(uri, params={"key": get_gemini_api_key()})
        except httpx.HTTPError as exc:
            logger.error("Video download failed: %s", exc)
            raise GenerationError(f"Video download failed: {exc}") from exc
    if resp.status_code >= 400:
        logger.warning("Video download failed: HTTP %s", resp.status_code)
        raise GenerationError(f"Video download failed: HTTP {resp.status_code}")
    return resp.content, resp.headers.get("content-type", "video/mp4")


async def wait_for_video(
        prompt: str,
        image: Optional[ImagePart] = None,
        aspect_ratio: str = "16:9",
        on_progress: Optional[ProgressCallback] = None,
        poll_seconds: float = VIDEO_POLL_SECONDS,
        timeout_seconds: float = VIDEO_TIMEOUT_SECONDS,
) -> str:
    """Start a video operation and poll until it finishes. Returns the video URI (no key)."""
    if on_progress:
        await on_progress("Initializing video generation...")
    operation = await start_video(prompt, image, aspect_ratio)

    if on_progress:
        await on_progress("Polling for results, this may take a few minutes...")
    deadline = time.time() + timeout_seconds
    while not operation.get("done"):
        if time.time() >= deadline:
            raise GenerationError("Video generation timed out.")
        await asyncio.sleep(poll_seconds)
        operation = await poll_operation(operation["name"])

    return video_uri(operation)
