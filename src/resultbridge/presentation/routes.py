from __future__ import annotations

import json
import logging

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from src.resultbridge.application.services import CallbackService, ReconciliationService
from src.resultbridge.domain.exceptions import ProviderExhaustedError, ProviderNotConfiguredError
from src.resultbridge.domain.models import MediaKind
from src.resultbridge.presentation.schemas import (
    CacheStatsResponse,
    CachedResult,
    CallbackAck,
    PollResponse,
    SyncLookupResponse,
    SyncRequest,
)

router = APIRouter(tags=["tasks"])
logger = logging.getLogger(__name__)

_callback_service = CallbackService()
_reconciliation_service = ReconciliationService()


async def _receive_callback(request: Request, kind: MediaKind) -> CallbackAck:
    raw = await request.body()
    try:
        payload = json.loads(raw) if raw.strip() else {}
    except ValueError:
        logger.warning("Callback body is not valid JSON", extra={"kind": kind.value})
        return CallbackAck(success=False, message="Invalid JSON body; callback acknowledged")

    logger.debug("Callback body", extra={"kind": kind.value, "body": payload})
    try:
        result = await _callback_service.ingest(payload, kind, request.query_params.get("taskId"))
    except Exception:
        # Provider retries on any non-2xx, so failures stay in our logs.
        logger.exception("Failed to record callback", extra={"kind": kind.value})
        return CallbackAck(success=False, message="Failed to process callback")

    if result is None:
        return CallbackAck(
            success=True,
            message="Callback received",
            warning="No taskId found in callback payload",
        )
    return CallbackAck(
        success=True,
        message="Callback received",
        task_id=result.task_id,
        status=result.status,
        result_urls=result.result_urls,
    )


@router.post(
    "/callback",
    response_model=CallbackAck,
    response_model_exclude_none=True,
    summary="Receive a video task callback",
    description="Always answers 200 so the provider does not retry.",
)
async def video_callback(request: Request):
    return await _receive_callback(request, MediaKind.VIDEO)


@router.post(
    "/image-callback",
    response_model=CallbackAck,
    response_model_exclude_none=True,
    summary="Receive an image task callback",
    description="Always answers 200 so the provider does not retry.",
)
async def image_callback(request: Request):
    return await _receive_callback(request, MediaKind.IMAGE)


@router.get("/callback", include_in_schema=False)
@router.get("/image-callback", include_in_schema=False)
async def callback_probe():
    return {
        "message": "Callback endpoint is active",
        "note": "The provider POSTs task results here",
    }


async def _poll(task_id: str | None, kind: MediaKind):
    if not task_id:
        raise HTTPException(status_code=400, detail="taskId is required")
    try:
        outcome = await _reconciliation_service.poll(task_id, kind)
    except ProviderNotConfiguredError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except ProviderExhaustedError as exc:
        return JSONResponse(
            status_code=502,
            content={"status": "error", "taskId": task_id, "error": exc.last_error},
        )
    return PollResponse.from_outcome(outcome)


@router.get(
    "/poll-task",
    response_model=PollResponse,
    response_model_exclude_none=True,
    summary="Poll a generation task",
    description=(
        "Resolves a task from the result cache, then the provider status "
        "endpoints, then (for images) the record history. A task nobody knows "
        "about yet is reported as PROCESSING.\n"
        "Example: {'taskId':'abc','status':'SUCCESS','resultUrls':['https://...'],'source':'cache'}"
    ),
    responses={
        400: {"description": "taskId missing."},
        502: {"description": "Every provider endpoint failed."},
    },
)
async def poll_task(
    task_id: str | None = Query(default=None, alias="taskId", description="Provider task id"),
    kind: MediaKind = Query(default=MediaKind.VIDEO, description="Media kind of the task"),
):
    return await _poll(task_id, kind)


@router.get(
    "/poll-image-task",
    response_model=PollResponse,
    response_model_exclude_none=True,
    summary="Poll an image generation task",
    responses={
        400: {"description": "taskId missing."},
        502: {"description": "Every provider endpoint failed."},
    },
)
async def poll_image_task(
    task_id: str | None = Query(default=None, alias="taskId", description="Provider task id"),
):
    return await _poll(task_id, MediaKind.IMAGE)


@router.post(
    "/sync-result",
    response_model=SyncLookupResponse,
    response_model_exclude_none=True,
    summary="Manually store a task result",
)
async def sync_result(body: SyncRequest):
    if not body.result_urls:
        raise HTTPException(status_code=400, detail="imageUrl is required")
    result = await _callback_service.sync(body.task_id, body.result_urls, body.status)
    return SyncLookupResponse(
        found=True,
        task_id=result.task_id,
        result=CachedResult.from_result(result),
        image_url=result.result_urls[0] if result.result_urls else None,
    )


@router.get(
    "/sync-result",
    response_model=SyncLookupResponse,
    response_model_exclude_none=True,
    summary="Check whether a task result is cached",
)
async def lookup_result(
    task_id: str | None = Query(default=None, alias="taskId", description="Provider task id"),
):
    if not task_id:
        raise HTTPException(status_code=400, detail="taskId is required")
    result = await _callback_service.lookup(task_id)
    if result is None:
        return SyncLookupResponse(found=False, task_id=task_id)
    return SyncLookupResponse(
        found=True,
        task_id=task_id,
        result=CachedResult.from_result(result),
        image_url=result.result_urls[0] if result.result_urls else None,
    )


@router.get("/cache-stats", response_model=CacheStatsResponse, summary="List live cache keys")
async def cache_stats():
    return await _callback_service.stats()
