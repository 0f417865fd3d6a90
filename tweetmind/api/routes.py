from __future__ import annotations

import asyncio
import time
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from structlog.contextvars import bind_contextvars, reset_contextvars

from tweetmind.config import AppSettings
from tweetmind.dependencies import (
    get_item_lifecycle_service,
    get_item_repository,
    get_maintenance_sweep,
    get_settings,
)
from tweetmind.errors import MissingContentError, StoreError
from tweetmind.models.generation_contracts import Category
from tweetmind.models.item_contracts import (
    CleanupErrorsResponse,
    ItemCountsResponse,
    ItemCreateRequest,
    ItemCreateResponse,
    ItemDeleteResponse,
    ItemListResponse,
    ItemView,
    LibraryChangesResponse,
)
from tweetmind.repositories.item_repository import ItemRepository
from tweetmind.services.item_lifecycle_service import ItemLifecycleService
from tweetmind.services.maintenance_sweep import MaintenanceSweep

router = APIRouter()


@router.post(
    "/items",
    response_model=ItemCreateResponse,
    response_model_exclude_none=True,
    tags=["items"],
    operation_id="create_item",
)
async def create_item(
    request: ItemCreateRequest,
    background_tasks: BackgroundTasks,
    service: Annotated[ItemLifecycleService, Depends(get_item_lifecycle_service)],
) -> ItemCreateResponse:
    try:
        submission = service.prepare(
            original_text=request.original_text,
            category=request.category,
            tweet_url=request.tweet_url,
        )
    except MissingContentError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    context_tokens = bind_contextvars(item_category=submission.category)
    try:
        item_id = await service.draft(submission)
    except StoreError as exc:
        raise HTTPException(
            status_code=503,
            detail="The item library is unavailable; the submission was not saved.",
        ) from exc
    finally:
        reset_contextvars(**context_tokens)

    # Generation runs after the response is sent; clients follow it via /items/changes.
    background_tasks.add_task(service.complete, item_id, submission)
    return ItemCreateResponse(
        id=item_id,
        category=submission.category,
        tweet_url=submission.tweet_url,
    )


@router.get(
    "/items",
    response_model=ItemListResponse,
    response_model_exclude_none=True,
    tags=["items"],
    operation_id="list_items",
)
def list_items(
    category: Category,
    repository: Annotated[ItemRepository, Depends(get_item_repository)],
) -> ItemListResponse:
    records = repository.list_by_category(category)
    return ItemListResponse(
        category=category,
        count=len(records),
        items=[ItemView.from_record(record) for record in records],
    )


@router.get(
    "/items/counts",
    response_model=ItemCountsResponse,
    tags=["items"],
    operation_id="count_items",
)
def count_items(
    repository: Annotated[ItemRepository, Depends(get_item_repository)],
) -> ItemCountsResponse:
    counts = repository.counts()
    return ItemCountsResponse(
        learning=counts["learning"],
        news=counts["news"],
        inspiration=counts["inspiration"],
    )


@router.get(
    "/items/changes",
    response_model=LibraryChangesResponse,
    tags=["items"],
    operation_id="wait_for_item_changes",
)
async def wait_for_item_changes(
    repository: Annotated[ItemRepository, Depends(get_item_repository)],
    settings: Annotated[AppSettings, Depends(get_settings)],
    after: Annotated[int, Query(ge=0)] = 0,
    timeout_seconds: Annotated[float | None, Query(ge=0)] = None,
) -> LibraryChangesResponse:
    max_wait = settings.live_poll_max_wait_seconds
    wait_seconds = max_wait if timeout_seconds is None else min(timeout_seconds, max_wait)
    deadline = time.monotonic() + wait_seconds
    while True:
        revision = await asyncio.to_thread(repository.revision)
        if revision > after:
            return LibraryChangesResponse(revision=revision, changed=True)
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return LibraryChangesResponse(revision=revision, changed=False)
        await asyncio.sleep(min(settings.live_poll_interval_seconds, remaining))


@router.get(
    "/items/{item_id}",
    response_model=ItemView,
    response_model_exclude_none=True,
    tags=["items"],
    operation_id="get_item",
)
def get_item(
    item_id: str,
    repository: Annotated[ItemRepository, Depends(get_item_repository)],
) -> ItemView:
    record = repository.get_item(item_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Item not found: {item_id}")
    return ItemView.from_record(record)


@router.delete(
    "/items/{item_id}",
    response_model=ItemDeleteResponse,
    tags=["items"],
    operation_id="delete_item",
)
def delete_item(
    item_id: str,
    repository: Annotated[ItemRepository, Depends(get_item_repository)],
) -> ItemDeleteResponse:
    if not repository.delete(item_id):
        raise HTTPException(status_code=404, detail=f"Item not found: {item_id}")
    return ItemDeleteResponse(status="deleted", id=item_id)


@router.post(
    "/maintenance/cleanup-errors",
    response_model=CleanupErrorsResponse,
    tags=["maintenance"],
    operation_id="cleanup_old_errors",
)
def cleanup_old_errors(
    sweep: Annotated[MaintenanceSweep, Depends(get_maintenance_sweep)],
) -> CleanupErrorsResponse:
    result = sweep.run()
    return CleanupErrorsResponse(cleaned=result.cleaned)
