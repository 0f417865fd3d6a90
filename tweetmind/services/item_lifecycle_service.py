from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from structlog.contextvars import bind_contextvars, reset_contextvars

from tweetmind.errors import GENERIC_FAILURE_MESSAGE, MissingContentError, StoreError
from tweetmind.models.generation_contracts import CATEGORIES, Category
from tweetmind.repositories.item_repository import (
    FinalizeFailure,
    FinalizePatch,
    FinalizeSuccess,
    ItemRepository,
)
from tweetmind.services.content_resolver import ContentResolver
from tweetmind.services.generation_gateway import GenerationGateway, generate_for_category
from tweetmind.services.links import extract_tweet_url, remove_tweet_url
from tweetmind.telemetry import TelemetryClient

LOGGER = logging.getLogger("tweetmind.item_lifecycle")


@dataclass(frozen=True)
class Submission:
    original_text: str
    category: Category
    tweet_url: str | None
    cleaned_text: str


@dataclass(frozen=True)
class ItemOutcome:
    item_id: str
    succeeded: bool
    error: str | None
    finalized: bool


class ItemLifecycleService:
    """Draft, resolve, generate and finalize one submitted item.

    `draft` is the only step that can raise to the caller (a `StoreError`).
    Once an item exists, `complete` turns every failure into a terminal error
    write and performs exactly one finalize.
    """

    def __init__(
        self,
        *,
        item_repository: ItemRepository,
        gateway: GenerationGateway,
        content_resolver: ContentResolver,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._item_repository = item_repository
        self._gateway = gateway
        self._content_resolver = content_resolver
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()

    def prepare(
        self,
        *,
        original_text: str,
        category: str,
        tweet_url: str | None = None,
    ) -> Submission:
        resolved_category = _validate_category(category)
        explicit_url = tweet_url.strip() if tweet_url is not None and tweet_url.strip() else None
        link = explicit_url if explicit_url is not None else extract_tweet_url(original_text)
        if not original_text.strip() and link is None:
            raise MissingContentError()
        return Submission(
            original_text=original_text,
            category=resolved_category,
            tweet_url=link,
            cleaned_text=remove_tweet_url(original_text, link),
        )

    async def draft(self, submission: Submission) -> str:
        item_id = await asyncio.to_thread(
            self._item_repository.create_draft,
            original_text=submission.original_text,
            tweet_url=submission.tweet_url,
            category=submission.category,
        )
        LOGGER.info(
            "item draft created item_id=%s category=%s has_link=%s",
            item_id,
            submission.category,
            submission.tweet_url is not None,
        )
        self._telemetry.emit(
            "item.draft.created",
            item_id=item_id,
            category=submission.category,
            has_link=submission.tweet_url is not None,
        )
        return item_id

    async def complete(self, item_id: str, submission: Submission) -> ItemOutcome:
        context_tokens = bind_contextvars(item_id=item_id, item_category=submission.category)
        try:
            patch = await self._analyze(submission)
            return await self._finalize(item_id, submission.category, patch)
        finally:
            reset_contextvars(**context_tokens)

    async def create_and_analyze(
        self,
        *,
        original_text: str,
        category: str,
        tweet_url: str | None = None,
    ) -> str:
        submission = self.prepare(
            original_text=original_text,
            category=category,
            tweet_url=tweet_url,
        )
        item_id = await self.draft(submission)
        await self.complete(item_id, submission)
        return item_id

    async def _analyze(self, submission: Submission) -> FinalizePatch:
        try:
            text = await self._content_resolver.resolve(
                submission.cleaned_text,
                submission.tweet_url,
            )
            result = await asyncio.to_thread(
                generate_for_category,
                self._gateway,
                submission.category,
                text,
            )
        except MissingContentError as exc:
            LOGGER.info("item has no content to analyze")
            return FinalizeFailure(error=str(exc))
        except Exception as exc:
            LOGGER.warning(
                "item generation failed error_type=%s",
                type(exc).__name__,
                exc_info=True,
            )
            return FinalizeFailure(error=_failure_message(exc))
        return FinalizeSuccess(result=result)

    async def _finalize(
        self,
        item_id: str,
        category: Category,
        patch: FinalizePatch,
    ) -> ItemOutcome:
        succeeded = isinstance(patch, FinalizeSuccess)
        error = patch.error if isinstance(patch, FinalizeFailure) else None
        try:
            await asyncio.to_thread(self._item_repository.finalize, item_id, patch)
        except Exception as exc:
            # No repair path: the item keeps is_loading=True until deleted.
            LOGGER.exception(
                "item finalize write failed item_id=%s error_type=%s store_error=%s",
                item_id,
                type(exc).__name__,
                isinstance(exc, StoreError),
            )
            self._telemetry.emit(
                "item.finalize.failed",
                item_id=item_id,
                category=category,
                error_type=type(exc).__name__,
            )
            return ItemOutcome(item_id=item_id, succeeded=False, error=error, finalized=False)

        LOGGER.info(
            "item finalized item_id=%s outcome=%s",
            item_id,
            "success" if succeeded else "failure",
        )
        self._telemetry.emit(
            "item.finalized",
            item_id=item_id,
            category=category,
            outcome="success" if succeeded else "failure",
        )
        return ItemOutcome(item_id=item_id, succeeded=succeeded, error=error, finalized=True)


def _validate_category(value: str) -> Category:
    normalized = value.strip().lower()
    for category in CATEGORIES:
        if category == normalized:
            return category
    raise ValueError(f"category must be one of: {', '.join(CATEGORIES)}")


def _failure_message(exc: Exception) -> str:
    message = str(exc).strip()
    return message or GENERIC_FAILURE_MESSAGE
