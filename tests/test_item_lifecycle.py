from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import pytest
from conftest import FakeGenerationGateway, FakeTweetFetcher

from tweetmind.errors import (
    GENERIC_FAILURE_MESSAGE,
    MISSING_CONTENT_MESSAGE,
    GenerationError,
    MissingContentError,
    StoreError,
)
from tweetmind.repositories.item_repository import (
    FinalizePatch,
    ItemRecord,
    ItemRepository,
)
from tweetmind.services.content_resolver import ContentResolver
from tweetmind.services.item_lifecycle_service import ItemLifecycleService
from tweetmind.telemetry import TelemetryClient


class _CaptureSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self.events.append((event_name, dict(attributes)))


class _CountingRepository(ItemRepository):
    def __init__(self, inner: ItemRepository) -> None:
        self._inner = inner
        self.drafts = 0
        self.finalized: list[tuple[str, FinalizePatch]] = []
        self.finalize_error: Exception | None = None

    def create_draft(self, **kwargs: Any) -> str:
        self.drafts += 1
        return self._inner.create_draft(**kwargs)

    def finalize(self, item_id: str, patch: FinalizePatch) -> ItemRecord:
        self.finalized.append((item_id, patch))
        if self.finalize_error is not None:
            raise self.finalize_error
        return self._inner.finalize(item_id, patch)

    def get_item(self, item_id: str) -> ItemRecord | None:
        return self._inner.get_item(item_id)


class _EmptyTextGateway(FakeGenerationGateway):
    def generate_news_analysis(self, text: str) -> Any:
        self._record("news", text)
        raise GenerationError("   ")


def _service(
    repository: ItemRepository,
    gateway: FakeGenerationGateway,
    fetcher: FakeTweetFetcher,
    telemetry: TelemetryClient | None = None,
) -> ItemLifecycleService:
    return ItemLifecycleService(
        item_repository=repository,
        gateway=gateway,
        content_resolver=ContentResolver(fetcher),
        telemetry=telemetry,
    )


def test_link_with_text_is_drafted_and_analyzed_from_cleaned_text(
    item_repository: ItemRepository,
    fake_gateway: FakeGenerationGateway,
    fake_fetcher: FakeTweetFetcher,
) -> None:
    repository = _CountingRepository(item_repository)
    service = _service(repository, fake_gateway, fake_fetcher)

    item_id = asyncio.run(
        service.create_and_analyze(
            original_text="Check this out https://x.com/abc/status/123",
            category="learning",
        )
    )

    item = repository.get_item(item_id)
    assert item is not None
    assert item.tweet_url == "https://x.com/abc/status/123"
    assert item.original_text == "Check this out https://x.com/abc/status/123"
    assert item.is_loading is False
    assert item.error is None
    assert item.learning_data is not None and len(item.learning_data) == 4
    assert fake_gateway.calls == [("learning", "Check this out")]
    assert fake_fetcher.calls == []
    assert repository.drafts == 1
    assert len(repository.finalized) == 1


def test_blank_submission_is_rejected_before_any_item_exists(
    item_repository: ItemRepository,
    fake_gateway: FakeGenerationGateway,
    fake_fetcher: FakeTweetFetcher,
) -> None:
    repository = _CountingRepository(item_repository)
    service = _service(repository, fake_gateway, fake_fetcher)

    with pytest.raises(MissingContentError):
        asyncio.run(service.create_and_analyze(original_text="   ", category="news"))

    assert repository.drafts == 0
    assert item_repository.counts() == {"learning": 0, "news": 0, "inspiration": 0}


def test_link_only_submission_with_empty_fetch_finalizes_missing_content_error(
    item_repository: ItemRepository,
    fake_gateway: FakeGenerationGateway,
) -> None:
    repository = _CountingRepository(item_repository)
    fetcher = FakeTweetFetcher(text="")
    service = _service(repository, fake_gateway, fetcher)

    item_id = asyncio.run(
        service.create_and_analyze(
            original_text="https://x.com/abc/status/123",
            category="inspiration",
        )
    )

    item = repository.get_item(item_id)
    assert item is not None
    assert item.is_loading is False
    assert item.error == MISSING_CONTENT_MESSAGE
    assert item.result is None
    assert fetcher.calls == ["https://x.com/abc/status/123"]
    assert fake_gateway.calls == []
    assert len(repository.finalized) == 1


def test_link_only_submission_uses_fetched_text(
    item_repository: ItemRepository,
    fake_gateway: FakeGenerationGateway,
) -> None:
    fetcher = FakeTweetFetcher(text="The fetched post body")
    service = _service(item_repository, fake_gateway, fetcher)

    item_id = asyncio.run(
        service.create_and_analyze(
            original_text="https://x.com/abc/status/123",
            category="news",
        )
    )

    item = item_repository.get_item(item_id)
    assert item is not None
    assert item.news_data is not None
    assert fake_gateway.calls == [("news", "The fetched post body")]


def test_gateway_failure_message_is_recorded(
    item_repository: ItemRepository,
    fake_gateway: FakeGenerationGateway,
    fake_fetcher: FakeTweetFetcher,
) -> None:
    fake_gateway.failure = GenerationError("rate limited")
    repository = _CountingRepository(item_repository)
    service = _service(repository, fake_gateway, fake_fetcher)

    item_id = asyncio.run(
        service.create_and_analyze(original_text="Some news", category="news")
    )

    item = repository.get_item(item_id)
    assert item is not None
    assert item.is_loading is False
    assert item.error == "rate limited"
    assert item.result is None
    assert len(repository.finalized) == 1


def test_failure_without_message_uses_generic_text(
    item_repository: ItemRepository,
    fake_fetcher: FakeTweetFetcher,
) -> None:
    service = _service(item_repository, _EmptyTextGateway(), fake_fetcher)

    item_id = asyncio.run(service.create_and_analyze(original_text="x", category="news"))

    item = item_repository.get_item(item_id)
    assert item is not None
    assert item.error == GENERIC_FAILURE_MESSAGE


def test_explicit_tweet_url_wins_over_embedded_link(
    item_repository: ItemRepository,
    fake_gateway: FakeGenerationGateway,
    fake_fetcher: FakeTweetFetcher,
) -> None:
    service = _service(item_repository, fake_gateway, fake_fetcher)

    submission = service.prepare(
        original_text="Read https://x.com/abc/status/1",
        category=" News ",
        tweet_url="https://x.com/other/status/2",
    )

    assert submission.category == "news"
    assert submission.tweet_url == "https://x.com/other/status/2"
    assert submission.cleaned_text == "Read https://x.com/abc/status/1"


def test_blank_text_with_explicit_link_is_accepted(
    item_repository: ItemRepository,
    fake_gateway: FakeGenerationGateway,
    fake_fetcher: FakeTweetFetcher,
) -> None:
    service = _service(item_repository, fake_gateway, fake_fetcher)

    submission = service.prepare(
        original_text="",
        category="learning",
        tweet_url="https://x.com/abc/status/1",
    )

    assert submission.cleaned_text == ""
    assert submission.tweet_url == "https://x.com/abc/status/1"


def test_unknown_category_is_rejected(
    item_repository: ItemRepository,
    fake_gateway: FakeGenerationGateway,
    fake_fetcher: FakeTweetFetcher,
) -> None:
    service = _service(item_repository, fake_gateway, fake_fetcher)

    with pytest.raises(ValueError):
        service.prepare(original_text="text", category="recipes")


def test_finalize_store_failure_leaves_item_loading(
    item_repository: ItemRepository,
    fake_gateway: FakeGenerationGateway,
    fake_fetcher: FakeTweetFetcher,
) -> None:
    repository = _CountingRepository(item_repository)
    repository.finalize_error = StoreError("disk I/O error")
    sink = _CaptureSink()
    service = _service(
        repository,
        fake_gateway,
        fake_fetcher,
        telemetry=TelemetryClient(sink=sink),
    )
    submission = service.prepare(original_text="text", category="inspiration")

    async def _run() -> tuple[str, Any]:
        item_id = await service.draft(submission)
        outcome = await service.complete(item_id, submission)
        return item_id, outcome

    item_id, outcome = asyncio.run(_run())

    assert outcome.finalized is False
    assert len(repository.finalized) == 1
    item = repository.get_item(item_id)
    assert item is not None
    assert item.is_loading is True
    assert [name for name, _ in sink.events] == ["item.draft.created", "item.finalize.failed"]


def test_complete_does_not_raise_when_finalize_fails_unexpectedly(
    item_repository: ItemRepository,
    fake_gateway: FakeGenerationGateway,
    fake_fetcher: FakeTweetFetcher,
) -> None:
    repository = _CountingRepository(item_repository)
    repository.finalize_error = RuntimeError("connection pool exhausted")
    sink = _CaptureSink()
    service = _service(
        repository,
        fake_gateway,
        fake_fetcher,
        telemetry=TelemetryClient(sink=sink),
    )
    submission = service.prepare(original_text="text", category="news")

    async def _run() -> Any:
        item_id = await service.draft(submission)
        return await service.complete(item_id, submission)

    outcome = asyncio.run(_run())

    assert outcome.finalized is False
    assert outcome.succeeded is False
    assert len(repository.finalized) == 1
    event_name, attributes = sink.events[-1]
    assert event_name == "item.finalize.failed"
    assert attributes["error_type"] == "RuntimeError"


def test_lifecycle_emits_draft_and_finalize_events(
    item_repository: ItemRepository,
    fake_gateway: FakeGenerationGateway,
    fake_fetcher: FakeTweetFetcher,
) -> None:
    sink = _CaptureSink()
    service = _service(
        item_repository,
        fake_gateway,
        fake_fetcher,
        telemetry=TelemetryClient(sink=sink),
    )

    item_id = asyncio.run(
        service.create_and_analyze(original_text="secret text", category="learning")
    )

    assert [name for name, _ in sink.events] == ["item.draft.created", "item.finalized"]
    _, finalized = sink.events[1]
    assert finalized["item_id"] == item_id
    assert finalized["outcome"] == "success"
    assert all("secret text" not in str(attributes) for _, attributes in sink.events)


def test_concurrent_submissions_each_finalize_once(
    item_repository: ItemRepository,
    fake_gateway: FakeGenerationGateway,
    fake_fetcher: FakeTweetFetcher,
) -> None:
    repository = _CountingRepository(item_repository)
    service = _service(repository, fake_gateway, fake_fetcher)

    async def _run() -> list[str]:
        return list(
            await asyncio.gather(
                *(
                    service.create_and_analyze(
                        original_text=f"Post number {index}",
                        category=("learning", "news", "inspiration")[index % 3],
                    )
                    for index in range(9)
                )
            )
        )

    item_ids = asyncio.run(_run())

    assert len(set(item_ids)) == 9
    assert repository.drafts == 9
    assert sorted(item_id for item_id, _ in repository.finalized) == sorted(item_ids)
    assert item_repository.counts() == {"learning": 3, "news": 3, "inspiration": 3}
    for item_id in item_ids:
        item = item_repository.get_item(item_id)
        assert item is not None
        assert item.is_loading is False
        assert item.error is None
