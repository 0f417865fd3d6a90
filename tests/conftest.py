from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from tweetmind import dependencies
from tweetmind.config import AppSettings
from tweetmind.dependencies import reset_cached_dependencies
from tweetmind.main import create_app
from tweetmind.models.generation_contracts import (
    InspirationData,
    LearningStep,
    NewsData,
    SimilarLink,
)
from tweetmind.repositories.database import Database
from tweetmind.repositories.item_repository import ItemRepository


class FakeGenerationGateway:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.failure: Exception | None = None

    def generate_learning_path(self, text: str) -> list[LearningStep]:
        self._record("learning", text)
        return [
            LearningStep(
                step_number=number,
                concept=f"Concept {number}",
                explanation=f"Explanation {number}",
                analogy=f"Analogy {number}",
            )
            for number in range(1, 5)
        ]

    def generate_news_analysis(self, text: str) -> NewsData:
        self._record("news", text)
        return NewsData(
            summary="A short briefing.",
            key_points=["First point", "Second point", "Third point"],
            similar_links=[SimilarLink(title="Related story", url="#")],
        )

    def generate_inspiration(self, text: str) -> InspirationData:
        self._record("inspiration", text)
        return InspirationData(
            tags=["Focus", "Craft"],
            context_analysis="It speaks to quiet persistence.",
            suggested_tweet="Small steps, every day. #build",
        )

    def _record(self, operation: str, text: str) -> None:
        self.calls.append((operation, text))
        if self.failure is not None:
            raise self.failure


class FakeTweetFetcher:
    def __init__(self, text: str = "") -> None:
        self.text = text
        self.calls: list[str] = []

    def fetch_text(self, tweet_url: str) -> str:
        self.calls.append(tweet_url)
        return self.text


@pytest.fixture
def fake_gateway() -> FakeGenerationGateway:
    return FakeGenerationGateway()


@pytest.fixture
def fake_fetcher() -> FakeTweetFetcher:
    return FakeTweetFetcher()


@pytest.fixture
def item_repository(tmp_path: Path) -> ItemRepository:
    db = Database(tmp_path / "library.db")
    db.initialize()
    return ItemRepository(db)


@pytest.fixture
def runtime_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_dir = tmp_path / "runtime-data"
    data_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("TWEETMIND_DATA_DIR", str(data_dir))
    monkeypatch.setenv("TWEETMIND_OPENAI_API_KEY", "test-openai-key")
    monkeypatch.setenv("TWEETMIND_LIVE_POLL_INTERVAL_SECONDS", "0.01")
    monkeypatch.setenv("TWEETMIND_LIVE_POLL_MAX_WAIT_SECONDS", "1")
    return data_dir


@pytest.fixture
def client(
    runtime_env: Path,
    monkeypatch: pytest.MonkeyPatch,
    fake_gateway: FakeGenerationGateway,
    fake_fetcher: FakeTweetFetcher,
) -> Iterator[TestClient]:
    def _build_gateway(settings: AppSettings) -> FakeGenerationGateway:
        _ = settings
        return fake_gateway

    def _build_fetcher(settings: AppSettings) -> FakeTweetFetcher:
        _ = settings
        return fake_fetcher

    monkeypatch.setattr(dependencies, "build_generation_gateway", _build_gateway)
    monkeypatch.setattr(dependencies, "build_tweet_fetcher", _build_fetcher)
    reset_cached_dependencies()

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client

    reset_cached_dependencies()
