from __future__ import annotations

from functools import lru_cache

from tweetmind.config import AppSettings, load_settings
from tweetmind.repositories.database import Database
from tweetmind.repositories.item_repository import ItemRepository
from tweetmind.services.content_resolver import ContentResolver
from tweetmind.services.generation_gateway import GenerationGateway, OpenAIGenerationGateway
from tweetmind.services.item_lifecycle_service import ItemLifecycleService
from tweetmind.services.maintenance_sweep import MaintenanceSweep
from tweetmind.services.tweet_fetcher import (
    DisabledTweetFetcher,
    OEmbedTweetFetcher,
    TweetTextFetcher,
)
from tweetmind.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_database() -> Database:
    database = Database(get_settings().db_path)
    database.initialize()
    return database


@lru_cache(maxsize=1)
def get_item_repository() -> ItemRepository:
    return ItemRepository(get_database())


@lru_cache(maxsize=1)
def get_generation_gateway() -> GenerationGateway:
    return build_generation_gateway(get_settings())


@lru_cache(maxsize=1)
def get_tweet_fetcher() -> TweetTextFetcher:
    return build_tweet_fetcher(get_settings())


def build_generation_gateway(settings: AppSettings) -> GenerationGateway:
    if settings.openai_api_key is None:
        raise ValueError("TWEETMIND_OPENAI_API_KEY is required to generate item analyses.")
    return OpenAIGenerationGateway(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        model=settings.openai_model,
        temperature=settings.openai_temperature,
        timeout_seconds=settings.generation_timeout_seconds,
    )


def build_tweet_fetcher(settings: AppSettings) -> TweetTextFetcher:
    if not settings.tweet_fetch_enabled:
        return DisabledTweetFetcher()
    return OEmbedTweetFetcher(
        oembed_url=settings.tweet_oembed_url,
        timeout_seconds=settings.fetch_timeout_seconds,
        user_agent=settings.user_agent,
    )


@lru_cache(maxsize=1)
def get_item_lifecycle_service() -> ItemLifecycleService:
    return ItemLifecycleService(
        item_repository=get_item_repository(),
        gateway=get_generation_gateway(),
        content_resolver=ContentResolver(get_tweet_fetcher()),
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_maintenance_sweep() -> MaintenanceSweep:
    return MaintenanceSweep(
        item_repository=get_item_repository(),
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    return build_telemetry_client(get_settings())


def reset_cached_dependencies() -> None:
    get_item_lifecycle_service.cache_clear()
    get_maintenance_sweep.cache_clear()
    get_generation_gateway.cache_clear()
    get_tweet_fetcher.cache_clear()
    get_item_repository.cache_clear()
    get_database.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
