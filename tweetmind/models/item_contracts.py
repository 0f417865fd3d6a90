from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from tweetmind.models.generation_contracts import (
    Category,
    InspirationData,
    LearningStep,
    NewsData,
)
from tweetmind.repositories.item_repository import ItemRecord


def _normalize_optional_text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if not normalized:
        return None
    return normalized


class _ApiModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ItemCreateRequest(_ApiModel):
    original_text: str = Field(max_length=10_000)
    category: Category
    tweet_url: str | None = Field(default=None, max_length=2048)

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("tweet_url", mode="before")
    @classmethod
    def _normalize_tweet_url(cls, value: object) -> str | None:
        return _normalize_optional_text(value)


class ItemCreateResponse(_ApiModel):
    id: str
    category: Category
    tweet_url: str | None = None
    is_loading: Literal[True] = True


class ItemView(_ApiModel):
    """Camel-cased item record; only the category's data field is ever set."""

    id: str
    original_text: str
    tweet_url: str | None = None
    category: Category
    created_at: int
    is_loading: bool
    error: str | None = None
    learning_data: list[LearningStep] | None = None
    news_data: NewsData | None = None
    inspiration_data: InspirationData | None = None

    @classmethod
    def from_record(cls, record: ItemRecord) -> ItemView:
        return cls(
            id=record.item_id,
            original_text=record.original_text,
            tweet_url=record.tweet_url,
            category=record.category,
            created_at=record.created_at,
            is_loading=record.is_loading,
            error=record.error,
            learning_data=record.learning_data,
            news_data=record.news_data,
            inspiration_data=record.inspiration_data,
        )


class ItemListResponse(_ApiModel):
    category: Category
    count: int
    items: list[ItemView]


class ItemCountsResponse(_ApiModel):
    learning: int
    news: int
    inspiration: int


class ItemDeleteResponse(_ApiModel):
    status: Literal["deleted"]
    id: str


class LibraryChangesResponse(_ApiModel):
    revision: int
    changed: bool


class CleanupErrorsResponse(_ApiModel):
    cleaned: int
