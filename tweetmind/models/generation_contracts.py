from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter
from pydantic.alias_generators import to_camel

Category = Literal["learning", "news", "inspiration"]
CATEGORIES: tuple[Category, ...] = ("learning", "news", "inspiration")
LEARNING_STEP_COUNT = 4

NonEmptyText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class LearningStep(_CamelModel):
    step_number: int
    concept: str
    explanation: str
    analogy: str


class SimilarLink(_CamelModel):
    title: str
    url: str


class NewsData(_CamelModel):
    summary: str
    key_points: list[NonEmptyText]
    similar_links: list[SimilarLink]


class InspirationData(_CamelModel):
    tags: list[NonEmptyText]
    context_analysis: str
    suggested_tweet: str


class LearningResult(_CamelModel):
    category: Literal["learning"] = "learning"
    data: list[LearningStep] = Field(
        min_length=LEARNING_STEP_COUNT,
        max_length=LEARNING_STEP_COUNT,
    )


class NewsResult(_CamelModel):
    category: Literal["news"] = "news"
    data: NewsData


class InspirationResult(_CamelModel):
    category: Literal["inspiration"] = "inspiration"
    data: InspirationData


CategoryResult = Annotated[
    LearningResult | NewsResult | InspirationResult,
    Field(discriminator="category"),
]

_CATEGORY_RESULT_ADAPTER: TypeAdapter[LearningResult | NewsResult | InspirationResult] = (
    TypeAdapter(CategoryResult)
)


def build_category_result(
    category: str,
    data: Any,
) -> LearningResult | NewsResult | InspirationResult:
    """Validate raw category data and bind it to its category.

    Raises `pydantic.ValidationError` when the data does not have the shape the
    category requires.
    """
    return _CATEGORY_RESULT_ADAPTER.validate_python({"category": category, "data": data})


def result_payload(result: LearningResult | NewsResult | InspirationResult) -> Any:
    """JSON-ready camelCase rendering of the result's data field."""
    return result.model_dump(mode="json", by_alias=True)["data"]
