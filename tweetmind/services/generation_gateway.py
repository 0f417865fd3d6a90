from __future__ import annotations

import json
import logging
import re
from typing import Any, Protocol, cast
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from pydantic import BaseModel, ConfigDict, ValidationError

from tweetmind.errors import GenerationError, MalformedResponseError
from tweetmind.models.generation_contracts import (
    Category,
    InspirationData,
    InspirationResult,
    LearningResult,
    LearningStep,
    NewsData,
    NewsResult,
    build_category_result,
)

LOGGER = logging.getLogger("tweetmind.generation_gateway")

_FENCED_JSON_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_MAX_ERROR_BODY_CHARS = 500

LEARNING_PROMPT = """You are an expert educator using the Feynman Technique. Break down the following content into a 4-step learning path. Return ONLY valid JSON in this exact format:
{{
  "steps": [
    {{ "stepNumber": 1, "concept": "Concept name", "explanation": "Clear explanation", "analogy": "Memorable analogy" }},
    {{ "stepNumber": 2, "concept": "Concept name", "explanation": "Clear explanation", "analogy": "Memorable analogy" }},
    {{ "stepNumber": 3, "concept": "Concept name", "explanation": "Clear explanation", "analogy": "Memorable analogy" }},
    {{ "stepNumber": 4, "concept": "Concept name", "explanation": "Clear explanation", "analogy": "Memorable analogy" }}
  ]
}}

The 4 steps must follow the Feynman Technique:
1. Deconstruct the source content into fundamental assertions.
2. Explain it simply (a 12-year-old should understand).
3. Identify gaps and address missing context.
4. Re-assemble the ideas with narrative + analogies tying to the subject(s) mentioned in the post.

Content to analyze:
"{text}"

Return ONLY the JSON."""

NEWS_PROMPT = """You are a news analyst. Convert the content below into a briefing. Return ONLY valid JSON:
{{
  "summary": "2-3 sentence summary",
  "keyPoints": ["Key point 1", "Key point 2", "Key point 3"],
  "similarLinks": [
    {{ "title": "Related article title 1", "url": "#" }},
    {{ "title": "Related article title 2", "url": "#" }},
    {{ "title": "Related article title 3", "url": "#" }}
  ]
}}

Provide 3-5 key points and 3 similar links (use "#" if real URLs are unavailable).

Content:
"{text}"
"""

INSPIRATION_PROMPT = """You are a creative content strategist. Analyze the following content and provide inspiration insights. Return ONLY valid JSON:
{{
  "tags": ["Tag1", "Tag2", "Tag3"],
  "contextAnalysis": "Why this resonates",
  "suggestedTweet": "Creative post capturing the essence (<=280 chars, include relevant emojis and hashtags)"
}}

Tags should be 2-4 relevant categories. Context analysis should describe the emotional/psychological hooks. Suggested post must be original.

Content:
"{text}"
"""


class GenerationGateway(Protocol):
    def generate_learning_path(self, text: str) -> list[LearningStep]:
        ...

    def generate_news_analysis(self, text: str) -> NewsData:
        ...

    def generate_inspiration(self, text: str) -> InspirationData:
        ...


def generate_for_category(
    gateway: GenerationGateway,
    category: Category,
    text: str,
) -> LearningResult | NewsResult | InspirationResult:
    """Dispatch to the gateway operation matching `category`."""
    if category == "learning":
        return LearningResult(data=gateway.generate_learning_path(text))
    if category == "news":
        return NewsResult(data=gateway.generate_news_analysis(text))
    return InspirationResult(data=gateway.generate_inspiration(text))


class _ChatMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    content: str | None = None


class _ChatChoice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: _ChatMessage


class _ChatCompletionResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    choices: list[_ChatChoice]

    def first_content(self) -> str:
        if not self.choices:
            return ""
        return self.choices[0].message.content or ""


class OpenAIGenerationGateway:
    """Chat-completions backed gateway, configured once at process start."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-5-mini",
        temperature: float | None = None,
        timeout_seconds: float = 60.0,
    ) -> None:
        if not api_key.strip():
            raise ValueError("OpenAI API key must not be empty")
        self._api_key = api_key.strip()
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._temperature = temperature
        self._timeout_seconds = max(1.0, timeout_seconds)

    @property
    def model(self) -> str:
        return self._model

    def generate_learning_path(self, text: str) -> list[LearningStep]:
        parsed = self._generate_json(LEARNING_PROMPT.format(text=text))
        steps = parsed.get("steps") if isinstance(parsed, dict) else None
        result = cast(LearningResult, _validate_result("learning", steps))
        return list(result.data)

    def generate_news_analysis(self, text: str) -> NewsData:
        result = cast(
            NewsResult,
            _validate_result("news", self._generate_json(NEWS_PROMPT.format(text=text))),
        )
        return result.data

    def generate_inspiration(self, text: str) -> InspirationData:
        result = cast(
            InspirationResult,
            _validate_result(
                "inspiration",
                self._generate_json(INSPIRATION_PROMPT.format(text=text)),
            ),
        )
        return result.data

    def _generate_json(self, prompt: str) -> Any:
        raw = self._complete(prompt)
        if not raw.strip():
            raise MalformedResponseError("No response text received from OpenAI.")
        return parse_json_response(raw)

    def _complete(self, prompt: str) -> str:
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "response_format": {"type": "json_object"},
        }
        if self._temperature is not None:
            payload["temperature"] = self._temperature

        response_text = self._post_chat_completion(payload)
        try:
            response = _ChatCompletionResponse.model_validate_json(response_text)
        except ValidationError as exc:
            raise MalformedResponseError(
                "OpenAI response did not match the chat completion format."
            ) from exc
        return response.first_content()

    def _post_chat_completion(self, payload: dict[str, Any]) -> str:
        request = Request(
            f"{self._base_url}/chat/completions",
            data=json.dumps(payload, ensure_ascii=True).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
            },
            method="POST",
        )
        try:
            with urlopen(request, timeout=self._timeout_seconds) as response:
                return response.read().decode("utf-8", errors="replace")
        except HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace")[:_MAX_ERROR_BODY_CHARS]
            LOGGER.warning(
                "openai request rejected http_status=%s model=%s",
                exc.code,
                self._model,
            )
            raise GenerationError(f"OpenAI API error: {exc.code} {body}".strip()) from exc
        except (URLError, TimeoutError, OSError) as exc:
            LOGGER.warning(
                "openai request failed error_type=%s model=%s",
                type(exc).__name__,
                self._model,
            )
            raise GenerationError(f"OpenAI request failed: {type(exc).__name__}") from exc


def parse_json_response(text: str) -> Any:
    """Parse model output as JSON, directly or from inside a markdown code fence.

    The whole text is tried first, so backticks inside JSON string values never
    trigger fence extraction.
    """
    trimmed = text.strip()
    try:
        return json.loads(trimmed)
    except json.JSONDecodeError as exc:
        direct_error = exc

    fenced = _FENCED_JSON_PATTERN.search(trimmed)
    if fenced is None:
        raise MalformedResponseError(
            "OpenAI response could not be parsed as JSON."
        ) from direct_error
    try:
        return json.loads(fenced.group(1).strip())
    except json.JSONDecodeError as exc:
        raise MalformedResponseError("OpenAI response could not be parsed as JSON.") from exc


def _validate_result(
    category: Category,
    data: Any,
) -> LearningResult | NewsResult | InspirationResult:
    try:
        return build_category_result(category, data)
    except ValidationError as exc:
        raise MalformedResponseError(
            f"OpenAI response did not match the expected {category} format."
        ) from exc
