from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal, Protocol

import structlog

from tweetmind.config import AppSettings

TelemetryEvent = Literal[
    "item.draft.created",
    "item.finalized",
    "item.finalize.failed",
    "item.sweep.completed",
    "http.request.finish",
]
TelemetryValue = bool | int | float | str | None

TELEMETRY_LOGGER_NAME = "tweetmind.telemetry"
REDACTED = "[redacted]"

# Only identifiers, categories and counters leave the process. Submitted text, fetched post
# bodies, prompts and model output are never in this set.
_PASSTHROUGH_ATTRIBUTES: frozenset[str] = frozenset(
    {
        "category",
        "cleaned",
        "duration_ms",
        "error_type",
        "has_link",
        "item_id",
        "method",
        "outcome",
        "path",
        "request_id",
        "status_code",
    }
)
_MAX_VALUE_LENGTH = 120


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, TelemetryValue]) -> None:
        ...


class LogTelemetrySink:
    """Writes each event as one structlog record named after the event."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger(TELEMETRY_LOGGER_NAME)

    def emit(self, *, event_name: str, attributes: Mapping[str, TelemetryValue]) -> None:
        self._logger.info(event_name, **attributes)


@dataclass(frozen=True)
class TelemetryClient:
    sink: TelemetrySink | None = None

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls()

    @property
    def enabled(self) -> bool:
        return self.sink is not None

    def emit(self, event: TelemetryEvent, **attributes: Any) -> None:
        if self.sink is None:
            return
        self.sink.emit(event_name=event, attributes=scrub_attributes(attributes))


def build_telemetry_client(settings: AppSettings) -> TelemetryClient:
    if not settings.telemetry_enabled or settings.telemetry_sink == "none":
        return TelemetryClient.disabled()
    return TelemetryClient(sink=LogTelemetrySink())


def scrub_attributes(attributes: Mapping[str, Any]) -> dict[str, TelemetryValue]:
    """Keep known scalar attributes, replace everything else with a redaction marker."""
    scrubbed: dict[str, TelemetryValue] = {}
    for key, value in attributes.items():
        if key not in _PASSTHROUGH_ATTRIBUTES:
            scrubbed[key] = REDACTED
        elif value is None or isinstance(value, bool | int | float):
            scrubbed[key] = value
        elif isinstance(value, str):
            scrubbed[key] = value[:_MAX_VALUE_LENGTH]
        else:
            scrubbed[key] = type(value).__name__
    return scrubbed
