from __future__ import annotations

import logging
from dataclasses import dataclass

from tweetmind.repositories.item_repository import ItemRepository
from tweetmind.telemetry import TelemetryClient

LOGGER = logging.getLogger("tweetmind.maintenance_sweep")

RETIRED_PROVIDER_MARKERS: tuple[str, ...] = (
    "gemini",
    "generativelanguage.googleapis.com",
)


@dataclass(frozen=True)
class SweepResult:
    cleaned: int
    item_ids: tuple[str, ...]


def is_retired_provider_error(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in RETIRED_PROVIDER_MARKERS)


def is_retired_temperature_error(message: str) -> bool:
    # All four conditions are required; "0.7" alone shows up in unrelated errors.
    lowered = message.lower()
    return (
        "temperature" in lowered
        and ("does not support" in lowered or "unsupported value" in lowered)
        and "0.7" in lowered
        and ("with this model" in lowered or "only the default" in lowered)
    )


def is_obsolete_error(message: str) -> bool:
    return is_retired_provider_error(message) or is_retired_temperature_error(message)


class MaintenanceSweep:
    """Clears error markers left behind by retired generation backends.

    Cleared items keep `is_loading=False` and no data, so they read as
    successes without a result. Items whose error does not match are untouched,
    which makes repeated runs a no-op.
    """

    def __init__(
        self,
        *,
        item_repository: ItemRepository,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._item_repository = item_repository
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()

    def run(self) -> SweepResult:
        cleared = self._item_repository.clear_matching_errors(is_obsolete_error)
        LOGGER.info("maintenance sweep finished cleaned=%s", len(cleared))
        self._telemetry.emit("item.sweep.completed", cleaned=len(cleared))
        return SweepResult(cleaned=len(cleared), item_ids=tuple(cleared))
