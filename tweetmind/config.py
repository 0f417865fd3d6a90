from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = ".tweetmind"
TELEMETRY_SINKS: frozenset[str] = frozenset({"none", "log"})
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (
    ("db_path", Path("library.db")),
    ("log_dir", Path("logs")),
)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = (
    "telemetry_enabled",
    "tweet_fetch_enabled",
)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{TWEETMIND_DATA_DIR}}/{relative_path}` when not explicitly set."


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _normalize_optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if normalized:
        return normalized
    return None


class AppSettings(BaseSettings):
    """
    Canonical runtime configuration.

    Every option is read from `TWEETMIND_*` environment variables (or `.env`);
    path options default to locations under `data_dir`.
    """

    model_config = SettingsConfigDict(
        env_prefix="TWEETMIND_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Core paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for the library database and logs.",
    )
    db_path: Path = Field(
        default=_default_in_data_dir(Path("library.db")),
        description=f"SQLite database path. {_data_dir_default_note(Path('library.db'))}",
    )

    # Generation gateway.
    openai_api_key: str | None = Field(
        default=None,
        description="API key for the OpenAI chat completions endpoint.",
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of the OpenAI-compatible API.",
    )
    openai_model: str = Field(
        default="gpt-5-mini",
        description="Model used for all three generation categories.",
    )
    openai_temperature: float | None = Field(
        default=None,
        description=(
            "Sampling temperature. Left unset the parameter is omitted, since some models "
            "only accept their default value."
        ),
    )
    generation_timeout_seconds: float = Field(
        default=60.0,
        description="HTTP timeout for a single generation request.",
    )

    # Link content fetching.
    tweet_fetch_enabled: bool = Field(
        default=True,
        description="Fetch post text through oEmbed when a submission carries only a link.",
    )
    tweet_oembed_url: str = Field(
        default="https://publish.twitter.com/oembed",
        description="oEmbed endpoint used to read the text of a linked post.",
    )
    fetch_timeout_seconds: float = Field(
        default=10.0,
        description="HTTP timeout for oEmbed requests.",
    )
    user_agent: str = Field(
        default="tweetmind/0.1",
        description="User-Agent sent with outbound fetch requests.",
    )

    # Live read path.
    live_poll_interval_seconds: float = Field(
        default=0.5,
        gt=0,
        description="How often a waiting `/items/changes` request re-checks the library revision.",
    )
    live_poll_max_wait_seconds: float = Field(
        default=25.0,
        gt=0,
        le=300,
        description="Upper bound for the `timeout_seconds` accepted by `/items/changes`.",
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for log files. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stdout).",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable lightweight internal telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description=(
            "Telemetry sink backend. `log` emits structured telemetry locally; "
            "`none` disables sink output."
        ),
    )

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("TWEETMIND_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in TELEMETRY_SINKS:
            return normalized
        raise ValueError("TWEETMIND_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("openai_base_url", "tweet_oembed_url", mode="before")
    @classmethod
    def _normalize_base_urls(cls, value: Any, info: ValidationInfo) -> str:
        env_name = f"TWEETMIND_{str(info.field_name).upper()}"
        if not isinstance(value, str):
            raise ValueError(f"{env_name} must be a string.")
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError(f"{env_name} must not be empty.")
        return normalized

    @field_validator("openai_model", "user_agent", mode="before")
    @classmethod
    def _normalize_required_strings(cls, value: Any, info: ValidationInfo) -> str:
        env_name = f"TWEETMIND_{str(info.field_name).upper()}"
        if not isinstance(value, str):
            raise ValueError(f"{env_name} must be a string.")
        normalized = value.strip()
        if not normalized:
            raise ValueError(f"{env_name} must not be empty.")
        return normalized

    @field_validator("openai_temperature", mode="before")
    @classmethod
    def _normalize_temperature(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)

    @field_validator("openai_api_key", mode="before")
    @classmethod
    def _normalize_optional_strings(cls, value: Any) -> str | None:
        return _normalize_optional_text(value)


def _validate_generation_configuration(*, openai_api_key: str | None) -> None:
    errors: list[str] = []

    if openai_api_key is None:
        errors.append("TWEETMIND_OPENAI_API_KEY is required to generate item analyses.")

    if errors:
        bullets = "\n".join(f"- {message}" for message in errors)
        raise ValueError(f"Invalid configuration for the generation gateway:\n{bullets}")


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings(*, validate_generation_secrets: bool = True) -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    settings = _resolve_path_fields(settings)

    if validate_generation_secrets:
        _validate_generation_configuration(openai_api_key=settings.openai_api_key)

    return settings
