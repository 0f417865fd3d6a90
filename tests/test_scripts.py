from __future__ import annotations

import json
from pathlib import Path

import pytest

from tweetmind.config import load_settings
from tweetmind.repositories.database import Database
from tweetmind.repositories.item_repository import FinalizeFailure, ItemRepository
from tweetmind.scripts import cleanup_errors, export_openapi


def _seed_repository() -> ItemRepository:
    db = Database(load_settings(validate_generation_secrets=False).db_path)
    db.initialize()
    return ItemRepository(db)


def test_cleanup_errors_script_reports_cleaned_items(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("TWEETMIND_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("TWEETMIND_OPENAI_API_KEY", raising=False)
    repository = _seed_repository()
    item_id = repository.create_draft(original_text="x", tweet_url=None, category="learning")
    repository.finalize(
        item_id,
        FinalizeFailure(
            error="Unsupported value: 'temperature' does not support 0.7 with this model"
        ),
    )

    exit_code = cleanup_errors.main(["--verbose"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "Cleanup completed. Cleaned 1 item(s)." in output
    assert f"- {item_id}" in output


def test_cleanup_errors_script_with_nothing_to_clean(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("TWEETMIND_DATA_DIR", str(tmp_path))

    exit_code = cleanup_errors.main([])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "No old errors found to clean up." in output


def test_export_openapi_writes_schema(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.chdir(tmp_path)

    export_openapi.main()

    schema = json.loads((tmp_path / "openapi" / "openapi.json").read_text(encoding="utf-8"))
    assert schema["info"]["title"] == "TweetMind API"
    assert "/items" in schema["paths"]
    assert "/items/changes" in schema["paths"]
    assert "/maintenance/cleanup-errors" in schema["paths"]
