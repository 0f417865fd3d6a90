"""Command line entry point for TweetMind."""

from __future__ import annotations

import asyncio
from datetime import datetime

import click
from rich.console import Console
from rich.table import Table

from tweetmind.config import AppSettings, load_settings
from tweetmind.dependencies import build_generation_gateway, build_tweet_fetcher
from tweetmind.errors import MissingContentError, StoreError
from tweetmind.models.generation_contracts import CATEGORIES
from tweetmind.repositories.database import Database
from tweetmind.repositories.item_repository import ItemRecord, ItemRepository
from tweetmind.services.content_resolver import ContentResolver
from tweetmind.services.item_lifecycle_service import ItemLifecycleService
from tweetmind.services.maintenance_sweep import MaintenanceSweep

console = Console()

CATEGORY_CHOICE = click.Choice(list(CATEGORIES), case_sensitive=False)


def _open_repository(settings: AppSettings) -> ItemRepository:
    database = Database(settings.db_path)
    database.initialize()
    return ItemRepository(database)


def _format_created_at(created_at_millis: int) -> str:
    return datetime.fromtimestamp(created_at_millis / 1000).strftime("%b %d, %H:%M")


def _status_label(item: ItemRecord) -> str:
    if item.is_loading:
        return "[yellow]loading[/yellow]"
    if item.error is not None:
        return "[red]error[/red]"
    if item.result is None:
        return "[dim]no data[/dim]"
    return "[green]ready[/green]"


def _print_item(item: ItemRecord) -> None:
    console.print(f"[bold]{item.item_id}[/bold] ({item.category}) {_status_label(item)}")
    if item.tweet_url:
        console.print(f"Link: [cyan]{item.tweet_url}[/cyan]")
    if item.error is not None:
        console.print(f"[red]{item.error}[/red]")
        return

    if item.learning_data is not None:
        for step in item.learning_data:
            console.print(f"\n[bold]{step.step_number}. {step.concept}[/bold]")
            console.print(step.explanation)
            console.print(f"[italic]{step.analogy}[/italic]")
    elif item.news_data is not None:
        console.print(f"\n{item.news_data.summary}\n")
        for point in item.news_data.key_points:
            console.print(f"- {point}")
        for link in item.news_data.similar_links:
            console.print(f"[dim]{link.title} ({link.url})[/dim]")
    elif item.inspiration_data is not None:
        console.print(f"\nTags: {', '.join(item.inspiration_data.tags)}")
        console.print(item.inspiration_data.context_analysis)
        console.print(f"\n[bold]{item.inspiration_data.suggested_tweet}[/bold]")


@click.group()
@click.version_option(version="0.1.0")
def main() -> None:
    """TweetMind - turn posts and notes into learning paths, briefings and sparks."""


@main.command()
@click.argument("text")
@click.option("--category", "-c", type=CATEGORY_CHOICE, required=True)
@click.option("--tweet-url", default=None, help="Explicit post link (otherwise read from TEXT).")
def submit(text: str, category: str, tweet_url: str | None) -> None:
    """Analyze TEXT and store the result in the library."""
    settings = load_settings()
    repository = _open_repository(settings)
    service = ItemLifecycleService(
        item_repository=repository,
        gateway=build_generation_gateway(settings),
        content_resolver=ContentResolver(build_tweet_fetcher(settings)),
    )
    try:
        item_id = asyncio.run(
            service.create_and_analyze(
                original_text=text,
                category=category,
                tweet_url=tweet_url,
            )
        )
    except MissingContentError as exc:
        raise click.ClickException(str(exc)) from exc
    except StoreError as exc:
        raise click.ClickException(
            f"The item library is unavailable; the submission was not saved. ({exc})"
        ) from exc

    item = repository.get_item(item_id)
    if item is None:
        raise click.ClickException(f"Item disappeared before it could be shown: {item_id}")
    _print_item(item)


@main.command(name="list")
@click.argument("category", type=CATEGORY_CHOICE)
def list_items(category: str) -> None:
    """List items in CATEGORY, newest first."""
    repository = _open_repository(load_settings(validate_generation_secrets=False))
    items = repository.list_by_category(category.lower())  # type: ignore[arg-type]
    if not items:
        console.print(f"No {category.lower()} items yet.")
        return

    table = Table(title=f"{category.lower()} ({len(items)})")
    table.add_column("id")
    table.add_column("created")
    table.add_column("status")
    table.add_column("text")
    for item in items:
        preview = " ".join(item.original_text.split())
        table.add_row(
            item.item_id,
            _format_created_at(item.created_at),
            _status_label(item),
            preview[:60] + ("..." if len(preview) > 60 else ""),
        )
    console.print(table)


@main.command()
def counts() -> None:
    """Show how many items each category holds."""
    repository = _open_repository(load_settings(validate_generation_secrets=False))
    totals = repository.counts()
    for category in CATEGORIES:
        console.print(f"{category}: {totals[category]}")


@main.command()
@click.argument("item_id")
def delete(item_id: str) -> None:
    """Permanently delete an item."""
    repository = _open_repository(load_settings(validate_generation_secrets=False))
    if not repository.delete(item_id):
        raise click.ClickException(f"Item not found: {item_id}")
    console.print(f"Deleted {item_id}")


@main.command(name="cleanup-errors")
def cleanup_errors() -> None:
    """Clear error markers left by retired generation backends."""
    repository = _open_repository(load_settings(validate_generation_secrets=False))
    result = MaintenanceSweep(item_repository=repository).run()
    console.print(f"Cleaned {result.cleaned} item(s)")


if __name__ == "__main__":
    main()
