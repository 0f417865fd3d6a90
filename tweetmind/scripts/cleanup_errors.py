from __future__ import annotations

import argparse
import sys

from tweetmind.config import load_settings
from tweetmind.errors import StoreError
from tweetmind.repositories.database import Database
from tweetmind.repositories.item_repository import ItemRepository
from tweetmind.services.maintenance_sweep import MaintenanceSweep


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Clear error messages left by retired generation backends "
            "(old provider failures and unsupported-temperature errors)."
        ),
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print the id of every cleaned item.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = load_settings(validate_generation_secrets=False)
    database = Database(settings.db_path)

    print("Starting cleanup of old error messages...")
    print(f"Library database: {settings.db_path}")
    try:
        database.initialize()
        result = MaintenanceSweep(item_repository=ItemRepository(database)).run()
    except StoreError as exc:
        print(f"Error running cleanup: {exc}", file=sys.stderr)
        return 1

    print(f"Cleanup completed. Cleaned {result.cleaned} item(s).")
    if result.cleaned == 0:
        print("No old errors found to clean up.")
    elif args.verbose:
        for item_id in result.item_ids:
            print(f"- {item_id}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
