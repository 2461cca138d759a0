"""CLI commands for inventory store maintenance."""

import argparse
import logging
import sys
from typing import NoReturn

from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

from inventory.config import Settings
from inventory.database import (
    SCHEMA_VERSION,
    InventoryDatabase,
    check_db_connection,
    create_database_engine,
    get_schema_version,
    upgrade_database,
)
from inventory.exceptions import ConfigurationError
from inventory.models.item import Item

LIST_TIMEOUT_SECONDS = 10.0


def sample_items() -> list[Item]:
    return [
        Item(item_name="Apple", item_price=0.45, quantity_in_stock=120),
        Item(item_name="Banana", item_price=0.25, quantity_in_stock=80),
        Item(item_name="Cherry tomatoes", item_price=2.99, quantity_in_stock=15),
        Item(item_name="Dish soap", item_price=3.49, quantity_in_stock=24),
        Item(item_name="Eggs (dozen)", item_price=4.10, quantity_in_stock=30),
    ]


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="inventory store CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    upgrade_parser = subparsers.add_parser(
        "upgrade-db",
        help="Create the item store or rebuild it when its schema version is stale",
    )
    upgrade_parser.add_argument("--recreate", action="store_true")
    upgrade_parser.add_argument("--yes-i-am-sure", action="store_true")

    load_test_data_parser = subparsers.add_parser(
        "load-test-data",
        help="Recreate the item store and load fixed sample items",
    )
    load_test_data_parser.add_argument("--yes-i-am-sure", action="store_true")

    subparsers.add_parser("list-items", help="Print all items ordered by name")

    return parser


def handle_upgrade_db(
    settings: Settings, recreate: bool = False, confirmed: bool = False
) -> None:
    engine = create_database_engine(settings)
    try:
        if not check_db_connection(engine):
            print("Cannot connect to database.", file=sys.stderr)
            sys.exit(1)

        print(f"Using database: {settings.database_url}")

        if recreate and not confirmed:
            print("--recreate requires --yes-i-am-sure flag", file=sys.stderr)
            sys.exit(1)

        print(f"Current schema version: {get_schema_version(engine)}")

        try:
            rebuilt = upgrade_database(engine, recreate=recreate)
        except SQLAlchemyError as e:
            print(f"Schema upgrade failed: {e}", file=sys.stderr)
            sys.exit(1)

        if rebuilt:
            print(f"Schema created at version {SCHEMA_VERSION}")
        else:
            print("Database is up to date.")
    finally:
        engine.dispose()


def handle_load_test_data(settings: Settings, confirmed: bool = False) -> None:
    print(f"Using database: {settings.database_url}")

    if not confirmed:
        print("--yes-i-am-sure flag is required", file=sys.stderr)
        sys.exit(1)

    engine = create_database_engine(settings)
    database = InventoryDatabase(engine, settings.query_max_workers)
    try:
        print("Recreating database from scratch...")
        upgrade_database(engine, recreate=True)

        item_dao = database.item_dao()
        items = sample_items()
        for item in items:
            item_dao.insert(item)

        print(f"Loaded {len(items)} sample item(s)")
    except SQLAlchemyError as e:
        print(f"Failed to load test data: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        database.close()


def handle_list_items(settings: Settings) -> None:
    database = InventoryDatabase.open(settings)
    try:
        items = database.item_dao().get_items().first(timeout=LIST_TIMEOUT_SECONDS)
    except TimeoutError:
        print("Timed out reading items", file=sys.stderr)
        sys.exit(1)
    finally:
        database.close()

    if not items:
        print("No items.")
        return

    for item in items:
        print(
            f"{item.id:>5}  {item.item_name:<30} "
            f"{item.item_price:>10.2f} {item.quantity_in_stock:>8}"
        )


def main() -> NoReturn:
    load_dotenv()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    settings = Settings.load()
    try:
        settings.validate_config()
    except ConfigurationError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    if args.command == "upgrade-db":
        handle_upgrade_db(
            settings=settings,
            recreate=args.recreate,
            confirmed=args.yes_i_am_sure,
        )
    elif args.command == "load-test-data":
        handle_load_test_data(
            settings=settings,
            confirmed=args.yes_i_am_sure,
        )
    elif args.command == "list-items":
        handle_list_items(settings=settings)
    else:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
