"""Command line interface for connecting and syncing Office 365 calendars."""
import argparse
import json
import logging
import os
from datetime import date, datetime, timedelta, timezone

from config import load_config
from processor.errors import CalendarSyncError
from processor.models import SyncOptions
from storage.account_store import DynamoDBAccountStore
from sync.office_strategy import OfficeStrategy
from sync_function import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync Office 365 calendars")
    parser.add_argument("--table", default=os.environ.get("TABLE_NAME", "calendar-sync-accounts"))
    parser.add_argument("--log-level", default=os.environ.get("LOG_LEVEL", "INFO"))
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("add-account", help="Sign in and store a new account")

    sync = commands.add_parser("sync", help="Fetch the calendar view of a stored account")
    sync.add_argument("username", help="Account email address")
    sync.add_argument("--start", type=str, default=None, help="Start date YYYY-MM-DD")
    sync.add_argument("--days", type=int, default=30, help="Number of days to fetch")
    sync.add_argument("--full", action="store_true", help="Ignore the stored delta token")
    sync.add_argument("--no-track", action="store_true", help="Do not request change tracking")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    store = DynamoDBAccountStore(table_name=args.table)
    strategy = OfficeStrategy(load_config(), store)

    try:
        if args.command == "add-account":
            account = strategy.add_account()
            print(account.username)
            return 0

        account = store.get(args.username)
        if account is None:
            logger.error(f"No account stored for {args.username}")
            return 1

        start_day = date.fromisoformat(args.start) if args.start else datetime.now(timezone.utc).date()
        start = datetime.combine(start_day, datetime.min.time(), tzinfo=timezone.utc)
        end = start + timedelta(days=args.days)
        options = SyncOptions(use_delta=not args.full, track_changes=not args.no_track)

        result = strategy.get_calendar_view(start, end, account, options)
    except CalendarSyncError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1

    print(json.dumps([event.to_record() for event in result.events], indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
