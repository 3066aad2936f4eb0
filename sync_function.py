"""Handler that syncs the calendars of stored Office 365 accounts."""
import json
import logging
import os
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

from config import load_config
from processor.errors import ReauthFailed, SyncAborted
from processor.models import SyncOptions
from storage.account_store import DynamoDBAccountStore
from sync.office_strategy import OfficeStrategy


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body)}


def _error_response(status_code: int, message: str, error: Exception,
                    start_time: float) -> Dict[str, Any]:
    return _response(status_code, {
        'message': message,
        'error': str(error),
        'error_type': type(error).__name__,
        'duration_seconds': round(time.time() - start_time, 2)
    })


def _parse_flag(value: Any, default: bool) -> bool:
    """Read a boolean payload field, accepting "true"/"false" strings."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ('true', '1', 'yes'):
            return True
        if lowered in ('false', '0', 'no'):
            return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def _parse_days(value: Any) -> int:
    days = int(value)
    if days < 1:
        raise ValueError(f"days_ahead must be at least 1, got {days}")
    return days


def _sync_all(strategy: OfficeStrategy, store: DynamoDBAccountStore,
              window_start: datetime, window_end: datetime,
              options: SyncOptions, logger: logging.Logger) -> List[Dict[str, Any]]:
    """
    Sync every stored account, continuing past per-account failures.

    Returns:
        One summary dict per account
    """
    summaries = []

    for account in store.list_accounts():
        try:
            result = strategy.get_calendar_view(window_start, window_end, account, options)
        except (ReauthFailed, SyncAborted) as e:
            logger.error(
                f"Sync failed for {account.username}: {e}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            summaries.append({
                'username': account.username,
                'status': 'failed',
                'error': str(e),
                'error_type': type(e).__name__
            })
            continue

        summaries.append({
            'username': account.username,
            'status': 'synced',
            'events_fetched': len(result.events),
            'pages_fetched': result.pages_fetched,
            'has_delta_token': result.delta_token is not None
        })

    return summaries


def sync_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Sync one account's calendar view, or every stored account.

    Args:
        event: Payload with optional ``username``, ``days_ahead``,
            ``use_delta`` and ``track_changes``. Without ``username`` every
            stored account is synced and only per-account summaries are
            returned.
        context: Invocation context (unused)

    Returns:
        Response dict with statusCode and a JSON body
    """
    table_name = os.environ.get('TABLE_NAME', 'calendar-sync-accounts')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    username = event.get('username')

    try:
        days_ahead = _parse_days(event.get('days_ahead') or os.environ.get('DAYS_AHEAD', '30'))
        options = SyncOptions(
            use_delta=_parse_flag(event.get('use_delta'), True),
            track_changes=_parse_flag(event.get('track_changes'), True)
        )
    except (TypeError, ValueError) as e:
        logger.warning(f"Rejected sync payload: {e}")
        return _response(400, {'message': 'Invalid sync payload', 'error': str(e)})

    logger.info(
        "Sync execution started",
        extra={'table_name': table_name, 'days_ahead': days_ahead}
    )

    try:
        config = load_config()
        store = DynamoDBAccountStore(table_name=table_name)
        strategy = OfficeStrategy(config, store)

        window_start = datetime.now(timezone.utc)
        window_end = window_start + timedelta(days=days_ahead)

        if not username:
            summaries = _sync_all(strategy, store, window_start, window_end, options, logger)
            failed = sum(1 for s in summaries if s['status'] == 'failed')
            duration = time.time() - start_time
            logger.info(
                "Sync execution completed for all accounts",
                extra={'accounts': len(summaries), 'failed': failed}
            )
            return _response(200, {
                'message': 'Sync completed',
                'statistics': {
                    'accounts': len(summaries),
                    'failed': failed,
                    'duration_seconds': round(duration, 2)
                },
                'accounts': summaries
            })

        account = store.get(username)
        if account is None:
            logger.warning(f"No account stored for {username}")
            return _response(404, {'message': f"Unknown account {username}"})

        try:
            logger.info("Fetching calendar view")
            result = strategy.get_calendar_view(window_start, window_end, account, options)
        except ReauthFailed as e:
            logger.error(
                f"Reauthentication failed for {username}: {e}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            return _error_response(401, 'Account needs to sign in again', e, start_time)
        except SyncAborted as e:
            logger.error(
                f"Sync aborted for {username}: {e}",
                extra={'error_type': type(e).__name__, 'status_code': e.status_code},
                exc_info=True
            )
            return _error_response(502, 'Calendar provider error', e, start_time)

        duration = time.time() - start_time
        logger.info(
            "Sync execution completed successfully",
            extra={
                'duration_seconds': round(duration, 2),
                'events_fetched': len(result.events),
                'pages_fetched': result.pages_fetched
            }
        )

        return _response(200, {
            'message': 'Sync completed successfully',
            'statistics': {
                'events_fetched': len(result.events),
                'pages_fetched': result.pages_fetched,
                'reauthentications': result.reauthentications,
                'resets': result.resets,
                'has_delta_token': result.delta_token is not None,
                'duration_seconds': round(duration, 2)
            },
            'events': [e.to_record() for e in result.events]
        })

    except Exception as e:
        logger.error(
            f"Sync execution failed: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return _error_response(500, 'Sync failed', e, start_time)
