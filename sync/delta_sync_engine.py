"""Paginated, delta-token aware event fetching."""
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from processor.errors import ApiCallError, ReauthFailed, SyncAborted
from processor.event_normalizer import (
    EventNormalizer,
    is_deleted,
    is_occurrence,
    is_series_master,
)
from processor.models import Account, CanonicalEvent, SyncOptions, SyncResult
from provider.calendar_api import CalendarApiClient
from provider.delta_token import (
    DELTA_LINK_KEY,
    DELTA_TOKEN_MARKER,
    find_delta_token,
    is_valid_delta_token,
)

logger = logging.getLogger(__name__)

NEXT_LINK_KEY = '@odata.nextLink'


class SyncState(Enum):
    """States of one sync run."""
    FETCHING = 'fetching'
    REAUTHENTICATING = 'reauthenticating'
    RESETTING = 'resetting'
    DONE = 'done'


def with_delta_token(url: str, token: str) -> str:
    """Append a stored delta token to a calendar view URL."""
    separator = '&' if '?' in url else '?'
    return f"{url}{separator}{DELTA_TOKEN_MARKER}{token}"


class _FetchPass:
    """Scratch state owned by one pass over the provider's pages."""

    def __init__(self, normalizer: EventNormalizer):
        self.normalizer = normalizer
        self.events: List[CanonicalEvent] = []
        self.masters: Dict[str, Dict[str, Any]] = {}
        self.occurrences: List[Dict[str, Any]] = []
        self.deleted = 0

    def add_items(self, items: List[Dict[str, Any]]) -> None:
        for item in items:
            if is_deleted(item):
                self.deleted += 1
                continue
            if is_series_master(item):
                self.masters[item.get('Id')] = item
                continue
            if is_occurrence(item):
                self.occurrences.append(item)
                continue

            event = self.normalizer.try_make_event(item)
            if event:
                self.events.append(event)

    def finish(self) -> List[CanonicalEvent]:
        """Reconcile occurrences with their masters and return all events."""
        for occurrence in self.occurrences:
            event = self.normalizer.try_make_event_from_occurrence(
                occurrence, self.masters
            )
            if event:
                self.events.append(event)
        return self.events


class DeltaSyncEngine:
    """
    Fetches a calendar view page by page.

    Next links are followed until exhausted. When change tracking is
    requested, delta links are followed as well and the latest valid delta
    token is captured. A 401 triggers silent reauthentication and a retry of
    the same page; a 410 discards everything and restarts from the first
    page with change tracking on. Both recoveries are capped.
    """

    def __init__(
        self,
        api: CalendarApiClient,
        reauthenticate: Callable[[Account], str],
        normalizer: Optional[EventNormalizer] = None,
        max_reauthentications: int = 2,
        max_resets: int = 2,
        max_pages: int = 500
    ):
        """
        Initialize the engine.

        Args:
            api: Calendar API client
            reauthenticate: Callable that silently refreshes the account's
                token, stores it on the account and returns the new access
                token; raises ReauthFailed on failure
            normalizer: Event normalizer
            max_reauthentications: 401 recoveries allowed per run
            max_resets: 410 recoveries allowed per run
            max_pages: Pages fetched per run before giving up
        """
        self.api = api
        self.reauthenticate = reauthenticate
        self.normalizer = normalizer or EventNormalizer()
        self.max_reauthentications = max_reauthentications
        self.max_resets = max_resets
        self.max_pages = max_pages

    def fetch_events(self, url: str, account: Account, options: SyncOptions) -> SyncResult:
        """
        Run one sync for an account.

        Args:
            url: Calendar view URL without a delta token
            account: Account providing the access token and stored delta token
            options: Sync switches

        Returns:
            SyncResult with all events and the newest delta token

        Raises:
            ReauthFailed: If a 401 cannot be recovered by silent reauthentication
            SyncAborted: On any other API error or when a recovery cap is hit
        """
        stored_token = account.delta_token if is_valid_delta_token(account.delta_token) else None
        delta_token = stored_token

        request_url = url
        if options.use_delta and stored_token:
            request_url = with_delta_token(url, stored_token)

        token = account.access_token
        track_changes = options.track_changes
        follow_delta = options.track_changes
        fetch_pass = _FetchPass(self.normalizer)

        state = SyncState.FETCHING
        pages = 0
        reauthentications = 0
        resets = 0
        last_error: Optional[ApiCallError] = None

        while state is not SyncState.DONE:
            if state is SyncState.FETCHING:
                if pages >= self.max_pages:
                    raise SyncAborted(f"Gave up after {pages} pages")

                logger.info("Fetching events", extra={'page': pages + 1})
                try:
                    body = self.api.get(request_url, token, track_changes=track_changes)
                except ApiCallError as e:
                    last_error = e
                    if e.status_code == 401:
                        logger.info("Token probably expired, fetching new token")
                        state = SyncState.REAUTHENTICATING
                        continue
                    if e.status_code == 410:
                        logger.info("Sync state not found, refetching")
                        state = SyncState.RESETTING
                        continue

                    logger.error(f"Unknown error during api call: {e}")
                    raise SyncAborted(
                        f"Calendar sync aborted: {e}",
                        status_code=e.status_code,
                        response=e.response
                    ) from e

                pages += 1
                items = body.get('value') or []
                fetch_pass.add_items(items)

                next_link = body.get(NEXT_LINK_KEY)
                delta_link = body.get(DELTA_LINK_KEY)

                if next_link:
                    request_url = next_link
                    track_changes = False
                elif follow_delta and delta_link:
                    delta_token = find_delta_token(body) or delta_token
                    # An empty delta page means the provider has nothing newer
                    if items and delta_link != request_url:
                        request_url = delta_link
                        track_changes = True
                    else:
                        state = SyncState.DONE
                else:
                    state = SyncState.DONE

            elif state is SyncState.REAUTHENTICATING:
                if reauthentications >= self.max_reauthentications:
                    raise SyncAborted(
                        f"Still unauthorized after {reauthentications} reauthentications",
                        status_code=401,
                        response=last_error.response if last_error else None
                    )
                reauthentications += 1

                try:
                    token = self.reauthenticate(account)
                except ReauthFailed as e:
                    logger.error(f"Silent reauthentication failed: {e}")
                    raise

                state = SyncState.FETCHING

            elif state is SyncState.RESETTING:
                if resets >= self.max_resets:
                    raise SyncAborted(
                        f"Sync state still gone after {resets} resets",
                        status_code=410,
                        response=last_error.response if last_error else None
                    )
                resets += 1

                fetch_pass = _FetchPass(self.normalizer)
                delta_token = None
                request_url = url
                track_changes = True
                follow_delta = True
                state = SyncState.FETCHING

        events = fetch_pass.finish()
        logger.info(
            "Done fetching events",
            extra={
                'events': len(events),
                'deleted': fetch_pass.deleted,
                'pages': pages,
                'reauthentications': reauthentications,
                'resets': resets
            }
        )

        return SyncResult(
            events=events,
            delta_token=delta_token,
            pages_fetched=pages,
            reauthentications=reauthentications,
            resets=resets
        )
