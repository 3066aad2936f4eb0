"""HTTP client for the Office 365 calendar API."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from config import ApiConfig
from processor.errors import ApiCallError

logger = logging.getLogger(__name__)


def to_iso(value: datetime) -> str:
    """Render a window bound as an ISO 8601 UTC timestamp."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime('%Y-%m-%dT%H:%M:%S.') + f"{value.microsecond // 1000:03d}Z"


class CalendarApiClient:
    """Client for authenticated GET requests against the calendar API."""

    def __init__(self, config: ApiConfig, session: Optional[requests.Session] = None):
        """
        Initialize the API client.

        Args:
            config: Calendar API configuration
            session: Optional requests session to reuse connections
        """
        self.config = config
        self.session = session or requests.Session()

    def calendar_view_url(self, username: str, start: datetime, end: datetime) -> str:
        """
        Build the calendar view URL for an account and time window.

        Args:
            username: Account email address
            start: Window start
            end: Window end

        Returns:
            URL string with startDateTime and endDateTime set
        """
        request = requests.Request(
            'GET',
            f"{self.config.base}users/{quote(username, safe='@')}/calendarview",
            params={
                'startDateTime': to_iso(start),
                'endDateTime': to_iso(end)
            }
        ).prepare()
        return request.url

    def get(self, url: str, token: str, track_changes: bool = False) -> Dict[str, Any]:
        """
        Fetch one page from the calendar API.

        Args:
            url: Absolute URL (calendar view, next link or delta link)
            token: OAuth access token
            track_changes: Ask the provider for change tracking on this page

        Returns:
            Parsed JSON body

        Raises:
            ApiCallError: On transport errors, non-2xx responses or bodies
                that are not JSON objects
        """
        headers = {
            'Authorization': f"Bearer {token}",
            'Accept': 'application/json',
            'User-Agent': self.config.user_agent,
            'Prefer': self.config.prefer_track if track_changes else self.config.prefer
        }

        try:
            response = self.session.get(
                url,
                headers=headers,
                timeout=self.config.timeout
            )
        except requests.RequestException as e:
            raise ApiCallError(f"Request to calendar API failed: {e}") from e

        if not response.ok:
            raise ApiCallError(
                f"Calendar API returned {response.status_code}",
                status_code=response.status_code,
                response=response
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ApiCallError(
                "Calendar API returned a non-JSON body",
                status_code=response.status_code,
                response=response
            ) from e

        if not isinstance(body, dict):
            raise ApiCallError(
                "Calendar API returned an unexpected body",
                status_code=response.status_code,
                response=response
            )

        return body
