"""Event normalizer for converting provider items into canonical events."""
import copy
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from processor.models import CanonicalEvent

logger = logging.getLogger(__name__)

EMPTY_PARTICIPANTS = '{[]}'

# Fields an occurrence inherits from its series master
MASTER_FIELDS = ('Subject', 'Body', 'BodyPreview', 'IsAllDay')

_FRACTION_RE = re.compile(r'\.(\d+)')


def is_deleted(item: Dict[str, Any]) -> bool:
    """Return True for delta entries that mark a removed event."""
    return item.get('reason') == 'deleted'


def is_series_master(item: Dict[str, Any]) -> bool:
    return item.get('Type') == 'SeriesMaster'


def is_occurrence(item: Dict[str, Any]) -> bool:
    return item.get('Type') == 'Occurrence'


class EventNormalizer:
    """Normalizer for Office 365 calendar items."""

    def make_event(self, item: Dict[str, Any]) -> CanonicalEvent:
        """
        Convert a single provider item into a CanonicalEvent.

        Args:
            item: Raw item from the calendar API response

        Returns:
            CanonicalEvent object

        Raises:
            KeyError: If the item has no Start or End
            ValueError: If Start or End cannot be parsed
        """
        start = self._parse_datetime(item['Start']['DateTime'])
        end = self._parse_datetime(item['End']['DateTime'])

        # Multi-day events are not always flagged by the provider
        is_all_day = bool(item.get('IsAllDay')) or start.date() != end.date()

        location = (item.get('Location') or {}).get('DisplayName') or ''
        organizer = (item.get('Organizer') or {}).get('EmailAddress') or ''
        body = item.get('Body') or {}

        return CanonicalEvent(
            start=start.isoformat(),
            end=end.isoformat(),
            title=item.get('Subject'),
            provider_id=item.get('Id'),
            body=body.get('Content', ''),
            body_preview=item.get('BodyPreview'),
            body_type=body.get('ContentType', ''),
            show_as=item.get('ShowAs'),
            is_editable=False,
            is_organizer=item.get('IsOrganizer'),
            is_reminder_on=item.get('IsReminderOn'),
            is_cancelled=item.get('IsCancelled'),
            participants=self.make_participants(item),
            organizer=organizer,
            location=location,
            is_all_day=is_all_day
        )

    def make_participants(self, item: Dict[str, Any]) -> str:
        """
        Serialize the attendee list of an item.

        Args:
            item: Raw provider item

        Returns:
            Compact JSON array of {name, email} objects in source order, or
            the literal '{[]}' when the item has no attendees
        """
        attendees = item.get('Attendees') or []
        if not attendees:
            return EMPTY_PARTICIPANTS

        participants = []
        for attendee in attendees:
            address = attendee.get('EmailAddress') or {}
            participants.append({
                'name': address.get('Name'),
                'email': address.get('Address')
            })

        return json.dumps(participants, separators=(',', ':'))

    def make_event_from_occurrence(
        self,
        occurrence: Dict[str, Any],
        masters: Dict[str, Dict[str, Any]]
    ) -> CanonicalEvent:
        """
        Normalize an occurrence after filling in its master's display fields.

        Occurrences only carry instance data (id, start, end). Subject, body,
        preview and the all-day flag come from the series master with the
        same id as the occurrence's SeriesMasterId. Without a master in the
        current pass the occurrence is normalized from its own fields.

        Args:
            occurrence: Raw occurrence item
            masters: Series masters seen in this pass, keyed by Id

        Returns:
            CanonicalEvent object
        """
        master = masters.get(occurrence.get('SeriesMasterId'))
        merged = copy.deepcopy(occurrence)

        if master:
            for name in MASTER_FIELDS:
                merged[name] = copy.deepcopy(master.get(name))
        else:
            logger.debug(
                f"No series master for occurrence {occurrence.get('Id')}"
            )

        return self.make_event(merged)

    def try_make_event(self, item: Dict[str, Any]) -> Optional[CanonicalEvent]:
        """Like make_event, but logs and returns None for malformed items."""
        return self._safe_make(self.make_event, item)

    def try_make_event_from_occurrence(
        self,
        occurrence: Dict[str, Any],
        masters: Dict[str, Dict[str, Any]]
    ) -> Optional[CanonicalEvent]:
        return self._safe_make(self.make_event_from_occurrence, occurrence, masters)

    def _safe_make(self, func, item: Dict[str, Any], *args) -> Optional[CanonicalEvent]:
        try:
            return func(item, *args)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Failed to normalize item '{item.get('Id')}': {e}")
            return None

    def _parse_datetime(self, value: str) -> datetime:
        """
        Parse a provider DateTime value as UTC.

        The provider sends naive timestamps with up to seven fractional
        digits (e.g. "2024-01-15T10:00:00.0000000").

        Args:
            value: Provider DateTime string

        Returns:
            Timezone-aware datetime in UTC
        """
        value = _FRACTION_RE.sub(
            lambda match: '.' + match.group(1)[:6].ljust(6, '0'),
            value.strip().rstrip('Z')
        )
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
