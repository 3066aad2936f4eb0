"""Data models for calendar sync."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


TokenBundle = Dict[str, Any]


@dataclass
class Account:
    """Connected calendar account record."""
    username: str
    name: str = 'Office 365'
    strategy: str = 'office'
    oauth: TokenBundle = field(default_factory=dict)
    delta_token: Optional[str] = None

    @property
    def access_token(self) -> Optional[str]:
        return self.oauth.get('access_token')

    def set_properties(self, **fields: Any) -> None:
        """Update several attributes at once; unknown names are rejected."""
        for name, value in fields.items():
            if not hasattr(self, name):
                raise AttributeError(f"Account has no attribute '{name}'")
            setattr(self, name, value)


@dataclass(frozen=True)
class SyncOptions:
    """Per-call sync switches."""
    use_delta: bool = False
    track_changes: bool = False


@dataclass(frozen=True)
class CanonicalEvent:
    """Normalized calendar event."""
    start: str
    end: str
    title: Optional[str]
    provider_id: Optional[str]
    body: str
    body_preview: Optional[str]
    body_type: str
    show_as: Optional[str]
    is_editable: bool
    is_organizer: Optional[bool]
    is_reminder_on: Optional[bool]
    is_cancelled: Optional[bool]
    participants: str
    organizer: Any
    location: str
    is_all_day: bool

    def to_record(self) -> Dict[str, Any]:
        """Render the event with the field names the desktop app stores."""
        return {
            'start': self.start,
            'end': self.end,
            'title': self.title,
            'providerId': self.provider_id,
            'body': self.body,
            'bodyPreview': self.body_preview,
            'bodyType': self.body_type,
            'showAs': self.show_as,
            'isEditable': self.is_editable,
            'isOrganizer': self.is_organizer,
            'isReminderOn': self.is_reminder_on,
            'isCancelled': self.is_cancelled,
            'participants': self.participants,
            'organizer': self.organizer,
            'location': self.location,
            'isAllDay': self.is_all_day,
        }


@dataclass
class SyncResult:
    """Result of one sync run."""
    events: List[CanonicalEvent]
    delta_token: Optional[str]
    pages_fetched: int = 0
    reauthentications: int = 0
    resets: int = 0
