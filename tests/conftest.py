"""Shared fixtures for calendar sync tests."""
import base64
import json

import pytest

from config import ApiConfig, OAuthConfig, OfficeConfig


VALID_TOKEN = 'a1b2c3d4e5f6a7b8c9d0e1f2a3b4c5d6'


def _b64(data: dict) -> str:
    raw = json.dumps(data).encode('utf-8')
    return base64.urlsafe_b64encode(raw).decode('ascii').rstrip('=')


@pytest.fixture
def make_jwt():
    """Build an unsigned JWT with the given claims."""
    def _make(claims):
        return f"{_b64({'alg': 'none', 'typ': 'JWT'})}.{_b64(claims)}.c2lnbmF0dXJl"
    return _make


@pytest.fixture
def make_item():
    """Build a raw provider item with sensible defaults."""
    def _make(item_id, subject='Standup', start='2024-01-15T10:00:00.0000000',
              end='2024-01-15T10:30:00.0000000', **fields):
        item = {
            'Id': item_id,
            'Type': 'SingleInstance',
            'Subject': subject,
            'Body': {'ContentType': 'HTML', 'Content': f'<p>{subject}</p>'},
            'BodyPreview': subject,
            'Start': {'DateTime': start, 'TimeZone': 'UTC'},
            'End': {'DateTime': end, 'TimeZone': 'UTC'},
            'IsAllDay': False,
            'ShowAs': 'Busy',
            'IsOrganizer': True,
            'IsReminderOn': True,
            'IsCancelled': False,
            'Attendees': [],
            'Location': {'DisplayName': 'Room 1'},
            'Organizer': {'EmailAddress': {'Name': 'Jane', 'Address': 'jane@contoso.com'}}
        }
        item.update(fields)
        return item
    return _make


@pytest.fixture
def office_config():
    """Configuration pointing at the default Office 365 endpoints."""
    return OfficeConfig(oauth=OAuthConfig(), api=ApiConfig())


@pytest.fixture
def code_flow_config():
    """OAuth configuration with a client secret (authorization-code grant)."""
    return OAuthConfig(client_secret='s3cret')
