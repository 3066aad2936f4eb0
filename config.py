"""Configuration for the Office 365 calendar sync client."""
import os
from dataclasses import dataclass, field
from typing import Optional, Tuple


DEFAULT_SCOPES = (
    'openid',
    'https://outlook.office.com/Calendars.read',
    'profile',
)


@dataclass(frozen=True)
class OAuthConfig:
    """Static OAuth2 settings for the provider."""
    client_id: str = 'b5f61636-8c63-4a7c-b4a3-6af6df33ad15'
    base: str = 'https://login.microsoftonline.com/common'
    auth_path: str = '/oauth2/v2.0/authorize'
    token_path: str = '/oauth2/v2.0/token'
    redirect_uri: str = 'https://redirect.butter'
    scopes: Tuple[str, ...] = DEFAULT_SCOPES
    client_secret: Optional[str] = None

    @property
    def auth_url(self) -> str:
        return self.base + self.auth_path

    @property
    def token_url(self) -> str:
        return self.base + self.token_path


@dataclass(frozen=True)
class ApiConfig:
    """Calendar API settings."""
    base: str = 'https://outlook.office.com/api/v2.0/'
    max_page_size: int = 200
    user_agent: str = 'butter/dev'
    timeout: int = 30

    @property
    def prefer(self) -> str:
        return f'odata.maxpagesize={self.max_page_size}'

    @property
    def prefer_track(self) -> str:
        return f'odata.track-changes, odata.maxpagesize={self.max_page_size}'


@dataclass(frozen=True)
class OfficeConfig:
    """Immutable configuration injected into the auth flow and sync engine."""
    oauth: OAuthConfig = field(default_factory=OAuthConfig)
    api: ApiConfig = field(default_factory=ApiConfig)


def load_config() -> OfficeConfig:
    """
    Build the configuration from environment variables.

    Unset variables fall back to the defaults declared on the dataclasses.
    An empty OFFICE_CLIENT_SECRET is treated as unset, which selects the
    implicit grant.

    Returns:
        OfficeConfig instance
    """
    oauth_defaults = OAuthConfig()
    api_defaults = ApiConfig()

    oauth = OAuthConfig(
        client_id=os.environ.get('OFFICE_CLIENT_ID', oauth_defaults.client_id),
        base=os.environ.get('OFFICE_AUTH_BASE', oauth_defaults.base),
        redirect_uri=os.environ.get(
            'OFFICE_REDIRECT_URI', oauth_defaults.redirect_uri
        ),
        client_secret=os.environ.get('OFFICE_CLIENT_SECRET') or None,
    )
    api = ApiConfig(
        base=os.environ.get('OFFICE_API_BASE', api_defaults.base),
        user_agent=os.environ.get('OFFICE_USER_AGENT', api_defaults.user_agent),
        timeout=int(os.environ.get('TIMEOUT_SECONDS', str(api_defaults.timeout))),
    )
    return OfficeConfig(oauth=oauth, api=api)
