"""Entry points for connecting and syncing Office 365 calendars."""
import logging
from datetime import datetime
from typing import Optional

from auth.flow_controller import AuthFlowController
from auth.id_token import email_from_id_token
from auth.token_exchanger import TokenExchanger
from config import OfficeConfig
from processor.errors import AuthError, ReauthFailed
from processor.models import Account, SyncOptions, SyncResult
from provider.calendar_api import CalendarApiClient
from sync.delta_sync_engine import DeltaSyncEngine

logger = logging.getLogger(__name__)

ACCOUNT_NAME = 'Office 365'
STRATEGY = 'office'


class OfficeStrategy:
    """Connects Office 365 accounts and syncs their calendar views."""

    def __init__(
        self,
        config: OfficeConfig,
        store,
        auth_flow: Optional[AuthFlowController] = None,
        api: Optional[CalendarApiClient] = None,
        engine: Optional[DeltaSyncEngine] = None
    ):
        """
        Initialize the strategy.

        Args:
            config: Immutable OAuth and API configuration
            store: Account store with create, get and save
            auth_flow: Auth flow controller; built from config when omitted
            api: Calendar API client; built from config when omitted
            engine: Sync engine; built around ``api`` when omitted
        """
        self.config = config
        self.store = store
        self.auth_flow = auth_flow or AuthFlowController(
            config.oauth,
            TokenExchanger(config.oauth, timeout=config.api.timeout)
        )
        self.api = api or CalendarApiClient(config.api)
        self.engine = engine or DeltaSyncEngine(self.api, self.reauthenticate)

    def add_account(self) -> Account:
        """
        Connect a new account through an interactive sign-in.

        Returns:
            The saved Account

        Raises:
            AuthError: If sign-in is cancelled, denied or yields no ID token
        """
        response = self.auth_flow.authenticate()
        if not response or not response.get('id_token'):
            raise AuthError("Sign-in did not return an ID token")

        username = email_from_id_token(response['id_token'])
        if not username:
            raise AuthError("ID token carries no preferred_username")

        logger.info(f"Adding account {username}")
        return self.store.create(
            name=ACCOUNT_NAME,
            username=username,
            strategy=STRATEGY,
            oauth=response
        )

    def get_calendar_view(
        self,
        start: datetime,
        end: datetime,
        account: Account,
        options: Optional[SyncOptions] = None
    ) -> SyncResult:
        """
        Sync the events of an account between two points in time.

        The account's delta token is updated and saved when the run
        produced a different one.

        Args:
            start: Window start
            end: Window end
            account: Account to sync
            options: Sync switches; defaults to a plain full fetch

        Returns:
            SyncResult

        Raises:
            ReauthFailed: If the token expired and could not be refreshed
            SyncAborted: If the provider returned an unrecoverable error
        """
        options = options or SyncOptions()
        url = self.api.calendar_view_url(account.username, start, end)

        result = self.engine.fetch_events(url, account, options)

        if result.delta_token != account.delta_token:
            account.set_properties(delta_token=result.delta_token)
            self.store.save(account)

        return result

    def reauthenticate(self, account: Account) -> str:
        """
        Silently fetch a new token for an account and save it.

        Args:
            account: Account whose token expired

        Returns:
            New access token

        Raises:
            ReauthFailed: If the provider requires interaction or returns no
                access token
        """
        try:
            response = self.auth_flow.authenticate(account.username)
        except ReauthFailed:
            raise
        except AuthError as e:
            raise ReauthFailed(f"Silent reauthentication failed: {e}") from e

        if not response or not response.get('access_token'):
            raise ReauthFailed("No access token received")

        account.set_properties(
            name=ACCOUNT_NAME,
            username=email_from_id_token(response.get('id_token')) or account.username,
            strategy=STRATEGY,
            oauth=response
        )
        self.store.save(account)

        return response['access_token']
