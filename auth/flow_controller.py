"""OAuth2 authorization round-trips through a browser window."""
import logging
import re
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import unquote

from auth.browser_surface import PlaywrightSurface
from auth.token_exchanger import TokenExchanger
from auth.uri_builder import build_auth_uri
from config import OAuthConfig
from processor.errors import AuthCancelled, AuthError, AuthorizationDenied, ReauthFailed
from processor.models import TokenBundle

logger = logging.getLogger(__name__)

CODE_RE = re.compile(r'[?&#]code=([^&#]*)')
ACCESS_TOKEN_RE = re.compile(r'[?&#]access_token=([^&#]*)')
ID_TOKEN_RE = re.compile(r'[?&#]id_token=([^&#]*)')
ERROR_RE = re.compile(r'[?&#]error=([^&#]*)')


@dataclass(frozen=True)
class RedirectCapture:
    """Parameters read from the redirect that ended an auth round-trip."""
    code: Optional[str] = None
    access_token: Optional[str] = None
    id_token: Optional[str] = None


def _param(pattern: re.Pattern, url: str) -> Optional[str]:
    match = pattern.search(url)
    if match and match.group(1):
        return unquote(match.group(1))
    return None


def parse_redirect(url: str) -> Optional[RedirectCapture]:
    """
    Read the auth result out of a navigation URL.

    Args:
        url: URL the browser navigated or was redirected to

    Returns:
        RedirectCapture for URLs carrying a code or access token, None for
        URLs that carry neither

    Raises:
        AuthorizationDenied: If the URL carries an error parameter
    """
    code = _param(CODE_RE, url)
    access_token = _param(ACCESS_TOKEN_RE, url)

    if code or access_token:
        return RedirectCapture(
            code=code,
            access_token=access_token,
            id_token=_param(ID_TOKEN_RE, url)
        )

    error = _param(ERROR_RE, url)
    if error:
        raise AuthorizationDenied(error)

    return None


class AuthFlowController:
    """Drives interactive and silent OAuth2 round-trips."""

    def __init__(
        self,
        config: OAuthConfig,
        exchanger: TokenExchanger,
        surface_factory: Optional[Callable[..., PlaywrightSurface]] = None,
        silent_timeout: float = 60
    ):
        """
        Initialize the controller.

        Args:
            config: OAuth configuration
            exchanger: Token exchanger used for the authorization-code grant
            surface_factory: Callable returning a browser surface; receives
                ``visible`` and ``redirect_uri`` keyword arguments
            silent_timeout: Seconds a silent round-trip may take
        """
        self.config = config
        self.exchanger = exchanger
        self.surface_factory = surface_factory or PlaywrightSurface
        self.silent_timeout = silent_timeout

    def authenticate(self, existing_user: Optional[str] = None) -> TokenBundle:
        """
        Obtain a fresh token bundle.

        Without ``existing_user`` the browser window is shown and the user
        signs in. With it, the round-trip runs hidden and relies on the
        provider's session to skip every prompt.

        Args:
            existing_user: Email address for silent reauthentication

        Returns:
            Token bundle; for the authorization-code grant it carries the
            original ``code`` as well

        Raises:
            AuthCancelled: If the window is closed before a token arrives
            AuthorizationDenied: If the provider redirects with an error
            TokenExchangeFailed: If the code cannot be exchanged
            ReauthFailed: If a silent round-trip times out
        """
        silent = bool(existing_user)
        uri = build_auth_uri(self.config, existing_user)
        outcome: Future = Future()

        surface = self.surface_factory(
            visible=not silent,
            redirect_uri=self.config.redirect_uri
        )
        surface.on_navigate(lambda url: self.handle_callback(url, outcome))
        surface.on_close(lambda: self._settle(
            outcome, error=AuthCancelled("Auth window closed before sign-in completed")
        ))

        logger.info(f"Starting {'silent' if silent else 'interactive'} authentication")
        try:
            surface.open(uri)
            surface.wait(outcome.done, timeout=self.silent_timeout if silent else None)
        finally:
            surface.destroy()

        if not outcome.done():
            if silent:
                raise ReauthFailed(
                    f"Silent authentication for {existing_user} timed out"
                )
            raise AuthCancelled("Auth window stopped before sign-in completed")

        capture = outcome.result()
        if capture.code:
            bundle = dict(self.exchanger.exchange(capture.code))
            bundle['code'] = capture.code
            return bundle

        return {
            'id_token': capture.id_token,
            'access_token': capture.access_token
        }

    def handle_callback(self, url: str, outcome: Future) -> None:
        """
        Inspect one navigation URL and settle the flow on the first result.

        Args:
            url: URL observed on the browser surface
            outcome: Future settled with a RedirectCapture or an AuthError
        """
        if outcome.done():
            return

        try:
            capture = parse_redirect(url)
        except AuthError as e:
            logger.warning(f"Authorization failed: {e}")
            self._settle(outcome, error=e)
            return

        if capture:
            logger.info("Captured authorization redirect")
            self._settle(outcome, result=capture)

    def _settle(self, outcome: Future, result: Optional[RedirectCapture] = None,
                error: Optional[Exception] = None) -> None:
        if outcome.done():
            return
        if error is not None:
            outcome.set_exception(error)
        else:
            outcome.set_result(result)
