"""Unit tests for AuthFlowController."""
from unittest.mock import Mock

import pytest

from auth.flow_controller import AuthFlowController, RedirectCapture, parse_redirect
from config import OAuthConfig
from processor.errors import AuthCancelled, AuthorizationDenied, ReauthFailed, TokenExchangeFailed

LOGIN_PAGE = 'https://login.microsoftonline.com/common/oauth2/v2.0/authorize?client_id=x'
IMPLICIT_REDIRECT = (
    'https://redirect.butter/#access_token=AT&token_type=Bearer'
    '&id_token=IDT&state=12345'
)


class FakeSurface:
    """Browser surface that replays a scripted list of navigation URLs."""

    def __init__(self, urls, close_after=False, visible=False, redirect_uri=None):
        self.urls = urls
        self.close_after = close_after
        self.visible = visible
        self.redirect_uri = redirect_uri
        self.navigate_callbacks = []
        self.close_callbacks = []
        self.opened_url = None
        self.wait_timeout = 'unset'
        self.destroyed = False

    def on_navigate(self, callback):
        self.navigate_callbacks.append(callback)

    def on_close(self, callback):
        self.close_callbacks.append(callback)

    def open(self, url):
        self.opened_url = url
        for target in self.urls:
            for callback in self.navigate_callbacks:
                callback(target)
        if self.close_after:
            for callback in self.close_callbacks:
                callback()

    def wait(self, until, timeout=None):
        self.wait_timeout = timeout

    def destroy(self):
        self.destroyed = True


@pytest.fixture
def surfaces():
    """Surfaces created by the controller under test."""
    return []


@pytest.fixture
def make_factory(surfaces):
    """Build a surface factory replaying the given URLs."""
    def _make(urls, close_after=False):
        def factory(**kwargs):
            surface = FakeSurface(urls, close_after=close_after, **kwargs)
            surfaces.append(surface)
            return surface
        return factory
    return _make


class TestAuthFlowController:
    """Test cases for AuthFlowController class."""

    def test_implicit_flow_interactive(self, make_factory, surfaces):
        """Test that an implicit redirect resolves with both tokens."""
        exchanger = Mock()
        controller = AuthFlowController(
            OAuthConfig(), exchanger, make_factory([LOGIN_PAGE, IMPLICIT_REDIRECT])
        )

        bundle = controller.authenticate()

        assert bundle == {'id_token': 'IDT', 'access_token': 'AT'}
        surface = surfaces[0]
        assert surface.visible is True
        assert surface.redirect_uri == 'https://redirect.butter'
        assert 'prompt=none' not in surface.opened_url
        assert surface.wait_timeout is None
        assert surface.destroyed is True
        exchanger.exchange.assert_not_called()

    def test_code_flow_exchanges_code(self, make_factory, code_flow_config):
        """Test that a code redirect is exchanged and the code attached."""
        exchanger = Mock()
        exchanger.exchange.return_value = {'access_token': 'AT', 'id_token': 'IDT'}
        controller = AuthFlowController(
            code_flow_config, exchanger,
            make_factory(['https://redirect.butter/?code=abc%2F123&session_state=s'])
        )

        bundle = controller.authenticate()

        exchanger.exchange.assert_called_once_with('abc/123')
        assert bundle == {'access_token': 'AT', 'id_token': 'IDT', 'code': 'abc/123'}

    def test_code_flow_exchange_failure_propagates(self, make_factory, code_flow_config):
        """Test that a rejected code surfaces TokenExchangeFailed."""
        exchanger = Mock()
        exchanger.exchange.side_effect = TokenExchangeFailed('rejected')
        controller = AuthFlowController(
            code_flow_config, exchanger, make_factory(['https://redirect.butter/?code=abc'])
        )

        with pytest.raises(TokenExchangeFailed):
            controller.authenticate()

    def test_error_redirect_rejects(self, make_factory, surfaces):
        """Test that an error parameter rejects the flow."""
        controller = AuthFlowController(
            OAuthConfig(), Mock(),
            make_factory(['https://redirect.butter/?error=access_denied&error_description=no'])
        )

        with pytest.raises(AuthorizationDenied) as exc_info:
            controller.authenticate()

        assert exc_info.value.error == 'access_denied'
        assert surfaces[0].destroyed is True

    def test_window_closed_before_token(self, make_factory):
        """Test that closing the window cancels the flow."""
        controller = AuthFlowController(
            OAuthConfig(), Mock(), make_factory([LOGIN_PAGE], close_after=True)
        )

        with pytest.raises(AuthCancelled):
            controller.authenticate()

    def test_only_first_redirect_counts(self, make_factory, code_flow_config):
        """Test that redirects after settlement are ignored."""
        exchanger = Mock()
        exchanger.exchange.return_value = {'access_token': 'AT'}
        controller = AuthFlowController(
            code_flow_config, exchanger,
            make_factory([
                'https://redirect.butter/?code=first',
                'https://redirect.butter/?code=second',
                'https://redirect.butter/?error=late'
            ], close_after=True)
        )

        bundle = controller.authenticate()

        exchanger.exchange.assert_called_once_with('first')
        assert bundle['code'] == 'first'

    def test_silent_flow_is_hidden(self, make_factory, surfaces):
        """Test that silent reauthentication runs hidden with prompt=none."""
        controller = AuthFlowController(
            OAuthConfig(), Mock(), make_factory([IMPLICIT_REDIRECT]), silent_timeout=15
        )

        bundle = controller.authenticate('jane@contoso.com')

        assert bundle['access_token'] == 'AT'
        surface = surfaces[0]
        assert surface.visible is False
        assert 'prompt=none' in surface.opened_url
        assert 'login_hint=jane%40contoso.com' in surface.opened_url
        assert surface.wait_timeout == 15

    def test_silent_flow_timeout(self, make_factory, surfaces):
        """Test that a silent flow that never redirects fails."""
        controller = AuthFlowController(OAuthConfig(), Mock(), make_factory([LOGIN_PAGE]))

        with pytest.raises(ReauthFailed):
            controller.authenticate('jane@contoso.com')

        assert surfaces[0].destroyed is True


class TestParseRedirect:
    """Test cases for parse_redirect."""

    def test_plain_url(self):
        """Test that ordinary navigation is ignored."""
        assert parse_redirect(LOGIN_PAGE) is None
        assert parse_redirect(
            'https://login.microsoftonline.com/?response_type=code&scope=openid'
        ) is None

    def test_fragment_tokens(self):
        """Test reading tokens from the URL fragment."""
        assert parse_redirect(IMPLICIT_REDIRECT) == RedirectCapture(
            access_token='AT', id_token='IDT'
        )

    def test_error_in_fragment(self):
        """Test that errors in the fragment are recognized too."""
        with pytest.raises(AuthorizationDenied):
            parse_redirect('https://redirect.butter/#error=interaction_required')
