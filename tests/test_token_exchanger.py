"""Unit tests for TokenExchanger."""
from urllib.parse import parse_qs

import pytest
import responses
from requests.exceptions import ConnectionError

from auth.token_exchanger import TokenExchanger
from processor.errors import TokenExchangeFailed

TOKEN_URL = 'https://login.microsoftonline.com/common/oauth2/v2.0/token'


class TestTokenExchanger:
    """Test cases for TokenExchanger class."""

    @responses.activate
    def test_exchange_success(self, code_flow_config):
        """Test that the JSON body is returned as the token bundle."""
        responses.add(
            responses.POST,
            TOKEN_URL,
            json={'access_token': 'AT', 'id_token': 'IDT', 'expires_in': 3600},
            status=200
        )

        exchanger = TokenExchanger(code_flow_config)
        bundle = exchanger.exchange('the-code')

        assert bundle == {'access_token': 'AT', 'id_token': 'IDT', 'expires_in': 3600}

        request = responses.calls[0].request
        assert request.headers['Content-Type'] == 'application/x-www-form-urlencoded'
        form = parse_qs(request.body)
        assert form == {
            'client_id': [code_flow_config.client_id],
            'client_secret': ['s3cret'],
            'code': ['the-code'],
            'grant_type': ['authorization_code']
        }

    @responses.activate
    def test_exchange_rejected(self, code_flow_config):
        """Test that a non-2xx response fails with the response attached."""
        responses.add(
            responses.POST,
            TOKEN_URL,
            json={'error': 'invalid_grant'},
            status=400
        )

        exchanger = TokenExchanger(code_flow_config)

        with pytest.raises(TokenExchangeFailed) as exc_info:
            exchanger.exchange('bad-code')

        assert exc_info.value.response.status_code == 400
        assert exc_info.value.error is not None

    @responses.activate
    def test_exchange_empty_body(self, code_flow_config):
        """Test that a 2xx response without a body is a failure."""
        responses.add(responses.POST, TOKEN_URL, json={}, status=200)

        exchanger = TokenExchanger(code_flow_config)

        with pytest.raises(TokenExchangeFailed):
            exchanger.exchange('the-code')

    @responses.activate
    def test_exchange_non_json_body(self, code_flow_config):
        """Test that an HTML error page is a failure."""
        responses.add(responses.POST, TOKEN_URL, body='<html></html>', status=200)

        exchanger = TokenExchanger(code_flow_config)

        with pytest.raises(TokenExchangeFailed):
            exchanger.exchange('the-code')

    @responses.activate
    def test_exchange_transport_error(self, code_flow_config):
        """Test that connection failures carry the transport error."""
        responses.add(
            responses.POST,
            TOKEN_URL,
            body=ConnectionError('connection refused')
        )

        exchanger = TokenExchanger(code_flow_config)

        with pytest.raises(TokenExchangeFailed) as exc_info:
            exchanger.exchange('the-code')

        assert isinstance(exc_info.value.error, ConnectionError)
        assert exc_info.value.response is None
