"""Authorization code exchange against the OAuth token endpoint."""
import logging
from typing import Optional

import requests

from config import OAuthConfig
from processor.errors import TokenExchangeFailed
from processor.models import TokenBundle

logger = logging.getLogger(__name__)


class TokenExchanger:
    """Exchanges authorization codes for access and ID tokens."""

    def __init__(self, config: OAuthConfig, timeout: int = 30,
                 session: Optional[requests.Session] = None):
        self.config = config
        self.timeout = timeout
        self.session = session or requests.Session()

    def exchange(self, code: str) -> TokenBundle:
        """
        Exchange an authorization code for a token bundle.

        Args:
            code: Authorization code captured from the redirect

        Returns:
            Token endpoint JSON body

        Raises:
            TokenExchangeFailed: On transport errors, non-2xx responses or a
                missing body
        """
        logger.info("Exchanging authorization code for tokens")
        response = None

        try:
            response = self.session.post(
                self.config.token_url,
                data={
                    'client_id': self.config.client_id,
                    'client_secret': self.config.client_secret,
                    'code': code,
                    'grant_type': 'authorization_code'
                },
                timeout=self.timeout
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            logger.error(f"Token exchange failed: {e}")
            raise TokenExchangeFailed(
                f"Token exchange failed: {e}", error=e, response=response
            ) from e
        except ValueError as e:
            logger.error("Token endpoint returned a non-JSON body")
            raise TokenExchangeFailed(
                "Token endpoint returned a non-JSON body", error=e, response=response
            ) from e

        if not body or not isinstance(body, dict):
            raise TokenExchangeFailed(
                "Token endpoint returned an empty body", response=response
            )

        return body
