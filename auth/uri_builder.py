"""Authorization URL construction."""
from typing import Optional
from urllib.parse import quote, urlencode

from config import OAuthConfig

# Fixed anti-forgery values for the implicit grant
IMPLICIT_STATE = '12345'
IMPLICIT_NONCE = '678910'
DOMAIN_HINT = 'organizations'


def build_auth_uri(config: OAuthConfig, existing_user: Optional[str] = None) -> str:
    """
    Build the provider authorization URL.

    A configured client secret selects the authorization-code grant,
    otherwise the implicit grant is requested. Passing an existing user asks
    the provider to skip every prompt, which is how silent reauthentication
    works.

    Args:
        config: OAuth configuration
        existing_user: Email address of an already connected account

    Returns:
        Authorization URL string
    """
    params = {
        'redirect_uri': config.redirect_uri,
        'scope': ' '.join(config.scopes),
        'client_id': config.client_id
    }

    if config.client_secret:
        params['response_type'] = 'code'
    else:
        params.update({
            'response_type': 'id_token token',
            'response_mode': 'fragment',
            'state': IMPLICIT_STATE,
            'nonce': IMPLICIT_NONCE
        })

    if existing_user:
        # TODO: domain_hint=organizations only fits work/school accounts; personal
        # Microsoft accounts need domain_hint=consumers.
        params.update({
            'prompt': 'none',
            'login_hint': existing_user,
            'domain_hint': DOMAIN_HINT
        })

    return f"{config.auth_url}?{urlencode(params, quote_via=quote)}"
