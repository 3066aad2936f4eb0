"""Delta token extraction for Office 365 change tracking."""
import logging
from typing import Any, Dict, Optional
from urllib.parse import unquote

from processor.errors import InvalidDeltaToken

logger = logging.getLogger(__name__)

DELTA_TOKEN_MARKER = 'deltatoken='
DELTA_TOKEN_LENGTH = 32
DELTA_LINK_KEY = '@odata.deltaLink'


def is_valid_delta_token(token: Optional[str]) -> bool:
    """Return True if the token has the exact length the provider issues."""
    return bool(token) and len(unquote(token)) == DELTA_TOKEN_LENGTH


def extract_delta_token(delta_link: str) -> str:
    """
    Slice the token out of a delta link.

    Args:
        delta_link: Value of @odata.deltaLink

    Returns:
        The 32 character delta token

    Raises:
        InvalidDeltaToken: If the link has no marker or the token length is off
    """
    position = delta_link.rfind(DELTA_TOKEN_MARKER)
    if position < 0:
        raise InvalidDeltaToken(f"No {DELTA_TOKEN_MARKER} marker in delta link")

    token = delta_link[position + len(DELTA_TOKEN_MARKER):]
    if not is_valid_delta_token(token):
        raise InvalidDeltaToken(
            f"Delta token has length {len(unquote(token))}, "
            f"expected {DELTA_TOKEN_LENGTH}"
        )
    return token


def find_delta_token(body: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    Find the delta token in an API response body, if present.

    A truncated or malformed link yields None so it never replaces the
    stored cursor; the next run then falls back to a full fetch.

    Args:
        body: Parsed JSON body of a calendar API response

    Returns:
        Delta token or None
    """
    if not body or not body.get(DELTA_LINK_KEY):
        return None

    try:
        return extract_delta_token(body[DELTA_LINK_KEY])
    except InvalidDeltaToken as e:
        logger.warning(f"Ignoring delta link: {e}")
        return None
