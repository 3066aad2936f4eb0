"""Helpers for reading OpenID Connect ID tokens."""
import logging
from typing import Any, Dict, Optional

import jwt

logger = logging.getLogger(__name__)


def decode_claims(id_token: str) -> Dict[str, Any]:
    """
    Decode the claims of a JWT without verifying its signature.

    The token arrives straight from the provider over TLS and is only used
    to label the account, so the signature is not checked here.

    Args:
        id_token: Compact JWT string

    Returns:
        Claims dictionary

    Raises:
        ValueError: If the token is not a well-formed JWT
    """
    try:
        return jwt.decode(id_token, options={'verify_signature': False})
    except jwt.PyJWTError as e:
        raise ValueError(f"ID token is not valid: {e}") from e


def email_from_id_token(id_token: Optional[str]) -> Optional[str]:
    """Return the preferred_username claim, or None if it cannot be read."""
    if not id_token:
        return None

    try:
        return decode_claims(id_token).get('preferred_username')
    except ValueError as e:
        logger.warning(f"Could not read ID token: {e}")
        return None
