# core/token_refresh.py
"""
Refresh guard in front of every Onshape API call

A stored access token is reused until it is within the refresh margin of its
expiry; then the refresh token is traded for a new pair exactly once. There is
no retry and no coordination between concurrent requests: two requests that
both see a stale token will both refresh.
"""

import logging
import time
from typing import Callable, Optional

from core.errors import NotAuthenticatedError
from core.onshape_auth import OnshapeAuthError, OnshapeOAuth
from core.token_store import TokenStore

logger = logging.getLogger(__name__)

REFRESH_MARGIN_SECONDS = 300


def needs_refresh(expires_at: Optional[float], now: Optional[float] = None,
                  margin: float = REFRESH_MARGIN_SECONDS) -> bool:
    """True when the expiry is unknown or falls within the margin"""
    if not expires_at:
        return True
    now = time.time() if now is None else now
    return now >= expires_at - margin


def get_valid_access_token(store: TokenStore, get_oauth: Callable[[], OnshapeOAuth],
                           margin: float = REFRESH_MARGIN_SECONDS) -> str:
    """
    Return a usable access token, refreshing it when necessary

    The OAuth client is only built when a refresh is due.

    Raises:
        NotAuthenticatedError: no tokens stored, or the refresh was rejected
            (stored tokens are cleared in that case)
    """
    tokens = store.get_tokens()
    if not tokens.access_token or not tokens.refresh_token:
        raise NotAuthenticatedError()

    if not needs_refresh(tokens.expires_at, now=store.clock(), margin=margin):
        return tokens.access_token

    logger.info("Onshape access token expired or expiring, refreshing")
    try:
        refreshed = get_oauth().refresh_access_token(tokens.refresh_token)
    except OnshapeAuthError as e:
        logger.warning(f"Failed to refresh Onshape token: {e}")
        store.clear_tokens()
        raise NotAuthenticatedError('Onshape session expired. Please sign in again.') from e

    store.set_tokens(refreshed.access_token, refreshed.refresh_token, refreshed.expires_in)
    return refreshed.access_token
