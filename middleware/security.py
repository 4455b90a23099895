# middleware/security.py
"""
Security Middleware for Request Processing
"""

from flask import current_app, g, request
from functools import wraps
import logging

from core.errors import NotAuthenticatedError
from core.onshape_auth import get_oauth_client
from core.onshape_client import OnshapeClient
from core.token_refresh import get_valid_access_token
from core.token_store import TokenStore

logger = logging.getLogger(__name__)


def security_headers(response):
    """Add the configured security headers to all responses"""
    for header, value in current_app.config.get('SECURITY_HEADERS', {}).items():
        response.headers.setdefault(header, value)
    return response


def build_onshape_client() -> OnshapeClient:
    """
    Onshape client for the current session, refreshing the token when needed

    Raises NotAuthenticatedError when there is no usable session.
    """
    store = TokenStore()
    access_token = get_valid_access_token(
        store,
        get_oauth_client,
        margin=current_app.config.get('TOKEN_REFRESH_MARGIN', 300),
    )
    injected_http = current_app.extensions.get('onshape_http')
    return OnshapeClient(
        access_token,
        api_url=current_app.config['ONSHAPE_API_URL'],
        timeout=current_app.config.get('HTTP_TIMEOUT', 30),
        http=injected_http,
    )


def require_onshape_token(f):
    """Decorator to require an Onshape session; the client is placed on g.onshape"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            g.onshape = build_onshape_client()
        except NotAuthenticatedError:
            logger.info(f"Onshape session required for {request.endpoint}")
            raise
        return f(*args, **kwargs)
    return decorated_function
