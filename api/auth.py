# api/auth.py
"""
Onshape OAuth sign-in, sign-out and session status
"""

import logging
import secrets
from typing import Optional
from urllib.parse import quote

from flask import Blueprint, current_app, g, jsonify, redirect, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from core.errors import ApiError
from core.onshape_auth import OnshapeAuthError, get_oauth_client
from core.onshape_client import OnshapeApiError, OnshapeClient
from core.token_store import TokenStore
from middleware.security import require_onshape_token
from services.users import upsert_user

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)

# Rate limiter for authentication endpoints
limiter = Limiter(key_func=get_remote_address)


def _auth_rate_limit() -> str:
    return current_app.config.get('AUTH_RATE_LIMIT', '30 per minute')


def _error_redirect(message: str):
    return redirect(f"/?error={quote(message, safe='')}")


def _safe_redirect_target(target: Optional[str]) -> str:
    """Only same-site paths are accepted as post-login targets"""
    if not target or not target.startswith('/') or target.startswith('//'):
        return '/'
    return target


def _record_user(access_token: str) -> None:
    """Best-effort upsert of the signed-in Onshape user"""
    client = OnshapeClient(
        access_token,
        api_url=current_app.config['ONSHAPE_API_URL'],
        timeout=current_app.config.get('HTTP_TIMEOUT', 30),
        http=current_app.extensions.get('onshape_http'),
    )
    try:
        info = client.get_current_user()
        if info.get('id'):
            upsert_user(info['id'], info.get('firstName'), info.get('lastName'))
    except (OnshapeApiError, ApiError) as e:
        logger.warning(f"Could not record signed-in user: {e}")


@auth_bp.route('/auth/onshape', methods=['GET'])
@limiter.limit(_auth_rate_limit)
def start_onshape_auth():
    """Redirect the browser to the Onshape consent page"""
    store = TokenStore()
    redirect_to = _safe_redirect_target(request.args.get('redirect'))

    if store.is_authenticated():
        return redirect(redirect_to)

    oauth = get_oauth_client()
    state = secrets.token_hex(32)
    store.set_oauth_state(state)
    store.set_redirect(redirect_to)

    logger.info("Starting Onshape OAuth flow")
    return redirect(oauth.authorization_url(state))


@auth_bp.route('/auth/onshape/callback', methods=['GET'])
@limiter.limit(_auth_rate_limit)
def onshape_callback():
    """Exchange the authorization code and store the token pair"""
    error = request.args.get('error')
    if error:
        logger.warning(f"Onshape OAuth returned error: {error}")
        return _error_redirect(error)

    code = request.args.get('code')
    if not code:
        return _error_redirect('No authorization code received')

    store = TokenStore()
    stored_state = store.get_oauth_state()
    state = request.args.get('state')

    if not stored_state:
        # Session lost or state expired: start over
        logger.warning("OAuth callback without a pending state, restarting sign-in")
        store.clear_all()
        return redirect('/auth/onshape')

    if not state or not secrets.compare_digest(state.encode(), stored_state.encode()):
        logger.error("OAuth state validation failed")
        return _error_redirect('Invalid state parameter. Please try again.')

    try:
        tokens = get_oauth_client().exchange_code(code)
    except (OnshapeAuthError, ApiError) as e:
        logger.error(f"Token exchange error: {e}")
        store.clear_all()
        return _error_redirect('Failed to exchange authorization code')

    store.set_tokens(tokens.access_token, tokens.refresh_token, tokens.expires_in)
    store.clear_oauth_state()
    _record_user(tokens.access_token)

    logger.info("Onshape sign-in completed")
    return redirect(_safe_redirect_target(store.pop_redirect('/')))


@auth_bp.route('/auth/logout', methods=['GET'])
def logout():
    TokenStore().clear_all()
    logger.info("Signed out of Onshape")
    return redirect('/')


@auth_bp.route('/auth/status', methods=['GET'])
def auth_status():
    return jsonify({'onshape': {'authenticated': TokenStore().is_authenticated()}})


@auth_bp.route('/api/onshape/token', methods=['GET'])
@require_onshape_token
def onshape_token():
    """Current (refreshed if needed) access token for client-side Onshape calls"""
    return jsonify({'accessToken': g.onshape.access_token})
