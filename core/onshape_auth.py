# core/onshape_auth.py
"""
Onshape OAuth 2.0 authorization-code flow
Documentation: https://onshape-public.github.io/docs/auth/
"""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import requests
from flask import current_app

from core.errors import ApiError

logger = logging.getLogger(__name__)


class OnshapeAuthError(Exception):
    """Token endpoint rejected the request or could not be reached"""


@dataclass
class TokenResponse:
    access_token: str
    refresh_token: str
    expires_in: float
    token_type: str = 'Bearer'

    @classmethod
    def from_json(cls, data: dict) -> 'TokenResponse':
        try:
            return cls(
                access_token=data['access_token'],
                refresh_token=data['refresh_token'],
                expires_in=float(data.get('expires_in', 3600)),
                token_type=data.get('token_type', 'Bearer'),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise OnshapeAuthError(f"Malformed token response: {e}") from e


def _mask(value: Optional[str], keep: int = 8) -> str:
    return f"{value[:keep]}..." if value else '(missing)'


class OnshapeOAuth:
    """Client for the Onshape authorization server"""

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str,
                 base_url: str = 'https://oauth.onshape.com',
                 scope: Optional[str] = None, timeout: float = 30,
                 http=None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.base_url = base_url.rstrip('/')
        self.scope = scope
        self.timeout = timeout
        self.http = http or requests.Session()

    @classmethod
    def from_config(cls, config) -> 'OnshapeOAuth':
        client_id = config.get('ONSHAPE_CLIENT_ID')
        client_secret = config.get('ONSHAPE_CLIENT_SECRET')
        redirect_uri = config.get('ONSHAPE_REDIRECT_URI')
        if not client_id or not client_secret or not redirect_uri:
            raise ApiError('Missing Onshape OAuth credentials')
        return cls(
            client_id,
            client_secret,
            redirect_uri,
            base_url=config.get('ONSHAPE_OAUTH_URL', 'https://oauth.onshape.com'),
            scope=config.get('ONSHAPE_SCOPE'),
            timeout=config.get('HTTP_TIMEOUT', 30),
        )

    @property
    def token_url(self) -> str:
        return f"{self.base_url}/oauth/token"

    def authorization_url(self, state: str) -> str:
        """
        Build the authorize redirect

        Scopes normally come from the app registration, so the scope parameter
        is only sent when one is configured explicitly.
        """
        params = {
            'response_type': 'code',
            'client_id': self.client_id,
            'redirect_uri': self.redirect_uri,
        }
        if self.scope:
            params['scope'] = self.scope
        params['state'] = state
        logger.debug(f"Authorization URL for client {_mask(self.client_id)}, state {_mask(state, 16)}")
        return f"{self.base_url}/oauth/authorize?{urlencode(params)}"

    def _token_request(self, data: dict) -> TokenResponse:
        try:
            response = self.http.post(
                self.token_url,
                data=data,
                headers={'Accept': 'application/json'},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise OnshapeAuthError(f"Token endpoint unreachable: {e}") from e

        if not response.ok:
            raise OnshapeAuthError(f"Token request failed ({response.status_code}): {response.text}")

        try:
            payload = response.json()
        except ValueError as e:
            raise OnshapeAuthError("Token endpoint returned invalid JSON") from e
        return TokenResponse.from_json(payload)

    def exchange_code(self, code: str) -> TokenResponse:
        """Exchange an authorization code for a token pair"""
        logger.info(f"Exchanging authorization code {_mask(code, 16)}")
        tokens = self._token_request({
            'grant_type': 'authorization_code',
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'redirect_uri': self.redirect_uri,
            'code': code,
        })
        logger.info("Authorization code exchange successful")
        return tokens

    def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """Trade a refresh token for a new token pair"""
        return self._token_request({
            'grant_type': 'refresh_token',
            'refresh_token': refresh_token,
            'client_id': self.client_id,
            'client_secret': self.client_secret,
        })


def get_oauth_client() -> OnshapeOAuth:
    """OAuth client for the current app; tests may inject one in app.extensions"""
    injected = current_app.extensions.get('onshape_oauth')
    if injected is not None:
        return injected
    return OnshapeOAuth.from_config(current_app.config)
