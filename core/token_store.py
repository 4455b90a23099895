# core/token_store.py
"""
Onshape token storage in the signed, http-only session cookie

The access and refresh tokens are encrypted with Fernet before they are
placed in the session so the cookie payload never carries them in clear text.
The OAuth state used for CSRF protection is stored alongside its issue time.
"""

import base64
import logging
import time
from dataclasses import dataclass
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from flask import current_app, session

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = 'onshape_access_token'
REFRESH_TOKEN_KEY = 'onshape_refresh_token'
EXPIRES_AT_KEY = 'onshape_expires_at'
OAUTH_STATE_KEY = 'onshape_oauth_state'
OAUTH_STATE_ISSUED_KEY = 'onshape_oauth_state_issued'
REDIRECT_KEY = 'onshape_auth_redirect'


@dataclass
class OnshapeTokens:
    """Token triple as read back from the session"""
    access_token: Optional[str]
    refresh_token: Optional[str]
    expires_at: Optional[float]  # epoch seconds


def build_cipher(master_key: str) -> Fernet:
    """Derive a Fernet cipher from the configured master key"""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=b'basecamp_token_store',
        iterations=100000,
    )
    key = base64.urlsafe_b64encode(kdf.derive(master_key.encode()))
    return Fernet(key)


def init_token_store(app) -> None:
    """Create the token cipher once per application"""
    master_key = app.config.get('ENCRYPTION_KEY') or app.config['SECRET_KEY']
    app.extensions['token_cipher'] = build_cipher(master_key)
    app.logger.info("Token store encryption initialized")


class TokenStore:
    """
    Reads and writes Onshape credentials in the current request's session

    Must be used inside a request context; changes are committed when Flask
    serializes the session cookie on the response.
    """

    def __init__(self, cipher: Optional[Fernet] = None, clock=time.time):
        self.cipher = cipher or current_app.extensions['token_cipher']
        self.clock = clock

    def _encrypt(self, value: str) -> str:
        return self.cipher.encrypt(value.encode('utf-8')).decode('ascii')

    def _decrypt(self, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        try:
            return self.cipher.decrypt(value.encode('ascii')).decode('utf-8')
        except InvalidToken:
            logger.warning("Stored Onshape token could not be decrypted, ignoring it")
            return None

    def get_tokens(self) -> OnshapeTokens:
        expires_at = session.get(EXPIRES_AT_KEY)
        return OnshapeTokens(
            access_token=self._decrypt(session.get(ACCESS_TOKEN_KEY)),
            refresh_token=self._decrypt(session.get(REFRESH_TOKEN_KEY)),
            expires_at=float(expires_at) if expires_at is not None else None,
        )

    def set_tokens(self, access_token: str, refresh_token: str, expires_in: float) -> float:
        """Store a fresh token pair, returns the computed expiry"""
        expires_at = self.clock() + float(expires_in)
        session.permanent = True
        session[ACCESS_TOKEN_KEY] = self._encrypt(access_token)
        session[REFRESH_TOKEN_KEY] = self._encrypt(refresh_token)
        session[EXPIRES_AT_KEY] = expires_at
        return expires_at

    def clear_tokens(self) -> None:
        for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, EXPIRES_AT_KEY):
            session.pop(key, None)

    def is_authenticated(self) -> bool:
        return bool(self.get_tokens().access_token)

    # OAuth CSRF state

    def set_oauth_state(self, state: str) -> None:
        session[OAUTH_STATE_KEY] = state
        session[OAUTH_STATE_ISSUED_KEY] = self.clock()

    def get_oauth_state(self) -> Optional[str]:
        """Stored state, or None when absent or older than OAUTH_STATE_MAX_AGE"""
        state = session.get(OAUTH_STATE_KEY)
        if not state:
            return None
        issued = session.get(OAUTH_STATE_ISSUED_KEY) or 0
        max_age = current_app.config.get('OAUTH_STATE_MAX_AGE', 600)
        if self.clock() - float(issued) > max_age:
            logger.info("OAuth state expired")
            return None
        return state

    def clear_oauth_state(self) -> None:
        session.pop(OAUTH_STATE_KEY, None)
        session.pop(OAUTH_STATE_ISSUED_KEY, None)

    # Post-login redirect target

    def set_redirect(self, target: str) -> None:
        session[REDIRECT_KEY] = target

    def pop_redirect(self, default: str = '/') -> str:
        return session.pop(REDIRECT_KEY, None) or default

    def clear_all(self) -> None:
        self.clear_tokens()
        self.clear_oauth_state()
        session.pop(REDIRECT_KEY, None)
