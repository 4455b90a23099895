"""Tests for the session token store and the refresh guard."""

from unittest.mock import MagicMock

import pytest
from flask import session

from core.errors import NotAuthenticatedError
from core.onshape_auth import OnshapeAuthError, TokenResponse
from core.token_refresh import get_valid_access_token, needs_refresh
from core.token_store import ACCESS_TOKEN_KEY, TokenStore

NOW = 1_700_000_000.0


def make_store(now=NOW):
    return TokenStore(clock=lambda: now)


class TestNeedsRefresh:

    def test_unknown_expiry_needs_refresh(self):
        assert needs_refresh(None, now=NOW) is True

    def test_far_future_expiry_is_fresh(self):
        assert needs_refresh(NOW + 3600, now=NOW) is False

    def test_expiry_inside_margin_needs_refresh(self):
        assert needs_refresh(NOW + 299, now=NOW) is True

    def test_expiry_exactly_at_margin_needs_refresh(self):
        assert needs_refresh(NOW + 300, now=NOW) is True

    def test_past_expiry_needs_refresh(self):
        assert needs_refresh(NOW - 10, now=NOW) is True


class TestTokenStore:

    def test_tokens_are_encrypted_in_the_session(self, app):
        with app.test_request_context():
            store = make_store()
            expires_at = store.set_tokens('plain-access', 'plain-refresh', 3600)

            assert expires_at == NOW + 3600
            assert session[ACCESS_TOKEN_KEY] != 'plain-access'
            assert session.permanent is True

            tokens = store.get_tokens()
            assert tokens.access_token == 'plain-access'
            assert tokens.refresh_token == 'plain-refresh'
            assert tokens.expires_at == NOW + 3600

    def test_tampered_token_reads_as_missing(self, app):
        with app.test_request_context():
            store = make_store()
            store.set_tokens('a', 'r', 3600)
            session[ACCESS_TOKEN_KEY] = 'not-a-fernet-token'

            assert store.get_tokens().access_token is None
            assert store.is_authenticated() is False

    def test_clear_tokens(self, app):
        with app.test_request_context():
            store = make_store()
            store.set_tokens('a', 'r', 3600)
            store.clear_tokens()

            tokens = store.get_tokens()
            assert tokens.access_token is None
            assert tokens.refresh_token is None
            assert tokens.expires_at is None

    def test_oauth_state_expires_after_ten_minutes(self, app):
        with app.test_request_context():
            make_store(NOW).set_oauth_state('state-1')

            assert make_store(NOW + 599).get_oauth_state() == 'state-1'
            assert make_store(NOW + 601).get_oauth_state() is None

    def test_clear_all_drops_state_and_redirect(self, app):
        with app.test_request_context():
            store = make_store()
            store.set_tokens('a', 'r', 3600)
            store.set_oauth_state('state-1')
            store.set_redirect('/kanban')

            store.clear_all()

            assert store.get_oauth_state() is None
            assert store.pop_redirect() == '/'
            assert store.is_authenticated() is False


class TestGetValidAccessToken:

    def test_fresh_token_is_returned_without_refresh(self, app):
        oauth = MagicMock()
        with app.test_request_context():
            store = make_store()
            store.set_tokens('access-1', 'refresh-1', 3600)

            assert get_valid_access_token(store, lambda: oauth) == 'access-1'
        oauth.refresh_access_token.assert_not_called()

    def test_expired_token_is_refreshed_exactly_once(self, app):
        oauth = MagicMock()
        oauth.refresh_access_token.return_value = TokenResponse('access-2', 'refresh-2', 3600)
        with app.test_request_context():
            store = make_store()
            store.set_tokens('access-1', 'refresh-1', -60)

            assert get_valid_access_token(store, lambda: oauth) == 'access-2'

            tokens = store.get_tokens()
            assert tokens.access_token == 'access-2'
            assert tokens.refresh_token == 'refresh-2'
            assert tokens.expires_at == NOW + 3600
        oauth.refresh_access_token.assert_called_once_with('refresh-1')

    def test_token_expiring_soon_is_refreshed(self, app):
        oauth = MagicMock()
        oauth.refresh_access_token.return_value = TokenResponse('access-2', 'refresh-2', 3600)
        with app.test_request_context():
            store = make_store()
            store.set_tokens('access-1', 'refresh-1', 120)

            assert get_valid_access_token(store, lambda: oauth) == 'access-2'

    def test_refresh_failure_clears_tokens(self, app):
        oauth = MagicMock()
        oauth.refresh_access_token.side_effect = OnshapeAuthError('invalid_grant')
        with app.test_request_context():
            store = make_store()
            store.set_tokens('access-1', 'refresh-1', -60)

            with pytest.raises(NotAuthenticatedError) as exc:
                get_valid_access_token(store, lambda: oauth)

            assert exc.value.status_code == 401
            assert store.get_tokens().access_token is None
            assert store.get_tokens().refresh_token is None
        oauth.refresh_access_token.assert_called_once()

    def test_missing_tokens_raise_without_refresh(self, app):
        oauth = MagicMock()
        with app.test_request_context():
            with pytest.raises(NotAuthenticatedError):
                get_valid_access_token(make_store(), lambda: oauth)
        oauth.refresh_access_token.assert_not_called()
