"""Tests for the OAuth browser routes and the token endpoint."""

import time
from urllib.parse import parse_qs, unquote, urlparse

from conftest import fake_response
from core.database_models import User, db
from core.token_store import (
    ACCESS_TOKEN_KEY, OAUTH_STATE_ISSUED_KEY, OAUTH_STATE_KEY, REDIRECT_KEY,
)

TOKEN_JSON = {'access_token': 'new-access', 'refresh_token': 'new-refresh', 'expires_in': 3600}


def pending_state(client, state='state-abc', redirect_to=None):
    with client.session_transaction() as sess:
        sess[OAUTH_STATE_KEY] = state
        sess[OAUTH_STATE_ISSUED_KEY] = time.time()
        if redirect_to:
            sess[REDIRECT_KEY] = redirect_to


class TestStartAuth:

    def test_redirects_to_onshape_with_state(self, client):
        response = client.get('/auth/onshape?redirect=/kanban')

        assert response.status_code == 302
        location = urlparse(response.headers['Location'])
        assert location.netloc == 'oauth.onshape.com'
        state = parse_qs(location.query)['state'][0]
        with client.session_transaction() as sess:
            assert sess[OAUTH_STATE_KEY] == state
            assert sess[REDIRECT_KEY] == '/kanban'

    def test_already_signed_in_skips_onshape(self, client, sign_in):
        sign_in()
        response = client.get('/auth/onshape?redirect=/equipment')

        assert response.status_code == 302
        assert response.headers['Location'].endswith('/equipment')

    def test_external_redirect_target_is_ignored(self, client, sign_in):
        sign_in()
        response = client.get('/auth/onshape?redirect=https://evil.example/')

        assert urlparse(response.headers['Location']).path == '/'
        assert 'evil.example' not in response.headers['Location']


class TestCallback:

    def test_provider_error_redirects_home(self, client):
        response = client.get('/auth/onshape/callback?error=access_denied')

        assert response.status_code == 302
        assert unquote(response.headers['Location']).endswith('/?error=access_denied')

    def test_missing_code(self, client):
        response = client.get('/auth/onshape/callback?state=x')
        assert 'No authorization code received' in unquote(response.headers['Location'])

    def test_lost_state_restarts_sign_in(self, client, oauth_http):
        response = client.get('/auth/onshape/callback?code=c&state=s')

        assert response.status_code == 302
        assert response.headers['Location'].endswith('/auth/onshape')
        oauth_http.post.assert_not_called()

    def test_state_mismatch_is_rejected(self, client, oauth_http):
        pending_state(client, 'expected')
        response = client.get('/auth/onshape/callback?code=c&state=other')

        assert 'Invalid state parameter' in unquote(response.headers['Location'])
        oauth_http.post.assert_not_called()

    def test_successful_exchange_stores_tokens_and_user(self, app, client, oauth_http, onshape_http):
        oauth_http.post.return_value = fake_response(json_data=TOKEN_JSON)
        onshape_http.request.return_value = fake_response(json_data={
            'id': 'user-1', 'firstName': 'Ada', 'lastName': 'lovelace',
        })
        pending_state(client, 'state-abc', redirect_to='/kanban')

        response = client.get('/auth/onshape/callback?code=the-code&state=state-abc')

        assert response.status_code == 302
        assert response.headers['Location'].endswith('/kanban')
        with client.session_transaction() as sess:
            assert ACCESS_TOKEN_KEY in sess
            assert OAUTH_STATE_KEY not in sess
        assert client.get('/auth/status').get_json() == {'onshape': {'authenticated': True}}

        with app.app_context():
            assert db.session.get(User, 'user-1').name == 'Ada L'

    def test_user_lookup_failure_does_not_block_sign_in(self, client, oauth_http, onshape_http):
        oauth_http.post.return_value = fake_response(json_data=TOKEN_JSON)
        onshape_http.request.return_value = fake_response(status=500, json_data={'message': 'boom'})
        pending_state(client)

        response = client.get('/auth/onshape/callback?code=c&state=state-abc')

        assert urlparse(response.headers['Location']).path == '/'
        assert client.get('/auth/status').get_json()['onshape']['authenticated'] is True

    def test_failed_exchange_clears_session(self, client, oauth_http):
        oauth_http.post.return_value = fake_response(status=401, text='bad code')
        pending_state(client)

        response = client.get('/auth/onshape/callback?code=c&state=state-abc')

        assert 'Failed to exchange authorization code' in unquote(response.headers['Location'])
        with client.session_transaction() as sess:
            assert OAUTH_STATE_KEY not in sess
            assert ACCESS_TOKEN_KEY not in sess


class TestSessionEndpoints:

    def test_status_when_signed_out(self, client):
        assert client.get('/auth/status').get_json() == {'onshape': {'authenticated': False}}

    def test_logout_clears_tokens(self, client, sign_in):
        sign_in()
        response = client.get('/auth/logout')

        assert response.status_code == 302
        assert client.get('/auth/status').get_json()['onshape']['authenticated'] is False

    def test_token_requires_sign_in(self, client):
        response = client.get('/api/onshape/token')

        assert response.status_code == 401
        assert response.get_json() == {'error': 'Not authenticated with Onshape'}

    def test_token_returns_fresh_token(self, client, sign_in, oauth_http):
        sign_in(access_token='live-token')

        response = client.get('/api/onshape/token')

        assert response.status_code == 200
        assert response.get_json() == {'accessToken': 'live-token'}
        oauth_http.post.assert_not_called()

    def test_stale_token_is_refreshed_once(self, client, sign_in, oauth_http):
        sign_in(expires_at=time.time() - 60)
        oauth_http.post.return_value = fake_response(json_data=TOKEN_JSON)

        response = client.get('/api/onshape/token')

        assert response.get_json() == {'accessToken': 'new-access'}
        assert oauth_http.post.call_count == 1

    def test_refresh_failure_answers_401_and_signs_out(self, client, sign_in, oauth_http):
        sign_in(expires_at=time.time() - 60)
        oauth_http.post.return_value = fake_response(status=400, text='invalid_grant')

        response = client.get('/api/onshape/token')

        assert response.status_code == 401
        assert 'error' in response.get_json()
        assert client.get('/auth/status').get_json()['onshape']['authenticated'] is False
