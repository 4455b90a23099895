"""Shared fixtures: a testing app with Onshape and storage collaborators mocked out."""

import os
import sys
import time
from unittest.mock import MagicMock

import pytest

# Ensure the project root is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from core.database_models import Process, db
from core.image_storage import ImageStorage
from core.onshape_auth import OnshapeOAuth
from core.token_store import ACCESS_TOKEN_KEY, EXPIRES_AT_KEY, REFRESH_TOKEN_KEY

STORAGE_URL = 'https://storage.example.test'


def fake_response(status=200, json_data=None, content=b'', headers=None, text=''):
    """Stand-in for requests.Response"""
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 400
    response.content = content
    response.text = text
    response.headers = headers or {}
    if json_data is None:
        response.json.side_effect = ValueError('No JSON')
    else:
        response.json.return_value = json_data
    return response


def public_url(bucket, path):
    return f"{STORAGE_URL}/storage/v1/object/public/{bucket}/{path}"


@pytest.fixture
def oauth_http():
    return MagicMock()


@pytest.fixture
def onshape_http():
    return MagicMock()


@pytest.fixture
def storage():
    storage = MagicMock(spec=ImageStorage)
    storage.upload.side_effect = lambda bucket, name, data, **kwargs: public_url(bucket, name)
    storage.delete.return_value = True
    return storage


@pytest.fixture
def app(oauth_http, onshape_http, storage):
    app = create_app('testing')
    app.extensions['onshape_oauth'] = OnshapeOAuth(
        app.config['ONSHAPE_CLIENT_ID'],
        app.config['ONSHAPE_CLIENT_SECRET'],
        app.config['ONSHAPE_REDIRECT_URI'],
        http=oauth_http,
    )
    app.extensions['onshape_http'] = onshape_http
    app.extensions['image_storage'] = storage

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def sign_in(app, client):
    """Put an encrypted token pair in the test client's session"""
    def _sign_in(access_token='access-1', refresh_token='refresh-1', expires_at=None):
        cipher = app.extensions['token_cipher']
        with client.session_transaction() as sess:
            sess[ACCESS_TOKEN_KEY] = cipher.encrypt(access_token.encode()).decode()
            sess[REFRESH_TOKEN_KEY] = cipher.encrypt(refresh_token.encode()).decode()
            sess[EXPIRES_AT_KEY] = expires_at if expires_at is not None else time.time() + 3600
    return _sign_in


@pytest.fixture
def make_process(app):
    def _make_process(process_id, name):
        with app.app_context():
            db.session.add(Process(id=process_id, name=name))
            db.session.commit()
        return process_id
    return _make_process
