"""Tests for the user directory."""

import pytest

from services.users import display_name, upsert_user


@pytest.mark.parametrize('first, last, expected', [
    ('Ada', 'Lovelace', 'Ada L'),
    ('Ada', 'lovelace', 'Ada L'),
    ('Ada', None, 'Ada'),
    ('Ada', '', 'Ada'),
    (None, 'Lovelace', None),
])
def test_display_name(first, last, expected):
    assert display_name(first, last) == expected


def test_upsert_updates_existing_user(app, client):
    with app.app_context():
        upsert_user('user-1', 'Ada', 'Lovelace')
        upsert_user('user-1', 'Ada', 'Byron')

    users = client.get('/api/users').get_json()

    assert len(users) == 1
    assert users[0]['onshapeUserId'] == 'user-1'
    assert users[0]['name'] == 'Ada B'


def test_get_user(app, client):
    with app.app_context():
        upsert_user('user-1', 'Grace', 'Hopper')

    response = client.get('/api/users/user-1')

    assert response.status_code == 200
    assert response.get_json()['name'] == 'Grace H'


def test_unknown_user(client):
    response = client.get('/api/users/nobody')

    assert response.status_code == 404
    assert response.get_json() == {'error': 'User not found'}
