"""Tests for the equipment endpoints."""

import io
from unittest.mock import patch

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from conftest import public_url


def create(client, **fields):
    payload = {'name': 'Haas Mini Mill', **fields}
    return client.post('/api/equipment', json=payload)


class TestCreateEquipment:

    def test_empty_name_is_rejected(self, client):
        response = client.post('/api/equipment', json={'name': ''})

        assert response.status_code == 400
        assert response.get_json() == {'error': 'Missing required field: name'}

    def test_creates_with_processes(self, client, make_process):
        make_process('process-cnc-milling', 'CNC Milling')

        response = create(client, category='CNC', status='available', location='Bay 2',
                          processIds=['process-cnc-milling'])

        assert response.status_code == 201
        equipment = response.get_json()['equipment']
        assert equipment['id'].startswith('equipment-')
        assert equipment['name'] == 'Haas Mini Mill'
        assert equipment['location'] == 'Bay 2'
        assert equipment['processIds'] == ['process-cnc-milling']

    def test_client_supplied_id(self, client):
        response = create(client, id='equipment-mill')
        assert response.get_json()['equipment']['id'] == 'equipment-mill'

    def test_invalid_category(self, client):
        response = create(client, category='Spaceship')
        assert response.status_code == 400

    def test_invalid_status(self, client):
        response = create(client, status='broken')
        assert response.status_code == 400

    def test_unknown_process_id(self, client):
        response = create(client, processIds=['process-missing'])

        assert response.status_code == 400
        assert client.get('/api/equipment').get_json() == {'equipment': []}

    def test_failed_process_association_keeps_equipment(self, client, make_process):
        make_process('process-cnc-milling', 'CNC Milling')
        real_commit = Session.commit
        calls = []

        def commit_then_fail(session):
            calls.append(session)
            if len(calls) == 2:
                raise SQLAlchemyError('association table locked')
            return real_commit(session)

        with patch.object(Session, 'commit', autospec=True, side_effect=commit_then_fail):
            response = create(client, id='equipment-mill', processIds=['process-cnc-milling'])

        assert response.status_code == 500
        assert response.get_json() == {'error': 'Equipment saved but process association failed'}
        saved = client.get('/api/equipment/equipment-mill')
        assert saved.status_code == 200
        assert saved.get_json()['equipment']['processIds'] == []

    def test_non_object_body(self, client):
        response = client.post('/api/equipment', data='nope', content_type='application/json')
        assert response.status_code == 400


class TestReadUpdateDelete:

    def test_list_newest_first(self, client):
        create(client, id='equipment-a', name='First')
        create(client, id='equipment-b', name='Second')

        ids = [e['id'] for e in client.get('/api/equipment').get_json()['equipment']]
        assert ids == ['equipment-b', 'equipment-a']

    def test_get_unknown(self, client):
        response = client.get('/api/equipment/equipment-missing')

        assert response.status_code == 404
        assert response.get_json() == {'error': 'Equipment not found'}

    def test_partial_update(self, client, make_process):
        make_process('process-measuring', 'Measuring')
        create(client, id='equipment-a', description='Old', location='Bay 1')

        response = client.put('/api/equipment/equipment-a', json={
            'description': '',
            'status': 'maintenance',
            'processIds': ['process-measuring'],
        })

        equipment = response.get_json()['equipment']
        assert equipment['description'] is None
        assert equipment['status'] == 'maintenance'
        assert equipment['location'] == 'Bay 1'
        assert equipment['processIds'] == ['process-measuring']

    def test_update_rejects_blank_name(self, client):
        create(client, id='equipment-a')
        response = client.put('/api/equipment/equipment-a', json={'name': '   '})
        assert response.status_code == 400

    def test_delete_removes_every_image(self, client, storage):
        urls = [public_url('equipment-images', 'a.jpg'), public_url('equipment-images', 'b.jpg')]
        create(client, id='equipment-a', imageUrls=urls)

        response = client.delete('/api/equipment/equipment-a')

        assert response.status_code == 200
        assert response.get_json()['equipment']['id'] == 'equipment-a'
        assert [c.args for c in storage.delete.call_args_list] == [
            ('equipment-images', urls[0]),
            ('equipment-images', urls[1]),
        ]
        assert client.get('/api/equipment/equipment-a').status_code == 404

    def test_delete_succeeds_when_image_deletion_fails(self, client, storage):
        storage.delete.return_value = False
        create(client, id='equipment-a', imageUrls=[public_url('equipment-images', 'a.jpg')])

        assert client.delete('/api/equipment/equipment-a').status_code == 200

    def test_delete_unknown(self, client):
        assert client.delete('/api/equipment/equipment-missing').status_code == 404


class TestImages:

    def test_upload_appends_url(self, client, storage):
        create(client, id='equipment-a')

        response = client.post(
            '/api/equipment/equipment-a/image',
            data={'file': (io.BytesIO(b'jpeg-bytes'), 'mill photo.jpg', 'image/jpeg')},
            content_type='multipart/form-data',
        )

        assert response.status_code == 201
        image_url = response.get_json()['imageUrl']
        bucket, name, data = storage.upload.call_args.args
        assert bucket == 'equipment-images'
        assert name.startswith('equipment-a-') and name.endswith('mill_photo.jpg')
        assert data == b'jpeg-bytes'
        equipment = client.get('/api/equipment/equipment-a').get_json()['equipment']
        assert equipment['imageUrls'] == [image_url]

    def test_upload_requires_file(self, client):
        create(client, id='equipment-a')
        response = client.post('/api/equipment/equipment-a/image', data={},
                               content_type='multipart/form-data')

        assert response.status_code == 400
        assert response.get_json() == {'error': 'No file provided'}

    def test_upload_rejects_non_images(self, client, storage):
        create(client, id='equipment-a')
        response = client.post(
            '/api/equipment/equipment-a/image',
            data={'file': (io.BytesIO(b'%PDF'), 'manual.pdf', 'application/pdf')},
            content_type='multipart/form-data',
        )

        assert response.status_code == 400
        storage.upload.assert_not_called()

    def test_upload_to_unknown_equipment(self, client):
        response = client.post(
            '/api/equipment/equipment-missing/image',
            data={'file': (io.BytesIO(b'x'), 'a.png', 'image/png')},
            content_type='multipart/form-data',
        )
        assert response.status_code == 404

    def test_remove_last_image_sets_null(self, client, storage):
        url = public_url('equipment-images', 'a.jpg')
        create(client, id='equipment-a', imageUrls=[url])

        response = client.delete('/api/equipment/equipment-a/image', query_string={'imageUrl': url})

        assert response.get_json() == {'success': True}
        storage.delete.assert_called_once_with('equipment-images', url)
        equipment = client.get('/api/equipment/equipment-a').get_json()['equipment']
        assert equipment['imageUrls'] is None

    def test_remove_requires_image_url(self, client):
        create(client, id='equipment-a')
        assert client.delete('/api/equipment/equipment-a/image').status_code == 400
