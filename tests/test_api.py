"""
HTTP API tests through the ASGI app (httpx + moto S3), including the
upload-then-delete lifecycle of a photo in album A123 for user U1
"""
import re

import pytest

from app.config import get_settings
from conftest import auth_headers, list_keys, make_image

KEY_RE = re.compile(r'^users/U1/albums/A123/photos/\d+-[0-9a-z]{12}\.png$')


def _png_file(name='pixel.png', data=None):
    return (name, data or make_image(), 'image/png')


async def _upload(client, data=None, files=None, user_id='U1'):
    return await client.post(
        '/api/photos',
        data=data or {},
        files=files or {'file': _png_file()},
        headers=auth_headers(user_id),
    )


class TestPhotoLifecycle:
    """Upload a 1x1 PNG to album A123 for U1, then delete it"""

    async def test_upload_to_album(self, client, album, s3):
        response = await _upload(client, data={'albumId': 'A123'})

        assert response.status_code == 201
        body = response.json()
        assert body['success'] is True
        assert body['message'] == '1 of 1 photo(s) uploaded'
        photo = body['photos'][0]
        assert photo['albumId'] == 'A123'
        assert photo['userId'] == 'U1'
        assert KEY_RE.match(photo['s3Key'])
        assert photo['isS3Stored'] is True
        assert list_keys(s3) == sorted([photo['s3Key'], photo['thumbnailKey'], photo['mediumKey']])

    async def test_delete_uploaded_photo(self, client, album, s3):
        photo = (await _upload(client, data={'albumId': 'A123'})).json()['photos'][0]

        response = await client.delete(f"/api/photos/{photo['id']}", headers=auth_headers('U1'))

        assert response.status_code == 200
        body = response.json()
        assert body['success'] is True
        assert sorted(body['storageCleanup']['deletedFiles']) == sorted(
            [photo['s3Key'], photo['thumbnailKey'], photo['mediumKey']]
        )
        assert body['storageCleanup']['errors'] == []
        assert body['storageCleanup']['summary'] == {
            'successCount': 1, 'errorCount': 0, 'skippedCount': 0,
        }
        assert body['warning'] is None
        assert list_keys(s3) == []

        missing = await client.get(f"/api/photos/{photo['id']}", headers=auth_headers('U1'))
        assert missing.status_code == 404
        assert missing.json() == {'success': False, 'error': 'Photo not found'}

    async def test_delete_without_object_store(self, client, album, s3, unconfigured_storage, monkeypatch):
        monkeypatch.setattr('app.services.s3_storage._storage_service', unconfigured_storage)
        photo = (await _upload(client, data={'albumId': 'A123'})).json()['photos'][0]
        assert photo['isS3Stored'] is False

        response = await client.delete(f"/api/photos/{photo['id']}", headers=auth_headers('U1'))

        assert response.status_code == 200
        cleanup = response.json()['storageCleanup']
        assert cleanup['totalPhotos'] == 1
        assert cleanup['summary']['skippedCount'] == 1
        assert cleanup['deletedFiles'] == []
        assert list_keys(s3) == []
        missing = await client.get(f"/api/photos/{photo['id']}", headers=auth_headers('U1'))
        assert missing.status_code == 404


class TestPhotoUpload:
    """Test cases for the upload endpoint"""

    async def test_no_file(self, client, user):
        response = await client.post('/api/photos', data={'albumId': 'A123'}, headers=auth_headers('U1'))

        assert response.status_code == 400
        assert response.json()['error'] == 'No file provided'

    async def test_requires_authentication(self, client):
        response = await client.post('/api/photos', files={'file': _png_file()})

        assert response.status_code == 401
        assert response.json()['success'] is False

    async def test_foreign_album_not_found(self, client, album, other_user, s3):
        response = await _upload(client, data={'albumId': 'A123'}, user_id='U2')

        assert response.status_code == 404
        assert list_keys(s3) == []

    async def test_unsupported_type(self, client, user):
        response = await _upload(client, files={'file': ('doc.pdf', b'%PDF-1.4', 'application/pdf')})

        assert response.status_code == 400
        assert 'Unsupported file type' in response.json()['error']

    async def test_single_file_too_large(self, client, user, monkeypatch):
        monkeypatch.setattr(get_settings(), 'max_upload_size_bytes', 10)

        response = await _upload(client)

        assert response.status_code == 413

    async def test_batch_reports_failures_as_warnings(self, client, user, s3):
        files = [
            ('files', _png_file('a.png')),
            ('files', ('notes.txt', b'hello', 'text/plain')),
            ('files', _png_file('b.png', make_image((20, 10)))),
        ]

        response = await _upload(client, files=files)

        assert response.status_code == 201
        body = response.json()
        assert len(body['photos']) == 2
        assert body['message'] == '2 of 3 photo(s) uploaded'
        assert len(body['warnings']) == 1
        assert body['warnings'][0].startswith('notes.txt:')
        assert len(list_keys(s3)) == 6

    async def test_batch_where_every_file_fails(self, client, user):
        files = [
            ('files', ('a.txt', b'a', 'text/plain')),
            ('files', ('b.gif', b'b', 'image/gif')),
        ]

        response = await _upload(client, files=files)

        assert response.status_code == 400
        assert response.json()['error'].startswith('No photos were uploaded')


class TestPhotoAccess:
    """Test cases for listing, ownership and moves"""

    async def test_list_own_photos(self, client, user):
        await _upload(client)
        await _upload(client)

        response = await client.get('/api/photos?limit=1', headers=auth_headers('U1'))

        body = response.json()
        assert response.status_code == 200
        assert len(body['data']) == 1
        assert body['pagination'] == {'total': 2, 'limit': 1, 'offset': 0, 'hasMore': True}

    async def test_list_other_users_photos_requires_admin(self, client, user, other_user, admin_user):
        await _upload(client)

        forbidden = await client.get('/api/photos?userId=U1', headers=auth_headers('U2'))
        allowed = await client.get('/api/photos?userId=U1', headers=auth_headers('ADMIN1'))

        assert forbidden.status_code == 403
        assert allowed.status_code == 200
        assert allowed.json()['pagination']['total'] == 1

    async def test_foreign_photo_forbidden(self, client, user, other_user):
        photo_id = (await _upload(client)).json()['photos'][0]['id']

        assert (await client.get(f'/api/photos/{photo_id}', headers=auth_headers('U2'))).status_code == 403
        assert (await client.delete(f'/api/photos/{photo_id}', headers=auth_headers('U2'))).status_code == 403

    async def test_delete_missing_photo(self, client, user):
        response = await client.delete('/api/photos/does-not-exist', headers=auth_headers('U1'))

        assert response.status_code == 404

    async def test_move_into_and_out_of_album(self, client, album):
        photo_id = (await _upload(client)).json()['photos'][0]['id']

        moved = await client.patch(
            f'/api/photos/{photo_id}', json={'albumId': 'A123'}, headers=auth_headers('U1')
        )
        assert moved.json()['data']['albumId'] == 'A123'

        listed = await client.get('/api/photos?albumId=A123', headers=auth_headers('U1'))
        assert listed.json()['pagination']['total'] == 1

        removed = await client.patch(
            f'/api/photos/{photo_id}', json={'albumId': None}, headers=auth_headers('U1')
        )
        assert removed.json()['data']['albumId'] is None

    async def test_download_url(self, client, user):
        photo = (await _upload(client)).json()['photos'][0]

        response = await client.get(f"/api/photos/{photo['id']}/download-url", headers=auth_headers('U1'))

        body = response.json()
        assert response.status_code == 200
        assert photo['s3Key'] in body['url']
        assert body['expiresIn'] == get_settings().s3_presigned_url_expire_seconds


class TestAuth:

    async def test_register_login_me(self, client):
        registered = await client.post(
            '/api/auth/register',
            json={'email': 'New@Example.com', 'name': 'New', 'password': 'password123'},
        )
        assert registered.status_code == 201
        assert registered.json()['email'] == 'new@example.com'
        assert registered.json()['plan'] == 'FREE'

        login = await client.post(
            '/api/auth/login', json={'email': 'new@example.com', 'password': 'password123'}
        )
        assert login.status_code == 200
        token = login.json()['accessToken']

        me = await client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'})
        assert me.json()['id'] == registered.json()['id']

    async def test_duplicate_email(self, client, user):
        response = await client.post(
            '/api/auth/register',
            json={'email': 'u1@example.com', 'password': 'password123'},
        )

        assert response.status_code == 400
        assert response.json() == {'success': False, 'error': 'Email already registered'}

    async def test_bad_password(self, client, user):
        response = await client.post(
            '/api/auth/login', json={'email': 'u1@example.com', 'password': 'wrong-password'}
        )

        assert response.status_code == 401

    async def test_invalid_body_is_400(self, client):
        response = await client.post('/api/auth/register', json={'email': 'not-an-email'})

        assert response.status_code == 400
        assert response.json()['success'] is False


class TestAlbums:

    async def test_crud(self, client, user):
        created = await client.post(
            '/api/albums', json={'name': 'Family', 'albumSize': '20x30'}, headers=auth_headers('U1')
        )
        assert created.status_code == 201
        album = created.json()['data']
        assert album['status'] == 'DRAFT'
        assert album['photoCount'] == 0

        updated = await client.patch(
            f"/api/albums/{album['id']}", json={'status': 'IN_PROGRESS'}, headers=auth_headers('U1')
        )
        assert updated.json()['data']['status'] == 'IN_PROGRESS'

        listed = await client.get('/api/albums', headers=auth_headers('U1'))
        assert [a['id'] for a in listed.json()['data']] == [album['id']]

    async def test_batch_create(self, client, user):
        response = await client.post(
            '/api/albums/batch',
            json={'albums': [{'name': 'Ceremony'}, {'name': 'Party', 'status': 'IN_PROGRESS'}]},
            headers=auth_headers('U1'),
        )

        assert response.status_code == 201
        body = response.json()
        assert body['total'] == 2
        assert body['message'] == '2 album(s) created'
        assert [a['name'] for a in body['data']] == ['Ceremony', 'Party']
        assert all(a['userId'] == 'U1' for a in body['data'])
        listed = await client.get('/api/albums', headers=auth_headers('U1'))
        assert len(listed.json()['data']) == 2

    @pytest.mark.parametrize('albums', [[], [{'name': 'x'}] * 51, [{'name': ''}]])
    async def test_batch_create_rejects_bad_sizes(self, client, user, albums):
        response = await client.post(
            '/api/albums/batch', json={'albums': albums}, headers=auth_headers('U1')
        )

        assert response.status_code == 400

    async def test_foreign_album_forbidden(self, client, album, other_user):
        response = await client.get('/api/albums/A123', headers=auth_headers('U2'))

        assert response.status_code == 403

    async def test_delete_album_cleans_storage(self, client, album, s3):
        await _upload(client, data={'albumId': 'A123'})
        await _upload(client, data={'albumId': 'A123'})

        response = await client.delete('/api/albums/A123', headers=auth_headers('U1'))

        body = response.json()
        assert response.status_code == 200
        assert body['data']['storageCleanup']['totalPhotos'] == 2
        assert len(body['data']['storageCleanup']['deletedFiles']) == 6
        assert body['data']['storageCleanup']['summary'] == {
            'successCount': 2, 'errorCount': 0, 'skippedCount': 0,
        }
        assert body['warning'] is None
        assert list_keys(s3) == []
        assert (await client.get('/api/albums/A123', headers=auth_headers('U1'))).status_code == 404


class TestDashboardAndAdmin:

    async def test_dashboard_stats(self, client, album):
        await _upload(client, data={'albumId': 'A123'})

        response = await client.get('/api/dashboard/stats', headers=auth_headers('U1'))

        stats = response.json()['data']
        assert stats['totalProjects'] == 1
        assert stats['activeProjects'] == 1
        assert stats['totalPhotos'] == 1
        assert stats['storageUsed'] > 0

    async def test_admin_routes_require_admin(self, client, user):
        response = await client.get('/api/admin/photos', headers=auth_headers('U1'))

        assert response.status_code == 403
        assert response.json()['error'] == 'Admin access required'

    async def test_admin_lists_every_photo(self, client, user, other_user, admin_user):
        await _upload(client, user_id='U1')
        await _upload(client, user_id='U2')

        response = await client.get('/api/admin/photos', headers=auth_headers('ADMIN1'))

        assert response.json()['pagination']['total'] == 2

    async def test_admin_deletes_any_album(self, client, album, admin_user, s3):
        await _upload(client, data={'albumId': 'A123'})

        response = await client.delete('/api/admin/albums/A123', headers=auth_headers('ADMIN1'))

        assert response.status_code == 200
        assert response.json()['data']['storageCleanup']['summary']['successCount'] == 1
        assert list_keys(s3) == []

    async def test_admin_batch_creates_albums_for_user(self, client, user, admin_user):
        response = await client.post(
            '/api/admin/albums/batch',
            json={'userId': 'U1', 'albums': [{'name': 'A'}, {'name': 'B'}]},
            headers=auth_headers('ADMIN1'),
        )

        assert response.status_code == 201
        assert [a['userId'] for a in response.json()['data']] == ['U1', 'U1']

    async def test_admin_batch_for_unknown_user(self, client, admin_user):
        response = await client.post(
            '/api/admin/albums/batch',
            json={'userId': 'nobody', 'albums': [{'name': 'A'}]},
            headers=auth_headers('ADMIN1'),
        )

        assert response.status_code == 404
        assert response.json()['error'] == 'User not found'

    @pytest.mark.parametrize('report_type', ['users', 'albums', 'overview'])
    async def test_report_export(self, client, admin_user, report_type):
        response = await client.get(
            f'/api/admin/reports/export?type={report_type}&period=7',
            headers=auth_headers('ADMIN1'),
        )

        assert response.status_code == 200
        assert response.headers['content-type'].startswith('text/csv')
        assert f'attachment; filename="{report_type}-' in response.headers['content-disposition']

    async def test_unknown_report_type(self, client, admin_user):
        response = await client.get('/api/admin/reports/export?type=photos', headers=auth_headers('ADMIN1'))

        assert response.status_code == 400


class TestOperationalEndpoints:

    async def test_health(self, client):
        response = await client.get('/health')

        assert response.status_code == 200
        assert response.json()['status'] == 'healthy'

    async def test_readiness_reports_storage_mode(self, client):
        response = await client.get('/health/readiness')

        assert response.json()['checks'] == {'database': 'up', 'storage': 's3'}

    async def test_liveness(self, client):
        assert (await client.get('/health/liveness')).json() == {'status': 'alive'}

    async def test_metrics(self, client):
        response = await client.get('/metrics')

        assert response.status_code == 200
        assert 'albumcraft_app_info' in response.text

    async def test_request_id_is_echoed(self, client, user):
        response = await client.get('/api/auth/me', headers={**auth_headers('U1'), 'X-Request-ID': 'req-123'})

        assert response.headers['X-Request-ID'] == 'req-123'
