"""
Event gallery tests: admin event/album/photo management, assigned-user
browsing and the ZIP download (httpx + moto S3)
"""
import io
import re
import zipfile

import pytest

from app.config import get_settings
from app.services.gallery import GalleryService, safe_zip_name
from app.services.photo import FileTooLargeError, UploadItem
from app.utils.storage_keys import generate_gallery_key
from conftest import auth_headers, list_keys, make_image

ADMIN = auth_headers('ADMIN1')


async def _create_event(client, name='Kim Wedding', user_ids=('U1',)):
    response = await client.post(
        '/api/admin/photo-events',
        json={'name': name, 'description': 'June', 'userIds': list(user_ids)},
        headers=ADMIN,
    )
    assert response.status_code == 201
    return response.json()['data']


async def _create_album(client, event_id, name='Ceremony'):
    response = await client.post(
        '/api/admin/photo-albums', json={'eventId': event_id, 'name': name}, headers=ADMIN
    )
    return response


async def _upload(client, album_id, name='shot.png', data=None, content_type='image/png'):
    return await client.post(
        '/api/admin/photo-upload',
        data={'albumId': album_id},
        files={'file': (name, data or make_image((6, 4)), content_type)},
        headers=ADMIN,
    )


@pytest.fixture
async def gallery(client, user, admin_user):
    """Event assigned to U1 with album "Ceremony" holding one photo"""
    event = await _create_event(client)
    album = (await _create_album(client, event['id'])).json()['data']
    photo = (await _upload(client, album['id'])).json()['data']
    return {'event': event, 'album': album, 'photo': photo}


class TestGalleryKeys:

    def test_gallery_key_layout(self):
        key = generate_gallery_key('E1', 'GA1', 'IMG 01.JPG')

        assert re.match(r'^gallery/E1/GA1/\d+-[0-9a-z]{12}\.jpg$', key)

    def test_gallery_key_fallback_extension(self):
        assert generate_gallery_key('E1', 'GA1', 'upload', fallback_extension='gif').endswith('.gif')

    @pytest.mark.parametrize('name,expected', [
        ('Kim: Wedding', 'Kim_ Wedding'),
        ('a/b\\c', 'a_b_c'),
        ('<>|?*"', '______'),
        ('', 'untitled'),
    ])
    def test_safe_zip_name(self, name, expected):
        assert safe_zip_name(name) == expected


class TestAdminEvents:
    """Event CRUD"""

    async def test_create_lists_users(self, client, user, admin_user):
        event = await _create_event(client)

        assert event['name'] == 'Kim Wedding'
        assert [u['id'] for u in event['users']] == ['U1']
        assert event['userCount'] == 1
        assert event['albums'] == []

    async def test_unknown_user_rejected(self, client, admin_user):
        response = await client.post(
            '/api/admin/photo-events', json={'name': 'X', 'userIds': ['ghost']}, headers=ADMIN
        )

        assert response.status_code == 400
        assert 'ghost' in response.json()['error']

    async def test_list_with_counts(self, client, gallery):
        response = await client.get('/api/admin/photo-events', headers=ADMIN)

        events = response.json()['data']
        assert len(events) == 1
        assert (events[0]['albumCount'], events[0]['userCount']) == (1, 1)

    async def test_update_replaces_users(self, client, gallery, other_user):
        event_id = gallery['event']['id']

        response = await client.patch(
            f'/api/admin/photo-events/{event_id}',
            json={'name': 'Kim & Lee Wedding', 'userIds': ['U2']},
            headers=ADMIN,
        )

        assert response.status_code == 200
        data = response.json()['data']
        assert data['name'] == 'Kim & Lee Wedding'
        assert [u['id'] for u in data['users']] == ['U2']
        assert (await client.get(f'/api/user/photo-events/{event_id}', headers=auth_headers('U1'))).status_code == 404

    async def test_delete_removes_objects(self, client, gallery, s3):
        assert len(list_keys(s3, 'gallery/')) == 1

        response = await client.delete(f"/api/admin/photo-events/{gallery['event']['id']}", headers=ADMIN)

        assert response.status_code == 200
        body = response.json()
        assert body['storageCleanup']['deleted'] == [gallery['photo']['s3Key']]
        assert body['warning'] is None
        assert list_keys(s3) == []
        missing = await client.get(f"/api/admin/photo-galleries/{gallery['photo']['id']}", headers=ADMIN)
        assert missing.status_code == 404

    async def test_requires_admin(self, client, user):
        response = await client.get('/api/admin/photo-events', headers=auth_headers('U1'))

        assert response.status_code == 403


class TestAdminAlbumsAndPhotos:
    """Gallery albums, uploads and photo management"""

    async def test_same_name_returns_existing_album(self, client, gallery):
        response = await _create_album(client, gallery['event']['id'], name='Ceremony')

        assert response.status_code == 200
        assert response.json()['data']['id'] == gallery['album']['id']
        assert response.json()['data']['photoCount'] == 1

    async def test_album_for_unknown_event(self, client, admin_user):
        response = await _create_album(client, 'nope')

        assert response.status_code == 404

    async def test_upload_stores_single_object(self, client, gallery, s3):
        photo = gallery['photo']

        assert re.match(
            rf"^gallery/{gallery['event']['id']}/{gallery['album']['id']}/\d+-[0-9a-z]{{12}}\.png$",
            photo['s3Key'],
        )
        assert list_keys(s3) == [photo['s3Key']]
        assert photo['mimeType'] == 'image/png'
        assert photo['filename'] == 'shot.png'

    async def test_gif_accepted(self, client, gallery):
        response = await _upload(
            client, gallery['album']['id'], 'anim.gif', make_image((4, 4), 'GIF', mode='P', color=1), 'image/gif'
        )

        assert response.status_code == 201

    @pytest.mark.parametrize('name,data,content_type,status_code', [
        ('doc.pdf', b'%PDF-1.4', 'application/pdf', 400),
        ('broken.png', b'not an image', 'image/png', 400),
    ])
    async def test_upload_rejected(self, client, gallery, s3, name, data, content_type, status_code):
        response = await _upload(client, gallery['album']['id'], name, data, content_type)

        assert response.status_code == status_code
        assert len(list_keys(s3)) == 1

    async def test_upload_too_large(self, client, gallery, monkeypatch):
        monkeypatch.setattr(get_settings(), 'gallery_max_upload_size_bytes', 10)

        response = await _upload(client, gallery['album']['id'])

        assert response.status_code == 413

    async def test_upload_to_unknown_album(self, client, admin_user):
        response = await _upload(client, 'nope')

        assert response.status_code == 404

    async def test_list_filters_and_search(self, client, gallery):
        other = (await _create_album(client, gallery['event']['id'], name='Party')).json()['data']
        await _upload(client, other['id'], 'dance.png')
        await _upload(client, other['id'], 'cake.png')

        everything = (await client.get('/api/admin/photo-galleries', headers=ADMIN)).json()
        assert everything['pagination']['total'] == 3

        by_album = (await client.get(f"/api/admin/photo-galleries?albumId={other['id']}", headers=ADMIN)).json()
        assert by_album['pagination']['total'] == 2

        search = (await client.get('/api/admin/photo-galleries?search=cake', headers=ADMIN)).json()
        assert [p['filename'] for p in search['data']] == ['cake.png']

        by_album_name = (await client.get('/api/admin/photo-galleries?search=ceremony', headers=ADMIN)).json()
        assert [p['filename'] for p in by_album_name['data']] == ['shot.png']

        page = (await client.get('/api/admin/photo-galleries?page=2&limit=2', headers=ADMIN)).json()
        assert len(page['data']) == 1
        assert page['pagination']['offset'] == 2
        assert page['pagination']['hasMore'] is False

    async def test_rename_and_move(self, client, gallery):
        other = (await _create_album(client, gallery['event']['id'], name='Party')).json()['data']

        response = await client.patch(
            f"/api/admin/photo-galleries/{gallery['photo']['id']}",
            json={'filename': 'first-kiss.png', 'albumId': other['id']},
            headers=ADMIN,
        )

        data = response.json()['data']
        assert data['filename'] == 'first-kiss.png'
        assert data['albumId'] == other['id']
        assert data['s3Key'] == gallery['photo']['s3Key']

    async def test_move_to_unknown_album(self, client, gallery):
        response = await client.patch(
            f"/api/admin/photo-galleries/{gallery['photo']['id']}", json={'albumId': 'nope'}, headers=ADMIN
        )

        assert response.status_code == 404

    async def test_delete_photo(self, client, gallery, s3):
        response = await client.delete(f"/api/admin/photo-galleries/{gallery['photo']['id']}", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()['warning'] is None
        assert list_keys(s3) == []


class TestGalleryService:
    """Service paths without the HTTP layer"""

    async def test_inline_fallback_when_storage_unconfigured(self, db_session, gallery, s3, unconfigured_storage):
        service = GalleryService(db_session, storage=unconfigured_storage)
        album = await service.get_album(gallery['album']['id'])

        photo = await service.upload_photo(
            album, UploadItem(filename='inline.png', content_type='image/png', data=make_image())
        )

        assert photo.s3_key is None
        assert photo.url.startswith('data:image/png;base64,')
        assert len(list_keys(s3)) == 1

    async def test_size_limit(self, db_session, gallery, monkeypatch):
        service = GalleryService(db_session)
        monkeypatch.setattr(service.settings, 'gallery_max_upload_size_bytes', 10)

        with pytest.raises(FileTooLargeError):
            service.validate_upload(UploadItem(filename='a.png', content_type='image/png', data=make_image()))


class TestUserEvents:
    """Browsing and downloading assigned events"""

    async def test_lists_only_assigned_events(self, client, gallery, other_user):
        await _create_event(client, name='Someone else', user_ids=['U2'])

        mine = (await client.get('/api/user/photo-events', headers=auth_headers('U1'))).json()['data']

        assert [e['name'] for e in mine] == ['Kim Wedding']

    async def test_unassigned_user_gets_404(self, client, gallery, other_user):
        event_id = gallery['event']['id']
        for path in ('', '/albums', f"/albums/{gallery['album']['id']}", '/download'):
            response = await client.get(f'/api/user/photo-events/{event_id}{path}', headers=auth_headers('U2'))
            assert response.status_code == 404

    async def test_event_detail_with_previews(self, client, gallery):
        for i in range(4):
            await _upload(client, gallery['album']['id'], f'more-{i}.png')

        response = await client.get(f"/api/user/photo-events/{gallery['event']['id']}", headers=auth_headers('U1'))

        data = response.json()['data']
        assert data['albumCount'] == 1
        album = data['albums'][0]
        assert album['photoCount'] == 5
        assert len(album['previewPhotos']) == 3
        assert album['previewPhotos'][0]['id'] == gallery['photo']['id']

    async def test_albums_ordered_by_name(self, client, gallery):
        await _create_album(client, gallery['event']['id'], name='Afterparty')

        response = await client.get(
            f"/api/user/photo-events/{gallery['event']['id']}/albums", headers=auth_headers('U1')
        )

        assert [a['name'] for a in response.json()['data']] == ['Afterparty', 'Ceremony']

    async def test_album_photos(self, client, gallery):
        response = await client.get(
            f"/api/user/photo-events/{gallery['event']['id']}/albums/{gallery['album']['id']}",
            headers=auth_headers('U1'),
        )

        body = response.json()
        assert body['album']['name'] == 'Ceremony'
        assert [p['id'] for p in body['data']] == [gallery['photo']['id']]

    async def test_download_zip_has_album_folders(self, client, gallery):
        other = (await _create_album(client, gallery['event']['id'], name='After: Party')).json()['data']
        await _upload(client, other['id'], 'dance.png')
        await _upload(client, other['id'], 'dance.png')

        response = await client.get(
            f"/api/user/photo-events/{gallery['event']['id']}/download", headers=auth_headers('U1')
        )

        assert response.status_code == 200
        assert response.headers['content-type'] == 'application/zip'
        assert response.headers['content-disposition'] == 'attachment; filename="Kim Wedding_fotos.zip"'
        with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
            names = sorted(archive.namelist())
            assert names == ['After_ Party/dance-1.png', 'After_ Party/dance.png', 'Ceremony/shot.png']
            assert archive.read('Ceremony/shot.png')[:8] == b'\x89PNG\r\n\x1a\n'

    async def test_download_skips_missing_objects(self, client, gallery, s3):
        await _upload(client, gallery['album']['id'], 'kept.png')
        s3.delete_object(Bucket='albumcraft-photos-test', Key=gallery['photo']['s3Key'])

        response = await client.get(
            f"/api/user/photo-events/{gallery['event']['id']}/download", headers=auth_headers('U1')
        )

        assert response.status_code == 200
        with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
            assert archive.namelist() == ['Ceremony/kept.png']

    async def test_download_empty_event(self, client, user, admin_user):
        event = await _create_event(client)

        response = await client.get(f"/api/user/photo-events/{event['id']}/download", headers=auth_headers('U1'))

        assert response.status_code == 400
        assert response.json()['error'] == 'No photos to download'
