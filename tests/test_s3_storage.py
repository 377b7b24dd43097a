"""
Unit tests for the S3 storage adapter
"""
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from app.config import Settings
from app.services.s3_storage import MAX_DELETE_BATCH, S3StorageService, StorageError
from app.utils.storage_keys import derive_variant_keys
from conftest import BUCKET, list_keys


def _echo_deleted(**kwargs):
    """delete_objects stub that reports every requested key as deleted"""
    return {'Deleted': [{'Key': obj['Key']} for obj in kwargs['Delete']['Objects']]}


def _stub_storage(**settings_overrides) -> S3StorageService:
    storage = S3StorageService(settings=Settings(**settings_overrides))
    storage._s3_client = MagicMock()
    return storage


def _photo(s3_key=None, is_s3_stored=True):
    return SimpleNamespace(s3_key=s3_key, is_s3_stored=is_s3_stored)


class TestUpload:
    """Test cases for variant upload"""

    async def test_upload_photo_variants_writes_three_objects(self, s3):
        storage = S3StorageService()
        key = 'users/U1/albums/A123/photos/1700000000000-abcdefghijkl.png'

        uploaded = await storage.upload_photo_variants(
            key, b'original', b'thumb', b'medium', 'image/png'
        )

        assert [uploaded.original, uploaded.thumbnail, uploaded.medium] == derive_variant_keys(key)
        assert list_keys(s3) == sorted(derive_variant_keys(key))
        head = s3.head_object(Bucket=BUCKET, Key=uploaded.thumbnail)
        assert head['ContentType'] == 'image/png'

    async def test_upload_failure_raises_storage_error(self):
        storage = _stub_storage()
        storage._s3_client.put_object.side_effect = ClientError(
            {'Error': {'Code': 'AccessDenied', 'Message': 'Access Denied'}}, 'PutObject'
        )

        with pytest.raises(StorageError):
            await storage.upload_file(b'data', 'users/U1/photos/x.png', 'image/png')

    async def test_later_variant_failure_leaves_earlier_objects(self):
        storage = _stub_storage()
        storage._s3_client.put_object.side_effect = [
            {},
            ClientError({'Error': {'Code': 'InternalError', 'Message': 'boom'}}, 'PutObject'),
        ]

        with pytest.raises(StorageError):
            await storage.upload_photo_variants('k/a.png', b'o', b't', b'm', 'image/png')

        assert storage._s3_client.put_object.call_count == 2
        assert storage._s3_client.delete_objects.call_count == 0

    def test_unconfigured_client_access_raises(self, unconfigured_storage):
        with pytest.raises(StorageError):
            unconfigured_storage._get_s3_client()


class TestDeleteFiles:
    """Test cases for batched deletion"""

    async def test_empty_input_makes_no_calls(self):
        storage = _stub_storage()

        result = await storage.delete_files([])

        assert result.deleted == [] and result.errors == []
        storage._s3_client.delete_objects.assert_not_called()

    async def test_unconfigured_store_makes_no_calls(self, unconfigured_storage):
        result = await unconfigured_storage.delete_files(['a', 'b'])

        assert result.deleted == [] and result.errors == []
        assert unconfigured_storage._s3_client is None

    async def test_batches_never_exceed_ceiling(self):
        storage = _stub_storage()
        storage._s3_client.delete_objects.side_effect = _echo_deleted
        keys = [f'users/U1/photos/{i}.png' for i in range(2500)]

        result = await storage.delete_files(keys)

        sizes = [
            len(call.kwargs['Delete']['Objects'])
            for call in storage._s3_client.delete_objects.call_args_list
        ]
        assert sizes == [MAX_DELETE_BATCH, MAX_DELETE_BATCH, 500]
        assert result.deleted == keys
        for call in storage._s3_client.delete_objects.call_args_list:
            assert call.kwargs['Bucket'] == BUCKET
            assert call.kwargs['Delete']['Quiet'] is False

    async def test_configured_batch_size(self):
        storage = _stub_storage(delete_batch_size=2)
        storage._s3_client.delete_objects.side_effect = _echo_deleted

        await storage.delete_files(['a', 'b', 'c', 'd', 'e'])

        assert storage._s3_client.delete_objects.call_count == 3

    async def test_partial_failure_is_reported_per_key(self):
        storage = _stub_storage()
        storage._s3_client.delete_objects.return_value = {
            'Deleted': [{'Key': 'a'}],
            'Errors': [
                {'Key': 'b', 'Code': 'AccessDenied', 'Message': 'Access Denied'},
                {'Key': 'c', 'Code': 'InternalError'},
                {'Key': 'd'},
            ],
        }

        result = await storage.delete_files(['a', 'b', 'c', 'd'])

        assert result.deleted == ['a']
        assert [(e.key, e.error) for e in result.errors] == [
            ('b', 'Access Denied'),
            ('c', 'InternalError'),
            ('d', 'Unknown error'),
        ]
        assert not result.ok

    async def test_failed_batch_marks_its_keys_and_continues(self):
        storage = _stub_storage(delete_batch_size=2)
        storage._s3_client.delete_objects.side_effect = [
            ClientError({'Error': {'Code': 'SlowDown', 'Message': 'Please reduce'}}, 'DeleteObjects'),
            {'Deleted': [{'Key': 'c'}]},
        ]

        result = await storage.delete_files(['a', 'b', 'c'])

        assert result.deleted == ['c']
        assert sorted(e.key for e in result.errors) == ['a', 'b']
        assert storage._s3_client.delete_objects.call_count == 2

    async def test_delete_photo_variants_removes_all_three(self, s3):
        storage = S3StorageService()
        key = 'users/U1/photos/1700000000000-abcdefghijkl.jpg'
        await storage.upload_photo_variants(key, b'o', b't', b'm', 'image/jpeg')

        result = await storage.delete_photo_variants(key)

        assert sorted(result.deleted) == sorted(derive_variant_keys(key))
        assert result.ok
        assert list_keys(s3) == []

    async def test_delete_photo_variants_without_key(self):
        storage = _stub_storage()

        result = await storage.delete_photo_variants(None)

        assert result.ok
        storage._s3_client.delete_objects.assert_not_called()


class TestDeleteAlbumFiles:
    """Test cases for album cleanup reports"""

    async def test_summary_counts_photos(self):
        storage = _stub_storage()
        good, bad = 'users/U1/photos/1-good.png', 'users/U1/photos/2-bad.png'
        good_keys, bad_keys = derive_variant_keys(good), derive_variant_keys(bad)
        storage._s3_client.delete_objects.return_value = {
            'Deleted': [{'Key': k} for k in good_keys + bad_keys[:2]],
            'Errors': [{'Key': bad_keys[2], 'Code': 'AccessDenied', 'Message': 'Access Denied'}],
        }
        photos = [_photo(good), _photo(bad), _photo(None, is_s3_stored=False)]

        report = await storage.delete_album_files(photos)

        assert report.total_photos == 3
        assert sorted(report.deleted_files) == sorted(good_keys + bad_keys[:2])
        assert report.summary.success_count == 1
        assert report.summary.error_count == 1
        assert report.summary.skipped_count == 1
        assert [e.key for e in report.errors] == [bad_keys[2]]
        assert report.has_errors
        sent = storage._s3_client.delete_objects.call_args.kwargs['Delete']['Objects']
        assert len(sent) == 6

    async def test_unconfigured_store_skips_every_photo(self, unconfigured_storage):
        photos = [_photo('users/U1/photos/1-a.png'), _photo(None, is_s3_stored=False)]

        report = await unconfigured_storage.delete_album_files(photos)

        assert report.total_photos == 2
        assert report.deleted_files == []
        assert report.summary.skipped_count == 2
        assert not report.has_errors

    async def test_empty_album(self):
        storage = _stub_storage()

        report = await storage.delete_album_files([])

        assert report.total_photos == 0
        storage._s3_client.delete_objects.assert_not_called()

    async def test_report_serialises_in_camel_case(self):
        storage = _stub_storage()
        storage._s3_client.delete_objects.side_effect = _echo_deleted

        report = await storage.delete_album_files([_photo('users/U1/photos/1-a.png')])
        body = report.model_dump(by_alias=True)

        assert body['totalPhotos'] == 1
        assert body['deletedFiles'] == derive_variant_keys('users/U1/photos/1-a.png')
        assert body['summary'] == {'successCount': 1, 'errorCount': 0, 'skippedCount': 0}


class TestUrls:
    """Test cases for public and presigned URLs"""

    def test_public_url_virtual_host(self):
        storage = S3StorageService()
        assert storage.public_url('users/U1/photos/a.png') == (
            f'https://{BUCKET}.s3.us-east-1.amazonaws.com/users/U1/photos/a.png'
        )

    def test_public_url_custom_endpoint(self):
        storage = S3StorageService(settings=Settings(aws_endpoint_url='http://localhost:9000/'))
        assert storage.public_url('k.png') == f'http://localhost:9000/{BUCKET}/k.png'

    async def test_presigned_download_url(self, s3):
        storage = S3StorageService()

        url = await storage.generate_presigned_download_url('users/U1/photos/a.png', 600)

        assert 'users/U1/photos/a.png' in url
        assert 'X-Amz-Expires=600' in url
