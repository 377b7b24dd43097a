"""
Pytest configuration and fixtures for the AlbumCraft Pro API tests.
Provides a throwaway SQLite database, moto-mocked S3 and test data.
"""
import io
import os
import tempfile

# Set test environment variables before the app reads its settings
_test_dir = tempfile.mkdtemp(prefix="albumcraft-tests-")
os.environ.update({
    'DATABASE_URL': f'sqlite+aiosqlite:///{_test_dir}/test.db',
    'AWS_ACCESS_KEY_ID': 'testing',
    'AWS_SECRET_ACCESS_KEY': 'testing',
    'AWS_SECURITY_TOKEN': 'testing',
    'AWS_SESSION_TOKEN': 'testing',
    'AWS_DEFAULT_REGION': 'us-east-1',
    'AWS_REGION': 'us-east-1',
    'AWS_S3_BUCKET': 'albumcraft-photos-test',
    'JWT_SECRET_KEY': 'test-secret',
    'LOG_DIR': '',
    'RATE_LIMIT_ENABLED': 'false',
})
os.environ.pop('AWS_ENDPOINT_URL', None)

import boto3
import httpx
import pytest
from moto import mock_aws
from PIL import Image

from app.config import Settings
from app.database import async_session_maker, drop_db, init_db
from app.main import app
from app.models.album import Album, AlbumStatus
from app.models.user import User, UserPlan
from app.services.cache import get_cache
from app.services.s3_storage import S3StorageService, reset_storage_service
from app.utils.prometheus_metrics import ready
from app.utils.security import create_access_token, hash_password

BUCKET = 'albumcraft-photos-test'
REGION = 'us-east-1'


def make_image(size=(1, 1), fmt='PNG', mode='RGB', color=(200, 30, 30)) -> bytes:
    """Encode a solid-colour test image"""
    if mode == 'RGBA' and len(color) == 3:
        color = color + (128,)
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def auth_headers(user_id: str) -> dict:
    return {'Authorization': f'Bearer {create_access_token(user_id)}'}


def list_keys(s3_client, prefix: str = '') -> list:
    response = s3_client.list_objects_v2(Bucket=BUCKET, Prefix=prefix)
    return sorted(obj['Key'] for obj in response.get('Contents', []))


@pytest.fixture(autouse=True)
def s3():
    """Mocked S3 with the photo bucket; every test runs inside it"""
    with mock_aws():
        client = boto3.client('s3', region_name=REGION)
        client.create_bucket(Bucket=BUCKET)
        reset_storage_service()
        yield client
        reset_storage_service()


@pytest.fixture(autouse=True)
async def database():
    """Fresh tables and an empty read cache for each test"""
    await init_db()
    get_cache().clear()
    # ASGITransport does not run the lifespan
    ready.set(1)
    yield
    get_cache().clear()
    await drop_db()


@pytest.fixture
async def db_session():
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def unconfigured_storage():
    """Storage adapter without AWS settings (Base64 fallback mode)"""
    return S3StorageService(settings=Settings(
        aws_access_key_id='',
        aws_secret_access_key='',
        aws_region='',
        aws_s3_bucket='',
    ))


async def _create_user(user_id: str, email: str, **kwargs) -> User:
    async with async_session_maker() as session:
        user = User(
            id=user_id,
            email=email,
            name=kwargs.pop('name', user_id),
            hashed_password=hash_password(kwargs.pop('password', 'password123')),
            **kwargs,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


@pytest.fixture
async def user():
    """Regular user U1"""
    return await _create_user('U1', 'u1@example.com')


@pytest.fixture
async def other_user():
    return await _create_user('U2', 'u2@example.com')


@pytest.fixture
async def admin_user():
    return await _create_user('ADMIN1', 'admin@example.com', is_admin=True, plan=UserPlan.ENTERPRISE)


@pytest.fixture
async def album(user):
    """Album A123 owned by U1"""
    async with async_session_maker() as session:
        album = Album(id='A123', user_id=user.id, name='Wedding', status=AlbumStatus.IN_PROGRESS)
        session.add(album)
        await session.commit()
        await session.refresh(album)
        return album


@pytest.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url='http://test') as client:
        yield client


@pytest.fixture
def png_bytes():
    return make_image()
