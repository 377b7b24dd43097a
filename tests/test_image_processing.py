"""
Unit tests for Pillow image processing and upload validation helpers
"""
import base64
import io

import pytest
from PIL import Image

from app.services.image_processing import (
    ImageProcessingError,
    ImageProcessor,
    extension_for_mime,
    is_valid_file_size,
    is_valid_image_format,
    sanitize_filename,
)
from conftest import make_image


@pytest.fixture
def processor():
    return ImageProcessor()


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


class TestValidationHelpers:
    """Test cases for format, size and filename helpers"""

    @pytest.mark.parametrize('mime,expected', [
        ('image/jpeg', True),
        ('image/jpg', True),
        ('IMAGE/PNG', True),
        ('image/webp', True),
        ('image/gif', False),
        ('application/pdf', False),
        ('', False),
        ('png', False),
    ])
    def test_is_valid_image_format(self, mime, expected):
        assert is_valid_image_format(mime) is expected

    def test_extension_for_mime(self):
        assert extension_for_mime('image/jpeg') == 'jpg'
        assert extension_for_mime('image/png') == 'png'
        assert extension_for_mime('text/plain') is None

    def test_is_valid_file_size(self):
        assert is_valid_file_size(1, max_size=10)
        assert is_valid_file_size(10, max_size=10)
        assert not is_valid_file_size(11, max_size=10)
        assert not is_valid_file_size(0, max_size=10)

    @pytest.mark.parametrize('name,expected', [
        ('My Photo (1).JPG', 'my_photo_1_.jpg'),
        ('  __weird__name__.png', 'weird_name_.png'),
        ('éàü.png', '.png'),
        ('***', 'photo'),
    ])
    def test_sanitize_filename(self, name, expected):
        assert sanitize_filename(name) == expected


class TestImageProcessor:
    """Test cases for resizing and re-encoding"""

    def test_keeps_png_format(self, processor):
        result = processor.process_image(make_image((10, 10), 'PNG'))

        assert result.content_type == 'image/png'
        assert result.extension == 'png'
        assert _open(result.data).format == 'PNG'

    def test_large_image_fits_bounding_box(self, processor):
        result = processor.process_image(make_image((4000, 1000), 'JPEG'), max_dimension=2048)

        assert (result.metadata.width, result.metadata.height) == (2048, 512)
        assert result.content_type == 'image/jpeg'

    def test_small_image_is_never_enlarged(self, processor):
        result = processor.create_medium(make_image((1, 1), 'PNG'))

        assert (result.metadata.width, result.metadata.height) == (1, 1)

    def test_thumbnail_in_requested_format(self, processor):
        result = processor.create_thumbnail(make_image((900, 600), 'PNG'), output_format='PNG')

        assert max(result.metadata.width, result.metadata.height) == processor.thumbnail_dimension
        assert result.content_type == 'image/png'

    def test_transparent_png_flattened_for_jpeg(self, processor):
        result = processor.process_image(
            make_image((20, 20), 'PNG', mode='RGBA'), output_format='JPEG'
        )

        assert _open(result.data).mode == 'RGB'

    def test_unsupported_source_format_becomes_jpeg(self, processor):
        result = processor.process_image(make_image((8, 8), 'GIF', mode='P', color=1))

        assert result.content_type == 'image/jpeg'

    def test_invalid_bytes_rejected(self, processor):
        with pytest.raises(ImageProcessingError):
            processor.process_image(b'not an image')

    def test_oversized_pixel_count_rejected(self, processor, monkeypatch):
        # Pillow raises DecompressionBombError above 2 * MAX_IMAGE_PIXELS
        monkeypatch.setattr(Image, 'MAX_IMAGE_PIXELS', 100)

        with pytest.raises(ImageProcessingError):
            processor.process_image(make_image((20, 20)))

    def test_get_metadata(self, processor):
        data = make_image((30, 20), 'WEBP')
        metadata = processor.get_metadata(data)

        assert (metadata.width, metadata.height, metadata.format) == (30, 20, 'WEBP')
        assert metadata.size == len(data)

    def test_fallback_data_url(self, processor):
        result = processor.create_fallback(make_image((5, 5), 'PNG'))
        url = result.to_data_url()

        assert url.startswith('data:image/png;base64,')
        assert base64.b64decode(url.split(',', 1)[1]) == result.data
