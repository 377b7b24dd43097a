"""
Image processing using Pillow.
Bounded resize and re-encode of uploads, thumbnail and medium renditions,
format and size validation, filename sanitising.

Pillow work is CPU-bound; async callers run these methods in an executor.
"""
import base64
import io
import logging
import re
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from app.config import Settings, get_settings

logger = logging.getLogger("app.image")

# MIME subtype 기준 허용 형식
SUPPORTED_FORMATS = ("jpeg", "jpg", "png", "webp")

# Pillow format name -> (MIME type, extension)
_FORMAT_INFO = {
    "JPEG": ("image/jpeg", "jpg"),
    "PNG": ("image/png", "png"),
    "WEBP": ("image/webp", "webp"),
}


class ImageProcessingError(ValueError):
    """Image could not be decoded or encoded."""


@dataclass
class ImageMetadata:
    width: int
    height: int
    format: str
    size: int


@dataclass
class ProcessedImage:
    data: bytes
    metadata: ImageMetadata
    content_type: str

    @property
    def extension(self) -> str:
        return _FORMAT_INFO.get(self.metadata.format, ("", "bin"))[1]

    def to_data_url(self) -> str:
        """Inline data: URL (Base64 fallback storage)."""
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.content_type};base64,{encoded}"


def is_valid_image_format(mime_type: str) -> bool:
    """True for image/jpeg, image/jpg, image/png, image/webp."""
    if not mime_type or "/" not in mime_type:
        return False
    kind, subtype = mime_type.lower().split("/", 1)
    return kind == "image" and subtype in SUPPORTED_FORMATS


def extension_for_mime(mime_type: str) -> Optional[str]:
    if not is_valid_image_format(mime_type):
        return None
    subtype = mime_type.lower().split("/", 1)[1]
    return "jpg" if subtype in ("jpeg", "jpg") else subtype


def is_valid_file_size(size: int, max_size: Optional[int] = None) -> bool:
    max_size = max_size if max_size is not None else get_settings().max_upload_size_bytes
    return 0 < size <= max_size


def sanitize_filename(filename: str) -> str:
    """
    Lower-case, replace anything outside [a-z0-9.-] with '_',
    collapse repeated '_' and strip leading/trailing '_'.
    """
    name = (filename or "").lower()
    name = re.sub(r"[^a-z0-9.-]", "_", name)
    name = re.sub(r"_{2,}", "_", name)
    name = name.strip("_")
    return name or "photo"


class ImageProcessor:
    """
    Pillow-based processor.

    Output keeps the source format for JPEG/PNG/WEBP; anything else Pillow can
    decode is re-encoded as JPEG.
    """

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.max_dimension = settings.image_max_dimension
        self.medium_dimension = settings.image_medium_dimension
        self.thumbnail_dimension = settings.image_thumbnail_dimension
        self.fallback_dimension = settings.image_fallback_dimension
        self.jpeg_quality = settings.image_jpeg_quality
        self.fallback_quality = settings.image_fallback_quality
        self.webp_quality = settings.image_webp_quality

    def _open(self, image_data: bytes) -> Image.Image:
        try:
            image = Image.open(io.BytesIO(image_data))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise ImageProcessingError(f"Invalid image data: {e}") from e
        return image

    def get_metadata(self, image_data: bytes) -> ImageMetadata:
        image = self._open(image_data)
        return ImageMetadata(
            width=image.width,
            height=image.height,
            format=image.format or "unknown",
            size=len(image_data),
        )

    def _encode(self, image: Image.Image, fmt: str, quality: Optional[int] = None) -> bytes:
        buffer = io.BytesIO()
        if fmt == "JPEG":
            if image.mode in ("RGBA", "LA", "P"):
                # 투명 배경은 흰색으로
                if image.mode == "P":
                    image = image.convert("RGBA")
                background = Image.new("RGB", image.size, (255, 255, 255))
                background.paste(image, mask=image.split()[-1])
                image = background
            elif image.mode != "RGB":
                image = image.convert("RGB")
            image.save(
                buffer, format="JPEG",
                quality=quality or self.jpeg_quality, optimize=True,
            )
        elif fmt == "WEBP":
            image.save(buffer, format="WEBP", quality=quality or self.webp_quality)
        else:
            image.save(buffer, format="PNG", optimize=True, compress_level=9)
        return buffer.getvalue()

    def process_image(
        self,
        image_data: bytes,
        max_dimension: Optional[int] = None,
        quality: Optional[int] = None,
        output_format: Optional[str] = None,
    ) -> ProcessedImage:
        """
        Resize to fit inside max_dimension x max_dimension (never enlarging)
        and re-encode.

        Args:
            image_data: Raw image bytes
            max_dimension: Bounding box edge, defaults to IMAGE_MAX_DIMENSION
            quality: JPEG/WEBP quality override
            output_format: Pillow format name; defaults to the source format

        Returns:
            ProcessedImage with bytes, metadata and content type
        """
        image = self._open(image_data)
        source_format = (image.format or "").upper()
        fmt = (output_format or source_format).upper()
        if fmt not in _FORMAT_INFO:
            fmt = "JPEG"

        image = ImageOps.exif_transpose(image)
        bound = max_dimension or self.max_dimension
        image.thumbnail((bound, bound), Image.Resampling.LANCZOS)

        try:
            data = self._encode(image, fmt, quality)
        except (OSError, ValueError) as e:
            raise ImageProcessingError(f"Image encoding failed: {e}") from e

        return ProcessedImage(
            data=data,
            metadata=ImageMetadata(
                width=image.width, height=image.height, format=fmt, size=len(data)
            ),
            content_type=_FORMAT_INFO[fmt][0],
        )

    def create_thumbnail(self, image_data: bytes, output_format: Optional[str] = None) -> ProcessedImage:
        return self.process_image(
            image_data, max_dimension=self.thumbnail_dimension, output_format=output_format
        )

    def create_medium(self, image_data: bytes, output_format: Optional[str] = None) -> ProcessedImage:
        return self.process_image(
            image_data, max_dimension=self.medium_dimension, output_format=output_format
        )

    def create_fallback(self, image_data: bytes) -> ProcessedImage:
        """Smaller original used for inline (data: URL) storage."""
        return self.process_image(
            image_data,
            max_dimension=self.fallback_dimension,
            quality=self.fallback_quality,
        )
