"""
Object key scheme for photo variants.

Layout:
    users/{user_id}/albums/{album_id}/photos/{timestamp}-{token}.{ext}
    users/{user_id}/photos/{timestamp}-{token}.{ext}
    gallery/{event_id}/{album_id}/{timestamp}-{token}.{ext}   (event galleries, single object)

Each user photo is stored as three objects. The thumbnail and medium keys are
derived from the original key by inserting a suffix before the extension:
    .../1700000000000-abc.jpg  ->  .../1700000000000-abc-thumb.jpg
                               ->  .../1700000000000-abc-medium.jpg
"""
import re
import secrets
import time
from typing import List, Optional

THUMBNAIL_SUFFIX = "-thumb"
MEDIUM_SUFFIX = "-medium"

_TOKEN_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
TOKEN_LENGTH = 12
DEFAULT_EXTENSION = "bin"

_EXTENSION_RE = re.compile(r"^[a-z0-9]{1,10}$")


def _random_token(length: int = TOKEN_LENGTH) -> str:
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


def extract_extension(filename: str, fallback: Optional[str] = None) -> str:
    """
    Return the lower-cased extension of the filename's last path segment.

    Falls back to `fallback` (or "bin") when the name has no usable extension:
    no dot, a trailing dot, or something other than 1-10 ASCII alphanumerics.
    """
    segment = (filename or "").replace("\\", "/").rsplit("/", 1)[-1]
    if "." in segment:
        ext = segment.rsplit(".", 1)[1].lower()
        if _EXTENSION_RE.match(ext):
            return ext
    if fallback:
        fallback = fallback.lower().lstrip(".")
        if _EXTENSION_RE.match(fallback):
            return fallback
    return DEFAULT_EXTENSION


def generate_key(
    user_id: str,
    filename: str,
    album_id: Optional[str] = None,
    fallback_extension: Optional[str] = None,
) -> str:
    """
    Build a fresh canonical key for an uploaded original.

    Never idempotent: each call embeds the current millisecond timestamp and a
    random base-36 token.
    """
    ext = extract_extension(filename, fallback_extension)
    name = f"{int(time.time() * 1000)}-{_random_token()}.{ext}"
    if album_id:
        return f"users/{user_id}/albums/{album_id}/photos/{name}"
    return f"users/{user_id}/photos/{name}"


def generate_gallery_key(
    event_id: str,
    album_id: str,
    filename: str,
    fallback_extension: Optional[str] = None,
) -> str:
    """Fresh key for an event gallery photo. Gallery photos have no variants."""
    ext = extract_extension(filename, fallback_extension)
    return f"gallery/{event_id}/{album_id}/{int(time.time() * 1000)}-{_random_token()}.{ext}"


def _derive(key: str, suffix: str) -> str:
    head, sep, segment = key.rpartition("/")
    if "." in segment:
        stem, ext = segment.rsplit(".", 1)
        segment = f"{stem}{suffix}.{ext}"
    else:
        segment = f"{segment}{suffix}"
    return f"{head}{sep}{segment}"


def derive_thumbnail_key(key: str) -> str:
    return _derive(key, THUMBNAIL_SUFFIX)


def derive_medium_key(key: str) -> str:
    return _derive(key, MEDIUM_SUFFIX)


def derive_variant_keys(key: str) -> List[str]:
    """[original, thumbnail, medium] for a canonical key."""
    return [key, derive_thumbnail_key(key), derive_medium_key(key)]
