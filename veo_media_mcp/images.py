"""
Resolution of caller-supplied image references into raw bytes.

A reference is either an explicitly tagged ImageSource or a loose string that
is classified once by classify_image_reference().
"""

import base64
import binascii
import logging
import re
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote, urlparse

import httpx

from .errors import ImageFetchError, InvalidRequestError
from .models import ImageKind, ImageSource, ResolvedImage

logger = logging.getLogger(__name__)

EXTENSION_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

DEFAULT_FETCHED_MIME_TYPE = "image/jpeg"
DEFAULT_INLINE_MIME_TYPE = "image/png"

_DATA_URL = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[^,]*)?;base64,(?P<data>.*)$", re.DOTALL)
_WINDOWS_PATH = re.compile(r"^[A-Za-z]:[\\/]")

HttpClientFactory = Callable[[], httpx.AsyncClient]


def classify_image_reference(reference: str, mime_type: Optional[str] = None) -> ImageSource:
    """Decide whether a loose string is a URL, a file path or inline base64 data."""
    value = reference.strip()
    lowered = value.lower()

    if lowered.startswith(("http://", "https://")):
        return ImageSource(kind=ImageKind.URL, value=value, mime_type=mime_type)

    if lowered.startswith("data:"):
        return ImageSource(kind=ImageKind.INLINE, value=value, mime_type=mime_type)

    if lowered.startswith("file://"):
        return ImageSource(kind=ImageKind.PATH, value=unquote(urlparse(value).path), mime_type=mime_type)

    if value.startswith("/") or _WINDOWS_PATH.match(value) or value.startswith("~"):
        return ImageSource(kind=ImageKind.PATH, value=value, mime_type=mime_type)

    # Relative paths only count when they point at an existing file
    if Path(value).suffix.lower() in EXTENSION_MIME_TYPES and _is_file(value):
        return ImageSource(kind=ImageKind.PATH, value=value, mime_type=mime_type)

    return ImageSource(kind=ImageKind.INLINE, value=value, mime_type=mime_type)


def _is_file(value: str) -> bool:
    try:
        return Path(value).is_file()
    except (OSError, ValueError):
        return False


def mime_type_for_path(path: str, hint: Optional[str] = None) -> str:
    return EXTENSION_MIME_TYPES.get(Path(path).suffix.lower()) or hint or DEFAULT_FETCHED_MIME_TYPE


async def resolve_image(source: ImageSource, http_client_factory: HttpClientFactory) -> ResolvedImage:
    """Load the bytes and MIME type of an image reference.

    Raises:
        ImageFetchError: a URL answered with a non-success status.
        InvalidRequestError: the file cannot be read or inline data is not base64.
    """
    if source.kind == ImageKind.URL:
        return await _fetch_image(source.value, source.mime_type, http_client_factory)
    if source.kind == ImageKind.PATH:
        return _read_image_file(source.value, source.mime_type)
    return _decode_inline_image(source.value, source.mime_type)


async def _fetch_image(url: str, hint: Optional[str], http_client_factory: HttpClientFactory) -> ResolvedImage:
    logger.debug(f"Fetching image from URL: {url[:80]}")
    async with http_client_factory() as client:
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            raise ImageFetchError(f"Failed to fetch image: {e}") from e

    if not response.is_success:
        raise ImageFetchError(
            f"Failed to fetch image: HTTP {response.status_code} {response.reason_phrase}",
            status_code=response.status_code,
        )
    if not response.content:
        raise ImageFetchError("Failed to fetch image: empty response body", status_code=response.status_code)

    content_type = response.headers.get("content-type", "").split(";")[0].strip()
    return ResolvedImage(
        data=response.content,
        mime_type=content_type or hint or DEFAULT_FETCHED_MIME_TYPE,
    )


def _read_image_file(path: str, hint: Optional[str]) -> ResolvedImage:
    logger.debug(f"Reading image from file: {path}")
    file_path = Path(path).expanduser()
    try:
        data = file_path.read_bytes()
    except OSError as e:
        raise InvalidRequestError(f"Cannot read image file {path}: {e.strerror or e}") from e

    if not data:
        raise InvalidRequestError(f"Image file is empty: {path}")

    return ResolvedImage(data=data, mime_type=mime_type_for_path(path, hint))


def _decode_inline_image(value: str, hint: Optional[str]) -> ResolvedImage:
    match = _DATA_URL.match(value)
    if match:
        hint = hint or match.group("mime")
        value = match.group("data")

    try:
        data = base64.b64decode("".join(value.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidRequestError(
            "Image is not a URL, an existing file path or valid base64 data"
        ) from e

    if not data:
        raise InvalidRequestError("Image data is empty")

    return ResolvedImage(data=data, mime_type=hint or DEFAULT_INLINE_MIME_TYPE)
