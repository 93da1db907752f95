"""Tests for image reference classification and resolution."""

import base64
from pathlib import Path

import httpx
import pytest

from veo_media_mcp.errors import ImageFetchError, InvalidRequestError
from veo_media_mcp.images import classify_image_reference, resolve_image
from veo_media_mcp.models import ImageKind, ImageSource

from conftest import IMAGE_BYTES, http_factory, serve_bytes

ENCODED = base64.b64encode(IMAGE_BYTES).decode("ascii")


def never_called(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request to {request.url}")


class TestClassify:
    """Tests for turning loose strings into tagged sources."""

    @pytest.mark.parametrize("reference", ["https://example.com/cat.png", "HTTP://example.com/cat"])
    def test_urls(self, reference):
        assert classify_image_reference(reference).kind == ImageKind.URL

    @pytest.mark.parametrize("reference", ["/tmp/cat.png", "C:\\images\\cat.jpg", "D:/images/cat.webp"])
    def test_absolute_paths(self, reference):
        assert classify_image_reference(reference).kind == ImageKind.PATH

    def test_file_url(self):
        source = classify_image_reference("file:///tmp/my%20cat.png")
        assert source.kind == ImageKind.PATH
        assert source.value == "/tmp/my cat.png"

    def test_existing_relative_path(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "cat.png").write_bytes(IMAGE_BYTES)

        assert classify_image_reference("cat.png").kind == ImageKind.PATH

    def test_missing_relative_path_is_inline(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert classify_image_reference("cat.png").kind == ImageKind.INLINE

    def test_base64_and_data_urls_are_inline(self):
        assert classify_image_reference(ENCODED).kind == ImageKind.INLINE
        assert classify_image_reference(f"data:image/png;base64,{ENCODED}").kind == ImageKind.INLINE

    def test_hint_is_kept(self):
        assert classify_image_reference(ENCODED, "image/webp").mime_type == "image/webp"


class TestResolveUrl:
    """Tests for fetching images over HTTP."""

    @pytest.mark.asyncio
    async def test_content_type_from_response(self):
        source = ImageSource(kind=ImageKind.URL, value="https://example.com/cat")

        image = await resolve_image(source, http_factory(serve_bytes(IMAGE_BYTES, "image/webp; q=1")))

        assert image.data == IMAGE_BYTES
        assert image.mime_type == "image/webp"

    @pytest.mark.asyncio
    async def test_hint_when_no_content_type(self):
        def handler(request):
            return httpx.Response(200, content=IMAGE_BYTES)

        source = ImageSource(kind=ImageKind.URL, value="https://example.com/cat", mime_type="image/gif")
        image = await resolve_image(source, http_factory(handler))

        assert image.mime_type == "image/gif"

    @pytest.mark.asyncio
    async def test_generic_default(self):
        def handler(request):
            return httpx.Response(200, content=IMAGE_BYTES)

        source = ImageSource(kind=ImageKind.URL, value="https://example.com/cat")
        image = await resolve_image(source, http_factory(handler))

        assert image.mime_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_non_success_status(self):
        def handler(request):
            return httpx.Response(404)

        source = ImageSource(kind=ImageKind.URL, value="https://example.com/missing.png")
        with pytest.raises(ImageFetchError) as exc_info:
            await resolve_image(source, http_factory(handler))

        assert exc_info.value.status_code == 404


class TestResolvePath:
    """Tests for reading images from disk."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name, expected", [
        ("cat.png", "image/png"),
        ("cat.JPG", "image/jpeg"),
        ("cat.jpeg", "image/jpeg"),
        ("cat.gif", "image/gif"),
        ("cat.webp", "image/webp"),
    ])
    async def test_extension_mapping(self, tmp_path: Path, name, expected):
        path = tmp_path / name
        path.write_bytes(IMAGE_BYTES)

        image = await resolve_image(ImageSource(kind=ImageKind.PATH, value=str(path)), http_factory(never_called))

        assert image.data == IMAGE_BYTES
        assert image.mime_type == expected

    @pytest.mark.asyncio
    async def test_unknown_extension_uses_hint_then_default(self, tmp_path: Path):
        path = tmp_path / "cat.bmp"
        path.write_bytes(IMAGE_BYTES)

        hinted = await resolve_image(
            ImageSource(kind=ImageKind.PATH, value=str(path), mime_type="image/bmp"), http_factory(never_called)
        )
        default = await resolve_image(ImageSource(kind=ImageKind.PATH, value=str(path)), http_factory(never_called))

        assert hinted.mime_type == "image/bmp"
        assert default.mime_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path: Path):
        source = ImageSource(kind=ImageKind.PATH, value=str(tmp_path / "missing.png"))

        with pytest.raises(InvalidRequestError, match="missing.png"):
            await resolve_image(source, http_factory(never_called))


class TestResolveInline:
    """Tests for decoding inline base64 data."""

    @pytest.mark.asyncio
    async def test_plain_base64(self):
        image = await resolve_image(ImageSource(kind=ImageKind.INLINE, value=ENCODED), http_factory(never_called))

        assert image.data == IMAGE_BYTES
        assert image.mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_data_url_mime_type(self):
        source = ImageSource(kind=ImageKind.INLINE, value=f"data:image/jpeg;base64,{ENCODED}")

        image = await resolve_image(source, http_factory(never_called))

        assert image.data == IMAGE_BYTES
        assert image.mime_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_invalid_base64(self):
        source = ImageSource(kind=ImageKind.INLINE, value="relative/path/cat.png")

        with pytest.raises(InvalidRequestError):
            await resolve_image(source, http_factory(never_called))
