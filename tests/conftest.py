"""Shared fixtures: temporary storage, a fake genai client and mock HTTP transports."""

from types import SimpleNamespace
from typing import Callable, Optional

import httpx
import pytest

from veo_media_mcp.config import Settings
from veo_media_mcp.gateway import VeoGateway
from veo_media_mcp.store import ArtifactStore

VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42fake-video"
IMAGE_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


def video_operation(*uris, done=True, name="operations/test-op", error=None, video_bytes=None):
    """Build an object shaped like the SDK's GenerateVideosOperation."""
    response = None
    if done:
        response = SimpleNamespace(generated_videos=[
            SimpleNamespace(video=SimpleNamespace(uri=uri, video_bytes=video_bytes, mime_type="video/mp4"))
            for uri in uris
        ])
    return SimpleNamespace(name=name, done=done, error=error, response=response)


def images_response(*payloads, mime_type="image/png"):
    """Build an object shaped like the SDK's GenerateImagesResponse."""
    return SimpleNamespace(generated_images=[
        SimpleNamespace(image=SimpleNamespace(image_bytes=data, mime_type=mime_type))
        for data in payloads
    ])


class FakeModels:
    def __init__(self, client: "FakeGenaiClient"):
        self.client = client

    async def generate_videos(self, **kwargs):
        self.client.video_requests.append(kwargs)
        if self.client.error:
            raise self.client.error
        return self.client.next_operation()

    async def generate_images(self, **kwargs):
        self.client.image_requests.append(kwargs)
        if self.client.error:
            raise self.client.error
        return self.client.images


class FakeOperations:
    def __init__(self, client: "FakeGenaiClient"):
        self.client = client
        self.polls = 0

    async def get(self, operation):
        self.polls += 1
        return self.client.next_operation()


class FakeGenaiClient:
    """Stand-in for genai.Client exposing the ``aio`` surface the gateway uses.

    ``operations`` are returned in order by generate_videos and then by each
    poll; the last one repeats once the list is exhausted.
    """

    def __init__(self, operations=None, images=None, error: Optional[Exception] = None):
        self._operations = list(operations or [])
        self.images = images
        self.error = error
        self.video_requests: list[dict] = []
        self.image_requests: list[dict] = []
        self.operations = FakeOperations(self)
        self.aio = SimpleNamespace(models=FakeModels(self), operations=self.operations)

    def next_operation(self):
        if len(self._operations) > 1:
            return self._operations.pop(0)
        return self._operations[0]


def serve_bytes(data: bytes = VIDEO_BYTES, content_type: str = "video/mp4"):
    """Mock transport handler answering every request with ``data``."""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=data, headers={"content-type": content_type})
    return handler


def http_factory(handler: Callable[[httpx.Request], httpx.Response]):
    return lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a temporary storage directory, with instant polling."""
    return Settings(
        google_api_key="test-key",
        storage_dir=tmp_path / "storage",
        poll_interval=0,
        max_poll_seconds=0,
    )


@pytest.fixture
def video_store(settings):
    store = ArtifactStore(settings.video_dir, kind="video")
    store.ensure_directory()
    return store


@pytest.fixture
def image_store(settings):
    store = ArtifactStore(settings.image_dir, kind="image")
    store.ensure_directory()
    return store


@pytest.fixture
def make_gateway(settings, video_store, image_store):
    """Factory building a VeoGateway around a fake client and HTTP handler."""
    def _make(client=None, handler=None, **overrides):
        gateway_settings = settings.model_copy(update=overrides) if overrides else settings
        return VeoGateway(
            gateway_settings,
            video_store,
            image_store,
            client=client or FakeGenaiClient(operations=[video_operation("https://files.example/v1?alt=media")]),
            http_client_factory=http_factory(handler or serve_bytes()),
        )
    return _make
