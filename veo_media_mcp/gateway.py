"""
Gateway to the Google generative media service.

Runs Veo video generation as a long-running remote operation, polls it to
completion, then fans out over the returned videos, downloading and storing
each one (or keeping only its remote URL). Imagen image generation is a single
call whose images are stored directly.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Optional

import httpx
from google import genai

from .config import Settings
from .errors import (
    DownloadError,
    InvalidRequestError,
    MediaGeneratorError,
    NoArtifactsPersistedError,
    NoArtifactsReturnedError,
    PersistenceError,
    PollTimeoutError,
    RemoteCallError,
)
from .images import resolve_image
from .models import (
    DEFAULT_IMAGE_PROMPT,
    ArtifactMetadata,
    GeneratedImage,
    GenerationOptions,
    GenerationResult,
    ImageSource,
    PersonGeneration,
    RemoteOperation,
    RemoteVideo,
    ResolvedImage,
    VideoConfig,
)
from .store import ArtifactStore, new_artifact_id

logger = logging.getLogger(__name__)

DEFAULT_VIDEO_MIME_TYPE = "video/mp4"
DEFAULT_IMAGE_MIME_TYPE = "image/png"


class VeoGateway:
    """Generates videos and images and stores the results.

    Created once at startup and shared by the tools and resource readers.
    """

    def __init__(
        self,
        settings: Settings,
        video_store: ArtifactStore,
        image_store: ArtifactStore,
        client: Optional[Any] = None,
        http_client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ):
        self.settings = settings
        self.video_store = video_store
        self.image_store = image_store
        self.client = client or genai.Client(api_key=settings.google_api_key)
        self._http_client_factory = http_client_factory or self._default_http_client

    def _default_http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.download_timeout, follow_redirects=True)

    # ========================================================================
    # Video Generation
    # ========================================================================

    async def generate_from_text(
        self,
        prompt: str,
        config: Optional[VideoConfig] = None,
        options: Optional[GenerationOptions] = None,
    ) -> GenerationResult:
        """Generate a video from a text prompt."""
        logger.info("Generating video from text prompt")
        return await self._generate_video(prompt, None, config or VideoConfig(), options or GenerationOptions())

    async def generate_from_image(
        self,
        image: ResolvedImage,
        prompt: Optional[str] = None,
        config: Optional[VideoConfig] = None,
        options: Optional[GenerationOptions] = None,
    ) -> GenerationResult:
        """Generate a video that animates ``image``."""
        config = config or VideoConfig()
        if config.person_generation == PersonGeneration.ALLOW_ADULT:
            raise InvalidRequestError("personGeneration 'allow_adult' is not supported for image-to-video")

        logger.info("Generating video from image")
        return await self._generate_video(
            prompt or DEFAULT_IMAGE_PROMPT, image, config, options or GenerationOptions()
        )

    async def resolve_image(self, source: ImageSource) -> ResolvedImage:
        return await resolve_image(source, self._http_client_factory)

    async def _generate_video(
        self,
        prompt: str,
        image: Optional[ResolvedImage],
        config: VideoConfig,
        options: GenerationOptions,
    ) -> GenerationResult:
        request: dict[str, Any] = {
            "model": self.settings.video_model,
            "prompt": prompt,
            "config": config.to_request(),
        }
        if image is not None:
            request["image"] = {"image_bytes": image.data, "mime_type": image.mime_type}

        logger.debug(f"Video request: prompt={prompt!r} config={request['config']} options={options.model_dump()}")

        try:
            operation = await self.client.aio.models.generate_videos(**request)
        except Exception as e:
            raise RemoteCallError(f"Video generation request failed: {e}") from e

        state = await self._wait_for_completion(operation)
        if state.error:
            raise RemoteCallError(f"Video generation failed: {state.error}")
        if not state.videos:
            raise NoArtifactsReturnedError("No videos generated in the response")

        artifacts = await self._fan_out(state.videos, prompt, config, options)
        primary = artifacts[0]

        data = None
        if options.include_full_data and primary.filepath:
            data = self.video_store.get(primary.id, include_full_data=True).data

        logger.info(f"Video generation complete: {len(artifacts)} artifact(s), primary {primary.id}")
        return GenerationResult(metadata=primary, artifacts=artifacts, data=data)

    async def _wait_for_completion(self, operation: Any) -> RemoteOperation:
        """Poll the remote operation until it is done.

        Raises PollTimeoutError once ``max_poll_seconds`` have elapsed (0 means
        no bound). Cancelling the calling task interrupts the wait.
        """
        bound = self.settings.max_poll_seconds
        deadline = time.monotonic() + bound if bound else None

        state = RemoteOperation.from_sdk(operation)
        while not state.done:
            if deadline is not None and time.monotonic() >= deadline:
                raise PollTimeoutError(
                    f"Video generation did not complete within {bound:g} seconds"
                    + (f" (operation {state.name})" if state.name else "")
                )
            logger.debug(f"Operation {state.name or ''} not complete, waiting...")
            await asyncio.sleep(self.settings.poll_interval)
            try:
                operation = await self.client.aio.operations.get(operation)
            except Exception as e:
                raise RemoteCallError(f"Failed to fetch operation status: {e}") from e
            state = RemoteOperation.from_sdk(operation)

        logger.debug(f"Operation {state.name or ''} complete with {len(state.videos)} video(s)")
        return state

    # ========================================================================
    # Fan-out
    # ========================================================================

    async def _fan_out(
        self,
        videos: list[RemoteVideo],
        prompt: str,
        config: VideoConfig,
        options: GenerationOptions,
    ) -> list[ArtifactMetadata]:
        """Materialize every result concurrently; one failure never cancels the others."""
        async with self._http_client_factory() as http:
            outcomes = await asyncio.gather(
                *(
                    self._materialize(http, index, video, prompt, config, options)
                    for index, video in enumerate(videos)
                ),
                return_exceptions=True,
            )

        artifacts: list[ArtifactMetadata] = []
        failures: list[BaseException] = []
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, MediaGeneratorError):
                    raise outcome
                logger.warning(f"Video {index + 1} failed: {outcome}")
                failures.append(outcome)
            elif outcome is not None:
                artifacts.append(outcome)

        if artifacts:
            if failures:
                logger.warning(f"{len(failures)} of {len(videos)} video(s) could not be stored")
            return artifacts

        persistence = [f for f in failures if isinstance(f, PersistenceError)]
        if persistence:
            raise persistence[0]
        if failures and all(isinstance(f, DownloadError) for f in failures):
            raise failures[0]
        raise NoArtifactsPersistedError("Failed to process any videos")

    async def _materialize(
        self,
        http: httpx.AsyncClient,
        index: int,
        video: RemoteVideo,
        prompt: str,
        config: VideoConfig,
        options: GenerationOptions,
    ) -> Optional[ArtifactMetadata]:
        if not video.fetchable:
            logger.warning(f"Generated video {index + 1} is missing a URI, skipping")
            return None

        artifact_id = new_artifact_id(index)
        mime_type = video.mime_type or DEFAULT_VIDEO_MIME_TYPE
        resolved = config.resolved()

        if video.data is not None and video.uri is None:
            logger.debug(f"Video {index + 1} returned inline")
            return self.video_store.store(video.data, mime_type, prompt, resolved, artifact_id)

        if not options.auto_download:
            return self.video_store.store_reference(video.uri, mime_type, prompt, resolved, artifact_id)

        logger.debug(f"Downloading video {index + 1}")
        data = await self._download(http, video.uri)
        return self.video_store.store(data, mime_type, prompt, resolved, artifact_id)

    async def _download(self, http: httpx.AsyncClient, uri: str) -> bytes:
        """Fetch a generated video; the API key is added to the URI's existing query."""
        url = httpx.URL(uri).copy_add_param("key", self.settings.google_api_key)
        try:
            response = await http.get(url)
        except httpx.HTTPError as e:
            raise DownloadError(f"Failed to fetch video: {type(e).__name__}") from e

        if not response.is_success:
            raise DownloadError(
                f"Failed to fetch video: HTTP {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response.content

    # ========================================================================
    # Image Generation
    # ========================================================================

    async def generate_images(self, prompt: str, number_of_images: int = 1) -> list[GeneratedImage]:
        """Generate images from a text prompt and store each one."""
        if not 1 <= number_of_images <= 4:
            raise InvalidRequestError("numberOfImages must be between 1 and 4")

        logger.info(f"Generating {number_of_images} image(s) from text prompt")
        try:
            response = await self.client.aio.models.generate_images(
                model=self.settings.image_model,
                prompt=prompt,
                config={"number_of_images": number_of_images},
            )
        except Exception as e:
            raise RemoteCallError(f"Image generation request failed: {e}") from e

        images = []
        for generated in getattr(response, "generated_images", None) or []:
            image = getattr(generated, "image", None)
            data = getattr(image, "image_bytes", None)
            if not data:
                logger.warning("Generated image has no data, skipping")
                continue
            mime_type = getattr(image, "mime_type", None) or DEFAULT_IMAGE_MIME_TYPE
            metadata = self.image_store.store(
                data, mime_type, prompt, {"numberOfImages": number_of_images}
            )
            images.append(GeneratedImage(metadata=metadata, data=data))

        if not images:
            raise NoArtifactsReturnedError("No images generated in the response")

        logger.info(f"Image generation complete: {len(images)} image(s)")
        return images
