#!/usr/bin/env python3
"""
MCP Server for Google Veo video generation.

Generates videos with Veo (from text, from an image, or from an image that
Imagen generates first) and stores every result locally, exposing the stored
videos and images as `videos://` and `images://` resources.
"""

import re
import sys
import logging
import argparse
from dataclasses import replace
from typing import Iterable, Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.types import CallToolResult, Resource as MCPResource

from . import tools
from .config import load_settings, configure_logging
from .errors import ConfigurationError, PersistenceError
from .gateway import VeoGateway
from .models import (
    GeneratedImageToVideoInput,
    GetArtifactInput,
    ImageGenerateInput,
    ImageToVideoInput,
    TextToVideoInput,
)
from .resources import (
    IMAGE_SCHEME,
    IMAGE_TEMPLATES,
    VIDEO_SCHEME,
    VIDEO_TEMPLATES,
    list_image_resources,
    list_video_resources,
    read_image,
    read_video,
    templates_json,
)
from .store import ArtifactStore

logger = logging.getLogger(__name__)

SERVER_NAME = "veo_media_mcp"
TRANSPORTS = ("stdio", "sse", "streamable-http")

DATA_URI = re.compile(rf"^({VIDEO_SCHEME}|{IMAGE_SCHEME})://([A-Za-z0-9_-]+)/data$")


# ============================================================================
# Server
# ============================================================================

class MediaServer(FastMCP):
    """FastMCP server whose resource listing includes every stored artifact."""

    def __init__(self, gateway: VeoGateway, **settings):
        super().__init__(SERVER_NAME, **settings)
        self.gateway = gateway

    async def list_resources(self) -> list[MCPResource]:
        resources = await super().list_resources()
        resources.extend(list_video_resources(self.gateway.video_store))
        resources.extend(list_image_resources(self.gateway.image_store))
        return resources

    async def read_resource(self, uri) -> Iterable[ReadResourceContents]:
        """Label full-data reads with the stored MIME type of the artifact."""
        contents = await super().read_resource(uri)
        match = DATA_URI.match(str(uri))
        if not match:
            return contents

        scheme, artifact_id = match.groups()
        store = self.gateway.video_store if scheme == VIDEO_SCHEME else self.gateway.image_store
        mime_type = store.get_metadata(artifact_id).mime_type
        return [replace(item, mime_type=mime_type) for item in contents]


GENERATION_ANNOTATIONS = {
    "readOnlyHint": False,
    "destructiveHint": False,
    "idempotentHint": False,
    "openWorldHint": True
}

READ_ANNOTATIONS = {
    "readOnlyHint": True,
    "destructiveHint": False,
    "idempotentHint": True,
    "openWorldHint": False
}


def create_server(gateway: VeoGateway, **settings) -> MediaServer:
    """Build the MCP server around an already constructed gateway.

    Extra keyword arguments are FastMCP settings such as ``port`` or ``log_level``.
    """
    mcp = MediaServer(gateway, **settings)

    # ------------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------------

    @mcp.resource(
        "videos://templates",
        name="video-templates",
        description="Example prompts for generating videos with Veo",
        mime_type="application/json"
    )
    def video_templates() -> str:
        return templates_json(VIDEO_TEMPLATES)

    @mcp.resource(
        "images://templates",
        name="image-templates",
        description="Example prompts for generating images with Imagen",
        mime_type="application/json"
    )
    def image_templates() -> str:
        return templates_json(IMAGE_TEMPLATES)

    @mcp.resource(
        "videos://{video_id}",
        name="videos",
        description="Metadata of a generated video",
        mime_type="application/json"
    )
    def video_metadata(video_id: str) -> str:
        return read_video(gateway.video_store, video_id)

    @mcp.resource(
        "videos://{video_id}/data",
        name="video-data",
        description="Contents of a downloaded video",
        mime_type="video/mp4"
    )
    def video_data(video_id: str) -> bytes:
        return read_video(gateway.video_store, video_id, include_full_data=True)

    @mcp.resource(
        "images://{image_id}",
        name="images",
        description="Metadata of a generated image",
        mime_type="application/json"
    )
    def image_metadata(image_id: str) -> str:
        return read_image(gateway.image_store, image_id)

    @mcp.resource(
        "images://{image_id}/data",
        name="image-data",
        description="Contents of a generated image",
        mime_type="image/png"
    )
    def image_data(image_id: str) -> bytes:
        return read_image(gateway.image_store, image_id, include_full_data=True)

    # ------------------------------------------------------------------------
    # Generation Tools
    # ------------------------------------------------------------------------

    @mcp.tool(
        name="generateVideoFromText",
        annotations={"title": "Generate Video from Text", **GENERATION_ANNOTATIONS},
        structured_output=False
    )
    async def generate_video_from_text(params: TextToVideoInput) -> CallToolResult:
        """Generate a video from a text prompt using Google Veo.

        The request is submitted as a long-running operation and polled until it
        completes. Each generated video is downloaded into local storage unless
        autoDownload is false, in which case only its remote URL is recorded.

        Args:
            params (TextToVideoInput): Input containing:
                - prompt (str): Description of the video
                - aspectRatio: '16:9' or '9:16'
                - personGeneration: 'dont_allow' or 'allow_adult'
                - numberOfVideos (int): 1 or 2
                - durationSeconds (int): 5 to 8
                - enhancePrompt, includeFullData, autoDownload: booleans (or "true"/"1")
                - negativePrompt (Optional[str]): What to avoid

        Returns:
            JSON with:
                - success, message
                - videoId / resourceUri: ID and `videos://` URI of the first video
                - metadata: Stored metadata of the first video
                - additionalVideos: Other generated videos, when more than one
                - videoData: Base64 video when includeFullData is true

        Example:
            prompt: "Panning wide shot of a calm lake at sunrise, mist over the water"
            durationSeconds: 8

        Note:
            Generation usually takes one to three minutes.
        """
        return await tools.generate_video_from_text(gateway, params)

    @mcp.tool(
        name="generateVideoFromImage",
        annotations={"title": "Generate Video from Image", **GENERATION_ANNOTATIONS},
        structured_output=False
    )
    async def generate_video_from_image(params: ImageToVideoInput) -> CallToolResult:
        """Animate an image into a video using Google Veo.

        The image may be an image content block, a tagged source
        ({kind: 'inline'|'path'|'url', value}), an http(s) URL, an absolute
        file path, or base64 data.

        Args:
            params (ImageToVideoInput): Input containing:
                - image: The image to animate
                - prompt (Optional[str]): Motion description
                - mimeType (Optional[str]): Image MIME type when it cannot be detected
                - plus the video settings of generateVideoFromText
                  (personGeneration only accepts 'dont_allow')

        Returns:
            JSON with the same fields as generateVideoFromText.
        """
        return await tools.generate_video_from_image(gateway, params)

    @mcp.tool(
        name="generateImage",
        annotations={"title": "Generate Image from Text", **GENERATION_ANNOTATIONS},
        structured_output=False
    )
    async def generate_image(params: ImageGenerateInput) -> CallToolResult:
        """Generate one to four images from a text prompt using Google Imagen.

        Args:
            params (ImageGenerateInput): Input containing:
                - prompt (str): Description of the image
                - numberOfImages (int): 1 to 4
                - includeFullData: Return the images inline as well

        Returns:
            JSON listing the stored images (imageId, resourceUri, metadata),
            followed by image content blocks when includeFullData is true.
        """
        return await tools.generate_image(gateway, params)

    @mcp.tool(
        name="generateVideoFromGeneratedImage",
        annotations={"title": "Generate Image then Video", **GENERATION_ANNOTATIONS},
        structured_output=False
    )
    async def generate_video_from_generated_image(params: GeneratedImageToVideoInput) -> CallToolResult:
        """Generate an image with Imagen and animate it into a video with Veo.

        The workflow:
        1. Generate the image(s) from the prompt and store them
        2. Animate the first generated image using videoPrompt (or prompt)
        3. Store the video(s)

        Returns:
            JSON with the video fields of generateVideoFromText plus imageId,
            imageResourceUri and imageMetadata.
        """
        return await tools.generate_video_from_generated_image(gateway, params)

    # ------------------------------------------------------------------------
    # Retrieval Tools
    # ------------------------------------------------------------------------

    @mcp.tool(
        name="listGeneratedVideos",
        annotations={"title": "List Generated Videos", **READ_ANNOTATIONS},
        structured_output=False
    )
    async def list_generated_videos() -> CallToolResult:
        """List all generated videos, newest first.

        Videos with downloaded=false were generated with autoDownload false; fetch
        their videoUrl (see getVideo) with your API key appended as &key=...
        """
        return await tools.list_generated_videos(gateway)

    @mcp.tool(
        name="listGeneratedImages",
        annotations={"title": "List Generated Images", **READ_ANNOTATIONS},
        structured_output=False
    )
    async def list_generated_images() -> CallToolResult:
        """List all generated images, newest first."""
        return await tools.list_generated_images(gateway)

    @mcp.tool(
        name="getImage",
        annotations={"title": "Get Image", **READ_ANNOTATIONS},
        structured_output=False
    )
    async def get_image(params: GetArtifactInput) -> CallToolResult:
        """Get a generated image by ID; includes the image itself unless includeFullData is false."""
        return await tools.get_image(gateway, params)

    @mcp.tool(
        name="getVideo",
        annotations={"title": "Get Video", **READ_ANNOTATIONS},
        structured_output=False
    )
    async def get_video(params: GetArtifactInput) -> CallToolResult:
        """Get a generated video's metadata by ID; set includeFullData to also get the base64 video.

        A video that was not downloaded has no local data. Its metadata.videoUrl
        holds the remote file without credentials: append &key=YOUR_API_KEY to
        fetch it.
        """
        return await tools.get_video(gateway, params)

    return mcp


# ============================================================================
# Server Entry Point
# ============================================================================

def main(argv: Optional[list[str]] = None):
    """Entry point for the MCP server."""
    parser = argparse.ArgumentParser(prog="veo-media-mcp", description="MCP server for Google Veo video generation")
    parser.add_argument("transport", nargs="?", default="stdio", choices=TRANSPORTS)
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
    except ConfigurationError as e:
        configure_logging()
        logger.critical(str(e))
        sys.exit(1)

    configure_logging(settings.log_level)

    video_store = ArtifactStore(settings.video_dir, kind="video")
    image_store = ArtifactStore(settings.image_dir, kind="image")
    try:
        video_store.ensure_directory()
        image_store.ensure_directory()
    except PersistenceError as e:
        logger.critical(str(e))
        sys.exit(1)

    gateway = VeoGateway(settings, video_store, image_store)
    mcp = create_server(gateway, port=settings.port, log_level=settings.log_level)

    logger.info(f"Starting {SERVER_NAME} with {args.transport} transport (storage: {video_store.directory})")
    mcp.run(transport=args.transport)


if __name__ == "__main__":
    main()
