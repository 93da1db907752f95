"""
MCP tool implementations.

Each tool takes the shared VeoGateway and its validated input model, and always
returns a CallToolResult: a JSON success payload, or a single error message
with ``isError`` set. Exceptions never escape a tool.
"""

import base64
import json
import logging
from typing import Any, Optional, Union

import httpx
from google.genai import errors as genai_errors
from mcp.types import CallToolResult, ImageContent, TextContent

from .errors import MediaGeneratorError, RemoteCallError
from .gateway import VeoGateway
from .images import classify_image_reference
from .models import (
    ArtifactMetadata,
    GenerationOptions,
    GenerationResult,
    GeneratedImageToVideoInput,
    GetArtifactInput,
    ImageContentInput,
    ImageGenerateInput,
    ImageKind,
    ImageSource,
    ImageToVideoInput,
    ResolvedImage,
    TextToVideoInput,
    VideoConfig,
    VideoOptionsInput,
)
from .resources import image_uri, video_uri

logger = logging.getLogger(__name__)


# ============================================================================
# Input Coercion
# ============================================================================

def coerce_flag(value: Union[bool, str, None], default: bool = False) -> bool:
    """Turn a boolean-ish tool parameter into a strict bool.

    ``default`` applies only when the parameter is absent. Strings are true
    when they equal "true" or "1", case-insensitively; anything else is false.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1")


def _video_config(params: VideoOptionsInput) -> VideoConfig:
    return VideoConfig(
        aspect_ratio=params.aspect_ratio,
        person_generation=params.person_generation,
        number_of_videos=params.number_of_videos,
        duration_seconds=params.duration_seconds,
        negative_prompt=params.negative_prompt,
        enhance_prompt=None if params.enhance_prompt is None else coerce_flag(params.enhance_prompt),
    )


def _generation_options(params: VideoOptionsInput) -> GenerationOptions:
    return GenerationOptions(
        auto_download=coerce_flag(params.auto_download, default=True),
        include_full_data=coerce_flag(params.include_full_data, default=False),
    )


def _image_source(params: ImageToVideoInput) -> ImageSource:
    image = params.image
    if isinstance(image, ImageContentInput):
        return ImageSource(kind=ImageKind.INLINE, value=image.data, mime_type=image.mime_type)
    if isinstance(image, ImageSource):
        if image.mime_type is None and params.mime_type:
            return image.model_copy(update={"mime_type": params.mime_type})
        return image
    return classify_image_reference(image, params.mime_type)


# ============================================================================
# Result Envelopes
# ============================================================================

STATUS_HINTS = {
    401: "Authentication failed. Check your API key.",
    402: "Insufficient credits.",
    403: "Access forbidden. Check API permissions.",
    404: "Resource not found.",
    429: "Rate limit exceeded. Please wait before retrying.",
}


def _status_code(e: BaseException) -> Optional[int]:
    if isinstance(e, httpx.HTTPStatusError):
        return e.response.status_code
    if isinstance(e, genai_errors.APIError):
        return e.code
    if isinstance(e, RemoteCallError) and e.__cause__ is not None:
        return _status_code(e.__cause__)
    return getattr(e, "status_code", None)


def format_error(e: BaseException, context: str = "") -> str:
    """Format errors consistently."""
    prefix = f"[{context}] " if context else ""

    status = _status_code(e)
    if status in STATUS_HINTS:
        return f"{prefix}Error: {e} ({STATUS_HINTS[status]})"

    if isinstance(e, httpx.TimeoutException):
        return f"{prefix}Error: Request timed out. Try again later."

    if isinstance(e, (MediaGeneratorError, ValueError)):
        return f"{prefix}Error: {e}"

    return f"{prefix}Error: {type(e).__name__} - {e}"


def _success(payload: dict[str, Any], images: Optional[list[ImageContent]] = None) -> CallToolResult:
    content: list[Union[TextContent, ImageContent]] = [
        TextContent(type="text", text=json.dumps(payload, indent=2, ensure_ascii=False))
    ]
    content.extend(images or [])
    return CallToolResult(content=content)


def _failure(e: BaseException, context: str) -> CallToolResult:
    logger.error(f"{context} failed: {e}")
    return CallToolResult(
        content=[TextContent(type="text", text=format_error(e, context))],
        isError=True,
    )


REMOTE_URL_NOTE = (
    "The video was not downloaded. Fetch videoUrl with your Google API key "
    "appended as the key query parameter (&key=YOUR_API_KEY)."
)


def _remote_url_note(payload: dict[str, Any], metadata: ArtifactMetadata) -> None:
    if metadata.is_deferred:
        payload["note"] = REMOTE_URL_NOTE


def _video_payload(result: GenerationResult, message: str) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "success": True,
        "message": message,
        "videoId": result.metadata.id,
        "resourceUri": video_uri(result.metadata.id),
        "metadata": result.metadata.to_json_dict(),
    }
    _remote_url_note(payload, result.metadata)
    if len(result.artifacts) > 1:
        payload["additionalVideos"] = [
            {"videoId": extra.id, "resourceUri": video_uri(extra.id)}
            for extra in result.artifacts[1:]
        ]
    if result.data is not None:
        payload["videoData"] = base64.b64encode(result.data).decode("ascii")
    return payload


def _image_content(data: bytes, mime_type: str) -> ImageContent:
    return ImageContent(type="image", data=base64.b64encode(data).decode("ascii"), mimeType=mime_type)


# ============================================================================
# Generation Tools
# ============================================================================

async def generate_video_from_text(gateway: VeoGateway, params: TextToVideoInput) -> CallToolResult:
    try:
        result = await gateway.generate_from_text(
            params.prompt, _video_config(params), _generation_options(params)
        )
        return _success(_video_payload(result, "Video generated successfully"))
    except Exception as e:
        return _failure(e, "Video Generation")


async def generate_video_from_image(gateway: VeoGateway, params: ImageToVideoInput) -> CallToolResult:
    try:
        image = await gateway.resolve_image(_image_source(params))
        result = await gateway.generate_from_image(
            image, params.prompt, _video_config(params), _generation_options(params)
        )
        return _success(_video_payload(result, "Video generated successfully"))
    except Exception as e:
        return _failure(e, "Video Generation")


async def generate_image(gateway: VeoGateway, params: ImageGenerateInput) -> CallToolResult:
    try:
        images = await gateway.generate_images(params.prompt, params.number_of_images)

        payload = {
            "success": True,
            "message": "Image generated successfully",
            "count": len(images),
            "imageIds": [image.metadata.id for image in images],
            "images": [
                {
                    "imageId": image.metadata.id,
                    "resourceUri": image_uri(image.metadata.id),
                    "metadata": image.metadata.to_json_dict(),
                }
                for image in images
            ],
        }
        inline = None
        if coerce_flag(params.include_full_data):
            inline = [_image_content(image.data, image.metadata.mime_type) for image in images]
        return _success(payload, inline)
    except Exception as e:
        return _failure(e, "Image Generation")


async def generate_video_from_generated_image(
    gateway: VeoGateway, params: GeneratedImageToVideoInput
) -> CallToolResult:
    """Generate an image, then animate it.

    The video call receives the generated bytes directly; the stored copy of
    the image is not read back.
    """
    try:
        images = await gateway.generate_images(params.prompt, params.number_of_images)
        first = images[0]

        result = await gateway.generate_from_image(
            ResolvedImage(data=first.data, mime_type=first.metadata.mime_type),
            params.video_prompt or params.prompt,
            _video_config(params),
            _generation_options(params),
        )

        payload = _video_payload(result, "Image and video generated successfully")
        payload.update({
            "imageId": first.metadata.id,
            "imageResourceUri": image_uri(first.metadata.id),
            "imageMetadata": first.metadata.to_json_dict(),
        })
        return _success(payload)
    except Exception as e:
        return _failure(e, "Image to Video Generation")


# ============================================================================
# Retrieval Tools
# ============================================================================

async def list_generated_videos(gateway: VeoGateway) -> CallToolResult:
    try:
        videos = sorted(gateway.video_store.list(), key=lambda m: m.created_at, reverse=True)
        return _success({
            "success": True,
            "count": len(videos),
            "videos": [
                {
                    "id": video.id,
                    "createdAt": video.created_at,
                    "prompt": video.prompt,
                    "resourceUri": video_uri(video.id),
                    "downloaded": bool(video.filepath),
                }
                for video in videos
            ],
        })
    except Exception as e:
        return _failure(e, "List Videos")


async def list_generated_images(gateway: VeoGateway) -> CallToolResult:
    try:
        images = sorted(gateway.image_store.list(), key=lambda m: m.created_at, reverse=True)
        return _success({
            "success": True,
            "count": len(images),
            "images": [
                {
                    "id": image.id,
                    "createdAt": image.created_at,
                    "prompt": image.prompt,
                    "resourceUri": image_uri(image.id),
                    "filepath": image.filepath,
                }
                for image in images
            ],
        })
    except Exception as e:
        return _failure(e, "List Images")


async def get_image(gateway: VeoGateway, params: GetArtifactInput) -> CallToolResult:
    try:
        include_full_data = coerce_flag(params.include_full_data, default=True)
        stored = gateway.image_store.get(params.id, include_full_data=include_full_data)

        payload = {
            "success": True,
            "imageId": stored.metadata.id,
            "resourceUri": image_uri(stored.metadata.id),
            "metadata": stored.metadata.to_json_dict(),
        }
        inline = None
        if stored.data is not None:
            inline = [_image_content(stored.data, stored.metadata.mime_type)]
        return _success(payload, inline)
    except Exception as e:
        return _failure(e, "Get Image")


async def get_video(gateway: VeoGateway, params: GetArtifactInput) -> CallToolResult:
    try:
        include_full_data = coerce_flag(params.include_full_data, default=False)
        stored = gateway.video_store.get(params.id, include_full_data=include_full_data)

        payload = {
            "success": True,
            "videoId": stored.metadata.id,
            "resourceUri": video_uri(stored.metadata.id),
            "metadata": stored.metadata.to_json_dict(),
        }
        _remote_url_note(payload, stored.metadata)
        if stored.data is not None:
            payload["videoData"] = base64.b64encode(stored.data).decode("ascii")
        return _success(payload)
    except Exception as e:
        return _failure(e, "Get Video")
