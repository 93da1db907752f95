"""
Read-side adapters for the ``videos://`` and ``images://`` resource schemes.
"""

import json
import logging
from typing import Any, Union

from mcp.types import Resource

from .models import ArtifactMetadata, parse_timestamp
from .store import ArtifactStore

logger = logging.getLogger(__name__)

VIDEO_SCHEME = "videos"
IMAGE_SCHEME = "images"


def video_uri(artifact_id: str) -> str:
    return f"{VIDEO_SCHEME}://{artifact_id}"


def image_uri(artifact_id: str) -> str:
    return f"{IMAGE_SCHEME}://{artifact_id}"


# ============================================================================
# Single Item Reads
# ============================================================================

def metadata_projection(metadata: ArtifactMetadata) -> dict[str, Any]:
    """The fields exposed by a metadata-only read."""
    projection = {
        "id": metadata.id,
        "createdAt": metadata.created_at,
        "prompt": metadata.prompt,
        "config": metadata.config,
        "mimeType": metadata.mime_type,
        "size": metadata.size,
        "filepath": metadata.filepath,
    }
    if metadata.video_url:
        projection["videoUrl"] = metadata.video_url
    return projection


def read_artifact(store: ArtifactStore, artifact_id: str, include_full_data: bool = False) -> Union[str, bytes]:
    """Raw bytes for full reads, otherwise the metadata projection as JSON text.

    Raises ArtifactNotFoundError when the metadata (or, for full reads, the
    binary) is missing.
    """
    stored = store.get(artifact_id, include_full_data=include_full_data)
    if include_full_data:
        return stored.data
    return json.dumps(metadata_projection(stored.metadata), indent=2, ensure_ascii=False)


def read_video(store: ArtifactStore, artifact_id: str, include_full_data: bool = False) -> Union[str, bytes]:
    return read_artifact(store, artifact_id, include_full_data)


def read_image(store: ArtifactStore, artifact_id: str, include_full_data: bool = False) -> Union[str, bytes]:
    return read_artifact(store, artifact_id, include_full_data)


# ============================================================================
# Listings
# ============================================================================

def _human_timestamp(value: str) -> str:
    try:
        return parse_timestamp(value).astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")
    except ValueError:
        return value


def _describe(metadata: ArtifactMetadata, uri: str, label: str) -> Resource:
    return Resource(
        uri=uri,
        name=f"{label}: {metadata.prompt or 'Untitled'}",
        description=f"Generated on {_human_timestamp(metadata.created_at)}",
        mimeType=metadata.mime_type,
    )


def list_video_resources(store: ArtifactStore) -> list[Resource]:
    return [_describe(m, video_uri(m.id), "Video") for m in store.list()]


def list_image_resources(store: ArtifactStore) -> list[Resource]:
    return [_describe(m, image_uri(m.id), "Image") for m in store.list()]


# ============================================================================
# Prompt Templates
# ============================================================================

VIDEO_TEMPLATES = [
    {
        "title": "Nature Scene",
        "prompt": "Panning wide shot of a serene forest with sunlight filtering through the trees, cinematic quality",
        "config": {"aspectRatio": "16:9", "personGeneration": "dont_allow"},
    },
    {
        "title": "Urban Timelapse",
        "prompt": "Timelapse of a busy city intersection at night with cars leaving light trails, cinematic quality",
        "config": {"aspectRatio": "16:9", "personGeneration": "dont_allow"},
    },
    {
        "title": "Abstract Animation",
        "prompt": "Abstract fluid animation with vibrant colors morphing and flowing, digital art style",
        "config": {"aspectRatio": "16:9", "personGeneration": "dont_allow"},
    },
    {
        "title": "Product Showcase",
        "prompt": "Elegant product showcase of a modern smartphone rotating on a pedestal with soft lighting",
        "config": {"aspectRatio": "16:9", "personGeneration": "dont_allow"},
    },
    {
        "title": "Vertical Waterfall",
        "prompt": "Slow tilt up along a tall waterfall in a misty tropical gorge, water spray catching the light",
        "config": {"aspectRatio": "9:16", "personGeneration": "dont_allow", "durationSeconds": 8},
    },
]

IMAGE_TEMPLATES = [
    {
        "title": "Nature Landscape",
        "prompt": "A breathtaking mountain landscape with snow-capped peaks, a crystal clear lake in the foreground, and a colorful sunset, photorealistic style",
        "config": {"numberOfImages": 1},
    },
    {
        "title": "Futuristic City",
        "prompt": "A futuristic cityscape with flying vehicles, holographic billboards, and towering skyscrapers, digital art style",
        "config": {"numberOfImages": 1},
    },
    {
        "title": "Fantasy Character",
        "prompt": "A mystical wizard with flowing robes, glowing staff, and magical energy swirling around them, fantasy art style",
        "config": {"numberOfImages": 1},
    },
    {
        "title": "Food Photography",
        "prompt": "A gourmet burger with melted cheese, fresh vegetables, and a brioche bun, on a wooden plate, professional food photography",
        "config": {"numberOfImages": 1},
    },
    {
        "title": "Abstract Art",
        "prompt": "Abstract fluid art with vibrant colors flowing and blending together, high resolution",
        "config": {"numberOfImages": 2},
    },
]


def templates_json(templates: list[dict[str, Any]]) -> str:
    return json.dumps(templates, indent=2, ensure_ascii=False)
