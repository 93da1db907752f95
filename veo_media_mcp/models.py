"""
Data models shared by the gateway, the store and the MCP tools.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel

DEFAULT_DURATION_SECONDS = 5
DEFAULT_IMAGE_PROMPT = "Generate a video from this image"


# ============================================================================
# Enums
# ============================================================================

class AspectRatio(str, Enum):
    """Supported aspect ratios for video generation."""
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"


class PersonGeneration(str, Enum):
    """Person generation policy. ALLOW_ADULT is only valid for text-to-video."""
    DONT_ALLOW = "dont_allow"
    ALLOW_ADULT = "allow_adult"


class ImageKind(str, Enum):
    """How an image reference should be interpreted."""
    INLINE = "inline"
    PATH = "path"
    URL = "url"


# ============================================================================
# Generation Configuration
# ============================================================================

class VideoConfig(BaseModel):
    """Video generation settings. Unset fields fall back to remote defaults."""
    model_config = ConfigDict(extra='forbid')

    aspect_ratio: Optional[AspectRatio] = None
    person_generation: Optional[PersonGeneration] = None
    number_of_videos: Optional[int] = Field(default=None, ge=1, le=2)
    duration_seconds: Optional[int] = Field(default=None, ge=5, le=8)
    negative_prompt: Optional[str] = Field(default=None, max_length=1000)
    enhance_prompt: Optional[bool] = None

    def to_request(self) -> dict[str, Any]:
        """Sparse remote config: only explicitly set fields are sent."""
        request: dict[str, Any] = {}
        if self.aspect_ratio is not None:
            request["aspect_ratio"] = self.aspect_ratio.value
        if self.person_generation is not None:
            request["person_generation"] = self.person_generation.value
        if self.number_of_videos is not None:
            request["number_of_videos"] = self.number_of_videos
        if self.duration_seconds is not None:
            request["duration_seconds"] = self.duration_seconds
        if self.negative_prompt:
            request["negative_prompt"] = self.negative_prompt
        if self.enhance_prompt is not None:
            request["enhance_prompt"] = self.enhance_prompt
        return request

    def resolved(self) -> dict[str, Any]:
        """Snapshot of the effective configuration, defaults applied."""
        return {
            "aspectRatio": (self.aspect_ratio or AspectRatio.LANDSCAPE).value,
            "personGeneration": (self.person_generation or PersonGeneration.DONT_ALLOW).value,
            "durationSeconds": self.duration_seconds or DEFAULT_DURATION_SECONDS,
        }


class GenerationOptions(BaseModel):
    """Caller-selected retrieval policy for generated videos."""
    auto_download: bool = True
    include_full_data: bool = False


# ============================================================================
# Stored Artifacts
# ============================================================================

def utc_timestamp() -> str:
    """Current time as ISO-8601 with millisecond precision, e.g. 2026-01-01T12:00:00.000Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class ArtifactMetadata(BaseModel):
    """JSON sidecar describing one stored artifact.

    ``size == 0`` means the binary was never downloaded and ``filepath == ""``
    means there is no local copy; in that case ``video_url`` holds the remote
    reference.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    created_at: str = Field(default_factory=utc_timestamp)
    prompt: Optional[str] = None
    config: dict[str, Any] = Field(default_factory=dict)
    mime_type: str
    size: int = Field(default=0, ge=0)
    filepath: str = ""
    video_url: Optional[str] = None

    @property
    def is_deferred(self) -> bool:
        return not self.filepath and bool(self.video_url)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class StoredArtifact(BaseModel):
    """Result of a store lookup; ``data`` is only set for full reads."""
    metadata: ArtifactMetadata
    data: Optional[bytes] = None


class GenerationResult(BaseModel):
    """Outcome of a video generation call.

    ``metadata`` describes the primary (first) artifact; ``artifacts`` holds
    every artifact that was persisted or deferred, primary first.
    """
    metadata: ArtifactMetadata
    artifacts: list[ArtifactMetadata] = Field(default_factory=list)
    data: Optional[bytes] = None


class GeneratedImage(BaseModel):
    """An image produced by the image model, already persisted."""
    metadata: ArtifactMetadata
    data: bytes


# ============================================================================
# Remote Operation
# ============================================================================

class RemoteVideo(BaseModel):
    """One result descriptor of a completed video operation."""
    uri: Optional[str] = None
    data: Optional[bytes] = None
    mime_type: Optional[str] = None

    @property
    def fetchable(self) -> bool:
        return bool(self.uri or self.data)


class RemoteOperation(BaseModel):
    """Canonical view of a remote long-running video operation."""
    name: Optional[str] = None
    done: bool = False
    error: Optional[str] = None
    videos: list[RemoteVideo] = Field(default_factory=list)

    @classmethod
    def from_sdk(cls, operation: Any) -> "RemoteOperation":
        """Parse the SDK operation object. This is the only place its shape is probed."""
        response = getattr(operation, "response", None) or getattr(operation, "result", None)
        videos = []
        for generated in getattr(response, "generated_videos", None) or []:
            video = getattr(generated, "video", None)
            videos.append(RemoteVideo(
                uri=getattr(video, "uri", None),
                data=getattr(video, "video_bytes", None),
                mime_type=getattr(video, "mime_type", None),
            ))

        error = getattr(operation, "error", None)
        if error and isinstance(error, dict):
            error = error.get("message") or str(error)

        return cls(
            name=getattr(operation, "name", None),
            done=bool(getattr(operation, "done", False)),
            error=str(error) if error else None,
            videos=videos,
        )


# ============================================================================
# Images
# ============================================================================

class ImageSource(BaseModel):
    """Explicitly tagged image reference."""
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True,
        str_strip_whitespace=True, extra='forbid',
    )

    kind: ImageKind
    value: str = Field(..., min_length=1)
    mime_type: Optional[str] = None


class ResolvedImage(BaseModel):
    """Raw image bytes ready to be sent to the video model."""
    data: bytes = Field(..., min_length=1)
    mime_type: str = Field(..., min_length=1)


# ============================================================================
# Tool Input Models
# ============================================================================

class _ToolInput(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid',
    )


# Boolean-ish tool parameters arrive as real booleans or as strings
Flag = Union[bool, str, None]


class ImageContentInput(_ToolInput):
    """MCP image content block passed as a tool argument."""
    type: Literal["image"]
    data: str = Field(..., min_length=1, description="Base64-encoded image data")
    mime_type: str = Field(..., min_length=1)


class VideoOptionsInput(_ToolInput):
    """Video settings shared by every video generation tool."""
    aspect_ratio: Optional[AspectRatio] = Field(
        default=None,
        description="Aspect ratio: '16:9' (landscape, default) or '9:16' (portrait)"
    )
    person_generation: Optional[PersonGeneration] = Field(
        default=None,
        description="Person generation policy: 'dont_allow' (default) or 'allow_adult'"
    )
    number_of_videos: Optional[int] = Field(
        default=None,
        description="Number of videos to generate (1 or 2)",
        ge=1,
        le=2
    )
    duration_seconds: Optional[int] = Field(
        default=None,
        description="Video duration in seconds, between 5 and 8 (default 5)",
        ge=5,
        le=8
    )
    enhance_prompt: Flag = Field(
        default=None,
        description="Let the model enhance the prompt"
    )
    negative_prompt: Optional[str] = Field(
        default=None,
        description="What to avoid in the video",
        max_length=1000
    )
    include_full_data: Flag = Field(
        default=None,
        description="Include the base64-encoded video in the response (default false)"
    )
    auto_download: Flag = Field(
        default=None,
        description="Download the video to local storage (default true). When false only the remote URL is kept."
    )


class TextToVideoInput(VideoOptionsInput):
    """Input for generating a video from text."""
    prompt: str = Field(
        ...,
        description="Description of the video to generate",
        min_length=1,
        max_length=1000
    )


class ImageToVideoInput(VideoOptionsInput):
    """Input for generating a video from an existing image."""
    image: Union[ImageContentInput, ImageSource, str] = Field(
        ...,
        description="Image to animate: an image content block, a tagged source "
                    "{kind: inline|path|url, value}, a URL, an absolute file path or base64 data"
    )
    prompt: Optional[str] = Field(
        default=None,
        description="Description of the motion (default: 'Generate a video from this image')",
        min_length=1,
        max_length=1000
    )
    mime_type: Optional[str] = Field(
        default=None,
        description="MIME type of the image when it cannot be detected"
    )
    person_generation: Optional[Literal["dont_allow"]] = Field(
        default=None,
        description="Only 'dont_allow' is supported for image-to-video"
    )


class ImageGenerateInput(_ToolInput):
    """Input for generating images from text."""
    prompt: str = Field(
        ...,
        description="Description of the image to generate",
        min_length=1,
        max_length=1000
    )
    number_of_images: int = Field(
        default=1,
        description="Number of images to generate (1-4)",
        ge=1,
        le=4
    )
    include_full_data: Flag = Field(
        default=None,
        description="Include the generated images inline in the response (default false)"
    )


class GeneratedImageToVideoInput(VideoOptionsInput):
    """Input for the image-then-video workflow."""
    prompt: str = Field(
        ...,
        description="Description of the image to generate",
        min_length=1,
        max_length=1000
    )
    video_prompt: Optional[str] = Field(
        default=None,
        description="Motion description for the video (defaults to the image prompt)",
        min_length=1,
        max_length=1000
    )
    number_of_images: int = Field(
        default=1,
        description="Number of images to generate (1-4); the first one is animated",
        ge=1,
        le=4
    )
    person_generation: Optional[Literal["dont_allow"]] = Field(
        default=None,
        description="Only 'dont_allow' is supported for image-to-video"
    )


class GetArtifactInput(_ToolInput):
    """Input for fetching a stored artifact by ID."""
    id: str = Field(..., description="Artifact ID", min_length=1)
    include_full_data: Flag = Field(
        default=None,
        description="Include the artifact bytes in the response"
    )
