"""
Filesystem-backed storage for generated artifacts.

Each artifact is a binary file ``{id}{ext}`` plus a JSON sidecar ``{id}.json``
in a single flat directory. The two files are not written atomically as a
pair, so readers tolerate a sidecar whose binary is missing.
"""

import json
import logging
import re
import uuid
from pathlib import Path
from typing import Any, Optional

from .errors import ArtifactNotFoundError, PersistenceError
from .models import ArtifactMetadata, StoredArtifact

logger = logging.getLogger(__name__)

MIME_EXTENSIONS = {
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "video/quicktime": ".mov",
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}

_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def extension_for(mime_type: str) -> str:
    """Map a MIME type to a file extension, ``.bin`` when unknown."""
    return MIME_EXTENSIONS.get(mime_type.split(";")[0].strip().lower(), ".bin")


def new_artifact_id(index: int = 0) -> str:
    """Fresh identifier; later items of one fan-out get an index suffix."""
    base = str(uuid.uuid4())
    return base if index == 0 else f"{base}_{index}"


class ArtifactStore:
    """Stores artifacts of one kind (videos or images) in ``directory``."""

    def __init__(self, directory: Path, kind: str = "artifact"):
        self.directory = Path(directory).resolve()
        self.kind = kind

    def ensure_directory(self) -> None:
        """Create the storage directory. Failing here is fatal at startup."""
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to create storage directory {self.directory}: {e}") from e

    def _metadata_path(self, artifact_id: str) -> Path:
        if not _ID_PATTERN.match(artifact_id):
            raise ArtifactNotFoundError(f"Invalid {self.kind} ID: {artifact_id}")
        return self.directory / f"{artifact_id}.json"

    def _write_metadata(self, metadata: ArtifactMetadata) -> None:
        path = self._metadata_path(metadata.id)
        try:
            path.write_text(json.dumps(metadata.to_json_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Failed to write metadata for {self.kind} {metadata.id}: {e}") from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def store(
        self,
        data: bytes,
        mime_type: str,
        prompt: Optional[str] = None,
        config: Optional[dict[str, Any]] = None,
        artifact_id: Optional[str] = None,
    ) -> ArtifactMetadata:
        """Write the binary and its sidecar, returning the metadata."""
        artifact_id = artifact_id or new_artifact_id()
        filepath = self.directory / f"{artifact_id}{extension_for(mime_type)}"

        try:
            filepath.write_bytes(data)
        except OSError as e:
            raise PersistenceError(f"Failed to write {self.kind} {artifact_id}: {e}") from e

        metadata = ArtifactMetadata(
            id=artifact_id,
            prompt=prompt,
            config=dict(config or {}),
            mime_type=mime_type,
            size=len(data),
            filepath=str(filepath),
        )
        self._write_metadata(metadata)

        logger.info(f"Saved {self.kind} {artifact_id} ({len(data)} bytes)")
        return metadata

    def save(
        self,
        data: bytes,
        mime_type: str,
        prompt: Optional[str] = None,
        config: Optional[dict[str, Any]] = None,
    ) -> str:
        """Persist an artifact under a fresh identifier and return the identifier."""
        return self.store(data, mime_type, prompt, config).id

    def store_reference(
        self,
        url: str,
        mime_type: str,
        prompt: Optional[str] = None,
        config: Optional[dict[str, Any]] = None,
        artifact_id: Optional[str] = None,
    ) -> ArtifactMetadata:
        """Persist metadata only, keeping the remote URL instead of a local copy."""
        metadata = ArtifactMetadata(
            id=artifact_id or new_artifact_id(),
            prompt=prompt,
            config=dict(config or {}),
            mime_type=mime_type,
            size=0,
            filepath="",
            video_url=url,
        )
        self._write_metadata(metadata)

        logger.info(f"Saved deferred {self.kind} {metadata.id}")
        return metadata

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_metadata(self, artifact_id: str) -> ArtifactMetadata:
        path = self._metadata_path(artifact_id)
        try:
            return ArtifactMetadata.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Error getting metadata for {self.kind} {artifact_id}: {e}")
            raise ArtifactNotFoundError(f"{self.kind.capitalize()} not found: {artifact_id}") from e

    def get(self, artifact_id: str, include_full_data: bool = False) -> StoredArtifact:
        """Look up an artifact.

        Metadata-only reads never touch the binary file. Full reads fail with
        ArtifactNotFoundError when the binary is missing, including deferred
        artifacts that were never downloaded.
        """
        metadata = self.get_metadata(artifact_id)
        if not include_full_data:
            return StoredArtifact(metadata=metadata)

        if not metadata.filepath:
            raise ArtifactNotFoundError(
                f"{self.kind.capitalize()} {artifact_id} has no local copy"
                + (f"; it is available at {metadata.video_url}" if metadata.video_url else "")
            )

        try:
            data = Path(metadata.filepath).read_bytes()
        except OSError as e:
            logger.error(f"Error reading {self.kind} file {metadata.filepath}: {e}")
            raise ArtifactNotFoundError(f"{self.kind.capitalize()} data not found: {artifact_id}") from e

        return StoredArtifact(metadata=metadata, data=data)

    def list(self) -> list[ArtifactMetadata]:
        """All readable sidecars in the directory, in filesystem order.

        Unparsable sidecars are logged and skipped.
        """
        try:
            paths = [p for p in self.directory.iterdir() if p.suffix == ".json" and p.is_file()]
        except FileNotFoundError:
            return []

        artifacts = []
        for path in paths:
            try:
                artifacts.append(ArtifactMetadata.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping unreadable {self.kind} metadata {path.name}: {e}")
        return artifacts
