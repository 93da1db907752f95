"""Tests for the filesystem artifact store."""

import json
from pathlib import Path

import pytest

from veo_media_mcp.errors import ArtifactNotFoundError, PersistenceError
from veo_media_mcp.models import ArtifactMetadata
from veo_media_mcp.store import ArtifactStore, extension_for, new_artifact_id

from conftest import IMAGE_BYTES, VIDEO_BYTES

VIDEO_CONFIG = {"aspectRatio": "16:9", "personGeneration": "dont_allow", "durationSeconds": 5}


class TestSave:
    """Tests for writing artifacts."""

    def test_save_round_trip(self, video_store: ArtifactStore):
        """Bytes read back with full data are identical to what was saved."""
        artifact_id = video_store.save(VIDEO_BYTES, "video/mp4", "a calm lake", VIDEO_CONFIG)

        stored = video_store.get(artifact_id, include_full_data=True)

        assert stored.data == VIDEO_BYTES
        assert stored.metadata.id == artifact_id
        assert stored.metadata.prompt == "a calm lake"
        assert stored.metadata.config == VIDEO_CONFIG
        assert stored.metadata.size == len(VIDEO_BYTES)

    def test_files_named_by_id(self, video_store: ArtifactStore):
        metadata = video_store.store(VIDEO_BYTES, "video/mp4", "prompt", VIDEO_CONFIG)

        assert Path(metadata.filepath) == video_store.directory / f"{metadata.id}.mp4"
        assert Path(metadata.filepath).is_absolute()
        assert (video_store.directory / f"{metadata.id}.json").exists()

    def test_sidecar_uses_camel_case(self, video_store: ArtifactStore):
        metadata = video_store.store(VIDEO_BYTES, "video/mp4", "prompt", VIDEO_CONFIG)

        sidecar = json.loads((video_store.directory / f"{metadata.id}.json").read_text())

        assert set(sidecar) == {"id", "createdAt", "prompt", "config", "mimeType", "size", "filepath"}
        assert sidecar["mimeType"] == "video/mp4"
        assert sidecar["createdAt"].endswith("Z")

    def test_image_extension_from_mime_type(self, image_store: ArtifactStore):
        metadata = image_store.store(IMAGE_BYTES, "image/jpeg", "prompt")
        assert metadata.filepath.endswith(".jpg")

    def test_saved_ids_are_unique(self, video_store: ArtifactStore):
        ids = {video_store.save(VIDEO_BYTES, "video/mp4") for _ in range(5)}
        assert len(ids) == 5

    def test_store_reference_writes_no_binary(self, video_store: ArtifactStore):
        """Deferred artifacts keep only the remote URL."""
        metadata = video_store.store_reference(
            "https://files.example/v1?alt=media", "video/mp4", "prompt", VIDEO_CONFIG
        )

        assert metadata.filepath == ""
        assert metadata.size == 0
        assert metadata.video_url == "https://files.example/v1?alt=media"
        assert metadata.is_deferred
        assert sorted(p.name for p in video_store.directory.iterdir()) == [f"{metadata.id}.json"]

    def test_ensure_directory_creates_nested_path(self, tmp_path: Path):
        store = ArtifactStore(tmp_path / "a" / "b" / "images")
        store.ensure_directory()
        assert store.directory.is_dir()

    def test_ensure_directory_failure(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(PersistenceError):
            ArtifactStore(blocker / "videos").ensure_directory()


class TestGet:
    """Tests for looking up artifacts."""

    def test_missing_metadata(self, video_store: ArtifactStore):
        with pytest.raises(ArtifactNotFoundError):
            video_store.get("does-not-exist")

    def test_unparsable_metadata(self, video_store: ArtifactStore):
        (video_store.directory / "broken.json").write_text("{not json")

        with pytest.raises(ArtifactNotFoundError):
            video_store.get("broken")

    def test_invalid_id_rejected(self, video_store: ArtifactStore):
        with pytest.raises(ArtifactNotFoundError):
            video_store.get("../secrets")

    def test_metadata_without_binary(self, video_store: ArtifactStore):
        """Deleting the binary breaks full reads but not metadata-only reads."""
        metadata = video_store.store(VIDEO_BYTES, "video/mp4", "prompt", VIDEO_CONFIG)
        Path(metadata.filepath).unlink()

        with pytest.raises(ArtifactNotFoundError):
            video_store.get(metadata.id, include_full_data=True)

        stored = video_store.get(metadata.id, include_full_data=False)
        assert stored.metadata.id == metadata.id
        assert stored.data is None

    def test_metadata_only_read_skips_binary(self, video_store: ArtifactStore, monkeypatch):
        metadata = video_store.store(VIDEO_BYTES, "video/mp4")

        def fail(*args, **kwargs):
            raise AssertionError("binary must not be read")

        monkeypatch.setattr(Path, "read_bytes", fail)
        assert video_store.get(metadata.id).metadata.size == len(VIDEO_BYTES)

    def test_full_read_of_deferred_artifact(self, video_store: ArtifactStore):
        metadata = video_store.store_reference("https://files.example/v1", "video/mp4")

        with pytest.raises(ArtifactNotFoundError, match="no local copy"):
            video_store.get(metadata.id, include_full_data=True)


class TestList:
    """Tests for enumerating stored artifacts."""

    def test_list_returns_all(self, video_store: ArtifactStore):
        ids = {video_store.save(VIDEO_BYTES, "video/mp4", f"prompt {i}") for i in range(3)}
        assert {m.id for m in video_store.list()} == ids

    def test_list_is_idempotent(self, video_store: ArtifactStore):
        for i in range(3):
            video_store.save(VIDEO_BYTES, "video/mp4", f"prompt {i}")

        first = {m.id for m in video_store.list()}
        second = {m.id for m in video_store.list()}

        assert first == second

    def test_list_skips_unparsable_sidecars(self, video_store: ArtifactStore):
        good = video_store.save(VIDEO_BYTES, "video/mp4")
        (video_store.directory / "broken.json").write_text("{not json")
        (video_store.directory / "incomplete.json").write_text(json.dumps({"id": "incomplete"}))

        assert [m.id for m in video_store.list()] == [good]

    def test_list_ignores_subdirectories_and_binaries(self, video_store: ArtifactStore, image_store: ArtifactStore):
        """Images live in a subdirectory of the video directory and are not listed as videos."""
        image_store.save(IMAGE_BYTES, "image/png")
        (video_store.directory / "orphan.mp4").write_bytes(VIDEO_BYTES)

        assert video_store.list() == []
        assert len(image_store.list()) == 1

    def test_list_missing_directory(self, tmp_path: Path):
        assert ArtifactStore(tmp_path / "missing").list() == []


class TestInterleaving:
    """A reader can observe one file of a pair before the other is written."""

    def test_sidecar_before_binary(self, video_store: ArtifactStore):
        artifact_id = new_artifact_id()
        metadata = ArtifactMetadata(
            id=artifact_id,
            mime_type="video/mp4",
            size=len(VIDEO_BYTES),
            filepath=str(video_store.directory / f"{artifact_id}.mp4"),
        )
        (video_store.directory / f"{artifact_id}.json").write_text(json.dumps(metadata.to_json_dict()))

        assert [m.id for m in video_store.list()] == [artifact_id]
        assert video_store.get(artifact_id).metadata.size == len(VIDEO_BYTES)
        with pytest.raises(ArtifactNotFoundError):
            video_store.get(artifact_id, include_full_data=True)

    def test_binary_before_sidecar(self, video_store: ArtifactStore):
        artifact_id = new_artifact_id()
        (video_store.directory / f"{artifact_id}.mp4").write_bytes(VIDEO_BYTES)

        assert video_store.list() == []
        with pytest.raises(ArtifactNotFoundError):
            video_store.get(artifact_id, include_full_data=True)


class TestHelpers:

    def test_extension_for(self):
        assert extension_for("video/mp4") == ".mp4"
        assert extension_for("image/png; charset=binary") == ".png"
        assert extension_for("application/x-unknown") == ".bin"

    def test_new_artifact_id_suffix(self):
        assert "_" not in new_artifact_id(0)
        assert new_artifact_id(1).endswith("_1")
