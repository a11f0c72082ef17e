import uuid

import pytest

from asset_optimizer.models import StoredArtifact
from asset_optimizer.services.storage import AssetManager, FileSystemTarget, TargetError


def _artifact(storage_path, filename="logo.png", sha1="abc123") -> StoredArtifact:
    return StoredArtifact(
        id=uuid.uuid4(),
        sha1=sha1,
        filename=filename,
        media_type="image/png",
        size_bytes=3,
        collection_name="persistent",
        object_key=f"persistent/{uuid.uuid4().hex}",
        storage_path=str(storage_path),
    )


def test_filesystem_target_publishes_and_unpublishes(tmp_path):
    blob = tmp_path / "blob"
    blob.write_bytes(b"abc")
    target = FileSystemTarget("web", {"path": str(tmp_path / "web"), "baseUri": "https://cdn.test/"})
    resource = _artifact(blob, filename="my logo.png")

    target.publish_resource(resource)

    published = tmp_path / "web" / "Persistent" / "abc123" / "my logo.png"
    assert published.read_bytes() == b"abc"
    assert target.get_public_persistent_resource_uri(resource) == (
        "https://cdn.test/Persistent/abc123/my%20logo.png"
    )

    target.unpublish_resource(resource)
    assert not published.exists()
    assert not published.parent.exists()


def test_filesystem_target_missing_blob_raises(tmp_path):
    target = FileSystemTarget("web", {"path": str(tmp_path / "web"), "baseUri": "https://cdn.test"})

    with pytest.raises(TargetError, match="source blob is missing"):
        target.publish_resource(_artifact(tmp_path / "missing"))


def test_filesystem_target_rejects_path_in_filename(tmp_path):
    blob = tmp_path / "blob"
    blob.write_bytes(b"abc")
    target = FileSystemTarget("web", {"path": str(tmp_path / "web"), "baseUri": "https://cdn.test"})

    target.publish_resource(_artifact(blob, filename="../../escape.png"))

    assert (tmp_path / "web" / "Persistent" / "abc123" / "escape.png").exists()
    with pytest.raises(TargetError):
        target.get_public_persistent_resource_uri(_artifact(blob, filename=".."))


def test_asset_manager_imports_and_releases(tmp_path):
    source = tmp_path / "source.bin"
    source.write_bytes(b"hello")
    manager = AssetManager(tmp_path / "storage")
    manager.register_collection(
        "optimized",
        FileSystemTarget("optimized", {"path": str(tmp_path / "public"), "baseUri": "https://cdn.test/optimized"}),
    )

    artifact = manager.import_artifact(source, "optimized", filename="logo.png")

    assert artifact.sha1 == "aaf4c61ddcc5e8a2dabede0f3b482cd9aea9434d"
    assert artifact.size_bytes == 5
    assert artifact.media_type == "image/png"
    assert artifact.object_key.startswith("optimized/")
    assert artifact.object_key.endswith(".png")
    assert manager.get_public_uri(artifact) == f"https://cdn.test/optimized/Persistent/{artifact.sha1}/logo.png"
    published = tmp_path / "public" / "Persistent" / artifact.sha1 / "logo.png"
    assert published.read_bytes() == b"hello"

    manager.release(artifact)

    assert not published.exists()
    assert not (tmp_path / "storage" / artifact.object_key).exists()


def test_asset_manager_without_target_cannot_build_uri(tmp_path):
    source = tmp_path / "source.bin"
    source.write_bytes(b"hello")
    manager = AssetManager(tmp_path / "storage")

    artifact = manager.import_artifact(source, "orphans")

    with pytest.raises(LookupError):
        manager.get_public_uri(artifact)


def test_asset_manager_import_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        AssetManager(tmp_path / "storage").import_artifact(tmp_path / "missing", "optimized")
