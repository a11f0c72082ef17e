from __future__ import annotations

import mimetypes
import shutil
import time
import uuid
from hashlib import sha1 as sha1_hasher
from pathlib import Path

from sqlalchemy.orm import Session

from asset_optimizer.core.config import settings
from asset_optimizer.core.logging import logger
from asset_optimizer.models.stored_artifact import StoredArtifact
from asset_optimizer.repositories.stored_artifact_repository import StoredArtifactRepository
from asset_optimizer.services.optimizer.types import Target

from .collection import ArtifactCollection

_CHUNK_SIZE = 1024 * 1024


def _normalize_prefix(value: str | None) -> str:
    raw = str(value or "").strip().strip("/")
    return raw.replace("\\", "/")


def _hash_file(path: Path) -> tuple[str, int]:
    hasher = sha1_hasher()
    total_size = 0
    with path.open("rb") as fh:
        while True:
            chunk = fh.read(_CHUNK_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
            total_size += len(chunk)
    return hasher.hexdigest(), total_size


def _build_object_key(*, ext: str, collection_name: str) -> str:
    prefix = _normalize_prefix(collection_name)
    uid = uuid.uuid4().hex
    date_part = time.strftime("%Y/%m/%d", time.gmtime())
    filename = f"{uid}.{ext}" if ext else uid
    return f"{prefix}/{date_part}/{filename}"


class AssetManager:
    """
    本地资源管理：导入文件到集合、按集合找到发布目标、生成公开 URI

    导入的 StoredArtifact 不会自动加入 Session，由调用方决定何时持久化。
    """

    def __init__(self, base_dir: str | Path | None = None, session: Session | None = None):
        self.base_dir = Path(str(base_dir or settings.ASSET_LOCAL_DIR)).expanduser().resolve()
        self.session = session
        self._targets: dict[str, Target] = {}

    def register_collection(self, collection_name: str, target: Target) -> None:
        self._targets[collection_name] = target

    def get_target(self, collection_name: str) -> Target | None:
        return self._targets.get(collection_name)

    def get_collection(self, collection_name: str) -> ArtifactCollection:
        repository = StoredArtifactRepository(self.session) if self.session is not None else None
        return ArtifactCollection(collection_name, repository)

    def _local_path_for_object_key(self, object_key: str) -> Path:
        parts = [p for p in _normalize_prefix(object_key).split("/") if p]
        if not parts:
            raise ValueError("empty object key")
        if any(p in {".", ".."} for p in parts):
            raise ValueError("invalid object key path")
        target = self.base_dir.joinpath(*parts).resolve()
        if not target.is_relative_to(self.base_dir):
            raise ValueError("invalid object key path")
        return target

    def import_artifact(
        self,
        source_path: str | Path,
        collection_name: str,
        *,
        filename: str | None = None,
        media_type: str | None = None,
    ) -> StoredArtifact:
        source = Path(source_path)
        if not source.is_file():
            raise FileNotFoundError(f"cannot import missing file: {source}")

        name = filename or source.name
        detected_type = media_type or mimetypes.guess_type(name)[0] or "application/octet-stream"
        content_sha1, size_bytes = _hash_file(source)

        ext = Path(name).suffix.lstrip(".")
        object_key = _build_object_key(ext=ext, collection_name=collection_name)
        target_path = self._local_path_for_object_key(object_key)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target_path)

        artifact = StoredArtifact(
            id=uuid.uuid4(),
            sha1=content_sha1,
            filename=name,
            media_type=detected_type,
            size_bytes=size_bytes,
            collection_name=collection_name,
            object_key=object_key,
            storage_path=str(target_path),
        )

        target = self.get_target(collection_name)
        if target is not None:
            target.publish_resource(artifact, self.get_collection(collection_name))
        logger.debug(
            "artifact_imported collection={} filename={} sha1={} size={}",
            collection_name,
            name,
            content_sha1,
            size_bytes,
        )
        return artifact

    def get_public_uri(self, artifact: StoredArtifact) -> str:
        target = self.get_target(artifact.collection_name)
        if target is None:
            raise LookupError(f'no target registered for collection "{artifact.collection_name}"')
        return target.get_public_persistent_resource_uri(artifact)

    def release(self, artifact: StoredArtifact) -> None:
        """撤销发布并删除底层文件"""
        target = self.get_target(artifact.collection_name)
        if target is not None:
            target.unpublish_resource(artifact)
        Path(artifact.storage_path).unlink(missing_ok=True)


__all__ = ["AssetManager"]
