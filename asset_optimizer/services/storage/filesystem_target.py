from __future__ import annotations

import shutil
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any
from urllib.parse import quote

from asset_optimizer.core.config import settings
from asset_optimizer.core.logging import logger
from asset_optimizer.models.stored_artifact import StoredArtifact
from asset_optimizer.services.optimizer.types import Collection


class TargetError(RuntimeError):
    """发布目标无法完成发布（源文件缺失、路径非法等）。"""


def _safe_filename(filename: str) -> str:
    name = str(filename or "").replace("\\", "/").rsplit("/", 1)[-1].replace("\0", "").strip()
    if name in {"", ".", ".."}:
        raise TargetError(f"invalid filename: {filename!r}")
    return name


class FileSystemTarget:
    """
    把资源复制到本地公开目录的发布目标

    目录结构：<path>/Persistent/<sha1>/<filename>
    """

    def __init__(self, name: str, options: Mapping[str, Any] | None = None):
        options = dict(options or {})
        self.name = name
        self.path = Path(str(options.get("path") or settings.ASSET_PUBLIC_DIR)).expanduser().resolve()
        self.base_uri = str(options.get("baseUri") or settings.ASSET_PUBLIC_BASE_URL).rstrip("/")

    def get_name(self) -> str:
        return self.name

    def _persistent_path(self, resource: StoredArtifact) -> Path:
        target = (self.path / "Persistent" / resource.sha1 / _safe_filename(resource.filename)).resolve()
        if not target.is_relative_to(self.path):
            raise TargetError("invalid publish path")
        return target

    def publish_collection(
        self,
        collection: Collection,
        callback: Callable[[int, StoredArtifact], None] | None = None,
    ) -> None:
        for resource in collection.get_objects(callback):
            self.publish_resource(resource, collection)

    def publish_resource(self, resource: StoredArtifact, collection: Collection | None = None) -> None:
        stream = resource.get_stream()
        if stream is None:
            raise TargetError(
                f'Could not publish resource "{resource.filename}" ({resource.sha1}): source blob is missing'
            )
        target = self._persistent_path(resource)
        target.parent.mkdir(parents=True, exist_ok=True)
        with stream, target.open("wb") as out:
            shutil.copyfileobj(stream, out)
        logger.debug("resource_published target={} path={}", self.name, target)

    def unpublish_resource(self, resource: StoredArtifact) -> None:
        target = self._persistent_path(resource)
        target.unlink(missing_ok=True)
        try:
            target.parent.rmdir()
        except OSError:
            # 目录非空（同一 sha1 还有其他文件名）
            pass

    def get_public_static_resource_uri(self, relative_path_and_filename: str) -> str:
        rel = str(relative_path_and_filename or "").lstrip("/")
        return f"{self.base_uri}/Static/{quote(rel, safe='/')}"

    def get_public_persistent_resource_uri(self, resource: StoredArtifact) -> str:
        filename = quote(_safe_filename(resource.filename))
        return f"{self.base_uri}/Persistent/{resource.sha1}/{filename}"


__all__ = ["FileSystemTarget", "TargetError"]
