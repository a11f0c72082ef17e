"""宿主发布系统需要满足的最小接口"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import BinaryIO, Protocol, runtime_checkable

from asset_optimizer.models.stored_artifact import StoredArtifact


@runtime_checkable
class ResourceMetaData(Protocol):
    sha1: str
    filename: str
    media_type: str

    def get_stream(self) -> BinaryIO | None: ...


class Collection(Protocol):
    name: str

    def get_objects(
        self, callback: Callable[[int, StoredArtifact], None] | None = None
    ) -> Iterator[StoredArtifact]: ...


class Target(Protocol):
    """发布目标：ImageOptimizerTarget 以组合方式包装一个真实 Target"""

    def get_name(self) -> str: ...

    def publish_collection(
        self, collection: Collection, callback: Callable[[int, StoredArtifact], None] | None = None
    ) -> None: ...

    def publish_resource(self, resource: StoredArtifact, collection: Collection) -> None: ...

    def unpublish_resource(self, resource: StoredArtifact) -> None: ...

    def get_public_static_resource_uri(self, relative_path_and_filename: str) -> str: ...

    def get_public_persistent_resource_uri(self, resource: StoredArtifact) -> str: ...


class ArtifactImporter(Protocol):
    def import_artifact(
        self,
        source_path: str,
        collection_name: str,
        *,
        filename: str | None = None,
        media_type: str | None = None,
    ) -> StoredArtifact: ...

    def get_public_uri(self, artifact: StoredArtifact) -> str: ...

    def release(self, artifact: StoredArtifact) -> None: ...


__all__ = ["ArtifactImporter", "Collection", "ResourceMetaData", "Target"]
