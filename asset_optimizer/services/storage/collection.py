from __future__ import annotations

from collections.abc import Callable, Iterator

from asset_optimizer.models.stored_artifact import StoredArtifact
from asset_optimizer.repositories.stored_artifact_repository import StoredArtifactRepository


class ArtifactCollection:
    """按名称划分的资源集合"""

    def __init__(self, name: str, repository: StoredArtifactRepository | None = None):
        self.name = name
        self.repository = repository

    def get_objects(
        self, callback: Callable[[int, StoredArtifact], None] | None = None
    ) -> Iterator[StoredArtifact]:
        if self.repository is None:
            return
        for iteration, artifact in enumerate(self.repository.iter_by_collection(self.name)):
            if callback is not None:
                callback(iteration, artifact)
            yield artifact

    def __repr__(self) -> str:
        return f"<ArtifactCollection(name={self.name})>"


__all__ = ["ArtifactCollection"]
