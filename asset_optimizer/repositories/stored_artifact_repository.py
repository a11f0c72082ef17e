from __future__ import annotations

from collections.abc import Iterable, Iterator

from sqlalchemy import select
from sqlalchemy.orm import Session

from asset_optimizer.models.optimized_artifact_relation import OptimizedArtifactRelation
from asset_optimizer.models.stored_artifact import StoredArtifact


class StoredArtifactRepository:
    """宿主资源仓库"""

    def __init__(self, session: Session):
        self.session = session

    def iter_by_collection(self, collection_name: str, batch_size: int = 200) -> Iterator[StoredArtifact]:
        stmt = (
            select(StoredArtifact)
            .where(StoredArtifact.collection_name == collection_name)
            .order_by(StoredArtifact.created_at, StoredArtifact.id)
            .execution_options(yield_per=batch_size)
        )
        yield from self.session.execute(stmt).scalars()

    def has_original_with_identity(self, sha1: str, filename: str, *, exclude_ids: Iterable = ()) -> bool:
        """
        是否还有同一 sha1 + 文件名的原始资源记录

        优化产物（被任一映射引用的记录）不算原始资源；保留原图时产物与原图同 sha1。
        """
        stmt = (
            select(StoredArtifact.id)
            .where(
                StoredArtifact.sha1 == sha1,
                StoredArtifact.filename == filename,
                StoredArtifact.id.not_in(select(OptimizedArtifactRelation.optimized_artifact_id)),
            )
            .limit(1)
        )
        excluded = [artifact_id for artifact_id in exclude_ids if artifact_id is not None]
        if excluded:
            stmt = stmt.where(StoredArtifact.id.not_in(excluded))
        return self.session.execute(stmt).first() is not None


__all__ = ["StoredArtifactRepository"]
