from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from asset_optimizer.models.optimized_artifact_relation import OptimizedArtifactRelation
from asset_optimizer.models.stored_artifact import StoredArtifact


class OptimizedArtifactRelationRepository:
    """优化产物映射仓库（只负责读写 Session，事务边界由调用方控制）"""

    def __init__(self, session: Session):
        self.session = session

    def get_by_identification_hash(self, identification_hash: str) -> OptimizedArtifactRelation | None:
        # 主键点查，优先命中 identity map
        return self.session.get(OptimizedArtifactRelation, identification_hash)

    def get_by_optimized_artifact(self, artifact: StoredArtifact) -> OptimizedArtifactRelation | None:
        if artifact.id is None:
            return None
        stmt = select(OptimizedArtifactRelation).where(
            OptimizedArtifactRelation.optimized_artifact_id == artifact.id
        )
        result = self.session.execute(stmt)
        return result.scalars().first()

    def add(self, relation: OptimizedArtifactRelation) -> None:
        self.session.add(relation)

    def remove(self, instance: OptimizedArtifactRelation | StoredArtifact) -> None:
        self.session.delete(instance)

    def flush(self) -> None:
        self.session.flush()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


__all__ = ["OptimizedArtifactRelationRepository"]
