"""
OptimizedArtifactStore：优化映射的暂存与提交

- stage / stage_removal 只修改内存中的待写集合，不触碰数据库
- commit 在一个事务内落库；主键冲突（并发工作单元先写入了同一 key）视为已优化，
  只丢弃冲突的那条映射；其他数据库错误回滚整个事务并抛出 StorageCommitFailed
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from asset_optimizer.core.logging import logger
from asset_optimizer.core.metrics import record_commit_conflicts
from asset_optimizer.models.optimized_artifact_relation import OptimizedArtifactRelation
from asset_optimizer.models.stored_artifact import StoredArtifact
from asset_optimizer.repositories.optimized_artifact_relation_repository import (
    OptimizedArtifactRelationRepository,
)

from .exceptions import DuplicateKeyConflict, StorageCommitFailed

Removable = OptimizedArtifactRelation | StoredArtifact


@dataclass
class CommitResult:
    persisted: list[OptimizedArtifactRelation] = field(default_factory=list)
    removed_artifacts: list[StoredArtifact] = field(default_factory=list)
    conflicts: list[OptimizedArtifactRelation] = field(default_factory=list)


class OptimizedArtifactStore:
    """按工作单元使用：一个 Session 对应一个 store 实例"""

    def __init__(self, session: Session, repository: OptimizedArtifactRelationRepository | None = None):
        self.session = session
        self.repository = repository or OptimizedArtifactRelationRepository(session)
        self._unpersisted: dict[str, OptimizedArtifactRelation] = {}
        self._bound_for_removal: list[Removable] = []

    def find(self, key: str) -> OptimizedArtifactRelation | None:
        return self.repository.get_by_identification_hash(key)

    def is_staged(self, key: str) -> bool:
        return key in self._unpersisted

    @property
    def has_pending_changes(self) -> bool:
        return bool(self._unpersisted or self._bound_for_removal)

    def stage(self, relation: OptimizedArtifactRelation) -> bool:
        key = relation.original_identification_hash
        if key in self._unpersisted:
            logger.debug("relation_already_staged key={}", key)
            return False
        self._unpersisted[key] = relation
        return True

    def stage_removal(self, instance: Removable) -> None:
        if isinstance(instance, OptimizedArtifactRelation):
            staged = self._unpersisted.get(instance.original_identification_hash)
            if staged is instance:
                # 尚未落库，直接从待写集合中移除
                del self._unpersisted[instance.original_identification_hash]
                return
        if not inspect(instance).has_identity:
            return
        if any(item is instance for item in self._bound_for_removal):
            return
        self._bound_for_removal.append(instance)

    def remove_by_key(self, key: str) -> bool:
        """幂等：key 不存在时什么也不做"""
        staged = self._unpersisted.pop(key, None)
        relation = self.find(key)
        if relation is None:
            return staged is not None
        self.stage_removal(relation)
        return True

    def discard(self) -> list[OptimizedArtifactRelation]:
        dropped = list(self._unpersisted.values())
        self._unpersisted = {}
        self._bound_for_removal = []
        return dropped

    def commit(self) -> CommitResult:
        """
        在当前事务内写入暂存的映射与删除并提交

        每条新映射在独立的 SAVEPOINT 中写入：主键冲突只回滚该 SAVEPOINT，
        调用方在同一 Session 中的其他变更不受影响。提交失败时暂存内容保留，
        调用方可以 discard() 释放产物。
        """
        new_relations = list(self._unpersisted.values())
        removals = list(self._bound_for_removal)

        result = CommitResult(removed_artifacts=self._collect_removed_artifacts(removals))
        try:
            # 先落下调用方已有的变更，避免它们被卷进某个 SAVEPOINT 一起回滚
            self.repository.flush()
            for relation in new_relations:
                if self._insert_in_savepoint(relation):
                    result.persisted.append(relation)
                else:
                    result.conflicts.append(relation)
            for instance in removals:
                self.repository.remove(instance)
            self.repository.commit()
        except SQLAlchemyError as exc:
            self.repository.rollback()
            logger.error("optimized_relation_commit_failed err={}", exc)
            raise StorageCommitFailed(f"optimized artifact commit failed: {exc}") from exc

        self._unpersisted = {}
        self._bound_for_removal = []
        record_commit_conflicts(len(result.conflicts))
        return result

    def _insert_in_savepoint(self, relation: OptimizedArtifactRelation) -> bool:
        """写入成功返回 True；并发方已写入同一 key 时返回 False"""
        key = relation.original_identification_hash
        try:
            with self.session.begin_nested():
                self.repository.add(relation)
                self.repository.flush()
        except IntegrityError:
            existing = self.find(key)
            if existing is None or existing is relation:
                raise
            logger.info("optimized_relation_conflict resolved as already optimized: {}", DuplicateKeyConflict(key))
            return False
        return True

    @staticmethod
    def _collect_removed_artifacts(removals: list[Removable]) -> list[StoredArtifact]:
        artifacts: list[StoredArtifact] = []
        for instance in removals:
            artifact = instance.optimized_artifact if isinstance(instance, OptimizedArtifactRelation) else instance
            if not any(item is artifact for item in artifacts):
                artifacts.append(artifact)
        return artifacts


__all__ = ["CommitResult", "OptimizedArtifactStore"]
