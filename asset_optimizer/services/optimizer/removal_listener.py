"""
ResourceRemovalListener：资源被删除时同步删除对应的优化映射

同一工作单元内对同一资源的多次删除通知只产生一次删除指令；
已处理的 key 在提交 / 回滚时清空。
映射按 sha1 + 文件名共享，仍有同身份的原始资源记录时保留映射。
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session

from asset_optimizer.core.logging import logger
from asset_optimizer.models.optimized_artifact_relation import OptimizedArtifactRelation
from asset_optimizer.models.stored_artifact import StoredArtifact
from asset_optimizer.repositories.optimized_artifact_relation_repository import (
    OptimizedArtifactRelationRepository,
)
from asset_optimizer.repositories.stored_artifact_repository import StoredArtifactRepository
from asset_optimizer.utils.content_key import compute_content_key

from .types import ArtifactImporter, ResourceMetaData


class ResourceRemovalListener:
    def __init__(
        self,
        session: Session,
        *,
        repository: OptimizedArtifactRelationRepository | None = None,
        artifact_repository: StoredArtifactRepository | None = None,
        asset_manager: ArtifactImporter | None = None,
    ):
        self.session = session
        self.repository = repository or OptimizedArtifactRelationRepository(session)
        self.artifact_repository = artifact_repository or StoredArtifactRepository(session)
        self.asset_manager = asset_manager
        self._seen_relations: set[str] = set()
        self._pending_release: list[StoredArtifact] = []
        self._installed = False

    def install(self) -> "ResourceRemovalListener":
        if not self._installed:
            event.listen(self.session, "before_flush", self._before_flush)
            event.listen(self.session, "after_commit", self._after_commit)
            event.listen(self.session, "after_rollback", self._after_rollback)
            self._installed = True
        return self

    def uninstall(self) -> None:
        if self._installed:
            event.remove(self.session, "before_flush", self._before_flush)
            event.remove(self.session, "after_commit", self._after_commit)
            event.remove(self.session, "after_rollback", self._after_rollback)
            self._installed = False

    def reset(self) -> None:
        self._seen_relations.clear()
        self._pending_release.clear()

    def on_original_removed(self, resource: ResourceMetaData) -> bool:
        """按原始资源身份（sha1 + 文件名）查找映射并删除；返回是否产生了删除指令"""
        key = compute_content_key(resource.sha1, resource.filename)
        if key in self._seen_relations:
            return False
        with self.session.no_autoflush:
            relation = self.repository.get_by_identification_hash(key)
            if relation is None:
                return False
            if self._has_remaining_original(resource):
                logger.debug("optimized_relation_kept key={} other originals remain", key)
                return False
        return self._remove(relation)

    def _has_remaining_original(self, resource: ResourceMetaData) -> bool:
        # 本次删除的记录尚未 flush，需要手动排除
        exclude_ids = {getattr(resource, "id", None)}
        exclude_ids.update(obj.id for obj in self.session.deleted if isinstance(obj, StoredArtifact))
        return self.artifact_repository.has_original_with_identity(
            resource.sha1, resource.filename, exclude_ids=exclude_ids
        )

    def on_artifact_removed(self, artifact: StoredArtifact) -> bool:
        """
        StoredArtifact 被删除：
        - 它本身是优化产物 → 删除指向它的映射
        - 否则按原始资源处理
        """
        with self.session.no_autoflush:
            relation = self.repository.get_by_optimized_artifact(artifact)
        if relation is not None:
            return self._remove(relation)
        return self.on_original_removed(artifact)

    def _remove(self, relation: OptimizedArtifactRelation) -> bool:
        key = relation.original_identification_hash
        if key in self._seen_relations:
            return False
        self._seen_relations.add(key)
        if relation in self.session.deleted:
            # 已经由其他路径（例如 unpublish）标记删除
            return False
        self.repository.remove(relation)
        self._pending_release.append(relation.optimized_artifact)
        logger.debug("optimized_relation_removed key={}", key)
        return True

    def _before_flush(self, session: Session, flush_context, instances) -> None:  # noqa: ANN001
        for instance in list(session.deleted):
            if isinstance(instance, StoredArtifact):
                self.on_artifact_removed(instance)

    def _after_commit(self, _session: Session) -> None:
        if self.asset_manager is not None:
            for artifact in self._pending_release:
                self.asset_manager.release(artifact)
        self.reset()

    def _after_rollback(self, _session: Session) -> None:
        self.reset()


__all__ = ["ResourceRemovalListener"]
