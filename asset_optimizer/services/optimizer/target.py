"""
ImageOptimizerTarget：包装真实发布目标的优化决策层

状态（单个资源、单次发布）：
- 无匹配规则          → 直接交给真实 Target
- 有规则且已缓存      → URI 解析时替换为优化产物
- 有规则且未缓存      → 调用优化器；成功则暂存映射，失败则记录告警并使用原图

优化只发生在发布路径上，URI 解析不会触发优化。暂存的映射在 persist() 时统一落库。
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from asset_optimizer.core.logging import logger
from asset_optimizer.models.optimized_artifact_relation import OptimizedArtifactRelation
from asset_optimizer.models.stored_artifact import StoredArtifact
from asset_optimizer.schemas.optimizer import OptimizerTargetOptions
from asset_optimizer.utils.content_key import compute_content_key

from .configuration import OptimizerConfiguration, OptimizerRuleTable
from .exceptions import OptimizationFailed, OptimizerConfigurationError
from .registry import TargetInstanceRegistry, target_registry
from .runner import OptimizerService
from .store import CommitResult, OptimizedArtifactStore
from .types import ArtifactImporter, Collection, ResourceMetaData, Target


class ImageOptimizerTarget:
    def __init__(
        self,
        name: str,
        options: OptimizerTargetOptions | Mapping[str, Any],
        *,
        store: OptimizedArtifactStore,
        optimizer_service: OptimizerService,
        asset_manager: ArtifactImporter,
        registry: TargetInstanceRegistry | None = target_registry,
        verify_binaries: bool = True,
    ):
        self.name = name
        if not isinstance(options, OptimizerTargetOptions):
            try:
                options = OptimizerTargetOptions.model_validate(options)
            except ValidationError as exc:
                raise OptimizerConfigurationError(f'invalid options for target "{name}": {exc}') from exc
        self.options = options
        self.store = store
        self.optimizer_service = optimizer_service
        self.asset_manager = asset_manager

        self.optimizer_configurations = OptimizerRuleTable.from_options(
            options.media_types, verify_binaries=verify_binaries
        )
        try:
            self.real_target: Target = options.target_class(name, options.target_options)
        except TypeError as exc:
            raise OptimizerConfigurationError(
                f'cannot construct wrapped target {options.target_class!r}: {exc}'
            ) from exc

        if registry is not None:
            registry.register(self)

    def get_name(self) -> str:
        return self.name

    def publish_collection(
        self,
        collection: Collection,
        callback: Callable[[int, StoredArtifact], None] | None = None,
    ) -> None:
        """Publishes the whole collection to this target"""
        for resource in collection.get_objects():
            self._optimize_if_needed(resource)
        self.real_target.publish_collection(collection, callback)

    def publish_resource(self, resource: StoredArtifact, collection: Collection) -> None:
        self._optimize_if_needed(resource)
        self.real_target.publish_resource(resource, collection)

    def unpublish_resource(self, resource: StoredArtifact) -> None:
        if self.should_be_optimized(resource.media_type):
            relation = self._get_optimized_by_sha1_and_filename(resource.sha1, resource.filename)
            if relation is not None:
                self.store.stage_removal(relation)
                self.store.stage_removal(relation.optimized_artifact)

        # 真实 Target 只认识原始资源
        self.real_target.unpublish_resource(resource)

    def get_public_static_resource_uri(self, relative_path_and_filename: str) -> str:
        return self.real_target.get_public_static_resource_uri(relative_path_and_filename)

    def get_public_persistent_resource_uri(self, resource: StoredArtifact) -> str:
        if self.should_be_optimized(resource.media_type):
            relation = self._get_optimized_by_sha1_and_filename(resource.sha1, resource.filename)
            if relation is not None:
                return self.asset_manager.get_public_uri(relation.optimized_artifact)

        return self.real_target.get_public_persistent_resource_uri(resource)

    def needs_to_be_optimized(self, resource: ResourceMetaData) -> bool:
        if not self.should_be_optimized(resource.media_type):
            return False
        key = compute_content_key(resource.sha1, resource.filename)
        return not self.store.is_staged(key) and self.store.find(key) is None

    def should_be_optimized(self, media_type: str) -> bool:
        return self.get_optimizer_configuration_for_media_type(media_type) is not None

    def get_optimizer_configuration_for_media_type(self, media_type: str) -> OptimizerConfiguration | None:
        return self.optimizer_configurations.rule_for(media_type)

    def is_optimized(self, sha1: str, filename: str) -> bool:
        return self._get_optimized_by_sha1_and_filename(sha1, filename) is not None

    def _get_optimized_by_sha1_and_filename(self, sha1: str, filename: str) -> OptimizedArtifactRelation | None:
        return self.store.find(compute_content_key(sha1, filename))

    def _optimize_if_needed(self, resource: ResourceMetaData) -> None:
        if not self.needs_to_be_optimized(resource):
            return
        stream = resource.get_stream()
        if stream is None:
            return
        configuration = self.get_optimizer_configuration_for_media_type(resource.media_type)
        try:
            with stream:
                optimized = self.optimizer_service.optimize(
                    stream,
                    resource.filename,
                    resource.media_type,
                    configuration,
                    self.options.optimized_collection,
                )
        except OptimizationFailed as exc:
            # 忽略错误，继续使用原图
            logger.warning(
                'Optimization of resource "{}" failed, using original, error: {}',
                resource.filename,
                exc,
            )
            return
        self._prepare_for_persistence(optimized, resource.sha1, resource.filename)

    def _prepare_for_persistence(self, optimized: StoredArtifact, sha1: str, filename: str) -> None:
        relation = OptimizedArtifactRelation.create_from_sha1_and_filename(sha1, filename, optimized)
        self.store.stage(relation)

    def persist(self) -> CommitResult:
        """把暂存的映射与删除在一个事务内落库；存储层错误原样抛出"""
        result = self.store.commit()
        for relation in result.conflicts:
            # 并发方已写入同一 key，本地产物作废
            self.asset_manager.release(relation.optimized_artifact)
        for artifact in result.removed_artifacts:
            self.asset_manager.release(artifact)
        if result.persisted or result.removed_artifacts:
            logger.info(
                "optimizer_target_persisted target={} persisted={} removed={} conflicts={}",
                self.name,
                len(result.persisted),
                len(result.removed_artifacts),
                len(result.conflicts),
            )
        return result

    def discard(self) -> None:
        for relation in self.store.discard():
            self.asset_manager.release(relation.optimized_artifact)


__all__ = ["ImageOptimizerTarget"]
