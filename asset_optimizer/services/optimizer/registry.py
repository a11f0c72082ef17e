from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from asset_optimizer.core.logging import logger

if TYPE_CHECKING:
    from .target import ImageOptimizerTarget


class TargetInstanceRegistry:
    """记录所有 ImageOptimizerTarget 实例，便于在工作单元结束时统一落库"""

    def __init__(self) -> None:
        self._target_instances: list["ImageOptimizerTarget"] = []

    def register(self, target: "ImageOptimizerTarget") -> None:
        if any(existing is target for existing in self._target_instances):
            return
        self._target_instances.append(target)

    def unregister(self, target: "ImageOptimizerTarget") -> None:
        self._target_instances = [t for t in self._target_instances if t is not target]

    def get_registered_instances(self) -> list["ImageOptimizerTarget"]:
        return list(self._target_instances)

    def persist_all(self) -> None:
        for target in self.get_registered_instances():
            target.persist()

    def discard_all(self) -> None:
        for target in self.get_registered_instances():
            target.discard()


target_registry = TargetInstanceRegistry()


@contextmanager
def optimizer_unit_of_work(registry: TargetInstanceRegistry | None = None) -> Iterator[TargetInstanceRegistry]:
    """
    工作单元边界：正常退出时落库所有 Target 的暂存变更，异常时全部丢弃
    落库失败同样丢弃尚未提交的暂存变更，释放已经写出的优化产物

    Example:
        with optimizer_unit_of_work() as registry:
            target.publish_collection(collection)
    """
    registry = registry or target_registry
    try:
        yield registry
    except Exception:
        logger.warning("optimizer_unit_of_work aborted, discarding staged changes")
        registry.discard_all()
        raise
    try:
        registry.persist_all()
    except Exception:
        logger.error("optimizer_unit_of_work persist failed, discarding staged changes")
        registry.discard_all()
        raise


__all__ = ["TargetInstanceRegistry", "optimizer_unit_of_work", "target_registry"]
