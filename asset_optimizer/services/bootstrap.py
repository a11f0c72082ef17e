"""按 settings 组装优化 Target 及其依赖"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.orm import Session

from asset_optimizer.core.config import settings
from asset_optimizer.services.optimizer import (
    ImageOptimizerTarget,
    OptimizedArtifactStore,
    OptimizerService,
    ResourceRemovalListener,
    TargetInstanceRegistry,
    target_registry,
)
from asset_optimizer.services.storage import AssetManager, FileSystemTarget

DEFAULT_TARGET_NAME = "localWebDirectoryPersistentResourcesTarget"


def create_asset_manager(session: Session | None = None) -> AssetManager:
    """优化产物集合单独发布到 <ASSET_PUBLIC_DIR>/<collection>，避免与原图路径重叠"""
    manager = AssetManager(settings.ASSET_LOCAL_DIR, session=session)
    collection = settings.OPTIMIZER_COLLECTION
    manager.register_collection(
        collection,
        FileSystemTarget(
            f"{collection}ResourcesTarget",
            {
                "path": str(Path(settings.ASSET_PUBLIC_DIR) / collection),
                "baseUri": f"{settings.ASSET_PUBLIC_BASE_URL.rstrip('/')}/{collection}",
            },
        ),
    )
    return manager


def create_optimizer_target(
    session: Session,
    *,
    name: str = DEFAULT_TARGET_NAME,
    asset_manager: AssetManager | None = None,
    registry: TargetInstanceRegistry | None = target_registry,
) -> ImageOptimizerTarget:
    asset_manager = asset_manager or create_asset_manager(session)
    target = ImageOptimizerTarget(
        name,
        {
            "mediaTypes": settings.OPTIMIZER_MEDIA_TYPES,
            "targetClass": FileSystemTarget,
            "targetOptions": {
                "path": settings.ASSET_PUBLIC_DIR,
                "baseUri": settings.ASSET_PUBLIC_BASE_URL,
            },
            "optimizedCollection": settings.OPTIMIZER_COLLECTION,
        },
        store=OptimizedArtifactStore(session),
        optimizer_service=OptimizerService(asset_manager),
        asset_manager=asset_manager,
        registry=registry,
        verify_binaries=settings.OPTIMIZER_VERIFY_BINARIES,
    )
    asset_manager.register_collection(settings.ASSET_PERSISTENT_COLLECTION, target)
    ResourceRemovalListener(session, asset_manager=asset_manager).install()
    return target


__all__ = ["DEFAULT_TARGET_NAME", "create_asset_manager", "create_optimizer_target"]
