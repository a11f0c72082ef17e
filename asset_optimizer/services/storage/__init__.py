from .asset_manager import AssetManager
from .collection import ArtifactCollection
from .filesystem_target import FileSystemTarget, TargetError

__all__ = [
    "ArtifactCollection",
    "AssetManager",
    "FileSystemTarget",
    "TargetError",
]
