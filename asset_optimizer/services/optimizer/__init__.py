from .configuration import OptimizerConfiguration, OptimizerRuleTable
from .exceptions import (
    DuplicateKeyConflict,
    OptimizationFailed,
    OptimizerConfigurationError,
    OptimizerError,
    StorageCommitFailed,
)
from .registry import TargetInstanceRegistry, optimizer_unit_of_work, target_registry
from .removal_listener import ResourceRemovalListener
from .runner import OptimizerService
from .store import CommitResult, OptimizedArtifactStore
from .target import ImageOptimizerTarget

__all__ = [
    "CommitResult",
    "DuplicateKeyConflict",
    "ImageOptimizerTarget",
    "OptimizationFailed",
    "OptimizedArtifactStore",
    "OptimizerConfiguration",
    "OptimizerConfigurationError",
    "OptimizerError",
    "OptimizerRuleTable",
    "OptimizerService",
    "ResourceRemovalListener",
    "StorageCommitFailed",
    "TargetInstanceRegistry",
    "optimizer_unit_of_work",
    "target_registry",
]
