from .base import Base
from .optimized_artifact_relation import OptimizedArtifactRelation
from .stored_artifact import StoredArtifact

__all__ = [
    "Base",
    "OptimizedArtifactRelation",
    "StoredArtifact",
]
