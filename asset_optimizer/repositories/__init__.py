from .optimized_artifact_relation_repository import OptimizedArtifactRelationRepository
from .stored_artifact_repository import StoredArtifactRepository

__all__ = [
    "OptimizedArtifactRelationRepository",
    "StoredArtifactRepository",
]
