from __future__ import annotations

import uuid

from sqlalchemy import UUID as SA_UUID
from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from asset_optimizer.utils.content_key import compute_content_key

from .base import Base, TimestampMixin
from .stored_artifact import StoredArtifact


class OptimizedArtifactRelation(Base, TimestampMixin):
    """
    原始资源身份（sha1 + 文件名）到优化产物的映射

    优化产物归此关系独占：删除关系时级联删除产物，不留孤儿记录。
    """

    __tablename__ = "optimized_artifact_relation"

    original_identification_hash: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="sha256(sha1|filename)",
    )
    optimized_artifact_id: Mapped[uuid.UUID] = mapped_column(
        SA_UUID(as_uuid=True),
        ForeignKey("stored_artifact.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        comment="优化产物 ID",
    )

    optimized_artifact: Mapped[StoredArtifact] = relationship(
        StoredArtifact,
        cascade="all, delete-orphan",
        single_parent=True,
        lazy="joined",
    )

    @classmethod
    def create_from_sha1_and_filename(
        cls, sha1: str, filename: str, optimized_artifact: StoredArtifact
    ) -> "OptimizedArtifactRelation":
        return cls(
            original_identification_hash=compute_content_key(sha1, filename),
            optimized_artifact=optimized_artifact,
        )

    def __repr__(self) -> str:
        return (
            f"<OptimizedArtifactRelation(key={self.original_identification_hash}, "
            f"artifact={self.optimized_artifact_id})>"
        )
