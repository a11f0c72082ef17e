from __future__ import annotations

import uuid
from pathlib import Path
from typing import BinaryIO

from sqlalchemy import UUID as SA_UUID
from sqlalchemy import BigInteger, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class StoredArtifact(Base, TimestampMixin):
    """宿主存储中的资源记录（原始资源与优化产物共用此表）"""

    __tablename__ = "stored_artifact"
    __table_args__ = (
        UniqueConstraint("object_key", name="uq_stored_artifact_object_key"),
        Index("ix_stored_artifact_sha1", "sha1"),
        Index("ix_stored_artifact_collection_name", "collection_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        SA_UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="主键 ID",
    )
    sha1: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        comment="SHA-1 内容哈希（hex）",
    )
    filename: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="对外文件名",
    )
    media_type: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        comment="媒体类型",
    )
    size_bytes: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="内容大小（字节）",
    )
    collection_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="所属集合",
    )
    object_key: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        comment="存储 Key",
    )
    storage_path: Mapped[str] = mapped_column(
        String(1024),
        nullable=False,
        comment="本地存储路径",
    )

    def get_stream(self) -> BinaryIO | None:
        """打开只读流；文件已不存在时返回 None"""
        path = Path(self.storage_path)
        if not path.is_file():
            return None
        return path.open("rb")

    def __repr__(self) -> str:
        return f"<StoredArtifact(id={self.id}, sha1={self.sha1}, filename={self.filename})>"
