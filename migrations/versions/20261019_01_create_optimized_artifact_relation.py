"""create stored_artifact and optimized_artifact_relation

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = '20261019_01'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'stored_artifact',
        sa.Column('id', sa.UUID(), nullable=False, comment='主键 ID'),
        sa.Column('sha1', sa.String(length=40), nullable=False, comment='SHA-1 内容哈希（hex）'),
        sa.Column('filename', sa.String(length=255), nullable=False, comment='对外文件名'),
        sa.Column('media_type', sa.String(length=120), nullable=False, comment='媒体类型'),
        sa.Column('size_bytes', sa.BigInteger(), nullable=False, comment='内容大小（字节）'),
        sa.Column('collection_name', sa.String(length=100), nullable=False, comment='所属集合'),
        sa.Column('object_key', sa.String(length=512), nullable=False, comment='存储 Key'),
        sa.Column('storage_path', sa.String(length=1024), nullable=False, comment='本地存储路径'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='更新时间'),
        sa.PrimaryKeyConstraint('id', name='pk_stored_artifact'),
        sa.UniqueConstraint('object_key', name='uq_stored_artifact_object_key'),
    )
    op.create_index('ix_stored_artifact_sha1', 'stored_artifact', ['sha1'])
    op.create_index('ix_stored_artifact_collection_name', 'stored_artifact', ['collection_name'])

    # 一个原始资源身份最多对应一个优化产物；产物也只属于一条映射
    op.create_table(
        'optimized_artifact_relation',
        sa.Column(
            'original_identification_hash',
            sa.String(length=64),
            nullable=False,
            comment='sha256(sha1|filename)',
        ),
        sa.Column('optimized_artifact_id', sa.UUID(), nullable=False, comment='优化产物 ID'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='更新时间'),
        sa.ForeignKeyConstraint(
            ['optimized_artifact_id'],
            ['stored_artifact.id'],
            name='fk_optimized_artifact_relation_optimized_artifact_id_stored_artifact',
            ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('original_identification_hash', name='pk_optimized_artifact_relation'),
        sa.UniqueConstraint(
            'optimized_artifact_id',
            name='uq_optimized_artifact_relation_optimized_artifact_id',
        ),
    )


def downgrade() -> None:
    op.drop_table('optimized_artifact_relation')
    op.drop_index('ix_stored_artifact_collection_name', table_name='stored_artifact')
    op.drop_index('ix_stored_artifact_sha1', table_name='stored_artifact')
    op.drop_table('stored_artifact')
