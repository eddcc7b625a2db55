"""document store and notifications

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


def _ensure_index(inspector, table: str, name: str, columns: list[str]) -> None:
    existing = {index["name"] for index in inspector.get_indexes(table)}
    if name not in existing:
        op.create_index(name, table, columns)


revision = "0001_baseline"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("documents"):
        op.create_table(
            "documents",
            sa.Column("pk", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("collection", sa.String(length=64), nullable=False),
            sa.Column("id", sa.String(length=64), nullable=False),
            sa.Column("building_id", sa.String(length=64), nullable=True),
            sa.Column("data", sa.JSON(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint("collection", "id", name="uq_documents_collection_id"),
        )
    _ensure_index(inspector, "documents", "ix_documents_collection", ["collection"])
    _ensure_index(inspector, "documents", "ix_documents_id", ["id"])
    _ensure_index(inspector, "documents", "ix_documents_building_id", ["building_id"])

    if not inspector.has_table("notifications"):
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("user_id", sa.String(length=64), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("kind", sa.String(length=32), nullable=False, server_default="info"),
            sa.Column("building_id", sa.String(length=64), nullable=True),
            sa.Column("link_url", sa.String(length=255), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("read_at", sa.DateTime(), nullable=True),
        )
    _ensure_index(inspector, "notifications", "ix_notifications_id", ["id"])
    _ensure_index(inspector, "notifications", "ix_notifications_user_id", ["user_id"])
    _ensure_index(inspector, "notifications", "ix_notifications_building_id", ["building_id"])
    _ensure_index(inspector, "notifications", "ix_notifications_read_at", ["read_at"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("documents")
