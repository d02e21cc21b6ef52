"""materialized folder paths and orphaned blob ledger

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:30:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


def _backfill_paths() -> None:
    connection = op.get_bind()
    rows = connection.execute(sa.text("SELECT id, parent_id FROM folders")).all()
    parents = {row.id: row.parent_id for row in rows}
    paths: dict[int, str] = {}

    def path_for(folder_id: int) -> str:
        if folder_id in paths:
            return paths[folder_id]
        chain: list[int] = []
        cursor: int | None = folder_id
        while cursor is not None and cursor not in chain:
            chain.append(cursor)
            cursor = parents.get(cursor)
        paths[folder_id] = "/" + "".join(f"{item}/" for item in reversed(chain))
        return paths[folder_id]

    for folder_id in parents:
        connection.execute(
            sa.text("UPDATE folders SET path = :path WHERE id = :id"),
            {"path": path_for(folder_id), "id": folder_id},
        )


def upgrade() -> None:
    with op.batch_alter_table("folders") as batch_op:
        batch_op.add_column(sa.Column("path", sa.Text(), nullable=False, server_default="/"))
        batch_op.create_index(batch_op.f("ix_folders_path"), ["path"], unique=False)
    _backfill_paths()

    op.create_table(
        "orphaned_blobs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("storage_key", sa.String(length=512), nullable=False),
        sa.Column("reason", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_orphaned_blobs_storage_key"), "orphaned_blobs", ["storage_key"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_orphaned_blobs_storage_key"), table_name="orphaned_blobs")
    op.drop_table("orphaned_blobs")
    with op.batch_alter_table("folders") as batch_op:
        batch_op.drop_index(batch_op.f("ix_folders_path"))
        batch_op.drop_column("path")
