"""Initial schema – users, vault_blobs and audit_logs

Revision ID: 0001_initial
Revises:
Create Date: 2026-02-05

One encrypted vault blob per user.  Neither vault_blobs nor audit_logs has
a foreign key to users: account deletion removes the blob and the user in
two steps, and audit rows must outlive the account they describe.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import mysql

# Alembic revision identifiers
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # -- users ----------------------------------------------------------
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(120), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        # Nullable only for legacy rows; assigned at first login
        sa.Column("encryption_salt", sa.String(64), nullable=True),
        sa.Column(
            "role",
            sa.Enum("admin", "user", name="user_role"),
            nullable=False,
            server_default="user",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        # InnoDB + utf8mb4 is set at the MySQL level; SQLAlchemy/Alembic
        # respects the database default if the DB was created with utf8mb4.
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # -- vault_blobs ----------------------------------------------------
    op.create_table(
        "vault_blobs",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("algorithm", sa.String(32), nullable=False),
        # base64( 12-byte AES-GCM nonce )
        sa.Column("iv", sa.String(64), nullable=False),
        # base64( 16-byte GCM tag )
        sa.Column("auth_tag", sa.String(64), nullable=False),
        sa.Column("ciphertext", sa.Text().with_variant(mysql.LONGTEXT(), "mysql"), nullable=False),
        sa.Column("iterations", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    # -- audit_logs -----------------------------------------------------
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.String(36), nullable=True),
        sa.Column("actor_email", sa.String(255), nullable=True),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.Column("request_ip", sa.String(45), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_id", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("vault_blobs")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
