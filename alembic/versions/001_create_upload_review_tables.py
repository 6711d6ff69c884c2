"""Create user, role and upload review tables.

Revision ID: 001_create_upload_review_tables
Revises:
Create Date: 2026-10-19
"""

from alembic import op

revision = "001_create_upload_review_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.execute("CREATE SCHEMA IF NOT EXISTS app")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app."user" (
            id BIGSERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            username TEXT,
            email TEXT NOT NULL UNIQUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.user_roles (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES app."user"(id) ON UPDATE CASCADE ON DELETE CASCADE,
            role TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_user_roles_user_role UNIQUE (user_id, role)
        )
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.uploads (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES app."user"(id) ON UPDATE CASCADE ON DELETE CASCADE,
            title TEXT NOT NULL,
            description TEXT,
            category TEXT,
            storage_path TEXT NOT NULL UNIQUE,
            file_type TEXT NOT NULL,
            file_name TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT chk_uploads_title_length CHECK (char_length(title) BETWEEN 1 AND 100),
            CONSTRAINT chk_uploads_description_length CHECK (
                description IS NULL OR char_length(description) <= 500
            ),
            CONSTRAINT chk_uploads_category_length CHECK (
                category IS NULL OR char_length(category) <= 50
            ),
            CONSTRAINT chk_uploads_status CHECK (status IN ('pending', 'accepted', 'rejected'))
        )
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_uploads_user_created ON app.uploads (user_id, created_at DESC)")


def downgrade():
    op.execute("DROP INDEX IF EXISTS app.ix_uploads_user_created")
    op.execute("DROP TABLE IF EXISTS app.uploads")
    op.execute("DROP TABLE IF EXISTS app.user_roles")
    op.execute('DROP TABLE IF EXISTS app."user"')
