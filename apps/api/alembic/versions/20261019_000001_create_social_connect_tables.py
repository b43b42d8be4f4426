"""create social connect tables

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:01.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "linked_accounts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("platform", sa.String(), nullable=False),
        sa.Column("username", sa.String(), nullable=True),
        sa.Column("platform_user_id", sa.String(), nullable=True),
        sa.Column("profile_name", sa.String(), nullable=True),
        sa.Column("profile_image_url", sa.String(), nullable=True),
        sa.Column("profile_url", sa.String(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("followers", sa.Integer(), nullable=True),
        sa.Column("following", sa.Integer(), nullable=True),
        sa.Column("engagement", sa.Float(), nullable=True),
        sa.Column("access_token_encrypted", sa.Text(), nullable=True),
        sa.Column("refresh_token_encrypted", sa.Text(), nullable=True),
        sa.Column("token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("oauth_scope", sa.String(), nullable=True),
        sa.Column("connected", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sync_status", sa.String(), nullable=False, server_default="disconnected"),
        sa.Column("last_sync", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "platform", name="uq_linked_accounts_user_platform"),
    )
    op.create_index(op.f("ix_linked_accounts_user_id"), "linked_accounts", ["user_id"], unique=False)
    op.create_index(
        op.f("ix_linked_accounts_platform_user_id"),
        "linked_accounts",
        ["platform_user_id"],
        unique=False,
    )

    op.create_table(
        "platform_sync_jobs",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("linked_account_id", sa.String(), nullable=False),
        sa.Column("sync_type", sa.String(), nullable=False, server_default="full"),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("records_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["linked_account_id"], ["linked_accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_platform_sync_jobs_linked_account_id"),
        "platform_sync_jobs",
        ["linked_account_id"],
        unique=False,
    )
    op.create_index(op.f("ix_platform_sync_jobs_status"), "platform_sync_jobs", ["status"], unique=False)

    op.create_table(
        "platform_audience_metrics",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("linked_account_id", sa.String(), nullable=False),
        sa.Column("metric_date", sa.Date(), nullable=False),
        sa.Column("followers_count", sa.Integer(), nullable=True),
        sa.Column("following_count", sa.Integer(), nullable=True),
        sa.Column("engagement_rate", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["linked_account_id"], ["linked_accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "linked_account_id",
            "metric_date",
            name="uq_platform_audience_metrics_account_date",
        ),
    )
    op.create_index(
        op.f("ix_platform_audience_metrics_linked_account_id"),
        "platform_audience_metrics",
        ["linked_account_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_platform_audience_metrics_linked_account_id"), table_name="platform_audience_metrics")
    op.drop_table("platform_audience_metrics")
    op.drop_index(op.f("ix_platform_sync_jobs_status"), table_name="platform_sync_jobs")
    op.drop_index(op.f("ix_platform_sync_jobs_linked_account_id"), table_name="platform_sync_jobs")
    op.drop_table("platform_sync_jobs")
    op.drop_index(op.f("ix_linked_accounts_platform_user_id"), table_name="linked_accounts")
    op.drop_index(op.f("ix_linked_accounts_user_id"), table_name="linked_accounts")
    op.drop_table("linked_accounts")
