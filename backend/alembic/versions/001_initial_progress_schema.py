"""Initial progress engine schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Creates the following tables:
- users: Identity and role lookup
- roadmap_templates / roadmap_steps: Roadmap catalogue
- user_roadmaps: Roadmap enrollments
- user_step_progress: Per-enrollment step progress
- usage_quotas: Daily AI usage counters
- daily_study_stats: Daily activity totals and streak numbers
- learning_activities: Activity audit log
- notifications: Progress notifications
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    # ===========================================
    # Identity and catalogue
    # ===========================================

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("role", sa.String(30), nullable=False, server_default="free_member"),
        sa.Column("subscription_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "roadmap_templates",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("estimated_hours", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "roadmap_steps",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("template_id", sa.Integer(), nullable=False),
        sa.Column("step_order", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("estimated_hours", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(
            ["template_id"], ["roadmap_templates.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_roadmap_steps_template_id", "roadmap_steps", ["template_id"])

    # ===========================================
    # Roadmap and step progress
    # ===========================================

    op.create_table(
        "user_roadmaps",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("template_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="not_started"),
        sa.Column("percentage", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("estimated_completion_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("daily_goal_hours", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["template_id"], ["roadmap_templates.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "template_id", name="uq_user_roadmaps_user_template"),
    )
    op.create_index("ix_user_roadmaps_user_id", "user_roadmaps", ["user_id"])

    op.create_table(
        "user_step_progress",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_roadmap_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("step_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="not_started"),
        sa.Column("percentage", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("study_hours", sa.Numeric(6, 2), nullable=False, server_default="0"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("user_notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["user_roadmap_id"], ["user_roadmaps.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["step_id"], ["roadmap_steps.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_roadmap_id", "step_id", name="uq_user_step_progress_roadmap_step"
        ),
    )
    op.create_index(
        "ix_user_step_progress_user_roadmap_id", "user_step_progress", ["user_roadmap_id"]
    )
    op.create_index("ix_user_step_progress_user_id", "user_step_progress", ["user_id"])
    op.create_index("ix_user_step_progress_step_id", "user_step_progress", ["step_id"])

    # ===========================================
    # Quotas and daily stats
    # ===========================================

    op.create_table(
        "usage_quotas",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("usage_date", sa.Date(), nullable=False),
        sa.Column("message_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("token_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "usage_date", name="uq_usage_quotas_user_date"),
    )
    op.create_index("ix_usage_quotas_user_id", "usage_quotas", ["user_id"])
    op.create_index("ix_usage_quotas_usage_date", "usage_quotas", ["usage_date"])

    op.create_table(
        "daily_study_stats",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("study_date", sa.Date(), nullable=False),
        sa.Column("study_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_steps", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ai_questions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("searches", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("streak_day_number", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "study_date", name="uq_daily_study_stats_user_date"),
    )
    op.create_index("ix_daily_study_stats_user_id", "daily_study_stats", ["user_id"])
    op.create_index("ix_daily_study_stats_study_date", "daily_study_stats", ["study_date"])

    # ===========================================
    # Audit log and notifications
    # ===========================================

    op.create_table(
        "learning_activities",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("activity_type", sa.String(30), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("target_type", sa.String(50), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column(
            "occurred_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_learning_activities_user_id", "learning_activities", ["user_id"])
    op.create_index(
        "ix_learning_activities_occurred_at", "learning_activities", ["occurred_at"]
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("notification_type", sa.String(30), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("action_url", sa.String(500), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("learning_activities")
    op.drop_table("daily_study_stats")
    op.drop_table("usage_quotas")
    op.drop_table("user_step_progress")
    op.drop_table("user_roadmaps")
    op.drop_table("roadmap_steps")
    op.drop_table("roadmap_templates")
    op.drop_table("users")
