"""Initial schema: applications, profiles, AI artifacts, tracking records, queue."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "job_applications",
        sa.Column("application_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("company_name", sa.String(), nullable=False),
        sa.Column("role_title", sa.String(), nullable=False),
        sa.Column("job_url", sa.String(), nullable=True),
        sa.Column("job_description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("salary_min", sa.Integer(), nullable=True),
        sa.Column("salary_max", sa.Integer(), nullable=True),
        sa.Column("salary_currency", sa.String(), nullable=False),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("work_mode", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("application_id"),
    )
    op.create_index(
        op.f("ix_job_applications_user_id"),
        "job_applications",
        ["user_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_job_applications_status"),
        "job_applications",
        ["status"],
        unique=False,
    )
    op.create_index(
        "idx_job_applications_user_time",
        "job_applications",
        ["user_id", "created_at"],
        unique=False,
    )

    op.create_table(
        "user_profiles",
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("resume_text", sa.Text(), nullable=True),
        sa.Column("skills_json", sa.Text(), nullable=False),
        sa.Column("preferred_roles_json", sa.Text(), nullable=False),
        sa.Column("preferred_locations_json", sa.Text(), nullable=False),
        sa.Column("salary_expectation_min", sa.Integer(), nullable=True),
        sa.Column("salary_expectation_max", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "cover_letters",
        sa.Column("cover_letter_id", sa.String(), nullable=False),
        sa.Column("application_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("tone", sa.String(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["application_id"],
            ["job_applications.application_id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("cover_letter_id"),
    )
    op.create_index(op.f("ix_cover_letters_user_id"), "cover_letters", ["user_id"], unique=False)
    op.create_index(
        "idx_cover_letters_application_user",
        "cover_letters",
        ["application_id", "user_id"],
        unique=False,
    )

    for table_name, key_column in (
        ("interview_preps", "prep_id"),
        ("resume_gap_analyses", "analysis_id"),
    ):
        op.create_table(
            table_name,
            sa.Column(key_column, sa.String(), nullable=False),
            sa.Column("application_id", sa.String(), nullable=False),
            sa.Column("user_id", sa.String(), nullable=False),
            sa.Column("content_json", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(
                ["application_id"],
                ["job_applications.application_id"],
                ondelete="CASCADE",
            ),
            sa.PrimaryKeyConstraint(key_column),
        )
        op.create_index(op.f(f"ix_{table_name}_user_id"), table_name, ["user_id"], unique=False)
        op.create_index(
            f"idx_{table_name}_application_user",
            table_name,
            ["application_id", "user_id"],
            unique=False,
        )

    op.create_table(
        "ai_analyses",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("application_id", sa.String(), nullable=True),
        sa.Column("job_id", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("input_json", sa.Text(), nullable=False),
        sa.Column("result_json", sa.Text(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["application_id"],
            ["job_applications.application_id"],
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_ai_analyses_user_id"), "ai_analyses", ["user_id"], unique=False)
    op.create_index(op.f("ix_ai_analyses_job_id"), "ai_analyses", ["job_id"], unique=True)
    op.create_index(
        "idx_ai_analyses_user_status",
        "ai_analyses",
        ["user_id", "status"],
        unique=False,
    )
    op.create_index(
        "idx_ai_analyses_application_type_status",
        "ai_analyses",
        ["application_id", "type", "status"],
        unique=False,
    )

    op.create_table(
        "queue_jobs",
        sa.Column("job_id", sa.String(), nullable=False),
        sa.Column("task_type", sa.String(), nullable=False),
        sa.Column("payload_json", sa.Text(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("attempt", sa.Integer(), nullable=False),
        sa.Column("max_attempts", sa.Integer(), nullable=False),
        sa.Column("backoff_seconds", sa.Float(), nullable=False),
        sa.Column("run_after", sa.DateTime(timezone=True), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("heartbeat_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("worker_id", sa.String(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("job_id"),
    )
    op.create_index(op.f("ix_queue_jobs_task_type"), "queue_jobs", ["task_type"], unique=False)
    op.create_index(op.f("ix_queue_jobs_worker_id"), "queue_jobs", ["worker_id"], unique=False)
    op.create_index("idx_queue_jobs_ready", "queue_jobs", ["status", "run_after"], unique=False)


def downgrade() -> None:
    op.drop_index("idx_queue_jobs_ready", table_name="queue_jobs")
    op.drop_index(op.f("ix_queue_jobs_worker_id"), table_name="queue_jobs")
    op.drop_index(op.f("ix_queue_jobs_task_type"), table_name="queue_jobs")
    op.drop_table("queue_jobs")
    op.drop_index("idx_ai_analyses_application_type_status", table_name="ai_analyses")
    op.drop_index("idx_ai_analyses_user_status", table_name="ai_analyses")
    op.drop_index(op.f("ix_ai_analyses_job_id"), table_name="ai_analyses")
    op.drop_index(op.f("ix_ai_analyses_user_id"), table_name="ai_analyses")
    op.drop_table("ai_analyses")
    for table_name in ("resume_gap_analyses", "interview_preps"):
        op.drop_index(f"idx_{table_name}_application_user", table_name=table_name)
        op.drop_index(op.f(f"ix_{table_name}_user_id"), table_name=table_name)
        op.drop_table(table_name)
    op.drop_index("idx_cover_letters_application_user", table_name="cover_letters")
    op.drop_index(op.f("ix_cover_letters_user_id"), table_name="cover_letters")
    op.drop_table("cover_letters")
    op.drop_index("idx_job_applications_user_time", table_name="job_applications")
    op.drop_index(op.f("ix_job_applications_status"), table_name="job_applications")
    op.drop_index(op.f("ix_job_applications_user_id"), table_name="job_applications")
    op.drop_table("job_applications")
    op.drop_table("user_profiles")
