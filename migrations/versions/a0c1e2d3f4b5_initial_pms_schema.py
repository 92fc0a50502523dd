"""initial pms schema

Revision ID: a0c1e2d3f4b5
Revises:
Create Date: 2026-09-28 10:12:44.118203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'a0c1e2d3f4b5'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
MONEY = sa.Numeric(15, 2)


def _now() -> sa.sql.elements.TextClause:
    return sa.text("CURRENT_TIMESTAMP")


def upgrade() -> None:
    """Users/RBAC, audit trail, projects and everything hanging off them."""
    conn = op.get_bind()
    existing_tables = set(sa.inspect(conn).get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("name", sa.String(255), nullable=True),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_now()),
        )

    if "roles" not in existing_tables:
        op.create_table(
            "roles",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(64), nullable=False, unique=True),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_now()),
        )

    if "permissions" not in existing_tables:
        op.create_table(
            "permissions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(128), nullable=False, unique=True),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_now()),
        )

    if "user_roles" not in existing_tables:
        op.create_table(
            "user_roles",
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        )

    if "role_permissions" not in existing_tables:
        op.create_table(
            "role_permissions",
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("permission_id", sa.Integer(), sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
        )

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_now()),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("client_ip", sa.String(64), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("actor_user_email", sa.String(320), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("reason", sa.String(512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
        )
        op.create_index("idx_audit_events_created_at", "audit_events", ["created_at"])

    if "projects" not in existing_tables:
        user_fk = lambda: sa.ForeignKey("users.id", ondelete="SET NULL")  # noqa: E731
        op.create_table(
            "projects",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("deal_code", sa.String(32), nullable=True, unique=True),
            sa.Column("project_code", sa.String(32), nullable=True, unique=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("product_type", sa.String(128), nullable=True),
            sa.Column("lifecycle", sa.String(32), nullable=False, server_default="LEAD"),
            sa.Column("health_status", sa.String(32), nullable=False, server_default="STABLE"),
            sa.Column("stage_progress", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("decision", sa.String(32), nullable=False, server_default="PENDING"),
            sa.Column("decision_date", sa.DateTime(), nullable=True),
            sa.Column("decision_note", sa.Text(), nullable=True),
            # Sale (NVKD)
            sa.Column("nvkd_id", sa.Integer(), user_fk(), nullable=True),
            sa.Column("client_type", sa.String(64), nullable=True),
            sa.Column("license_link", sa.String(1024), nullable=True),
            sa.Column("campaign_objective", sa.Text(), nullable=True),
            sa.Column("initial_goal", sa.Text(), nullable=True),
            sa.Column("upsell_opportunity", sa.Text(), nullable=True),
            sa.Column("total_budget", MONEY, nullable=True),
            sa.Column("monthly_budget", MONEY, nullable=True),
            sa.Column("spent_amount", MONEY, nullable=True, server_default="0"),
            sa.Column("fixed_ad_fee", MONEY, nullable=True),
            sa.Column("ad_service_fee", MONEY, nullable=True),
            sa.Column("content_fee", MONEY, nullable=True),
            sa.Column("design_fee", MONEY, nullable=True),
            sa.Column("media_fee", MONEY, nullable=True),
            sa.Column("other_fee", MONEY, nullable=True),
            # Evaluation (PM)
            sa.Column("pm_id", sa.Integer(), user_fk(), nullable=True),
            sa.Column("planner_id", sa.Integer(), user_fk(), nullable=True),
            sa.Column("cost_nsqc", MONEY, nullable=True),
            sa.Column("cost_design", MONEY, nullable=True),
            sa.Column("cost_media", MONEY, nullable=True),
            sa.Column("cost_kol", MONEY, nullable=True),
            sa.Column("cost_other", MONEY, nullable=True),
            sa.Column("cogs", MONEY, nullable=True),
            sa.Column("gross_profit", MONEY, nullable=True),
            sa.Column("profit_margin", sa.Float(), nullable=True),
            sa.Column("client_tier", sa.String(16), nullable=True),
            sa.Column("market_size", sa.String(255), nullable=True),
            sa.Column("competition_level", sa.String(255), nullable=True),
            sa.Column("product_usp", sa.Text(), nullable=True),
            sa.Column("average_score", sa.Float(), nullable=True),
            sa.Column("audience_size", sa.String(255), nullable=True),
            sa.Column("product_lifecycle", sa.String(255), nullable=True),
            sa.Column("scale_potential", sa.String(255), nullable=True),
            sa.Column("weekly_notes", JSONType, nullable=True),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column("drive_link", sa.String(1024), nullable=True),
            sa.Column("plan_link", sa.String(1024), nullable=True),
            sa.Column("tracking_link", sa.String(1024), nullable=True),
            sa.Column("archived_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=_now()),
            sa.Column("created_by_user_id", sa.Integer(), user_fk(), nullable=True),
        )
        op.create_index("idx_projects_lifecycle", "projects", ["lifecycle"])
        op.create_index("idx_projects_health_status", "projects", ["health_status"])
        op.create_index("idx_projects_archived_at", "projects", ["archived_at"])

    if "stage_history" not in existing_tables:
        op.create_table(
            "stage_history",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("from_stage", sa.String(32), nullable=True),
            sa.Column("to_stage", sa.String(32), nullable=False),
            sa.Column("from_progress", sa.Integer(), nullable=True),
            sa.Column("to_progress", sa.Integer(), nullable=True),
            sa.Column("reason", sa.Text(), nullable=True),
            sa.Column("changed_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_now()),
        )

    if "project_team" not in existing_tables:
        op.create_table(
            "project_team",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("role", sa.String(32), nullable=False),
            sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_now()),
            sa.UniqueConstraint("project_id", "user_id", name="uq_project_team_member"),
        )

    if "project_phases" not in existing_tables:
        op.create_table(
            "project_phases",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("phase_type", sa.String(32), nullable=False),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("weight", sa.Float(), nullable=False, server_default="0"),
            sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
        )

    if "project_phase_items" not in existing_tables:
        op.create_table(
            "project_phase_items",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("phase_id", sa.String(36), sa.ForeignKey("project_phases.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("weight", sa.Float(), nullable=False, server_default="0"),
            sa.Column("is_complete", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("pic", sa.String(255), nullable=True),
            sa.Column("support", sa.String(255), nullable=True),
            sa.Column("expected_output", sa.String(255), nullable=True),
        )

    if "tasks" not in existing_tables:
        op.create_table(
            "tasks",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
            sa.Column("parent_id", sa.String(36), sa.ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True),
            sa.Column("title", sa.String(500), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(32), nullable=False, server_default="TODO"),
            sa.Column("priority", sa.String(16), nullable=False, server_default="MEDIUM"),
            sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("estimated_hours", sa.Float(), nullable=True),
            sa.Column("actual_hours", sa.Float(), nullable=True),
            sa.Column("start_date", sa.DateTime(), nullable=True),
            sa.Column("deadline", sa.DateTime(), nullable=True),
            sa.Column("started_at", sa.DateTime(), nullable=True),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=_now()),
            sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("reviewer_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        )
        op.create_index("idx_tasks_project_status", "tasks", ["project_id", "status"])
        op.create_index("idx_tasks_deadline", "tasks", ["deadline"])

    if "task_assignees" not in existing_tables:
        op.create_table(
            "task_assignees",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("assigned_at", sa.DateTime(), nullable=False, server_default=_now()),
            sa.UniqueConstraint("task_id", "user_id", name="uq_task_assignee"),
        )

    if "phase_item_tasks" not in existing_tables:
        op.create_table(
            "phase_item_tasks",
            sa.Column("phase_item_id", sa.String(36), sa.ForeignKey("project_phase_items.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
        )

    if "strategic_briefs" not in existing_tables:
        op.create_table(
            "strategic_briefs",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("pipeline_id", sa.String(36), sa.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True),
            sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True),
            sa.Column("status", sa.String(32), nullable=False, server_default="DRAFT"),
            sa.Column("completion_pct", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("submitted_at", sa.DateTime(), nullable=True),
            sa.Column("approved_at", sa.DateTime(), nullable=True),
            sa.Column("approved_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=_now()),
        )

    if "brief_sections" not in existing_tables:
        op.create_table(
            "brief_sections",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("brief_id", sa.String(36), sa.ForeignKey("strategic_briefs.id", ondelete="CASCADE"), nullable=False),
            sa.Column("section_num", sa.Integer(), nullable=False),
            sa.Column("section_key", sa.String(64), nullable=False),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("data", JSONType, nullable=True),
            sa.Column("is_complete", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=_now()),
            sa.UniqueConstraint("brief_id", "section_num", name="uq_brief_section_num"),
        )

    if "brief_revisions" not in existing_tables:
        op.create_table(
            "brief_revisions",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("brief_id", sa.String(36), sa.ForeignKey("strategic_briefs.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("comment", sa.Text(), nullable=False),
            sa.Column("requested_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_now()),
        )

    if "events" not in existing_tables:
        op.create_table(
            "events",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("type", sa.String(32), nullable=False, server_default="MEETING"),
            sa.Column("start_time", sa.DateTime(), nullable=False),
            sa.Column("end_time", sa.DateTime(), nullable=True),
            sa.Column("is_all_day", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("recurrence", sa.String(512), nullable=True),
            sa.Column("location", sa.String(255), nullable=True),
            sa.Column("meeting_link", sa.String(1024), nullable=True),
            sa.Column("reminder_minutes", sa.Integer(), nullable=True),
            sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=True),
            sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True),
            sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=_now()),
        )
        op.create_index("idx_events_start_time", "events", ["start_time"])
        op.create_index("idx_events_project_id", "events", ["project_id"])

    if "event_attendees" not in existing_tables:
        op.create_table(
            "event_attendees",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
            sa.UniqueConstraint("event_id", "user_id", name="uq_event_attendee"),
        )

    if "files" not in existing_tables:
        op.create_table(
            "files",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("original_name", sa.String(255), nullable=False),
            sa.Column("path", sa.String(1024), nullable=False, unique=True),
            sa.Column("size", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("mime_type", sa.String(128), nullable=True),
            sa.Column("category", sa.String(32), nullable=False, server_default="OTHER"),
            sa.Column("tags", JSONType, nullable=True),
            sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=True),
            sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True),
            sa.Column("uploaded_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=_now()),
        )
        op.create_index("idx_files_project_id", "files", ["project_id"])
        op.create_index("idx_files_task_id", "files", ["task_id"])


def downgrade() -> None:
    for table in (
        "files",
        "event_attendees",
        "events",
        "brief_revisions",
        "brief_sections",
        "strategic_briefs",
        "phase_item_tasks",
        "task_assignees",
        "tasks",
        "project_phase_items",
        "project_phases",
        "project_team",
        "stage_history",
        "projects",
        "audit_events",
        "role_permissions",
        "user_roles",
        "permissions",
        "roles",
        "users",
    ):
        op.drop_table(table)
