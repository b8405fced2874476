"""Initial schema: crm accounts, contacts, leads, opportunities, cases,
activity tracking, health scores, tasks and notes.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _id():
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True)


def _now(name: str):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))


def _fk(name: str, target: str, nullable: bool = True):
    return sa.Column(
        name, postgresql.UUID(as_uuid=True), sa.ForeignKey(f"crm.{target}.id"), nullable=nullable
    )


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS crm")

    op.create_table(
        "accounts",
        _id(),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("industry", sa.Text, nullable=True),
        sa.Column("annual_revenue", sa.Numeric(14, 2), nullable=True),
        _now("date_entered"),
        schema="crm",
    )

    op.create_table(
        "contacts",
        _id(),
        _fk("account_id", "accounts"),
        sa.Column("assigned_user_id", sa.Text, nullable=True),
        sa.Column("salutation", sa.Text, nullable=True),
        sa.Column("first_name", sa.Text, nullable=True),
        sa.Column("last_name", sa.Text, nullable=False),
        sa.Column("title", sa.Text, nullable=True),
        sa.Column("department", sa.Text, nullable=True),
        sa.Column("email", sa.Text, nullable=True),
        sa.Column("phone_work", sa.Text, nullable=True),
        sa.Column("phone_mobile", sa.Text, nullable=True),
        sa.Column("lead_source", sa.Text, nullable=True),
        sa.Column("lifetime_value", sa.Numeric(14, 2), nullable=True),
        sa.Column("engagement_score", sa.Integer, nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        _now("date_entered"),
        _now("date_modified"),
        schema="crm",
    )
    op.create_index("ix_crm_contacts_account_id", "contacts", ["account_id"], schema="crm")
    op.create_index(
        "ix_crm_contacts_assigned_user_id", "contacts", ["assigned_user_id"], schema="crm"
    )

    op.create_table(
        "leads",
        _id(),
        sa.Column("assigned_user_id", sa.Text, nullable=True),
        sa.Column("first_name", sa.Text, nullable=True),
        sa.Column("last_name", sa.Text, nullable=False),
        sa.Column("title", sa.Text, nullable=True),
        sa.Column("account_name", sa.Text, nullable=True),
        sa.Column("email", sa.Text, nullable=True),
        sa.Column("phone_work", sa.Text, nullable=True),
        sa.Column("phone_mobile", sa.Text, nullable=True),
        sa.Column("website", sa.Text, nullable=True),
        sa.Column("status", sa.Text, nullable=False, server_default="New"),
        sa.Column("lead_source", sa.Text, nullable=True),
        sa.Column("lead_score", sa.Integer, nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        _now("date_entered"),
        sa.CheckConstraint(
            "status IS NULL OR status IN ('New','Assigned','Contacted','In Process',"
            "'Qualified','Converted','Recycled','Dead')",
            name="ck_lead_status",
        ),
        sa.CheckConstraint(
            "lead_score IS NULL OR lead_score BETWEEN 0 AND 100",
            name="ck_lead_score_range",
        ),
        schema="crm",
    )

    op.create_table(
        "opportunities",
        _id(),
        sa.Column("name", sa.Text, nullable=False),
        _fk("account_id", "accounts"),
        _fk("contact_id", "contacts"),
        sa.Column("assigned_user_id", sa.Text, nullable=True),
        sa.Column("amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("sales_stage", sa.Text, nullable=False, server_default="Prospecting"),
        sa.Column("probability", sa.Integer, nullable=True),
        sa.Column("date_closed", sa.Date, nullable=True),
        sa.Column("next_step", sa.Text, nullable=True),
        sa.Column("opportunity_type", sa.Text, nullable=True),
        sa.Column("lead_source", sa.Text, nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        _now("date_entered"),
        _now("date_modified"),
        sa.CheckConstraint(
            "sales_stage IN ('Prospecting','Qualification','Needs Analysis',"
            "'Value Proposition','Id. Decision Makers','Perception Analysis',"
            "'Proposal/Price Quote','Negotiation/Review','Closed Won','Closed Lost')",
            name="ck_opportunity_sales_stage",
        ),
        sa.CheckConstraint(
            "probability IS NULL OR probability BETWEEN 0 AND 100",
            name="ck_opportunity_probability_range",
        ),
        sa.CheckConstraint(
            "amount IS NULL OR amount >= 0",
            name="ck_opportunity_amount_non_negative",
        ),
        schema="crm",
    )
    op.create_index(
        "ix_opportunities_stage_closed", "opportunities", ["sales_stage", "date_closed"], schema="crm"
    )
    op.create_index(
        "ix_crm_opportunities_assigned_user_id", "opportunities", ["assigned_user_id"], schema="crm"
    )

    op.create_table(
        "cases",
        _id(),
        sa.Column("name", sa.Text, nullable=False),
        _fk("contact_id", "contacts"),
        _fk("account_id", "accounts"),
        sa.Column("assigned_user_id", sa.Text, nullable=True),
        sa.Column("status", sa.Text, nullable=True, server_default="New"),
        sa.Column("state", sa.Text, nullable=True, server_default="Open"),
        sa.Column("priority", sa.Text, nullable=True),
        sa.Column("type", sa.Text, nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("resolution", sa.Text, nullable=True),
        sa.Column("sentiment", sa.Text, nullable=True),
        _now("date_entered"),
        _now("date_modified"),
        sa.CheckConstraint(
            "status IS NULL OR status IN ('New','Assigned','Closed','Pending Input',"
            "'Rejected','Duplicate')",
            name="ck_case_status",
        ),
        sa.CheckConstraint(
            "priority IS NULL OR priority IN ('P1','P2','P3','High','Medium','Low')",
            name="ck_case_priority",
        ),
        sa.CheckConstraint("state IS NULL OR state IN ('Open','Closed')", name="ck_case_state"),
        schema="crm",
    )
    op.create_index("ix_crm_cases_contact_id", "cases", ["contact_id"], schema="crm")

    op.create_table(
        "activity_tracking_sessions",
        _id(),
        sa.Column("visitor_id", sa.Text, nullable=False),
        _fk("contact_id", "contacts"),
        _now("started_at"),
        sa.Column("duration", sa.Integer, nullable=True),
        sa.Column("page_views", sa.Integer, nullable=False, server_default="1"),
        sa.Column("referrer_url", sa.Text, nullable=True),
        sa.Column("utm_source", sa.Text, nullable=True),
        sa.Column("utm_campaign", sa.Text, nullable=True),
        schema="crm",
    )
    op.create_index(
        "ix_crm_activity_tracking_sessions_visitor_id",
        "activity_tracking_sessions", ["visitor_id"], schema="crm",
    )
    op.create_index(
        "ix_crm_activity_tracking_sessions_contact_id",
        "activity_tracking_sessions", ["contact_id"], schema="crm",
    )
    op.create_index(
        "ix_crm_activity_tracking_sessions_started_at",
        "activity_tracking_sessions", ["started_at"], schema="crm",
    )

    op.create_table(
        "health_scores",
        _id(),
        _fk("contact_id", "contacts", nullable=False),
        _fk("account_id", "accounts"),
        sa.Column("score", sa.Float, nullable=False),
        sa.Column("factors", sa.JSON, nullable=False),
        sa.Column("trend", sa.Text, nullable=False),
        sa.Column("risk_level", sa.Text, nullable=False),
        sa.Column("calculated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("score >= 0 AND score <= 1", name="ck_health_score_range"),
        sa.CheckConstraint(
            "trend IN ('improving','declining','stable')", name="ck_health_trend"
        ),
        sa.CheckConstraint(
            "risk_level IN ('low','medium','high')", name="ck_health_risk_level"
        ),
        schema="crm",
    )
    op.create_index(
        "ix_health_scores_contact_calculated",
        "health_scores", ["contact_id", "calculated_at"], schema="crm",
    )

    op.create_table(
        "tasks",
        _id(),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("status", sa.Text, nullable=True),
        sa.Column("priority", sa.Text, nullable=True),
        sa.Column("date_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("date_due", sa.DateTime(timezone=True), nullable=True),
        sa.Column("parent_type", sa.Text, nullable=True),
        sa.Column("parent_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("assigned_user_id", sa.Text, nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        _now("date_entered"),
        sa.CheckConstraint(
            "status IS NULL OR status IN ('Not Started','In Progress','Completed',"
            "'Pending Input','Deferred')",
            name="ck_task_status",
        ),
        sa.CheckConstraint(
            "priority IS NULL OR priority IN ('High','Medium','Low')", name="ck_task_priority"
        ),
        schema="crm",
    )
    op.create_index("ix_tasks_parent", "tasks", ["parent_type", "parent_id"], schema="crm")

    op.create_table(
        "notes",
        _id(),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("parent_type", sa.Text, nullable=True),
        sa.Column("parent_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("assigned_user_id", sa.Text, nullable=True),
        sa.Column("filename", sa.Text, nullable=True),
        sa.Column("file_mime_type", sa.Text, nullable=True),
        sa.Column("portal_flag", sa.Boolean, nullable=False, server_default="false"),
        _now("date_entered"),
        schema="crm",
    )
    op.create_index("ix_notes_parent", "notes", ["parent_type", "parent_id"], schema="crm")


def downgrade() -> None:
    # Drop in reverse dependency order
    op.drop_index("ix_notes_parent", table_name="notes", schema="crm")
    op.drop_table("notes", schema="crm")
    op.drop_index("ix_tasks_parent", table_name="tasks", schema="crm")
    op.drop_table("tasks", schema="crm")
    op.drop_index("ix_health_scores_contact_calculated", table_name="health_scores", schema="crm")
    op.drop_table("health_scores", schema="crm")
    op.drop_table("activity_tracking_sessions", schema="crm")
    op.drop_table("cases", schema="crm")
    op.drop_table("opportunities", schema="crm")
    op.drop_table("leads", schema="crm")
    op.drop_table("contacts", schema="crm")
    op.drop_table("accounts", schema="crm")
