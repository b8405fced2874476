"""SQLAlchemy 2.0 ORM models for the CRM core.

All tables live in the `crm` schema:
  accounts, contacts, leads, opportunities, cases,
  activity_tracking_sessions, health_scores, tasks, notes
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    UUID,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from schemas.enums import (
    CASE_PRIORITIES,
    CASE_STATES,
    CASE_STATUSES,
    HEALTH_TRENDS,
    LEAD_STATUSES,
    RISK_LEVELS,
    SALES_STAGES,
    TASK_PRIORITIES,
    TASK_STATUSES,
    check_in,
)


# ---------------------------------------------------------------------------
# Shared base
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    # server defaults (ids, timestamps, status) come back with the INSERT
    __mapper_args__ = {"eager_defaults": True}


def _uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


def _created() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


# ===========================================================================
# Schema: crm
# ===========================================================================


class Account(Base):
    """crm.accounts: customer companies."""

    __tablename__ = "accounts"
    __table_args__ = {"schema": "crm"}

    id: Mapped[uuid.UUID] = _uuid_pk()
    name: Mapped[str] = mapped_column(Text, nullable=False)
    industry: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    annual_revenue: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    date_entered: Mapped[datetime] = _created()

    contacts: Mapped[list["Contact"]] = relationship("Contact", back_populates="account")


class Contact(Base):
    """crm.contacts: individual people, optionally attached to an account."""

    __tablename__ = "contacts"
    __table_args__ = {"schema": "crm"}

    id: Mapped[uuid.UUID] = _uuid_pk()
    account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("crm.accounts.id"),
        nullable=True,
        index=True,
    )
    assigned_user_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    salutation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    department: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone_work: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone_mobile: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    lead_source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    lifetime_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    engagement_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    date_entered: Mapped[datetime] = _created()
    date_modified: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Relationships
    account: Mapped[Optional["Account"]] = relationship("Account", back_populates="contacts")
    sessions: Mapped[list["ActivityTrackingSession"]] = relationship(
        "ActivityTrackingSession", back_populates="contact"
    )
    cases: Mapped[list["SupportCase"]] = relationship("SupportCase", back_populates="contact")
    opportunities: Mapped[list["Opportunity"]] = relationship(
        "Opportunity", back_populates="contact"
    )
    health_scores: Mapped[list["HealthScore"]] = relationship(
        "HealthScore",
        back_populates="contact",
        order_by="HealthScore.calculated_at",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class Lead(Base):
    """crm.leads: unqualified prospects."""

    __tablename__ = "leads"
    __table_args__ = (
        CheckConstraint(check_in("status", LEAD_STATUSES), name="ck_lead_status"),
        CheckConstraint(
            "lead_score IS NULL OR lead_score BETWEEN 0 AND 100",
            name="ck_lead_score_range",
        ),
        {"schema": "crm"},
    )

    id: Mapped[uuid.UUID] = _uuid_pk()
    assigned_user_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    account_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone_work: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone_mobile: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, server_default="New")
    lead_source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    lead_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    date_entered: Mapped[datetime] = _created()


class Opportunity(Base):
    """crm.opportunities: deals moving through the sales stages."""

    __tablename__ = "opportunities"
    __table_args__ = (
        CheckConstraint(
            check_in("sales_stage", SALES_STAGES, nullable=False),
            name="ck_opportunity_sales_stage",
        ),
        CheckConstraint(
            "probability IS NULL OR probability BETWEEN 0 AND 100",
            name="ck_opportunity_probability_range",
        ),
        CheckConstraint(
            "amount IS NULL OR amount >= 0",
            name="ck_opportunity_amount_non_negative",
        ),
        Index("ix_opportunities_stage_closed", "sales_stage", "date_closed"),
        {"schema": "crm"},
    )

    id: Mapped[uuid.UUID] = _uuid_pk()
    name: Mapped[str] = mapped_column(Text, nullable=False)
    account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("crm.accounts.id"), nullable=True
    )
    contact_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("crm.contacts.id"), nullable=True
    )
    assigned_user_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    sales_stage: Mapped[str] = mapped_column(
        Text, nullable=False, server_default="Prospecting"
    )
    probability: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    date_closed: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    next_step: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    opportunity_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    lead_source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    date_entered: Mapped[datetime] = _created()
    date_modified: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    contact: Mapped[Optional["Contact"]] = relationship(
        "Contact", back_populates="opportunities"
    )

    @property
    def weighted_amount(self) -> float:
        """amount × probability / 100, treating missing values as 0."""
        return float(self.amount or 0) * (self.probability or 0) / 100


class SupportCase(Base):
    """crm.cases: customer support cases."""

    __tablename__ = "cases"
    __table_args__ = (
        CheckConstraint(check_in("status", CASE_STATUSES), name="ck_case_status"),
        CheckConstraint(check_in("priority", CASE_PRIORITIES), name="ck_case_priority"),
        CheckConstraint(check_in("state", CASE_STATES), name="ck_case_state"),
        {"schema": "crm"},
    )

    id: Mapped[uuid.UUID] = _uuid_pk()
    name: Mapped[str] = mapped_column(Text, nullable=False)
    contact_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("crm.contacts.id"),
        nullable=True,
        index=True,
    )
    account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("crm.accounts.id"), nullable=True
    )
    assigned_user_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[Optional[str]] = mapped_column(Text, nullable=True, server_default="New")
    state: Mapped[Optional[str]] = mapped_column(Text, nullable=True, server_default="Open")
    priority: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolution: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sentiment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    date_entered: Mapped[datetime] = _created()
    date_modified: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    contact: Mapped[Optional["Contact"]] = relationship("Contact", back_populates="cases")


class ActivityTrackingSession(Base):
    """crm.activity_tracking_sessions: website visits, optionally tied to a contact."""

    __tablename__ = "activity_tracking_sessions"
    __table_args__ = {"schema": "crm"}

    id: Mapped[uuid.UUID] = _uuid_pk()
    visitor_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    contact_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("crm.contacts.id"),
        nullable=True,
        index=True,
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    page_views: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    referrer_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    utm_source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    utm_campaign: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    contact: Mapped[Optional["Contact"]] = relationship("Contact", back_populates="sessions")


class HealthScore(Base):
    """crm.health_scores: immutable customer health snapshots.

    Rows are only ever inserted. The newest row per contact (by calculated_at)
    is the current score.
    """

    __tablename__ = "health_scores"
    __table_args__ = (
        CheckConstraint("score >= 0 AND score <= 1", name="ck_health_score_range"),
        CheckConstraint(check_in("trend", HEALTH_TRENDS, nullable=False), name="ck_health_trend"),
        CheckConstraint(
            check_in("risk_level", RISK_LEVELS, nullable=False), name="ck_health_risk_level"
        ),
        Index("ix_health_scores_contact_calculated", "contact_id", "calculated_at"),
        {"schema": "crm"},
    )

    id: Mapped[uuid.UUID] = _uuid_pk()
    contact_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("crm.contacts.id"), nullable=False
    )
    account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("crm.accounts.id"), nullable=True
    )
    score: Mapped[float] = mapped_column(Float, nullable=False)
    factors: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    trend: Mapped[str] = mapped_column(Text, nullable=False)
    risk_level: Mapped[str] = mapped_column(Text, nullable=False)
    calculated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    contact: Mapped["Contact"] = relationship("Contact", back_populates="health_scores")


class Task(Base):
    """crm.tasks: to-dos attached to any parent record."""

    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint(check_in("status", TASK_STATUSES), name="ck_task_status"),
        CheckConstraint(check_in("priority", TASK_PRIORITIES), name="ck_task_priority"),
        Index("ix_tasks_parent", "parent_type", "parent_id"),
        {"schema": "crm"},
    )

    id: Mapped[uuid.UUID] = _uuid_pk()
    name: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    priority: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    date_start: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    date_due: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    parent_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    assigned_user_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    date_entered: Mapped[datetime] = _created()


class Note(Base):
    """crm.notes: free-text notes, including opportunity stage-change history."""

    __tablename__ = "notes"
    __table_args__ = (
        Index("ix_notes_parent", "parent_type", "parent_id"),
        {"schema": "crm"},
    )

    id: Mapped[uuid.UUID] = _uuid_pk()
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    parent_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Loose UUID reference: parent may live in any table
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    assigned_user_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    filename: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_mime_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    portal_flag: Mapped[bool] = mapped_column(Boolean, server_default="false", nullable=False)
    date_entered: Mapped[datetime] = _created()


def column_values(model: type[Base], data: dict) -> dict:
    """Keep only the keys of `data` that are columns of `model`."""
    columns = model.__table__.columns.keys()
    return {k: v for k, v in data.items() if k in columns}
