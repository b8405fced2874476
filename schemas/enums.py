"""Allowed values for enumerated CRM fields.

Shared by the DTO validators and the CHECK constraints in db.models.
"""
from typing import Literal

SALES_STAGES = (
    "Prospecting",
    "Qualification",
    "Needs Analysis",
    "Value Proposition",
    "Id. Decision Makers",
    "Perception Analysis",
    "Proposal/Price Quote",
    "Negotiation/Review",
    "Closed Won",
    "Closed Lost",
)
CLOSED_STAGES = ("Closed Won", "Closed Lost")

LEAD_STATUSES = (
    "New", "Assigned", "Contacted", "In Process", "Qualified",
    "Converted", "Recycled", "Dead",
)
QUALIFIED_LEAD_STATUS = "Qualified"
CONVERTED_LEAD_STATUS = "Converted"
RESOLVED_CASE_STATUS = "Closed"

CASE_STATUSES = ("New", "Assigned", "Closed", "Pending Input", "Rejected", "Duplicate")
CASE_PRIORITIES = ("P1", "P2", "P3", "High", "Medium", "Low")
CASE_TYPES = ("Administration", "Bug", "Feature Request", "Question", "Other")
CASE_STATES = ("Open", "Closed")

TASK_STATUSES = ("Not Started", "In Progress", "Completed", "Pending Input", "Deferred")
TASK_PRIORITIES = ("High", "Medium", "Low")

CALL_STATUSES = ("Planned", "Held", "Not Held")
CALL_DIRECTIONS = ("Inbound", "Outbound")
MEETING_TYPES = ("Meeting", "WebEx", "Other", "Zoom", "Teams", "Google Meet")
REMOTE_TYPES = ("Zoom", "Teams", "WebEx", "Google Meet", "Other")
REPEAT_TYPES = ("Daily", "Weekly", "Monthly", "Yearly")

ACTIVITY_PARENT_TYPES = ("Contacts", "Leads", "Opportunities", "Cases", "Tasks")
TASK_PARENT_TYPES = ("Contacts", "Leads", "Opportunities", "Cases", "Accounts")
NOTE_PARENT_TYPES = (
    "Contacts", "Leads", "Opportunities", "Cases", "Tasks",
    "Quotes", "Emails", "Calls", "Meetings",
)
NOTE_TYPES = ("general", "attachment", "email_attachment")

EMAIL_TYPES = ("out", "archived", "draft", "inbound", "campaign")
EMAIL_STATUSES = ("archived", "closed", "draft", "read", "replied", "sent", "unread", "bounced")

QUOTE_STAGES = (
    "Draft", "Negotiation", "Delivered", "On Hold", "Confirmed",
    "Closed Accepted", "Closed Lost", "Closed Dead",
)
QUOTE_APPROVAL_STATUSES = ("Not Approved", "Approved", "Rejected")
QUOTE_INVOICE_STATUSES = ("Not Invoiced", "Invoiced", "Paid")

ACTIVITY_TYPES = ("task", "email", "call", "meeting", "note")
ACTIVITY_MODULES = ("Tasks", "Emails", "Calls", "Meetings", "Notes")

SUBSCRIPTION_STATUSES = ("trial", "active", "cancelled", "expired")
CONTACT_METHODS = ("email", "phone", "chat")

HealthTrend = Literal["improving", "declining", "stable"]
RiskLevel = Literal["low", "medium", "high"]
HEALTH_TRENDS = ("improving", "declining", "stable")
RISK_LEVELS = ("low", "medium", "high")


def check_in(column: str, values: tuple, nullable: bool = True) -> str:
    """Build a SQL CHECK expression restricting `column` to `values`."""
    quoted = ", ".join("'" + v.replace("'", "''") + "'" for v in values)
    expr = f"{column} IN ({quoted})"
    if nullable:
        return f"{column} IS NULL OR {expr}"
    return expr
