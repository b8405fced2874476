"""Lead and contact DTOs."""
from typing import Annotated, List, Optional
from uuid import UUID

from pydantic import EmailStr, Field

from schemas.enums import (
    CONTACT_METHODS,
    LEAD_STATUSES,
    RISK_LEVELS,
    SUBSCRIPTION_STATUSES,
)
from schemas.validation import (
    NonNegative,
    Percent,
    Phone,
    RecordModel,
    Required,
    Website,
    choice,
)


class LeadDTO(RecordModel):
    last_name: Required
    first_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone_mobile: Phone = None
    phone_work: Optional[str] = None
    title: Optional[str] = None
    department: Optional[str] = None
    status: Annotated[Optional[str], choice(LEAD_STATUSES, "Invalid lead status")] = None
    status_description: Optional[str] = None
    lead_source: Optional[str] = None
    description: Optional[str] = None
    account_name: Optional[str] = None
    website: Website = None
    assigned_user_id: Optional[str] = None
    lead_score: Percent = None


class ContactDTO(RecordModel):
    last_name: Required
    first_name: Optional[str] = None
    salutation: Optional[str] = None
    email: Optional[EmailStr] = None
    phone_mobile: Phone = None
    phone_work: Optional[str] = None
    title: Optional[str] = None
    department: Optional[str] = None
    description: Optional[str] = None
    account_id: Optional[UUID] = None
    lead_source: Optional[str] = None
    assigned_user_id: Optional[str] = None
    lifetime_value: NonNegative = None
    engagement_score: Percent = None
    subscription_status: Annotated[
        Optional[str], choice(SUBSCRIPTION_STATUSES, "Invalid subscription status")
    ] = None
    churn_risk: Annotated[Optional[str], choice(RISK_LEVELS, "Invalid churn risk level")] = None
    preferred_contact_method: Annotated[
        Optional[str], choice(CONTACT_METHODS, "Invalid contact method")
    ] = None
    product_interests: List[str] = Field(default_factory=list)
