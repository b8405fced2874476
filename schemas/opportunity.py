"""Opportunity, case and quote DTOs."""
from datetime import date, datetime
from typing import Annotated, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from schemas.enums import (
    CASE_PRIORITIES,
    CASE_STATES,
    CASE_STATUSES,
    CASE_TYPES,
    QUOTE_APPROVAL_STATUSES,
    QUOTE_INVOICE_STATUSES,
    QUOTE_STAGES,
    SALES_STAGES,
)
from schemas.validation import NonNegative, Percent, RecordModel, Required, choice


class OpportunityDTO(RecordModel):
    name: Required
    amount: NonNegative = None
    sales_stage: Annotated[Optional[str], choice(SALES_STAGES, "Invalid sales stage")] = None
    # When omitted, the stage's default probability applies
    probability: Percent = None
    date_closed: Optional[date] = None
    next_step: Optional[str] = None
    opportunity_type: Optional[str] = None
    lead_source: Optional[str] = None
    description: Optional[str] = None
    account_id: Optional[UUID] = None
    contact_id: Optional[UUID] = None
    assigned_user_id: Optional[str] = None


class CaseDTO(RecordModel):
    name: Required
    status: Annotated[Optional[str], choice(CASE_STATUSES, "Invalid case status")] = None
    priority: Annotated[Optional[str], choice(CASE_PRIORITIES, "Invalid case priority")] = None
    type: Annotated[Optional[str], choice(CASE_TYPES, "Invalid case type")] = None
    state: Annotated[Optional[str], choice(CASE_STATES, "Invalid case state")] = None
    resolution: Optional[str] = Field(default=None, validate_default=True)
    description: Optional[str] = None
    account_id: Optional[UUID] = None
    contact_id: Optional[UUID] = None
    assigned_user_id: Optional[str] = None
    customer_satisfaction: Optional[int] = Field(default=None, ge=1, le=5)

    @field_validator("resolution")
    @classmethod
    def resolution_when_closed(cls, value, info: ValidationInfo):
        if info.data.get("state") == "Closed" and not value:
            raise ValueError("Resolution is required when closing a case")
        return value


class LineItem(BaseModel):
    name: Required
    quantity: Optional[float] = Field(default=None, gt=0)
    unit_price: Optional[float] = Field(default=None, ge=0)


class QuoteDTO(RecordModel):
    name: Required
    stage: Annotated[Optional[str], choice(QUOTE_STAGES, "Invalid quote stage")] = None
    approval_status: Annotated[
        Optional[str], choice(QUOTE_APPROVAL_STATUSES, "Invalid approval status")
    ] = None
    invoice_status: Annotated[
        Optional[str], choice(QUOTE_INVOICE_STATUSES, "Invalid invoice status")
    ] = None
    subtotal_amount: NonNegative = None
    discount_amount: NonNegative = None
    tax_amount: NonNegative = None
    shipping_amount: NonNegative = None
    total_amount: NonNegative = None
    opportunity_id: Optional[UUID] = None
    billing_account_id: Optional[UUID] = None
    billing_contact_id: Optional[UUID] = None
    line_items: List[LineItem] = Field(default_factory=list)
    expiry_date: Optional[datetime] = None
    terms_conditions: Optional[str] = None
    description: Optional[str] = None
    assigned_user_id: Optional[str] = None

    @property
    def line_total(self) -> float:
        return sum((i.quantity or 0) * (i.unit_price or 0) for i in self.line_items)
