"""Structured results returned by the scoring, pipeline and analytics services."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.enums import HealthTrend, RiskLevel


# ---------------------------------------------------------------------------
# Health scoring
# ---------------------------------------------------------------------------


class ContactRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    account_id: Optional[UUID] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone_work: Optional[str] = None
    assigned_user_id: Optional[str] = None


class CaseCounts(BaseModel):
    total: int = Field(ge=0)
    resolved: int = Field(ge=0)


class HealthInputs(BaseModel):
    """Raw aggregates the health score is computed from."""
    recent_sessions_30d: int = Field(ge=0)
    total_cases_3mo: int = Field(ge=0)
    resolved_cases_3mo: int = Field(ge=0)
    had_session_last_7d: bool
    account_has_multiple_contacts: bool


class FactorScore(BaseModel):
    score: float
    detail: Dict[str, Any] = Field(default_factory=dict)


class HealthFactors(BaseModel):
    activity: FactorScore
    support: FactorScore
    usage: FactorScore
    relationship: FactorScore

    @property
    def total(self) -> float:
        return (
            self.activity.score
            + self.support.score
            + self.usage.score
            + self.relationship.score
        )


class HealthScoreResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[UUID] = None
    contact_id: UUID
    account_id: Optional[UUID] = None
    score: float = Field(ge=0, le=1)
    factors: Dict[str, Any]
    trend: HealthTrend
    risk_level: RiskLevel
    calculated_at: datetime


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class OpportunityRef(BaseModel):
    """The opportunity fields the stage engine and forecasts read."""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[UUID] = None
    name: Optional[str] = None
    sales_stage: str
    amount: float = 0
    probability: int = 0
    date_closed: Optional[Any] = None
    date_entered: Optional[datetime] = None
    lead_source: Optional[str] = None
    opportunity_type: Optional[str] = None
    assigned_user_id: Optional[str] = None

    @field_validator("amount", "probability", mode="before")
    @classmethod
    def _null_as_zero(cls, value):
        return 0 if value is None else value

    @property
    def weighted_amount(self) -> float:
        return self.amount * self.probability / 100


class PipelineStageSummary(BaseModel):
    stage: str
    order: int
    count: int
    total_value: float
    weighted_value: float
    opportunities: List[OpportunityRef] = Field(default_factory=list)


class PipelineSummary(BaseModel):
    total_opportunities: int
    total_value: float
    weighted_value: float
    average_deal_size: float
    average_probability: float


class PipelineResult(BaseModel):
    stages: List[PipelineStageSummary]
    summary: PipelineSummary


class CaseRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[UUID] = None
    name: str
    status: Optional[str] = None
    state: Optional[str] = None
    priority: Optional[str] = None
    type: Optional[str] = None
    sentiment: Optional[str] = None
    contact_id: Optional[UUID] = None
    account_id: Optional[UUID] = None
    assigned_user_id: Optional[str] = None
    date_entered: Optional[datetime] = None
    date_modified: Optional[datetime] = None


class AttentionItem(BaseModel):
    opportunity: OpportunityRef
    reason: str


class CaseAttentionItem(BaseModel):
    case: CaseRef
    reason: str


class CaseMetrics(BaseModel):
    total_cases: int
    open_cases: int
    resolved_cases: int
    resolution_rate: float
    # whole hours from creation to last modification, resolved cases only
    average_resolution_time: Optional[float] = None
    by_priority: Dict[str, int]
    by_type: Dict[str, int]
    # percent of resolved cases within target, per priority tier; None when the tier has none
    sla_compliance: Dict[str, Optional[float]]


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


class FunnelStage(BaseModel):
    stage: str
    count: int
    percentage: float


class FunnelResult(BaseModel):
    stages: List[FunnelStage]
    conversion_rates: Dict[str, float]


class TrendPoint(BaseModel):
    period: str
    value: float


class RevenueForecast(BaseModel):
    current_month: float
    projected_month: float
    last_month: float
    growth_rate: float


class LeadForecast(BaseModel):
    projected_this_month: int
    average_per_day: float
