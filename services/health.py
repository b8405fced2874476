"""Customer health scoring.

A contact's health is a weighted 0–1 score built from four factors:

  activity      30%  sessions in the last 30 days, saturating at 10
  support       30%  share of cases from the last 3 months that are closed
                     (a neutral 0.15 when there were no cases)
  usage         20%  any session in the last 7 days
  relationship  20%  the contact's account has more than one contact
                     (0.1 when it does not, or there is no account)

Every score is stored as a new snapshot; trend compares it with the
immediately preceding snapshot only.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from dateutil.relativedelta import relativedelta

from errors import NotFoundError
from schemas.results import (
    ContactRef,
    FactorScore,
    HealthFactors,
    HealthInputs,
    HealthScoreResult,
)
from services.ports import HealthQueries

logger = logging.getLogger(__name__)

ACTIVITY_WEIGHT = 0.3
SUPPORT_WEIGHT = 0.3
USAGE_WEIGHT = 0.2
RELATIONSHIP_WEIGHT = 0.2

ACTIVITY_SATURATION = 10
NEUTRAL_SUPPORT_SCORE = 0.15
SINGLE_CONTACT_RELATIONSHIP_SCORE = 0.1

TREND_BAND = 0.1
HIGH_RISK_BELOW = 0.3
MEDIUM_RISK_BELOW = 0.6

# Contact fields whose change triggers a recalculation
HEALTH_FIELDS = ("account_id", "email", "phone_work")

_STATUS_BANDS = (
    (0.8, "Excellent", "green"),
    (0.6, "Good", "blue"),
    (0.4, "Fair", "yellow"),
    (0.2, "At Risk", "orange"),
)


def compute_factors(inputs: HealthInputs) -> HealthFactors:
    """Weighted factor scores for one contact. Pure."""
    activity = min(inputs.recent_sessions_30d / ACTIVITY_SATURATION, 1) * ACTIVITY_WEIGHT

    if inputs.total_cases_3mo > 0:
        support = (inputs.resolved_cases_3mo / inputs.total_cases_3mo) * SUPPORT_WEIGHT
    else:
        support = NEUTRAL_SUPPORT_SCORE

    usage = USAGE_WEIGHT if inputs.had_session_last_7d else 0.0
    relationship = (
        RELATIONSHIP_WEIGHT
        if inputs.account_has_multiple_contacts
        else SINGLE_CONTACT_RELATIONSHIP_SCORE
    )

    return HealthFactors(
        activity=FactorScore(
            score=activity, detail={"count": inputs.recent_sessions_30d}
        ),
        support=FactorScore(
            score=support,
            detail={
                "resolved": inputs.resolved_cases_3mo,
                "total": inputs.total_cases_3mo,
            },
        ),
        usage=FactorScore(
            score=usage, detail={"last_login": inputs.had_session_last_7d}
        ),
        relationship=FactorScore(
            score=relationship,
            detail={"multiple_contacts": inputs.account_has_multiple_contacts},
        ),
    )


def combine(factors: HealthFactors) -> float:
    """Sum of the factor scores, rounded to 2 decimals and clamped to [0, 1]."""
    return min(max(round(factors.total, 2), 0.0), 1.0)


def classify_trend(score: float, previous: Optional[float]) -> str:
    """improving / declining / stable relative to the previous score."""
    if previous is None:
        return "stable"
    delta = round(score - previous, 2)
    if delta > TREND_BAND:
        return "improving"
    if delta < -TREND_BAND:
        return "declining"
    return "stable"


def classify_risk(score: float) -> str:
    if score < HIGH_RISK_BELOW:
        return "high"
    if score < MEDIUM_RISK_BELOW:
        return "medium"
    return "low"


def health_status(score: float) -> str:
    for floor, label, _ in _STATUS_BANDS:
        if score >= floor:
            return label
    return "Critical"


def health_color(score: float) -> str:
    for floor, _, color in _STATUS_BANDS:
        if score >= floor:
            return color
    return "red"


def build_snapshot(
    contact: ContactRef,
    inputs: HealthInputs,
    previous: Optional[HealthScoreResult],
    now: datetime,
) -> HealthScoreResult:
    """Assemble an unsaved HealthScore snapshot from aggregates. Pure."""
    factors = compute_factors(inputs)
    score = combine(factors)
    return HealthScoreResult(
        contact_id=contact.id,
        account_id=contact.account_id,
        score=score,
        factors=factors.model_dump(),
        trend=classify_trend(score, previous.score if previous else None),
        risk_level=classify_risk(score),
        calculated_at=now,
    )


async def gather_inputs(
    queries: HealthQueries, contact: ContactRef, now: datetime
) -> HealthInputs:
    """Read the four aggregates the score depends on."""
    sessions_30d = await queries.count_sessions_since(contact.id, now - timedelta(days=30))
    sessions_7d = await queries.count_sessions_since(contact.id, now - timedelta(days=7))
    cases = await queries.count_cases_since(contact.id, now - relativedelta(months=3))
    multiple = await queries.has_account_multiple_contacts(contact.account_id)
    return HealthInputs(
        recent_sessions_30d=sessions_30d,
        total_cases_3mo=cases.total,
        resolved_cases_3mo=cases.resolved,
        had_session_last_7d=sessions_7d > 0,
        account_has_multiple_contacts=multiple,
    )


async def calculate_health_score(
    queries: HealthQueries, contact_id: UUID, now: datetime
) -> HealthScoreResult:
    """Compute and persist a new health snapshot for a contact.

    The contact is locked first so concurrent recalculations for the same
    contact see each other's snapshot as the previous score.

    Raises:
        NotFoundError: the contact does not exist.
    """
    contact = await queries.lock_contact(contact_id)
    if contact is None:
        raise NotFoundError("Contact", contact_id)

    inputs = await gather_inputs(queries, contact, now)
    previous = await queries.latest_health_score(contact_id)
    snapshot = build_snapshot(contact, inputs, previous, now)
    saved = await queries.save_health_score(snapshot)
    logger.info(
        "Health score for contact %s: %.2f (%s, %s risk)",
        contact_id, saved.score, saved.trend, saved.risk_level,
    )
    return saved


def health_summary(latest: Optional[HealthScoreResult]) -> dict:
    """Display summary of a contact's latest score."""
    if latest is None:
        return {
            "score": None,
            "status": "Unknown",
            "trend": "stable",
            "risk_level": "unknown",
        }
    return {
        "score": latest.score,
        "status": health_status(latest.score),
        "color": health_color(latest.score),
        "trend": latest.trend,
        "risk_level": latest.risk_level,
        "factors": latest.factors,
        "last_calculated": latest.calculated_at,
    }


async def get_at_risk_contacts(
    queries: HealthQueries, assigned_user_id: Optional[str] = None
) -> list[dict]:
    """Contacts whose latest health score is high risk."""
    rows = await queries.latest_scores_by_risk("high", assigned_user_id)
    return [
        {"contact": contact.model_dump(), "health": health_summary(score)}
        for contact, score in rows
    ]
