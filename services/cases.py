"""Support cases: creation with sentiment tagging, resolution metrics and triage.

Priorities come in two spellings (P1/P2/P3 and High/Medium/Low); both fold into
the high, medium and low tiers that carry the resolution SLA targets.
"""
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from schemas.enums import RESOLVED_CASE_STATUS
from schemas.opportunity import CaseDTO
from schemas.results import CaseAttentionItem, CaseMetrics, CaseRef
from services.analytics import safe_percentage
from services.ports import CaseQueries
from tools.sentiment_tools import analyze_sentiment

logger = logging.getLogger(__name__)

# Resolution target in hours per priority tier
SLA_HOURS = {"high": 24, "medium": 48, "low": 72}

PRIORITY_TIERS = {
    "P1": "high",
    "High": "high",
    "P2": "medium",
    "Medium": "medium",
    "P3": "low",
    "Low": "low",
}

HIGH_PRIORITY_MAX_OPEN = timedelta(days=1)
MAX_OPEN = timedelta(days=3)
MAX_IDLE = timedelta(days=2)

UNSET = "Unspecified"


async def create_case(
    queries: CaseQueries,
    dto: CaseDTO,
    analyze: Optional[Callable[[str], dict]] = None,
) -> CaseRef:
    """Persist a case, tagging it with the description's sentiment when available."""
    analyze = analyze or analyze_sentiment
    record = dto.to_record()
    if dto.description:
        result = analyze(dto.description)
        if result.get("sentiment"):
            record["sentiment"] = result["sentiment"]
        elif "error" in result:
            logger.info("Case '%s' saved without sentiment: %s", dto.name, result["error"])
    case = await queries.create(record)
    logger.info("Created case %s (%s)", case.id, case.priority or "no priority")
    return case


def priority_tier(priority: Optional[str]) -> Optional[str]:
    return PRIORITY_TIERS.get(priority or "")


def is_resolved(case: CaseRef) -> bool:
    return (case.status or "").lower() == RESOLVED_CASE_STATUS.lower()


def resolution_hours(case: CaseRef) -> Optional[int]:
    """Whole hours between creation and last modification."""
    if case.date_entered is None or case.date_modified is None:
        return None
    return int(abs((case.date_modified - case.date_entered).total_seconds()) // 3600)


def sla_compliance(resolved: Iterable[CaseRef]) -> dict[str, Optional[float]]:
    """Percent of resolved cases closed within their tier's target."""
    by_tier: dict[str, list[int]] = {tier: [] for tier in SLA_HOURS}
    for case in resolved:
        tier = priority_tier(case.priority)
        hours = resolution_hours(case)
        if tier and hours is not None:
            by_tier[tier].append(hours)

    compliance = {}
    for tier, target in SLA_HOURS.items():
        hours = by_tier[tier]
        if not hours:
            compliance[tier] = None
            continue
        within = sum(1 for h in hours if h <= target)
        compliance[tier] = safe_percentage(within, len(hours))
    return compliance


def case_metrics(cases: Iterable[CaseRef]) -> CaseMetrics:
    cases = list(cases)
    resolved = [c for c in cases if is_resolved(c)]
    hours = [h for h in (resolution_hours(c) for c in resolved) if h is not None]
    return CaseMetrics(
        total_cases=len(cases),
        open_cases=len(cases) - len(resolved),
        resolved_cases=len(resolved),
        resolution_rate=safe_percentage(len(resolved), len(cases)),
        average_resolution_time=round(sum(hours) / len(hours), 1) if hours else None,
        by_priority=dict(Counter(c.priority or UNSET for c in cases)),
        by_type=dict(Counter(c.type or UNSET for c in cases)),
        sla_compliance=sla_compliance(resolved),
    )


async def get_case_metrics(
    queries: CaseQueries,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> CaseMetrics:
    """Volume, resolution and SLA figures for cases entered in [start, end]."""
    return case_metrics(await queries.list_entered_between(start, end))


def attention_reason(
    case: CaseRef, last_activity: Optional[datetime], now: datetime
) -> Optional[str]:
    """First rule an open case breaks, or None.

    Without a note or task on the case, its last modification counts as the
    last activity.
    """
    opened = case.date_entered
    if opened is not None:
        if priority_tier(case.priority) == "high" and opened < now - HIGH_PRIORITY_MAX_OPEN:
            return "High priority case open > 24 hours"
        if opened < now - MAX_OPEN:
            return "Case open > 3 days"
    touched = last_activity or case.date_modified
    if touched is not None and touched < now - MAX_IDLE:
        return "No activity in 48 hours"
    return None


async def get_cases_requiring_attention(
    queries: CaseQueries, now: datetime, assigned_user_id: Optional[str] = None
) -> list[CaseAttentionItem]:
    """Open cases that are aging or idle, with the reason for each."""
    cases = await queries.list_open(assigned_user_id)
    activity = await queries.last_activity_dates([c.id for c in cases])
    items = []
    for case in cases:
        reason = attention_reason(case, activity.get(case.id), now)
        if reason:
            items.append(CaseAttentionItem(case=case, reason=reason))
    logger.debug("%d of %d open cases need attention", len(items), len(cases))
    return items
