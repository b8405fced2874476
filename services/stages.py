"""Opportunity sales-stage table and the calculations driven by it."""
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from config import HIGH_VALUE_THRESHOLD, STALLED_OPPORTUNITY_DAYS
from schemas.enums import CLOSED_STAGES, SALES_STAGES
from schemas.results import (
    AttentionItem,
    OpportunityRef,
    PipelineResult,
    PipelineStageSummary,
    PipelineSummary,
)
from services.analytics import safe_percentage

logger = logging.getLogger(__name__)

STAGE_PROBABILITIES = {
    "Prospecting": 10,
    "Qualification": 20,
    "Needs Analysis": 25,
    "Value Proposition": 30,
    "Id. Decision Makers": 40,
    "Perception Analysis": 50,
    "Proposal/Price Quote": 65,
    "Negotiation/Review": 80,
    "Closed Won": 100,
    "Closed Lost": 0,
}

STAGE_ORDER = {stage: order for order, stage in enumerate(SALES_STAGES, start=1)}

COMMITTED_PROBABILITY = 70


def default_probability(stage: str) -> Optional[int]:
    return STAGE_PROBABILITIES.get(stage)


def set_stage(record: dict, stage: str, probability: Optional[int] = None) -> dict:
    """Return a copy of `record` moved to `stage`.

    The probability becomes the stage default unless one is given explicitly.
    Unknown stages keep the record's existing probability.
    """
    if probability is None:
        probability = STAGE_PROBABILITIES.get(stage, record.get("probability"))
    return {**record, "sales_stage": stage, "probability": probability}


def next_stage(current: str) -> str:
    """Stage whose order is one past `current`; `current` itself when none."""
    order = STAGE_ORDER.get(current)
    if order is None:
        return current
    for stage, stage_order in STAGE_ORDER.items():
        if stage_order == order + 1:
            return stage
    return current


def is_closed(stage: str) -> bool:
    return stage in CLOSED_STAGES


def _avg(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def group_pipeline(opportunities: Iterable[OpportunityRef]) -> PipelineResult:
    """Partition open opportunities by stage, in stage order."""
    open_opps = [o for o in opportunities if not is_closed(o.sales_stage)]

    by_stage: dict[str, list[OpportunityRef]] = defaultdict(list)
    for opp in open_opps:
        by_stage[opp.sales_stage].append(opp)

    stages = []
    for stage, order in STAGE_ORDER.items():
        if is_closed(stage):
            continue
        stage_opps = by_stage.get(stage, [])
        stages.append(PipelineStageSummary(
            stage=stage,
            order=order,
            count=len(stage_opps),
            total_value=sum(o.amount for o in stage_opps),
            weighted_value=sum(o.weighted_amount for o in stage_opps),
            opportunities=stage_opps,
        ))

    summary = PipelineSummary(
        total_opportunities=len(open_opps),
        total_value=sum(o.amount for o in open_opps),
        weighted_value=sum(o.weighted_amount for o in open_opps),
        average_deal_size=_avg([o.amount for o in open_opps]),
        average_probability=_avg([o.probability for o in open_opps]),
    )
    return PipelineResult(stages=stages, summary=summary)


def period_end(now: datetime, period: str) -> date:
    """Last day of the current month, quarter or year."""
    today = now.date()
    if period == "month":
        return today.replace(day=1) + relativedelta(months=1, days=-1)
    if period == "year":
        return today.replace(month=12, day=31)
    quarter_start_month = 3 * ((today.month - 1) // 3) + 1
    quarter_start = today.replace(month=quarter_start_month, day=1)
    return quarter_start + relativedelta(months=3, days=-1)


def forecast_by_period(
    opportunities: Iterable[OpportunityRef], now: datetime, period: str
) -> dict:
    """Revenue forecast over opportunities closing in the period (Closed Lost excluded)."""
    opps = [o for o in opportunities if o.sales_stage != "Closed Lost"]

    by_month: dict[str, dict] = {}
    for opp in sorted(opps, key=lambda o: str(o.date_closed)):
        if opp.date_closed is None:
            continue
        key = opp.date_closed.strftime("%Y-%m")
        bucket = by_month.setdefault(key, {"count": 0, "amount": 0.0, "weighted": 0.0})
        bucket["count"] += 1
        bucket["amount"] += opp.amount
        bucket["weighted"] += opp.weighted_amount

    by_user: dict[Optional[str], dict] = {}
    for opp in opps:
        bucket = by_user.setdefault(
            opp.assigned_user_id,
            {"user": opp.assigned_user_id or "Unassigned", "count": 0, "amount": 0.0, "weighted": 0.0},
        )
        bucket["count"] += 1
        bucket["amount"] += opp.amount
        bucket["weighted"] += opp.weighted_amount

    return {
        "period": period,
        "start_date": now.date(),
        "end_date": period_end(now, period),
        "committed": sum(o.amount for o in opps if o.probability >= COMMITTED_PROBABILITY),
        "best_case": sum(o.amount for o in opps),
        "weighted": sum(o.weighted_amount for o in opps),
        "closed_won": sum(o.amount for o in opps if o.sales_stage == "Closed Won"),
        "pipeline_count": len(opps),
        "by_month": by_month,
        "by_user": list(by_user.values()),
    }


def _days_to_close(opp: OpportunityRef) -> Optional[int]:
    if opp.date_entered is None or opp.date_closed is None:
        return None
    closed = opp.date_closed
    if isinstance(closed, datetime):
        closed = closed.date()
    return (closed - opp.date_entered.date()).days


def _breakdown(opps: list[OpportunityRef], attr: str, label: str) -> list[dict]:
    groups: dict[Optional[str], list[OpportunityRef]] = defaultdict(list)
    for opp in opps:
        groups[getattr(opp, attr)].append(opp)
    rows = []
    for key, group in groups.items():
        won = [o for o in group if o.sales_stage == "Closed Won"]
        rows.append({
            label: key or "Unknown",
            "total": len(group),
            "won": len(won),
            "win_rate": safe_percentage(len(won), len(group)),
            "revenue": sum(o.amount for o in won),
        })
    return rows


def win_loss(opportunities: Iterable[OpportunityRef]) -> dict:
    """Won vs lost breakdown over closed opportunities."""
    closed = [o for o in opportunities if is_closed(o.sales_stage)]
    won = [o for o in closed if o.sales_stage == "Closed Won"]
    lost = [o for o in closed if o.sales_stage == "Closed Lost"]
    cycle = [d for d in (_days_to_close(o) for o in won) if d is not None]

    return {
        "total_closed": len(closed),
        "won": {
            "count": len(won),
            "value": sum(o.amount for o in won),
            "average_size": _avg([o.amount for o in won]),
            "average_days_to_close": _avg(cycle),
        },
        "lost": {
            "count": len(lost),
            "value": sum(o.amount for o in lost),
        },
        "win_rate": safe_percentage(len(won), len(closed)),
        "by_source": _breakdown(closed, "lead_source", "source"),
        "by_product": _breakdown(closed, "opportunity_type", "product"),
    }


def requiring_attention(
    opportunities: Iterable[OpportunityRef],
    last_activity: dict,
    now: datetime,
) -> list[AttentionItem]:
    """Open opportunities that are overdue, stalled, or high value at risk.

    Only the first matching reason is reported for each opportunity.
    """
    stalled_before = now - timedelta(days=STALLED_OPPORTUNITY_DAYS)
    items = []
    for opp in opportunities:
        if is_closed(opp.sales_stage):
            continue
        closed_on = opp.date_closed
        if isinstance(closed_on, datetime):
            closed_on = closed_on.date()

        reason = None
        if closed_on is not None and closed_on < now.date():
            reason = "Overdue close date"
        else:
            activity = last_activity.get(opp.id)
            if activity is None or activity < stalled_before:
                reason = f"No activity in {STALLED_OPPORTUNITY_DAYS}+ days"
            elif opp.amount > HIGH_VALUE_THRESHOLD and opp.probability < 50:
                reason = "High value at risk"

        if reason:
            items.append(AttentionItem(opportunity=opp, reason=reason))
    return items
