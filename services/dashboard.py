"""Per-user dashboard over the records assigned to one user.

Counts come from the AggregateQueries primitives filtered on
assigned_user_id; the pipeline section reuses the stage grouping of the
opportunity service.
"""
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone

from dateutil.relativedelta import relativedelta

from schemas.enums import CASE_STATUSES, RESOLVED_CASE_STATUS
from schemas.results import OpportunityRef
from services import stages
from services.analytics import WON, month_bounds, win_rate
from services.ports import AggregateQueries, HealthQueries, OpportunityQueries

logger = logging.getLogger(__name__)

# lower bound for "all time" counts over a date column
ALL_TIME = datetime(1970, 1, 1, tzinfo=timezone.utc)

OPEN_CASE_STATUSES = [s for s in CASE_STATUSES if s != RESOLVED_CASE_STATUS]
OVERDUE_CASE_AGE = timedelta(days=3)
AT_RISK_WINDOW = timedelta(days=7)

SUBSCRIPTION_TYPE = "subscription"
REVENUE_HISTORY_MONTHS = 12


def week_start(now: datetime) -> datetime:
    """Midnight of the Monday of `now`'s week."""
    day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return day - timedelta(days=day.weekday())


def month_end(now: datetime) -> datetime:
    this_month, _ = month_bounds(now)
    return this_month + relativedelta(months=1) - timedelta(microseconds=1)


def _closes_within(opp: OpportunityRef, start: datetime, end: datetime) -> bool:
    closed_on = opp.date_closed
    if closed_on is None:
        return False
    if isinstance(closed_on, datetime):
        closed_on = closed_on.date()
    return start.date() <= closed_on <= end.date()


def revenue_by_month(rows) -> list[dict]:
    """Group (close date, amount) rows into YYYY-MM buckets, oldest first."""
    revenue: dict[str, float] = defaultdict(float)
    count: dict[str, int] = defaultdict(int)
    for moment, amount in rows:
        key = moment.strftime("%Y-%m")
        revenue[key] += amount or 0
        count[key] += 1
    return [
        {"month": key, "revenue": revenue[key], "count": count[key]}
        for key in sorted(revenue)
    ]


async def get_user_stats(
    q: AggregateQueries,
    health_queries: HealthQueries,
    open_opportunities: list[OpportunityRef],
    user_id: str,
    now: datetime,
) -> dict:
    mine = {"assigned_user_id": user_id}
    this_month, _ = month_bounds(now)
    open_cases = {**mine, "status": OPEN_CASE_STATUSES}

    at_risk = await health_queries.latest_scores_by_risk("high", user_id)
    recent_risk = [c for c, score in at_risk if score.calculated_at >= now - AT_RISK_WINDOW]

    return {
        "leads": {
            "total": await q.count("leads", "date_entered", ALL_TIME, now, where=mine),
            "new_this_week": await q.count(
                "leads", "date_entered", week_start(now), now, where=mine
            ),
        },
        "opportunities": {
            "open": len(open_opportunities),
            "value": sum(o.amount for o in open_opportunities),
            "closing_this_month": sum(
                1 for o in open_opportunities if _closes_within(o, this_month, month_end(now))
            ),
        },
        "contacts": {
            "total": await q.count("contacts", "date_entered", ALL_TIME, now, where=mine),
            "at_risk": len(recent_risk),
        },
        "cases": {
            "open": await q.count("cases", "date_entered", ALL_TIME, now, where=open_cases),
            "overdue": await q.count(
                "cases", "date_entered", ALL_TIME, now - OVERDUE_CASE_AGE, where=open_cases
            ),
        },
    }


def pipeline_summary(open_opportunities: list[OpportunityRef]) -> dict:
    """Totals and non-empty stages of one user's open pipeline."""
    pipeline = stages.group_pipeline(open_opportunities)
    return {
        "total_value": pipeline.summary.total_value,
        "weighted_value": pipeline.summary.weighted_value,
        "count": pipeline.summary.total_opportunities,
        "by_stage": [
            {"stage": s.stage, "count": s.count, "value": s.total_value}
            for s in pipeline.stages
            if s.count
        ],
    }


async def get_user_performance(q: AggregateQueries, user_id: str, now: datetime) -> dict:
    """Closed-won results for the current calendar month."""
    start, end = month_bounds(now)[0], month_end(now)
    won = {"assigned_user_id": user_id, **WON}
    return {
        "opportunities_won": await q.count("opportunities", "date_closed", start, end, where=won),
        "revenue_closed": await q.sum(
            "opportunities", "amount", "date_closed", start, end, where=won
        ),
        "avg_deal_size": await q.avg(
            "opportunities", "amount", "date_closed", start, end, where=won
        ) or 0,
        "win_rate": await win_rate(q, start, end, where={"assigned_user_id": user_id}),
    }


async def get_recurring_revenue(q: AggregateQueries, user_id: str, now: datetime) -> dict:
    """MRR from subscriptions won this month; ARR is MRR × 12."""
    won = {"assigned_user_id": user_id, **WON}
    this_month, _ = month_bounds(now)
    mrr = await q.sum(
        "opportunities", "amount", "date_closed", this_month, month_end(now),
        where={**won, "opportunity_type": SUBSCRIPTION_TYPE},
    )
    history = await q.series(
        "opportunities", "date_closed",
        now - relativedelta(months=REVENUE_HISTORY_MONTHS), now,
        value="amount", where=won,
    )
    return {
        "mrr": mrr,
        "arr": mrr * 12,
        "revenue_by_month": revenue_by_month(history),
    }


async def get_user_dashboard(
    aggregates: AggregateQueries,
    opportunities: OpportunityQueries,
    health_queries: HealthQueries,
    user_id: str,
    now: datetime,
) -> dict:
    """Every dashboard section for the records assigned to one user."""
    logger.debug("Building dashboard for user %s", user_id)
    open_opportunities = await opportunities.list_open(user_id)
    return {
        "user_id": user_id,
        "stats": await get_user_stats(
            aggregates, health_queries, open_opportunities, user_id, now
        ),
        "pipeline": pipeline_summary(open_opportunities),
        "performance": await get_user_performance(aggregates, user_id, now),
        "revenue": await get_recurring_revenue(aggregates, user_id, now),
    }
