"""Dashboard analytics: overview counts, funnel, trends and forecasts.

Every metric is derived from the count/sum/avg primitives of an
AggregateQueries port over an explicit [start, end] range. Ratios go through
safe_percentage so an empty denominator yields 0 rather than an exception.

Metrics that need data this system does not collect (satisfaction surveys,
first-response tracking, knowledge-base views, email tracking, form views)
come from an ExternalMetrics source. The default source reports None for all
of them.
"""
import calendar
import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional, Protocol

from dateutil.relativedelta import relativedelta

from schemas.enums import (
    CLOSED_STAGES,
    CONVERTED_LEAD_STATUS,
    QUALIFIED_LEAD_STATUS,
    RESOLVED_CASE_STATUS,
)
from schemas.results import (
    FunnelResult,
    FunnelStage,
    LeadForecast,
    RevenueForecast,
    TrendPoint,
)
from services.ports import AggregateQueries

logger = logging.getLogger(__name__)

DEFAULT_RANGE_DAYS = 30
DAILY_BUCKET_MAX_DAYS = 90
TOP_REFERRERS = 10

WON = {"sales_stage": "Closed Won"}


def safe_percentage(numerator: float, denominator: float, digits: int = 1) -> float:
    """numerator / denominator × 100, rounded; 0 when the denominator is 0."""
    if not denominator:
        return 0
    return round(numerator / denominator * 100, digits)


def resolve_range(
    now: datetime, start: Optional[datetime] = None, end: Optional[datetime] = None
) -> tuple[datetime, datetime]:
    """Fill in the default range: the 30 days ending at `now`."""
    return (
        start if start is not None else now - timedelta(days=DEFAULT_RANGE_DAYS),
        end if end is not None else now,
    )


# ---------------------------------------------------------------------------
# External data hooks
# ---------------------------------------------------------------------------


class ExternalMetrics(Protocol):
    def customer_satisfaction(self, start: datetime, end: datetime) -> Optional[float]: ...

    def first_response_time(self, start: datetime, end: datetime) -> Optional[float]: ...

    def kb_article_views(self, start: datetime, end: datetime) -> Optional[int]: ...

    def email_engagement(self, start: datetime, end: datetime) -> Optional[dict]: ...

    def form_conversion_rate(self, form_id: str) -> Optional[float]: ...


class UnavailableMetrics:
    """ExternalMetrics with no backing data source."""

    def customer_satisfaction(self, start, end):
        return None

    def first_response_time(self, start, end):
        return None

    def kb_article_views(self, start, end):
        return None

    def email_engagement(self, start, end):
        return None

    def form_conversion_rate(self, form_id):
        return None


# ---------------------------------------------------------------------------
# Pure calculations
# ---------------------------------------------------------------------------


def build_funnel(
    visitors: int, leads: int, qualified: int, opportunities: int, won: int
) -> FunnelResult:
    """Visitor → won funnel. Stage percentages are relative to visitors."""
    stages = [
        FunnelStage(stage="Visitors", count=visitors, percentage=100 if visitors else 0),
        FunnelStage(stage="Leads", count=leads, percentage=safe_percentage(leads, visitors)),
        FunnelStage(
            stage="Qualified", count=qualified, percentage=safe_percentage(qualified, visitors)
        ),
        FunnelStage(
            stage="Opportunities",
            count=opportunities,
            percentage=safe_percentage(opportunities, visitors),
        ),
        FunnelStage(stage="Won", count=won, percentage=safe_percentage(won, visitors)),
    ]
    return FunnelResult(
        stages=stages,
        conversion_rates={
            "visitor_to_lead": safe_percentage(leads, visitors),
            "lead_to_qualified": safe_percentage(qualified, leads),
            "qualified_to_opportunity": safe_percentage(opportunities, qualified),
            "opportunity_to_won": safe_percentage(won, opportunities),
            "overall": safe_percentage(won, visitors),
        },
    )


def bucket_interval(start: datetime, end: datetime) -> str:
    return "week" if (end - start).days > DAILY_BUCKET_MAX_DAYS else "day"


def bucket_key(moment, interval: str) -> str:
    """ISO date of the day, or of the Monday starting the ISO week."""
    day = moment.date() if isinstance(moment, datetime) else moment
    if interval == "week":
        day = day - timedelta(days=day.weekday())
    return day.isoformat()


def bucket_series(rows: Iterable[tuple], interval: str) -> list[TrendPoint]:
    """Sum (timestamp, value) rows per bucket, oldest bucket first."""
    totals: dict[str, float] = {}
    for moment, value in rows:
        if moment is None:
            continue
        key = bucket_key(moment, interval)
        totals[key] = totals.get(key, 0) + (value or 0)
    return [TrendPoint(period=k, value=totals[k]) for k in sorted(totals)]


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    """Start of the current month and start of the previous month."""
    this_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return this_month, this_month - relativedelta(months=1)


def project_revenue(current_month: float, last_month: float, now: datetime) -> RevenueForecast:
    """Straight-line run-rate projection of this month's revenue."""
    days_in_month = calendar.monthrange(now.year, now.month)[1]
    days_elapsed = now.day
    projected = current_month / days_elapsed * days_in_month if days_elapsed else 0
    return RevenueForecast(
        current_month=current_month,
        projected_month=round(projected, 2),
        last_month=last_month,
        growth_rate=safe_percentage(projected - last_month, last_month),
    )


def project_leads(leads_last_30_days: int, now: datetime) -> LeadForecast:
    days_in_month = calendar.monthrange(now.year, now.month)[1]
    per_day = leads_last_30_days / DEFAULT_RANGE_DAYS
    return LeadForecast(
        projected_this_month=round(per_day * (days_in_month - now.day)),
        average_per_day=round(per_day, 1),
    )


# ---------------------------------------------------------------------------
# Aggregations
# ---------------------------------------------------------------------------


async def get_overview(q: AggregateQueries, start: datetime, end: datetime) -> dict:
    return {
        "visitors": {
            "total": await q.count("sessions", "started_at", start, end),
            "unique": await q.count("sessions", "started_at", start, end, distinct="visitor_id"),
        },
        "leads": {
            "generated": await q.count("leads", "date_entered", start, end),
            "qualified": await q.count(
                "leads", "date_entered", start, end, where={"status": QUALIFIED_LEAD_STATUS}
            ),
            "converted": await q.count(
                "leads", "date_entered", start, end, where={"status": CONVERTED_LEAD_STATUS}
            ),
        },
        "opportunities": {
            "created": await q.count("opportunities", "date_entered", start, end),
            "won": await q.count("opportunities", "date_closed", start, end, where=WON),
            "value": await q.sum("opportunities", "amount", "date_closed", start, end, where=WON),
        },
        "support": {
            "cases_created": await q.count("cases", "date_entered", start, end),
            "cases_resolved": await q.count(
                "cases", "date_modified", start, end, where={"status": RESOLVED_CASE_STATUS}
            ),
        },
    }


async def get_funnel(q: AggregateQueries, start: datetime, end: datetime) -> FunnelResult:
    return build_funnel(
        visitors=await q.count("sessions", "started_at", start, end, distinct="visitor_id"),
        leads=await q.count("leads", "date_entered", start, end),
        qualified=await q.count(
            "leads", "date_entered", start, end, where={"status": QUALIFIED_LEAD_STATUS}
        ),
        opportunities=await q.count("opportunities", "date_entered", start, end),
        won=await q.count("opportunities", "date_closed", start, end, where=WON),
    )


async def get_sources(
    q: AggregateQueries, start: datetime, end: datetime, external=None
) -> dict:
    external = external or UnavailableMetrics()
    lead_sources = []
    for source, count in await q.group_count("leads", "lead_source", "date_entered", start, end):
        converted = await q.count(
            "leads", "date_entered", start, end,
            where={"lead_source": source, "status": CONVERTED_LEAD_STATUS},
        )
        lead_sources.append({
            "source": source or "Direct",
            "leads": count,
            "conversion_rate": safe_percentage(converted, count),
        })

    referrers = await q.group_count(
        "sessions", "referrer_url", "started_at", start, end,
        limit=TOP_REFERRERS, skip_null=True,
    )
    return {
        "lead_sources": lead_sources,
        "referrers": [{"referrer_url": url, "sessions": n} for url, n in referrers],
        "form_conversion_rate": external.form_conversion_rate("*"),
    }


async def win_rate(
    q: AggregateQueries, start: datetime, end: datetime, where: Optional[dict] = None
) -> float:
    """Won share of opportunities closed in the range, as a percentage."""
    where = where or {}
    closed = await q.count(
        "opportunities", "date_closed", start, end,
        where={**where, "sales_stage": list(CLOSED_STAGES)},
    )
    won = await q.count("opportunities", "date_closed", start, end, where={**where, **WON})
    return safe_percentage(won, closed)


async def average_sales_cycle(q: AggregateQueries, start: datetime, end: datetime) -> float:
    """Mean days from creation to close over opportunities won in the range."""
    seconds = await q.elapsed(
        "opportunities", "date_entered", "date_closed", "date_closed", start, end, where=WON
    )
    if not seconds:
        return 0
    return round(sum(seconds) / len(seconds) / 86400, 1)


async def get_performance(
    q: AggregateQueries, start: datetime, end: datetime, external=None
) -> dict:
    external = external or UnavailableMetrics()
    average_deal = await q.avg("opportunities", "amount", "date_closed", start, end, where=WON) or 0
    cycle = await average_sales_cycle(q, start, end)
    rate = await win_rate(q, start, end)
    created = await q.count("opportunities", "date_entered", start, end)
    velocity = round((created * average_deal * (rate / 100)) / (cycle or 1), 2)

    resolution = await q.elapsed(
        "cases", "date_entered", "date_modified", "date_modified", start, end,
        where={"status": RESOLVED_CASE_STATUS},
    )
    resolution_hours = round(sum(resolution) / len(resolution) / 3600, 1) if resolution else 0

    return {
        "sales": {
            "average_deal_size": average_deal,
            "sales_cycle_days": cycle,
            "win_rate": rate,
            "pipeline_velocity": velocity,
        },
        "support": {
            "average_resolution_time": resolution_hours,
            "first_response_time": external.first_response_time(start, end),
            "customer_satisfaction": external.customer_satisfaction(start, end),
        },
    }


async def get_engagement(
    q: AggregateQueries, start: datetime, end: datetime, external=None
) -> dict:
    external = external or UnavailableMetrics()
    total = await q.count("sessions", "started_at", start, end)
    bounced = await q.count("sessions", "started_at", start, end, where={"page_views": 1})
    return {
        "website": {
            "total_sessions": total,
            "average_duration": await q.avg("sessions", "duration", "started_at", start, end),
            "pages_per_session": await q.avg("sessions", "page_views", "started_at", start, end),
            "bounce_rate": safe_percentage(bounced, total),
        },
        "content": {
            "kb_article_views": external.kb_article_views(start, end),
            "email_engagement": external.email_engagement(start, end),
        },
    }


async def get_trends(q: AggregateQueries, start: datetime, end: datetime) -> dict:
    interval = bucket_interval(start, end)
    leads = await q.series("leads", "date_entered", start, end)
    opportunities = await q.series("opportunities", "date_entered", start, end)
    revenue = await q.series("opportunities", "date_closed", start, end, value="amount", where=WON)
    activity = await q.series("sessions", "started_at", start, end)
    return {
        "interval": interval,
        "leads": bucket_series(leads, interval),
        "opportunities": bucket_series(opportunities, interval),
        "revenue": bucket_series(revenue, interval),
        "activity": bucket_series(activity, interval),
    }


async def get_predictions(q: AggregateQueries, now: datetime) -> dict:
    this_month, last_month = month_bounds(now)
    current = await q.sum("opportunities", "amount", "date_closed", this_month, now, where=WON)
    previous = await q.sum(
        "opportunities", "amount", "date_closed",
        last_month, this_month - timedelta(microseconds=1), where=WON,
    )
    recent_leads = await q.count(
        "leads", "date_entered", now - timedelta(days=DEFAULT_RANGE_DAYS), now
    )
    return {
        "revenue": project_revenue(current, previous, now),
        "leads": project_leads(recent_leads, now),
    }


async def get_analytics_dashboard(
    q: AggregateQueries,
    now: datetime,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    external: Optional[ExternalMetrics] = None,
) -> dict:
    """Every dashboard section for one date range."""
    start, end = resolve_range(now, start, end)
    external = external or UnavailableMetrics()
    logger.debug("Building analytics dashboard for %s .. %s", start, end)
    return {
        "range": {"start": start, "end": end},
        "overview": await get_overview(q, start, end),
        "funnel": await get_funnel(q, start, end),
        "sources": await get_sources(q, start, end, external),
        "performance": await get_performance(q, start, end, external),
        "engagement": await get_engagement(q, start, end, external),
        "trends": await get_trends(q, start, end),
        "predictions": await get_predictions(q, now),
    }
