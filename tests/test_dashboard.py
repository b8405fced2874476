"""Unit tests for the per-user dashboard."""
import uuid
from datetime import date, datetime, timedelta, timezone

import pytest

from conftest import FakeAggregateQueries, FakeHealthQueries, FakeOpportunityQueries
from schemas.results import ContactRef, HealthScoreResult, OpportunityRef
from services import dashboard


def _won(user, amount, closed, kind=None, stage="Closed Won") -> dict:
    return {
        "assigned_user_id": user,
        "sales_stage": stage,
        "amount": amount,
        "date_closed": closed,
        "opportunity_type": kind,
    }


def _high_risk(contact_id, at) -> HealthScoreResult:
    return HealthScoreResult(
        id=uuid.uuid4(),
        contact_id=contact_id,
        score=0.2,
        factors={},
        trend="declining",
        risk_level="high",
        calculated_at=at,
    )


@pytest.fixture
def aggregates(now):
    return FakeAggregateQueries(
        leads=[
            {"assigned_user_id": "u1", "date_entered": now - timedelta(days=1)},
            {"assigned_user_id": "u1", "date_entered": now - timedelta(days=5)},
            {"assigned_user_id": "u2", "date_entered": now - timedelta(days=1)},
        ],
        contacts=[
            {"assigned_user_id": "u1", "date_entered": now - timedelta(days=100)},
            {"assigned_user_id": "u1", "date_entered": now - timedelta(days=1)},
            {"assigned_user_id": "u2", "date_entered": now - timedelta(days=1)},
        ],
        cases=[
            {"assigned_user_id": "u1", "status": "New", "date_entered": now - timedelta(days=5)},
            {"assigned_user_id": "u1", "status": "Assigned", "date_entered": now - timedelta(days=1)},
            {"assigned_user_id": "u1", "status": "Closed", "date_entered": now - timedelta(days=10)},
            {"assigned_user_id": "u2", "status": "New", "date_entered": now - timedelta(days=5)},
        ],
        opportunities=[
            _won("u1", 1000, date(2026, 3, 5), kind="subscription"),
            _won("u1", 3000, date(2026, 3, 10), kind="New Business"),
            _won("u1", 500, date(2026, 3, 12), stage="Closed Lost"),
            _won("u1", 2000, date(2026, 1, 20), kind="subscription"),
            _won("u1", 700, date(2025, 2, 1)),
            _won("u2", 9999, date(2026, 3, 6), kind="subscription"),
        ],
    )


@pytest.fixture
def pipeline():
    return FakeOpportunityQueries([
        OpportunityRef(id=uuid.uuid4(), sales_stage="Prospecting", amount=1000, probability=10,
                       date_closed=date(2026, 3, 25), assigned_user_id="u1"),
        OpportunityRef(id=uuid.uuid4(), sales_stage="Negotiation/Review", amount=5000,
                       probability=80, date_closed=date(2026, 4, 30), assigned_user_id="u1"),
        OpportunityRef(id=uuid.uuid4(), sales_stage="Prospecting", amount=100,
                       assigned_user_id="u2"),
    ])


@pytest.fixture
def health_queries(now):
    recent = ContactRef(id=uuid.uuid4(), last_name="Recent", assigned_user_id="u1")
    stale = ContactRef(id=uuid.uuid4(), last_name="Stale", assigned_user_id="u1")
    other = ContactRef(id=uuid.uuid4(), last_name="Other", assigned_user_id="u2")
    return FakeHealthQueries(
        contacts=[recent, stale, other],
        scores=[
            _high_risk(recent.id, now - timedelta(days=2)),
            _high_risk(stale.id, now - timedelta(days=10)),
            _high_risk(other.id, now - timedelta(days=1)),
        ],
    )


class TestUserDashboard:
    @pytest.mark.asyncio
    async def test_stats_count_only_the_users_records(self, aggregates, pipeline, health_queries, now):
        result = await dashboard.get_user_dashboard(aggregates, pipeline, health_queries, "u1", now)

        assert result["user_id"] == "u1"
        assert result["stats"] == {
            "leads": {"total": 2, "new_this_week": 1},
            "opportunities": {"open": 2, "value": 6000, "closing_this_month": 1},
            "contacts": {"total": 2, "at_risk": 1},
            "cases": {"open": 2, "overdue": 1},
        }

    @pytest.mark.asyncio
    async def test_pipeline_lists_non_empty_stages(self, aggregates, pipeline, health_queries, now):
        result = await dashboard.get_user_dashboard(aggregates, pipeline, health_queries, "u1", now)

        assert result["pipeline"] == {
            "total_value": 6000,
            "weighted_value": 4100,
            "count": 2,
            "by_stage": [
                {"stage": "Prospecting", "count": 1, "value": 1000},
                {"stage": "Negotiation/Review", "count": 1, "value": 5000},
            ],
        }

    @pytest.mark.asyncio
    async def test_performance_for_current_month(self, aggregates, pipeline, health_queries, now):
        result = await dashboard.get_user_dashboard(aggregates, pipeline, health_queries, "u1", now)

        assert result["performance"] == {
            "opportunities_won": 2,
            "revenue_closed": 4000,
            "avg_deal_size": 2000,
            # 2 won of 3 closed
            "win_rate": 66.7,
        }

    @pytest.mark.asyncio
    async def test_recurring_revenue(self, aggregates, pipeline, health_queries, now):
        result = await dashboard.get_user_dashboard(aggregates, pipeline, health_queries, "u1", now)

        revenue = result["revenue"]
        assert revenue["mrr"] == 1000
        assert revenue["arr"] == 12000
        # the February 2025 deal is outside the twelve-month window
        assert revenue["revenue_by_month"] == [
            {"month": "2026-01", "revenue": 2000, "count": 1},
            {"month": "2026-03", "revenue": 4000, "count": 2},
        ]

    @pytest.mark.asyncio
    async def test_user_without_records(self, now):
        result = await dashboard.get_user_dashboard(
            FakeAggregateQueries(), FakeOpportunityQueries(), FakeHealthQueries(), "nobody", now
        )

        assert result["stats"]["cases"] == {"open": 0, "overdue": 0}
        assert result["pipeline"]["by_stage"] == []
        assert result["performance"]["win_rate"] == 0
        assert result["performance"]["avg_deal_size"] == 0
        assert result["revenue"] == {"mrr": 0, "arr": 0, "revenue_by_month": []}


class TestCalendarHelpers:
    def test_week_starts_on_monday(self, now):
        assert dashboard.week_start(now) == datetime(2026, 3, 16, tzinfo=timezone.utc)

    def test_month_end(self, now):
        end = dashboard.month_end(now)
        assert (end.month, end.day, end.hour) == (3, 31, 23)
