"""Unit tests for the sales-stage engine."""
import uuid
from datetime import date, datetime, timedelta, timezone

import pytest

from schemas.enums import SALES_STAGES
from schemas.results import OpportunityRef
from services import stages


def _opp(stage, amount=1000.0, probability=None, **kwargs) -> OpportunityRef:
    if probability is None:
        probability = stages.default_probability(stage)
    return OpportunityRef(
        id=kwargs.pop("id", uuid.uuid4()),
        sales_stage=stage,
        amount=amount,
        probability=probability,
        **kwargs,
    )


class TestStageTable:
    def test_every_stage_has_a_probability(self):
        assert set(stages.STAGE_PROBABILITIES) == set(SALES_STAGES)

    def test_proposal_probability(self):
        assert stages.default_probability("Proposal/Price Quote") == 65

    def test_unknown_stage_has_no_default(self):
        assert stages.default_probability("Hibernating") is None

    @pytest.mark.parametrize("current,expected", [
        ("Prospecting", "Qualification"),
        ("Negotiation/Review", "Closed Won"),
        ("Closed Won", "Closed Lost"),
        ("Closed Lost", "Closed Lost"),
        ("Hibernating", "Hibernating"),
    ])
    def test_next_stage(self, current, expected):
        assert stages.next_stage(current) == expected


class TestSetStage:
    def test_applies_stage_default(self):
        record = stages.set_stage({"name": "Deal", "probability": 10}, "Proposal/Price Quote")
        assert record == {"name": "Deal", "sales_stage": "Proposal/Price Quote", "probability": 65}

    def test_explicit_probability_wins(self):
        record = stages.set_stage({}, "Proposal/Price Quote", probability=90)
        assert record["probability"] == 90

    def test_unknown_stage_keeps_probability(self):
        record = stages.set_stage({"probability": 33}, "Hibernating")
        assert record["probability"] == 33

    def test_does_not_mutate_input(self):
        original = {"sales_stage": "Prospecting", "probability": 10}
        stages.set_stage(original, "Qualification")
        assert original == {"sales_stage": "Prospecting", "probability": 10}


class TestGroupPipeline:
    def test_groups_open_opportunities_in_stage_order(self):
        result = stages.group_pipeline([
            _opp("Qualification", 1000),
            _opp("Prospecting", 2000),
            _opp("Prospecting", 4000),
            _opp("Closed Won", 9000),
        ])

        assert [s.stage for s in result.stages] == [
            s for s in SALES_STAGES if s not in ("Closed Won", "Closed Lost")
        ]
        prospecting = result.stages[0]
        assert prospecting.count == 2
        assert prospecting.total_value == 6000
        assert prospecting.weighted_value == pytest.approx(600)

        summary = result.summary
        assert summary.total_opportunities == 3
        assert summary.total_value == 7000
        assert summary.weighted_value == pytest.approx(800)
        assert summary.average_deal_size == pytest.approx(7000 / 3)
        assert summary.average_probability == pytest.approx(40 / 3)

    def test_empty_pipeline(self):
        result = stages.group_pipeline([])
        assert all(s.count == 0 for s in result.stages)
        assert result.summary.average_deal_size == 0
        assert result.summary.average_probability == 0


class TestForecast:
    @pytest.mark.parametrize("period,expected", [
        ("month", date(2026, 3, 31)),
        ("quarter", date(2026, 3, 31)),
        ("year", date(2026, 12, 31)),
    ])
    def test_period_end(self, now, period, expected):
        assert stages.period_end(now, period) == expected

    def test_quarter_end_mid_year(self):
        now = datetime(2026, 8, 2, tzinfo=timezone.utc)
        assert stages.period_end(now, "quarter") == date(2026, 9, 30)

    def test_forecast_totals(self, now):
        opps = [
            _opp("Negotiation/Review", 10000, date_closed=date(2026, 3, 20), assigned_user_id="u1"),
            _opp("Prospecting", 5000, date_closed=date(2026, 3, 25), assigned_user_id="u1"),
            _opp("Closed Won", 2000, date_closed=date(2026, 3, 19)),
            _opp("Closed Lost", 7000, date_closed=date(2026, 3, 21)),
        ]

        forecast = stages.forecast_by_period(opps, now, "quarter")

        assert forecast["committed"] == 12000
        assert forecast["best_case"] == 17000
        assert forecast["weighted"] == pytest.approx(8000 + 500 + 2000)
        assert forecast["closed_won"] == 2000
        assert forecast["pipeline_count"] == 3
        assert forecast["end_date"] == date(2026, 3, 31)
        assert forecast["by_month"]["2026-03"]["count"] == 3
        users = {row["user"]: row for row in forecast["by_user"]}
        assert users["u1"]["amount"] == 15000
        assert users["Unassigned"]["count"] == 1


class TestWinLoss:
    def test_breakdown(self):
        entered = datetime(2026, 1, 1, tzinfo=timezone.utc)
        opps = [
            _opp("Closed Won", 3000, date_entered=entered, date_closed=date(2026, 1, 11), lead_source="Web"),
            _opp("Closed Won", 1000, date_entered=entered, date_closed=date(2026, 1, 21), lead_source="Web"),
            _opp("Closed Lost", 500, lead_source="Cold Call"),
            _opp("Closed Lost", 700),
            _opp("Prospecting", 9999),
        ]

        result = stages.win_loss(opps)

        assert result["total_closed"] == 4
        assert result["won"] == {
            "count": 2,
            "value": 4000,
            "average_size": 2000,
            "average_days_to_close": 15,
        }
        assert result["lost"] == {"count": 2, "value": 1200}
        assert result["win_rate"] == 50.0
        sources = {row["source"]: row for row in result["by_source"]}
        assert sources["Web"]["win_rate"] == 100.0
        assert sources["Cold Call"]["won"] == 0
        assert sources["Unknown"]["total"] == 1

    def test_nothing_closed(self):
        result = stages.win_loss([_opp("Prospecting")])
        assert result["total_closed"] == 0
        assert result["win_rate"] == 0


class TestRequiringAttention:
    def test_reasons(self, now):
        overdue = _opp("Qualification", date_closed=date(2026, 3, 1))
        stalled = _opp("Qualification", date_closed=date(2026, 4, 30))
        never_touched = _opp("Prospecting")
        at_risk = _opp("Prospecting", 80000, date_closed=date(2026, 4, 30))
        healthy = _opp("Negotiation/Review", 80000, date_closed=date(2026, 4, 30))
        closed = _opp("Closed Won", date_closed=date(2026, 1, 1))

        activity = {
            overdue.id: now,
            stalled.id: now - timedelta(days=20),
            at_risk.id: now - timedelta(days=2),
            healthy.id: now - timedelta(days=2),
        }
        items = stages.requiring_attention(
            [overdue, stalled, never_touched, at_risk, healthy, closed], activity, now
        )

        reasons = {item.opportunity.id: item.reason for item in items}
        assert reasons == {
            overdue.id: "Overdue close date",
            stalled.id: "No activity in 14+ days",
            never_touched.id: "No activity in 14+ days",
            at_risk.id: "High value at risk",
        }
