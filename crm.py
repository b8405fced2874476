"""CRM core command-line entry point.

Runs the health, pipeline and analytics services against the database named
by DATABASE_URL and prints the result as JSON.

Usage:
  # Recalculate one contact's health score
  python crm.py health --contact-id 6f1c...

  # Contacts whose latest score is high risk
  python crm.py at-risk --user-id u-42

  # Open pipeline by stage, and the quarter's forecast
  python crm.py pipeline
  python crm.py forecast --period quarter

  # Dashboard analytics for a date range (defaults to the last 30 days)
  python crm.py analytics --start 2026-01-01 --end 2026-03-31

  # Case resolution metrics, and open cases that need attention
  python crm.py case-metrics --start 2026-01-01
  python crm.py case-attention --user-id u-42

  # One user's dashboard
  python crm.py dashboard --user-id u-42

  # Advance an opportunity one stage
  python crm.py next-stage --opportunity-id 9a2e...

  # Validate and create records from JSON
  python crm.py create-contact --data '{"last_name": "Doe", "email": "jane@acme.com"}'
  python crm.py create-opportunity --data '{"name": "Renewal", "amount": 12000}'
  python crm.py create-case --data '{"name": "Login broken", "priority": "P1"}'
"""
import argparse
import asyncio
import json
import logging
import sys
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from dateutil import parser as date_parser
from pydantic import BaseModel

from config import configure_logging
from db.connection import dispose_engine, get_db
from db.repositories.analytics import SqlAggregateQueries
from db.repositories.cases import SqlCaseQueries
from db.repositories.contacts import SqlContactQueries
from db.repositories.health import SqlHealthQueries
from db.repositories.opportunities import SqlOpportunityQueries
from errors import CRMError
from schemas import CaseDTO, ContactDTO, OpportunityDTO, validate_dto
from services import analytics, cases, contacts, dashboard, health, opportunities

logger = logging.getLogger(__name__)


def _json_default(value):
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def _print(result) -> None:
    print(json.dumps(result, default=_json_default, indent=2))


def _parse_datetime(value: str) -> datetime:
    parsed = date_parser.isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def run_health(contact_id: uuid.UUID) -> None:
    now = datetime.now(timezone.utc)
    async with get_db() as session:
        score = await health.calculate_health_score(SqlHealthQueries(session), contact_id, now)
    _print({**health.health_summary(score), "contact_id": score.contact_id})


async def run_at_risk(user_id: str = None) -> None:
    async with get_db() as session:
        contacts = await health.get_at_risk_contacts(SqlHealthQueries(session), user_id)
    _print({"count": len(contacts), "contacts": contacts})


async def run_pipeline(user_id: str = None) -> None:
    async with get_db() as session:
        pipeline = await opportunities.get_pipeline(SqlOpportunityQueries(session), user_id)
    _print(pipeline)


async def run_forecast(period: str) -> None:
    now = datetime.now(timezone.utc)
    async with get_db() as session:
        forecast = await opportunities.get_forecast(SqlOpportunityQueries(session), now, period)
    _print(forecast)


async def run_analytics(start: datetime = None, end: datetime = None) -> None:
    now = datetime.now(timezone.utc)
    async with get_db() as session:
        report = await analytics.get_analytics_dashboard(
            SqlAggregateQueries(session), now, start, end
        )
    _print(report)


async def run_case_metrics(start: datetime = None, end: datetime = None) -> None:
    async with get_db() as session:
        metrics = await cases.get_case_metrics(SqlCaseQueries(session), start, end)
    _print(metrics)


async def run_case_attention(user_id: str = None) -> None:
    now = datetime.now(timezone.utc)
    async with get_db() as session:
        items = await cases.get_cases_requiring_attention(SqlCaseQueries(session), now, user_id)
    _print({"count": len(items), "cases": items})


async def run_dashboard(user_id: str) -> None:
    now = datetime.now(timezone.utc)
    async with get_db() as session:
        result = await dashboard.get_user_dashboard(
            SqlAggregateQueries(session),
            SqlOpportunityQueries(session),
            SqlHealthQueries(session),
            user_id,
            now,
        )
    _print(result)


async def run_next_stage(opportunity_id: uuid.UUID) -> None:
    async with get_db() as session:
        opportunity = await opportunities.move_to_next_stage(
            SqlOpportunityQueries(session), opportunity_id
        )
    _print(opportunity)


async def run_create_contact(data: dict) -> None:
    dto = validate_dto(ContactDTO, data)
    now = datetime.now(timezone.utc)
    async with get_db() as session:
        contact = await contacts.create_contact(
            SqlContactQueries(session), SqlHealthQueries(session), dto, now
        )
    _print(contact)


async def run_create_opportunity(data: dict) -> None:
    dto = validate_dto(OpportunityDTO, data)
    async with get_db() as session:
        opportunity = await opportunities.create_opportunity(SqlOpportunityQueries(session), dto)
    _print(opportunity)


async def run_create_case(data: dict) -> None:
    dto = validate_dto(CaseDTO, data)
    async with get_db() as session:
        case = await cases.create_case(SqlCaseQueries(session), dto)
    _print(case)


async def _run(coro) -> None:
    try:
        await coro
    finally:
        await dispose_engine()


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="CRM health scoring, pipeline and analytics"
    )
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    sub = parser.add_subparsers(dest="command")

    health_cmd = sub.add_parser("health", help="Recalculate a contact's health score")
    health_cmd.add_argument("--contact-id", required=True, type=uuid.UUID)

    at_risk = sub.add_parser("at-risk", help="List contacts at high churn risk")
    at_risk.add_argument("--user-id", default=None, help="Only contacts assigned to this user")

    pipeline = sub.add_parser("pipeline", help="Open opportunities grouped by stage")
    pipeline.add_argument("--user-id", default=None)

    forecast = sub.add_parser("forecast", help="Revenue forecast to the end of a period")
    forecast.add_argument("--period", choices=["month", "quarter", "year"], default="quarter")

    report = sub.add_parser("analytics", help="Dashboard analytics for a date range")
    report.add_argument("--start", type=_parse_datetime, default=None, help="ISO 8601 date or datetime")
    report.add_argument("--end", type=_parse_datetime, default=None, help="ISO 8601 date or datetime")

    case_metrics = sub.add_parser("case-metrics", help="Case resolution and SLA figures")
    case_metrics.add_argument("--start", type=_parse_datetime, default=None, help="ISO 8601 date or datetime")
    case_metrics.add_argument("--end", type=_parse_datetime, default=None, help="ISO 8601 date or datetime")

    attention = sub.add_parser("case-attention", help="Open cases that are aging or idle")
    attention.add_argument("--user-id", default=None, help="Only cases assigned to this user")

    user_dashboard = sub.add_parser("dashboard", help="Dashboard for one user's records")
    user_dashboard.add_argument("--user-id", required=True)

    next_stage = sub.add_parser("next-stage", help="Advance an opportunity one sales stage")
    next_stage.add_argument("--opportunity-id", required=True, type=uuid.UUID)

    for name, entity in (
        ("create-contact", "contact"),
        ("create-opportunity", "opportunity"),
        ("create-case", "support case"),
    ):
        create = sub.add_parser(name, help=f"Validate and create a {entity}")
        create.add_argument("--data", required=True, type=json.loads, help="JSON object of fields")

    return parser


if __name__ == "__main__":
    parser = _build_arg_parser()
    args = parser.parse_args()
    configure_logging(args.log_level)

    commands = {
        "health": lambda: run_health(args.contact_id),
        "at-risk": lambda: run_at_risk(args.user_id),
        "pipeline": lambda: run_pipeline(args.user_id),
        "forecast": lambda: run_forecast(args.period),
        "analytics": lambda: run_analytics(args.start, args.end),
        "case-metrics": lambda: run_case_metrics(args.start, args.end),
        "case-attention": lambda: run_case_attention(args.user_id),
        "dashboard": lambda: run_dashboard(args.user_id),
        "next-stage": lambda: run_next_stage(args.opportunity_id),
        "create-contact": lambda: run_create_contact(args.data),
        "create-opportunity": lambda: run_create_opportunity(args.data),
        "create-case": lambda: run_create_case(args.data),
    }
    if args.command not in commands:
        parser.print_help()
        sys.exit(1)

    try:
        asyncio.run(_run(commands[args.command]()))
    except CRMError as exc:
        logger.error("%s", exc)
        sys.exit(2)
