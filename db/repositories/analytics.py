"""Aggregate queries behind the analytics dashboard.

Entities are addressed by name (sessions, leads, opportunities, cases,
contacts) and filtered by an inclusive [start, end] range on one of their
date columns.
Date-only columns are compared against the calendar dates of the range.
"""
import logging
from datetime import datetime, time
from typing import Any, Optional

from sqlalchemy import Date, func, literal, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import ActivityTrackingSession, Contact, Lead, Opportunity, SupportCase

logger = logging.getLogger(__name__)

ENTITIES = {
    "sessions": ActivityTrackingSession,
    "leads": Lead,
    "opportunities": Opportunity,
    "cases": SupportCase,
    "contacts": Contact,
}


def _model(entity: str):
    try:
        return ENTITIES[entity]
    except KeyError:
        raise ValueError(f"Unknown analytics entity: {entity}") from None


def _conditions(model, date_field: str, start: datetime, end: datetime, where: Optional[dict]):
    column = getattr(model, date_field)
    if isinstance(column.type, Date):
        start, end = start.date(), end.date()
    conditions = [column >= start, column <= end]
    for name, value in (where or {}).items():
        col = getattr(model, name)
        if value is None:
            conditions.append(col.is_(None))
        elif isinstance(value, (list, tuple)):
            conditions.append(col.in_(value))
        elif name == "status" and isinstance(value, str):
            conditions.append(func.lower(col) == value.lower())
        else:
            conditions.append(col == value)
    return conditions


def _as_datetime(value, like: datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min, tzinfo=like.tzinfo)


class SqlAggregateQueries:
    """AggregateQueries over the crm schema, bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def count(
        self,
        entity: str,
        date_field: str,
        start: datetime,
        end: datetime,
        where: Optional[dict[str, Any]] = None,
        distinct: Optional[str] = None,
    ) -> int:
        model = _model(entity)
        counted = (
            func.count(func.distinct(getattr(model, distinct)))
            if distinct
            else func.count()
        )
        result = await self.session.execute(
            select(counted).select_from(model).where(
                *_conditions(model, date_field, start, end, where)
            )
        )
        return result.scalar_one()

    async def sum(self, entity, column, date_field, start, end, where=None) -> float:
        model = _model(entity)
        result = await self.session.execute(
            select(func.coalesce(func.sum(getattr(model, column)), 0)).where(
                *_conditions(model, date_field, start, end, where)
            )
        )
        return float(result.scalar_one())

    async def avg(self, entity, column, date_field, start, end, where=None) -> Optional[float]:
        model = _model(entity)
        result = await self.session.execute(
            select(func.avg(getattr(model, column))).where(
                *_conditions(model, date_field, start, end, where)
            )
        )
        value = result.scalar_one()
        return float(value) if value is not None else None

    async def series(self, entity, date_field, start, end, value=None, where=None):
        model = _model(entity)
        measured = getattr(model, value) if value else literal(1)
        result = await self.session.execute(
            select(getattr(model, date_field), measured).where(
                *_conditions(model, date_field, start, end, where)
            )
        )
        return [(moment, float(v or 0)) for moment, v in result.all()]

    async def group_count(
        self,
        entity,
        column,
        date_field,
        start,
        end,
        where=None,
        limit=None,
        skip_null=False,
    ):
        model = _model(entity)
        col = getattr(model, column)
        stmt = (
            select(col, func.count().label("n"))
            .where(*_conditions(model, date_field, start, end, where))
            .group_by(col)
            .order_by(func.count().desc())
        )
        if skip_null:
            stmt = stmt.where(col.is_not(None))
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [(key, n) for key, n in result.all()]

    async def elapsed(self, entity, from_field, to_field, date_field, start, end, where=None):
        model = _model(entity)
        result = await self.session.execute(
            select(getattr(model, from_field), getattr(model, to_field)).where(
                *_conditions(model, date_field, start, end, where)
            )
        )
        seconds = []
        for began, finished in result.all():
            if began is None or finished is None:
                continue
            if not isinstance(began, datetime):
                began = datetime.combine(began, time.min)
            seconds.append((_as_datetime(finished, began) - began).total_seconds())
        return seconds
