"""Support case repository: creation, listings and last-activity lookups."""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, union_all
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Note, SupportCase, Task, column_values
from schemas.enums import RESOLVED_CASE_STATUS
from schemas.results import CaseRef

logger = logging.getLogger(__name__)

PARENT_TYPE = "Cases"


async def get(session: AsyncSession, case_id: UUID) -> Optional[SupportCase]:
    return await session.get(SupportCase, case_id)


async def create(session: AsyncSession, data: dict) -> SupportCase:
    case = SupportCase(**column_values(SupportCase, data))
    session.add(case)
    await session.flush()
    return case


async def list_entered_between(
    session: AsyncSession, start: Optional[datetime] = None, end: Optional[datetime] = None
) -> list[SupportCase]:
    stmt = select(SupportCase).order_by(SupportCase.date_entered)
    if start:
        stmt = stmt.where(SupportCase.date_entered >= start)
    if end:
        stmt = stmt.where(SupportCase.date_entered <= end)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_open(
    session: AsyncSession, assigned_user_id: Optional[str] = None
) -> list[SupportCase]:
    """Cases not yet Closed (status compared case-insensitively), oldest first."""
    stmt = (
        select(SupportCase)
        .where(func.lower(func.coalesce(SupportCase.status, "")) != RESOLVED_CASE_STATUS.lower())
        .order_by(SupportCase.date_entered)
    )
    if assigned_user_id:
        stmt = stmt.where(SupportCase.assigned_user_id == assigned_user_id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def last_activity_dates(
    session: AsyncSession, case_ids: list[UUID]
) -> dict[UUID, datetime]:
    """Newest note or task date per case."""
    if not case_ids:
        return {}
    activity = union_all(
        select(Note.parent_id.label("parent_id"), Note.date_entered.label("at")).where(
            Note.parent_type == PARENT_TYPE, Note.parent_id.in_(case_ids)
        ),
        select(Task.parent_id.label("parent_id"), Task.date_entered.label("at")).where(
            Task.parent_type == PARENT_TYPE, Task.parent_id.in_(case_ids)
        ),
    ).subquery()
    result = await session.execute(
        select(activity.c.parent_id, func.max(activity.c.at)).group_by(activity.c.parent_id)
    )
    return {parent_id: at for parent_id, at in result.all()}


class SqlCaseQueries:
    """CaseQueries bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, record: dict) -> CaseRef:
        return CaseRef.model_validate(await create(self.session, record))

    async def list_entered_between(self, start=None, end=None) -> list[CaseRef]:
        rows = await list_entered_between(self.session, start, end)
        return [CaseRef.model_validate(c) for c in rows]

    async def list_open(self, assigned_user_id: Optional[str] = None) -> list[CaseRef]:
        return [CaseRef.model_validate(c) for c in await list_open(self.session, assigned_user_id)]

    async def last_activity_dates(self, case_ids: list[UUID]) -> dict[UUID, datetime]:
        return await last_activity_dates(self.session, case_ids)
