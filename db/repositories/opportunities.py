"""Opportunity repository: CRUD, pipeline listings and stage-change notes."""
import logging
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Note, Opportunity, Task, column_values
from schemas.enums import CLOSED_STAGES
from schemas.results import OpportunityRef

logger = logging.getLogger(__name__)

PARENT_TYPE = "Opportunities"


async def get(session: AsyncSession, opportunity_id: UUID) -> Optional[Opportunity]:
    return await session.get(Opportunity, opportunity_id)


async def create(session: AsyncSession, data: dict) -> Opportunity:
    opportunity = Opportunity(**column_values(Opportunity, data))
    session.add(opportunity)
    await session.flush()
    return opportunity


async def update(session: AsyncSession, opportunity_id: UUID, values: dict) -> Optional[Opportunity]:
    values = column_values(Opportunity, values)
    if values:
        await session.execute(
            sa_update(Opportunity).where(Opportunity.id == opportunity_id).values(**values)
        )
    result = await session.execute(
        select(Opportunity).where(Opportunity.id == opportunity_id),
        execution_options={"populate_existing": True},
    )
    return result.scalar_one_or_none()


async def list_open(
    session: AsyncSession, assigned_user_id: Optional[str] = None
) -> list[Opportunity]:
    """Opportunities not in a closed stage, soonest close date first."""
    stmt = (
        select(Opportunity)
        .where(Opportunity.sales_stage.not_in(CLOSED_STAGES))
        .order_by(Opportunity.date_closed.asc().nulls_last())
    )
    if assigned_user_id:
        stmt = stmt.where(Opportunity.assigned_user_id == assigned_user_id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_closing_between(session: AsyncSession, start: date, end: date) -> list[Opportunity]:
    result = await session.execute(
        select(Opportunity)
        .where(Opportunity.date_closed >= start, Opportunity.date_closed <= end)
        .order_by(Opportunity.date_closed)
    )
    return list(result.scalars().all())


async def list_closed(
    session: AsyncSession, start: Optional[date] = None, end: Optional[date] = None
) -> list[Opportunity]:
    stmt = select(Opportunity).where(Opportunity.sales_stage.in_(CLOSED_STAGES))
    if start:
        stmt = stmt.where(Opportunity.date_closed >= start)
    if end:
        stmt = stmt.where(Opportunity.date_closed <= end)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def last_activity_dates(
    session: AsyncSession, opportunity_ids: list[UUID]
) -> dict[UUID, datetime]:
    """Newest task date per opportunity. Notes, stage-change notes included, do not count."""
    if not opportunity_ids:
        return {}
    result = await session.execute(
        select(Task.parent_id, func.max(Task.date_entered))
        .where(Task.parent_type == PARENT_TYPE, Task.parent_id.in_(opportunity_ids))
        .group_by(Task.parent_id)
    )
    return {parent_id: at for parent_id, at in result.all()}


async def add_note(
    session: AsyncSession, opportunity_id: UUID, name: str, description: str
) -> Note:
    note = Note(
        name=name,
        description=description,
        parent_type=PARENT_TYPE,
        parent_id=opportunity_id,
    )
    session.add(note)
    await session.flush()
    return note


class SqlOpportunityQueries:
    """OpportunityQueries bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, opportunity_id: UUID) -> Optional[OpportunityRef]:
        row = await get(self.session, opportunity_id)
        return OpportunityRef.model_validate(row) if row else None

    async def create(self, record: dict) -> OpportunityRef:
        return OpportunityRef.model_validate(await create(self.session, record))

    async def update(self, opportunity_id: UUID, values: dict) -> OpportunityRef:
        return OpportunityRef.model_validate(await update(self.session, opportunity_id, values))

    async def list_open(self, assigned_user_id: Optional[str] = None) -> list[OpportunityRef]:
        return [OpportunityRef.model_validate(o) for o in await list_open(self.session, assigned_user_id)]

    async def list_closing_between(self, start: date, end: date) -> list[OpportunityRef]:
        rows = await list_closing_between(self.session, start, end)
        return [OpportunityRef.model_validate(o) for o in rows]

    async def list_closed(self, start=None, end=None) -> list[OpportunityRef]:
        return [OpportunityRef.model_validate(o) for o in await list_closed(self.session, start, end)]

    async def last_activity_dates(self, opportunity_ids: list[UUID]) -> dict[UUID, datetime]:
        return await last_activity_dates(self.session, opportunity_ids)

    async def add_note(self, opportunity_id: UUID, name: str, description: str) -> None:
        await add_note(self.session, opportunity_id, name, description)
