"""Health score repository: factor aggregates and score snapshots."""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import ActivityTrackingSession, Contact, HealthScore, SupportCase
from db.repositories import contacts
from schemas.enums import RESOLVED_CASE_STATUS
from schemas.results import CaseCounts, ContactRef, HealthScoreResult

logger = logging.getLogger(__name__)


async def count_sessions_since(session: AsyncSession, contact_id: UUID, since: datetime) -> int:
    result = await session.execute(
        select(func.count(ActivityTrackingSession.id)).where(
            ActivityTrackingSession.contact_id == contact_id,
            ActivityTrackingSession.started_at > since,
        )
    )
    return result.scalar_one()


async def count_cases_since(session: AsyncSession, contact_id: UUID, since: datetime) -> CaseCounts:
    """Total and resolved case counts; status is compared case-insensitively."""
    resolved = func.lower(SupportCase.status) == RESOLVED_CASE_STATUS.lower()
    result = await session.execute(
        select(
            func.count(SupportCase.id),
            func.count(SupportCase.id).filter(resolved),
        ).where(
            SupportCase.contact_id == contact_id,
            SupportCase.date_entered > since,
        )
    )
    total, closed = result.one()
    return CaseCounts(total=total, resolved=closed)


async def latest(session: AsyncSession, contact_id: UUID) -> Optional[HealthScore]:
    """Most recent snapshot for a contact, or None."""
    result = await session.execute(
        select(HealthScore)
        .where(HealthScore.contact_id == contact_id)
        .order_by(HealthScore.calculated_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def insert(session: AsyncSession, snapshot: HealthScoreResult) -> HealthScore:
    row = HealthScore(**snapshot.model_dump(exclude={"id"}))
    session.add(row)
    await session.flush()
    return row


async def latest_by_risk(
    session: AsyncSession, risk_level: str, assigned_user_id: Optional[str] = None
) -> list[tuple[Contact, HealthScore]]:
    """Contacts whose newest snapshot has `risk_level`, worst score first."""
    newest = (
        select(HealthScore)
        .distinct(HealthScore.contact_id)
        .order_by(HealthScore.contact_id, HealthScore.calculated_at.desc())
        .subquery()
    )
    stmt = (
        select(Contact, HealthScore)
        .join(HealthScore, HealthScore.contact_id == Contact.id)
        .join(newest, newest.c.id == HealthScore.id)
        .where(HealthScore.risk_level == risk_level)
        .order_by(HealthScore.score.asc())
    )
    if assigned_user_id:
        stmt = stmt.where(Contact.assigned_user_id == assigned_user_id)
    result = await session.execute(stmt)
    return [(row[0], row[1]) for row in result.all()]


class SqlHealthQueries:
    """HealthQueries bound to one session.

    Use inside a single get_db() block so the contact lock taken by
    lock_contact() covers the read of the previous score and the insert.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def lock_contact(self, contact_id: UUID) -> Optional[ContactRef]:
        contact = await contacts.lock(self.session, contact_id)
        return ContactRef.model_validate(contact) if contact else None

    async def count_sessions_since(self, contact_id: UUID, since: datetime) -> int:
        return await count_sessions_since(self.session, contact_id, since)

    async def count_cases_since(self, contact_id: UUID, since: datetime) -> CaseCounts:
        return await count_cases_since(self.session, contact_id, since)

    async def has_account_multiple_contacts(self, account_id: Optional[UUID]) -> bool:
        if account_id is None:
            return False
        return await contacts.count_for_account(self.session, account_id) > 1

    async def latest_health_score(self, contact_id: UUID) -> Optional[HealthScoreResult]:
        row = await latest(self.session, contact_id)
        return HealthScoreResult.model_validate(row) if row else None

    async def save_health_score(self, snapshot: HealthScoreResult) -> HealthScoreResult:
        return HealthScoreResult.model_validate(await insert(self.session, snapshot))

    async def latest_scores_by_risk(
        self, risk_level: str, assigned_user_id: Optional[str] = None
    ) -> list[tuple[ContactRef, HealthScoreResult]]:
        rows = await latest_by_risk(self.session, risk_level, assigned_user_id)
        return [
            (ContactRef.model_validate(c), HealthScoreResult.model_validate(h))
            for c, h in rows
        ]
