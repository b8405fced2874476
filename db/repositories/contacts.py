"""Contact repository: lookups, row locks and writes."""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Contact, column_values
from schemas.results import ContactRef

logger = logging.getLogger(__name__)


async def get(session: AsyncSession, contact_id: UUID) -> Optional[Contact]:
    """Return the Contact with this id, or None."""
    return await session.get(Contact, contact_id)


async def lock(session: AsyncSession, contact_id: UUID) -> Optional[Contact]:
    """SELECT ... FOR UPDATE on one contact; held until the transaction ends."""
    result = await session.execute(
        select(Contact).where(Contact.id == contact_id).with_for_update()
    )
    return result.scalar_one_or_none()


async def create(session: AsyncSession, data: dict) -> Contact:
    """Insert a contact. Keys that are not Contact columns are ignored."""
    contact = Contact(**column_values(Contact, data))
    session.add(contact)
    await session.flush()
    return contact


async def update(session: AsyncSession, contact_id: UUID, values: dict) -> Optional[Contact]:
    values = column_values(Contact, values)
    if values:
        await session.execute(
            sa_update(Contact).where(Contact.id == contact_id).values(**values)
        )
    result = await session.execute(
        select(Contact).where(Contact.id == contact_id),
        execution_options={"populate_existing": True},
    )
    return result.scalar_one_or_none()


async def count_for_account(session: AsyncSession, account_id: UUID) -> int:
    result = await session.execute(
        select(func.count(Contact.id)).where(Contact.account_id == account_id)
    )
    return result.scalar_one()


class SqlContactQueries:
    """ContactQueries bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, contact_id: UUID) -> Optional[ContactRef]:
        contact = await get(self.session, contact_id)
        return ContactRef.model_validate(contact) if contact else None

    async def create(self, record: dict) -> ContactRef:
        return ContactRef.model_validate(await create(self.session, record))

    async def update(self, contact_id: UUID, values: dict) -> ContactRef:
        return ContactRef.model_validate(await update(self.session, contact_id, values))
