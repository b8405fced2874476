"""Contact create/update with health recalculation."""
import logging
from datetime import datetime
from uuid import UUID

from errors import NotFoundError
from schemas.lead import ContactDTO
from schemas.results import ContactRef
from services.health import HEALTH_FIELDS, calculate_health_score
from services.ports import ContactQueries, HealthQueries

logger = logging.getLogger(__name__)


async def create_contact(
    contacts: ContactQueries, health: HealthQueries, dto: ContactDTO, now: datetime
) -> ContactRef:
    """Persist a contact and compute its first health snapshot."""
    contact = await contacts.create(dto.to_record())
    logger.info("Created contact %s", contact.id)
    await calculate_health_score(health, contact.id, now)
    return contact


async def update_contact(
    contacts: ContactQueries,
    health: HealthQueries,
    contact_id: UUID,
    dto: ContactDTO,
    now: datetime,
) -> ContactRef:
    """Apply the fields set on `dto`.

    Health is recalculated only when account, email or work phone change.

    Raises:
        NotFoundError: the contact does not exist.
    """
    current = await contacts.get(contact_id)
    if current is None:
        raise NotFoundError("Contact", contact_id)

    values = dto.to_record()
    changed = [
        f for f in HEALTH_FIELDS
        if f in values and values[f] != getattr(current, f)
    ]
    updated = await contacts.update(contact_id, values)
    if changed:
        logger.debug("Contact %s changed %s; recalculating health", contact_id, changed)
        await calculate_health_score(health, contact_id, now)
    return updated
