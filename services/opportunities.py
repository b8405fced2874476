"""Opportunity lifecycle: create, stage changes, pipeline and forecast views."""
import logging
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from errors import NotFoundError
from schemas.opportunity import OpportunityDTO
from schemas.results import AttentionItem, OpportunityRef, PipelineResult
from services import stages
from services.ports import OpportunityQueries

logger = logging.getLogger(__name__)

DEFAULT_STAGE = "Prospecting"


async def create_opportunity(queries: OpportunityQueries, dto: OpportunityDTO) -> OpportunityRef:
    """Persist a new opportunity; probability defaults from its stage."""
    record = dto.to_record()
    stage = record.get("sales_stage") or DEFAULT_STAGE
    record = stages.set_stage(record, stage, dto.probability)
    opportunity = await queries.create(record)
    logger.info(
        "Created opportunity %s at %s (%s%%)",
        opportunity.id, opportunity.sales_stage, opportunity.probability,
    )
    return opportunity


async def get_opportunity(queries: OpportunityQueries, opportunity_id: UUID) -> OpportunityRef:
    opportunity = await queries.get(opportunity_id)
    if opportunity is None:
        raise NotFoundError("Opportunity", opportunity_id)
    return opportunity


async def update_opportunity(
    queries: OpportunityQueries, opportunity_id: UUID, values: dict
) -> OpportunityRef:
    """Apply field changes to an opportunity.

    A stage change re-derives the probability (unless `values` carries one)
    and records a note with the old and new stage.

    Raises:
        NotFoundError: the opportunity does not exist.
    """
    current = await get_opportunity(queries, opportunity_id)

    new_stage = values.get("sales_stage")
    if new_stage and new_stage != current.sales_stage:
        values = stages.set_stage(values, new_stage, values.get("probability"))

    updated = await queries.update(opportunity_id, values)

    if new_stage and new_stage != current.sales_stage:
        await queries.add_note(
            opportunity_id,
            "Stage Changed",
            f"Stage changed from {current.sales_stage} to {new_stage}",
        )
        logger.info(
            "Opportunity %s moved %s -> %s", opportunity_id, current.sales_stage, new_stage
        )
    return updated


async def move_to_next_stage(queries: OpportunityQueries, opportunity_id: UUID) -> OpportunityRef:
    """Advance one stage. An opportunity with no next stage is returned as-is."""
    current = await get_opportunity(queries, opportunity_id)
    target = stages.next_stage(current.sales_stage)
    if target == current.sales_stage:
        return current
    return await update_opportunity(queries, opportunity_id, {"sales_stage": target})


async def get_pipeline(
    queries: OpportunityQueries, assigned_user_id: Optional[str] = None
) -> PipelineResult:
    return stages.group_pipeline(await queries.list_open(assigned_user_id))


async def get_forecast(
    queries: OpportunityQueries, now: datetime, period: str = "quarter"
) -> dict:
    """Forecast over opportunities closing between today and the end of `period`."""
    end = stages.period_end(now, period)
    opportunities = await queries.list_closing_between(now.date(), end)
    return stages.forecast_by_period(opportunities, now, period)


async def get_win_loss(
    queries: OpportunityQueries, start: Optional[date] = None, end: Optional[date] = None
) -> dict:
    return stages.win_loss(await queries.list_closed(start, end))


async def get_requiring_attention(
    queries: OpportunityQueries, now: datetime, assigned_user_id: Optional[str] = None
) -> list[AttentionItem]:
    opportunities = await queries.list_open(assigned_user_id)
    last_activity = await queries.last_activity_dates([o.id for o in opportunities])
    return stages.requiring_attention(opportunities, last_activity, now)
