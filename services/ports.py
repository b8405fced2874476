"""Query interfaces the services read from.

The SQLAlchemy implementations live in db.repositories; tests use in-memory
fakes. Nothing in services/ imports the ORM directly.
"""
from datetime import date, datetime
from typing import Any, Optional, Protocol, Sequence
from uuid import UUID

from schemas.results import (
    CaseCounts,
    CaseRef,
    ContactRef,
    HealthScoreResult,
    OpportunityRef,
)


class HealthQueries(Protocol):
    async def lock_contact(self, contact_id: UUID) -> Optional[ContactRef]:
        """Load the contact and hold it for the rest of the transaction."""

    async def count_sessions_since(self, contact_id: UUID, since: datetime) -> int:
        """Sessions started strictly after `since`."""

    async def count_cases_since(self, contact_id: UUID, since: datetime) -> CaseCounts:
        """Cases entered strictly after `since`."""

    async def has_account_multiple_contacts(self, account_id: Optional[UUID]) -> bool: ...

    async def latest_health_score(self, contact_id: UUID) -> Optional[HealthScoreResult]: ...

    async def save_health_score(self, snapshot: HealthScoreResult) -> HealthScoreResult: ...

    async def latest_scores_by_risk(
        self, risk_level: str, assigned_user_id: Optional[str] = None
    ) -> list[tuple[ContactRef, HealthScoreResult]]:
        """Contacts whose newest score has the given risk level."""


class AggregateQueries(Protocol):
    """Generic count/sum/avg primitives over a named entity.

    `entity` is one of: sessions, leads, opportunities, cases, contacts.
    `where` maps column -> value, or column -> list/tuple for IN.
    """

    async def count(
        self,
        entity: str,
        date_field: str,
        start: datetime,
        end: datetime,
        where: Optional[dict[str, Any]] = None,
        distinct: Optional[str] = None,
    ) -> int: ...

    async def sum(
        self,
        entity: str,
        column: str,
        date_field: str,
        start: datetime,
        end: datetime,
        where: Optional[dict[str, Any]] = None,
    ) -> float: ...

    async def avg(
        self,
        entity: str,
        column: str,
        date_field: str,
        start: datetime,
        end: datetime,
        where: Optional[dict[str, Any]] = None,
    ) -> Optional[float]: ...

    async def series(
        self,
        entity: str,
        date_field: str,
        start: datetime,
        end: datetime,
        value: Optional[str] = None,
        where: Optional[dict[str, Any]] = None,
    ) -> Sequence[tuple[datetime, float]]:
        """(timestamp, value) rows; value is 1 per row when `value` is None."""

    async def group_count(
        self,
        entity: str,
        column: str,
        date_field: str,
        start: datetime,
        end: datetime,
        where: Optional[dict[str, Any]] = None,
        limit: Optional[int] = None,
        skip_null: bool = False,
    ) -> list[tuple[Optional[str], int]]:
        """(column value, row count) pairs ordered by count descending."""

    async def elapsed(
        self,
        entity: str,
        from_field: str,
        to_field: str,
        date_field: str,
        start: datetime,
        end: datetime,
        where: Optional[dict[str, Any]] = None,
    ) -> list[float]:
        """Seconds between two timestamp columns for each matching row."""


class OpportunityQueries(Protocol):
    async def get(self, opportunity_id: UUID) -> Optional[OpportunityRef]: ...

    async def create(self, record: dict) -> OpportunityRef: ...

    async def update(self, opportunity_id: UUID, values: dict) -> OpportunityRef: ...

    async def list_open(self, assigned_user_id: Optional[str] = None) -> list[OpportunityRef]: ...

    async def list_closing_between(self, start: date, end: date) -> list[OpportunityRef]:
        """Opportunities of any stage with date_closed in [start, end]."""

    async def list_closed(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[OpportunityRef]: ...

    async def last_activity_dates(self, opportunity_ids: list[UUID]) -> dict[UUID, datetime]:
        """Newest task date per opportunity; missing ids have no activity."""

    async def add_note(self, opportunity_id: UUID, name: str, description: str) -> None: ...


class ContactQueries(Protocol):
    async def get(self, contact_id: UUID) -> Optional[ContactRef]: ...

    async def create(self, record: dict) -> ContactRef: ...

    async def update(self, contact_id: UUID, values: dict) -> ContactRef: ...


class CaseQueries(Protocol):
    async def create(self, record: dict) -> CaseRef: ...

    async def list_entered_between(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> list[CaseRef]:
        """Cases with date_entered in [start, end]; an open bound is unbounded."""

    async def list_open(self, assigned_user_id: Optional[str] = None) -> list[CaseRef]:
        """Cases whose status is not Closed, oldest first."""

    async def last_activity_dates(self, case_ids: list[UUID]) -> dict[UUID, datetime]:
        """Newest note or task date per case; missing ids have no activity."""
