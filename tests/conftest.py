"""In-memory query ports shared by the service tests."""
import uuid
from collections import Counter
from datetime import date, datetime, time, timezone
from typing import Optional

import pytest

from schemas.results import CaseCounts, CaseRef, ContactRef, HealthScoreResult, OpportunityRef


@pytest.fixture
def now() -> datetime:
    # Wednesday
    return datetime(2026, 3, 18, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class FakeHealthQueries:
    def __init__(
        self,
        contacts: list[ContactRef] = (),
        sessions: list[tuple[uuid.UUID, datetime]] = (),
        cases: list[tuple[uuid.UUID, datetime, str]] = (),
        contacts_per_account: Optional[dict] = None,
        scores: list[HealthScoreResult] = (),
    ):
        self.contacts = {c.id: c for c in contacts}
        self.sessions = list(sessions)
        self.cases = list(cases)
        self.contacts_per_account = contacts_per_account or {}
        self.scores = list(scores)
        self.locked: list[uuid.UUID] = []

    async def lock_contact(self, contact_id):
        self.locked.append(contact_id)
        return self.contacts.get(contact_id)

    async def count_sessions_since(self, contact_id, since):
        return sum(1 for cid, at in self.sessions if cid == contact_id and at > since)

    async def count_cases_since(self, contact_id, since):
        rows = [s for cid, at, s in self.cases if cid == contact_id and at > since]
        return CaseCounts(
            total=len(rows), resolved=sum(1 for s in rows if s.lower() == "closed")
        )

    async def has_account_multiple_contacts(self, account_id):
        return account_id is not None and self.contacts_per_account.get(account_id, 0) > 1

    async def latest_health_score(self, contact_id):
        mine = [s for s in self.scores if s.contact_id == contact_id]
        return max(mine, key=lambda s: s.calculated_at) if mine else None

    async def save_health_score(self, snapshot):
        saved = snapshot.model_copy(update={"id": uuid.uuid4()})
        self.scores.append(saved)
        return saved

    async def latest_scores_by_risk(self, risk_level, assigned_user_id=None):
        rows = []
        for contact in self.contacts.values():
            if assigned_user_id and contact.assigned_user_id != assigned_user_id:
                continue
            latest = await self.latest_health_score(contact.id)
            if latest and latest.risk_level == risk_level:
                rows.append((contact, latest))
        return rows


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


def _in_range(moment, start: datetime, end: datetime) -> bool:
    if moment is None:
        return False
    if isinstance(moment, datetime):
        return start <= moment <= end
    return start.date() <= moment <= end.date()


def _matches(row: dict, where: Optional[dict]) -> bool:
    for name, value in (where or {}).items():
        actual = row.get(name)
        if value is None:
            if actual is not None:
                return False
        elif isinstance(value, (list, tuple)):
            if actual not in value:
                return False
        elif actual != value:
            return False
    return True


class FakeAggregateQueries:
    """AggregateQueries over lists of plain dict rows keyed by entity."""

    def __init__(self, **rows: list[dict]):
        self.rows = rows

    def _select(self, entity, date_field, start, end, where):
        return [
            r for r in self.rows.get(entity, [])
            if _in_range(r.get(date_field), start, end) and _matches(r, where)
        ]

    async def count(self, entity, date_field, start, end, where=None, distinct=None):
        rows = self._select(entity, date_field, start, end, where)
        if distinct:
            return len({r.get(distinct) for r in rows})
        return len(rows)

    async def sum(self, entity, column, date_field, start, end, where=None):
        return float(sum(r.get(column) or 0 for r in self._select(entity, date_field, start, end, where)))

    async def avg(self, entity, column, date_field, start, end, where=None):
        values = [
            r[column] for r in self._select(entity, date_field, start, end, where)
            if r.get(column) is not None
        ]
        return sum(values) / len(values) if values else None

    async def series(self, entity, date_field, start, end, value=None, where=None):
        return [
            (r[date_field], r.get(value) if value else 1)
            for r in self._select(entity, date_field, start, end, where)
        ]

    async def group_count(
        self, entity, column, date_field, start, end, where=None, limit=None, skip_null=False
    ):
        counts = Counter(
            r.get(column) for r in self._select(entity, date_field, start, end, where)
            if not (skip_null and r.get(column) is None)
        )
        return counts.most_common(limit)

    async def elapsed(self, entity, from_field, to_field, date_field, start, end, where=None):
        seconds = []
        for r in self._select(entity, date_field, start, end, where):
            began, finished = r.get(from_field), r.get(to_field)
            if began is None or finished is None:
                continue
            if not isinstance(finished, datetime):
                finished = datetime.combine(finished, time.min, tzinfo=began.tzinfo)
            seconds.append((finished - began).total_seconds())
        return seconds


# ---------------------------------------------------------------------------
# Opportunities, contacts, cases
# ---------------------------------------------------------------------------


class FakeOpportunityQueries:
    def __init__(self, opportunities: list[OpportunityRef] = (), activity: Optional[dict] = None):
        self.opportunities = {o.id: o for o in opportunities}
        self.activity = activity or {}
        self.notes: list[tuple[uuid.UUID, str, str]] = []
        self.created: list[dict] = []

    async def get(self, opportunity_id):
        return self.opportunities.get(opportunity_id)

    async def create(self, record):
        self.created.append(record)
        opportunity = OpportunityRef(id=uuid.uuid4(), **{
            k: v for k, v in record.items() if k in OpportunityRef.model_fields
        })
        self.opportunities[opportunity.id] = opportunity
        return opportunity

    async def update(self, opportunity_id, values):
        current = self.opportunities[opportunity_id]
        updated = current.model_copy(update={
            k: v for k, v in values.items() if k in OpportunityRef.model_fields
        })
        self.opportunities[opportunity_id] = updated
        return updated

    async def list_open(self, assigned_user_id=None):
        return [
            o for o in self.opportunities.values()
            if o.sales_stage not in ("Closed Won", "Closed Lost")
            and (assigned_user_id is None or o.assigned_user_id == assigned_user_id)
        ]

    async def list_closing_between(self, start: date, end: date):
        return [
            o for o in self.opportunities.values()
            if o.date_closed is not None and start <= o.date_closed <= end
        ]

    async def list_closed(self, start=None, end=None):
        return [
            o for o in self.opportunities.values()
            if o.sales_stage in ("Closed Won", "Closed Lost")
        ]

    async def last_activity_dates(self, opportunity_ids):
        return {i: self.activity[i] for i in opportunity_ids if i in self.activity}

    async def add_note(self, opportunity_id, name, description):
        self.notes.append((opportunity_id, name, description))


class FakeContactQueries:
    def __init__(self, contacts: list[ContactRef] = ()):
        self.contacts = {c.id: c for c in contacts}

    async def get(self, contact_id):
        return self.contacts.get(contact_id)

    async def create(self, record):
        contact = ContactRef(id=uuid.uuid4(), **{
            k: v for k, v in record.items() if k in ContactRef.model_fields
        })
        self.contacts[contact.id] = contact
        return contact

    async def update(self, contact_id, values):
        updated = self.contacts[contact_id].model_copy(update={
            k: v for k, v in values.items() if k in ContactRef.model_fields
        })
        self.contacts[contact_id] = updated
        return updated


class FakeCaseQueries:
    def __init__(self, cases: list[CaseRef] = (), activity: Optional[dict] = None):
        self.cases = list(cases)
        self.activity = activity or {}
        self.records: list[dict] = []

    async def create(self, record):
        self.records.append(record)
        case = CaseRef(id=uuid.uuid4(), **{
            k: v for k, v in record.items() if k in CaseRef.model_fields
        })
        self.cases.append(case)
        return case

    async def list_entered_between(self, start=None, end=None):
        return [
            c for c in self.cases
            if (start is None or c.date_entered >= start) and (end is None or c.date_entered <= end)
        ]

    async def list_open(self, assigned_user_id=None):
        return [
            c for c in self.cases
            if (c.status or "").lower() != "closed"
            and (assigned_user_id is None or c.assigned_user_id == assigned_user_id)
        ]

    async def last_activity_dates(self, case_ids):
        return {i: self.activity[i] for i in case_ids if i in self.activity}
