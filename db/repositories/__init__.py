"""Repository layer for the CRM core.

Module-level async functions take an AsyncSession; each module also offers a
Sql*Queries class binding those functions to one session so the services can
use them through their query ports:
- contacts: get, lock (FOR UPDATE), create, update, count_for_account
- health: session/case aggregates, latest snapshot, insert, latest_by_risk
- analytics: SqlAggregateQueries count/sum/avg/series/group_count/elapsed
- opportunities: get, create, update, list_open, list_closing_between,
                 list_closed, last_activity_dates, add_note
- cases: get, create, list_entered_between, list_open, last_activity_dates
"""
