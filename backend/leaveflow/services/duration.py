# ruff: noqa: TC003
from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import date, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leaveflow.exceptions import ValidationFailed
from leaveflow.models.holiday import CompanyHoliday

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


async def _fetch_holiday_dates(
    session: AsyncSession,
    company_id: uuid.UUID,
    start_date: date,
    end_date: date,
) -> set[date]:
    """Fetch company holidays in the given date range."""
    result = await session.execute(
        select(col(CompanyHoliday.date)).where(
            col(CompanyHoliday.company_id) == company_id,
            col(CompanyHoliday.date) >= start_date,
            col(CompanyHoliday.date) <= end_date,
        )
    )
    return {row[0] for row in result.all()}


def iter_candidate_dates(start_date: date, end_date: date, selected_dates: Iterable[date] | None = None) -> list[date]:
    """Dates a request covers before weekends and holidays are removed."""
    if selected_dates is not None:
        return sorted(set(selected_dates))
    days = (end_date - start_date).days
    return [start_date + timedelta(days=offset) for offset in range(days + 1)]


def working_dates(candidates: Iterable[date], holidays: set[date]) -> list[date]:
    """Drop Saturdays, Sundays and holidays."""
    return [d for d in candidates if d.weekday() < 5 and d not in holidays]


async def count_working_days(
    session: AsyncSession,
    company_id: uuid.UUID,
    start_date: date,
    end_date: date,
    selected_dates: Iterable[date] | None = None,
) -> int:
    """Count the working days a request consumes.

    When ``selected_dates`` is given only those dates are counted (they must
    lie within the range; the payload schema enforces that). Weekends and
    company holidays never count. A request that covers no working day is
    rejected.
    """
    holidays = await _fetch_holiday_dates(session, company_id, start_date, end_date)
    days = working_dates(iter_candidate_dates(start_date, end_date, selected_dates), holidays)

    if not days:
        raise ValidationFailed("Request covers no working days after excluding weekends and holidays")

    return len(days)
