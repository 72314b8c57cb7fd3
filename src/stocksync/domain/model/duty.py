"""After-hours duty shifts taken from the duty roster workbook."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time

from .entities import utcnow


@dataclass(eq=False, kw_only=True)
class AfterHoursDuty:
    """One staff member's shift outside office hours on a single day."""

    duty_date: date
    staff_code: str
    full_name: str
    start_time: time
    end_time: time
    department: str = ""
    duty_type: str = ""
    notes: str = ""
    id: int | None = None
    created_at: datetime = field(default_factory=utcnow)
