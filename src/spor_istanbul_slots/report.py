from __future__ import annotations

import logging
from typing import Iterable, Optional

from .models import AppointmentRecord


logger = logging.getLogger(__name__)

NO_APPOINTMENTS_MESSAGE = "No appointments with available quota were found."
APPOINTMENTS_FOUND_HEADER = "Appointments with available quota found:"


def format_appointment(record: AppointmentRecord) -> str:
    return (
        f"Day: {record.day}, Session Level: {record.session_level}, Salon: {record.salon_name}, "
        f"Time: {record.time}, Gender: {record.gender}, Capacity: {record.capacity}"
    )


def format_appointments(records: Iterable[AppointmentRecord]) -> str:
    lines = [format_appointment(r) for r in records if r.has_capacity()]
    if not lines:
        return NO_APPOINTMENTS_MESSAGE
    return "\n".join(lines)


def report_appointments(records: list[AppointmentRecord], *, log: Optional[logging.Logger] = None) -> str:
    """
    Log the rendered records (or the "none found" message) and return the rendered text.
    """
    log = log or logger
    text = format_appointments(records)
    if text == NO_APPOINTMENTS_MESSAGE:
        log.info(NO_APPOINTMENTS_MESSAGE)
    else:
        log.info(APPOINTMENTS_FOUND_HEADER)
        log.info(text)
    return text
