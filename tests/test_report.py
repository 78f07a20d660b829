from __future__ import annotations

import logging

import pytest

from spor_istanbul_slots.models import AppointmentRecord
from spor_istanbul_slots.report import (
    APPOINTMENTS_FOUND_HEADER,
    NO_APPOINTMENTS_MESSAGE,
    format_appointments,
    report_appointments,
)


def _record(**kwargs) -> AppointmentRecord:
    base = dict(day="Pzt", session_level="İleri", salon_name="A Salonu", time="18:00", gender="Kadın", capacity=3)
    base.update(kwargs)
    return AppointmentRecord(**base)


def test_format_single_record_exact() -> None:
    assert (
        format_appointments([_record()])
        == "Day: Pzt, Session Level: İleri, Salon: A Salonu, Time: 18:00, Gender: Kadın, Capacity: 3"
    )


def test_format_empty_is_fixed_message() -> None:
    out = format_appointments([])
    assert out == NO_APPOINTMENTS_MESSAGE
    assert out.strip()


def test_format_keeps_order_and_joins_with_newline() -> None:
    out = format_appointments([_record(day="Sal", capacity=1), _record(day="Pzt", capacity=9)])
    lines = out.split("\n")
    assert len(lines) == 2
    assert lines[0].startswith("Day: Sal,")
    assert lines[1].endswith("Capacity: 9")


def test_format_renders_empty_fields_as_blank() -> None:
    out = format_appointments([AppointmentRecord(capacity=2)])
    assert out == "Day: , Session Level: , Salon: , Time: , Gender: , Capacity: 2"


def test_format_drops_records_without_capacity() -> None:
    assert format_appointments([AppointmentRecord(capacity=0)]) == NO_APPOINTMENTS_MESSAGE


def test_record_rejects_negative_capacity() -> None:
    with pytest.raises(ValueError):
        AppointmentRecord(capacity=-1)


def test_report_logs_header_then_records(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    text = report_appointments([_record()])
    messages = [r.getMessage() for r in caplog.records]
    assert messages[-2:] == [APPOINTMENTS_FOUND_HEADER, text]


def test_report_logs_no_appointments(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    assert report_appointments([]) == NO_APPOINTMENTS_MESSAGE
    assert [r.getMessage() for r in caplog.records][-1] == NO_APPOINTMENTS_MESSAGE
