from __future__ import annotations

import pytest

from spor_istanbul_slots.portal.extraction import (
    coerce_records,
    extract_appointments,
    extract_from_html,
    first_line,
    parse_capacity,
)
from spor_istanbul_slots.portal.selectors import PortalSelectors


def _card(
    capacity: str | None,
    *,
    level: str | None = "İleri",
    salon: str | None = "A Salonu",
    time: str | None = "18:00 - 19:00",
    gender: str | None = "Kadın",
) -> str:
    parts = ['<div class="well">']
    if level is not None:
        parts.append(f'<span class="label label-info" title="Seans Seviyesi">{level}</span>')
    if salon is not None:
        parts.append(f'<label title="Salon Adı"> {salon} </label>')
    if time is not None:
        parts.append(f'<span id="pageContent_rptList_ctl00_lblSeansSaat_0">{time}</span>')
    if gender is not None:
        parts.append(f'<label title="Seans Cinsiyeti">{gender}</label>')
    if capacity is not None:
        parts.append(f'<span class="label label-default" title="Kalan Kontenjan">{capacity}</span>')
    parts.append("</div>")
    return "".join(parts)


def _column(title: str, *cards: str) -> str:
    return (
        '<div class="col-md-1"><div class="panel panel-default">'
        f'<div class="panel-heading"><h3 class="panel-title">{title}</h3></div>'
        f'<div class="panel-body">{"".join(cards)}</div>'
        "</div></div>"
    )


def _page(*columns: str) -> str:
    return f'<html><body><div class="row">{"".join(columns)}</div></body></html>'


@pytest.mark.parametrize(
    "text,expected",
    [
        ("5", 5),
        ("  12 ", 12),
        ("3 kişi", 3),
        ("0", 0),
        ("-2", 0),
        ("Dolu", 0),
        ("", 0),
        (None, 0),
    ],
)
def test_parse_capacity(text: str | None, expected: int) -> None:
    assert parse_capacity(text) == expected


def test_first_line_trims_and_takes_first() -> None:
    assert first_line("  Pazartesi \n  21.10.2024\n") == "Pazartesi"
    assert first_line("") == ""
    assert first_line(None) == ""


def test_first_line_breaks_only_on_newline_like_in_page_script() -> None:
    assert first_line("Pzt\rX\nY") == "Pzt\rX"
    assert first_line("Pzt\u2028X") == "Pzt\u2028X"


def test_three_cards_only_capacity_five_survives_with_first_line_day() -> None:
    html = _page(
        _column(
            "Pazartesi\n                21.10.2024",
            _card("0", salon="Kapalı Salon"),
            _card("5", salon="Havuz 1"),
            _card("0", salon="Havuz 2"),
        )
    )
    records = extract_from_html(html)
    assert len(records) == 1
    r = records[0]
    assert r.capacity == 5
    assert r.salon_name == "Havuz 1"
    assert r.day == "Pazartesi"
    assert r.session_level == "İleri"
    assert r.time == "18:00 - 19:00"
    assert r.gender == "Kadın"


def test_non_numeric_and_missing_capacity_are_discarded() -> None:
    html = _page(_column("Salı", _card("Dolu"), _card(None), _card(""), _card("-1")))
    assert extract_from_html(html) == []


def test_missing_fields_become_empty_strings() -> None:
    html = _page(_column("Çarşamba", _card("2", level=None, salon=None, time=None, gender=None)))
    records = extract_from_html(html)
    assert len(records) == 1
    r = records[0]
    assert (r.session_level, r.salon_name, r.time, r.gender) == ("", "", "", "")
    assert r.day == "Çarşamba"
    assert r.capacity == 2


def test_card_outside_day_column_has_empty_day() -> None:
    html = f"<html><body>{_card('4')}</body></html>"
    records = extract_from_html(html)
    assert len(records) == 1
    assert records[0].day == ""


def test_document_order_is_preserved_across_columns() -> None:
    html = _page(
        _column("Pazartesi", _card("1", time="08:00"), _card("0", time="09:00")),
        _column("Salı", _card("7", time="10:00"), _card("3", time="11:00")),
    )
    records = extract_from_html(html)
    assert [(r.day, r.time, r.capacity) for r in records] == [
        ("Pazartesi", "08:00", 1),
        ("Salı", "10:00", 7),
        ("Salı", "11:00", 3),
    ]


def test_page_without_cards_yields_nothing() -> None:
    assert extract_from_html("<html><body><p>Kayıt bulunamadı</p></body></html>") == []
    assert extract_from_html("") == []


def test_custom_selectors_are_honored() -> None:
    sel = PortalSelectors(card="article.session", capacity="b.free")
    html = '<article class="session"><b class="free">6</b></article><div class="well">9</div>'
    records = extract_from_html(html, sel)
    assert [r.capacity for r in records] == [6]


def test_coerce_records_filters_and_tolerates_bad_rows() -> None:
    rows = [
        {"day": "Pzt\nextra", "session_level": " İleri ", "capacity": 3},
        {"capacity": 0, "day": "Sal"},
        {"capacity": "2 kişi", "salon_name": "B"},
        {"capacity": "yok"},
        {"capacity": True},
        {"capacity": 4.0, "time": None, "gender": 12},
        "garbage",
        None,
    ]
    records = coerce_records(rows)
    assert [r.capacity for r in records] == [3, 2, 4]
    assert records[0].day == "Pzt"
    assert records[0].session_level == "İleri"
    assert records[1].salon_name == "B"
    assert records[2].time == ""
    assert records[2].gender == ""


class _EvalOnlySession:
    def __init__(self, result: object) -> None:
        self.result = result
        self.calls: list[tuple[str, object]] = []

    def evaluate(self, script: str, arg: object = None) -> object:
        self.calls.append((script, arg))
        return self.result


def test_extract_appointments_passes_selectors_to_page_script() -> None:
    session = _EvalOnlySession([{"day": "Pzt", "capacity": 5}, {"day": "Sal", "capacity": 0}])
    records = extract_appointments(session)
    assert [r.day for r in records] == ["Pzt"]

    script, arg = session.calls[0]
    assert "querySelectorAll" in script
    assert isinstance(arg, dict)
    assert arg["card"] == "div.well"
    assert arg["capacity"] == 'span.label-default[title="Kalan Kontenjan"]'


def test_extract_appointments_non_list_result_is_empty() -> None:
    assert extract_appointments(_EvalOnlySession(None)) == []
