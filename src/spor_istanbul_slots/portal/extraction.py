from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Optional

from bs4 import BeautifulSoup, Tag

from ..models import AppointmentRecord
from .selectors import PortalSelectors


logger = logging.getLogger(__name__)

_LEADING_INT_RE = re.compile(r"^\s*(\d+)")

# Runs inside the page. Mirrors `_extract_card()` below; `sel` is
# `PortalSelectors.card_selectors()`. Cards without remaining capacity are skipped
# before any other field is read.
EXTRACT_CARDS_SCRIPT = """
(sel) => {
  const text = (root, selector) => {
    const el = root ? root.querySelector(selector) : null;
    return el && el.textContent ? el.textContent.trim() : '';
  };
  const out = [];
  for (const card of Array.from(document.querySelectorAll(sel.card))) {
    try {
      const m = /^\\s*(\\d+)/.exec(text(card, sel.capacity));
      const capacity = m ? parseInt(m[1], 10) : 0;
      if (!(capacity > 0)) continue;
      const column = card.closest(sel.day_container);
      const title = text(column, sel.day_title);
      out.push({
        day: title ? title.split('\\n')[0].trim() : '',
        session_level: text(card, sel.session_level),
        salon_name: text(card, sel.salon_name),
        time: text(card, sel.time),
        gender: text(card, sel.gender),
        capacity,
      });
    } catch (_) {}
  }
  return out;
}
"""


def parse_capacity(text: Optional[str]) -> int:
    """
    Leading non-negative integer of `text`, or 0 when absent or non-numeric.

    >>> parse_capacity(" 5 ")
    5
    >>> parse_capacity("Dolu")
    0
    """
    m = _LEADING_INT_RE.match(text or "")
    return int(m.group(1)) if m else 0


def first_line(text: Optional[str]) -> str:
    s = (text or "").strip()
    if not s:
        return ""
    # Only "\n" breaks the line, as in the in-page script.
    return s.split("\n")[0].strip()


def coerce_records(rows: Iterable[Any]) -> list[AppointmentRecord]:
    """
    Turn raw card rows (dicts) into records, keeping document order and dropping
    anything without remaining capacity. Malformed rows are skipped, never raised.
    """
    records: list[AppointmentRecord] = []
    for idx, row in enumerate(rows or []):
        if not isinstance(row, dict):
            logger.debug("Skipping non-object card row #%d: %r", idx, row)
            continue

        raw_capacity = row.get("capacity")
        if isinstance(raw_capacity, bool):
            capacity = 0
        elif isinstance(raw_capacity, int):
            capacity = raw_capacity
        elif isinstance(raw_capacity, float) and raw_capacity.is_integer():
            capacity = int(raw_capacity)
        else:
            capacity = parse_capacity(str(raw_capacity) if raw_capacity is not None else "")
        if capacity <= 0:
            continue

        def _field(name: str) -> str:
            value = row.get(name)
            return value.strip() if isinstance(value, str) else ""

        records.append(
            AppointmentRecord(
                day=first_line(_field("day")),
                session_level=_field("session_level"),
                salon_name=_field("salon_name"),
                time=_field("time"),
                gender=_field("gender"),
                capacity=capacity,
            )
        )
    return records


def _text(root: Optional[Tag], selector: str) -> str:
    if root is None:
        return ""
    el = root.select_one(selector)
    if el is None:
        return ""
    return el.get_text().strip()


def _extract_card(card: Tag, sel: PortalSelectors) -> Optional[dict]:
    capacity = parse_capacity(_text(card, sel.capacity))
    if capacity <= 0:
        return None

    column = card.css.closest(sel.day_container)
    return {
        "day": first_line(_text(column, sel.day_title)),
        "session_level": _text(card, sel.session_level),
        "salon_name": _text(card, sel.salon_name),
        "time": _text(card, sel.time),
        "gender": _text(card, sel.gender),
        "capacity": capacity,
    }


def extract_from_html(html: str, selectors: Optional[PortalSelectors] = None) -> list[AppointmentRecord]:
    """
    Offline extractor for saved session selection pages (e.g. `results_page.html`).

    Applies the same rules as `EXTRACT_CARDS_SCRIPT` without a browser.
    """
    sel = selectors or PortalSelectors()
    soup = BeautifulSoup(html or "", "html.parser")

    rows: list[dict] = []
    for idx, card in enumerate(soup.select(sel.card)):
        try:
            row = _extract_card(card, sel)
        except Exception:
            logger.debug("Failed to extract card #%d; skipping.", idx, exc_info=True)
            continue
        if row is not None:
            rows.append(row)
    return coerce_records(rows)


def extract_appointments(session, selectors: Optional[PortalSelectors] = None) -> list[AppointmentRecord]:
    """
    Extract records from the settled page loaded in `session` (a `BrowserSession`).
    """
    sel = selectors or PortalSelectors()
    rows = session.evaluate(EXTRACT_CARDS_SCRIPT, sel.card_selectors())
    if not isinstance(rows, list):
        logger.warning("Card extraction returned %s instead of a list; treating as no cards.", type(rows).__name__)
        return []
    return coerce_records(rows)
