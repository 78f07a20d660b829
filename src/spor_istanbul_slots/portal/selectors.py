from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class PortalSelectors:
    """
    online.spor.istanbul is an ASP.NET WebForms site; control names may change over time.
    Keep all UI selectors/postback hooks here for easy maintenance.
    """

    # Login (/uyegiris)
    identifier_input: str = 'input[name="txtTCPasaport"]'
    secret_input: str = 'input[name="txtSifre"]'
    login_submit: str = 'input[name="btnGirisYap"]'

    # Member page (/uyespor): "Seans Seçim" link of the first registered activity.
    # It is a javascript:__doPostBack(...) anchor, so we invoke the postback directly.
    session_selection_postback_target: str = "ctl00$pageContent$rptListe$ctl00$lbtnSeansSecim"

    # Session selection page: one card per session, grouped in day columns.
    card: str = "div.well"
    capacity: str = 'span.label-default[title="Kalan Kontenjan"]'
    session_level: str = 'span[title="Seans Seviyesi"]'
    salon_name: str = 'label[title="Salon Adı"]'
    time: str = 'span[id*="lblSeansSaat"]'
    gender: str = 'label[title="Seans Cinsiyeti"]'
    day_container: str = ".col-md-1"
    # Day panel titles hold the day name on the first line and the date below it.
    day_title: str = ".panel-title"

    def card_selectors(self) -> dict[str, str]:
        """
        Selectors the card extractors need, keyed the way the in-page script reads them.
        """
        data = asdict(self)
        keys = (
            "card",
            "capacity",
            "session_level",
            "salon_name",
            "time",
            "gender",
            "day_container",
            "day_title",
        )
        return {k: data[k] for k in keys}
