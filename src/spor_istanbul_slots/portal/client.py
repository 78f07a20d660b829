from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Callable, Optional

from ..config import AppConfig
from ..errors import ConfigurationError
from ..models import AppointmentRecord
from ..run_context import RunContext, ScreenshotSink
from .extraction import extract_appointments
from .navigation import NavState, PortalCredentials, PortalNavigator, build_steps
from .selectors import PortalSelectors
from .session import BrowserSession, open_session


logger = logging.getLogger(__name__)

CredentialSource = Callable[[], PortalCredentials]
SessionFactory = Callable[[], AbstractContextManager[BrowserSession]]


def credentials_from_config(cfg: AppConfig) -> CredentialSource:
    def _source() -> PortalCredentials:
        return PortalCredentials(identifier=cfg.credentials.identifier, secret=cfg.credentials.secret)

    return _source


def require_credentials(source: CredentialSource) -> PortalCredentials:
    creds = source()
    missing = [
        name
        for name, value in (("TCNO", creds.identifier), ("PASSWORD", creds.secret))
        if not (value or "").strip()
    ]
    if missing:
        raise ConfigurationError(f"{' and '.join(missing)} not set (define them in your .env file)")
    return creds


class GymPortalClient:
    """
    Spor Istanbul member portal automation (`https://online.spor.istanbul`).

    One `check_availability()` call is one run: log in, open the session selection
    page of the first registered activity, and return its cards with free capacity.
    """

    def __init__(
        self,
        cfg: AppConfig,
        *,
        credentials: Optional[CredentialSource] = None,
        selectors: Optional[PortalSelectors] = None,
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        self.cfg = cfg
        self.credentials = credentials or credentials_from_config(cfg)
        self.selectors = selectors or PortalSelectors()
        self.session_factory = session_factory or (lambda: open_session(cfg.browser))

        self.last_state: NavState = NavState.START
        self.last_failure_reason: Optional[str] = None

    def check_availability(
        self,
        *,
        run: Optional[RunContext] = None,
        screenshot_sink: Optional[ScreenshotSink] = None,
    ) -> list[AppointmentRecord]:
        creds = require_credentials(self.credentials)
        if screenshot_sink is None and run is not None:
            screenshot_sink = run.screenshot_sink()

        steps = build_steps(self.cfg.site, self.selectors, settle_mode=self.cfg.browser.settle_mode)

        def _extract(session: BrowserSession) -> list[AppointmentRecord]:
            if run is not None:
                try:
                    run.save_text("results_page.html", session.content())
                except Exception:
                    logger.debug("Failed to save results page HTML.", exc_info=True)
            return extract_appointments(session, self.selectors)

        navigator: Optional[PortalNavigator] = None
        try:
            with self.session_factory() as session:
                navigator = PortalNavigator(
                    session,
                    credentials=creds,
                    steps=steps,
                    browser=self.cfg.browser,
                    screenshot_sink=screenshot_sink,
                )
                records = navigator.run(_extract)
            logger.info("Browser closed")
        finally:
            if navigator is not None:
                self.last_state = navigator.state
                self.last_failure_reason = navigator.failure_reason

        logger.info("Found %d session(s) with free capacity", len(records))
        return records
