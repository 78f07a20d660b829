from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, TypeVar

from ..config import BrowserConfig, SiteConfig
from ..errors import NavigationTimeoutError
from ..run_context import ScreenshotSink
from .selectors import PortalSelectors
from .session import BrowserSession


logger = logging.getLogger(__name__)

T = TypeVar("T")

# The postback itself is deferred so evaluate returns before the form submit tears down
# the page; a page without WebForms postback support (e.g. login silently failed) throws.
POSTBACK_SCRIPT = """
(target) => {
  if (typeof __doPostBack !== 'function') {
    throw new Error('__doPostBack is not available on ' + location.href);
  }
  setTimeout(() => __doPostBack(target, ''), 0);
}
"""


@dataclass(frozen=True)
class PortalCredentials:
    identifier: str
    secret: str = field(repr=False)


class NavState(str, Enum):
    START = "start"
    LOGIN_PAGE_LOADED = "login_page_loaded"
    AUTHENTICATED = "authenticated"
    MEMBER_PAGE_LOADED = "member_page_loaded"
    POSTBACK_TRIGGERED = "postback_triggered"
    RESULTS_PAGE_SETTLED = "results_page_settled"
    DONE = "done"
    FAILED = "failed"


class StepAction(str, Enum):
    NAVIGATE = "navigate"
    FILL = "fill"
    CLICK = "click"
    TRIGGER = "trigger"
    SETTLE = "settle"


class Completion(str, Enum):
    NETWORK_IDLE = "network_idle"
    URL_CHANGED = "url_changed"
    ELEMENT_PRESENT = "element_present"
    FIXED_DELAY = "fixed_delay"


@dataclass(frozen=True)
class NavigationStep:
    ordinal: int
    action: StepAction
    completion: Completion
    description: str
    # URL (NAVIGATE), selector (FILL/CLICK/SETTLE poll) or postback target (TRIGGER).
    target: str = ""
    # For FILL: which credential to type ("identifier" or "secret").
    value_from: str = ""
    reaches: Optional[NavState] = None
    capture_slug: Optional[str] = None


def build_steps(
    site: SiteConfig,
    selectors: PortalSelectors,
    *,
    settle_mode: str = "delay",
) -> tuple[NavigationStep, ...]:
    """
    The fixed transition table: login page -> member page -> session selection page.
    """
    settle_completion = Completion.ELEMENT_PRESENT if settle_mode == "poll" else Completion.FIXED_DELAY
    return (
        NavigationStep(
            1, StepAction.NAVIGATE, Completion.NETWORK_IDLE, "Navigating to login page",
            target=site.login_url, reaches=NavState.LOGIN_PAGE_LOADED, capture_slug="login_page",
        ),
        NavigationStep(
            2, StepAction.FILL, Completion.ELEMENT_PRESENT, "Filling in identifier",
            target=selectors.identifier_input, value_from="identifier",
        ),
        NavigationStep(
            3, StepAction.FILL, Completion.ELEMENT_PRESENT, "Filling in password",
            target=selectors.secret_input, value_from="secret",
        ),
        NavigationStep(
            4, StepAction.CLICK, Completion.URL_CHANGED, "Clicking login button",
            target=selectors.login_submit, reaches=NavState.AUTHENTICATED, capture_slug="after_login",
        ),
        NavigationStep(
            5, StepAction.NAVIGATE, Completion.NETWORK_IDLE, "Navigating to member page",
            target=site.member_url, reaches=NavState.MEMBER_PAGE_LOADED, capture_slug="uyespor_page",
        ),
        NavigationStep(
            6, StepAction.TRIGGER, Completion.URL_CHANGED, "Triggering session selection postback",
            target=selectors.session_selection_postback_target, reaches=NavState.POSTBACK_TRIGGERED,
        ),
        NavigationStep(
            7, StepAction.SETTLE, settle_completion, "Waiting for session selection page to settle",
            target=selectors.card, reaches=NavState.RESULTS_PAGE_SETTLED, capture_slug="session_selection_page",
        ),
    )


class PortalNavigator:
    """
    Drives one `BrowserSession` through the transition table, strictly in order.

    Any step failure moves the machine to FAILED (reason kept in `failure_reason`)
    and re-raises; there is no retry.
    """

    def __init__(
        self,
        session: BrowserSession,
        *,
        credentials: PortalCredentials,
        steps: tuple[NavigationStep, ...],
        browser: BrowserConfig,
        screenshot_sink: Optional[ScreenshotSink] = None,
    ) -> None:
        self.session = session
        self.credentials = credentials
        self.steps = steps
        self.browser = browser
        self.screenshot_sink = screenshot_sink

        self.state = NavState.START
        self.failure_reason: Optional[str] = None
        self.history: list[NavState] = [NavState.START]
        self._capture_counter = 0

    def run(self, extract: Callable[[BrowserSession], T]) -> T:
        """
        Execute every step, then call `extract` on the settled page.
        """
        current: Optional[NavigationStep] = None
        try:
            for current in self.steps:
                self._execute(current)
                if current.reaches is not None:
                    self._enter(current.reaches)
                if current.capture_slug:
                    self._capture(current.capture_slug)
            current = None
            result = extract(self.session)
        except Exception as e:
            where = f"step {current.ordinal} ({current.description})" if current else "extraction"
            self._fail(f"{type(e).__name__} at {where} in state {self.state.value}: {e}")
            raise
        self._enter(NavState.DONE)
        return result

    def _enter(self, state: NavState) -> None:
        self.state = state
        self.history.append(state)
        logger.debug("State -> %s (url=%s)", state.value, self.session.url)

    def _fail(self, reason: str) -> None:
        self.failure_reason = reason
        self._enter(NavState.FAILED)
        logger.error("Navigation failed: %s", reason)

    def _execute(self, step: NavigationStep) -> None:
        timeout_ms = self.browser.timeout_ms

        if step.action is StepAction.NAVIGATE:
            logger.info("%s: %s", step.description, step.target)
            self.session.goto(step.target, timeout_ms=timeout_ms)
            return

        if step.action is StepAction.FILL:
            logger.info(step.description)
            text = getattr(self.credentials, step.value_from)
            self.session.wait_for_selector(step.target, timeout_ms=timeout_ms)
            self.session.type_text(
                step.target, text, delay_ms=self.browser.typing_delay_ms, timeout_ms=timeout_ms
            )
            return

        if step.action is StepAction.CLICK:
            logger.info(step.description)
            self.session.run_and_wait_for_navigation(
                lambda: self.session.click(step.target, timeout_ms=timeout_ms),
                timeout_ms=timeout_ms,
            )
            return

        if step.action is StepAction.TRIGGER:
            logger.info(step.description)
            self.session.run_and_wait_for_navigation(
                lambda: self.session.evaluate(POSTBACK_SCRIPT, step.target),
                timeout_ms=timeout_ms,
            )
            return

        if step.action is StepAction.SETTLE:
            logger.info("%s (%s)", step.description, step.completion.value)
            self._settle(step)
            return

        raise AssertionError(f"Unhandled step action: {step.action}")

    def _settle(self, step: NavigationStep) -> None:
        delay_ms = self.browser.settle_delay_ms
        if step.completion is Completion.ELEMENT_PRESENT:
            # A page with no sessions at all never renders a card, so running out the
            # bound here means "nothing listed", not a failed navigation.
            try:
                self.session.wait_for_selector(step.target, timeout_ms=max(delay_ms, 1))
            except NavigationTimeoutError:
                logger.warning("No %r rendered within %dms; continuing.", step.target, delay_ms)
            return
        if delay_ms > 0:
            self.session.wait_for_timeout(delay_ms)

    def _capture(self, slug: str) -> None:
        self._capture_counter += 1
        ordinal = self._capture_counter
        if self.screenshot_sink is None:
            return
        try:
            png = self.session.screenshot()
            self.screenshot_sink.save(ordinal, slug, png)
            logger.info("Screenshot %d-%s taken", ordinal, slug)
        except Exception:
            logger.warning("Failed to save screenshot %d-%s; continuing.", ordinal, slug, exc_info=True)
