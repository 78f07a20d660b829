from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Protocol

from playwright.sync_api import Browser, Page, Playwright, sync_playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..config import BrowserConfig
from ..errors import NavigationTimeoutError, ResourceCleanupError


logger = logging.getLogger(__name__)


class BrowserSession(Protocol):
    """
    A single browser page owned for the lifetime of one run.

    Every wait is bounded by `timeout_ms`; an unmet completion condition raises
    `NavigationTimeoutError`. Scripts passed to `evaluate` are JavaScript function
    expressions taking one argument, e.g. `(arg) => document.title`.
    """

    @property
    def url(self) -> str: ...

    def goto(self, url: str, *, timeout_ms: int) -> None:
        """Navigate and return once the network is idle."""

    def wait_for_selector(self, selector: str, *, timeout_ms: int) -> None: ...

    def type_text(self, selector: str, text: str, *, delay_ms: int, timeout_ms: int) -> None:
        """Type into a field one keystroke at a time."""

    def click(self, selector: str, *, timeout_ms: int) -> None: ...

    def evaluate(self, script: str, arg: Any = None) -> Any: ...

    def run_and_wait_for_navigation(self, action: Callable[[], object], *, timeout_ms: int) -> None:
        """
        Run `action` with a navigation waiter already armed, and return once the
        navigation it causes has completed. Either may finish first.
        """

    def wait_for_timeout(self, ms: int) -> None: ...

    def screenshot(self) -> bytes:
        """Full-page PNG."""

    def content(self) -> str: ...

    def close(self) -> None: ...


@contextmanager
def scoped_session(session: BrowserSession) -> Iterator[BrowserSession]:
    """
    Guarantee `session.close()` on both success and failure.

    A close failure after an error is logged and the original error propagates.
    A close failure after a successful run raises `ResourceCleanupError`.
    """
    try:
        yield session
    except BaseException:
        try:
            session.close()
        except Exception:
            logger.error("Failed to close browser session while handling an earlier error.", exc_info=True)
        raise
    try:
        session.close()
    except Exception as e:
        logger.error("Failed to close browser session: %s", e)
        raise ResourceCleanupError(f"Failed to close browser session: {e}") from e


class PlaywrightSession:
    """
    `BrowserSession` backed by a Playwright Chromium page.
    """

    def __init__(self, browser: Browser, page: Page) -> None:
        self._browser = browser
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    def goto(self, url: str, *, timeout_ms: int) -> None:
        try:
            self._page.goto(url, wait_until="networkidle", timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeoutError(f"{url} did not reach network-idle within {timeout_ms}ms") from e

    def wait_for_selector(self, selector: str, *, timeout_ms: int) -> None:
        try:
            self._page.wait_for_selector(selector, state="visible", timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeoutError(f"{selector!r} did not appear within {timeout_ms}ms") from e

    def type_text(self, selector: str, text: str, *, delay_ms: int, timeout_ms: int) -> None:
        try:
            self._page.locator(selector).press_sequentially(text, delay=delay_ms, timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeoutError(f"Could not type into {selector!r} within {timeout_ms}ms") from e

    def click(self, selector: str, *, timeout_ms: int) -> None:
        # Raised as our own error so a surrounding navigation wait does not relabel it.
        try:
            self._page.click(selector, timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeoutError(f"{selector!r} was not clickable within {timeout_ms}ms") from e

    def evaluate(self, script: str, arg: Any = None) -> Any:
        return self._page.evaluate(script, arg)

    def run_and_wait_for_navigation(self, action: Callable[[], object], *, timeout_ms: int) -> None:
        try:
            with self._page.expect_navigation(wait_until="networkidle", timeout=timeout_ms):
                action()
        except PlaywrightTimeoutError as e:
            raise NavigationTimeoutError(
                f"No navigation completed within {timeout_ms}ms (url={self._page.url})"
            ) from e

    def wait_for_timeout(self, ms: int) -> None:
        self._page.wait_for_timeout(ms)

    def screenshot(self) -> bytes:
        return self._page.screenshot(full_page=True)

    def content(self) -> str:
        return self._page.content()

    def close(self) -> None:
        self._browser.close()


def _launch_chromium(p: Playwright, cfg: BrowserConfig) -> Browser:
    # Prefer Playwright's bundled Chromium, but fall back to a system-installed browser if the
    # Playwright browser cache is missing.
    launch_kwargs: dict = {
        "headless": cfg.headless,
        "slow_mo": int(cfg.slow_mo_ms or 0),
        "args": ["--no-sandbox"],
    }
    try:
        return p.chromium.launch(**launch_kwargs)
    except Exception as e:
        msg = str(e)
        if "Executable doesn't exist" not in msg:
            raise

        logger.warning(
            "Playwright Chromium executable missing; falling back to system browser channel. (%s)",
            msg,
        )
        try:
            return p.chromium.launch(channel="chrome", **launch_kwargs)
        except Exception:
            return p.chromium.launch(channel="msedge", **launch_kwargs)


@contextmanager
def open_playwright_session(cfg: BrowserConfig) -> Iterator[BrowserSession]:
    with sync_playwright() as p:
        logger.info("Launching browser (playwright, headless=%s)", cfg.headless)
        browser = _launch_chromium(p, cfg)
        try:
            logger.info("Creating new page with viewport %dx%d", cfg.viewport_width, cfg.viewport_height)
            page = browser.new_page(viewport={"width": cfg.viewport_width, "height": cfg.viewport_height})
            page.set_default_timeout(cfg.timeout_ms)
        except BaseException:
            browser.close()
            raise
        with scoped_session(PlaywrightSession(browser, page)) as session:
            yield session


def open_session(cfg: BrowserConfig):
    """
    Return a context manager yielding a `BrowserSession` for the configured backend.
    """
    if cfg.backend == "selenium":
        from .selenium_session import open_selenium_session

        return open_selenium_session(cfg)
    return open_playwright_session(cfg)
