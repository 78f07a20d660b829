from __future__ import annotations

import base64
import logging
import math
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from selenium import webdriver
from selenium.common.exceptions import TimeoutException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from ..config import BrowserConfig
from ..errors import NavigationTimeoutError
from .session import BrowserSession, scoped_session


logger = logging.getLogger(__name__)

# No in-flight resource loads for this long counts as network-idle.
NETWORK_IDLE_WINDOW_S = 0.5
_POLL_INTERVAL_S = 0.1


class SeleniumSession:
    """
    `BrowserSession` backed by a Selenium Chrome WebDriver.

    WebDriver has no network-idle signal, so it is approximated: the document must be
    `complete` and the resource timing entry count must stay unchanged for
    `NETWORK_IDLE_WINDOW_S`.
    """

    def __init__(self, driver: webdriver.Chrome) -> None:
        self._driver = driver

    @property
    def url(self) -> str:
        return self._driver.current_url

    def _wait_until(self, condition, *, timeout_ms: int, what: str):
        try:
            return WebDriverWait(self._driver, timeout_ms / 1000, poll_frequency=_POLL_INTERVAL_S).until(condition)
        except TimeoutException as e:
            raise NavigationTimeoutError(f"{what} within {timeout_ms}ms") from e

    def _wait_for_network_idle(self, *, timeout_ms: int) -> None:
        deadline = time.monotonic() + timeout_ms / 1000
        self._wait_until(
            lambda d: d.execute_script("return document.readyState") == "complete",
            timeout_ms=timeout_ms,
            what=f"{self.url} did not finish loading",
        )

        last_count = -1
        stable_since = time.monotonic()
        while time.monotonic() < deadline:
            count = self._driver.execute_script("return performance.getEntriesByType('resource').length")
            now = time.monotonic()
            if count != last_count:
                last_count = count
                stable_since = now
            elif now - stable_since >= NETWORK_IDLE_WINDOW_S:
                return
            time.sleep(_POLL_INTERVAL_S)
        raise NavigationTimeoutError(f"{self.url} did not reach network-idle within {timeout_ms}ms")

    def goto(self, url: str, *, timeout_ms: int) -> None:
        self._driver.set_page_load_timeout(timeout_ms / 1000)
        try:
            self._driver.get(url)
        except TimeoutException as e:
            raise NavigationTimeoutError(f"{url} did not load within {timeout_ms}ms") from e
        self._wait_for_network_idle(timeout_ms=timeout_ms)

    def wait_for_selector(self, selector: str, *, timeout_ms: int) -> None:
        self._wait_until(
            EC.visibility_of_element_located((By.CSS_SELECTOR, selector)),
            timeout_ms=timeout_ms,
            what=f"{selector!r} did not appear",
        )

    def _clickable(self, selector: str, *, timeout_ms: int):
        return self._wait_until(
            EC.element_to_be_clickable((By.CSS_SELECTOR, selector)),
            timeout_ms=timeout_ms,
            what=f"{selector!r} was not clickable",
        )

    def type_text(self, selector: str, text: str, *, delay_ms: int, timeout_ms: int) -> None:
        el = self._clickable(selector, timeout_ms=timeout_ms)
        for ch in text:
            el.send_keys(ch)
            if delay_ms > 0:
                time.sleep(delay_ms / 1000)

    def click(self, selector: str, *, timeout_ms: int) -> None:
        self._clickable(selector, timeout_ms=timeout_ms).click()

    def evaluate(self, script: str, arg: Any = None) -> Any:
        return self._driver.execute_script(f"return ({script})(arguments[0]);", arg)

    def run_and_wait_for_navigation(self, action: Callable[[], object], *, timeout_ms: int) -> None:
        # Hold on to the current document root: it goes stale once the page is replaced,
        # whether or not the URL changes (WebForms postbacks often keep it).
        old_root = self._driver.find_element(By.TAG_NAME, "html")
        action()
        self._wait_until(
            EC.staleness_of(old_root),
            timeout_ms=timeout_ms,
            what=f"No navigation completed (url={self.url})",
        )
        self._wait_for_network_idle(timeout_ms=timeout_ms)

    def wait_for_timeout(self, ms: int) -> None:
        time.sleep(ms / 1000)

    def screenshot(self) -> bytes:
        # Plain WebDriver screenshots are viewport-only; clip a CDP capture to the whole document.
        metrics = self._driver.execute_cdp_cmd("Page.getLayoutMetrics", {})
        size = metrics.get("cssContentSize") or metrics["contentSize"]
        clip = {
            "x": 0,
            "y": 0,
            "width": math.ceil(size["width"]),
            "height": math.ceil(size["height"]),
            "scale": 1,
        }
        result = self._driver.execute_cdp_cmd(
            "Page.captureScreenshot",
            {"format": "png", "captureBeyondViewport": True, "clip": clip},
        )
        return base64.b64decode(result["data"])

    def content(self) -> str:
        return self._driver.page_source

    def close(self) -> None:
        self._driver.quit()


def _chrome_options(cfg: BrowserConfig) -> Options:
    options = Options()
    if cfg.headless:
        options.add_argument("--headless=new")
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument(f"--window-size={cfg.viewport_width},{cfg.viewport_height}")
    return options


@contextmanager
def open_selenium_session(cfg: BrowserConfig) -> Iterator[BrowserSession]:
    logger.info("Launching browser (selenium, headless=%s)", cfg.headless)
    driver = webdriver.Chrome(options=_chrome_options(cfg))
    with scoped_session(SeleniumSession(driver)) as session:
        yield session
