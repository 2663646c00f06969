"""Headless Chromium screenshots via Playwright."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable
from typing import Any

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from webelapse.config import ScheduleParameters

DEFAULT_VIEWPORT = (960, 720)
DEFAULT_LOAD_TIMEOUT_MS = 60_000

_LOG = logging.getLogger("webelapse.snapshot")


class ProviderError(Exception):
    """Raised when a snapshot session cannot be acquired or rendered."""


def _release(label: str, close: Callable[[], Any]) -> None:
    try:
        close()
    except Exception as exc:  # noqa: BLE001 - best effort cleanup
        _LOG.warning("Ignoring error while closing %s: %s", label, exc)


class PlaywrightSnapshotProvider:
    """Callable returning PNG bytes of ``url``, or ``b""`` when the page fails.

    Every call launches a fresh browser so a wedged page never leaks into the
    next capture.
    """

    def __init__(
        self,
        url: str,
        *,
        width: int = DEFAULT_VIEWPORT[0],
        height: int = DEFAULT_VIEWPORT[1],
        color_scheme: str = "light",
        load_timeout_ms: int = DEFAULT_LOAD_TIMEOUT_MS,
        playwright_factory: Callable[[], Any] = sync_playwright,
    ) -> None:
        self.url = url
        self.viewport = {"width": int(width), "height": int(height)}
        self.color_scheme = "dark" if color_scheme == "dark" else "light"
        self.load_timeout_ms = int(load_timeout_ms)
        self._factory = playwright_factory

    @classmethod
    def from_params(cls, params: ScheduleParameters) -> "PlaywrightSnapshotProvider":
        return cls(
            params.url,
            width=params.width,
            height=params.height,
            color_scheme=params.color_scheme,
            load_timeout_ms=params.load_timeout_ms,
        )

    def __call__(self) -> bytes:
        try:
            return self.capture()
        except ProviderError as exc:
            _LOG.warning("Snapshot failed: %s", exc)
            return b""

    def capture(self) -> bytes:
        """Take one screenshot, raising ``ProviderError`` on failure."""
        try:
            with self._factory() as playwright, contextlib.ExitStack() as cleanup:
                browser = playwright.chromium.launch(headless=True)
                cleanup.callback(_release, "browser", browser.close)
                page = browser.new_page(viewport=self.viewport)
                cleanup.callback(_release, "page", page.close)
                page.emulate_media(color_scheme=self.color_scheme)
                page.goto(self.url, wait_until="networkidle", timeout=self.load_timeout_ms)
                return page.screenshot()
        except (PlaywrightError, OSError) as exc:
            raise ProviderError(f"{self.url}: {exc}") from exc
        except Exception as exc:  # noqa: BLE001 - any driver failure is a failed snapshot
            raise ProviderError(f"{self.url}: unexpected {type(exc).__name__}: {exc}") from exc
