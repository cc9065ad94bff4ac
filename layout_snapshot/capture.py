"""
Screen capture through Playwright.

The comparison engine only needs ``capture(url, viewport, options) -> bytes``;
everything browser-specific (request blocking, banner hiding, load waits)
lives here so the engine can be exercised with synthetic images.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from playwright.async_api import (
    async_playwright,
    Browser,
    Page,
    Route,
    TimeoutError as PlaywrightTimeout,
    Error as PlaywrightError,
)

from layout_snapshot.config import DEFAULT_BLOCKED_REQUEST_PATTERNS, DEFAULT_HIDE_SELECTORS, SnapshotConfig
from layout_snapshot.core.errors import CaptureError, CaptureTimeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Viewport:
    width: int
    height: int

    def to_dict(self) -> dict[str, int]:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class CaptureOptions:
    blocked_request_patterns: tuple[str, ...] = DEFAULT_BLOCKED_REQUEST_PATTERNS
    hide_selectors: tuple[str, ...] = DEFAULT_HIDE_SELECTORS
    full_page: bool = False
    wait_until: str = "networkidle"
    navigation_timeout_ms: int = 30_000
    settle_delay_ms: int = 800
    headless: bool = True

    @classmethod
    def from_config(cls, config: SnapshotConfig) -> "CaptureOptions":
        return cls(
            blocked_request_patterns=config.blocked_request_patterns,
            hide_selectors=config.hide_selectors,
            full_page=config.full_page,
            wait_until=config.wait_until,
            navigation_timeout_ms=config.navigation_timeout_ms,
            settle_delay_ms=config.settle_delay_ms,
            headless=config.headless,
        )


class ScreenCaptureProvider(Protocol):
    async def capture(self, url: str, viewport: Viewport, options: CaptureOptions) -> bytes:
        ...


def build_hide_css(hide_selectors: tuple[str, ...]) -> str:
    """Stylesheet that hides consent banners and embedded media and freezes animations."""
    rules: list[str] = []
    if hide_selectors:
        rules.append(
            ",\n".join(hide_selectors)
            + " {\n  display: none !important;\n  visibility: hidden !important;\n  opacity: 0 !important;\n}"
        )
    rules.append("video, iframe { display: none !important; }")
    rules.append("* {\n  animation: none !important;\n  transition: none !important;\n}")
    return "\n".join(rules)


class PlaywrightCaptureProvider:
    """Launches Chromium per capture and returns a PNG screenshot."""

    def __init__(self, browser_args: tuple[str, ...] = ()) -> None:
        self._browser_args = browser_args

    async def capture(self, url: str, viewport: Viewport, options: CaptureOptions) -> bytes:
        async with async_playwright() as pw:
            try:
                browser = await pw.chromium.launch(
                    headless=options.headless,
                    args=list(self._browser_args),
                )
            except PlaywrightError as exc:
                raise CaptureError(url, f"browser launch failed: {exc}") from exc
            try:
                return await self._capture_with(browser, url, viewport, options)
            finally:
                try:
                    await browser.close()
                except PlaywrightError as exc:
                    logger.debug("Browser close failed: %s", exc)

    async def _capture_with(
        self,
        browser: Browser,
        url: str,
        viewport: Viewport,
        options: CaptureOptions,
    ) -> bytes:
        context = await browser.new_context(viewport=viewport.to_dict())

        async def _abort(route: Route) -> None:
            logger.debug("Blocking request: %s", route.request.url)
            await route.abort()

        for pattern in options.blocked_request_patterns:
            await context.route(pattern, _abort)

        page = await context.new_page()
        await page.set_viewport_size(viewport.to_dict())

        try:
            await self.navigate(page, url, options)
        except CaptureTimeout as exc:
            logger.warning("%s; continuing with the page as loaded", exc)

        try:
            await page.add_style_tag(content=build_hide_css(options.hide_selectors))
            if options.settle_delay_ms:
                await page.wait_for_timeout(options.settle_delay_ms)
            return await page.screenshot(full_page=options.full_page, type="png")
        except PlaywrightError as exc:
            raise CaptureError(url, str(exc)) from exc

    async def navigate(self, page: Page, url: str, options: CaptureOptions) -> None:
        try:
            await page.goto(url, wait_until=options.wait_until, timeout=options.navigation_timeout_ms)
        except PlaywrightTimeout as exc:
            raise CaptureTimeout(url, options.navigation_timeout_ms) from exc
        except PlaywrightError as exc:
            raise CaptureError(url, str(exc)) from exc
