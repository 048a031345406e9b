from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from autoapply.browser.forms import extract_fields, extract_screening_questions
from autoapply.config import Settings
from autoapply.errors import EngineFatalError
from autoapply.types import FieldDescriptor, ScreeningQuestion

logger = logging.getLogger(__name__)


class FormPage:
    """Thin async facade over a Playwright page used by submission strategies."""

    def __init__(self, page: Page, *, action_timeout_ms: int, nav_timeout_ms: int, settle_ms: int):
        self.page = page
        self.action_timeout_ms = action_timeout_ms
        self.nav_timeout_ms = nav_timeout_ms
        self.settle_ms = settle_ms

    @property
    def url(self) -> str:
        return self.page.url

    async def goto(self, url: str) -> None:
        await self.page.goto(url, wait_until="domcontentloaded", timeout=self.nav_timeout_ms)
        await self.settle()

    async def content(self) -> str:
        return await self.page.content()

    async def settle(self, ms: int | None = None) -> None:
        await self.page.wait_for_timeout(self.settle_ms if ms is None else ms)

    async def exists(self, selector: str) -> bool:
        try:
            return await self.page.locator(selector).count() > 0
        except PlaywrightError as exc:
            logger.debug("Selector probe failed selector=%s error=%s", selector, exc)
            return False

    async def wait_for_any(self, selectors: Sequence[str], timeout_ms: int | None = None) -> bool:
        combined = ", ".join(selectors)
        try:
            await self.page.wait_for_selector(combined, timeout=timeout_ms or self.action_timeout_ms)
        except PlaywrightError:
            return False
        return True

    async def click_first(self, selectors: Sequence[str]) -> str | None:
        for selector in selectors:
            locator = self.page.locator(selector).first
            try:
                if not await locator.count() or not await locator.is_visible():
                    continue
                await locator.click(timeout=self.action_timeout_ms)
            except PlaywrightError as exc:
                logger.debug("Click failed selector=%s error=%s", selector, exc)
                continue
            await self.settle()
            return selector
        return None

    async def fill_first(self, selectors: Sequence[str], value: str) -> str | None:
        for selector in selectors:
            if await self.fill(selector, value):
                return selector
        return None

    async def fill(self, selector: str, value: str) -> bool:
        locator = self.page.locator(selector).first
        try:
            if not await locator.count() or not await locator.is_editable():
                return False
            await locator.fill(value, timeout=self.action_timeout_ms)
        except PlaywrightError as exc:
            logger.debug("Could not fill selector=%s error=%s", selector, exc)
            return False
        return True

    async def select(self, selector: str, option: str) -> bool:
        locator = self.page.locator(selector).first
        try:
            await locator.select_option(label=option, timeout=self.action_timeout_ms)
        except PlaywrightError:
            try:
                await locator.select_option(value=option, timeout=self.action_timeout_ms)
            except PlaywrightError as exc:
                logger.debug("Could not select option=%s selector=%s error=%s", option, selector, exc)
                return False
        return True

    async def fill_field(self, field: FieldDescriptor, value: str) -> bool:
        if field.tag == "select":
            return await self.select(field.selector, value)
        return await self.fill(field.selector, value)

    async def upload_first(self, selectors: Sequence[str], path: str) -> str | None:
        for selector in selectors:
            locator = self.page.locator(selector).first
            try:
                if not await locator.count():
                    continue
                await locator.set_input_files(path, timeout=self.action_timeout_ms)
            except PlaywrightError as exc:
                logger.debug("Upload failed selector=%s error=%s", selector, exc)
                continue
            return selector
        return None

    async def answer_question(self, question: ScreeningQuestion, answer: str) -> bool:
        if question.input_type == "select":
            return await self.select(question.selector, answer)

        if question.input_type in {"radio", "checkbox"}:
            escaped = answer.replace('"', '\\"')
            choice = self.page.locator(f'{question.selector}[value="{escaped}" i]')
            try:
                if not await choice.count():
                    choice = self.page.get_by_label(answer, exact=True)
                await choice.first.check(timeout=self.action_timeout_ms)
            except PlaywrightError as exc:
                logger.debug("Could not check answer=%s selector=%s error=%s", answer, question.selector, exc)
                return False
            return True

        return await self.fill(question.selector, answer)

    async def visible_fields(self) -> list[FieldDescriptor]:
        fields = extract_fields(await self.content())
        refreshed: list[FieldDescriptor] = []
        for field in fields:
            # Typed values live on the DOM property, not the serialized attribute.
            try:
                value = await self.page.locator(field.selector).first.input_value(timeout=self.action_timeout_ms)
            except PlaywrightError:
                value = field.value
            refreshed.append(field.model_copy(update={"value": value}))
        return refreshed

    async def screening_questions(self) -> list[ScreeningQuestion]:
        return extract_screening_questions(await self.content())


class BrowserEngine:
    """One shared Chromium instance, launched on first use."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

    async def _ensure_browser(self) -> Browser:
        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser

            try:
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self.settings.browser_headless,
                    args=self.settings.browser_launch_arg_list,
                )
            except Exception as exc:
                await self._stop_playwright()
                raise EngineFatalError(f"Browser launch failed: {exc}") from exc

            logger.info("Browser launched headless=%s", self.settings.browser_headless)
            return self._browser

    @asynccontextmanager
    async def open_page(self) -> AsyncIterator[FormPage]:
        browser = await self._ensure_browser()
        context: BrowserContext | None = None
        try:
            context = await browser.new_context(
                user_agent=self.settings.browser_user_agent,
                viewport={
                    "width": self.settings.browser_viewport_width,
                    "height": self.settings.browser_viewport_height,
                },
            )
            page = await context.new_page()
        except PlaywrightError as exc:
            if context is not None:
                await context.close()
            raise EngineFatalError(f"Could not open browser page: {exc}") from exc

        try:
            yield FormPage(
                page,
                action_timeout_ms=int(self.settings.browser_action_timeout_sec * 1000),
                nav_timeout_ms=int(self.settings.browser_nav_timeout_sec * 1000),
                settle_ms=self.settings.browser_settle_ms,
            )
        finally:
            try:
                await context.close()
            except PlaywrightError as exc:
                logger.warning("Browser context close failed: %s", exc)

    async def close(self) -> None:
        async with self._lock:
            if self._browser is not None:
                try:
                    await self._browser.close()
                except PlaywrightError as exc:
                    logger.warning("Browser close failed: %s", exc)
                self._browser = None
            await self._stop_playwright()

    async def _stop_playwright(self) -> None:
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
