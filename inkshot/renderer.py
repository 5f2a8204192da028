"""Browser rendering backends.

The capture pipeline only needs one capability from a renderer: open an
isolated session with a given viewport, navigate it, snapshot it and close
it. ``PlaywrightRenderer`` does that with one shared headless Chromium and a
fresh browser context per session, so concurrent captures never share
cookies, storage or viewport state.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .errors import BrowserUnavailable, NavigationError, NavigationTimeout

logger = logging.getLogger(__name__)

CHROMIUM_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-gpu',
    '--disable-dev-shm-usage',
    '--disable-software-rasterizer',
    '--disable-extensions',
]


class RenderSession(ABC):
    """One isolated page; closed exactly once by the pipeline."""

    @abstractmethod
    async def navigate(self, url: str, timeout: float) -> None:
        """Load ``url``; ``timeout`` is in seconds.

        Raises NavigationTimeout or NavigationError.
        """

    @abstractmethod
    async def snapshot(self) -> bytes:
        """Return a PNG of the current viewport"""

    @abstractmethod
    async def close(self) -> None:
        pass


class Renderer(ABC):
    """Factory for isolated render sessions"""

    @property
    @abstractmethod
    def ready(self) -> bool:
        pass

    async def initialize(self) -> bool:
        return self.ready

    async def close(self) -> None:
        pass

    @abstractmethod
    async def open_session(self, width: int, height: int, theme: str = 'light',
                           headers: Optional[Dict[str, str]] = None) -> RenderSession:
        pass


class PlaywrightSession(RenderSession):

    def __init__(self, context, page):
        self.context = context
        self.page = page

    async def navigate(self, url: str, timeout: float) -> None:
        try:
            await self.page.goto(url, wait_until='networkidle', timeout=timeout * 1000)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(f"Timed out after {timeout:g}s loading {url}") from e
        except PlaywrightError as e:
            raise NavigationError(f"Failed to load {url}: {e.message}") from e

    async def snapshot(self) -> bytes:
        return await self.page.screenshot(type='png', full_page=False)

    async def close(self) -> None:
        await self.page.close()
        await self.context.close()


class PlaywrightRenderer(Renderer):
    """Headless Chromium shared by every capture"""

    def __init__(self, headless: bool = True):
        self.headless = headless
        self.playwright = None
        self.browser = None

    @property
    def ready(self) -> bool:
        return self.browser is not None and self.browser.is_connected()

    async def initialize(self) -> bool:
        logger.info("Initializing Playwright browser...")
        try:
            self.playwright = await async_playwright().start()
            self.browser = await self.playwright.chromium.launch(headless=self.headless, args=CHROMIUM_ARGS)
        except Exception as e:
            error_msg = str(e)
            if "Executable doesn't exist" in error_msg or "browser is not installed" in error_msg.lower():
                logger.error("Playwright browser not installed. Please run: playwright install chromium")
            else:
                logger.error(f"Failed to initialize browser: {e}")
            await self.close()
            return False

        logger.info("Browser initialized successfully")
        return True

    async def close(self) -> None:
        if self.browser:
            await self.browser.close()
            self.browser = None
        if self.playwright:
            await self.playwright.stop()
            self.playwright = None

    async def open_session(self, width: int, height: int, theme: str = 'light',
                           headers: Optional[Dict[str, str]] = None) -> RenderSession:
        if not self.ready:
            raise BrowserUnavailable("Browser not initialized")

        context = await self.browser.new_context(
            viewport={'width': width, 'height': height},
            device_scale_factor=1.0,
            color_scheme='dark' if theme == 'dark' else 'light',
            extra_http_headers=headers or {},
        )
        try:
            page = await context.new_page()
        except Exception:
            await context.close()
            raise
        return PlaywrightSession(context, page)
