"""
Page renderers.

PageRenderer drives a Playwright headless browser to capture the DOM after
JavaScript execution; HttpRenderer fetches plain markup with aiohttp. Both
return a RenderResult and never raise on navigation failure.
"""

import asyncio
from typing import Dict, Optional

import aiohttp
from aiohttp import ClientError, ClientTimeout
from playwright.async_api import async_playwright, Browser, Page, Response, TimeoutError as PlaywrightTimeout

from .extractor import AssetExtractor, NETWORK_RESOURCE_TYPES, guess_category
from .models import NavigationLink, RenderResult, ResourceCategory
from ..utils.constants import DEFAULT_PAGE_TIMEOUT, DEFAULT_TIMEOUT, DEFAULT_USER_AGENT
from ..utils.errors import NavigationError
from ..utils.log import get_logger
from ..utils.paths import normalize_url


def build_result(
    extractor: AssetExtractor,
    url: str,
    markup: str,
    final_url: str,
    network_resources: Optional[Dict[str, ResourceCategory]] = None
) -> RenderResult:
    """Build a successful RenderResult from rendered markup."""
    assets = extractor.extract(markup, final_url)

    resources = dict(network_resources or {})
    for resource_url, category in assets.resources.items():
        if resources.get(resource_url, ResourceCategory.OTHER) is ResourceCategory.OTHER:
            resources[resource_url] = category

    links = [
        NavigationLink(url=link, path=extractor.navigation_path(link) or '/')
        for link in assets.links
    ]

    return RenderResult(
        url=url,
        markup=markup,
        final_url=final_url,
        title=assets.title,
        resource_urls=resources,
        navigation_links=links,
    )


class PageRenderer:
    """
    Renders web pages using Playwright headless browser.

    Captures the final DOM after JavaScript execution, plus every resource
    the page requested while loading.
    """

    def __init__(
        self,
        timeout: int = DEFAULT_PAGE_TIMEOUT,
        wait_until: str = "networkidle",
        headless: bool = True,
        user_agent: str = DEFAULT_USER_AGENT,
        settle_delay: float = 1.0
    ):
        """
        Initialize the page renderer.

        Args:
            timeout: Page load timeout in milliseconds
            wait_until: Event to wait for ('load', 'domcontentloaded', 'networkidle')
            headless: Run browser in headless mode
            user_agent: User agent for the browser context
            settle_delay: Seconds to wait for late dynamic content
        """
        self.timeout = timeout
        self.wait_until = wait_until
        self.headless = headless
        self.user_agent = user_agent
        self.settle_delay = settle_delay
        self.logger = get_logger("renderer")
        self.extractor = AssetExtractor()

        self._playwright = None
        self._browser: Optional[Browser] = None

    async def start(self) -> None:
        """
        Start the Playwright browser instance.
        """
        if self._browser:
            return
        self.logger.info("Starting Playwright browser...")
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless,
            args=[
                '--disable-blink-features=AutomationControlled',
                '--no-sandbox',
                '--disable-dev-shm-usage',
            ]
        )
        self.logger.info("Browser started successfully")

    async def stop(self) -> None:
        """
        Stop the Playwright browser instance.
        """
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        self.logger.info("Browser stopped")

    async def render(self, url: str) -> RenderResult:
        """
        Render a page and collect its markup, links and resources.

        Args:
            url: URL to render

        Returns:
            RenderResult; on failure its error field is set instead
        """
        try:
            if not self._browser:
                await self.start()
            return await self._render(url)
        except NavigationError as e:
            self.logger.warning(f"Failed to render {url}: {e}")
            return RenderResult(url=url, error=str(e))
        except PlaywrightTimeout:
            self.logger.warning(f"Timeout rendering {url}")
            return RenderResult(url=url, error=f"Timeout after {self.timeout}ms")
        except Exception as e:
            self.logger.error(f"Error rendering {url}: {e}")
            return RenderResult(url=url, error=str(e))

    async def _render(self, url: str) -> RenderResult:
        network_resources: Dict[str, ResourceCategory] = {}

        def on_response(response: Response) -> None:
            resource_url = normalize_url(response.url, keep_trailing_slash=True)
            if not resource_url or response.status >= 400:
                return
            category = NETWORK_RESOURCE_TYPES.get(response.request.resource_type)
            if category is None:
                return
            if category is ResourceCategory.OTHER:
                category = guess_category(resource_url)
            network_resources.setdefault(resource_url, category)

        context = await self._browser.new_context(
            user_agent=self.user_agent,
            viewport={"width": 1920, "height": 1080},
            ignore_https_errors=True,
        )
        page: Optional[Page] = None

        try:
            page = await context.new_page()
            page.on("response", on_response)

            self.logger.debug(f"Rendering: {url}")
            response = await page.goto(
                url,
                wait_until=self.wait_until,
                timeout=self.timeout
            )

            if not response:
                raise NavigationError(f"No response for {url}")
            if response.status >= 400:
                raise NavigationError(f"HTTP {response.status}")

            # Wait for any additional dynamic content
            if self.settle_delay:
                await asyncio.sleep(self.settle_delay)

            final_url = normalize_url(page.url) or url
            html_content = await page.content()

            self.logger.debug(f"Successfully rendered: {final_url}")
            return build_result(self.extractor, url, html_content, final_url, network_resources)
        finally:
            if page:
                await page.close()
            await context.close()

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.stop()


class HttpRenderer:
    """
    Fetches pages over plain HTTP without running JavaScript.

    Used for statically generated sites and in tests.
    """

    def __init__(
        self,
        timeout: int = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT
    ):
        """
        Args:
            timeout: Request timeout in seconds
            user_agent: User agent string for requests
        """
        self.timeout = ClientTimeout(total=timeout)
        self.user_agent = user_agent
        self.logger = get_logger("renderer")
        self.extractor = AssetExtractor()

        self._session: Optional[aiohttp.ClientSession] = None

    async def start(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent}
            )

    async def stop(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def render(self, url: str) -> RenderResult:
        """
        Fetch a page and collect its markup, links and resources.

        Args:
            url: URL to fetch

        Returns:
            RenderResult; on failure its error field is set instead
        """
        if self._session is None:
            await self.start()

        try:
            self.logger.debug(f"Fetching: {url}")
            async with self._session.get(url, allow_redirects=True) as response:
                if response.status >= 400:
                    raise NavigationError(f"HTTP {response.status}")
                html_content = await response.text(errors="replace")
                final_url = normalize_url(str(response.url)) or url
        except NavigationError as e:
            self.logger.warning(f"Failed to fetch {url}: {e}")
            return RenderResult(url=url, error=str(e))
        except asyncio.TimeoutError:
            self.logger.warning(f"Timeout fetching {url}")
            return RenderResult(url=url, error="Timeout")
        except ClientError as e:
            self.logger.warning(f"Client error fetching {url}: {e}")
            return RenderResult(url=url, error=str(e) or type(e).__name__)

        return build_result(self.extractor, url, html_content, final_url)

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
