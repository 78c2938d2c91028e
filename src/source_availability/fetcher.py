"""
Page fetchers for source availability checks.

A fetcher loads a single source URL under a hard deadline and returns a
PageSnapshot, or raises TransportError. Every call owns its resources: the
browser fetcher launches a fresh browser and an isolated context per call
and tears both down on every exit path, including cancellation.

Strategies:
- BrowserFetcher: headless Chromium via playwright, for platforms that
  render availability client-side
- HttpFetcher: plain HTTP GET via httpx, for server-rendered platforms
- SimulatedFetcher: canned page, no network (simulation mode)
"""

import asyncio
import re
import time
from typing import Any, Callable, Optional, Protocol, runtime_checkable

import httpx
from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .config import FetcherConfig, SystemConfig
from .enums import FetchStrategy, TransportErrorCode
from .exceptions import TransportError
from .models import PageSnapshot


# Visible-text markers of bot-detection and access-denied interstitials
CHALLENGE_MARKERS = (
    "pardon our interruption",
    "verify you are a human",
    "are you a robot",
    "checking your browser before accessing",
    "please enable cookies and javascript",
    "access denied",
)

# Challenge pages are short; long pages mentioning a marker are real content
CHALLENGE_MAX_TEXT_LENGTH = 2000

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Collapse whitespace runs to single spaces."""
    return _WHITESPACE.sub(" ", text).strip()


def html_to_text(html: str) -> str:
    """Extract visible text from an HTML document."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    return normalize_text(soup.get_text(" "))


def validate_snapshot(snapshot: PageSnapshot, min_content_length: int) -> PageSnapshot:
    """
    Reject snapshots that must not be classified.

    Empty or unexpectedly short pages and bot-detection interstitials are
    malformed fetches, not evidence of availability.

    Raises:
        TransportError: If the snapshot is too short or a challenge page
    """
    text = normalize_text(snapshot.text or "")

    if len(text) < min_content_length:
        raise TransportError(
            code=TransportErrorCode.CONTENT_TOO_SHORT.value,
            message=(
                f"Page content too short: {len(text)} characters "
                f"(minimum {min_content_length})"
            ),
            details={"url": snapshot.url, "length": len(text)},
        )

    if len(text) <= CHALLENGE_MAX_TEXT_LENGTH:
        lowered = text.lower()
        for marker in CHALLENGE_MARKERS:
            if marker in lowered:
                raise TransportError(
                    code=TransportErrorCode.BOT_CHALLENGE.value,
                    message=f"Bot challenge page detected: {marker!r}",
                    details={"url": snapshot.url, "marker": marker},
                )

    return snapshot


@runtime_checkable
class Fetcher(Protocol):
    """Protocol defining the interface for page fetchers."""

    async def fetch(self, url: str, timeout: float) -> PageSnapshot:
        """
        Load a page and return its snapshot.

        Args:
            url: Absolute URL of the source listing
            timeout: Hard deadline in seconds

        Returns:
            PageSnapshot of the loaded page

        Raises:
            TransportError: On any failure to produce a usable snapshot
        """
        ...

    def get_name(self) -> str:
        """Return the fetcher name."""
        ...


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * 1000


def _check_timeout(timeout: float) -> None:
    if timeout <= 0:
        raise ValueError(f"Fetch timeout must be positive, got {timeout}")


class BrowserFetcher:
    """
    Headless browser fetcher.

    Launches Chromium, opens an isolated context with a realistic user agent,
    aborts image/stylesheet/font/media requests, navigates until the DOM is
    ready and captures the serialized DOM and visible text.
    """

    def __init__(
        self,
        config: FetcherConfig,
        playwright_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        """
        Initialize the browser fetcher.

        Args:
            config: Fetcher configuration
            playwright_factory: Callable returning an async context manager
                that yields a playwright instance (defaults to async_playwright)
        """
        self._config = config
        self._playwright_factory = playwright_factory or async_playwright
        self._blocked = frozenset(config.blocked_resource_types)

    def get_name(self) -> str:
        return "browser"

    async def fetch(self, url: str, timeout: float) -> PageSnapshot:
        _check_timeout(timeout)
        start_time = time.perf_counter()

        try:
            snapshot = await asyncio.wait_for(self._load(url, timeout), timeout)
        except TransportError:
            raise
        except (asyncio.TimeoutError, PlaywrightTimeoutError):
            raise TransportError(
                code=TransportErrorCode.TIMEOUT.value,
                message=f"Page load timed out after {timeout}s",
                details={"url": url, "elapsed_ms": _elapsed_ms(start_time)},
            )
        except PlaywrightError as e:
            raise TransportError(
                code=self._classify_error(e).value,
                message=f"Browser error: {e.message}",
                details={"url": url},
            )

        return validate_snapshot(snapshot, self._config.min_content_length)

    async def _load(self, url: str, timeout: float) -> PageSnapshot:
        start_time = time.perf_counter()

        async with self._playwright_factory() as playwright:
            browser = await playwright.chromium.launch(
                headless=self._config.headless,
                args=list(self._config.launch_args),
            )
            try:
                context = await browser.new_context(user_agent=self._config.user_agent)
                try:
                    await context.route("**/*", self._route_filter)
                    page = await context.new_page()
                    response = await page.goto(
                        url,
                        wait_until="domcontentloaded",
                        timeout=timeout * 1000,
                    )
                    status = response.status if response is not None else None
                    if status is not None and not 200 <= status < 300:
                        raise TransportError(
                            code=TransportErrorCode.HTTP_ERROR.value,
                            message=f"Source returned HTTP {status}",
                            details={"url": url, "http_status": status},
                        )
                    html = await page.content()
                    text = await page.evaluate(
                        "() => document.body ? document.body.innerText : ''"
                    )
                    final_url = page.url
                finally:
                    await context.close()
            finally:
                await browser.close()

        return PageSnapshot(
            url=url,
            html=html,
            text=normalize_text(text or ""),
            final_url=final_url,
            http_status=status,
            elapsed_ms=_elapsed_ms(start_time),
        )

    async def _route_filter(self, route: Any) -> None:
        """Abort sub-resources that carry no availability information."""
        if route.request.resource_type in self._blocked:
            await route.abort()
        else:
            await route.continue_()

    @staticmethod
    def _classify_error(error: PlaywrightError) -> TransportErrorCode:
        message = (error.message or "").lower()
        if "err_too_many_redirects" in message:
            return TransportErrorCode.REDIRECT_LOOP
        if "crash" in message:
            return TransportErrorCode.RENDER_CRASH
        return TransportErrorCode.NETWORK_ERROR


class HttpFetcher:
    """
    Plain HTTP fetcher.

    Lighter strategy for platforms that render availability server-side.
    Same contract and content validation as the browser fetcher.
    """

    def __init__(
        self,
        config: FetcherConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the HTTP fetcher.

        Args:
            config: Fetcher configuration
            transport: Optional httpx transport (used by tests)
        """
        self._config = config
        self._transport = transport

    def get_name(self) -> str:
        return "http"

    async def fetch(self, url: str, timeout: float) -> PageSnapshot:
        _check_timeout(timeout)
        start_time = time.perf_counter()

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(timeout),
                follow_redirects=True,
                max_redirects=self._config.max_redirects,
                headers={
                    "User-Agent": self._config.user_agent,
                    "Accept": "text/html,application/xhtml+xml",
                },
                transport=self._transport,
            ) as client:
                response = await asyncio.wait_for(client.get(url), timeout)
        except (httpx.TimeoutException, asyncio.TimeoutError):
            raise TransportError(
                code=TransportErrorCode.TIMEOUT.value,
                message=f"Page load timed out after {timeout}s",
                details={"url": url, "elapsed_ms": _elapsed_ms(start_time)},
            )
        except httpx.TooManyRedirects as e:
            raise TransportError(
                code=TransportErrorCode.REDIRECT_LOOP.value,
                message=f"Too many redirects: {e}",
                details={"url": url},
            )
        except httpx.HTTPError as e:
            raise TransportError(
                code=TransportErrorCode.NETWORK_ERROR.value,
                message=f"Connection error: {e}",
                details={"url": url},
            )

        if not 200 <= response.status_code < 300:
            raise TransportError(
                code=TransportErrorCode.HTTP_ERROR.value,
                message=f"Source returned HTTP {response.status_code}",
                details={"url": url, "http_status": response.status_code},
            )

        html = response.text
        snapshot = PageSnapshot(
            url=url,
            html=html,
            text=html_to_text(html),
            final_url=str(response.url),
            http_status=response.status_code,
            elapsed_ms=_elapsed_ms(start_time),
        )
        return validate_snapshot(snapshot, self._config.min_content_length)


SIMULATED_PAGE_HTML = (
    "<html><head><title>Simulated listing</title></head><body>"
    "<h1>Simulated listing</h1>"
    "<p>This page is produced in simulation mode. No request was sent to the "
    "source platform. The listing shows its title, its price, the seller "
    "details, shipping options and a purchase button, like a regular "
    "product page on a marketplace would.</p>"
    "<button>Buy It Now</button>"
    "</body></html>"
)


class SimulatedFetcher:
    """Fetcher for simulation mode. Makes no network requests."""

    def __init__(self, html: str = SIMULATED_PAGE_HTML) -> None:
        self._html = html
        self.calls: list[str] = []

    def get_name(self) -> str:
        return "simulated"

    async def fetch(self, url: str, timeout: float) -> PageSnapshot:
        _check_timeout(timeout)
        self.calls.append(url)
        return PageSnapshot(
            url=url,
            html=self._html,
            text=html_to_text(self._html),
            final_url=url,
            http_status=200,
            elapsed_ms=0.0,
        )


def create_fetcher(config: SystemConfig) -> Fetcher:
    """Create the fetcher selected by the configuration."""
    if config.simulation_mode:
        return SimulatedFetcher()
    if config.fetcher.strategy == FetchStrategy.HTTP:
        return HttpFetcher(config.fetcher)
    return BrowserFetcher(config.fetcher)
