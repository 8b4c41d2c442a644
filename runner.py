"""
Headless browser test runner.

Launches chromium through Playwright, loads one URL, reads the title and
captures a screenshot. Page, context and browser are released on every exit
path (success, failure, timeout), each independently of the others.
"""

import asyncio
import logging
import traceback
import uuid
from pathlib import Path
from typing import Any, Callable, List, Optional, Protocol

from playwright.async_api import async_playwright

from config import ServiceConfig
from models import ErrorInfo, Evidence, TestResult

logger = logging.getLogger(__name__)


class NavigationFailed(Exception):
    """The page did not load with an acceptable response."""


class Releasable(Protocol):
    name: str

    async def release(self) -> None:
        ...


class ClosingResource:
    """Adapts a Playwright object with an async close() (or stop()) to Releasable."""

    def __init__(self, name: str, target: Any, method: str = "close"):
        self.name = name
        self.target = target
        self.method = method

    async def release(self) -> None:
        await getattr(self.target, self.method)()


class StartingResource:
    """
    A resource whose start() is still in flight.
    release() waits for the start to finish, then stops what came up, so a
    driver spawned after the caller was cancelled is still shut down.
    """

    def __init__(self, name: str, starting: "asyncio.Future", method: str = "stop"):
        self.name = name
        self.starting = starting
        self.method = method

    async def release(self) -> None:
        try:
            target = await self.starting
        except Exception as e:
            # never came up; the start error was already reported to the caller
            logger.debug("%s did not start: %s", self.name, str(e))
            return
        await getattr(target, self.method)()


class ResourceStack:
    """
    Ordered set of acquired resources.
    release_all() releases them newest first and never raises: a failure to
    release one resource is logged and collected, and the rest are still
    released.
    """

    def __init__(self):
        self._resources: List[Releasable] = []

    def push(self, resource: Releasable) -> None:
        self._resources.append(resource)

    def acquire(self, name: str, target: Any, method: str = "close") -> Any:
        """Track a Playwright object for closing and hand it back."""
        self.push(ClosingResource(name, target, method))
        return target

    def __len__(self) -> int:
        return len(self._resources)

    async def release_all(self) -> List[Exception]:
        errors: List[Exception] = []
        while self._resources:
            resource = self._resources.pop()
            try:
                logger.debug("Closing %s...", resource.name)
                await resource.release()
            except Exception as e:
                logger.error("Error closing %s: %s", resource.name, str(e))
                errors.append(e)
        return errors


def _evidence_path(config: ServiceConfig) -> Path:
    return config.evidence_dir / f"test-evidence-{uuid.uuid4().hex}.png"


async def _save_screenshot(page, config: ServiceConfig) -> Optional[str]:
    """Full-page screenshot; failures are logged, not raised."""
    if not config.take_screenshots:
        return None
    path = _evidence_path(config)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        await page.screenshot(path=str(path), full_page=True)
    except Exception as e:
        logger.error("Failed to take screenshot: %s", str(e))
        return None
    logger.info("Saved screenshot %s", path)
    return str(path)


async def _navigate_and_inspect(resources: ResourceStack, playwright_factory, url: str,
                                expected_title: Optional[str],
                                config: ServiceConfig) -> TestResult:
    # tracked before it is awaited: a timeout mid-start must still stop the driver
    starting = asyncio.ensure_future(playwright_factory().start())
    resources.push(StartingResource("playwright", starting))
    playwright = await asyncio.shield(starting)
    logger.info("Launching headless browser...")
    browser = resources.acquire("browser", await playwright.chromium.launch(
        headless=True,
        args=list(config.browser_args),
    ))
    context = resources.acquire("context", await browser.new_context(
        viewport=config.viewport,
        user_agent=config.browser_user_agent,
    ))
    page = resources.acquire("page", await context.new_page())

    navigation_ms = config.navigation_timeout * 1000
    page.set_default_navigation_timeout(navigation_ms)

    logger.info("Navigating to %s...", url)
    response = await page.goto(url, wait_until="domcontentloaded", timeout=navigation_ms)
    if response is None:
        raise NavigationFailed(f"Failed to get response from {url}")
    if response.status >= 400:
        raise NavigationFailed(f"Received HTTP {response.status} from {url}")

    try:
        await page.wait_for_load_state("networkidle", timeout=config.network_idle_timeout * 1000)
    except Exception:
        logger.info("Network did not reach idle state, but continuing test...")

    title = await page.title()
    logger.info("Page title: %s", title)

    screenshot = await _save_screenshot(page, config)
    evidence = Evidence(screenshot=screenshot) if screenshot else None

    if expected_title is not None and title != expected_title:
        return TestResult(
            success=False,
            message=(f"Playwright test failed: The title is not '{expected_title}'. "
                     f"Actual title: '{title}'"),
            title=title,
            evidence=evidence,
        )
    return TestResult(
        success=True,
        message=f"Playwright test passed: Successfully loaded {url} with title '{title}'",
        title=title,
        evidence=evidence,
    )


def _failure(message: str, exc: BaseException, config: ServiceConfig) -> TestResult:
    stack = None
    if not config.is_production:
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return TestResult(
        success=False,
        message=f"Playwright test failed with error: {message}",
        error=ErrorInfo(name=type(exc).__name__, stack=stack),
    )


async def run_browser_test(url: str, config: ServiceConfig,
                           expected_title: Optional[str] = None,
                           playwright_factory: Callable[[], Any] = async_playwright) -> TestResult:
    """
    Load `url` in a fresh headless browser and report the outcome.

    Every failure (navigation error, HTTP status >= 400, title mismatch,
    exception, overall timeout) comes back as TestResult(success=False).
    Resources are closed page -> context -> browser -> driver before returning.
    """
    resources = ResourceStack()
    try:
        return await asyncio.wait_for(
            _navigate_and_inspect(resources, playwright_factory, url, expected_title, config),
            timeout=config.overall_timeout,
        )
    except asyncio.TimeoutError as e:
        message = f"Test execution timed out after {config.overall_timeout:g} seconds"
        logger.error("Error running Playwright test: %s", message)
        return _failure(message, e, config)
    except Exception as e:
        logger.error("Error running Playwright test: %s", str(e))
        return _failure(str(e), e, config)
    finally:
        # wait_for has already unwound the cancelled task on timeout
        if resources:
            logger.info("Closing browser...")
        await resources.release_all()
