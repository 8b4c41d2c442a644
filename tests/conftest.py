"""Shared fixtures: a recording stand-in for the Playwright driver."""

import asyncio
from pathlib import Path
from typing import Any

import pytest

from config import ServiceConfig


class FakeResponse:
    def __init__(self, status: int):
        self.status = status


class FakePlaywright:
    """Stands in for async_playwright().

    Records every acquire/release in `events` and can be told to fail at any
    step. Calling the instance returns itself, so it doubles as the factory.
    """

    def __init__(
        self,
        *,
        status: int | None = 200,
        title: str = "Example Domain",
        goto_error: Exception | None = None,
        start_delay: float = 0.0,
        goto_delay: float = 0.0,
        idle_error: Exception | None = None,
        screenshot_error: Exception | None = None,
        new_page_error: Exception | None = None,
        close_errors: tuple[str, ...] = (),
    ) -> None:
        self.status = status
        self.title = title
        self.goto_error = goto_error
        self.start_delay = start_delay
        self.goto_delay = goto_delay
        self.idle_error = idle_error
        self.screenshot_error = screenshot_error
        self.new_page_error = new_page_error
        self.close_errors = close_errors
        self.events: list[str] = []
        self.launch_kwargs: dict[str, Any] = {}
        self.context_kwargs: dict[str, Any] = {}
        self.goto_kwargs: dict[str, Any] = {}
        self.navigation_timeout: float | None = None
        self.screenshots: list[Path] = []
        self.chromium = self

    def __call__(self) -> "FakePlaywright":
        return self

    def _closed(self, name: str) -> None:
        self.events.append(f"{name}.close")
        if name in self.close_errors:
            raise RuntimeError(f"{name} refused to close")

    async def start(self) -> "FakePlaywright":
        if self.start_delay:
            await asyncio.sleep(self.start_delay)
        self.events.append("start")
        return self

    async def stop(self) -> None:
        self._closed("playwright")

    async def launch(self, **kwargs: Any) -> "FakeBrowser":
        self.events.append("launch")
        self.launch_kwargs = kwargs
        return FakeBrowser(self)


class FakeBrowser:
    def __init__(self, driver: FakePlaywright) -> None:
        self.driver = driver

    async def new_context(self, **kwargs: Any) -> "FakeContext":
        self.driver.events.append("new_context")
        self.driver.context_kwargs = kwargs
        return FakeContext(self.driver)

    async def close(self) -> None:
        self.driver._closed("browser")


class FakeContext:
    def __init__(self, driver: FakePlaywright) -> None:
        self.driver = driver

    async def new_page(self) -> "FakePage":
        if self.driver.new_page_error is not None:
            raise self.driver.new_page_error
        self.driver.events.append("new_page")
        return FakePage(self.driver)

    async def close(self) -> None:
        self.driver._closed("context")


class FakePage:
    def __init__(self, driver: FakePlaywright) -> None:
        self.driver = driver

    def set_default_navigation_timeout(self, timeout: float) -> None:
        self.driver.navigation_timeout = timeout

    async def goto(self, url: str, **kwargs: Any) -> FakeResponse | None:
        self.driver.events.append("goto")
        self.driver.goto_kwargs = {"url": url, **kwargs}
        if self.driver.goto_delay:
            await asyncio.sleep(self.driver.goto_delay)
        if self.driver.goto_error is not None:
            raise self.driver.goto_error
        if self.driver.status is None:
            return None
        return FakeResponse(self.driver.status)

    async def wait_for_load_state(self, state: str, **kwargs: Any) -> None:
        if self.driver.idle_error is not None:
            raise self.driver.idle_error

    async def title(self) -> str:
        return self.driver.title

    async def screenshot(self, *, path: str, full_page: bool) -> None:
        if self.driver.screenshot_error is not None:
            raise self.driver.screenshot_error
        Path(path).write_bytes(b"\x89PNG fake")
        self.driver.screenshots.append(Path(path))

    async def close(self) -> None:
        self.driver._closed("page")


@pytest.fixture
def config(tmp_path: Path) -> ServiceConfig:
    """Config whose screenshots land in a throwaway directory."""
    return ServiceConfig(evidence_dir=tmp_path / "evidence")


@pytest.fixture
def make_driver() -> type[FakePlaywright]:
    """Build a fake Playwright driver; keyword arguments pick the failure."""
    return FakePlaywright
