"""
Screenshot Capture Module

Captures element screenshots for vibe checks using Playwright.
Handles navigation, element waiting, and screenshot naming.
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from playwright.async_api import async_playwright, TimeoutError as PlaywrightTimeout

from .exceptions import ArtifactError


def screenshot_name(test_name: str, name: str = "vibe-check", now: Optional[datetime] = None) -> str:
    """
    Build a unique screenshot file name.

    Format: {test-name}-{name}-{timestamp}.png

    Example:
        screenshot_name("Submit button looks right")
        # 'submit-button-looks-right-vibe-check-2025-01-31T12-00-00-000000.png'
    """
    slug = re.sub(r"\s+", "-", test_name.strip()).lower()
    slug = "".join(c for c in slug if c.isalnum() or c in "-_")
    timestamp = (now or datetime.now()).isoformat().replace(":", "-").replace(".", "-")
    return f"{slug}-{name}-{timestamp}.png"


def capture_locator(locator, output_path: Path) -> Path:
    """
    Screenshot a Playwright (sync API) locator or element handle.

    Args:
        locator: Object exposing ``screenshot(path=...)``
        output_path: Where to write the PNG

    Returns:
        The written path

    Raises:
        ArtifactError: If no screenshot was written
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    locator.screenshot(path=str(output_path))

    if not output_path.exists():
        raise ArtifactError(f"Screenshot was not written to {output_path}")

    return output_path


class ScreenshotCapturer:
    """
    Captures element screenshots of web pages using headless Playwright.

    Example:
        capturer = ScreenshotCapturer(output_dir=Path("screenshots"))
        path = await capturer.capture_element(
            url="http://localhost:3000",
            element_selector="button[type=submit]",
        )
    """

    def __init__(
        self,
        viewport: Optional[dict] = None,
        output_dir: Optional[Path] = None
    ):
        """
        Initialize screenshot capturer.

        Args:
            viewport: Viewport dimensions {"width": int, "height": int}
                     Defaults to 1280x720
            output_dir: Directory to save screenshots
                       Defaults to ./screenshots/
        """
        self.viewport = viewport or {"width": 1280, "height": 720}
        self.output_dir = output_dir or Path("screenshots")

    async def capture_element(
        self,
        url: str,
        element_selector: str,
        wait_for: Optional[str] = None,
        output_path: Optional[Path] = None,
        name: str = "vibe-check",
        wait_timeout: int = 5000
    ) -> Path:
        """
        Capture screenshot of a specific element only.

        Args:
            url: Page URL (file:// or http(s)://)
            element_selector: CSS selector of element to capture
            wait_for: Optional selector to wait for before capture
            output_path: Custom output path; generated when None
            name: Label used in the generated file name
            wait_timeout: Milliseconds to wait for elements

        Returns:
            Path to saved screenshot

        Raises:
            ArtifactError: If the page or element cannot be captured
        """
        screenshot_path = output_path or self.output_dir / screenshot_name(element_selector, name)
        screenshot_path.parent.mkdir(parents=True, exist_ok=True)

        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=True)
            try:
                page = await browser.new_page(viewport=self.viewport)
                await page.goto(url, wait_until="networkidle", timeout=wait_timeout)

                if wait_for:
                    await page.wait_for_selector(wait_for, timeout=wait_timeout)

                element = await page.query_selector(element_selector)
                if not element:
                    raise ArtifactError(f"Element not found: {element_selector}")

                await element.screenshot(path=str(screenshot_path), type="png")
            except PlaywrightTimeout as e:
                raise ArtifactError(f"Screenshot capture timed out: {e}") from e
            finally:
                await browser.close()

        return screenshot_path
