"""
Vibe Check Orchestration

Runs an evaluation through the registry and turns the result into a
pass/fail decision that test runners understand.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Optional

from .capture import capture_locator, screenshot_name
from .exceptions import VibeCheckFailed
from .models import EvaluationOptions, EvaluationResult, OptionsLike, merge_options
from .providers.base import ImageInput
from .registry import ProviderRegistry

logger = logging.getLogger(__name__)


def is_pass(result: EvaluationResult, threshold: float) -> bool:
    """A check passes only on a "yes" verdict at or above the threshold"""
    return result.verdict == "yes" and result.confidence >= threshold


def describe_artifact(image: ImageInput) -> str:
    if isinstance(image, bytes):
        return f"<in-memory image, {len(image)} bytes>"
    return str(image)


def format_failure(
    result: EvaluationResult,
    threshold: float,
    specification: str,
    artifact: str
) -> str:
    lines = [
        "Vibe check failed!",
        f'Specification: "{specification}"',
        f"Confidence: {result.confidence:.2f} (threshold: {threshold})",
        f"Reasoning: {result.reasoning or 'No reasoning provided'}",
    ]
    if result.fail_reason:
        lines.append(f"Fail reason: {result.fail_reason}")
    if result.suggestions:
        lines.append(f"Suggestions: {', '.join(result.suggestions)}")
    lines.append(f"Screenshot path: {artifact}")
    return "\n".join(lines)


def decide(
    result: EvaluationResult,
    threshold: float,
    specification: str,
    image: ImageInput
) -> None:
    """
    Decision gate for a vibe check.

    Raises:
        VibeCheckFailed: Unless verdict is "yes" and confidence >= threshold
    """
    if is_pass(result, threshold):
        logger.info("Vibe check passed (confidence: %.2f)", result.confidence)
        return

    artifact = describe_artifact(image)
    raise VibeCheckFailed(
        format_failure(result, threshold, specification, artifact),
        result=result,
        threshold=threshold,
        specification=specification,
        artifact=artifact,
    )


async def vibe_check(
    registry: ProviderRegistry,
    image: ImageInput,
    specification: str,
    options: OptionsLike = None,
    provider: Optional[str] = None,
    settings: OptionsLike = None,
    subject: Any = None
) -> Any:
    """
    Assert that a screenshot matches a natural-language specification.

    Options resolve as call-site > ``settings`` (run config) >
    provider defaults > hard defaults.

    Args:
        registry: Registry holding the providers for this run
        image: Screenshot path or PNG bytes from the capture step
        specification: What the element should look like
        options: Call-site options
        provider: Registry name; the default provider when None
        settings: Global evaluation defaults from the run configuration
        subject: Returned unchanged on pass so callers can chain

    Returns:
        ``subject``

    Raises:
        VibeCheckFailed: The model said no, or was not confident enough
    """
    backend = registry.resolve(provider)
    effective = backend.resolve_options(merge_options(options, settings))

    logger.info(
        'Evaluating "%s" with %s (threshold %s)',
        specification[:40] + ("..." if len(specification) > 40 else ""),
        backend.name, effective.confidence_threshold,
    )

    result = await registry.evaluate(image, specification, effective, provider)
    decide(result, effective.confidence_threshold, specification, image)

    return subject


def _run_blocking(coro) -> Any:
    """
    Run a coroutine to completion on a private event loop in a worker thread.

    The calling thread may already have a running loop (sync Playwright
    registers one), where ``asyncio.run`` would refuse to start.
    """
    with ThreadPoolExecutor(max_workers=1) as executor:
        return executor.submit(asyncio.run, coro).result()


class VibeChecker:
    """
    Synchronous vibe-check facade bound to a registry and run settings.

    This is what the pytest ``vibe`` fixture hands to tests.

    Example:
        vibe.configure(provider="anthropic", confidence_threshold=0.75)
        vibe.element(page.locator("button.submit"), "A blue submit button")
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        settings: Optional[EvaluationOptions] = None,
        provider: Optional[str] = None,
        screenshots_dir: Path = Path("screenshots"),
        test_name: str = "vibe"
    ):
        self.registry = registry
        self.settings = settings or EvaluationOptions()
        self.provider = provider
        self.screenshots_dir = Path(screenshots_dir)
        self.test_name = test_name

    def configure(self, provider: Optional[str] = None, **options) -> "VibeChecker":
        """
        Change defaults for the following checks.

        Args:
            provider: Registry name to use from now on
            **options: EvaluationOptions fields (confidence_threshold, ...)
        """
        if provider is not None:
            self.registry.resolve(provider)
            self.provider = provider
        self.settings = merge_options(options, self.settings)
        logger.info(
            "Vibe checks configured with provider: %s, confidence: %s",
            self.provider or self.registry.default_name, self.settings.confidence_threshold
        )
        return self

    async def acheck(
        self,
        image: ImageInput,
        specification: str,
        provider: Optional[str] = None,
        subject: Any = None,
        **options
    ) -> Any:
        return await vibe_check(
            self.registry,
            image,
            specification,
            options=options or None,
            provider=provider or self.provider,
            settings=self.settings,
            subject=subject,
        )

    def check(
        self,
        image: ImageInput,
        specification: str,
        provider: Optional[str] = None,
        subject: Any = None,
        **options
    ) -> Any:
        """Blocking vibe check of an existing screenshot"""
        return _run_blocking(self.acheck(image, specification, provider=provider, subject=subject, **options))

    def element(
        self,
        locator,
        specification: str,
        name: str = "vibe-check",
        provider: Optional[str] = None,
        **options
    ):
        """
        Screenshot a Playwright locator and vibe-check it.

        Returns:
            The locator, for chaining
        """
        if locator is None:
            raise ValueError("No element given for vibe check")

        path = self.screenshots_dir / screenshot_name(self.test_name, name)
        capture_locator(locator, path)
        logger.info("Screenshot captured at: %s", path)

        return self.check(path, specification, provider=provider, subject=locator, **options)
