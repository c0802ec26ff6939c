"""
pytest integration

Registered through the ``pytest11`` entry point. Provides a session
registry built from configuration and a per-test ``vibe`` fixture:

    def test_submit_button(page, vibe):
        page.goto("http://localhost:3000")
        vibe.element(page.locator("button.submit"), "A blue button reading 'Submit'")
"""

from pathlib import Path

import pytest

from .check import VibeChecker
from .config import load_config
from .registry import build_registry


def pytest_addoption(parser):
    group = parser.getgroup("vibecheck", "LLM vibe checks")
    group.addoption(
        "--vibe-provider",
        default=None,
        help="Provider name for vibe checks (overrides VIBE_DEFAULT_PROVIDER)",
    )
    group.addoption(
        "--vibe-threshold",
        type=float,
        default=None,
        help="Confidence threshold for vibe checks",
    )
    parser.addini("vibe_env_file", "Path to .env file for vibe checks", default=None)
    parser.addini("vibe_confidence_threshold", "Default confidence threshold", default=None)
    parser.addini("vibe_max_retries", "Default number of attempts per check", default=None)
    parser.addini("vibe_screenshots_dir", "Directory for vibe check screenshots", default=None)


def _run_overrides(pytestconfig) -> dict:
    """Collect ini options and command line flags as a run-config mapping"""
    overrides: dict = {"evaluation": {}}

    threshold = pytestconfig.getoption("vibe_threshold")
    if threshold is None:
        threshold = pytestconfig.getini("vibe_confidence_threshold")
    if threshold not in (None, ""):
        overrides["evaluation"]["confidence_threshold"] = float(threshold)

    max_retries = pytestconfig.getini("vibe_max_retries")
    if max_retries:
        overrides["evaluation"]["max_retries"] = int(max_retries)

    screenshots_dir = pytestconfig.getini("vibe_screenshots_dir")
    if screenshots_dir:
        overrides["screenshots_dir"] = screenshots_dir

    provider = pytestconfig.getoption("vibe_provider")
    if provider:
        overrides["default_provider"] = provider

    return overrides


@pytest.fixture(scope="session")
def vibe_config(pytestconfig):
    """VibeConfig for this test session"""
    env_file = pytestconfig.getini("vibe_env_file")
    return load_config(
        env_file=Path(env_file) if env_file else None,
        overrides=_run_overrides(pytestconfig),
    )


@pytest.fixture(scope="session")
def vibe_registry(vibe_config):
    """Provider registry shared by every test in the session"""
    return build_registry(vibe_config)


@pytest.fixture
def vibe(request, vibe_registry, vibe_config):
    """VibeChecker bound to the current test"""
    return VibeChecker(
        vibe_registry,
        settings=vibe_config.evaluation,
        screenshots_dir=vibe_config.screenshots_dir / Path(request.node.path).stem,
        test_name=request.node.name,
    )
