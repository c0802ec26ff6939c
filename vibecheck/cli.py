"""
Command-Line Interface

Validate provider credentials and run one-off vibe checks against a
URL. Uses rich for colored output; ``--output json`` for machines.
"""

import asyncio
import base64
import json
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .capture import ScreenshotCapturer
from .check import decide
from .config import load_config
from .exceptions import VibeCheckError, VibeCheckFailed
from .log import setup_logging
from .models import EvaluationOptions, merge_options
from .registry import build_registry


console = Console()

# 1x1 PNG used to exercise provider credentials
SAMPLE_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


@click.group()
@click.option(
    '--env-file',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Path to .env file (defaults to ./.env)'
)
@click.option(
    '--log-level',
    default='WARNING',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
    help='Log level for provider and retry diagnostics'
)
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, env_file: Optional[Path], log_level: str):
    """
    Vibe Check - LLM-judged UI assertions

    Ask a vision model whether a UI element matches a plain-language
    specification.

    Examples:

      # Check that configured providers accept their API keys
      vibecheck validate-api

      # Capture an element and check it
      vibecheck check --url http://localhost:3000 --selector "button.submit" \\
          --spec "A blue button reading 'Submit'"
    """
    setup_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["env_file"] = env_file


@main.command('validate-api')
@click.option(
    '--provider',
    'providers',
    multiple=True,
    help='Provider name to test (repeatable). Defaults to all configured providers.'
)
@click.pass_context
def validate_api(ctx: click.Context, providers: tuple):
    """Send a test request to each configured provider."""
    config = load_config(ctx.obj["env_file"])
    registry = build_registry(config)

    names = list(providers) or registry.names
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Provider", style="cyan")
    table.add_column("Model")
    table.add_column("Status")

    failures = 0
    for name in names:
        try:
            provider = registry.resolve(name)
        except VibeCheckError as e:
            table.add_row(name, "-", f"[red]❌ {escape(str(e))}[/red]")
            failures += 1
            continue

        if not provider.is_available():
            table.add_row(name, provider.model or "-", "[yellow]⚠️  No API key, skipped[/yellow]")
            continue

        try:
            asyncio.run(provider.evaluate(
                SAMPLE_PNG,
                "A test image for API validation",
                EvaluationOptions(max_retries=1, include_raw_response=False)
            ))
        except Exception as e:
            table.add_row(name, provider.model or "-", f"[red]❌ {escape(str(e))}[/red]")
            failures += 1
        else:
            table.add_row(name, provider.model or "-", "[green]✅ OK[/green]")

    console.print(table)
    sys.exit(1 if failures else 0)


@main.command()
@click.option('--url', required=True, help='Page URL (file:// or http(s)://)')
@click.option('--selector', required=True, help='CSS selector of the element to check')
@click.option('--spec', 'specification', required=True, help='What the element should look like')
@click.option('--wait-for', default=None, help='CSS selector to wait for before capture')
@click.option('--provider', default=None, help='Registry name of the provider to use')
@click.option('--threshold', default=None, type=click.FloatRange(0, 1), help='Confidence threshold')
@click.option('--max-retries', default=None, type=click.IntRange(min=1), help='Attempts per check')
@click.option('--include-raw', is_flag=True, default=False, help='Include the raw model reply')
@click.option(
    '--output',
    default='rich',
    type=click.Choice(['rich', 'json'], case_sensitive=False),
    help='Output format: rich (colored terminal) or json (for agents)'
)
@click.pass_context
def check(
    ctx: click.Context,
    url: str,
    selector: str,
    specification: str,
    wait_for: Optional[str],
    provider: Optional[str],
    threshold: Optional[float],
    max_retries: Optional[int],
    include_raw: bool,
    output: str
):
    """Capture an element and vibe-check it against a specification."""
    try:
        config = load_config(ctx.obj["env_file"])
        registry = build_registry(config)
        backend = registry.resolve(provider)

        call_options = EvaluationOptions(
            confidence_threshold=threshold,
            max_retries=max_retries,
            include_raw_response=include_raw or None,
        )
        effective = backend.resolve_options(merge_options(call_options, config.evaluation))

        capturer = ScreenshotCapturer(output_dir=config.screenshots_dir)
        screenshot_path = asyncio.run(capturer.capture_element(url, selector, wait_for=wait_for))

        result = asyncio.run(registry.evaluate(screenshot_path, specification, effective, provider))
    except VibeCheckError as e:
        console.print(f"[red]❌ Error: {escape(str(e))}[/red]")
        sys.exit(2)

    try:
        decide(result, effective.confidence_threshold, specification, screenshot_path)
        passed, message = True, None
    except VibeCheckFailed as e:
        passed, message = False, str(e)

    if output == 'json':
        _output_json(result, passed, effective.confidence_threshold, screenshot_path)
    else:
        _output_rich(result, passed, message, backend.name, screenshot_path)

    sys.exit(0 if passed else 1)


def _output_rich(result, passed: bool, message: Optional[str], provider_name: str, screenshot_path: Path):
    """Output result in rich formatted terminal output"""
    console.print()
    if passed:
        console.print(Panel.fit(
            f"[bold green]✅ Vibe check passed[/bold green]\n"
            f"Provider: {provider_name}\n"
            f"Confidence: {result.confidence:.2f}\n\n"
            f"{escape(result.reasoning)}",
            border_style="green"
        ))
    else:
        console.print(Panel.fit(escape(message), title=f"❌ {provider_name}", border_style="red"))

    console.print(f"\n[dim]📸 Screenshot: {screenshot_path}[/dim]")
    console.print()


def _output_json(result, passed: bool, threshold: float, screenshot_path: Path):
    """Output result as JSON for coding agents"""
    output = {
        "passed": passed,
        "threshold": threshold,
        "screenshot_path": str(screenshot_path),
        **result.model_dump(by_alias=True, exclude_none=True),
    }

    print(json.dumps(output, indent=2, default=str))


if __name__ == "__main__":
    main()
