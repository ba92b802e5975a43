"""CLI entry point for the pizza API load tester."""

import asyncio
import logging
import signal
import sys

import click
import httpx

from pizza_perf.config import Settings
from pizza_perf.evidence import append_event, create_event
from pizza_perf.loader import PlanValidationError, load_plan
from pizza_perf.orchestrator import Orchestrator
from pizza_perf.presets import PRESETS, get_preset, list_presets, write_plan_yaml
from pizza_perf.report import render_summary, report_to_json
from pizza_perf.thresholds import ThresholdParseError

logger = logging.getLogger(__name__)

EXIT_PASS = 0
EXIT_THRESHOLD_BREACH = 1
EXIT_SCRIPT_ERROR = 2

MOCK_BASE_URL = "http://mock-pizza"


@click.group()
def main():
    """Pizza API load tester -- run load plans and check their thresholds."""


@main.command()
@click.option("--plan", "plan_path", default=None, type=click.Path(exists=True), help="Path to a load plan (YAML or JSON).")
@click.option("--preset", default=None, type=click.Choice(list(PRESETS)), help="Run a built-in plan instead of a file.")
@click.option("--base-url", default=None, help="API base URL. Overrides BASE_URL.")
@click.option(
    "--out",
    default=None,
    type=click.Path(),
    help="Optional output path for the JSON report.",
)
@click.option(
    "--log",
    "log_path",
    default=None,
    type=click.Path(),
    help="Optional path to the evidence log (JSONL). Appends an entry when provided.",
)
@click.option("--strict-setup", is_flag=True, help="Abort every scenario when the health check fails. Also STRICT_SETUP.")
@click.option("--mock-target", is_flag=True, help="Run in-process against the bundled mock pizza API.")
@click.option("--log-level", default=None, help="Logging level. Overrides LOG_LEVEL.")
def run(plan_path, preset, base_url, out, log_path, strict_setup, mock_target, log_level):
    """Execute a load plan and exit non-zero when it fails."""
    if bool(plan_path) == bool(preset):
        click.echo("Error: pass exactly one of --plan or --preset", err=True)
        sys.exit(EXIT_SCRIPT_ERROR)

    try:
        settings = Settings.from_env()
        logging.basicConfig(
            level=(log_level or settings.log_level).upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(EXIT_SCRIPT_ERROR)

    try:
        plan = load_plan(plan_path) if plan_path else get_preset(preset)
    except (PlanValidationError, KeyError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(EXIT_SCRIPT_ERROR)

    transport = None
    target = base_url or settings.base_url
    if mock_target:
        try:
            from mock_service.app import app
        except ImportError as exc:
            click.echo(f"Error: --mock-target needs the mock extra (pip install 'pizza-perf[mock]'): {exc}", err=True)
            sys.exit(EXIT_SCRIPT_ERROR)

        transport = httpx.ASGITransport(app=app)
        target = MOCK_BASE_URL

    orchestrator = Orchestrator(
        plan,
        target,
        strict_setup=strict_setup or settings.strict_setup,
        transport=transport,
        request_timeout=settings.request_timeout,
    )
    try:
        report = asyncio.run(_run_until_signal(orchestrator))
    except (ThresholdParseError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(EXIT_SCRIPT_ERROR)

    click.echo(render_summary(report))

    if out:
        with open(out, "w", encoding="utf-8") as f:
            f.write(report_to_json(report) + "\n")
        click.echo(f"Report written to {out}")

    if log_path:
        append_event(create_event(plan_path or preset, target, report), log_path)
        click.echo(f"Evidence logged to {log_path}")

    sys.exit(EXIT_PASS if report.success else EXIT_THRESHOLD_BREACH)


@main.command()
def presets():
    """List the built-in load plans."""
    for name, description in list_presets():
        click.echo(f"{name:<12} {description}")


@main.command()
@click.option("--preset", required=True, type=click.Choice(list(PRESETS)), help="Preset to export.")
@click.option("--out", required=True, type=click.Path(), help="Where to write the plan (YAML).")
def init(preset, out):
    """Write a built-in plan to a YAML file as a starting point."""
    write_plan_yaml(get_preset(preset), out)
    click.echo(f"Plan written to {out}")


async def _run_until_signal(orchestrator: Orchestrator):
    loop = asyncio.get_running_loop()
    installed = False
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.stop)
        installed = True
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers unavailable; Ctrl+C will not stop the run gracefully")
    try:
        return await orchestrator.run()
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


if __name__ == "__main__":
    main()
