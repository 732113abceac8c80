"""Command line entry point.

``autoheal scan`` runs a test command with healing switched on, then turns the
healing ledger into JSON and Markdown reports.

Exit codes:
    The wrapped test command's exit code, 2 for configuration errors and
    127 when the test command cannot be started.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import sys

import click
from pydantic import ValidationError

from autoheal.config.loader import ConfigLoader
from autoheal.config.schema import HealerConfig
from autoheal.logging.audit import HealingLedger
from autoheal.reporting.report import build_report, parse_locator_failures, write_reports

EXIT_CONFIG_ERROR = 2
EXIT_COMMAND_NOT_FOUND = 127

ACTIVE_VARIABLE = "AUTOHEAL_ACTIVE"


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def load_config(project_path: str | None) -> HealerConfig:
    overrides = {"project_path": project_path} if project_path else {}
    try:
        return ConfigLoader.from_env(**overrides)
    except ValidationError as exc:
        click.echo(f"Error: invalid healer configuration: {exc}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)


def generate_reports(config: HealerConfig, output: str, output_dir: str | None, consume: bool) -> None:
    ledger = HealingLedger(config.ledger_path)
    entries = ledger.consume() if consume else ledger.read_all()
    click.echo(f"Found {len(entries)} healing attempts in {ledger.path}")
    report = build_report(entries, parse_locator_failures(output))
    json_path, markdown_path = write_reports(report, output_dir or config.report_root)
    click.echo("Reports generated:")
    click.echo(f"- {json_path}")
    click.echo(f"- {markdown_path}")
    if report.stats["healed"]:
        click.echo(f"Successfully healed {report.stats['healed']} selectors!")


@click.group()
@click.version_option(prog_name="autoheal")
def main() -> None:
    """Self-healing selectors for Selenium test suites."""


@main.command(context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False})
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
@click.option("--project-path", type=click.Path(file_okay=False), help="Root for healer scratch files")
@click.option("--output-dir", "-o", type=click.Path(file_okay=False), help="Directory for generated reports")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def scan(command: tuple[str, ...], project_path: str | None, output_dir: str | None, verbose: bool) -> None:
    """Run COMMAND (default: pytest) with auto-healing enabled and report the results."""

    setup_logging(verbose)
    config = load_config(project_path)
    if config.ai_provider != "ollama" and not config.api_key:
        click.echo(
            f"Warning: no API key configured for {config.ai_provider}; healing will be disabled.",
            err=True,
        )

    argv = list(command) or ["pytest"]
    if len(argv) == 1 and " " in argv[0]:
        argv = shlex.split(argv[0])
    env = {
        **os.environ,
        ACTIVE_VARIABLE: "true",
        "AUTOHEAL_PROJECT_PATH": str(config.project_path),
    }
    click.echo(f"Starting auto-healer scan: {' '.join(argv)}")
    captured: list[str] = []
    try:
        process = subprocess.Popen(
            argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            env=env,
        )
    except FileNotFoundError as exc:
        click.echo(f"Error: could not start {argv[0]}: {exc}", err=True)
        sys.exit(EXIT_COMMAND_NOT_FOUND)
    for line in process.stdout or ():
        captured.append(line)
        click.echo(line, nl=False)
    returncode = process.wait()

    generate_reports(config, "".join(captured), output_dir, consume=True)
    click.echo(f"Healing scan complete. Check {output_dir or config.report_root} for recommendations.")
    sys.exit(returncode)


@main.command()
@click.option("--project-path", type=click.Path(file_okay=False), help="Root for healer scratch files")
@click.option("--output-dir", "-o", type=click.Path(file_okay=False), help="Directory for generated reports")
@click.option("--consume", is_flag=True, help="Clear the ledger after reporting")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def report(project_path: str | None, output_dir: str | None, consume: bool, verbose: bool) -> None:
    """Write reports from the current healing ledger without running tests."""

    setup_logging(verbose)
    config = load_config(project_path)
    generate_reports(config, "", output_dir, consume=consume)


def is_active() -> bool:
    return os.getenv(ACTIVE_VARIABLE, "").lower() == "true"


if __name__ == "__main__":
    main()
