"""Command line interface for GradeBrowser."""

from __future__ import annotations

import difflib
import logging
import threading
from collections import Counter
from typing import Any, NoReturn, Sequence

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table

from gradebrowser.config import (
    ConfigError,
    ConfigManager,
    GradeBrowserConfig,
    flatten_for_env,
    resolve_root,
    resolve_with_precedence,
)
from gradebrowser.index.errors import InvalidRootError, ReportNotFoundError
from gradebrowser.index.models import Assignment, CheckStatus, snapshot_payload
from gradebrowser.service import ReportBrowser
from gradebrowser.viewer.reconciler import ViewerStatus, ViewUpdate
from gradebrowser.viewer.selection import current_grade_check, current_handout, describe

console = Console()

_STATUS_STYLES = {
    CheckStatus.PASS: "green",
    CheckStatus.FAIL: "red",
    CheckStatus.ERROR: "magenta",
    CheckStatus.UNKNOWN: "dim",
}


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    original: Exception | None = None,
) -> NoReturn:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """

    if json_output:
        console.print_json(data={"error": {"code": code, "message": message}})
        raise SystemExit(1)

    raise click.ClickException(message) from original


def _emit_message(message: Any, *, quiet: bool) -> None:
    if quiet:
        return
    console.print(message)


def _configure_logging(config: GradeBrowserConfig, verbose: bool) -> None:
    """Route library logging through rich at the configured level."""
    level = logging.DEBUG if verbose else getattr(logging, config.logging.level.upper(), logging.WARNING)
    logger = logging.getLogger("gradebrowser")
    logger.handlers.clear()
    handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def _load_config(ctx: click.Context, *, json_output: bool) -> GradeBrowserConfig:
    try:
        manager = ConfigManager()
        manager.ensure_exists()
        config = manager.load()
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    _configure_logging(config, bool(ctx.obj and ctx.obj.get("verbose")))
    return config


def _open_browser(config: GradeBrowserConfig, root: str | None, *, json_output: bool) -> ReportBrowser:
    try:
        return ReportBrowser.from_config(config, root)
    except InvalidRootError as exc:
        _handle_cli_error(str(exc), code="invalid_root", json_output=json_output, original=exc)


def _quiet_enabled(ctx: click.Context, quiet: bool, config: GradeBrowserConfig) -> bool:
    if ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE:
        return quiet
    return config.cli.quiet_default


def _status_counts(assignment: Assignment) -> dict[str, int]:
    counts: Counter[str] = Counter()
    for handout in assignment.handouts:
        for check in handout.newest.checks:
            counts[check.status.value] += 1
    return dict(counts)


def _render_snapshot(snapshot: Sequence[Assignment]) -> Table:
    table = Table(title="Grade reports", show_lines=False)
    table.add_column("Assignment", style="bold")
    table.add_column("Handout")
    table.add_column("Newest run")
    table.add_column("Runs", justify="right")
    table.add_column("Checks (newest run)")
    for assignment in snapshot:
        for handout in assignment.handouts:
            newest = handout.newest
            badges = " ".join(
                f"[{_STATUS_STYLES[check.status]}]{check.display_name}[/]" for check in newest.checks
            )
            table.add_row(
                assignment.name,
                handout.name,
                newest.timestamp,
                str(len(handout.grade_checks)),
                badges,
            )
    return table


def _format_view_update(update: ViewUpdate) -> str:
    handout = current_handout(update.snapshot, update.selection)
    grade_check = current_grade_check(update.snapshot, update.selection)
    if handout is None or grade_check is None:
        return "[yellow]No grade reports found. Run some grading checks to generate reports.[/yellow]"
    statuses = ", ".join(
        f"[{_STATUS_STYLES[check.status]}]{check.display_name}={check.status.value}[/]"
        for check in grade_check.checks
    )
    info = describe(update.snapshot, update.selection)
    return f"[cyan]{handout.name} @ {grade_check.timestamp}[/cyan] {info}\n  {statuses}"


def _view_update_payload(update: ViewUpdate) -> dict[str, Any]:
    handout = current_handout(update.snapshot, update.selection)
    grade_check = current_grade_check(update.snapshot, update.selection)
    return {
        "handout": handout.name if handout else None,
        "timestamp": grade_check.timestamp if grade_check else None,
        "selection": {
            "assignment": update.selection.assignment,
            "handout": update.selection.handout,
            "gradeCheck": update.selection.grade_check,
            "check": update.selection.check,
        },
        "preserved": update.preserved,
        "assignments": snapshot_payload(update.snapshot),
    }


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="gradebrowser")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """GradeBrowser indexes grading reports and follows new runs as they land."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command("list")
@click.argument("root", required=False, type=click.Path(path_type=str))
@click.option("--json", "json_output", is_flag=True, help="Emit the report hierarchy as JSON.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def list_reports(ctx: click.Context, root: str | None, json_output: bool, quiet: bool) -> None:
    """List assignments, handouts, and grading runs under ROOT."""
    config = _load_config(ctx, json_output=json_output)
    browser = _open_browser(config, root, json_output=json_output)
    snapshot = browser.list_assignments()

    if json_output:
        console.print_json(data={"root": str(browser.root), "assignments": snapshot_payload(snapshot)})
        return

    quiet_enabled = _quiet_enabled(ctx, quiet, config)
    if not snapshot:
        _emit_message(
            f"[yellow]No assignments found with grade reports under {browser.root}.[/yellow]",
            quiet=quiet_enabled,
        )
        return
    _emit_message(_render_snapshot(snapshot), quiet=quiet_enabled)
    summary: Counter[str] = Counter()
    for assignment in snapshot:
        summary.update(_status_counts(assignment))
    metrics = ", ".join(f"{status.value}={summary.get(status.value, 0)}" for status in CheckStatus)
    _emit_message(f"[green]Newest-run status for {browser.root}: {metrics}.[/green]", quiet=quiet_enabled)


@cli.command()
@click.argument("handout")
@click.argument("timestamp")
@click.argument("check_id")
@click.option("--root", type=click.Path(path_type=str), help="Report root override.")
@click.pass_context
def show(ctx: click.Context, handout: str, timestamp: str, check_id: str, root: str | None) -> None:
    """Print the raw HTML report for HANDOUT, TIMESTAMP, and CHECK_ID."""
    config = _load_config(ctx, json_output=False)
    browser = _open_browser(config, root, json_output=False)
    try:
        body = browser.fetch_report(handout, timestamp, check_id)
    except ReportNotFoundError as exc:
        _handle_cli_error(str(exc), code="report_not_found", json_output=False, original=exc)
    click.echo(body, nl=False)


@cli.command()
@click.argument("root", required=False, type=click.Path(path_type=str))
@click.option("--debounce", type=int, help="Override the debounce window in milliseconds.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON for each view update.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.option("--once", is_flag=True, help="Show the current newest run and exit.")
@click.pass_context
def watch(
    ctx: click.Context,
    root: str | None,
    debounce: int | None,
    json_output: bool,
    quiet: bool,
    once: bool,
) -> None:
    """Follow ROOT and print a consolidated update after each grading run."""
    config = _load_config(ctx, json_output=json_output)
    if debounce is not None:
        if debounce < 0:
            raise click.ClickException("--debounce must not be negative.")
        config = config.model_copy(
            update={"watch": config.watch.model_copy(update={"debounce_ms": debounce})}
        )
    quiet_enabled = _quiet_enabled(ctx, quiet, config)
    browser = _open_browser(config, root, json_output=json_output)

    def _on_update(update: ViewUpdate) -> None:
        if json_output:
            console.print_json(data=_view_update_payload(update))
        else:
            _emit_message(_format_view_update(update), quiet=quiet_enabled)

    def _on_status(status: ViewerStatus) -> None:
        if json_output:
            return
        if status is ViewerStatus.WAITING:
            _emit_message("[yellow]Waiting for files...[/yellow]", quiet=quiet_enabled)
        elif status is ViewerStatus.DISCONNECTED:
            _emit_message("[red]Disconnected[/red]", quiet=quiet_enabled)

    if once:
        viewer = browser.open_viewer(on_update=_on_update)
        browser.close_viewer(viewer)
        return

    try:
        browser.start()
    except (RuntimeError, OSError) as exc:
        _handle_cli_error(str(exc), code="watch_runtime_error", json_output=json_output, original=exc)

    if not json_output:
        _emit_message(
            f"[cyan]Monitoring {browser.root}. Press Ctrl+C to stop.[/cyan]", quiet=quiet_enabled
        )
    browser.open_viewer(on_update=_on_update, on_status=_on_status)
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        if not json_output:
            _emit_message("[yellow]Watch stopped by user request.[/yellow]", quiet=quiet_enabled)
    finally:
        browser.stop()


@cli.group()
def config() -> None:
    """Manage GradeBrowser configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
@click.option("--env", "as_env", is_flag=True, help="Print the configuration as environment variables.")
def config_view(no_env: bool, as_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        loaded = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if as_env:
        for key, value in flatten_for_env(loaded).items():
            click.echo(f"{key}={value}")
        return

    yaml_text = yaml.safe_dump(loaded.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))
    console.print(f"[dim]Report root: {resolve_root(loaded)}[/dim]")


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY."""
    manager = ConfigManager()
    manager.ensure_exists()

    before = manager.read_text().splitlines()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'watch.debounce_ms'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    file_data = manager.load_file_overrides()
    node = file_data
    for segment in segments[:-1]:
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            raise click.ClickException(
                f"Cannot assign into '{segment}' because it is not a mapping in the config file."
            )
        node = child
    node[segments[-1]] = parsed_value

    try:
        resolve_with_precedence(defaults=GradeBrowserConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    after = manager.read_text().splitlines()

    diff = [
        line
        for line in difflib.unified_diff(
            before, after, fromfile="config.yaml (before)", tofile="config.yaml (after)", lineterm=""
        )
        if not line.startswith(("-# Last updated", "+# Last updated"))
    ]
    if not any(line.startswith(("-", "+")) and not line.startswith(("---", "+++")) for line in diff):
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
