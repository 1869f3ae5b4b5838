"""Command line interface for f2."""

from __future__ import annotations

import difflib
import os
import re
from copy import deepcopy
from pathlib import Path
from typing import Any

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.syntax import Syntax

from f2.backup import BackupError, BackupNotFoundError, BackupRepository
from f2.cli_support import (
    DRY_RUN_HINT,
    NO_MATCHES_MESSAGE,
    NO_UNDO_MESSAGE,
    build_change_table,
    build_conflict_table,
    build_json_payload,
    build_result_table,
    configure_logging,
    conflicts_payload,
    errors_payload,
)
from f2.config import (
    ConfigError,
    ConfigManager,
    F2Config,
    assign_dotted,
    resolve_with_precedence,
)
from f2.matching import DirectoryScanner, ReplacementChain, exclude_matches, find_matches
from f2.renaming import (
    ConflictDetectedError,
    ConflictResolutionError,
    OperationOptions,
    PartialRenameError,
    RenameFailedError,
)
from f2.renaming.executor import ApplyOutcome, Operation

console = Console()


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """

    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(message) from original


def _emit_message(message: Any, *, mode: str, quiet: bool, verbose: bool = False) -> None:
    """Conditionally print CLI output according to quiet/verbose settings.

    Args:
        message: Renderable or string to emit.
        mode: Output mode identifier (`detail`, `verbose`, `summary`, `warning`, or `error`).
        quiet: Whether quiet mode is active.
        verbose: Whether verbose-only output should be emitted.
    """

    if quiet and mode != "error":
        return

    if mode == "verbose" and not verbose:
        return

    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands.

    Args:
        command: Command name to include in the summary.
        root: Working directory relevant to the command.
        metrics: Ordered mapping of metric names to values.

    Returns:
        str: Rich-formatted summary string.
    """

    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _resolve_flag(ctx: click.Context, name: str, value: bool, default: bool) -> bool:
    """Return ``value`` when given on the command line, otherwise the configured default."""
    if ctx.get_parameter_source(name) == ParameterSource.COMMANDLINE:
        return value
    return default


def _resolve_presentation(
    ctx: click.Context, config: F2Config, *, quiet: bool, verbose: bool, json_output: bool
) -> tuple[bool, bool]:
    """Resolve quiet/verbose modes against configured defaults.

    Raises:
        click.ClickException: If the requested modes cannot be combined.
    """

    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    quiet_enabled = _resolve_flag(ctx, "quiet", quiet, config.cli.quiet_default)
    verbose_enabled = _resolve_flag(ctx, "verbose", verbose, config.cli.verbose_default)

    if json_output:
        if explicit_quiet and quiet_enabled:
            raise click.ClickException("--json cannot be combined with --quiet.")
        quiet_enabled = False

    if quiet_enabled and verbose_enabled:
        raise click.ClickException(
            "Quiet and verbose modes cannot both be enabled. Adjust CLI defaults or flags."
        )

    return quiet_enabled, verbose_enabled


def _backup_repository(config: F2Config) -> BackupRepository:
    data_dir = config.backup.data_dir
    return BackupRepository(Path(data_dir).expanduser() if data_dir else None)


def _report_outcome(
    command: str,
    operation: Operation,
    outcome: ApplyOutcome,
    *,
    json_output: bool,
    quiet: bool,
    verbose: bool,
) -> None:
    """Print the result of a rename or undo run that completed without raising."""

    if json_output:
        console.print_json(data=build_json_payload(operation))
        return

    if outcome == "no_matches":
        message = NO_UNDO_MESSAGE if operation.options.revert else NO_MATCHES_MESSAGE
        _emit_message(f"[yellow]{message}[/yellow]", mode="warning", quiet=quiet)
        return

    if outcome == "dry_run":
        _emit_message(build_change_table(operation.changes), mode="detail", quiet=quiet)
        _emit_message(f"[cyan]{DRY_RUN_HINT}[/cyan]", mode="summary", quiet=quiet)
        return

    if outcome == "cancelled":
        _emit_message(
            "[yellow]Rename cancelled; no files were changed.[/yellow]",
            mode="warning",
            quiet=quiet,
        )
        return

    _emit_message(
        build_result_table(operation.changes, operation.errors),
        mode="verbose",
        quiet=quiet,
        verbose=verbose,
    )
    for warning in operation.warnings:
        _emit_message(f"[yellow]{warning}[/yellow]", mode="warning", quiet=quiet)

    renamed = sum(1 for change in operation.changes if not change.is_unchanged)
    metrics: dict[str, Any] = {
        "renamed": renamed,
        "unchanged": len(operation.changes) - renamed,
    }
    if operation.backup_path is not None and outcome == "committed":
        metrics["backup"] = operation.backup_path
    _emit_message(
        _format_summary_line(command, operation.working_dir, metrics),
        mode="summary",
        quiet=quiet,
    )


def _run_operation(
    command: str,
    operation: Operation,
    *,
    json_output: bool,
    quiet: bool,
    verbose: bool,
) -> None:
    """Apply (or undo) ``operation`` and translate pipeline errors into CLI errors."""

    try:
        if operation.options.revert:
            outcome = operation.undo()
        else:
            outcome = operation.apply()
    except ConflictDetectedError as exc:
        if not json_output:
            _emit_message(build_conflict_table(exc.conflicts), mode="error", quiet=quiet)
        _handle_cli_error(
            str(exc),
            code="conflicts_detected",
            json_output=json_output,
            details=conflicts_payload(exc.conflicts),
            original=exc,
        )
        return
    except RenameFailedError as exc:
        if not json_output:
            _emit_message(
                build_result_table(operation.changes, exc.failures), mode="error", quiet=quiet
            )
        _handle_cli_error(
            str(exc),
            code="partial_failure" if isinstance(exc, PartialRenameError) else "rename_failed",
            json_output=json_output,
            details=errors_payload(operation.changes, exc.failures),
            original=exc,
        )
        return

    _report_outcome(
        command, operation, outcome, json_output=json_output, quiet=quiet, verbose=verbose
    )


def _confirm_changes(operation: Operation) -> bool:
    console.print(build_change_table(operation.changes))
    return click.confirm(f"Apply {len(operation.changes)} change(s)?", default=False)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="f2")
def cli() -> None:
    """f2 renames files and directories in bulk, safely and reversibly.

    Returns:
        None: This function is invoked for its side effects.
    """


@cli.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True, path_type=str))
@click.option("-f", "--find", "find", multiple=True, help="Search pattern (repeatable).")
@click.option("-r", "--replace", multiple=True, help="Replacement for the matching find.")
@click.option("-x", "--exec", "exec_", is_flag=True, help="Commit the renames.")
@click.option("-F", "--fix-conflicts", is_flag=True, help="Fix conflicts automatically.")
@click.option("--allow-overwrites", is_flag=True, help="Allow replacing existing files.")
@click.option("-R", "--recursive", is_flag=True, help="Search subdirectories.")
@click.option(
    "-m",
    "--max-depth",
    type=click.IntRange(min=0),
    default=0,
    help="Recursion depth limit (0 for unlimited).",
)
@click.option("-d", "--include-dir", is_flag=True, help="Rename matching directories too.")
@click.option("-D", "--only-dir", is_flag=True, help="Rename matching directories only.")
@click.option("-H", "--hidden", is_flag=True, help="Include hidden entries.")
@click.option("-i", "--ignore-case", is_flag=True, help="Match case-insensitively.")
@click.option("-e", "--ignore-ext", is_flag=True, help="Leave file extensions untouched.")
@click.option("-s", "--string-mode", is_flag=True, help="Treat find patterns as literal text.")
@click.option("-E", "--exclude", multiple=True, help="Skip entries matching this pattern.")
@click.option("--confirm", is_flag=True, help="Review the changes before committing.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing the changes.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.option("--verbose", is_flag=True, help="Report every rename.")
@click.pass_context
def rename(
    ctx: click.Context,
    paths: tuple[str, ...],
    find: tuple[str, ...],
    replace: tuple[str, ...],
    exec_: bool,
    fix_conflicts: bool,
    allow_overwrites: bool,
    recursive: bool,
    max_depth: int,
    include_dir: bool,
    only_dir: bool,
    hidden: bool,
    ignore_case: bool,
    ignore_ext: bool,
    string_mode: bool,
    exclude: tuple[str, ...],
    confirm: bool,
    json_output: bool,
    quiet: bool,
    verbose: bool,
) -> None:
    """Rename the entries under PATHS (default: the current directory).

    Without -x/--exec the renames are only previewed.

    Raises:
        click.ClickException: If conflicts remain, renames fail, or input is invalid.
    """

    json_enabled = json_output
    try:
        config = ConfigManager().load()
        quiet_enabled, verbose_enabled = _resolve_presentation(
            ctx, config, quiet=quiet, verbose=verbose, json_output=json_output
        )
        if json_output and confirm:
            raise click.ClickException("--json cannot be combined with --confirm.")
        configure_logging(config.logging, verbose=verbose_enabled)

        matching = config.matching
        include_dir = _resolve_flag(ctx, "include_dir", include_dir, matching.include_dir)
        hidden = _resolve_flag(ctx, "hidden", hidden, matching.include_hidden)
        ignore_case = _resolve_flag(ctx, "ignore_case", ignore_case, matching.ignore_case)
        ignore_ext = _resolve_flag(ctx, "ignore_ext", ignore_ext, matching.ignore_ext)
        if ctx.get_parameter_source("max_depth") != ParameterSource.COMMANDLINE:
            max_depth = matching.max_depth

        try:
            chain = ReplacementChain(
                find,
                replace,
                string_mode=string_mode,
                ignore_case=ignore_case,
                ignore_ext=ignore_ext,
            )
            scanner = DirectoryScanner(
                recursive=recursive, max_depth=max_depth, include_hidden=hidden
            )
            candidates = list(scanner.scan(paths))
            matches = exclude_matches(
                find_matches(candidates, chain, include_dir=include_dir, only_dir=only_dir),
                exclude,
            )
        except re.error as exc:
            raise click.ClickException(f"Invalid pattern: {exc}") from exc
        except OSError as exc:
            raise click.ClickException(f"Unable to read {exc.filename or 'path'}: {exc}") from exc

        options = OperationOptions(
            exec=exec_,
            fix_conflicts=_resolve_flag(
                ctx, "fix_conflicts", fix_conflicts, config.conflicts.fix_conflicts
            ),
            allow_overwrites=_resolve_flag(
                ctx, "allow_overwrites", allow_overwrites, config.conflicts.allow_overwrites
            ),
            include_dir=include_dir or only_dir,
            quiet=quiet_enabled,
            verbose=verbose_enabled,
            json_output=json_enabled,
        )
        operation = Operation(
            [chain.rename(change) for change in matches],
            options,
            working_dir=os.getcwd(),
            backups=_backup_repository(config),
            confirm=_confirm_changes if confirm else None,
        )
        _run_operation(
            "Rename",
            operation,
            json_output=json_enabled,
            quiet=quiet_enabled,
            verbose=verbose_enabled,
        )
    except BackupError as exc:
        _handle_cli_error(str(exc), code="backup_error", json_output=json_enabled, original=exc)
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_enabled, original=exc)
    except click.ClickException as exc:
        _handle_cli_error(str(exc), code="cli_error", json_output=json_enabled, original=exc)
    except ConflictResolutionError as exc:
        _handle_cli_error(
            str(exc),
            code="internal_error",
            json_output=json_enabled,
            details={"exception": type(exc).__name__},
            original=exc,
        )
    except Exception as exc:
        _handle_cli_error(
            f"Unexpected error while renaming files: {exc}",
            code="internal_error",
            json_output=json_enabled,
            details={"exception": type(exc).__name__},
            original=exc,
        )


@cli.command()
@click.option("-x", "--exec", "exec_", is_flag=True, help="Commit the undo.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing the undo.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.option("--verbose", is_flag=True, help="Report every restored name.")
@click.pass_context
def undo(
    ctx: click.Context,
    exec_: bool,
    json_output: bool,
    quiet: bool,
    verbose: bool,
) -> None:
    """Reverse the last rename committed from the current directory.

    Without -x/--exec the undo is only previewed and the backup is kept.

    Raises:
        click.ClickException: If no backup exists or the undo fails.
    """

    json_enabled = json_output
    try:
        config = ConfigManager().load()
        quiet_enabled, verbose_enabled = _resolve_presentation(
            ctx, config, quiet=quiet, verbose=verbose, json_output=json_output
        )
        configure_logging(config.logging, verbose=verbose_enabled)

        options = OperationOptions(
            exec=exec_,
            revert=True,
            quiet=quiet_enabled,
            verbose=verbose_enabled,
            json_output=json_enabled,
        )
        operation = Operation(
            [], options, working_dir=os.getcwd(), backups=_backup_repository(config)
        )
        _run_operation(
            "Undo",
            operation,
            json_output=json_enabled,
            quiet=quiet_enabled,
            verbose=verbose_enabled,
        )
    except BackupNotFoundError as exc:
        _handle_cli_error(
            NO_UNDO_MESSAGE, code="backup_not_found", json_output=json_enabled, original=exc
        )
    except BackupError as exc:
        _handle_cli_error(str(exc), code="backup_error", json_output=json_enabled, original=exc)
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_enabled, original=exc)
    except click.ClickException as exc:
        _handle_cli_error(str(exc), code="cli_error", json_output=json_enabled, original=exc)
    except Exception as exc:
        _handle_cli_error(
            f"Unexpected error while undoing renames: {exc}",
            code="internal_error",
            json_output=json_enabled,
            details={"exception": type(exc).__name__},
            original=exc,
        )


@cli.group()
def config() -> None:
    """Manage f2 configuration files and overrides.

    Returns:
        None: This function is invoked for its side effects.
    """


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Args:
        no_env: If True, ignore environment-derived overrides.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        config = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(config.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException(
            "KEY must specify a dotted path such as 'conflicts.fix_conflicts'."
        )

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        manager.ensure_exists()
        before = manager.read_text().splitlines()
        file_data = manager.load_file_overrides()
        original = deepcopy(file_data)
        assign_dotted(file_data, segments, parsed_value)
        if file_data == original:
            console.print("[yellow]No changes applied; value already up to date.[/yellow]")
            return
        resolve_with_precedence(defaults=F2Config(), file_overrides=file_data)
        manager.save(file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    after = manager.read_text().splitlines()
    diff = difflib.unified_diff(
        before,
        after,
        fromfile="config.yaml (before)",
        tofile="config.yaml (after)",
        lineterm="",
    )
    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point.

    Returns:
        None: This function is invoked for its side effects.
    """
    cli()


if __name__ == "__main__":
    main()
