"""CLI entry point: monox.

Subcommands:
    monox analyze [-p PKG] [-f json]        # Show packages, stages and cycles
    monox check [--circular] [--versions] [--outdated]
    monox run -c SCRIPT (-a | -p PKG)       # Run a script stage by stage
    monox exec -t TASK                      # Run a task from monox.toml
    monox fix [--dry-run] [-y]              # Unify conflicting versions
    monox update (-a | -p DEP [--version V]) [--dry-run]
    monox init [-c monox.toml] [-f]         # Write a default configuration
"""

from __future__ import annotations

import asyncio
import functools
import json
import sys
from pathlib import Path
from typing import Any, Callable

import click

from monox.core.config import (
    CONFIG_FILENAME,
    MonoxConfig,
    RuntimeOverrides,
    load_config,
    write_default_config,
)
from monox.core.logging import setup_logging
from monox.exceptions import MonoxError
from monox.health.models import OutdatedReport, VersionConflict
from monox.manifest.editor import ManifestEdit
from monox.orchestrator import WorkspaceOrchestrator
from monox.progress import RunSummary, StageProgress
from monox.workspace.models import AnalysisResult

_FORMATS = click.Choice(["table", "json"])


def _handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Turn a MonoxError into ``Error: ...`` on stderr and exit code 1."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except MonoxError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    return wrapper


def _load_config(ctx: click.Context) -> MonoxConfig:
    obj = ctx.obj
    config = load_config(obj.get("config_path")).merge(obj["overrides"])
    setup_logging(verbose=config.output.verbose, colored=config.output.colored)
    return config


def _orchestrator(ctx: click.Context) -> WorkspaceOrchestrator:
    config = _load_config(ctx)
    return WorkspaceOrchestrator(
        config,
        registry=ctx.obj.get("registry"),
        executor=ctx.obj.get("executor"),
    )


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
@click.option("-l", "--language", default=None, help="Interface language (en_us, zh_cn)")
@click.option("-C", "--workspace-root", default=None, help="Workspace root directory")
@click.option("-j", "--max-concurrency", type=click.IntRange(min=1), default=None,
              help="Maximum concurrent tasks")
@click.option("--timeout", type=click.IntRange(min=0), default=None,
              help="Task timeout in seconds (0 = none)")
@click.option("--retry", type=click.IntRange(min=0), default=None, help="Retry count")
@click.option("--continue-on-failure", is_flag=True,
              help="Keep running later stages after a failure")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.option("--no-progress", is_flag=True, help="Disable progress output")
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None,
              help=f"Configuration file (default: ./{CONFIG_FILENAME})")
@click.pass_context
def main(
    ctx: click.Context,
    verbose: bool,
    language: str | None,
    workspace_root: str | None,
    max_concurrency: int | None,
    timeout: int | None,
    retry: int | None,
    continue_on_failure: bool,
    no_color: bool,
    no_progress: bool,
    config_path: Path | None,
) -> None:
    """MonoX: lightweight monorepo build tool."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["overrides"] = RuntimeOverrides(
        verbose=True if verbose else None,
        colored=False if no_color else None,
        show_progress=False if no_progress else None,
        max_concurrency=max_concurrency,
        task_timeout=timeout,
        retry_count=retry,
        continue_on_failure=True if continue_on_failure else None,
        workspace_root=workspace_root,
        language=language,
    )


# ── analyze ──


@main.command("analyze")
@click.option("-f", "--format", "fmt", type=_FORMATS, default="table", help="Output format")
@click.option("-d", "--detail", is_flag=True, help="Show package details")
@click.option("-p", "--package", default=None, help="Analyze a single package")
@click.pass_context
@_handle_errors
def analyze(ctx: click.Context, fmt: str, detail: bool, package: str | None) -> None:
    """Analyze workspace dependency relationships."""
    orchestrator = _orchestrator(ctx)
    result = orchestrator.analyze_package(package) if package else orchestrator.analyze()

    if fmt == "json":
        _echo_json(result.to_dict())
        return
    _print_analysis(result, detail)


def _print_analysis(result: AnalysisResult, detail: bool) -> None:
    stats = result.statistics
    click.echo(f"Packages: {stats.total_packages}")
    click.echo(f"Stages: {stats.total_stages}")
    click.echo(f"With workspace dependencies: {stats.packages_with_workspace_deps}")
    click.echo(f"Analysis time: {stats.analysis_duration_ms}ms")

    if result.cycles:
        click.echo("\nCircular dependencies:")
        for cycle in result.cycles:
            click.echo(f"  {' -> '.join(cycle)} -> {cycle[0]}")
    for name in result.self_dependencies:
        click.echo(f"  warning: {name} depends on itself")

    if result.stages:
        click.echo("\nBuild stages:")
        for i, stage in enumerate(result.stages, 1):
            click.echo(f"  Stage {i}: {', '.join(p.name for p in stage)}")

    if detail:
        click.echo("\nPackages:")
        for p in result.packages:
            deps = ", ".join(sorted(p.workspace_dependencies)) or "-"
            click.echo(f"  {p.name}@{p.version}  {p.folder.as_posix()}  deps: {deps}")
            if p.scripts:
                click.echo(f"    scripts: {', '.join(sorted(p.scripts))}")


# ── check ──


@main.command("check")
@click.option("--circular", is_flag=True, help="Check circular dependencies")
@click.option("--versions", is_flag=True, help="Check version conflicts")
@click.option("--outdated", is_flag=True, help="Check outdated dependencies")
@click.option("-f", "--format", "fmt", type=_FORMATS, default="table", help="Output format")
@click.option("-d", "--detail", is_flag=True, help="Show every usage")
@click.pass_context
@_handle_errors
def check(
    ctx: click.Context, circular: bool, versions: bool, outdated: bool, fmt: str, detail: bool
) -> None:
    """Check workspace health; exits 1 when any issue is found."""
    if not (circular or versions or outdated):
        circular = True

    orchestrator = _orchestrator(ctx)
    report: dict[str, Any] = {}
    issues = 0

    if circular:
        cycles = orchestrator.check_circular()
        report["circular_dependencies"] = cycles
        issues += len(cycles)
    if versions:
        conflicts = orchestrator.detect_version_conflicts()
        report["version_conflicts"] = [c.to_dict() for c in conflicts]
        issues += len(conflicts)
    if outdated:
        callback = _progress_printer("Checking dependencies", orchestrator)
        outdated_report = asyncio.run(orchestrator.check_outdated(callback))
        report["outdated"] = outdated_report.to_dict()
        issues += outdated_report.unique_outdated_count

    if fmt == "json":
        _echo_json(report)
    else:
        if circular:
            _print_cycles(report["circular_dependencies"])
        if versions:
            _print_conflicts(conflicts, detail)
        if outdated:
            _print_outdated(outdated_report, detail)

    if issues:
        sys.exit(1)


def _progress_printer(
    label: str, orchestrator: WorkspaceOrchestrator
) -> Callable[[int, int], None] | None:
    if not orchestrator.config.output.show_progress:
        return None

    def show(completed: int, total: int) -> None:
        click.echo(f"\r{label}: {completed}/{total}", err=True, nl=completed == total)

    return show


def _print_cycles(cycles: list[list[str]]) -> None:
    if not cycles:
        click.echo("No circular dependencies.")
        return
    click.echo(f"Circular dependencies ({len(cycles)}):")
    for cycle in cycles:
        click.echo(f"  {' -> '.join(cycle)} -> {cycle[0]}")


def _print_conflicts(conflicts: list[VersionConflict], detail: bool) -> None:
    if not conflicts:
        click.echo("No version conflicts.")
        return
    click.echo(f"Version conflicts ({len(conflicts)}):")
    for c in conflicts:
        found = sorted({u.resolved_version for u in c.conflicts})
        click.echo(f"  {c.name}: {', '.join(found)} (recommended {c.recommended_version})")
        if detail:
            for u in c.conflicts:
                click.echo(f"    {u.package:30s} {u.version_spec:15s} {u.dep_type}")


def _print_outdated(report: OutdatedReport, detail: bool) -> None:
    if not report.outdated:
        click.echo(f"All {report.total_examined} dependencies are up to date.")
        return
    click.echo(
        f"Outdated dependencies: {report.unique_outdated_count} "
        f"of {report.total_examined} examined"
    )
    seen: set[str] = set()
    for o in report.outdated:
        if detail:
            click.echo(f"  {o.name:30s} {o.current:12s} -> {o.latest:12s} {o.package} ({o.dep_type})")
        elif o.name not in seen:
            seen.add(o.name)
            click.echo(f"  {o.name:30s} {o.current:12s} -> {o.latest}")


# ── run / exec ──


@main.command("run")
@click.option("-c", "--command", "script", required=True, help="Script name to run")
@click.option("-p", "--package", "package", default=None, help="Run for one package")
@click.option("-a", "--all", "run_all", is_flag=True, help="Run across the workspace")
@click.pass_context
@_handle_errors
def run(ctx: click.Context, script: str, package: str | None, run_all: bool) -> None:
    """Run a script in dependency order."""
    if not run_all and not package:
        raise click.UsageError("Specify a package with -p or use -a for all packages")

    orchestrator = _orchestrator(ctx)
    _attach_stage_printer(orchestrator)
    if run_all:
        summary = asyncio.run(orchestrator.run_script(script))
    else:
        summary = asyncio.run(orchestrator.run_script_for_package(package, script))
    _finish_run(summary)


@main.command("exec")
@click.option("-t", "--task", "task_name", required=True, help="Task name from monox.toml")
@click.pass_context
@_handle_errors
def exec_task(ctx: click.Context, task_name: str) -> None:
    """Execute a predefined task."""
    orchestrator = _orchestrator(ctx)
    _attach_stage_printer(orchestrator)
    summary = asyncio.run(orchestrator.run_task(task_name))
    _finish_run(summary)


def _attach_stage_printer(orchestrator: WorkspaceOrchestrator) -> None:
    if not orchestrator.config.output.show_progress:
        return

    def show(stage: StageProgress) -> None:
        if stage.status == "running":
            click.echo(f"[~] Stage {stage.index}: {', '.join(stage.packages)}", err=True)

    orchestrator.stage_callbacks.append(show)


def _finish_run(summary: RunSummary) -> None:
    _print_run_summary(summary)
    if summary.exit_code:
        sys.exit(summary.exit_code)


def _print_run_summary(summary: RunSummary) -> None:
    click.echo(f"\nRun summary for '{summary.script}' (total: {summary.duration}s):")
    for s in summary.stages:
        status_icon = {"completed": "+", "failed": "!", "skipped": "-"}.get(s.status, "?")
        duration = f" ({s.duration}s)" if s.duration else ""
        click.echo(f"  [{status_icon}] Stage {s.index}{duration}")
        if s.succeeded:
            click.echo(f"      succeeded: {', '.join(s.succeeded)}")
        for name, reason in sorted(s.failed.items()):
            click.echo(f"      failed: {name}: {reason}")
        if s.skipped:
            click.echo(f"      skipped (no script): {', '.join(s.skipped)}")
        if s.cancelled:
            click.echo(f"      cancelled: {', '.join(s.cancelled)}")
    click.echo(
        f"Succeeded: {summary.succeeded}  Failed: {summary.failed}  "
        f"Skipped: {summary.skipped}  Cancelled: {summary.cancelled}"
    )


# ── fix / update ──


@main.command("fix")
@click.option("--dry-run", is_flag=True, help="Show the plan without editing files")
@click.option("-y", "--yes", is_flag=True, help="Apply without asking")
@click.option("-f", "--format", "fmt", type=_FORMATS, default="table", help="Output format")
@click.option("-d", "--detail", is_flag=True, help="Show the conflicts being fixed")
@click.pass_context
@_handle_errors
def fix(ctx: click.Context, dry_run: bool, yes: bool, fmt: str, detail: bool) -> None:
    """Unify conflicting dependency versions."""
    orchestrator = _orchestrator(ctx)
    conflicts, edits = orchestrator.plan_fix()

    if not edits:
        click.echo("No version conflicts to fix.")
        return

    if fmt == "json":
        _echo_json({"dry_run": dry_run, "plan": [e.to_dict() for e in edits]})
    else:
        if detail:
            _print_conflicts(conflicts, detail=True)
        _print_edits("Fix plan", edits)

    if dry_run:
        return
    if not yes and not click.confirm(f"Apply {len(edits)} change(s)?", default=False):
        click.echo("Aborted.")
        return

    applied = orchestrator.apply_edits(edits)
    click.echo(f"Applied {len(applied)} of {len(edits)} change(s).")


@main.command("update")
@click.option("-p", "--package", "dependency", default=None, help="Dependency to update")
@click.option("-a", "--all", "update_all", is_flag=True, help="Update every outdated dependency")
@click.option("--version", "version", default=None, help="Target version (default: latest)")
@click.option("--dry-run", is_flag=True, help="Show the plan without editing files")
@click.pass_context
@_handle_errors
def update(
    ctx: click.Context,
    dependency: str | None,
    update_all: bool,
    version: str | None,
    dry_run: bool,
) -> None:
    """Update dependencies to their latest versions."""
    if not update_all and not dependency:
        raise click.UsageError("Specify a dependency with -p or use -a for all")

    orchestrator = _orchestrator(ctx)
    if update_all:
        callback = _progress_printer("Checking dependencies", orchestrator)
        edits = asyncio.run(orchestrator.plan_update_all(callback))
    else:
        target, edits = asyncio.run(orchestrator.plan_update_dependency(dependency, version))
        if target is None:
            click.echo(f"Error: could not determine the latest version of {dependency}", err=True)
            sys.exit(1)

    if not edits:
        click.echo("Everything is up to date.")
        return

    _print_edits("Update plan", edits)
    if dry_run:
        return

    applied = orchestrator.apply_edits(edits)
    click.echo(f"Applied {len(applied)} of {len(edits)} change(s).")


def _print_edits(title: str, edits: list[ManifestEdit]) -> None:
    click.echo(f"{title} ({len(edits)}):")
    for e in edits:
        click.echo(
            f"  {e.package:30s} {e.dependency:30s} {e.old_version} -> {e.new_version}"
            f"  ({e.dep_type})"
        )


# ── init ──


@main.command("init")
@click.option("-c", "--config", "path", type=click.Path(path_type=Path),
              default=Path(CONFIG_FILENAME), help="Where to write the configuration")
@click.option("-f", "--force", is_flag=True, help="Overwrite an existing file")
def init(path: Path, force: bool) -> None:
    """Initialize a configuration file."""
    if path.exists() and not force:
        click.echo(f"Error: {path} already exists (use --force to overwrite)", err=True)
        sys.exit(1)
    write_default_config(path)
    click.echo(f"Configuration written to {path}")


if __name__ == "__main__":
    main()
