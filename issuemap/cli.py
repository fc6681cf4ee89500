"""Click CLI: init, depend (add/remove/resolve/reactivate/list/graph/blocked/validate/stats/impact), serve."""

from __future__ import annotations

import functools
import json
import logging
from pathlib import Path

import click

from issuemap import __version__
from issuemap.config import CONFIG_DIR_NAME, IssueMapConfig, load_config, save_config
from issuemap.errors import IssueMapError
from issuemap.gitutil import current_user, find_repo_root
from issuemap.models import Dependency, DependencyFilter, DependencyStatus, DependencyType
from issuemap.service import DependencyService
from issuemap.storage import FileDependencyStore, HistoryService

_TYPE_CHOICES = [t.value for t in DependencyType]
_STATUS_CHOICES = [s.value for s in DependencyStatus]

_RISK_COLORS = {"none": "green", "low": "green", "medium": "yellow", "high": "red"}


def _handle_errors(func):
    """Turn library errors into clean CLI failures."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except IssueMapError as e:
            raise click.ClickException(str(e))
    return wrapper


def _config(ctx: click.Context) -> IssueMapConfig:
    return ctx.find_object(IssueMapConfig)


def _service(ctx: click.Context, require_init: bool = False) -> DependencyService:
    config = _config(ctx)
    if require_init and not config.root_dir.exists():
        raise click.ClickException(
            f"issuemap not initialized at {config.root_dir}; run 'issuemap init'"
        )
    return DependencyService(
        store=FileDependencyStore(config.root_dir),
        history=HistoryService(config.root_dir),
        config=config,
    )


def _author(ctx: click.Context, author: str | None) -> str:
    if author:
        return author
    config = _config(ctx)
    return config.default_author or current_user(config.root_dir.parent)


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2))


def _echo_warnings(service: DependencyService) -> None:
    for warning in service.last_warnings:
        click.echo(click.style(f"warning: {warning}", fg="yellow"), err=True)


def _parse_estimates(values: tuple[str, ...]) -> dict[str, float] | None:
    if not values:
        return None
    estimates: dict[str, float] = {}
    for value in values:
        issue_id, sep, hours = value.partition("=")
        try:
            if not sep or not issue_id:
                raise ValueError
            estimates[issue_id.strip()] = float(hours)
        except ValueError:
            raise click.BadParameter(f"expected ISSUE=HOURS, got {value!r}", param_hint="--estimate")
    return estimates


@click.group()
@click.version_option(version=__version__)
@click.option("--root", type=click.Path(file_okay=False, path_type=Path),
              help=f"Path to the {CONFIG_DIR_NAME} directory (default: at the git repository root)")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, root: Path | None, verbose: bool):
    """issuemap: track dependencies between issues stored in your git repository."""
    if root is None:
        repo = find_repo_root()
        root = (repo or Path.cwd()) / CONFIG_DIR_NAME

    config = load_config(root)
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.log_level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = config


@cli.command()
@click.pass_context
def init(ctx: click.Context):
    """Create the issuemap directory and default config."""
    config = _config(ctx)
    path = save_config(config)
    click.echo(f"Initialized issuemap in {config.root_dir} ({path.name})")


# ── depend ────────────────────────────────────────────────────

@cli.group(invoke_without_command=True)
@click.pass_context
@_handle_errors
def depend(ctx: click.Context):
    """Manage dependencies between issues.

    \b
    blocks   - source blocks target (target cannot start until source is done)
    requires - source requires target (source cannot finish until target is done)
    """
    if ctx.invoked_subcommand is not None:
        return

    service = _service(ctx)
    stats = service.get_dependency_stats()
    blocked = service.get_blocked_issues()

    click.echo("Dependencies Overview\n")
    click.echo(f"  Total dependencies:       {stats.total_dependencies}")
    click.echo(f"  Active dependencies:      {stats.active_dependencies}")
    click.echo(f"  Issues with dependencies: {stats.issues_with_deps}")
    click.echo()
    if blocked:
        click.echo(click.style(f"  {len(blocked)} issue(s) currently blocked", fg="yellow"))
        for issue_id in blocked[:5]:
            click.echo(f"    - {issue_id}")
        if len(blocked) > 5:
            click.echo(f"    ... and {len(blocked) - 5} more")
    else:
        click.echo(click.style("  No issues are currently blocked", fg="green"))
    if stats.circular_dependencies:
        click.echo(click.style(
            f"  {stats.circular_dependencies} circular dependency path(s) detected", fg="red",
        ))


@depend.command("add")
@click.argument("source")
@click.argument("target")
@click.option("--type", "-t", "dep_type", type=click.Choice(_TYPE_CHOICES, case_sensitive=False),
              default="blocks", show_default=True, help="Dependency type")
@click.option("--description", "-d", default="", help="Why the dependency exists")
@click.option("--author", help="Who is creating it (default: git user)")
@click.pass_context
@_handle_errors
def depend_add(ctx: click.Context, source: str, target: str, dep_type: str,
               description: str, author: str | None):
    """Create a dependency from SOURCE to TARGET."""
    service = _service(ctx, require_init=True)
    dependency = service.create_dependency(
        source, target, dep_type, description, _author(ctx, author),
    )
    click.echo(click.style(f"Created dependency: {dependency.describe()}", fg="green"))
    click.echo(f"  ID:         {dependency.id}")
    click.echo(f"  Status:     {dependency.status.value}")
    if dependency.description:
        click.echo(f"  Description: {dependency.description}")
    click.echo(f"  Created by: {dependency.created_by}")
    _echo_warnings(service)


def _target_dependency(service: DependencyService, source: str | None, target: str | None,
                       dependency_id: str | None) -> Dependency:
    if dependency_id:
        return service.store.get(dependency_id)
    if not source or not target:
        raise click.UsageError("Give SOURCE and TARGET issue IDs, or --id")
    return service.find_dependency(source, target)


def _status_command(name: str, help_text: str):
    @depend.command(name, help=help_text)
    @click.argument("source", required=False)
    @click.argument("target", required=False)
    @click.option("--id", "dependency_id", help="Dependency ID instead of an issue pair")
    @click.option("--author", help="Who is making the change (default: git user)")
    @click.pass_context
    @_handle_errors
    def command(ctx: click.Context, source: str | None, target: str | None,
                dependency_id: str | None, author: str | None):
        service = _service(ctx, require_init=True)
        dependency = _target_dependency(service, source, target, dependency_id)
        action = {
            "remove": service.remove_dependency,
            "resolve": service.resolve_dependency,
            "reactivate": service.reactivate_dependency,
        }[name]
        result = action(dependency.id, _author(ctx, author))
        past = {"remove": "Removed", "resolve": "Resolved", "reactivate": "Reactivated"}[name]
        click.echo(click.style(f"{past} dependency: {result.describe()}", fg="green"))
        _echo_warnings(service)
    return command


depend_remove = _status_command("remove", "Delete a dependency.")
depend_resolve = _status_command("resolve", "Mark a dependency as resolved.")
depend_reactivate = _status_command("reactivate", "Make a resolved dependency active again.")


@depend.command("list")
@click.argument("issue_id")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
@_handle_errors
def depend_list(ctx: click.Context, issue_id: str, as_json: bool):
    """List every dependency of ISSUE_ID, resolved ones included."""
    service = _service(ctx)
    dependencies = service.get_issue_dependencies(issue_id)
    info = service.get_blocking_info(issue_id)

    if as_json:
        _echo_json({
            "issue_id": issue_id,
            "blocking_info": info.to_dict(),
            "dependencies": [d.to_dict() for d in dependencies],
        })
        return

    if not dependencies:
        click.echo(f"No dependencies found for {issue_id}")
        return

    click.echo(f"Dependencies for {issue_id}\n")
    if info.is_blocked:
        click.echo(click.style(
            f"Blocked by {len(info.blocked_by)} issue(s): {', '.join(info.blocked_by)}", fg="yellow",
        ))
    else:
        click.echo(click.style("Not blocked", fg="green"))
    if info.blocking_count:
        click.echo(f"Blocking {info.blocking_count} issue(s): {', '.join(info.blocking)}")
    if info.critical_path:
        click.echo(click.style("On the critical path (blocked and blocking)", fg="red"))
    click.echo()

    for label, active in (("Active", True), ("Resolved", False)):
        group = [d for d in dependencies if d.is_active == active]
        if not group:
            continue
        click.echo(f"{label}:")
        for dep in group:
            line = f"  {dep.describe()}"
            if dep.description:
                line += f" - {dep.description}"
            if dep.resolved_at:
                line += click.style(f" (resolved {dep.resolved_at:%Y-%m-%d} by {dep.resolved_by})", dim=True)
            click.echo(line)


@depend.command("graph")
@click.option("--include-requires", is_flag=True, help="Treat 'requires' edges as blocking")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
@_handle_errors
def depend_graph(ctx: click.Context, include_requires: bool, as_json: bool):
    """Show the active blocking graph."""
    graph = _service(ctx).get_dependency_graph(include_requires)
    if as_json:
        _echo_json(graph.to_dict())
        return

    nodes = graph.nodes
    if not nodes:
        click.echo("No dependencies found.")
        return

    click.echo(f"Issues involved: {len(nodes)}")
    click.echo(f"Active dependencies: {len(graph.active_dependencies)}\n")
    for issue_id in nodes:
        click.echo(click.style(issue_id, fg="cyan"))
        blocked_by = graph.get_blocking_issues(issue_id)
        blocking = graph.get_blocked_issues(issue_id)
        if blocked_by:
            click.echo(f"  ↑ blocked by: {', '.join(blocked_by)}")
        for i, blocked in enumerate(blocking):
            branch = "└─" if i == len(blocking) - 1 else "├─"
            click.echo(f"  {branch} {blocked}")
        if not blocked_by and not blocking:
            click.echo(click.style("  (no active blocking relationships)", dim=True))


@depend.command("blocked")
@click.option("--include-requires", is_flag=True, help="Treat 'requires' edges as blocking")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
@_handle_errors
def depend_blocked(ctx: click.Context, include_requires: bool, as_json: bool):
    """List every blocked issue."""
    service = _service(ctx)
    infos = [
        service.get_blocking_info(issue_id, include_requires)
        for issue_id in service.get_blocked_issues(include_requires)
    ]

    if as_json:
        _echo_json([info.to_dict() for info in infos])
        return
    if not infos:
        click.echo(click.style("No issues are currently blocked", fg="green"))
        return

    click.echo(f"Blocked issues ({len(infos)})\n")
    for info in infos:
        click.echo(click.style(info.issue_id, fg="cyan"))
        click.echo(f"  blocked by: {', '.join(info.blocked_by)}")
        if info.critical_path:
            click.echo(click.style(f"  critical path: also blocking {info.blocking_count}", fg="red"))


@depend.command("validate")
@click.option("--include-requires", is_flag=True, help="Treat 'requires' edges as blocking")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
@_handle_errors
def depend_validate(ctx: click.Context, include_requires: bool, as_json: bool):
    """Check the graph for cycles and conflicts. Exits 1 when invalid."""
    result = _service(ctx).validate_dependency_graph(include_requires)

    if as_json:
        _echo_json(result.to_dict())
    else:
        if result.is_valid:
            click.echo(click.style("Dependency graph is valid", fg="green"))
        else:
            click.echo(click.style("Dependency graph has problems", fg="red"))

        if result.circular_paths:
            click.echo(f"\nCircular dependencies ({len(result.circular_paths)}):")
            for i, cycle in enumerate(result.circular_paths, 1):
                click.echo(f"  {i}. {' -> '.join(cycle + cycle[:1])}")

        if result.conflicting_deps:
            click.echo(f"\nConflicting dependencies ({len(result.conflicting_deps)}):")
            for i, (a, b) in enumerate(result.conflicting_deps, 1):
                click.echo(f"  {i}. {a.describe()}  vs  {b.describe()}")

        for warning in result.warnings:
            click.echo(click.style(f"warning: {warning}", fg="yellow"))

    if not result.is_valid:
        ctx.exit(1)


@depend.command("stats")
@click.option("--author", help="Only dependencies created by this author")
@click.option("--type", "dep_type", type=click.Choice(_TYPE_CHOICES, case_sensitive=False))
@click.option("--status", type=click.Choice(_STATUS_CHOICES, case_sensitive=False))
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
@_handle_errors
def depend_stats(ctx: click.Context, author: str | None, dep_type: str | None,
                 status: str | None, as_json: bool):
    """Show dependency statistics."""
    predicate = DependencyFilter(
        created_by=author,
        type=DependencyType.parse(dep_type) if dep_type else None,
        status=DependencyStatus(status.lower()) if status else None,
    )
    stats = _service(ctx).get_dependency_stats(predicate)

    if as_json:
        _echo_json(stats.to_dict())
        return

    click.echo("Dependency Statistics\n")
    click.echo(f"  Total:    {stats.total_dependencies}")
    click.echo(f"  Active:   {stats.active_dependencies}")
    click.echo(f"  Resolved: {stats.resolved_dependencies}")
    click.echo(f"  Issues with dependencies: {stats.issues_with_deps}")
    click.echo(f"  Average per issue: {stats.average_deps_per_issue:.1f}")
    if stats.circular_dependencies:
        click.echo(click.style(f"  Circular dependencies: {stats.circular_dependencies}", fg="red"))

    for title, counts in (("By type", stats.dependencies_by_type),
                          ("By status", stats.dependencies_by_status),
                          ("Creators", stats.dependency_creators)):
        if counts:
            click.echo(f"\n{title}:")
            for key, count in sorted(counts.items()):
                click.echo(f"  {key}: {count}")

    for title, issues in (("Most blocked", stats.most_blocked_issues),
                          ("Most blocking", stats.most_blocking_issues)):
        if issues:
            click.echo(f"\n{title}:")
            for i, issue_id in enumerate(issues, 1):
                click.echo(f"  {i}. {issue_id}")


@depend.command("impact")
@click.argument("issue_id")
@click.option("--estimate", "-e", "estimates", multiple=True, metavar="ISSUE=HOURS",
              help="Estimated hours for an issue (repeatable)")
@click.option("--include-requires", is_flag=True, help="Treat 'requires' edges as blocking")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
@_handle_errors
def depend_impact(ctx: click.Context, issue_id: str, estimates: tuple[str, ...],
                  include_requires: bool, as_json: bool):
    """Analyze what a change to ISSUE_ID affects downstream."""
    analysis = _service(ctx).analyze_dependency_impact(
        issue_id, _parse_estimates(estimates), include_requires,
    )

    if as_json:
        _echo_json(analysis.to_dict())
        return

    risk = analysis.risk_level.value
    click.echo(f"Impact analysis for {issue_id}\n")
    click.echo(f"Risk level: {click.style(risk.upper(), fg=_RISK_COLORS[risk], bold=True)}")
    click.echo(f"Affected issues: {len(analysis.affected_issues)}")

    for affected in analysis.affected_issues:
        chain = analysis.blocking_chain[affected]
        via = f" (via {' -> '.join(chain[1:-1])})" if len(chain) > 2 else ""
        click.echo(f"  - {affected}{via}")

    if analysis.critical_path:
        click.echo(f"\nCritical path: {' -> '.join(analysis.critical_path)}")
    if analysis.delay_estimate is not None:
        hours = analysis.delay_estimate.total_seconds() / 3600
        click.echo(f"Estimated delay: {hours:.1f}h")

    if analysis.recommendations:
        click.echo("\nRecommendations:")
        for rec in analysis.recommendations:
            click.echo(f"  - {rec}")


# ── serve ─────────────────────────────────────────────────────

@cli.command()
@click.option("--port", "-p", default=8421, help="Port number")
@click.option("--host", default="127.0.0.1", help="Host address")
@click.pass_context
def serve(ctx: click.Context, port: int, host: str):
    """Serve the dependency JSON API."""
    try:
        import uvicorn
    except ImportError:
        raise click.ClickException(
            "uvicorn is required for the API server. "
            "Install with: pip install 'issuemap[web]'"
        )

    from issuemap.web import create_app

    click.echo(f"Starting issuemap API at http://{host}:{port}/api/dependencies")
    uvicorn.run(create_app(_config(ctx)), host=host, port=port, log_level="info")


if __name__ == "__main__":
    cli()
