"""Desk analytics CLI - Thin wrapper around operations module."""

import asyncio
import json
import logging
import sys
from functools import wraps
from typing import Annotated, Callable

import typer

from desk_analytics import __version__
from desk_analytics import operations
from desk_analytics.client import DeskClientError

# Main app
app = typer.Typer(
    name="desk-analytics",
    help="Desk analytics CLI - Agent performance, ticket age and backlog reports for Zoho Desk.",
    no_args_is_help=True,
    add_completion=False,
)

# Auth subcommand group
auth_app = typer.Typer(
    help="Authentication management - configure and test Zoho Desk credentials.",
    no_args_is_help=True,
)
app.add_typer(auth_app, name="auth")

# Config subcommand group
config_app = typer.Typer(
    help="Dashboard settings - timezone and page sizes.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


def output_json(data: dict | list) -> None:
    """Output JSON to stdout."""
    print(json.dumps(data, indent=2, default=str))


def output_error(message: str, exit_code: int = 1) -> None:
    """Output error and exit."""
    print(json.dumps({"error": message}), file=sys.stderr)
    raise typer.Exit(exit_code)


def run_async(coro):
    """Run async coroutine synchronously."""
    return asyncio.run(coro)


def desk_command(func: Callable) -> Callable:
    """Decorator to handle common error patterns for CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (DeskClientError, ValueError) as e:
            output_error(str(e))
    return wrapper


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        output_json({"version": __version__})
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version", "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log progress to stderr."),
    ] = False,
) -> None:
    """Desk analytics CLI - Reports over Zoho Desk tickets and metrics."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


# =============================================================================
# Auth Commands
# =============================================================================


@auth_app.command("login")
def auth_login_cmd(
    client_id: Annotated[
        str | None,
        typer.Option("--client-id", help="Zoho OAuth client id"),
    ] = None,
    client_secret: Annotated[
        str | None,
        typer.Option("--client-secret", help="Zoho OAuth client secret"),
    ] = None,
    refresh_token: Annotated[
        str | None,
        typer.Option("--refresh-token", help="Zoho OAuth refresh token"),
    ] = None,
    org_id: Annotated[
        str | None,
        typer.Option("--org-id", help="Zoho Desk organization id"),
    ] = None,
    data_center: Annotated[
        str,
        typer.Option("--data-center", help="Zoho data center domain (com, eu, in, com.au, ...)"),
    ] = "com",
) -> None:
    """Configure Zoho Desk authentication.

    Interactive mode (no options): prompts for credentials.
    Non-interactive mode (all options): validates and saves credentials.
    """
    values = [client_id, client_secret, refresh_token, org_id]
    all_provided = all(values)
    none_provided = not any(values)

    if not all_provided and not none_provided:
        output_error(
            "Either provide all credentials (--client-id, --client-secret, "
            "--refresh-token, --org-id) or none for interactive mode."
        )

    if none_provided:
        typer.echo("Configure Zoho Desk authentication\n")
        client_id = typer.prompt("Client ID")
        client_secret = typer.prompt("Client Secret", hide_input=True)
        refresh_token = typer.prompt("Refresh Token", hide_input=True)
        org_id = typer.prompt("Organization ID")

    typer.echo("\nValidating credentials...", err=True)
    result = run_async(operations.auth_login(client_id, client_secret, refresh_token, org_id, data_center))

    if result["success"]:
        output_json({
            "success": True,
            "message": f"Authenticated; {result['departments']} departments visible",
            "config_path": result["config_path"],
        })
    else:
        output_error(f"Authentication failed: {result['error']}")


@auth_app.command("status")
def auth_status_cmd() -> None:
    """Check current authentication status.

    Shows credential source (env vars, config file, or none) and validates them.
    """
    result = run_async(operations.check_auth_status(validate=True))

    status = {
        "configured": result["configured"],
        "source": result["source"],
        "config_path": result["config_path"],
        "env_vars_set": result["env_vars_set"],
        "has_config_file": result["has_config_file"],
    }

    if result["departments"] is not None:
        status["authenticated"] = True
        status["departments"] = result["departments"]
    elif result["error"]:
        status["authenticated"] = False
        status["error"] = result["error"]
    elif result["guidance"]:
        status["authenticated"] = False
        status["guidance"] = result["guidance"]

    output_json(status)


@auth_app.command("logout")
def auth_logout_cmd() -> None:
    """Remove saved credentials from config file.

    Note: Does not affect environment variables if set.
    """
    result = operations.auth_logout()

    output = {
        "deleted": result["deleted"],
        "config_path": result["config_path"],
    }

    if result["deleted"]:
        output["message"] = "Credentials removed from config file."
    else:
        output["message"] = "No config file found to delete."

    if result["warning"]:
        output["warning"] = result["warning"]

    output_json(output)


# =============================================================================
# Config Commands
# =============================================================================


@config_app.command("show")
def config_show_cmd() -> None:
    """Show dashboard settings."""
    output_json(operations.show_config())


@config_app.command("set")
@desk_command
def config_set_cmd(
    timezone: Annotated[str | None, typer.Option("--timezone", help="IANA timezone, e.g. Asia/Kolkata")] = None,
    metrics_page_size: Annotated[int | None, typer.Option("--metrics-page-size", min=1)] = None,
    archived_page_size: Annotated[int | None, typer.Option("--archived-page-size", min=1)] = None,
    performance_page_size: Annotated[int | None, typer.Option("--performance-page-size", min=1)] = None,
) -> None:
    """Update dashboard settings."""
    output_json(operations.set_config(
        timezone=timezone,
        metrics_page_size=metrics_page_size,
        archived_page_size=archived_page_size,
        performance_page_size=performance_page_size,
    ))


# =============================================================================
# Reports
# =============================================================================

FromDate = Annotated[str | None, typer.Option("--from", help="First day (YYYY-MM-DD)")]
ToDate = Annotated[str | None, typer.Option("--to", help="Last day (YYYY-MM-DD)")]
Department = Annotated[str | None, typer.Option("--department", "-d", help="Department ID (or 'all')")]
Agents = Annotated[list[str] | None, typer.Option("--agent", "-a", help="Agent display name (repeatable)")]
Statuses = Annotated[list[str] | None, typer.Option("--status", "-s", help="Status, e.g. open, 'On Hold' (repeatable)")]
Search = Annotated[str | None, typer.Option("--search", "-q", help="Search text")]
Page = Annotated[int, typer.Option("--page", "-p", min=1, help="Page number")]
PageSize = Annotated[int | None, typer.Option("--page-size", min=0, help="Rows per page (0 = all)")]
Xlsx = Annotated[str | None, typer.Option("--xlsx", help="Export all filtered rows to this .xlsx file")]


def _split(values: list[str] | None) -> list[str]:
    """Accept repeated options as well as comma-separated values."""
    return [v.strip() for value in values or [] for v in value.split(",") if v.strip()]


def _run_view(
    view: str,
    from_date: str | None,
    to_date: str | None,
    department: str | None,
    agents: list[str] | None,
    statuses: list[str] | None,
    search: str | None,
    page: int,
    page_size: int | None,
    xlsx: str | None,
) -> None:
    filters = operations.build_filters(
        from_date, to_date, department, _split(agents), _split(statuses), search
    )
    if xlsx:
        output_json(run_async(operations.export_view(view, filters, xlsx)))
    else:
        output_json(run_async(operations.get_view_page(view, filters, page, page_size)))


@app.command("performance")
@desk_command
def performance_cmd(
    from_date: FromDate = None,
    to_date: ToDate = None,
    department: Department = None,
    agent_id: Annotated[str | None, typer.Option("--agent-id", help="Assignee ID (or 'all')")] = None,
) -> None:
    """Agent performance summary and per-agent figures."""
    result = run_async(operations.get_agent_performance(
        from_date=from_date, to_date=to_date, department_id=department, agent_id=agent_id,
    ))
    output_json(result)


@app.command("leaderboard")
@desk_command
def leaderboard_cmd(
    from_date: FromDate = None,
    to_date: ToDate = None,
    department: Department = None,
    agents: Agents = None,
    page: Page = 1,
    page_size: PageSize = None,
    xlsx: Xlsx = None,
) -> None:
    """Agents ranked by resolved tickets."""
    _run_view("performance", from_date, to_date, department, agents, None, None, page, page_size, xlsx)


@app.command("metrics")
@desk_command
def metrics_cmd(
    from_date: FromDate = None,
    to_date: ToDate = None,
    department: Department = None,
    agents: Agents = None,
    statuses: Statuses = None,
    search: Search = None,
    page: Page = 1,
    page_size: PageSize = None,
    xlsx: Xlsx = None,
) -> None:
    """Per-ticket metrics with per-agent averages."""
    _run_view("metrics", from_date, to_date, department, agents, statuses, search, page, page_size, xlsx)


@app.command("pending")
@desk_command
def pending_cmd(
    from_date: FromDate = None,
    to_date: ToDate = None,
    department: Department = None,
    agents: Agents = None,
    statuses: Statuses = None,
    search: Search = None,
    page: Page = 1,
    page_size: PageSize = None,
    xlsx: Xlsx = None,
) -> None:
    """Pending tickets grouped by agent."""
    _run_view("pending", from_date, to_date, department, agents, statuses, search, page, page_size, xlsx)


@app.command("archived")
@desk_command
def archived_cmd(
    from_date: FromDate = None,
    to_date: ToDate = None,
    department: Department = None,
    search: Search = None,
    page: Page = 1,
    page_size: PageSize = None,
    xlsx: Xlsx = None,
) -> None:
    """Archived tickets. A numeric search matches the ticket number exactly."""
    _run_view("archived", from_date, to_date, department, None, None, search, page, page_size, xlsx)


@app.command("department-age")
@desk_command
def department_age_cmd(
    department: Department = None,
    search: Search = None,
    page: Page = 1,
    page_size: PageSize = None,
    xlsx: Xlsx = None,
) -> None:
    """Pending tickets per department in 1-7, 8-15 and 15+ day buckets."""
    _run_view("department-age", None, None, department, None, None, search, page, page_size, xlsx)


@app.command("agent-age")
@desk_command
def agent_age_cmd(
    department: Department = None,
    agents: Agents = None,
    search: Search = None,
    page: Page = 1,
    page_size: PageSize = None,
    xlsx: Xlsx = None,
) -> None:
    """Pending tickets per agent in 1-15, 16-30 and 30+ day buckets."""
    _run_view("agent-age", None, None, department, agents, None, search, page, page_size, xlsx)


@app.command("departments")
@desk_command
def departments_cmd() -> None:
    """List departments."""
    output_json(run_async(operations.list_departments()))


def main_cli() -> None:
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main_cli()
