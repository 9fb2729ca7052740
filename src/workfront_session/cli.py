"""Click CLI for workfront-session."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
import structlog

from workfront_session import __version__
from workfront_session.utils.logging import setup_logging

logger = structlog.get_logger()


def _build_service(ctx: click.Context):
    from workfront_session.auth.service import LoginService
    from workfront_session.config import load_config

    config_path = ctx.obj.get("config_path")
    try:
        config = load_config(Path(config_path) if config_path else None)
    except Exception as e:
        click.echo(f"Config: FAILED — {e}", err=True)
        sys.exit(1)
    return LoginService(config)


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines.")
@click.option(
    "-c", "--config", "config_path", type=click.Path(exists=True), default=None,
    help="Path to config.yaml.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, json_logs: bool, config_path: str | None) -> None:
    """workfront-session — Reusable Adobe Workfront browser sessions."""
    setup_logging(verbose=verbose, json_output=json_logs)
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path


@cli.command()
@click.option(
    "--headless/--visible", "headless", default=None,
    help="Run the browser headless or in a visible window. "
         "WF_FORCE_VISIBLE=true always wins.",
)
@click.option("--email", envvar="WF_LOGIN_EMAIL", default=None, help="Login email.")
@click.option(
    "--broker-password", envvar="WF_BROKER_PASSWORD", default=None,
    help="Okta password (or set WF_BROKER_PASSWORD).",
)
@click.option(
    "--primary-password", envvar="WF_PRIMARY_PASSWORD", default=None,
    help="Adobe ID password for non-federated accounts.",
)
@click.option("--follow", is_flag=True, help="Print each login phase as it happens.")
@click.pass_context
def login(
    ctx: click.Context,
    headless: bool | None,
    email: str | None,
    broker_password: str | None,
    primary_password: str | None,
    follow: bool,
) -> None:
    """Log in to Workfront and save the session."""
    from workfront_session.models import Credentials, LoginOptions

    credentials = None
    if email or broker_password:
        if not (email and broker_password):
            click.echo("Both --email and --broker-password are required for automatic login.", err=True)
            sys.exit(2)
        credentials = Credentials(
            email=email, broker_password=broker_password, primary_password=primary_password
        )

    service = _build_service(ctx)
    options = LoginOptions(headless=headless, credentials=credentials)
    asyncio.run(_login_async(service, options, follow))


async def _login_async(service, options, follow: bool) -> None:
    """Async implementation of the login command."""
    from workfront_session.errors import LoginCancelledError, LoginError, LoginInProgressError
    from workfront_session.models import LoginPhase

    if not follow:
        try:
            result = await service.login(options)
        except (LoginError, LoginInProgressError, LoginCancelledError) as e:
            click.echo(f"ERROR: {e}", err=True)
            sys.exit(1)
        if result.reused:
            click.echo(f"Existing session reused ({result.session_file})")
        else:
            click.echo(f"Logged in. Session saved to {result.session_file}")
        return

    started = service.start_login(options)
    if not started.started:
        click.echo(f"Login already running (phase {started.phase.value})", err=True)
        sys.exit(1)

    last_phase = None
    while True:
        progress = service.get_progress()
        if progress.phase is not last_phase:
            last_phase = progress.phase
            click.echo(f"[{progress.phase.value}] {progress.message or ''}".rstrip())
        if progress.done:
            break
        await asyncio.sleep(0.5)

    await service.wait_for_login()
    if progress.phase is not LoginPhase.SUCCESS:
        click.echo(f"ERROR: {progress.error or 'login did not complete'}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show whether a fresh session exists."""
    service = _build_service(ctx)
    result = service.check_login_status()

    if not result.logged_in and result.last_login is None:
        click.echo(f"Not logged in: {result.error}")
        sys.exit(1)

    state = "valid" if result.logged_in else "expired"
    click.echo(f"Session: {state}")
    click.echo(f"  File: {result.session_file} ({result.file_size} bytes)")
    click.echo(f"  Last login: {result.last_login:%Y-%m-%d %H:%M:%S} UTC")
    click.echo(f"  Age: {result.hours_age}h")
    if not result.logged_in:
        sys.exit(1)


@cli.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Show a summary of the saved session (no cookie values)."""
    service = _build_service(ctx)
    result = service.get_session_info()

    if not result.has_session:
        click.echo(result.message or result.error or "No session")
        sys.exit(1)

    click.echo(f"Cookies: {result.cookie_count}")
    click.echo(f"Domains: {result.domain}")
    click.echo(f"Storage state: {'yes' if result.has_storage_state else 'no'}")
    click.echo(f"Age: {result.hours_age}h")


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Validate the saved session."""
    service = _build_service(ctx)
    result = service.validate_session()

    if not result.valid:
        click.echo(f"INVALID: {result.reason}", err=True)
        sys.exit(1)
    click.echo(f"Session OK (age {result.hours_age}h)")


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show session age and expiry."""
    service = _build_service(ctx)
    result = service.get_session_stats()

    if not result.has_stats:
        click.echo(result.message or result.error or "No stats")
        sys.exit(1)

    click.echo(f"Age: {result.session_age.hours}h ({result.session_age.days} days)")
    click.echo(f"Size: {result.session_size} bytes")
    click.echo(f"Expires in: {result.expires_in}h")
    if result.is_expiring_soon:
        click.echo("Session expires soon; log in again to refresh it.")


@cli.command()
@click.pass_context
def clear(ctx: click.Context) -> None:
    """Delete the saved session."""
    service = _build_service(ctx)
    try:
        result = service.clear_session()
    except OSError as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(1)
    click.echo(result.message)
