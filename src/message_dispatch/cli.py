# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Command-line interface for message-dispatch.

Operations that backend jobs and operators run without going through the
HTTP API: serving, the retry sweep, stats, template listing and one-off
test sends.

Usage:
    message-dispatch serve --port 8000
    message-dispatch retry --channel all --max-retries 3
    message-dispatch stats --days 7 --json
    message-dispatch templates list --channel sms
    message-dispatch settings show
    message-dispatch send-email ana@example.com --template welcome-email -v name=Ana
    message-dispatch send-sms +15550001111 --body "Class starts at 9"

Example:
    $ MDS_CONFIG=/etc/message-dispatch/config.ini message-dispatch retry
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from message_dispatch.api import create_app
from message_dispatch.config import DispatchConfig, load_config
from message_dispatch.logger import configure_logging
from message_dispatch.models import (
    SendEmailOptions,
    SendSmsOptions,
    SendTemplatedEmailOptions,
    SendTemplatedSmsOptions,
)
from message_dispatch.service import MessagingService

console = Console()
err_console = Console(stderr=True)

T = TypeVar("T")


def run_async(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    console.print_json(json.dumps(data, indent=2, default=str))


def parse_variables(items: tuple[str, ...]) -> dict[str, str]:
    """Parse ``key=value`` pairs given with ``-v``."""
    variables: dict[str, str] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Expected key=value, got {item!r}", param_hint="--var")
        variables[key.strip()] = value
    return variables


def with_service(config: DispatchConfig, action: Callable[[MessagingService], Awaitable[T]]) -> T:
    """Open a MessagingService, run action and close it."""

    async def _run() -> T:
        service = MessagingService(config)
        await service.start()
        try:
            return await action(service)
        finally:
            await service.close()

    return run_async(_run())


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Path to config.ini.")
@click.option("--db", "db_path", help="Database path (overrides config).")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, db_path: str | None) -> None:
    """message-dispatch: email and SMS dispatch for the LMS."""
    config = load_config(config_path)
    if db_path:
        config.db_path = db_path
    configure_logging(config.log_level)
    ctx.obj = config


@main.command("serve")
@click.option("--host", "-h", default=None, help="Host to bind to.")
@click.option("--port", "-p", type=int, default=None, help="Port to listen on.")
@click.pass_obj
def serve(config: DispatchConfig, host: str | None, port: int | None) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    host = host or config.http_host
    port = port or config.http_port
    service = MessagingService(config)

    @asynccontextmanager
    async def lifespan(app):
        await service.start()
        yield
        await service.close()

    console.print("\n[bold cyan]Starting message-dispatch[/bold cyan]")
    console.print(f"  DB:      {config.db_path}")
    console.print(f"  Listen:  {host}:{port}")
    console.print()

    uvicorn.run(
        create_app(service, api_token=config.api_token, lifespan=lifespan),
        host=host,
        port=port,
        log_level=config.log_level.lower(),
    )


@main.command("retry")
@click.option(
    "--channel", "-c", type=click.Choice(["email", "sms", "all"]), default="all", show_default=True,
    help="Channel to sweep.",
)
@click.option("--max-retries", type=int, default=3, show_default=True, help="Retry ceiling per record.")
@click.pass_obj
def retry(config: DispatchConfig, channel: str, max_retries: int) -> None:
    """Run one retry sweep over FAILED messages."""

    async def _retry(service: MessagingService) -> dict[str, int]:
        counts: dict[str, int] = {}
        if channel in ("email", "all"):
            counts["email"] = await service.retry_failed_emails(max_retries)
        if channel in ("sms", "all"):
            counts["sms"] = await service.retry_failed_sms(max_retries)
        return counts

    counts = with_service(config, _retry)
    for name, count in counts.items():
        print_success(f"{name}: {count} message(s) re-sent")


@main.command("stats")
@click.option("--days", "-d", type=int, default=30, show_default=True, help="Trailing window in days.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_obj
def stats(config: DispatchConfig, days: int, as_json: bool) -> None:
    """Show delivery statistics."""
    data = with_service(config, lambda service: service.get_messaging_stats(days))

    if as_json:
        print_json(data)
        return

    table = Table(title=f"Messaging stats ({data['period']})")
    table.add_column("Channel", style="cyan")
    table.add_column("Total", justify="right")
    table.add_column("Delivery rate", justify="right")
    table.add_column("Open / failure rate", justify="right")
    table.add_column("Bounce rate / cost", justify="right")

    email, sms = data["email"], data["sms"]
    table.add_row(
        "email",
        str(email["total"]),
        f"{email['delivery_rate']:.1%}",
        f"{email['open_rate']:.1%}",
        f"{email['bounce_rate']:.1%}",
    )
    table.add_row(
        "sms",
        str(sms["total"]),
        f"{sms['delivery_rate']:.1%}",
        f"{sms['failure_rate']:.1%}",
        f"{sms['total_cost']:.4f}",
    )
    console.print(table)


@main.group("templates", invoke_without_command=True)
@click.pass_context
def templates(ctx: click.Context) -> None:
    """Inspect message templates."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@templates.command("list")
@click.option("--channel", "-c", type=click.Choice(["email", "sms"]), default="email", show_default=True)
@click.option("--active-only", "-a", is_flag=True, help="Show only active templates.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_obj
def templates_list(config: DispatchConfig, channel: str, active_only: bool, as_json: bool) -> None:
    """List templates of a channel."""
    items = with_service(config, lambda service: service.templates(channel).list(active_only))

    if as_json:
        print_json(items)
        return

    if not items:
        console.print("[dim]No templates found.[/dim]")
        return

    table = Table(title=f"{channel.upper()} templates")
    table.add_column("Slug", style="cyan")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Active", justify="center")
    table.add_column("Version", justify="right")
    table.add_column("Sent", justify="right")

    for t in items:
        active = "[green]✓[/green]" if t.get("is_active") else "[red]✗[/red]"
        table.add_row(
            t["slug"],
            t.get("name") or "-",
            t.get("category") or "-",
            active,
            str(t.get("version") or 1),
            str(t.get("sent_count") or 0),
        )

    console.print(table)


@main.group("settings", invoke_without_command=True)
@click.pass_context
def settings(ctx: click.Context) -> None:
    """Inspect messaging settings."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@settings.command("show")
@click.pass_obj
def settings_show(config: DispatchConfig) -> None:
    """Show the stored settings record with secrets masked."""
    print_json(with_service(config, lambda service: service.get_settings()))


@main.command("send-email")
@click.argument("to")
@click.option("--template", "-t", "template_slug", help="Template slug.")
@click.option("--var", "-v", "variables", multiple=True, help="Template variable key=value.")
@click.option("--subject", "-s", help="Subject for a raw send.")
@click.option("--html", help="HTML body for a raw send.")
@click.option("--user-id", help="Recipient user id (enables the preference check).")
@click.pass_obj
def send_email(
    config: DispatchConfig,
    to: str,
    template_slug: str | None,
    variables: tuple[str, ...],
    subject: str | None,
    html: str | None,
    user_id: str | None,
) -> None:
    """Send one email, raw or from a template."""
    try:
        if template_slug:
            options: Any = SendTemplatedEmailOptions(
                to=to, template_slug=template_slug, variables=parse_variables(variables), user_id=user_id
            )
            action = lambda service: service.send_templated_email(options)  # noqa: E731
        else:
            options = SendEmailOptions(to=to, subject=subject, html=html, user_id=user_id)
            action = lambda service: service.send_email(options)  # noqa: E731
    except ValidationError as e:
        print_error(f"Invalid email request: {e.errors()[0]['msg']}")
        sys.exit(1)

    result = with_service(config, action)
    if not result.success:
        print_error(result.error or "Send failed")
        sys.exit(1)
    print_success(f"Email sent (id: {result.message_id})")


@main.command("send-sms")
@click.argument("to")
@click.option("--template", "-t", "template_slug", help="Template slug.")
@click.option("--var", "-v", "variables", multiple=True, help="Template variable key=value.")
@click.option("--body", "-b", help="Body for a raw send.")
@click.option("--user-id", help="Recipient user id (enables the preference check).")
@click.pass_obj
def send_sms(
    config: DispatchConfig,
    to: str,
    template_slug: str | None,
    variables: tuple[str, ...],
    body: str | None,
    user_id: str | None,
) -> None:
    """Send one SMS, raw or from a template."""
    try:
        if template_slug:
            options: Any = SendTemplatedSmsOptions(
                to=to, template_slug=template_slug, variables=parse_variables(variables), user_id=user_id
            )
            action = lambda service: service.send_templated_sms(options)  # noqa: E731
        else:
            options = SendSmsOptions(to=to, body=body, user_id=user_id)
            action = lambda service: service.send_sms(options)  # noqa: E731
    except ValidationError as e:
        print_error(f"Invalid SMS request: {e.errors()[0]['msg']}")
        sys.exit(1)

    result = with_service(config, action)
    if not result.success:
        print_error(result.error or "Send failed")
        sys.exit(1)
    print_success(f"SMS sent (sid: {result.message_sid})")


if __name__ == "__main__":
    main()
