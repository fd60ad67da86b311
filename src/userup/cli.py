# Userup Python SDK
# File: cli.py
# Version: v2

"""Userup session manager CLI.

Inspect and work with anonymous sessions.

Usage:
    userup-sessmgr add KEY --json '{"cart": 3}'   # Add a session
    userup-sessmgr add --generate                 # Add with a random key
    userup-sessmgr ls                             # List sessions
    userup-sessmgr get KEY                        # Show a session's events
    userup-sessmgr evt KEY --type T --subject S --data '{...}'
    userup-sessmgr identify KEY USER_ID           # Attach a session to a user

Connection settings come from USERUP_* environment variables;
USERUP_MOCK_MODE=1 runs against the in-memory service.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Coroutine, Dict, Optional

import click

from .errors import UserupError, ValidationError
from .tools import tasks

FORMAT_TABLE = "table"
FORMAT_JSON = "json"

DEMO_SCHEMA = "userup.demo.schema"


def truncate(text: Optional[str], max_len: int = 50) -> str:
    """Truncate text for display."""
    if not text:
        return ""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def _run(coro: Coroutine[Any, Any, Dict[str, Any]]) -> Dict[str, Any]:
    try:
        return asyncio.run(coro)
    except ValidationError as exc:
        raise click.UsageError(exc.message) from exc
    except UserupError as exc:
        raise click.ClickException(str(exc)) from exc


def _parse_json(value: Optional[str], param: str) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except ValueError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}", param_hint=param) from exc


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool) -> None:
    """Inspect and work with anonymous sessions."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


@main.command("add")
@click.argument("key", required=False)
@click.option("--generate", "-g", is_flag=True, help="Generate a random session key")
@click.option("--json", "-j", "document", help="JSON object stored with the session")
def add(key: Optional[str], generate: bool, document: Optional[str]) -> None:
    """Add a new session."""
    if generate:
        key = None
    elif not key:
        raise click.UsageError("Provide a session KEY or pass --generate.")

    doc = _parse_json(document, "--json") or {}
    if not isinstance(doc, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--json")

    result = _run(tasks.add_session(session_key=key, document=doc))
    click.echo(f"session created: {result['session_key']}")
    click.echo(json.dumps(doc, indent=2, ensure_ascii=False))


@main.command("ls")
@click.option("--limit", "-n", default=100, show_default=True, help="Maximum sessions to list")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)
def list_sessions(limit: int, output_format: str) -> None:
    """List existing sessions."""
    sessions = _run(tasks.list_sessions(limit=limit))["sessions"]

    if not sessions:
        click.echo("No sessions found.")
        return

    if output_format == FORMAT_JSON:
        click.echo(json.dumps(sessions, indent=2, ensure_ascii=False, default=str))
        return

    click.echo(f"{'Session Key':<24} {'User ID':<24} {'Object':<40}")
    click.echo("-" * 90)
    for s in sessions:
        obj = truncate(json.dumps(s["object"], ensure_ascii=False, sort_keys=True), 40)
        click.echo(f"{s['key']:<24} {s['user_id'] or '-':<24} {obj:<40}")

    click.echo(f"\nTotal: {len(sessions)} session(s)")


@main.command("get")
@click.argument("key")
def get_events(key: str) -> None:
    """Show a specific session's events."""
    events = _run(tasks.get_session_events(session_key=key))["events"]

    if not events:
        click.echo(f"No events for session {key}.")
        return

    click.echo(f"{'Subject':<20} {'Type':<30} {'User ID':<16} {'Data':<40}")
    click.echo("-" * 110)
    for e in events:
        data = truncate(json.dumps(e["data"], ensure_ascii=False, sort_keys=True), 40)
        click.echo(
            f"{truncate(e['subject'], 20):<20} {truncate(e['type'], 30):<30} "
            f"{e['user_id'] or '-':<16} {data:<40}"
        )


@main.command("evt")
@click.argument("key")
@click.option("--type", "event_type", default="", help="Reverse DNS name describing the event")
@click.option("--subject", default="", help="Name of the session event")
@click.option("--data", default=None, help="JSON payload of the event")
@click.option("--schema", default=DEMO_SCHEMA, show_default=True, help="Data schema")
def log_event(key: str, event_type: str, subject: str, data: Optional[str], schema: str) -> None:
    """Create an event within a session."""
    if not data:
        raise click.UsageError("Data is required for the event.")
    payload = _parse_json(data, "--data")

    _run(
        tasks.log_session_event(
            session_key=key,
            type=event_type,
            subject=subject,
            data=payload,
            schema=schema,
        )
    )
    click.echo(f"event logged: {event_type} ({subject}) on session {key}")


@main.command("identify")
@click.argument("key")
@click.argument("user_id")
def identify(key: str, user_id: str) -> None:
    """Identify a session as belonging to a specific user."""
    result = _run(tasks.identify_session(session_key=key, user_id=user_id))
    click.echo(f"session {key} identified as {result['user_id']}")


if __name__ == "__main__":
    main()
