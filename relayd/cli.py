"""Relay CLI.

Inspect session logs locally and start the daemon.
"""

import asyncio
import json
import sys
from pathlib import Path

import click

from relay_library.activity import ActivityEntryBuilder
from relay_library.activity import build_activity_log_text
from relay_library.activity.render import render_entry
from relay_library.config import load_config
from relay_library.sessions import displayable_text
from relay_library.sessions import filter_records
from relay_library.sessions import get_file_size
from relay_library.sessions import get_session_file_path
from relay_library.sessions import group_turns
from relay_library.sessions import read_session_records
from relay_library.sessions import watch_session_records


def resolve_session_path(session_id: str | None, working_dir: str | None, file: str | None) -> Path:
    """Session log from an explicit file, or from id and working directory.

    Raises:
        click.UsageError: If neither form is given
        click.FileError: If the log does not exist
    """
    if file:
        path = Path(file)
    elif session_id:
        config = load_config()
        path = get_session_file_path(session_id, working_dir or str(Path.cwd()), config.projects_dir)
    else:
        raise click.UsageError("Give a SESSION_ID or --file")
    if not path.is_file():
        raise click.FileError(str(path), hint="session log not found")
    return path


session_options = [
    click.argument("session_id", required=False),
    click.option("--working-dir", "-w", help="Working directory the session ran in (default: cwd)"),
    click.option("--file", "-f", type=click.Path(dir_okay=False), help="Read this JSONL log directly"),
]


def with_session_options(func):
    for option in reversed(session_options):
        func = option(func)
    return func


@click.group()
def cli():
    """Relay: session activity and conversation concurrency."""
    pass


@cli.command()
@with_session_options
@click.option("--json", "as_json", is_flag=True, help="Print turns as JSON")
def turns(session_id: str | None, working_dir: str | None, file: str | None, as_json: bool):
    """Show the turns of a session."""
    path = resolve_session_path(session_id, working_dir, file)
    config = load_config()
    grouped = group_turns(filter_records(read_session_records(path)), config.plans_dir_marker)

    if as_json:
        click.echo(json.dumps([turn.model_dump(mode="json", by_alias=True) for turn in grouped], indent=2))
        return

    for number, turn in enumerate(grouped, 1):
        click.echo(f"Turn {number} ({len(turn.all_message_uuids)} records)")
        click.echo("-" * 40)
        if turn.user_input is not None:
            click.echo(f"> {displayable_text(turn.user_input, config.plans_dir_marker)}")
        for segment in turn.segments:
            if segment.activity_messages:
                click.echo(f"  [{len(segment.activity_messages)} activity records]")
            if segment.text_output is not None:
                click.echo(displayable_text(segment.text_output, config.plans_dir_marker))
        if turn.trailing_activity:
            click.echo(f"  [{len(turn.trailing_activity)} trailing activity records]")
        if turn.plan_file_path:
            click.echo(f"  Plan: {turn.plan_file_path}")
        click.echo()


@cli.command()
@with_session_options
def activity(session_id: str | None, working_dir: str | None, file: str | None):
    """Show the activity log of a session."""
    path = resolve_session_path(session_id, working_dir, file)
    builder = ActivityEntryBuilder.from_settings(load_config())
    builder.add_records(filter_records(read_session_records(path)))
    click.echo(build_activity_log_text(builder.log))


@cli.command()
@with_session_options
@click.option("--interval", default=1.0, show_default=True, help="Seconds between polls")
@click.option("--from-start", is_flag=True, help="Replay the existing log first")
def tail(session_id: str | None, working_dir: str | None, file: str | None, interval: float, from_start: bool):
    """Follow a session's activity as the log grows."""
    path = resolve_session_path(session_id, working_dir, file)
    builder = ActivityEntryBuilder.from_settings(load_config())
    offset = 0 if from_start else get_file_size(path)

    async def follow() -> None:
        async for batch in watch_session_records(path, offset, poll_interval=interval):
            for record in batch.records:
                for entry in builder.add_record(record):
                    click.echo("\n".join(render_entry(entry, builder.log.result_for(entry))))

    try:
        asyncio.run(follow())
    except KeyboardInterrupt:
        click.echo("Stopped")


@cli.command()
@click.option("--host", help="Override the configured listen address")
@click.option("--port", type=int, help="Override the configured port")
def serve(host: str | None, port: int | None):
    """Run the relayd daemon in the foreground."""
    import uvicorn

    try:
        config = load_config()
        uvicorn.run(
            "relayd.main:app",
            host=host or config.host,
            port=port or config.port,
            log_level=config.log_level.lower(),
        )
    except Exception as e:
        click.echo(f"Failed to start daemon: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
