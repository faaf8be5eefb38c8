"""flashsync CLI: sync boundary commands, offline merge/replay tools, config."""

import asyncio
import json
import logging
import logging.handlers
import sys
import time
from collections.abc import Coroutine
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer

from flashsync.application.config import AppConfig, resolve_config
from flashsync.domain.exceptions import FlashsyncError

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="flashsync: spaced-repetition progress sync and scheduling.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage flashsync configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def _resolve_with_overrides(ctx: typer.Context | None = None, **overrides: Any) -> AppConfig:
    verbose = ctx.obj.get("verbose_bonus", 1) if ctx is not None and ctx.obj else 1
    config = resolve_config({**overrides, "verbose": verbose})
    logging.getLogger().setLevel(_LEVELS.get(config.verbose, logging.DEBUG))
    return config


def _attach_log_file(config: AppConfig) -> logging.Handler:
    """Mirror log records into a rotating `flashsync.log` under the log directory."""
    config.log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        config.log_dir / "flashsync.log",
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", "%Y-%m-%d %H:%M:%S")
    )
    logging.getLogger().addHandler(handler)
    return handler


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        typer.secho(f"Could not read {path}: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2))


def _run(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except FlashsyncError as e:
        typer.secho(str(e), fg="red", err=True)
        raise typer.Exit(1) from e


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
):
    """Global settings for flashsync."""
    ctx.ensure_object(dict)
    ctx.obj["verbose_bonus"] = verbose


# ---------------------------------------------------------------------------
# Sync boundary commands
# ---------------------------------------------------------------------------


@app.command()
def serve(
    ctx: typer.Context,
    port: Annotated[int | None, typer.Option(help="Port to bind the server to.")] = None,
    host: Annotated[str | None, typer.Option(help="Host to bind the server to.")] = None,
    data_dir: Annotated[Path | None, typer.Option(help="Snapshot directory.")] = None,
    catalog: Annotated[Path | None, typer.Option(help="YAML card catalog.")] = None,
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """[bold green]Serve[/bold green] the progress sync HTTP API."""
    import os

    import uvicorn

    config = _resolve_with_overrides(
        ctx, port=port, host=host, data_dir=data_dir, catalog_path=catalog
    )
    # The server process resolves its own config; pass ours through the environment
    os.environ["FLASHSYNC_DATA_DIR"] = str(config.data_dir)
    if config.catalog_path:
        os.environ["FLASHSYNC_CATALOG_PATH"] = str(config.catalog_path)

    _attach_log_file(config)
    logger.info(f"Logging to {config.log_dir / 'flashsync.log'}")
    uvicorn.run("flashsync.server:app", host=config.host, port=config.port, reload=reload)


@app.command()
def fetch(
    ctx: typer.Context,
    code: Annotated[str, typer.Argument(help="Six-digit session code.")],
):
    """Print the stored snapshot for a session code as JSON."""
    from flashsync.application.codec import snapshot_to_wire
    from flashsync.application.factory import get_sync_service

    service = get_sync_service(_resolve_with_overrides(ctx))
    snapshot = _run(service.fetch(code))
    _echo_json(snapshot_to_wire(snapshot))


@app.command()
def submit(
    ctx: typer.Context,
    code: Annotated[str, typer.Argument(help="Six-digit session code.")],
    path: Annotated[Path, typer.Argument(help="JSON snapshot or single review action.")],
):
    """Merge a JSON snapshot file into the stored snapshot."""
    from flashsync.application.factory import get_sync_service

    service = get_sync_service(_resolve_with_overrides(ctx))
    _echo_json(_run(service.submit(code, _read_json(path))))


@app.command()
def review(
    ctx: typer.Context,
    code: Annotated[str, typer.Argument(help="Six-digit session code.")],
    card_id: Annotated[str, typer.Argument(help="Reviewed card id.")],
    grade: Annotated[str, typer.Argument(help="bad, mid or good.")],
    at: Annotated[
        int | None, typer.Option("--at", help="Review time in epoch ms. Defaults to now.")
    ] = None,
):
    """Append a single review action to a session."""
    from flashsync.application.factory import get_sync_service

    if grade not in ("bad", "mid", "good"):
        typer.secho(f"Invalid grade {grade!r}: expected bad, mid or good.", fg="red", err=True)
        raise typer.Exit(2)

    service = get_sync_service(_resolve_with_overrides(ctx))
    action = {"cardId": card_id, "grade": grade, "ts": at or int(time.time() * 1000)}
    _echo_json(_run(service.submit(code, action)))


@app.command()
def reset(
    ctx: typer.Context,
    code: Annotated[str, typer.Argument(help="Six-digit session code.")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Bypass confirmation.")
    ] = False,
):
    """[bold red]Clear[/bold red] all history and progress for a session code."""
    from flashsync.application.factory import get_sync_service

    if not force and not typer.confirm(f"Erase all progress for session {code}?"):
        raise typer.Exit(1)

    service = get_sync_service(_resolve_with_overrides(ctx))
    _echo_json(_run(service.reset(code)))


@app.command("queue")
def queue(
    ctx: typer.Context,
    code: Annotated[str, typer.Argument(help="Six-digit session code.")],
    limit: Annotated[int, typer.Option(help="Number of cards to show.")] = 20,
    today: Annotated[
        int | None, typer.Option(help="Day number to schedule for. Defaults to today.")
    ] = None,
    keep_current: Annotated[
        str | None, typer.Option("--keep-current", help="Card id to keep at the front.")
    ] = None,
    catalog: Annotated[Path | None, typer.Option(help="YAML card catalog.")] = None,
    due_only: Annotated[
        bool, typer.Option("--due-only", help="Only new cards and cards due by today.")
    ] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show the next cards to study for a session."""
    from flashsync.application.factory import get_sync_service

    service = get_sync_service(_resolve_with_overrides(ctx, catalog_path=catalog))
    result = _run(
        service.queue(code, today=today, keep_current=keep_current, due_only=due_only)
    )
    shown = result.ordered[:limit]

    if json_output:
        _echo_json({"queue": shown, "scores": {cid: result.scores[cid] for cid in shown}})
        return

    if not shown:
        typer.secho("No cards to study.", fg="yellow")
        return

    typer.echo(f"Queue: {len(result.ordered)} cards (showing {len(shown)})")
    for position, card_id in enumerate(shown, start=1):
        typer.echo(f"  {position:>3}. {card_id}  score={result.scores[card_id]}")


# ---------------------------------------------------------------------------
# Offline tools
# ---------------------------------------------------------------------------


@app.command()
def merge(
    remote: Annotated[Path, typer.Argument(help="Stored (authoritative) snapshot JSON.")],
    incoming: Annotated[Path, typer.Argument(help="Incoming client snapshot JSON.")],
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write result here instead of stdout.")
    ] = None,
):
    """Merge two snapshot files without touching any store."""
    from flashsync.application.codec import snapshot_to_wire
    from flashsync.application.reconcile import merge as merge_snapshots
    from flashsync.application.sanitize import sanitize_snapshot

    merged = merge_snapshots(
        sanitize_snapshot(_read_json(remote)), sanitize_snapshot(_read_json(incoming))
    )
    wire = snapshot_to_wire(merged)

    if output:
        output.write_text(json.dumps(wire, indent=2), encoding="utf-8")
        typer.secho(
            f"Wrote {len(merged.history)} events, {len(merged.state_map)} cards to {output}",
            fg="green",
        )
    else:
        _echo_json(wire)


@app.command()
def replay(
    path: Annotated[Path, typer.Argument(help="Snapshot JSON whose history to replay.")],
    check: Annotated[
        bool, typer.Option("--check", help="Report cards whose cached progress disagrees.")
    ] = False,
):
    """Rebuild card progress from a snapshot's review history."""
    from flashsync.application.codec import state_to_wire
    from flashsync.application.replay import replay as replay_history
    from flashsync.application.sanitize import sanitize_snapshot

    snapshot = sanitize_snapshot(_read_json(path))
    states = replay_history(snapshot.history)

    if not check:
        _echo_json({cid: state_to_wire(s) for cid, s in sorted(states.items())})
        return

    drifted = sorted(
        cid for cid, state in states.items() if snapshot.state_map.get(cid) != state
    )
    if drifted:
        typer.secho(f"{len(drifted)} cards differ from their history:", fg="yellow")
        for cid in drifted:
            typer.echo(f"  {cid}")
        raise typer.Exit(1)
    typer.secho(f"All {len(states)} replayed cards match.", fg="green")


@app.command()
def logs():
    """Print the log directory, creating it if needed."""
    config = resolve_config()
    config.log_dir.mkdir(parents=True, exist_ok=True)
    typer.echo(str(config.log_dir))


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))
