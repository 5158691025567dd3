"""wherewasi CLI - remember what you were doing in your editor."""

import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, NoReturn, Optional

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from wherewasi import __version__
from wherewasi import logger as log_setup
from wherewasi.config import CONFIG_PATH, load_config
from wherewasi.context.models import CursorPosition
from wherewasi.context.store import HistoryStore, KeyValueStore
from wherewasi.errors import InvalidImportError, NavigationTargetMissing, PersistenceError
from wherewasi.presentation import ConsolePresenter, resolve_location
from wherewasi.tracking.triggers import TriggerReason

if TYPE_CHECKING:
    from wherewasi.app import AppContext

app = typer.Typer(
    name="wherewasi",
    help="Remember what you were doing in your editor across interruptions.",
    no_args_is_help=True,
)

console = Console()

WorkspaceOption = Annotated[
    Optional[Path],
    typer.Option("--workspace", "-w", help="Workspace folder the history belongs to"),
]


def version_callback(value: bool) -> None:
    if value:
        console.print(f"wherewasi {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-V", callback=version_callback, is_eager=True),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log progress to stderr")] = False,
) -> None:
    """wherewasi - snapshot and resume your editing context."""
    log_setup.configure(verbose=verbose)


def _workspace_key(workspace: Path | None) -> str | None:
    return str(workspace.resolve()) if workspace else None


def _open_history(workspace: Path | None) -> HistoryStore:
    config = load_config()
    return HistoryStore(KeyValueStore(), _workspace_key(workspace), config.max_history_size)


def _fail(message: str) -> NoReturn:
    console.print(f"[red]Error:[/red] {escape(message)}")
    raise typer.Exit(1)


# ── History commands ─────────────────────────────────────────────


@app.command("last")
def last(
    workspace: WorkspaceOption = None,
    preview: Annotated[bool, typer.Option("--preview", "-p", help="Show surrounding code")] = False,
) -> None:
    """Show the most recent work context."""
    from wherewasi.context.synthesizer import ContextExtractor

    store = _open_history(workspace)
    try:
        ctx = store.get_last_context()
    except PersistenceError as exc:
        _fail(str(exc))
    finally:
        store.kv.close()

    if ctx is None:
        console.print("[dim]No saved work context available.[/dim]")
        return

    ConsolePresenter(console, interactive=False).render_context(ctx)
    if preview:
        code = ContextExtractor().preview(ctx)
        if code is None:
            console.print(f"[yellow]File not found:[/yellow] {escape(Path(ctx.file_path).name)}")
        else:
            console.print(code, highlight=False, markup=False)


@app.command("history")
def history(workspace: WorkspaceOption = None) -> None:
    """List saved work contexts, newest first."""
    store = _open_history(workspace)
    try:
        entries = store.get_history()
    except PersistenceError as exc:
        _fail(str(exc))
    finally:
        store.kv.close()

    if not entries:
        console.print("[dim]No saved work context available.[/dim]")
        return
    console.print(ConsolePresenter(console).history_table(entries))


@app.command("jump")
def jump(
    index: Annotated[int, typer.Argument(help="History entry to resolve (0 = newest)")] = 0,
    workspace: WorkspaceOption = None,
) -> None:
    """Print the file:line:column location of a saved context."""
    store = _open_history(workspace)
    try:
        entries = store.get_history()
    except PersistenceError as exc:
        _fail(str(exc))
    finally:
        store.kv.close()

    if index < 0 or index >= len(entries):
        _fail(f"No history entry {index}")
    try:
        location = resolve_location(entries[index])
    except NavigationTargetMissing as exc:
        console.print(f"[yellow]{escape(str(exc))}[/yellow]")
        raise typer.Exit(2)
    typer.echo(str(location))


@app.command("save")
def save(
    file: Annotated[Path, typer.Argument(help="File being edited")],
    line: Annotated[int, typer.Option("--line", "-l", min=1, help="1-based line")] = 1,
    column: Annotated[int, typer.Option("--column", "-c", min=1, help="1-based column")] = 1,
    workspace: WorkspaceOption = None,
) -> None:
    """Capture and save a work context for a file position."""
    from wherewasi.app import AppContext

    file = file.resolve()
    if not file.is_file():
        _fail(f"{file} is not a file")

    ctx = AppContext(ConsolePresenter(console, interactive=False), workspace_folder=_workspace_key(workspace))
    try:
        position = CursorPosition(
            file_path=str(file),
            line=line - 1,
            column=column - 1,
            workspace_folder=_workspace_key(workspace),
        )
        ctx.record_activity(position)
        if ctx.save_current(TriggerReason.MANUAL) is None:
            console.print("[dim]Nothing new to save.[/dim]")
    finally:
        ctx.close()


@app.command("clear")
def clear(
    workspace: WorkspaceOption = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Clear all work context history."""
    if not yes and not typer.confirm("Clear all work context history?"):
        raise typer.Exit()
    store = _open_history(workspace)
    try:
        store.clear_history()
    except PersistenceError as exc:
        _fail(str(exc))
    finally:
        store.kv.close()
    console.print("[green]Work context history cleared[/green]")


@app.command("prune")
def prune(
    days: Annotated[float, typer.Option("--days", "-d", min=0, help="Maximum age in days")] = 30,
    workspace: WorkspaceOption = None,
) -> None:
    """Remove contexts older than the given age."""
    store = _open_history(workspace)
    try:
        removed = store.prune_old_contexts(days)
    except PersistenceError as exc:
        _fail(str(exc))
    finally:
        store.kv.close()
    console.print(f"Pruned {removed} old context(s)")


@app.command("export")
def export(
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Write to file instead of stdout")] = None,
    workspace: WorkspaceOption = None,
) -> None:
    """Export history as JSON."""
    store = _open_history(workspace)
    try:
        data = store.export_history()
    except PersistenceError as exc:
        _fail(str(exc))
    finally:
        store.kv.close()

    if output:
        output.write_text(data + "\n", encoding="utf-8")
        console.print(f"[green]Exported to[/green] {output}")
    else:
        typer.echo(data)


@app.command("import")
def import_(
    source: Annotated[Path, typer.Argument(help="JSON file produced by export")],
    workspace: WorkspaceOption = None,
) -> None:
    """Replace history with an exported JSON file."""
    try:
        data = source.read_text(encoding="utf-8")
    except OSError as exc:
        _fail(f"Cannot read {source}: {exc}")

    store = _open_history(workspace)
    try:
        count = store.import_history(data)
    except InvalidImportError as exc:
        _fail(f"Failed to import history: {exc}")
    except PersistenceError as exc:
        _fail(str(exc))
    finally:
        store.kv.close()
    console.print(f"[green]Imported {count} context(s)[/green]")


@app.command("config")
def show_config() -> None:
    """Show the effective configuration."""
    config = load_config()
    console.print(f"[dim]{CONFIG_PATH}[/dim]")
    for key, value in config.model_dump(by_alias=True).items():
        console.print(f"  [cyan]{key}[/cyan] = {value}")


# ── Editor bridge ────────────────────────────────────────────────


@app.command("watch")
def watch(workspace: WorkspaceOption = None) -> None:
    """Track editor events read as JSON lines from stdin.

    Each line is an object with an "event" of activity, edit, focus, blur,
    save or reload, plus "file", "line" and "column" where relevant.
    The final context is saved when stdin closes.
    """
    from wherewasi.app import AppContext

    workspace_folder = _workspace_key(workspace)
    ctx = AppContext(ConsolePresenter(console, interactive=False), workspace_folder=workspace_folder)
    ctx.start()
    try:
        ctx.offer_resume()
        for raw in sys.stdin:
            raw = raw.strip()
            if raw:
                _dispatch(ctx, raw, workspace_folder)
    except KeyboardInterrupt:
        pass
    finally:
        ctx.shutdown()


def _dispatch(ctx: "AppContext", raw: str, workspace_folder: str | None) -> None:
    try:
        event = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring malformed event: {}", raw)
        return
    if not isinstance(event, dict):
        logger.warning("Ignoring malformed event: {}", raw)
        return

    kind = event.get("event")
    if kind == "blur":
        ctx.window_focus_changed(False)
        return
    if kind == "save":
        ctx.save_current(TriggerReason.MANUAL)
        return
    if kind == "reload":
        ctx.reload_config()
        return

    try:
        position = CursorPosition(
            file_path=event["file"],
            line=event.get("line", 0),
            column=event.get("column", 0),
            workspace_folder=workspace_folder,
        )
    except (KeyError, ValidationError):
        logger.warning("Ignoring event without a valid position: {}", raw)
        return

    if kind == "activity":
        ctx.record_activity(position)
    elif kind == "edit":
        ctx.document_edited(position)
    elif kind == "focus":
        ctx.focus_changed(position)
    else:
        logger.warning("Unknown event {!r}", kind)
