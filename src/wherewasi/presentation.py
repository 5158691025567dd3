"""Rendering snapshots for the user and resolving jump targets."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt
from rich.table import Table

from wherewasi.context.git import format_git_info, short_git_summary
from wherewasi.context.models import WorkContext, now_ms
from wherewasi.context.synthesizer import file_basename
from wherewasi.errors import NavigationTargetMissing


class ResumeChoice(Enum):
    JUMP = "jump"
    VIEW_HISTORY = "history"
    DISMISS = "dismiss"


@dataclass(frozen=True)
class Location:
    """A navigable position; ``line`` and ``column`` are zero-based."""

    path: Path
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.path}:{self.line + 1}:{self.column + 1}"


class Presenter(Protocol):
    def notify_saved(self, work_context: WorkContext) -> None: ...

    def prompt_resume(self, work_context: WorkContext) -> ResumeChoice: ...

    def show_history(self, history: list[WorkContext]) -> WorkContext | None: ...

    def warn(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...


def resolve_location(work_context: WorkContext) -> Location:
    """Turn a snapshot into a jump target, failing if its file is gone."""
    path = Path(work_context.file_path)
    if not path.is_file():
        raise NavigationTargetMissing(work_context.file_path)
    return Location(path=path, line=work_context.line, column=work_context.column)


def format_time_ago(timestamp: int, now: int | None = None) -> str:
    diff = (now if now is not None else now_ms()) - timestamp
    minutes = diff // (60 * 1000)
    hours = diff // (60 * 60 * 1000)
    if minutes < 1:
        return "now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 48:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


def saved_message(work_context: WorkContext) -> str:
    message = f"Context saved • {file_basename(work_context.file_path)}"
    if work_context.function_name:
        message += f" • {work_context.function_name}"
    if work_context.git_branch:
        message += f" ({work_context.git_branch})"
    return message


class ConsolePresenter:
    """Presenter that prints to a terminal with rich."""

    def __init__(self, console: Console | None = None, interactive: bool = True):
        self.console = console or Console()
        self.interactive = interactive

    def notify_saved(self, work_context: WorkContext) -> None:
        self.console.print(f"[green]{escape(saved_message(work_context))}[/green]")

    def render_context(self, work_context: WorkContext) -> None:
        ctx = work_context
        self.console.print(f"[bold]You were last active {format_time_ago(ctx.timestamp)}[/bold]")
        where = file_basename(ctx.file_path)
        if ctx.function_name:
            where += f" → {ctx.function_name}"
        self.console.print(f"  [cyan]{escape(where)}[/cyan]")
        self.console.print(f"  [dim]{escape(ctx.file_path)}:{ctx.line + 1}:{ctx.column + 1}[/dim]", soft_wrap=True)
        if ctx.todo_comment:
            self.console.print(f"  [yellow]{escape(ctx.todo_comment)}[/yellow]")
        elif ctx.note:
            self.console.print(f"  {escape(ctx.note)}")
        git = format_git_info(ctx.git_branch, ctx.git_last_commit, ctx.git_uncommitted_files)
        if git:
            self.console.print(f"  [magenta]{escape(git)}[/magenta]")

    def prompt_resume(self, work_context: WorkContext) -> ResumeChoice:
        self.render_context(work_context)
        if not self.interactive:
            return ResumeChoice.DISMISS
        answer = Prompt.ask(
            "Continue, view history or dismiss?",
            choices=["c", "h", "d"],
            default="d",
            console=self.console,
        )
        return {"c": ResumeChoice.JUMP, "h": ResumeChoice.VIEW_HISTORY}.get(answer, ResumeChoice.DISMISS)

    def history_table(self, history: list[WorkContext]) -> Table:
        table = Table(title="Work Context History")
        table.add_column("#", style="dim", justify="right")
        table.add_column("When", style="cyan")
        table.add_column("Location", style="green")
        table.add_column("Note")
        table.add_column("Git", style="magenta")

        for index, ctx in enumerate(history):
            location = f"{file_basename(ctx.file_path)}:{ctx.line + 1}"
            if ctx.function_name:
                location += f"\n{ctx.function_name}"
            table.add_row(
                str(index),
                format_time_ago(ctx.timestamp),
                escape(location),
                escape(ctx.note or ""),
                short_git_summary(ctx.git_branch, ctx.git_uncommitted_files),
            )
        return table

    def show_history(self, history: list[WorkContext]) -> WorkContext | None:
        if not history:
            self.console.print("[dim]No saved work context available.[/dim]")
            return None
        self.console.print(self.history_table(history))
        if not self.interactive:
            return None
        answer = Prompt.ask(
            "Jump to entry (blank to cancel)",
            default="",
            show_default=False,
            console=self.console,
        )
        if answer.isdigit() and int(answer) < len(history):
            return history[int(answer)]
        return None

    def warn(self, message: str) -> None:
        self.console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def info(self, message: str) -> None:
        self.console.print(escape(message))
