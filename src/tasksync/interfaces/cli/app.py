"""CLI application for tasksync using Rich and Typer."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import date
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tasksync.core import tasks as task_ops
from tasksync.core.config import (
    TASKSYNC_DEBUG,
    TASKSYNC_VAULT,
    VAULT_HANDLE_KEY,
    setup_logging,
    validate_vault_path,
)
from tasksync.core.errors import CapabilityError, TaskSyncError
from tasksync.core.manager import TaskManager
from tasksync.core.settings import AppSettings, SettingsError, get_settings_loader
from tasksync.core.state import get_state_manager
from tasksync.core.tags import filter_tags_by_name, tasks_for_tag
from tasksync.core.types import Task, TaskStatus
from tasksync.storage.capability import HandleCache
from tasksync.storage.handles import LocalDirectoryHandle

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="tasksync",
    help="tasksync - Keep a task list in sync with a Markdown vault",
    no_args_is_help=True,
)

console = Console()

STATUS_NAMES = {
    "not_started": TaskStatus.NOT_STARTED,
    "in_progress": TaskStatus.IN_PROGRESS,
    "completed": TaskStatus.COMPLETED,
}

STATUS_STYLES = {
    TaskStatus.NOT_STARTED: "[dim]not started[/dim]",
    TaskStatus.IN_PROGRESS: "[yellow]in progress[/yellow]",
    TaskStatus.COMPLETED: "[green]completed[/green]",
}

VAULT_HELP = "Path to the vault directory (default: $TASKSYNC_VAULT or settings)"


def _resolve_vault(vault: Optional[str], settings: AppSettings) -> Optional[Path]:
    """Resolve vault path from argument, env var, or settings."""
    candidate = vault or TASKSYNC_VAULT or settings.vault_path
    is_valid, message = validate_vault_path(candidate)
    if not is_valid:
        if candidate:
            console.print(f"[yellow]Warning: {message}[/yellow]")
        return None
    return Path(candidate).expanduser()


def _parse_status(value: str) -> TaskStatus:
    status = STATUS_NAMES.get(value.lower().replace("-", "_"))
    if status is None:
        raise typer.BadParameter(
            f"Unknown status {value!r}, use one of: {', '.join(STATUS_NAMES)}"
        )
    return status


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    if value == "today":
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise typer.BadParameter(f"Invalid date {value!r}, use YYYY-MM-DD") from e


async def _open_manager(vault: Optional[str], startup_sync: bool = True) -> TaskManager:
    """
    Load settings and local state, and cache the vault handle if one is available.

    With sync_on_startup set, a vault that could be cached is synced before
    the command runs. A failed startup sync is reported and the command
    works on the local copy.
    """
    settings = get_settings_loader().load()
    handles = HandleCache()
    vault_path = _resolve_vault(vault, settings)
    cached = False
    if vault_path is not None:
        cached = await handles.cache(VAULT_HANDLE_KEY, LocalDirectoryHandle(vault_path))
    if not cached:
        # Nothing to sync against; mutations stay local
        settings = settings.model_copy(update={"auto_sync": False})

    manager = TaskManager(get_state_manager(), handles, settings)
    await manager.load()
    if cached and startup_sync and settings.sync_on_startup:
        try:
            await manager.sync()
        except TaskSyncError as e:
            console.print(f"[yellow]Startup sync failed, using local copy: {e}[/yellow]")
    return manager


async def _finish(manager: TaskManager) -> None:
    """Wait for the debounced sync requested by a mutation and report it."""
    await manager.scheduler.flush()
    if manager.status.needs_reselection:
        console.print(
            f"[yellow]Saved locally, vault not synced: {manager.status.error}[/yellow]"
        )
    elif manager.status.error:
        console.print(f"[red]Saved locally, sync failed: {manager.status.error}[/red]")
    elif manager.settings.auto_sync:
        console.print("[dim]Synced with vault[/dim]")


def _run(
    vault: Optional[str],
    action: Callable[[TaskManager], Awaitable[Any]],
    startup_sync: bool = True,
) -> Any:
    """Run an async action against a task manager and map errors to exit codes."""

    async def _main() -> Any:
        manager = await _open_manager(vault, startup_sync)
        try:
            return await action(manager)
        finally:
            await manager.close()

    try:
        return asyncio.run(_main())
    except CapabilityError as e:
        console.print(f"[red]Vault unavailable: {e}[/red]")
        console.print("[dim]Select the vault again with --vault or `tasksync init`.[/dim]")
        raise typer.Exit(2)
    except (TaskSyncError, SettingsError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _resolve_task(manager: TaskManager, task_id: str) -> Task:
    """Find a task by id or unique id prefix."""
    matches = [task for task in manager.tasks if task.id.startswith(task_id)]
    exact = [task for task in matches if task.id == task_id]
    if exact:
        return exact[0]
    if len(matches) == 1:
        return matches[0]
    if matches:
        raise ValueError(f"Multiple tasks match {task_id!r}, be more specific")
    raise ValueError(f"Task not found: {task_id}")


def _print_tasks(manager: TaskManager, tasks: list[Task], title: str = "Tasks") -> None:
    if not tasks:
        console.print("[dim]No tasks.[/dim]")
        return

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Status")
    table.add_column("Title")
    table.add_column("Due")
    table.add_column("Note")
    table.add_column("Tags")

    for task in tasks:
        tags = ", ".join(tag.name for tag in manager.tags_for_task(task.id))
        table.add_row(
            task.id,
            STATUS_STYLES[task.status],
            task.title,
            task.due_date.isoformat() if task.due_date else "",
            task.linked_note or "",
            tags,
        )

    console.print(table)


@app.command()
def init(
    vault: str = typer.Argument(..., help="Path to the vault directory"),
    task_folder: Optional[str] = typer.Option(
        None, "--task-folder", help="Folder for the task files inside the vault"
    ),
    daily_folder: Optional[str] = typer.Option(
        None, "--daily-folder", help="Folder for daily notes inside the vault"
    ),
    all_tasks: Optional[bool] = typer.Option(
        None,
        "--all-tasks/--today-only",
        help="Daily note lists all open tasks, or only those due today",
    ),
):
    """Select the vault and save settings."""
    is_valid, message = validate_vault_path(vault)
    if not is_valid:
        console.print(f"[red]Error: {message}[/red]")
        raise typer.Exit(1)

    loader = get_settings_loader()
    try:
        current = loader.load()
    except SettingsError as e:
        console.print(f"[yellow]Ignoring invalid settings: {e}[/yellow]")
        current = AppSettings()

    updates: dict[str, Any] = {"vault_path": str(Path(vault).expanduser().resolve())}
    if task_folder is not None:
        updates["task_folder_path"] = task_folder
    if daily_folder is not None:
        updates["daily_note_folder_path"] = daily_folder
    if all_tasks is not None:
        updates["sync_all_tasks_to_daily_note"] = all_tasks

    try:
        settings = AppSettings.model_validate({**current.model_dump(), **updates})
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    loader.save(settings)

    console.print(
        Panel.fit(
            f"[bold]Vault:[/bold] {settings.vault_path}\n"
            f"[bold]Tasks:[/bold] {settings.task_folder_path}\n"
            f"[bold]Notes:[/bold] {settings.note_folder_path}\n"
            f"[bold]Daily:[/bold] {settings.daily_note_folder_path}/"
            f"{settings.daily_note_format}.md",
            title="tasksync initialized",
            border_style="blue",
        )
    )


@app.command()
def add(
    title: str = typer.Argument(..., help="Task title"),
    due: Optional[str] = typer.Option(None, "--due", help="Due date (YYYY-MM-DD or 'today')"),
    note: Optional[str] = typer.Option(None, "--note", "-n", help="Linked note name"),
    status: str = typer.Option("not_started", "--status", "-s", help="Initial status"),
    tag: Optional[list[str]] = typer.Option(None, "--tag", "-t", help="Tag name (repeatable)"),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Add a task."""
    due_date = _parse_date(due)
    task_status = _parse_status(status)

    async def _add(manager: TaskManager) -> None:
        task = await manager.add_task(title, task_status, due_date, note)
        for name in tag or []:
            created = await manager.add_tag(name)
            await manager.add_tag_to_task(task.id, created.id)
        console.print(f"[green]Added task {task.id}: {task.title}[/green]")
        await _finish(manager)

    _run(vault, _add)


@app.command("list")
def list_tasks(
    status: Optional[str] = typer.Option(None, "--status", "-s", help="Filter by status"),
    due: Optional[str] = typer.Option(None, "--due", help="Filter by due date"),
    tag: Optional[str] = typer.Option(None, "--tag", "-t", help="Filter by tag name"),
    open_only: bool = typer.Option(False, "--open", help="Hide completed tasks"),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """List tasks."""
    task_status = _parse_status(status) if status else None
    due_date = _parse_date(due)

    async def _list(manager: TaskManager) -> None:
        tasks = task_ops.filter_tasks_by_status(manager.tasks, task_status)
        tasks = task_ops.filter_tasks_by_date(tasks, due_date)
        if open_only:
            tasks = task_ops.get_uncompleted_tasks(tasks)
        if tag:
            found = manager.find_tag_by_name(tag)
            if found is None:
                raise ValueError(f"Tag not found: {tag}")
            tasks = tasks_for_tag(tasks, manager.task_tags, found.id)
        _print_tasks(manager, tasks)

    _run(vault, _list)


@app.command()
def status(
    task_id: str = typer.Argument(..., help="Task id or unique prefix"),
    new_status: str = typer.Argument(..., help="not_started, in_progress or completed"),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Change the status of a task."""
    task_status = _parse_status(new_status)

    async def _status(manager: TaskManager) -> None:
        task = await manager.set_status(_resolve_task(manager, task_id).id, task_status)
        console.print(f"[green]{task.title}: {STATUS_STYLES[task.status]}[/green]")
        await _finish(manager)

    _run(vault, _status)


@app.command()
def done(
    task_id: str = typer.Argument(..., help="Task id or unique prefix"),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Mark a task completed."""

    async def _done(manager: TaskManager) -> None:
        task = await manager.set_status(_resolve_task(manager, task_id).id, TaskStatus.COMPLETED)
        console.print(f"[green]Completed: {task.title}[/green]")
        await _finish(manager)

    _run(vault, _done)


@app.command()
def delete(
    task_id: str = typer.Argument(..., help="Task id or unique prefix"),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Delete a task."""

    async def _delete(manager: TaskManager) -> None:
        task = _resolve_task(manager, task_id)
        await manager.delete_task(task.id)
        console.print(f"[yellow]Deleted: {task.title}[/yellow]")
        await _finish(manager)

    _run(vault, _delete)


@app.command()
def tag(
    task_id: str = typer.Argument(..., help="Task id or unique prefix"),
    name: str = typer.Argument(..., help="Tag name"),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Tag a task, creating the tag if needed."""

    async def _tag(manager: TaskManager) -> None:
        task = _resolve_task(manager, task_id)
        created = await manager.add_tag(name)
        await manager.add_tag_to_task(task.id, created.id)
        console.print(f"[green]Tagged {task.title!r} with {created.name}[/green]")
        await _finish(manager)

    _run(vault, _tag)


@app.command()
def untag(
    task_id: str = typer.Argument(..., help="Task id or unique prefix"),
    name: str = typer.Argument(..., help="Tag name"),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Remove a tag from a task."""

    async def _untag(manager: TaskManager) -> None:
        task = _resolve_task(manager, task_id)
        found = manager.find_tag_by_name(name)
        if found is None:
            raise ValueError(f"Tag not found: {name}")
        await manager.remove_tag_from_task(task.id, found.id)
        console.print(f"[yellow]Removed {found.name} from {task.title!r}[/yellow]")
        await _finish(manager)

    _run(vault, _untag)


@app.command()
def tags(
    search: Optional[str] = typer.Option(None, "--search", help="Filter tags by name"),
    remove: Optional[str] = typer.Option(None, "--delete", help="Delete the named tag"),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """List tags, or delete one with --delete."""

    async def _tags(manager: TaskManager) -> None:
        if remove:
            found = manager.find_tag_by_name(remove)
            if found is None:
                raise ValueError(f"Tag not found: {remove}")
            await manager.delete_tag(found.id)
            console.print(f"[yellow]Deleted tag {found.name}[/yellow]")
            await _finish(manager)
            return

        shown = filter_tags_by_name(manager.tags, search or "")
        if not shown:
            console.print("[dim]No tags.[/dim]")
            return

        table = Table(title="Tags", show_header=True, header_style="bold cyan")
        table.add_column("Name", style="green")
        table.add_column("Color")
        table.add_column("Tasks", justify="right")
        for item in shown:
            count = len(tasks_for_tag(manager.tasks, manager.task_tags, item.id))
            table.add_row(item.name, f"[{item.color}]{item.color}[/]", str(count))
        console.print(table)

    _run(vault, _tags)


@app.command()
def sync(
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Sync tasks, tags and the daily note with the vault."""

    async def _sync(manager: TaskManager) -> None:
        with console.status("[bold blue]Syncing...[/bold blue]"):
            result = await manager.sync()

        table = Table(title="Sync", show_header=True)
        table.add_column("Collection", style="cyan")
        table.add_column("Count", justify="right")
        table.add_row("Tasks", str(len(manager.tasks)))
        table.add_row("Tags", str(len(manager.tags)))
        table.add_row("Links", str(len(manager.task_tags)))
        console.print(table)
        if result.last_synced:
            console.print(f"[dim]Last synced: {result.last_synced:%Y-%m-%d %H:%M:%S} UTC[/dim]")

    _run(vault, _sync, startup_sync=False)


@app.command()
def watch(
    interval: Optional[int] = typer.Option(
        None, "--interval", "-i", help="Seconds between passes (default: settings)"
    ),
    count: int = typer.Option(0, "--count", "-n", help="Stop after this many passes"),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Sync with the vault repeatedly until interrupted."""

    async def _watch(manager: TaskManager) -> None:
        seconds = manager.settings.sync_interval if interval is None else interval
        if seconds <= 0 and not count:
            raise ValueError("Sync interval must be positive")

        console.print(f"[dim]Syncing every {seconds}s, Ctrl+C to stop[/dim]")
        passes = 0
        while True:
            try:
                result = await manager.sync()
                console.print(
                    f"[dim]Synced {len(manager.tasks)} tasks at "
                    f"{result.last_synced:%H:%M:%S} UTC[/dim]"
                )
            except CapabilityError:
                raise
            except TaskSyncError as e:
                console.print(f"[red]Sync failed, retrying: {e}[/red]")
            passes += 1
            if count and passes >= count:
                return
            await asyncio.sleep(seconds)

    try:
        _run(vault, _watch, startup_sync=False)
    except KeyboardInterrupt:
        console.print("[dim]Stopped[/dim]")


@app.command()
def digest(
    check: bool = typer.Option(
        False, "--check", help="Only show status edits made in today's note"
    ),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Render today's daily note, or show edits made in it."""

    async def _digest(manager: TaskManager) -> None:
        if not manager.digest.enabled:
            console.print("[yellow]Daily note is disabled in settings.[/yellow]")
            return

        changes = await manager.pending_status_changes()
        if changes:
            table = Table(title="Edits in daily note", show_header=True)
            table.add_column("Task")
            table.add_column("From")
            table.add_column("To")
            for change in changes:
                table.add_row(
                    change.title,
                    STATUS_STYLES[change.old_status],
                    STATUS_STYLES[change.new_status],
                )
            console.print(table)
        elif check:
            console.print("[dim]No edits in today's note.[/dim]")

        if check:
            return

        await manager.sync()
        console.print(
            f"[green]Daily note updated: {manager.digest.path_for(date.today())}[/green]"
        )

    _run(vault, _digest, startup_sync=False)


@app.command()
def prune(
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Remove tag links whose task or tag no longer exists."""

    async def _prune(manager: TaskManager) -> None:
        removed = await manager.prune_orphans()
        if not removed:
            console.print("[dim]No orphaned links.[/dim]")
            return
        console.print(f"[yellow]Removed {len(removed)} orphaned links[/yellow]")
        await _finish(manager)

    _run(vault, _prune)


@app.callback()
def main(
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug logging",
    ),
):
    """tasksync - Keep a task list in sync with a Markdown vault."""
    if debug or TASKSYNC_DEBUG:
        setup_logging("DEBUG")
        console.print("[dim]Debug logging enabled[/dim]")


def run_cli():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run_cli()
