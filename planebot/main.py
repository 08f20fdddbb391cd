"""planebot CLI — all commands."""

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Annotated

import tomlkit
import typer
from rich import print as rprint
from rich.markup import escape
from rich.table import Table

from planebot.errors import FileTooLarge, PlaneError, UploadPhase
from planebot.log import setup_logging
from planebot.models import Attachment, EnrichedIssue, IssueFilters
from planebot.plane.enrichment import format_issue_id
from planebot.plane.service import PlaneService
from planebot.plane.uploads import MAX_UPLOAD_BYTES, guess_content_type
from planebot.settings import CONFIG_PATH, _list_profiles, _load_toml, get_settings

logger = logging.getLogger(__name__)

app = typer.Typer(help="planebot: create, list and inspect Plane issues and attach files", no_args_is_help=True)

ProfileOpt = Annotated[
    str | None,
    typer.Option("--profile", "-P", help="Profile name from ~/.config/planebot/config.toml"),
]


class PriorityChoice(str, Enum):
    urgent = "urgent"
    high = "high"
    medium = "medium"
    low = "low"
    none = "none"


# ---------------------------------------------------------------------------
# Service factory
# ---------------------------------------------------------------------------


def get_service(profile: str | None = None) -> PlaneService:
    settings = get_settings(profile=profile)
    setup_logging(settings.log_level, settings.log_file)
    return PlaneService(settings)


def _run(coro):
    """Run a service coroutine, turning PlaneError into a one-line message and exit 1."""
    try:
        return asyncio.run(coro)
    except PlaneError as exc:
        logger.error("%s", exc, extra={"plane_error": exc.log_context()})
        rprint(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1) from exc


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------

_PRIORITY_EMOJI = {"urgent": "🔴", "high": "🟠", "medium": "🟡", "low": "🟢", "none": "⚪"}

_STATE_EMOJI = {
    "backlog": "📋",
    "unstarted": "⭕",
    "started": "▶️",
    "completed": "✅",
    "cancelled": "❌",
    "duplicate": "🔄",
}

_FILE_ICONS = {
    "image/": "🖼️",
    "video/": "🎬",
    "audio/": "🎵",
    "text/": "📝",
    "application/pdf": "📕",
    "application/zip": "🗜️",
}


def format_priority(priority: str | None) -> str:
    key = (priority or "none").lower()
    label = key.upper() if key != "none" else "None"
    return f"{_PRIORITY_EMOJI.get(key, _PRIORITY_EMOJI['none'])} {label}"


def format_state(name: str | None, group: str | None) -> str:
    if not name:
        return "Unknown"
    emoji = _STATE_EMOJI.get((group or "").lower(), "❔")
    return f"{emoji} {name[:1].upper()}{name[1:].lower()}"


def format_file_size(size: int) -> str:
    """1536 → '1.5 KB'"""
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def file_icon(content_type: str) -> str:
    for prefix, icon in _FILE_ICONS.items():
        if content_type.startswith(prefix):
            return icon
    return "📄"


def _format_attachment(attachment: Attachment) -> str:
    icon = file_icon(attachment.content_type)
    return f"{icon} {attachment.file_name} ({format_file_size(attachment.file_size_bytes)})"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("list-issues")
def list_issues(
    profile: ProfileOpt = None,
    state: Annotated[str | None, typer.Option("--state", "-s", help="State name contains")] = None,
    priority: Annotated[PriorityChoice | None, typer.Option("--priority", "-p", help="Exact priority")] = None,
) -> None:
    """List the newest issues in the project."""
    service = get_service(profile)
    filters = IssueFilters(state_name_contains=state, priority=priority.value if priority else None)

    async def fetch():
        async with service:
            return await service.list_issues(filters)

    page = _run(fetch())

    if not page.items:
        rprint("[dim]No issues match your criteria.[/dim]")
        return

    table = Table(title=f"Issues (showing {len(page.items)} of {page.total_count})")
    table.add_column("ID", style="cyan")
    table.add_column("State")
    table.add_column("Priority")
    table.add_column("Title")
    table.add_column("Created", style="dim")

    for issue in page.items:
        table.add_row(
            issue.formatted_id,
            format_state(issue.state_detail.name, issue.state_detail.group),
            format_priority(issue.priority),
            issue.name,
            issue.created_at or "—",
        )

    rprint(table)


@app.command("view-issue")
def view_issue(
    issue_id: Annotated[str, typer.Argument(help="Sequence id of the issue (e.g. PROJ-123)")],
    profile: ProfileOpt = None,
) -> None:
    """Show full details for an issue."""
    service = get_service(profile)

    async def fetch() -> EnrichedIssue:
        async with service:
            return await service.get_issue_by_sequence_id(issue_id)

    issue = _run(fetch())

    table = Table(title=f"{issue.formatted_id} {issue.name or 'Untitled Issue'}")
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("State", format_state(issue.state_detail.name, issue.state_detail.group))
    table.add_row("Priority", format_priority(issue.priority))
    table.add_row("Labels", ", ".join(label.name for label in issue.label_details) or "none")
    table.add_row("Created", issue.created_at or "—")
    if issue.updated_at and issue.updated_at != issue.created_at:
        table.add_row("Updated", issue.updated_at)
    table.add_row("URL", service.issue_url(issue.id))
    table.add_row("Description", issue.description or "_No description provided._")
    table.add_row(
        "Attachments",
        "\n".join(_format_attachment(a) for a in issue.attachments) or "No attachments",
    )

    rprint(table)


@app.command("create-issue")
def create_issue(
    title: Annotated[str, typer.Argument(help="Issue title")],
    description: Annotated[str | None, typer.Argument(help="Issue description")] = None,
    profile: ProfileOpt = None,
    priority: Annotated[PriorityChoice, typer.Option("--priority", "-p", help="Issue priority")] = PriorityChoice.none,
) -> None:
    """Create a new issue."""
    service = get_service(profile)

    async def create():
        async with service:
            created = await service.create_issue(title, description, priority.value)
            project = await service.cache.get_project_identity()
            return created, project

    created, project = _run(create())

    rprint(f"[green]✓[/green] [bold]{format_issue_id(project, created.sequence_number)}[/bold] {created.name}")
    rprint(f"  {service.issue_url(created.id)}")


@app.command("upload-file")
def upload_file(
    issue_id: Annotated[str, typer.Argument(help="Sequence id of the issue (e.g. PROJ-123)")],
    path: Annotated[Path, typer.Argument(exists=True, dir_okay=False, readable=True, help="File to attach")],
    profile: ProfileOpt = None,
    content_type: Annotated[
        str | None,
        typer.Option("--content-type", "-t", help="MIME type (guessed from the file name by default)"),
    ] = None,
) -> None:
    """Attach a file (max 10 MB) to an issue."""
    size = path.stat().st_size
    if size > MAX_UPLOAD_BYTES:
        error = FileTooLarge(size, MAX_UPLOAD_BYTES, phase=UploadPhase.VALIDATE)
        rprint(f"[red]{escape(str(error))}[/red]")
        raise typer.Exit(1)

    service = get_service(profile)
    payload = path.read_bytes()
    effective_type = content_type or guess_content_type(path.name)

    async def upload():
        async with service:
            # Resolve the issue first so a bad id fails before any upload work.
            issue = await service.get_issue_by_sequence_id(issue_id)
            attachment = await service.upload_attachment(issue.id, payload, path.name, effective_type)
            return issue, attachment

    issue, attachment = _run(upload())

    rprint(f"[green]✓[/green] Uploaded to [bold]{issue.formatted_id}[/bold] {issue.name}")
    rprint(f"  {_format_attachment(attachment)} [dim]{attachment.content_type}[/dim]")
    rprint(f"  {service.issue_url(issue.id)}")


@app.command("set-default")
def set_default(
    profile: Annotated[str, typer.Argument(help="Profile name to set as default")],
) -> None:
    """Make PROFILE the one used when --profile is not given."""
    doc = tomlkit.parse(CONFIG_PATH.read_text()) if CONFIG_PATH.exists() else tomlkit.document()

    # A config without profile tables yet accepts any name.
    known = _list_profiles(doc)
    if known and profile not in known:
        rprint(f"[red]Unknown profile '{escape(profile)}'. Profiles in {CONFIG_PATH}: {', '.join(known)}[/red]")
        raise typer.Exit(1)

    doc["default_profile"] = profile
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_PATH.write_text(tomlkit.dumps(doc))
    _load_toml.cache_clear()
    rprint(f"[green]✓[/green] {escape(profile)} is now the default profile")


@app.command("config-show")
def config_show(profile: ProfileOpt = None) -> None:
    """Show resolved configuration (masks the api key)."""
    settings = get_settings(profile=profile)

    def mask(val: str | None) -> str:
        if val is None:
            return "[dim](not set)[/dim]"
        if len(val) <= 5:
            return "***"
        return f"...{val[-5:]}"

    table = Table(title="planebot Configuration")
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("default_profile", settings.default_profile or "[dim](not set)[/dim]")
    table.add_row("api_key", mask(settings.api_key.get_secret_value() if settings.api_key else None))
    table.add_row("workspace_slug", settings.workspace_slug or "[dim](not set)[/dim]")
    table.add_row("project_id", settings.project_id or "[dim](not set)[/dim]")
    table.add_row("base_url", settings.base_url)
    table.add_row("request_timeout", f"{settings.request_timeout:g}s")
    table.add_row("storage_timeout", f"{settings.storage_timeout:g}s")
    table.add_row("log_level", settings.log_level)
    table.add_row("log_file", str(settings.log_file) if settings.log_file else "[dim](not set)[/dim]")

    rprint(table)
