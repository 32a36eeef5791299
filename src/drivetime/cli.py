"""Capture and queue commands that run against a DriveTime server."""

import json
import sys
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from .api_client import APIClient
from .capture import is_url

console = Console()

STATUS_STYLES = {
    "pending": "yellow",
    "processing": "cyan",
    "ready": "green",
    "playing": "magenta",
    "completed": "dim",
}


def add(
    content: str = typer.Argument(..., help="Text or URL to capture"),
    artifact_type: str = typer.Option(
        "note", "--type", "-t", help="idea, note, question or article"
    ),
    url: Optional[str] = typer.Option(None, "--url", help="Source URL for the content"),
    tag: List[str] = typer.Option([], "--tag", help="Tag (repeatable)"),
    process: bool = typer.Option(
        False, "--process", help="Summarize right away instead of leaving it pending"
    ),
) -> None:
    """Save something to listen to later."""
    try:
        client = APIClient()
        artifact = client.create_artifact(
            content, artifact_type=artifact_type, source_url=url, tags=tag
        )
        if process:
            with console.status("Summarizing..."):
                artifact = client.process_artifact(artifact["id"])
    except RuntimeError as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        raise typer.Exit(1) from e

    kind = "link" if is_url(content) else artifact["type"]
    console.print(f"[green]✓ Saved {kind}:[/green] {artifact['title']}")
    console.print(f"[dim]  {artifact['id']}[/dim]")
    if artifact.get("summary"):
        console.print(f"\n{artifact['summary']}")


def list_artifacts(
    status: Optional[str] = typer.Option(None, "--status", "-s", help="Only this status"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List captured artifacts grouped by day."""
    try:
        data = APIClient().list_artifacts()
    except RuntimeError as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        raise typer.Exit(1) from e

    day_groups = data.get("dayGroups", [])

    if output_json:
        sys.stdout.write(json.dumps(day_groups, indent=2) + "\n")
        return

    if not day_groups:
        console.print("[dim]Nothing captured yet.[/dim]")
        return

    for group in day_groups:
        artifacts = [
            a for a in group["artifacts"] if status is None or a["status"] == status
        ]
        if not artifacts:
            continue

        stats = group["stats"]
        table = Table(
            title=f"{group['date']}  ({stats['total']} total, {stats['ready']} ready, {stats['completed']} done)",
            title_justify="left",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("ID", style="dim", no_wrap=True)
        table.add_column("Type")
        table.add_column("Status")
        table.add_column("Title")

        for artifact in artifacts:
            style = STATUS_STYLES.get(artifact["status"], "white")
            table.add_row(
                artifact["id"][:8],
                artifact["type"],
                f"[{style}]{artifact['status']}[/{style}]",
                artifact["title"],
            )

        console.print(table)


def resolve_id(client: APIClient, prefix: str) -> str:
    """Expand the short id shown by `list` to the full artifact id.

    Raises:
        RuntimeError: If nothing or more than one artifact matches
    """
    matches = [
        artifact["id"]
        for artifact in client.list_artifacts().get("artifacts", [])
        if artifact["id"].startswith(prefix)
    ]
    if not matches:
        raise RuntimeError(f"No artifact matches '{prefix}'")
    if len(matches) > 1:
        raise RuntimeError(f"'{prefix}' matches {len(matches)} artifacts, use more characters")
    return matches[0]


def done(
    artifact_id: str = typer.Argument(..., help="ID (or the short ID from list)"),
) -> None:
    """Mark an artifact as completed."""
    try:
        client = APIClient()
        artifact = client.update_status(resolve_id(client, artifact_id), "completed")
    except RuntimeError as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        raise typer.Exit(1) from e

    console.print(f"[green]✓ Completed:[/green] {artifact['title']}")
