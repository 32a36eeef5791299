"""Main entry point for DriveTime - just wiring, no logic."""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from dotenv import load_dotenv
from rich.console import Console

from . import cli
from .config import Config
from .database import init_db
from .defaults import ensure_config

# Load environment variables from ~/.config/drivetime/.env
config_home = os.getenv("XDG_CONFIG_HOME", str(Path.home() / ".config"))
dotenv_path = Path(config_home) / "drivetime" / ".env"
if dotenv_path.exists():
    load_dotenv(dotenv_path)

console = Console()

app = typer.Typer(
    name="drivetime",
    help="DriveTime - capture now, listen on the drive",
    add_completion=False,
)


@app.command()
def init() -> None:
    """Create the config file and database."""
    try:
        config_path = ensure_config()
        config = Config.from_file(config_path)
        db_path = init_db(config.db_path)
    except Exception as e:
        console.print(f"[bold red]❌ Init failed: {e}[/bold red]")
        raise typer.Exit(1) from e

    console.print(f"[green]✅ Config: {config_path}[/green]")
    console.print(f"[green]✅ Database: {db_path}[/green]")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Port"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Run the DriveTime API server."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        ensure_config()
        console.print("📂 Loading configuration...")
        config = Config.from_file()
        init_db(config.db_path)
    except Exception as e:
        console.print(f"[bold red]❌ Fatal error: {e}[/bold red]")
        sys.exit(1)

    host = host or config.host
    port = port or config.port

    console.print(f"[yellow]🌐 Starting API server on http://{host}:{port}...[/yellow]")
    console.print(f"[dim]LLM: {config.llm_provider} / {config.llm_model}[/dim]")
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")

    from .api import app as api_app

    uvicorn.run(
        api_app,
        host=host,
        port=port,
        log_level="warning",  # Request lines come from our own middleware
        access_log=False,
    )


app.command(name="add", help="Capture text or a URL")(cli.add)
app.command(name="list", help="List artifacts by day")(cli.list_artifacts)
app.command(name="done", help="Mark an artifact completed")(cli.done)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
