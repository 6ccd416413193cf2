"""CLI entrypoint for Ben AM pipeline commands."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from pydantic import ValidationError

from ..config import load_config
from ..db.config import create_db_engine, init_db
from ..db.operations import SqlJobStore, status_view
from ..errors import BenamError, ProcessingFailure
from ..processor.models import ProcessingRequest
from ..processor.worker import build_orchestrator

app = typer.Typer(
    name="benam",
    help="Morning DJ media pipeline",
    no_args_is_help=True,
)

ConfigOption = typer.Option(None, "--config", "-c", help="Path to config.yaml")


@app.command("version")
def version() -> None:
    """Print the current version of benam."""
    typer.echo("benam version v0")


@app.command("process")
def process(
    payload_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Job payload JSON"),
    config_path: Optional[str] = ConfigOption,
) -> None:
    """Submit and run the pipeline for one job payload.

    Args:
        payload_file: JSON file with {jobId, dateKey, sourceRef, ...}
    """
    try:
        config = load_config(config_path)
        request = ProcessingRequest.model_validate_json(payload_file.read_text())
    except (BenamError, ValidationError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    # Local runs act as the submitter: the pipeline only updates existing records.
    store = SqlJobStore(create_db_engine(config.database_url))
    if store.get(request.date_key) is None:
        _ = store.create(request.date_key, request.job_id)

    typer.echo(f"Processing job {request.job_id} for {request.date_key}...")
    try:
        outcome = build_orchestrator(config).run(request)
    except ProcessingFailure as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"✓ Combined audio: {outcome.combined_artifact_ref}")
    typer.echo(json.dumps(outcome.model_dump(by_alias=True), indent=2))


@app.command("status")
def status(
    date_key: str = typer.Argument(..., help="Date of the job (YYYY-MM-DD)"),
    config_path: Optional[str] = ConfigOption,
) -> None:
    """Show the job record for a date, as status pollers see it."""
    try:
        config = load_config(config_path)
    except BenamError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    store = SqlJobStore(create_db_engine(config.database_url))
    record = store.get(date_key)
    if record is None:
        typer.echo(f"No job found for {date_key}", err=True)
        raise typer.Exit(code=1)

    typer.echo(json.dumps(status_view(record), indent=2))


@app.command("cancel")
def cancel(
    date_key: str = typer.Argument(..., help="Date of the job (YYYY-MM-DD)"),
    config_path: Optional[str] = ConfigOption,
) -> None:
    """Delete the job record for a date so a new job can take the slot."""
    try:
        config = load_config(config_path)
    except BenamError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    store = SqlJobStore(create_db_engine(config.database_url))
    if not store.delete(date_key):
        typer.echo(f"No job found for {date_key}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"✓ Cancelled job for {date_key}")


@app.command("init-db")
def init_db_command(config_path: Optional[str] = ConfigOption) -> None:
    """Create the job store tables (development only; use Alembic in production)."""
    try:
        config = load_config(config_path)
    except BenamError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    init_db(create_db_engine(config.database_url))
    typer.echo("✓ Database tables created")


def main() -> None:
    """Main CLI entrypoint."""
    # Load .env file if it exists (doesn't override existing env vars)
    _ = load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app()


if __name__ == "__main__":
    main()
