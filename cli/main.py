"""
CertVault CLI Main Module

Command-line interface for CertVault using Typer.
Lets operators prepare the database, issue a batch from a local
spreadsheet, check a certificate code and mint access tokens.
"""

import asyncio
import json
import sys
from datetime import timedelta
from pathlib import Path
from typing import Optional

import typer

from auth.models import ActorRole
from auth.tokens import create_access_token
from core.config import Settings
from core.db import Database
from core.errors import BatchFailedError, ValidationError
from core.ingest import BatchIngestor
from core.issue import RowProcessor
from core.logging import get_logger, setup_logging
from core.records import CertificateRepository
from core.storage import LocalObjectStore
from core.verify import VerificationResponder

logger = get_logger(__name__)

app = typer.Typer(
    name="certvault",
    help="CertVault - issue, store and verify PDF certificates",
    add_completion=False
)


def _settings() -> Settings:
    settings = Settings.from_env()
    setup_logging(level=settings.log_level, format_type="text", stream=sys.stderr)
    return settings


@app.command("init-db")
def init_db() -> None:
    """Create the certificate tables if they do not exist."""
    settings = _settings()

    async def run() -> None:
        database = Database.from_settings(settings)
        try:
            await database.init()
        finally:
            await database.close()

    asyncio.run(run())
    typer.echo("Database ready")


@app.command()
def issue(
    spreadsheet: Path = typer.Argument(..., exists=True, dir_okay=False, help="Excel (.xlsx) or CSV file"),
    institution: str = typer.Option(..., "--institution", "-i", help="Institution name printed on certificates"),
    logo: str = typer.Option("", "--logo", help="Logo URL or local path"),
    actor: Optional[str] = typer.Option(None, "--actor", help="Recorded as created_by"),
    as_json: bool = typer.Option(False, "--json", help="Print the full batch result as JSON"),
) -> None:
    """
    Issue one certificate per spreadsheet row.

    Exit codes: 0 success, 1 validation error, 2 batch stopped on a row.
    """
    settings = _settings()
    data = spreadsheet.read_bytes()

    async def run():
        database = Database.from_settings(settings)
        try:
            await database.init()
            store = LocalObjectStore.from_settings(settings)
            repository = CertificateRepository(database)
            ingestor = BatchIngestor(settings, RowProcessor(settings, store, repository))
            return await ingestor.ingest(data, institution, logo_url=logo, actor_id=actor)
        finally:
            await database.close()

    try:
        batch = asyncio.run(run())
    except ValidationError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(1)
    except BatchFailedError as e:
        typer.echo(f"Generation failed: {e.message}", err=True)
        raise typer.Exit(2)

    if as_json:
        typer.echo(json.dumps(batch.to_dict(), indent=2, default=str))
        return

    typer.echo(f"Issued {batch.count} certificates")
    for record in batch.items:
        typer.echo(f"  {record.certificate_id}  {record.full_name}  {record.verify_url}")


@app.command()
def verify(
    code: str = typer.Argument(..., help="Certificate code"),
    html: bool = typer.Option(False, "--html", help="Print the verification page HTML"),
) -> None:
    """Look up a certificate code; exits 1 when it is unknown."""
    settings = _settings()

    async def run():
        database = Database.from_settings(settings)
        try:
            await database.init()
            repository = CertificateRepository(database)
            store = LocalObjectStore.from_settings(settings)
            page = await VerificationResponder(repository, store, settings).verify(code)
            record = await repository.get(code.strip()) if page.found else None
            return page, record
        finally:
            await database.close()

    page, record = asyncio.run(run())

    if html:
        typer.echo(page.html)
    elif record is not None:
        typer.echo(f"VALID: {record.full_name}" if record.is_valid else f"REVOKED: {record.full_name}")
        typer.echo(f"  Institution: {record.institution_name}")
        typer.echo(f"  Program: {record.program or '-'}")
        typer.echo(f"  Certificate ID: {record.certificate_id}")
    else:
        typer.echo(f"Certificate not found: {code.strip()}", err=True)

    if not page.found:
        raise typer.Exit(1)


@app.command()
def token(
    subject: str = typer.Argument(..., help="Actor id stored as the token subject"),
    role: str = typer.Option(ActorRole.REGISTRAR.value, "--role", "-r", help="Actor role"),
    institution: Optional[str] = typer.Option(None, "--institution", "-i", help="Actor institution"),
    hours: Optional[int] = typer.Option(None, "--hours", help="Lifetime in hours (default JWT_EXPIRY_HOURS)"),
) -> None:
    """Mint a bearer token for the issuance API."""
    settings = _settings()
    expires_in = timedelta(hours=hours) if hours else None
    typer.echo(create_access_token(settings, subject, role, institution, expires_in=expires_in))


if __name__ == "__main__":
    app()
