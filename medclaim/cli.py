"""Command Line Interface for the medical claim registry.

Every command opens the configured registry, performs one operation and
closes it again. Mutating commands take ``--as`` for the identity acting.

Examples:
    medclaim init --admin 0xAdmin...
    medclaim add-hospital 0xHospital... --as 0xAdmin...
    medclaim submit-record 0xPatient... bafy... 1200 --as 0xHospital...
    medclaim validate-claim 1 --approve --as 0xInsurer...
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.table import Table

from medclaim import __version__
from medclaim.domain.enums import EventType
from medclaim.domain.ports import RegistryError
from medclaim.domain.registry import ClaimRegistry
from medclaim.infrastructure.logging_config import setup_logging
from medclaim.infrastructure.settings import settings
from medclaim.main import create_registry

app = typer.Typer(
    name="medclaim",
    help="MedClaim: medical records and insurance claims registry",
    add_completion=False
)
console = Console()

STATUS_STYLES = {
    "pending": "yellow",
    "approved": "green",
    "rejected": "red",
}


@contextmanager
def open_registry(administrator: Optional[str] = None) -> Iterator[ClaimRegistry]:
    """Open the configured registry; registry errors exit with code 1."""
    try:
        registry = create_registry(administrator=administrator)
    except RegistryError as e:
        console.print(f"[red]✗[/red] Failed to open registry: {e.message}")
        raise typer.Exit(code=1)

    try:
        yield registry
    except RegistryError as e:
        console.print(f"[red]✗[/red] {e.kind}: {e.message}")
        raise typer.Exit(code=1)
    finally:
        registry.close()


def _status_text(status: Optional[str]) -> str:
    if status is None:
        return "[dim]not claimed[/dim]"
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


@app.command()
def info() -> None:
    """Display configuration and registry statistics."""
    console.print("[bold blue]System Information[/bold blue]\n")

    info_table = Table(show_header=False, box=None, padding=(0, 2))
    info_table.add_row("Application:", settings.app_name)
    info_table.add_row("Version:", __version__)
    info_table.add_row("Storage Type:", settings.db_config.db_type)
    if settings.db_config.db_type == "duckdb":
        info_table.add_row("Database Path:", settings.get_db_path())
    else:
        info_table.add_row("Persistence:", "[yellow]none (state is lost on exit)[/yellow]")
    content_store = settings.content_store_config
    info_table.add_row("Content Store:", content_store.upload_url)
    info_table.add_row("Content Store Token:", "configured" if content_store.is_configured else "[yellow]missing[/yellow]")

    console.print(info_table)

    with open_registry() as registry:
        stats = registry.statistics()
        administrator = registry.administrator

    console.print("\n[bold blue]Registry[/bold blue]\n")
    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_row("Administrator:", administrator)
    stats_table.add_row("Hospitals:", str(stats.hospital_count))
    stats_table.add_row("Insurers:", str(stats.insurer_count))
    stats_table.add_row("Records:", str(stats.record_count))
    stats_table.add_row("Claims:", ", ".join(
        f"{count} {status}" for status, count in stats.claims_by_status.items()
    ))
    console.print(stats_table)


@app.command()
def init(
    admin: str = typer.Option(..., "--admin", help="Administrator identity for a new registry"),
) -> None:
    """Create the registry (or confirm an existing one has this administrator)."""
    with open_registry(administrator=admin) as registry:
        console.print(f"[green]✓[/green] Registry administrator: {registry.administrator}")


@app.command("add-hospital")
def add_hospital(
    address: str = typer.Argument(..., help="Hospital identity to verify"),
    caller: str = typer.Option(..., "--as", help="Administrator identity"),
) -> None:
    """Add a verified hospital."""
    with open_registry() as registry:
        if registry.add_hospital(caller, address):
            console.print(f"[green]✓[/green] Hospital verified: {address}")
        else:
            console.print(f"[yellow]⚠[/yellow] Already a verified hospital: {address}")


@app.command("add-insurer")
def add_insurer(
    address: str = typer.Argument(..., help="Insurer identity to verify"),
    caller: str = typer.Option(..., "--as", help="Administrator identity"),
) -> None:
    """Add a verified insurer."""
    with open_registry() as registry:
        if registry.add_insurer(caller, address):
            console.print(f"[green]✓[/green] Insurer verified: {address}")
        else:
            console.print(f"[yellow]⚠[/yellow] Already a verified insurer: {address}")


@app.command("submit-record")
def submit_record(
    patient: str = typer.Argument(..., help="Patient identity"),
    content_ref: str = typer.Argument(..., help="Content reference from the content store"),
    cost: int = typer.Argument(..., help="Treatment cost"),
    caller: str = typer.Option(..., "--as", help="Verified hospital identity"),
) -> None:
    """Submit a medical record as a verified hospital."""
    with open_registry() as registry:
        record_id = registry.submit_medical_record(caller, patient, content_ref, cost)
        console.print(f"[green]✓[/green] Record submitted: #{record_id}")


@app.command("submit-claim")
def submit_claim(
    record_id: int = typer.Argument(..., help="Record to claim against"),
    insurer: str = typer.Argument(..., help="Verified insurer to address"),
    caller: str = typer.Option(..., "--as", help="Patient identity owning the record"),
) -> None:
    """Submit a claim on one of your records."""
    with open_registry() as registry:
        claim_id = registry.submit_claim(caller, record_id, insurer)
        console.print(f"[green]✓[/green] Claim submitted: #{claim_id}")


@app.command("validate-claim")
def validate_claim(
    claim_id: int = typer.Argument(..., help="Claim to validate"),
    approve: bool = typer.Option(..., "--approve/--reject", help="Approve or reject the claim"),
    caller: str = typer.Option(..., "--as", help="Insurer identity named on the claim"),
) -> None:
    """Approve or reject a pending claim."""
    with open_registry() as registry:
        status = registry.validate_claim(caller, claim_id, approve)
        console.print(f"[green]✓[/green] Claim #{claim_id} {_status_text(status.value)}")


@app.command("claim-status")
def claim_status(claim_id: int = typer.Argument(..., help="Claim id")) -> None:
    """Show the status of a claim."""
    with open_registry() as registry:
        claim = registry.get_claim(claim_id)
        console.print(
            f"Claim #{claim.claim_id} on record #{claim.record_id}: "
            f"{_status_text(claim.status.value)} (code {claim.status.code})"
        )


@app.command()
def record(record_id: int = typer.Argument(..., help="Record id")) -> None:
    """Show a record with its latest claim."""
    with open_registry() as registry:
        view = registry.get_record_and_claim_details(record_id)

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_row("Record:", f"#{view.record_id}")
    table.add_row("Patient:", view.patient)
    table.add_row("Hospital:", view.hospital)
    table.add_row("Content:", view.content_ref)
    table.add_row("Cost:", str(view.cost))
    table.add_row("Claim:", f"#{view.claim_id}" if view.claim_id else "-")
    table.add_row("Insurer:", view.insurer or "-")
    table.add_row("Status:", _status_text(view.claim_status.value if view.claim_status else None))
    console.print(table)


@app.command()
def patient(identity: str = typer.Argument(..., help="Patient identity")) -> None:
    """List a patient's records and their claim status."""
    with open_registry() as registry:
        views = [registry.get_record_and_claim_details(rid) for rid in registry.records_of(identity)]
        claim_ids = registry.claims_of(identity)

    table = Table(title=f"Records of {identity}")
    table.add_column("Record", justify="right")
    table.add_column("Hospital")
    table.add_column("Content")
    table.add_column("Cost", justify="right")
    table.add_column("Claim", justify="right")
    table.add_column("Status")
    for view in views:
        table.add_row(
            str(view.record_id),
            view.hospital,
            view.content_ref,
            str(view.cost),
            str(view.claim_id) if view.claim_id else "-",
            _status_text(view.claim_status.value if view.claim_status else None),
        )
    console.print(table)
    console.print(f"[dim]Claims:[/dim] {', '.join(str(c) for c in claim_ids) or '-'}")


@app.command("hospital-patients")
def hospital_patients(hospital: str = typer.Argument(..., help="Hospital identity")) -> None:
    """List the distinct patients a hospital has treated."""
    with open_registry() as registry:
        patients = registry.patients_of(hospital)
    if not patients:
        console.print("[dim]No patients[/dim]")
        return
    for entry in patients:
        console.print(f"  • {entry}")


@app.command()
def events(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of events to show"),
    event_type: Optional[EventType] = typer.Option(None, "--type", help="Filter by event type"),
) -> None:
    """Show the audit trail, newest first."""
    with open_registry() as registry:
        entries = registry.get_events(limit=limit, event_type=event_type)

    table = Table(title="Registry Events")
    table.add_column("Time")
    table.add_column("Type")
    table.add_column("Actor")
    table.add_column("Entity")
    for event in entries:
        table.add_row(
            event.event_timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            event.event_type.value,
            event.actor,
            event.entity_id or "-",
        )
    console.print(table)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    console.print(f"[bold blue]Serving registry API on http://{host}:{port}/api/docs[/bold blue]")
    uvicorn.run("medclaim.api.main:app", host=host, port=port, reload=reload, log_level="info")


def _print_version(value: bool) -> None:
    if value:
        console.print(f"MedClaim v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False, "--version", callback=_print_version, is_eager=True, help="Show version information"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """MedClaim: medical records and insurance claims registry."""
    setup_logging(use_json=settings.json_logs, log_level="DEBUG" if verbose else "WARNING")
    if verbose:
        logging.getLogger(__name__).debug("Verbose logging enabled")


if __name__ == "__main__":
    app()
