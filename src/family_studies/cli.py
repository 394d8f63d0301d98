"""CLI interface for Family Studies."""

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

app = typer.Typer(
    name="family-studies",
    help="Pedigree conversion and family record tooling",
    add_completion=False,
)
console = Console()


def get_config():
    """Load configuration from environment (and a .env file, if present)."""
    from dotenv import load_dotenv

    from .config import FamilyStudiesConfig

    load_dotenv()
    return FamilyStudiesConfig.from_env()


def _load_pedigree(file_path: Path):
    from .exceptions import MalformedPedigree
    from .pedigree.diagram import parse_diagram

    if not file_path.exists():
        console.print(f"[red]Error: File not found: {file_path}[/red]")
        raise typer.Exit(1)

    try:
        return parse_diagram(file_path.read_text())
    except MalformedPedigree as e:
        console.print(f"[red]Malformed pedigree: {e}[/red]")
        raise typer.Exit(2)


@app.command()
def convert(
    file_path: Path = typer.Argument(..., help="Pedigree editor JSON file"),
    output: Path = typer.Option(None, "--output", "-o", help="Write records as JSON to this file"),
    random_ids: bool = typer.Option(False, "--random-ids", help="Generate random placeholder ids"),
):
    """Convert a pedigree into per-individual patient records."""
    from .exceptions import MalformedPedigree
    from .logging import configure_logging
    from .pedigree.converter import PedigreeConverter

    config = get_config()
    configure_logging(config.log_level)

    pedigree = _load_pedigree(file_path)
    converter = PedigreeConverter(random_ids=random_ids, placeholder_prefix=config.placeholder_prefix)
    try:
        records = converter.convert(pedigree)
    except MalformedPedigree as e:
        console.print(f"[red]Malformed pedigree: {e}[/red]")
        raise typer.Exit(2)

    if not records:
        console.print("[yellow]Pedigree is empty[/yellow]")

    table = Table(title=f"Records from {file_path.name}")
    table.add_column("ID")
    table.add_column("Sex")
    table.add_column("Status")
    table.add_column("Parents")
    table.add_column("Partners")

    for record in records:
        label = f"[bold]{record.external_id}[/bold]" if record.is_proband else record.external_id
        if record.placeholder:
            label += " [dim](new)[/dim]"
        table.add_row(
            label,
            record.sex.value,
            record.vital_status.value,
            ", ".join(record.parents),
            ", ".join(record.partners),
        )

    console.print(table)

    if output:
        with open(output, "w") as f:
            json.dump([r.to_patient_json() for r in records], f, indent=2, default=str)
        console.print(f"[green]Records saved to {output}[/green]")


@app.command()
def validate(
    file_path: Path = typer.Argument(..., help="Pedigree editor JSON file"),
):
    """Check a pedigree for cycles and dangling relationships."""
    from .exceptions import MalformedPedigree

    pedigree = _load_pedigree(file_path)
    try:
        pedigree.validate()
    except MalformedPedigree as e:
        console.print(f"[red]Malformed pedigree: {e}[/red]")
        raise typer.Exit(2)

    console.print(
        Panel(
            f"{len(pedigree.individuals)} individuals, {len(pedigree.edges)} relationships, "
            f"proband {pedigree.proband}",
            title="[green]Pedigree OK[/green]",
        )
    )


if __name__ == "__main__":
    app()
