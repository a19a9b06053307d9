# -*- coding: utf-8 -*-
"""
EnergyIntegration CLI
=====================

Offline tooling for saved streamsets: create one, check it, and print the
SI payload the solver backend would receive.
"""

import json
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from energy_integration.exceptions import EnergyIntegrationException, StreamSpecException
from energy_integration.stream_spec.models import (
    Issue,
    ThermalKind,
    default_intervals_config,
    make_default_stream,
)
from energy_integration.stream_spec.setup import StreamSpecService
from energy_integration.stream_spec.streamset import new_streamset, write_streamset
from energy_integration.stream_spec.validation import count_by_level

app = typer.Typer(
    name="ei",
    help="EnergyIntegration: stream specification for heat-exchanger-network design",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()


def _load(path: Path) -> StreamSpecService:
    service = StreamSpecService(seed_defaults=False)
    try:
        service.load_streamset(path)
    except StreamSpecException as exc:
        console.print(f"[red][FAIL][/red] {exc.message}")
        raise typer.Exit(2)
    return service


def _issue_table(issues: List[Issue], service: StreamSpecService) -> Table:
    names = {s.id: s.name for s in service.streams}
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Level")
    table.add_column("Stream", style="cyan")
    table.add_column("Field", style="yellow")
    table.add_column("Message")
    for issue in issues:
        level = "[red]error[/red]" if issue.is_blocking else "[yellow]warn[/yellow]"
        owner = names.get(issue.stream_id) or issue.stream_id
        table.add_row(level, owner, issue.field or "", issue.message)
    return table


@app.command()
def version():
    """Show EnergyIntegration version"""
    from .. import __version__

    console.print(f"[bold green]EnergyIntegration v{__version__}[/bold green]")


@app.command()
def init(
    path: Path = typer.Argument(..., help="Streamset file to create"),
    hot: int = typer.Option(1, "--hot", min=0, help="Number of default hot streams"),
    cold: int = typer.Option(1, "--cold", min=0, help="Number of default cold streams"),
    name: Optional[str] = typer.Option(None, "--name", help="Streamset name"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
):
    """Write a streamset of default streams"""
    if path.exists() and not force:
        console.print(f"[red][FAIL][/red] {path} exists (use --force to overwrite)")
        raise typer.Exit(1)

    streams = [make_default_stream(i + 1, ThermalKind.HOT) for i in range(hot)]
    streams += [make_default_stream(i + 1, ThermalKind.COLD) for i in range(cold)]
    streamset = new_streamset(streams, default_intervals_config(), name)
    write_streamset(streamset, path)
    console.print(f"[green][OK][/green] Wrote {len(streams)} streams to {path}")


@app.command()
def validate(
    path: Path = typer.Argument(..., help="Streamset file to validate"),
    as_json: bool = typer.Option(False, "--json", help="Print issues as JSON"),
):
    """Validate a streamset; exit 1 when blocking errors exist"""
    service = _load(path)
    issues = service.validate()
    errors, warnings = count_by_level(issues)

    if as_json:
        typer.echo(json.dumps(
            [i.model_dump(mode="json", by_alias=True) for i in issues],
            indent=2, ensure_ascii=False,
        ))
    elif issues:
        console.print(_issue_table(issues, service))
        console.print(f"{errors} error(s), {warnings} warning(s)")
    else:
        console.print("[green][OK][/green] No issues")

    if errors:
        raise typer.Exit(1)


@app.command()
def payload(
    path: Path = typer.Argument(..., help="Streamset file"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write payload to this file"),
):
    """Print the SI payload of a streamset"""
    service = _load(path)
    try:
        body = service.build_payload().to_wire()
    except EnergyIntegrationException as exc:
        console.print(f"[red][FAIL][/red] {exc.message}")
        issues = getattr(exc, "issues", None)
        if issues:
            console.print(_issue_table(issues, service))
        raise typer.Exit(1)

    text = json.dumps(body, indent=2, ensure_ascii=False)
    if out is not None:
        out.write_text(text + "\n", encoding="utf-8")
        console.print(f"[green][OK][/green] Wrote payload to {out}")
    else:
        typer.echo(text)


def main():
    """Main entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(1)


if __name__ == "__main__":
    main()
