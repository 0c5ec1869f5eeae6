from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Optional
from uuid import uuid4

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .assignment import DoctorAssignmentEngine
from .config import LOG_LEVEL, MatchingConfig, load_region_adjacency
from .data_generation import (
    DEFAULT_DATA_DIR,
    DOCTORS_CSV,
    DONORS_CSV,
    donors_to_df,
    generate_doctors,
    generate_donors,
    load_roster,
    save_roster,
)
from .donors import DonorMatcher, donor_statistics
from .errors import ThalcareError
from .models import Priority, Request, RequestKind
from .repository import InMemoryCandidateRepository, InMemoryRequestStore, LoggingNotifier
from .visualize import plot_donor_overview

console = Console()
app = typer.Typer(add_completion=False, no_args_is_help=True)


@app.callback()
def _setup(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output.")) -> None:
    logging.basicConfig(
        level="DEBUG" if verbose else LOG_LEVEL.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_repository(data_dir: Optional[Path], cfg: MatchingConfig) -> InMemoryCandidateRepository:
    data_dir = data_dir or DEFAULT_DATA_DIR
    if (data_dir / DOCTORS_CSV).exists() and (data_dir / DONORS_CSV).exists():
        doctors, donors = load_roster(data_dir)
    else:
        console.log(f"No roster under {data_dir}; using a synthetic one (seed {cfg.seed})")
        doctors = generate_doctors(cfg)
        donors = generate_donors(cfg, today=date.today())
    return InMemoryCandidateRepository(doctors, donors)


def _config(adjacency_csv: Optional[Path]) -> MatchingConfig:
    cfg = MatchingConfig()
    if adjacency_csv:
        cfg.region_adjacency = load_region_adjacency(adjacency_csv)
    return cfg


@app.command("generate-data")
def generate_data(
    data_dir: Path = typer.Option(DEFAULT_DATA_DIR, help="Directory to write doctors.csv and donors.csv into."),
    seed: int = typer.Option(42, help="Random seed."),
    doctors_per_region: int = typer.Option(4, help="Doctors per region."),
    donors_per_region: int = typer.Option(25, help="Donors per region."),
) -> None:
    cfg = MatchingConfig(seed=seed, doctors_per_region=doctors_per_region, donors_per_region=donors_per_region)
    doctors = generate_doctors(cfg)
    donors = generate_donors(cfg, today=date.today())
    save_roster(doctors, donors, data_dir)
    console.log(f"Saved {len(doctors)} doctors and {len(donors)} donors to {data_dir}")


@app.command("assign")
def assign(
    region: str = typer.Option(..., help="Region the request comes from."),
    kind: RequestKind = typer.Option(RequestKind.consultation, help="Request kind."),
    priority: Priority = typer.Option(Priority.medium, help="Request priority."),
    patient_id: str = typer.Option("PAT-CLI", help="Requesting patient id."),
    description: str = typer.Option("", help="Free-text description."),
    data_dir: Optional[Path] = typer.Option(None, help="Directory containing doctors.csv and donors.csv."),
    adjacency_csv: Optional[Path] = typer.Option(None, help="CSV of region,neighbor fallback rows."),
) -> None:
    cfg = _config(adjacency_csv)
    repo = _load_repository(data_dir, cfg)
    store = InMemoryRequestStore()
    engine = DoctorAssignmentEngine(repo, store, LoggingNotifier(), cfg)

    request = Request(
        request_id=f"REQ-{uuid4().hex[:8]}",
        patient_id=patient_id,
        region=region,
        kind=kind,
        priority=priority,
        description=description,
    )
    store.add(request)

    ranking = engine.rank_doctors(request)
    if ranking:
        table = Table(title=f"Doctors in {region}", show_header=True, header_style="bold magenta")
        for column in ("Doctor", "Specialization", "Load", "Score"):
            table.add_column(column)
        for doctor, result in ranking:
            table.add_row(
                f"{doctor.name} ({doctor.doctor_id})",
                doctor.specialization,
                f"{doctor.current_load}/{doctor.max_capacity}",
                f"{result.score:0.1f}",
            )
        console.print(table)

    try:
        assignment = engine.assign(request)
    except ThalcareError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2)

    if assignment is None:
        console.print(f"[yellow]No doctor available for {region} or its neighbours; request left pending.[/yellow]")
        raise typer.Exit(code=1)
    where = " (neighbouring region)" if assignment.via_neighbor else ""
    console.print(
        f"[bold green]{request.request_id}[/bold green] assigned to {assignment.doctor_name} "
        f"in {assignment.region}{where}"
    )


@app.command("match-donors")
def match_donors(
    blood_type: str = typer.Option(..., help="Blood type the patient needs, e.g. O+."),
    region: str = typer.Option(..., help="Region the blood must be sourced in."),
    urgency: Priority = typer.Option(Priority.medium, help="Urgency of the requirement."),
    units: int = typer.Option(1, help="Units required."),
    data_dir: Optional[Path] = typer.Option(None, help="Directory containing doctors.csv and donors.csv."),
) -> None:
    cfg = MatchingConfig()
    repo = _load_repository(data_dir, cfg)
    matcher = DonorMatcher(repo, cfg)
    try:
        matches = matcher.score_matches(blood_type, region, urgency, units)
    except ThalcareError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2)

    if not matches:
        console.print(f"[yellow]No eligible {blood_type} donors in {region}.[/yellow]")
        raise typer.Exit(code=1)

    table = Table(title=f"{blood_type} donors in {region}", show_header=True, header_style="bold magenta")
    for column in ("Donor", "Type", "Tier", "Score", "Breakdown"):
        table.add_column(column)
    for donor, result in matches:
        breakdown = ", ".join(f"{f.name}={f.value:0.1f}" for f in result.factors)
        table.add_row(f"{donor.name} ({donor.donor_id})", donor.blood_type, donor.tier.value,
                      f"{result.score:0.1f}", breakdown)
    console.print(table)


@app.command("donor-stats")
def donor_stats(
    data_dir: Optional[Path] = typer.Option(None, help="Directory containing doctors.csv and donors.csv."),
    png_out: Optional[Path] = typer.Option(None, help="Save an overview chart to this path."),
) -> None:
    cfg = MatchingConfig()
    repo = _load_repository(data_dir, cfg)
    donors = repo.list_donors()
    _print_metrics(donor_statistics(donors))
    if png_out:
        plot_donor_overview(donors_to_df(donors), outfile=png_out)
        console.log(f"Saved donor overview to {png_out}")


def _print_metrics(metrics: dict) -> None:
    table = Table(title="Donor pool", show_header=True, header_style="bold magenta")
    table.add_column("Metric")
    table.add_column("Value")
    for key, val in metrics.items():
        if isinstance(val, dict):
            val = ", ".join(f"{k}: {v}" for k, v in val.items())
        table.add_row(key, f"{val:0.3f}" if isinstance(val, float) else str(val))
    console.print(table)
