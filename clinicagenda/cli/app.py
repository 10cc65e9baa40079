"""
Main CLI application using Typer.
"""

import asyncio
import logging
from itertools import groupby
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.firestore_client import FirestoreAppointmentClient
from ..adapters.mock_appointment_client import MockAppointmentClient
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import ClinicAgendaError
from ..domain.models import Weekday
from ..services.availability_service import AppointmentSourceProtocol, AvailabilityService

app = typer.Typer(
    name="clinicagenda",
    help="Find free appointment slots for clinic doctors",
    add_completion=False
)

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _build_source(config: AppConfig, mock: bool, mock_data: Optional[Path]) -> AppointmentSourceProtocol:
    """Pick the appointment source: bundled/provided mock data or Firestore."""
    if mock:
        return MockAppointmentClient(data_file=mock_data, timezone=config.timezone)

    if not config.firestore.project_id:
        raise ClinicAgendaError(
            "firestore.project_id is not configured. Set it in config.yaml or use --mock."
        )

    return FirestoreAppointmentClient(
        project_id=config.firestore.project_id,
        database=config.firestore.database,
        collection=config.firestore.collection,
        timezone=config.timezone,
        access_token=config.firestore.access_token,
        api_key=config.firestore.api_key,
    )


def _parse_day(value: Optional[str], tz: str):
    if not value:
        return pendulum.today(tz).date()

    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except Exception as e:
        console.print(f"[red]Erro ao interpretar a data '{value}': {e}[/red]")
        raise typer.Exit(1)


@app.command()
def slots(
    doctor: Annotated[str, typer.Argument(help="Id ou nome do médico (ex.: 'dr-ana' ou 'ana').")],
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    date: Annotated[Optional[str], typer.Option("--date", help="Dia inicial (YYYY-MM-DD). Padrão: hoje.")] = None,
    days: Annotated[int, typer.Option("--days", min=1, help="Quantidade de dias a consultar.")] = 1,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Duração da consulta em minutos.")] = None,
    lead_time: Annotated[bool, typer.Option("--lead-time/--no-lead-time", help="Aplicar a antecedência mínima da clínica.")] = True,
    mock: Annotated[bool, typer.Option("--mock", help="Usar dados de teste em vez do Firestore.")] = False,
    mock_data: Annotated[Optional[Path], typer.Option("--mock-data", help="Arquivo JSON com consultas de teste.")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log detalhado.")] = False,
):
    """
    Show a doctor's free appointment slots.

    Examples:

        # Today
        clinicagenda slots ana

        # A whole week, 45 minute consultations
        clinicagenda slots dr-ana --date 2024-11-25 --days 7 --duration 45

        # Use mock data (no Firestore project needed)
        clinicagenda slots ana --mock --date 2024-11-25 --no-lead-time
    """
    _configure_logging(verbose)

    try:
        config = _load_config(config_file)
        tz = config.timezone

        start_day = _parse_day(date, tz)
        end_day = start_day.add(days=days - 1)

        doctor_config = config.resolve_doctor(doctor)
        slot_duration = duration if duration is not None else doctor_config.appointment_duration(config.defaults)

        if mock:
            console.print("[yellow]⚠  MODO DE TESTE: usando dados fictícios[/yellow]\n")

        console.print("[bold cyan]📊 Resumo:[/bold cyan]")
        console.print(f"   Médico: {doctor_config.name} ({doctor_config.id})")
        console.print(f"   Período: {start_day.format('DD/MM/YYYY')} - {end_day.format('DD/MM/YYYY')}")
        console.print(f"   Duração: {slot_duration} minutos")
        console.print()

        service = AvailabilityService(
            appointment_source=_build_source(config, mock, mock_data),
            config=config,
        )

        found = asyncio.run(
            service.find_slots_for_range(
                doctor=doctor_config.id,
                start_day=start_day,
                end_day=end_day,
                duration_minutes=slot_duration,
                now=pendulum.now(tz) if lead_time else None,
            )
        )

        if not found:
            console.print(
                "[yellow]⚠ Nenhum horário disponível encontrado.[/yellow]\n"
                "Tente um período maior ou uma duração menor."
            )
            return

        console.print(f"[bold green]✓ {len(found)} horário(s) disponível(is):[/bold green]\n")

        for _, day_slots in groupby(found, key=lambda slot: slot.start.date()):
            for slot in day_slots:
                console.print(f"  • {slot.format_display()}")
            console.print()

    except FileNotFoundError as e:
        console.print(f"[bold red]Erro:[/bold red] {e}")
        raise typer.Exit(1)

    except ClinicAgendaError as e:
        console.print(f"[bold red]Erro:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def list_doctors(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Path to config file"
    )
):
    """
    List all configured doctors and their working hours.
    """
    try:
        config = _load_config(config_file)
    except (FileNotFoundError, ClinicAgendaError) as e:
        console.print(f"[bold red]Erro:[/bold red] {e}")
        raise typer.Exit(1)

    if not config.doctors:
        console.print("[yellow]Nenhum médico definido no arquivo de configuração.[/yellow]")
        return

    table = Table(
        title="Médicos configurados",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Id", style="dim")
    table.add_column("Nome (alias)", style="bold yellow")
    table.add_column("Especialidade")
    table.add_column("Duração")
    table.add_column("Horários")

    for doctor in config.doctors:
        schedule = doctor.schedule()
        hours = "\n".join(
            f"{weekday.display_name()}: {', '.join(str(p) for p in schedule.periods_for(weekday))}"
            for weekday in Weekday
            if schedule.periods_for(weekday)
        )
        table.add_row(
            doctor.id,
            doctor.name,
            doctor.specialty,
            f"{doctor.appointment_duration(config.defaults)} min",
            hours or "-"
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]clinicagenda[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
