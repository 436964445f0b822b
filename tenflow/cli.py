# tenflow/cli.py
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from tenflow.config import load_workflow_config
from tenflow.tools.translation_batch import calculate_allowed_batch_size
from tenflow.workflow.models import Phase, StreamChunk, TaskType, parse_phase
from tenflow.workflow.stream_validator import (
    StreamValidationError,
    StreamValidatorConfig,
    create_stream_validator,
)
from tenflow.workflow.transitions import TRANSITION_TABLES, phase_name, workflow_text


# Carga .env una sola vez, antes que cualquier otra cosa
load_dotenv()

_TASK_TYPES = [t.value for t in TaskType]
_PHASES     = ["absent"] + [p.value for p in Phase]


# ------------------------------------------------------------------
# Grupo raíz
# ------------------------------------------------------------------

@click.group()
@click.version_option(package_name="tenflow")
@click.option("--verbose", "-v", is_flag=True, help="Muestra el log detallado en stderr")
def main(verbose: bool):
    """
    TenFlow: protocolo de tareas de IA.

    Fases por tipo de tarea, validación del stream del modelo
    y envío de lotes de traducción.
    """
    if verbose:
        logging.basicConfig(
            level  = logging.DEBUG,
            format = "%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


# ------------------------------------------------------------------
# tenflow tables
# ------------------------------------------------------------------

@main.command()
def tables():
    """Imprime las transiciones permitidas para cada tipo de tarea."""
    for task_type, table in TRANSITION_TABLES.items():
        click.echo(f"[tenflow] {task_type.value}: {workflow_text(task_type)}")
        edges = sorted(table, key=lambda edge: (_order(edge[0]), _order(edge[1])))
        for current, new in edges:
            click.echo(f"           {phase_name(current)} → {new.value}")


def _order(phase) -> int:
    return -1 if phase is None else list(Phase).index(phase)


# ------------------------------------------------------------------
# tenflow check-stream
# ------------------------------------------------------------------

@main.command("check-stream")
@click.argument("file", type=click.Path(exists=False))
@click.option(
    "--type", "task_type",
    required = True,
    type     = click.Choice(_TASK_TYPES, case_sensitive=False),
    help     = "Tipo de la tarea que produjo la salida",
)
@click.option(
    "--phase",
    default      = "absent",
    show_default = True,
    type         = click.Choice(_PHASES, case_sensitive=False),
    help         = "Fase de la tarea al empezar el stream",
)
@click.option(
    "--chunk-size",
    default      = 16,
    show_default = True,
    type         = click.IntRange(min=1),
    help         = "Caracteres por chunk al reproducir la salida",
)
@click.option(
    "--config", "config_path",
    default = None,
    type    = click.Path(exists=False),
    help    = "Ruta a un config.yaml alternativo",
)
def check_stream(file: str, task_type: str, phase: str, chunk_size: int, config_path: str | None):
    """
    Reproduce una salida grabada del modelo a través del validador de streaming.
    Sale con código 1 en la primera violación.
    """
    path = Path(file)
    if not path.is_file():
        _abort(f"Archivo no encontrado: {file}")

    try:
        config = load_workflow_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        _abort(str(e))

    text = path.read_text(encoding="utf-8")
    if not text.strip():
        _abort(f"La salida grabada está vacía: {file}")

    validator = create_stream_validator(StreamValidatorConfig(
        task_type     = task_type.lower(),
        current_phase = parse_phase(phase),
        log_label     = path.name,
        degradation   = config.degradation,
    ))

    chunks = [text[i:i + chunk_size] for i in range(0, len(text), chunk_size)]
    try:
        for index, piece in enumerate(chunks):
            validator(StreamChunk(text=piece, done=index == len(chunks) - 1))
    except StreamValidationError as e:
        _error(f"Stream inválido ({type(e).__name__}) en el chunk {index + 1}/{len(chunks)}:\n{e}")
        sys.exit(1)

    click.echo(f"[tenflow] ✓ Stream válido ({len(chunks)} chunks)")
    click.echo(f"[tenflow]   Fase final : {phase_name(validator.current_phase)}")


# ------------------------------------------------------------------
# tenflow batch-size
# ------------------------------------------------------------------

@main.command("batch-size")
@click.option("--total", default=0, show_default=True, type=click.IntRange(min=0),
              help="Párrafos del chunk (0 = sin límites de chunk)")
@click.option("--submitted", default=0, show_default=True, type=click.IntRange(min=0),
              help="Párrafos ya enviados en lotes anteriores")
@click.option("--config", "config_path", default=None, type=click.Path(exists=False),
              help="Ruta a un config.yaml alternativo")
def batch_size(total: int, submitted: int, config_path: str | None):
    """Calcula el tamaño máximo admitido para el próximo lote."""
    if total and submitted > total:
        _abort("--submitted no puede ser mayor que --total.")

    try:
        config = load_workflow_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        _abort(str(e))

    capacity = calculate_allowed_batch_size(
        chunk_total     = total or None,
        submitted_count = submitted,
        max_batch       = config.max_batch_size,
        tolerance       = config.batch_tolerance,
    )

    click.echo(f"[tenflow] Máximo por lote : {capacity.hard_max}")
    click.echo(f"[tenflow] Lote doble      : {'sí' if capacity.double_mode else 'no'}")
    if total:
        click.echo(f"[tenflow] Restantes       : {total - submitted}")


# ------------------------------------------------------------------
# Helpers de output
# ------------------------------------------------------------------

def _abort(message: str) -> None:
    """Error de validación: culpa del usuario."""
    click.echo(click.style(f"[tenflow] Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _error(message: str) -> None:
    """Error de sistema o del stream: no es culpa del usuario."""
    click.echo(click.style(f"[tenflow] {message}", fg="red"), err=True)
