# tools/base.py
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from tenflow.config import DEFAULT_BATCH_TOLERANCE, DEFAULT_MAX_BATCH_SIZE
from tenflow.workflow.models import ActionInfo, ChunkBoundaries, Phase, Task
from tenflow.workflow.transitions import phase_name

logger = logging.getLogger(__name__)


@dataclass
class ToolContext:
    """
    Lo que la capa de tool-calling inyecta en cada llamada.
    Un mismo contexto se reutiliza durante todo el intento de la tarea:
    processed_paragraph_ids acumula lo enviado en lotes anteriores.
    """
    task_id:                 Optional[str]                          = None
    registry:                Any                                    = None
    book_id:                 Optional[str]                          = None
    document_store:          Any                                    = None
    ai_model_id:             Optional[str]                          = None
    chunk_boundaries:        Optional[ChunkBoundaries]              = None
    on_action:               Optional[Callable[[ActionInfo], None]] = None
    max_batch_size:          int                                    = DEFAULT_MAX_BATCH_SIZE
    batch_tolerance:         float                                  = DEFAULT_BATCH_TOLERANCE
    processed_paragraph_ids: set[str]                               = field(default_factory=set)


ToolHandler = Callable[[dict, ToolContext], Awaitable[dict]]


@dataclass
class ToolDefinition:
    name:        str
    description: str
    parameters:  dict
    handler:     ToolHandler

    def schema(self) -> dict:
        """Definición en formato function-calling."""
        return {
            "type": "function",
            "function": {
                "name":        self.name,
                "description": self.description,
                "parameters":  self.parameters,
            },
        }


# ------------------------------------------------------------------
# Resultados estructurados: las herramientas nunca lanzan
# ------------------------------------------------------------------

def ok(**payload) -> dict:
    return {"success": True, **payload}


def fail(error: str) -> dict:
    return {"success": False, "error": error}


def notify(context: ToolContext, action: ActionInfo) -> None:
    """Avisa a on_action. Un fallo del consumidor no invalida la operación ya hecha."""
    if context.on_action is None:
        return
    try:
        context.on_action(action)
    except Exception as e:
        logger.warning("on_action falló para %s/%s: %s", action.type, action.entity, e)


def resolve_working_task(context: ToolContext) -> tuple[Optional[Task], Optional[str]]:
    """
    Comprobaciones comunes de las herramientas de contenido:
    registro → task_id → tarea existente → fase exactamente working.
    Devuelve (tarea, None) o (None, mensaje de error).
    """
    if context.registry is None:
        return None, "Registro de tareas no inicializado"

    if not context.task_id:
        return None, "No se proporcionó el ID de la tarea (task_id)"

    task = context.registry.find(context.task_id)
    if task is None:
        return None, f"La tarea no existe: {context.task_id}"

    if task.workflow_phase is not Phase.WORKING:
        current = phase_name(task.workflow_phase) if task.workflow_phase else "sin fase"
        return None, (
            f"Esta herramienta solo puede usarse en la fase 'working'; "
            f"fase actual: {current}"
        )

    return task, None
