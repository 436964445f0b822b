# tools/task_status.py
import logging

from tenflow.tools.base import ToolContext, ToolDefinition, fail, notify, ok
from tenflow.workflow.models import ActionInfo, Phase, parse_phase
from tenflow.workflow.transitions import VALID_PHASES, check_transition, transition_label

logger = logging.getLogger(__name__)


async def update_task_status(args: dict, context: ToolContext) -> dict:
    """
    Cambia la fase de la tarea actual si la tabla de su tipo lo permite.

    Orden de validación (gana el primer fallo):
    registro → task_id → tarea existente → status reconocido →
    tipo de tarea conocido → arista (actual → nueva) en la tabla.

    Al llegar a end también se fija mirror_status en la misma actualización.
    """
    status = args.get("status") if isinstance(args, dict) else None
    reason = args.get("reason") if isinstance(args, dict) else None

    registry = context.registry
    if registry is None:
        return fail("Registro de tareas no inicializado")

    if not context.task_id:
        return fail("No se proporcionó el ID de la tarea (task_id)")

    task = registry.find(context.task_id)
    if task is None:
        return fail(f"La tarea no existe: {context.task_id}")

    new_phase = parse_phase(status) if isinstance(status, str) else None
    if new_phase is None:
        return fail(
            f'Valor de estado inválido: "{status if status is not None else ""}". '
            f"Valores válidos: {', '.join(VALID_PHASES)}"
        )

    current = task.workflow_phase
    error   = check_transition(task.type, current, new_phase)
    if error:
        logger.info("Tarea %s (%s): %s", task.id, task.type, error)
        return fail(error)

    fields: dict = {"workflow_phase": new_phase}
    if new_phase is Phase.END:
        fields["mirror_status"] = Phase.END.value

    try:
        await registry.update(task.id, fields)
    except Exception as e:
        logger.error("No se pudo actualizar la fase de la tarea %s: %s", task.id, e)
        return fail(f"Falló la actualización del estado: {e}")

    label = transition_label(current, new_phase)
    if reason:
        logger.info("Tarea %s: %s (motivo: %s)", task.id, label, reason)
    else:
        logger.info("Tarea %s: %s", task.id, label)

    notify(context, ActionInfo(
        type   = "update",
        entity = "task",
        data   = {"id": task.id, "label": label},
    ))

    return ok(
        message    = f"Estado de la tarea actualizado: {label}",
        task_id    = task.id,
        new_status = new_phase.value,
    )


UPDATE_TASK_STATUS = ToolDefinition(
    name        = "update_task_status",
    description = (
        "Actualiza la fase de la tarea de IA actual. Flujo: planning → working → "
        "review → end. Solo las tareas de traducción admiten review (y review → "
        "working para volver a corregir); pulido, corrección y resumen de capítulo "
        "van directamente de working a end."
    ),
    parameters  = {
        "type": "object",
        "properties": {
            "status": {
                "type": "string",
                "enum": list(VALID_PHASES),
                "description": (
                    "Nueva fase. planning: planificando; working: traduciendo/puliendo/"
                    "corrigiendo; review: revisando (solo traducción); end: terminada"
                ),
            },
            "reason": {
                "type": "string",
                "description": "Motivo del cambio de fase (opcional)",
            },
        },
        "required": ["status"],
    },
    handler     = update_task_status,
)
