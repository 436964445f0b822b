# workflow/transitions.py
"""
Tablas de transición de fases por tipo de tarea.

Única fuente de verdad para la herramienta update_task_status y para el
validador de streaming: ambos consultan check_transition(). Añadir un tipo
de tarea nuevo es añadir una entrada a TRANSITION_TABLES, nada más.
"""
from typing import Optional

from tenflow.workflow.models import Phase, TaskType, parse_task_type

# Etiqueta del estado previo a la primera transición (fase ausente)
INITIAL_LABEL = "初始"

_PLANNING, _WORKING, _REVIEW, _END = Phase.PLANNING, Phase.WORKING, Phase.REVIEW, Phase.END

_LINEAR_TABLE = frozenset({
    (None,      _PLANNING),
    (_PLANNING, _WORKING),
    (_WORKING,  _END),
})

TRANSITION_TABLES: dict[TaskType, frozenset[tuple[Optional[Phase], Phase]]] = {
    TaskType.TRANSLATION: frozenset({
        (None,      _PLANNING),
        (_PLANNING, _WORKING),
        (_WORKING,  _REVIEW),
        (_REVIEW,   _END),
        (_REVIEW,   _WORKING),
    }),
    TaskType.POLISH:          _LINEAR_TABLE,
    TaskType.PROOFREADING:    _LINEAR_TABLE,
    TaskType.CHAPTER_SUMMARY: _LINEAR_TABLE,
}

VALID_PHASES: tuple[str, ...] = tuple(p.value for p in Phase)

_TYPE_LABELS = {
    TaskType.TRANSLATION:     "traduciendo",
    TaskType.POLISH:          "puliendo",
    TaskType.PROOFREADING:    "corrigiendo",
    TaskType.CHAPTER_SUMMARY: "resumiendo",
}


def phase_name(phase: Optional[Phase]) -> str:
    """Nombre corto para mensajes: 'planning', ... o la etiqueta inicial."""
    return phase.value if phase else INITIAL_LABEL


def transition_label(current: Optional[Phase], new: Phase) -> str:
    return f"{phase_name(current)} → {new.value}"


def is_valid_transition(task_type, current: Optional[Phase], new: Phase) -> bool:
    table = TRANSITION_TABLES.get(parse_task_type(task_type))
    return table is not None and (current, new) in table


def check_transition(task_type, current: Optional[Phase], new: Phase) -> Optional[str]:
    """
    Devuelve None si la transición es legal, o el mensaje de error si no.
    El mensaje siempre incluye "actual → nueva" para que el modelo pueda
    corregirse sin más contexto.
    """
    resolved = parse_task_type(task_type)
    if resolved is None or resolved not in TRANSITION_TABLES:
        value = task_type.value if isinstance(task_type, TaskType) else task_type
        return f"Tipo de tarea desconocido: {value}"

    if (current, new) in TRANSITION_TABLES[resolved]:
        return None

    message = f"Transición de estado inválida: {transition_label(current, new)}"
    if current is None:
        message += ". La fase inicial debe ser planning"
    return message


def allowed_next(task_type, current: Optional[Phase]) -> list[Phase]:
    """Fases alcanzables desde current, en orden de declaración de Phase."""
    table = TRANSITION_TABLES.get(parse_task_type(task_type), frozenset())
    targets = {to for (frm, to) in table if frm == current}
    return [p for p in Phase if p in targets]


def phase_label(phase: Optional[Phase], task_type) -> str:
    """Etiqueta legible usada en los avisos del validador de streaming."""
    if phase is None:
        return f"{INITIAL_LABEL} (absent)"
    if phase is Phase.WORKING:
        resolved = parse_task_type(task_type)
        prefix = _TYPE_LABELS.get(resolved, "trabajando")
        return f"{prefix} (working)"
    return {
        Phase.PLANNING: "planificación (planning)",
        Phase.REVIEW:   "revisión (review)",
        Phase.END:      "terminada (end)",
    }[phase]


def workflow_text(task_type) -> str:
    """Recorrido completo de fases para un tipo, p. ej. 'planning → working → end'."""
    resolved = parse_task_type(task_type)
    if resolved is TaskType.TRANSLATION:
        return "planning → working → review → end (review → working permitido)"
    return "planning → working → end (review no está disponible para este tipo)"
