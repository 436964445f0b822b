# workflow/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Phase(Enum):
    """
    Fases con nombre del ciclo de vida de una tarea.
    La fase "ausente" (tarea recién creada, sin fase) se representa con None.
    """
    PLANNING = "planning"
    WORKING  = "working"
    REVIEW   = "review"
    END      = "end"


class TaskType(Enum):
    TRANSLATION     = "translation"
    POLISH          = "polish"
    PROOFREADING    = "proofreading"
    CHAPTER_SUMMARY = "chapter_summary"


def parse_phase(value) -> Optional[Phase]:
    """Normaliza un nombre de fase (case-insensitive). None si no es reconocible."""
    if isinstance(value, Phase):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Phase(value.strip().lower())
    except ValueError:
        return None


def parse_task_type(value) -> Optional[TaskType]:
    if isinstance(value, TaskType):
        return value
    try:
        return TaskType(value)
    except ValueError:
        return None


@dataclass
class Task:
    """
    Tarea de IA activa tal como la guarda el registro.
    type es str y no TaskType: el registro puede contener tipos que
    este protocolo no conoce (explain, term_translation...).
    """
    id:             str
    type:           str
    workflow_phase: Optional[Phase] = None
    book_id:        Optional[str]   = None
    target_id:      Optional[str]   = None
    target_type:    Optional[str]   = None
    mirror_status:  Optional[str]   = None


@dataclass
class ChunkBoundaries:
    """
    Párrafos que puede tocar una sub-tarea de traducción.
    paragraph_ids conserva el orden del capítulo; allowed_paragraph_ids
    es el mismo conjunto para búsquedas O(1).
    """
    allowed_paragraph_ids: set[str]
    paragraph_ids:         list[str]
    first_paragraph_id:    str = ""
    last_paragraph_id:     str = ""

    @classmethod
    def from_ids(cls, paragraph_ids: list[str]) -> "ChunkBoundaries":
        return cls(
            allowed_paragraph_ids = set(paragraph_ids),
            paragraph_ids         = list(paragraph_ids),
            first_paragraph_id    = paragraph_ids[0] if paragraph_ids else "",
            last_paragraph_id     = paragraph_ids[-1] if paragraph_ids else "",
        )


@dataclass
class StreamChunk:
    text:              str           = ""
    done:              bool          = False
    reasoning_content: Optional[str] = None


@dataclass
class ActionInfo:
    """Registro que reciben los consumidores de on_action (feed de actividad)."""
    type:   str
    entity: str
    data:   dict[str, Any] = field(default_factory=dict)
