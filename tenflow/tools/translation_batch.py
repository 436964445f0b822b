# tools/translation_batch.py
import logging
import math
import time
from dataclasses import dataclass
from typing import Optional

from tenflow.config import DEFAULT_BATCH_TOLERANCE, DEFAULT_MAX_BATCH_SIZE
from tenflow.storage.models import Paragraph, Translation, new_id
from tenflow.tools.base import (
    ToolContext, ToolDefinition, fail, notify, ok, resolve_working_task,
)
from tenflow.workflow.models import ActionInfo, TaskType

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = DEFAULT_MAX_BATCH_SIZE

# Tipos de tarea que producen texto por párrafo
_BATCH_TASK_TYPES = {
    TaskType.TRANSLATION.value,
    TaskType.POLISH.value,
    TaskType.PROOFREADING.value,
}

_CHAPTER_TITLE_MODEL_ID = "chapter_title_translation"


# ------------------------------------------------------------------
# Capacidad del lote
# ------------------------------------------------------------------

@dataclass(frozen=True)
class BatchCapacity:
    hard_max:    int
    double_mode: bool


def calculate_allowed_batch_size(
    chunk_total:     Optional[int] = None,
    submitted_count: Optional[int] = None,
    max_batch:       int           = MAX_BATCH_SIZE,
    tolerance:       float         = DEFAULT_BATCH_TOLERANCE,
) -> BatchCapacity:
    """
    Límite duro de párrafos para el próximo lote.

    Normalmente es max_batch con un margen de tolerancia (×1.1). Cuando lo que
    queda del chunk cabe en dos lotes normales se permite un único lote doble,
    para no dejar un lote final diminuto.
    """
    # round() evita que 100 * 1.1 = 110.00000000000001 suba a 111
    tolerant_max = math.ceil(round(max_batch * tolerance, 9))

    if not chunk_total:
        return BatchCapacity(hard_max=tolerant_max, double_mode=False)

    remaining = chunk_total - (submitted_count or 0)
    if remaining > 2 * max_batch:
        return BatchCapacity(hard_max=tolerant_max, double_mode=False)

    return BatchCapacity(hard_max=2 * max_batch, double_mode=True)


# ------------------------------------------------------------------
# add_translation_batch
# ------------------------------------------------------------------

async def add_translation_batch(args: dict, context: ToolContext) -> dict:
    """
    Guarda un lote de párrafos traducidos/pulidos/corregidos.

    Cada párrafo recibe una versión nueva que pasa a ser la seleccionada; las
    versiones anteriores se conservan intactas. Todas las validaciones se hacen
    antes de tocar el almacén: o se guarda el lote completo o nada.
    """
    paragraphs = args.get("paragraphs") if isinstance(args, dict) else None

    # ── 1-4: registro, tarea y fase ───────────────────────────────
    task, error = resolve_working_task(context)
    if error:
        return fail(error)

    # ── 5-6: libro y tipo de tarea ────────────────────────────────
    if not context.book_id:
        return fail("No se proporcionó el ID del libro (book_id)")

    if task.type not in _BATCH_TASK_TYPES:
        return fail(
            f"Tipo de tarea no admite envío por lotes: {task.type}. "
            f"Tipos admitidos: {', '.join(sorted(_BATCH_TASK_TYPES))}"
        )

    # ── 7-8: forma y tamaño del lote ──────────────────────────────
    if not isinstance(paragraphs, list) or not paragraphs:
        return fail("La lista de párrafos (paragraphs) no puede estar vacía")

    boundaries = context.chunk_boundaries
    capacity = calculate_allowed_batch_size(
        chunk_total     = len(boundaries.paragraph_ids) if boundaries else None,
        submitted_count = len(context.processed_paragraph_ids),
        max_batch       = context.max_batch_size,
        tolerance       = context.batch_tolerance,
    )
    count = len(paragraphs)
    if count > capacity.hard_max:
        return fail(
            f"Un lote admite como máximo {capacity.hard_max} párrafos; "
            f"el lote actual contiene {count}. Divídelo en lotes de {context.max_batch_size}"
        )

    warning: Optional[str] = None
    if count > context.max_batch_size and not capacity.double_mode:
        warning = (
            f"El lote contiene {count} párrafos, más que el tamaño recomendado de "
            f"{context.max_batch_size}; se acepta dentro del margen de tolerancia "
            f"({capacity.hard_max})"
        )

    # ── 9-11: identificadores y textos ────────────────────────────
    items, error = _normalize_items(paragraphs)
    if error:
        return fail(error)

    paragraph_ids = [pid for pid, _ in items]

    # ── 12: duplicados ────────────────────────────────────────────
    duplicates = _find_duplicates(paragraph_ids)
    if duplicates:
        return fail(f"El lote contiene IDs de párrafo duplicados: {', '.join(duplicates)}")

    # ── 13: rango del chunk ───────────────────────────────────────
    if boundaries and boundaries.allowed_paragraph_ids:
        outside = [pid for pid in paragraph_ids if pid not in boundaries.allowed_paragraph_ids]
        if outside:
            return fail(
                f"Los siguientes párrafos no están en el rango de la tarea actual: "
                f"{', '.join(outside)}"
            )

    # ── 14: modelo ────────────────────────────────────────────────
    if not context.ai_model_id:
        return fail("No se proporcionó el ID del modelo de IA (ai_model_id)")

    # ── 15-18: libro, estructura, capítulo y párrafos ─────────────
    store = context.document_store
    if store is None:
        return fail("Almacén de documentos no inicializado")

    try:
        index, error = _load_target_paragraphs(store, context.book_id, task)
    except Exception as e:
        logger.error("Error cargando el libro %s: %s", context.book_id, e)
        return fail(f"Error al cargar el contenido del libro: {e}")
    if error:
        return fail(error)

    missing = [pid for pid in paragraph_ids if pid not in index]
    if missing:
        return fail(f"No se encontraron los siguientes párrafos: {', '.join(missing)}")

    # ── Commit ────────────────────────────────────────────────────
    touched: list[Paragraph] = []
    for pid, text in items:
        paragraph = index[pid]
        version   = Translation(id=new_id(), translation=text, ai_model_id=context.ai_model_id)
        paragraph.translations.append(version)
        paragraph.selected_translation_id = version.id
        touched.append(paragraph)

    try:
        await store.save_paragraphs(touched)
    except Exception as e:
        logger.error("No se pudo guardar el lote de la tarea %s: %s", task.id, e)
        return fail(f"Error al guardar el lote: {e}")

    context.processed_paragraph_ids.update(paragraph_ids)

    remaining: list[str] = []
    if boundaries:
        remaining = [
            pid for pid in boundaries.paragraph_ids
            if pid not in context.processed_paragraph_ids
        ]

    logger.info(
        "Tarea %s: lote de %d párrafos guardado (%d restantes en el chunk)",
        task.id, count, len(remaining),
    )

    notify(context, ActionInfo(
        type   = "update",
        entity = "translation",
        data   = {
            "paragraph_id":    paragraph_ids[0],
            "translation_id":  f"batch_{int(time.time() * 1000)}",
            "old_translation": "",
            "new_translation": f"Lote de {count} párrafos",
        },
    ))

    result = ok(
        message                 = f"Se procesaron {count} párrafos",
        task_type               = task.type,
        processed_count         = count,
        processed_paragraph_ids = paragraph_ids,
        remaining_count         = len(remaining),
        remaining_paragraph_ids = remaining,
    )
    if warning:
        result["warning"] = warning
    return result


def _normalize_items(paragraphs: list) -> tuple[list[tuple[str, str]], Optional[str]]:
    """
    Valida cada elemento y devuelve [(paragraph_id, texto)].
    El índice posicional está obsoleto: un elemento que solo trae index
    invalida el lote completo. Con ambos, manda paragraph_id.
    """
    # Primera pasada: index obsoleto (antes que cualquier otro error de forma)
    for position, item in enumerate(paragraphs, start=1):
        if isinstance(item, dict) and not _has_paragraph_id(item) and "index" in item:
            return [], (
                f"El elemento {position} del lote usa solo 'index', que está obsoleto. "
                f"Identifica cada párrafo con paragraph_id (se rechaza el lote completo)"
            )

    items: list[tuple[str, str]] = []
    for position, item in enumerate(paragraphs, start=1):
        if not isinstance(item, dict) or not _has_paragraph_id(item):
            return [], f"Al elemento {position} del lote le falta paragraph_id"
        items.append((item["paragraph_id"].strip(), item.get("translated_text")))

    for position, (pid, text) in enumerate(items, start=1):
        if not isinstance(text, str) or not text.strip():
            return [], (
                f"Al elemento {position} del lote ({pid}) le falta el texto traducido "
                f"(translated_text)"
            )

    return items, None


def _has_paragraph_id(item: dict) -> bool:
    value = item.get("paragraph_id")
    return isinstance(value, str) and bool(value.strip())


def _find_duplicates(paragraph_ids: list[str]) -> list[str]:
    seen:       set[str]  = set()
    duplicates: list[str] = []
    for pid in paragraph_ids:
        if pid in seen and pid not in duplicates:
            duplicates.append(pid)
        seen.add(pid)
    return duplicates


def _load_target_paragraphs(store, book_id: str, task) -> tuple[dict[str, Paragraph], Optional[str]]:
    """
    Carga solo lo necesario: el capítulo objetivo si la tarea lo indica,
    todo el libro si no. Devuelve ({paragraph_id: Paragraph}, error).
    """
    book = store.load_book(book_id)
    if book is None:
        return {}, f"El libro no existe: {book_id}"

    if not book.volumes:
        return {}, f"El libro {book_id} no tiene datos de capítulos (volúmenes)"

    if task.target_type == "chapter" and task.target_id:
        chapter_id = task.target_id
        content = store.load_chapter_content(chapter_id) if book.find_chapter(chapter_id) else None
        if content is None:
            return {}, f"El capítulo no existe: {chapter_id}"
        return {p.id: p for p in content}, None

    index: dict[str, Paragraph] = {}
    for content in store.load_book_content(book_id).values():
        for paragraph in content:
            index[paragraph.id] = paragraph
    return index, None


ADD_TRANSLATION_BATCH = ToolDefinition(
    name        = "add_translation_batch",
    description = (
        "Envía en un solo lote el resultado de varios párrafos (traducción, pulido o "
        "corrección). Solo se puede usar en la fase working. El lote es atómico: o se "
        "guardan todos los párrafos o ninguno. Identifica cada párrafo con el "
        "paragraph_id que aparece como [ID: xxx]; no uses index."
    ),
    parameters  = {
        "type": "object",
        "properties": {
            "paragraphs": {
                "type": "array",
                "description": f"Párrafos procesados, como máximo {MAX_BATCH_SIZE} por lote",
                "items": {
                    "type": "object",
                    "properties": {
                        "paragraph_id": {
                            "type": "string",
                            "description": "ID único del párrafo",
                        },
                        "original_text": {
                            "type": "string",
                            "description": "Texto original (opcional, solo para confirmar)",
                        },
                        "translated_text": {
                            "type": "string",
                            "description": "Texto traducido/pulido/corregido",
                        },
                    },
                    "required": ["paragraph_id", "translated_text"],
                },
            },
        },
        "required": ["paragraphs"],
    },
    handler     = add_translation_batch,
)


# ------------------------------------------------------------------
# update_chapter_title
# ------------------------------------------------------------------

async def update_chapter_title(args: dict, context: ToolContext) -> dict:
    """Guarda la traducción del título de un capítulo. Solo en fase working."""
    args = args if isinstance(args, dict) else {}
    chapter_id       = args.get("chapter_id")
    translated_title = args.get("translated_title")
    original_title   = args.get("original_title") or ""

    task, error = resolve_working_task(context)
    if error:
        return fail(error)

    if not isinstance(chapter_id, str) or not chapter_id.strip():
        return fail("Falta el ID del capítulo (chapter_id)")

    if not isinstance(translated_title, str) or not translated_title.strip():
        return fail("Falta la traducción del título (translated_title)")

    if not context.book_id:
        return fail("No se proporcionó el ID del libro (book_id)")

    store = context.document_store
    if store is None:
        return fail("Almacén de documentos no inicializado")

    chapter_id = chapter_id.strip()
    try:
        book = store.load_book(context.book_id)
    except Exception as e:
        logger.error("Error cargando el libro %s: %s", context.book_id, e)
        return fail(f"Error al cargar el libro: {e}")

    if book is None:
        return fail(f"El libro no existe: {context.book_id}")

    chapter = book.find_chapter(chapter_id)
    if chapter is None:
        return fail(f"El capítulo no existe: {chapter_id}. Comprueba que el ID sea correcto")

    # El título no guarda historial: se reutiliza el id de la versión actual
    translation = Translation(
        id          = chapter.title_translation.id if chapter.title_translation else new_id(),
        translation = translated_title.strip(),
        ai_model_id = context.ai_model_id or _CHAPTER_TITLE_MODEL_ID,
    )

    try:
        await store.save_chapter_title(chapter_id, translation)
    except Exception as e:
        logger.error("No se pudo guardar el título del capítulo %s: %s", chapter_id, e)
        return fail(f"Error al guardar la traducción del título: {e}")

    notify(context, ActionInfo(
        type   = "update",
        entity = "chapter",
        data   = {
            "chapter_id": chapter_id,
            "old_title":  original_title,
            "new_title":  translation.translation,
        },
    ))

    return ok(
        message          = f"Título del capítulo actualizado: {translation.translation}",
        chapter_id       = chapter_id,
        translated_title = translation.translation,
    )


UPDATE_CHAPTER_TITLE = ToolDefinition(
    name        = "update_chapter_title",
    description = (
        "Actualiza la traducción del título de un capítulo. "
        "Solo se puede usar en la fase working."
    ),
    parameters  = {
        "type": "object",
        "properties": {
            "chapter_id": {
                "type": "string",
                "description": "ID único del capítulo",
            },
            "original_title": {
                "type": "string",
                "description": "Título original (opcional, solo para confirmar)",
            },
            "translated_title": {
                "type": "string",
                "description": "Título traducido",
            },
        },
        "required": ["chapter_id", "translated_title"],
    },
    handler     = update_chapter_title,
)
