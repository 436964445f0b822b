# tests/tools/conftest.py
import asyncio

import pytest

from tenflow.storage.document_store import DocumentStore
from tenflow.storage.task_registry import TaskRegistry
from tenflow.tools.base import ToolContext
from tenflow.workflow.models import ChunkBoundaries, Phase


@pytest.fixture
def store():
    s = DocumentStore(db_path=":memory:")
    yield s
    s.close()


@pytest.fixture
def registry():
    r = TaskRegistry(db_path=":memory:")
    yield r
    r.close()


@pytest.fixture
def book(store):
    """
    Un libro con dos capítulos:
      cap-1: para1, para2, para3 (para1 ya tiene una traducción)
      cap-2: para-outside
    """
    book_id   = store.create_book("El nombre del viento", book_id="book-1")
    volume_id = store.add_volume(book_id, "Volumen 1")
    store.add_chapter(volume_id, "Capítulo 1", chapter_id="cap-1")
    store.add_chapter(volume_id, "Capítulo 2", chapter_id="cap-2")
    store.add_paragraph("cap-1", "The wind blew.", paragraph_id="para1",
                        translation="Sopló el viento.", ai_model_id="modelo-previo")
    store.add_paragraph("cap-1", "Silence.", paragraph_id="para2")
    store.add_paragraph("cap-1", "Night fell.", paragraph_id="para3")
    store.add_paragraph("cap-2", "Elsewhere.", paragraph_id="para-outside")
    return book_id


def set_phase(registry, task_id, phase):
    asyncio.run(registry.update(task_id, {"workflow_phase": phase}))


@pytest.fixture
def make_context(store, registry, book):
    """Crea una tarea en la fase indicada y devuelve su ToolContext."""
    def _make(
        task_type  = "translation",
        phase      = Phase.WORKING,
        boundaries = None,
        target_id  = None,
        **kwargs,
    ) -> ToolContext:
        task_id = registry.create_task(
            task_type,
            book_id     = book,
            target_id   = target_id,
            target_type = "chapter" if target_id else None,
        )
        if phase is not None:
            set_phase(registry, task_id, phase)
        options = dict(
            task_id          = task_id,
            registry         = registry,
            book_id          = book,
            document_store   = store,
            ai_model_id      = "modelo-x",
            chunk_boundaries = ChunkBoundaries.from_ids(boundaries) if boundaries else None,
        )
        options.update(kwargs)
        return ToolContext(**options)
    return _make
