# tests/test_factory.py
import asyncio

import pytest

from tenflow.factory import build_workspace
from tenflow.tools.registry import execute_tool_call
from tenflow.workflow.models import Phase, StreamChunk


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.delenv("TENFLOW_CONFIG_PATH", raising=False)
    config = tmp_path / "config.yaml"
    config.write_text("max_batch_size: 5\n", encoding="utf-8")
    ws = build_workspace(db_path=str(tmp_path / "tenflow.db"), config_path=str(config))
    yield ws
    ws.close()


class TestWorkspace:

    def test_tool_context_usa_config_y_libro_de_la_tarea(self, workspace):
        task_id = workspace.registry.create_task("translation", book_id="b1")
        context = workspace.tool_context(task_id, ai_model_id="m")
        assert context.book_id == "b1"
        assert context.max_batch_size == 5
        assert context.document_store is workspace.store

    def test_flujo_completo(self, workspace):
        store = workspace.store
        book_id   = store.create_book("Libro", book_id="b1")
        volume_id = store.add_volume(book_id, "V1")
        store.add_chapter(volume_id, "C1", chapter_id="c1")
        store.add_paragraph("c1", "Hello.", paragraph_id="p1")

        task_id = workspace.registry.create_task("translation", book_id=book_id)
        context = workspace.tool_context(task_id, ai_model_id="m")

        for status in ["planning", "working"]:
            asyncio.run(execute_tool_call("update_task_status", {"status": status}, context))

        validator = workspace.stream_validator(task_id)
        assert validator.current_phase is Phase.WORKING
        validator(StreamChunk(text='{"p": [{"paragraph_id": "p1"}]}'))
        validator(StreamChunk(done=True))

        raw = asyncio.run(execute_tool_call(
            "add_translation_batch",
            {"paragraphs": [{"paragraph_id": "p1", "translated_text": "Hola."}]},
            context,
        ))
        assert '"success": true' in raw
        assert store.load_chapter_content("c1")[0].selected_translation.translation == "Hola."
        assert workspace.registry.get_output(task_id).startswith('{"p"')
