# tests/tools/test_task_status.py
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from tenflow.tools.base import ToolContext
from tenflow.tools.task_status import update_task_status
from tenflow.workflow.models import Phase, Task
from tenflow.workflow.transitions import INITIAL_LABEL


def call(context, status, **extra):
    return asyncio.run(update_task_status({"status": status, **extra}, context))


# ------------------------------------------------------------------
# Orden de validación
# ------------------------------------------------------------------

class TestValidaciones:

    def test_sin_registro(self):
        result = call(ToolContext(task_id="t1"), "planning")
        assert result == {"success": False, "error": "Registro de tareas no inicializado"}

    def test_sin_task_id(self, registry):
        result = call(ToolContext(registry=registry), "planning")
        assert "task_id" in result["error"]

    def test_tarea_inexistente(self, registry):
        result = call(ToolContext(task_id="no-existe", registry=registry), "planning")
        assert not result["success"]
        assert "no-existe" in result["error"]

    @pytest.mark.parametrize("status", ["", "done", None])
    def test_status_no_reconocido(self, make_context, status):
        result = call(make_context(phase=None), status)
        assert not result["success"]
        assert "planning, working, review, end" in result["error"]

    def test_status_se_normaliza(self, make_context, registry):
        context = make_context(phase=None)
        result  = call(context, "  PLANNING ")
        assert result["success"]
        assert registry.find(context.task_id).workflow_phase is Phase.PLANNING

    def test_tipo_de_tarea_desconocido(self, make_context):
        result = call(make_context(task_type="explain", phase=None), "planning")
        assert result["error"] == "Tipo de tarea desconocido: explain"

    def test_el_status_se_valida_antes_que_el_tipo(self, make_context):
        result = call(make_context(task_type="explain", phase=None), "bogus")
        assert "Valor de estado inválido" in result["error"]


# ------------------------------------------------------------------
# Transiciones
# ------------------------------------------------------------------

class TestTransiciones:

    def test_escenario_planning_review_working(self, make_context):
        context = make_context(phase=Phase.PLANNING)

        result = call(context, "review")
        assert not result["success"]
        assert "planning → review" in result["error"]

        assert call(context, "working")["success"]
        assert call(context, "review")["success"]

    def test_transicion_ilegal_falla_siempre_igual(self, make_context, registry):
        context = make_context(task_type="polish", phase=Phase.WORKING)
        first  = call(context, "review")
        second = call(context, "review")
        assert first == second
        assert not first["success"]
        assert registry.find(context.task_id).workflow_phase is Phase.WORKING

    def test_primera_transicion_debe_ser_planning(self, make_context):
        result = call(make_context(phase=None), "working")
        assert f"{INITIAL_LABEL} → working" in result["error"]

    def test_end_es_terminal(self, make_context):
        context = make_context(task_type="proofreading", phase=Phase.END)
        for status in ["planning", "working", "review"]:
            assert not call(context, status)["success"]

    def test_recorrido_completo_de_traduccion(self, make_context, registry):
        context = make_context(phase=None)
        for status in ["planning", "working", "review", "working", "review", "end"]:
            result = call(context, status)
            assert result["success"], result
        assert registry.find(context.task_id).workflow_phase is Phase.END

    def test_resultado_exitoso(self, make_context):
        result = call(make_context(phase=Phase.PLANNING), "working", reason="plan listo")
        assert result["success"]
        assert result["new_status"] == "working"
        assert "planning → working" in result["message"]


# ------------------------------------------------------------------
# Efectos
# ------------------------------------------------------------------

class TestEfectos:

    def test_end_fija_mirror_status(self, make_context, registry):
        context = make_context(task_type="polish", phase=Phase.WORKING)
        call(context, "end")
        task = registry.find(context.task_id)
        assert task.workflow_phase is Phase.END
        assert task.mirror_status == "end"

    def test_otras_fases_no_tocan_mirror_status(self, make_context, registry):
        context = make_context(phase=Phase.PLANNING)
        call(context, "working")
        assert registry.find(context.task_id).mirror_status is None

    def test_notifica_on_action(self, make_context):
        actions = []
        context = make_context(phase=None, on_action=actions.append)
        call(context, "planning")

        assert len(actions) == 1
        assert actions[0].type == "update"
        assert actions[0].entity == "task"
        assert actions[0].data == {"id": context.task_id, "label": f"{INITIAL_LABEL} → planning"}

    def test_fallo_de_on_action_no_invalida_el_cambio(self, make_context):
        on_action = MagicMock(side_effect=RuntimeError("ui caída"))
        result = call(make_context(phase=None, on_action=on_action), "planning")
        assert result["success"]

    def test_error_del_registro_se_reporta(self):
        registry = MagicMock()
        registry.find.return_value = Task(id="t1", type="translation", workflow_phase=Phase.PLANNING)
        registry.update = AsyncMock(side_effect=RuntimeError("db bloqueada"))

        result = call(ToolContext(task_id="t1", registry=registry), "working")
        assert not result["success"]
        assert "db bloqueada" in result["error"]

    def test_update_recibe_fase_y_mirror_en_una_sola_llamada(self):
        registry = MagicMock()
        registry.find.return_value = Task(id="t1", type="chapter_summary", workflow_phase=Phase.WORKING)
        registry.update = AsyncMock()

        call(ToolContext(task_id="t1", registry=registry), "end")
        registry.update.assert_awaited_once_with(
            "t1", {"workflow_phase": Phase.END, "mirror_status": "end"}
        )
