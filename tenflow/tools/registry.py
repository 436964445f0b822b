# tools/registry.py
import json
import logging

from tenflow.tools.arguments import ToolArgumentsError, parse_tool_arguments
from tenflow.tools.base import ToolContext, ToolDefinition, fail
from tenflow.tools.task_status import UPDATE_TASK_STATUS
from tenflow.tools.translation_batch import ADD_TRANSLATION_BATCH, UPDATE_CHAPTER_TITLE

logger = logging.getLogger(__name__)

TOOLS: dict[str, ToolDefinition] = {
    tool.name: tool
    for tool in (UPDATE_TASK_STATUS, ADD_TRANSLATION_BATCH, UPDATE_CHAPTER_TITLE)
}


def tool_schemas() -> list[dict]:
    """Definiciones de todas las herramientas para enviarlas al modelo."""
    return [tool.schema() for tool in TOOLS.values()]


async def execute_tool_call(name: str, arguments, context: ToolContext) -> str:
    """
    Ejecuta una llamada a herramienta emitida por el modelo y devuelve el
    resultado serializado como JSON, listo para devolverlo como mensaje de tool.

    Nunca lanza: herramienta desconocida, argumentos ilegibles o un fallo
    inesperado del handler se devuelven como {success: false, error}.
    """
    tool = TOOLS.get(name)
    if tool is None:
        result = fail(f"Herramienta desconocida: {name}. Disponibles: {', '.join(TOOLS)}")
        return _dump(result)

    try:
        args = parse_tool_arguments(arguments, name)
    except ToolArgumentsError as e:
        logger.warning("Argumentos inválidos para %s: %s", name, e)
        return _dump(fail(str(e)))

    logger.debug("Ejecutando %s (tarea %s)", name, context.task_id)
    try:
        result = await tool.handler(args, context)
    except Exception as e:
        logger.exception("Error inesperado ejecutando %s", name)
        result = fail(f"Error al ejecutar la herramienta {name}: {e}")

    if not result.get("success"):
        logger.info("%s rechazada: %s", name, result.get("error"))
    return _dump(result)


def _dump(result: dict) -> str:
    return json.dumps(result, ensure_ascii=False)
