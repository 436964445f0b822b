# tools/arguments.py
import json
import re
import logging
from typing import Optional

logger = logging.getLogger(__name__)

# Captura JSON dentro de bloques ```json ... ``` o ``` ... ```
_MARKDOWN_JSON_RE = re.compile(
    r"```(?:json)?\s*(\{.*\})\s*```",
    re.DOTALL,
)

# Captura el primer objeto JSON que aparezca en el texto
_BARE_JSON_RE = re.compile(r"\{.*\}", re.DOTALL)


class ToolArgumentsError(ValueError):
    """Los argumentos de la llamada no se pueden interpretar como un objeto."""
    pass


def parse_tool_arguments(raw, tool_name: str) -> dict:
    """
    Interpreta los argumentos de una tool call con degradación progresiva.

    Estrategia:
    1. dict ya decodificado (o None → {})
    2. JSON directo (el camino feliz)
    3. JSON dentro de bloque markdown
    4. Primer objeto JSON en el texto libre

    Si nada funciona lanza ToolArgumentsError: a diferencia de una traducción,
    unos argumentos inventados podrían escribir datos incorrectos.
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str):
        raise ToolArgumentsError(
            f"Argumentos de {tool_name} con tipo no soportado: {type(raw).__name__}"
        )

    text = raw.strip()
    if not text:
        return {}

    # Intento 1: JSON directo
    result = _try_parse(text)
    if result is not None:
        return result

    # Intento 2: dentro de bloque markdown
    match = _MARKDOWN_JSON_RE.search(text)
    if match:
        result = _try_parse(match.group(1))
        if result is not None:
            logger.warning(
                "Argumentos de %s envueltos en markdown, considera reforzar el prompt",
                tool_name,
            )
            return result

    # Intento 3: buscar cualquier objeto JSON en el texto
    match = _BARE_JSON_RE.search(text)
    if match:
        result = _try_parse(match.group(0))
        if result is not None:
            logger.warning("Argumentos de %s con texto extra alrededor", tool_name)
            return result

    raise ToolArgumentsError(
        f"Los argumentos de {tool_name} no son un objeto JSON válido: {_preview(text)}"
    )


def _try_parse(text: str) -> Optional[dict]:
    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except (json.JSONDecodeError, ValueError):
        pass
    return None


def _preview(text: str, limit: int = 80) -> str:
    return text if len(text) <= limit else text[:limit] + "…"
