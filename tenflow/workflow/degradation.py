# workflow/degradation.py
"""
Detección de degradación del modelo: salida que se queda repitiendo el mismo
carácter o un patrón corto ("ababab..."). Si el texto original también tiene
repeticiones parecidas (onomatopeyas, separadores) no se considera degradación.
"""
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

_MIN_PATTERN_LENGTH = 2
_MAX_PATTERN_LENGTH = 5

# Si el bloque repetido más largo del original alcanza esta fracción del
# bloque detectado, se asume que la repetición es legítima
_ORIGINAL_SIMILARITY_RATIO = 0.75


@dataclass
class DegradationConfig:
    repeat_threshold:  int = 80    # repeticiones seguidas de un mismo carácter
    check_window:      int = 100   # solo se miran los últimos N caracteres
    pattern_threshold: int = 30    # repeticiones seguidas de un patrón de 2-5 caracteres


def detect_repetition(
    text:          str,
    original_text: Optional[str]               = None,
    config:        Optional[DegradationConfig] = None,
    log_label:     str                         = "degradation",
) -> bool:
    """True si los últimos check_window caracteres de text muestran degradación."""
    cfg = config or DegradationConfig()

    if not text or len(text) < cfg.check_window:
        return False

    recent = text[-cfg.check_window:]

    # ── 1. Un mismo carácter repetido ─────────────────────────────
    for char, run in _runs(recent):
        if run < cfg.repeat_threshold:
            continue
        if original_text and _max_char_run(original_text, char) >= cfg.repeat_threshold * 0.5:
            continue
        logger.warning(
            "[%s] Degradación: '%s' repetido %d veces en los últimos %d caracteres (umbral %d)",
            log_label, char, run, cfg.check_window, cfg.repeat_threshold,
        )
        return True

    # ── 2. Patrón corto repetido al final ─────────────────────────
    original_block: Optional[int] = None
    for length in range(_MIN_PATTERN_LENGTH, _MAX_PATTERN_LENGTH + 1):
        if len(recent) < length * 10:
            continue

        count = _trailing_pattern_count(recent, length)
        if count < cfg.pattern_threshold:
            continue

        if original_text:
            if original_block is None:
                original_block = _max_pattern_block(original_text, cfg.check_window)
            if original_block and original_block >= count * length * _ORIGINAL_SIMILARITY_RATIO:
                continue

        logger.warning(
            "[%s] Degradación: patrón '%s' repetido %d veces (umbral %d)",
            log_label, recent[-length:], count, cfg.pattern_threshold,
        )
        return True

    return False


def _runs(text: str):
    """Genera (carácter, longitud) de cada racha de caracteres iguales."""
    start = 0
    for i in range(1, len(text) + 1):
        if i == len(text) or text[i] != text[start]:
            yield text[start], i - start
            start = i


def _max_char_run(text: str, char: str) -> int:
    return max((run for c, run in _runs(text) if c == char), default=0)


def _trailing_pattern_count(text: str, length: int) -> int:
    """Cuántas veces se repite, hacia atrás y sin huecos, el patrón final de text."""
    pattern = text[-length:]
    count = 1
    pos = len(text) - 2 * length
    while pos >= 0 and text[pos:pos + length] == pattern:
        count += 1
        pos -= length
    return count


def _max_pattern_block(text: str, window: int) -> int:
    """Longitud del bloque de patrón repetido más largo en los últimos window caracteres."""
    segment = text[-min(window, len(text)):]
    best = 0

    for length in range(_MIN_PATTERN_LENGTH, _MAX_PATTERN_LENGTH + 1):
        for start in range(0, len(segment) - 2 * length + 1):
            pattern = segment[start:start + length]
            count = 1
            cursor = start + length
            while segment[cursor:cursor + length] == pattern:
                count += 1
                cursor += length
            if count > 1:
                best = max(best, count * length)

    return best
