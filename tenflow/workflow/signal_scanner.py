# workflow/signal_scanner.py
"""
Escáner tolerante de señales de fase y de contenido en texto parcial.

El texto que llega del modelo durante el streaming no es JSON válido en casi
ningún punto intermedio: llaves sin cerrar, comillas simples o dobles (incluso
mezcladas), claves en mayúsculas. En lugar de "parsear y validar" se re-ejecuta
scan_signal() sobre el buffer creciente. Es una función pura: no guarda estado,
así que se puede llamar de forma especulativa tantas veces como se quiera.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

# Los huecos de espacio y el valor están acotados para que una señal nunca
# ocupe más de _MAX_SIGNAL_SPAN caracteres. Eso permite descartar el prefijo
# del buffer que ya no puede contener el comienzo de una señal.
_GAP = r"\s{0,16}"

_PHASE_SIGNAL_RE = re.compile(
    r"""['"](?P<key>s|status)['"]""" + _GAP + ":" + _GAP +
    r"""['"](?P<value>[^'"\r\n]{1,32})['"]""",
    re.IGNORECASE,
)

# Solo hace falta ver el inicio del valor (lista, objeto o string)
_CONTENT_SIGNAL_RE = re.compile(
    r"""['"](?P<key>p|paragraphs|tt|titleTranslation)['"]""" + _GAP + ":" + _GAP +
    r"(?=\S)",
    re.IGNORECASE,
)

_MAX_SIGNAL_SPAN = 96


class SignalKind(Enum):
    PHASE   = "phase"
    CONTENT = "content"


@dataclass(frozen=True)
class Signal:
    kind:  SignalKind
    key:   str
    value: Optional[str] = None   # solo para PHASE, en minúsculas


@dataclass(frozen=True)
class ScanResult:
    """
    signal:   la primera señal completa encontrada, o None.
    consumed: cuántos caracteres del inicio del buffer puede descartar el caller.
              Con señal: hasta el final de la señal. Sin señal: todo lo que
              queda demasiado lejos del final como para iniciar una.
    """
    signal:   Optional[Signal]
    consumed: int


def scan_signal(buffer: str) -> ScanResult:
    """
    Busca la primera señal completa en buffer.

    Una clave o valor partido entre dos chunks no produce match hasta que el
    siguiente chunk lo completa: el regex exige la comilla de cierre del valor
    de fase y el primer carácter del valor de contenido.
    """
    phase_match   = _PHASE_SIGNAL_RE.search(buffer)
    content_match = _CONTENT_SIGNAL_RE.search(buffer)

    match = _earliest(phase_match, content_match)
    if match is None:
        return ScanResult(signal=None, consumed=max(0, len(buffer) - _MAX_SIGNAL_SPAN))

    if match is phase_match:
        signal = Signal(
            kind  = SignalKind.PHASE,
            key   = match.group("key"),
            value = match.group("value").strip().lower(),
        )
    else:
        signal = Signal(kind=SignalKind.CONTENT, key=match.group("key"))

    return ScanResult(signal=signal, consumed=match.end())


def scan_all(buffer: str) -> tuple[list[Signal], str]:
    """
    Extrae todas las señales completas de buffer, en orden de aparición.
    Devuelve (señales, resto) donde resto es lo que hay que conservar.
    """
    signals: list[Signal] = []
    while True:
        result = scan_signal(buffer)
        buffer = buffer[result.consumed:]
        if result.signal is None:
            return signals, buffer
        signals.append(result.signal)


def _earliest(a: Optional[re.Match], b: Optional[re.Match]) -> Optional[re.Match]:
    if a is None:
        return b
    if b is None:
        return a
    return a if a.start() <= b.start() else b
