# workflow/stream_validator.py
import asyncio
import inspect
import logging
from dataclasses import dataclass, replace
from typing import Any, AsyncIterable, Callable, Optional

from tenflow.workflow.degradation import DegradationConfig, detect_repetition
from tenflow.workflow.models import Phase, StreamChunk, parse_phase
from tenflow.workflow.signal_scanner import Signal, SignalKind, scan_all
from tenflow.workflow.transitions import (
    VALID_PHASES,
    check_transition,
    phase_label,
    transition_label,
    workflow_text,
)

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Errores del stream: a diferencia de las herramientas, aquí se lanza
# ------------------------------------------------------------------

class StreamValidationError(Exception):
    """El stream contiene algo ilegal: hay que dejar de consumirlo."""
    pass


class ForbiddenTransitionError(StreamValidationError):
    """El modelo anunció un salto de fase que la tabla no permite."""
    pass


class PhaseContentMismatchError(StreamValidationError):
    """El modelo emitió contenido en una fase que no admite contenido."""
    pass


class InvalidPhaseValueError(StreamValidationError):
    pass


class DegradationDetectedError(StreamValidationError):
    pass


# ------------------------------------------------------------------
# Configuración y estado
# ------------------------------------------------------------------

@dataclass
class StreamValidatorConfig:
    """
    current_phase y task_type se toman del registro si no se indican.
    None en current_phase equivale a la fase ausente (tarea sin iniciar).
    abort_signal: cualquier objeto con set() (threading.Event, asyncio.Event).
    """
    task_id:           Optional[str]               = None
    registry:          Any                         = None
    task_type:         Optional[str]               = None
    current_phase:     Optional[Phase]             = None
    abort_signal:      Any                         = None
    original_text:     Optional[str]               = None
    log_label:         str                         = "stream"
    degradation:       Optional[DegradationConfig] = None
    check_degradation: bool                        = True


@dataclass
class StreamState:
    current_phase:  Optional[Phase]
    task_type:      Optional[str]
    pending_buffer: str = ""


class StreamValidator:
    """
    Callback por chunk que valida la salida del modelo mientras llega.

    La validación es síncrona y lanza StreamValidationError directamente desde
    __call__. El registro de la salida en el Task Registry es un efecto lateral
    que se programa en el event loop y no se espera: el transporte sigue
    mandando chunks sin importar si el log ya terminó de escribirse.

    Una señal se juzga cuando llega el chunk siguiente (o done): el texto que
    la produjo ya está cerrado y no puede formar parte de otra señal más larga.

    El validador nunca escribe la fase en el registro. Solo avanza su copia
    local; el registro se actualiza exclusivamente vía update_task_status.
    """

    def __init__(self, config: StreamValidatorConfig):
        self._config  = config
        self.state    = StreamState(
            current_phase = config.current_phase,
            task_type     = config.task_type,
        )
        self._degradation = config.degradation or DegradationConfig()
        self._recent_text = ""
        self._done        = False
        self._error: Optional[StreamValidationError] = None
        self._pending: set[asyncio.Task] = set()

    @property
    def current_phase(self) -> Optional[Phase]:
        return self.state.current_phase

    @property
    def done(self) -> bool:
        return self._done

    def __call__(self, chunk: StreamChunk) -> None:
        if self._error is not None:
            # Stream ya invalidado: cualquier chunk posterior es basura
            raise self._error

        if self._done:
            logger.debug("[%s] Chunk recibido después de done, ignorado", self._config.log_label)
            return

        if chunk.reasoning_content:
            self._record("append_thinking", chunk.reasoning_content)

        if chunk.text:
            self._record("append_output", chunk.text)
            self._check_degradation(chunk.text)

            # Lo anterior ya no puede cambiar: se juzga antes de añadir el chunk nuevo
            self._settle()
            self.state.pending_buffer += chunk.text

        if chunk.done:
            self._settle()
            self._done = True
            logger.debug(
                "[%s] Stream validado, fase final: %s",
                self._config.log_label,
                self.state.current_phase.value if self.state.current_phase else "absent",
            )

    async def drain(self) -> None:
        """Espera a que termine el registro pendiente (útil en tests y al cerrar)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Validación
    # ------------------------------------------------------------------

    def _settle(self) -> None:
        signals, rest = scan_all(self.state.pending_buffer)
        self.state.pending_buffer = rest
        for signal in signals:
            self._apply(signal)

    def _apply(self, signal: Signal) -> None:
        if signal.kind is SignalKind.PHASE:
            self._apply_phase(signal)
        else:
            self._apply_content(signal)

    def _apply_phase(self, signal: Signal) -> None:
        new_phase = parse_phase(signal.value)
        if new_phase is None:
            self._fail(InvalidPhaseValueError(
                f"[Aviso] Valor de estado inválido en la salida: {signal.value}. "
                f"Debe ser uno de: {', '.join(VALID_PHASES)}"
            ))

        current   = self.state.current_phase
        task_type = self.state.task_type

        # Repetir la fase actual es habitual (el modelo re-emite {"s": ...})
        if new_phase is current:
            return

        if task_type is None:
            logger.debug(
                "[%s] Sin tipo de tarea, transición %s no validada",
                self._config.log_label, transition_label(current, new_phase),
            )
            self.state.current_phase = new_phase
            return

        error = check_transition(task_type, current, new_phase)
        if error:
            self._fail(ForbiddenTransitionError(
                f"[Aviso] Transición de fase prohibida ({transition_label(current, new_phase)}): "
                f"intentaste pasar de \"{phase_label(current, task_type)}\" a "
                f"\"{phase_label(new_phase, task_type)}\". {error}. "
                f"Orden correcto: {workflow_text(task_type)}"
            ))

        logger.debug(
            "[%s] Fase avanzada en el stream: %s",
            self._config.log_label, transition_label(current, new_phase),
        )
        self.state.current_phase = new_phase

    def _apply_content(self, signal: Signal) -> None:
        # planning es una fase de razonamiento sin contenido para todos los tipos
        if self.state.current_phase is Phase.PLANNING:
            self._fail(PhaseContentMismatchError(
                f"Fase y contenido no coinciden: se emitió contenido ('{signal.key}') "
                f"en la fase planning. El contenido solo puede enviarse tras pasar a working"
            ))

    def _check_degradation(self, text: str) -> None:
        if not self._config.check_degradation:
            return

        window = self._degradation.check_window
        self._recent_text = (self._recent_text + text)[-window:]

        if detect_repetition(
            self._recent_text,
            self._config.original_text,
            self._degradation,
            log_label=self._config.log_label,
        ):
            self._fail(DegradationDetectedError(
                f"Degradación del modelo detectada: caracteres repetidos en la salida "
                f"({self._config.log_label})"
            ))

    def _fail(self, error: StreamValidationError) -> None:
        logger.warning("[%s] %s. Deteniendo el stream", self._config.log_label, error)
        self._error = error

        signal = self._config.abort_signal
        if signal is not None:
            signal.set()

        raise error

    # ------------------------------------------------------------------
    # Registro (fire-and-forget)
    # ------------------------------------------------------------------

    def _record(self, method_name: str, text: str) -> None:
        registry = self._config.registry
        task_id  = self._config.task_id
        if registry is None or not task_id:
            return

        method = getattr(registry, method_name, None)
        if method is None:
            return

        try:
            result = method(task_id, text)
        except Exception as e:
            logger.warning("No se pudo registrar %s de la tarea %s: %s", method_name, task_id, e)
            return
        if not inspect.isawaitable(result):
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Uso síncrono (CLI, scripts): no hay loop, se completa aquí mismo
            try:
                asyncio.run(_await(result))
            except Exception as e:
                logger.warning("No se pudo registrar %s de la tarea %s: %s", method_name, task_id, e)
            return

        task = loop.create_task(_await(result))
        self._pending.add(task)
        task.add_done_callback(self._on_record_done)

    def _on_record_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(
                "No se pudo registrar la salida de la tarea %s: %s",
                self._config.task_id, error,
            )


async def _await(awaitable):
    return await awaitable


# ------------------------------------------------------------------
# Construcción y consumo
# ------------------------------------------------------------------

def create_stream_validator(config: StreamValidatorConfig) -> StreamValidator:
    """
    Construye el validador para un intento de tarea.
    Completa task_type y current_phase con la foto del registro al inicio del stream.
    El config recibido no se modifica: puede reutilizarse en otro intento.
    """
    registry = config.registry
    if registry is not None and config.task_id:
        task = registry.find(config.task_id)
        if task is not None:
            config = replace(
                config,
                task_type     = config.task_type if config.task_type is not None else task.type,
                current_phase = (
                    config.current_phase if config.current_phase is not None
                    else task.workflow_phase
                ),
            )

    return StreamValidator(config)


async def consume_stream(
    chunks:    AsyncIterable[StreamChunk],
    validator: Callable[[StreamChunk], Any],
    cancel:    Optional[Callable[[], Any]] = None,
) -> str:
    """
    Consume el stream del modelo pasando cada chunk por el validador.
    Ante una violación cancela la petición en curso (cancel) y relanza:
    el intento es irrecuperable.
    Devuelve el texto completo si el stream termina sin violaciones.
    """
    parts: list[str] = []
    try:
        async for chunk in chunks:
            validator(chunk)
            if chunk.text:
                parts.append(chunk.text)
            if chunk.done:
                break
        # El transporte puede terminar sin un chunk done: se cierra aquí
        if not getattr(validator, "done", True):
            validator(StreamChunk(done=True))
    except StreamValidationError:
        if cancel is not None:
            result = cancel()
            if inspect.isawaitable(result):
                await result
        raise

    return "".join(parts)
