from tenflow.workflow.models import (
    ActionInfo,
    ChunkBoundaries,
    Phase,
    StreamChunk,
    Task,
    TaskType,
    parse_phase,
    parse_task_type,
)
from tenflow.workflow.transitions import (
    TRANSITION_TABLES,
    check_transition,
    is_valid_transition,
)
from tenflow.workflow.signal_scanner import ScanResult, Signal, SignalKind, scan_signal
from tenflow.workflow.stream_validator import (
    DegradationDetectedError,
    ForbiddenTransitionError,
    InvalidPhaseValueError,
    PhaseContentMismatchError,
    StreamValidationError,
    StreamValidator,
    StreamValidatorConfig,
    consume_stream,
    create_stream_validator,
)

__all__ = [
    "ActionInfo", "ChunkBoundaries", "Phase", "StreamChunk", "Task", "TaskType",
    "parse_phase", "parse_task_type",
    "TRANSITION_TABLES", "check_transition", "is_valid_transition",
    "ScanResult", "Signal", "SignalKind", "scan_signal",
    "StreamValidationError", "ForbiddenTransitionError", "PhaseContentMismatchError",
    "InvalidPhaseValueError", "DegradationDetectedError",
    "StreamValidator", "StreamValidatorConfig",
    "create_stream_validator", "consume_stream",
]
