# tenflow/factory.py
from typing import Callable, Optional

from tenflow.config import WorkflowConfig, load_workflow_config
from tenflow.storage.document_store import DocumentStore
from tenflow.storage.task_registry import TaskRegistry
from tenflow.tools.base import ToolContext
from tenflow.workflow.models import ActionInfo, ChunkBoundaries
from tenflow.workflow.stream_validator import (
    StreamValidator,
    StreamValidatorConfig,
    create_stream_validator,
)


class Workspace:
    """
    Almacén de documentos + registro de tareas + configuración, ya conectados.
    Punto de entrada único para el CLI y los tests de integración.
    """

    def __init__(self, store: DocumentStore, registry: TaskRegistry, config: WorkflowConfig):
        self.store    = store
        self.registry = registry
        self.config   = config

    def tool_context(
        self,
        task_id:          str,
        book_id:          Optional[str]                          = None,
        ai_model_id:      Optional[str]                          = None,
        chunk_boundaries: Optional[ChunkBoundaries]              = None,
        on_action:        Optional[Callable[[ActionInfo], None]] = None,
    ) -> ToolContext:
        """
        Contexto para las herramientas de un intento de tarea.
        Si no se indica book_id se toma el de la tarea registrada.
        """
        if book_id is None:
            task = self.registry.find(task_id)
            book_id = task.book_id if task else None

        return ToolContext(
            task_id          = task_id,
            registry         = self.registry,
            book_id          = book_id,
            document_store   = self.store,
            ai_model_id      = ai_model_id,
            chunk_boundaries = chunk_boundaries,
            on_action        = on_action,
            max_batch_size   = self.config.max_batch_size,
            batch_tolerance  = self.config.batch_tolerance,
        )

    def stream_validator(
        self,
        task_id:       str,
        abort_signal   = None,
        original_text: Optional[str] = None,
        log_label:     str           = "stream",
    ) -> StreamValidator:
        return create_stream_validator(StreamValidatorConfig(
            task_id       = task_id,
            registry      = self.registry,
            abort_signal  = abort_signal,
            original_text = original_text,
            log_label     = log_label,
            degradation   = self.config.degradation,
        ))

    def close(self) -> None:
        self.store.close()
        self.registry.close()


def build_workspace(
    db_path:     Optional[str] = None,
    config_path: Optional[str] = None,
) -> Workspace:
    """
    Ensambla almacén y registro sobre la misma base de datos.
    db_path explícito > db_path del config > TENFLOW_DB_PATH > ~/.tenflow/tenflow.db
    """
    config = load_workflow_config(config_path)
    path   = db_path or config.db_path

    return Workspace(
        store    = DocumentStore(db_path=path),
        registry = TaskRegistry(db_path=path),
        config   = config,
    )
