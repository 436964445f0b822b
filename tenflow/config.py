# tenflow/config.py
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from tenflow.workflow.degradation import DegradationConfig

_DEFAULT_CONFIG_PATH = Path.home() / ".tenflow" / "config.yaml"

DEFAULT_MAX_BATCH_SIZE  = 100
DEFAULT_BATCH_TOLERANCE = 1.1


@dataclass
class WorkflowConfig:
    """
    Parámetros del protocolo de tareas.
    Se carga desde ~/.tenflow/config.yaml (o TENFLOW_CONFIG_PATH).
    """
    max_batch_size:  int               = DEFAULT_MAX_BATCH_SIZE
    batch_tolerance: float             = DEFAULT_BATCH_TOLERANCE
    degradation:     DegradationConfig = field(default_factory=DegradationConfig)
    db_path:         Optional[str]     = None


def load_workflow_config(config_path: Optional[str] = None) -> WorkflowConfig:
    """
    Carga la configuración desde YAML.
    Si se pidió una ruta explícita y no existe → FileNotFoundError.
    Si la ruta por defecto no existe → valores por defecto.
    Resuelve variables de entorno (${VAR}) en db_path.
    """
    explicit = config_path or os.environ.get("TENFLOW_CONFIG_PATH")
    path     = Path(explicit or _DEFAULT_CONFIG_PATH)

    if not path.exists():
        if explicit:
            raise FileNotFoundError(
                f"Config no encontrada en {path}. "
                f"Copia config.example.yaml a ~/.tenflow/config.yaml"
            )
        return WorkflowConfig()

    with path.open(encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    degradation = raw.get("degradation") or {}
    defaults    = DegradationConfig()

    config = WorkflowConfig(
        max_batch_size  = int(raw.get("max_batch_size", DEFAULT_MAX_BATCH_SIZE)),
        batch_tolerance = float(raw.get("batch_tolerance", DEFAULT_BATCH_TOLERANCE)),
        degradation     = DegradationConfig(
            repeat_threshold  = int(degradation.get("repeat_threshold", defaults.repeat_threshold)),
            check_window      = int(degradation.get("check_window", defaults.check_window)),
            pattern_threshold = int(degradation.get("pattern_threshold", defaults.pattern_threshold)),
        ),
        db_path         = _resolve_env(raw.get("db_path")),
    )

    if config.max_batch_size <= 0:
        raise ValueError(f"max_batch_size debe ser positivo (recibido {config.max_batch_size})")
    if config.batch_tolerance < 1.0:
        raise ValueError(f"batch_tolerance no puede ser menor que 1.0 (recibido {config.batch_tolerance})")

    return config


def _resolve_env(value: Optional[str]) -> Optional[str]:
    """Expande ${VAR_NAME} desde el entorno."""
    if not value or not value.startswith("${"):
        return value
    var_name = value.strip("${}").strip()
    return os.environ.get(var_name)
