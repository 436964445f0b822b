from tenflow.tools.base import ToolContext, ToolDefinition
from tenflow.tools.registry import TOOLS, execute_tool_call, tool_schemas
from tenflow.tools.task_status import update_task_status
from tenflow.tools.translation_batch import (
    MAX_BATCH_SIZE, BatchCapacity, add_translation_batch,
    calculate_allowed_batch_size, update_chapter_title,
)

__all__ = [
    "ToolContext", "ToolDefinition", "TOOLS", "execute_tool_call", "tool_schemas",
    "update_task_status", "MAX_BATCH_SIZE", "BatchCapacity", "add_translation_batch",
    "calculate_allowed_batch_size", "update_chapter_title",
]
