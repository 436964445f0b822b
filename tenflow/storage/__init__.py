# storage/__init__.py
from tenflow.storage.document_store import DocumentStore
from tenflow.storage.task_registry import TaskRegistry
from tenflow.storage.models import Chapter, Paragraph, StoredBook, Translation, Volume, new_id

__all__ = [
    "DocumentStore", "TaskRegistry",
    "Chapter", "Paragraph", "StoredBook", "Translation", "Volume",
    "new_id",
]
