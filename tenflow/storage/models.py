# storage/models.py
import uuid
from dataclasses import dataclass, field
from typing import Optional


def new_id() -> str:
    """Id corto para traducciones y entidades nuevas."""
    return uuid.uuid4().hex[:12]


@dataclass
class Translation:
    id:          str
    translation: str
    ai_model_id: Optional[str] = None


@dataclass
class Paragraph:
    """
    Un párrafo conserva todas sus versiones de traducción.
    selected_translation_id apunta a la versión vigente.
    """
    id:                      str
    chapter_id:              str
    text:                    str
    position:                int               = 0
    translations:            list[Translation] = field(default_factory=list)
    selected_translation_id: Optional[str]     = None

    @property
    def selected_translation(self) -> Optional[Translation]:
        for translation in self.translations:
            if translation.id == self.selected_translation_id:
                return translation
        return None


@dataclass
class Chapter:
    id:                str
    volume_id:         str
    title_original:    str
    position:          int                   = 0
    title_translation: Optional[Translation] = None


@dataclass
class Volume:
    id:       str
    book_id:  str
    title:    str
    position: int           = 0
    chapters: list[Chapter] = field(default_factory=list)


@dataclass
class StoredBook:
    """
    volumes es None cuando el libro no tiene estructura de volúmenes/capítulos
    cargable todavía (libro recién importado).
    """
    id:         str
    title:      str
    created_at: str
    volumes:    Optional[list[Volume]] = None

    def find_chapter(self, chapter_id: str) -> Optional[Chapter]:
        for volume in self.volumes or []:
            for chapter in volume.chapters:
                if chapter.id == chapter_id:
                    return chapter
        return None

    def chapter_ids(self) -> list[str]:
        return [c.id for v in self.volumes or [] for c in v.chapters]
