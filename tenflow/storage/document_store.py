# storage/document_store.py
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from tenflow.storage.db import get_connection, init_schema
from tenflow.storage.models import (
    Chapter, Paragraph, StoredBook, Translation, Volume, new_id,
)

logger = logging.getLogger(__name__)


class DocumentStore:
    """
    Almacén de libros → volúmenes → capítulos → párrafos → traducciones.
    Recibe un db_path para facilitar el testing con :memory:.

    Las traducciones son append-only: save_paragraphs inserta versiones nuevas
    y mueve selected_translation_id, pero nunca edita ni borra una versión.
    """

    def __init__(self, db_path: str | None = None):
        self._conn = get_connection(db_path)
        init_schema(self._conn)

    # ------------------------------------------------------------------
    # Alta de estructura (la usa el importador y los tests)
    # ------------------------------------------------------------------

    def create_book(self, title: str, book_id: str | None = None) -> str:
        book_id    = book_id or new_id()
        created_at = datetime.now(timezone.utc).isoformat()
        with self._conn:
            self._conn.execute(
                "INSERT INTO books (id, title, created_at) VALUES (?, ?, ?)",
                (book_id, title, created_at),
            )
        return book_id

    def add_volume(self, book_id: str, title: str, volume_id: str | None = None) -> str:
        volume_id = volume_id or new_id()
        position  = self._next_position("volumes", "book_id", book_id)
        with self._conn:
            self._conn.execute(
                "INSERT INTO volumes (id, book_id, title, position) VALUES (?, ?, ?, ?)",
                (volume_id, book_id, title, position),
            )
        return volume_id

    def add_chapter(self, volume_id: str, title: str, chapter_id: str | None = None) -> str:
        chapter_id = chapter_id or new_id()
        position   = self._next_position("chapters", "volume_id", volume_id)
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO chapters (id, volume_id, title_original, position)
                VALUES (?, ?, ?, ?)
                """,
                (chapter_id, volume_id, title, position),
            )
        return chapter_id

    def add_paragraph(
        self,
        chapter_id:   str,
        text:         str,
        paragraph_id: str | None = None,
        translation:  str | None = None,
        ai_model_id:  str | None = None,
    ) -> str:
        """
        Inserta un párrafo al final del capítulo.
        Si trae translation, se crea como primera versión seleccionada.
        """
        paragraph_id = paragraph_id or new_id()
        position     = self._next_position("paragraphs", "chapter_id", chapter_id)
        with self._conn:
            self._conn.execute(
                "INSERT INTO paragraphs (id, chapter_id, position, text) VALUES (?, ?, ?, ?)",
                (paragraph_id, chapter_id, position, text),
            )
            if translation is not None:
                translation_id = new_id()
                self._insert_translation(
                    paragraph_id, Translation(translation_id, translation, ai_model_id)
                )
                self._conn.execute(
                    "UPDATE paragraphs SET selected_translation_id = ? WHERE id = ?",
                    (translation_id, paragraph_id),
                )
        return paragraph_id

    # ------------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------------

    def load_book(self, book_id: str) -> StoredBook | None:
        """
        Carga el libro con su estructura de volúmenes y capítulos (sin contenido).
        volumes queda en None si el libro no tiene ningún volumen.
        """
        row = self._conn.execute(
            "SELECT * FROM books WHERE id = ?", (book_id,)
        ).fetchone()
        if not row:
            return None

        book = StoredBook(id=row["id"], title=row["title"], created_at=row["created_at"])

        volume_rows = self._conn.execute(
            "SELECT * FROM volumes WHERE book_id = ? ORDER BY position ASC",
            (book_id,),
        ).fetchall()
        if not volume_rows:
            return book

        book.volumes = []
        for vrow in volume_rows:
            volume = Volume(
                id=vrow["id"], book_id=book_id, title=vrow["title"], position=vrow["position"],
            )
            chapter_rows = self._conn.execute(
                "SELECT * FROM chapters WHERE volume_id = ? ORDER BY position ASC",
                (volume.id,),
            ).fetchall()
            volume.chapters = [self._row_to_chapter(c) for c in chapter_rows]
            book.volumes.append(volume)

        return book

    def load_chapter_content(self, chapter_id: str) -> list[Paragraph] | None:
        """Párrafos del capítulo en orden. None si el capítulo no existe."""
        exists = self._conn.execute(
            "SELECT 1 FROM chapters WHERE id = ?", (chapter_id,)
        ).fetchone()
        if not exists:
            return None

        rows = self._conn.execute(
            "SELECT * FROM paragraphs WHERE chapter_id = ? ORDER BY position ASC",
            (chapter_id,),
        ).fetchall()
        return [self._row_to_paragraph(r) for r in rows]

    def load_book_content(self, book_id: str) -> dict[str, list[Paragraph]]:
        """Contenido de todos los capítulos del libro, indexado por chapter_id."""
        book = self.load_book(book_id)
        if book is None:
            return {}

        content: dict[str, list[Paragraph]] = {}
        for chapter_id in book.chapter_ids():
            content[chapter_id] = self.load_chapter_content(chapter_id) or []
        return content

    # ------------------------------------------------------------------
    # Escritura
    # ------------------------------------------------------------------

    async def save_paragraphs(self, paragraphs: list[Paragraph]) -> None:
        """
        Persiste las versiones nuevas y la selección de cada párrafo.
        Una sola transacción: o se guarda el lote entero o nada.
        Las versiones ya existentes se ignoran (INSERT OR IGNORE por id).
        """
        with self._conn:
            for paragraph in paragraphs:
                for translation in paragraph.translations:
                    self._insert_translation(paragraph.id, translation)
                cursor = self._conn.execute(
                    "UPDATE paragraphs SET selected_translation_id = ? WHERE id = ?",
                    (paragraph.selected_translation_id, paragraph.id),
                )
                if cursor.rowcount == 0:
                    raise LookupError(f"Párrafo inexistente en el almacén: {paragraph.id}")

        logger.debug("Guardados %d párrafos", len(paragraphs))

    async def save_chapter_title(self, chapter_id: str, translation: Translation) -> None:
        with self._conn:
            cursor = self._conn.execute(
                """
                UPDATE chapters
                SET title_translation_id = ?, title_translation = ?, title_ai_model_id = ?
                WHERE id = ?
                """,
                (translation.id, translation.translation, translation.ai_model_id, chapter_id),
            )
        if cursor.rowcount == 0:
            raise LookupError(f"Capítulo inexistente en el almacén: {chapter_id}")

    # ------------------------------------------------------------------
    # Helpers internos
    # ------------------------------------------------------------------

    def _insert_translation(self, paragraph_id: str, translation: Translation) -> None:
        self._conn.execute(
            """
            INSERT OR IGNORE INTO translations (id, paragraph_id, translation, ai_model_id, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                translation.id, paragraph_id, translation.translation,
                translation.ai_model_id, datetime.now(timezone.utc).isoformat(),
            ),
        )

    def _next_position(self, table: str, parent_column: str, parent_id: str) -> int:
        row = self._conn.execute(
            f"SELECT MAX(position) AS max_p FROM {table} WHERE {parent_column} = ?",
            (parent_id,),
        ).fetchone()
        return 0 if row["max_p"] is None else row["max_p"] + 1

    def _row_to_paragraph(self, row: sqlite3.Row) -> Paragraph:
        translation_rows = self._conn.execute(
            "SELECT * FROM translations WHERE paragraph_id = ? ORDER BY seq ASC",
            (row["id"],),
        ).fetchall()
        return Paragraph(
            id=row["id"],
            chapter_id=row["chapter_id"],
            text=row["text"],
            position=row["position"],
            translations=[
                Translation(id=t["id"], translation=t["translation"], ai_model_id=t["ai_model_id"])
                for t in translation_rows
            ],
            selected_translation_id=row["selected_translation_id"],
        )

    @staticmethod
    def _row_to_chapter(row: sqlite3.Row) -> Chapter:
        title_translation: Optional[Translation] = None
        if row["title_translation_id"]:
            title_translation = Translation(
                id=row["title_translation_id"],
                translation=row["title_translation"],
                ai_model_id=row["title_ai_model_id"],
            )
        return Chapter(
            id=row["id"],
            volume_id=row["volume_id"],
            title_original=row["title_original"],
            position=row["position"],
            title_translation=title_translation,
        )

    # ------------------------------------------------------------------
    # Cleanup (para tests)
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._conn.close()
