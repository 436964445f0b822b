# tests/storage/test_document_store.py
import asyncio

import pytest

from tenflow.storage.document_store import DocumentStore
from tenflow.storage.models import Paragraph, Translation


@pytest.fixture
def store():
    """Cada test tiene su propia DB en memoria, aislada y sin cleanup."""
    s = DocumentStore(db_path=":memory:")
    yield s
    s.close()


@pytest.fixture
def book_id(store):
    book_id   = store.create_book("La sombra del viento", book_id="libro")
    volume_id = store.add_volume(book_id, "Parte I")
    store.add_chapter(volume_id, "Uno", chapter_id="c1")
    store.add_chapter(volume_id, "Dos", chapter_id="c2")
    store.add_paragraph("c1", "First.", paragraph_id="p1", translation="Primero.", ai_model_id="m0")
    store.add_paragraph("c1", "Second.", paragraph_id="p2")
    store.add_paragraph("c2", "Third.", paragraph_id="p3")
    return book_id


# ------------------------------------------------------------------
# Estructura
# ------------------------------------------------------------------

class TestEstructura:

    def test_load_book_con_volumenes_y_capitulos(self, store, book_id):
        book = store.load_book(book_id)
        assert book.title == "La sombra del viento"
        assert [v.title for v in book.volumes] == ["Parte I"]
        assert book.chapter_ids() == ["c1", "c2"]

    def test_libro_inexistente(self, store):
        assert store.load_book("nada") is None

    def test_libro_sin_volumenes_tiene_volumes_none(self, store):
        store.create_book("Vacío", book_id="vacio")
        assert store.load_book("vacio").volumes is None

    def test_posiciones_en_orden_de_alta(self, store, book_id):
        positions = [p.position for p in store.load_chapter_content("c1")]
        assert positions == [0, 1]

    def test_find_chapter(self, store, book_id):
        book = store.load_book(book_id)
        assert book.find_chapter("c2").title_original == "Dos"
        assert book.find_chapter("c9") is None


# ------------------------------------------------------------------
# Contenido
# ------------------------------------------------------------------

class TestContenido:

    def test_parrafo_con_traduccion_inicial(self, store, book_id):
        p1 = store.load_chapter_content("c1")[0]
        assert p1.selected_translation.translation == "Primero."
        assert p1.selected_translation.ai_model_id == "m0"

    def test_parrafo_sin_traduccion(self, store, book_id):
        p2 = store.load_chapter_content("c1")[1]
        assert p2.translations == []
        assert p2.selected_translation is None

    def test_capitulo_inexistente_devuelve_none(self, store, book_id):
        assert store.load_chapter_content("c9") is None

    def test_load_book_content_indexado_por_capitulo(self, store, book_id):
        content = store.load_book_content(book_id)
        assert set(content) == {"c1", "c2"}
        assert [p.id for p in content["c2"]] == ["p3"]


# ------------------------------------------------------------------
# Escritura
# ------------------------------------------------------------------

class TestEscritura:

    def test_save_paragraphs_agrega_sin_borrar(self, store, book_id):
        p1 = store.load_chapter_content("c1")[0]
        p1.translations.append(Translation("t-nueva", "Lo primero.", "m1"))
        p1.selected_translation_id = "t-nueva"

        asyncio.run(store.save_paragraphs([p1]))

        reloaded = store.load_chapter_content("c1")[0]
        assert [t.translation for t in reloaded.translations] == ["Primero.", "Lo primero."]
        assert reloaded.selected_translation_id == "t-nueva"

    def test_versiones_existentes_no_se_modifican(self, store, book_id):
        p1 = store.load_chapter_content("c1")[0]
        p1.translations[0].translation = "Texto alterado"

        asyncio.run(store.save_paragraphs([p1]))

        assert store.load_chapter_content("c1")[0].translations[0].translation == "Primero."

    def test_parrafo_inexistente_revierte_todo(self, store, book_id):
        p2 = store.load_chapter_content("c1")[1]
        p2.translations.append(Translation("t-p2", "Segundo.", "m1"))
        p2.selected_translation_id = "t-p2"
        ghost = Paragraph(id="fantasma", chapter_id="c1", text="?")

        with pytest.raises(LookupError):
            asyncio.run(store.save_paragraphs([p2, ghost]))

        assert store.load_chapter_content("c1")[1].translations == []

    def test_save_chapter_title(self, store, book_id):
        asyncio.run(store.save_chapter_title("c1", Translation("tt1", "Capítulo uno", "m1")))
        chapter = store.load_book(book_id).find_chapter("c1")
        assert chapter.title_translation == Translation("tt1", "Capítulo uno", "m1")

    def test_save_chapter_title_capitulo_inexistente(self, store, book_id):
        with pytest.raises(LookupError):
            asyncio.run(store.save_chapter_title("c9", Translation("tt1", "x")))
