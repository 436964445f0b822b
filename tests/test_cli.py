# tests/test_cli.py
import pytest
from click.testing import CliRunner

import tenflow.config as config_module
from tenflow.cli import main


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------

@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    monkeypatch.delenv("TENFLOW_CONFIG_PATH", raising=False)
    monkeypatch.setattr(config_module, "_DEFAULT_CONFIG_PATH", tmp_path / "no_existe.yaml")


@pytest.fixture
def stream_file(tmp_path):
    """Salida grabada de un modelo que recorre el flujo de traducción."""
    f = tmp_path / "salida.txt"
    f.write_text(
        '{"s": "planning"} Voy a traducir los párrafos en orden. '
        '{"s": "working"} {"p": [{"paragraph_id": "p1", "translated_text": "Hola"}]} '
        '{"s": "review"}',
        encoding="utf-8",
    )
    return f


# ------------------------------------------------------------------
# tenflow tables
# ------------------------------------------------------------------

class TestTables:

    def test_lista_todos_los_tipos(self, runner):
        result = runner.invoke(main, ["tables"])
        assert result.exit_code == 0
        for task_type in ["translation", "polish", "proofreading", "chapter_summary"]:
            assert task_type in result.output

    def test_muestra_las_aristas(self, runner):
        result = runner.invoke(main, ["tables"])
        assert "初始 → planning" in result.output
        assert "review → working" in result.output


# ------------------------------------------------------------------
# tenflow check-stream
# ------------------------------------------------------------------

class TestCheckStream:

    def test_stream_valido(self, runner, stream_file):
        result = runner.invoke(main, ["check-stream", str(stream_file), "--type", "translation"])
        assert result.exit_code == 0, result.output
        assert "válido" in result.output
        assert "review" in result.output

    @pytest.mark.parametrize("chunk_size", ["1", "5", "1000"])
    def test_el_tamaño_de_chunk_no_cambia_el_resultado(self, runner, stream_file, chunk_size):
        result = runner.invoke(main, [
            "check-stream", str(stream_file), "--type", "translation", "--chunk-size", chunk_size,
        ])
        assert result.exit_code == 0, result.output

    def test_polish_no_admite_review(self, runner, stream_file):
        result = runner.invoke(main, ["check-stream", str(stream_file), "--type", "polish"])
        assert result.exit_code == 1
        assert "ForbiddenTransitionError" in result.output

    def test_contenido_en_planning(self, runner, tmp_path):
        f = tmp_path / "mal.txt"
        f.write_text('{"s": "planning"} {"p": ["x"]}', encoding="utf-8")
        result = runner.invoke(main, ["check-stream", str(f), "--type", "translation"])
        assert result.exit_code == 1
        assert "PhaseContentMismatchError" in result.output

    def test_fase_inicial(self, runner, tmp_path):
        f = tmp_path / "fin.txt"
        f.write_text('{"s": "end"}', encoding="utf-8")
        result = runner.invoke(main, [
            "check-stream", str(f), "--type", "polish", "--phase", "working",
        ])
        assert result.exit_code == 0
        assert "end" in result.output

    def test_archivo_inexistente(self, runner, tmp_path):
        result = runner.invoke(main, [
            "check-stream", str(tmp_path / "no.txt"), "--type", "translation",
        ])
        assert result.exit_code == 1
        assert "no encontrado" in result.output.lower()

    def test_archivo_vacio(self, runner, tmp_path):
        f = tmp_path / "vacio.txt"
        f.write_text("", encoding="utf-8")
        result = runner.invoke(main, ["check-stream", str(f), "--type", "translation"])
        assert result.exit_code == 1
        assert "vacía" in result.output

    def test_tipo_invalido(self, runner, stream_file):
        result = runner.invoke(main, ["check-stream", str(stream_file), "--type", "explain"])
        assert result.exit_code != 0


# ------------------------------------------------------------------
# tenflow batch-size
# ------------------------------------------------------------------

class TestBatchSize:

    def test_sin_chunk(self, runner):
        result = runner.invoke(main, ["batch-size"])
        assert result.exit_code == 0
        assert "110" in result.output
        assert "no" in result.output

    def test_lote_doble(self, runner):
        result = runner.invoke(main, ["batch-size", "--total", "250", "--submitted", "50"])
        assert "200" in result.output
        assert "sí" in result.output

    def test_submitted_mayor_que_total(self, runner):
        result = runner.invoke(main, ["batch-size", "--total", "10", "--submitted", "11"])
        assert result.exit_code == 1

    def test_usa_el_config(self, runner, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("max_batch_size: 20\n", encoding="utf-8")
        result = runner.invoke(main, ["batch-size", "--config", str(config)])
        assert "22" in result.output
