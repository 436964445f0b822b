# tests/workflow/test_degradation.py
from tenflow.workflow.degradation import DegradationConfig, detect_repetition


class TestCaracterRepetido:

    def test_texto_normal_no_es_degradacion(self):
        text = "El viento soplaba entre los árboles del bosque. " * 5
        assert detect_repetition(text) is False

    def test_texto_corto_no_se_evalua(self):
        assert detect_repetition("a" * 99) is False

    def test_racha_larga_es_degradacion(self):
        assert detect_repetition("Hola " + "a" * 95) is True

    def test_original_con_racha_parecida_la_justifica(self):
        original = "¡Aaaah! " + "—" * 80
        assert detect_repetition("Texto " + "—" * 94, original_text=original) is False

    def test_umbral_configurable(self):
        config = DegradationConfig(repeat_threshold=10, check_window=20, pattern_threshold=30)
        assert detect_repetition("abcdefghij" + "z" * 10, config=config) is True


class TestPatronRepetido:

    def test_patron_corto_al_final(self):
        assert detect_repetition("Inicio. " + "ja" * 50) is True

    def test_patron_de_tres_caracteres(self):
        assert detect_repetition("Fin: " + "abc" * 40) is True

    def test_patron_largo_por_debajo_del_umbral(self):
        assert detect_repetition("abcde" * 20) is False

    def test_original_con_el_mismo_patron(self):
        original = "Se reía: " + "ja" * 50
        assert detect_repetition("Risas: " + "ja" * 50, original_text=original) is False
