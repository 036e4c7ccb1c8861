"""Tests for header normalization and alias resolution."""
from painel.ingestion.aliases import LETTER_ALIASES, aliases_for, normalize_header, resolve
from painel.ingestion.transformers import transform_letter


def test_normalize_header_drops_case_accents_and_punctuation():
    assert normalize_header("  Qual Igreja Você Pertence? ") == "qual_igreja_voce_pertence"
    assert normalize_header("qual_igreja_voce_pertence") == "qual_igreja_voce_pertence"
    assert normalize_header("Função Ministerial ?") == "funcao_ministerial"


def test_exact_match_wins_over_earlier_normalized_alias():
    """The exact pass runs over every alias before any normalized comparison."""

    row = {"NOME COMPLETO": "Normalizado", "nome": "Exato"}

    assert resolve(row, ("Nome completo", "nome")) == "Exato"


def test_normalized_match_finds_reformatted_headers():
    row = {"Qual Igreja Voce Pertence": "Sede"}

    assert resolve(row, ("Qual Igreja Você Pertence?",)) == "Sede"


def test_empty_values_fall_through_to_next_alias():
    row = {"Nome completo": "", "nome": "Ana"}

    assert resolve(row, ("Nome completo", "nome")) == "Ana"


def test_unmatched_aliases_resolve_to_empty_string():
    assert resolve({"Outro": "valor"}, ("Nome completo", "nome")) == ""
    assert resolve({}, ("Nome completo",)) == ""


def test_legacy_mojibake_headers_are_tried_last():
    aliases = aliases_for(LETTER_ALIASES, "regiao")

    assert aliases[0] == "Qual região Pertence"
    assert aliases[-1] == "qual_regiÃ£o_pertence"
    assert transform_letter({"Qual regiÃ£o Pertence": "Norte"}).regiao == "Norte"
