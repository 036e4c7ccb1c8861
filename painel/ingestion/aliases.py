"""Header alias tables and the resolver that maps raw headers onto canonical fields.

Sheets exported from different versions of the Google Forms carry different
header text for the same question: accents, punctuation, snake_case copies
made by merge add-ons, and headers mangled by a double UTF-8 decode. Each
canonical field therefore lists every spelling seen so far. Matching is done
first on the exact header and then on a normalized form that ignores case,
accents and punctuation.
"""
from __future__ import annotations

import re
import unicodedata
from functools import lru_cache
from typing import Dict, Mapping, Sequence, Tuple

from painel.ingestion.csv_decoder import COLUMN_KEY_PREFIX

AliasTable = Dict[str, Tuple[str, ...]]

# Marker columns used to derive the role when no explicit role is filled.
PASTOR_MARKER = "_ps"
DEACON_MARKER = "_dic"
WORKER_MARKER = "_ob"
MEMBER_MARKER = "_mem"

LETTER_ALIASES: AliasTable = {
    "data_emissao": ("Carimbo de data/hora", "carimbo_de_data/hora", "data_emissao"),
    "regiao": ("Qual região Pertence", "qual_região_pertence", "regiao", "região"),
    "igreja_origem": (
        "Qual Igreja Você Pertence?",
        "qual_igreja_você_pertence?",
        "igreja_origem",
        "Qual Igreja Estadual?",
    ),
    "nome": ("Nome completo", "nome_completo", "nome", "nome_obreiro"),
    "email": ("email", "E-mail", "e-mail", "Email"),
    "telefone": ("Telefone", "telefone"),
    "data_pregacao": (
        "Data da pregação.",
        "data_da_pregação.",
        "Dia da pregação",
        "dia_da_pregação",
        "data_pregacao",
        "data_pregação",
        "Dia",
        "Mês",
        "Ano",
        "Mês da pregação",
        "Ano da pregação",
    ),
    "data_ordenacao": (
        "Data da Ordenação",
        "data_da_ordenação",
        "data_ordenacao",
        "Dia da Ordenação",
        "Mês da ordenação",
        "Ano da Ordemação",
    ),
    "funcao": ("Função Ministerial ?", "função_ministerial_?", "funcao", "função"),
    "ipda_destino": ("IPDA Destino", "ipda_destino"),
    "igreja_destino": (
        "Qual Igreja você está indo pregar?",
        "qual_igreja_você_está_indo_pregar?",
        "igreja_destino",
    ),
    "status": ("status", "Status", "Status da carta", "Status Carta", f"{COLUMN_KEY_PREFIX}Z", "Z", "Coluna Z"),
    "status_merge": (
        "Status",
        "status",
        "status_carta",
        "status_merge",
        "Document Merge Status - Cartas",
        "Document Merge Status - cartas",
        "document_merge_status_-_cartas",
        "Document Merge Status - Carta de Pregação",
    ),
    "url_pdf": (
        "Merged Doc URL - Cartas",
        "Merged Doc URL - cartas",
        "merged_doc_url_-_cartas",
        "Link to merged Doc - Cartas",
        "Link to merged Doc - cartas",
        "link_to_merged_doc_-_cartas",
        "url_pdf",
        "Merged Doc URL - Carta de Pregação",
        "Link to merged Doc - Carta de Pregação",
    ),
    "doc_id": (
        "Merged Doc ID - Cartas",
        "Merged Doc ID - cartas",
        "merged_doc_id_-_cartas",
        "doc_id",
        "Merged Doc ID - Carta de Pregação",
    ),
    "cargo": ("cargo", "Função Ministerial ?", f"{COLUMN_KEY_PREFIX}Q"),
    PASTOR_MARKER: ("Ps", "ps"),
    DEACON_MARKER: ("Dic", "dic"),
    WORKER_MARKER: ("ob",),
    MEMBER_MARKER: ("Mem", "mem"),
}

WORKER_ALIASES: AliasTable = {
    "nome": ("nome", "Nome", "Nome completo", "nome_completo"),
    "cargo": ("cargo", "Função Ministerial ?", "funcao", "função"),
    "igreja": (
        "igreja",
        "igreja_origem",
        "Qual Igreja Você Pertence?",
        "Qual Igreja você está indo pregar?",
    ),
    "campo": ("campo", "regiao", "região", "Qual região Pertence"),
    "status": ("status", "Status", f"{COLUMN_KEY_PREFIX}Z"),
    "data_ordenacao": (
        "data_ordenacao",
        "data_ordenação",
        "Data da Ordenação",
        "Data da pregação.",
        "data_pregacao",
    ),
    "data_batismo": ("data_batismo", "Data do Batismo", "Data do batismo"),
    "telefone": ("telefone", "Telefone", "Celular", "WhatsApp"),
    "email": ("email", "E-mail", "e-mail", "Email"),
    "funcao": ("Função Ministerial ?", "funcao", "função"),
    "regiao": ("regiao", "região", "Qual região Pertence"),
    "foto": (
        "foto",
        "Foto",
        "imagem",
        "Imagem",
        "photo",
        "Photo",
        "url_foto",
        "URL Foto",
        "Link da foto",
        "Link Foto",
    ),
    PASTOR_MARKER: ("Ps", "ps"),
    DEACON_MARKER: ("Dic", "dic"),
    WORKER_MARKER: ("ob", "Ob"),
    MEMBER_MARKER: ("Mem", "mem"),
}

ACCESS_ALIASES: AliasTable = {
    "email": ("email", "E-mail", "e-mail", "Email"),
    "nome": ("nome", "Nome", "Nome completo"),
    "telefone": ("telefone", "Telefone", "WhatsApp", "Celular"),
    "status": ("status", "Status", "Statu", "Situação", "Situacao", "Acesso"),
    "motivo": (
        "motivo",
        "Motivo",
        "Motivo do bloqueio",
        "Justificativa",
        "Observação",
        "Observacao",
    ),
}

# Deprecated: exact spellings from an export pipeline that decoded UTF-8
# twice. Normalized matching cannot recover these, so they are still tried,
# but new variants should not be added here.
LEGACY_MOJIBAKE_ALIASES: AliasTable = {
    "data_emissao": ("data_emissÃ£o",),
    "regiao": ("Qual regiÃ£o Pertence", "qual_regiÃ£o_pertence"),
    "igreja_origem": ("Qual Igreja VocÃª Pertence?", "qual_igreja_vocÃª_pertence?"),
    "data_pregacao": ("Data da pregaÃ§Ã£o.", "data_da_pregaÃ§Ã£o."),
    "data_ordenacao": ("Data da OrdenaÃ§Ã£o", "data_ordenaÃ§Ã£o"),
    "funcao": ("FunÃ§Ã£o Ministerial ?", "funÃ§Ã£o_ministerial_?"),
    "igreja_destino": ("Qual Igreja vocÃª estÃ¡ indo pregar?", "qual_igreja_vocÃª_estÃ¡_indo_pregar?"),
    "cargo": ("FunÃ§Ã£o Ministerial ?",),
    "igreja": ("Qual Igreja VocÃª Pertence?",),
    "campo": ("Qual regiÃ£o Pertence",),
}


def aliases_for(table: AliasTable, field: str) -> Tuple[str, ...]:
    """Return the alias list for a field, legacy mojibake spellings last."""

    current = table.get(field, ())
    legacy = tuple(alias for alias in LEGACY_MOJIBAKE_ALIASES.get(field, ()) if alias not in current)
    return current + legacy


@lru_cache(maxsize=4096)
def normalize_header(value: str) -> str:
    """Reduce a header to lowercase ASCII words joined by ``_``.

    ``"Qual Igreja Você Pertence?"`` and ``"qual_igreja_voce_pertence"`` both
    become ``"qual_igreja_voce_pertence"``.
    """

    decomposed = unicodedata.normalize("NFD", value.strip().lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"[^a-z0-9]+", "_", stripped).strip("_")


def resolve(row: Mapping[str, str], aliases: Sequence[str]) -> str:
    """Return the first non-empty value found for any alias, or ``""``.

    Exact header matches always win over normalized ones, and aliases are
    tried in the order given.
    """

    for alias in aliases:
        value = row.get(alias)
        if value:
            return value

    normalized_keys = [(normalize_header(key), key) for key in row]
    for alias in aliases:
        target = normalize_header(alias)
        if not target:
            continue
        for normalized, key in normalized_keys:
            if normalized == target and row[key]:
                return row[key]
    return ""
