"""Streamlit dashboard for letters (cartas) and workers (obreiros)."""
import asyncio
from datetime import datetime, timedelta
from pathlib import Path
from typing import List

import streamlit as st

# Allow running via "streamlit run painel/ui/dashboard.py" without installing the package
# by ensuring the repository root is on ``sys.path``.
if __package__ in {None, ""}:
    import sys

    sys.path.append(str(Path(__file__).resolve().parents[2]))

from painel.core.logging import configure_logging
from painel.core.models import LetterRecord
from painel.core.store import BLOCK_FORM_URL_KEY, LocalStore
from painel.processing.filters import LetterFilters, compute_metrics, filter_letters, unique_values
from painel.reporting.templates import (
    AUTHORIZED_LABEL,
    BLOCKED_LABEL,
    detail_pairs,
    letters_to_rows,
    share_link,
    status_label,
    visible_columns,
    workers_to_rows,
)
from painel.sync.engine import SyncEngine, SyncSettings
from painel.sync.services import RemoteServices


def _engine() -> SyncEngine:
    """Create one engine per browser session and reconnect silently on first load."""

    if "engine" not in st.session_state:
        engine = SyncEngine(
            LocalStore(),
            services=RemoteServices.from_env(),
            settings=SyncSettings.from_env(),
        )
        st.session_state.engine = engine
        asyncio.run(engine.open())
    return st.session_state.engine


def _rerun_app() -> None:
    """Trigger a Streamlit rerun, compatible with newer and older APIs."""

    rerun = getattr(st, "rerun", None) or getattr(st, "experimental_rerun", None)
    if not rerun:
        raise RuntimeError("Streamlit does not expose a rerun helper.")
    rerun()


def _connection_panel(engine: SyncEngine) -> None:
    """URL input, custom sheet name, and connect/disconnect actions."""

    with st.container(border=True):
        if engine.connected:
            status = "🟠 Conectado (offline, dados em cache)" if engine.offline else "🟢 Conectado"
            st.markdown(f"**{status}**")
            if engine.letters_sheet:
                st.caption(f"Aba de cartas usada: {engine.letters_sheet}")
            if st.button("Desconectar"):
                asyncio.run(engine.disconnect())
                _rerun_app()
            return

        url = st.text_input("URL da planilha", value=engine.url, placeholder="https://docs.google.com/spreadsheets/d/...")
        sheet = st.text_input("Nome da aba de cartas (opcional)", value=engine.sheet_hint)
        if st.button("Conectar", type="primary"):
            with st.spinner("Carregando planilha..."):
                asyncio.run(engine.connect(url, sheet or None))
            _rerun_app()
        if engine.error:
            st.error(engine.error)


def _metric_cards(letters: List[LetterRecord], engine: SyncEngine) -> None:
    metrics = compute_metrics(letters, engine.workers)
    columns = st.columns(4)
    columns[0].metric("Total de Cartas", metrics.total_letters)
    columns[1].metric("Cartas Hoje", metrics.letters_today)
    columns[2].metric("Últimos 7 dias", metrics.letters_last_7_days)
    columns[3].metric("Total de Obreiros", metrics.total_workers)
    if metrics.role_counts:
        st.caption("Por Cargo/Função: " + " · ".join(f"{role}: {count}" for role, count in metrics.role_counts))


def _filters(letters: List[LetterRecord]) -> LetterFilters:
    with st.expander("Filtros", expanded=False):
        first, second, third = st.columns(3)
        search = first.text_input("Buscar por nome")
        igreja = second.selectbox("Igreja", [""] + unique_values(letters, "igreja_origem"))
        status = third.selectbox("Status", [""] + unique_values(letters, "status"))
        fourth, fifth, sixth, seventh = st.columns(4)
        cargo = fourth.selectbox("Cargo", [""] + unique_values(letters, "cargo"))
        campo = fifth.selectbox("Campo", [""] + unique_values(letters, "regiao"))
        date_start = sixth.date_input("De", value=None)
        date_end = seventh.date_input("Até", value=None)
    return LetterFilters(
        date_start=date_start,
        date_end=date_end,
        igreja=igreja,
        campo=campo,
        cargo=cargo,
        status=status,
        search=search,
    )


def _badge(label: str) -> str:
    mapping = {AUTHORIZED_LABEL: "🟢 Autorizado", BLOCKED_LABEL: "🔴 Bloqueado"}
    return mapping.get(label, label)


def _letters_tab(letters: List[LetterRecord], engine: SyncEngine) -> None:
    filtered = filter_letters(letters, _filters(letters))
    rows = letters_to_rows(filtered)
    for row in rows:
        row["Status"] = _badge(row["Status"])
    if not rows:
        st.info("Nenhum registro encontrado")
        return

    st.dataframe(
        rows,
        hide_index=True,
        use_container_width=True,
        column_order=visible_columns(rows),
        column_config={"PDF": st.column_config.LinkColumn("PDF", display_text="Abrir PDF")},
    )

    labels = [f"{letter.nome} · {letter.data_emissao}" for letter in filtered]
    selected = st.selectbox("Detalhes da carta", range(len(filtered)), format_func=lambda i: labels[i])
    letter = filtered[selected]
    with st.container(border=True):
        for label, value in detail_pairs(letter):
            st.markdown(f"**{label}:** {value}")
        st.markdown(f"**Status:** {_badge(status_label(letter))}")
        actions = st.columns(3)
        actions[0].link_button("Compartilhar", share_link(letter))
        block_form = engine.store.get_text(BLOCK_FORM_URL_KEY)
        if block_form:
            actions[1].link_button("Bloquear obreiro", block_form)
        if actions[2].button("Ocultar carta excluída"):
            engine.exclude(letter)
            _rerun_app()


def _workers_tab(engine: SyncEngine) -> None:
    if not engine.has_workers:
        st.info("Aba de obreiros não encontrada nesta planilha.")
        return
    rows = workers_to_rows(engine.workers)
    st.dataframe(rows, hide_index=True, use_container_width=True, column_order=visible_columns(rows))


def _refresh_if_due(engine: SyncEngine) -> None:
    """Run a silent refresh, skipping widget reruns that land shortly after a sync."""

    interval = timedelta(seconds=engine.settings.refresh_interval)
    if engine.last_synced_at and datetime.now() - engine.last_synced_at < interval / 2:
        return
    asyncio.run(engine.refresh())


def _surface_alerts(engine: SyncEngine) -> None:
    for notification in engine.pending_notifications():
        st.toast(f"{notification.title}: {notification.body}", icon="📨")
    digest = engine.take_digest()
    if digest:
        st.toast(f"{len(digest)} cartas recentes desde a última visita", icon="🕑")


def main() -> None:
    """Launch the letters dashboard."""

    configure_logging()
    st.set_page_config(page_title="Painel de Gestão", layout="wide")
    st.title("Painel de Gestão")
    st.caption("Cartas e Obreiros")

    engine = _engine()
    _connection_panel(engine)
    if not engine.connected:
        return

    @st.fragment(run_every=timedelta(seconds=engine.settings.refresh_interval))
    def _live_view() -> None:
        _refresh_if_due(engine)
        _surface_alerts(engine)
        letters = engine.visible_letters
        _metric_cards(letters, engine)
        cartas_tab, obreiros_tab = st.tabs(["Cartas", "Obreiros"])
        with cartas_tab:
            _letters_tab(letters, engine)
        with obreiros_tab:
            _workers_tab(engine)

    _live_view()


if __name__ == "__main__":
    main()
