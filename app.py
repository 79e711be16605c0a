import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import pandas as pd
import streamlit as st

from analytics.data import (
    ACCEPTED_EXTENSIONS,
    QUARTILE_LABELS,
    AnalyticsError,
    EmptyImportError,
    StoreRecord,
    format_currency_brl,
    format_currency_columns,
    format_percent_columns,
    load_store_records,
    records_to_frame,
)
from analytics.filters import QueryState, format_query_summary, normalize_query
from analytics.metrics_stores import compute_dashboard

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

TABLE_ROW_LIMIT = 50
QUARTILE_OPTIONS = ["all", 1, 2, 3, 4]
QUARTILE_FILTER_LABELS = {
    "all": "Todos Quartis",
    1: "1º Quartil (≤ 50k)",
    2: "2º Quartil (50-80k)",
    3: "3º Quartil (80-100k)",
    4: "4º Quartil (> 100k)",
}
CURRENCY_DISPLAY_COLUMNS = ["Sell-In", "Sell-Out", "Ticket Médio"]
PERCENT_DISPLAY_COLUMNS = ["% IN", "% OUT"]


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #facc15;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #1f2937;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #1f2937;}
        .card-actions {font-size: 0.9rem;color: #6b7280;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #fef9c3;border: 1px solid #fde68a;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str, actions: Optional[str] = None):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
            <div class="card-actions">{actions or ""}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def render_page_header(title: str, breadcrumb: str, summary_html: str, export_df: Optional[pd.DataFrame] = None):
    inject_base_styles()
    c1, c2 = st.columns([8, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        btn_cols = st.columns(2)
        if btn_cols[0].button("Novo Arquivo"):
            st.session_state["upload_key_seq"] = st.session_state.get("upload_key_seq", 0) + 1
            st.rerun()
        if export_df is not None and not export_df.empty:
            btn_cols[1].download_button(
                "Exportar CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name="lojas.csv",
                mime="text/csv",
            )
    st.markdown(f"<div class='chip-row'>{summary_html}</div>", unsafe_allow_html=True)


@st.cache_data(show_spinner="Processando planilha...")
def import_workbook(payload: bytes) -> List[StoreRecord]:
    return load_store_records(payload)


def render_kpi_tiles(kpis: Dict[str, Any]):
    cols = st.columns(4)
    cols[0].metric("Total Sell-Out", format_currency_brl(kpis["total_sell_out"]), help="Receita Realizada")
    cols[1].metric("Total Sell-In", format_currency_brl(kpis["total_sell_in"]), help="Compras Lojas")
    cols[2].metric("Ticket Médio Geral", format_currency_brl(kpis["avg_ticket"]), help="Média da Rede")
    cols[3].metric("Lojas Sem Sell-In", str(kpis["zero_sell_in_count"]), help="Atenção Necessária")


def render_zero_sell_in(stores: List[Dict[str, Any]]):
    if not stores:
        return
    with card("Lojas sem compra (Zero Sell-In)"):
        df = pd.DataFrame(
            [
                {
                    "Loja": s["name"],
                    "Sell-Out Realizado": format_currency_brl(s["sell_out"]),
                    "Quartil Atual": f"Q{s['quartile']}",
                }
                for s in stores
            ]
        )
        st.dataframe(df, hide_index=True, use_container_width=True)


def render_dashboard(records: List[StoreRecord], query: QueryState):
    payload = compute_dashboard(records, query)
    charts = payload["charts"]
    table_df = records_to_frame(payload["table"], display=True)
    render_page_header("Painel de Desempenho", "Havanna Analytics / Lojas", format_query_summary(query), export_df=table_df)

    render_kpi_tiles(payload["kpis"])

    row1 = st.columns([2, 1])
    with row1[0]:
        with card(f"Top {len(payload['top_sell_out'])} Lojas (Sell-Out)"):
            st.vega_lite_chart(charts["top_sell_out"], use_container_width=True)
    with row1[1]:
        with card("Distribuição de Quartis", actions="Base completa"):
            st.vega_lite_chart(charts["distribution"], use_container_width=True)
            st.caption(" · ".join(QUARTILE_LABELS.values()))

    row2 = st.columns(2)
    with row2[0]:
        with card("Top 10 - Ticket Médio"):
            st.vega_lite_chart(charts["top_avg_ticket"], use_container_width=True)
    with row2[1]:
        with card("Comparativo: Sell-In vs Sell-Out"):
            st.vega_lite_chart(charts["comparison"], use_container_width=True)

    render_zero_sell_in(payload["zero_sell_in"])

    with card("Detalhamento de Lojas", actions=f"{min(len(table_df), TABLE_ROW_LIMIT)} de {len(table_df)}"):
        if table_df.empty:
            st.info("Nenhuma loja encontrada para os filtros atuais.")
        else:
            view = format_currency_columns(table_df.head(TABLE_ROW_LIMIT), CURRENCY_DISPLAY_COLUMNS)
            st.dataframe(
                format_percent_columns(view, PERCENT_DISPLAY_COLUMNS),
                hide_index=True,
                use_container_width=True,
            )


# ---------- UI setup ----------
st.set_page_config(page_title="Havanna Analytics", layout="wide")
inject_base_styles()
st.title("Havanna Analytics")
st.caption("Análise de Sell-In, Sell-Out e Performance de Lojas")

uploaded = st.file_uploader(
    "Importar Dados Havanna",
    type=list(ACCEPTED_EXTENSIONS),
    key=f"upload-{st.session_state.get('upload_key_seq', 0)}",
    help="Certifique-se que o Excel contém as colunas: NOME DA LOJA, VL. SELL-IN, VL. SELL-OUT, TM, etc.",
)
if uploaded is None:
    st.info("Carregue seu arquivo .xlsx para gerar o painel de análise.")
    st.stop()

try:
    records = import_workbook(uploaded.getvalue())
except EmptyImportError as exc:
    logger.warning("Empty workbook uploaded: %s", uploaded.name)
    st.error(str(exc))
    st.stop()
except AnalyticsError:
    logger.exception("Failed to import %s", uploaded.name)
    st.error("Erro ao processar o arquivo. Verifique se é um Excel válido.")
    st.stop()

with st.sidebar:
    st.markdown("### Filtros")
    search_text = st.text_input("Nome da Loja", placeholder="Buscar loja...")
    quartile_choice = st.selectbox(
        "Quartil",
        QUARTILE_OPTIONS,
        format_func=lambda v: QUARTILE_FILTER_LABELS[v],
    )

query = normalize_query({"search_text": search_text, "quartile": quartile_choice})
render_dashboard(records, query)
