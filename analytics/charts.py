from __future__ import annotations

from typing import Any, Dict, Mapping, Sequence

import altair as alt
import pandas as pd

from analytics.data import QUARTILE_LABELS, StoreRecord

alt.data_transformers.disable_max_rows()

# Q1 to Q4: red, yellow, blue, green
QUARTILE_COLORS = {1: "#EF4444", 2: "#F59E0B", 3: "#3B82F6", 4: "#10B981"}
SELL_OUT_COLOR = "#EAB308"
SELL_IN_COLOR = "#3B82F6"
TICKET_COLOR = "#4F46E5"

CURRENCY_FORMAT = ",.2f"


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _records_frame(records: Sequence[StoreRecord], cols: Sequence[str]) -> pd.DataFrame:
    return pd.DataFrame([{c: getattr(r, c) for c in cols} for r in records], columns=list(cols))


def _ranked_frame(records: Sequence[StoreRecord], cols: Sequence[str]) -> pd.DataFrame:
    # Store names repeat across the network; the rank prefix keeps one band per bar.
    df = _records_frame(records, ["name", *cols])
    df.insert(0, "rank", range(1, len(df) + 1))
    df.insert(1, "label", [f"{rank}. {name}" for rank, name in zip(df["rank"], df["name"])])
    return df


def quartile_distribution_chart(distribution: Mapping[int, int]) -> alt.Chart:
    df = pd.DataFrame(
        [{"quartile": QUARTILE_LABELS[q], "stores": int(distribution.get(q, 0))} for q in sorted(QUARTILE_LABELS)]
    )
    hover = alt.selection_point(fields=["quartile"], on="mouseover", empty="all")
    return (
        alt.Chart(df)
        .mark_arc(innerRadius=60, outerRadius=100, padAngle=0.05)
        .encode(
            theta=alt.Theta("stores:Q"),
            color=alt.Color(
                "quartile:N",
                title="Quartil",
                sort=[QUARTILE_LABELS[q] for q in sorted(QUARTILE_LABELS)],
                scale=alt.Scale(
                    domain=[QUARTILE_LABELS[q] for q in sorted(QUARTILE_LABELS)],
                    range=[QUARTILE_COLORS[q] for q in sorted(QUARTILE_COLORS)],
                ),
                legend=alt.Legend(orient="bottom"),
            ),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.6)),
            tooltip=[alt.Tooltip("quartile:N", title="Quartil"), alt.Tooltip("stores:Q", title="Lojas")],
        )
        .add_params(hover)
        .properties(height=300)
    )


def top_sell_out_chart(records: Sequence[StoreRecord]) -> alt.Chart:
    df = _ranked_frame(records, ["sell_out"])
    return (
        alt.Chart(df)
        .mark_bar(color=SELL_OUT_COLOR, cornerRadiusEnd=4, size=20)
        .encode(
            x=alt.X("sell_out:Q", title=None, axis=None),
            y=alt.Y("label:N", title=None, sort=None, axis=alt.Axis(labelFontSize=11, labelLimit=100)),
            tooltip=[
                alt.Tooltip("name:N", title="Loja"),
                alt.Tooltip("sell_out:Q", title="Sell-Out (R$)", format=CURRENCY_FORMAT),
            ],
        )
        .properties(height=320)
    )


def top_avg_ticket_chart(records: Sequence[StoreRecord]) -> alt.Chart:
    df = _ranked_frame(records, ["avg_ticket"])
    return (
        alt.Chart(df)
        .mark_bar(color=TICKET_COLOR, cornerRadiusEnd=4, size=30)
        .encode(
            x=alt.X("label:N", title=None, sort=None, axis=alt.Axis(labelAngle=-15, labelFontSize=10, grid=False)),
            y=alt.Y("avg_ticket:Q", title="Ticket Médio (R$)", axis=alt.Axis(gridDash=[3, 3], domain=False, ticks=False)),
            tooltip=[
                alt.Tooltip("name:N", title="Loja"),
                alt.Tooltip("avg_ticket:Q", title="Ticket Médio (R$)", format=CURRENCY_FORMAT),
            ],
        )
        .properties(height=288)
    )


def sell_in_vs_sell_out_chart(records: Sequence[StoreRecord]) -> alt.Chart:
    """Two lines (sell-in, sell-out) aligned by sell-out rank."""
    df = _records_frame(records, ["name", "sell_in", "sell_out"])
    df.insert(0, "rank", range(1, len(df) + 1))
    long_df = df.melt(
        id_vars=["rank", "name"],
        value_vars=["sell_out", "sell_in"],
        var_name="series",
        value_name="value",
    )
    long_df["series"] = long_df["series"].map({"sell_out": "Sell-Out", "sell_in": "Sell-In"})
    hover = alt.selection_point(fields=["series"], on="mouseover", empty="all")
    return (
        alt.Chart(long_df)
        .mark_line(interpolate="monotone", strokeWidth=2, point={"filled": True, "size": 20})
        .encode(
            x=alt.X("rank:O", title=None, axis=alt.Axis(labels=False, ticks=False, grid=False)),
            y=alt.Y("value:Q", title=None, axis=alt.Axis(format="~s", gridDash=[3, 3], domain=False, ticks=False)),
            color=alt.Color(
                "series:N",
                title=None,
                scale=alt.Scale(domain=["Sell-Out", "Sell-In"], range=[SELL_OUT_COLOR, SELL_IN_COLOR]),
            ),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.2)),
            tooltip=[
                alt.Tooltip("name:N", title="Loja"),
                alt.Tooltip("series:N", title="Série"),
                alt.Tooltip("value:Q", title="Valor (R$)", format=CURRENCY_FORMAT),
            ],
        )
        .add_params(hover)
        .properties(height=288)
    )
