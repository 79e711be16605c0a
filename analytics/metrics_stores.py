from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Sequence

from analytics.charts import (
    quartile_distribution_chart,
    sell_in_vs_sell_out_chart,
    to_vega_spec,
    top_avg_ticket_chart,
    top_sell_out_chart,
)
from analytics.data import QUARTILE_LABELS, StoreRecord
from analytics.filters import QueryState

TOP_SELL_OUT_N = 15
TOP_TICKET_N = 10


@dataclass(frozen=True)
class StoreKpis:
    total_sell_in: float = 0.0
    total_sell_out: float = 0.0
    avg_ticket: float = 0.0
    stores_count: int = 0
    zero_sell_in: List[StoreRecord] = field(default_factory=list)

    @property
    def zero_sell_in_count(self) -> int:
        return len(self.zero_sell_in)


def filter_stores(records: Sequence[StoreRecord], query: QueryState) -> List[StoreRecord]:
    needle = query.search_text.lower()
    return [
        r
        for r in records
        if needle in r.name.lower() and (query.quartile is None or r.quartile == query.quartile)
    ]


def sort_table(records: Sequence[StoreRecord]) -> List[StoreRecord]:
    # sorted() is stable, so stores tied on both keys keep their input order.
    return sorted(records, key=lambda r: (-r.quartile, -r.sell_out))


def compute_kpis(records: Sequence[StoreRecord]) -> StoreKpis:
    if not records:
        return StoreKpis()
    return StoreKpis(
        total_sell_in=sum(r.sell_in for r in records),
        total_sell_out=sum(r.sell_out for r in records),
        avg_ticket=sum(r.avg_ticket for r in records) / len(records),
        stores_count=len(records),
        zero_sell_in=[r for r in records if r.sell_in == 0],
    )


def _top_by(records: Sequence[StoreRecord], attr: str, n: int) -> List[StoreRecord]:
    return sorted(records, key=lambda r: getattr(r, attr), reverse=True)[: max(0, n)]


def top_by_sell_out(records: Sequence[StoreRecord], n: int = TOP_SELL_OUT_N) -> List[StoreRecord]:
    return _top_by(records, "sell_out", n)


def top_by_avg_ticket(records: Sequence[StoreRecord], n: int = TOP_TICKET_N) -> List[StoreRecord]:
    return _top_by(records, "avg_ticket", n)


def quartile_distribution(records: Sequence[StoreRecord]) -> Dict[int, int]:
    """Store count per quartile. Callers pass the full, unfiltered dataset."""
    counts = {q: 0 for q in QUARTILE_LABELS}
    for r in records:
        counts[r.quartile] += 1
    return counts


def comparison_series(records: Sequence[StoreRecord]) -> List[StoreRecord]:
    return sorted(records, key=lambda r: r.sell_out, reverse=True)


def _rows(records: Sequence[StoreRecord]) -> List[Dict[str, Any]]:
    return [r.to_dict() for r in records]


def compute_dashboard(records: Sequence[StoreRecord], query: QueryState) -> Dict[str, Any]:
    filtered = filter_stores(records, query)
    kpis = compute_kpis(filtered)
    top_sell_out = top_by_sell_out(filtered)
    top_ticket = top_by_avg_ticket(filtered)
    comparison = comparison_series(filtered)
    distribution = quartile_distribution(records)

    return {
        "query": asdict(query),
        "kpis": {
            "total_sell_in": kpis.total_sell_in,
            "total_sell_out": kpis.total_sell_out,
            "avg_ticket": kpis.avg_ticket,
            "stores_count": kpis.stores_count,
            "zero_sell_in_count": kpis.zero_sell_in_count,
        },
        "zero_sell_in": _rows(kpis.zero_sell_in),
        "table": _rows(sort_table(filtered)),
        "top_sell_out": _rows(top_sell_out),
        "top_avg_ticket": _rows(top_ticket),
        "distribution": [
            {"quartile": q, "label": QUARTILE_LABELS[q], "stores": distribution[q]} for q in sorted(distribution)
        ],
        "comparison": _rows(comparison),
        "charts": {
            "distribution": to_vega_spec(quartile_distribution_chart(distribution)),
            "top_sell_out": to_vega_spec(top_sell_out_chart(top_sell_out)),
            "top_avg_ticket": to_vega_spec(top_avg_ticket_chart(top_ticket)),
            "comparison": to_vega_spec(sell_in_vs_sell_out_chart(comparison)),
        },
    }
