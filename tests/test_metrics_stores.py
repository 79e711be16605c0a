"""Tests for the aggregation functions."""

import itertools
import json

import pytest

from analytics.data import StoreRecord, process_rows, records_to_frame
from analytics.filters import QueryState
from analytics.metrics_stores import (
    comparison_series,
    compute_dashboard,
    compute_kpis,
    filter_stores,
    quartile_distribution,
    sort_table,
    top_by_avg_ticket,
    top_by_sell_out,
)
from tests.conftest import make_row


def names(records):
    return [r.name for r in records]


class TestFilterStores:
    """Tests for filter_stores."""

    def test_empty_query_keeps_everything(self, records):
        assert filter_stores(records, QueryState()) == records

    def test_search_is_case_insensitive_substring(self, records):
        assert names(filter_stores(records, QueryState(search_text="SHOPPING"))) == ["Shopping Centro", "Shopping Norte"]

    def test_placeholder_names_are_searchable(self, records):
        assert names(filter_stores(records, QueryState(search_text="loja"))) == ["Loja Praia", "Loja 6"]

    def test_quartile_filter(self, records):
        assert names(filter_stores(records, QueryState(quartile=2))) == ["Centro Histórico", "Shopping Norte"]

    def test_conditions_are_conjunctive(self, records):
        assert names(filter_stores(records, QueryState(search_text="shopping", quartile=2))) == ["Shopping Norte"]

    def test_no_match(self, records):
        assert filter_stores(records, QueryState(search_text="inexistente")) == []

    def test_input_not_mutated(self, records):
        before = list(records)
        filter_stores(records, QueryState(quartile=1))
        assert records == before


class TestSortTable:
    """Tests for sort_table."""

    def test_quartile_desc_then_sell_out_desc(self, records):
        assert names(sort_table(records)) == [
            "Shopping Centro",
            "Loja 6",
            "Aeroporto",
            "Centro Histórico",
            "Shopping Norte",
            "Loja Praia",
        ]

    def test_pairwise_ordering(self, records):
        table = sort_table(records)
        for a, b in itertools.combinations(table, 2):
            if a.quartile == b.quartile:
                assert a.sell_out >= b.sell_out
            else:
                assert a.quartile > b.quartile

    def test_ties_keep_input_order(self):
        records = process_rows([make_row(n, 60000) for n in ["C", "A", "B"]])
        assert names(sort_table(records)) == ["C", "A", "B"]

    def test_does_not_sort_in_place(self, records):
        before = list(records)
        sort_table(records)
        assert records == before


class TestComputeKpis:
    """Tests for compute_kpis."""

    def test_totals_and_average(self, records):
        kpis = compute_kpis(records)
        assert kpis.total_sell_in == pytest.approx(65000)
        assert kpis.total_sell_out == pytest.approx(465500.51)
        assert kpis.avg_ticket == pytest.approx(312.4 / 6)
        assert kpis.stores_count == 6

    def test_zero_sell_in(self, records):
        kpis = compute_kpis(records)
        assert kpis.zero_sell_in_count == 2
        assert names(kpis.zero_sell_in) == ["Loja Praia", "Centro Histórico"]

    def test_empty_set_is_zeroed(self):
        kpis = compute_kpis([])
        assert kpis.avg_ticket == 0
        assert kpis.total_sell_in == 0
        assert kpis.total_sell_out == 0
        assert kpis.zero_sell_in == []
        assert kpis.zero_sell_in_count == 0


class TestRankings:
    """Tests for top-N rankings and the comparison series."""

    def test_top_sell_out(self, records):
        assert names(top_by_sell_out(records, 3)) == ["Shopping Centro", "Loja 6", "Aeroporto"]

    def test_top_avg_ticket(self, records):
        assert names(top_by_avg_ticket(records, 2)) == ["Loja 6", "Aeroporto"]

    def test_default_sizes_truncate(self):
        records = process_rows([make_row(f"L{i}", i * 1000, avg_ticket=i) for i in range(20)])
        assert len(top_by_sell_out(records)) == 15
        assert len(top_by_avg_ticket(records)) == 10
        assert top_by_sell_out(records)[0].name == "L19"

    def test_ties_keep_input_order(self):
        records = process_rows([make_row(n, 1000, avg_ticket=10) for n in ["B", "A", "C"]])
        assert names(top_by_sell_out(records)) == ["B", "A", "C"]
        assert names(top_by_avg_ticket(records)) == ["B", "A", "C"]

    def test_short_input(self, records):
        assert len(top_by_sell_out(records[:2])) == 2
        assert top_by_avg_ticket([]) == []

    def test_comparison_series(self, records):
        series = comparison_series(records)
        assert [r.sell_out for r in series] == sorted((r.sell_out for r in records), reverse=True)


class TestQuartileDistribution:
    """Tests for quartile_distribution."""

    def test_counts(self, records):
        assert quartile_distribution(records) == {1: 1, 2: 2, 3: 1, 4: 2}

    def test_sums_to_record_count(self, records):
        assert sum(quartile_distribution(records).values()) == len(records)

    def test_empty(self):
        assert quartile_distribution([]) == {1: 0, 2: 0, 3: 0, 4: 0}


class TestComputeDashboard:
    """Tests for the combined payload."""

    def test_end_to_end_two_stores(self):
        records = process_rows(
            [
                {"NOME DA LOJA": "A", "VL. SELL-OUT": "R$ 90.000,00"},
                {"NOME DA LOJA": "B", "VL. SELL-OUT": 40000},
            ]
        )
        assert [r.quartile for r in records] == [3, 1]
        assert quartile_distribution(records) == {1: 1, 2: 0, 3: 1, 4: 0}
        assert names(filter_stores(records, QueryState(quartile=1))) == ["B"]

    def test_distribution_ignores_filters(self, records):
        payload = compute_dashboard(records, QueryState(search_text="aeroporto"))
        assert [d["stores"] for d in payload["distribution"]] == [1, 2, 1, 2]
        assert sum(d["stores"] for d in payload["distribution"]) == len(records)
        assert [row["name"] for row in payload["table"]] == ["Aeroporto"]

    def test_filtered_views(self, records):
        payload = compute_dashboard(records, QueryState(quartile=4))
        assert payload["query"] == {"search_text": "", "quartile": 4}
        assert payload["kpis"]["stores_count"] == 2
        assert payload["kpis"]["total_sell_in"] == pytest.approx(42000)
        assert [row["name"] for row in payload["top_sell_out"]] == ["Shopping Centro", "Loja 6"]
        assert [row["name"] for row in payload["top_avg_ticket"]] == ["Loja 6", "Shopping Centro"]
        assert [row["name"] for row in payload["comparison"]] == ["Shopping Centro", "Loja 6"]
        assert payload["zero_sell_in"] == []

    def test_no_matches_yields_empty_views(self, records):
        payload = compute_dashboard(records, QueryState(search_text="zzz"))
        assert payload["table"] == []
        assert payload["top_sell_out"] == []
        assert payload["kpis"]["avg_ticket"] == 0
        assert payload["kpis"]["zero_sell_in_count"] == 0

    def test_payload_is_json_serializable(self, records):
        payload = compute_dashboard(records, QueryState())
        decoded = json.loads(json.dumps(payload))
        assert set(decoded["charts"]) == {"distribution", "top_sell_out", "top_avg_ticket", "comparison"}
        assert decoded["table"][0]["id"] == "store-0"

    def test_empty_dataset(self):
        payload = compute_dashboard([], QueryState())
        assert payload["kpis"]["stores_count"] == 0
        assert [d["stores"] for d in payload["distribution"]] == [0, 0, 0, 0]

    def test_same_inputs_same_output(self, records):
        query = QueryState(search_text="centro")
        first = compute_dashboard(records, query)
        second = compute_dashboard(records, query)
        assert first["table"] == second["table"]
        assert first["kpis"] == second["kpis"]

    def test_records_built_directly(self):
        records = [StoreRecord(id="x", name="Direct", sell_out=85000, avg_ticket=10)]
        payload = compute_dashboard(records, QueryState())
        assert payload["table"][0]["quartile"] == 3

    def test_payload_table_builds_display_frame(self, records):
        payload = compute_dashboard(records, QueryState(quartile=2))
        df = records_to_frame(payload["table"], display=True)
        assert list(df["Loja"]) == ["Centro Histórico", "Shopping Norte"]
        assert list(df["Quartil"]) == [2, 2]

    def test_chart_specs_follow_filtered_views(self, records):
        payload = compute_dashboard(records, QueryState(search_text="shopping"))
        for key in ("top_sell_out", "top_avg_ticket"):
            spec = payload["charts"][key]
            values = next(iter(spec["datasets"].values()))
            assert [v["name"] for v in values] == [row["name"] for row in payload[key]]
        comparison = next(iter(payload["charts"]["comparison"]["datasets"].values()))
        assert len(comparison) == 2 * len(payload["comparison"])
