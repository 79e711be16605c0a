"""Pytest configuration and fixtures."""

import pytest

from analytics.data import process_rows


def make_row(name, sell_out, sell_in=10000, avg_ticket=50, **extra):
    row = {
        "NOME DA LOJA": name,
        "META SELL-IN": 20000,
        "VL. SELL-IN": sell_in,
        "% IN": 50,
        "META SELL-OUT": 90000,
        "VL. SELL-OUT": sell_out,
        "% OUT": 80,
        "% HVN": 12,
        "TC": 1000,
        "TM": avg_ticket,
        "VL. IFOOD": 1500,
    }
    row.update(extra)
    return row


@pytest.fixture
def raw_rows():
    """Mixed numeric and pt-BR formatted rows, one per quartile plus extras."""
    return [
        make_row("Shopping Centro", "R$ 120.000,00", sell_in="R$ 30.000,00", avg_ticket="R$ 45,90"),
        make_row("Loja Praia", 40000, sell_in=0, avg_ticket=38.5),
        make_row("Aeroporto", "R$ 85.500,50", sell_in=15000, avg_ticket=62),
        make_row("Centro Histórico", 60000, sell_in="0", avg_ticket=41),
        make_row("Shopping Norte", 60000, sell_in=8000, avg_ticket=55),
        make_row(None, 100000.01, sell_in=12000, avg_ticket=70),
    ]


@pytest.fixture
def records(raw_rows):
    return process_rows(raw_rows)
