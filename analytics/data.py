from __future__ import annotations

import io
import logging
import re
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import BinaryIO, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)

ACCEPTED_EXTENSIONS = ("xlsx", "xls")

NAME_COLUMN = "NOME DA LOJA"

SOURCE_COLUMNS = {
    "META SELL-IN": "target_sell_in",
    "VL. SELL-IN": "sell_in",
    "% IN": "pct_in",
    "META SELL-OUT": "target_sell_out",
    "VL. SELL-OUT": "sell_out",
    "% OUT": "pct_out",
    "% HVN": "pct_brand_mix",
    "TC": "transaction_count",
    "TM": "avg_ticket",
    "VL. IFOOD": "secondary_channel_value",
}
NUMERIC_FIELDS = tuple(SOURCE_COLUMNS.values())

# Inclusive upper bound of sell-out per quartile; anything above the last is Q4.
QUARTILE_UPPER_BOUNDS = (50000.0, 80000.0, 100000.0)
QUARTILE_LABELS = {
    1: "Q1 (≤50k)",
    2: "Q2 (50k-80k)",
    3: "Q3 (80k-100k)",
    4: "Q4 (>100k)",
}

DISPLAY_COLUMNS = {
    "name": "Loja",
    "sell_in": "Sell-In",
    "pct_in": "% IN",
    "sell_out": "Sell-Out",
    "pct_out": "% OUT",
    "avg_ticket": "Ticket Médio",
    "quartile": "Quartil",
}

WorkbookSource = Union[str, Path, bytes, BinaryIO]

_CURRENCY_NOISE = re.compile(r"[R$\s.]")
_LEADING_FLOAT = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


class AnalyticsError(Exception):
    """Base error for the import layer."""


class EmptyImportError(AnalyticsError):
    pass


class WorkbookReadError(AnalyticsError):
    pass


def _is_missing(value: object) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def parse_currency(value: object) -> float:
    """Parse a pt-BR formatted number such as "R$ 1.234,56" -> 1234.56.

    Numbers pass through unchanged. Missing or unparseable values become 0.0,
    so one bad cell never aborts an import.
    """
    if _is_missing(value):
        return 0.0
    if isinstance(value, (int, float, Decimal, np.integer, np.floating)) and not isinstance(value, (bool, np.bool_)):
        return float(value)
    cleaned = _CURRENCY_NOISE.sub("", str(value)).replace(",", ".", 1)
    match = _LEADING_FLOAT.match(cleaned)
    if match is None:
        if cleaned:
            logger.debug("Unparseable numeric value %r, using 0", value)
        return 0.0
    return float(match.group(0))


def determine_quartile(sell_out: float) -> int:
    for quartile, upper in enumerate(QUARTILE_UPPER_BOUNDS, start=1):
        if sell_out <= upper:
            return quartile
    return len(QUARTILE_UPPER_BOUNDS) + 1


def _store_name(value: object, index: int) -> str:
    if _is_missing(value) or not str(value).strip():
        return f"Loja {index + 1}"
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    return str(value).strip()


@dataclass(frozen=True)
class StoreRecord:
    id: str
    name: str
    target_sell_in: float = 0.0
    sell_in: float = 0.0
    pct_in: float = 0.0
    target_sell_out: float = 0.0
    sell_out: float = 0.0
    pct_out: float = 0.0
    pct_brand_mix: float = 0.0
    transaction_count: float = 0.0
    avg_ticket: float = 0.0
    secondary_channel_value: float = 0.0
    quartile: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "quartile", determine_quartile(self.sell_out))

    @classmethod
    def from_row(cls, row: Mapping[str, object], index: int) -> "StoreRecord":
        values = {name: parse_currency(row.get(label)) for label, name in SOURCE_COLUMNS.items()}
        return cls(id=f"store-{index}", name=_store_name(row.get(NAME_COLUMN), index), **values)

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def process_rows(rows: Iterable[Mapping[str, object]]) -> List[StoreRecord]:
    records = [StoreRecord.from_row(row, index) for index, row in enumerate(rows)]
    logger.info("Processed %d store rows", len(records))
    return records


# ---------------- Workbook import ----------------
def drop_duplicate_columns(df: pd.DataFrame) -> pd.DataFrame:
    return df.loc[:, ~df.columns.duplicated()]


def read_store_rows(source: WorkbookSource) -> List[Dict[str, object]]:
    """Read the first sheet of a workbook into raw row dicts (NaN -> None)."""
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    try:
        df = pd.read_excel(source, sheet_name=0)
    except Exception as exc:
        raise WorkbookReadError(f"Could not read workbook: {exc}") from exc
    df.columns = [str(c).strip() for c in df.columns]
    df = drop_duplicate_columns(df)
    df = df.dropna(how="all")
    df = df.astype(object).where(df.notna(), None)
    rows = df.to_dict(orient="records")
    logger.info("Read %d rows from workbook (%d columns)", len(rows), len(df.columns))
    missing = [c for c in [NAME_COLUMN, *SOURCE_COLUMNS] if c not in df.columns]
    if rows and missing:
        logger.warning("Workbook is missing expected columns: %s", ", ".join(missing))
    return rows


def load_store_records(source: WorkbookSource) -> List[StoreRecord]:
    rows = read_store_rows(source)
    if not rows:
        raise EmptyImportError("O arquivo parece estar vazio ou em formato inválido.")
    return process_rows(rows)


# ---------------- Display helpers ----------------
def records_to_frame(
    records: Sequence[Union[StoreRecord, Mapping[str, object]]], *, display: bool = False
) -> pd.DataFrame:
    """Tabular view of records, or of their dict form as found in dashboard payloads."""
    columns = ["id", "name", *NUMERIC_FIELDS, "quartile"]
    rows = [r if isinstance(r, Mapping) else r.to_dict() for r in records]
    df = pd.DataFrame(rows, columns=columns)
    if display:
        df = df[list(DISPLAY_COLUMNS)].rename(columns=DISPLAY_COLUMNS)
    return df


def _ptbr_number(value: float, decimals: int) -> str:
    return f"{value:,.{decimals}f}".replace(",", "X").replace(".", ",").replace("X", ".")


def format_currency_brl(value: Optional[float]) -> str:
    if _is_missing(value):
        return "N/A"
    number = float(value)
    sign = "-" if number < 0 else ""
    return f"{sign}R$ {_ptbr_number(abs(number), 2)}"


def format_percent(value: Optional[float], decimals: int = 1) -> str:
    if _is_missing(value):
        return "N/A"
    return f"{_ptbr_number(float(value), decimals)}%"


def format_currency_columns(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    formatted = df.copy()
    for c in cols:
        if c in formatted.columns:
            formatted[c] = formatted[c].apply(format_currency_brl)
    return formatted


def format_percent_columns(df: pd.DataFrame, cols: Iterable[str], decimals: int = 1) -> pd.DataFrame:
    formatted = df.copy()
    for c in cols:
        if c in formatted.columns:
            formatted[c] = formatted[c].apply(lambda v: format_percent(v, decimals))
    return formatted
