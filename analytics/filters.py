from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Optional

QUARTILES = (1, 2, 3, 4)


@dataclass(frozen=True)
class QueryState:
    search_text: str = ""
    quartile: Optional[int] = None


def _as_quartile(value: object) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip().lower() in {"", "all", "todos"}:
        return None
    try:
        quartile = int(value)
    except (TypeError, ValueError):
        return None
    return quartile if quartile in QUARTILES else None


def normalize_query(raw: dict) -> QueryState:
    """Build a QueryState from loosely typed UI input.

    The search text is kept verbatim (surrounding spaces take part in the
    substring match). Unknown or out-of-range quartile values mean "no
    quartile filter".
    """
    search_text = str(raw.get("search_text") or "")
    return QueryState(search_text=search_text, quartile=_as_quartile(raw.get("quartile")))


def format_query_summary(query: QueryState) -> str:
    """HTML chips describing the active query; user text is escaped."""
    name_chip = f"Loja: “{html.escape(query.search_text)}”" if query.search_text else "Loja: Todas"
    quartile_chip = f"Quartil: Q{query.quartile}" if query.quartile else "Quartil: Todos"
    return "".join([f"<span class='chip'>{txt}</span>" for txt in [name_chip, quartile_chip]])
