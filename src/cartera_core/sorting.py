from __future__ import annotations

from datetime import date
from typing import Callable, Dict, Iterable, List, Tuple

from .keys import strip_diacritics
from .models import SortMode, ValuedPosition


def _ticker_key(row: ValuedPosition) -> Tuple[str, str]:
    # Primary level ignores accents and case, like es-AR localeCompare.
    t = row.position.ticker or ""
    return strip_diacritics(t).casefold(), t


def _gain_percent(row: ValuedPosition) -> float:
    return row.change_percent or 0.0


def _gain_absolute(row: ValuedPosition) -> float:
    return row.change_absolute or 0.0


def _holding_value(row: ValuedPosition) -> float:
    return row.current_value or 0.0


def _purchase_date(row: ValuedPosition) -> date:
    return row.position.purchase_date or date.min


_SORT_KEYS: Dict[SortMode, Tuple[Callable[[ValuedPosition], object], bool]] = {
    SortMode.TICKER_ASC: (_ticker_key, False),
    SortMode.TICKER_DESC: (_ticker_key, True),
    SortMode.GAIN_PERCENT_ASC: (_gain_percent, False),
    SortMode.GAIN_PERCENT_DESC: (_gain_percent, True),
    SortMode.GAIN_ABSOLUTE_ASC: (_gain_absolute, False),
    SortMode.GAIN_ABSOLUTE_DESC: (_gain_absolute, True),
    SortMode.HOLDING_VALUE_ASC: (_holding_value, False),
    SortMode.HOLDING_VALUE_DESC: (_holding_value, True),
    SortMode.DATE_ASC: (_purchase_date, False),
    SortMode.DATE_DESC: (_purchase_date, True),
}


def parse_sort_mode(value) -> SortMode:
    if isinstance(value, SortMode):
        return value
    key = (value or "").strip().lower()
    for mode in SortMode:
        if mode.value.lower() == key:
            return mode
    raise ValueError(f"Invalid sort mode: {value}")


def sort_rows(rows: Iterable[ValuedPosition], mode: SortMode = SortMode.TICKER_ASC) -> List[ValuedPosition]:
    """
    Favorites first, then by the selected key. Both passes are stable, so
    ties keep their incoming order. Pending rows count as 0 for value keys.
    """
    key, reverse = _SORT_KEYS[parse_sort_mode(mode)]
    ordered = sorted(rows, key=key, reverse=reverse)
    return sorted(ordered, key=lambda r: not r.position.is_favorite)
