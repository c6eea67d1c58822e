from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional

from .costbasis import weighted_cost_basis
from .fx import usable_rate
from .keys import index_price_table, parse_asset_type
from .merge import merge_positions
from .models import AssetType, Evaluation, MergedPosition, RawPosition, SortMode
from .sorting import parse_sort_mode, sort_rows
from .summary import summarize
from .valuation import display_currency_for, lookup_price, value_position

log = logging.getLogger(__name__)


def _matches(position: MergedPosition, type_filter: Optional[AssetType], search: str) -> bool:
    if type_filter is not None and position.asset_type != type_filter:
        return False
    if not search:
        return True
    return search in position.ticker.lower() or search in (position.name or "").lower()


def filter_positions(
    positions: Iterable[MergedPosition],
    type_filter=None,
    search: Optional[str] = None,
) -> List[MergedPosition]:
    """Keep positions of one asset type and/or whose ticker or name contains `search`."""
    wanted = None
    if type_filter not in (None, "", "Todos", "all"):
        wanted = parse_asset_type(type_filter)
        if wanted is None:
            raise ValueError(f"Invalid asset type filter: {type_filter}")
    needle = (search or "").strip().lower()
    return [p for p in positions if _matches(p, wanted, needle)]


def evaluate(
    raw_positions: Iterable[RawPosition],
    price_table: Mapping[str, float],
    rate: Optional[float],
    display_in_ars: bool = True,
    merge: bool = True,
    sort_mode=SortMode.TICKER_ASC,
    type_filter=None,
    search: Optional[str] = None,
) -> Evaluation:
    """
    Value a portfolio against one price snapshot and one CCL rate.

    Pure function of its arguments: the price table is re-keyed into a new
    mapping and never mutated. Rows without a price come back pending and
    stay out of the current-value totals.
    """
    raw = list(raw_positions)
    mode = parse_sort_mode(sort_mode)
    rate = usable_rate(rate)
    currency = display_currency_for(display_in_ars)
    prices = index_price_table(price_table)

    cost_basis = weighted_cost_basis(raw, rate=rate)
    positions = merge_positions(raw, merge=merge, cost_basis=cost_basis, rate=rate)
    positions = filter_positions(positions, type_filter=type_filter, search=search)

    valued = [value_position(p, lookup_price(prices, p), currency, rate) for p in positions]
    rows, summary = summarize(sort_rows(valued, mode), currency)
    if summary.pending_count:
        log.debug("%d of %d rows pending a market price", summary.pending_count, len(rows))

    return Evaluation(
        rows=tuple(rows),
        summary=summary,
        rate=rate,
        merged=merge,
        sort_mode=mode,
        filters={"type": type_filter, "search": search},
    )
