from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Tuple

from .models import Currency, PortfolioSummary, ValuedPosition


def summarize(rows: Iterable[ValuedPosition], currency: Currency) -> Tuple[List[ValuedPosition], PortfolioSummary]:
    """
    Portfolio totals plus each row's share of the current value.

    Pending rows are left out of the current value (and get no allocation)
    but their cost still counts as invested, since the cost basis is known.
    """
    rows = list(rows)
    total_invested = 0.0
    total_current = 0.0
    pending = 0
    for r in rows:
        total_invested += r.invested
        if r.pending:
            pending += 1
            continue
        total_current += r.current_value

    allocated: List[ValuedPosition] = []
    for r in rows:
        if r.pending:
            allocated.append(r)
            continue
        pct = r.current_value / total_current * 100.0 if total_current != 0 else 0.0
        allocated.append(replace(r, allocation_percent=pct))

    change = total_current - total_invested
    change_pct = change / total_invested * 100.0 if total_invested > 0 else 0.0
    summary = PortfolioSummary(
        currency=currency,
        total_invested=total_invested,
        total_current_value=total_current,
        total_change_absolute=change,
        total_change_percent=change_pct,
        pending_count=pending,
    )
    return allocated, summary
