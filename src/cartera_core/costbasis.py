from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .fx import convert, native_currency, usable_rate
from .keys import AssetKey, asset_key
from .models import Currency, RawPosition

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CostBasis:
    price: float
    currency: Currency
    quantity: float


def is_valid_contribution(p: RawPosition) -> bool:
    try:
        q = float(p.quantity)
        c = float(p.cost_basis_price)
    except (TypeError, ValueError):
        return False
    return math.isfinite(q) and math.isfinite(c) and q > 0 and c > 0


def _bucket_currency(key: AssetKey, items: List[RawPosition]) -> Currency:
    currencies = {p.cost_currency for p in items}
    if len(currencies) == 1:
        return currencies.pop()
    return native_currency(key.asset_type)


def weighted_cost_basis(positions: Iterable[RawPosition], rate: Optional[float] = None) -> Dict[AssetKey, CostBasis]:
    """
    Quantity-weighted average purchase price per (type, ticker) bucket.

    Records with a non-positive or non-finite quantity/cost contribute nothing.
    A bucket whose records were bought in a single currency averages in that
    currency; mixed buckets are averaged in the asset type's native currency.
    """
    by_key: Dict[AssetKey, List[RawPosition]] = {}
    for p in positions:
        bucket = by_key.setdefault(asset_key(p.asset_type, p.ticker), [])
        if not is_valid_contribution(p):
            log.debug("Skipping invalid record %s (%s) in cost basis", p.id, p.ticker)
            continue
        bucket.append(p)

    out: Dict[AssetKey, CostBasis] = {}
    for key, items in by_key.items():
        currency = _bucket_currency(key, items)
        if usable_rate(rate) is None and any(p.cost_currency != currency for p in items):
            log.warning(
                "No usable CCL rate to pool %s %s bought in both currencies; cost basis mixes ARS and USD",
                key.asset_type.value,
                key.ticker,
            )
        total_qty = 0.0
        total_cost = 0.0
        for p in items:
            total_qty += p.quantity
            total_cost += convert(p.cost_basis_price, p.cost_currency, currency, rate) * p.quantity
        price = total_cost / total_qty if total_qty > 0 else 0.0
        out[key] = CostBasis(price=price, currency=currency, quantity=total_qty)
    return out
