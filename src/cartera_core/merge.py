from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional

from .costbasis import CostBasis, weighted_cost_basis
from .keys import AssetKey, asset_key
from .models import MergedPosition, RawPosition


def _latest_date(dates: Iterable[Optional[date]]) -> Optional[date]:
    known = [d for d in dates if d is not None]
    return max(known) if known else None


def merge_positions(
    positions: Iterable[RawPosition],
    merge: bool = True,
    cost_basis: Optional[Mapping[AssetKey, CostBasis]] = None,
    rate: Optional[float] = None,
) -> List[MergedPosition]:
    """
    Collapse purchase records of the same ticker and type into one position.

    Grouping and the cost-basis lookup share `asset_key`, so a bucket always
    finds its own weighted price. Groups keep the order in which their first
    record appears. With `merge=False` every record passes through with its
    own lot cost.

    Representative fields of a merged group: latest purchase date, favorite
    if any record is, first non-empty name.
    """
    positions = list(positions)
    if not merge:
        return [MergedPosition.from_raw(p) for p in positions]

    if cost_basis is None:
        cost_basis = weighted_cost_basis(positions, rate=rate)

    groups: Dict[AssetKey, List[RawPosition]] = {}
    for p in positions:
        groups.setdefault(asset_key(p.asset_type, p.ticker), []).append(p)

    out: List[MergedPosition] = []
    for key, items in groups.items():
        basis = cost_basis.get(key)
        if basis is None:
            basis = weighted_cost_basis(items, rate=rate)[key]
        out.append(
            MergedPosition(
                ticker=key.ticker,
                asset_type=key.asset_type,
                quantity=basis.quantity,
                cost_basis_price=basis.price,
                cost_currency=basis.currency,
                purchase_date=_latest_date(p.purchase_date for p in items),
                is_favorite=any(p.is_favorite for p in items),
                name=next((p.name for p in items if p.name), ""),
                allocation_seed=sum(float(p.allocation or 0.0) for p in items),
                source_ids=tuple(p.id for p in items),
            )
        )
    return out
