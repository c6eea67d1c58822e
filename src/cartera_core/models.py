from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class AssetType(str, Enum):
    CRYPTO = "Cripto"
    STOCK = "Acción"
    DEPOSITARY_RECEIPT = "CEDEAR"


class Currency(str, Enum):
    USD = "USD"
    ARS = "ARS"


class SortMode(str, Enum):
    TICKER_ASC = "tickerAsc"
    TICKER_DESC = "tickerDesc"
    GAIN_PERCENT_ASC = "gainPercentAsc"
    GAIN_PERCENT_DESC = "gainPercentDesc"
    GAIN_ABSOLUTE_ASC = "gainAbsoluteAsc"
    GAIN_ABSOLUTE_DESC = "gainAbsoluteDesc"
    HOLDING_VALUE_ASC = "holdingValueAsc"
    HOLDING_VALUE_DESC = "holdingValueDesc"
    DATE_ASC = "dateAsc"
    DATE_DESC = "dateDesc"


@dataclass(frozen=True)
class RawPosition:
    """One purchase record as stored by the persistence layer."""

    id: str
    ticker: str
    asset_type: AssetType
    quantity: float
    cost_basis_price: float
    cost_currency: Currency
    purchase_date: Optional[date] = None
    is_favorite: bool = False
    name: str = ""
    allocation: float = 0.0


@dataclass(frozen=True)
class MergedPosition:
    """
    Position fed to the valuation step.

    With merge mode on, one per (ticker, type) bucket with pooled quantity and
    weighted cost; with merge mode off, a 1:1 copy of a RawPosition.
    """

    ticker: str
    asset_type: AssetType
    quantity: float
    cost_basis_price: float
    cost_currency: Currency
    purchase_date: Optional[date]
    is_favorite: bool
    name: str = ""
    allocation_seed: float = 0.0
    source_ids: Tuple[str, ...] = ()

    @property
    def id(self) -> str:
        if len(self.source_ids) == 1:
            return self.source_ids[0]
        return f"{self.ticker.upper()}-{self.asset_type.value}"

    @classmethod
    def from_raw(cls, raw: RawPosition) -> "MergedPosition":
        return cls(
            ticker=raw.ticker,
            asset_type=raw.asset_type,
            quantity=raw.quantity,
            cost_basis_price=raw.cost_basis_price,
            cost_currency=raw.cost_currency,
            purchase_date=raw.purchase_date,
            is_favorite=raw.is_favorite,
            name=raw.name,
            allocation_seed=raw.allocation,
            source_ids=(raw.id,),
        )


@dataclass(frozen=True)
class ValuedPosition:
    position: MergedPosition
    display_currency: Currency
    unit_market_price: Optional[float]
    unit_cost_basis: float
    change_absolute: Optional[float]
    change_percent: Optional[float]
    current_value: Optional[float]
    invested: float = 0.0
    allocation_percent: Optional[float] = None

    @property
    def pending(self) -> bool:
        return self.unit_market_price is None

    def to_dict(self) -> Dict[str, Any]:
        p = self.position
        return {
            "id": p.id,
            "ticker": p.ticker,
            "name": p.name,
            "type": p.asset_type.value,
            "quantity": p.quantity,
            "cost_basis_price": p.cost_basis_price,
            "cost_currency": p.cost_currency.value,
            "purchase_date": p.purchase_date.isoformat() if p.purchase_date else None,
            "is_favorite": p.is_favorite,
            "source_ids": list(p.source_ids),
            "display_currency": self.display_currency.value,
            "unit_market_price": self.unit_market_price,
            "unit_cost_basis": self.unit_cost_basis,
            "change_absolute": self.change_absolute,
            "change_percent": self.change_percent,
            "current_value": self.current_value,
            "invested": self.invested,
            "allocation_percent": self.allocation_percent,
            "pending": self.pending,
        }


@dataclass(frozen=True)
class PortfolioSummary:
    currency: Currency
    total_invested: float
    total_current_value: float
    total_change_absolute: float
    total_change_percent: float
    pending_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currency": self.currency.value,
            "total_invested": self.total_invested,
            "total_current_value": self.total_current_value,
            "total_change_absolute": self.total_change_absolute,
            "total_change_percent": self.total_change_percent,
            "pending_count": self.pending_count,
        }


@dataclass(frozen=True)
class Evaluation:
    rows: Tuple[ValuedPosition, ...]
    summary: PortfolioSummary
    rate: Optional[float] = None
    merged: bool = True
    sort_mode: SortMode = SortMode.TICKER_ASC
    filters: Dict[str, Any] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.rows)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows": [r.to_dict() for r in self.rows],
            "summary": self.summary.to_dict(),
            "rate": self.rate,
            "merged": self.merged,
            "sort": self.sort_mode.value,
            "count": self.count,
        }
