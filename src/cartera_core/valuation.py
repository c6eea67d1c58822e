from __future__ import annotations

import logging
import math
from typing import Mapping, Optional, Tuple

from .fx import convert, native_currency
from .keys import AssetKey, asset_key
from .models import Currency, MergedPosition, ValuedPosition

log = logging.getLogger(__name__)


def _finite_or_zero(value) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    return v if math.isfinite(v) else 0.0


def display_currency_for(display_in_ars: bool) -> Currency:
    return Currency.ARS if display_in_ars else Currency.USD


def adjust_unit_prices(
    position: MergedPosition,
    market_price: Optional[float],
    display_currency: Currency,
    rate: Optional[float],
) -> Tuple[Optional[float], float]:
    """
    Per-unit market price and cost basis expressed in the display currency.

    The market price comes in the feed's native currency for the asset type
    (USD for crypto, ARS for local stocks and CEDEARs); the cost basis comes
    in the currency it was recorded in. Without a usable rate both values
    pass through unconverted.
    """
    unit_cost = convert(_finite_or_zero(position.cost_basis_price), position.cost_currency, display_currency, rate)
    if market_price is None:
        return None, unit_cost
    unit_market = convert(_finite_or_zero(market_price), native_currency(position.asset_type), display_currency, rate)
    return unit_market, unit_cost


def value_position(
    position: MergedPosition,
    market_price: Optional[float],
    display_currency: Currency,
    rate: Optional[float],
) -> ValuedPosition:
    quantity = _finite_or_zero(position.quantity)
    if quantity < 0:
        quantity = 0.0
    unit_market, unit_cost = adjust_unit_prices(position, market_price, display_currency, rate)
    if unit_cost < 0:
        unit_cost = 0.0

    if unit_market is None:
        log.debug("No market price for %s %s; row pending", position.asset_type.value, position.ticker)
        return ValuedPosition(
            position=position,
            display_currency=display_currency,
            unit_market_price=None,
            unit_cost_basis=unit_cost,
            change_absolute=None,
            change_percent=None,
            current_value=None,
            invested=unit_cost * quantity,
        )

    diff = unit_market - unit_cost
    pct = diff / unit_cost * 100.0 if unit_cost != 0 else 0.0
    return ValuedPosition(
        position=position,
        display_currency=display_currency,
        unit_market_price=unit_market,
        unit_cost_basis=unit_cost,
        change_absolute=diff * quantity,
        change_percent=pct,
        current_value=unit_market * quantity,
        invested=unit_cost * quantity,
    )


def lookup_price(prices: Mapping[AssetKey, float], position: MergedPosition) -> Optional[float]:
    return prices.get(asset_key(position.asset_type, position.ticker))
