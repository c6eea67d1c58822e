from __future__ import annotations

import math
from typing import Optional

from .models import AssetType, Currency


def usable_rate(rate: Optional[float]) -> Optional[float]:
    """Return the CCL rate if it can be used for conversion, else None."""
    if rate is None:
        return None
    try:
        r = float(rate)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(r) or r <= 0:
        return None
    return r


def convert(value: float, from_currency: Currency, to_currency: Currency, rate: Optional[float]) -> float:
    """
    Convert an amount between USD and ARS using the CCL rate (ARS per USD).

    Identity when both currencies match, the value is zero, or there is no
    usable rate yet.
    """
    r = usable_rate(rate)
    if not value or r is None or from_currency == to_currency:
        return value
    if from_currency == Currency.USD and to_currency == Currency.ARS:
        return value * r
    if from_currency == Currency.ARS and to_currency == Currency.USD:
        return value / r
    raise ValueError(f"Unsupported currency pair: {from_currency} -> {to_currency}")


# Currency each price feed quotes in. Every AssetType must appear here.
NATIVE_CURRENCY = {
    AssetType.CRYPTO: Currency.USD,
    AssetType.STOCK: Currency.ARS,
    AssetType.DEPOSITARY_RECEIPT: Currency.ARS,
}


def native_currency(asset_type: AssetType) -> Currency:
    try:
        return NATIVE_CURRENCY[asset_type]
    except KeyError:
        raise ValueError(f"Unknown asset type: {asset_type!r}") from None
