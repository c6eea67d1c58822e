from __future__ import annotations

import logging
import math
import unicodedata
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from .models import AssetType

log = logging.getLogger(__name__)


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _fold(value: str) -> str:
    return strip_diacritics(value).strip().casefold()


_TYPE_ALIASES: Dict[str, AssetType] = {
    "cripto": AssetType.CRYPTO,
    "crypto": AssetType.CRYPTO,
    "accion": AssetType.STOCK,
    "acciones": AssetType.STOCK,
    "stock": AssetType.STOCK,
    "cedear": AssetType.DEPOSITARY_RECEIPT,
    "cedears": AssetType.DEPOSITARY_RECEIPT,
    "depositaryreceipt": AssetType.DEPOSITARY_RECEIPT,
}


def parse_asset_type(value) -> Optional[AssetType]:
    """Map a stored or user-entered type label ("Acción", "accion", "CEDEAR"...) to AssetType."""
    if isinstance(value, AssetType):
        return value
    if value is None:
        return None
    return _TYPE_ALIASES.get(_fold(str(value)).replace(" ", "").replace("_", ""))


@dataclass(frozen=True)
class AssetKey:
    """Identity of a (type, ticker) bucket. Build it with `asset_key` only."""

    asset_type: AssetType
    ticker: str

    @property
    def market_key(self) -> str:
        return f"{self.asset_type.value}-{self.ticker}"

    @property
    def cost_key(self) -> str:
        return f"{self.ticker}-{strip_diacritics(self.asset_type.value)}"


def asset_key(asset_type: AssetType, ticker: str) -> AssetKey:
    return AssetKey(asset_type=asset_type, ticker=(ticker or "").strip().upper())


def market_key(asset_type: AssetType, ticker: str) -> str:
    return asset_key(asset_type, ticker).market_key


def cost_key(asset_type: AssetType, ticker: str) -> str:
    return asset_key(asset_type, ticker).cost_key


def index_price_table(prices: Mapping[str, float]) -> Dict[AssetKey, float]:
    """
    Re-key a `<type>-<TICKER>` price table by AssetKey.

    Type labels are folded the same way as everywhere else, so "Accion-GGAL"
    and "Acción-ggal" land on one key. Entries with an unknown type or a
    non-finite price are dropped (their rows stay pending).
    """
    out: Dict[AssetKey, float] = {}
    for raw_key, raw_price in (prices or {}).items():
        type_label, sep, ticker = str(raw_key).partition("-")
        asset_type = parse_asset_type(type_label) if sep else None
        if asset_type is None or not ticker.strip():
            log.debug("Ignoring price entry with unknown key %r", raw_key)
            continue
        try:
            price = float(raw_price)
        except (TypeError, ValueError):
            log.debug("Ignoring non-numeric price for %r", raw_key)
            continue
        if not math.isfinite(price):
            log.debug("Ignoring non-finite price for %r", raw_key)
            continue
        out[asset_key(asset_type, ticker)] = price
    return out
