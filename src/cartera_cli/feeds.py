import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from cartera_core.keys import market_key
from cartera_core.models import AssetType

from .config import Config

log = logging.getLogger(__name__)


class FeedError(RuntimeError):
    pass


class FeedClient:
    def __init__(self, ccl_url: str, crypto_url: str, cedears_url: str, acciones_url: str, timeout: int = 20):
        self.ccl_url = ccl_url
        self.crypto_url = crypto_url
        self.cedears_url = cedears_url
        self.acciones_url = acciones_url
        self.timeout = timeout
        self.session = self._create_session()

    @classmethod
    def from_config(cls, config: Config) -> "FeedClient":
        return cls(
            ccl_url=config.ccl_url,
            crypto_url=config.crypto_url,
            cedears_url=config.cedears_url,
            acciones_url=config.acciones_url,
            timeout=config.timeout,
        )

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=3,
            connect=3,
            read=3,
            status=3,
            backoff_factor=0.5,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=frozenset(["GET"]),
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def _get_json(self, url: str) -> Any:
        try:
            resp = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise FeedError(f"GET {url} failed: {exc}") from exc
        if not resp.ok:
            raise FeedError(f"HTTP {resp.status_code} from {url}: {resp.text[:200]}")
        try:
            return resp.json()
        except ValueError as exc:
            raise FeedError(f"Invalid JSON from {url}") from exc

    def get_ccl_rate(self) -> float:
        data = self._get_json(self.ccl_url)
        for item in data or []:
            if isinstance(item, dict) and item.get("casa") == "contadoconliqui":
                venta = item.get("venta")
                if venta is None:
                    break
                try:
                    return float(venta)
                except (TypeError, ValueError) as exc:
                    raise FeedError(f"Invalid CCL quote: {venta!r}") from exc
        raise FeedError("CCL quote not found in rate feed")

    def get_crypto_prices(self) -> Dict[str, float]:
        prices: Dict[str, float] = {}
        for coin in self._get_json(self.crypto_url) or []:
            symbol = (coin or {}).get("symbol")
            price = (coin or {}).get("current_price")
            if not symbol or price is None:
                continue
            try:
                prices[market_key(AssetType.CRYPTO, symbol)] = float(price)
            except (TypeError, ValueError):
                log.debug("Skipping malformed crypto price for %s: %r", symbol, price)
        return prices

    def _ars_panel(self, url: str, asset_type: AssetType) -> Dict[str, float]:
        prices: Dict[str, float] = {}
        for item in self._get_json(url) or []:
            ticker = (item or {}).get("ticker")
            close = ((item or {}).get("ars") or {}).get("c")
            if not ticker or close is None:
                continue
            try:
                prices[market_key(asset_type, ticker)] = float(close)
            except (TypeError, ValueError):
                log.debug("Skipping malformed %s price for %s: %r", asset_type.value, ticker, close)
        return prices

    def get_cedear_prices(self) -> Dict[str, float]:
        return self._ars_panel(self.cedears_url, AssetType.DEPOSITARY_RECEIPT)

    def get_stock_prices(self) -> Dict[str, float]:
        return self._ars_panel(self.acciones_url, AssetType.STOCK)


def fetch_price_table(client: FeedClient) -> Dict[str, float]:
    """
    Build a fresh price table from every feed. A failing feed is logged and
    skipped; its positions simply stay pending.
    """
    table: Dict[str, float] = {}
    for label, fetch in (
        ("crypto", client.get_crypto_prices),
        ("cedears", client.get_cedear_prices),
        ("acciones", client.get_stock_prices),
    ):
        try:
            table.update(fetch())
        except FeedError as exc:
            log.warning("Price feed %s unavailable: %s", label, exc)
    return table


def fetch_rate(client: FeedClient) -> Optional[float]:
    try:
        return client.get_ccl_rate()
    except FeedError as exc:
        log.warning("CCL rate unavailable: %s", exc)
        return None


@dataclass(frozen=True)
class PriceSnapshot:
    prices: Dict[str, float] = field(default_factory=dict)
    rate: Optional[float] = None
    fetched_at: float = 0.0


def fetch_snapshot(client: FeedClient) -> PriceSnapshot:
    return PriceSnapshot(prices=fetch_price_table(client), rate=fetch_rate(client), fetched_at=time.time())


def load_price_file(path: str) -> PriceSnapshot:
    """Offline snapshot: {"prices": {"Cripto-BTC": 25000, ...}, "rate": 1000}."""
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise FeedError(f"Invalid price file {path}: {exc}") from exc
    if not isinstance(data, dict) or not isinstance(data.get("prices") or {}, dict):
        raise FeedError(f"Invalid price file {path}: expected {{\"prices\": {{...}}, \"rate\": x}}")
    rate = data.get("rate")
    try:
        rate = float(rate) if rate is not None else None
    except (TypeError, ValueError) as exc:
        raise FeedError(f"Invalid rate in {path}: {rate!r}") from exc
    return PriceSnapshot(
        prices={str(k): v for k, v in (data.get("prices") or {}).items()},
        rate=rate,
        fetched_at=time.time(),
    )
