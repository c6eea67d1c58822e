import os
from dataclasses import dataclass
from typing import Callable, TypeVar

from dotenv import load_dotenv

from cartera_core.models import Currency, SortMode
from cartera_core.sorting import parse_sort_mode

T = TypeVar("T")


class ConfigError(RuntimeError):
    pass


@dataclass
class Config:
    positions_path: str
    timeout: int
    display_currency: Currency
    merge: bool
    sort_mode: SortMode
    ccl_url: str
    crypto_url: str
    cedears_url: str
    acciones_url: str
    price_ttl: float
    log_level: str

    @property
    def display_in_ars(self) -> bool:
        return self.display_currency == Currency.ARS


def _parse_bool(raw: str) -> bool:
    key = raw.lower()
    if key in ("1", "true", "yes", "y", "on"):
        return True
    if key in ("0", "false", "no", "n", "off"):
        return False
    raise ValueError(raw)


def _parse_currency(raw: str) -> Currency:
    return Currency(raw.upper())


def _env(name: str, default: T, parse: Callable[[str], T], kind: str) -> T:
    """Read and parse one variable; unset or blank means the default."""
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return parse(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid {kind} in {name}: {raw}") from exc


def load_config() -> Config:
    load_dotenv()
    timeout = _env("CARTERA_TIMEOUT", 20, int, "int")
    if timeout <= 0:
        raise ConfigError("CARTERA_TIMEOUT must be positive")

    return Config(
        positions_path=os.getenv("CARTERA_POSITIONS_PATH", "data/positions.json").strip(),
        timeout=timeout,
        display_currency=_env("CARTERA_DISPLAY_CURRENCY", Currency.ARS, _parse_currency, "currency (use ARS or USD)"),
        merge=_env("CARTERA_MERGE", True, _parse_bool, "bool"),
        sort_mode=_env("CARTERA_SORT", SortMode.TICKER_ASC, parse_sort_mode, "sort mode"),
        ccl_url=os.getenv("CARTERA_CCL_URL", "").strip() or "https://dolarapi.com/v1/dolares",
        crypto_url=(
            os.getenv("CARTERA_CRYPTO_URL", "").strip()
            or "https://api.coingecko.com/api/v3/coins/markets?vs_currency=usd"
        ),
        cedears_url=os.getenv("CARTERA_CEDEARS_URL", "").strip() or "https://api.cedears.ar/cedears",
        acciones_url=os.getenv("CARTERA_ACCIONES_URL", "").strip() or "https://api.cedears.ar/acciones",
        price_ttl=_env("CARTERA_PRICE_TTL", 60.0, float, "float"),
        log_level=(os.getenv("CARTERA_LOG_LEVEL", "").strip() or "WARNING").upper(),
    )
