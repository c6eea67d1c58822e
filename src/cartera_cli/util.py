import logging
import math
from datetime import date, datetime
from typing import Optional

from rich.logging import RichHandler


def configure_logging(level: str = "WARNING", verbose: bool = False) -> None:
    """Route library logs through rich. Safe to call more than once."""
    resolved = logging.DEBUG if verbose else getattr(logging, (level or "WARNING").upper(), logging.WARNING)
    root = logging.getLogger()
    root.setLevel(resolved)
    for h in root.handlers[:]:
        if isinstance(h, RichHandler):
            root.removeHandler(h)
    root.addHandler(RichHandler(show_path=False, rich_tracebacks=False))


def parse_number(value) -> float:
    """
    Parse user-entered amounts. Commas are thousands separators ("1,500.5").
    """
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value or "").strip().replace(",", "")
    if not text:
        raise ValueError("empty number")
    number = float(text)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value}")
    return number


def parse_date(value) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    # Stored dates may carry a time part ("2024-03-01T00:00:00Z").
    return date.fromisoformat(text[:10])
