from __future__ import annotations

import csv
import io
from datetime import date
from typing import Any, Iterable, List

from .models import ValuedPosition

EXPORT_HEADERS = ["Ticker", "Nombre", "Tipo", "Cantidad", "PPC", "Moneda", "Fecha de compra"]


def _fmt_number(value: float) -> Any:
    if float(value).is_integer():
        return int(value)
    return value


def export_rows(rows: Iterable[ValuedPosition]) -> List[List[Any]]:
    """
    Export projection of evaluated rows, ordered by purchase date (oldest first).

    Reports the stored cost basis and currency, never the display-converted
    values, so the output does not depend on the display currency.
    """
    ordered = sorted(rows, key=lambda r: r.position.purchase_date or date.min)
    out: List[List[Any]] = []
    for r in ordered:
        p = r.position
        out.append(
            [
                p.ticker,
                p.name or p.ticker,
                p.asset_type.value,
                _fmt_number(p.quantity),
                _fmt_number(p.cost_basis_price),
                p.cost_currency.value,
                p.purchase_date.isoformat() if p.purchase_date else "",
            ]
        )
    return out


def to_csv(rows: Iterable[ValuedPosition]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    writer.writerows(export_rows(rows))
    return buf.getvalue()
