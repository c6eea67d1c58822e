import json
import logging
import math
import os
import uuid
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from cartera_core.keys import parse_asset_type
from cartera_core.models import AssetType, Currency, RawPosition

from .util import parse_date, parse_number

log = logging.getLogger(__name__)

STORE_VERSION = 1


class InvalidPositionError(ValueError):
    pass


class StoreError(RuntimeError):
    pass


def resolve_store_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
    return os.path.join(project_root, path)


def _ensure_dir(path: str) -> None:
    dirname = os.path.dirname(path)
    if dirname and not os.path.exists(dirname):
        os.makedirs(dirname, exist_ok=True)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def validate_position(p: RawPosition) -> RawPosition:
    if not (p.ticker or "").strip():
        raise InvalidPositionError("ticker is required")
    if not isinstance(p.asset_type, AssetType):
        raise InvalidPositionError(f"invalid type: {p.asset_type}")
    if not isinstance(p.cost_currency, Currency):
        raise InvalidPositionError(f"invalid currency: {p.cost_currency}")
    if not math.isfinite(p.quantity) or p.quantity <= 0:
        raise InvalidPositionError("quantity must be greater than 0")
    if not math.isfinite(p.cost_basis_price) or p.cost_basis_price <= 0:
        raise InvalidPositionError("purchase price must be greater than 0")
    if p.asset_type != AssetType.CRYPTO and not float(p.quantity).is_integer():
        raise InvalidPositionError(f"quantity must be a whole number for {p.asset_type.value}")
    return p


def position_from_record(record: Dict[str, Any]) -> RawPosition:
    """Build a validated RawPosition from a stored or user-supplied record."""
    asset_type = parse_asset_type(record.get("type"))
    if asset_type is None:
        raise InvalidPositionError(f"invalid type: {record.get('type')}")
    currency_raw = str(record.get("currency") or "").strip().upper()
    try:
        currency = Currency(currency_raw)
    except ValueError:
        raise InvalidPositionError(f"invalid currency: {record.get('currency')}") from None
    try:
        quantity = parse_number(record.get("quantity"))
        price = parse_number(record.get("purchase_price"))
        purchase_date = parse_date(record.get("purchase_date"))
    except ValueError as exc:
        raise InvalidPositionError(str(exc)) from exc
    position = RawPosition(
        id=str(record.get("id") or ""),
        ticker=str(record.get("ticker") or "").strip().upper(),
        asset_type=asset_type,
        quantity=quantity,
        cost_basis_price=price,
        cost_currency=currency,
        purchase_date=purchase_date,
        is_favorite=bool(record.get("is_favorite") or False),
        name=str(record.get("name") or "").strip(),
        allocation=float(record.get("allocation") or 0.0),
    )
    return validate_position(position)


def position_to_record(p: RawPosition) -> Dict[str, Any]:
    return {
        "id": p.id,
        "ticker": p.ticker,
        "name": p.name,
        "type": p.asset_type.value,
        "quantity": p.quantity,
        "purchase_price": p.cost_basis_price,
        "currency": p.cost_currency.value,
        "purchase_date": p.purchase_date.isoformat() if p.purchase_date else None,
        "is_favorite": p.is_favorite,
        "allocation": p.allocation,
    }


def _load_raw(path: str, strict: bool = False) -> Dict[str, Any]:
    if not os.path.exists(path):
        return {"version": STORE_VERSION, "positions": []}
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            if strict:
                raise StoreError(f"Positions file {path} is not valid JSON; refusing to overwrite it") from exc
            log.warning("Positions file %s is not valid JSON; starting empty", path)
            return {"version": STORE_VERSION, "positions": []}
    if not isinstance(data, dict) or not isinstance(data.get("positions", []), list):
        if strict:
            raise StoreError(f"Positions file {path} has an unexpected layout; refusing to overwrite it")
        log.warning("Positions file %s has an unexpected layout; starting empty", path)
        return {"version": STORE_VERSION, "positions": []}
    data.setdefault("positions", [])
    return data


def _save_raw(path: str, data: Dict[str, Any]) -> None:
    _ensure_dir(path)
    data["version"] = STORE_VERSION
    data["updated_at"] = _now_iso()
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def load_positions(path: str) -> List[RawPosition]:
    out: List[RawPosition] = []
    for record in _load_raw(path)["positions"]:
        if not isinstance(record, dict):
            log.warning("Skipping malformed stored entry: %r", record)
            continue
        try:
            out.append(position_from_record(record))
        except InvalidPositionError as exc:
            log.warning("Skipping stored position %s: %s", record.get("id"), exc)
    return out


# Mutations work on the stored records so entries that no longer validate
# are written back untouched.


def _find_record(records: List[Any], position_id: str) -> int:
    for i, record in enumerate(records):
        if isinstance(record, dict) and str(record.get("id") or "") == position_id:
            return i
    raise KeyError(position_id)


def add_position(path: str, record: Dict[str, Any]) -> RawPosition:
    record = dict(record)
    record["id"] = str(uuid.uuid4())
    record.setdefault("is_favorite", False)
    if not record.get("purchase_date"):
        record["purchase_date"] = date.today().isoformat()
    position = position_from_record(record)
    data = _load_raw(path, strict=True)
    data["positions"].append(position_to_record(position))
    _save_raw(path, data)
    return position


def get_position(path: str, position_id: str) -> Optional[RawPosition]:
    return next((p for p in load_positions(path) if p.id == position_id), None)


def update_position(path: str, position_id: str, changes: Dict[str, Any]) -> RawPosition:
    data = _load_raw(path, strict=True)
    records = data["positions"]
    i = _find_record(records, position_id)
    record = dict(records[i])
    record.update({k: v for k, v in changes.items() if v is not None})
    record["id"] = position_id
    updated = position_from_record(record)
    records[i] = {**records[i], **position_to_record(updated)}
    _save_raw(path, data)
    return updated


def remove_position(path: str, position_id: str) -> bool:
    data = _load_raw(path, strict=True)
    try:
        i = _find_record(data["positions"], position_id)
    except KeyError:
        return False
    del data["positions"][i]
    _save_raw(path, data)
    return True


def toggle_favorite(path: str, position_id: str) -> RawPosition:
    data = _load_raw(path, strict=True)
    records = data["positions"]
    i = _find_record(records, position_id)
    current = position_from_record(records[i])
    updated = replace(current, is_favorite=not current.is_favorite)
    records[i] = {**records[i], **position_to_record(updated)}
    _save_raw(path, data)
    return updated
