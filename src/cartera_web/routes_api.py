from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import PlainTextResponse

from cartera_cli.config import ConfigError, load_config
from cartera_cli.feeds import FeedClient, fetch_snapshot
from cartera_cli.storage import load_positions, resolve_store_path
from cartera_core.engine import evaluate
from cartera_core.export import to_csv
from cartera_core.models import Currency

from .cache import PriceCache

router = APIRouter(prefix="/api")

_cache: Optional[PriceCache] = None


def get_cache() -> PriceCache:
    global _cache
    if _cache is None:
        config = load_config()
        client = FeedClient.from_config(config)
        _cache = PriceCache(lambda: fetch_snapshot(client), ttl=config.price_ttl)
    return _cache


def _parse_currency(v: Optional[str]) -> Optional[Currency]:
    if v is None or not v.strip():
        return None
    try:
        return Currency(v.strip().upper())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid currency: {v}") from None


@router.get("/health")
def health() -> Dict[str, Any]:
    return {"ok": True}


@router.get("/portfolio")
def portfolio(
    currency: Optional[str] = Query(None),
    merge: Optional[bool] = Query(None),
    sort: Optional[str] = Query(None),
    type_filter: Optional[str] = Query(None, alias="type"),
    search: Optional[str] = Query(None),
):
    try:
        config = load_config()
    except ConfigError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    display = _parse_currency(currency) or config.display_currency
    snap = get_cache().get()
    positions = load_positions(resolve_store_path(config.positions_path))
    try:
        result = evaluate(
            positions,
            snap.prices,
            snap.rate,
            display_in_ars=display == Currency.ARS,
            merge=config.merge if merge is None else merge,
            sort_mode=sort or config.sort_mode,
            type_filter=type_filter,
            search=search,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return result.to_dict()


@router.get("/export", response_class=PlainTextResponse)
def export(
    merge: Optional[bool] = Query(None),
    type_filter: Optional[str] = Query(None, alias="type"),
    search: Optional[str] = Query(None),
):
    try:
        config = load_config()
    except ConfigError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    positions = load_positions(resolve_store_path(config.positions_path))
    # Only the rate is used: it pools buckets bought in both currencies.
    snap = get_cache().get()
    try:
        result = evaluate(
            positions,
            {},
            snap.rate,
            merge=config.merge if merge is None else merge,
            type_filter=type_filter,
            search=search,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return PlainTextResponse(
        to_csv(result.rows),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="inversiones.csv"'},
    )
