import sys
from dataclasses import dataclass
from typing import Any, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from cartera_core.engine import evaluate
from cartera_core.export import to_csv
from cartera_core.models import Currency, Evaluation, RawPosition
from cartera_core.sorting import parse_sort_mode

from .config import Config, ConfigError, load_config
from .feeds import FeedClient, FeedError, PriceSnapshot, fetch_rate, fetch_snapshot, load_price_file
from .storage import (
    InvalidPositionError,
    StoreError,
    add_position,
    load_positions,
    remove_position,
    resolve_store_path,
    toggle_favorite,
    update_position,
)
from .util import configure_logging

app = typer.Typer(add_completion=False, help="Cartera: crypto, Acciones and CEDEARs portfolio")
console = Console()


@dataclass
class CLIContext:
    config: Config
    positions_path: str
    verbose: bool


def _print_json(data: Any) -> None:
    console.print_json(data=data, ensure_ascii=False, default=str)


def _confirm_or_exit(confirm: Optional[str] = None) -> None:
    """Guard destructive commands; --confirm CONFIRMAR skips the prompt."""
    answer = confirm if confirm is not None else typer.prompt("Type CONFIRMAR to continue")
    if answer.strip() != "CONFIRMAR":
        console.print("Aborted.")
        raise typer.Exit(code=1)


def _fmt_money(value: Optional[float], currency: Currency) -> str:
    if value is None:
        return "pendiente"
    digits = 2 if currency == Currency.USD else 0
    return f"{currency.value} {value:,.{digits}f}"


def _fmt_pct(value: Optional[float]) -> str:
    if value is None:
        return "-"
    return f"{value:.2f}%"


def _resolve_currency(ars: Optional[bool], config: Config) -> bool:
    if ars is None:
        return config.display_in_ars
    return ars


def _snapshot(ctx: CLIContext, prices_file: Optional[str], rate: Optional[float]) -> PriceSnapshot:
    if prices_file:
        try:
            snap = load_price_file(prices_file)
        except (OSError, FeedError) as exc:
            console.print(f"Error: {exc}")
            raise typer.Exit(code=1)
    else:
        snap = fetch_snapshot(FeedClient.from_config(ctx.config))
    if rate is not None:
        snap = PriceSnapshot(prices=snap.prices, rate=rate, fetched_at=snap.fetched_at)
    return snap


def _evaluate(
    ctx: CLIContext,
    ars: Optional[bool],
    merge: Optional[bool],
    sort: Optional[str],
    type_filter: Optional[str],
    search: Optional[str],
    snap: PriceSnapshot,
) -> Evaluation:
    positions: List[RawPosition] = load_positions(ctx.positions_path)
    try:
        return evaluate(
            positions,
            snap.prices,
            snap.rate,
            display_in_ars=_resolve_currency(ars, ctx.config),
            merge=ctx.config.merge if merge is None else merge,
            sort_mode=parse_sort_mode(sort) if sort else ctx.config.sort_mode,
            type_filter=type_filter,
            search=search,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _render(result: Evaluation) -> None:
    s = result.summary
    cur = s.currency
    table = Table(title=f"Cartera ({cur.value}{', agrupada' if result.merged else ''})")
    for col in ("", "Ticker", "Tipo", "Cantidad", "PPC", "Precio", "Cambio", "Cambio %", "Tenencia", "Asignación"):
        table.add_column(col, justify="left" if col in ("Ticker", "Tipo") else "right")
    for r in result.rows:
        p = r.position
        table.add_row(
            "*" if p.is_favorite else "",
            p.ticker,
            p.asset_type.value,
            f"{p.quantity:g}",
            _fmt_money(r.unit_cost_basis, cur),
            _fmt_money(r.unit_market_price, cur),
            _fmt_money(r.change_absolute, cur),
            _fmt_pct(r.change_percent),
            _fmt_money(r.current_value, cur),
            _fmt_pct(r.allocation_percent),
        )
    console.print(table)
    console.print(f"Total de inversiones: {result.count}")
    console.print(f"Invertido: {_fmt_money(s.total_invested, cur)}")
    console.print(f"Actual: {_fmt_money(s.total_current_value, cur)}")
    console.print(f"Resultado: {_fmt_money(s.total_change_absolute, cur)} ({s.total_change_percent:.2f}%)")
    if s.pending_count:
        console.print(f"{s.pending_count} position(s) pending a market price (excluded from Actual).")
    if result.rate is None:
        console.print("CCL rate unavailable: values shown in their native currency.")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Verbose output"),
):
    try:
        config = load_config()
    except ConfigError as exc:
        console.print(f"Config error: {exc}")
        raise typer.Exit(code=1)
    configure_logging(config.log_level, verbose=verbose)
    ctx.obj = CLIContext(config=config, positions_path=resolve_store_path(config.positions_path), verbose=verbose)


@app.command()
def add(
    ctx: typer.Context,
    ticker: str = typer.Option(..., "--ticker", help="Ticker, e.g. BTC, GGAL, AAPL"),
    asset_type: str = typer.Option(..., "--type", help="Cripto, Acción or CEDEAR"),
    quantity: str = typer.Option(..., "--quantity", help="Quantity (commas are thousands separators)"),
    price: str = typer.Option(..., "--price", help="Purchase price per unit"),
    currency: str = typer.Option(..., "--currency", help="USD or ARS"),
    purchase_date: Optional[str] = typer.Option(None, "--date", help="YYYY-MM-DD (default: today)"),
    name: str = typer.Option("", "--name", help="Display name"),
):
    """Record a purchase."""
    try:
        position = add_position(
            ctx.obj.positions_path,
            {
                "ticker": ticker,
                "type": asset_type,
                "quantity": quantity,
                "purchase_price": price,
                "currency": currency,
                "purchase_date": purchase_date,
                "name": name,
            },
        )
    except InvalidPositionError as exc:
        console.print(f"Invalid position: {exc}")
        raise typer.Exit(code=1)
    except StoreError as exc:
        console.print(f"Error: {exc}")
        raise typer.Exit(code=1)
    console.print(f"Added {position.ticker} ({position.asset_type.value}). id: {position.id}")


@app.command()
def edit(
    ctx: typer.Context,
    position_id: str = typer.Argument(..., help="Position id"),
    ticker: Optional[str] = typer.Option(None, "--ticker"),
    asset_type: Optional[str] = typer.Option(None, "--type"),
    quantity: Optional[str] = typer.Option(None, "--quantity"),
    price: Optional[str] = typer.Option(None, "--price"),
    currency: Optional[str] = typer.Option(None, "--currency"),
    purchase_date: Optional[str] = typer.Option(None, "--date"),
    name: Optional[str] = typer.Option(None, "--name"),
    confirm: Optional[str] = typer.Option(None, "--confirm", help="Type CONFIRMAR to skip the prompt"),
):
    """Edit a recorded purchase."""
    _confirm_or_exit(confirm)
    changes = {
        "ticker": ticker,
        "type": asset_type,
        "quantity": quantity,
        "purchase_price": price,
        "currency": currency,
        "purchase_date": purchase_date,
        "name": name,
    }
    try:
        position = update_position(ctx.obj.positions_path, position_id, changes)
    except KeyError:
        console.print(f"Position not found: {position_id}")
        raise typer.Exit(code=1)
    except InvalidPositionError as exc:
        console.print(f"Invalid position: {exc}")
        raise typer.Exit(code=1)
    except StoreError as exc:
        console.print(f"Error: {exc}")
        raise typer.Exit(code=1)
    console.print(f"Updated {position.ticker} ({position.id}).")


@app.command()
def remove(
    ctx: typer.Context,
    position_id: str = typer.Argument(..., help="Position id"),
    confirm: Optional[str] = typer.Option(None, "--confirm", help="Type CONFIRMAR to skip the prompt"),
):
    """Delete a recorded purchase. This cannot be undone."""
    _confirm_or_exit(confirm)
    try:
        removed = remove_position(ctx.obj.positions_path, position_id)
    except StoreError as exc:
        console.print(f"Error: {exc}")
        raise typer.Exit(code=1)
    if not removed:
        console.print(f"Position not found: {position_id}")
        raise typer.Exit(code=1)
    console.print(f"Removed {position_id}.")


@app.command()
def fav(ctx: typer.Context, position_id: str = typer.Argument(..., help="Position id")):
    """Toggle the favorite flag of a purchase."""
    try:
        position = toggle_favorite(ctx.obj.positions_path, position_id)
    except KeyError:
        console.print(f"Position not found: {position_id}")
        raise typer.Exit(code=1)
    except InvalidPositionError as exc:
        console.print(f"Invalid position: {exc}")
        raise typer.Exit(code=1)
    except StoreError as exc:
        console.print(f"Error: {exc}")
        raise typer.Exit(code=1)
    state = "favorite" if position.is_favorite else "not favorite"
    console.print(f"{position.ticker} is now {state}.")


@app.command("list")
def list_positions(ctx: typer.Context):
    """List stored purchases as recorded (no prices)."""
    positions = load_positions(ctx.obj.positions_path)
    table = Table(title="Compras")
    for col in ("id", "Ticker", "Tipo", "Cantidad", "PPC", "Moneda", "Fecha", "Fav"):
        table.add_column(col)
    for p in positions:
        table.add_row(
            p.id,
            p.ticker,
            p.asset_type.value,
            f"{p.quantity:g}",
            f"{p.cost_basis_price:g}",
            p.cost_currency.value,
            p.purchase_date.isoformat() if p.purchase_date else "",
            "*" if p.is_favorite else "",
        )
    console.print(table)


@app.command()
def show(
    ctx: typer.Context,
    ars: Optional[bool] = typer.Option(None, "--ars/--usd", help="Display currency"),
    merge: Optional[bool] = typer.Option(None, "--merge/--split", help="Pool purchases of the same asset"),
    sort: Optional[str] = typer.Option(None, "--sort", help="tickerAsc, gainPercentDesc, holdingValueDesc, dateAsc, ..."),
    type_filter: Optional[str] = typer.Option(None, "--type", help="Cripto, Acción or CEDEAR"),
    search: Optional[str] = typer.Option(None, "--search", help="Match ticker or name"),
    rate: Optional[float] = typer.Option(None, "--rate", help="Override the CCL rate"),
    prices_file: Optional[str] = typer.Option(None, "--prices-file", help="Offline price snapshot (JSON)"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
):
    """Value the portfolio against current prices."""
    snap = _snapshot(ctx.obj, prices_file, rate)
    result = _evaluate(ctx.obj, ars, merge, sort, type_filter, search, snap)
    if as_json:
        _print_json(result.to_dict())
        return
    _render(result)


@app.command()
def export(
    ctx: typer.Context,
    output: Optional[str] = typer.Option(None, "--output", help="CSV file (default: stdout)"),
    merge: Optional[bool] = typer.Option(None, "--merge/--split", help="Pool purchases of the same asset"),
    type_filter: Optional[str] = typer.Option(None, "--type", help="Cripto, Acción or CEDEAR"),
    search: Optional[str] = typer.Option(None, "--search", help="Match ticker or name"),
    rate: Optional[float] = typer.Option(None, "--rate", help="Override the CCL rate"),
    prices_file: Optional[str] = typer.Option(None, "--prices-file", help="Offline price snapshot (JSON)"),
):
    """Export purchases as CSV (stored cost basis and currency)."""
    # Prices are never exported; the rate is only needed to pool buckets
    # bought in both currencies.
    pooled = ctx.obj.config.merge if merge is None else merge
    snap_rate = rate
    if snap_rate is None and prices_file:
        snap_rate = _snapshot(ctx.obj, prices_file, None).rate
    elif snap_rate is None and pooled:
        snap_rate = fetch_rate(FeedClient.from_config(ctx.obj.config))
    result = _evaluate(ctx.obj, None, merge, None, type_filter, search, PriceSnapshot(rate=snap_rate))
    text = to_csv(result.rows)
    if output:
        with open(output, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        console.print(f"Exported {result.count} rows to {output}")
        return
    sys.stdout.write(text)


@app.command()
def rate(ctx: typer.Context):
    """Print the current CCL rate (ARS per USD)."""
    value = fetch_rate(FeedClient.from_config(ctx.obj.config))
    if value is None:
        console.print("CCL rate unavailable.")
        raise typer.Exit(code=1)
    console.print(f"CCL: {value:,.2f} ARS/USD")


@app.command("web")
def web(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
    reload: bool = typer.Option(False, "--reload"),
):
    """Run the JSON API (portfolio valuation and CSV export)."""
    import uvicorn

    uvicorn.run("cartera_web.app:app", host=host, port=int(port), reload=bool(reload))


if __name__ == "__main__":
    app()
