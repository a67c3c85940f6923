from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional

import typer
from rich.console import Console
from rich.table import Table

from .audit import AuditLogger
from .client import MarketDataClient
from .config import ClientSettings, api_base, load_config
from .errors import DataAccessError, SchemaMismatch
from .formatting import format_price, format_volume
from .preferences import PreferenceStore

app = typer.Typer(add_completion=False)
console = Console()


def build_audit(settings: ClientSettings) -> Optional[AuditLogger]:
    if not settings.audit_log_path:
        return None
    return AuditLogger(settings.audit_log_path)


def _run(config: Optional[str], call: Callable[[MarketDataClient], Awaitable[Any]]) -> Any:
    settings = load_config(config)

    async def _main():
        async with MarketDataClient.from_settings(settings, audit=build_audit(settings)) as client:
            return await call(client)

    try:
        return asyncio.run(_main())
    except DataAccessError as exc:
        console.print(f"[red]Request failed: {exc}[/red]")
        raise typer.Exit(code=1)


@app.command()
def symbols(config: Optional[str] = typer.Option(None, help="Path to YAML config")):
    data = _run(config, lambda c: c.get_symbols())
    table = Table(title="Symbols")
    table.add_column("Symbol")
    rows = data if isinstance(data, list) else data.get("symbols", []) if isinstance(data, dict) else []
    for s in rows:
        table.add_row(s if isinstance(s, str) else json.dumps(s))
    console.print(table)


@app.command()
def features(config: Optional[str] = typer.Option(None, help="Path to YAML config")):
    console.print_json(data=_run(config, lambda c: c.get_features()))


@app.command()
def health(config: Optional[str] = typer.Option(None, help="Path to YAML config")):
    settings = load_config(config)
    console.print(f"API base: {api_base(settings)}")
    data = _run(config, lambda c: c.get_health())
    console.print("Health: OK")
    console.print_json(data=data)


@app.command()
def chart(
    symbol: str = typer.Argument(..., help="Symbol, e.g. BTC"),
    timeframe: str = typer.Argument(..., help="Timeframe, e.g. 1h"),
    pane1: Optional[str] = typer.Option(None, help="Upper pane series"),
    pane2: Optional[str] = typer.Option(None, help="Lower pane series"),
    config: Optional[str] = typer.Option(None, help="Path to YAML config"),
):
    data = _run(config, lambda c: c.get_chart_data(symbol, timeframe, pane1, pane2))
    points = data.get("data", []) if isinstance(data, dict) else data if isinstance(data, list) else []
    if not points or not isinstance(points[0], dict):
        console.print_json(data=data)
        return
    table = Table(title=f"{symbol} {timeframe}")
    table.add_column("Time")
    table.add_column("Price", justify="right")
    table.add_column("Volume", justify="right")
    for p in points:
        table.add_row(
            str(p.get("time", p.get("timestamp", ""))),
            format_price(p.get("price", p.get("close"))),
            format_volume(p.get("volume")),
        )
    console.print(table)


@app.command("pref-get")
def pref_get(
    key: str = typer.Argument(..., help="Preference key"),
    default: str = typer.Option("null", help="JSON default when the key is missing or unreadable"),
    config: Optional[str] = typer.Option(None, help="Path to YAML config"),
):
    try:
        fallback = json.loads(default)
    except ValueError:
        raise typer.BadParameter("--default must be JSON, e.g. 'null' or '[\"BTC\"]'")
    settings = load_config(config)
    store = PreferenceStore(settings.prefs_db_path, audit=build_audit(settings))
    try:
        console.print_json(data=store.get(key, fallback))
    finally:
        store.close()


@app.command("pref-set")
def pref_set(
    key: str = typer.Argument(..., help="Preference key"),
    value: str = typer.Argument(..., help="JSON value"),
    config: Optional[str] = typer.Option(None, help="Path to YAML config"),
):
    try:
        parsed = json.loads(value)
    except ValueError:
        raise typer.BadParameter("VALUE must be JSON, e.g. '\"1h\"' or '[\"BTC\"]'")
    settings = load_config(config)
    store = PreferenceStore(settings.prefs_db_path, audit=build_audit(settings))
    try:
        ok = store.set(key, parsed)
    except SchemaMismatch as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    finally:
        store.close()
    if not ok:
        console.print(f"[red]Could not persist {key}[/red]")
        raise typer.Exit(code=1)
    console.print(f"Saved {key}")


if __name__ == "__main__":
    app()
