from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Dict, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from zetabracket.errors import OrderBookUnavailable
from zetabracket.exchange.client import load_exchange_factory
from zetabracket.l2_services.config import AppConfig, load_config
from zetabracket.l2_services.logger_setup import setup_logging
from zetabracket.models.intent import Position, TradeIntent
from zetabracket.orders.orchestrator import open_position_with_tpsl
from zetabracket.orders.pricing import mark_price
from zetabracket.services.positions import cancel_all_orders, get_position
from zetabracket.services.session import TradingSession, open_session

log = logging.getLogger("zetabracket.cli")

def parse_assignments(items: List[str]) -> Dict[str, str]:
    """["leverageMultiplier=5", ...] -> {"leverageMultiplier": "5", ...}"""
    out: Dict[str, str] = {}
    for item in items:
        if "=" not in item:
            raise ValueError(f"expected key=value, got {item!r}")
        k, v = item.split("=", 1)
        out[k.strip()] = v.strip()
    return out

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="zetabracket", description="Open bracketed Zeta perp positions")
    p.add_argument("--app", default=None, help="APP root holding .env (default: $APP or cwd)")
    sub = p.add_subparsers(dest="cmd")

    o = sub.add_parser("open", help="open a position with TP/SL attached (default command)")
    o.add_argument("--direction", choices=["long", "short"], default="long")
    o.add_argument("--market", default=None)

    q = sub.add_parser("position", help="show the open position for a market")
    q.add_argument("--market", default=None)

    c = sub.add_parser("cancel", help="cancel all open orders for a market")
    c.add_argument("--market", default=None)

    s = sub.add_parser("settings", help="show or update risk settings")
    s.add_argument("--set", dest="assign", nargs="*", default=[], metavar="KEY=VALUE")
    return p

def render_position(console: Console, market: str, pos: Optional[Position], mark: Optional[float]) -> None:
    t = Table(title=f"Position {market}", box=box.SIMPLE_HEAVY)
    t.add_column("Market")
    t.add_column("Size")
    t.add_column("Cost of trades")
    t.add_column("Mark")
    mark_txt = f"{mark:.4f}" if mark is not None else "-"
    if pos is None:
        t.add_row(market, "[yellow]flat[/yellow]", "-", mark_txt)
    else:
        color = "green" if pos.size > 0 else "red"
        t.add_row(pos.market, f"[{color}]{pos.size}[/{color}]", f"{pos.cost_of_trades:.4f}", mark_txt)
    console.print(t)

async def run(args: argparse.Namespace, cfg: AppConfig) -> int:
    market = getattr(args, "market", None) or cfg.ACTIVE_MARKET
    factory = load_exchange_factory(cfg.EXCHANGE_CLIENT_FACTORY)
    session: TradingSession = await open_session(cfg, factory)
    try:
        if args.cmd in (None, "open"):
            direction = getattr(args, "direction", "long")
            intent = TradeIntent(direction=direction, market=market)
            log.info("Open position %s", direction.upper())
            try:
                tx = await open_position_with_tpsl(session, intent)
                log.info("Position opened: direction=%s transaction=%s", direction, tx)
            except Exception as e:
                log.error("Error opening position: %s", e)
        elif args.cmd == "position":
            pos = await get_position(session, market)
            book = await session.exchange.fetch_orderbook(market)
            try:
                mark = mark_price(book)
            except OrderBookUnavailable:
                mark = None
            render_position(Console(), market, pos, mark)
        elif args.cmd == "cancel":
            await cancel_all_orders(session, market)
        elif args.cmd == "settings":
            if args.assign:
                current = await session.settings.update(parse_assignments(args.assign))
            else:
                current = await session.settings.fetch()
            Console().print(current.model_dump())
    finally:
        await session.close()
    return 0

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = load_config(args.app)
        setup_logging(cfg.LOG_LEVEL, cfg.LOG_DIR)
        return asyncio.run(run(args, cfg))
    except Exception as e:
        setup_logging()
        log.exception("fatal: %s", e)
        return 1

if __name__ == "__main__":
    sys.exit(main())
