from __future__ import annotations
import logging
from typing import Dict, Tuple

from zetabracket.errors import OrderBookUnavailable, OrderSizeTooSmall
from zetabracket.exchange.client import ExchangeClient
from zetabracket.exchange.zeta.units import to_native_lot_size, to_native_price, truncate_size
from zetabracket.models.intent import BookTop, Direction, PricingPlan, RiskSettings, Side

SLIPPAGE = 0.00005  # 0.005%, marketable-limit offset
TP_TRIGGER_FRACTION = 0.5
SL_TRIGGER_FRACTION = 0.9

log = logging.getLogger("zetabracket.pricing")

def _checked_book(book: BookTop) -> Tuple[float, float]:
    if book.best_ask is None or book.best_bid is None:
        raise OrderBookUnavailable(f"empty order book side (bid={book.best_bid}, ask={book.best_ask})")
    if book.best_ask <= 0 or book.best_bid <= 0:
        raise OrderBookUnavailable(f"non-positive book price (bid={book.best_bid}, ask={book.best_ask})")
    if book.best_ask < book.best_bid:
        raise OrderBookUnavailable(f"crossed order book (bid={book.best_bid} > ask={book.best_ask})")
    return book.best_bid, book.best_ask

def mark_price(book: BookTop) -> float:
    bid, ask = _checked_book(book)
    return (ask + bid) / 2

def compute_tpsl_prices(direction: Direction, price: float, settings: RiskSettings) -> Dict[str, float]:
    """TP/SL limit prices and their trigger prices around an entry price.

    TP trigger sits halfway to the TP price; SL trigger at 90% of the way to
    the SL price.
    """
    tp_pct = settings.take_profit_percentage
    sl_pct = settings.stop_loss_percentage
    is_long = direction == "long"

    take_profit_price = price + price * tp_pct if is_long else price - price * tp_pct
    take_profit_trigger = (price + (take_profit_price - price) * TP_TRIGGER_FRACTION if is_long
                           else price - (price - take_profit_price) * TP_TRIGGER_FRACTION)

    stop_loss_price = price - price * sl_pct if is_long else price + price * sl_pct
    stop_loss_trigger = (price - (price - stop_loss_price) * SL_TRIGGER_FRACTION if is_long
                         else price + (stop_loss_price - price) * SL_TRIGGER_FRACTION)

    return {
        "take_profit_price": take_profit_price,
        "take_profit_trigger": take_profit_trigger,
        "stop_loss_price": stop_loss_price,
        "stop_loss_trigger": stop_loss_trigger,
    }

def price_and_size(side: Side, book: BookTop, balance: float, settings: RiskSettings) -> Dict[str, float | int]:
    bid, ask = _checked_book(book)
    current_price = ask if side == "bid" else bid
    adjusted_price = current_price * (1 + SLIPPAGE) if side == "bid" else current_price * (1 - SLIPPAGE)

    raw_size = (float(balance) * settings.leverage_multiplier) / current_price
    size = truncate_size(raw_size, 1)
    if size <= 0:
        raise OrderSizeTooSmall(f"position size {raw_size:.6f} truncates to zero (balance={balance})")

    return {
        "current_price": current_price,
        "adjusted_price": adjusted_price,
        "position_size": float(size),
        "native_lot_size": to_native_lot_size(size),
    }

async def compute_pricing_plan(exchange: ExchangeClient, side: Side, market: str, balance: float,
                               settings: RiskSettings) -> PricingPlan:
    book = await exchange.fetch_orderbook(market)
    ps = price_and_size(side, book, balance, settings)
    direction: Direction = "long" if side == "bid" else "short"
    tpsl = compute_tpsl_prices(direction, ps["adjusted_price"], settings)
    log.info("order size: %.1f", ps["position_size"])
    return PricingPlan(
        side=side,
        native_price=to_native_price(ps["adjusted_price"]),
        **ps,
        **tpsl,
    )
