"""
Build Zeta perp order instructions for one bracketed entry.

- Main: limit order at the slippage-adjusted price, trade side.
- TP: reduce-only limit order on the opposite side (default), or a
  reduce-only trigger order when the take-profit mode is "trigger".
- SL: reduce-only trigger order on the opposite side; fires a limit order at
  the stop price once the market crosses the stop trigger.

Builders are pure: they only describe the instruction. Encoding into program
instructions is the exchange client's job.
"""
from __future__ import annotations
from typing import Any, Dict, Literal

from zetabracket.domain.types import OrderBundle
from zetabracket.models.intent import Direction, OrderInstruction, PricingPlan, TriggerDirection, opposite_side, side_for
from .units import to_native_price

DEFAULT_ORDER_TAG = "SDK"
TakeProfitMode = Literal["limit", "trigger"]

def _perp_params(market: str, price: float, native_lot_size: int, side: str, reduce_only: bool) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "asset": market,
        "price": to_native_price(price),
        "size": int(native_lot_size),
        "side": side,
        "order_type": "limit",
        "tif_options": {},
    }
    if reduce_only:
        params["reduce_only"] = True
    return params

def _trigger_params(market: str, price: float, trigger_price: float, native_lot_size: int, side: str,
                    trigger_direction: TriggerDirection, slot: int) -> Dict[str, Any]:
    return {
        "asset": market,
        "order_price": to_native_price(price),
        "size": int(native_lot_size),
        "side": side,
        "trigger_price": to_native_price(trigger_price),
        "trigger_direction": trigger_direction,
        "trigger_ts": 0,  # price trigger
        "order_type": "limit",
        "trigger_order_bit": int(slot),
        "reduce_only": True,
        "tag": DEFAULT_ORDER_TAG,
    }

def build_main_order(market: str, plan: PricingPlan) -> OrderInstruction:
    return OrderInstruction(
        kind="place_perp_order",
        params=_perp_params(market, plan.adjusted_price, plan.native_lot_size, plan.side, reduce_only=False),
    )

def build_take_profit_limit(direction: Direction, market: str, plan: PricingPlan) -> OrderInstruction:
    # take_profit_trigger is deliberately unused on this leg
    side = opposite_side(side_for(direction))
    return OrderInstruction(
        kind="place_perp_order",
        params=_perp_params(market, plan.take_profit_price, plan.native_lot_size, side, reduce_only=True),
    )

def build_take_profit_trigger(direction: Direction, market: str, plan: PricingPlan, slot: int) -> OrderInstruction:
    side = opposite_side(side_for(direction))
    trig: TriggerDirection = "gte" if direction == "long" else "lte"
    return OrderInstruction(
        kind="place_trigger_order",
        params=_trigger_params(market, plan.take_profit_price, plan.take_profit_trigger,
                               plan.native_lot_size, side, trig, slot),
    )

def build_stop_loss_trigger(direction: Direction, market: str, plan: PricingPlan, slot: int) -> OrderInstruction:
    side = opposite_side(side_for(direction))
    trig: TriggerDirection = "lte" if direction == "long" else "gte"
    return OrderInstruction(
        kind="place_trigger_order",
        params=_trigger_params(market, plan.stop_loss_price, plan.stop_loss_trigger,
                               plan.native_lot_size, side, trig, slot),
    )

def build_bundle(direction: Direction, market: str, plan: PricingPlan, *, sl_slot: int,
                 tp_mode: TakeProfitMode = "limit", tp_slot: int | None = None) -> OrderBundle:
    if tp_mode == "trigger":
        if tp_slot is None:
            raise ValueError("take-profit trigger order requires a trigger slot")
        tp = build_take_profit_trigger(direction, market, plan, tp_slot)
    else:
        tp = build_take_profit_limit(direction, market, plan)
    return OrderBundle(
        main=build_main_order(market, plan),
        take_profit=tp,
        stop_loss=build_stop_loss_trigger(direction, market, plan, sl_slot),
    )
