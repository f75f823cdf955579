from __future__ import annotations
import logging
from typing import List

from zetabracket.exchange.zeta.instructions import build_bundle
from zetabracket.models.intent import TradeIntent
from zetabracket.orders.pricing import compute_pricing_plan
from zetabracket.services.session import TradingSession

log = logging.getLogger("zetabracket.orchestrator")

async def open_position_with_tpsl(session: TradingSession, intent: TradeIntent) -> str:
    """Open a position with TP and SL attached, all three orders in one transaction."""
    log.info("Opening %s position for %s", intent.direction, intent.market)

    settings = await session.settings.fetch()
    log.info("Using settings: %s", settings.model_dump())

    await session.fees.refresh()
    await session.exchange.refresh_state()
    balance = session.exchange.account_balance()

    plan = await compute_pricing_plan(session.exchange, intent.side, intent.market, balance, settings)
    log.info("Current price: %s, Adjusted price: %.4f", plan.current_price, plan.adjusted_price)
    log.info("TP Price: %.4f, TP Trigger: %.4f", plan.take_profit_price, plan.take_profit_trigger)
    log.info("SL Price: %.4f, SL Trigger: %.4f", plan.stop_loss_price, plan.stop_loss_trigger)

    tp_mode = session.config.TAKE_PROFIT_MODE
    session.slots.sync(session.exchange.trigger_order_bits())
    taken: List[int] = []
    try:
        tp_slot = None
        if tp_mode == "trigger":
            tp_slot = session.slots.allocate()
            taken.append(tp_slot)
        sl_slot = session.slots.allocate()
        taken.append(sl_slot)

        bundle = build_bundle(intent.direction, intent.market, plan,
                              sl_slot=sl_slot, tp_mode=tp_mode, tp_slot=tp_slot)
        txid = await session.submitter.submit(
            bundle,
            max_attempts=session.config.SUBMIT_MAX_ATTEMPTS,
            policy=session.retry_policy,
        )
    except Exception:
        for bit in taken:
            session.slots.release(bit)
        raise

    log.info("Transaction sent. txid: %s", txid)
    return txid
