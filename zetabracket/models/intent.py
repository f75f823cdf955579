from __future__ import annotations
import time
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Literal, Dict, Any

Direction = Literal["long", "short"]
Side = Literal["bid", "ask"]
PriorityLevel = Literal["min", "low", "medium", "high", "veryHigh", "unsafeMax"]
TriggerDirection = Literal["gte", "lte"]

DEFAULT_LEVERAGE_MULTIPLIER = 8.0
DEFAULT_TAKE_PROFIT_PERCENTAGE = 0.0018
DEFAULT_STOP_LOSS_PERCENTAGE = 0.022

def side_for(direction: Direction) -> Side:
    return "bid" if direction == "long" else "ask"

def opposite_side(side: Side) -> Side:
    return "ask" if side == "bid" else "bid"

class TradeIntent(BaseModel):
    model_config = ConfigDict(frozen=True)

    direction: Direction
    market: str = "SOL"

    @property
    def side(self) -> Side:
        return side_for(self.direction)

class RiskSettings(BaseModel):
    leverage_multiplier: float = DEFAULT_LEVERAGE_MULTIPLIER
    take_profit_percentage: float = DEFAULT_TAKE_PROFIT_PERCENTAGE
    stop_loss_percentage: float = DEFAULT_STOP_LOSS_PERCENTAGE

class BookTop(BaseModel):
    best_bid: Optional[float] = None
    best_ask: Optional[float] = None

class PricingPlan(BaseModel):
    side: Side
    current_price: float
    adjusted_price: float
    position_size: float = Field(description="Base units, truncated to one decimal.")
    native_lot_size: int
    native_price: int
    take_profit_price: float
    take_profit_trigger: float
    stop_loss_price: float
    stop_loss_trigger: float

class PriorityFeeState(BaseModel):
    level: PriorityLevel = "high"
    multiplier: float = 1.0
    current_fee_micro_lamports: int = 10_000
    updated_at: Optional[float] = None

    def replaced(self, fee: int) -> "PriorityFeeState":
        return self.model_copy(update={"current_fee_micro_lamports": int(fee), "updated_at": time.time()})

class Position(BaseModel):
    market: str
    size: float
    cost_of_trades: float = 0.0
    meta: Dict[str, Any] = Field(default_factory=dict)

class OrderInstruction(BaseModel):
    kind: Literal["place_perp_order", "place_trigger_order"]
    params: Dict[str, Any]
