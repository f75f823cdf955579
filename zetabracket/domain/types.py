from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Tuple

from zetabracket.models.intent import OrderInstruction

@dataclass(frozen=True, slots=True)
class Blockhash:
    blockhash: str
    last_valid_block_height: int

@dataclass(frozen=True, slots=True)
class SendOptions:
    skip_preflight: bool = True
    preflight_commitment: str = "finalized"
    commitment: str = "finalized"

@dataclass(frozen=True, slots=True)
class OrderBundle:
    main: OrderInstruction
    take_profit: OrderInstruction
    stop_loss: OrderInstruction

    def instructions(self) -> Tuple[OrderInstruction, OrderInstruction, OrderInstruction]:
        return (self.main, self.take_profit, self.stop_loss)

@dataclass(slots=True)
class Transaction:
    instructions: Tuple[OrderInstruction, ...] = field(default_factory=tuple)
    recent_blockhash: Optional[str] = None
    last_valid_block_height: Optional[int] = None
    priority_fee_micro_lamports: Optional[int] = None

    @classmethod
    def from_bundle(cls, bundle: OrderBundle) -> "Transaction":
        return cls(instructions=bundle.instructions())

    def stamp(self, bh: Blockhash) -> None:
        self.recent_blockhash = bh.blockhash
        self.last_valid_block_height = bh.last_valid_block_height
