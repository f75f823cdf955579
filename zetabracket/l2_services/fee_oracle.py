from __future__ import annotations
import asyncio, contextlib, logging, math
from typing import Callable, Dict, Optional, Sequence

import aiohttp

from zetabracket.errors import FeedFailure
from zetabracket.models.intent import PriorityFeeState, PriorityLevel

log = logging.getLogger("zetabracket.fees")

class HeliusFeeFeed:
    """Helius `getPriorityFeeEstimate`, all levels at once."""

    def __init__(self, url: str, account_keys: Sequence[str] = (),
                 session: aiohttp.ClientSession | None = None, timeout_s: float = 10.0):
        self.url = url
        self.account_keys = list(account_keys)
        self.timeout_s = timeout_s
        self._own = session is None
        self._session = session
        self.levels: Dict[str, float] = {}

    async def load(self) -> Dict[str, float]:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout_s))
        payload = {
            "jsonrpc": "2.0",
            "id": "zetabracket",
            "method": "getPriorityFeeEstimate",
            "params": [{
                "accountKeys": self.account_keys,
                "options": {"includeAllPriorityFeeLevels": True},
            }],
        }
        async with self._session.post(self.url, json=payload) as r:
            body = await r.json(content_type=None)
            if r.status >= 400:
                raise FeedFailure(f"priority fee feed HTTP {r.status}: {body}")
        if not isinstance(body, dict) or body.get("error"):
            raise FeedFailure(f"priority fee feed error: {body!r}")
        levels = (body.get("result") or {}).get("priorityFeeLevels")
        if not isinstance(levels, dict):
            raise FeedFailure(f"priority fee feed returned no levels: {body!r}")
        self.levels = {str(k): float(v) for k, v in levels.items()}
        return self.levels

    def fee_for(self, level: PriorityLevel) -> float:
        if level not in self.levels:
            raise FeedFailure(f"priority level {level!r} not in feed")
        return self.levels[level]

    async def close(self) -> None:
        if self._own and self._session is not None:
            await self._session.close()
            self._session = None

class FeeOracle:
    """
    Keeps the current priority fee fresh.

    The poll task and `refresh()` are the only writers of `state`; the trade
    path reads `state.current_fee_micro_lamports` and tolerates staleness.
    """

    def __init__(self, feed: HeliusFeeFeed, *, level: PriorityLevel = "high", multiplier: float = 1.0,
                 initial_fee: int = 10_000, poll_ms: int = 5000,
                 on_fee: Optional[Callable[[int], None]] = None):
        self.feed = feed
        self.poll_ms = poll_ms
        self.on_fee = on_fee
        self.state = PriorityFeeState(level=level, multiplier=multiplier, current_fee_micro_lamports=initial_fee)
        self._task: Optional[asyncio.Task] = None

    @property
    def current_fee(self) -> int:
        return self.state.current_fee_micro_lamports

    async def setup(self) -> None:
        try:
            await self.feed.load()
        except FeedFailure:
            raise
        except Exception as e:
            raise FeedFailure(f"priority fee feed unavailable: {e}") from e
        if self._task is None:
            self._task = asyncio.create_task(self._poll(), name="fee-oracle")

    async def refresh(self) -> int:
        try:
            await self.feed.load()
            fee = math.floor(self.feed.fee_for(self.state.level) * self.state.multiplier)
            self.state = self.state.replaced(fee)
            if self.on_fee is not None:
                self.on_fee(fee)
            log.info("priority fee (%s level): %d", self.state.level, fee)
        except Exception as e:
            log.error("Error updating priority fees: %s", e)
        return self.current_fee

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.poll_ms / 1000.0)
            await self.refresh()

    async def close(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        await self.feed.close()
