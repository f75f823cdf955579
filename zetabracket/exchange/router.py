from __future__ import annotations
import logging
from typing import Dict, List, Literal, Sequence

from zetabracket.exchange.rpc import SolanaRPC
from zetabracket.util.backoff import CircuitBreaker

RoutingPolicy = Literal["primary", "round_robin", "failover"]

log = logging.getLogger("zetabracket.router")

class ConnectionRouter:
    """
    Chooses which configured RPC endpoint serves a call.
    - primary: always endpoint 0.
    - round_robin: rotate across all endpoints.
    - failover: first endpoint whose breaker is closed, primary first;
      primary again if every breaker is open.
    """

    def __init__(self, endpoints: Sequence[SolanaRPC], policy: RoutingPolicy = "failover",
                 fail_threshold: int = 3, cooldown_s: float = 30.0):
        if not endpoints:
            raise ValueError("at least one RPC endpoint (the primary) is required")
        self.endpoints: List[SolanaRPC] = list(endpoints)
        self.policy = policy
        self._rr = 0
        self._breakers: Dict[int, CircuitBreaker] = {
            id(ep): CircuitBreaker(fail_threshold, cooldown_s) for ep in self.endpoints
        }

    @property
    def primary(self) -> SolanaRPC:
        return self.endpoints[0]

    def pick(self) -> SolanaRPC:
        if self.policy == "round_robin":
            ep = self.endpoints[self._rr % len(self.endpoints)]
            self._rr += 1
            return ep
        if self.policy == "failover":
            for ep in self.endpoints:
                if self._breakers[id(ep)].allow():
                    return ep
        return self.primary

    def record_success(self, ep: SolanaRPC) -> None:
        self._breakers[id(ep)].record_success()

    def record_failure(self, ep: SolanaRPC) -> None:
        br = self._breakers[id(ep)]
        br.record_failure()
        if not br.allow():
            log.warning("rpc endpoint %s marked unhealthy for %.0fs", ep.name, br.cooldown_s)

    async def close(self) -> None:
        for ep in self.endpoints:
            await ep.close()
