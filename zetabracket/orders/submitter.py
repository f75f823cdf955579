from __future__ import annotations
import asyncio, logging
from typing import Awaitable, Callable, Optional

from zetabracket.domain.types import OrderBundle, SendOptions, Transaction
from zetabracket.errors import SubmissionFailed
from zetabracket.exchange.client import ExchangeClient
from zetabracket.exchange.router import ConnectionRouter
from zetabracket.util.backoff import RetryPolicy

log = logging.getLogger("zetabracket.submitter")

class TransactionSubmitter:
    """
    Lands an OrderBundle as one transaction.
    Every attempt fetches a new finalized blockhash; a blockhash is never
    reused across attempts. The endpoint that served the blockhash also
    sends the transaction.
    """

    def __init__(self, exchange: ExchangeClient, router: ConnectionRouter,
                 options: SendOptions | None = None,
                 fee_source: Optional[Callable[[], int]] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.exchange = exchange
        self.router = router
        self.options = options or SendOptions()
        self.fee_source = fee_source
        self._sleep = sleep

    async def submit(self, bundle: OrderBundle, max_attempts: int = 3, retry_delay_ms: int = 100,
                     policy: RetryPolicy | None = None) -> str:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        policy = policy or RetryPolicy(kind="fixed", delay_ms=retry_delay_ms)

        for attempt in range(1, max_attempts + 1):
            rpc = self.router.pick()
            try:
                try:
                    bh = await rpc.get_latest_blockhash(self.options.commitment)
                except Exception:
                    self.router.record_failure(rpc)
                    raise
                self.router.record_success(rpc)
                log.info("attempt %d - fresh blockhash %s (valid until height %d, via %s)",
                         attempt, bh.blockhash, bh.last_valid_block_height, rpc.name)

                tx = Transaction.from_bundle(bundle)
                tx.stamp(bh)
                if self.fee_source is not None:
                    tx.priority_fee_micro_lamports = self.fee_source()

                txid = await self.exchange.process_transaction(tx, self.options, rpc)
                log.info("transaction sent successfully. txid: %s", txid)
                return txid
            except Exception as e:
                if attempt == max_attempts:
                    log.error("transaction failed after %d attempts. final error: %s", max_attempts, e)
                    raise SubmissionFailed(str(e), attempts=attempt) from e
                delay = policy.delay_for(attempt)
                log.warning("transaction attempt %d failed. retrying in %.0fms. error: %s",
                            attempt, delay * 1000, e)
                await self._sleep(delay)

        raise AssertionError("unreachable")
