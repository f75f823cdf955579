from __future__ import annotations
import aiohttp, base64, itertools
from typing import Any, List, Optional

from zetabracket.domain.types import Blockhash, SendOptions
from zetabracket.errors import TradingError

USER_AGENT = "zetabracket/0.1"

class RpcError(TradingError):
    pass

class SolanaRPC:
    """Minimal Solana JSON-RPC client over aiohttp."""

    def __init__(self, url: str, ws_url: str | None = None, name: str | None = None,
                 session: aiohttp.ClientSession | None = None, timeout_s: float = 30.0):
        self.url = url
        self.ws_url = ws_url
        self.name = name or url
        self.timeout_s = timeout_s
        self._own = session is None
        self._session = session
        self._ids = itertools.count(1)

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": USER_AGENT},
                timeout=aiohttp.ClientTimeout(total=self.timeout_s),
            )
        return self._session

    async def close(self):
        if self._own and self._session is not None:
            await self._session.close()
            self._session = None

    async def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or []}
        async with self.session.post(self.url, json=payload) as r:
            body = await r.json(content_type=None)
            if r.status >= 400:
                raise RpcError(f"RPC {method} failed: status={r.status} body={body}")
        if not isinstance(body, dict):
            raise RpcError(f"invalid RPC response for {method}: {body!r}")
        if body.get("error"):
            raise RpcError(f"RPC error for {method}: {body['error']}")
        return body.get("result")

    async def get_latest_blockhash(self, commitment: str = "finalized") -> Blockhash:
        result = await self.call("getLatestBlockhash", [{"commitment": commitment}])
        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, dict) or not value.get("blockhash") or "lastValidBlockHeight" not in value:
            raise RpcError(f"unexpected getLatestBlockhash payload: {result!r}")
        return Blockhash(blockhash=str(value["blockhash"]),
                         last_valid_block_height=int(value["lastValidBlockHeight"]))

    async def send_transaction(self, raw: bytes, options: SendOptions) -> str:
        """sendTransaction for a signed, serialized transaction; returns the signature."""
        cfg = {
            "encoding": "base64",
            "skipPreflight": options.skip_preflight,
            "preflightCommitment": options.preflight_commitment,
        }
        sig = await self.call("sendTransaction", [base64.b64encode(raw).decode("ascii"), cfg])
        if not isinstance(sig, str) or not sig:
            raise RpcError(f"unexpected sendTransaction result: {sig!r}")
        return sig
