from __future__ import annotations
import json, os
from pathlib import Path
from typing import Dict, List, Literal, Optional, Tuple

from dotenv import dotenv_values
from pydantic import BaseModel, ValidationError, field_validator
from solders.keypair import Keypair

from zetabracket.errors import ConfigurationFailure
from zetabracket.models.intent import PriorityLevel

DEFAULT_EXCHANGE_CLIENT_FACTORY = "zetabracket.exchange.zeta.sdk_client:load_zeta_client"

class AppConfig(BaseModel):
    RPC_ENDPOINT_1: str
    RPC_WS_ENDPOINT_1: Optional[str] = None
    RPC_ENDPOINT_2: Optional[str] = None
    RPC_WS_ENDPOINT_2: Optional[str] = None
    RPC_ENDPOINT_3: Optional[str] = None
    RPC_WS_ENDPOINT_3: Optional[str] = None
    RPC_ROUTING: Literal["primary", "round_robin", "failover"] = "failover"

    KEYPAIR_FILE_PATH: str
    HELIUS_RPC: str
    PRIORITY_LEVEL: PriorityLevel = "high"
    PRIORITY_FEE_MULTIPLIER: float = 1.0
    PRIORITY_FEE_INITIAL: int = 10_000
    PRIORITY_FEE_POLL_MS: int = 5000

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: Optional[str] = None

    ACTIVE_MARKET: str = "SOL"
    SUBMIT_MAX_ATTEMPTS: int = 3
    SUBMIT_RETRY_DELAY_MS: int = 100
    SUBMIT_BACKOFF: Literal["fixed", "exponential"] = "fixed"
    TAKE_PROFIT_MODE: Literal["limit", "trigger"] = "limit"
    EXCHANGE_CLIENT_FACTORY: str = DEFAULT_EXCHANGE_CLIENT_FACTORY
    ZETA_NETWORK: Literal["mainnet_beta", "devnet"] = "mainnet_beta"

    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None

    @field_validator("RPC_ENDPOINT_1", "KEYPAIR_FILE_PATH", "HELIUS_RPC")
    @classmethod
    def _required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("SUBMIT_MAX_ATTEMPTS")
    @classmethod
    def _attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    def rpc_endpoints(self) -> List[Tuple[str, Optional[str]]]:
        """(http_url, ws_url) pairs, primary first; unset optional slots skipped."""
        eps: List[Tuple[str, Optional[str]]] = [(self.RPC_ENDPOINT_1, self.RPC_WS_ENDPOINT_1)]
        if self.RPC_ENDPOINT_2:
            eps.append((self.RPC_ENDPOINT_2, self.RPC_WS_ENDPOINT_2))
        if self.RPC_ENDPOINT_3:
            eps.append((self.RPC_ENDPOINT_3, self.RPC_WS_ENDPOINT_3))
        return eps

def _env_map(app_root: str | Path | None) -> Dict[str, str]:
    # .env fills gaps; the live environment wins
    root = Path(app_root or os.environ.get("APP", "."))
    merged: Dict[str, str] = {}
    env_file = root / ".env"
    if env_file.exists():
        merged.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    merged.update(os.environ)
    return merged

def load_config(app_root: str | Path | None = None, env: Dict[str, str] | None = None) -> AppConfig:
    data = env if env is not None else _env_map(app_root)
    fields = AppConfig.model_fields.keys()
    # empty strings count as unset for optional values
    picked = {k: v for k, v in data.items() if k in fields and v != ""}
    for req in ("RPC_ENDPOINT_1", "KEYPAIR_FILE_PATH", "HELIUS_RPC"):
        picked.setdefault(req, "")
    try:
        return AppConfig(**picked)
    except ValidationError as e:
        raise ConfigurationFailure(f"invalid configuration: {e}") from e

def load_keypair(path: str) -> Keypair:
    """Read a Solana secret key file (JSON array of 64 ints)."""
    try:
        raw = Path(path).read_text(encoding="utf-8")
        arr = json.loads(raw)
        if not isinstance(arr, list):
            raise ValueError("keypair file must contain a JSON integer array")
        return Keypair.from_bytes(bytes(arr))
    except (OSError, ValueError, TypeError) as e:
        raise ConfigurationFailure(f"cannot load keypair from {path!r}: {e}") from e
