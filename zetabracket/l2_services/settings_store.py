from __future__ import annotations
import logging, math
from typing import Any, Dict, Mapping

import redis.asyncio as redis

from zetabracket.errors import SettingsStoreFailure
from zetabracket.models.intent import RiskSettings

SETTINGS_KEY = "trading_settings"

# redis field name -> RiskSettings attribute
FIELDS = {
    "leverageMultiplier": "leverage_multiplier",
    "takeProfitPercentage": "take_profit_percentage",
    "stopLossPercentage": "stop_loss_percentage",
}
_BY_ATTR = {v: k for k, v in FIELDS.items()}

log = logging.getLogger("zetabracket.settings")

def _parse(raw: Any, default: float) -> float:
    # missing, junk, non-finite and 0 all fall back to the default
    try:
        v = float(raw)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(v) or v == 0:
        return default
    return v

def settings_from_hash(h: Mapping[str, Any]) -> RiskSettings:
    defaults = RiskSettings()
    return RiskSettings(**{
        attr: _parse(h.get(field), getattr(defaults, attr)) for field, attr in FIELDS.items()
    })

class SettingsProvider:
    """Risk settings kept in the `trading_settings` redis hash."""

    def __init__(self, client: "redis.Redis"):
        self.r = client

    @classmethod
    def from_params(cls, host: str = "localhost", port: int = 6379, password: str | None = None) -> "SettingsProvider":
        return cls(redis.Redis(host=host, port=port, password=password, decode_responses=True))

    async def fetch(self) -> RiskSettings:
        try:
            h = await self.r.hgetall(SETTINGS_KEY)
        except Exception as e:
            log.error("Error fetching settings from redis: %s", e)
            return RiskSettings()
        return settings_from_hash(h or {})

    async def update(self, new_settings: Mapping[str, Any] | RiskSettings) -> RiskSettings:
        if isinstance(new_settings, RiskSettings):
            new_settings = new_settings.model_dump()
        mapping: Dict[str, str] = {}
        for k, v in new_settings.items():
            field = _BY_ATTR.get(k, k)
            if field not in FIELDS:
                raise KeyError(f"unknown risk setting {k!r}")
            mapping[field] = str(v)
        if mapping:
            try:
                await self.r.hset(SETTINGS_KEY, mapping=mapping)
            except Exception as e:
                log.error("Error writing settings to redis: %s", e)
                raise SettingsStoreFailure(str(e)) from e
        return await self.fetch()

    async def close(self) -> None:
        await self.r.aclose()
