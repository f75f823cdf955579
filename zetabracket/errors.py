from __future__ import annotations


class TradingError(Exception):
    pass

class ConfigurationFailure(TradingError):
    """Missing credential, endpoint or exchange factory. Fatal at startup."""

class FeedFailure(TradingError):
    pass

class SettingsStoreFailure(TradingError):
    pass

class QueryFailure(TradingError):
    pass

class OrderBookUnavailable(TradingError):
    """Empty or crossed book; sizing against it is undefined."""

class OrderSizeTooSmall(TradingError):
    pass

class NoFreeTriggerSlot(TradingError):
    pass

class SubmissionFailed(TradingError):
    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts
