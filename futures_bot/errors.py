class EngineError(Exception):
    """
    Base class for every error raised by the trading engine and its collaborators.
    """


class DataUnavailable(EngineError):
    """
    Market data, order book or ticker could not be fetched (network / exchange error).
    Transient: the caller degrades and retries on the next tick.
    """


class OrderRejected(EngineError):
    """
    The exchange refused an order (insufficient balance, suspended symbol, bad amount ...).
    """


class InsufficientHistory(EngineError):
    """
    Candle series is shorter than an indicator requires.
    """

    def __init__(self, indicator: str, required: int, available: int):
        self.indicator = indicator
        self.required = required
        self.available = available
        super().__init__(f"{indicator} needs at least {required} values, got {available}")
