"""Exception types raised by Equity Advisor."""


class AdvisorError(ValueError):
    """Base class for errors raised by the advisory pipeline."""


class InsufficientValuationDataError(AdvisorError):
    """Raised when an entry price is requested without a composite fair value."""

    def __init__(self, symbol: str, detail: str = "no composite fair value available"):
        self.symbol = symbol
        self.detail = detail
        super().__init__(f"Insufficient valuation data for {symbol}: {detail}")
