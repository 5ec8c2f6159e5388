"""
Exception hierarchy shared by services and the API layer.

Missing price data is never an exception; it surfaces as ``None`` fields.
"""


class FolioError(Exception):
    """Base class for application errors."""


class InvalidRegionError(FolioError, ValueError):
    """Raised when a region is not one of USD, CAD or INTL."""

    def __init__(self, region: object):
        self.region = region
        super().__init__(f"Invalid region: {region!r}")


class UpstreamUnavailableError(FolioError):
    """Raised when a backing store (database, redis) fails a query."""


class HoldingNotFoundError(FolioError):
    """Raised when a holding id does not exist in the requested region."""

    def __init__(self, holding_id: int, region: str):
        self.holding_id = holding_id
        self.region = region
        super().__init__(f"Holding {holding_id} not found in {region} portfolio")


class DuplicateHoldingError(FolioError):
    """Raised when a symbol is already held in the requested region."""

    def __init__(self, symbol: str, region: str):
        self.symbol = symbol
        self.region = region
        super().__init__(f"{symbol} is already held in the {region} portfolio")
