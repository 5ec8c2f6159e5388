from dataclasses import asdict, dataclass
from typing import Optional


@dataclass(frozen=True)
class PerformanceMetrics:
    """Trailing returns in percent. Each field is None when no anchor price resolved."""
    mtd_return: Optional[float] = None
    ytd_return: Optional[float] = None
    six_month_return: Optional[float] = None
    fifty_two_week_return: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "PerformanceMetrics":
        return cls(
            mtd_return=data.get("mtd_return"),
            ytd_return=data.get("ytd_return"),
            six_month_return=data.get("six_month_return"),
            fifty_two_week_return=data.get("fifty_two_week_return"),
        )

    @property
    def is_empty(self) -> bool:
        return all(value is None for value in asdict(self).values())
