"""Point-in-time resolution of per-package price histories."""

from dataclasses import dataclass
from datetime import date
from typing import Dict

# change date -> amount, one series per price type
PriceSeries = Dict[date, float]


@dataclass(frozen=True)
class PriceSample:
    """A single declared price: type, date it took effect, amount."""
    price_type: str  # "retail" or "exfactory"
    change_date: date
    amount: float


def add_sample(series_by_type: Dict[str, PriceSeries], sample: PriceSample) -> None:
    """
    Record a sample in its type's series.

    A later sample with the same type and change date replaces the earlier
    one; duplicate declarations are treated as equivalent.
    """
    series_by_type.setdefault(sample.price_type, {})[sample.change_date] = sample.amount


def resolve_price(series: PriceSeries, as_of: date) -> float:
    """
    Return the amount valid as of ``as_of``.

    That is the amount attached to the latest change date that is not after
    ``as_of``. Returns 0.0 ("no effective price") for an empty series or one
    where every sample postdates ``as_of``.
    """
    valid_dates = [d for d in series if d <= as_of]
    if not valid_dates:
        return 0.0
    return series[max(valid_dates)]
