"""
Trailing simple moving averages for price charts.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from trademind.core.exceptions import InvalidArgument
from trademind.services.market_data.base import CandleSeries

DEFAULT_WINDOWS = (50, 200)


@dataclass(frozen=True)
class OverlayPoint:
    timestamp: int
    close: float
    averages: Dict[int, Optional[float]] = field(default_factory=dict)


def moving_average(prices: Sequence[float], window: int) -> List[Optional[float]]:
    """
    Trailing simple moving average aligned with ``prices``.

    Index i holds the mean of prices[i - window + 1 .. i], or None while
    fewer than ``window`` prices are available. Runs in O(n) with a sliding
    sum.
    """
    if isinstance(window, bool) or not isinstance(window, int) or window < 1:
        raise InvalidArgument(f"window must be a positive integer, got {window!r}")

    out: List[Optional[float]] = []
    running = 0.0
    for i, price in enumerate(prices):
        running += price
        if i >= window:
            running -= prices[i - window]
        out.append(running / window if i + 1 >= window else None)
    return out


def moving_averages(
    prices: Sequence[float], windows: Iterable[int] = DEFAULT_WINDOWS
) -> Dict[int, List[Optional[float]]]:
    prices = list(prices)
    return {w: moving_average(prices, w) for w in windows}


def overlay(series: CandleSeries, windows: Iterable[int] = DEFAULT_WINDOWS) -> List[OverlayPoint]:
    closes = series.closes
    averages = moving_averages(closes, windows)
    return [
        OverlayPoint(
            timestamp=point.timestamp,
            close=point.close,
            averages={w: values[i] for w, values in averages.items()},
        )
        for i, point in enumerate(series.points)
    ]
