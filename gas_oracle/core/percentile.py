# /gas_oracle/core/percentile.py
from typing import Sequence

from gas_oracle.core.errors import InvalidPercentileError, NotReadyError

def percentile(values: Sequence[int], p: int) -> int:
    """
    Nearest-rank percentile of ``values``.

    Args:
        values: A snapshot of window observations, in any order.
        p: Percentile rank, an integer from 1 to 100 inclusive.

    Returns:
        The value at rank ``ceil(n * p / 100)`` of the ascending sort, with no
        interpolation between neighbours.
    """
    if isinstance(p, bool) or not isinstance(p, int) or p < 1 or p > 100:
        raise InvalidPercentileError("Percentile must be between 1 and 100.")
    ordered = sorted(values)
    if not ordered:
        raise NotReadyError("Please wait until the service has fetched at least one block.")
    # Integer ceiling keeps the rank exact for any window size.
    index = -(-len(ordered) * p // 100) - 1
    return ordered[index]
