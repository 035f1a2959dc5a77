from __future__ import annotations

import math
from typing import Iterable
import numpy as np


def safe_mean(values: Iterable[float]) -> float:
    vals = list(values)
    if not vals:
        return 0.0
    return float(np.mean(vals))


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def is_unit_score(value: object) -> bool:
    """
    True for a real number in [0, 1] (bools and NaN excluded).
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value) and 0.0 <= value <= 1.0
