# cv_analyzer/services/scoring.py
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

Number = Union[int, float]


def overall_score(subscores: Iterable[Number]) -> int:
    """
    Unweighted mean of the dimension sub-scores, rounded half-up.

    Every sub-score must already be a 0..100 percentage. Raises ValueError on
    an empty input or an out-of-range value.
    """
    values = [float(s) for s in subscores]
    if not values:
        raise ValueError("overall_score needs at least one sub-score")
    for v in values:
        if v != v or v < 0 or v > 100:  # v != v catches NaN
            raise ValueError(f"sub-score out of range 0..100: {v}")

    mean = Decimal(str(sum(values))) / Decimal(len(values))
    return int(mean.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def clamp_score(value: Number) -> int:
    """Round a single model-reported score and keep it inside 0..100."""
    rounded = int(Decimal(str(float(value))).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return max(0, min(100, rounded))
