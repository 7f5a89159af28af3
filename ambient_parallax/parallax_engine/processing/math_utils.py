# ambient_parallax/parallax_engine/processing/math_utils.py
import math

def clamp(value: float, lo: float, hi: float) -> float:
    return min(max(value, lo), hi)

def lerp(start: float, end: float, t: float) -> float:
    return start + (end - start) * t

def normalize(value: float, lo: float, hi: float) -> float:
    """Maps value from [lo, hi] to [0, 1]. A degenerate range maps to 0."""
    if hi == lo:
        return 0.0
    return (value - lo) / (hi - lo)

def map_range(value: float, in_min: float, in_max: float, out_min: float, out_max: float) -> float:
    return out_min + (out_max - out_min) * normalize(value, in_min, in_max)

def is_finite_number(value) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except TypeError:
        return False
