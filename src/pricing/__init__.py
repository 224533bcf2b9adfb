from .comparator import Comparator, run_comparison, spread_percent
from .fill_calculator import available_depth, compute, is_ascending

__all__ = [
    "Comparator",
    "run_comparison",
    "spread_percent",
    "compute",
    "available_depth",
    "is_ascending",
]
