"""
Fee component.

Public API for the platform fee split.
"""

from .component import load_config_from_rules, run, split
from .models import DEFAULT_FEE_RATE, FeeConfig, FeeSplit, SplitInput

__all__ = [
    # Functions
    "split",
    "load_config_from_rules",
    "run",
    # Models
    "DEFAULT_FEE_RATE",
    "FeeConfig",
    "FeeSplit",
    "SplitInput",
]
