"""
Utility module for common functions and constants.

This module contains:
- Default values and constants
- Configuration loading
- Presentation clocks and session storage
"""

import math

from .defaults import *


def round_half_up(x):
    """Round to the nearest integer with halves going up (0.5 -> 1)."""
    return int(math.floor(x + 0.5))


__all__ = ["round_half_up"]
