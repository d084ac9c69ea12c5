"""
Visualization module for audiometry results.

This module contains functions for:
- Plotting audiograms with clinical symbols
- Printing presentation progressions
"""

from .audiogram import plot_audiogram, plot_psychometric_comparison, print_progression

__all__ = ["plot_audiogram", "plot_psychometric_comparison", "print_progression"]
