"""Spectrum containers and replicate spectrum merging.

This module provides:
- Peak and Spectrum containers backed by float64 numpy arrays
- Tolerance-based k-way merging of replicate spectra
"""

from .peaks import Peak, Spectrum
from .merging import (
    within_ppm,
    merge_sorted_peak_lists,
    merge_spectra,
)

__all__ = [
    'Peak',
    'Spectrum',
    'within_ppm',
    'merge_sorted_peak_lists',
    'merge_spectra',
]
