"""Physical constants and tolerance defaults for cross-scan aggregation.

This module collects the mass constants, isotope spacings and default
tolerances used throughout AlphaFeatureFast. Values that are needed inside
Numba JIT-compiled code are also provided as float64 arrays.

Key Features
------------
- Correct PROTON_MASS (1.007276466622 Da, not hydrogen atom mass!)
- Empirical averagine isotope spacings used for feature matching
- Ordered isotope-offset hypotheses as a Numba-friendly array
- Default tolerance settings for merging and aggregation

Sources
-------
- NIST physical constants: https://physics.nist.gov/cgi-bin/cuu/Value
"""

import numpy as np

# =============================================================================
# Fundamental Physical Constants (NIST values)
# =============================================================================

# Proton mass (NOT hydrogen atom mass!)
# Source: NIST 2018 CODATA
PROTON_MASS = 1.007276466622  # Da

# Mass difference between C12 and C13
C13_MASS_DIFF = 1.0033548  # Da

# =============================================================================
# Isotope Spacings for Feature Matching
# =============================================================================

# Averagine-derived spacings between the monoisotopic peak and the +1/+2/+3
# isotopologues. These are empirical and deliberately NOT integer multiples
# of C13_MASS_DIFF.
ISOTOPE_SPACING_1 = 1.002868314  # Da
ISOTOPE_SPACING_2 = 2.005408917  # Da
ISOTOPE_SPACING_3 = 3.007841294  # Da

# Hypotheses tried when matching an envelope mass against a feature mass,
# in the order they are checked: exact, +1, -1, +2, -2, +3, -3.
ISOTOPE_OFFSET_HYPOTHESES = np.array([
    0.0,
    ISOTOPE_SPACING_1, -ISOTOPE_SPACING_1,
    ISOTOPE_SPACING_2, -ISOTOPE_SPACING_2,
    ISOTOPE_SPACING_3, -ISOTOPE_SPACING_3,
], dtype=np.float64)

# Flat tolerance for assigning an envelope to a per-offset mass bucket
# inside one feature
MASS_BUCKET_TOLERANCE_DA = 0.5  # Da

# =============================================================================
# Default Tolerance Settings
# =============================================================================

# Replicate spectrum merging
DEFAULT_MERGE_TOLERANCE = 10.0  # ppm

# Per-scan deconvolution, handed to the deconvolver untouched
DEFAULT_DECONVOLUTION_TOLERANCE = 4.0  # ppm
DEFAULT_INTENSITY_RATIO_LIMIT = 3.0

# Cross-scan feature aggregation
DEFAULT_AGGREGATION_TOLERANCE = 5.0  # ppm

# Number of consecutive scans a feature may go unextended before eviction
DEFAULT_MAX_MISSED_SCANS = 1

# Charge range handed to the deconvolver
DEFAULT_MIN_CHARGE = 1
DEFAULT_MAX_CHARGE = 10

# m/z window handed to the deconvolver (whole spectrum)
FULL_MZ_WINDOW = (0.0, float('inf'))


def validate_constants():
    """Validate that constants are physically reasonable.

    Raises AssertionError if any constant is out of expected range.
    """
    assert 1.0072 < PROTON_MASS < 1.0073, f"PROTON_MASS is wrong: {PROTON_MASS}"

    # Spacings must be increasing and close to multiples of one neutron
    spacings = (ISOTOPE_SPACING_1, ISOTOPE_SPACING_2, ISOTOPE_SPACING_3)
    for n, spacing in enumerate(spacings, start=1):
        assert abs(spacing - n * C13_MASS_DIFF) < 0.01, \
            f"Isotope spacing {n} is wrong: {spacing}"

    assert len(ISOTOPE_OFFSET_HYPOTHESES) == 7
    assert ISOTOPE_OFFSET_HYPOTHESES[0] == 0.0
