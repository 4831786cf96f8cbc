"""Convenience wrapper functions for easy-to-use API.

This module wraps the core classes for callers that hold plain numpy arrays
or plain per-scan lists instead of Spectrum / MsRun objects.

Use these functions when you want a simple API without worrying about:
- Building Spectrum objects
- Driving a FeatureAggregator scan by scan
- Converting features for downstream tabular tools (numpy, pandas, TSV)

For large runs with a real deconvolver, use MsRun.aggregate directly.

Examples
--------
>>> mz, intensity = merge_peak_arrays([mz_a, mz_b], [int_a, int_b], ppm_tolerance=10.0)

>>> features = aggregate_envelopes(
...     [[IsotopicEnvelope(1000.0, 2)], [], [IsotopicEnvelope(1000.0, 2)]],
...     retention_times=[10.0, 10.1, 10.2],
... )
>>> table = features_to_array(features)
>>> table['mass']
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .constants import DEFAULT_AGGREGATION_TOLERANCE, DEFAULT_MAX_MISSED_SCANS
from .deconvolution.envelopes import IsotopicEnvelope
from .features.aggregation import FeatureAggregator
from .features.feature import Feature
from .spectra.merging import merge_spectra
from .spectra.peaks import Spectrum

logger = logging.getLogger(__name__)

FEATURE_DTYPE = np.dtype([
    ('mass', np.float64),
    ('min_scan_index', np.int64),
    ('max_scan_index', np.int64),
    ('min_elution_time', np.float64),
    ('max_elution_time', np.float64),
    ('total_intensity', np.float64),
    ('num_envelopes', np.int64),
    ('num_peaks', np.int64),
    ('num_mass_groups', np.int64),
])


# =============================================================================
# Spectrum Merging
# =============================================================================

def merge_peak_arrays(
    mz_arrays: Sequence[np.ndarray],
    intensity_arrays: Sequence[np.ndarray],
    ppm_tolerance: float,
    skip_empty: bool = False,
) -> Tuple[np.ndarray, np.ndarray]:
    """Merge replicate spectra given as parallel m/z and intensity arrays.

    Parameters
    ----------
    mz_arrays : Sequence[np.ndarray]
        One strictly increasing m/z array per spectrum
    intensity_arrays : Sequence[np.ndarray]
        Matching intensity arrays
    ppm_tolerance : float
        Merge tolerance in ppm
    skip_empty : bool, default=False
        Skip empty spectra instead of raising EmptyInputError

    Returns
    -------
    mz : np.ndarray (float64)
    intensity : np.ndarray (float64)

    Examples
    --------
    >>> merge_peak_arrays([np.array([500.0])], [np.array([1.0])], 10.0)
    (array([500.]), array([1.]))
    """
    if len(mz_arrays) != len(intensity_arrays):
        raise ValueError(
            f"Got {len(mz_arrays)} m/z arrays but {len(intensity_arrays)} intensity arrays"
        )
    spectra = [Spectrum(mz, intensity) for mz, intensity in zip(mz_arrays, intensity_arrays)]
    merged = merge_spectra(spectra, ppm_tolerance, skip_empty=skip_empty)
    return merged.mz_array, merged.intensity_array


# =============================================================================
# Feature Aggregation
# =============================================================================

def aggregate_envelopes(
    envelopes_by_scan: Sequence[Optional[Sequence[IsotopicEnvelope]]],
    retention_times: Sequence[float],
    aggregation_tolerance_ppm: float = DEFAULT_AGGREGATION_TOLERANCE,
    max_missed_scans: int = DEFAULT_MAX_MISSED_SCANS,
    first_scan_index: int = 1,
) -> List[Feature]:
    """Aggregate already-deconvolved scans into features.

    ``envelopes_by_scan[i]`` belongs to scan ``first_scan_index + i``; None
    marks a scan that was filtered out.

    Returns
    -------
    List[Feature]
        Features in emission order
    """
    if len(envelopes_by_scan) != len(retention_times):
        raise ValueError("envelopes_by_scan and retention_times differ in length")

    aggregator = FeatureAggregator(aggregation_tolerance_ppm, max_missed_scans=max_missed_scans)
    scans = (
        (first_scan_index + i, float(rt), envelopes)
        for i, (envelopes, rt) in enumerate(zip(envelopes_by_scan, retention_times))
    )
    return list(aggregator.aggregate(scans))


def features_to_array(features: Sequence[Feature]) -> np.ndarray:
    """Summarize features as a structured array (one row per feature).

    Field names are listed in ``FEATURE_DTYPE``.
    """
    table = np.zeros(len(features), dtype=FEATURE_DTYPE)
    for i, feature in enumerate(features):
        table[i] = (
            feature.mass,
            feature.min_scan_index,
            feature.max_scan_index,
            feature.min_elution_time,
            feature.max_elution_time,
            feature.total_intensity,
            feature.num_envelopes,
            feature.num_peaks,
            len(feature.mass_groups),
        )
    return table


# =============================================================================
# Tabular Export
# =============================================================================

def features_to_dataframe(features: Sequence[Feature]):
    """Feature summary as a pandas DataFrame (columns as in ``FEATURE_DTYPE``).

    Adds a ``charge_states`` column holding comma-separated charges.
    """
    import pandas as pd

    df = pd.DataFrame(features_to_array(features))
    df['charge_states'] = [','.join(str(z) for z in f.charge_states) for f in features]
    return df


def write_features_tsv(features: Sequence[Feature], tsv_path: str) -> None:
    """Write the feature summary to a tab-separated file."""
    df = features_to_dataframe(features)
    df.to_csv(tsv_path, sep='\t', index=False)

    logger.info(f"✓ Wrote {len(df):,} features to {Path(tsv_path).name}")
