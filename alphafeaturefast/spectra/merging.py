"""Tolerance-based merging of replicate spectra.

Combines K centroided spectra (for example replicate acquisitions of the same
sample) into one deduplicated spectrum. The inputs are walked with a k-way
merge: at every step the globally smallest unconsumed m/z is compared with a
running, intensity-weighted accumulator and either folded into it or used to
start a new one.

Merging is chained: a peak joins the current accumulator when it lies within
``ppm_tolerance`` of the accumulator's *current* centroid, not of the first
peak that opened it.

Performance
-----------
- O(N * K) for N total peaks over K spectra (linear minimum selection)
- Core loop Numba-compiled

Examples
--------
>>> from alphafeaturefast.spectra import Spectrum, merge_spectra
>>> a = Spectrum([500.0000, 600.0], [100.0, 10.0])
>>> b = Spectrum([500.0020, 700.0], [300.0, 20.0])
>>> merged = merge_spectra([a, b], ppm_tolerance=10.0)
>>> merged.size
3
"""

import logging
from typing import Sequence, Tuple

import numpy as np
from numba import njit

from ..errors import EmptyInputError
from .peaks import Spectrum

logger = logging.getLogger(__name__)


@njit
def within_ppm(candidate_mz: float, reference_mz: float, ppm_tolerance: float) -> bool:
    """Check ``(candidate - reference) / reference * 1e6 <= ppm_tolerance``.

    The comparison is one-sided: candidates are never below the reference in
    an m/z-ascending walk. A zero reference only accepts an identical
    candidate.
    """
    if reference_mz == 0.0:
        return candidate_mz == reference_mz and ppm_tolerance >= 0.0
    return (candidate_mz - reference_mz) / reference_mz * 1e6 <= ppm_tolerance


@njit
def merge_sorted_peak_lists(
    mz_flat: np.ndarray,
    intensity_flat: np.ndarray,
    offsets: np.ndarray,
    ppm_tolerance: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """K-way merge of m/z-sorted peak lists with a running ppm accumulator.

    Parameters
    ----------
    mz_flat : np.ndarray (float64)
        Concatenated m/z arrays of all spectra, each block sorted ascending
    intensity_flat : np.ndarray (float64)
        Concatenated intensities, parallel to mz_flat
    offsets : np.ndarray (int64)
        Block boundaries, length K + 1; spectrum k occupies
        ``[offsets[k], offsets[k + 1])``
    ppm_tolerance : float
        Relative tolerance against the accumulator centroid

    Returns
    -------
    merged_mz : np.ndarray (float64)
    merged_intensity : np.ndarray (float64)
    """
    n_spectra = len(offsets) - 1
    n_total = len(mz_flat)

    merged_mz = np.empty(n_total, dtype=np.float64)
    merged_intensity = np.empty(n_total, dtype=np.float64)

    # One cursor per spectrum; exhausted cursors show +inf
    cursors = offsets[:-1].copy()
    heads = np.empty(n_spectra, dtype=np.float64)
    for k in range(n_spectra):
        if cursors[k] < offsets[k + 1]:
            heads[k] = mz_flat[cursors[k]]
        else:
            heads[k] = np.inf

    n_out = 0
    has_accumulator = False
    acc_mz = 0.0
    acc_intensity = 0.0
    acc_weighted_mz = 0.0
    acc_mz_sum = 0.0
    acc_count = 0

    while True:
        # Linear scan for the smallest live head
        best = -1
        best_mz = np.inf
        for k in range(n_spectra):
            if heads[k] < best_mz:
                best_mz = heads[k]
                best = k
        if best < 0:
            break

        intensity = intensity_flat[cursors[best]]
        cursors[best] += 1
        if cursors[best] < offsets[best + 1]:
            heads[best] = mz_flat[cursors[best]]
        else:
            heads[best] = np.inf

        if has_accumulator and within_ppm(best_mz, acc_mz, ppm_tolerance):
            acc_intensity += intensity
            acc_weighted_mz += best_mz * intensity
            acc_mz_sum += best_mz
            acc_count += 1
            if acc_intensity > 0.0:
                acc_mz = acc_weighted_mz / acc_intensity
            else:
                acc_mz = acc_mz_sum / acc_count
        else:
            if has_accumulator:
                merged_mz[n_out] = acc_mz
                merged_intensity[n_out] = acc_intensity
                n_out += 1
            has_accumulator = True
            acc_mz = best_mz
            acc_intensity = intensity
            acc_weighted_mz = best_mz * intensity
            acc_mz_sum = best_mz
            acc_count = 1

    # Flush the last open accumulator
    if has_accumulator:
        merged_mz[n_out] = acc_mz
        merged_intensity[n_out] = acc_intensity
        n_out += 1

    return merged_mz[:n_out], merged_intensity[:n_out]


def merge_spectra(
    spectra: Sequence[Spectrum],
    ppm_tolerance: float,
    skip_empty: bool = False,
) -> Spectrum:
    """Merge K spectra into one deduplicated spectrum.

    Every input peak contributes to exactly one output peak. Output
    intensities are sums; output m/z values are intensity-weighted means of
    the contributing peaks.

    Parameters
    ----------
    spectra : Sequence[Spectrum]
        Spectra to merge, each m/z-ascending
    ppm_tolerance : float
        Relative merge tolerance. 0 coalesces only identical m/z values; a
        negative value never coalesces.
    skip_empty : bool, default=False
        Skip empty spectra (with a warning) instead of raising

    Returns
    -------
    Spectrum
        Merged spectrum. With a negative ``ppm_tolerance`` no peaks
        coalesce, so equal m/z values from different inputs are repeated and
        the m/z array is only non-decreasing.

    Raises
    ------
    EmptyInputError
        If ``spectra`` is empty, or contains an empty spectrum and
        ``skip_empty`` is False, or every spectrum was skipped
    """
    kept = []
    for i, spectrum in enumerate(spectra):
        if len(spectrum) == 0:
            if not skip_empty:
                raise EmptyInputError(f"Spectrum {i} has no peaks", spectrum_index=i)
            logger.warning(f"Skipping empty spectrum {i} during merge")
            continue
        kept.append(spectrum)

    if not kept:
        raise EmptyInputError("No non-empty spectra to merge")

    mz_flat = np.concatenate([s.mz_array for s in kept])
    intensity_flat = np.concatenate([s.intensity_array for s in kept])
    offsets = np.zeros(len(kept) + 1, dtype=np.int64)
    offsets[1:] = np.cumsum([len(s) for s in kept])

    merged_mz, merged_intensity = merge_sorted_peak_lists(
        mz_flat, intensity_flat, offsets, float(ppm_tolerance)
    )

    logger.debug(
        f"Merged {len(kept)} spectra ({len(mz_flat):,} peaks) "
        f"into {len(merged_mz):,} peaks at {ppm_tolerance} ppm"
    )

    # ppm < 0 can emit repeated m/z values, so skip strict validation
    return Spectrum(merged_mz, merged_intensity, validate=False)
