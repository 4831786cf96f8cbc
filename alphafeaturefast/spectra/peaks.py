"""Peak and spectrum containers.

A Spectrum stores centroided peaks as two parallel float64 numpy arrays so
that the arrays can be handed straight to Numba kernels. Iterating a
Spectrum yields immutable Peak tuples.
"""

from typing import Iterator, NamedTuple, Optional, Sequence

import numpy as np


class Peak(NamedTuple):
    """A single centroided peak."""

    mz: float
    intensity: float


class Spectrum:
    """Centroided mass spectrum with strictly increasing m/z.

    Parameters
    ----------
    mz_array : array-like
        m/z values, strictly increasing
    intensity_array : array-like
        Intensities (>= 0), same length as mz_array
    validate : bool, default=True
        Check the ordering and intensity invariants. Disable only for arrays
        produced by code that already guarantees them.

    Raises
    ------
    ValueError
        If the arrays differ in length, m/z is not strictly increasing or an
        intensity is negative.

    Examples
    --------
    >>> spectrum = Spectrum([100.0, 200.0], [5.0, 10.0])
    >>> spectrum.size
    2
    >>> list(spectrum)[0]
    Peak(mz=100.0, intensity=5.0)
    """

    __slots__ = ('mz_array', 'intensity_array')

    def __init__(self, mz_array, intensity_array, validate: bool = True):
        mz_array = np.ascontiguousarray(mz_array, dtype=np.float64)
        intensity_array = np.ascontiguousarray(intensity_array, dtype=np.float64)

        if validate:
            if mz_array.ndim != 1 or intensity_array.ndim != 1:
                raise ValueError("Spectrum arrays must be one-dimensional")
            if len(mz_array) != len(intensity_array):
                raise ValueError(
                    f"m/z and intensity arrays differ in length: "
                    f"{len(mz_array)} != {len(intensity_array)}"
                )
            if len(mz_array) > 1 and not np.all(np.diff(mz_array) > 0):
                raise ValueError("Spectrum m/z values must be strictly increasing")
            if np.any(intensity_array < 0):
                raise ValueError("Spectrum intensities must be non-negative")

        self.mz_array = mz_array
        self.intensity_array = intensity_array

    @classmethod
    def from_peaks(cls, peaks: Sequence[Peak]) -> 'Spectrum':
        """Build a spectrum from (mz, intensity) pairs in m/z order."""
        if len(peaks) == 0:
            return cls(np.empty(0), np.empty(0))
        mz, intensity = zip(*peaks)
        return cls(mz, intensity)

    @property
    def size(self) -> int:
        return len(self.mz_array)

    def __len__(self) -> int:
        return len(self.mz_array)

    def __iter__(self) -> Iterator[Peak]:
        for mz, intensity in zip(self.mz_array, self.intensity_array):
            yield Peak(float(mz), float(intensity))

    def __getitem__(self, index: int) -> Peak:
        return Peak(float(self.mz_array[index]), float(self.intensity_array[index]))

    @property
    def peaks(self) -> list:
        return list(self)

    @property
    def total_intensity(self) -> float:
        return float(self.intensity_array.sum())

    @property
    def base_peak(self) -> Optional[Peak]:
        """Most intense peak, or None for an empty spectrum."""
        if len(self.mz_array) == 0:
            return None
        return self[int(np.argmax(self.intensity_array))]

    def get_closest_peak_index(self, mz: float) -> int:
        """Index of the peak closest to ``mz`` (-1 for an empty spectrum)."""
        n = len(self.mz_array)
        if n == 0:
            return -1
        idx = int(np.searchsorted(self.mz_array, mz))
        if idx == 0:
            return 0
        if idx == n:
            return n - 1
        if mz - self.mz_array[idx - 1] <= self.mz_array[idx] - mz:
            return idx - 1
        return idx

    def __eq__(self, other) -> bool:
        if not isinstance(other, Spectrum):
            return NotImplemented
        return (np.array_equal(self.mz_array, other.mz_array)
                and np.array_equal(self.intensity_array, other.intensity_array))

    __hash__ = None

    def __repr__(self) -> str:
        if len(self.mz_array) == 0:
            return "Spectrum(size=0)"
        return (f"Spectrum(size={len(self.mz_array)}, "
                f"mz_range=({self.mz_array[0]:.4f}, {self.mz_array[-1]:.4f}))")
