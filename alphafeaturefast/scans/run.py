"""In-memory LC-MS run: scan records, lookups and the aggregation entry point.

MsRun holds retention-time-ordered scan records numbered 1..N. Besides
scan lookups it exposes ``aggregate``, which runs the two-phase pipeline:

1. Phase A: ParallelScanProcessor deconvolves every included scan on a
   thread pool (barrier before phase B)
2. Phase B: FeatureAggregator walks the per-scan results in scan order and
   lazily emits features through a FeatureStream

Examples
--------
>>> run = MsRun.from_spectra(spectra, retention_times, deconvolver=my_deconvolver)
>>> stream = run.aggregate(min_charge=1, max_charge=6, aggregation_tolerance_ppm=5.0)
>>> for feature in stream:
...     print(feature.mass, feature.min_scan_index, feature.max_scan_index)
>>> stream.completed, stream.failures
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Sequence, Tuple

import numpy as np

from alphafeaturefast.config import AggregationParams
from alphafeaturefast.constants import (
    DEFAULT_AGGREGATION_TOLERANCE,
    DEFAULT_DECONVOLUTION_TOLERANCE,
    DEFAULT_INTENSITY_RATIO_LIMIT,
    DEFAULT_MAX_CHARGE,
    DEFAULT_MAX_MISSED_SCANS,
    DEFAULT_MIN_CHARGE,
)
from alphafeaturefast.mass import mz_to_neutral_mass, neutral_mass_to_mz
from ..deconvolution.envelopes import IsotopicEnvelope, ScanDeconvolver
from ..deconvolution.parallel import ParallelScanProcessor, ScanResults
from ..errors import ScanLevelMismatchError
from ..features.aggregation import FeatureAggregator
from ..features.stream import FeatureStream
from ..spectra.peaks import Spectrum

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ScanRecord:
    """One acquired scan."""

    one_based_scan_number: int
    retention_time: float
    ms_level: int
    spectrum: Spectrum


def is_ms1_scan(scan: ScanRecord) -> bool:
    return scan.ms_level == 1


class MsRun:
    """Retention-time-ordered collection of scans numbered 1..N.

    Parameters
    ----------
    scans : Sequence[ScanRecord]
        Scans in acquisition order; scan numbers must be 1..N and retention
        times non-decreasing
    deconvolver : ScanDeconvolver, optional
        Default deconvolver used by ``aggregate``

    Raises
    ------
    ValueError
        If scan numbers are not consecutive from 1 or retention times
        decrease
    """

    def __init__(self, scans: Sequence[ScanRecord], deconvolver: Optional[ScanDeconvolver] = None):
        scans = list(scans)
        for expected, scan in enumerate(scans, start=1):
            if scan.one_based_scan_number != expected:
                raise ValueError(
                    f"Scan numbers must run 1..N; found {scan.one_based_scan_number} "
                    f"at position {expected}"
                )
        retention_times = np.array([scan.retention_time for scan in scans], dtype=np.float64)
        if len(retention_times) > 1 and np.any(np.diff(retention_times) < 0):
            raise ValueError("Scan retention times must be non-decreasing")

        self._scans = scans
        self._retention_times = retention_times
        self.deconvolver = deconvolver

    @classmethod
    def from_spectra(
        cls,
        spectra: Sequence[Spectrum],
        retention_times: Sequence[float],
        ms_levels: Optional[Sequence[int]] = None,
        deconvolver: Optional[ScanDeconvolver] = None,
    ) -> 'MsRun':
        """Number spectra 1..N and wrap them in ScanRecords (MS1 by default)."""
        if len(spectra) != len(retention_times):
            raise ValueError("spectra and retention_times differ in length")
        if ms_levels is None:
            ms_levels = [1] * len(spectra)
        scans = [
            ScanRecord(i, float(rt), int(level), spectrum)
            for i, (spectrum, rt, level) in enumerate(zip(spectra, retention_times, ms_levels), start=1)
        ]
        return cls(scans, deconvolver=deconvolver)

    # ------------------------------------------------------------------
    # Scan lookups
    # ------------------------------------------------------------------

    @property
    def num_spectra(self) -> int:
        return len(self._scans)

    def __len__(self) -> int:
        return len(self._scans)

    def __iter__(self) -> Iterator[ScanRecord]:
        return iter(self._scans)

    @property
    def retention_times(self) -> np.ndarray:
        return self._retention_times

    def get_one_based_scan(self, scan_number: int) -> ScanRecord:
        if not 1 <= scan_number <= len(self._scans):
            raise IndexError(f"Scan {scan_number} outside 1..{len(self._scans)}")
        return self._scans[scan_number - 1]

    def get_ms1_scan(self, scan_number: int) -> ScanRecord:
        """Like ``get_one_based_scan`` but requires an MS1 scan."""
        scan = self.get_one_based_scan(scan_number)
        if scan.ms_level != 1:
            raise ScanLevelMismatchError(scan_number, scan.ms_level)
        return scan

    def get_ms1_scans(self) -> Iterator[ScanRecord]:
        for scan in self._scans:
            if scan.ms_level == 1:
                yield scan

    def get_scans_in_index_range(self, first: int, last: int) -> Iterator[ScanRecord]:
        """Scans ``first..last`` (inclusive, one-based)."""
        for scan_number in range(first, last + 1):
            yield self.get_one_based_scan(scan_number)

    def get_scans_in_time_range(self, first_rt: float, last_rt: float) -> Iterator[ScanRecord]:
        """Scans with ``first_rt <= retention_time <= last_rt``."""
        start = int(np.searchsorted(self._retention_times, first_rt, side='left'))
        stop = int(np.searchsorted(self._retention_times, last_rt, side='right'))
        for i in range(start, stop):
            yield self._scans[i]

    def get_closest_one_based_scan_number(self, retention_time: float) -> int:
        """Scan number whose retention time is closest (later scan on ties)."""
        n = len(self._retention_times)
        if n == 0:
            raise IndexError("Run contains no scans")
        idx = int(np.searchsorted(self._retention_times, retention_time, side='right'))
        if idx == n or (idx > 0 and retention_time - self._retention_times[idx - 1]
                        < self._retention_times[idx] - retention_time):
            return idx
        # Last of the scans sharing the nearest later retention time
        return int(np.searchsorted(self._retention_times, self._retention_times[idx], side='right'))

    def extract_ion_chromatogram(
        self,
        neutral_mass: float,
        charge: int,
        tolerance_ppm: float,
        retention_time: float,
        ms_level: int = 1,
        window_width: float = 5.0,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Extracted ion chromatogram around ``retention_time``.

        One point per scan of ``ms_level`` within ``retention_time +/-
        window_width / 2``. The intensity is that of the peak closest to the
        theoretical m/z when its neutral mass lies within ``tolerance_ppm``,
        else 0.

        Returns
        -------
        rt_array : np.ndarray
        intensity_array : np.ndarray
        """
        target_mz = neutral_mass_to_mz(neutral_mass, charge)
        half_width = window_width / 2

        rts = []
        intensities = []
        for scan in self.get_scans_in_time_range(retention_time - half_width, retention_time + half_width):
            if scan.ms_level != ms_level:
                continue
            intensity = 0.0
            idx = scan.spectrum.get_closest_peak_index(target_mz)
            if idx >= 0:
                observed_mass = mz_to_neutral_mass(scan.spectrum.mz_array[idx], charge)
                if abs(observed_mass - neutral_mass) / neutral_mass * 1e6 <= tolerance_ppm:
                    intensity = float(scan.spectrum.intensity_array[idx])
            rts.append(scan.retention_time)
            intensities.append(intensity)

        return np.array(rts, dtype=np.float64), np.array(intensities, dtype=np.float64)

    # ------------------------------------------------------------------
    # Deconvolution + aggregation
    # ------------------------------------------------------------------

    def deconvolve(
        self,
        min_scan: Optional[int] = None,
        max_scan: Optional[int] = None,
        min_charge: int = DEFAULT_MIN_CHARGE,
        max_charge: int = DEFAULT_MAX_CHARGE,
        deconvolution_tolerance_ppm: float = DEFAULT_DECONVOLUTION_TOLERANCE,
        intensity_ratio_limit: float = DEFAULT_INTENSITY_RATIO_LIMIT,
        include: Optional[Callable[[ScanRecord], bool]] = None,
        require_ms1: bool = False,
        deconvolver: Optional[ScanDeconvolver] = None,
        n_workers: int = -1,
        chunk_size: Optional[int] = None,
        timeout: Optional[float] = None,
        fail_fast: bool = False,
    ) -> ScanResults:
        """Phase A only: deconvolve the included scans in parallel.

        ``include`` is a predicate on ScanRecord and defaults to MS1 scans.
        With ``require_ms1``, included scans that are not MS1 fail with
        ScanLevelMismatchError as their cause.
        """
        deconvolver = deconvolver or self.deconvolver
        if deconvolver is None:
            raise ValueError("No deconvolver given and none attached to this run")

        min_scan = 1 if min_scan is None else min_scan
        max_scan = self.num_spectra if max_scan is None else max_scan
        if not 1 <= min_scan <= max_scan <= self.num_spectra:
            raise ValueError(
                f"Invalid scan range {min_scan}..{max_scan} for a run of {self.num_spectra} scans"
            )

        include = include or is_ms1_scan
        processor = ParallelScanProcessor(
            deconvolver,
            n_workers=n_workers,
            chunk_size=chunk_size,
            timeout=timeout,
            fail_fast=fail_fast,
        )
        return processor.run(
            self,
            min_scan,
            max_scan,
            include=lambda scan_index: include(self.get_one_based_scan(scan_index)),
            min_charge=min_charge,
            max_charge=max_charge,
            deconvolution_tolerance_ppm=deconvolution_tolerance_ppm,
            intensity_ratio_limit=intensity_ratio_limit,
            required_ms_level=1 if require_ms1 else None,
        )

    def _iter_scan_results(
        self, results: ScanResults
    ) -> Iterator[Tuple[int, float, Optional[Tuple[IsotopicEnvelope, ...]]]]:
        for scan_index, envelopes in results.items():
            yield scan_index, self._scans[scan_index - 1].retention_time, envelopes
            results.release(scan_index)

    def aggregate(
        self,
        min_scan: Optional[int] = None,
        max_scan: Optional[int] = None,
        min_charge: int = DEFAULT_MIN_CHARGE,
        max_charge: int = DEFAULT_MAX_CHARGE,
        deconvolution_tolerance_ppm: float = DEFAULT_DECONVOLUTION_TOLERANCE,
        intensity_ratio_limit: float = DEFAULT_INTENSITY_RATIO_LIMIT,
        aggregation_tolerance_ppm: float = DEFAULT_AGGREGATION_TOLERANCE,
        include: Optional[Callable[[ScanRecord], bool]] = None,
        max_missed_scans: int = DEFAULT_MAX_MISSED_SCANS,
        require_ms1: bool = False,
        deconvolver: Optional[ScanDeconvolver] = None,
        n_workers: int = -1,
        chunk_size: Optional[int] = None,
        timeout: Optional[float] = None,
        fail_fast: bool = False,
    ) -> FeatureStream:
        """Deconvolve scans in parallel, then aggregate envelopes into features.

        Phase A completes before this method returns, so PartialResultsError
        (cancel/timeout) and fail-fast DeconvolutionFailure are raised here.
        Phase B runs lazily as the returned stream is consumed.

        Parameters
        ----------
        min_scan, max_scan : int, optional
            Inclusive one-based scan range (default: whole run)
        min_charge, max_charge, deconvolution_tolerance_ppm, intensity_ratio_limit
            Passed to the deconvolver
        aggregation_tolerance_ppm : float
            Mass tolerance for matching envelopes to open features
        include : Callable[[ScanRecord], bool], optional
            Scan filter (default: MS1 only)
        max_missed_scans : int
            Scans a feature may go unextended before it is emitted

        Returns
        -------
        FeatureStream
            Single-pass stream of features; per-scan failures in
            ``stream.failures``
        """
        results = self.deconvolve(
            min_scan=min_scan,
            max_scan=max_scan,
            min_charge=min_charge,
            max_charge=max_charge,
            deconvolution_tolerance_ppm=deconvolution_tolerance_ppm,
            intensity_ratio_limit=intensity_ratio_limit,
            include=include,
            require_ms1=require_ms1,
            deconvolver=deconvolver,
            n_workers=n_workers,
            chunk_size=chunk_size,
            timeout=timeout,
            fail_fast=fail_fast,
        )
        aggregator = FeatureAggregator(aggregation_tolerance_ppm, max_missed_scans=max_missed_scans)
        return FeatureStream(
            aggregator.aggregate(self._iter_scan_results(results)),
            failures=results.failures,
        )

    def aggregate_with_params(
        self,
        params: AggregationParams,
        min_scan: Optional[int] = None,
        max_scan: Optional[int] = None,
        include: Optional[Callable[[ScanRecord], bool]] = None,
        deconvolver: Optional[ScanDeconvolver] = None,
    ) -> FeatureStream:
        """``aggregate`` driven by an AggregationParams instance."""
        params.validate()
        return self.aggregate(
            min_scan=min_scan,
            max_scan=max_scan,
            include=include,
            deconvolver=deconvolver,
            **params.to_dict(),
        )

    def __repr__(self) -> str:
        return f"MsRun(num_spectra={self.num_spectra})"
