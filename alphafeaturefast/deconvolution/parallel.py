"""Parallel per-scan deconvolution over a scan-index range.

Every scan in the range is deconvolved independently, so the range is cut
into contiguous chunks and dispatched to a thread pool. Each chunk writes
only to its own slots of a preallocated ScanResults arena, which needs no
locking. The run returns after a barrier over all chunks, and only then may
the sequential feature aggregation read the arena.

Failure model
-------------
- A scan whose deconvolution raises is recorded as a DeconvolutionFailure;
  its siblings are unaffected (default)
- ``fail_fast=True`` stops dispatching work and raises the failure of the
  lowest-starting chunk once in-flight chunks stop
- ``cancel()`` stops dispatching new chunks, waits for in-flight chunks and
  raises PartialResultsError
- ``timeout`` aborts outstanding chunks and raises PartialResultsError, also
  while a fail-fast run waits for in-flight chunks

Examples
--------
>>> processor = ParallelScanProcessor(my_deconvolver, n_workers=4)
>>> results = processor.run(ms_run, min_scan=1, max_scan=500,
...                         include=lambda i: ms_run.get_one_based_scan(i).ms_level == 1)
>>> results[10]        # tuple of IsotopicEnvelope, or None if not attempted
>>> results.failures   # {scan_index: DeconvolutionFailure}
"""

import logging
import math
import os
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from alphafeaturefast.constants import (
    DEFAULT_DECONVOLUTION_TOLERANCE,
    DEFAULT_INTENSITY_RATIO_LIMIT,
    DEFAULT_MAX_CHARGE,
    DEFAULT_MIN_CHARGE,
    FULL_MZ_WINDOW,
)
from ..errors import DeconvolutionFailure, PartialResultsError, ScanLevelMismatchError
from .envelopes import IsotopicEnvelope, ScanDeconvolver

logger = logging.getLogger(__name__)

# Number of chunks per worker when no chunk size is given
CHUNKS_PER_WORKER = 4


class ScanResults:
    """Bounds-checked result arena over an inclusive scan-index range.

    Each slot holds either None ("not attempted": filtered out, failed, or
    released) or a tuple of envelopes ("attempted", possibly empty).
    """

    def __init__(self, min_scan: int, max_scan: int):
        if max_scan < min_scan:
            raise ValueError(f"Empty scan range: {min_scan}..{max_scan}")
        self.min_scan = min_scan
        self.max_scan = max_scan
        self._slots: List[Optional[Tuple[IsotopicEnvelope, ...]]] = [None] * (max_scan - min_scan + 1)
        self.failures: Dict[int, DeconvolutionFailure] = {}

    def _offset(self, scan_index: int) -> int:
        if not self.min_scan <= scan_index <= self.max_scan:
            raise IndexError(
                f"Scan index {scan_index} outside {self.min_scan}..{self.max_scan}"
            )
        return scan_index - self.min_scan

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, scan_index: int) -> bool:
        return self.min_scan <= scan_index <= self.max_scan

    def __getitem__(self, scan_index: int) -> Optional[Tuple[IsotopicEnvelope, ...]]:
        return self._slots[self._offset(scan_index)]

    def store(self, scan_index: int, envelopes: Sequence[IsotopicEnvelope]) -> None:
        self._slots[self._offset(scan_index)] = tuple(envelopes)

    def is_attempted(self, scan_index: int) -> bool:
        return self._slots[self._offset(scan_index)] is not None

    def record_failure(self, failure: DeconvolutionFailure) -> None:
        self._offset(failure.scan_index)
        self.failures[failure.scan_index] = failure

    def release(self, scan_index: int) -> None:
        """Drop a consumed slot; it reads as not attempted afterwards."""
        self._slots[self._offset(scan_index)] = None

    def scan_indices(self) -> range:
        return range(self.min_scan, self.max_scan + 1)

    def items(self) -> Iterator[Tuple[int, Optional[Tuple[IsotopicEnvelope, ...]]]]:
        for offset, envelopes in enumerate(self._slots):
            yield self.min_scan + offset, envelopes

    @property
    def num_attempted(self) -> int:
        return sum(1 for slot in self._slots if slot is not None)

    @property
    def num_envelopes(self) -> int:
        return sum(len(slot) for slot in self._slots if slot is not None)


class ParallelScanProcessor:
    """Run a deconvolver over a scan range on a fixed pool of worker threads.

    Parameters
    ----------
    deconvolver : ScanDeconvolver
        Callable ``(spectrum, mz_window, min_charge, max_charge,
        deconvolution_tolerance_ppm, intensity_ratio_limit) -> envelopes``
    n_workers : int, default=-1
        Worker threads; -1 uses one per CPU
    chunk_size : int, optional
        Scans per chunk; defaults to spreading the range over
        ``CHUNKS_PER_WORKER`` chunks per worker
    timeout : float, optional
        Seconds before outstanding chunks are aborted
    fail_fast : bool, default=False
        Raise the first per-scan failure instead of collecting it
    """

    def __init__(
        self,
        deconvolver: ScanDeconvolver,
        n_workers: int = -1,
        chunk_size: Optional[int] = None,
        timeout: Optional[float] = None,
        fail_fast: bool = False,
    ):
        if n_workers == 0 or n_workers < -1:
            raise ValueError(f"n_workers must be positive or -1, got {n_workers}")
        if chunk_size is not None and chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if timeout is not None and timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        self.deconvolver = deconvolver
        self.n_workers = (os.cpu_count() or 1) if n_workers == -1 else n_workers
        self.chunk_size = chunk_size
        self.timeout = timeout
        self.fail_fast = fail_fast
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """Stop dispatching chunks that have not started yet.

        A cancelled processor stays cancelled; create a new one to run again.
        """
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def partition(self, min_scan: int, max_scan: int) -> List[Tuple[int, int]]:
        """Split ``min_scan..max_scan`` into half-open ``(start, stop)`` chunks."""
        n_scans = max_scan - min_scan + 1
        if n_scans <= 0:
            return []
        size = self.chunk_size or max(1, math.ceil(n_scans / (self.n_workers * CHUNKS_PER_WORKER)))
        return [(start, min(start + size, max_scan + 1))
                for start in range(min_scan, max_scan + 1, size)]

    def _process_chunk(
        self,
        chunk: Tuple[int, int],
        results: ScanResults,
        scan_source,
        include: Optional[Callable[[int], bool]],
        abort: threading.Event,
        deconvolution_args: tuple,
        required_ms_level: Optional[int],
    ) -> Optional[List[DeconvolutionFailure]]:
        """Deconvolve one chunk; returns None if the chunk never started."""
        if self._cancel_event.is_set() or abort.is_set():
            return None

        failures = []
        for scan_index in range(*chunk):
            if abort.is_set():
                break
            try:
                if include is not None and not include(scan_index):
                    continue
                scan = scan_source.get_one_based_scan(scan_index)
                if required_ms_level is not None and scan.ms_level != required_ms_level:
                    raise ScanLevelMismatchError(scan_index, scan.ms_level, required_ms_level)
                envelopes = self.deconvolver(scan.spectrum, *deconvolution_args)
                results.store(scan_index, envelopes)
            except Exception as err:
                failure = DeconvolutionFailure(scan_index, err)
                if self.fail_fast:
                    raise failure from err
                failures.append(failure)
        return failures

    def run(
        self,
        scan_source,
        min_scan: int,
        max_scan: int,
        include: Optional[Callable[[int], bool]] = None,
        min_charge: int = DEFAULT_MIN_CHARGE,
        max_charge: int = DEFAULT_MAX_CHARGE,
        deconvolution_tolerance_ppm: float = DEFAULT_DECONVOLUTION_TOLERANCE,
        intensity_ratio_limit: float = DEFAULT_INTENSITY_RATIO_LIMIT,
        mz_window: Tuple[float, float] = FULL_MZ_WINDOW,
        required_ms_level: Optional[int] = None,
    ) -> ScanResults:
        """Deconvolve every included scan in ``min_scan..max_scan`` (inclusive).

        Parameters
        ----------
        scan_source
            Object with ``get_one_based_scan(scan_index)`` returning a record
            with a ``spectrum`` attribute (e.g. MsRun)
        min_scan, max_scan : int
            Inclusive scan-index range
        include : Callable[[int], bool], optional
            Predicate on the scan index; excluded scans stay "not attempted"
        required_ms_level : int, optional
            Included scans of any other MS level fail with
            ScanLevelMismatchError as their cause

        Returns
        -------
        ScanResults
            Filled arena; per-scan failures in ``results.failures``

        Raises
        ------
        DeconvolutionFailure
            Failure of the lowest-starting failed chunk, when ``fail_fast`` is set
        PartialResultsError
            When cancelled or timed out before every chunk ran; a fail-fast
            failure that hit the timeout is chained as its cause
        """
        if min_charge > max_charge:
            raise ValueError(f"min_charge {min_charge} > max_charge {max_charge}")

        results = ScanResults(min_scan, max_scan)
        chunks = self.partition(min_scan, max_scan)
        deconvolution_args = (
            mz_window, min_charge, max_charge,
            deconvolution_tolerance_ppm, intensity_ratio_limit,
        )
        abort = threading.Event()

        logger.info(
            f"Deconvolving scans {min_scan}-{max_scan} "
            f"({len(chunks)} chunks, {self.n_workers} workers)..."
        )

        timed_out = False
        first_failure: Optional[DeconvolutionFailure] = None
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        executor = ThreadPoolExecutor(max_workers=self.n_workers, thread_name_prefix='deconvolution')
        try:
            futures = {
                executor.submit(self._process_chunk, chunk, results, scan_source,
                                include, abort, deconvolution_args, required_ms_level): chunk
                for chunk in chunks
            }
            done, not_done = wait(futures, timeout=self.timeout, return_when=FIRST_EXCEPTION)

            if any(f.exception() is not None for f in done):
                # Fail fast: let in-flight chunks stop at their next scan
                abort.set()
                remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
                _, not_done = wait(not_done, timeout=remaining)
                raised = sorted(
                    (f for f in futures
                     if f.done() and not f.cancelled() and f.exception() is not None),
                    key=lambda f: futures[f][0],
                )
                first_failure = raised[0].exception()

            if not_done:
                timed_out = True
                abort.set()
                for future in not_done:
                    future.cancel()
        finally:
            executor.shutdown(wait=not timed_out, cancel_futures=True)

        if first_failure is not None and not timed_out:
            raise first_failure

        unfinished = []
        for future, chunk in sorted(futures.items(), key=lambda item: item[1][0]):
            if not future.done() or future.cancelled():
                unfinished.append(chunk)
                continue
            error = future.exception()
            if error is not None:
                # Fail-fast chunk of a run that also timed out
                results.record_failure(error)
                unfinished.append(chunk)
                continue
            outcome = future.result()
            if outcome is None:
                unfinished.append(chunk)
                continue
            for failure in outcome:
                logger.warning(f"Scan {failure.scan_index} failed: {failure.cause!r}")
                results.record_failure(failure)

        if unfinished:
            pending = [
                scan_index
                for chunk in unfinished
                for scan_index in range(*chunk)
                if not results.is_attempted(scan_index) and scan_index not in results.failures
            ]
            reason = f"timed out after {self.timeout}s" if timed_out else "cancelled"
            logger.warning(
                f"Deconvolution {reason}: {len(unfinished)} of {len(chunks)} chunks unfinished"
            )
            raise PartialResultsError(f"Deconvolution {reason}", results, pending) from first_failure

        logger.info(
            f"✓ Deconvolved {results.num_attempted:,} scans: "
            f"{results.num_envelopes:,} envelopes, {len(results.failures)} failures"
        )
        return results
