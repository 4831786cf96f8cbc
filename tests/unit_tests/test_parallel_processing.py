"""Tests for parallel per-scan deconvolution.

Tests:
- Chunk partitioning
- ScanResults bounds checking and slot states
- Every included scan deconvolved exactly once
- Per-scan failure isolation and fail-fast
- Cancellation and timeout yielding partial results
"""

import logging
import threading
import time
import unittest

import pytest

from alphafeaturefast.constants import FULL_MZ_WINDOW
from alphafeaturefast.deconvolution import IsotopicEnvelope, ParallelScanProcessor, ScanResults
from alphafeaturefast.errors import (
    DeconvolutionFailure,
    PartialResultsError,
    ScanLevelMismatchError,
)


class TestScanResults(unittest.TestCase):
    """Test the result arena."""

    def test_bounds(self):
        results = ScanResults(5, 9)

        self.assertEqual(len(results), 5)
        self.assertIn(5, results)
        self.assertNotIn(10, results)
        with self.assertRaises(IndexError):
            results[4]
        with self.assertRaises(IndexError):
            results.store(10, [])

    def test_slot_states(self):
        results = ScanResults(1, 3)
        results.store(1, [IsotopicEnvelope(1000.0, 1)])
        results.store(2, [])

        self.assertTrue(results.is_attempted(1))
        self.assertTrue(results.is_attempted(2))
        self.assertFalse(results.is_attempted(3))
        self.assertEqual(results[2], ())
        self.assertEqual(results.num_attempted, 2)
        self.assertEqual(results.num_envelopes, 1)

    def test_release(self):
        results = ScanResults(1, 2)
        results.store(1, [IsotopicEnvelope(1000.0, 1)])

        results.release(1)

        self.assertIsNone(results[1])
        self.assertEqual(results.num_envelopes, 0)

    def test_items_in_scan_order(self):
        results = ScanResults(3, 5)
        results.store(4, [])

        self.assertEqual(list(results.items()), [(3, None), (4, ()), (5, None)])
        self.assertEqual(list(results.scan_indices()), [3, 4, 5])

    def test_record_failure_out_of_range(self):
        results = ScanResults(1, 2)
        with self.assertRaises(IndexError):
            results.record_failure(DeconvolutionFailure(7, RuntimeError("x")))

    def test_empty_range(self):
        with self.assertRaises(ValueError):
            ScanResults(5, 4)


class TestProcessorParams(unittest.TestCase):
    """Test constructor validation and partitioning."""

    def test_invalid_params(self):
        with self.assertRaises(ValueError):
            ParallelScanProcessor(lambda *a: [], n_workers=0)
        with self.assertRaises(ValueError):
            ParallelScanProcessor(lambda *a: [], n_workers=-2)
        with self.assertRaises(ValueError):
            ParallelScanProcessor(lambda *a: [], chunk_size=0)
        with self.assertRaises(ValueError):
            ParallelScanProcessor(lambda *a: [], timeout=0)

    def test_all_cpus(self):
        processor = ParallelScanProcessor(lambda *a: [], n_workers=-1)
        self.assertGreaterEqual(processor.n_workers, 1)

    def test_partition_default(self):
        processor = ParallelScanProcessor(lambda *a: [], n_workers=2)

        chunks = processor.partition(1, 10)

        self.assertEqual(chunks, [(1, 3), (3, 5), (5, 7), (7, 9), (9, 11)])

    def test_partition_chunk_size(self):
        processor = ParallelScanProcessor(lambda *a: [], n_workers=2, chunk_size=4)

        self.assertEqual(processor.partition(1, 10), [(1, 5), (5, 9), (9, 11)])

    def test_partition_covers_range_once(self):
        processor = ParallelScanProcessor(lambda *a: [], n_workers=3)

        covered = [i for chunk in processor.partition(17, 250) for i in range(*chunk)]

        self.assertEqual(covered, list(range(17, 251)))


class TestParallelRun:
    """Test running the processor over an MsRun."""

    def test_every_scan_once(self, run_factory, envelope):
        run, deconvolver = run_factory([[envelope(1000.0 + i)] for i in range(40)])
        processor = ParallelScanProcessor(deconvolver, n_workers=4, chunk_size=3)

        results = processor.run(run, 1, 40)

        assert len(deconvolver.calls) == 40
        assert len(set(deconvolver.calls)) == 40
        assert results.num_attempted == 40
        for scan_index in range(1, 41):
            assert results[scan_index][0].monoisotopic_mass == 1000.0 + scan_index - 1

    def test_subrange(self, run_factory, envelope):
        run, deconvolver = run_factory([[envelope(1000.0)] for _ in range(10)])

        results = ParallelScanProcessor(deconvolver, n_workers=2).run(run, 3, 6)

        assert results.min_scan == 3
        assert results.max_scan == 6
        assert len(deconvolver.calls) == 4

    def test_arguments_passed_through(self, run_factory):
        run, deconvolver = run_factory([[], []])

        ParallelScanProcessor(deconvolver, n_workers=1).run(
            run, 1, 2,
            min_charge=2, max_charge=5,
            deconvolution_tolerance_ppm=3.0,
            intensity_ratio_limit=2.0,
        )

        assert deconvolver.arguments == [(FULL_MZ_WINDOW, 2, 5, 3.0, 2.0)] * 2

    def test_invalid_charge_range(self, run_factory):
        run, deconvolver = run_factory([[]])
        with pytest.raises(ValueError):
            ParallelScanProcessor(deconvolver).run(run, 1, 1, min_charge=3, max_charge=2)

    def test_include_predicate(self, run_factory, envelope):
        run, deconvolver = run_factory([[envelope(1000.0)] for _ in range(6)])

        results = ParallelScanProcessor(deconvolver, n_workers=2).run(
            run, 1, 6, include=lambda i: i % 2 == 1
        )

        assert len(deconvolver.calls) == 3
        assert [i for i, envs in results.items() if envs is not None] == [1, 3, 5]

    def test_failures_are_isolated(self, run_factory, envelope, caplog):
        run, deconvolver = run_factory(
            [[envelope(1000.0)] for _ in range(6)], failing_scans=(2, 4)
        )

        with caplog.at_level(logging.WARNING):
            results = ParallelScanProcessor(deconvolver, n_workers=3, chunk_size=1).run(run, 1, 6)

        assert sorted(results.failures) == [2, 4]
        failure = results.failures[2]
        assert isinstance(failure, DeconvolutionFailure)
        assert isinstance(failure.cause, RuntimeError)
        assert results[2] is None
        assert results.num_attempted == 4
        assert "Scan 2 failed" in caplog.text

    def test_fail_fast(self, run_factory, envelope):
        run, deconvolver = run_factory(
            [[envelope(1000.0)] for _ in range(6)], failing_scans=(3,)
        )
        processor = ParallelScanProcessor(deconvolver, n_workers=2, chunk_size=2, fail_fast=True)

        with pytest.raises(DeconvolutionFailure) as exc_info:
            processor.run(run, 1, 6)

        assert exc_info.value.scan_index == 3
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_fail_fast_reports_lowest_chunk(self, run_factory):
        run, _ = run_factory([[] for _ in range(2)])
        slow_spectrum = run.get_one_based_scan(1).spectrum

        def failing_deconvolver(spectrum, *args):
            if spectrum is slow_spectrum:
                time.sleep(0.2)
                raise RuntimeError("slow failure")
            raise RuntimeError("fast failure")

        processor = ParallelScanProcessor(failing_deconvolver, n_workers=2, chunk_size=1, fail_fast=True)

        with pytest.raises(DeconvolutionFailure) as exc_info:
            processor.run(run, 1, 2)

        assert exc_info.value.scan_index == 1
        assert str(exc_info.value.cause) == "slow failure"

    def test_required_ms_level(self, run_factory, envelope):
        run, deconvolver = run_factory(
            [[envelope(1000.0)]] * 3, ms_levels=[1, 2, 1]
        )

        results = ParallelScanProcessor(deconvolver, n_workers=1).run(
            run, 1, 3, required_ms_level=1
        )

        assert list(results.failures) == [2]
        assert isinstance(results.failures[2].cause, ScanLevelMismatchError)
        assert len(deconvolver.calls) == 2


class TestCancellation:
    """Test cancellation and timeout."""

    def test_cancel_before_run(self, run_factory):
        run, deconvolver = run_factory([[] for _ in range(5)])
        processor = ParallelScanProcessor(deconvolver, n_workers=2)
        processor.cancel()

        with pytest.raises(PartialResultsError) as exc_info:
            processor.run(run, 1, 5)

        assert processor.cancelled
        assert deconvolver.calls == []
        assert exc_info.value.pending == [1, 2, 3, 4, 5]
        assert exc_info.value.results.num_attempted == 0

    def test_cancel_during_run(self, run_factory, envelope):
        run, _ = run_factory([[] for _ in range(5)])
        holder = {}

        def cancelling_deconvolver(spectrum, *args):
            holder['processor'].cancel()
            return [envelope(1000.0)]

        processor = ParallelScanProcessor(cancelling_deconvolver, n_workers=1, chunk_size=1)
        holder['processor'] = processor

        with pytest.raises(PartialResultsError) as exc_info:
            processor.run(run, 1, 5)

        partial = exc_info.value.results
        assert partial.is_attempted(1)
        assert exc_info.value.pending == [2, 3, 4, 5]
        assert exc_info.value.failures == {}

    def test_timeout(self, run_factory):
        run, _ = run_factory([[] for _ in range(3)])
        release = threading.Event()
        slow_spectrum = run.get_one_based_scan(2).spectrum

        def blocking_deconvolver(spectrum, *args):
            if spectrum is slow_spectrum:
                release.wait(10.0)
            return []

        processor = ParallelScanProcessor(blocking_deconvolver, n_workers=1, chunk_size=1, timeout=0.2)
        try:
            with pytest.raises(PartialResultsError) as exc_info:
                processor.run(run, 1, 3)
        finally:
            release.set()

        assert "timed out" in str(exc_info.value)
        assert exc_info.value.results.is_attempted(1)
        assert 3 in exc_info.value.pending

    def test_timeout_while_failing_fast(self, run_factory):
        run, _ = run_factory([[] for _ in range(2)])
        release = threading.Event()
        failing_spectrum = run.get_one_based_scan(1).spectrum

        def deconvolver(spectrum, *args):
            if spectrum is failing_spectrum:
                time.sleep(0.1)
                raise RuntimeError("failed")
            release.wait(5.0)
            return []

        processor = ParallelScanProcessor(
            deconvolver, n_workers=2, chunk_size=1, timeout=0.3, fail_fast=True
        )
        start = time.monotonic()
        try:
            with pytest.raises(PartialResultsError) as exc_info:
                processor.run(run, 1, 2)
            elapsed = time.monotonic() - start
        finally:
            release.set()

        assert elapsed < 2.0
        assert "timed out" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, DeconvolutionFailure)
        assert exc_info.value.__cause__.scan_index == 1
        assert list(exc_info.value.failures) == [1]
        assert exc_info.value.pending == [2]
