"""Tests for the Spectrum container.

Tests:
- Array normalization and validation
- Peak access, base peak and total intensity
- Closest-peak lookup
"""

import unittest
import numpy as np

from alphafeaturefast.spectra import Peak, Spectrum


class TestSpectrumConstruction(unittest.TestCase):
    """Test construction and validation."""

    def test_arrays_are_float64(self):
        spectrum = Spectrum([100, 200], [1, 2])

        self.assertEqual(spectrum.mz_array.dtype, np.float64)
        self.assertEqual(spectrum.intensity_array.dtype, np.float64)
        self.assertEqual(spectrum.size, 2)

    def test_length_mismatch(self):
        with self.assertRaises(ValueError):
            Spectrum([100.0, 200.0], [1.0])

    def test_unsorted_mz_rejected(self):
        with self.assertRaises(ValueError):
            Spectrum([200.0, 100.0], [1.0, 1.0])

    def test_duplicate_mz_rejected(self):
        with self.assertRaises(ValueError):
            Spectrum([100.0, 100.0], [1.0, 1.0])

    def test_negative_intensity_rejected(self):
        with self.assertRaises(ValueError):
            Spectrum([100.0], [-1.0])

    def test_validation_can_be_skipped(self):
        spectrum = Spectrum([100.0, 100.0], [1.0, 1.0], validate=False)
        self.assertEqual(len(spectrum), 2)

    def test_empty_spectrum(self):
        spectrum = Spectrum.from_peaks([])

        self.assertEqual(spectrum.size, 0)
        self.assertIsNone(spectrum.base_peak)
        self.assertEqual(spectrum.total_intensity, 0.0)
        self.assertEqual(repr(spectrum), "Spectrum(size=0)")

    def test_from_peaks(self):
        spectrum = Spectrum.from_peaks([Peak(100.0, 5.0), Peak(200.0, 10.0)])

        self.assertEqual(spectrum.peaks, [Peak(100.0, 5.0), Peak(200.0, 10.0)])


class TestSpectrumAccess:
    """Test peak access helpers."""

    def test_iteration_yields_peaks(self):
        spectrum = Spectrum([100.0, 200.0], [5.0, 10.0])

        peaks = list(spectrum)

        assert peaks[0] == Peak(100.0, 5.0)
        assert peaks[1].mz == 200.0
        assert peaks[1].intensity == 10.0

    def test_base_peak_and_total(self):
        spectrum = Spectrum([100.0, 200.0, 300.0], [5.0, 50.0, 10.0])

        assert spectrum.base_peak == Peak(200.0, 50.0)
        assert spectrum.total_intensity == 65.0

    def test_equality(self):
        a = Spectrum([100.0, 200.0], [5.0, 10.0])
        b = Spectrum(np.array([100.0, 200.0]), np.array([5.0, 10.0]))
        c = Spectrum([100.0, 200.0], [5.0, 11.0])

        assert a == b
        assert a != c

    def test_closest_peak_index(self):
        spectrum = Spectrum([100.0, 200.0, 300.0], [1.0, 1.0, 1.0])

        assert spectrum.get_closest_peak_index(50.0) == 0
        assert spectrum.get_closest_peak_index(140.0) == 0
        assert spectrum.get_closest_peak_index(160.0) == 1
        assert spectrum.get_closest_peak_index(200.0) == 1
        assert spectrum.get_closest_peak_index(1000.0) == 2

    def test_closest_peak_tie_prefers_lower(self):
        spectrum = Spectrum([100.0, 200.0], [1.0, 1.0])
        assert spectrum.get_closest_peak_index(150.0) == 0

    def test_closest_peak_empty(self):
        assert Spectrum([], []).get_closest_peak_index(100.0) == -1
