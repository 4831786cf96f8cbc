"""Tests for isotopic envelopes and mass conversions."""

import pytest

from alphafeaturefast.constants import (
    C13_MASS_DIFF,
    ISOTOPE_OFFSET_HYPOTHESES,
    ISOTOPE_SPACING_1,
    PROTON_MASS,
    validate_constants,
)
from alphafeaturefast.deconvolution import IsotopicEnvelope
from alphafeaturefast.mass import mz_to_neutral_mass, neutral_mass_to_mz, ppm_error
from alphafeaturefast.spectra import Peak


class TestMassConversion:
    """Test neutral mass / m/z conversion."""

    def test_positive_mode(self, proton_mass):
        assert mz_to_neutral_mass(501.0, 2) == pytest.approx(1002.0 - 2 * proton_mass)
        assert neutral_mass_to_mz(1000.0, 2) == pytest.approx((1000.0 + 2 * proton_mass) / 2)

    def test_negative_mode(self):
        assert mz_to_neutral_mass(499.0, -2) == pytest.approx(998.0 + 2 * PROTON_MASS)

    def test_roundtrip(self):
        for charge in (1, 2, 3, -1, -3):
            assert mz_to_neutral_mass(neutral_mass_to_mz(1234.5678, charge), charge) == pytest.approx(1234.5678)

    def test_zero_charge(self):
        with pytest.raises(ValueError):
            mz_to_neutral_mass(500.0, 0)
        with pytest.raises(ValueError):
            neutral_mass_to_mz(500.0, 0)

    def test_ppm_error(self):
        assert ppm_error(1000.001, 1000.0) == pytest.approx(1.0)
        assert ppm_error(999.999, 1000.0) == pytest.approx(-1.0)


class TestConstants:
    """Test constant sanity."""

    def test_validate_constants(self):
        validate_constants()

    def test_hypothesis_order(self):
        assert list(ISOTOPE_OFFSET_HYPOTHESES[:3]) == [0.0, ISOTOPE_SPACING_1, -ISOTOPE_SPACING_1]


class TestIsotopicEnvelope:
    """Test envelope construction."""

    def test_total_intensity_defaults_to_peak_sum(self):
        envelope = IsotopicEnvelope(1000.0, 2, [(501.0, 10.0), (501.5, 5.0)])

        assert envelope.total_intensity == 15.0
        assert envelope.num_peaks == 2
        assert envelope.peaks[0] == Peak(501.0, 10.0)

    def test_explicit_total_intensity(self):
        envelope = IsotopicEnvelope(1000.0, 2, [(501.0, 10.0)], total_intensity=99.0)
        assert envelope.total_intensity == 99.0

    def test_no_peaks(self):
        envelope = IsotopicEnvelope(1000.0, 1)

        assert envelope.num_peaks == 0
        assert envelope.total_intensity == 0

    def test_monoisotopic_mz(self):
        envelope = IsotopicEnvelope(1000.0, 2)
        assert envelope.monoisotopic_mz == pytest.approx(neutral_mass_to_mz(1000.0, 2))

    def test_frozen(self):
        envelope = IsotopicEnvelope(1000.0, 2)
        with pytest.raises(AttributeError):
            envelope.charge = 3

    def test_fixture_envelope_peaks(self, envelope):
        env = envelope(1500.0, charge=3, num_peaks=4, intensity=10.0)

        assert env.num_peaks == 4
        assert env.total_intensity == 40.0
        spacing = env.peaks[1].mz - env.peaks[0].mz
        assert spacing == pytest.approx(C13_MASS_DIFF / 3)
