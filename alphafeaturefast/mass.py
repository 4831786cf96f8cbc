"""Neutral mass / m/z conversions.

M = (m/z) x |z| - z x proton_mass, with the sign of z giving the polarity.
"""

from .constants import PROTON_MASS


def mz_to_neutral_mass(mz: float, charge: int) -> float:
    """Calculate neutral mass from m/z and (signed) charge.

    Args:
        mz: Mass-to-charge ratio
        charge: Charge state, negative for negative mode

    Returns:
        Neutral mass in Da
    """
    if charge == 0:
        raise ValueError("charge must be non-zero")
    return mz * abs(charge) - charge * PROTON_MASS


def neutral_mass_to_mz(mass: float, charge: int) -> float:
    """Calculate m/z from neutral mass and (signed) charge."""
    if charge == 0:
        raise ValueError("charge must be non-zero")
    return (mass + charge * PROTON_MASS) / abs(charge)


def ppm_error(observed: float, reference: float) -> float:
    """Signed relative error ``(observed - reference) / reference * 1e6``."""
    return (observed - reference) / reference * 1e6
