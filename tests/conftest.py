"""
Shared fixtures: a small Rayleigh-only atmosphere in kilometers and its
transmittance LUT.
"""

import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from atmoscatter.core.parameters import (
    AtmosphereParameters,
    ExponentialDensity,
    Medium,
    RayleighPhase,
    TransmittanceSettings,
)
from atmoscatter.core.transmittance import TransmittanceLut

RAYLEIGH_PER_KM = [5.802e-3, 13.558e-3, 33.100e-3]


def make_rayleigh_atmosphere(ground_albedo=0.0) -> AtmosphereParameters:
    return AtmosphereParameters(
        bottom_radius=6360.0,
        top_radius=6460.0,
        ground_albedo=ground_albedo,
        layers=(
            Medium(
                scattering=RAYLEIGH_PER_KM,
                absorption=0.0,
                density_profile=ExponentialDensity(8.0),
                phase_function=RayleighPhase(),
            ),
            Medium.empty(),
            Medium.empty(),
        ),
    )


@pytest.fixture(scope="session")
def rayleigh_atmosphere():
    return make_rayleigh_atmosphere()


@pytest.fixture(scope="session")
def rayleigh_transmittance(rayleigh_atmosphere):
    return TransmittanceLut.precompute(
        rayleigh_atmosphere, TransmittanceSettings(lut_size=(64, 32), samples=40)
    )
