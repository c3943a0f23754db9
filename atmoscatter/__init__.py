"""
Atmoscatter - Multiple-scattering lookup tables for physically based skies.

Precomputes the transmittance LUT and the multiscattering LUT of a planetary
atmosphere. The multiscattering LUT, indexed by altitude and light cosine,
lets a renderer approximate every scattering order beyond the first with a
single multiply-add per sample.
"""

__version__ = "1.0.0"

from .core import (
    AtmosphereModel,
    AtmosphereParameters,
    Medium,
    MultiscatteringSettings,
    TransmittanceLut,
    TransmittanceSettings,
    compute_multiscattering_lut,
)
