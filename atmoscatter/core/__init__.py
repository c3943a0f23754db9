"""
Atmoscatter Core - Atmosphere model and LUT precomputation.
"""

from .backend import ComputeBackend, CUPY_AVAILABLE
from .parameters import (
    AtmosphereParameters,
    CornetteShanksPhase,
    DualLobePhase,
    ExponentialDensity,
    HenyeyGreensteinPhase,
    Medium,
    MultiscatteringSettings,
    RayleighPhase,
    TentDensity,
    TransmittanceSettings,
)
from .transmittance import TransmittanceLut
from .integrator import MultiscatteringSample, RayMarchSample, integrate_ray, march_ray
from .multiscattering import close_series, estimate_cell, estimate_cells
from .evaluator import (
    SerialDispatcher,
    ThreadPoolDispatcher,
    compute_multiscattering_lut,
    partition_rows,
)
from .model import AtmosphereModel, PrecomputedTextures
