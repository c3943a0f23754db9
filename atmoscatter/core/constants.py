"""
Atmoscatter Constants - Default LUT sizes and physical constants.

Lengths are in meters and coefficients in m^-1 unless noted otherwise.
"""

import numpy as np

# Multiscattering LUT
MULTISCATTERING_LUT_WIDTH = 32
MULTISCATTERING_LUT_HEIGHT = 32
MULTISCATTERING_LUT_DIRS = 64
MULTISCATTERING_LUT_SAMPLES = 20

# Transmittance LUT
TRANSMITTANCE_LUT_WIDTH = 256
TRANSMITTANCE_LUT_HEIGHT = 128
TRANSMITTANCE_LUT_SAMPLES = 40

# Rows of the output grid handed to one unit of work
DEFAULT_ROWS_PER_TILE = 8

# Additive recurrence constants of the R2 sequence (plastic number and its square)
PHI_2 = (1.3247179572447460259609088, 1.7548776662466927600495087)

# Isotropic phase function, 1 / (4 pi)
FRAC_4_PI = 0.25 / np.pi

# =============================================================================
# Earth
# =============================================================================

EARTH_RADIUS = 6360000.0
EARTH_TOP_RADIUS = 6460000.0

RAYLEIGH_SCALE_HEIGHT = 8000.0
RAYLEIGH_SCATTERING_COEFFICIENTS = np.array([5.802e-6, 13.558e-6, 33.100e-6])

MIE_SCALE_HEIGHT = 1200.0
MIE_SCATTERING_COEFFICIENT = 3.996e-6
MIE_ABSORPTION_COEFFICIENT = 0.444e-6
MIE_PHASE_FUNCTION_G = 0.8

OZONE_CENTER_ALTITUDE = 25000.0
OZONE_WIDTH = 30000.0
OZONE_ABSORPTION_COEFFICIENTS = np.array([0.650e-6, 1.881e-6, 0.085e-6])

DEFAULT_GROUND_ALBEDO = 0.3

# =============================================================================
# Mars
# =============================================================================

MARS_RADIUS = 3389500.0
MARS_TOP_RADIUS = 3509500.0
MARS_GROUND_ALBEDO = 0.1

CO2_SCALE_HEIGHT = 10430.0
CO2_SCATTERING_COEFFICIENTS = np.array([0.019918e-3, 0.01357e-3, 0.00575e-3])

DUST_SCALE_HEIGHT = 3095.0
DUST_SCATTERING_COEFFICIENT = 5.361771e-5
DUST_ABSORPTION_COEFFICIENT = 5.530838e-7
DUST_PHASE_FUNCTION_G = 0.85
