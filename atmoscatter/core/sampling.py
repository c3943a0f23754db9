"""
Direction sampler for spherical integration.

Points of the R2 low-discrepancy sequence are mapped onto the unit sphere
with the Lambert equal-area projection, so equal areas of the unit square
become equal solid angles.
"""

import numpy as np

from .constants import PHI_2


def s2_sequence(n, xp=np):
    """The n-th point(s) of the 2D additive recurrence, in [0, 1)^2."""
    n = xp.asarray(n, dtype=xp.float64)[..., np.newaxis]
    point = 0.5 + n * xp.asarray(PHI_2)
    return point - xp.floor(point)


def uv_to_sphere(uv, xp=np):
    """Lambert equal-area projection of uv in [0, 1)^2 onto the unit sphere."""
    phi = 2.0 * np.pi * uv[..., 1]
    sin_lambda = 2.0 * uv[..., 0] - 1.0
    cos_lambda = xp.sqrt(xp.maximum(0.0, 1.0 - sin_lambda * sin_lambda))
    return xp.stack([cos_lambda * xp.cos(phi), cos_lambda * xp.sin(phi), sin_lambda], axis=-1)


def sample_directions(count: int, xp=np):
    """The first `count` sample directions, shape (count, 3)."""
    return uv_to_sphere(s2_sequence(xp.arange(count), xp=xp), xp=xp)
