"""
Multiscattering estimator.

For each origin (r, mu) the ray integrator is run over a fixed set of
directions covering the sphere. Averaging gives the second-order luminance
l_2 and the transfer factor f_ms. Each further scattering order multiplies
the light by f_ms, so the whole series collapses to

    psi_ms = l_2 * (1 + f_ms + f_ms^2 + ...) = l_2 / (1 - f_ms)
"""

import numpy as np

from .integrator import integrate_ray
from .sampling import sample_directions


def close_series(l_2, f_ms):
    """
    Sum the geometric series of scattering orders, per channel.

    f_ms must lie in [0, 1); nothing is guarded for f_ms -> 1.
    """
    F_ms = 1.0 / (1.0 - f_ms)
    return l_2 * F_ms


def estimate_cells(
    r,
    mu,
    atmosphere,
    transmittance,
    dirs: int,
    samples: int,
    ray_dirs=None,
    xp=np,
):
    """
    Multiscattering contribution psi_ms for a batch of (r, mu) origins.

    Args:
        r: Origin radii, any shape S
        mu: Light cosines, shape S
        atmosphere: Atmosphere parameters
        transmittance: Callable (r, mu) -> (..., 3)
        dirs: Number of sampled directions
        samples: Ray-march steps per direction
        ray_dirs: Explicit (D, 3) directions, overriding `dirs`

    Returns:
        Array of shape S + (3,)
    """
    if ray_dirs is None:
        ray_dirs = sample_directions(dirs, xp=xp)

    ms = integrate_ray(r, mu, ray_dirs, atmosphere, transmittance, samples, xp=xp)

    l_2 = xp.mean(ms.l_2, axis=-2)
    f_ms = xp.mean(ms.f_ms, axis=-2)
    return close_series(l_2, f_ms)


def estimate_cell(r: float, mu: float, atmosphere, transmittance, dirs: int, samples: int):
    """psi_ms for a single (r, mu), as an RGB array."""
    return estimate_cells(np.float64(r), np.float64(mu), atmosphere, transmittance, dirs, samples)
