"""
Ray integrator for the multiscattering LUT.

Marches rays from a point at radius r through the atmosphere and accumulates,
per ray:
- l_2: light scattered once more towards the origin, with the sun direction
  reconstructed from the light cosine mu (plus light bounced off the ground)
- f_ms: the fraction of light redistributed by one extra isotropic
  scattering event, used to close the series of higher orders

Everything is vectorized over a batch of origins (any shape S) and a set of
D ray directions; results have shape S + (D, 3).
"""

from typing import Callable, Iterator, NamedTuple

import numpy as np

from .constants import FRAC_4_PI
from .geometry import (
    get_local_r,
    get_local_up,
    max_atmosphere_distance,
    ray_intersects_ground,
)
from .parameters import AtmosphereParameters, AtmosphereSample


class RayMarchSample(NamedTuple):
    """State of a ray march at the midpoint of one segment."""
    t: np.ndarray              # distance from the ray origin, S + (D,)
    dt: np.ndarray             # segment length, S + (D,)
    local_r: np.ndarray        # radius of the sample point, S + (D,)
    atmosphere: AtmosphereSample
    optical_depth: np.ndarray  # from the origin through this segment, S + (D, 3)
    transmittance: np.ndarray  # exp(-optical_depth), S + (D, 3)


class MultiscatteringSample(NamedTuple):
    """Result of integrating one or more rays."""
    l_2: np.ndarray
    f_ms: np.ndarray


def light_direction(mu, xp=np):
    """Unit light direction whose cosine with the +y up axis is mu."""
    mu = xp.asarray(mu, dtype=xp.float64)
    sin_theta = xp.sqrt(xp.maximum(0.0, 1.0 - mu * mu))
    return xp.stack([xp.zeros_like(mu), mu, -sin_theta], axis=-1)


def march_ray(
    r,
    mu_view,
    atmosphere: AtmosphereParameters,
    samples: int,
    xp=np,
) -> Iterator[RayMarchSample]:
    """
    Step along rays (r, mu_view) in `samples` equal segments.

    Yields the state at the midpoint of each segment. The optical depth
    yielded at step i includes the whole of segment i.
    """
    t_max = max_atmosphere_distance(r, mu_view, atmosphere.bottom_radius, atmosphere.top_radius)
    dt = t_max / samples
    optical_depth = xp.zeros(dt.shape + (3,), dtype=xp.float64)

    for i in range(samples):
        t_i = dt * (i + 0.5)
        local_r = get_local_r(r, mu_view, t_i)
        local = atmosphere.sample(local_r, xp=xp)

        optical_depth = optical_depth + local.extinction * dt[..., np.newaxis]
        yield RayMarchSample(
            t=t_i,
            dt=dt,
            local_r=local_r,
            atmosphere=local,
            optical_depth=optical_depth,
            transmittance=xp.exp(-optical_depth),
        )


def ground_contribution(
    r,
    mu_view,
    ray_dirs,
    light_dir,
    transmittance_to_ground,
    atmosphere: AtmosphereParameters,
    transmittance: Callable,
    xp=np,
):
    """
    Sunlight reflected by the ground at the end of rays that hit it.

    Zero for rays that leave through the top boundary, for points where the
    sun is below the local horizon and for a black ground.
    """
    bottom = atmosphere.bottom_radius
    hits = ray_intersects_ground(r, mu_view, bottom)
    t_max = max_atmosphere_distance(r, mu_view, bottom, atmosphere.top_radius)

    local_up = get_local_up(r, t_max, ray_dirs)
    mu_light = xp.sum(local_up * light_dir[..., np.newaxis, :], axis=-1)

    ground_r = xp.full(mu_light.shape, bottom, dtype=xp.float64)
    lit = ~ray_intersects_ground(ground_r, mu_light, bottom)
    transmittance_to_light = transmittance(ground_r, mu_light) * lit[..., np.newaxis]

    ground = (
        transmittance_to_ground
        * transmittance_to_light
        * xp.maximum(mu_light, 0.0)[..., np.newaxis]
        * xp.asarray(atmosphere.ground_albedo)
    )
    return ground * hits[..., np.newaxis]


def integrate_ray(
    r,
    mu,
    ray_dirs,
    atmosphere: AtmosphereParameters,
    transmittance: Callable,
    samples: int,
    xp=np,
) -> MultiscatteringSample:
    """
    Integrate l_2 and f_ms along every ray direction from every origin.

    Args:
        r: Origin radii, shape S
        mu: Cosine of the light zenith angle at each origin, shape S
        ray_dirs: Unit ray directions, shape (D, 3), +y is up at the origin
        atmosphere: Atmosphere parameters
        transmittance: Callable (r, mu) -> (..., 3) transmittance to the top
            of the atmosphere
        samples: Number of ray-march steps

    Returns:
        MultiscatteringSample with l_2 and f_ms of shape S + (D, 3)
    """
    r = xp.asarray(r, dtype=xp.float64)[..., np.newaxis]
    mu = xp.asarray(mu, dtype=xp.float64)
    ray_dirs = xp.asarray(ray_dirs, dtype=xp.float64)

    light_dir = light_direction(mu, xp=xp)
    mu_view = ray_dirs[:, 1]
    # Cosine of the scattering angle; constant along each ray
    nu = xp.sum(light_dir[..., np.newaxis, :] * ray_dirs, axis=-1)
    phase_values = [layer.phase_function(nu)[..., np.newaxis] for layer in atmosphere.layers]

    l_2 = xp.zeros(nu.shape + (3,), dtype=xp.float64)
    f_ms = xp.zeros_like(l_2)
    transmittance_to_sample = xp.ones_like(l_2)

    for step in march_ray(r, mu_view, atmosphere, samples, xp=xp):
        dt = step.dt[..., np.newaxis]
        transmittance_to_sample = step.transmittance
        local = step.atmosphere

        f_ms += transmittance_to_sample * local.scattering * FRAC_4_PI * dt

        # Light direction seen from the sample point
        mu_light = (r * mu[..., np.newaxis] + step.t * nu) / step.local_r
        lit = ~ray_intersects_ground(step.local_r, mu_light, atmosphere.bottom_radius)
        shadow_factor = transmittance(step.local_r, mu_light) * lit[..., np.newaxis]

        # The phase function is kept here on purpose; it gives a better
        # result than the isotropic in-scattering of the paper.
        scattering_with_phase = 0.0
        for layer_scattering, phase in zip(local.layer_scattering, phase_values):
            scattering_with_phase = scattering_with_phase + layer_scattering * phase

        l_2 += transmittance_to_sample * shadow_factor * scattering_with_phase * FRAC_4_PI * dt

    l_2 += ground_contribution(
        r, mu_view, ray_dirs, light_dir, transmittance_to_sample, atmosphere, transmittance, xp=xp
    )
    return MultiscatteringSample(l_2=l_2, f_ms=f_ms)
