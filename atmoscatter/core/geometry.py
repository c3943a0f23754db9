"""
Ray/sphere geometry inside a spherical atmosphere.

Points are described by their distance r from the planet center and rays by
mu, the cosine of the angle between the ray and the local up vector. All
functions accept scalars or broadcastable arrays.
"""

import numpy as np


def distance_to_top_atmosphere_boundary(r, mu, top_radius: float):
    """Distance along (r, mu) to the top atmosphere boundary."""
    discriminant = r * r * (mu * mu - 1.0) + top_radius * top_radius
    return np.maximum(0.0, -r * mu + np.sqrt(np.maximum(0.0, discriminant)))


def distance_to_bottom_atmosphere_boundary(r, mu, bottom_radius: float):
    """Distance along (r, mu) to the ground. Only meaningful when the ray hits it."""
    discriminant = r * r * (mu * mu - 1.0) + bottom_radius * bottom_radius
    return np.maximum(0.0, -r * mu - np.sqrt(np.maximum(0.0, discriminant)))


def ray_intersects_ground(r, mu, bottom_radius: float):
    """Check if a ray from radius r with direction cosine mu hits the ground."""
    return (mu < 0.0) & (r * r * (mu * mu - 1.0) + bottom_radius * bottom_radius >= 0.0)


def max_atmosphere_distance(r, mu, bottom_radius: float, top_radius: float):
    """
    Length of the ray (r, mu) inside the atmosphere: the distance to the
    ground if the ray hits it, to the top boundary otherwise.

    Finite for every mu in [-1, 1], including the horizon.
    """
    t_top = distance_to_top_atmosphere_boundary(r, mu, top_radius)
    t_bottom = distance_to_bottom_atmosphere_boundary(r, mu, bottom_radius)
    hits = ray_intersects_ground(r, mu, bottom_radius)
    return t_top + (t_bottom - t_top) * hits


def get_local_r(r, mu, t):
    """Radius of the point at distance t along the ray (r, mu)."""
    return np.sqrt(np.maximum(0.0, t * t + 2.0 * r * mu * t + r * r))


def get_local_up(r, t, ray_dir):
    """
    Unit up vector at distance t along `ray_dir` from the point (0, r, 0).

    `ray_dir` carries a trailing xyz axis; r and t broadcast against the rest.
    """
    x = t * ray_dir[..., 0]
    y = r + t * ray_dir[..., 1]
    z = t * ray_dir[..., 2]
    length = np.sqrt(x * x + y * y + z * z)
    return np.stack(np.broadcast_arrays(x / length, y / length, z / length), axis=-1)
