"""
Mappings between LUT texels and physical (r, mu) pairs.

The multiscattering LUT is linear in altitude and in the light cosine. The
transmittance LUT uses the horizon-dense mapping of Bruneton, which spends
more texels on grazing rays where transmittance changes fastest.
"""

from typing import Tuple
import numpy as np

from .parameters import AtmosphereParameters


def get_texture_coord_from_unit_range(x, texture_size: int):
    """Convert unit range [0,1] to a texture coordinate that hits texel centers."""
    return 0.5 / texture_size + x * (1.0 - 1.0 / texture_size)


def get_unit_range_from_texture_coord(u, texture_size: int):
    """Convert texture coordinate to unit range [0,1]."""
    return (u - 0.5 / texture_size) / (1.0 - 1.0 / texture_size)


def texel_to_unit(index, size: int):
    """Map texel index [0, size) to [0, 1], first and last texel on the bounds."""
    if size == 1:
        return index * 0.0 + 0.5
    return index / (size - 1.0)


def unit_to_texel(x, size: int):
    """Inverse of `texel_to_unit`, returning fractional texel indices."""
    if size == 1:
        return x * 0.0
    return x * (size - 1.0)


class MultiscatteringLutParametrization:
    """
    Texel (x, y) <-> (r, mu) for the multiscattering LUT.

    x runs over the light cosine mu in [-1, 1], y over the radius in
    [bottom_radius, top_radius].
    """

    def __init__(self, atmosphere: AtmosphereParameters, lut_size: Tuple[int, int]):
        self.bottom_radius = atmosphere.bottom_radius
        self.top_radius = atmosphere.top_radius
        self.width, self.height = lut_size

    def decode(self, x, y):
        """Grid cell coordinates (scalars or arrays) to (r, mu)."""
        u = texel_to_unit(x, self.width)
        v = texel_to_unit(y, self.height)
        r = self.bottom_radius + (self.top_radius - self.bottom_radius) * v
        mu = 2.0 * u - 1.0
        return r, mu

    def encode(self, r, mu):
        """(r, mu) to fractional grid cell coordinates."""
        u = (mu + 1.0) * 0.5
        v = (r - self.bottom_radius) / (self.top_radius - self.bottom_radius)
        return unit_to_texel(u, self.width), unit_to_texel(v, self.height)

    __call__ = decode


class TransmittanceLutParametrization:
    """Texture uv <-> (r, mu) for the transmittance LUT."""

    def __init__(self, atmosphere: AtmosphereParameters, lut_size: Tuple[int, int]):
        self.bottom_radius = atmosphere.bottom_radius
        self.top_radius = atmosphere.top_radius
        self.width, self.height = lut_size
        self.H = np.sqrt(self.top_radius ** 2 - self.bottom_radius ** 2)

    def uv_to_r_mu(self, u, v):
        """Convert transmittance texture uv to (r, mu)."""
        bottom, top, H = self.bottom_radius, self.top_radius, self.H

        # Distance to the horizon
        rho = H * get_unit_range_from_texture_coord(v, self.height)
        r = np.sqrt(rho * rho + bottom * bottom)

        # Distance to the top boundary, between its minimum (looking up)
        # and maximum (looking at the horizon)
        d_min = top - r
        d_max = rho + H
        d = d_min + (d_max - d_min) * get_unit_range_from_texture_coord(u, self.width)

        d_safe = np.maximum(d, 1e-12)
        mu = np.where(d > 0.0, (H * H - rho * rho - d * d) / (2.0 * r * d_safe), 1.0)
        return r, np.clip(mu, -1.0, 1.0)

    def r_mu_to_uv(self, r, mu):
        """Convert (r, mu) to transmittance texture uv."""
        bottom, top, H = self.bottom_radius, self.top_radius, self.H

        rho = np.sqrt(np.maximum(0.0, r * r - bottom * bottom))
        discriminant = r * r * (mu * mu - 1.0) + top * top
        d = np.maximum(0.0, -r * mu + np.sqrt(np.maximum(0.0, discriminant)))
        d_min = top - r
        d_max = rho + H
        x_mu = (d - d_min) / np.maximum(d_max - d_min, 1e-12)
        x_r = rho / H
        return (
            get_texture_coord_from_unit_range(x_mu, self.width),
            get_texture_coord_from_unit_range(x_r, self.height),
        )


def sample_texel_bilinear(table, x, y, xp=np):
    """
    Bilinearly filter `table` (height, width, channels) at continuous texel
    coordinates x, y, where integer coordinates are texel centers.
    Coordinates are clamped to the table.
    """
    height, width = table.shape[:2]
    x = xp.clip(x, 0.0, width - 1.0)
    y = xp.clip(y, 0.0, height - 1.0)
    x0 = xp.floor(x).astype(xp.int64)
    y0 = xp.floor(y).astype(xp.int64)
    x1 = xp.minimum(x0 + 1, width - 1)
    y1 = xp.minimum(y0 + 1, height - 1)
    fx = xp.asarray(x - x0)[..., np.newaxis]
    fy = xp.asarray(y - y0)[..., np.newaxis]

    return (
        table[y0, x0] * (1.0 - fx) * (1.0 - fy) +
        table[y0, x1] * fx * (1.0 - fy) +
        table[y1, x0] * (1.0 - fx) * fy +
        table[y1, x1] * fx * fy
    )
