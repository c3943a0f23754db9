"""
Transmittance LUT - attenuation from a point to the top of the atmosphere.

The table is indexed with the horizon-dense parametrization and sampled with
bilinear filtering. Any callable with the signature
`transmittance(r, mu) -> (..., 3)` can stand in for it.
"""

import logging
from typing import Optional

import numpy as np

from .backend import ComputeBackend
from .geometry import distance_to_top_atmosphere_boundary, get_local_r
from .parameters import AtmosphereParameters, TransmittanceSettings
from .parametrization import TransmittanceLutParametrization, sample_texel_bilinear

log = logging.getLogger(__name__)


class TransmittanceLut:
    """
    Precomputed transmittance table, shape (height, width, 3).

    Read-only once built and safe to share between threads.
    """

    def __init__(
        self,
        table,
        atmosphere: AtmosphereParameters,
        backend: Optional[ComputeBackend] = None,
    ):
        self.backend = backend or ComputeBackend(use_gpu=False)
        self.table = self.backend.from_numpy(np.asarray(table, dtype=np.float64))
        height, width = self.table.shape[:2]
        self.parametrization = TransmittanceLutParametrization(atmosphere, (width, height))

    @property
    def shape(self):
        return self.table.shape

    @classmethod
    def precompute(
        cls,
        atmosphere: AtmosphereParameters,
        settings: Optional[TransmittanceSettings] = None,
        backend: Optional[ComputeBackend] = None,
    ) -> 'TransmittanceLut':
        """Integrate extinction to the top boundary for every texel (vectorized)."""
        settings = settings or TransmittanceSettings()
        backend = backend or ComputeBackend(use_gpu=False)
        xp = backend.xp
        width, height = settings.lut_size
        parametrization = TransmittanceLutParametrization(atmosphere, settings.lut_size)

        log.info("Computing transmittance LUT (%dx%d, %d samples)...",
                 width, height, settings.samples)

        # Create coordinate grids
        jj, ii = xp.meshgrid(xp.arange(height), xp.arange(width), indexing='ij')
        u = (ii + 0.5) / width
        v = (jj + 0.5) / height
        r, mu = parametrization.uv_to_r_mu(u, v)

        dist_to_top = distance_to_top_atmosphere_boundary(r, mu, atmosphere.top_radius)
        dx = dist_to_top / settings.samples

        optical_depth = xp.zeros((height, width, 3), dtype=xp.float64)
        for s in range(settings.samples):
            d_i = (s + 0.5) * dx
            r_i = get_local_r(r, mu, d_i)
            local = atmosphere.sample(r_i, xp=xp)
            optical_depth += local.extinction * dx[..., np.newaxis]

        table = backend.to_numpy(xp.exp(-optical_depth))
        log.info("Transmittance done, max: %.4f, min: %.6f", table.max(), table.min())
        return cls(table, atmosphere, backend)

    def sample(self, r, mu):
        """Bilinear lookup of the transmittance for array (or scalar) r, mu."""
        xp = self.backend.xp
        height, width = self.table.shape[:2]
        u, v = self.parametrization.r_mu_to_uv(xp.asarray(r, dtype=xp.float64),
                                               xp.asarray(mu, dtype=xp.float64))
        return sample_texel_bilinear(self.table, u * width - 0.5, v * height - 0.5, xp=xp)

    __call__ = sample

    def to_numpy(self) -> np.ndarray:
        """The table as a float32 texture."""
        return self.backend.to_numpy(self.table).astype(np.float32)
