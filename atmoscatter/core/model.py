"""
Atmoscatter Atmosphere Model - Host-side orchestration of the LUT passes.

This module handles:
- Validation of the atmosphere parameters
- Transmittance LUT precomputation
- Multiscattering LUT precomputation
- Runtime lookups, shader uniforms and texture export
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .backend import ComputeBackend
from .evaluator import compute_multiscattering_lut
from .parameters import AtmosphereParameters, MultiscatteringSettings, TransmittanceSettings
from .parametrization import MultiscatteringLutParametrization, sample_texel_bilinear
from .transmittance import TransmittanceLut

log = logging.getLogger(__name__)


@dataclass
class PrecomputedTextures:
    """Container for precomputed LUT textures."""
    transmittance: np.ndarray   # Shape: (H, W, 3)
    multiscattering: np.ndarray  # Shape: (H, W, 4) - RGB psi_ms, A = 1


class AtmosphereModel:
    """
    Main atmosphere model class.

    Handles precomputation of lookup tables and provides shader uniforms.
    """

    def __init__(
        self,
        params: Optional[AtmosphereParameters] = None,
        transmittance_settings: Optional[TransmittanceSettings] = None,
        multiscattering_settings: Optional[MultiscatteringSettings] = None,
        use_gpu: bool = False,
    ):
        """
        Initialize the atmosphere model.

        Args:
            params: Atmosphere parameters. Uses Earth defaults if None.
            transmittance_settings: Transmittance LUT size and sample count
            multiscattering_settings: Multiscattering LUT size and sample counts
            use_gpu: Use CuPy for the precomputation when available
        """
        self.params = params or AtmosphereParameters.earth_default()
        self.transmittance_settings = transmittance_settings or TransmittanceSettings()
        self.multiscattering_settings = multiscattering_settings or MultiscatteringSettings()
        self.backend = ComputeBackend(use_gpu=use_gpu)
        self.textures: Optional[PrecomputedTextures] = None
        self.transmittance_lut: Optional[TransmittanceLut] = None
        self._is_initialized = False

    @property
    def is_initialized(self) -> bool:
        """Check if LUTs have been precomputed."""
        return self._is_initialized

    def init(self, progress_callback=None) -> None:
        """
        Precompute the atmosphere LUT textures.

        Args:
            progress_callback: Optional callback(progress, message) for progress updates

        Raises:
            ValueError: If the atmosphere parameters are not physically valid
        """
        self.params.validate()

        if progress_callback:
            progress_callback(0.0, "Computing transmittance LUT...")
        self.transmittance_lut = TransmittanceLut.precompute(
            self.params, self.transmittance_settings, self.backend
        )

        if progress_callback:
            progress_callback(0.2, "Computing multiscattering LUT...")

        def ms_progress(progress, message):
            if progress_callback:
                progress_callback(0.2 + 0.8 * progress, message)

        multiscattering = compute_multiscattering_lut(
            self.params,
            self.transmittance_lut,
            self.multiscattering_settings,
            backend=self.backend,
            progress_callback=ms_progress,
        )

        if progress_callback:
            progress_callback(1.0, "Precomputation complete.")

        self.textures = PrecomputedTextures(
            transmittance=self.transmittance_lut.to_numpy(),
            multiscattering=multiscattering,
        )
        self._is_initialized = True

    def _require_textures(self) -> PrecomputedTextures:
        if not self._is_initialized:
            raise RuntimeError("Model not initialized. Call init() first.")
        return self.textures

    def sample_multiscattering(self, r, mu) -> np.ndarray:
        """
        Bilinear lookup of psi_ms in the precomputed LUT.

        A renderer adds `scattering * psi_ms` to its single-scattering term.
        """
        textures = self._require_textures()
        parametrization = MultiscatteringLutParametrization(
            self.params, self.multiscattering_settings.lut_size
        )
        x, y = parametrization.encode(np.asarray(r, dtype=np.float64), np.asarray(mu, dtype=np.float64))
        return sample_texel_bilinear(textures.multiscattering[..., :3], x, y)

    def get_shader_uniforms(self) -> dict:
        """
        Get dictionary of uniform values for shaders.

        Each layer is packed as scattering, absorption and two 4-vectors:
        density_params (scale height, or center/width/exponent with w = 1)
        and phase_params (g values with the phase function kind in w).
        """
        self._require_textures()

        p = self.params
        return {
            'bottom_radius': p.bottom_radius,
            'top_radius': p.top_radius,
            'ground_albedo': p.ground_albedo.copy(),
            'layers': [
                {
                    'scattering': layer.scattering.copy(),
                    'absorption': layer.absorption.copy(),
                    'density_params': np.array(layer.density_profile.params),
                    'phase_params': np.array(layer.phase_function.params),
                }
                for layer in p.layers
            ],
        }

    def save_textures(self, filepath: str) -> None:
        """Save precomputed textures to a file (NumPy format)."""
        textures = self._require_textures()
        np.savez_compressed(
            filepath,
            transmittance=textures.transmittance,
            multiscattering=textures.multiscattering,
        )

    def load_textures(self, filepath: str) -> None:
        """Load precomputed textures from a file."""
        if not os.path.exists(filepath):
            raise FileNotFoundError(f"Texture file not found: {filepath}")
        with np.load(filepath) as data:
            self.textures = PrecomputedTextures(
                transmittance=data['transmittance'],
                multiscattering=data['multiscattering'],
            )
        self.transmittance_lut = TransmittanceLut(self.textures.transmittance, self.params, self.backend)
        self._is_initialized = True

    def save_textures_exr(self, output_dir: str) -> None:
        """
        Save precomputed textures as EXR files.

        Creates:
        - transmittance.exr (RGB)
        - multiscattering.exr (RGBA)
        """
        from ..utils.exr import LutEXRWriter

        textures = self._require_textures()
        os.makedirs(output_dir, exist_ok=True)

        for name, data in (
            ("transmittance", textures.transmittance),
            ("multiscattering", textures.multiscattering),
        ):
            height, width = data.shape[:2]
            writer = LutEXRWriter(width, height)
            writer.add_layer(name, data)
            filepath = os.path.join(output_dir, f"{name}.exr")
            writer.write(filepath)
            log.info("Saved %s (%dx%d)", filepath, width, height)
