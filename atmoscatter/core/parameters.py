"""
Atmoscatter Parameters - Atmosphere and LUT configuration structures.

An atmosphere is a planet (bottom and top radius, ground albedo) wrapped in
three participating media. Each medium scatters and/or absorbs light with a
density that depends only on altitude, and redistributes scattered light
according to its phase function.

All lengths share one unit (meters for the presets) and all coefficients are
expressed per that unit.
"""

from dataclasses import dataclass, field, replace
from typing import NamedTuple, Optional, Tuple
import numpy as np

from .constants import (
    EARTH_RADIUS,
    EARTH_TOP_RADIUS,
    RAYLEIGH_SCALE_HEIGHT,
    RAYLEIGH_SCATTERING_COEFFICIENTS,
    MIE_SCALE_HEIGHT,
    MIE_SCATTERING_COEFFICIENT,
    MIE_ABSORPTION_COEFFICIENT,
    MIE_PHASE_FUNCTION_G,
    OZONE_CENTER_ALTITUDE,
    OZONE_WIDTH,
    OZONE_ABSORPTION_COEFFICIENTS,
    DEFAULT_GROUND_ALBEDO,
    MARS_RADIUS,
    MARS_TOP_RADIUS,
    MARS_GROUND_ALBEDO,
    CO2_SCALE_HEIGHT,
    CO2_SCATTERING_COEFFICIENTS,
    DUST_SCALE_HEIGHT,
    DUST_SCATTERING_COEFFICIENT,
    DUST_ABSORPTION_COEFFICIENT,
    DUST_PHASE_FUNCTION_G,
    MULTISCATTERING_LUT_WIDTH,
    MULTISCATTERING_LUT_HEIGHT,
    MULTISCATTERING_LUT_DIRS,
    MULTISCATTERING_LUT_SAMPLES,
    TRANSMITTANCE_LUT_WIDTH,
    TRANSMITTANCE_LUT_HEIGHT,
    TRANSMITTANCE_LUT_SAMPLES,
    DEFAULT_ROWS_PER_TILE,
)


def _spectrum(value) -> np.ndarray:
    """Coerce a scalar or triple into a read-only float64 RGB array."""
    arr = np.array(np.broadcast_to(np.asarray(value, dtype=np.float64), (3,)))
    arr.setflags(write=False)
    return arr


# =============================================================================
# Density profiles
# =============================================================================

@dataclass(frozen=True)
class ExponentialDensity:
    """
    Density falling off exponentially with altitude:
        exp(-altitude / scale_height)
    """
    scale_height: float

    def get_density(self, altitude):
        """Compute density at the given altitude (scalar or array)."""
        return np.exp(-altitude / self.scale_height)

    def scaled(self, factor: float) -> 'ExponentialDensity':
        return ExponentialDensity(self.scale_height / factor)

    @property
    def params(self) -> Tuple[float, float, float, float]:
        return (self.scale_height, 0.0, 0.0, 0.0)


@dataclass(frozen=True)
class TentDensity:
    """
    Tent-shaped density peaking at center_altitude:
        max(0, 1 - |altitude - center_altitude| / (layer_width / 2)) ** exponent
    """
    center_altitude: float
    layer_width: float
    exponent: float = 1.0

    def get_density(self, altitude):
        """Compute density at the given altitude (scalar or array)."""
        if self.layer_width <= 0.0:
            return altitude * 0.0
        half_width = 0.5 * self.layer_width
        tent = np.maximum(0.0, 1.0 - np.abs(altitude - self.center_altitude) / half_width)
        return tent ** self.exponent

    def scaled(self, factor: float) -> 'TentDensity':
        return TentDensity(
            self.center_altitude / factor,
            self.layer_width / factor,
            self.exponent,
        )

    @property
    def params(self) -> Tuple[float, float, float, float]:
        return (self.center_altitude, self.layer_width, self.exponent, 1.0)


# =============================================================================
# Phase functions
# =============================================================================
# Each phase function takes nu, the cosine of the scattering angle, and is
# normalized so that it integrates to one over the sphere.

@dataclass(frozen=True)
class RayleighPhase:
    """Rayleigh phase function for molecules."""

    def __call__(self, nu):
        k = 3.0 / (16.0 * np.pi)
        return k * (1.0 + nu * nu)

    @property
    def params(self) -> Tuple[float, float, float, float]:
        return (0.0, 0.0, 0.0, 0.0)


def _henyey_greenstein(g: float, nu):
    denom = 1.0 + g * g - 2.0 * g * nu
    return (1.0 - g * g) / (4.0 * np.pi * denom ** 1.5)


@dataclass(frozen=True)
class HenyeyGreensteinPhase:
    """Henyey-Greenstein phase function for aerosols."""
    g: float = MIE_PHASE_FUNCTION_G

    def __call__(self, nu):
        return _henyey_greenstein(self.g, nu)

    @property
    def params(self) -> Tuple[float, float, float, float]:
        return (self.g, 0.0, 0.0, 1.0)


@dataclass(frozen=True)
class CornetteShanksPhase:
    """Cornette-Shanks phase function, an improved Henyey-Greenstein."""
    g: float = MIE_PHASE_FUNCTION_G

    def __call__(self, nu):
        g = self.g
        k = 3.0 / (8.0 * np.pi) * (1.0 - g * g) / (2.0 + g * g)
        return k * (1.0 + nu * nu) / (1.0 + g * g - 2.0 * g * nu) ** 1.5

    @property
    def params(self) -> Tuple[float, float, float, float]:
        return (self.g, 0.0, 0.0, 2.0)


@dataclass(frozen=True)
class DualLobePhase:
    """Blend of a forward and a backward Henyey-Greenstein lobe."""
    g1: float
    g2: float
    weight: float

    def __call__(self, nu):
        return (
            self.weight * _henyey_greenstein(self.g1, nu) +
            (1.0 - self.weight) * _henyey_greenstein(self.g2, nu)
        )

    @property
    def params(self) -> Tuple[float, float, float, float]:
        return (self.g1, self.g2, self.weight, 3.0)


# =============================================================================
# Media
# =============================================================================

@dataclass(frozen=True, eq=False)
class Medium:
    """
    A particulate that interacts with light.

    Attributes:
        scattering: Scattering coefficient at full density (per length unit)
        absorption: Absorption coefficient at full density (per length unit)
        density_profile: Density as a function of altitude
        phase_function: Angular distribution of scattered light
    """
    scattering: np.ndarray
    absorption: np.ndarray
    density_profile: object
    phase_function: object = field(default_factory=RayleighPhase)

    def __post_init__(self):
        object.__setattr__(self, 'scattering', _spectrum(self.scattering))
        object.__setattr__(self, 'absorption', _spectrum(self.absorption))

    @classmethod
    def empty(cls) -> 'Medium':
        """A medium that neither scatters nor absorbs."""
        return cls(
            scattering=0.0,
            absorption=0.0,
            density_profile=TentDensity(0.0, 0.0, 1.0),
            phase_function=RayleighPhase(),
        )

    @property
    def extinction(self) -> np.ndarray:
        return self.scattering + self.absorption

    def scaled(self, factor: float) -> 'Medium':
        """Express the medium in a length unit `factor` times larger."""
        return Medium(
            scattering=self.scattering * factor,
            absorption=self.absorption * factor,
            density_profile=self.density_profile.scaled(factor),
            phase_function=self.phase_function,
        )


class AtmosphereSample(NamedTuple):
    """Optical properties at a set of points inside the atmosphere."""
    layer_scattering: Tuple[np.ndarray, ...]  # one (..., 3) array per layer
    scattering: np.ndarray                    # (..., 3)
    extinction: np.ndarray                    # (..., 3)


@dataclass(frozen=True, eq=False)
class AtmosphereParameters:
    """
    Physical description of a planetary atmosphere.

    Immutable: builders return new instances.

    Attributes:
        bottom_radius: Planet surface radius
        top_radius: Radius at which the atmosphere ends
        ground_albedo: Average reflectance of the planet surface (RGB)
        layers: Participating media, usually molecules, aerosols and ozone
    """
    bottom_radius: float = EARTH_RADIUS
    top_radius: float = EARTH_TOP_RADIUS
    ground_albedo: np.ndarray = DEFAULT_GROUND_ALBEDO
    layers: Tuple[Medium, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'bottom_radius', float(self.bottom_radius))
        object.__setattr__(self, 'top_radius', float(self.top_radius))
        object.__setattr__(self, 'ground_albedo', _spectrum(self.ground_albedo))
        object.__setattr__(self, 'layers', tuple(self.layers))

    @classmethod
    def earth_default(cls, use_ozone: bool = True) -> 'AtmosphereParameters':
        """Create default Earth atmosphere parameters (meters)."""
        return cls.from_artistic_controls(use_ozone=use_ozone)

    @classmethod
    def from_artistic_controls(
        cls,
        rayleigh_density_scale: float = 1.0,
        mie_density_scale: float = 1.0,
        mie_phase_g: float = MIE_PHASE_FUNCTION_G,
        rayleigh_height: float = RAYLEIGH_SCALE_HEIGHT,
        mie_height: float = MIE_SCALE_HEIGHT,
        ground_albedo: float = DEFAULT_GROUND_ALBEDO,
        use_ozone: bool = True,
        ozone_density: float = 1.0,
    ) -> 'AtmosphereParameters':
        """
        Create an Earth-like atmosphere from artistic control values.

        Args:
            rayleigh_density_scale: Multiplier for air molecule density
            mie_density_scale: Multiplier for aerosol density
            mie_phase_g: Mie phase function asymmetry parameter
            rayleigh_height: Scale height for air molecules (meters)
            mie_height: Scale height for aerosols (meters)
            ground_albedo: Ground reflectivity (0-1)
            use_ozone: Include ozone absorption layer
            ozone_density: Multiplier for ozone absorption
        """
        rayleigh = Medium(
            scattering=RAYLEIGH_SCATTERING_COEFFICIENTS * rayleigh_density_scale,
            absorption=0.0,
            density_profile=ExponentialDensity(rayleigh_height),
            phase_function=RayleighPhase(),
        )
        mie = Medium(
            scattering=MIE_SCATTERING_COEFFICIENT * mie_density_scale,
            absorption=MIE_ABSORPTION_COEFFICIENT * mie_density_scale,
            density_profile=ExponentialDensity(mie_height),
            phase_function=CornetteShanksPhase(float(np.clip(mie_phase_g, -0.999, 0.999))),
        )
        if use_ozone and ozone_density > 0:
            ozone = Medium(
                scattering=0.0,
                absorption=OZONE_ABSORPTION_COEFFICIENTS * ozone_density,
                density_profile=TentDensity(OZONE_CENTER_ALTITUDE, OZONE_WIDTH, 1.0),
                phase_function=RayleighPhase(),
            )
        else:
            ozone = Medium.empty()

        return cls(
            bottom_radius=EARTH_RADIUS,
            top_radius=EARTH_TOP_RADIUS,
            ground_albedo=ground_albedo,
            layers=(rayleigh, mie, ozone),
        )

    @classmethod
    def mars(cls) -> 'AtmosphereParameters':
        """Create a Mars atmosphere (CO2 and dust, no ozone), in meters."""
        co2 = Medium(
            scattering=CO2_SCATTERING_COEFFICIENTS,
            absorption=0.0,
            density_profile=ExponentialDensity(CO2_SCALE_HEIGHT),
            phase_function=RayleighPhase(),
        )
        dust = Medium(
            scattering=DUST_SCATTERING_COEFFICIENT,
            absorption=DUST_ABSORPTION_COEFFICIENT,
            density_profile=ExponentialDensity(DUST_SCALE_HEIGHT),
            phase_function=CornetteShanksPhase(DUST_PHASE_FUNCTION_G),
        )
        return cls(
            bottom_radius=MARS_RADIUS,
            top_radius=MARS_TOP_RADIUS,
            ground_albedo=MARS_GROUND_ALBEDO,
            layers=(co2, dust, Medium.empty()),
        )

    def with_density_multiplier(self, mult: float) -> 'AtmosphereParameters':
        """Scale the scattering and absorption of every layer."""
        layers = tuple(
            replace(layer, scattering=layer.scattering * mult, absorption=layer.absorption * mult)
            for layer in self.layers
        )
        return replace(self, layers=layers)

    def to_length_unit(self, unit_in_meters: float) -> 'AtmosphereParameters':
        """
        Express this atmosphere in another length unit.

        Assumes the current unit is meters; `to_length_unit(1000.0)` gives
        kilometers and coefficients per kilometer.
        """
        return AtmosphereParameters(
            bottom_radius=self.bottom_radius / unit_in_meters,
            top_radius=self.top_radius / unit_in_meters,
            ground_albedo=self.ground_albedo,
            layers=tuple(layer.scaled(unit_in_meters) for layer in self.layers),
        )

    def get_atmosphere_height(self) -> float:
        """Return the atmosphere thickness."""
        return self.top_radius - self.bottom_radius

    def validate(self) -> None:
        """
        Check the physical preconditions of the precomputation.

        Raises:
            ValueError: If the geometry, a coefficient or the albedo is invalid
        """
        if self.bottom_radius <= 0.0:
            raise ValueError(f"bottom_radius must be positive, got {self.bottom_radius}")
        if self.top_radius <= self.bottom_radius:
            raise ValueError(
                f"top_radius ({self.top_radius}) must exceed bottom_radius ({self.bottom_radius})"
            )
        if np.any(self.ground_albedo < 0.0) or np.any(self.ground_albedo > 1.0):
            raise ValueError(f"ground_albedo must lie in [0, 1], got {self.ground_albedo}")
        for i, layer in enumerate(self.layers):
            if np.any(layer.scattering < 0.0) or np.any(layer.absorption < 0.0):
                raise ValueError(f"Layer {i} has negative scattering or absorption coefficients")

    def sample(self, local_r, xp=np) -> AtmosphereSample:
        """
        Look up the optical properties at radius `local_r`.

        Returns per-layer scattering, total scattering and total extinction,
        each with a trailing RGB axis.
        """
        altitude = xp.asarray(local_r, dtype=xp.float64) - self.bottom_radius
        scattering = xp.zeros(altitude.shape + (3,), dtype=xp.float64)
        extinction = xp.zeros_like(scattering)
        layer_scattering = []
        for layer in self.layers:
            density = xp.asarray(layer.density_profile.get_density(altitude))[..., np.newaxis]
            layer_sca = density * xp.asarray(layer.scattering)
            layer_scattering.append(layer_sca)
            scattering = scattering + layer_sca
            extinction = extinction + density * xp.asarray(layer.extinction)
        return AtmosphereSample(tuple(layer_scattering), scattering, extinction)


# =============================================================================
# LUT settings
# =============================================================================

def _check_size(name: str, size: Tuple[int, int]) -> Tuple[int, int]:
    if len(size) != 2:
        raise ValueError(f"{name} must be (width, height), got {size}")
    width, height = int(size[0]), int(size[1])
    if width < 1 or height < 1:
        raise ValueError(f"{name} must be at least 1x1, got {width}x{height}")
    return width, height


@dataclass(frozen=True)
class MultiscatteringSettings:
    """
    Resolution and sample counts of the multiscattering LUT.

    Attributes:
        lut_size: Output grid (width, height); x indexes the light cosine,
            y the altitude
        dirs: Number of sampled directions per cell
        samples: Number of ray-march steps per direction
        rows_per_tile: Grid rows evaluated by one unit of work
        max_workers: Thread count for parallel evaluation (None = executor default)
    """
    lut_size: Tuple[int, int] = (MULTISCATTERING_LUT_WIDTH, MULTISCATTERING_LUT_HEIGHT)
    dirs: int = MULTISCATTERING_LUT_DIRS
    samples: int = MULTISCATTERING_LUT_SAMPLES
    rows_per_tile: int = DEFAULT_ROWS_PER_TILE
    max_workers: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, 'lut_size', _check_size('lut_size', self.lut_size))
        if self.dirs < 1:
            raise ValueError(f"dirs must be at least 1, got {self.dirs}")
        if self.samples < 1:
            raise ValueError(f"samples must be at least 1, got {self.samples}")
        if self.rows_per_tile < 1:
            raise ValueError(f"rows_per_tile must be at least 1, got {self.rows_per_tile}")
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")

    @property
    def width(self) -> int:
        return self.lut_size[0]

    @property
    def height(self) -> int:
        return self.lut_size[1]


@dataclass(frozen=True)
class TransmittanceSettings:
    """Resolution and integration steps of the transmittance LUT."""
    lut_size: Tuple[int, int] = (TRANSMITTANCE_LUT_WIDTH, TRANSMITTANCE_LUT_HEIGHT)
    samples: int = TRANSMITTANCE_LUT_SAMPLES

    def __post_init__(self):
        object.__setattr__(self, 'lut_size', _check_size('lut_size', self.lut_size))
        if min(self.lut_size) < 2:
            raise ValueError(f"Transmittance LUT must be at least 2x2 for interpolation, got {self.lut_size}")
        if self.samples < 1:
            raise ValueError(f"samples must be at least 1, got {self.samples}")

    @property
    def width(self) -> int:
        return self.lut_size[0]

    @property
    def height(self) -> int:
        return self.lut_size[1]
