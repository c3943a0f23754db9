"""
Atmoscatter EXR Utilities - Multi-layer EXR export of precomputed LUTs.
"""

import os
from typing import Dict

import numpy as np

# Try to import OpenEXR - an optional dependency
try:
    import OpenEXR
    import Imath
    HAS_OPENEXR = True
except ImportError:
    HAS_OPENEXR = False

CHANNEL_NAMES = ('R', 'G', 'B', 'A')


class LutEXRWriter:
    """
    Writes LUTs as layers of one EXR file.

    Channel naming convention:
    - atmoscatter.<layer>.R, atmoscatter.<layer>.G, atmoscatter.<layer>.B
    - atmoscatter.<layer>.A for RGBA layers
    """

    CHANNEL_PREFIX = "atmoscatter"

    def __init__(self, width: int, height: int, half_precision: bool = False):
        """
        Initialize EXR writer.

        Args:
            width: Image width in texels
            height: Image height in texels
            half_precision: Use 16-bit float (True) or 32-bit float (False)
        """
        self.width = width
        self.height = height
        self.half_precision = half_precision
        self.layers: Dict[str, np.ndarray] = {}

    def add_layer(self, name: str, data: np.ndarray) -> None:
        """
        Add a layer to the EXR.

        Args:
            name: Layer name (e.g., "transmittance", "multiscattering")
            data: Image data as (height, width, 3) or (height, width, 4) array
        """
        data = np.asarray(data)
        if data.ndim != 3 or data.shape[:2] != (self.height, self.width) or data.shape[2] not in (3, 4):
            raise ValueError(f"Layer data must be shape ({self.height}, {self.width}, 3|4), "
                             f"got {data.shape}")

        self.layers[name] = data.astype(np.float32)

    def write(self, filepath: str) -> None:
        """
        Write the EXR file.

        Args:
            filepath: Output file path
        """
        if not HAS_OPENEXR:
            raise RuntimeError("OpenEXR module not available. "
                               "Install with: pip install OpenEXR")

        if not self.layers:
            raise ValueError("No layers added to EXR")

        # Set up pixel type
        if self.half_precision:
            pixel_type = Imath.PixelType(Imath.PixelType.HALF)
            storage = np.float16
        else:
            pixel_type = Imath.PixelType(Imath.PixelType.FLOAT)
            storage = np.float32

        header = OpenEXR.Header(self.width, self.height)
        channels = {}
        channel_data = {}

        for layer_name, data in self.layers.items():
            for i in range(data.shape[2]):
                full_name = f"{self.CHANNEL_PREFIX}.{layer_name}.{CHANNEL_NAMES[i]}"
                channels[full_name] = Imath.Channel(pixel_type)
                channel_data[full_name] = np.ascontiguousarray(data[:, :, i], dtype=storage).tobytes()

        header['channels'] = channels

        exr_file = OpenEXR.OutputFile(filepath, header)
        exr_file.writePixels(channel_data)
        exr_file.close()


def read_lut_exr(filepath: str) -> Dict[str, np.ndarray]:
    """
    Read LUT layers from an EXR file written by LutEXRWriter.

    Args:
        filepath: Path to EXR file

    Returns:
        Dictionary mapping layer names to (H, W, 3) or (H, W, 4) arrays
    """
    if not HAS_OPENEXR:
        raise RuntimeError("OpenEXR module not available")

    if not os.path.exists(filepath):
        raise FileNotFoundError(f"EXR file not found: {filepath}")

    exr_file = OpenEXR.InputFile(filepath)
    header = exr_file.header()

    dw = header['dataWindow']
    width = dw.max.x - dw.min.x + 1
    height = dw.max.y - dw.min.y + 1

    # Group channels by layer
    prefix = LutEXRWriter.CHANNEL_PREFIX + "."
    lut_layers: Dict[str, Dict[str, str]] = {}
    for channel_name in header['channels']:
        if channel_name.startswith(prefix):
            parts = channel_name[len(prefix):].split('.')
            if len(parts) == 2:
                layer_name, component = parts
                lut_layers.setdefault(layer_name, {})[component] = channel_name

    result = {}
    pt = Imath.PixelType(Imath.PixelType.FLOAT)

    for layer_name, components in lut_layers.items():
        present = [c for c in CHANNEL_NAMES if c in components]
        if present[:3] != ['R', 'G', 'B']:
            continue
        planes = [
            np.frombuffer(exr_file.channel(components[c], pt), dtype=np.float32).reshape(height, width)
            for c in present
        ]
        result[layer_name] = np.stack(planes, axis=2)

    exr_file.close()
    return result
