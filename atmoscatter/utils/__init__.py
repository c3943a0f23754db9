"""
Atmoscatter Utilities
"""

from .exr import HAS_OPENEXR, LutEXRWriter, read_lut_exr
