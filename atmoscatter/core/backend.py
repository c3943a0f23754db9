"""
GPU/CPU Backend Abstraction for Atmoscatter Precomputation.

Provides a unified array module that uses CuPy (GPU) when available and
requested, falling back to NumPy (CPU) otherwise.
"""

import logging

import numpy as np

# Try to import CuPy
try:
    import cupy as cp
    CUPY_AVAILABLE = True
except ImportError:
    cp = None
    CUPY_AVAILABLE = False

log = logging.getLogger(__name__)


class ComputeBackend:
    """
    Backend abstraction for array operations.

    Kernels take their array module from `backend.xp`, so the same code runs
    on NumPy and CuPy arrays.
    """

    def __init__(self, use_gpu: bool = False):
        """
        Initialize compute backend.

        Args:
            use_gpu: If True, use GPU (CuPy) when available
        """
        self.use_gpu = use_gpu and CUPY_AVAILABLE
        self.xp = cp if self.use_gpu else np

        if self.use_gpu:
            log.info("Using GPU backend (CuPy) - Device: %s", cp.cuda.Device().id)
        elif use_gpu:
            log.warning("CuPy not available, using CPU backend (NumPy)")
        else:
            log.debug("Using CPU backend (NumPy)")

    @property
    def name(self) -> str:
        """Get backend name."""
        return "CuPy (GPU)" if self.use_gpu else "NumPy (CPU)"

    def to_numpy(self, x):
        """Convert array to NumPy (for output/saving)."""
        if self.use_gpu:
            return cp.asnumpy(x)
        return np.asarray(x)

    def from_numpy(self, x):
        """Convert NumPy array to backend array."""
        if self.use_gpu:
            return cp.asarray(x)
        return np.asarray(x)

    def synchronize(self):
        """Synchronize GPU (no-op for CPU)."""
        if self.use_gpu:
            cp.cuda.Stream.null.synchronize()


def is_gpu_available() -> bool:
    """Check if GPU (CuPy) is available."""
    return CUPY_AVAILABLE
