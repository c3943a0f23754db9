"""
Parallel evaluator for the multiscattering LUT.

Every cell of the output grid is independent. The grid is split into
disjoint bands of rows; each band is decoded to (r, mu), evaluated as one
vectorized batch and written to its own slice of the output buffer, so no
locking is needed and every cell is written exactly once.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

import numpy as np

from .backend import ComputeBackend
from .multiscattering import estimate_cells
from .parameters import AtmosphereParameters, MultiscatteringSettings
from .parametrization import MultiscatteringLutParametrization
from .sampling import sample_directions

log = logging.getLogger(__name__)

Tile = Tuple[int, int]


def partition_rows(height: int, rows_per_tile: int) -> List[Tile]:
    """Split rows [0, height) into consecutive, non-overlapping [start, stop) bands."""
    if height < 1 or rows_per_tile < 1:
        raise ValueError(f"Cannot partition {height} rows into tiles of {rows_per_tile}")
    return [(start, min(start + rows_per_tile, height)) for start in range(0, height, rows_per_tile)]


class SerialDispatcher:
    """Runs tiles one after another on the calling thread."""

    def run(self, fn: Callable[[Tile], None], tiles: Iterable[Tile]) -> Iterator[Tile]:
        for tile in tiles:
            fn(tile)
            yield tile


class ThreadPoolDispatcher:
    """
    Runs tiles on a thread pool.

    NumPy releases the GIL inside its array loops, so bands of rows overlap
    well. Completed tiles are yielded on the calling thread in completion
    order; the first failure is re-raised there.
    """

    def __init__(self, max_workers: Optional[int] = None):
        self.max_workers = max_workers

    def run(self, fn: Callable[[Tile], None], tiles: Iterable[Tile]) -> Iterator[Tile]:
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {pool.submit(fn, tile): tile for tile in tiles}
            for future in as_completed(futures):
                future.result()
                yield futures[future]


def compute_multiscattering_lut(
    atmosphere: AtmosphereParameters,
    transmittance: Callable,
    settings: Optional[MultiscatteringSettings] = None,
    output: Optional[np.ndarray] = None,
    decode: Optional[Callable] = None,
    dispatcher=None,
    backend: Optional[ComputeBackend] = None,
    progress_callback=None,
) -> np.ndarray:
    """
    Populate the multiscattering LUT.

    Args:
        atmosphere: Atmosphere parameters (read-only)
        transmittance: Callable (r, mu) -> (..., 3), usually a TransmittanceLut
        settings: LUT resolution and sample counts
        output: Optional (height, width, 4) float buffer to fill in place
        decode: Callable (x, y) -> (r, mu) over texel index arrays;
            defaults to the linear multiscattering parametrization
        dispatcher: Object with run(fn, tiles); defaults to a thread pool on
            the CPU backend and serial execution on the GPU backend
        backend: Array backend
        progress_callback: Optional callback(progress, message)

    Returns:
        The output buffer; RGB holds psi_ms, alpha is 1
    """
    settings = settings or MultiscatteringSettings()
    backend = backend or ComputeBackend(use_gpu=False)
    xp = backend.xp
    width, height = settings.lut_size

    if output is None:
        output = np.zeros((height, width, 4), dtype=np.float32)
    elif output.shape != (height, width, 4):
        raise ValueError(f"Output buffer must be shape ({height}, {width}, 4), got {output.shape}")

    if decode is None:
        decode = MultiscatteringLutParametrization(atmosphere, settings.lut_size).decode
    if dispatcher is None:
        if backend.use_gpu:
            dispatcher = SerialDispatcher()
        else:
            dispatcher = ThreadPoolDispatcher(settings.max_workers)

    tiles = partition_rows(height, settings.rows_per_tile)
    log.info("Computing multiscattering LUT (%dx%d, %d dirs, %d samples, %d tiles)...",
             width, height, settings.dirs, settings.samples, len(tiles))

    def evaluate_tile(tile: Tile) -> None:
        start, stop = tile
        yy, xx = xp.meshgrid(xp.arange(start, stop), xp.arange(width), indexing='ij')
        r, mu = decode(xx, yy)
        psi_ms = estimate_cells(
            r, mu, atmosphere, transmittance,
            settings.dirs, settings.samples,
            ray_dirs=sample_directions(settings.dirs, xp=xp),
            xp=xp,
        )
        output[start:stop, :, :3] = backend.to_numpy(psi_ms)
        output[start:stop, :, 3] = 1.0

    for done, (start, stop) in enumerate(dispatcher.run(evaluate_tile, tiles), 1):
        log.debug("  Rows %d-%d done (%d/%d)", start, stop - 1, done, len(tiles))
        if progress_callback:
            progress_callback(done / len(tiles), f"Multiscattering rows {start}-{stop - 1}")

    backend.synchronize()
    rgb = output[..., :3]
    log.info("Multiscattering done, max: %.6g, min: %.6g", rgb.max(), rgb.min())
    return output
