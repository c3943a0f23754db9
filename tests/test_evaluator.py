"""
LUT evaluator tests: tiling, dispatchers, output buffer handling and
progress reporting.
"""

import numpy as np
import pytest

from atmoscatter.core.evaluator import (
    SerialDispatcher,
    ThreadPoolDispatcher,
    compute_multiscattering_lut,
    partition_rows,
)
from atmoscatter.core.multiscattering import estimate_cell
from atmoscatter.core.parameters import MultiscatteringSettings


SMALL = MultiscatteringSettings(lut_size=(6, 5), dirs=8, samples=8, rows_per_tile=2)


def test_partition_rows():
    """Tiles cover every row exactly once, in order."""
    assert partition_rows(10, 3) == [(0, 3), (3, 6), (6, 9), (9, 10)]
    assert partition_rows(4, 8) == [(0, 4)]
    assert partition_rows(1, 1) == [(0, 1)]

    for height, rows in ((32, 8), (33, 8), (7, 1), (5, 5)):
        covered = [row for start, stop in partition_rows(height, rows) for row in range(start, stop)]
        assert covered == list(range(height))

    with pytest.raises(ValueError):
        partition_rows(0, 4)
    with pytest.raises(ValueError):
        partition_rows(4, 0)


def test_dispatchers_yield_every_tile():
    """Both dispatchers run each tile once and report it."""
    tiles = partition_rows(9, 2)

    for dispatcher in (SerialDispatcher(), ThreadPoolDispatcher(max_workers=3)):
        seen = []
        done = list(dispatcher.run(seen.append, tiles))
        assert sorted(done) == tiles
        assert sorted(seen) == tiles


def test_thread_pool_propagates_errors():
    """A failing tile surfaces on the calling thread."""
    def fail(tile):
        raise RuntimeError(f"tile {tile} failed")

    with pytest.raises(RuntimeError):
        list(ThreadPoolDispatcher(max_workers=2).run(fail, partition_rows(4, 1)))


def test_serial_and_threaded_agree(rayleigh_atmosphere, rayleigh_transmittance):
    """Tiling and scheduling do not change the result."""
    serial = compute_multiscattering_lut(
        rayleigh_atmosphere, rayleigh_transmittance,
        MultiscatteringSettings(lut_size=(6, 5), dirs=8, samples=8, rows_per_tile=5),
        dispatcher=SerialDispatcher(),
    )
    threaded = compute_multiscattering_lut(
        rayleigh_atmosphere, rayleigh_transmittance,
        MultiscatteringSettings(lut_size=(6, 5), dirs=8, samples=8, rows_per_tile=1, max_workers=4),
    )

    np.testing.assert_allclose(threaded, serial, rtol=1e-6, atol=1e-12)


def test_output_buffer_filled_in_place(rayleigh_atmosphere, rayleigh_transmittance):
    """Every texel of a caller-provided buffer is written, alpha set to 1."""
    output = np.full((5, 6, 4), np.nan, dtype=np.float32)

    result = compute_multiscattering_lut(
        rayleigh_atmosphere, rayleigh_transmittance, SMALL, output=output
    )

    assert result is output
    assert np.all(np.isfinite(output))
    assert np.all(output[..., :3] >= 0.0)
    assert np.all(output[..., 3] == 1.0)


def test_output_buffer_shape_checked(rayleigh_atmosphere, rayleigh_transmittance):
    """A buffer that does not match the LUT size is rejected."""
    with pytest.raises(ValueError):
        compute_multiscattering_lut(
            rayleigh_atmosphere, rayleigh_transmittance, SMALL,
            output=np.zeros((6, 5, 4), dtype=np.float32),
        )
    with pytest.raises(ValueError):
        compute_multiscattering_lut(
            rayleigh_atmosphere, rayleigh_transmittance, SMALL,
            output=np.zeros((5, 6, 3), dtype=np.float32),
        )


def test_custom_decode(rayleigh_atmosphere, rayleigh_transmittance):
    """The grid decoder is pluggable; every cell uses its (r, mu)."""
    def decode(x, y):
        return np.full(x.shape, 6370.0), np.full(x.shape, 0.3)

    lut = compute_multiscattering_lut(
        rayleigh_atmosphere, rayleigh_transmittance, SMALL, decode=decode
    )

    expected = estimate_cell(6370.0, 0.3, rayleigh_atmosphere, rayleigh_transmittance,
                             SMALL.dirs, SMALL.samples)
    np.testing.assert_allclose(lut[..., :3], np.broadcast_to(expected, (5, 6, 3)), rtol=1e-5)


def test_decode_errors_propagate(rayleigh_atmosphere, rayleigh_transmittance):
    """Failures inside a tile abort the computation."""
    def decode(x, y):
        raise RuntimeError("bad grid")

    with pytest.raises(RuntimeError):
        compute_multiscattering_lut(rayleigh_atmosphere, rayleigh_transmittance, SMALL, decode=decode)


def test_progress_callback(rayleigh_atmosphere, rayleigh_transmittance):
    """Progress rises once per tile and ends at 1."""
    calls = []

    compute_multiscattering_lut(
        rayleigh_atmosphere, rayleigh_transmittance, SMALL,
        progress_callback=lambda progress, message: calls.append((progress, message)),
    )

    progress = [p for p, _ in calls]
    assert len(progress) == len(partition_rows(5, SMALL.rows_per_tile))
    assert progress == sorted(progress)
    assert progress[-1] == 1.0
    assert all(isinstance(message, str) for _, message in calls)
