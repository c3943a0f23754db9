"""
Atmoscatter Model Tests - Host-side precomputation, lookups and export.

Run with: python -m pytest tests/test_model.py
Or standalone: python tests/test_model.py
"""

import sys
import os
import tempfile

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np
import pytest


def _small_model(params=None):
    from atmoscatter.core.model import AtmosphereModel
    from atmoscatter.core.parameters import MultiscatteringSettings, TransmittanceSettings

    return AtmosphereModel(
        params,
        transmittance_settings=TransmittanceSettings(lut_size=(64, 32), samples=40),
        multiscattering_settings=MultiscatteringSettings(lut_size=(8, 8), dirs=16, samples=12),
    )


def test_model_initialization():
    """Test AtmosphereModel can be created and initialized."""
    model = _small_model()

    assert not model.is_initialized

    calls = []

    def progress(p, msg):
        calls.append(p)
        print(f"  [{int(p*100):3d}%] {msg}")

    model.init(progress_callback=progress)

    assert model.is_initialized
    assert model.textures is not None
    assert model.textures.transmittance.shape == (32, 64, 3)
    assert model.textures.multiscattering.shape == (8, 8, 4)
    assert model.textures.multiscattering.dtype == np.float32

    assert calls[0] == 0.0
    assert calls[-1] == 1.0
    assert calls == sorted(calls)

    print("✓ Model initialization test passed")


def test_transmittance_texture():
    """Test transmittance texture values are physically reasonable."""
    model = _small_model()
    model.init()

    trans = model.textures.transmittance

    # Transmittance should be in [0, 1]
    assert np.all(trans >= 0.0)
    assert np.all(trans <= 1.0)

    # Looking straight up from the ground: mostly clear, red gets through best
    zenith = trans[0, 0, :]
    assert np.all(zenith > 0.5), f"Expected high transmittance, got {zenith}"
    assert zenith[0] > zenith[2]

    # Looking straight up from the top of the atmosphere
    np.testing.assert_allclose(trans[-1, 0, :], 1.0)

    print("✓ Transmittance texture test passed")


def test_multiscattering_texture():
    """Test multiscattering texture values and lookups."""
    model = _small_model()
    model.init()

    ms = model.textures.multiscattering
    assert np.all(np.isfinite(ms))
    assert np.all(ms[..., :3] >= 0.0)
    assert np.all(ms[..., 3] == 1.0)

    # Daytime at the ground scatters more than night
    assert np.all(ms[0, -1, :3] > ms[0, 0, :3])

    # Lookups at texel centers return the stored values
    from atmoscatter.core.parametrization import MultiscatteringLutParametrization
    parametrization = MultiscatteringLutParametrization(model.params, (8, 8))
    r, mu = parametrization.decode(np.array([3, 6]), np.array([5, 2]))
    sampled = model.sample_multiscattering(r, mu)

    assert sampled.shape == (2, 3)
    np.testing.assert_allclose(sampled[0], ms[5, 3, :3], rtol=1e-5)
    np.testing.assert_allclose(sampled[1], ms[2, 6, :3], rtol=1e-5)

    print("✓ Multiscattering texture test passed")


def test_shader_uniforms():
    """Test shader uniforms describe every layer."""
    model = _small_model()

    with pytest.raises(RuntimeError):
        model.get_shader_uniforms()

    model.init()
    uniforms = model.get_shader_uniforms()

    assert uniforms['bottom_radius'] == 6360000.0
    assert uniforms['top_radius'] == 6460000.0
    np.testing.assert_allclose(uniforms['ground_albedo'], [0.3, 0.3, 0.3])
    assert len(uniforms['layers']) == 3

    rayleigh, mie, ozone = uniforms['layers']
    np.testing.assert_allclose(rayleigh['density_params'], [8000.0, 0.0, 0.0, 0.0])
    np.testing.assert_allclose(mie['phase_params'], [0.8, 0.0, 0.0, 2.0])
    np.testing.assert_allclose(ozone['density_params'], [25000.0, 30000.0, 1.0, 1.0])
    assert np.all(ozone['scattering'] == 0.0)

    print("✓ Shader uniforms test passed")


def test_invalid_parameters():
    """Test that invalid atmospheres are rejected before precomputation."""
    from atmoscatter.core.parameters import AtmosphereParameters

    model = _small_model(AtmosphereParameters(bottom_radius=6360.0, top_radius=6000.0))

    with pytest.raises(ValueError):
        model.init()
    assert not model.is_initialized

    with pytest.raises(RuntimeError):
        model.sample_multiscattering(6360.0, 0.5)

    print("✓ Invalid parameters test passed")


def test_save_load_textures():
    """Test textures survive a save/load round trip."""
    model = _small_model()
    model.init()

    with tempfile.TemporaryDirectory() as tmp:
        filepath = os.path.join(tmp, "atmosphere.npz")
        model.save_textures(filepath)

        restored = _small_model()
        restored.load_textures(filepath)

        assert restored.is_initialized
        np.testing.assert_array_equal(restored.textures.transmittance, model.textures.transmittance)
        np.testing.assert_array_equal(restored.textures.multiscattering, model.textures.multiscattering)
        assert restored.transmittance_lut.shape == (32, 64, 3)

        with pytest.raises(FileNotFoundError):
            restored.load_textures(os.path.join(tmp, "missing.npz"))

    r = np.array([6360000.0, 6400000.0])
    mu = np.array([0.9, -0.1])
    np.testing.assert_allclose(restored.sample_multiscattering(r, mu),
                               model.sample_multiscattering(r, mu))

    print("✓ Save/load textures test passed")


def test_exr_export():
    """Test textures export to EXR and read back unchanged."""
    pytest.importorskip("OpenEXR")
    pytest.importorskip("Imath")
    from atmoscatter.utils.exr import read_lut_exr

    model = _small_model()
    model.init()

    with tempfile.TemporaryDirectory() as tmp:
        model.save_textures_exr(tmp)

        trans = read_lut_exr(os.path.join(tmp, "transmittance.exr"))
        ms = read_lut_exr(os.path.join(tmp, "multiscattering.exr"))

    np.testing.assert_array_equal(trans['transmittance'], model.textures.transmittance)
    np.testing.assert_array_equal(ms['multiscattering'], model.textures.multiscattering)

    print("✓ EXR export test passed")


def run_all_tests():
    """Run all tests."""
    print("\n" + "="*60)
    print("Atmoscatter Model Tests")
    print("="*60 + "\n")

    tests = [
        test_model_initialization,
        test_transmittance_texture,
        test_multiscattering_texture,
        test_shader_uniforms,
        test_invalid_parameters,
        test_save_load_textures,
        test_exr_export,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
        except pytest.skip.Exception as e:
            print(f"- {test.__name__} skipped: {e}")
        except Exception as e:
            print(f"✗ {test.__name__} FAILED: {e}")
            failed += 1

    print("\n" + "="*60)
    print(f"Results: {passed} passed, {failed} failed")
    print("="*60 + "\n")

    return failed == 0


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
