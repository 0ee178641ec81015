"""Tests for bufferfx.registry."""

import numpy as np
import numpy.testing as npt
import pytest

from bufferfx import registry
from bufferfx import params as P
from bufferfx.buffer import AudioBuffer


class TestEffectTable:
    def test_all_effects_present(self):
        expected = {
            "gain", "normalize", "fade_in", "fade_out", "delay", "reverb",
            "lowpass", "highpass", "compress", "distortion", "telephonizer",
            "reverse", "bitcrush", "speed_change", "vocal_remove",
            "stereo_widen", "silence",
        }
        assert set(registry.EFFECTS) == expected

    def test_names_match_param_kind(self):
        for name, spec in registry.EFFECTS.items():
            assert spec.params_cls.kind == name
            assert spec.description

    def test_unknown_effect_raises(self):
        with pytest.raises(KeyError, match="Unknown effect"):
            registry.get_effect("flanger")

    def test_categories(self):
        cats = registry.get_categories()
        assert "lowpass" in cats["filters"]
        assert "vocal_remove" in cats["stereo"]
        assert sum(len(v) for v in cats.values()) == len(registry.EFFECTS)


class TestApply:
    def test_apply_record(self):
        buf = AudioBuffer(np.ones((1, 10), dtype=np.float32))
        out = registry.apply(buf, P.GainParams(0.5))
        npt.assert_allclose(out.data, 0.5)

    def test_apply_record_without_fields(self):
        buf = AudioBuffer(np.array([[1, 2, 3]], dtype=np.float32))
        out = registry.apply(buf, P.ReverseParams())
        npt.assert_array_equal(out.data, [[3, 2, 1]])

    def test_apply_silence(self):
        buf = AudioBuffer(np.ones((1, 10), dtype=np.float32), sample_rate=10.0)
        out = registry.apply(buf, P.SilenceParams(offset=0.2, duration=0.3))
        npt.assert_array_equal(out.data[0], [1, 1, 0, 0, 0, 1, 1, 1, 1, 1])

    def test_apply_rejects_non_record(self):
        with pytest.raises(TypeError):
            registry.apply(AudioBuffer.zeros(1, 4), {"factor": 2.0})

    def test_apply_rejects_base_filter_record(self):
        with pytest.raises(TypeError):
            registry.apply(AudioBuffer.zeros(1, 4), P.FilterParams())

    def test_apply_effect_by_name(self):
        buf = AudioBuffer.noise(frames=1000, seed=0)
        assert registry.apply_effect("speed_change", buf, rate=2.0).frames == 500

    def test_apply_effect_validates(self):
        with pytest.raises(ValueError):
            registry.apply_effect("bitcrush", AudioBuffer.zeros(1, 4), bits=0)

    def test_apply_effect_unknown_param(self):
        with pytest.raises(TypeError):
            registry.apply_effect("gain", AudioBuffer.zeros(1, 4), volume=2.0)
