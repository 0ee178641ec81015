"""Tests for bufferfx.effects stage-graph effects."""

import logging

import numpy as np
import numpy.testing as npt
import pytest

from bufferfx import effects
from bufferfx.buffer import AudioBuffer
from bufferfx.context import BufferOnlyHost, ContextProvider
from bufferfx.errors import UnsupportedHost


def _rms(x):
    return float(np.sqrt(np.mean(np.asarray(x, dtype=np.float64) ** 2)))


def sine(freq, channels=1, frames=4096, sample_rate=44100.0, amplitude=1.0):
    t = np.arange(frames) / sample_rate
    row = amplitude * np.sin(2.0 * np.pi * freq * t)
    return AudioBuffer(np.tile(row, (channels, 1)), sample_rate=sample_rate)


def click(channels=1, frames=4096, sample_rate=44100.0):
    data = np.zeros((channels, frames), dtype=np.float32)
    data[:, 0] = 1.0
    return AudioBuffer(data, sample_rate=sample_rate)


def ones(channels=1, frames=100, sample_rate=100.0):
    return AudioBuffer(
        np.ones((channels, frames), dtype=np.float32), sample_rate=sample_rate
    )


# ---------------------------------------------------------------------------
# Level
# ---------------------------------------------------------------------------


class TestGain:
    def test_unity_is_identity(self):
        buf = AudioBuffer.noise(channels=2, frames=1024, seed=0)
        npt.assert_array_equal(effects.gain(buf, 1.0).data, buf.data)

    def test_scales(self):
        npt.assert_allclose(effects.gain(ones(), 0.25).data, 0.25)

    def test_input_not_mutated(self):
        buf = ones()
        effects.gain(buf, 0.0)
        npt.assert_array_equal(buf.data, 1.0)

    def test_preserves_metadata(self):
        buf = sine(440.0, channels=2, frames=256, sample_rate=48000.0)
        out = effects.gain(buf, 0.5)
        assert out.sample_rate == 48000.0
        assert out.data.shape == (2, 256)

    def test_non_finite_rejected(self):
        with pytest.raises(ValueError):
            effects.gain(ones(), float("nan"))

    def test_render_logs_input(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="bufferfx.effects"):
            effects.gain(ones(frames=10), 2.0)
        messages = [r.getMessage() for r in caplog.records]
        assert any("AudioBuffer(channels=1, frames=10" in m for m in messages)


class TestNormalize:
    def test_peak_reaches_target(self):
        buf = sine(440.0, frames=4410, amplitude=0.2)
        assert effects.normalize(buf).peak() == pytest.approx(0.95, abs=1e-4)

    def test_custom_target(self):
        buf = AudioBuffer.noise(channels=2, frames=1000, seed=1, amplitude=0.1)
        assert effects.normalize(buf, target=0.5).peak() == pytest.approx(0.5, abs=1e-4)

    def test_silent_buffer_unchanged(self):
        buf = AudioBuffer.zeros(2, 100)
        out = effects.normalize(buf)
        npt.assert_array_equal(out.data, 0.0)
        assert out is not buf

    def test_attenuates_hot_signal(self):
        buf = AudioBuffer(np.array([[2.0, -4.0, 1.0]], dtype=np.float32))
        out = effects.normalize(buf)
        assert out.peak() == pytest.approx(0.95, abs=1e-6)


class TestFades:
    def test_fade_in_ramp(self):
        out = effects.fade_in(ones(), 0.5)
        assert out.data[0, 0] == pytest.approx(0.0)
        assert out.data[0, 25] == pytest.approx(0.5, abs=1e-6)
        npt.assert_allclose(out.data[0, 50:], 1.0)

    def test_fade_in_zero_duration_is_identity(self):
        npt.assert_array_equal(effects.fade_in(ones(), 0.0).data, 1.0)

    def test_fade_out_ramp(self):
        out = effects.fade_out(ones(), 0.5)
        npt.assert_allclose(out.data[0, :51], 1.0)
        assert out.data[0, 75] == pytest.approx(0.5, abs=1e-6)
        assert out.data[0, 99] == pytest.approx(0.02, abs=1e-6)

    def test_fade_out_longer_than_buffer_clamped(self):
        out = effects.fade_out(ones(), 5.0)
        assert out.data[0, 0] == pytest.approx(1.0)
        assert out.data[0, 50] == pytest.approx(0.5, abs=1e-6)

    def test_negative_duration_rejected(self):
        with pytest.raises(ValueError):
            effects.fade_in(ones(), -1.0)

    def test_fades_keep_length(self):
        buf = ones(channels=2)
        assert effects.fade_in(buf, 0.3).data.shape == (2, 100)
        assert effects.fade_out(buf, 0.3).data.shape == (2, 100)


# ---------------------------------------------------------------------------
# Delay and reverb
# ---------------------------------------------------------------------------


class TestDelay:
    def test_tail_is_three_delay_periods(self):
        buf = AudioBuffer.zeros(2, 44100, sample_rate=44100.0)
        out = effects.delay(buf, delay_time=0.5)
        assert out.frames == 44100 + 66150
        assert out.channels == 2

    def test_echo_train(self):
        buf = click(frames=100, sample_rate=1000.0)
        out = effects.delay(buf, delay_time=0.1, feedback=0.5, mix=0.5)
        assert out.frames == 400
        assert out.data[0, 0] == pytest.approx(0.5)
        assert out.data[0, 100] == pytest.approx(0.5)
        assert out.data[0, 200] == pytest.approx(0.25)
        assert out.data[0, 300] == pytest.approx(0.125)

    @pytest.mark.parametrize(
        "kwargs",
        [{"delay_time": 0.0}, {"delay_time": 6.0}, {"feedback": 1.5}, {"mix": -0.1}],
    )
    def test_invalid_params(self, kwargs):
        with pytest.raises(ValueError):
            effects.delay(ones(), **kwargs)


class TestReverb:
    def test_tail_length(self):
        buf = ones(channels=2, frames=100, sample_rate=1000.0)
        out = effects.reverb(buf, seconds=0.5, seed=0)
        assert out.data.shape == (2, 600)

    def test_seed_reproducible(self):
        buf = AudioBuffer.noise(channels=2, frames=200, sample_rate=1000.0, seed=3)
        a = effects.reverb(buf, seconds=0.2, seed=7)
        b = effects.reverb(buf, seconds=0.2, seed=7)
        npt.assert_array_equal(a.data, b.data)

    def test_dry_mix_keeps_input_then_silence(self):
        buf = AudioBuffer.noise(channels=2, frames=100, sample_rate=1000.0, seed=4)
        out = effects.reverb(buf, seconds=0.1, mix=0.0, seed=0)
        npt.assert_allclose(out.data[:, :100], buf.data, atol=1e-6)
        npt.assert_array_equal(out.data[:, 100:], 0.0)

    def test_mono_input(self):
        buf = click(frames=50, sample_rate=1000.0)
        out = effects.reverb(buf, seconds=0.1, mix=1.0, seed=0)
        assert out.channels == 1
        assert _rms(out.data[0, 1:]) > 0

    def test_mono_input_is_average_of_stereo_render(self):
        mono = click(frames=50, sample_rate=1000.0)
        mono_out = effects.reverb(mono, seconds=0.1, mix=1.0, seed=2)
        stereo_out = effects.reverb(mono.to_channels(2), seconds=0.1, mix=1.0, seed=2)
        npt.assert_allclose(mono_out.data[0], stereo_out.data.mean(axis=0), atol=1e-6)

    def test_impulse_response_shape_and_decay(self):
        ir = effects.impulse_response(0.5, 2.0, 1000.0, seed=0)
        assert ir.data.shape == (2, 500)
        assert ir.sample_rate == 1000.0
        assert ir.peak() <= 1.0
        assert _rms(ir.data[:, -50:]) < _rms(ir.data[:, :50])

    def test_impulse_response_empty_raises(self):
        with pytest.raises(ValueError):
            effects.impulse_response(0.0001, 2.0, 1000.0)


# ---------------------------------------------------------------------------
# Filters, dynamics, shaping
# ---------------------------------------------------------------------------


class TestFilters:
    def test_lowpass_keeps_low_tone(self):
        buf = sine(100.0, frames=8192)
        out = effects.lowpass(buf, frequency=5000.0)
        assert _rms(out.data[0, 1024:]) == pytest.approx(_rms(buf.data[0, 1024:]), rel=0.05)

    def test_lowpass_cuts_high_tone(self):
        buf = sine(15000.0, frames=8192)
        out = effects.lowpass(buf, frequency=300.0)
        assert _rms(out.data[0, 1024:]) < 0.01

    def test_highpass_cuts_low_tone(self):
        buf = sine(40.0, frames=16384)
        out = effects.highpass(buf, frequency=4000.0)
        assert _rms(out.data[0, 4096:]) < 0.01

    def test_invalid_frequency(self):
        with pytest.raises(ValueError, match="frequency"):
            effects.lowpass(ones(), frequency=0.0)


class TestCompress:
    def test_shape_preserved(self):
        buf = AudioBuffer.noise(channels=2, frames=2048, seed=5)
        assert effects.compress(buf).data.shape == (2, 2048)

    def test_reduces_loud_signal(self):
        buf = sine(440.0, frames=22050)
        out = effects.compress(buf, threshold=-40.0, ratio=20.0)
        assert out.peak() < buf.peak()

    @pytest.mark.parametrize(
        "kwargs",
        [{"threshold": 5.0}, {"knee": 50.0}, {"ratio": 0.5}, {"attack": 2.0}],
    )
    def test_invalid_params(self, kwargs):
        with pytest.raises(ValueError):
            effects.compress(ones(), **kwargs)


class TestDistortion:
    def test_shape_preserved(self):
        buf = sine(440.0, channels=2, frames=1024)
        assert effects.distortion(buf).data.shape == (2, 1024)

    def test_zero_amount_is_linear(self):
        # k = 0 gives a straight line of slope 1/3
        buf = sine(440.0, frames=1024, amplitude=0.9)
        out = effects.distortion(buf, amount=0.0, oversample=1)
        npt.assert_allclose(out.data, buf.data / 3.0, atol=1e-4)

    def test_fixed_table_size(self):
        buf = sine(440.0, frames=512, sample_rate=22050.0)
        out = effects.distortion(buf, table_size=44100, oversample=1)
        assert out.frames == 512

    def test_invalid_oversample(self):
        with pytest.raises(ValueError, match="oversample"):
            effects.distortion(ones(), oversample=3)


class TestTelephonizer:
    def test_output_bounded(self):
        buf = sine(1000.0, channels=2, frames=4096)
        out = effects.telephonizer(buf)
        assert out.data.shape == (2, 4096)
        assert out.peak() < 1.0

    def test_removes_low_rumble(self):
        buf = sine(30.0, frames=44100, amplitude=0.5)
        out = effects.telephonizer(buf)
        assert _rms(out.data[0, 8192:]) < 0.05 * _rms(buf.data[0])


# ---------------------------------------------------------------------------
# Hosts
# ---------------------------------------------------------------------------


class TestBufferOnlyHost:
    @pytest.mark.parametrize(
        "fn",
        [
            effects.gain,
            effects.normalize,
            effects.fade_in,
            effects.fade_out,
            effects.delay,
            effects.reverb,
            effects.lowpass,
            effects.highpass,
            effects.compress,
            effects.distortion,
            effects.telephonizer,
        ],
    )
    def test_stage_effects_need_render(self, fn):
        ctx = ContextProvider(host=BufferOnlyHost())
        buf = AudioBuffer.noise(channels=2, frames=100, seed=0)
        with pytest.raises(UnsupportedHost):
            fn(buf, ctx=ctx)

    def test_explicit_provider_used(self):
        ctx = ContextProvider()
        out = effects.gain(ones(), 2.0, ctx=ctx)
        npt.assert_allclose(out.data, 2.0)
