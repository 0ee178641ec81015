"""Processing stages for offline renders.

A stage is any object with ``process(buf) -> AudioBuffer``.  Stage-graph
effects are ordered lists of stages handed to an ``OfflineContext``; each
stage returns a new buffer and never writes into the one it was given.
"""

from __future__ import annotations

import math
from typing import Protocol, Sequence

import numpy as np
from scipy.signal import fftconvolve, lfilter, resample_poly

from bufferfx.buffer import AudioBuffer


class Stage(Protocol):
    def process(self, buf: AudioBuffer) -> AudioBuffer: ...


# ---------------------------------------------------------------------------
# Gain
# ---------------------------------------------------------------------------


class GainStage:
    """Multiply every sample by a linear factor."""

    def __init__(self, factor: float):
        self.factor = float(factor)

    def process(self, buf: AudioBuffer) -> AudioBuffer:
        return buf.with_data(buf.data * np.float32(self.factor))

    def __repr__(self) -> str:
        return f"GainStage(factor={self.factor})"


class GainRampStage:
    """Piecewise-linear gain envelope.

    *points* are ``(time_seconds, gain)`` breakpoints in ascending time.  The
    gain is held at the first value before the first point and at the last
    value after the last point, with linear ramps in between.
    """

    def __init__(self, points: Sequence[tuple[float, float]]):
        if not points:
            raise ValueError("GainRampStage requires at least one breakpoint")
        times = [float(t) for t, _ in points]
        if any(b < a for a, b in zip(times, times[1:])):
            raise ValueError("breakpoint times must be ascending")
        self.points = [(float(t), float(g)) for t, g in points]

    def envelope(self, frames: int, sample_rate: float) -> np.ndarray:
        t = np.arange(frames, dtype=np.float64) / sample_rate
        times = np.array([p[0] for p in self.points])
        gains = np.array([p[1] for p in self.points])
        return np.interp(t, times, gains).astype(np.float32)

    def process(self, buf: AudioBuffer) -> AudioBuffer:
        env = self.envelope(buf.frames, buf.sample_rate)
        return buf.with_data(buf.data * env[np.newaxis, :])

    def __repr__(self) -> str:
        return f"GainRampStage(points={self.points})"


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def biquad_coefficients(
    kind: str, frequency: float, q: float, sample_rate: float
) -> tuple[np.ndarray, np.ndarray]:
    """Normalised ``(b, a)`` for a second-order lowpass or highpass.

    *q* is the resonance in dB, as for Web Audio lowpass/highpass filters.
    Frequencies at or beyond 0 Hz / Nyquist degrade to pass-through or
    silence the way a clamped analogue prototype would.
    """
    if kind not in ("lowpass", "highpass"):
        raise ValueError(f"Unknown biquad kind: {kind!r}")
    nyquist = sample_rate / 2.0
    passthrough = (np.array([1.0]), np.array([1.0]))
    silent = (np.array([0.0]), np.array([1.0]))
    if frequency >= nyquist:
        return passthrough if kind == "lowpass" else silent
    if frequency <= 0:
        return silent if kind == "lowpass" else passthrough

    w0 = 2.0 * math.pi * frequency / sample_rate
    cos_w0 = math.cos(w0)
    alpha = math.sin(w0) / (2.0 * 10.0 ** (q / 20.0))
    a0 = 1.0 + alpha
    if kind == "lowpass":
        b0 = (1.0 - cos_w0) / 2.0
        b1 = 1.0 - cos_w0
    else:
        b0 = (1.0 + cos_w0) / 2.0
        b1 = -(1.0 + cos_w0)
    b = np.array([b0, b1, b0]) / a0
    a = np.array([1.0, -2.0 * cos_w0 / a0, (1.0 - alpha) / a0])
    return b, a


class BiquadStage:
    """One second-order lowpass or highpass section."""

    def __init__(self, kind: str, frequency: float, q: float = 1.0):
        if kind not in ("lowpass", "highpass"):
            raise ValueError(f"Unknown biquad kind: {kind!r}")
        self.kind = kind
        self.frequency = float(frequency)
        self.q = float(q)

    def process(self, buf: AudioBuffer) -> AudioBuffer:
        b, a = biquad_coefficients(self.kind, self.frequency, self.q, buf.sample_rate)
        out = lfilter(b, a, buf.data, axis=-1)
        return buf.with_data(out.astype(np.float32))

    def __repr__(self) -> str:
        return f"BiquadStage({self.kind!r}, frequency={self.frequency}, q={self.q})"


# ---------------------------------------------------------------------------
# Time-domain effects
# ---------------------------------------------------------------------------


class FeedbackDelayStage:
    """Delay line with a feedback loop, mixed against the dry signal.

    ``d[n] = x[n-D] + feedback * d[n-D]``; output ``(1-mix)*x + mix*d``.
    """

    def __init__(self, delay_time: float, feedback: float, mix: float):
        self.delay_time = float(delay_time)
        self.feedback = float(feedback)
        self.mix = float(mix)

    def delay_frames(self, sample_rate: float) -> int:
        return max(1, int(round(self.delay_time * sample_rate)))

    def process(self, buf: AudioBuffer) -> AudioBuffer:
        d = self.delay_frames(buf.sample_rate)
        b = np.zeros(d + 1)
        b[d] = 1.0
        a = np.zeros(d + 1)
        a[0] = 1.0
        a[d] = -self.feedback
        x = buf.data.astype(np.float64)
        wet = lfilter(b, a, x, axis=-1)
        out = (1.0 - self.mix) * x + self.mix * wet
        return buf.with_data(out.astype(np.float32))

    def __repr__(self) -> str:
        return (
            f"FeedbackDelayStage(delay_time={self.delay_time}, "
            f"feedback={self.feedback}, mix={self.mix})"
        )


class ConvolverStage:
    """FFT convolution against an impulse response, mixed with the dry signal.

    Channel ``i`` of the input is convolved with IR channel
    ``i % ir.channels``.  Mono input against a multichannel IR is convolved
    with every IR channel and the results averaged, so a stereo IR gives
    ``0.5 * (x * irL + x * irR)``.  With *normalize* each IR channel is
    scaled to unit energy first.
    """

    def __init__(self, ir: AudioBuffer, mix: float = 1.0, normalize: bool = True):
        self.ir = ir
        self.mix = float(mix)
        self.normalize = normalize

    def _ir_data(self) -> np.ndarray:
        ir = self.ir.data.astype(np.float64)
        if self.normalize:
            energy = np.sqrt(np.sum(ir**2, axis=1, keepdims=True))
            energy[energy == 0] = 1.0
            ir = ir / energy
        return ir

    def process(self, buf: AudioBuffer) -> AudioBuffer:
        if buf.sample_rate != self.ir.sample_rate:
            raise ValueError(
                f"Sample rate mismatch: buf={buf.sample_rate}, ir={self.ir.sample_rate}"
            )
        ir = self._ir_data()
        x = buf.data.astype(np.float64)
        wet = np.zeros_like(x)
        if buf.frames > 0 and ir.shape[1] > 0:
            if buf.channels == 1:
                full = sum(fftconvolve(x[0], row, mode="full") for row in ir)
                wet[0] = full[: buf.frames] / ir.shape[0]
            else:
                for ch in range(buf.channels):
                    full = fftconvolve(x[ch], ir[ch % ir.shape[0]], mode="full")
                    wet[ch] = full[: buf.frames]
        out = (1.0 - self.mix) * x + self.mix * wet
        return buf.with_data(out.astype(np.float32))

    def __repr__(self) -> str:
        return f"ConvolverStage(ir={self.ir!r}, mix={self.mix})"


# ---------------------------------------------------------------------------
# Dynamics
# ---------------------------------------------------------------------------


class CompressorStage:
    """Feedforward compressor with a soft knee.

    The detector follows the loudest channel so every channel receives the
    same gain.  Gain reduction is smoothed with separate one-pole attack and
    release time constants.
    """

    def __init__(
        self,
        threshold: float = -24.0,
        knee: float = 30.0,
        ratio: float = 12.0,
        attack: float = 0.003,
        release: float = 0.25,
    ):
        self.threshold = float(threshold)
        self.knee = float(knee)
        self.ratio = float(ratio)
        self.attack = float(attack)
        self.release = float(release)

    def static_curve(self, level_db: np.ndarray) -> np.ndarray:
        """Output level in dB for input levels in dB."""
        over = level_db - self.threshold
        slope = 1.0 / self.ratio - 1.0
        out = np.where(over > 0, self.threshold + over / self.ratio, level_db)
        if self.knee > 0:
            in_knee = np.abs(2.0 * over) <= self.knee
            knee_out = level_db + slope * (over + self.knee / 2.0) ** 2 / (2.0 * self.knee)
            out = np.where(in_knee, knee_out, out)
        return out

    @staticmethod
    def _coeff(seconds: float, sample_rate: float) -> float:
        if seconds <= 0:
            return 0.0
        return math.exp(-1.0 / (seconds * sample_rate))

    def gain_db(self, buf: AudioBuffer) -> np.ndarray:
        """Per-frame smoothed gain change in dB (always <= 0)."""
        if buf.frames == 0:
            return np.zeros(0)
        level = np.max(np.abs(buf.data.astype(np.float64)), axis=0)
        level_db = 20.0 * np.log10(np.maximum(level, 1e-9))
        target = self.static_curve(level_db) - level_db

        att = self._coeff(self.attack, buf.sample_rate)
        rel = self._coeff(self.release, buf.sample_rate)
        smoothed = np.empty_like(target)
        g = 0.0
        for i, t in enumerate(target.tolist()):
            coeff = att if t < g else rel
            g = coeff * g + (1.0 - coeff) * t
            smoothed[i] = g
        return smoothed

    def process(self, buf: AudioBuffer) -> AudioBuffer:
        gain = 10.0 ** (self.gain_db(buf) / 20.0)
        out = buf.data * gain[np.newaxis, :]
        return buf.with_data(out.astype(np.float32))

    def __repr__(self) -> str:
        return (
            f"CompressorStage(threshold={self.threshold}, knee={self.knee}, "
            f"ratio={self.ratio}, attack={self.attack}, release={self.release})"
        )


# ---------------------------------------------------------------------------
# Waveshaping
# ---------------------------------------------------------------------------


def distortion_curve(amount: float, size: int) -> np.ndarray:
    """Overdrive transfer curve ``(3+k)*x*20deg / (pi + k*|x|)``."""
    x = np.arange(size, dtype=np.float64) * 2.0 / size - 1.0
    deg = math.pi / 180.0
    curve = (3.0 + amount) * x * 20.0 * deg / (math.pi + amount * np.abs(x))
    return curve.astype(np.float32)


def soft_clip_curve(size: int = 4096) -> np.ndarray:
    """``tanh(2x)`` soft clipper."""
    x = np.arange(size, dtype=np.float64) * 2.0 / size - 1.0
    return np.tanh(2.0 * x).astype(np.float32)


class WaveShaperStage:
    """Map samples through a transfer-curve table.

    The table spans input ``[-1, 1]``; values between entries are linearly
    interpolated and inputs outside the range take the end values.  With
    *oversample* 2 or 4 the signal is upsampled before shaping and
    decimated afterwards to reduce aliasing.
    """

    def __init__(self, curve: np.ndarray, oversample: int = 1):
        curve = np.asarray(curve, dtype=np.float32)
        if curve.ndim != 1 or curve.shape[0] < 2:
            raise ValueError("curve must be a 1D table with at least 2 entries")
        if oversample not in (1, 2, 4):
            raise ValueError(f"oversample must be 1, 2 or 4, got {oversample}")
        self.curve = curve
        self.oversample = oversample

    def shape(self, x: np.ndarray) -> np.ndarray:
        xp = np.linspace(-1.0, 1.0, self.curve.shape[0])
        return np.interp(x, xp, self.curve)

    def process(self, buf: AudioBuffer) -> AudioBuffer:
        x = buf.data.astype(np.float64)
        if self.oversample == 1 or buf.frames == 0:
            out = self.shape(x)
        else:
            up = resample_poly(x, self.oversample, 1, axis=-1)
            out = resample_poly(self.shape(up), 1, self.oversample, axis=-1)
            out = out[:, : buf.frames]
        return buf.with_data(out.astype(np.float32))

    def __repr__(self) -> str:
        return f"WaveShaperStage(size={self.curve.shape[0]}, oversample={self.oversample})"
