"""Stage-graph effects: gain, fades, delay, reverb, filters, dynamics, shaping.

Every effect builds an ordered list of stages and renders it once through a
fresh offline context sized for the output, including any decay tail.
"""

from __future__ import annotations

import logging
import math

import numpy as np

from bufferfx.buffer import AudioBuffer
from bufferfx.context import ContextProvider, resolve
from bufferfx.params import (
    CompressorParams,
    DelayParams,
    DistortionParams,
    FadeInParams,
    FadeOutParams,
    GainParams,
    HighpassParams,
    LowpassParams,
    NormalizeParams,
    ReverbParams,
)
from bufferfx.stages import (
    BiquadStage,
    CompressorStage,
    ConvolverStage,
    FeedbackDelayStage,
    GainRampStage,
    GainStage,
    WaveShaperStage,
    distortion_curve,
    soft_clip_curve,
)

log = logging.getLogger(__name__)

# Telephone band edges in Hz.
TELEPHONE_LOW_HZ = 300.0
TELEPHONE_HIGH_HZ = 3400.0
TELEPHONE_CURVE_SIZE = 4096


def render(
    buf: AudioBuffer,
    stages,
    tail_frames: int = 0,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Render *buf* through *stages* into ``buf.frames + tail_frames`` frames."""
    log.debug("render %r through %s", buf, stages)
    if tail_frames:
        log.debug("extending render by %d tail frames", tail_frames)
    offline = resolve(ctx).offline_context(
        buf.channels, buf.frames + tail_frames, buf.sample_rate
    )
    return offline.render(buf, stages)


# ---------------------------------------------------------------------------
# Level
# ---------------------------------------------------------------------------


def gain(
    buf: AudioBuffer,
    factor: float = 1.0,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Multiply every sample by a linear *factor*."""
    p = GainParams(factor=factor)
    return render(buf, [GainStage(p.factor)], ctx=ctx)


def normalize(
    buf: AudioBuffer,
    target: float = 0.95,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Scale so the peak absolute sample equals *target*.

    The default leaves headroom below full scale.  A silent buffer is
    returned unchanged (as a copy).
    """
    p = NormalizeParams(target=target)
    peak = buf.peak()
    if peak == 0:
        return buf.copy()
    return gain(buf, p.target / peak, ctx=ctx)


def fade_in(
    buf: AudioBuffer,
    duration: float = 1.0,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Linear ramp from silence to full level over *duration* seconds."""
    p = FadeInParams(duration=duration)
    if p.duration == 0:
        points = [(0.0, 1.0)]
    else:
        points = [(0.0, 0.0), (p.duration, 1.0)]
    return render(buf, [GainRampStage(points)], ctx=ctx)


def fade_out(
    buf: AudioBuffer,
    duration: float = 1.0,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Linear ramp to silence over the last *duration* seconds.

    A *duration* longer than the buffer is clamped to the buffer length, so
    the ramp then starts at the first frame.
    """
    p = FadeOutParams(duration=duration)
    total = buf.duration
    fade = min(p.duration, total)
    if fade == 0:
        points = [(0.0, 1.0)]
    else:
        points = [(total - fade, 1.0), (total, 0.0)]
    return render(buf, [GainRampStage(points)], ctx=ctx)


# ---------------------------------------------------------------------------
# Time-domain
# ---------------------------------------------------------------------------


def delay(
    buf: AudioBuffer,
    delay_time: float = 0.5,
    feedback: float = 0.3,
    mix: float = 0.5,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Feedback echo.

    The output is extended by three delay periods so the repeats decay
    inside the rendered buffer.
    """
    p = DelayParams(delay_time=delay_time, feedback=feedback, mix=mix)
    tail = math.ceil(p.delay_time * buf.sample_rate * 3)
    stage = FeedbackDelayStage(p.delay_time, p.feedback, p.mix)
    return render(buf, [stage], tail_frames=tail, ctx=ctx)


def impulse_response(
    seconds: float,
    decay: float,
    sample_rate: float,
    seed: int | None = None,
) -> AudioBuffer:
    """Two-channel exponentially decaying noise burst.

    ``ir[i] = U(-1, 1) * ((length - i) / length) ** decay``.
    """
    length = int(math.floor(seconds * sample_rate))
    if length <= 0:
        raise ValueError(
            f"impulse of {seconds}s at {sample_rate} Hz has no frames"
        )
    envelope = ((length - np.arange(length)) / length) ** decay
    burst = AudioBuffer.noise(2, length, sample_rate, seed=seed, label="impulse")
    return burst.with_data(burst.data * envelope[np.newaxis, :])


def reverb(
    buf: AudioBuffer,
    seconds: float = 2.0,
    decay: float = 2.0,
    mix: float = 0.5,
    seed: int | None = None,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Convolution reverb against a synthetic decaying-noise impulse.

    The output is extended by *seconds* so the reverb tail is kept.
    """
    p = ReverbParams(seconds=seconds, decay=decay, mix=mix, seed=seed)
    ir = impulse_response(p.seconds, p.decay, buf.sample_rate, seed=p.seed)
    tail = math.ceil(p.seconds * buf.sample_rate)
    return render(buf, [ConvolverStage(ir, mix=p.mix)], tail_frames=tail, ctx=ctx)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def lowpass(
    buf: AudioBuffer,
    frequency: float = 1000.0,
    resonance: float = 1.0,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    p = LowpassParams(frequency=frequency, resonance=resonance)
    return render(buf, [BiquadStage("lowpass", p.frequency, p.resonance)], ctx=ctx)


def highpass(
    buf: AudioBuffer,
    frequency: float = 1000.0,
    resonance: float = 1.0,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    p = HighpassParams(frequency=frequency, resonance=resonance)
    return render(buf, [BiquadStage("highpass", p.frequency, p.resonance)], ctx=ctx)


# ---------------------------------------------------------------------------
# Dynamics and shaping
# ---------------------------------------------------------------------------


def compress(
    buf: AudioBuffer,
    threshold: float = -24.0,
    knee: float = 30.0,
    ratio: float = 12.0,
    attack: float = 0.003,
    release: float = 0.25,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Soft-knee feedforward compression, linked across channels."""
    p = CompressorParams(
        threshold=threshold, knee=knee, ratio=ratio, attack=attack, release=release
    )
    stage = CompressorStage(p.threshold, p.knee, p.ratio, p.attack, p.release)
    return render(buf, [stage], ctx=ctx)


def distortion(
    buf: AudioBuffer,
    amount: float = 50.0,
    table_size: int | None = None,
    oversample: int = 4,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Waveshaping overdrive.

    The curve table has one entry per sample of one second of audio at the
    buffer's rate unless *table_size* is given.
    """
    p = DistortionParams(amount=amount, table_size=table_size, oversample=oversample)
    size = p.table_size if p.table_size is not None else int(buf.sample_rate)
    curve = distortion_curve(p.amount, size)
    return render(buf, [WaveShaperStage(curve, oversample=p.oversample)], ctx=ctx)


def telephonizer(
    buf: AudioBuffer,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Band-limit to the telephone range and add light soft clipping."""
    stages = [
        BiquadStage("highpass", TELEPHONE_LOW_HZ),
        BiquadStage("lowpass", TELEPHONE_HIGH_HZ),
        WaveShaperStage(soft_clip_curve(TELEPHONE_CURVE_SIZE)),
    ]
    return render(buf, stages, ctx=ctx)
