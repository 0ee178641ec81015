"""Direct-sample effects: reverse, bitcrush, speed change, mid/side tricks.

These are plain array operations; no render chain is built.  Output buffers
are still allocated through the context provider so a buffer-only host is
enough to run them.
"""

from __future__ import annotations

import math

import numpy as np

from bufferfx.buffer import AudioBuffer
from bufferfx.context import ContextProvider, resolve
from bufferfx.errors import RequiresStereo
from bufferfx.params import BitcrushParams, SpeedChangeParams, StereoWidenParams
from bufferfx.segments import silence_region


def _alloc(buf: AudioBuffer, frames: int, ctx: ContextProvider | None) -> AudioBuffer:
    out = resolve(ctx).create_buffer(buf.channels, frames, buf.sample_rate)
    return AudioBuffer(
        out.data,
        sample_rate=buf.sample_rate,
        channel_layout=buf.channel_layout,
        label=buf.label,
    )


def reverse(buf: AudioBuffer, ctx: ContextProvider | None = None) -> AudioBuffer:
    """Play backwards: ``out[i] = in[n - 1 - i]`` per channel."""
    out = _alloc(buf, buf.frames, ctx)
    out.data[:] = buf.data[:, ::-1]
    return out


def bitcrush(
    buf: AudioBuffer,
    bits: int = 4,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Quantize to a ``0.5 ** bits`` grid by rounding (no dither)."""
    p = BitcrushParams(bits=bits)
    step = 0.5**p.bits
    out = _alloc(buf, buf.frames, ctx)
    x = buf.data.astype(np.float64)
    out.data[:] = step * np.floor(x / step + 0.5)
    return out


def speed_change(
    buf: AudioBuffer,
    rate: float = 1.0,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Resample by *rate* with linear interpolation (pitch follows speed).

    The output holds ``floor(frames / rate)`` frames.
    """
    p = SpeedChangeParams(rate=rate)
    new_length = int(math.floor(buf.frames / p.rate))
    out = _alloc(buf, new_length, ctx)
    if new_length == 0:
        return out

    pos = np.arange(new_length, dtype=np.float64) * p.rate
    idx = np.floor(pos).astype(np.int64)
    frac = pos - idx
    idx = np.minimum(idx, buf.frames - 1)
    nxt = np.minimum(idx + 1, buf.frames - 1)
    x = buf.data.astype(np.float64)
    # At the last frame there is no neighbour; nxt == idx holds the sample.
    out.data[:] = x[:, idx] * (1.0 - frac) + x[:, nxt] * frac
    return out


def vocal_remove(buf: AudioBuffer, ctx: ContextProvider | None = None) -> AudioBuffer:
    """Cancel centre-panned content: both outputs become ``L - R``.

    Raises
    ------
    RequiresStereo
        Unless the buffer has exactly two channels.
    """
    if buf.channels != 2:
        raise RequiresStereo(
            f"vocal_remove requires a 2-channel buffer, got {buf.channels}"
        )
    out = _alloc(buf, buf.frames, ctx)
    diff = buf.channel(0) - buf.channel(1)
    out.data[0] = diff
    out.data[1] = diff
    return out


def stereo_widen(
    buf: AudioBuffer,
    amount: float = 0.5,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Scale the side signal by ``1 + amount``.

    Mono input comes back unchanged.  Channels past the first two pass
    through.
    """
    p = StereoWidenParams(amount=amount)
    if buf.channels < 2:
        return buf.copy()
    out = _alloc(buf, buf.frames, ctx)
    out.data[:] = buf.data
    left = buf.channel(0).astype(np.float64)
    right = buf.channel(1).astype(np.float64)
    mid = (left + right) * 0.5
    side = (left - right) * 0.5 * (1.0 + p.amount)
    out.data[0] = mid + side
    out.data[1] = mid - side
    return out


__all__ = [
    "reverse",
    "bitcrush",
    "speed_change",
    "vocal_remove",
    "stereo_widen",
    "silence_region",
]
