"""Buffer segment primitives: copy, trim, insert, silence, mix.

These work on sample arrays directly, without building a render chain.
Offsets and durations are in seconds and resolve to frames with ``floor``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from bufferfx.buffer import AudioBuffer
from bufferfx.context import ContextProvider, resolve
from bufferfx.errors import InvalidSegment, WouldEmptyBuffer


@dataclass(frozen=True)
class Segment:
    """A window of audio given as ``offset`` and ``duration`` in seconds."""

    offset: float
    duration: float

    def __post_init__(self):
        if not (math.isfinite(self.offset) and math.isfinite(self.duration)):
            raise InvalidSegment(
                f"segment must be finite, got offset={self.offset}, duration={self.duration}"
            )
        if self.offset < 0:
            raise InvalidSegment(f"segment offset must be >= 0, got {self.offset}")
        if self.duration < 0:
            raise InvalidSegment(f"segment duration must be >= 0, got {self.duration}")

    def frames(self, sample_rate: float) -> tuple[int, int]:
        """Return ``(start_frame, length_frames)``."""
        start = int(math.floor(self.offset * sample_rate))
        length = int(math.floor(self.duration * sample_rate))
        return start, length


def _new_like(
    ctx: ContextProvider | None, buf: AudioBuffer, frames: int, channels: int | None = None
) -> AudioBuffer:
    out = resolve(ctx).create_buffer(
        buf.channels if channels is None else channels, frames, buf.sample_rate
    )
    return AudioBuffer(
        out.data,
        sample_rate=buf.sample_rate,
        channel_layout=buf.channel_layout if channels is None else None,
        label=buf.label,
    )


# ---------------------------------------------------------------------------
# Copy / trim / insert
# ---------------------------------------------------------------------------


def copy_segment(
    buf: AudioBuffer,
    offset: float,
    duration: float,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Copy ``[offset, offset + duration)`` into a new buffer.

    The window is clipped to the end of the buffer.

    Raises
    ------
    InvalidSegment
        If the clipped window holds no frames.
    """
    start, length = Segment(offset, duration).frames(buf.sample_rate)
    end = min(start + length, buf.frames)
    length = end - start
    if length <= 0:
        raise InvalidSegment(
            f"segment offset={offset}s duration={duration}s selects no frames "
            f"of a {buf.frames}-frame buffer"
        )
    out = _new_like(ctx, buf, length)
    out.data[:] = buf.data[:, start:end]
    return out


def trim(
    buf: AudioBuffer,
    offset: float,
    duration: float,
    active_channels: Sequence[bool] | None = None,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Remove ``[offset, offset + duration)`` and close the gap.

    All channels come out with the same length.  Channels whose entry in
    *active_channels* is false are not edited: they keep their first
    ``new_length`` samples unchanged.

    Raises
    ------
    WouldEmptyBuffer
        If nothing would be left.
    """
    start, length = Segment(offset, duration).frames(buf.sample_rate)
    start = min(start, buf.frames)
    end = min(start + length, buf.frames)
    removed = end - start
    new_length = buf.frames - removed
    if new_length <= 0:
        raise WouldEmptyBuffer(
            f"trimming {removed} of {buf.frames} frames would empty the buffer"
        )

    if active_channels is None:
        active = [True] * buf.channels
    else:
        active = [bool(a) for a in active_channels]
        if len(active) != buf.channels:
            raise ValueError(
                f"active_channels has {len(active)} entries, buffer has {buf.channels} channels"
            )

    out = _new_like(ctx, buf, new_length)
    for ch in range(buf.channels):
        src = buf.data[ch]
        dst = out.data[ch]
        if not active[ch]:
            dst[:] = src[:new_length]
            continue
        dst[:start] = src[:start]
        dst[start:] = src[end:]
    return out


def insert_segment(
    target: AudioBuffer,
    insert: AudioBuffer,
    offset: float,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Splice *insert* into *target* at *offset* seconds.

    A mono *insert* is copied into every channel of *target*.  Offsets past
    the end append.
    """
    if insert.sample_rate != target.sample_rate:
        raise ValueError(
            f"Sample rate mismatch: target={target.sample_rate}, insert={insert.sample_rate}"
        )
    if insert.channels not in (1, target.channels):
        raise ValueError(
            f"Cannot insert {insert.channels}-channel audio into "
            f"{target.channels}-channel buffer"
        )
    if offset < 0 or not math.isfinite(offset):
        raise InvalidSegment(f"insert offset must be >= 0, got {offset}")

    at = min(int(math.floor(offset * target.sample_rate)), target.frames)
    src = insert.to_channels(target.channels) if insert.channels == 1 else insert
    n = insert.frames

    out = _new_like(ctx, target, target.frames + n)
    out.data[:, :at] = target.data[:, :at]
    out.data[:, at : at + n] = src.data
    out.data[:, at + n :] = target.data[:, at:]
    return out


def overwrite(
    target: AudioBuffer,
    replacement: AudioBuffer,
) -> AudioBuffer:
    """Replace *target* wholesale; returns a copy of *replacement*."""
    return replacement.copy()


# ---------------------------------------------------------------------------
# Silence
# ---------------------------------------------------------------------------


def make_silence(
    duration: float,
    sample_rate: float = 44100.0,
    channels: int = 2,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Zero-filled buffer of ``floor(duration * sample_rate)`` frames."""
    if duration < 0 or not math.isfinite(duration):
        raise InvalidSegment(f"silence duration must be >= 0, got {duration}")
    if channels < 1:
        raise ValueError(f"channels must be >= 1, got {channels}")
    frames = int(math.floor(duration * sample_rate))
    return resolve(ctx).create_buffer(channels, frames, sample_rate)


def silence_region(
    buf: AudioBuffer,
    offset: float = 0.0,
    duration: float = 1.0,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Zero ``[offset, offset + duration)``; everything else passes through."""
    start, length = Segment(offset, duration).frames(buf.sample_rate)
    start = min(start, buf.frames)
    end = min(start + length, buf.frames)
    out = _new_like(ctx, buf, buf.frames)
    out.data[:] = buf.data
    out.data[:, start:end] = 0.0
    return out


# ---------------------------------------------------------------------------
# Mixing
# ---------------------------------------------------------------------------


def mix_buffers(
    buffers: Sequence[AudioBuffer],
    gains: Sequence[float] | None = None,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Sum buffers, each scaled by its gain.

    The result has the largest channel count and length among the inputs.
    A buffer with fewer channels feeds its first channel into the extra ones.
    """
    if not buffers:
        raise ValueError("No buffers to mix")
    sr = buffers[0].sample_rate
    for b in buffers[1:]:
        if b.sample_rate != sr:
            raise ValueError("All buffers must share the same sample_rate")
    if gains is None:
        gains = [1.0] * len(buffers)
    elif len(gains) != len(buffers):
        raise ValueError(f"Got {len(gains)} gains for {len(buffers)} buffers")

    channels = max(b.channels for b in buffers)
    frames = max(b.frames for b in buffers)
    out = resolve(ctx).create_buffer(channels, frames, sr)
    acc = np.zeros((channels, frames), dtype=np.float64)
    for b, g in zip(buffers, gains):
        for ch in range(channels):
            src = b.data[ch] if ch < b.channels else b.data[0]
            acc[ch, : b.frames] += src * g
    out.data[:] = acc
    return out
