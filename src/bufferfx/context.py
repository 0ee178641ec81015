"""Render hosts and the contexts built on them.

A *host* is the capability that allocates buffers and, when it can, renders
a chain of stages.  ``NumpyHost`` does both.  ``BufferOnlyHost`` only
allocates buffers; inject it where no rendering should happen (for example
in unit tests of the direct-sample operations).

``ContextProvider`` is the handle callers create once and pass around.  It
owns one long-lived ``RealtimeContext`` and hands out a fresh single-use
``OfflineContext`` for every render.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Iterable, Protocol, runtime_checkable

import numpy as np

from bufferfx.buffer import AudioBuffer
from bufferfx.errors import ContextReused, UnsupportedHost

log = logging.getLogger(__name__)


@runtime_checkable
class RenderHost(Protocol):
    def create_buffer(
        self, channels: int, frames: int, sample_rate: float
    ) -> AudioBuffer: ...


def _fit(buf: AudioBuffer, frames: int) -> AudioBuffer:
    """Zero-pad or truncate *buf* to exactly *frames* frames."""
    if buf.frames == frames:
        return buf
    if buf.frames > frames:
        return buf.with_data(buf.data[:, :frames].copy())
    out = np.zeros((buf.channels, frames), dtype=np.float32)
    out[:, : buf.frames] = buf.data
    return buf.with_data(out)


class NumpyHost:
    """Allocates numpy-backed buffers and renders stage chains in order."""

    name = "numpy"

    def create_buffer(
        self, channels: int, frames: int, sample_rate: float
    ) -> AudioBuffer:
        return AudioBuffer.zeros(channels, frames, sample_rate=sample_rate)

    def render(self, source: AudioBuffer, stages, frames: int) -> AudioBuffer:
        # The source is laid out over the whole render window so that tails
        # (delay feedback, convolution) land inside it.
        buf = _fit(source, frames)
        if buf is source:
            buf = source.copy()
        for stage in stages:
            buf = stage.process(buf)
        return _fit(buf, frames)


class BufferOnlyHost:
    """Minimal host: buffer construction only, no rendering."""

    name = "buffer-only"

    def create_buffer(
        self, channels: int, frames: int, sample_rate: float
    ) -> AudioBuffer:
        return AudioBuffer.zeros(channels, frames, sample_rate=sample_rate)


def _can_render(host) -> bool:
    return callable(getattr(host, "render", None))


# ---------------------------------------------------------------------------
# Contexts
# ---------------------------------------------------------------------------


class RealtimeContext:
    """Long-lived context used for preview and decoding."""

    def __init__(self, host, sample_rate: float):
        self._host = host
        self._sample_rate = float(sample_rate)
        self._closed = False
        log.debug("realtime context created (%s host, %.0f Hz)",
                  getattr(host, "name", type(host).__name__), sample_rate)

    @property
    def sample_rate(self) -> float:
        return self._sample_rate

    @property
    def closed(self) -> bool:
        return self._closed

    def create_buffer(
        self, channels: int, frames: int, sample_rate: float | None = None
    ) -> AudioBuffer:
        if self._closed:
            raise RuntimeError("realtime context is closed")
        sr = self._sample_rate if sample_rate is None else sample_rate
        return self._host.create_buffer(channels, frames, sr)

    def decode(self, data: bytes) -> AudioBuffer:
        """Decode WAV file bytes into an AudioBuffer."""
        from bufferfx.io import load_from_bytes

        if self._closed:
            raise RuntimeError("realtime context is closed")
        return load_from_bytes(data)

    def close(self) -> None:
        self._closed = True


class OfflineContext:
    """Single-use render of one stage chain into a fixed-size buffer."""

    def __init__(self, host, channels: int, frames: int, sample_rate: float):
        self._host = host
        self.channels = channels
        self.frames = frames
        self.sample_rate = float(sample_rate)
        self._rendered = False

    @property
    def rendered(self) -> bool:
        return self._rendered

    def render(self, source: AudioBuffer, stages: Iterable) -> AudioBuffer:
        """Run *source* through *stages* and return ``channels x frames``."""
        if self._rendered:
            raise ContextReused("offline context has already rendered")
        if source.channels != self.channels:
            raise ValueError(
                f"Source has {source.channels} channels, context expects {self.channels}"
            )
        if source.sample_rate != self.sample_rate:
            raise ValueError(
                f"Sample rate mismatch: source={source.sample_rate}, "
                f"context={self.sample_rate}"
            )
        self._rendered = True
        stages = list(stages)

        t0 = time.perf_counter()
        out = self._host.render(source, stages, self.frames)
        elapsed = time.perf_counter() - t0
        log.debug("render %dch x %d frames through %d stages in %.3fs",
                  self.channels, self.frames, len(stages), elapsed)
        return out


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


class ContextProvider:
    """Owns the host, the shared realtime context, and offline context creation.

    Parameters
    ----------
    host : object or None
        Anything with ``create_buffer(channels, frames, sample_rate)``;
        hosts that can also ``render(source, stages, frames)`` support the
        stage-graph effects.  Defaults to ``NumpyHost()``.
    sample_rate : float
        Preferred rate of the realtime context.
    """

    def __init__(self, host=None, sample_rate: float = 44100.0):
        if host is None:
            host = NumpyHost()
        if not isinstance(host, RenderHost):
            raise UnsupportedHost(
                f"{type(host).__name__} cannot construct audio buffers"
            )
        self._host = host
        self._sample_rate = float(sample_rate)
        self._realtime: RealtimeContext | None = None
        self._lock = threading.Lock()

    @property
    def host(self):
        return self._host

    @property
    def can_render(self) -> bool:
        return _can_render(self._host)

    def shared_realtime_context(self) -> RealtimeContext:
        """Return the realtime context, constructing it on first use."""
        if self._realtime is None:
            with self._lock:
                if self._realtime is None:
                    self._realtime = RealtimeContext(self._host, self._sample_rate)
        return self._realtime

    def offline_context(
        self, channels: int, frames: int, sample_rate: float
    ) -> OfflineContext:
        """Return a new single-use offline context sized for one render."""
        if not self.can_render:
            raise UnsupportedHost(
                f"{getattr(self._host, 'name', type(self._host).__name__)} host "
                "cannot render stage chains"
            )
        if channels < 1:
            raise ValueError(f"channels must be >= 1, got {channels}")
        if frames < 0:
            raise ValueError(f"frames must be >= 0, got {frames}")
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        return OfflineContext(self._host, channels, frames, sample_rate)

    def create_buffer(
        self, channels: int, frames: int, sample_rate: float
    ) -> AudioBuffer:
        """Allocate a zeroed buffer through the host."""
        return self._host.create_buffer(channels, frames, sample_rate)


_DEFAULT_PROVIDER = ContextProvider()


def default_provider() -> ContextProvider:
    """The provider used when an operation is called without ``ctx``."""
    return _DEFAULT_PROVIDER


def resolve(ctx: ContextProvider | None) -> ContextProvider:
    return _DEFAULT_PROVIDER if ctx is None else ctx
