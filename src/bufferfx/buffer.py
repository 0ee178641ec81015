"""AudioBuffer -- planar float32 PCM audio with a sample rate attached.

Buffers are value types: every operation in bufferfx reads its input and
returns a freshly allocated AudioBuffer.
"""

from __future__ import annotations

import numpy as np


def _default_layout(channels: int) -> str | None:
    return {1: "mono", 2: "stereo"}.get(channels)


class AudioBuffer:
    """A ``[channels, frames]`` float32 sample block.

    Parameters
    ----------
    data : array-like or AudioBuffer
        Samples.  1D input becomes a single channel.  Another AudioBuffer
        is copied.
    sample_rate : float
        Frames per second; must be positive.
    channel_layout : str or None
        ``'mono'`` / ``'stereo'`` are filled in from the channel count when
        not given.
    label : str or None
        Free-form name carried through every operation.
    """

    __slots__ = ("_data", "_sample_rate", "_channel_layout", "_label")

    def __init__(
        self,
        data,
        sample_rate: float = 44100.0,
        channel_layout: str | None = None,
        label: str | None = None,
    ):
        if isinstance(data, AudioBuffer):
            data = data.data.copy()
        arr = np.atleast_2d(np.asarray(data, dtype=np.float32))
        if arr.ndim != 2:
            raise ValueError(f"AudioBuffer requires 1D or 2D data, got {arr.ndim}D")
        if arr.shape[0] < 1:
            raise ValueError("AudioBuffer requires at least one channel")
        if not sample_rate > 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")

        self._data = np.ascontiguousarray(arr)
        self._sample_rate = float(sample_rate)
        self._channel_layout = channel_layout or _default_layout(arr.shape[0])
        self._label = label

    @property
    def data(self) -> np.ndarray:
        """The underlying ``[channels, frames]`` array."""
        return self._data

    @property
    def sample_rate(self) -> float:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._data.shape[0]

    @property
    def frames(self) -> int:
        return self._data.shape[1]

    @property
    def duration(self) -> float:
        """Length in seconds."""
        return self.frames / self._sample_rate

    @property
    def channel_layout(self) -> str | None:
        return self._channel_layout

    @property
    def label(self) -> str | None:
        return self._label

    def channel(self, i: int) -> np.ndarray:
        """1D view of channel *i*."""
        if not 0 <= i < self.channels:
            raise IndexError(
                f"Channel {i} out of range for {self.channels}-channel buffer"
            )
        return self._data[i]

    def peak(self) -> float:
        """Largest absolute sample value; 0.0 for an empty buffer."""
        if self._data.size == 0:
            return 0.0
        return float(np.max(np.abs(self._data)))

    def __repr__(self) -> str:
        extra = "".join(
            f", {k}={v!r}"
            for k, v in (("layout", self._channel_layout), ("label", self._label))
            if v is not None
        )
        return (
            f"AudioBuffer(channels={self.channels}, frames={self.frames}, "
            f"sr={self._sample_rate}{extra})"
        )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def zeros(
        cls,
        channels: int,
        frames: int,
        sample_rate: float = 44100.0,
        **kw,
    ) -> AudioBuffer:
        return cls(np.zeros((channels, frames), dtype=np.float32), sample_rate, **kw)

    @classmethod
    def noise(
        cls,
        channels: int = 1,
        frames: int = 4096,
        sample_rate: float = 44100.0,
        seed: int | None = None,
        amplitude: float = 1.0,
        **kw,
    ) -> AudioBuffer:
        """Uniform white noise in ``[-amplitude, amplitude)``."""
        rng = np.random.default_rng(seed)
        return cls(rng.uniform(-amplitude, amplitude, (channels, frames)), sample_rate, **kw)

    def with_data(self, data) -> AudioBuffer:
        """New buffer holding *data* with this buffer's rate, layout and label."""
        return AudioBuffer(
            data,
            sample_rate=self._sample_rate,
            channel_layout=self._channel_layout,
            label=self._label,
        )

    def copy(self) -> AudioBuffer:
        return self.with_data(self._data.copy())

    def to_channels(self, n: int) -> AudioBuffer:
        """Copy mono audio into *n* channels; a buffer already at *n* is copied."""
        if self.channels == n:
            return self.copy()
        if self.channels != 1:
            raise ValueError(
                f"Cannot upmix {self.channels}-channel buffer to {n} channels; "
                "source must be mono"
            )
        return AudioBuffer(
            np.repeat(self._data, n, axis=0),
            sample_rate=self._sample_rate,
            label=self._label,
        )
