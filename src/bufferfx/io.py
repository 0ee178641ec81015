"""Sample format conversion and WAV I/O for AudioBuffer.

``float32_to_int16`` is the export converter: negative samples scale by
32768, non-negative by 32767, and results are rounded and clamped.

Supported container (detected by extension):
  .wav  -- 8/16/24/32-bit PCM read, 16/24-bit PCM write (stdlib ``wave``)
"""

from __future__ import annotations

import io as _stdio
import urllib.request
import wave
from pathlib import Path

import numpy as np

from bufferfx.buffer import AudioBuffer


# ---------------------------------------------------------------------------
# Sample format conversion
# ---------------------------------------------------------------------------


def float32_to_int16(samples) -> np.ndarray:
    """Convert float samples to int16 PCM.

    NaN becomes 0 and infinities clamp to full scale.

    Parameters
    ----------
    samples : array-like or AudioBuffer
        1D samples, or a ``[channels, frames]`` array / AudioBuffer.

    Returns
    -------
    np.ndarray
        int16 array of the same shape (one row per channel for 2D input).
    """
    if isinstance(samples, AudioBuffer):
        samples = samples.data
    x = np.nan_to_num(
        np.asarray(samples, dtype=np.float64), nan=0.0, posinf=1.0, neginf=-1.0
    )
    scaled = np.where(x < 0, x * 32768.0, x * 32767.0)
    return np.clip(np.round(scaled), -32768, 32767).astype(np.int16)


def int16_to_float32(samples) -> np.ndarray:
    """Inverse of :func:`float32_to_int16`."""
    x = np.asarray(samples).astype(np.float64)
    out = np.where(x < 0, x / 32768.0, x / 32767.0)
    return out.astype(np.float32)


def interleave(channels: np.ndarray) -> np.ndarray:
    """``[channels, frames]`` -> frame-major 1D ``[L0, R0, L1, R1, ...]``."""
    channels = np.asarray(channels)
    if channels.ndim == 1:
        return channels.copy()
    return np.ascontiguousarray(channels.T).reshape(-1)


# ---------------------------------------------------------------------------
# WAV
# ---------------------------------------------------------------------------


def _decode_wav(wf: wave.Wave_read) -> AudioBuffer:
    n_channels = wf.getnchannels()
    sampwidth = wf.getsampwidth()
    sample_rate = wf.getframerate()
    n_frames = wf.getnframes()
    raw_bytes = wf.readframes(n_frames)

    total_samples = n_frames * n_channels

    if sampwidth == 1:
        # 8-bit unsigned
        samples = np.frombuffer(raw_bytes, dtype=np.uint8).astype(np.float32)
        samples = (samples - 128.0) / 128.0
    elif sampwidth == 2:
        samples = np.frombuffer(raw_bytes, dtype="<i2").astype(np.float32)
        samples = samples / 32768.0
    elif sampwidth == 3:
        raw = np.frombuffer(raw_bytes, dtype=np.uint8).reshape(-1, 3)
        padded = np.zeros((len(raw), 4), dtype=np.uint8)
        padded[:, 0:3] = raw
        # Sign extend: if high bit of third byte is set, fill fourth byte
        padded[:, 3] = np.where(raw[:, 2] & 0x80, 0xFF, 0x00)
        samples = padded.view("<i4").flatten().astype(np.float32)
        samples = samples / 8388608.0
    elif sampwidth == 4:
        samples = np.frombuffer(raw_bytes, dtype="<i4").astype(np.float32)
        samples = samples / 2147483648.0
    else:
        raise ValueError(f"Unsupported sample width: {sampwidth} bytes")

    if len(samples) != total_samples:
        raise ValueError(f"Expected {total_samples} samples, got {len(samples)}")

    # Deinterleave to planar [channels, frames]
    data = samples.reshape(-1, n_channels).T
    data = np.ascontiguousarray(data, dtype=np.float32)
    return AudioBuffer(data, sample_rate=float(sample_rate))


def read_wav(path: str | Path) -> AudioBuffer:
    """Read a WAV file and return an AudioBuffer normalized to [-1, 1]."""
    with wave.open(str(Path(path)), "rb") as wf:
        return _decode_wav(wf)


def load_from_bytes(data: bytes) -> AudioBuffer:
    """Decode in-memory WAV file bytes."""
    try:
        with wave.open(_stdio.BytesIO(data), "rb") as wf:
            return _decode_wav(wf)
    except (wave.Error, EOFError) as e:
        raise ValueError(f"Cannot decode audio bytes: {e}") from e


def load_from_url(url: str, timeout: float = 30.0) -> AudioBuffer:
    """Fetch a WAV file from *url* (http(s) or file) and decode it."""
    with urllib.request.urlopen(url, timeout=timeout) as resp:
        payload = resp.read()
    return load_from_bytes(payload)


def encode_wav(buf: AudioBuffer, bit_depth: int = 16) -> bytes:
    """Encode an AudioBuffer as WAV file bytes."""
    target = _stdio.BytesIO()
    _write_wav_stream(target, buf, bit_depth)
    return target.getvalue()


def _write_wav_stream(stream, buf: AudioBuffer, bit_depth: int) -> None:
    if bit_depth not in (16, 24):
        raise ValueError(f"Unsupported bit_depth: {bit_depth} (use 16 or 24)")

    if bit_depth == 16:
        raw_bytes = interleave(float32_to_int16(buf)).astype("<i2").tobytes()
    else:
        data = np.clip(
            np.nan_to_num(buf.data, nan=0.0, posinf=1.0, neginf=-1.0), -1.0, 1.0
        )
        interleaved = interleave(data).astype(np.float64)
        scaled = np.clip(
            np.round(interleaved * 8388607.0), -8388608.0, 8388607.0
        ).astype("<i4")
        # int32 -> view as uint8 -> take lower 3 bytes (little-endian)
        bytes_4 = scaled.view(np.uint8).reshape(-1, 4)
        raw_bytes = bytes_4[:, :3].tobytes()

    with wave.open(stream, "wb") as wf:
        wf.setnchannels(buf.channels)
        wf.setsampwidth(bit_depth // 8)
        wf.setframerate(int(round(buf.sample_rate)))
        wf.writeframes(raw_bytes)


def write_wav(
    path: str | Path,
    buf: AudioBuffer,
    bit_depth: int = 16,
) -> None:
    """Write an AudioBuffer to a WAV file.

    Parameters
    ----------
    path : str or Path
        Output file path.
    buf : AudioBuffer
        Audio data to write.
    bit_depth : int
        Output bit depth: 16 or 24.
    """
    with open(Path(path), "wb") as f:
        _write_wav_stream(f, buf, bit_depth)


_FORMAT_READERS = {
    ".wav": read_wav,
}

_FORMAT_WRITERS = {
    ".wav": write_wav,
}


def read(path: str | Path) -> AudioBuffer:
    """Read an audio file; format is detected by extension."""
    path = Path(path)
    ext = path.suffix.lower()
    reader = _FORMAT_READERS.get(ext)
    if reader is None:
        supported = ", ".join(sorted(_FORMAT_READERS))
        raise ValueError(f"Unsupported audio format '{ext}'. Supported: {supported}")
    return reader(path)


def write(
    path: str | Path,
    buf: AudioBuffer,
    bit_depth: int = 16,
) -> None:
    """Write an audio file; format is detected by extension."""
    path = Path(path)
    ext = path.suffix.lower()
    writer = _FORMAT_WRITERS.get(ext)
    if writer is None:
        supported = ", ".join(sorted(_FORMAT_WRITERS))
        raise ValueError(f"Unsupported audio format '{ext}'. Supported: {supported}")
    writer(path, buf, bit_depth=bit_depth)
