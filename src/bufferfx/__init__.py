"""
bufferfx - offline effects and editing primitives for PCM audio buffers.

Submodules:
    bufferfx.buffer   - AudioBuffer (planar float32 samples + sample rate)
    bufferfx.context  - Render hosts, offline/realtime contexts, ContextProvider
    bufferfx.stages   - Processing stages (gain, biquad, delay, convolver, ...)
    bufferfx.effects  - Stage-graph effects (gain, delay, reverb, filters, ...)
    bufferfx.ops      - Direct-sample effects (reverse, bitcrush, mid/side, ...)
    bufferfx.segments - Copy/trim/insert/silence primitives
    bufferfx.params   - Per-effect parameter records
    bufferfx.registry - Name-keyed effect table
    bufferfx.io       - float32 -> int16 conversion and WAV I/O
"""

from bufferfx.buffer import AudioBuffer
from bufferfx.context import (
    BufferOnlyHost,
    ContextProvider,
    NumpyHost,
    default_provider,
)
from bufferfx.errors import (
    ContextReused,
    EffectError,
    InvalidSegment,
    RequiresStereo,
    UnsupportedHost,
    WouldEmptyBuffer,
)
from bufferfx import effects, io, ops, params, registry, segments, stages

__all__ = [
    "AudioBuffer",
    "BufferOnlyHost",
    "ContextProvider",
    "NumpyHost",
    "default_provider",
    "ContextReused",
    "EffectError",
    "InvalidSegment",
    "RequiresStereo",
    "UnsupportedHost",
    "WouldEmptyBuffer",
    "effects",
    "io",
    "ops",
    "params",
    "registry",
    "segments",
    "stages",
]
__version__ = "0.1.0"
