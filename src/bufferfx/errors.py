"""Exception types raised by bufferfx operations."""

from __future__ import annotations


class EffectError(Exception):
    """Base class for all bufferfx errors."""


class InvalidSegment(EffectError, ValueError):
    """A segment resolved to a non-positive number of frames."""


class WouldEmptyBuffer(EffectError, ValueError):
    """A trim would remove every frame of the buffer."""


class RequiresStereo(EffectError, ValueError):
    """A stereo-only effect was given a buffer without exactly two channels."""


class UnsupportedHost(EffectError, RuntimeError):
    """The render host cannot construct buffers or render stage chains."""


class ContextReused(EffectError, RuntimeError):
    """An offline context was asked to render more than once."""
