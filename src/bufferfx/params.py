"""Per-effect parameter records.

Each effect owns one frozen dataclass.  Values are validated when the record
is built, so an effect never sees an out-of-range parameter.  The ``kind``
class attribute is the effect's registry name.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, fields
from typing import ClassVar, Union


def _check_finite(name: str, value: float) -> None:
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got {value}")


def _check_range(name: str, value: float, lo: float, hi: float) -> None:
    _check_finite(name, value)
    if value < lo or value > hi:
        raise ValueError(f"{name} must be in [{lo}, {hi}], got {value}")


def _check_non_negative(name: str, value: float) -> None:
    _check_finite(name, value)
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")


def _check_positive(name: str, value: float) -> None:
    _check_finite(name, value)
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")


def _check_integer(name: str, value) -> None:
    # bool is an Integral subclass
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ValueError(f"{name} must be an integer, got {value!r}")


# ---------------------------------------------------------------------------
# Stage-graph effects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GainParams:
    kind: ClassVar[str] = "gain"
    factor: float = 1.0

    def __post_init__(self):
        _check_finite("factor", self.factor)


@dataclass(frozen=True)
class NormalizeParams:
    kind: ClassVar[str] = "normalize"
    target: float = 0.95

    def __post_init__(self):
        _check_positive("target", self.target)


@dataclass(frozen=True)
class FadeInParams:
    kind: ClassVar[str] = "fade_in"
    duration: float = 1.0

    def __post_init__(self):
        _check_non_negative("duration", self.duration)


@dataclass(frozen=True)
class FadeOutParams:
    kind: ClassVar[str] = "fade_out"
    duration: float = 1.0

    def __post_init__(self):
        _check_non_negative("duration", self.duration)


# Longest delay line a DelayParams record may ask for, in seconds.
MAX_DELAY_TIME = 5.0


@dataclass(frozen=True)
class DelayParams:
    kind: ClassVar[str] = "delay"
    delay_time: float = 0.5
    feedback: float = 0.3
    mix: float = 0.5

    def __post_init__(self):
        _check_positive("delay_time", self.delay_time)
        if self.delay_time > MAX_DELAY_TIME:
            raise ValueError(
                f"delay_time must be <= {MAX_DELAY_TIME}s, got {self.delay_time}"
            )
        _check_range("feedback", self.feedback, 0.0, 1.0)
        _check_range("mix", self.mix, 0.0, 1.0)


@dataclass(frozen=True)
class ReverbParams:
    """Synthetic-impulse convolution reverb.

    *seed* fixes the noise of the generated impulse response; ``None`` draws
    fresh noise on every call.
    """

    kind: ClassVar[str] = "reverb"
    seconds: float = 2.0
    decay: float = 2.0
    mix: float = 0.5
    seed: int | None = None

    def __post_init__(self):
        _check_positive("seconds", self.seconds)
        _check_non_negative("decay", self.decay)
        _check_range("mix", self.mix, 0.0, 1.0)


@dataclass(frozen=True)
class FilterParams:
    kind: ClassVar[str] = "filter"
    frequency: float = 1000.0
    resonance: float = 1.0

    def __post_init__(self):
        _check_positive("frequency", self.frequency)
        _check_finite("resonance", self.resonance)


@dataclass(frozen=True)
class LowpassParams(FilterParams):
    kind: ClassVar[str] = "lowpass"


@dataclass(frozen=True)
class HighpassParams(FilterParams):
    kind: ClassVar[str] = "highpass"


@dataclass(frozen=True)
class CompressorParams:
    """Feedforward compressor settings.

    *threshold* and *knee* are in dB, *attack* and *release* in seconds.
    """

    kind: ClassVar[str] = "compress"
    threshold: float = -24.0
    knee: float = 30.0
    ratio: float = 12.0
    attack: float = 0.003
    release: float = 0.25

    def __post_init__(self):
        _check_range("threshold", self.threshold, -100.0, 0.0)
        _check_range("knee", self.knee, 0.0, 40.0)
        _check_range("ratio", self.ratio, 1.0, 20.0)
        _check_range("attack", self.attack, 0.0, 1.0)
        _check_range("release", self.release, 0.0, 1.0)


@dataclass(frozen=True)
class DistortionParams:
    """Waveshaping distortion.

    *table_size* of ``None`` sizes the curve table to the buffer's sample
    rate; pass 44100 to reproduce the fixed-size table of older renders.
    """

    kind: ClassVar[str] = "distortion"
    amount: float = 50.0
    table_size: int | None = None
    oversample: int = 4

    def __post_init__(self):
        _check_non_negative("amount", self.amount)
        if self.table_size is not None:
            _check_integer("table_size", self.table_size)
            if self.table_size < 2:
                raise ValueError(f"table_size must be >= 2, got {self.table_size}")
        _check_integer("oversample", self.oversample)
        if self.oversample not in (1, 2, 4):
            raise ValueError(f"oversample must be 1, 2 or 4, got {self.oversample}")


@dataclass(frozen=True)
class TelephonizerParams:
    kind: ClassVar[str] = "telephonizer"


# ---------------------------------------------------------------------------
# Direct-sample effects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReverseParams:
    kind: ClassVar[str] = "reverse"


@dataclass(frozen=True)
class BitcrushParams:
    kind: ClassVar[str] = "bitcrush"
    bits: int = 4

    def __post_init__(self):
        _check_integer("bits", self.bits)
        if not 1 <= self.bits <= 24:
            raise ValueError(f"bits must be in [1, 24], got {self.bits}")


@dataclass(frozen=True)
class SpeedChangeParams:
    kind: ClassVar[str] = "speed_change"
    rate: float = 1.0

    def __post_init__(self):
        _check_positive("rate", self.rate)


@dataclass(frozen=True)
class VocalRemoveParams:
    kind: ClassVar[str] = "vocal_remove"


@dataclass(frozen=True)
class StereoWidenParams:
    kind: ClassVar[str] = "stereo_widen"
    amount: float = 0.5

    def __post_init__(self):
        _check_finite("amount", self.amount)


@dataclass(frozen=True)
class SilenceParams:
    kind: ClassVar[str] = "silence"
    offset: float = 0.0
    duration: float = 1.0

    def __post_init__(self):
        _check_non_negative("offset", self.offset)
        _check_non_negative("duration", self.duration)


EffectParams = Union[
    GainParams,
    NormalizeParams,
    FadeInParams,
    FadeOutParams,
    DelayParams,
    ReverbParams,
    LowpassParams,
    HighpassParams,
    CompressorParams,
    DistortionParams,
    TelephonizerParams,
    ReverseParams,
    BitcrushParams,
    SpeedChangeParams,
    VocalRemoveParams,
    StereoWidenParams,
    SilenceParams,
]


def param_fields(params_cls) -> dict[str, object]:
    """Return ``{field_name: default}`` for a parameter record class."""
    return {f.name: f.default for f in fields(params_cls)}
