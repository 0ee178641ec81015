"""Name-keyed effect table for callers that pick effects at runtime."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Callable

from bufferfx import effects, ops
from bufferfx.buffer import AudioBuffer
from bufferfx.context import ContextProvider
from bufferfx import params as P


@dataclass(frozen=True)
class EffectSpec:
    name: str
    fn: Callable[..., AudioBuffer]
    params_cls: type
    category: str
    description: str


def _spec(fn, params_cls, category: str, description: str) -> EffectSpec:
    return EffectSpec(params_cls.kind, fn, params_cls, category, description)


EFFECTS: dict[str, EffectSpec] = {
    s.name: s
    for s in [
        _spec(effects.gain, P.GainParams, "level", "Multiply by a linear factor"),
        _spec(effects.normalize, P.NormalizeParams, "level", "Scale peak to a target level"),
        _spec(effects.fade_in, P.FadeInParams, "level", "Linear fade from silence"),
        _spec(effects.fade_out, P.FadeOutParams, "level", "Linear fade to silence"),
        _spec(effects.delay, P.DelayParams, "time", "Feedback echo"),
        _spec(effects.reverb, P.ReverbParams, "time", "Synthetic-impulse convolution reverb"),
        _spec(effects.lowpass, P.LowpassParams, "filters", "Second-order lowpass"),
        _spec(effects.highpass, P.HighpassParams, "filters", "Second-order highpass"),
        _spec(effects.compress, P.CompressorParams, "dynamics", "Soft-knee compressor"),
        _spec(effects.distortion, P.DistortionParams, "shaping", "Waveshaping overdrive"),
        _spec(effects.telephonizer, P.TelephonizerParams, "shaping", "Telephone band and soft clip"),
        _spec(ops.reverse, P.ReverseParams, "sample", "Play backwards"),
        _spec(ops.bitcrush, P.BitcrushParams, "sample", "Quantize to fewer bits"),
        _spec(ops.speed_change, P.SpeedChangeParams, "sample", "Resample (pitch follows speed)"),
        _spec(ops.vocal_remove, P.VocalRemoveParams, "stereo", "Cancel centre-panned content"),
        _spec(ops.stereo_widen, P.StereoWidenParams, "stereo", "Scale the side signal"),
        _spec(ops.silence_region, P.SilenceParams, "sample", "Zero a time window"),
    ]
}


def get_effect(name: str) -> EffectSpec:
    """Look up an effect by name. Raises KeyError if not found."""
    if name not in EFFECTS:
        raise KeyError(f"Unknown effect: {name!r}")
    return EFFECTS[name]


def get_categories() -> dict[str, list[str]]:
    """Effect names grouped by category."""
    cats: dict[str, list[str]] = {}
    for name, spec in EFFECTS.items():
        cats.setdefault(spec.category, []).append(name)
    return cats


def apply(
    buf: AudioBuffer,
    params: Any,
    ctx: ContextProvider | None = None,
) -> AudioBuffer:
    """Apply the effect described by a parameter record."""
    kind = getattr(type(params), "kind", None)
    spec = EFFECTS.get(kind) if kind is not None else None
    if spec is None or not isinstance(params, spec.params_cls):
        raise TypeError(f"Not an effect parameter record: {params!r}")
    kwargs = {f.name: getattr(params, f.name) for f in fields(params)}
    return spec.fn(buf, ctx=ctx, **kwargs)


def apply_effect(
    name: str,
    buf: AudioBuffer,
    ctx: ContextProvider | None = None,
    **kwargs: Any,
) -> AudioBuffer:
    """Build and validate *name*'s parameter record from *kwargs*, then apply it."""
    spec = get_effect(name)
    return apply(buf, spec.params_cls(**kwargs), ctx=ctx)
