"""FX token parser, type coercion and signature formatting for the CLI."""

from __future__ import annotations

from typing import Any

from bufferfx.params import param_fields


# ---------------------------------------------------------------------------
# FX token parsing
# ---------------------------------------------------------------------------


def parse_fx_token(token: str) -> tuple[str, dict[str, str]]:
    """Parse a 'name:k=v,k=v' token into (name, raw_params).

    Returns raw string values; use coerce_params() to convert types.
    """
    if ":" in token:
        name, params_str = token.split(":", 1)
        params: dict[str, str] = {}
        for pair in params_str.split(","):
            if "=" not in pair:
                raise ValueError(f"Invalid parameter in fx token: {pair!r}")
            k, v = pair.split("=", 1)
            params[k.strip()] = v.strip()
        return name.strip(), params
    return token.strip(), {}


# ---------------------------------------------------------------------------
# Type coercion
# ---------------------------------------------------------------------------


def coerce_value(value: str, target_type: type | None) -> Any:
    """Coerce a string value to the target type.

    If target_type is None, tries int -> float -> str.
    """
    if target_type is bool:
        return value.lower() in ("true", "1", "yes")
    if target_type is int:
        return int(value)
    if target_type is float:
        return float(value)
    if target_type is str:
        return value
    try:
        f = float(value)
        if f == int(f) and "." not in value and "e" not in value.lower():
            return int(value)
        return f
    except ValueError:
        return value


def coerce_params(params_cls: type, raw_params: dict[str, str]) -> dict[str, Any]:
    """Coerce raw string params to the types of *params_cls*'s field defaults.

    Unknown keys raise ValueError.  Fields defaulting to None are guessed.
    """
    defaults = param_fields(params_cls)
    coerced: dict[str, Any] = {}
    for k, v in raw_params.items():
        if k not in defaults:
            valid = ", ".join(defaults) or "(none)"
            raise ValueError(f"Unknown parameter {k!r}; valid: {valid}")
        default = defaults[k]
        coerced[k] = coerce_value(v, None if default is None else type(default))
    return coerced


def format_signature(params_cls: type) -> str:
    """Return a compact ``(k=default, ...)`` string for a parameter record."""
    parts = [f"{k}={v!r}" for k, v in param_fields(params_cls).items()]
    return f"({', '.join(parts)})"
