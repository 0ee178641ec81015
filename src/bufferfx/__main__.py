"""bufferfx CLI -- apply effects to, edit, and inspect WAV files."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import numpy as np

from bufferfx import __version__
from bufferfx.buffer import AudioBuffer


# ---------------------------------------------------------------------------
# Verbosity levels
# ---------------------------------------------------------------------------

QUIET = 0
NORMAL = 1
VERBOSE = 2


def _verbosity(args: argparse.Namespace) -> int:
    """Return verbosity level from parsed args."""
    if getattr(args, "quiet", False):
        return QUIET
    if getattr(args, "verbose", False):
        return VERBOSE
    return NORMAL


def _log(args: argparse.Namespace, msg: str, level: int = NORMAL) -> None:
    """Print *msg* if verbosity >= *level*."""
    if _verbosity(args) >= level:
        print(msg)


def _log_verbose(args: argparse.Namespace, msg: str) -> None:
    """Print only when --verbose."""
    _log(args, msg, level=VERBOSE)


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.DEBUG if _verbosity(args) == VERBOSE else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s %(levelname)s: %(message)s")


def _fail(msg: str) -> None:
    print(msg, file=sys.stderr)
    sys.exit(1)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _read_input(path: str, args: argparse.Namespace | None = None) -> AudioBuffer:
    """Read an audio file, exit on error."""
    from bufferfx.io import read

    if args:
        _log_verbose(args, f"  Reading {path}")
    try:
        buf = read(path)
    except Exception as e:
        _fail(f"Error reading {path}: {e}")
    if args:
        _log_verbose(
            args,
            f"  Loaded: {buf.channels}ch, {buf.frames} frames, {buf.sample_rate:.0f} Hz",
        )
    return buf


def _write_output(
    path: str,
    buf: AudioBuffer,
    bit_depth: int = 16,
    args: argparse.Namespace | None = None,
) -> None:
    """Write an audio file, exit on error."""
    from bufferfx.io import write

    if args:
        _log_verbose(args, f"  Writing {path} ({bit_depth}-bit)")
    try:
        write(path, buf, bit_depth=bit_depth)
    except Exception as e:
        _fail(f"Error writing {path}: {e}")


# ---------------------------------------------------------------------------
# Subcommand: info
# ---------------------------------------------------------------------------


def cmd_info(args: argparse.Namespace) -> None:
    """Print audio file metadata."""
    buf = _read_input(args.file, args)
    peak = buf.peak()
    peak_db = 20.0 * np.log10(peak) if peak > 0 else float("-inf")

    info = {
        "path": str(args.file),
        "format": Path(args.file).suffix.lower().lstrip(".").upper(),
        "duration": f"{buf.duration:.3f}s",
        "sample_rate": int(buf.sample_rate),
        "channels": buf.channels,
        "frames": buf.frames,
        "peak_db": f"{peak_db:.1f}" if np.isfinite(peak_db) else "-inf",
    }

    if args.json:
        print(json.dumps(info, indent=2))
    else:
        for k, v in info.items():
            print(f"  {k}: {v}")


# ---------------------------------------------------------------------------
# Subcommand: process
# ---------------------------------------------------------------------------


def _build_chain(args: argparse.Namespace) -> list[dict]:
    """Turn --fx tokens into validated steps.

    Each step is a dict with keys ``name``, ``params`` (a parameter record)
    and ``raw`` (the original token).
    """
    from bufferfx._cli import coerce_params, parse_fx_token
    from bufferfx.registry import get_effect

    steps: list[dict] = []
    for token in args.fx or []:
        try:
            name, raw_params = parse_fx_token(token)
            spec = get_effect(name)
            params = spec.params_cls(**coerce_params(spec.params_cls, raw_params))
        except KeyError:
            _fail(f"Unknown effect: {token.split(':', 1)[0].strip()!r}")
        except ValueError as e:
            _fail(f"Invalid effect {token!r}: {e}")
        steps.append({"name": name, "params": params, "raw": token})
    return steps


def _format_chain(steps: list[dict]) -> str:
    """Format a chain of steps as a human-readable string."""
    parts = []
    for i, step in enumerate(steps, 1):
        parts.append(f"  {i}. {step['params']}")
    return "\n".join(parts)


def _apply_chain(
    buf: AudioBuffer,
    steps: list[dict],
    args: argparse.Namespace,
) -> AudioBuffer:
    """Apply each step in order."""
    from bufferfx.registry import apply

    for step in steps:
        _log_verbose(args, f"  Applying {step['params']}")
        try:
            buf = apply(buf, step["params"])
        except Exception as e:
            _fail(f"Error applying {step['name']}: {e}")
    return buf


def cmd_process(args: argparse.Namespace) -> None:
    """Apply effects to an audio file."""
    steps = _build_chain(args)

    if getattr(args, "dry_run", False):
        if not steps:
            print("Chain: (empty -- no effects specified)")
        else:
            print(f"Chain ({len(steps)} steps):")
            print(_format_chain(steps))
        print()
        print(f"Input: {args.input}")
        print(f"Output: {args.output}")
        print(f"Bit depth: {args.bit_depth or 16}")
        return

    if not args.output:
        _fail("Error: process requires -o/--output")

    bit_depth = args.bit_depth or 16
    buf = _read_input(args.input, args)
    buf = _apply_chain(buf, steps, args)
    _write_output(args.output, buf, bit_depth=bit_depth, args=args)
    _log(args, f"Wrote {args.output}")


# ---------------------------------------------------------------------------
# Subcommands: edit, insert, silence
# ---------------------------------------------------------------------------


def cmd_edit(args: argparse.Namespace) -> None:
    """Copy, trim, or silence a time window of a file."""
    from bufferfx import segments
    from bufferfx.errors import EffectError

    buf = _read_input(args.input, args)
    ops = {
        "copy": segments.copy_segment,
        "trim": segments.trim,
        "silence": segments.silence_region,
    }
    try:
        out = ops[args.action](buf, args.offset, args.duration)
    except EffectError as e:
        _fail(f"Error: {e}")
    _log_verbose(args, f"  {args.action}: {buf.frames} -> {out.frames} frames")
    _write_output(args.output, out, bit_depth=args.bit_depth or 16, args=args)
    _log(args, f"Wrote {args.output}")


def cmd_insert(args: argparse.Namespace) -> None:
    """Splice one file into another."""
    from bufferfx.segments import insert_segment

    target = _read_input(args.target, args)
    insert = _read_input(args.insert, args)
    try:
        out = insert_segment(target, insert, args.offset)
    except ValueError as e:
        _fail(f"Error: {e}")
    _write_output(args.output, out, bit_depth=args.bit_depth or 16, args=args)
    _log(args, f"Wrote {args.output}")


def cmd_silence(args: argparse.Namespace) -> None:
    """Write a silent file."""
    from bufferfx.segments import make_silence

    try:
        buf = make_silence(args.duration, args.sample_rate, args.channels)
    except ValueError as e:
        _fail(f"Error: {e}")
    _write_output(args.output, buf, bit_depth=args.bit_depth or 16, args=args)
    _log(args, f"Wrote {args.output}")


# ---------------------------------------------------------------------------
# Subcommand: list
# ---------------------------------------------------------------------------


def cmd_list(args: argparse.Namespace) -> None:
    """List available effects by category."""
    from bufferfx._cli import format_signature
    from bufferfx.registry import EFFECTS, get_categories

    cats = get_categories()
    filter_cat = args.category if getattr(args, "category", None) else None

    if filter_cat and filter_cat not in cats:
        print(f"Unknown category: {filter_cat!r}")
        print(f"Available: {', '.join(sorted(cats))}")
        sys.exit(1)

    for cat in sorted(cats):
        if filter_cat and cat != filter_cat:
            continue
        names = cats[cat]
        print(f"\n  {cat} ({len(names)} effects):")
        for name in sorted(names):
            spec = EFFECTS[name]
            print(f"    {name}{format_signature(spec.params_cls)}  -- {spec.description}")
    print()


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _add_bit_depth(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-b",
        "--bit-depth",
        type=int,
        choices=[16, 24],
        help="Output bit depth (default: 16)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser."""
    parser = argparse.ArgumentParser(
        prog="bufferfx",
        description="bufferfx - offline audio buffer effects",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"bufferfx {__version__}",
    )

    verb_group = parser.add_mutually_exclusive_group()
    verb_group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output (show details about each step)",
    )
    verb_group.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress all non-essential output",
    )

    sub = parser.add_subparsers(dest="command")

    # --- info ---
    p_info = sub.add_parser("info", help="Show audio file metadata")
    p_info.add_argument("file", help="Input audio file")
    p_info.add_argument("--json", action="store_true", help="Output as JSON")

    # --- process ---
    p_proc = sub.add_parser("process", help="Apply effects to audio")
    p_proc.add_argument("input", help="Input audio file")
    p_proc.add_argument("-o", "--output", help="Output audio file")
    p_proc.add_argument(
        "-f",
        "--fx",
        action="append",
        metavar="NAME:K=V,...",
        help="Effect to apply (repeatable). Format: name:param=val,param=val",
    )
    _add_bit_depth(p_proc)
    p_proc.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Show the effects without reading or writing files",
    )

    # --- edit ---
    p_edit = sub.add_parser("edit", help="Copy, trim or silence a time window")
    p_edit.add_argument("action", choices=["copy", "trim", "silence"])
    p_edit.add_argument("input", help="Input audio file")
    p_edit.add_argument("output", help="Output audio file")
    p_edit.add_argument("--offset", type=float, default=0.0, help="Window start (s)")
    p_edit.add_argument("--duration", type=float, required=True, help="Window length (s)")
    _add_bit_depth(p_edit)

    # --- insert ---
    p_ins = sub.add_parser("insert", help="Splice one file into another")
    p_ins.add_argument("target", help="File to insert into")
    p_ins.add_argument("insert", help="File to insert")
    p_ins.add_argument("output", help="Output audio file")
    p_ins.add_argument("--offset", type=float, default=0.0, help="Insert position (s)")
    _add_bit_depth(p_ins)

    # --- silence ---
    p_sil = sub.add_parser("silence", help="Write a silent file")
    p_sil.add_argument("output", help="Output audio file")
    p_sil.add_argument("--duration", type=float, default=1.0, help="Length (s)")
    p_sil.add_argument("--sample-rate", type=float, default=44100.0)
    p_sil.add_argument("--channels", type=int, default=2)
    _add_bit_depth(p_sil)

    # --- list ---
    p_list = sub.add_parser("list", help="List available effects")
    p_list.add_argument("category", nargs="?", help="Filter by category")

    return parser


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    _configure_logging(args)

    dispatch = {
        "info": cmd_info,
        "process": cmd_process,
        "edit": cmd_edit,
        "insert": cmd_insert,
        "silence": cmd_silence,
        "list": cmd_list,
    }

    handler = dispatch.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    handler(args)


if __name__ == "__main__":
    main()
