"""Offline WAV rendering for the convolution reverb.

Usage:
    python -m convolver.audio.render dry.wav impulse.wav output.wav [--preset preset.json]
"""

import argparse
import json
import logging
import sys

from convolver.engine.direct import convolve
from convolver.engine.params import (
    PARAM_SECTIONS, SCHEMA, resolve_params, validate_and_clamp,
)
from primitives.samples import to_integer, to_normalized
from shared.analysis import format_stats, sample_stats
from shared.audio import WavDecodeError, WavFormatError, read_wav, write_wav

log = logging.getLogger(__name__)


class ProgressPrinter:
    """Prints "10%  20%  ... 100%" as the convolution advances.

    Usable directly as ``progress_callback`` for convolve.
    """

    def __init__(self, steps=10, stream=None):
        self.steps = steps
        self.stream = stream if stream is not None else sys.stdout
        self._next = 1

    def __call__(self, fraction):
        if self._next > self.steps:
            return
        while self._next <= self.steps and fraction * self.steps >= self._next:
            self.stream.write(f"{self._next * 100 // self.steps}%  ")
            self._next += 1
        if self._next > self.steps:
            self.stream.write("\n")
        self.stream.flush()


def _report(samples, label):
    print("\n" + format_stats(sample_stats(samples), label))


def render_file(dry_path, ir_path, out_path, params=None,
                progress_callback=None):
    """Convolve ``dry_path`` with ``ir_path`` and write ``out_path``.

    Returns the WavHeader that was written. Any decode or I/O error
    propagates and no output file is left behind.
    """
    p = resolve_params(params)
    strict = p["strict_format"]
    debug = p["show_debug"]

    dry_header, x_int = read_wav(dry_path, strict=strict)
    ir_header, h_int = read_wav(ir_path, strict=strict)
    print(f"Loaded {dry_path}: {len(x_int)} samples, {dry_header.sample_rate} Hz")
    print(f"Loaded {ir_path}: {len(h_int)} samples, {ir_header.sample_rate} Hz")

    if dry_header.sample_rate != ir_header.sample_rate:
        msg = (f"sample rate mismatch: dry {dry_header.sample_rate} Hz, "
               f"impulse {ir_header.sample_rate} Hz")
        if strict:
            raise WavFormatError(msg)
        log.warning(msg)

    if debug:
        _report(x_int, "audio file")
        _report(h_int, "impulse response")

    x = to_normalized(x_int, dry_header.bits_per_sample)
    h = to_normalized(h_int, ir_header.bits_per_sample)
    del x_int, h_int

    if progress_callback is None and p["show_progress"]:
        progress_callback = ProgressPrinter(p["progress_steps"])
    if progress_callback is not None:
        print("\nStarting convolution. Please wait...", flush=True)
    y_float = convolve(x, h, p, progress_callback)
    del x, h

    if debug:
        _report(y_float, "convolved output (float)")

    y = to_integer(y_float, dry_header.bits_per_sample)
    del y_float

    if debug:
        _report(y, "convolved output")

    header = write_wav(out_path, dry_header, y)
    print(f"Saved {out_path}: {len(y)} samples")
    return header


def load_preset(path):
    with open(path) as f:
        preset = json.load(f)
    if not isinstance(preset, dict):
        raise ValueError(f"preset must be a JSON object, got {type(preset).__name__}")
    preset.pop("_meta", None)
    return validate_and_clamp(preset)


def _preset_help():
    lines = ["preset keys:"]
    for section, keys in PARAM_SECTIONS.items():
        lines.append(f"  [{section}]")
        for key in keys:
            p = SCHEMA.get(key)
            lines.append(f"    {key} (default {p.default!r}) {p.label}".rstrip())
    return "\n".join(lines)


def build_parser():
    parser = argparse.ArgumentParser(
        description="Convolution reverb offline renderer",
        epilog=_preset_help(),
        formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("dry", help="Dry (input) WAV file, mono 16-bit")
    parser.add_argument("impulse", help="Impulse response WAV file, mono 16-bit")
    parser.add_argument("output", help="Output WAV file")
    parser.add_argument("--preset", help="Preset JSON file")
    parser.add_argument("--engine", choices=["numba", "python"])
    parser.add_argument("--parallel", action="store_true", default=None,
                        help="Multi-threaded output-side loop (numba only)")
    parser.add_argument("--quiet", action="store_true",
                        help="Don't print convolution progress")
    parser.add_argument("--debug", action="store_true",
                        help="Print sample statistics and debug logging")
    parser.add_argument("--strict", action="store_true", default=None,
                        help="Reject non-mono / non-16-bit / mismatched inputs")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    params = {}
    if args.preset:
        try:
            params.update(load_preset(args.preset))
        except (OSError, ValueError) as exc:
            log.error("can't load preset %s: %s", args.preset, exc)
            return 1
    if args.engine is not None:
        params["engine"] = args.engine
    if args.parallel is not None:
        params["parallel"] = True
    if args.strict is not None:
        params["strict_format"] = True
    if args.quiet:
        params["show_progress"] = False
    if args.debug:
        params["show_debug"] = True
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        render_file(args.dry, args.impulse, args.output, params)
    except (WavDecodeError, OSError) as exc:
        log.error("%s", exc)
        return 1
    print("\nConvolution complete. Output file created  :)")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO,
                        format="%(name)s %(levelname)s: %(message)s")
    sys.exit(main())
