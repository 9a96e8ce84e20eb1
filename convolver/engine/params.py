"""Parameter schema for the convolution reverb.

This is the shared contract between the CLI, preset files, and scripting.
All parameter sources produce a dict in this format.
"""

from shared.params import ParamType as T, ParamDef, ParamSchema

SR = 44100

# ── Schema ────────────────────────────────────────────────────────────

_PARAMS = [
    # --- Engine ---
    ParamDef("engine", T.CHOICE, section="engine",
             default="numba", choices=["numba", "python"],
             label="Convolution loop implementation"),

    ParamDef("parallel", T.BOOL, section="engine",
             default=False,
             label="Output-side prange loop (numba engine only)"),

    ParamDef("progress_steps", T.INT, section="engine",
             default=10, range=(1, 100),
             label="Progress callbacks per convolution"),

    # --- Rescale ---
    # Divisor padding on the positive branch only. Keeps the loudest
    # positive sample strictly below 1.0 so it narrows to <= 32767.
    ParamDef("epsilon", T.FLOAT, section="rescale",
             default=1e-6, range=(1e-9, 1e-3)),

    # Upper bound stays below 1.0 and the step stays positive, so the
    # nudge always lands inside the open range.
    ParamDef("clamp_threshold", T.FLOAT, section="rescale",
             default=0.999999, range=(0.9, 0.999999)),

    ParamDef("clamp_step", T.FLOAT, section="rescale",
             default=1e-6, range=(1e-9, 1e-3)),

    # --- Output ---
    ParamDef("show_progress", T.BOOL, section="output",
             default=True),

    ParamDef("show_debug", T.BOOL, section="output",
             default=False, label="Print min/max/mean reports"),

    # --- Format ---
    ParamDef("strict_format", T.BOOL, section="format",
             default=False,
             label="Reject non-mono / non-16-bit / mismatched-rate inputs"),
]

SCHEMA = ParamSchema(_PARAMS)

default_params = SCHEMA.default_params
validate_and_clamp = SCHEMA.validate_and_clamp
PARAM_SECTIONS = SCHEMA.param_sections()


def resolve_params(params=None) -> dict:
    """Defaults overlaid with ``params`` (unknown keys kept as-is)."""
    resolved = default_params()
    if params:
        resolved.update(params)
    return resolved
