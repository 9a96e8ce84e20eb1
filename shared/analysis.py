"""Sample statistics for debug reports.

Computes count, extremes, mean and the number of samples outside the
normalized range for an integer or float buffer. Purely diagnostic:
nothing here feeds back into the audio.

Dependencies: numpy, scipy.
"""

import numpy as np
from scipy.stats import describe


def sample_stats(samples):
    """Summarize a sample buffer.

    Returns dict with keys:
        n, highest, lowest, mean, n_outside

    n_outside counts samples beyond +-1.0 and is only meaningful for
    normalized (float) buffers; it is 0 for integer buffers.
    """
    samples = np.asarray(samples)
    n = len(samples)
    if n == 0:
        return {"n": 0, "highest": 0, "lowest": 0, "mean": 0.0, "n_outside": 0}

    d = describe(samples.astype(np.float64), ddof=0)
    lowest, highest = d.minmax
    if np.issubdtype(samples.dtype, np.integer):
        lowest, highest = int(lowest), int(highest)
        n_outside = 0
    else:
        lowest, highest = float(lowest), float(highest)
        n_outside = int(np.count_nonzero(np.abs(samples) > 1.0))

    return {
        "n": int(d.nobs),
        "highest": highest,
        "lowest": lowest,
        "mean": float(d.mean),
        "n_outside": n_outside,
    }


def format_stats(stats, label):
    """Multi-line report for one buffer."""
    lines = [
        f"Number of samples in {label} checked:  {stats['n']}",
        f"Highest sample:  {stats['highest']}",
        f" Lowest sample: {stats['lowest']}",
        f"   Mean sample:  {stats['mean']:.5f}",
    ]
    if stats["n_outside"]:
        lines.append(f"Samples that exceeded +- 1.0:  {stats['n_outside']}")
    return "\n".join(lines)
