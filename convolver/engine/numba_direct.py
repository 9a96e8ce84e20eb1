"""Numba-optimized convolution inner loops.

Same algorithm as engine/direct.py, but the per-sample loops are JIT
compiled. Two variants:

    _accumulate_block   input-side, y[n+m] += x[n]*h[m] for a range of n
    _output_side        output-side, each y[p] summed independently; safe
                        to split across threads with prange since no two
                        iterations write the same index
"""

import numpy as np
from numba import njit, prange


@njit(cache=True)
def _accumulate_block(x, h, y, start, end):
    m_len = len(h)
    for n in range(start, end):
        xn = x[n]
        if xn == 0.0:
            continue
        for m in range(m_len):
            y[n + m] += xn * h[m]


@njit(cache=True, parallel=True)
def _output_side(x, h, y):
    n_len = len(x)
    m_len = len(h)
    for p in prange(len(y)):
        # valid m: 0 <= m < M and 0 <= p - m < N
        m_lo = max(0, p - n_len + 1)
        m_hi = min(m_len, p + 1)
        acc = 0.0
        for m in range(m_lo, m_hi):
            acc += x[p - m] * h[m]
        y[p] = acc


def convolve_fast(x: np.ndarray, h: np.ndarray, y: np.ndarray, params: dict,
                  progress_callback=None):
    """Drop-in replacement for engine.direct.convolve_reference."""
    from convolver.engine.direct import chunk_bounds

    if params.get("parallel", False):
        _output_side(x, h, y)
        if progress_callback is not None:
            progress_callback(1.0)
        return

    n_samples = len(x)
    for start, end in chunk_bounds(n_samples, params["progress_steps"]):
        _accumulate_block(x, h, y, start, end)
        if progress_callback is not None:
            progress_callback(end / n_samples)
