"""Sample conversion between the fixed-point and normalized domains.

    to_normalized(s) = s / 2**(bits-1)
    to_integer(y)    = trunc(y * 2**(bits-1))

Truncation rounds toward zero (like a C narrowing cast), not to nearest.
Callers are responsible for keeping y inside (-1.0, 1.0); the convolution
engine's rescale step guarantees that, so no clipping happens here.
"""

import numpy as np

INT_DTYPES = {
    16: np.dtype("<i2"),
    32: np.dtype("<i4"),
}


def full_scale(bits: int = 16) -> float:
    """Magnitude ceiling of a signed integer sample (32768.0 for 16-bit)."""
    return float(2 ** (bits - 1))


def int_dtype(bits: int = 16) -> np.dtype:
    try:
        return INT_DTYPES[bits]
    except KeyError:
        raise ValueError(f"unsupported bit depth: {bits}") from None


def to_normalized(samples, bits: int = 16) -> np.ndarray:
    """Integer samples -> float64 in [-1.0, 1.0)."""
    return np.asarray(samples).astype(np.float64) / full_scale(bits)


def to_integer(samples, bits: int = 16) -> np.ndarray:
    """Float samples -> integers, truncating toward zero."""
    dtype = int_dtype(bits)
    scaled = np.trunc(np.asarray(samples, dtype=np.float64) * full_scale(bits))
    return scaled.astype(dtype)
