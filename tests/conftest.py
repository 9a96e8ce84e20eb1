"""Shared fixtures: hand-built WAV byte streams.

Tests need containers the writer never produces (fmt extensions, LIST /
JUNK chunks before data, truncated payloads), so they are assembled here
field by field with struct rather than through shared.audio.
"""

import os
import struct
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def build_wav(samples, fmt_size=16, extra_chunks=(), num_channels=1,
              sample_rate=44100, bits=16, data_size=None):
    """Assemble a WAV file as bytes.

    fmt_size > 16 appends (fmt_size - 16) extension bytes to the fmt chunk.
    extra_chunks is a list of (tag, payload) inserted between fmt and data.
    data_size overrides the declared data length (for truncation tests).
    """
    dtype = {16: "<i2", 32: "<i4"}.get(bits, "<i2")
    payload = np.asarray(samples).astype(dtype).tobytes()
    block_align = num_channels * bits // 8

    fmt = struct.pack("<HHIIHH", 1, num_channels, sample_rate,
                      sample_rate * block_align, block_align, bits)
    fmt += b"\x00" * (fmt_size - 16)
    body = b"WAVE" + b"fmt " + struct.pack("<I", fmt_size) + fmt
    for tag, chunk in extra_chunks:
        body += tag + struct.pack("<I", len(chunk)) + chunk
    declared = len(payload) if data_size is None else data_size
    body += b"data" + struct.pack("<I", declared) + payload
    return b"RIFF" + struct.pack("<I", len(body)) + body


@pytest.fixture
def wav_bytes():
    return build_wav


@pytest.fixture
def write_wav_file(tmp_path):
    """Write build_wav(...) output to tmp_path/name and return the path."""
    def _write(name, samples, **kwargs):
        path = tmp_path / name
        path.write_bytes(build_wav(samples, **kwargs))
        return path
    return _write
