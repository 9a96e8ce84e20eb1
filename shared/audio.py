"""WAV container codec.

Read path:
    RIFF/WAVE/fmt leading block (36 bytes) -> [fmt extension bytes]
    -> [any chunks we don't care about] -> "data" tag -> length -> samples

The chunks between fmt and data (LIST metadata, padding, ...) are not
walked by their declared lengths. Instead a small automaton scans the
stream byte by byte until the four bytes "data" appear in a row.

Write path always emits the canonical 44-byte header: fmt size forced to
16, no extension, no extra chunks.

All multi-byte fields are decoded/encoded explicitly as little-endian,
so results don't depend on host byte order.
"""

import dataclasses
import logging
import os
import stat
import struct
import tempfile
from dataclasses import dataclass

import numpy as np

from primitives.samples import int_dtype

log = logging.getLogger(__name__)

RIFF_ID = b"RIFF"
WAVE_ID = b"WAVE"
FMT_ID = b"fmt "
DATA_ID = b"data"

FMT_MIN_SIZE = 16
# Every header byte after the RIFF size field except the data payload
RIFF_OVERHEAD = 36

# riff id, riff size, wave id, fmt id, fmt size,
# audio format, channels, sample rate, byte rate, block align, bits
_LEADING = struct.Struct("<4sI4s4sIHHIIHH")
_CHUNK = struct.Struct("<4sI")
_U32 = struct.Struct("<I")


class WavDecodeError(ValueError):
    """The stream is not a readable WAV container."""


class WavFormatError(WavDecodeError):
    """The container is well formed but describes something we can't use."""


class ChunkNotFoundError(WavDecodeError):
    """End of stream was reached while scanning for a chunk tag."""


@dataclass
class WavHeader:
    riff_id: bytes = RIFF_ID
    riff_size: int = 0
    wave_id: bytes = WAVE_ID
    fmt_id: bytes = FMT_ID
    fmt_size: int = FMT_MIN_SIZE
    audio_format: int = 1
    num_channels: int = 1
    sample_rate: int = 44100
    byte_rate: int = 44100 * 2
    block_align: int = 2
    bits_per_sample: int = 16
    data_size: int = 0

    @property
    def bytes_per_sample(self) -> int:
        return self.bits_per_sample // 8

    @property
    def n_samples(self) -> int:
        if self.bytes_per_sample == 0:
            return 0
        return self.data_size // self.bytes_per_sample


# ---------------------------------------------------------------------------
# Tag scanner
# ---------------------------------------------------------------------------

class TagScanner:
    """Byte-at-a-time matcher for a chunk tag.

    ``state`` counts consecutive matched tag bytes (0..len(tag)).
    A byte equal to tag[state] advances the state; any other byte resets
    it to 0. The mismatching byte itself is consumed, not retested as the
    start of a new match, so "ddata" does not match at offset 1.
    """

    def __init__(self, tag: bytes = DATA_ID):
        self.tag = tag
        self.state = 0

    @property
    def matched(self) -> bool:
        return self.state == len(self.tag)

    def feed(self, byte: int) -> bool:
        """Advance on one byte. Returns True once the full tag is seen."""
        if self.matched:
            self.state = 0
        if byte == self.tag[self.state]:
            self.state += 1
        else:
            self.state = 0
        return self.matched

    def reset(self):
        self.state = 0


def scan_to_tag(stream, tag: bytes = DATA_ID) -> int:
    """Consume bytes until ``tag`` has been read. Returns bytes consumed.

    The stream is left positioned right after the last tag byte.
    """
    scanner = TagScanner(tag)
    consumed = 0
    while True:
        b = stream.read(1)
        if not b:
            raise ChunkNotFoundError(
                f"no {tag!r} chunk found ({consumed} bytes scanned)")
        consumed += 1
        if scanner.feed(b[0]):
            return consumed


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------

def _read_exact(stream, n, what):
    data = stream.read(n)
    if len(data) != n:
        raise WavDecodeError(
            f"unexpected end of stream reading {what} "
            f"(wanted {n} bytes, got {len(data)})")
    return data


def read_header(stream) -> WavHeader:
    """Parse a WAV header, leaving ``stream`` at the first sample byte."""
    fields = _LEADING.unpack(_read_exact(stream, _LEADING.size, "header"))
    header = WavHeader(*fields)

    if header.riff_id != RIFF_ID or header.wave_id != WAVE_ID:
        raise WavFormatError(
            f"not a RIFF/WAVE stream ({header.riff_id!r}/{header.wave_id!r})")
    if header.fmt_id != FMT_ID:
        raise WavFormatError(f"expected 'fmt ' chunk, got {header.fmt_id!r}")
    if header.fmt_size < FMT_MIN_SIZE:
        raise WavFormatError(f"fmt chunk too short: {header.fmt_size} bytes")

    # Encoder-added fmt extension (cbSize etc.) -- not used
    extra = header.fmt_size - FMT_MIN_SIZE
    if extra:
        _read_exact(stream, extra, "fmt extension")

    tag = _read_exact(stream, 4, "chunk tag")
    if tag != DATA_ID:
        skipped = scan_to_tag(stream, DATA_ID)
        log.debug("skipped %d bytes after %r looking for data chunk",
                  skipped, tag)

    (header.data_size,) = _U32.unpack(_read_exact(stream, 4, "data size"))
    return header


def read_samples(stream, header: WavHeader) -> np.ndarray:
    """Read exactly ``header.data_size`` bytes and decode them as integers."""
    try:
        dtype = int_dtype(header.bits_per_sample)
    except ValueError as exc:
        raise WavFormatError(str(exc)) from None
    raw = _read_exact(stream, header.data_size, "sample data")
    n = header.n_samples
    return np.frombuffer(raw[:n * dtype.itemsize], dtype=dtype).copy()


def check_format(header: WavHeader, strict=False, name="input"):
    """Warn (or, if strict, raise) on anything other than mono 16-bit."""
    problems = []
    if header.num_channels != 1:
        problems.append(f"{header.num_channels} channels (expected mono)")
    if header.bits_per_sample != 16:
        problems.append(f"{header.bits_per_sample}-bit (expected 16-bit)")
    if not problems:
        return
    msg = f"{name}: " + ", ".join(problems)
    if strict:
        raise WavFormatError(msg)
    log.warning("%s; output will not be meaningful", msg)


def read_wav(path, strict=False):
    """Load a WAV file. Returns (WavHeader, integer samples)."""
    with open(path, "rb") as f:
        header = read_header(f)
        check_format(header, strict=strict, name=os.fspath(path))
        samples = read_samples(f, header)
    return header, samples


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------

def output_header(template: WavHeader, n_samples: int) -> WavHeader:
    """Canonical header for ``n_samples`` samples, cloned from ``template``."""
    data_size = n_samples * template.bytes_per_sample
    return dataclasses.replace(
        template,
        riff_id=RIFF_ID,
        wave_id=WAVE_ID,
        fmt_id=FMT_ID,
        fmt_size=FMT_MIN_SIZE,
        data_size=data_size,
        riff_size=RIFF_OVERHEAD + data_size,
    )


def encode_header(header: WavHeader) -> bytes:
    """44-byte canonical header. ``header.fmt_size`` must be 16."""
    if header.fmt_size != FMT_MIN_SIZE:
        raise ValueError("only canonical (16-byte fmt) headers can be encoded")
    leading = _LEADING.pack(
        header.riff_id, header.riff_size, header.wave_id,
        header.fmt_id, header.fmt_size,
        header.audio_format, header.num_channels, header.sample_rate,
        header.byte_rate, header.block_align, header.bits_per_sample,
    )
    return leading + _CHUNK.pack(DATA_ID, header.data_size)


def encode_wav(template: WavHeader, samples) -> bytes:
    """Header + little-endian sample bytes for a complete file."""
    samples = np.asarray(samples)
    header = output_header(template, len(samples))
    payload = samples.astype(int_dtype(header.bits_per_sample)).tobytes()
    return encode_header(header) + payload


def _output_mode(path):
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def write_wav(path, template: WavHeader, samples) -> WavHeader:
    """Write a WAV file atomically. Returns the header that was written.

    The file is assembled under a temporary name in the destination
    directory and renamed into place, so a failure never leaves a
    truncated output behind.

    The file gets the mode of the file it replaces, or 0666 minus the
    umask for a new file, as a plain open() would.
    """
    samples = np.asarray(samples)
    data = encode_wav(template, samples)
    path = os.fspath(path)
    fd, tmp = tempfile.mkstemp(dir=os.path.dirname(os.path.abspath(path)),
                               prefix=".convolver-", suffix=".wav.tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            os.chmod(tmp, _output_mode(path))
            f.write(data)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
    return output_header(template, len(samples))
