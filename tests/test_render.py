"""End-to-end: WAV files in, convolved WAV file out, plus the CLI surface.

Run: uv run pytest tests/test_render.py
"""

import io
import json
import os
import sys

import numpy as np
import pytest
from scipy.io import wavfile

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from convolver.audio.render import ProgressPrinter, load_preset, main, render_file
from shared.audio import WavFormatError, read_wav

QUIET = {"show_progress": False}


# ---------------------------------------------------------------------------
# Known small case: 0.5 * [0.5, 0.25]
# raw [0.25, 0.125, 0, 0, 0] -> / (0.25 + 1e-6) -> [32767, 16383, 0, 0, 0]
# ---------------------------------------------------------------------------
@pytest.mark.parametrize("engine", ["python", "numba"])
def test_render_known_output(write_wav_file, tmp_path, engine):
    dry = write_wav_file("dry.wav", [16384, 0, 0, 0])
    ir = write_wav_file("ir.wav", [16384, 8192], fmt_size=18,
                        extra_chunks=[(b"LIST", b"INFOISFT\x04\x00\x00\x00abc\x00")])
    out = tmp_path / "out.wav"

    header = render_file(dry, ir, out, dict(QUIET, engine=engine))
    assert header.data_size == 10

    out_header, samples = read_wav(out)
    assert out_header.fmt_size == 16
    assert out_header.riff_size == 36 + 10
    assert list(samples) == [32767, 16383, 0, 0, 0]
    assert out.stat().st_size == 44 + 10


def test_render_matches_numpy_and_scipy_reads_it(write_wav_file, tmp_path):
    rng = np.random.default_rng(5)
    x = (rng.standard_normal(500) * 6000).astype(np.int16)
    h = (rng.standard_normal(80) * np.exp(-np.arange(80) / 20.0) * 9000).astype(np.int16)
    dry = write_wav_file("dry.wav", x, extra_chunks=[(b"JUNK", b"\x00" * 12)])
    ir = write_wav_file("ir.wav", h)
    out = tmp_path / "out.wav"

    render_file(dry, ir, out, QUIET)

    sr, y = wavfile.read(out)
    assert sr == 44100
    assert y.dtype == np.int16
    assert len(y) == len(x) + len(h) - 1

    raw = np.convolve(x / 32768.0, h / 32768.0)
    peak = np.max(np.abs(raw))
    assert np.max(np.abs(y / 32768.0 - raw / peak)) < 1e-4


def test_render_all_zero_impulse(write_wav_file, tmp_path):
    dry = write_wav_file("dry.wav", [1000, -2000, 3000])
    ir = write_wav_file("ir.wav", [0, 0, 0, 0])
    out = tmp_path / "out.wav"
    render_file(dry, ir, out, QUIET)
    _, samples = read_wav(out)
    assert len(samples) == 6
    assert np.all(samples == 0)


def test_render_empty_dry(write_wav_file, tmp_path):
    dry = write_wav_file("dry.wav", np.zeros(0, dtype=np.int16))
    ir = write_wav_file("ir.wav", [100, 200])
    out = tmp_path / "out.wav"
    header = render_file(dry, ir, out, QUIET)
    assert header.data_size == 0
    assert out.stat().st_size == 44


def test_render_strict_rejects_rate_mismatch(write_wav_file, tmp_path):
    dry = write_wav_file("dry.wav", [1, 2, 3])
    ir = write_wav_file("ir.wav", [1], sample_rate=48000)
    out = tmp_path / "out.wav"
    with pytest.raises(WavFormatError):
        render_file(dry, ir, out, dict(QUIET, strict_format=True))
    assert not out.exists()
    # lenient mode just warns
    render_file(dry, ir, out, QUIET)
    assert out.exists()


def test_render_debug_report(write_wav_file, tmp_path, capsys):
    dry = write_wav_file("dry.wav", [1000, -2000])
    ir = write_wav_file("ir.wav", [16384])
    render_file(dry, ir, tmp_path / "out.wav", dict(QUIET, show_debug=True))
    text = capsys.readouterr().out
    assert "impulse response" in text
    assert "Highest sample:  1000" in text
    assert " Lowest sample: -2000" in text


# ---------------------------------------------------------------------------
# Progress printer
# ---------------------------------------------------------------------------
def test_progress_printer():
    buf = io.StringIO()
    printer = ProgressPrinter(steps=10, stream=buf)
    printer(0.5)
    assert buf.getvalue() == "10%  20%  30%  40%  50%  "
    printer(1.0)
    printer(1.0)
    assert buf.getvalue().endswith("90%  100%  \n")
    assert buf.getvalue().count("100%") == 1


def test_render_prints_progress(write_wav_file, tmp_path, capsys):
    dry = write_wav_file("dry.wav", np.arange(40, dtype=np.int16))
    ir = write_wav_file("ir.wav", [16384, 100])
    render_file(dry, ir, tmp_path / "out.wav", {"progress_steps": 4})
    assert "25%  50%  75%  100%" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------
def test_load_preset(tmp_path):
    path = tmp_path / "preset.json"
    path.write_text(json.dumps({
        "_meta": {"name": "safe"},
        "engine": "python",
        "progress_steps": 1000,
        "not_a_param": 1,
    }))
    assert load_preset(path) == {"engine": "python", "progress_steps": 100}


@pytest.mark.parametrize("content", ["[]", "3", "\"python\""])
def test_load_preset_rejects_non_object(tmp_path, content):
    path = tmp_path / "preset.json"
    path.write_text(content)
    with pytest.raises(ValueError):
        load_preset(path)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
@pytest.mark.parametrize("argv", [[], ["a.wav"], ["a.wav", "b.wav"],
                                  ["a.wav", "b.wav", "c.wav", "d.wav"]])
def test_cli_wrong_arity(argv, tmp_path):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    assert exc.value.code == 2


def test_cli_help_lists_preset_keys(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--help"])
    assert exc.value.code == 0
    out = capsys.readouterr().out
    assert "[rescale]" in out
    assert "clamp_threshold (default 0.999999)" in out


def test_cli_preset_not_an_object(write_wav_file, tmp_path):
    dry = write_wav_file("dry.wav", [16384, 0])
    ir = write_wav_file("ir.wav", [16384])
    preset = tmp_path / "preset.json"
    preset.write_text("[]")
    out = tmp_path / "out.wav"
    assert main([str(dry), str(ir), str(out), "--quiet", "--preset", str(preset)]) == 1
    assert not out.exists()


def test_cli_success(write_wav_file, tmp_path):
    dry = write_wav_file("dry.wav", [16384, 0, 0, 0])
    ir = write_wav_file("ir.wav", [16384, 8192])
    out = tmp_path / "out.wav"
    assert main([str(dry), str(ir), str(out), "--quiet", "--engine", "python"]) == 0
    _, samples = read_wav(out)
    assert list(samples) == [32767, 16383, 0, 0, 0]


def test_cli_missing_input(write_wav_file, tmp_path):
    ir = write_wav_file("ir.wav", [1])
    out = tmp_path / "out.wav"
    assert main([str(tmp_path / "nope.wav"), str(ir), str(out), "--quiet"]) == 1
    assert not out.exists()


def test_cli_no_data_chunk(tmp_path, wav_bytes):
    bad = tmp_path / "bad.wav"
    raw = wav_bytes([1, 2, 3], extra_chunks=[(b"LIST", b"\x01" * 8)])
    bad.write_bytes(raw[:raw.index(b"data")])
    good = tmp_path / "ir.wav"
    good.write_bytes(wav_bytes([1]))
    out = tmp_path / "out.wav"
    assert main([str(bad), str(good), str(out), "--quiet"]) == 1
    assert not out.exists()
    assert sorted(p.name for p in tmp_path.iterdir()) == ["bad.wav", "ir.wav"]
