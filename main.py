#!/usr/bin/env python3
"""Launch the convolution reverb from the project root.

Usage:
    uv run python main.py dry.wav impulse.wav output.wav
    uv run python -m convolver.main dry.wav impulse.wav output.wav
"""

import sys

if __name__ == "__main__":
    from convolver.main import main
    sys.exit(main())
