#!/usr/bin/env python3
"""Convolver: direct-convolution reverb."""

import logging
import sys

from convolver.audio.render import main as render_main

logging.basicConfig(level=logging.INFO, format="%(name)s %(levelname)s: %(message)s")


def main(argv=None):
    return render_main(argv)


if __name__ == "__main__":
    sys.exit(main())
