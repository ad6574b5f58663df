"""Entry point for python -m dmxnet."""

import sys

from dmxnet.cli import main

if __name__ == "__main__":
    sys.exit(main())
