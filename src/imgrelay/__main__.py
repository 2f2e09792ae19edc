"""Main entry point for running the package as a module.

Usage:
    python -m imgrelay upload photo.png banner.jpg
    python -m imgrelay history --urls
    python -m imgrelay policy
"""

import sys

from .cli import main

if __name__ == '__main__':
    sys.exit(main())
