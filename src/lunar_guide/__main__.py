"""
Lunar Guide - Command line entry point.

Run with:
    python -m lunar_guide moon --lat 34.05 --lon -118.24
"""

from .cli import main

if __name__ == "__main__":
    main()
