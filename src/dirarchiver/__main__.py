"""Package entry point.

This module enables running the project with:

    python -m dirarchiver ...
"""

from __future__ import annotations

import sys

from dirarchiver.cli import main

if __name__ == "__main__":
    sys.exit(main())
