"""Entry point script for the depth adjustment task.

This small wrapper simply dispatches to :mod:`depth_adjust.cli`.  Keeping the
actual logic in the package makes it possible to launch the experiment via
``python -m depth_adjust`` *or* by executing this file directly.
"""
from __future__ import annotations

from depth_adjust.cli import main


if __name__ == "__main__":
    main()
