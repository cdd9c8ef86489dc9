"""PhotoForge command-line entry point (``python -m photoforge``)."""

from __future__ import annotations

from photoforge.cli import main

if __name__ == "__main__":
    main(prog_name="photoforge")
