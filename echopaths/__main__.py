"""Module entrypoint for running EchoPaths as ``python -m echopaths``."""

from __future__ import annotations

from echopaths.cli import main


if __name__ == "__main__":
    main()
