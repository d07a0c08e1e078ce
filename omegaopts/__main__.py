"""
Module entrypoint for the omegaopts CLI.

This file exists so that `python -m omegaopts ...` works consistently in all
environments, including when the console-script wrapper is not installed.

Notes
-----
This module contains no business logic. It delegates to the CLI module.
"""

from __future__ import annotations

from omegaopts.cli import main


def _run() -> None:
    """
    Execute the omegaopts command line interface.

    Raises
    ------
    SystemExit
        Carrying the CLI's exit code.
    """
    raise SystemExit(main())


if __name__ == "__main__":
    _run()
