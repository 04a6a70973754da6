"""Inheritance vault: a dead man's switch built on time-locked delegations."""

from typing import NoReturn

__version__ = "0.1.0"


def _entry_point() -> NoReturn:
    """Entry point for the inheritance-vault script."""
    import sys

    from inheritance_vault.cli import main

    raise SystemExit(main(sys.argv[1:]))
