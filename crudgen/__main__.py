# File: crudgen/__main__.py
"""
crudgen - Module entry point.

Allows running the generator directly via::

    python -m crudgen add-table --source main.py

This module simply delegates to ``crudgen.cli.main``.
"""

from __future__ import annotations

import sys


def main() -> None:
    """Delegate to the CLI main function."""
    from crudgen.cli import main as cli_main
    sys.exit(cli_main())


if __name__ == "__main__":
    main()
