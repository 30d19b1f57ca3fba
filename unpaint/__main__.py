"""Main entry point for unpaint package.

This module allows the package to be executed as:
    python -m unpaint [args...]
"""

from .cli import main

if __name__ == "__main__":
    main()
