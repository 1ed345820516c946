"""
Entry point for running grm as a module.

Usage:
    python -m grm [command] [options]

This allows grm to be executed directly as a Python module,
which is useful for development and testing without installing
the package.
"""

from grm.cli import main

if __name__ == "__main__":
    main()
