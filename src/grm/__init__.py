"""
grm - GitHub Release Monitor

Keeps track of releases and milestones of the repositories of one or more
GitHub accounts ("remotes").

This package holds the configuration side of grm:
    - Remote definitions stored in a flat, INI-style configuration file
    - Per-repository overrides of release patterns, download URLs and more
    - Machine-bound encryption of stored GitHub credentials
    - Export/import of remote definitions without credentials
"""

__version__ = "0.1.0"

from grm.config.settings import Settings, load_settings
from grm.config.store import Configuration

__all__ = [
    "__version__",
    "Configuration",
    "Settings",
    "load_settings",
]
