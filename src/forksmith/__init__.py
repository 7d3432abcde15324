"""
forksmith: maintenance tooling for keeping a fork aligned with its upstream.
"""

from .version import __version__  # noqa: F401

__all__ = ["__version__"]
