"""codexplain: multimedia explanations of source code."""

from codexplain.version import __version__

__all__ = ["__version__"]
