"""Install and uninstall staged GCC toolchains system-wide."""

from .__version__ import __version__

__all__ = ["__version__"]
