"""Version information for gcc-stage-installer."""

__version__ = "0.1.0"
