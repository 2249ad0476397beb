"""Naming conventions for installed toolchains and their registrations.

Nothing records what an installation created, so both the installer and the
uninstaller derive every system-wide path from the version string (or read
it back from a path) through this module.
"""

import os
import re
from pathlib import Path
from typing import Optional

from ..config.settings import LayoutConfig

# Driver names linked into bin_dirs by the installer.
INSTALL_PROGRAMS = ("gcc", "g++", "cpp", "cc")

# The uninstaller also cleans up links other tooling may have made.
UNINSTALL_PROGRAMS = INSTALL_PROGRAMS + ("gfortran", "gcov")

DEFAULT_VERSION = "local"

PROFILE_TEMPLATE = """\
# GCC installed to {prefix}
export PATH="{prefix}/bin:$PATH"
export LD_LIBRARY_PATH="{prefix}/lib:{prefix}/lib64:$LD_LIBRARY_PATH"
export MANPATH="{prefix}/share/man:$MANPATH"
"""


class SystemLayout:
    """Resolves prefixes and registration file paths for a version."""

    def __init__(self, config: Optional[LayoutConfig] = None):
        self.config = config or LayoutConfig()
        self.install_root = Path(self.config.install_root)
        self.ld_conf_dir = Path(self.config.ld_conf_dir)
        self.profile_dir = Path(self.config.profile_dir)
        self.bin_dirs = [Path(d) for d in self.config.bin_dirs]
        self.name_prefix = self.config.name_prefix

    def default_prefix(self, version: str) -> Path:
        return self.install_root / f"{self.name_prefix}-{version}"

    def ld_conf_path(self, version: str) -> Path:
        return self.ld_conf_dir / f"{self.name_prefix}-{version}.conf"

    def profile_path(self, version: str) -> Path:
        return self.profile_dir / f"{self.name_prefix}-{version}.sh"

    def ld_conf_candidates(self):
        """Registration files in a stable order."""
        if not self.ld_conf_dir.is_dir():
            return []
        return sorted(
            p for p in self.ld_conf_dir.glob(f"{self.name_prefix}-*.conf")
            if p.is_file()
        )

    def version_from_prefix(self, prefix: Path) -> Optional[str]:
        """Return ``14.1.0`` for ``/opt/gcc-14.1.0``, None for other names."""
        stem = f"{self.name_prefix}-"
        name = prefix.name
        if name.startswith(stem) and len(name) > len(stem):
            return name[len(stem):]
        return None

    def version_from_ld_conf(self, conf_file: Path) -> Optional[str]:
        stem = f"{self.name_prefix}-"
        name = conf_file.name
        if name.startswith(stem) and name.endswith(".conf"):
            version = name[len(stem):-len(".conf")]
            return version or None
        return None

    def choose_bin_dir(self) -> Path:
        """First writable symlink directory, else the last one listed."""
        for directory in self.bin_dirs:
            if os.access(directory, os.W_OK):
                return directory
        return self.bin_dirs[-1]


def render_ld_conf(prefix: Path) -> str:
    return f"{prefix}/lib\n{prefix}/lib64\n"


def render_profile(prefix: Path) -> str:
    return PROFILE_TEMPLATE.format(prefix=prefix)


def references_prefix(text: str, prefix: Path) -> bool:
    """True if ``text`` mentions ``prefix`` as a whole path.

    ``/opt/gcc-14`` does not match ``/opt/gcc-14.1.0/lib``. The filesystem
    root matches nothing.
    """
    stem = str(prefix).rstrip("/")
    if not stem:
        return False
    pattern = re.escape(stem) + r"(?=$|[/\s\"':])"
    return re.search(pattern, text, re.MULTILINE) is not None


def is_executable_file(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)
