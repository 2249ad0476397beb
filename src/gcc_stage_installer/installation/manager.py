"""Installation of a staged GCC tree into a system prefix."""

import os
import subprocess
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .. import exit_codes
from ..config.logging import get_logger
from ..config.settings import Settings
from .compatibility import HostCompatibilityChecker
from .filesystem import entry_exists
from .layout import (
    INSTALL_PROGRAMS,
    SystemLayout,
    is_executable_file,
    render_ld_conf,
    render_profile,
)
from .privilege import PrivilegedExecutor
from .version import detect_version

logger = get_logger(__name__)


class InstallationError(Exception):
    """Installation-related error with context information."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        exit_code: int = exit_codes.USAGE,
    ):
        self.message = message
        self.details = details or {}
        self.exit_code = exit_code
        super().__init__(message)


@dataclass
class InstallOptions:
    """Mode flags accepted by the installer."""

    prefix: Optional[Path] = None
    no_register: bool = False
    lfs_mode: bool = False
    force_system: bool = False
    force_links: bool = False

    @property
    def system_registration(self) -> bool:
        """Linker configuration and profile fragment."""
        return not self.lfs_mode or self.force_system

    @property
    def link_registration(self) -> bool:
        """Command symlinks in the shared bin directories."""
        return not self.no_register and self.system_registration


class InstallationManager:
    """Mirrors a staged toolchain into a prefix and registers it."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        executor: Optional[PrivilegedExecutor] = None,
        runner: Callable = subprocess.run,
        compatibility_checker: Optional[HostCompatibilityChecker] = None,
    ):
        self.settings = settings or Settings()
        self.layout = SystemLayout(self.settings.layout)
        self.executor = executor or PrivilegedExecutor(
            escalation_command=self.settings.commands.escalation
        )
        self.runner = runner
        self.compatibility_checker = compatibility_checker or HostCompatibilityChecker(
            escalation_command=self.settings.commands.escalation,
            ldconfig_command=self.settings.commands.ldconfig[0],
        )

    def validate_source(self, source_dir: Path) -> Path:
        """Resolve the staged tree and check that it looks like a toolchain."""
        source = Path(os.path.realpath(source_dir))
        if not source.is_dir():
            raise InstallationError(
                f"Source directory not found: {source}",
                {"source": str(source)},
                exit_code=exit_codes.NOT_FOUND,
            )
        if not (source / "bin").is_dir():
            raise InstallationError(
                f"Directory doesn't look like a gcc install (missing bin): {source}",
                {"source": str(source)},
                exit_code=exit_codes.NOT_A_TOOLCHAIN,
            )
        return source

    def resolve_destination(self, version: str, options: InstallOptions) -> Path:
        if options.prefix:
            return Path(os.path.realpath(options.prefix))
        return self.layout.default_prefix(version)

    def perform_installation(
        self, source_dir: Path, options: Optional[InstallOptions] = None
    ) -> Dict[str, Any]:
        """Install ``source_dir`` according to ``options``.

        Stops on the first precondition failure. Registration steps run in a
        fixed order: linker configuration, command symlinks, profile fragment.
        """
        options = options or InstallOptions()
        source = self.validate_source(source_dir)
        version = detect_version(
            source,
            runner=self.runner,
            timeout=self.settings.commands.version_timeout,
        )
        destination = self.resolve_destination(version, options)

        results = {
            "source": str(source),
            "prefix": str(destination),
            "version": version,
            "steps_completed": [],
            "skipped": [],
            "warnings": [],
            "symlinks": [],
            "ld_conf_file": None,
            "profile_file": None,
            "timestamp": datetime.now().isoformat(),
        }
        log = logger.bind(prefix=str(destination), version=version)
        log.info("install_started", source=str(source))

        host_report = self.compatibility_checker.check_host(
            source, destination, needs_registration=options.system_registration
        )
        results["warnings"].extend(host_report["warnings"])

        self.copy_tree(source, destination, results)

        if options.system_registration:
            self.register_linker_paths(version, destination, results)
        else:
            results["skipped"].append("LFS mode: ldconfig and ld.so.conf registration")

        if options.link_registration:
            self.create_symlinks(destination, options.force_links, results)
        elif options.lfs_mode:
            results["skipped"].append("LFS mode: command symlinks")
        else:
            results["skipped"].append("--no-register: command symlinks")

        if options.system_registration:
            self.write_profile(version, destination, results)
        else:
            results["skipped"].append(
                f"LFS mode: profile fragment (add {destination}/bin to PATH manually)"
            )

        log.info("install_finished", steps=len(results["steps_completed"]))
        return results

    def copy_tree(self, source: Path, destination: Path, results: Dict[str, Any]) -> None:
        if source == destination:
            results["skipped"].append("Source and destination are the same; nothing to copy")
            logger.info("copy_skipped", reason="same_path", path=str(source))
            return

        self.executor.make_dirs(destination.parent)
        self.executor.mirror_tree(source, destination)
        results["steps_completed"].append(f"Mirrored {source} to {destination}")

    def register_linker_paths(
        self, version: str, destination: Path, results: Dict[str, Any]
    ) -> None:
        conf_file = self.layout.ld_conf_path(version)
        self.executor.write_file(conf_file, render_ld_conf(destination))
        results["ld_conf_file"] = str(conf_file)
        results["steps_completed"].append(
            f"Added {destination}/lib and {destination}/lib64 to {conf_file}"
        )

        if self.executor.run(self.settings.commands.ldconfig, best_effort=True):
            results["steps_completed"].append("Refreshed dynamic linker cache")
        else:
            results["warnings"].append(
                "ldconfig failed; run it manually to refresh the linker cache"
            )

    def create_symlinks(
        self, destination: Path, force_links: bool, results: Dict[str, Any]
    ) -> None:
        for program in INSTALL_PROGRAMS:
            binary = destination / "bin" / program
            if not is_executable_file(binary):
                continue

            link = self.layout.choose_bin_dir() / program
            if entry_exists(link):
                if not force_links:
                    results["skipped"].append(f"{link} already exists, skipping")
                    logger.info("symlink_skipped", link=str(link), reason="exists")
                    continue
                backup = self._backup_path(link)
                self.executor.rename(link, backup)
                results["steps_completed"].append(f"Backed up existing {link} to {backup}")
                logger.info("symlink_backed_up", link=str(link), backup=str(backup))

            self.executor.symlink(binary, link)
            results["symlinks"].append(str(link))
            results["steps_completed"].append(f"Created symlink: {link} -> {binary}")
            logger.info("symlink_created", link=str(link), target=str(binary))

    def write_profile(
        self, version: str, destination: Path, results: Dict[str, Any]
    ) -> None:
        profile_file = self.layout.profile_path(version)
        self.executor.write_file(profile_file, render_profile(destination))
        if not self.executor.chmod(profile_file, 0o644):
            results["warnings"].append(f"Could not set mode 644 on {profile_file}")
        results["profile_file"] = str(profile_file)
        results["steps_completed"].append(
            f"Created {profile_file} to add {destination}/bin to PATH"
        )

    @staticmethod
    def _backup_path(link: Path) -> Path:
        """``<link>.backup.<unix-ts>``, suffixed with ``.N`` until unused."""
        base = link.with_name(f"{link.name}.backup.{int(time.time())}")
        candidate = base
        counter = 1
        while entry_exists(candidate):
            candidate = base.with_name(f"{base.name}.{counter}")
            counter += 1
        return candidate

    def rollback_hints(self, results: Dict[str, Any]) -> List[str]:
        """Manual undo steps for what this run created."""
        hints = []
        if results["symlinks"]:
            hints.append(f"Remove symlinks: sudo rm -f {' '.join(results['symlinks'])}")
        if results["ld_conf_file"]:
            hints.append(f"Remove {results['ld_conf_file']} and run sudo ldconfig")
        if results["profile_file"]:
            hints.append(f"Remove {results['profile_file']}")
        hints.append(f"Remove the installed tree: sudo rm -rf {results['prefix']}")
        return hints
