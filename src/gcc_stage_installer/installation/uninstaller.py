"""Uninstallation of a toolchain installed by the installer.

There is no manifest of what an installation created. The uninstaller
reconstructs the target prefix from the command line or from ld.so.conf.d,
then proposes each removal only when the artifact provably belongs to that
prefix: symlinks by their target, registration files by their content.
"""

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .. import exit_codes
from ..config.logging import get_logger
from ..config.settings import Settings
from .confirmation import ConfirmationPolicy, InteractiveConfirmation
from .layout import (
    UNINSTALL_PROGRAMS,
    SystemLayout,
    is_executable_file,
    references_prefix,
)
from .privilege import PrivilegedExecutor

logger = get_logger(__name__)

LIB_DIR_NAMES = ("lib", "lib64")


class UninstallationError(Exception):
    """Uninstallation-related error with context information."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        exit_code: int = exit_codes.NOT_FOUND,
    ):
        self.message = message
        self.details = details or {}
        self.exit_code = exit_code
        super().__init__(message)


@dataclass
class UninstallTarget:
    """The prefix to remove and how it was found."""

    prefix: Path
    version: Optional[str]
    source: str  # "prefix", "version" or the ld.so.conf.d file it came from


@dataclass
class PlannedRemoval:
    kind: str
    path: Path
    prompt: str
    action: Callable[[], None]
    detail: str = ""


class UninstallationManager:
    """Reverses the registration steps of an installation."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        executor: Optional[PrivilegedExecutor] = None,
        confirmation: Optional[ConfirmationPolicy] = None,
    ):
        self.settings = settings or Settings()
        self.layout = SystemLayout(self.settings.layout)
        self.executor = executor or PrivilegedExecutor(
            escalation_command=self.settings.commands.escalation
        )
        self.confirmation = confirmation or InteractiveConfirmation()

    # Target resolution

    def resolve_target(
        self, prefix: Optional[Path] = None, version: Optional[str] = None
    ) -> UninstallTarget:
        """Work out which installation to remove. Never mutates anything."""
        if prefix:
            resolved = Path(os.path.realpath(prefix))
            if resolved == resolved.parent:
                raise UninstallationError(
                    f"Refusing to uninstall from the filesystem root: {prefix}",
                    {"prefix": str(prefix), "resolved": str(resolved)},
                    exit_code=exit_codes.USAGE,
                )
            return UninstallTarget(
                prefix=resolved,
                version=self.layout.version_from_prefix(resolved),
                source="prefix",
            )

        if version:
            return UninstallTarget(
                prefix=self.layout.default_prefix(version),
                version=version,
                source="version",
            )

        return self.detect_target()

    def detect_target(self) -> UninstallTarget:
        """Find an installation through its ld.so.conf.d registration."""
        candidates = self.layout.ld_conf_candidates()
        for conf_file in candidates:
            try:
                lines = conf_file.read_text().splitlines()
            except OSError as e:
                logger.warning("ld_conf_unreadable", file=str(conf_file), error=str(e))
                continue

            for line in lines:
                entry = line.strip()
                if not entry or entry.startswith("#"):
                    continue
                found = self._prefix_for_entry(Path(entry))
                if found:
                    logger.info("prefix_detected", prefix=str(found), file=str(conf_file))
                    return UninstallTarget(
                        prefix=found,
                        version=self.layout.version_from_ld_conf(conf_file),
                        source=str(conf_file),
                    )

        raise UninstallationError(
            "Could not detect installed GCC prefix. Provide --prefix or --version.",
            {"searched": [str(c) for c in candidates], "ld_conf_dir": str(self.layout.ld_conf_dir)},
        )

    @staticmethod
    def _prefix_for_entry(entry: Path) -> Optional[Path]:
        # Registration files list <prefix>/lib and <prefix>/lib64.
        candidates = [entry]
        if entry.name in LIB_DIR_NAMES:
            candidates.append(entry.parent)
        for candidate in candidates:
            if candidate == candidate.parent:
                continue
            if candidate.is_dir() and is_executable_file(candidate / "bin" / "gcc"):
                return candidate
        return None

    # Gates

    @staticmethod
    def symlink_belongs_to(link: Path, prefix: Path, program: str) -> bool:
        """True if ``link`` points at ``<prefix>/bin/<program>``.

        Only the link side is resolved. When ``<prefix>/bin`` is itself one
        of the symlink directories, ``link`` is the prefix's own entry and
        never counts as pointing into it.
        """
        if not link.is_symlink():
            return False
        expected = os.path.normpath(os.path.join(str(prefix), "bin", program))
        if os.path.normpath(str(link)) == expected:
            return False

        raw = os.readlink(link)
        immediate = os.path.normpath(os.path.join(str(link.parent), raw))
        if immediate == expected:
            return True
        return os.path.realpath(link) == expected

    @staticmethod
    def file_references_prefix(path: Path, prefix: Path) -> bool:
        if not path.is_file():
            return False
        try:
            return references_prefix(path.read_text(), prefix)
        except OSError as e:
            logger.warning("file_unreadable", file=str(path), error=str(e))
            return False

    # Planning

    def plan_removals(self, target: UninstallTarget, remove_tree: bool) -> List[PlannedRemoval]:
        """Every artifact that passes its ownership gate, in removal order."""
        prefix = target.prefix
        plan: List[PlannedRemoval] = []

        for program in UNINSTALL_PROGRAMS:
            for directory in self.layout.bin_dirs:
                link = directory / program
                if self.symlink_belongs_to(link, prefix, program):
                    link_target = os.path.realpath(link)
                    plan.append(PlannedRemoval(
                        kind="symlink",
                        path=link,
                        prompt=f"Remove symlink {link} -> {link_target}?",
                        action=lambda link=link: self.executor.remove_file(link),
                        detail=link_target,
                    ))
                elif link.is_symlink():
                    logger.info("symlink_not_owned", link=str(link), prefix=str(prefix))

        if target.version:
            conf_file = self.layout.ld_conf_path(target.version)
            if self.file_references_prefix(conf_file, prefix):
                plan.append(PlannedRemoval(
                    kind="ld_conf",
                    path=conf_file,
                    prompt=f"Remove ld config {conf_file} and run ldconfig?",
                    action=lambda: self._remove_ld_conf(conf_file),
                ))
            elif conf_file.exists():
                logger.info("ld_conf_not_owned", file=str(conf_file), prefix=str(prefix))

            profile_file = self.layout.profile_path(target.version)
            if self.file_references_prefix(profile_file, prefix):
                plan.append(PlannedRemoval(
                    kind="profile",
                    path=profile_file,
                    prompt=f"Remove profile fragment {profile_file}?",
                    action=lambda: self.executor.remove_file(profile_file),
                ))
            elif profile_file.exists():
                logger.info("profile_not_owned", file=str(profile_file), prefix=str(prefix))

        if remove_tree and prefix.is_dir():
            plan.append(PlannedRemoval(
                kind="tree",
                path=prefix,
                prompt=f"Remove installed tree {prefix}? This cannot be undone.",
                action=lambda: self.executor.remove_tree(prefix),
            ))

        return plan

    def get_uninstall_preview(
        self, target: UninstallTarget, remove_tree: bool = False
    ) -> Dict[str, Any]:
        """Preview what would be removed, without prompting."""
        preview = {"will_remove": [], "warnings": []}
        for removal in self.plan_removals(target, remove_tree):
            label = f"{removal.kind}: {removal.path}"
            if removal.detail:
                label += f" -> {removal.detail}"
            preview["will_remove"].append(label)

        if remove_tree and not target.prefix.is_dir():
            preview["warnings"].append(f"{target.prefix} not found, skipping tree removal")
        if not target.version:
            preview["warnings"].append(
                "Version unknown; ld.so.conf.d and profile.d entries will not be touched"
            )
        return preview

    # Execution

    def perform_uninstallation(
        self, target: UninstallTarget, remove_tree: bool = False
    ) -> Dict[str, Any]:
        """Confirm and remove each artifact independently.

        A failed or declined removal never stops the remaining ones. Only a
        failed privilege escalation propagates.
        """
        results = {
            "prefix": str(target.prefix),
            "version": target.version,
            "dry_run": self.executor.dry_run,
            "removed_items": [],
            "skipped_items": [],
            "planned_actions": [],
            "warnings": [],
            "errors": [],
            "timestamp": datetime.now().isoformat(),
        }
        log = logger.bind(prefix=str(target.prefix), version=target.version)
        log.info("uninstall_started", source=target.source, policy=self.confirmation.name)

        if remove_tree and not target.prefix.is_dir():
            results["warnings"].append(f"{target.prefix} not found, skipping tree removal")

        for removal in self.plan_removals(target, remove_tree):
            label = f"{removal.kind}: {removal.path}"
            if not self.confirmation.confirm(removal.prompt):
                results["skipped_items"].append(label)
                log.info("removal_declined", kind=removal.kind, path=str(removal.path))
                continue

            try:
                removal.action()
            except OSError as e:
                results["errors"].append(f"{label}: {e}")
                log.error("removal_failed", kind=removal.kind, path=str(removal.path), error=str(e))
                continue

            if self.executor.dry_run:
                results["planned_actions"].append(label)
            else:
                results["removed_items"].append(label)
                log.info("removed", kind=removal.kind, path=str(removal.path))

        log.info(
            "uninstall_finished",
            removed=len(results["removed_items"]),
            errors=len(results["errors"]),
        )
        return results

    def _remove_ld_conf(self, conf_file: Path) -> None:
        self.executor.remove_file(conf_file)
        self.executor.run(self.settings.commands.ldconfig, best_effort=True)
