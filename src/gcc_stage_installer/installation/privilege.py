"""Privilege-escalating executor for filesystem mutations.

Every change the installer or uninstaller makes outside its own process goes
through :class:`PrivilegedExecutor`. A mutation is first tried in-process; if
that fails with ``PermissionError`` and we are not already root, the same
change is retried as an external command behind the escalation wrapper
(``sudo`` by default). When the wrapper itself fails the error is fatal.
As root there is nothing to escalate to, so the ``PermissionError`` is
raised unchanged and callers treat it like any other ``OSError``.
"""

import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..config.logging import get_logger
from . import filesystem

logger = get_logger(__name__)


class PrivilegeError(Exception):
    """Privilege escalation failed; carries the wrapper's exit status."""

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.returncode = returncode
        self.details = details or {}
        super().__init__(message)


def _format(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(a)) for a in argv)


class PrivilegedExecutor:
    """Runs filesystem mutations, escalating privileges when required."""

    def __init__(
        self,
        escalation_command: str = "sudo",
        dry_run: bool = False,
        runner: Optional[Callable] = None,
        is_privileged: Optional[bool] = None,
    ):
        self.escalation_command = escalation_command
        self.dry_run = dry_run
        self.runner = runner or subprocess.run
        self.is_privileged = (
            os.geteuid() == 0 if is_privileged is None else is_privileged
        )
        self.planned_actions: List[str] = []

    # Low-level plumbing

    def _plan(self, description: str) -> bool:
        """Record a dry-run action; True means the caller must stop here."""
        if not self.dry_run:
            return False
        self.planned_actions.append(description)
        logger.info("dry_run", action=description)
        return True

    def _escalate(self, *commands: Sequence[str]) -> None:
        for argv in commands:
            full = [self.escalation_command] + [str(a) for a in argv]
            logger.info("escalating", command=_format(full))
            try:
                result = self.runner(full, check=False)
            except OSError as e:
                raise PrivilegeError(
                    f"Cannot run {self.escalation_command}: {e}",
                    details={"command": _format(full)},
                )
            if result.returncode != 0:
                raise PrivilegeError(
                    f"Privileged command failed: {_format(full)}",
                    returncode=result.returncode,
                    details={"command": _format(full)},
                )

    def _mutate(
        self,
        description: str,
        action: Callable[[], None],
        *fallback: Sequence[str],
    ) -> None:
        if self._plan(description):
            return
        try:
            action()
        except PermissionError as e:
            if self.is_privileged:
                raise
            logger.info("permission_denied", action=description, error=str(e))
            self._escalate(*fallback)
        logger.debug("applied", action=description)

    # Mutations

    def make_dirs(self, path: Path) -> None:
        self._mutate(
            f"mkdir -p {path}",
            lambda: path.mkdir(parents=True, exist_ok=True),
            ["mkdir", "-p", path],
        )

    def mirror_tree(self, src: Path, dest: Path) -> None:
        # rsync reads the trailing slash as "contents of"
        self._mutate(
            f"rsync -a --delete {src}/ {dest}/",
            lambda: filesystem.mirror_tree(src, dest),
            ["rsync", "-a", "--delete", f"{src}/", f"{dest}/"],
        )

    def write_file(self, path: Path, content: str, mode: int = 0o644) -> None:
        """Replace ``path`` with ``content`` as a single whole-file write."""
        if self._plan(f"write {path}"):
            return
        self.make_dirs(path.parent)
        try:
            filesystem.write_file_atomic(path, content, mode)
        except PermissionError as e:
            if self.is_privileged:
                raise
            logger.info("permission_denied", action=f"write {path}", error=str(e))
            tmp_file = filesystem.write_temp_file(content)
            try:
                self._escalate(["mv", tmp_file, path])
            finally:
                if tmp_file.exists():
                    tmp_file.unlink()
            self.chmod(path, mode)
        logger.debug("applied", action=f"write {path}")

    def chmod(self, path: Path, mode: int) -> bool:
        """Best-effort permission change; False on any failure."""
        try:
            self._mutate(
                f"chmod {mode:o} {path}",
                lambda: os.chmod(path, mode),
                ["chmod", f"{mode:o}", path],
            )
        except (OSError, PrivilegeError) as e:
            logger.warning("chmod_failed", path=str(path), error=str(e))
            return False
        return True

    def symlink(self, target: Path, link: Path) -> None:
        self._mutate(
            f"ln -s {target} {link}",
            lambda: os.symlink(target, link),
            ["ln", "-s", target, link],
        )

    def rename(self, src: Path, dest: Path) -> None:
        self._mutate(
            f"mv {src} {dest}",
            lambda: os.rename(src, dest),
            ["mv", src, dest],
        )

    def remove_file(self, path: Path) -> None:
        def unlink():
            if filesystem.entry_exists(path):
                path.unlink()

        self._mutate(f"rm -f {path}", unlink, ["rm", "-f", path])

    def remove_tree(self, path: Path) -> None:
        def rmtree():
            if path.is_symlink():
                path.unlink()
            elif path.exists():
                shutil.rmtree(path)

        self._mutate(f"rm -rf {path}", rmtree, ["rm", "-rf", path])

    def run(self, argv: Sequence[str], best_effort: bool = False) -> bool:
        """Run a system command that needs elevated rights.

        With ``best_effort`` any failure is logged and reported as False
        instead of raised.
        """
        argv = [str(a) for a in argv]
        if self._plan(_format(argv)):
            return True
        try:
            if self.is_privileged:
                result = self.runner(argv, check=False)
                if result.returncode != 0:
                    raise PrivilegeError(
                        f"Command failed: {_format(argv)}",
                        returncode=result.returncode,
                    )
            else:
                self._escalate(argv)
        except (OSError, PrivilegeError) as e:
            if not best_effort:
                raise
            logger.warning("command_failed", command=_format(argv), error=str(e))
            return False
        return True
