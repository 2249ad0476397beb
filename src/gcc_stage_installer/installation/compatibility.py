"""Host pre-flight checks before touching the system."""

import os
import platform
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

import psutil

# Command-line markers of our own console scripts.
INSTALLER_PROCESS_MARKERS = (
    "gcc-stage",
    "install-gcc-from-dir",
    "uninstall-gcc-from-dir",
)


class HostCompatibilityChecker:
    """Checks host tools, platform, disk space and competing runs.

    Nothing here blocks an installation; every finding is a warning.
    """

    def __init__(self, escalation_command: str = "sudo", ldconfig_command: str = "ldconfig"):
        self.platform = platform.system().lower()
        self.escalation_command = escalation_command
        self.ldconfig_command = ldconfig_command

    def check_host(
        self,
        source_dir: Optional[Path] = None,
        destination: Optional[Path] = None,
        needs_registration: bool = True,
    ) -> Dict[str, Any]:
        """Run every check and collect the findings."""
        report = {"warnings": [], "host_info": {}}

        platform_check = self.check_platform_support()
        report["host_info"]["platform"] = platform_check
        if needs_registration and not platform_check["supported"]:
            report["warnings"].append(platform_check["message"])

        tools_check = self.check_host_tools(needs_registration)
        report["host_info"]["tools"] = tools_check
        if tools_check["missing"]:
            report["warnings"].append(
                f"Host tools not found on PATH: {', '.join(tools_check['missing'])}"
            )

        if source_dir is not None and destination is not None:
            disk_check = self.check_disk_space(source_dir, destination)
            report["host_info"]["disk"] = disk_check
            if not disk_check["sufficient"]:
                report["warnings"].append(disk_check["message"])

        concurrent = self.check_concurrent_runs()
        report["host_info"]["concurrent_runs"] = concurrent
        if concurrent:
            report["warnings"].append(
                f"Other installer processes are running (pids {', '.join(map(str, concurrent))}); "
                "runs against the same prefix must not overlap"
            )

        return report

    def check_platform_support(self) -> Dict[str, Any]:
        """ld.so.conf.d and profile.d registration only exist on Linux."""
        if self.platform == "linux":
            return {
                "supported": True,
                "platform": self.platform,
                "message": f"{platform.system()} {platform.release()} is supported",
            }
        return {
            "supported": False,
            "platform": self.platform,
            "message": f"{platform.system()} has no ld.so.conf.d; registration may not work",
        }

    def check_host_tools(self, needs_registration: bool = True) -> Dict[str, Any]:
        tools = ["rsync"]
        if os.geteuid() != 0:
            tools.append(self.escalation_command)
        if needs_registration:
            tools.append(self.ldconfig_command)

        found = {tool: shutil.which(tool) for tool in tools}
        return {
            "found": {tool: path for tool, path in found.items() if path},
            "missing": [tool for tool, path in found.items() if not path],
        }

    def check_disk_space(self, source_dir: Path, destination: Path) -> Dict[str, Any]:
        """Compare the staged tree's size with free space at the destination."""
        try:
            required = _tree_size(source_dir)
            free = psutil.disk_usage(str(_existing_ancestor(destination))).free
        except OSError:
            return {"sufficient": True, "message": "Could not check disk space"}

        required_mb = required // (1024 * 1024)
        available_mb = free // (1024 * 1024)
        if free >= required:
            return {
                "sufficient": True,
                "required_mb": required_mb,
                "available_mb": available_mb,
                "message": f"{available_mb}MB available (≥{required_mb}MB required)",
            }
        return {
            "sufficient": False,
            "required_mb": required_mb,
            "available_mb": available_mb,
            "message": f"Insufficient disk space: {available_mb}MB available, {required_mb}MB required",
        }

    def check_concurrent_runs(self) -> List[int]:
        """PIDs of other installer/uninstaller processes."""
        me = os.getpid()
        pids = []
        for proc in psutil.process_iter(["pid", "cmdline"]):
            try:
                cmdline = proc.info.get("cmdline") or []
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
            if proc.info["pid"] == me:
                continue
            if any(
                os.path.basename(arg) in INSTALLER_PROCESS_MARKERS for arg in cmdline[:2]
            ):
                pids.append(proc.info["pid"])
        return pids


def _tree_size(root: Path) -> int:
    total = 0
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            path = os.path.join(dirpath, name)
            if not os.path.islink(path):
                total += os.path.getsize(path)
    return total


def _existing_ancestor(path: Path) -> Path:
    for candidate in [path] + list(path.parents):
        if candidate.exists():
            return candidate
    return Path("/")
