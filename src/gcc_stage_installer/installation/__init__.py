"""Installation and uninstallation of staged toolchains."""

from .compatibility import HostCompatibilityChecker
from .confirmation import (
    AssumeYesConfirmation,
    ConfirmationPolicy,
    DryRunConfirmation,
    InteractiveConfirmation,
    build_confirmation,
)
from .layout import SystemLayout
from .manager import InstallationError, InstallationManager, InstallOptions
from .privilege import PrivilegedExecutor, PrivilegeError
from .uninstaller import UninstallationError, UninstallationManager, UninstallTarget

__all__ = [
    "AssumeYesConfirmation",
    "ConfirmationPolicy",
    "DryRunConfirmation",
    "HostCompatibilityChecker",
    "InstallationError",
    "InstallationManager",
    "InstallOptions",
    "InteractiveConfirmation",
    "PrivilegeError",
    "PrivilegedExecutor",
    "SystemLayout",
    "UninstallationError",
    "UninstallationManager",
    "UninstallTarget",
    "build_confirmation",
]
