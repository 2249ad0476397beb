"""Pytest configuration and shared fixtures."""

import os
import subprocess
from pathlib import Path
from typing import Callable, Dict
from unittest.mock import MagicMock

import pytest
import structlog

from gcc_stage_installer.config.settings import (
    CommandsConfig,
    LayoutConfig,
    LoggingConfig,
    Settings,
)
from gcc_stage_installer.installation.privilege import PrivilegedExecutor

FAKE_GCC = """#!/bin/sh
case "$1" in
  -dumpfullversion) {full} ;;
  -dumpversion) {short} ;;
  --version) {banner} ;;
esac
exit 0
"""


def _echo(text: str) -> str:
    return f'echo "{text}"' if text else "true"


@pytest.fixture(autouse=True)
def reset_structlog():
    """Keep logging configuration from leaking between tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def make_compiler() -> Callable[..., Path]:
    """Factory writing a fake gcc that answers version queries."""

    def _make(
        path: Path,
        full: str = "14.1.0",
        short: str = "14",
        banner: str = "gcc (GCC) 14.1.0",
    ) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            FAKE_GCC.format(full=_echo(full), short=_echo(short), banner=_echo(banner))
        )
        path.chmod(0o755)
        return path

    return _make


@pytest.fixture
def staged_tree(tmp_path, make_compiler) -> Path:
    """A staged toolchain reporting version 14.1.0."""
    stage = tmp_path / "stage"
    for subdir in ("bin", "include", "lib", "lib64", "libexec", "share/man/man1"):
        (stage / subdir).mkdir(parents=True)

    make_compiler(stage / "bin" / "gcc")
    for program in ("g++", "cpp", "cc", "gcov"):
        make_compiler(stage / "bin" / program)

    (stage / "include" / "stdio-extra.h").write_text("/* header */\n")
    (stage / "lib" / "libgcc_s.so.1").write_bytes(b"\x7fELF fake library")
    (stage / "lib64" / "libstdc++.so.6").write_bytes(b"\x7fELF fake c++ library")
    os.symlink("libstdc++.so.6", stage / "lib64" / "libstdc++.so")
    (stage / "share" / "man" / "man1" / "gcc.1").write_text(".TH GCC 1\n")
    return stage


@pytest.fixture
def system_root(tmp_path) -> Dict[str, Path]:
    """Stand-ins for /opt, /etc/ld.so.conf.d, /etc/profile.d and bin dirs."""
    root = tmp_path / "root"
    paths = {
        "install_root": root / "opt",
        "ld_conf_dir": root / "etc" / "ld.so.conf.d",
        "profile_dir": root / "etc" / "profile.d",
        "usr_bin": root / "usr" / "bin",
        "usr_local_bin": root / "usr" / "local" / "bin",
    }
    for path in paths.values():
        path.mkdir(parents=True)
    paths["root"] = root
    return paths


@pytest.fixture
def settings(system_root) -> Settings:
    return Settings(
        layout=LayoutConfig(
            install_root=str(system_root["install_root"]),
            ld_conf_dir=str(system_root["ld_conf_dir"]),
            profile_dir=str(system_root["profile_dir"]),
            bin_dirs=[str(system_root["usr_bin"]), str(system_root["usr_local_bin"])],
        ),
        commands=CommandsConfig(escalation="sudo", ldconfig=["ldconfig"]),
        logging=LoggingConfig(level="DEBUG"),
    )


@pytest.fixture
def runner() -> MagicMock:
    """Stands in for subprocess.run on privileged commands."""
    return MagicMock(
        side_effect=lambda argv, **kwargs: subprocess.CompletedProcess(argv, 0)
    )


@pytest.fixture
def executor(runner) -> PrivilegedExecutor:
    return PrivilegedExecutor(runner=runner, is_privileged=True)


def snapshot(root: Path) -> Dict[str, str]:
    """Map every path under ``root`` to a description of what it is."""
    state = {}
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            path = Path(dirpath) / name
            rel = str(path.relative_to(root))
            if path.is_symlink():
                state[rel] = "link:" + os.readlink(path)
            elif path.is_dir():
                state[rel] = "dir"
            else:
                state[rel] = "file:" + path.read_bytes().hex()
    return state


@pytest.fixture
def take_snapshot() -> Callable[[Path], Dict[str, str]]:
    return snapshot
