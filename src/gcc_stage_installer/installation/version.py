"""Compiler version detection for staged toolchains."""

import subprocess
from pathlib import Path
from typing import Callable, List, Optional

from ..config.logging import get_logger
from .layout import DEFAULT_VERSION, is_executable_file

logger = get_logger(__name__)


def _first_line(output: str) -> str:
    lines = output.strip().splitlines()
    return lines[0].strip() if lines else ""


def _banner_version(output: str) -> str:
    # "gcc (GCC) 14.1.0" -> "14.1.0"
    fields = _first_line(output).split()
    return fields[2] if len(fields) >= 3 else ""


# Tried in order; each maps the query's stdout to a version or "".
VERSION_QUERIES = [
    (["-dumpfullversion"], _first_line),
    (["-dumpversion"], _first_line),
    (["--version"], _banner_version),
]


def detect_version(
    source_dir: Path,
    runner: Callable = subprocess.run,
    timeout: int = 10,
    compiler: str = "gcc",
) -> str:
    """Ask the staged compiler for its version.

    Falls back to ``local`` when the compiler is missing, not executable,
    or none of the queries produce output.
    """
    binary = source_dir / "bin" / compiler
    if not is_executable_file(binary):
        logger.info("compiler_not_found", binary=str(binary), version=DEFAULT_VERSION)
        return DEFAULT_VERSION

    for args, parse in VERSION_QUERIES:
        output = _query(runner, [str(binary)] + args, timeout)
        if output is None:
            continue
        version = parse(output)
        if version:
            logger.debug("version_detected", query=args[0], version=version)
            return version

    logger.warning("version_undetected", binary=str(binary), version=DEFAULT_VERSION)
    return DEFAULT_VERSION


def _query(runner: Callable, argv: List[str], timeout: int) -> Optional[str]:
    try:
        result = runner(
            argv,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("version_query_failed", argv=argv, error=str(e))
        return None
    return result.stdout or ""
