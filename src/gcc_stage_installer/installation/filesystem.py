"""In-process filesystem helpers used by the privileged executor."""

import os
import shutil
import tempfile
from pathlib import Path


def remove_entry(path: Path) -> None:
    """Remove a file, symlink or directory tree."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def entry_exists(path: Path) -> bool:
    """Like ``Path.exists`` but also true for dangling symlinks."""
    return path.exists() or path.is_symlink()


def _same_file(src: Path, dest: Path) -> bool:
    if dest.is_symlink() or not dest.is_file():
        return False
    src_stat = src.stat()
    dest_stat = dest.stat()
    return (
        src_stat.st_size == dest_stat.st_size
        and src_stat.st_mtime_ns == dest_stat.st_mtime_ns
    )


def mirror_tree(src: Path, dest: Path) -> None:
    """Make ``dest`` an exact copy of ``src``.

    Entries in ``dest`` that are not in ``src`` are deleted. Symlinks are
    copied as symlinks. Regular files whose size and mtime already match are
    left alone, so mirroring an unchanged tree twice is a no-op the second
    time.
    """
    dest.mkdir(parents=True, exist_ok=True)
    src_names = set(os.listdir(src))

    for name in sorted(os.listdir(dest)):
        if name not in src_names:
            remove_entry(dest / name)

    for name in sorted(src_names):
        src_entry = src / name
        dest_entry = dest / name

        if src_entry.is_symlink():
            link_target = os.readlink(src_entry)
            if dest_entry.is_symlink() and os.readlink(dest_entry) == link_target:
                continue
            if entry_exists(dest_entry):
                remove_entry(dest_entry)
            os.symlink(link_target, dest_entry)
        elif src_entry.is_dir():
            if entry_exists(dest_entry) and (
                dest_entry.is_symlink() or not dest_entry.is_dir()
            ):
                remove_entry(dest_entry)
            mirror_tree(src_entry, dest_entry)
        else:
            if _same_file(src_entry, dest_entry):
                continue
            if entry_exists(dest_entry):
                remove_entry(dest_entry)
            shutil.copy2(src_entry, dest_entry, follow_symlinks=False)

    shutil.copystat(src, dest)


def write_file_atomic(path: Path, content: str, mode: int = 0o644) -> None:
    """Replace ``path`` with ``content`` in one rename."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(content)
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def write_temp_file(content: str) -> Path:
    """Write ``content`` to a fresh file in the system temp directory."""
    fd, tmp_name = tempfile.mkstemp(prefix="gcc-stage-")
    with os.fdopen(fd, "w") as f:
        f.write(content)
    return Path(tmp_name)
