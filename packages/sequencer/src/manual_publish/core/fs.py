import os
import shutil
import stat
import tempfile
from pathlib import Path

from .time import utc_now_iso


def ensure_parent(path: Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def safe_unlink(path: os.PathLike[str] | str) -> None:
    try:
        Path(path).unlink(missing_ok=True)
    except OSError:
        return


def fsync_dir(parent: Path) -> None:
    """
    Ensure directory entry durability after atomic rename.
    """
    fd: int | None = None
    try:
        fd = os.open(parent, os.O_RDONLY)
        os.fsync(fd)
    finally:
        if fd is not None:
            os.close(fd)


def atomic_write_text(
    path: Path,
    text: str,
    *,
    encoding: str = "utf-8",
    newline: str = "\n",
    mode: int = 0o644,
) -> None:
    """
    Atomically write text to `path`.

    Guarantees:
      - readers either see the old complete file or the new complete file
      - no partial/truncated file on crash
      - temp file written in the same directory (atomic replace works)
      - file contents are fsync()'d before replace
    """
    path = Path(path)
    ensure_parent(path)

    fd: int | None = None
    tmp_path: Path | None = None

    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.",
            suffix=".tmp",
            dir=str(path.parent),
            text=True,
        )
        tmp_path = Path(tmp_name)

        with os.fdopen(fd, "w", encoding=encoding, newline=newline) as f:
            fd = None
            f.write(text)
            f.flush()
            os.fsync(f.fileno())

        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)

        fsync_dir(path.parent)

    finally:
        if fd is not None:
            os.close(fd)
        if tmp_path is not None and tmp_path.exists():
            safe_unlink(tmp_path)


def make_writable(path: Path) -> None:
    """
    Add owner write permission to `path` and everything below it.
    """
    path = Path(path)
    if path.is_symlink() or not path.exists():
        return
    for p in [path, *path.rglob("*")]:
        if p.is_symlink():
            continue
        mode = p.stat().st_mode
        if not mode & stat.S_IWUSR:
            p.chmod(mode | stat.S_IWUSR)


def remove_tree(path: Path) -> None:
    """
    Remove a directory tree, including read-only entries.
    """
    path = Path(path)
    if not path.exists() and not path.is_symlink():
        return
    if path.is_symlink() or path.is_file():
        path.unlink()
        return
    make_writable(path)
    shutil.rmtree(path)


def copy_tree_writable(src: Path, dst: Path) -> int:
    """
    Copy the contents of `src` into `dst` as plain, owner-writable files.

    Symlinks are followed. Only the executable bit is carried over from the
    source mode, so a tree copied out of a read-only store can later be
    replaced or deleted. Returns the number of files copied.
    """
    src = Path(src).resolve()
    dst = Path(dst)
    dst.mkdir(parents=True, exist_ok=True)

    copied = 0
    for root, dirs, files in os.walk(src, followlinks=True):
        dirs.sort()
        rel = Path(root).relative_to(src)
        target_dir = dst / rel
        target_dir.mkdir(parents=True, exist_ok=True)
        for name in sorted(files):
            s = Path(root) / name
            d = target_dir / name
            shutil.copyfile(s, d)
            executable = s.stat().st_mode & stat.S_IXUSR
            d.chmod(0o755 if executable else 0o644)
            copied += 1
    return copied


def atomic_dir_swap(final_dir: Path, tmp_dir: Path) -> None:
    """
    Swap tmp_dir into final_dir with rollback.
    """

    final_dir = Path(final_dir)
    tmp_dir = Path(tmp_dir)
    parent = final_dir.parent
    parent.mkdir(parents=True, exist_ok=True)

    stamp = utc_now_iso().replace(":", "").replace("-", "").replace(".", "")
    backup_dir = parent / f".{final_dir.name}.old.{stamp}"

    if final_dir.exists():
        remove_tree(backup_dir)
        final_dir.rename(backup_dir)

    try:
        tmp_dir.rename(final_dir)
    except OSError:
        if backup_dir.exists() and not final_dir.exists():
            backup_dir.rename(final_dir)
        raise
    finally:
        remove_tree(backup_dir)


def make_tmp_dir_for(final_dir: Path) -> Path:
    """
    Create a temp dir next to final_dir (same filesystem) so rename is atomic.
    """
    final_dir = Path(final_dir)
    final_dir.parent.mkdir(parents=True, exist_ok=True)
    tmp = tempfile.mkdtemp(prefix=f".{final_dir.name}.tmp.", dir=str(final_dir.parent))
    return Path(tmp)


def replace_dir_contents(*, src: Path, final_dir: Path) -> int:
    """
    Replace everything under `final_dir` with a writable copy of `src`.

    The copy is staged next to `final_dir` and swapped in, so `final_dir`
    never holds a mix of old and new files. Siblings of `final_dir` are
    not touched. Returns the number of files copied.
    """
    final_dir = Path(final_dir)
    tmp_dir = make_tmp_dir_for(final_dir)
    try:
        copied = copy_tree_writable(src, tmp_dir)
        os.chmod(tmp_dir, 0o755)
        atomic_dir_swap(final_dir, tmp_dir)
    finally:
        remove_tree(tmp_dir)
    return copied
