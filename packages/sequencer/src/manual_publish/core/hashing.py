import hashlib
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class FileDigest:
    sha256: str
    bytes: int


@dataclass(frozen=True)
class TreeDigest:
    sha256: str
    files: int
    bytes: int


def sha256_file(path: Path, *, chunk_bytes: int = 1024 * 1024) -> FileDigest:
    h = hashlib.sha256()
    total = 0
    with path.open("rb") as f:
        while True:
            b = f.read(chunk_bytes)
            if not b:
                break
            h.update(b)
            total += len(b)

    return FileDigest(sha256=h.hexdigest(), bytes=total)


def sha256_tree(root: Path) -> TreeDigest:
    """
    Content digest of a directory tree.

    Covers relative paths and file contents only, so two trees with the same
    files hash the same regardless of timestamps or permissions.
    """
    root = Path(root).resolve()
    h = hashlib.sha256()
    files = 0
    total = 0
    for p in sorted(root.rglob("*"), key=lambda x: x.relative_to(root).as_posix()):
        if not p.is_file():
            continue
        d = sha256_file(p)
        h.update(f"{d.sha256}  {p.relative_to(root).as_posix()}\n".encode("utf-8"))
        files += 1
        total += d.bytes
    return TreeDigest(sha256=h.hexdigest(), files=files, bytes=total)
