from __future__ import annotations

import codecs
import os
import stat
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING

from epistle.config import DEFAULT_MAX_FILE_SIZE_BYTES, PRUNED_DIRS, ScannedFile, ScanResult
from epistle.exceptions import ScanError
from epistle.logging import logger
from epistle.patterns import IgnoreResolver

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence

SNIFF_BYTES = 8192


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def display_path(rel: str) -> str:
    """Make a relative path safe to print.

    File names that are not valid UTF-8 come back from the OS with surrogate
    escapes; their undecodable bytes are shown as U+FFFD instead.
    """
    return rel.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def looks_binary(chunk: bytes) -> bool:
    """Check whether a leading chunk of a file looks binary.

    A NUL byte, or bytes that are not valid UTF-8, mark the chunk as binary. A
    multi-byte sequence cut at the end of the chunk is not an error.

    Args:
        chunk (bytes): the first bytes of the file

    Returns:
        bool: True if the chunk looks binary, False otherwise
    """
    if b"\x00" in chunk:
        return True
    decoder = codecs.getincrementaldecoder("utf-8")()
    try:
        decoder.decode(chunk, final=False)
    except UnicodeDecodeError:
        return True
    return False


def iter_candidate_files(root: Path) -> Iterator[Path]:
    """Yield every file entry under `root`, without following directory symlinks.

    Args:
        root (Path): the root directory to walk

    Raises:
        ScanError: if a directory cannot be listed.

    Yields:
        Path: file entries (including symlinks) under `root`
    """

    def on_error(exc: OSError) -> None:
        raise ScanError(path=Path(exc.filename or root), reason=exc.strerror or str(exc)) from exc

    for current, dirs, files in os.walk(root, onerror=on_error, followlinks=False):
        dirs[:] = sorted(d for d in dirs if d not in PRUNED_DIRS)
        for name in sorted(files):
            yield Path(current) / name


def resolve_regular_file(path: Path) -> tuple[Path, os.stat_result] | None:
    """Resolve a walked entry to a regular file.

    Symlinks are resolved exactly once; broken links and links to anything but
    a regular file are skipped, as are non-regular entries.

    Args:
        path (Path): the entry to resolve

    Raises:
        OSError: if the entry itself cannot be stat-ed.

    Returns:
        tuple[Path, os.stat_result] | None: the effective path and its stat result,
            or None if the entry should be skipped
    """
    st = path.lstat()
    if stat.S_ISLNK(st.st_mode):
        try:
            target = Path(os.path.realpath(path))
            st = target.stat()
        except OSError:
            return None
        if not stat.S_ISREG(st.st_mode):
            return None
        return target, st
    if not stat.S_ISREG(st.st_mode):
        return None
    return path, st


def classify_file(rel: str, path: Path, size: int, max_file_size: int) -> ScannedFile:
    """Classify a file as binary, oversized or inlineable text.

    Args:
        rel (str): the root-relative path of the file
        path (Path): the effective path to read
        size (int): the file size in bytes
        max_file_size (int): inline threshold; a text file of exactly this size is inlined

    Raises:
        OSError: if the file cannot be read.

    Returns:
        ScannedFile: the classified file record
    """
    with path.open("rb") as f:
        head = f.read(SNIFF_BYTES)
        if looks_binary(head):
            return ScannedFile(path=rel, absolute_path=path, size=size, is_binary=True)
        if size > max_file_size:
            # a NUL past the sniffed prefix still marks an oversized file binary
            for chunk in iter(partial(f.read, SNIFF_BYTES), b""):
                if b"\x00" in chunk:
                    return ScannedFile(path=rel, absolute_path=path, size=size, is_binary=True)
            return ScannedFile(path=rel, absolute_path=path, size=size, is_oversized=True)

    data = path.read_bytes()
    if b"\x00" in data:
        return ScannedFile(path=rel, absolute_path=path, size=size, is_binary=True)
    return ScannedFile(
        path=rel,
        absolute_path=path,
        size=size,
        content=data.decode("utf-8", errors="replace"),
    )


def walk_files(
    root: Path,
    is_ignored: Callable[[str], bool],
    max_file_size: int = DEFAULT_MAX_FILE_SIZE_BYTES,
) -> ScanResult:
    """Enumerate, filter and classify every file under `root`.

    Files are read one at a time. Paths rejected by `is_ignored` are counted and
    never touched on disk.

    Args:
        root (Path): the resolved root directory
        is_ignored (Callable[[str], bool]): ignore predicate over root-relative paths
        max_file_size (int): inline threshold in bytes

    Raises:
        ScanError: on any I/O failure for a path that passed filtering.

    Returns:
        ScanResult: the path-sorted files and the ignored count
    """
    files: list[ScannedFile] = []
    ignored = 0
    for entry in iter_candidate_files(root):
        rel = display_path(relpath(entry, root))
        if is_ignored(rel):
            ignored += 1
            continue
        try:
            resolved = resolve_regular_file(entry)
            if resolved is None:
                continue
            effective, st = resolved
            files.append(classify_file(rel, effective, st.st_size, max_file_size))
        except OSError as e:
            raise ScanError(path=entry, reason=e.strerror or str(e)) from e

    files.sort(key=lambda f: f.path)
    return ScanResult(files=files, ignored_count=ignored)


def scan(
    root: str | Path,
    exclude_globs: Sequence[str] = (),
    include_globs: Sequence[str] = (),
    max_file_size: int = DEFAULT_MAX_FILE_SIZE_BYTES,
) -> ScanResult:
    """Scan a source tree into an immutable snapshot of files.

    Args:
        root (str | Path): directory to scan
        exclude_globs (Sequence[str]): extra gitignore-style exclude patterns
        include_globs (Sequence[str]): patterns re-included after every exclude source
        max_file_size (int): inline threshold in bytes (default 100 KiB)

    Raises:
        ScanError: if the walk hits an I/O error; no partial result is returned.

    Returns:
        ScanResult: the scanned files sorted by path, and the ignored count
    """
    root_path = Path(root).resolve()
    if not root_path.is_dir():
        raise ScanError(path=root_path, reason="not a directory")

    resolver = IgnoreResolver.from_sources(root_path, exclude_globs, include_globs)
    result = walk_files(root_path, resolver.is_ignored, max_file_size)
    logger.info(
        "scan_complete",
        root=str(root_path),
        files=len(result.files),
        ignored=result.ignored_count,
        binary=sum(1 for f in result.files if f.is_binary),
        oversized=sum(1 for f in result.files if f.is_oversized),
    )
    return result
