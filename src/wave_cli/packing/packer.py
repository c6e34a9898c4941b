"""
Layer packing for build contexts and container layers.

Turns a directory tree into a deterministic gzipped tarball. Packing the same
tree with the same ignore rules and timestamp mode always produces the same
bytes, whatever the file system iteration order, clock or host.

Archives are assembled in memory, so a layer is bounded by the available
process memory; the layer size limits keep real inputs far below that.
"""

import base64
import gzip
import hashlib
import io
import logging
import os
import stat
import tarfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from ..core.exceptions import PackError
from .ignore import IgnoreFilter

log = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:"
COMPRESS_LEVEL = 9


@dataclass(frozen=True)
class PackedLayer:
    """A compressed filesystem layer, inline or referenced by URL."""

    location: str = field(repr=False)
    digest: str  # sha256 of the compressed bytes
    compressed_size: int
    uncompressed_size: Optional[int] = None
    tar_digest: Optional[str] = None  # sha256 of the uncompressed tar
    data: Optional[bytes] = field(default=None, repr=False)
    source: Optional[str] = None

    @property
    def is_inline(self) -> bool:
        return self.location.startswith(DATA_URI_PREFIX)

    @classmethod
    def external(
        cls,
        location: str,
        digest: str,
        compressed_size: int,
        tar_digest: Optional[str] = None,
    ) -> "PackedLayer":
        """Create a layer referencing compressed bytes stored elsewhere."""
        return cls(
            location=location,
            digest=digest,
            compressed_size=compressed_size,
            tar_digest=tar_digest,
            source=location,
        )


def sha256_digest(data: bytes) -> str:
    return "sha256:" + hashlib.sha256(data).hexdigest()


def collect_entries(
    root: Path, ignore: Optional[IgnoreFilter] = None
) -> List[Tuple[str, Path]]:
    """
    Recursively collect directory entries not excluded by the ignore rules.

    Symlinks are listed but never followed.

    Args:
        root: Directory to scan
        ignore: Ignore rules, or None to include everything

    Returns:
        List of (relative POSIX path, absolute path), sorted by relative path

    Raises:
        PackError: If a directory cannot be listed
    """
    ignore = ignore or IgnoreFilter()
    # excluded directories must still be walked when a "!" rule may re-include
    # something below them
    descend_excluded = ignore.has_exceptions
    entries: List[Tuple[str, Path]] = []

    def walk(directory: Path, prefix: str) -> None:
        try:
            with os.scandir(directory) as it:
                children = sorted(it, key=lambda e: e.name)
        except OSError as e:
            raise PackError(
                f"Unable to read directory: {directory} - {e}", path=str(directory)
            ) from e

        for child in children:
            rel_path = f"{prefix}{child.name}"
            is_dir = child.is_dir(follow_symlinks=False)
            excluded = not ignore.is_empty and ignore.matches(
                rel_path, is_directory=is_dir
            )

            if excluded:
                log.debug(f"Ignoring: {rel_path}")
            else:
                entries.append((rel_path, Path(child.path)))

            if is_dir and (not excluded or descend_excluded):
                walk(Path(child.path), f"{rel_path}/")

    walk(root, "")
    entries.sort(key=lambda entry: entry[0])
    return entries


def _tar_info(rel_path: str, path: Path, preserve_timestamps: bool) -> tarfile.TarInfo:
    try:
        st = path.lstat()
        linkname = os.readlink(path) if stat.S_ISLNK(st.st_mode) else ""
    except OSError as e:
        raise PackError(f"Unable to read file: {path} - {e}", path=str(path)) from e

    info = tarfile.TarInfo(rel_path)
    info.mode = stat.S_IMODE(st.st_mode)
    info.mtime = int(st.st_mtime) if preserve_timestamps else 0
    info.uid = info.gid = 0
    info.uname = info.gname = ""

    if stat.S_ISLNK(st.st_mode):
        info.type = tarfile.SYMTYPE
        info.linkname = linkname
    elif stat.S_ISDIR(st.st_mode):
        info.type = tarfile.DIRTYPE
    elif stat.S_ISREG(st.st_mode):
        info.type = tarfile.REGTYPE
        info.size = st.st_size
    else:
        raise PackError(f"Unsupported file type: {path}", path=str(path))

    return info


def make_tar(
    entries: List[Tuple[str, Path]], preserve_timestamps: bool = False
) -> bytes:
    """
    Write the given entries into an uncompressed tar archive.

    Args:
        entries: Sorted (relative path, absolute path) pairs
        preserve_timestamps: Keep file modification times instead of epoch 0

    Returns:
        The tar archive bytes
    """
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for rel_path, path in entries:
            info = _tar_info(rel_path, path, preserve_timestamps)
            if info.isreg():
                try:
                    with open(path, "rb") as fh:
                        tar.addfile(info, fh)
                except OSError as e:
                    raise PackError(
                        f"Unable to read file: {path} - {e}", path=str(path)
                    ) from e
            else:
                tar.addfile(info)
    return buffer.getvalue()


def gzip_bytes(data: bytes) -> bytes:
    """Compress with a fixed gzip header (no file name, mtime 0)."""
    buffer = io.BytesIO()
    with gzip.GzipFile(
        filename="", mode="wb", fileobj=buffer, compresslevel=COMPRESS_LEVEL, mtime=0
    ) as gz:
        gz.write(data)
    return buffer.getvalue()


def pack_layer(
    directory: Path,
    ignore: Optional[IgnoreFilter] = None,
    preserve_timestamps: bool = False,
) -> PackedLayer:
    """
    Pack a directory into an inline layer.

    Args:
        directory: Directory to pack; it becomes the archive root
        ignore: Ignore rules applied to paths relative to the directory
        preserve_timestamps: Keep file modification times instead of epoch 0

    Returns:
        PackedLayer with the compressed bytes, sizes and digests

    Raises:
        PackError: If the directory is missing, not a directory or unreadable
    """
    root = Path(directory)
    if not root.exists():
        raise PackError(f"Path does not exist: {root}", path=str(root))
    if not root.is_dir():
        raise PackError(f"Not a directory: {root}", path=str(root))

    entries = collect_entries(root, ignore)
    tar_bytes = make_tar(entries, preserve_timestamps)
    gzip_data = gzip_bytes(tar_bytes)

    layer = PackedLayer(
        location=DATA_URI_PREFIX + base64.b64encode(gzip_data).decode("ascii"),
        digest=sha256_digest(gzip_data),
        compressed_size=len(gzip_data),
        uncompressed_size=len(tar_bytes),
        tar_digest=sha256_digest(tar_bytes),
        data=gzip_data,
        source=str(root),
    )

    log.debug(
        f"Packed {len(entries)} entries from {root} "
        f"({layer.uncompressed_size} -> {layer.compressed_size} bytes, {layer.digest})"
    )
    return layer
