"""Unpack gzip tarball snapshots onto the destination directory."""

from __future__ import annotations

import gzip
import io
import logging
import tarfile
import zlib
from pathlib import Path, PurePosixPath

from .errors import DecodeError, DestinationIOError

_LOG = logging.getLogger(__name__)


def _strip_first_component(name: str) -> str:
    parts = PurePosixPath(name).parts
    return "/".join(parts[1:]) if len(parts) > 1 else ""


def _check_member(member: tarfile.TarInfo, destination: Path) -> None:
    """Reject members that would land outside ``destination``."""
    name = member.name
    if name.startswith(("/", "\\")) or PurePosixPath(name).is_absolute():
        raise DestinationIOError(f"Archive member has an absolute path: {name}")
    if ".." in PurePosixPath(name).parts:
        raise DestinationIOError(f"Archive member escapes destination: {name}")

    resolved = (destination / name).resolve()
    try:
        resolved.relative_to(destination.resolve())
    except ValueError as exc:
        raise DestinationIOError(f"Archive member escapes destination: {name}") from exc

    if member.issym() or member.islnk():
        # Symlink targets are relative to the member's directory, hardlink
        # targets to the archive root.
        base = (destination / name).parent if member.issym() else destination
        link_target = base / member.linkname
        try:
            link_target.resolve().relative_to(destination.resolve())
        except ValueError as exc:
            raise DestinationIOError(
                f"Archive link {name} points outside destination: {member.linkname}"
            ) from exc


def _select_members(
    tar: tarfile.TarFile,
    destination: Path,
    strip_top_level: bool,
) -> list[tarfile.TarInfo]:
    members = []
    for member in tar.getmembers():
        if strip_top_level:
            member.name = _strip_first_component(member.name)
            if not member.name:
                continue
            if member.islnk():
                member.linkname = _strip_first_component(member.linkname)
        _check_member(member, destination)
        members.append(member)
    return members


def materialize(
    content: bytes,
    destination: str | Path,
    *,
    strip_top_level: bool = False,
) -> int:
    """Extract a gzip-compressed tar archive onto ``destination``.

    Entries are written over whatever the directory already holds; files that
    are absent from the archive are left in place. Every member is read and
    validated before anything is written, so a corrupt or unsafe archive
    leaves the destination untouched.

    Args:
        content: Raw ``.tar.gz`` bytes
        destination: Directory to unpack into (created if missing)
        strip_top_level: Drop the first path component of every member
            (GitHub tarballs wrap the tree in ``<owner>-<repo>-<sha>/``)

    Returns:
        Number of regular files written

    Raises:
        DecodeError: If the bytes are not a complete gzip tar stream
        DestinationIOError: If the destination cannot be written or a member
            would escape it
    """
    destination = Path(destination)
    _LOG.info("Unpacking %d bytes into %s", len(content), destination)

    # gzip reports corrupt input as OSError, so reading is kept apart from writing.
    tar = None
    try:
        tar = tarfile.open(fileobj=io.BytesIO(content), mode="r:gz")
        tar.getmembers()
    except (tarfile.TarError, EOFError, OSError, zlib.error) as exc:
        if tar is not None:
            tar.close()
        raise DecodeError(f"Cannot decode archive: {exc}") from exc

    with tar:
        members = _select_members(tar, destination, strip_top_level)
        try:
            destination.mkdir(parents=True, exist_ok=True)
            for member in members:
                tar.extract(member, path=destination, filter="data")
        except tarfile.FilterError as exc:
            raise DestinationIOError(f"Refusing archive member: {exc}") from exc
        except (tarfile.TarError, EOFError, gzip.BadGzipFile, zlib.error) as exc:
            raise DecodeError(f"Cannot decode archive: {exc}") from exc
        except OSError as exc:
            raise DestinationIOError(f"Cannot write to {destination}: {exc}") from exc

    file_count = sum(1 for member in members if member.isfile())
    _LOG.info("Unpacked %d files into %s", file_count, destination)
    return file_count
