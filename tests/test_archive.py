"""Tests for unpacking snapshot archives."""

from __future__ import annotations

import io
import tarfile
from unittest.mock import patch

import pytest

from deployerd.archive import materialize
from deployerd.errors import DecodeError, DestinationIOError


def _tarball_with(*members: tarfile.TarInfo) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for info in members:
            tar.addfile(info, io.BytesIO(b"x" * info.size) if info.isfile() else None)
    return buf.getvalue()


class TestMaterialize:
    """Tests for successful extraction."""

    def test_round_trip_single_file(self, destination, make_tarball):
        """A file in the archive appears at the destination with its content."""
        count = materialize(make_tarball({"a.txt": "hello"}), destination)

        assert count == 1
        assert (destination / "a.txt").read_text() == "hello"

    def test_creates_missing_destination(self, temp_dir, make_tarball):
        """Nested destination directories are created on demand."""
        dest = temp_dir / "one" / "two"
        materialize(make_tarball({"a.txt": "hello"}), dest)
        assert (dest / "a.txt").exists()

    def test_nested_paths(self, destination, make_tarball):
        """Subdirectories inside the archive are recreated."""
        materialize(make_tarball({"src/pkg/mod.py": "x = 1\n", "README": "hi"}), destination)
        assert (destination / "src" / "pkg" / "mod.py").read_text() == "x = 1\n"
        assert (destination / "README").read_text() == "hi"

    def test_overlay_keeps_stale_files(self, destination, make_tarball):
        """Files missing from a newer archive are not removed."""
        materialize(make_tarball({"old.txt": "old", "a.txt": "v1"}), destination)
        materialize(make_tarball({"a.txt": "v2"}), destination)

        assert (destination / "a.txt").read_text() == "v2"
        assert (destination / "old.txt").read_text() == "old"

    def test_strip_top_level(self, destination, make_tarball):
        """The GitHub wrapper directory is dropped when requested."""
        tarball = make_tarball({
            "octocat-hello-world-abc123/a.txt": "hello",
            "octocat-hello-world-abc123/docs/b.md": "doc",
        })
        count = materialize(tarball, destination, strip_top_level=True)

        assert count == 2
        assert (destination / "a.txt").read_text() == "hello"
        assert (destination / "docs" / "b.md").read_text() == "doc"
        assert not (destination / "octocat-hello-world-abc123").exists()

    def test_without_strip_keeps_wrapper(self, destination, make_tarball):
        """Without stripping the archive layout is kept as-is."""
        materialize(make_tarball({"wrap/a.txt": "hello"}), destination)
        assert (destination / "wrap" / "a.txt").read_text() == "hello"


class TestMaterializeDecodeErrors:
    """Tests for archives that cannot be decoded."""

    def test_garbage_bytes(self, destination):
        with pytest.raises(DecodeError):
            materialize(b"this is not a tarball", destination)

    def test_empty_bytes(self, destination):
        with pytest.raises(DecodeError):
            materialize(b"", destination)

    def test_uncompressed_tar_rejected(self, destination, make_tarball):
        """A plain tar stream is not a gzip stream."""
        with pytest.raises(DecodeError):
            materialize(make_tarball({"a.txt": "hello"}, gzip=False), destination)

    def test_truncated_stream(self, destination, make_tarball):
        """A download cut short is reported as a decode failure."""
        payload = bytes(range(256)) * 4096
        tarball = make_tarball({"big.bin": payload})
        with pytest.raises(DecodeError):
            materialize(tarball[: len(tarball) // 2], destination)
        assert not destination.exists()

    def test_failed_decode_closes_archive(self, destination, make_tarball):
        """The tar handle is released when reading the members fails."""
        payload = bytes(range(256)) * 4096
        tarball = make_tarball({"big.bin": payload})
        with patch.object(
            tarfile.TarFile, "close", autospec=True, side_effect=tarfile.TarFile.close
        ) as close:
            with pytest.raises(DecodeError):
                materialize(tarball[: len(tarball) // 2], destination)
        close.assert_called_once()


class TestMaterializeUnsafeArchives:
    """Tests for archives whose members would escape the destination."""

    def test_parent_traversal(self, destination):
        info = tarfile.TarInfo("../escape.txt")
        info.size = 3
        with pytest.raises(DestinationIOError):
            materialize(_tarball_with(info), destination)
        assert not (destination.parent / "escape.txt").exists()

    def test_absolute_path(self, destination):
        info = tarfile.TarInfo("/tmp/deployerd-absolute.txt")
        info.size = 3
        with pytest.raises(DestinationIOError):
            materialize(_tarball_with(info), destination)

    def test_symlink_outside_destination(self, destination):
        link = tarfile.TarInfo("link")
        link.type = tarfile.SYMTYPE
        link.linkname = "../../etc/passwd"
        with pytest.raises(DestinationIOError):
            materialize(_tarball_with(link), destination)

    def test_unsafe_member_writes_nothing(self, destination):
        """Validation happens before any member is written."""
        good = tarfile.TarInfo("good.txt")
        good.size = 3
        bad = tarfile.TarInfo("../bad.txt")
        bad.size = 3
        with pytest.raises(DestinationIOError):
            materialize(_tarball_with(good, bad), destination)
        assert not (destination / "good.txt").exists()

    def test_hardlink_outside_destination_writes_nothing(self, destination):
        """A hardlink escaping the destination is caught before extraction."""
        good = tarfile.TarInfo("good.txt")
        good.size = 3
        link = tarfile.TarInfo("h")
        link.type = tarfile.LNKTYPE
        link.linkname = "../../../etc/passwd"
        with pytest.raises(DestinationIOError):
            materialize(_tarball_with(good, link), destination)
        assert not (destination / "good.txt").exists()
        assert not (destination / "h").exists()

    def test_hardlink_absolute_target(self, destination):
        link = tarfile.TarInfo("h")
        link.type = tarfile.LNKTYPE
        link.linkname = "/etc/passwd"
        with pytest.raises(DestinationIOError):
            materialize(_tarball_with(link), destination)
        assert not destination.exists()

    def test_hardlink_inside_destination(self, destination):
        """Hardlinks to other members of the archive are extracted."""
        original = tarfile.TarInfo("a.txt")
        original.size = 3
        link = tarfile.TarInfo("docs/b.txt")
        link.type = tarfile.LNKTYPE
        link.linkname = "a.txt"

        count = materialize(_tarball_with(original, link), destination)

        assert count == 1
        assert (destination / "docs" / "b.txt").read_bytes() == b"xxx"

    def test_destination_is_a_file(self, temp_dir, make_tarball):
        """An unwritable destination surfaces as DestinationIOError."""
        dest = temp_dir / "occupied"
        dest.write_text("not a directory")
        with pytest.raises(DestinationIOError):
            materialize(make_tarball({"a.txt": "hello"}), dest)

    def test_destination_error_is_oserror(self, temp_dir, make_tarball):
        dest = temp_dir / "occupied"
        dest.write_text("not a directory")
        with pytest.raises(OSError):
            materialize(make_tarball({"a.txt": "hello"}), dest)
