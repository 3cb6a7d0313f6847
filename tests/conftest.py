"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import io
import tarfile
import tempfile
from pathlib import Path

import pytest

from deployerd.github import Target


def build_tarball(files: dict[str, bytes | str], *, gzip: bool = True) -> bytes:
    """Return a tar archive holding ``files`` (path -> content)."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz" if gzip else "w") as tar:
        for name, content in files.items():
            data = content.encode() if isinstance(content, str) else content
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def destination(temp_dir):
    """Directory snapshots are unpacked into."""
    return temp_dir / "deploy"


@pytest.fixture
def target():
    return Target("octocat", "hello-world")


@pytest.fixture
def make_tarball():
    """Factory building gzip tarballs in memory."""
    return build_tarball
