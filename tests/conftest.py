"""Shared fixtures for jarseal tests."""

import zipfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from jarseal.models import Commandline, ToolResult
from jarseal.tool import JarSigner


COMMANDLINE = Commandline(executable="jarsigner", arguments=("my-project.jar", "myalias"))
RESULT_OK = ToolResult(exit_code=0, commandline=COMMANDLINE)
RESULT_ERROR = ToolResult(exit_code=1, commandline=COMMANDLINE)

MANIFEST = b"Manifest-Version: 1.0\r\nCreated-By: jarseal tests\r\n\r\n"
SIGNED_MANIFEST = (
    MANIFEST
    + b"Name: Hello.class\r\nSHA-256-Digest: 0123456789abcdef=\r\n\r\n"
)


def create_dummy_zip(path: Path) -> Path:
    """Write a minimal, unsigned archive to path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("META-INF/MANIFEST.MF", MANIFEST)
        zf.writestr("Hello.class", b"\xca\xfe\xba\xbe")
    return path


def create_dummy_signed_jar(path: Path) -> Path:
    """Write an archive that looks like jarsigner has signed it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("META-INF/MANIFEST.MF", SIGNED_MANIFEST)
        zf.writestr("META-INF/MYKEY.SF", b"Signature-Version: 1.0\r\n\r\n")
        zf.writestr("META-INF/MYKEY.RSA", b"\x30\x00")
        zf.writestr("Hello.class", b"\xca\xfe\xba\xbe")
    return path


def create_archives(directory: Path, count: int) -> list[Path]:
    """Create count dummy archives named archive0.jar ... in directory."""
    return [create_dummy_zip(directory / f"archive{i}.jar") for i in range(count)]


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A throwaway project directory."""
    path = tmp_path / "dummy-project"
    path.mkdir()
    return path


@pytest.fixture
def main_jar(project_dir: Path) -> Path:
    """An unsigned archive named my-project.jar."""
    return create_dummy_zip(project_dir / "my-project.jar")


@pytest.fixture
def jarsigner() -> MagicMock:
    """A JarSigner stand-in that succeeds unless told otherwise."""
    mock = MagicMock(spec=JarSigner)
    mock.execute.return_value = RESULT_OK
    return mock


@pytest.fixture
def wait_strategy() -> MagicMock:
    """A wait strategy that records calls instead of sleeping."""
    return MagicMock()
