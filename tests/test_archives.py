"""Tests for archive discovery, signature detection and removal."""

import logging
import zipfile

import pytest

from jarseal.archives import (
    MANIFEST_NAME,
    find_archives,
    is_archive_signed,
    is_signature_file,
    scan_directory,
    unsign_archive,
)
from jarseal.models import JarsignerConfig

from conftest import MANIFEST, create_dummy_signed_jar, create_dummy_zip


class TestSignatureFiles:
    """Recognizing signature entries."""

    @pytest.mark.parametrize(
        "name",
        ["META-INF/MYKEY.SF", "META-INF/MYKEY.RSA", "META-INF/a.dsa", "META-INF/K.EC", "META-INF/SIG-X"],
    )
    def test_signature_entries(self, name):
        assert is_signature_file(name)

    @pytest.mark.parametrize(
        "name",
        ["META-INF/MANIFEST.MF", "META-INF/", "META-INF/sub/KEY.SF", "KEY.SF", "lib/META-INF/KEY.RSA"],
    )
    def test_other_entries(self, name):
        assert not is_signature_file(name)

    def test_is_archive_signed(self, project_dir):
        assert is_archive_signed(create_dummy_signed_jar(project_dir / "signed.jar"))
        assert not is_archive_signed(create_dummy_zip(project_dir / "plain.jar"))

    def test_is_archive_signed_bad_zip(self, project_dir):
        broken = project_dir / "broken.jar"
        broken.write_text("nope")

        with pytest.raises(OSError):
            is_archive_signed(broken)


class TestUnsign:
    """Removing signatures in place."""

    def test_unsign(self, project_dir):
        jar = create_dummy_signed_jar(project_dir / "signed.jar")

        unsign_archive(jar)

        with zipfile.ZipFile(jar) as zf:
            names = zf.namelist()
            manifest = zf.read(MANIFEST_NAME)
            payload = zf.read("Hello.class")
        assert not any(n.startswith("META-INF/MYKEY") for n in names)
        assert manifest == MANIFEST
        assert payload == b"\xca\xfe\xba\xbe"
        assert sorted(p.name for p in project_dir.iterdir()) == ["signed.jar"]

    def test_unsign_unsigned_archive_is_harmless(self, main_jar):
        unsign_archive(main_jar)

        with zipfile.ZipFile(main_jar) as zf:
            assert zf.read(MANIFEST_NAME) == MANIFEST

    def test_unsign_bad_zip_leaves_file(self, project_dir):
        broken = project_dir / "broken.jar"
        broken.write_bytes(b"garbage")

        with pytest.raises(OSError):
            unsign_archive(broken)

        assert broken.read_bytes() == b"garbage"
        assert sorted(p.name for p in project_dir.iterdir()) == ["broken.jar"]


class TestDiscovery:
    """Finding the archives a run processes."""

    def test_scan_default_includes(self, project_dir):
        create_dummy_zip(project_dir / "a.jar")
        create_dummy_zip(project_dir / "sub" / "b.war")
        create_dummy_zip(project_dir / "c.zip")
        (project_dir / "notes.txt").write_text("x")

        found = scan_directory(project_dir, ["**/*.?ar"], [])

        assert [p.relative_to(project_dir).as_posix() for p in found] == ["a.jar", "sub/b.war"]

    def test_scan_excludes(self, project_dir):
        create_dummy_zip(project_dir / "a.jar")
        create_dummy_zip(project_dir / "a-sources.jar")

        found = scan_directory(project_dir, ["*.jar"], ["*-sources.jar"])

        assert [p.name for p in found] == ["a.jar"]

    def test_single_archive_wins(self, project_dir, main_jar):
        create_dummy_zip(project_dir / "other.jar")
        config = JarsignerConfig(archive=main_jar, archive_directory=project_dir)

        assert find_archives(config, extra=[project_dir / "other.jar"]) == [main_jar]

    def test_extra_and_directory_combined(self, tmp_path, project_dir, main_jar):
        outside = create_dummy_zip(tmp_path / "outside.jar")
        config = JarsignerConfig(archive_directory=project_dir)

        assert find_archives(config, extra=[outside, main_jar]) == [outside, main_jar]

    def test_unsupported_artifact_skipped(self, project_dir, caplog):
        caplog.set_level(logging.INFO, logger="jarseal")
        pom = project_dir / "pom.xml"
        pom.write_text("<project/>")
        config = JarsignerConfig(verbose=True)

        assert find_archives(config, extra=[pom]) == []
        assert f"Unsupported artifact {pom}" in caplog.text

    def test_missing_directory(self, tmp_path):
        config = JarsignerConfig(archive_directory=tmp_path / "missing")

        with pytest.raises(OSError):
            find_archives(config)
