"""Archive helpers: discovery, signature detection and signature removal.

Signature files are the entries jarsigner writes directly under
``META-INF/``::

    META-INF/
    ├── MANIFEST.MF     # per-entry digest sections are added by signing
    ├── <SIGFILE>.SF    # signature file
    ├── <SIGFILE>.RSA   # signature block (.DSA / .EC for other key types)
    └── SIG-<name>      # vendor specific signature files
"""

import fnmatch
import logging
import os
import re
import tempfile
import zipfile
from pathlib import Path
from typing import Optional, Sequence

from .models import JarsignerConfig

logger = logging.getLogger("jarseal.archives")

MANIFEST_NAME = "META-INF/MANIFEST.MF"

_SIGNATURE_SUFFIXES = (".SF", ".DSA", ".RSA", ".EC")
_SECTION_BREAK = re.compile(rb"\r?\n\r?\n")


# ---------------------------------------------------------------------------
# Inspection
# ---------------------------------------------------------------------------


def is_zip_file(path: Path) -> bool:
    """Return True if path is an existing file in ZIP format."""
    return path.is_file() and zipfile.is_zipfile(path)


def is_signature_file(entry_name: str) -> bool:
    """Return True if a ZIP entry name is a jar signature file.

    Only entries directly inside ``META-INF/`` count; signature files in
    nested directories are ordinary content.
    """
    if not entry_name.upper().startswith("META-INF/"):
        return False
    name = entry_name[len("META-INF/"):]
    if not name or "/" in name:
        return False
    upper = name.upper()
    return upper.endswith(_SIGNATURE_SUFFIXES) or upper.startswith("SIG-")


def is_archive_signed(path: Path) -> bool:
    """Return True if the archive carries at least one signature file.

    Args:
        path: Archive to inspect.

    Raises:
        OSError: If the archive cannot be read.
    """
    try:
        with zipfile.ZipFile(path) as zf:
            return any(is_signature_file(n) for n in zf.namelist())
    except zipfile.BadZipFile as exc:
        raise OSError(f"{path} is not a valid archive: {exc}") from exc


# ---------------------------------------------------------------------------
# Signature removal
# ---------------------------------------------------------------------------


def _unsigned_manifest(manifest: bytes) -> bytes:
    """Keep only the main section of a manifest.

    Signing adds one ``Name:`` section per entry holding its digest; the
    main attributes come before the first blank line.
    """
    match = _SECTION_BREAK.search(manifest)
    if match is None:
        return manifest
    newline = b"\r\n" if b"\r\n" in match.group(0) else b"\n"
    return manifest[: match.start()] + newline + newline


def unsign_archive(path: Path) -> None:
    """Remove all signatures from an archive, in place.

    Signature files are dropped and the manifest is reduced to its main
    section. The archive is rewritten to a temporary file next to the
    original and moved over it, so a failure leaves the original intact.

    Args:
        path: Archive to rewrite.

    Raises:
        OSError: If the archive cannot be read or written.
    """
    try:
        with zipfile.ZipFile(path) as source:
            fd, tmp_name = tempfile.mkstemp(
                prefix=path.name, suffix=".unsigned", dir=path.parent
            )
            os.close(fd)
            tmp_path = Path(tmp_name)
            try:
                with zipfile.ZipFile(tmp_path, "w") as target:
                    for info in source.infolist():
                        if is_signature_file(info.filename):
                            logger.debug("Removing %s from %s", info.filename, path)
                            continue
                        data = source.read(info)
                        if info.filename.upper() == MANIFEST_NAME:
                            data = _unsigned_manifest(data)
                        target.writestr(info, data)
                os.replace(tmp_path, path)
            except BaseException:
                tmp_path.unlink(missing_ok=True)
                raise
    except zipfile.BadZipFile as exc:
        raise OSError(f"{path} is not a valid archive: {exc}") from exc


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _excluded(relative: str, excludes: Sequence[str]) -> bool:
    return any(fnmatch.fnmatch(relative, pattern) for pattern in excludes)


def scan_directory(
    directory: Path, includes: Sequence[str], excludes: Sequence[str]
) -> list[Path]:
    """Glob a directory for files matching includes but not excludes.

    Args:
        directory: Root to scan.
        includes: Glob patterns relative to directory.
        excludes: fnmatch patterns matched against the relative posix path.

    Returns:
        Matching files, sorted and without duplicates.
    """
    found: set[Path] = set()
    for pattern in includes:
        for candidate in directory.glob(pattern):
            if not candidate.is_file():
                continue
            relative = candidate.relative_to(directory).as_posix()
            if _excluded(relative, excludes):
                continue
            found.add(candidate)
    return sorted(found)


def find_archives(
    config: JarsignerConfig, extra: Optional[Sequence[Path]] = None
) -> list[Path]:
    """Collect the archives a run should process.

    If ``config.archive`` is set, only that archive is returned. Otherwise
    the explicitly given paths are combined with a scan of
    ``config.archive_directory``. Candidates that are not ZIP files are
    skipped with an "Unsupported artifact" message.

    Args:
        config: Run configuration.
        extra: Additional candidate paths (e.g. from the command line).

    Returns:
        Archives in discovery order.

    Raises:
        OSError: If the archive directory cannot be scanned.
    """
    if config.archive is not None:
        return [config.archive]

    candidates: list[Path] = list(extra or [])
    if config.archive_directory is not None:
        if not config.archive_directory.is_dir():
            raise OSError(f"Not a directory: {config.archive_directory}")
        candidates.extend(
            scan_directory(config.archive_directory, config.includes, config.excludes)
        )

    archives: list[Path] = []
    for candidate in candidates:
        if candidate in archives:
            continue
        if is_zip_file(candidate):
            archives.append(candidate)
            continue
        if config.verbose:
            logger.info("Unsupported artifact %s", candidate)
        else:
            logger.debug("Unsupported artifact %s", candidate)
    return archives
