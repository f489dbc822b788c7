"""
Code Archive Manager

Downloads function source archives into ``<root>/<function name>`` and reads
them back for display.

Extraction is all-or-nothing: every entry is checked against the destination
before anything is written, and files are staged in a temporary directory so
a bad archive never touches an earlier download.
"""

import io
import logging
import os
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import TYPE_CHECKING, List

from ..core.exceptions import ArchiveIntegrityError, CodeNotDownloadedError, F6nError

if TYPE_CHECKING:
    from ..providers.base import Provider

logger = logging.getLogger("f6n.archive")

MAX_FILE_BYTES = 100 * 1024
STAGING_PREFIX = ".f6n-extract-"

CODE_EXTENSIONS = frozenset(
    {
        ".js", ".py", ".go", ".java", ".php", ".rb", ".cs", ".cpp", ".c", ".h",
        ".hpp", ".ts", ".jsx", ".tsx", ".html", ".css", ".scss", ".less", ".json",
        ".yaml", ".yml", ".xml", ".md", ".txt", ".sh", ".bat", ".ps1", ".sql",
        ".r", ".scala", ".kt", ".swift", ".dart", ".rs", ".lua", ".pl", ".pm",
    }
)  # fmt: skip


def is_code_file(path: Path) -> bool:
    return path.suffix.lower() in CODE_EXTENSIONS


def _validate_entries(zf: zipfile.ZipFile, root: Path) -> None:
    for info in zf.infolist():
        name = info.filename
        if not name or "\x00" in name:
            raise ArchiveIntegrityError("invalid entry name in archive", name)
        normalized = name.replace("\\", "/")
        if normalized.startswith("/") or (len(normalized) > 1 and normalized[1] == ":"):
            raise ArchiveIntegrityError("absolute path in archive", name)
        target = (root / normalized).resolve()
        if target != root and root not in target.parents:
            raise ArchiveIntegrityError("illegal file path in archive", name)


def _check_conflicts(staged: Path, root: Path) -> None:
    for path in sorted(staged.rglob("*")):
        target = root / path.relative_to(staged)
        if path.is_dir():
            clash = target.exists() and (target.is_symlink() or not target.is_dir())
        else:
            clash = target.is_dir()
        if clash:
            raise ArchiveIntegrityError(
                "archive entry conflicts with existing download", path.relative_to(staged).as_posix()
            )


def extract_zip(data: bytes, destination: Path) -> List[Path]:
    """
    Extract a zip archive into ``destination``.

    Existing files with the same relative path are overwritten; other files
    already in ``destination`` are kept.

    Returns:
        Relative paths of the extracted files.

    Raises:
        ArchiveIntegrityError: Corrupt archive, an entry escaping ``destination``,
            or an entry whose file/directory type clashes with what is
            already there. Nothing is written in any of these cases.
    """
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)
    root = destination.resolve()

    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise ArchiveIntegrityError(f"corrupt archive: {e}") from e

    with zf:
        _validate_entries(zf, root)
        with tempfile.TemporaryDirectory(prefix=STAGING_PREFIX, dir=root.parent) as staging:
            try:
                zf.extractall(staging)
            except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError) as e:
                raise ArchiveIntegrityError(f"corrupt archive: {e}") from e
            staged = Path(staging)
            extracted = sorted(p.relative_to(staged) for p in staged.rglob("*") if p.is_file())
            _check_conflicts(staged, root)
            shutil.copytree(staged, root, dirs_exist_ok=True)

    logger.info(f"Extracted {len(extracted)} files to {root}")
    return extracted


class CodeArchiveManager:
    """Owns the download root; one subdirectory per function."""

    def __init__(self, provider: "Provider", root: Path | str = "downloads"):
        self.provider = provider
        self.root = Path(root)
        self.remove_stale_staging()

    def remove_stale_staging(self) -> None:
        """Delete staging directories left by an extraction that was killed."""
        if not self.root.is_dir():
            return
        for path in self.root.glob(f"{STAGING_PREFIX}*"):
            if path.is_dir() and not path.is_symlink():
                logger.info(f"Removing stale staging directory {path}")
                shutil.rmtree(path, ignore_errors=True)

    def destination_for(self, function_name: str) -> Path:
        if (
            not function_name
            or function_name in (".", "..")
            or "/" in function_name
            or "\\" in function_name
        ):
            raise F6nError(f"invalid function name for download: {function_name!r}")
        return self.root / function_name

    def download(self, function_name: str) -> Path:
        """
        Download and extract the function's source.

        The destination directory is created before the provider is asked for
        the code, so it exists even when the source type is unsupported.

        Returns:
            Absolute path of the destination directory.
        """
        destination = self.destination_for(function_name)
        if destination.is_dir() and any(destination.iterdir()):
            logger.info(f"Overwriting existing download in {destination}")
        destination.mkdir(parents=True, exist_ok=True)

        self.provider.download_function_code(function_name, destination)
        logger.info(f"Code for {function_name} downloaded to {destination}")
        return destination.resolve()

    def read_code_files(self, function_name: str) -> str:
        """
        Concatenate all code files under the function's download directory.

        Raises:
            CodeNotDownloadedError: Nothing has been downloaded for the function.
        """
        directory = self.destination_for(function_name)
        if not directory.is_dir():
            raise CodeNotDownloadedError(function_name)

        parts = [f"📁 Code Files for {function_name}\n", "═" * 39 + "\n\n"]
        found = 0
        for dirpath, dirnames, filenames in os.walk(directory):
            dirnames.sort()
            for filename in sorted(filenames):
                path = Path(dirpath) / filename
                if not is_code_file(path):
                    continue
                found += 1
                parts.append(f"📄 {path.relative_to(directory).as_posix()}\n")
                parts.append("─" * 37 + "\n")
                try:
                    raw = path.read_bytes()
                except OSError as e:
                    parts.append(f"Error reading file: {e}\n\n")
                    continue
                if len(raw) > MAX_FILE_BYTES:
                    parts.append(
                        f"File too large ({len(raw)} bytes). Showing first 100KB...\n\n"
                    )
                    raw = raw[:MAX_FILE_BYTES]
                parts.append(raw.decode("utf-8", errors="replace"))
                parts.append("\n\n")

        if not found:
            parts.append("No code files found in the downloaded directory.\n")
            parts.append("The download may contain only configuration files or archives.")

        return "".join(parts)
