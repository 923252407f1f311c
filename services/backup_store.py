"""
Write-ahead backup store for submission artifacts.

Every submission's PDF and JSON are written here BEFORE any network
attempt. An entry stays until both artifacts are confirmed uploaded or an
operator purges it, so the device never loses an application it accepted.

Layout:
    {backup_dir}/{ref}.pdf
    {backup_dir}/{ref}.json
    {backup_dir}/pending_index.json    JSON array of pending references

All writes go through a temp file + os.replace(), so a crash leaves either
the old or the new version of a file, never a torn one.

Thread Safety:
    One lock per store guards every operation. The submission threads, the
    operator retry and the admin routes all share one BackupStore instance.

Usage:
    store = BackupStore(Path("data/pending_uploads"))
    store.save(pdf_bytes, json_bytes, "AFF-20261019-0001")
    for ref in store.list_pending():
        pdf, js = store.load(ref)
"""

from __future__ import annotations

import json
import os
import re
import shutil
import tempfile
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from core.exceptions import BackupError
from logging_config import get_logger
from modules.pdf_analyzer import PDFAnalyzer


logger = get_logger(__name__)

_SAFE_REFERENCE = re.compile(r"^[A-Za-z0-9_-]+$")


def format_size(num_bytes: int) -> str:
    """Human-readable size using decimal units (as file managers show them)."""
    if num_bytes < 1000:
        return f"{num_bytes} bytes"
    value = float(num_bytes)
    for unit in ("KB", "MB", "GB"):
        value /= 1000
        if value < 1000 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "KB" else f"{value:.1f} {unit}"
    return f"{num_bytes} bytes"


@dataclass
class BackupMetadata:
    """Summary of one pending backup, shown on the admin surface."""

    reference_number: str
    applicant_name: str
    created_at: datetime
    total_size: int
    pdf_pages: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reference_number": self.reference_number,
            "applicant_name": self.applicant_name,
            "created_at": self.created_at.isoformat(),
            "total_size": self.total_size,
            "formatted_size": format_size(self.total_size),
            "pdf_pages": self.pdf_pages,
        }


class BackupStore:
    """
    Durable per-reference storage for (PDF, JSON) pairs plus a pending index.

    Attributes:
        backup_dir: Directory holding the artifacts and the index
        export_root: Parent directory for export_all() output
    """

    INDEX_FILE_NAME = "pending_index.json"

    def __init__(
        self,
        backup_dir: Union[str, Path],
        export_root: Optional[Union[str, Path]] = None,
        pdf_analyzer: Optional[PDFAnalyzer] = None
    ):
        self.backup_dir = Path(backup_dir)
        self.export_root = Path(export_root) if export_root else Path(tempfile.gettempdir())
        self._analyzer = pdf_analyzer or PDFAnalyzer()
        self._lock = threading.RLock()

    @property
    def index_path(self) -> Path:
        return self.backup_dir / self.INDEX_FILE_NAME

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def save(self, pdf_bytes: bytes, json_bytes: bytes, reference_number: str) -> None:
        """
        Persist both artifacts, then add the reference to the pending index.

        Saving an already pending reference overwrites its files and leaves a
        single index entry.

        Raises:
            BackupError: Files or index could not be written
        """
        self._check_reference(reference_number, "save")

        with self._lock:
            try:
                self.backup_dir.mkdir(parents=True, exist_ok=True)
                self._atomic_write(self._pdf_path(reference_number), pdf_bytes)
                self._atomic_write(self._json_path(reference_number), json_bytes)

                pending = self._read_index()
                if reference_number not in pending:
                    pending.append(reference_number)
                    self._write_index(pending)
            except OSError as e:
                raise BackupError("save", reference_number, str(e)) from e

        logger.info(
            f"Backed up {reference_number} "
            f"({len(pdf_bytes)} bytes PDF, {len(json_bytes)} bytes JSON)"
        )

    def list_pending(self) -> List[str]:
        """References that are backed up and not yet confirmed uploaded."""
        with self._lock:
            return list(self._read_index())

    def load(self, reference_number: str) -> Optional[Tuple[bytes, bytes]]:
        """
        Read a pending pair.

        Returns:
            (pdf_bytes, json_bytes), or None if either file is missing
        """
        if not _SAFE_REFERENCE.match(reference_number or ""):
            return None

        with self._lock:
            try:
                return (
                    self._pdf_path(reference_number).read_bytes(),
                    self._json_path(reference_number).read_bytes(),
                )
            except FileNotFoundError:
                return None
            except OSError as e:
                logger.error(f"Failed to read backup {reference_number}: {e}")
                return None

    def remove(self, reference_number: str) -> None:
        """
        Delete both files and the index entry. Unknown references are a no-op.

        Raises:
            BackupError: Files exist but could not be deleted
        """
        if not _SAFE_REFERENCE.match(reference_number or ""):
            return

        with self._lock:
            try:
                self._remove_files(reference_number)
                pending = self._read_index()
                if reference_number in pending:
                    pending.remove(reference_number)
                    self._write_index(pending)
            except OSError as e:
                raise BackupError("remove", reference_number, str(e)) from e

        logger.info(f"Removed backup {reference_number}")

    def remove_all(self) -> int:
        """
        Purge every pending backup.

        Returns:
            Number of references removed
        """
        with self._lock:
            pending = self._read_index()
            try:
                for reference in pending:
                    self._remove_files(reference)
                self._write_index([])
            except OSError as e:
                raise BackupError("remove_all", reason=str(e)) from e

        logger.warning(f"Purged {len(pending)} pending backup(s)")
        return len(pending)

    def export_all(self) -> Optional[Path]:
        """
        Copy every pending pair into a fresh export directory.

        Returns:
            The export directory, or None when nothing is pending

        Raises:
            BackupError: Export directory could not be created or written
        """
        with self._lock:
            pending = self._read_index()
            if not pending:
                return None

            export_dir = self.export_root / f"KioskExport_{uuid.uuid4().hex}"
            exported = 0
            try:
                export_dir.mkdir(parents=True, exist_ok=False)
                for reference in pending:
                    pdf_path = self._pdf_path(reference)
                    json_path = self._json_path(reference)
                    if not (pdf_path.exists() and json_path.exists()):
                        logger.warning(f"Skipping {reference} in export: backup files missing")
                        continue
                    shutil.copy2(pdf_path, export_dir / pdf_path.name)
                    shutil.copy2(json_path, export_dir / json_path.name)
                    exported += 1
            except OSError as e:
                raise BackupError("export", reason=str(e)) from e

        logger.info(f"Exported {exported} pending backup(s) to {export_dir}")
        return export_dir

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    def get_metadata(self, reference_number: str) -> Optional[BackupMetadata]:
        """
        Metadata for one pending backup, or None if its files are missing.

        The applicant name is read from the JSON artifact's "fullName" key.
        """
        if not _SAFE_REFERENCE.match(reference_number or ""):
            return None

        with self._lock:
            pdf_path = self._pdf_path(reference_number)
            json_path = self._json_path(reference_number)
            if not (pdf_path.exists() and json_path.exists()):
                return None

            pdf_stat = pdf_path.stat()
            total_size = pdf_stat.st_size + json_path.stat().st_size

            applicant_name = "Unknown"
            try:
                data = json.loads(json_path.read_text(encoding="utf-8"))
                if isinstance(data, dict) and isinstance(data.get("fullName"), str):
                    applicant_name = data["fullName"]
            except (OSError, ValueError):
                logger.warning(f"Could not read applicant name from {json_path.name}")

            pages = self._analyzer.analyze(pdf_path).get("pages", 0)

        return BackupMetadata(
            reference_number=reference_number,
            applicant_name=applicant_name,
            created_at=datetime.fromtimestamp(pdf_stat.st_mtime),
            total_size=total_size,
            pdf_pages=pages,
        )

    def list_metadata(self) -> List[BackupMetadata]:
        """Metadata for every pending backup whose files still exist."""
        with self._lock:
            entries = [self.get_metadata(ref) for ref in self._read_index()]
        return [entry for entry in entries if entry is not None]

    def total_pending_size(self) -> int:
        """Total bytes used by pending backups."""
        total = 0
        with self._lock:
            for reference in self._read_index():
                for path in (self._pdf_path(reference), self._json_path(reference)):
                    if path.exists():
                        total += path.stat().st_size
        return total

    def formatted_total_pending_size(self) -> str:
        return format_size(self.total_pending_size())

    # =========================================================================
    # INTERNALS (callers hold self._lock)
    # =========================================================================

    def _pdf_path(self, reference_number: str) -> Path:
        return self.backup_dir / f"{reference_number}.pdf"

    def _json_path(self, reference_number: str) -> Path:
        return self.backup_dir / f"{reference_number}.json"

    def _check_reference(self, reference_number: str, operation: str) -> None:
        if not _SAFE_REFERENCE.match(reference_number or ""):
            raise BackupError(operation, reference_number, "invalid reference number")

    def _remove_files(self, reference_number: str) -> None:
        for path in (self._pdf_path(reference_number), self._json_path(reference_number)):
            try:
                path.unlink()
            except FileNotFoundError:
                pass

    def _read_index(self) -> List[str]:
        if not self.index_path.exists():
            return []
        try:
            data = json.loads(self.index_path.read_text(encoding="utf-8"))
            if isinstance(data, list):
                return [str(ref) for ref in data]
            raise ValueError("index is not a JSON array")
        except (OSError, ValueError) as e:
            logger.error(f"Pending index unreadable ({e}), rebuilding from backup files")
            return self._rebuild_index()

    def _rebuild_index(self) -> List[str]:
        """References that have both files on disk, oldest first."""
        pdfs = sorted(self.backup_dir.glob("*.pdf"), key=lambda p: p.stat().st_mtime)
        pending = [p.stem for p in pdfs if self._json_path(p.stem).exists()]
        self._write_index(pending)
        return pending

    def _write_index(self, pending: List[str]) -> None:
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        self._atomic_write(self.index_path, json.dumps(pending, indent=2).encode("utf-8"))

    def _atomic_write(self, path: Path, data: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
