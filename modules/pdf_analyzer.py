"""Lightweight PDF analyzer for backup metadata."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Dict, Any, Union

from pypdf import PdfReader


class PDFAnalyzer:
    """Extract minimal metadata, resilient to malformed PDFs."""

    def analyze(self, pdf: Union[bytes, str, Path]) -> Dict[str, Any]:
        """
        Analyze a PDF given as bytes or a path.

        Returns:
            Dict with pages, size_kb and (on failure) error
        """
        if isinstance(pdf, (bytes, bytearray)):
            data = bytes(pdf)
        else:
            path = Path(pdf)
            data = path.read_bytes() if path.exists() else b""

        info: Dict[str, Any] = {
            "pages": 0,
            "size_kb": round(len(data) / 1024, 2),
        }

        if not data:
            info["error"] = "PDF is empty or missing"
            return info

        try:
            reader = PdfReader(BytesIO(data))
            info["pages"] = len(reader.pages)
        except Exception as exc:  # malformed backups still get listed
            info["error"] = f"PDF analysis failed: {exc}"

        return info
