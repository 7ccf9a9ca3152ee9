from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from pypdf import PdfReader

from ..utils.proc import ProcessFailed, run_process

logger = logging.getLogger(__name__)

TEXT_EXTS = {
    ".txt", ".md", ".markdown",
    ".rs", ".js", ".ts", ".py", ".java",
    ".json", ".csv", ".yaml", ".yml", ".toml",
}
PDF_EXTS = {".pdf"}
SUPPORTED = TEXT_EXTS | PDF_EXTS

PDF_PLACEHOLDER = "[PDF] (no text extracted; install pdftotext)"


class ExtractionFailed(RuntimeError):
    """
    Text could not be extracted from a file.

    `placeholder` is set when the document should still be indexed with a
    sentinel text instead of being dropped.
    """

    def __init__(self, path: Path | str, reason: str, placeholder: Optional[str] = None):
        super().__init__(f"{path}: {reason}")
        self.path = str(path)
        self.reason = reason
        self.placeholder = placeholder


def _read_text(path: Path) -> str:
    try:
        return path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as e:
        raise ExtractionFailed(path, f"not valid UTF-8 ({e.reason} at byte {e.start})") from e
    except OSError as e:
        raise ExtractionFailed(path, f"unreadable: {e}") from e


def _pdftotext(path: Path, timeout: float) -> str:
    try:
        res = run_process(["pdftotext", "-layout", str(path), "-"], timeout=timeout)
    except ProcessFailed as e:
        raise ExtractionFailed(path, str(e), placeholder=PDF_PLACEHOLDER) from e
    if not res.ok:
        detail = res.stderr.strip() or f"exit status {res.returncode}"
        raise ExtractionFailed(path, f"pdftotext failed: {detail}", placeholder=PDF_PLACEHOLDER)
    if not res.stdout.strip():
        raise ExtractionFailed(path, "pdftotext produced empty output", placeholder=PDF_PLACEHOLDER)
    return res.stdout


def _pypdf(path: Path) -> str:
    try:
        reader = PdfReader(str(path))
        pages = []
        for page in reader.pages:
            try:
                pages.append(page.extract_text() or "")
            except Exception as e:
                logger.debug("pypdf page extraction failed in %s: %s", path, e)
                pages.append("")
    except Exception as e:
        raise ExtractionFailed(path, f"pypdf failed: {e}", placeholder=PDF_PLACEHOLDER) from e
    text = "\n\n".join(p for p in pages if p.strip())
    if not text.strip():
        raise ExtractionFailed(path, "pypdf produced empty output", placeholder=PDF_PLACEHOLDER)
    return text


class TextExtractor:
    """Picks an extraction strategy by file extension."""

    def __init__(self, pdf_backend: str = "pdftotext", pdf_timeout: float = 60.0):
        pdf_backend = (pdf_backend or "pdftotext").lower()
        if pdf_backend not in {"pdftotext", "pypdf"}:
            raise ValueError(f"Unsupported pdf backend: {pdf_backend}")
        self.pdf_backend = pdf_backend
        self.pdf_timeout = float(pdf_timeout)

    @staticmethod
    def supports(path: Path | str) -> bool:
        return Path(path).suffix.lower() in SUPPORTED

    def extract(self, path: Path | str) -> str:
        path = Path(path)
        ext = path.suffix.lower()
        if ext in TEXT_EXTS:
            return _read_text(path)
        if ext in PDF_EXTS:
            if self.pdf_backend == "pypdf":
                return _pypdf(path)
            return _pdftotext(path, self.pdf_timeout)
        raise ExtractionFailed(path, f"unsupported extension {ext or '(none)'}")
