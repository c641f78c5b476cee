from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
import re
import shutil
import time

import mammoth

from atheria.utils import ms_from_datetime

SUPPORTED_EXTS = {".txt", ".md", ".markdown", ".docx"}

# Only the head of a document is scanned for a date
DATE_SCAN_CHARS = 500

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_M = r"(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
_ORD = r"(?:st|nd|rd|th)?"

# (pattern, order of the captured groups)
_DATE_PATTERNS = [
    (re.compile(rf"\b{_M}\.?\s+(\d{{1,2}}){_ORD},?\s+(\d{{4}})\b", re.IGNORECASE), "mdy"),
    (re.compile(rf"\b(\d{{1,2}}){_ORD}\s+(?:of\s+)?{_M}\.?,?\s+(\d{{4}})\b", re.IGNORECASE), "dmy"),
    (re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b"), "ymd"),
    (re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b"), "mdy"),
]


def _month(value: str) -> int:
    if value.isdigit():
        return int(value)
    return _MONTHS[value[:3].lower()]


def detect_date(text: str) -> datetime | None:
    """
    Earliest recognizable calendar date in the head of text, as local midnight.
    """
    head = text[:DATE_SCAN_CHARS]
    found: list[tuple[int, datetime]] = []
    for pattern, order in _DATE_PATTERNS:
        for m in pattern.finditer(head):
            parts = dict(zip(order, m.groups()))
            try:
                dt = datetime(int(parts["y"]), _month(parts["m"]), int(parts["d"]))
            except ValueError:
                # e.g. 2023-02-30
                continue
            found.append((m.start(), dt))
            break
    if not found:
        return None
    return min(found, key=lambda item: item[0])[1]


def read_document_text(path: Path) -> str:
    """Raw text of a plain-text or .docx file."""
    if path.suffix.lower() == ".docx":
        with open(path, "rb") as f:
            return mammoth.extract_raw_text(f).value.strip()
    # Read as UTF-8; replace invalid bytes so we never crash on odd encodings
    return path.read_text(encoding="utf-8", errors="replace")


@dataclass
class ImportResult:
    path: Path
    title: str
    content: str
    created_at: int
    date_detected: bool


def prepare_import(path: Path) -> ImportResult:
    """
    Read a file and derive title and creation date. No writes here.
    """
    path = path.expanduser()
    if path.suffix.lower() not in SUPPORTED_EXTS:
        raise ValueError(f"Unsupported file type: {path.suffix or path.name}")
    content = read_document_text(path)
    detected = detect_date(content)
    if detected is not None:
        created_at = ms_from_datetime(detected)
    else:
        created_at = int(path.stat().st_mtime * 1000)
    return ImportResult(
        path=path,
        title=path.stem,
        content=content,
        created_at=created_at,
        date_detected=detected is not None,
    )


def discover_importable(root: Path) -> list[Path]:
    """
    Supported files directly under root (not the archive), in a stable sorted order.
    """
    root = root.expanduser()
    if not root.exists() or not root.is_dir():
        return []
    files = [
        p for p in root.iterdir()
        if p.is_file() and p.suffix.lower() in SUPPORTED_EXTS and not p.name.startswith(".")
    ]
    files.sort()
    return files


def safe_move_to_archive(src: Path, archive_dir: Path) -> Path:
    """
    Move file to archive_dir safely:
    - creates archive_dir
    - avoids overwriting by appending _YYYYmmdd_HHMMSS on collision
    - works across filesystems (uses shutil.move)
    Returns final destination path.
    """
    archive_dir = archive_dir.expanduser()
    archive_dir.mkdir(parents=True, exist_ok=True)
    dest = archive_dir / src.name
    if dest.exists():
        stem, ext = src.stem, src.suffix
        ts = time.strftime("%Y%m%d_%H%M%S")
        dest = archive_dir / f"{stem}_{ts}{ext}"
    shutil.move(str(src), str(dest))
    return dest
