"""
CSV tables used as the handoff format between pipeline stages.

Header row first; fields holding a comma, quote or newline are quoted with
internal quotes doubled; '\\n' line endings.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Union
import threading
import logging
import csv

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

def _writer(handle):
    return csv.writer(handle, lineterminator='\n', quoting=csv.QUOTE_MINIMAL)

def _cells(row, headers: List[str]) -> List[str]:
    if hasattr(row, 'model_dump'):
        row = row.model_dump()
    return ['' if row.get(h) is None else str(row.get(h)) for h in headers]

def read_table(path: PathLike) -> List[Dict[str, str]]:
    """
    Read a table into dicts keyed by header.

    Values are stripped, short rows are padded with '', and rows with no
    non-empty value are dropped. Raises FileNotFoundError for a missing file.
    """
    path = Path(path)
    with open(path, 'r', encoding='utf-8', newline='') as f:
        reader = csv.reader(f)
        try:
            headers = [h.strip() for h in next(reader)]
        except StopIteration:
            return []

        rows = []
        for cells in reader:
            row = {h: (cells[i].strip() if i < len(cells) else '') for i, h in enumerate(headers)}
            if any(row.values()):
                rows.append(row)
    logger.debug(f"Read {len(rows)} rows from {path}")
    return rows

def read_headers(path: PathLike) -> List[str]:
    with open(path, 'r', encoding='utf-8', newline='') as f:
        first = next(csv.reader(f), [])
    return [h.strip() for h in first]

def write_table(path: PathLike, rows: Iterable, headers: List[str]) -> int:
    """Write header + rows (dicts or row models), creating parent directories"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(path, 'w', encoding='utf-8', newline='') as f:
        writer = _writer(f)
        writer.writerow(headers)
        for row in rows:
            writer.writerow(_cells(row, headers))
            count += 1
    return count

class TableAppender:
    """
    Append-only writer for a stage's output table.

    Opening truncates the file and writes the header, unless resume=True
    and the file already has content, in which case rows are appended after
    what is there. append() is serialized, so workers may share an instance.
    """

    def __init__(self, path: PathLike, headers: List[str], resume: bool = False):
        self.path = Path(path)
        self.headers = headers
        self.rows_written = 0
        self._lock = threading.Lock()

        self.path.parent.mkdir(parents=True, exist_ok=True)
        appending = resume and self.path.exists() and self.path.stat().st_size > 0
        self._handle = open(self.path, 'a' if appending else 'w', encoding='utf-8', newline='')
        self._writer = _writer(self._handle)
        if not appending:
            self._writer.writerow(headers)
            self._handle.flush()

    def append(self, rows: Iterable) -> int:
        rows = list(rows)
        with self._lock:
            for row in rows:
                self._writer.writerow(_cells(row, self.headers))
            self._handle.flush()
            self.rows_written += len(rows)
        return len(rows)

    def close(self):
        with self._lock:
            if not self._handle.closed:
                self._handle.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
