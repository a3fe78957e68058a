"""
Synapse Router - JSON Document Persistence

Shared helper for the file-backed stores. Writes go to a sibling temp file
that is then renamed over the target, so a reader sees either the old or the
new document and never a partial one.
"""

from __future__ import annotations

import contextlib
import json
import os
from pathlib import Path
from typing import Any, Optional, Tuple
from uuid import uuid4


class JsonFileStore:
    """One JSON document on disk with atomic replace-on-write."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def signature(self) -> Optional[Tuple[int, int]]:
        """(mtime_ns, size) of the document, or None when it does not exist."""
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return None
        return stat.st_mtime_ns, stat.st_size

    def load(self, *, default: Any = None) -> Any:
        """
        Read and parse the document.

        Raises:
            OSError: if the file exists but cannot be read
            json.JSONDecodeError: if the content is not valid JSON
        """
        if not self.path.exists():
            return default
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return default
        return json.loads(text)

    def write(self, payload: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        temp_path = self._temp_path()
        try:
            with temp_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, default=str)
                handle.flush()
                os.fsync(handle.fileno())
            temp_path.replace(self.path)
        except Exception:
            with contextlib.suppress(Exception):
                temp_path.unlink(missing_ok=True)
            raise

    def _temp_path(self) -> Path:
        token = uuid4().hex
        return self.path.with_name(f".{self.path.name}.{token}.tmp")
