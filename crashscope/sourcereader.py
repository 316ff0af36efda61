"""Reading lines of source files around a given line, with caching."""

from __future__ import annotations

import threading
from pathlib import Path


class SourceReader:
    """Reads and caches source files split into lines."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.cache: dict[str, list[bytes] | None] = {}

    def read_context_lines(
        self, filename: str, line: int, context: int
    ) -> tuple[list[bytes], int]:
        """Lines around 1-based ``line`` and the position of that line among them."""
        with self._lock:
            if filename in self.cache:
                lines = self.cache[filename]
            else:
                try:
                    data = Path(filename).read_bytes()
                except OSError:
                    self.cache[filename] = None
                    return [], 0
                lines = data.split(b"\n")
                self.cache[filename] = lines
            return self.calculate_context_lines(lines, line, context)

    def calculate_context_lines(
        self, lines: list[bytes] | None, line: int, context: int
    ) -> tuple[list[bytes], int]:
        """Slice up to ``context`` lines on each side of 1-based ``line``."""
        line -= 1
        context_line = context

        if lines is None or line >= len(lines) or line < 0:
            return [], 0

        if context < 0:
            context = 0
            context_line = 0

        start = line - context
        if start < 0:
            context_line += start
            start = 0

        end = min(line + context + 1, len(lines))
        return lines[start:end], context_line