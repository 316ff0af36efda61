"""Bounded, thread-safe store of the spans that make up a transaction."""

from __future__ import annotations

import logging
import threading
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_MAX_SPANS = 1000


class SpanRecorder:
    """Records spans; the first recorded span is the root of the tree."""

    def __init__(self, max_spans: int = DEFAULT_MAX_SPANS) -> None:
        self.max_spans = max_spans
        self._spans: list[Any] = []
        self._lock = threading.Lock()
        self._overflow_logged = False

    def record(self, span: Any) -> None:
        """Store a span, dropping it once ``max_spans`` have been stored."""
        with self._lock:
            if len(self._spans) >= self.max_spans:
                if not self._overflow_logged:
                    self._overflow_logged = True
                    root = self._spans[0] if self._spans else None
                    logger.warning(
                        "Too many spans: dropping spans from transaction with "
                        "TraceID=%s SpanID=%s limit=%d",
                        getattr(root, "trace_id", None),
                        getattr(root, "span_id", None),
                        self.max_spans,
                    )
                return
            self._spans.append(span)

    def root(self) -> Any | None:
        """The first recorded span, or None if nothing was recorded."""
        with self._lock:
            return self._spans[0] if self._spans else None

    def children(self) -> list[Any]:
        """All recorded spans except the root."""
        with self._lock:
            return self._spans[1:]