"""Scope: contextual data that is merged into every event captured under it."""

from __future__ import annotations

import dataclasses
import logging
import threading
from datetime import datetime, timezone
from typing import Any, BinaryIO, Callable, Iterator

from .events import (
    TRANSACTION_TYPE,
    Attachment,
    Breadcrumb,
    Event,
    EventHint,
    Level,
    Request,
    User,
)

logger = logging.getLogger(__name__)

# Largest request body, in bytes, that is kept to be sent with an event.
MAX_REQUEST_BODY_BYTES = 10 * 1024
MAX_BREADCRUMBS = 100

Context = dict[str, Any]
EventProcessor = Callable[[Event, "EventHint | None"], "Event | None"]


def clone_context(context: Context) -> Context:
    """Shallow copy of a context: a new dict, values shared."""
    return dict(context)


class LimitedBuffer:
    """Byte buffer holding at most ``capacity`` bytes; excess writes are dropped."""

    def __init__(
        self,
        capacity: int = MAX_REQUEST_BODY_BYTES,
        initial: bytes = b"",
        overflow: bool = False,
    ) -> None:
        self.capacity = capacity
        self._buffer = bytearray(initial)
        self.overflow = overflow

    def write(self, data: bytes) -> int:
        if self.overflow:
            return len(data)
        left = max(0, self.capacity - len(self._buffer))
        if len(data) > left:
            self.overflow = True
            data = data[:left]
        self._buffer.extend(data)
        return len(data)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)


class _TeeReader:
    """Readable stream that copies everything read into a sink."""

    def __init__(self, raw: BinaryIO, sink: LimitedBuffer) -> None:
        self._raw = raw
        self._sink = sink

    def read(self, size: int = -1) -> bytes:
        chunk = self._raw.read(size)
        if chunk:
            self._sink.write(chunk)
        return chunk

    def readline(self, size: int = -1) -> bytes:
        line = self._raw.readline(size)
        if line:
            self._sink.write(line)
        return line

    def __iter__(self) -> Iterator[bytes]:
        while line := self.readline():
            yield line

    def close(self) -> None:
        self._raw.close()

    def __getattr__(self, name: str) -> Any:
        return getattr(self._raw, name)


class Scope:
    """Holds breadcrumbs, tags, contexts and other data applied to events."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._reset()

    def _reset(self) -> None:
        self.breadcrumbs: list[Breadcrumb] = []
        self.attachments: list[Attachment] = []
        self.user = User()
        self.tags: dict[str, str] = {}
        self.contexts: dict[str, Context] = {}
        self.extra: dict[str, Any] = {}
        self.fingerprint: list[str] = []
        self.level: Level | None = None
        self.request: Request | None = None
        self.request_body: LimitedBuffer | None = None
        self.event_processors: list[EventProcessor] = []

    def add_breadcrumb(self, breadcrumb: Breadcrumb, limit: int = MAX_BREADCRUMBS) -> None:
        """Append a breadcrumb, dropping the oldest once ``limit`` is exceeded."""
        if breadcrumb.timestamp is None:
            breadcrumb.timestamp = datetime.now(timezone.utc)
        with self._lock:
            self.breadcrumbs.append(breadcrumb)
            if len(self.breadcrumbs) > limit:
                self.breadcrumbs = self.breadcrumbs[1 : limit + 1]

    def clear_breadcrumbs(self) -> None:
        with self._lock:
            self.breadcrumbs = []

    def add_attachment(self, attachment: Attachment) -> None:
        with self._lock:
            self.attachments.append(attachment)

    def clear_attachments(self) -> None:
        with self._lock:
            self.attachments = []

    def set_user(self, user: User) -> None:
        with self._lock:
            self.user = user

    def set_request(self, request: Request | None) -> None:
        """Attach a request; its body stream is buffered lazily as it is read."""
        with self._lock:
            self.request = request
            if request is None:
                return
            if request.content_length > MAX_REQUEST_BODY_BYTES:
                return
            if request.body is None:
                return
            buffer = LimitedBuffer(MAX_REQUEST_BODY_BYTES)
            request.body = _TeeReader(request.body, buffer)
            self.request_body = buffer

    def set_request_body(self, body: bytes) -> None:
        """Set the request body from bytes already in memory."""
        with self._lock:
            overflow = len(body) > MAX_REQUEST_BODY_BYTES
            self.request_body = LimitedBuffer(
                MAX_REQUEST_BODY_BYTES, body[:MAX_REQUEST_BODY_BYTES], overflow
            )

    def set_tag(self, key: str, value: str) -> None:
        with self._lock:
            self.tags[key] = value

    def set_tags(self, tags: dict[str, str]) -> None:
        with self._lock:
            self.tags.update(tags)

    def remove_tag(self, key: str) -> None:
        with self._lock:
            self.tags.pop(key, None)

    def set_context(self, key: str, value: Context) -> None:
        with self._lock:
            self.contexts[key] = value

    def set_contexts(self, contexts: dict[str, Context]) -> None:
        with self._lock:
            self.contexts.update(contexts)

    def remove_context(self, key: str) -> None:
        with self._lock:
            self.contexts.pop(key, None)

    def set_extra(self, key: str, value: Any) -> None:
        with self._lock:
            self.extra[key] = value

    def set_extras(self, extra: dict[str, Any]) -> None:
        with self._lock:
            self.extra.update(extra)

    def remove_extra(self, key: str) -> None:
        with self._lock:
            self.extra.pop(key, None)

    def set_fingerprint(self, fingerprint: list[str]) -> None:
        with self._lock:
            self.fingerprint = list(fingerprint)

    def set_level(self, level: Level | None) -> None:
        with self._lock:
            self.level = level

    def clone(self) -> Scope:
        """Copy of this scope that can be changed independently."""
        with self._lock:
            other = Scope()
            other.user = self.user
            other.breadcrumbs = list(self.breadcrumbs)
            other.attachments = list(self.attachments)
            other.tags = dict(self.tags)
            other.contexts = {key: clone_context(value) for key, value in self.contexts.items()}
            other.extra = dict(self.extra)
            other.fingerprint = list(self.fingerprint)
            other.level = self.level
            other.request = self.request
            other.request_body = self.request_body
            other.event_processors = list(self.event_processors)
            return other

    def clear(self) -> None:
        """Remove all data from the scope."""
        with self._lock:
            self._reset()

    def add_event_processor(self, processor: EventProcessor) -> None:
        with self._lock:
            self.event_processors.append(processor)

    def apply_to_event(self, event: Event, hint: EventHint | None = None) -> Event | None:
        """Merge scope data into the event; None if a processor dropped it."""
        with self._lock:
            if self.breadcrumbs:
                event.breadcrumbs.extend(self.breadcrumbs)

            if self.attachments:
                event.attachments.extend(self.attachments)

            if self.tags:
                if event.tags is None:
                    event.tags = {}
                event.tags.update(self.tags)

            if self.contexts:
                if event.contexts is None:
                    event.contexts = {}
                for key, value in self.contexts.items():
                    # Transactions keep their own trace context.
                    if key == "trace" and event.type == TRANSACTION_TYPE:
                        continue
                    if key not in event.contexts:
                        event.contexts[key] = clone_context(value)

            if self.extra:
                if event.extra is None:
                    event.extra = {}
                event.extra.update(self.extra)

            if event.user.is_empty():
                event.user = self.user

            if not event.fingerprint:
                event.fingerprint = list(self.fingerprint)

            if self.level:
                event.level = self.level

            if event.request is None and self.request is not None:
                event.request = dataclasses.replace(self.request, body=None)
                # Partial bodies are never sent.
                if self.request_body is not None and not self.request_body.overflow:
                    event.request.data = self.request_body.getvalue().decode(
                        "utf-8", errors="replace"
                    )

            for processor in self.event_processors:
                event_id = event.event_id
                processed = processor(event, hint)
                if processed is None:
                    logger.info(
                        "Event dropped by one of the Scope EventProcessors: %s", event_id
                    )
                    return None
                event = processed

            return event