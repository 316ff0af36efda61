"""Event payload types: levels, breadcrumbs, attachments, users, requests and events."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

TRANSACTION_TYPE = "transaction"


class Level(str, Enum):
    """Severity of an event or breadcrumb."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"

    def __str__(self) -> str:
        return self.value


@dataclass
class Breadcrumb:
    """A trail entry recorded before an event happened."""

    type: str = ""
    category: str = ""
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    level: Level | None = None
    timestamp: datetime | None = None


@dataclass
class Attachment:
    """A file sent along with an event."""

    filename: str = ""
    content_type: str = ""
    payload: bytes = b""


@dataclass
class User:
    """The user affected by an event."""

    id: str = ""
    email: str = ""
    ip_address: str = ""
    username: str = ""
    name: str = ""
    segment: str = ""
    data: dict[str, str] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (
            self.id
            or self.email
            or self.ip_address
            or self.username
            or self.name
            or self.segment
            or self.data
        )


@dataclass
class Request:
    """An HTTP request as attached to an event.

    ``body`` is an optional readable stream of the request body and
    ``content_length`` its declared size (-1 when unknown); neither takes
    part in comparisons.
    """

    url: str = ""
    method: str = ""
    data: str = ""
    query_string: str = ""
    cookies: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    env: dict[str, str] = field(default_factory=dict)
    body: Any = field(default=None, repr=False, compare=False)
    content_length: int = field(default=-1, compare=False)


@dataclass
class Event:
    """A single event to be reported."""

    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    type: str = ""
    level: Level | None = None
    message: str = ""
    timestamp: datetime | None = None
    transaction: str = ""
    breadcrumbs: list[Breadcrumb] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)
    tags: dict[str, str] | None = field(default_factory=dict)
    contexts: dict[str, dict[str, Any]] | None = field(default_factory=dict)
    extra: dict[str, Any] | None = field(default_factory=dict)
    user: User = field(default_factory=User)
    fingerprint: list[str] = field(default_factory=list)
    request: Request | None = None
    exception: list[Any] = field(default_factory=list)


@dataclass
class EventHint:
    """Extra information handed to event processors alongside an event."""

    data: Any = None
    event_id: str = ""
    original_exception: BaseException | None = None
    recovered_exception: Any = None
    context: Any = None
    request: Any = None
    response: Any = None