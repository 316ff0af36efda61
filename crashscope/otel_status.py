"""Mapping of OpenTelemetry span status and attributes to span statuses."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

HTTP_STATUS_CODE_KEY = "http.status_code"
RPC_GRPC_STATUS_CODE_KEY = "rpc.grpc.status_code"


class StatusCode(IntEnum):
    """Status code of an OpenTelemetry span."""

    UNSET = 0
    ERROR = 1
    OK = 2


class SpanKind(IntEnum):
    """Role of an OpenTelemetry span in a trace."""

    UNSPECIFIED = 0
    INTERNAL = 1
    SERVER = 2
    CLIENT = 3
    PRODUCER = 4
    CONSUMER = 5

    def __str__(self) -> str:
        return self.name.lower()


class SpanStatus(str, Enum):
    """Status of a finished span as reported in events."""

    UNDEFINED = ""
    OK = "ok"
    CANCELED = "cancelled"
    UNKNOWN = "unknown"
    INVALID_ARGUMENT = "invalid_argument"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    PERMISSION_DENIED = "permission_denied"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    FAILED_PRECONDITION = "failed_precondition"
    ABORTED = "aborted"
    OUT_OF_RANGE = "out_of_range"
    UNIMPLEMENTED = "unimplemented"
    INTERNAL_ERROR = "internal_error"
    UNAVAILABLE = "unavailable"
    DATA_LOSS = "data_loss"
    UNAUTHENTICATED = "unauthenticated"

    def __str__(self) -> str:
        return self.value


@dataclass
class ReadOnlySpan:
    """The parts of a finished OpenTelemetry span that are inspected here.

    ``status`` is usually a :class:`StatusCode` but any integer is accepted.
    ``attributes`` keeps its insertion order.
    """

    name: str = ""
    kind: SpanKind = SpanKind.INTERNAL
    status: int = StatusCode.UNSET
    attributes: dict[str, Any] = field(default_factory=dict)


_HTTP_STATUS_MAP: dict[str, SpanStatus] = {
    "400": SpanStatus.FAILED_PRECONDITION,
    "401": SpanStatus.UNAUTHENTICATED,
    "403": SpanStatus.PERMISSION_DENIED,
    "404": SpanStatus.NOT_FOUND,
    "409": SpanStatus.ABORTED,
    "429": SpanStatus.RESOURCE_EXHAUSTED,
    "499": SpanStatus.CANCELED,
    "500": SpanStatus.INTERNAL_ERROR,
    "501": SpanStatus.UNIMPLEMENTED,
    "503": SpanStatus.UNAVAILABLE,
    "504": SpanStatus.DEADLINE_EXCEEDED,
}

_GRPC_STATUS_MAP: dict[str, SpanStatus] = {
    "1": SpanStatus.CANCELED,
    "2": SpanStatus.UNKNOWN,
    "3": SpanStatus.INVALID_ARGUMENT,
    "4": SpanStatus.DEADLINE_EXCEEDED,
    "5": SpanStatus.NOT_FOUND,
    "6": SpanStatus.ALREADY_EXISTS,
    "7": SpanStatus.PERMISSION_DENIED,
    "8": SpanStatus.RESOURCE_EXHAUSTED,
    "9": SpanStatus.FAILED_PRECONDITION,
    "10": SpanStatus.ABORTED,
    "11": SpanStatus.OUT_OF_RANGE,
    "12": SpanStatus.UNIMPLEMENTED,
    "13": SpanStatus.INTERNAL_ERROR,
    "14": SpanStatus.UNAVAILABLE,
    "15": SpanStatus.DATA_LOSS,
    "16": SpanStatus.UNAUTHENTICATED,
}


def emit_attribute(value: Any) -> str:
    """String form of an attribute value."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, str)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return json.dumps(list(value))
    return str(value)


def attribute_as_string(value: Any) -> str:
    """The value if it is a string attribute, otherwise an empty string."""
    return value if isinstance(value, str) else ""


def map_otel_status(span: ReadOnlySpan) -> SpanStatus:
    """Span status derived from HTTP/gRPC attributes, else from the span status code."""
    for key, value in span.attributes.items():
        if key == HTTP_STATUS_CODE_KEY:
            status = _HTTP_STATUS_MAP.get(emit_attribute(value))
            if status is not None:
                return status
        if key == RPC_GRPC_STATUS_CODE_KEY:
            status = _GRPC_STATUS_MAP.get(emit_attribute(value))
            if status is not None:
                return status

    if span.status in (StatusCode.UNSET, StatusCode.OK):
        return SpanStatus.OK
    if span.status == StatusCode.ERROR:
        return SpanStatus.INTERNAL_ERROR
    return SpanStatus.UNKNOWN