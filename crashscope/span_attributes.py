"""Deriving span operation, description and transaction source from attributes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlsplit

from .otel_status import ReadOnlySpan, SpanKind, attribute_as_string

HTTP_METHOD_KEY = "http.method"
HTTP_TARGET_KEY = "http.target"
HTTP_ROUTE_KEY = "http.route"
HTTP_URL_KEY = "http.url"
DB_SYSTEM_KEY = "db.system"
DB_STATEMENT_KEY = "db.statement"
RPC_SYSTEM_KEY = "rpc.system"
MESSAGING_SYSTEM_KEY = "messaging.system"
FAAS_TRIGGER_KEY = "faas.trigger"


class TransactionSource(str, Enum):
    """Where a transaction name came from."""

    CUSTOM = "custom"
    URL = "url"
    ROUTE = "route"
    VIEW = "view"
    COMPONENT = "component"
    TASK = "task"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SpanAttributes:
    op: str
    description: str
    source: TransactionSource


def parse_span_attributes(span: ReadOnlySpan) -> SpanAttributes:
    """Classify a span by the first recognised attribute it carries."""
    for key, value in span.attributes.items():
        if key == HTTP_METHOD_KEY:
            return _describe_http(span)
        if key == DB_SYSTEM_KEY:
            return _describe_db(span)
        if key == RPC_SYSTEM_KEY:
            return SpanAttributes("rpc", span.name, TransactionSource.ROUTE)
        if key == MESSAGING_SYSTEM_KEY:
            return SpanAttributes("messaging", span.name, TransactionSource.ROUTE)
        if key == FAAS_TRIGGER_KEY:
            return SpanAttributes(attribute_as_string(value), span.name, TransactionSource.ROUTE)
    # An empty op becomes "default" downstream.
    return SpanAttributes("", span.name, TransactionSource.CUSTOM)


def _describe_db(span: ReadOnlySpan) -> SpanAttributes:
    description = span.name
    if DB_STATEMENT_KEY in span.attributes:
        description = attribute_as_string(span.attributes[DB_STATEMENT_KEY])
    return SpanAttributes("db", description, TransactionSource.TASK)


def _describe_http(span: ReadOnlySpan) -> SpanAttributes:
    if span.kind == SpanKind.CLIENT:
        op = "http.client"
    elif span.kind == SpanKind.SERVER:
        op = "http.server"
    else:
        op = "http"

    attributes = span.attributes
    target = attribute_as_string(attributes.get(HTTP_TARGET_KEY, ""))
    route = attribute_as_string(attributes.get(HTTP_ROUTE_KEY, ""))
    method = attribute_as_string(attributes.get(HTTP_METHOD_KEY, ""))
    url = attribute_as_string(attributes.get(HTTP_URL_KEY, ""))

    path = ""
    if target:
        try:
            path = urlsplit(target).path
        except ValueError:
            path = target
    elif route:
        path = route
    elif url:
        try:
            parts = urlsplit(url)
        except ValueError:
            parts = None
        if parts is not None:
            host = parts.netloc.rpartition("@")[2]
            path = f"{parts.scheme}://{host}{parts.path}"

    if not path:
        return SpanAttributes(op, span.name, TransactionSource.CUSTOM)

    source = TransactionSource.ROUTE if route or path == "/" else TransactionSource.URL
    return SpanAttributes(op, f"{method} {path}", source)