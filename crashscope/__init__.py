"""Scopes, events, source context, span recording, profiling and OpenTelemetry status mapping."""

__version__ = "0.27.0"

__all__ = [
    "events",
    "otel_status",
    "profile_types",
    "profiler",
    "scope",
    "sourcereader",
    "span_attributes",
    "span_recorder",
]