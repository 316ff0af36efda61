"""Data types making up a sampled profile and their JSON representation."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any


def _format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.isoformat()
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


@dataclass
class Frame:
    """A single stack frame of a profiled call stack."""

    function: str = ""
    module: str = ""
    filename: str = ""
    abs_path: str = ""
    lineno: int = 0

    def to_dict(self) -> dict[str, Any]:
        pairs = (
            ("function", self.function),
            ("module", self.module),
            ("filename", self.filename),
            ("abs_path", self.abs_path),
            ("lineno", self.lineno),
        )
        return {key: value for key, value in pairs if value}


@dataclass
class ProfileDevice:
    architecture: str = ""
    classification: str = ""
    locale: str = ""
    manufacturer: str = ""
    model: str = ""


@dataclass
class ProfileOS:
    build_number: str = ""
    name: str = ""
    version: str = ""


@dataclass
class ProfileRuntime:
    name: str = ""
    version: str = ""


@dataclass
class ProfileSample:
    """One observation of one thread's stack at a point in time."""

    elapsed_since_start_ns: int = 0
    stack_id: int = 0
    thread_id: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "elapsed_since_start_ns": self.elapsed_since_start_ns,
            "stack_id": self.stack_id,
            "thread_id": self.thread_id,
        }


@dataclass
class ProfileThreadMetadata:
    name: str = ""
    priority: int = 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.name:
            data["name"] = self.name
        if self.priority:
            data["priority"] = self.priority
        return data


@dataclass
class ProfileTrace:
    """Frames, stacks (lists of frame indexes) and samples of a profile."""

    frames: list[Frame] = field(default_factory=list)
    samples: list[ProfileSample] = field(default_factory=list)
    stacks: list[list[int]] = field(default_factory=list)
    thread_metadata: dict[int, ProfileThreadMetadata] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "frames": [frame.to_dict() for frame in self.frames],
            "samples": [sample.to_dict() for sample in self.samples],
            "stacks": [list(stack) for stack in self.stacks],
            "thread_metadata": {
                str(thread_id): metadata.to_dict()
                for thread_id, metadata in self.thread_metadata.items()
            },
        }


@dataclass
class ProfileTransaction:
    active_thread_id: int = 0
    duration_ns: int = 0
    id: str = ""
    name: str = ""
    trace_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"active_thread_id": self.active_thread_id}
        if self.duration_ns:
            data["duration_ns"] = self.duration_ns
        data["id"] = self.id
        data["name"] = self.name
        data["trace_id"] = self.trace_id
        return data


@dataclass
class ProfileInfo:
    """A complete profile payload."""

    debug_meta: dict[str, Any] | None = None
    device: ProfileDevice = field(default_factory=ProfileDevice)
    environment: str = ""
    event_id: str = ""
    os: ProfileOS = field(default_factory=ProfileOS)
    platform: str = ""
    release: str = ""
    dist: str = ""
    runtime: ProfileRuntime = field(default_factory=ProfileRuntime)
    timestamp: datetime = field(
        default_factory=lambda: datetime(1, 1, 1, tzinfo=timezone.utc)
    )
    trace: ProfileTrace | None = None
    transaction: ProfileTransaction = field(default_factory=ProfileTransaction)
    version: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.debug_meta:
            data["debug_meta"] = self.debug_meta
        data["device"] = asdict(self.device)
        if self.environment:
            data["environment"] = self.environment
        data["event_id"] = self.event_id
        data["os"] = asdict(self.os)
        data["platform"] = self.platform
        data["release"] = self.release
        data["dist"] = self.dist
        data["runtime"] = asdict(self.runtime)
        data["timestamp"] = _format_timestamp(self.timestamp)
        data["profile"] = self.trace.to_dict() if self.trace is not None else None
        data["transaction"] = self.transaction.to_dict()
        data["version"] = self.version
        return data