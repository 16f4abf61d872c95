"""Dataclass domain models with lenient parsing and canonical serialization."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, NoReturn, TypeVar

try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc  # noqa: UP017

if TYPE_CHECKING:
    from enum import StrEnum
else:
    try:
        from enum import StrEnum
    except ImportError:

        class StrEnum(str, Enum):
            """Compatibility fallback for Python < 3.11."""


JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

TModel = TypeVar("TModel", bound="CanonicalModel")

_MAX_TEXT = 16384


class RequestType(StrEnum):
    FOLDER = "folder"
    SCRIPT = "script"
    PREFAB = "prefab"
    SCENE = "scene"
    MATERIAL = "material"
    ASSET = "asset"


class RequestStatus(StrEnum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    BLOCKED = "blocked"


_STATUS_ALIASES: dict[str, RequestStatus] = {
    "in-progress": RequestStatus.IN_PROGRESS,
    "inprogress": RequestStatus.IN_PROGRESS,
    "pending": RequestStatus.TODO,
    "complete": RequestStatus.DONE,
    "completed": RequestStatus.DONE,
}


class CanonicalModel:
    """Mixin for canonical dict/json serialization."""

    def to_dict(self) -> dict[str, JSONValue]:
        _fail(self.__class__.__name__, "to_dict is not implemented for this model type")

    def to_json(self) -> str:
        return _canonical_json(self.to_dict())

    @classmethod
    def from_json(cls: type[TModel], raw: str) -> TModel:
        if not isinstance(raw, str):
            _fail(cls.__name__, f"expected JSON string, got {type(raw).__name__}")
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            _fail(cls.__name__, f"invalid JSON: {exc}")
        if not isinstance(parsed, dict):
            _fail(cls.__name__, "JSON root must be an object")
        return cls.from_dict(parsed)

    @classmethod
    def from_dict(cls: type[TModel], data: Mapping[str, object]) -> TModel:
        _fail(cls.__name__, "from_dict is not implemented for this model type")


@dataclass(slots=True)
class FeatureRequest(CanonicalModel):
    """One planned unit of work.

    Fields are mutable: normalization, deduplication and execution all edit a
    request in place and persist it afterwards. ``type`` stays a plain string so
    unknown kinds survive a round trip and are blocked by the dispatcher instead
    of being rejected at parse time.
    """

    id: str = ""
    type: str = ""
    name: str = ""
    path: str = ""
    phase_id: str = ""
    phase_name: str = ""
    status: RequestStatus = RequestStatus.TODO
    depends_on: list[str] = field(default_factory=list)
    notes: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.id = _as_text(self.id, "FeatureRequest.id").strip()
        self.type = _as_text(self.type, "FeatureRequest.type").strip()
        self.name = _as_text(self.name, "FeatureRequest.name")
        self.path = _as_text(self.path, "FeatureRequest.path")
        self.phase_id = _as_text(self.phase_id, "FeatureRequest.phase_id")
        self.phase_name = _as_text(self.phase_name, "FeatureRequest.phase_name")
        self.notes = _as_text(self.notes, "FeatureRequest.notes")
        self.status = parse_status(self.status)
        self.depends_on = list(_as_id_list(self.depends_on, "FeatureRequest.depends_on"))
        if self.created_at is not None:
            self.created_at = _as_datetime(self.created_at, "FeatureRequest.created_at")
        if self.updated_at is not None:
            self.updated_at = _as_datetime(self.updated_at, "FeatureRequest.updated_at")

    @property
    def kind(self) -> RequestType | None:
        """The request type when it is one the dispatcher knows, else ``None``."""
        try:
            return RequestType(self.type.strip().lower())
        except ValueError:
            return None

    def is_type(self, request_type: RequestType | str) -> bool:
        return self.type.strip().lower() == str(request_type).lower()

    def append_note(self, addition: str) -> None:
        self.notes = append_note(self.notes, addition)

    def touch(self, now: datetime | None = None) -> None:
        stamp = now if now is not None else utc_now()
        if self.created_at is None:
            self.created_at = stamp
        self.updated_at = stamp

    def depends_on_id(self, request_id: str) -> bool:
        folded = request_id.casefold()
        return any(dep.casefold() == folded for dep in self.depends_on)

    def add_dependency(self, request_id: str) -> bool:
        """Add ``request_id`` to ``depends_on``; returns ``False`` when already present."""
        candidate = request_id.strip()
        if not candidate or self.depends_on_id(candidate):
            return False
        self.depends_on.append(candidate)
        return True

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "path": self.path,
            "phaseId": self.phase_id,
            "phaseName": self.phase_name,
            "status": self.status.value,
            "dependsOn": list(self.depends_on),
            "notes": self.notes,
            "createdAt": _optional_iso(self.created_at),
            "updatedAt": _optional_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> FeatureRequest:
        """Parse a request record, tolerating missing or unknown keys.

        Plan documents are authored by a language model, so absent fields take
        their defaults, ``null`` reads as empty text and unknown status strings
        read as ``todo``. Wrongly typed values still raise ``ValueError``.
        """
        if not isinstance(data, Mapping):
            _fail("FeatureRequest", f"expected object, got {type(data).__name__}")

        def pick(*keys: str) -> object:
            for key in keys:
                if key in data:
                    return data[key]
            return None

        return cls(
            id=_as_text(pick("id"), "FeatureRequest.id"),
            type=_as_text(pick("type"), "FeatureRequest.type"),
            name=_as_text(pick("name"), "FeatureRequest.name"),
            path=_as_text(pick("path"), "FeatureRequest.path"),
            phase_id=_as_text(pick("phaseId", "phase_id"), "FeatureRequest.phaseId"),
            phase_name=_as_text(pick("phaseName", "phase_name"), "FeatureRequest.phaseName"),
            status=parse_status(pick("status")),
            depends_on=list(_as_id_list(pick("dependsOn", "depends_on"), "FeatureRequest.dependsOn")),
            notes=_as_text(pick("notes"), "FeatureRequest.notes"),
            created_at=_as_optional_datetime(
                pick("createdAt", "created_at"), "FeatureRequest.createdAt"
            ),
            updated_at=_as_optional_datetime(
                pick("updatedAt", "updated_at"), "FeatureRequest.updatedAt"
            ),
        )


@dataclass(slots=True)
class PlanPhase(CanonicalModel):
    id: str = ""
    name: str = ""
    goal: str = ""
    overview: str = ""
    feature_requests: list[FeatureRequest] = field(default_factory=list)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "id": self.id,
            "name": self.name,
            "goal": self.goal,
            "overview": self.overview,
            "featureRequests": [request.to_dict() for request in self.feature_requests],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> PlanPhase:
        if not isinstance(data, Mapping):
            _fail("PlanPhase", f"expected object, got {type(data).__name__}")
        raw_requests = data.get("featureRequests")
        requests: list[FeatureRequest] = []
        if raw_requests is not None:
            if not isinstance(raw_requests, list):
                _fail("PlanPhase.featureRequests", "expected array")
            for index, item in enumerate(raw_requests):
                try:
                    requests.append(FeatureRequest.from_dict(_as_mapping(item, "FeatureRequest")))
                except ValueError as exc:
                    _fail(f"PlanPhase.featureRequests[{index}]", str(exc))
        return cls(
            id=_as_text(data.get("id"), "PlanPhase.id").strip(),
            name=_as_text(data.get("name"), "PlanPhase.name").strip(),
            goal=_as_text(data.get("goal"), "PlanPhase.goal"),
            overview=_as_text(data.get("overview"), "PlanPhase.overview"),
            feature_requests=requests,
        )


def utc_now() -> datetime:
    return datetime.now(UTC)


def append_note(notes: str | None, addition: str | None) -> str:
    """Append ``addition`` to ``notes`` unless it is already present (case-insensitive)."""
    current = notes or ""
    if addition is None or not addition.strip():
        return current
    if not current.strip():
        return addition
    if addition.casefold() in current.casefold():
        return current.strip()
    return f"{current.strip()} {addition}"


def parse_status(value: object) -> RequestStatus:
    if isinstance(value, RequestStatus):
        return value
    if not isinstance(value, str) or not value.strip():
        return RequestStatus.TODO
    key = value.strip().lower()
    alias = _STATUS_ALIASES.get(key)
    if alias is not None:
        return alias
    try:
        return RequestStatus(key)
    except ValueError:
        return RequestStatus.TODO


def format_timestamp(value: datetime) -> str:
    return _datetime_to_iso8601z(value)


# ------------------------
# Internal helper routines
# ------------------------


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _canonical_json(value: JSONValue) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _as_mapping(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    return value


def _as_text(value: object, path: str) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        if len(value) > _MAX_TEXT:
            _fail(path, f"must be <= {_MAX_TEXT} characters")
        return value
    if isinstance(value, bool):
        _fail(path, "expected string, got bool")
    if isinstance(value, (int, float)):
        return str(value)
    _fail(path, f"expected string, got {type(value).__name__}")


def _as_id_list(value: object, path: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        # A single id written without brackets.
        return (value.strip(),) if value.strip() else ()
    if not isinstance(value, (list, tuple)):
        _fail(path, f"expected array, got {type(value).__name__}")

    parsed: list[str] = []
    seen: set[str] = set()
    for index, item in enumerate(value):
        text = _as_text(item, f"{path}[{index}]").strip()
        if not text or text.casefold() in seen:
            continue
        seen.add(text.casefold())
        parsed.append(text)
    return tuple(parsed)


def _as_datetime(value: object, path: str) -> datetime:
    parsed: datetime
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            _fail(path, f"invalid ISO-8601 datetime: {value!r} ({exc})")
    else:
        _fail(path, f"expected datetime or ISO-8601 string, got {type(value).__name__}")

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _as_optional_datetime(value: object, path: str) -> datetime | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return _as_datetime(value, path)


def _datetime_to_iso8601z(value: datetime) -> str:
    normalized = _as_datetime(value, "datetime")
    return normalized.isoformat(timespec="microseconds").replace("+00:00", "Z")


def _optional_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return _datetime_to_iso8601z(value)


__all__ = [
    "CanonicalModel",
    "FeatureRequest",
    "JSONScalar",
    "JSONValue",
    "PlanPhase",
    "RequestStatus",
    "RequestType",
    "UTC",
    "append_note",
    "format_timestamp",
    "parse_status",
    "utc_now",
]
