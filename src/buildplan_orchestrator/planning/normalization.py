"""Field normalization for feature requests.

Normalization only edits request fields in place and reports whether anything
changed; persisting the result is the caller's job.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from buildplan_orchestrator.constants import DEFAULT_SCRIPT_NAME, PROJECT_ROOT
from buildplan_orchestrator.domain.ids import UsedIds, build_readable_id, reserve_unique_id
from buildplan_orchestrator.domain.paths import (
    FolderPredicate,
    extract_name_from_path,
    normalize_path_for_type,
)

if TYPE_CHECKING:
    from buildplan_orchestrator.domain.models import FeatureRequest

_ASSIGNED_NOTE: Final[str] = "Assigned script name '{new}' because it was missing or invalid."
_RENAMED_NOTE: Final[str] = "Renamed script '{old}' -> '{new}' to be a valid identifier."


def normalize_request_type(value: str | None) -> str:
    return (value or "").strip().lower()


def is_valid_script_identifier(value: str | None) -> bool:
    """Letter or ``_`` first, then letters, digits or ``_``."""
    if value is None or not value.strip():
        return False
    first = value[0]
    if not first.isalpha() and first != "_":
        return False
    return all(ch.isalnum() or ch == "_" for ch in value[1:])


def sanitize_script_name(name: str | None) -> str:
    """Turn free text into a class-name-safe identifier.

    Dropped characters mark a word boundary: the next kept character is
    upper-cased (``enemy spawner`` -> ``enemySpawner``). A result that does not
    start with a letter or ``_`` is prefixed with ``Script``. Returns ``""`` when
    nothing usable remains.
    """
    if name is None or not name.strip():
        return ""

    trimmed = name.strip()
    if is_valid_script_identifier(trimmed):
        return trimmed

    kept: list[str] = []
    make_upper = False
    for ch in trimmed:
        if ch.isalnum() or ch == "_":
            kept.append(ch.upper() if make_upper else ch)
            make_upper = False
        else:
            make_upper = True

    sanitized = "".join(kept)
    if not sanitized:
        return ""
    if not is_valid_script_identifier(sanitized):
        first = sanitized[0]
        if not first.isalpha() and first != "_":
            sanitized = f"{DEFAULT_SCRIPT_NAME}{sanitized}"
    return sanitized


def build_script_rename_note(original: str | None, sanitized: str) -> str:
    trimmed = (original or "").strip()
    if not trimmed:
        return _ASSIGNED_NOTE.format(new=sanitized)
    return _RENAMED_NOTE.format(old=trimmed, new=sanitized)


def normalize_script_request_name(request: FeatureRequest, *, add_notes: bool = True) -> bool:
    """Give a script request a valid identifier name; returns ``True`` when it changed."""
    if not request.is_type("script"):
        return False

    original = request.name
    trimmed = original.strip()
    sanitized = sanitize_script_name(trimmed) or DEFAULT_SCRIPT_NAME

    if trimmed == sanitized:
        if original != trimmed:
            request.name = sanitized
            return True
        return False

    request.name = sanitized
    if add_notes:
        request.append_note(build_script_rename_note(original, sanitized))
    return True


def script_identity_name(request: FeatureRequest) -> str:
    """Sanitized script name, or the file stem of its path when the name is unusable."""
    name = sanitize_script_name(request.name)
    if name:
        return name
    return extract_name_from_path(request.path)


def ensure_request_id(request: FeatureRequest, used: UsedIds) -> str:
    """Assign (or keep) a working-set-unique id on ``request`` and reserve it in ``used``."""
    base = request.id.strip() or build_readable_id(request.type, request.name, request.path)
    request.id = reserve_unique_id(base, used)
    return request.id


def normalize_request_for_execution(
    request: FeatureRequest,
    *,
    root: str = PROJECT_ROOT,
    is_folder: FolderPredicate | None = None,
) -> bool:
    """Trim the type, normalize the path for the type and fix script names."""
    changed = False

    normalized_type = normalize_request_type(request.type)
    if request.type != normalized_type:
        request.type = normalized_type
        changed = True

    normalized_path = normalize_path_for_type(
        request.type, request.path, root=root, is_folder=is_folder
    )
    if request.path != normalized_path:
        request.path = normalized_path
        changed = True

    if normalize_script_request_name(request, add_notes=True):
        changed = True

    return changed


__all__ = [
    "build_script_rename_note",
    "ensure_request_id",
    "is_valid_script_identifier",
    "normalize_request_for_execution",
    "normalize_request_type",
    "normalize_script_request_name",
    "sanitize_script_name",
    "script_identity_name",
]
