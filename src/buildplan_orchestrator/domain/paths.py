"""Project-relative path rules for planned requests.

Every path handled here is an editor asset path: forward slashes, rooted at
``Assets``. Requests are always placed under the project root (``Assets/Project``
by default). Functions are pure; the only world knowledge they may need is an
optional ``is_folder`` predicate for paths that could name an existing folder.
"""

from __future__ import annotations

from collections.abc import Callable

from buildplan_orchestrator.constants import (
    ASSETS_ROOT,
    DATA_ASSET_EXTENSION,
    DEFAULT_MATERIAL_NAME,
    DEFAULT_PREFAB_NAME,
    DEFAULT_SCENE_NAME,
    MATERIAL_EXTENSION,
    PREFAB_EXTENSION,
    PROJECT_ROOT,
    SCENE_EXTENSION,
    SCRIPT_EXTENSION,
)

FolderPredicate = Callable[[str], bool]


def ensure_project_path(path: str | None, *, root: str = PROJECT_ROOT) -> str:
    """Place ``path`` under ``root``.

    ``Assets`` and ``Assets/<x>`` map onto the project root; a path already under
    the root is returned unchanged (compared case-insensitively).
    """
    if path is None or not path.strip():
        return root

    normalized = path.strip().replace("\\", "/")
    lowered = normalized.lower()
    if lowered == ASSETS_ROOT.lower():
        return root
    if lowered.startswith(root.lower()):
        return normalized

    if lowered.startswith(ASSETS_ROOT.lower()):
        relative = normalized[len(ASSETS_ROOT) :].lstrip("/")
        return root if not relative.strip() else f"{root}/{relative}"

    return f"{root}/{normalized.lstrip('/')}"


def normalize_path_for_type(
    request_type: str | None,
    path: str | None,
    *,
    root: str = PROJECT_ROOT,
    is_folder: FolderPredicate | None = None,
) -> str:
    if path is None or not path.strip():
        return root

    normalized = ensure_project_path(path, root=root)
    if normalized.rstrip("/").casefold() == root.casefold():
        return root
    kind = (request_type or "").strip().lower()
    if kind == "script":
        if _ends_with(normalized, SCRIPT_EXTENSION):
            return _directory_of(normalized) or f"{root}/Scripts"
    elif kind == "scene":
        if not _ends_with(normalized, SCENE_EXTENSION) and not _is_folder(is_folder, normalized):
            normalized += SCENE_EXTENSION
    elif kind == "material":
        if not _ends_with(normalized, MATERIAL_EXTENSION) and not _is_folder(
            is_folder, normalized
        ):
            normalized += MATERIAL_EXTENSION
    return normalized


def normalize_folder_path(path: str | None, *, root: str = PROJECT_ROOT) -> str:
    """Folder a script request lives in; ``<root>/Scripts`` when none is given."""
    if path is None or not path.strip():
        return f"{root}/Scripts"

    normalized = ensure_project_path(path, root=root)
    if _ends_with(normalized, SCRIPT_EXTENSION):
        return _directory_of(normalized) or f"{root}/Scripts"
    return normalized


def extract_name_from_path(path: str | None) -> str:
    if path is None or not path.strip():
        return ""
    normalized = path.replace("\\", "/").rstrip("/")
    if not normalized.strip():
        return ""
    return file_stem(normalized).strip()


def file_stem(path: str) -> str:
    name = path.replace("\\", "/").rsplit("/", 1)[-1]
    dot = name.rfind(".")
    return name[:dot] if dot >= 0 else name


def has_extension(path: str) -> bool:
    name = path.replace("\\", "/").rsplit("/", 1)[-1]
    dot = name.rfind(".")
    return 0 <= dot < len(name) - 1


def parent_folder(path: str) -> str:
    """Directory part of an asset path, or ``""`` for a bare name."""
    return _directory_of(path.replace("\\", "/").rstrip("/"))


def build_planned_prefab_path(path: str | None, name: str | None, *, root: str = PROJECT_ROOT) -> str:
    return _build_planned_path(
        path, name, extension=PREFAB_EXTENSION, default_name=DEFAULT_PREFAB_NAME,
        default_dir=f"{root}/Prefabs", root=root,
    )


def build_planned_scene_path(path: str | None, name: str | None, *, root: str = PROJECT_ROOT) -> str:
    return _build_planned_path(
        path, name, extension=SCENE_EXTENSION, default_name=DEFAULT_SCENE_NAME,
        default_dir=f"{root}/Scenes", root=root,
    )


def build_planned_material_path(
    path: str | None, name: str | None, *, root: str = PROJECT_ROOT
) -> str:
    return _build_planned_path(
        path, name, extension=MATERIAL_EXTENSION, default_name=DEFAULT_MATERIAL_NAME,
        default_dir=f"{root}/Materials", root=root,
    )


def build_planned_asset_path(path: str | None, name: str | None, *, root: str = PROJECT_ROOT) -> str:
    """A path with an extension is kept; otherwise ``<path>/<name>``. Empty path gives ``""``."""
    if path is None or not path.strip():
        return ""

    normalized = ensure_project_path(path, root=root).rstrip("/")
    if has_extension(normalized):
        return normalized
    if name is None or not name.strip():
        return normalized
    return f"{normalized}/{name.strip()}"


def build_prefab_path(
    path: str | None,
    name: str | None,
    *,
    root: str = PROJECT_ROOT,
    is_folder: FolderPredicate | None = None,
) -> tuple[str, str]:
    """Return ``(asset_path, folder_path)`` for creating a prefab.

    Unlike :func:`build_planned_prefab_path` an existing folder whose name looks
    like a file (``Enemies.v2``) is treated as the target folder.
    """
    return _build_creation_path(
        path, name, extension=PREFAB_EXTENSION, default_name=DEFAULT_PREFAB_NAME,
        default_dir=f"{root}/Prefabs", root=root, is_folder=is_folder,
    )


def build_scene_path(
    path: str | None,
    name: str | None,
    *,
    root: str = PROJECT_ROOT,
    is_folder: FolderPredicate | None = None,
) -> tuple[str, str]:
    return _build_creation_path(
        path, name, extension=SCENE_EXTENSION, default_name=DEFAULT_SCENE_NAME,
        default_dir=f"{root}/Scenes", root=root, is_folder=is_folder,
    )


def build_material_path(
    path: str | None,
    name: str | None,
    *,
    root: str = PROJECT_ROOT,
    is_folder: FolderPredicate | None = None,
) -> tuple[str, str]:
    return _build_creation_path(
        path, name, extension=MATERIAL_EXTENSION, default_name=DEFAULT_MATERIAL_NAME,
        default_dir=f"{root}/Materials", root=root, is_folder=is_folder,
    )


def build_data_asset_path(
    path: str | None,
    name: str | None,
    type_name: str | None,
    *,
    root: str = PROJECT_ROOT,
) -> tuple[str, str]:
    """Return ``(asset_path, folder_path)`` for a data asset of ``type_name``.

    The asset name falls back to the type name, then to ``NewAsset``.
    """
    if name is not None and name.strip():
        default_name = name.strip()
    elif type_name is not None and type_name.strip():
        default_name = type_name.strip()
    else:
        default_name = "NewAsset"
    return _build_creation_path(
        path, default_name, extension=DATA_ASSET_EXTENSION, default_name=default_name,
        default_dir=f"{root}/Assets", root=root, is_folder=None,
    )


def get_prefab_name(name: str | None, path: str | None) -> str:
    return _name_or_stem(name, path, PREFAB_EXTENSION, DEFAULT_PREFAB_NAME)


def get_scene_name(name: str | None, path: str | None) -> str:
    return _name_or_stem(name, path, SCENE_EXTENSION, DEFAULT_SCENE_NAME)


def get_material_name(name: str | None, path: str | None) -> str:
    return _name_or_stem(name, path, MATERIAL_EXTENSION, DEFAULT_MATERIAL_NAME)


# ------------------------
# Internal helper routines
# ------------------------


def _ends_with(path: str, extension: str) -> bool:
    return path.lower().endswith(extension.lower())


def _directory_of(path: str) -> str:
    slash = path.rfind("/")
    if slash <= 0:
        return ""
    return path[:slash]


def _is_folder(predicate: FolderPredicate | None, path: str) -> bool:
    return predicate is not None and predicate(path)


def _name_or_stem(name: str | None, path: str | None, extension: str, default: str) -> str:
    if name is not None and name.strip():
        return name.strip()
    if path is not None and path.strip():
        normalized = path.strip().replace("\\", "/")
        if _ends_with(normalized, extension):
            stem = file_stem(normalized)
            if stem.strip():
                return stem
    return default


def _build_planned_path(
    path: str | None,
    name: str | None,
    *,
    extension: str,
    default_name: str,
    default_dir: str,
    root: str,
) -> str:
    asset_name = name.strip() if name is not None and name.strip() else default_name
    source = default_dir if path is None or not path.strip() else path
    normalized = ensure_project_path(source, root=root)

    if _ends_with(normalized, extension):
        return normalized
    normalized = normalized.rstrip("/")
    if has_extension(normalized):
        folder = _directory_of(normalized) or root
        return f"{folder}/{asset_name}{extension}"
    return f"{normalized}/{asset_name}{extension}"


def _build_creation_path(
    path: str | None,
    name: str | None,
    *,
    extension: str,
    default_name: str,
    default_dir: str,
    root: str,
    is_folder: FolderPredicate | None,
) -> tuple[str, str]:
    asset_name = name.strip() if name is not None and name.strip() else default_name
    source = default_dir if path is None or not path.strip() else path
    normalized = ensure_project_path(source, root=root)

    if _ends_with(normalized, extension):
        return normalized, _directory_of(normalized) or root
    normalized = normalized.rstrip("/")
    if _is_folder(is_folder, normalized):
        return f"{normalized}/{asset_name}{extension}", normalized
    if has_extension(normalized):
        folder = _directory_of(normalized) or root
        return f"{folder}/{asset_name}{extension}", folder
    return f"{normalized}/{asset_name}{extension}", normalized


__all__ = [
    "FolderPredicate",
    "build_data_asset_path",
    "build_material_path",
    "build_planned_asset_path",
    "build_planned_material_path",
    "build_planned_prefab_path",
    "build_planned_scene_path",
    "build_prefab_path",
    "build_scene_path",
    "ensure_project_path",
    "extract_name_from_path",
    "file_stem",
    "get_material_name",
    "get_prefab_name",
    "get_scene_name",
    "has_extension",
    "normalize_folder_path",
    "normalize_path_for_type",
    "parent_folder",
]
