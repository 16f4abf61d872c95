"""Reference resolution: scene population, prefab attachment and the binding report."""

from buildplan_orchestrator.hydration.attachment import (
    PENDING_COMPILE_NOTE,
    AttachmentResult,
    PrefabAttachmentPlan,
    attach_components_to_prefab,
    build_attachment_plans,
    run_prefab_attachment,
)
from buildplan_orchestrator.hydration.binding_report import (
    append_report_entry,
    format_report_entry,
    read_report,
)
from buildplan_orchestrator.hydration.object_graph import (
    Component,
    DataAsset,
    Prefab,
    Scene,
    SceneObject,
    Transform,
)
from buildplan_orchestrator.hydration.population import (
    add_scene_managers,
    add_scene_prefabs,
    collect_scene_manager_components,
    collect_scene_prefab_paths,
)
from buildplan_orchestrator.hydration.registry import (
    BehaviourSpec,
    CapabilityRegistry,
    FieldKind,
    FieldSpec,
    RegistryLoadError,
    load_registry,
)
from buildplan_orchestrator.hydration.resolver import (
    HydrationResult,
    SceneHydrationContext,
    build_field_name_candidates,
    hydrate_prefab,
    hydrate_scene,
    missing_references_note,
    names_match,
    normalize_name_key,
)

__all__ = [
    "PENDING_COMPILE_NOTE",
    "AttachmentResult",
    "BehaviourSpec",
    "CapabilityRegistry",
    "Component",
    "DataAsset",
    "FieldKind",
    "FieldSpec",
    "HydrationResult",
    "Prefab",
    "PrefabAttachmentPlan",
    "RegistryLoadError",
    "Scene",
    "SceneHydrationContext",
    "SceneObject",
    "Transform",
    "add_scene_managers",
    "add_scene_prefabs",
    "append_report_entry",
    "attach_components_to_prefab",
    "build_attachment_plans",
    "build_field_name_candidates",
    "collect_scene_manager_components",
    "collect_scene_prefab_paths",
    "format_report_entry",
    "hydrate_prefab",
    "hydrate_scene",
    "load_registry",
    "missing_references_note",
    "names_match",
    "normalize_name_key",
    "read_report",
    "run_prefab_attachment",
]
