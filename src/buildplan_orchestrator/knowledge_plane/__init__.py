"""Index documents describing what already exists in the project."""

from buildplan_orchestrator.knowledge_plane.indexer import (
    CATALOGS,
    IndexCatalog,
    IndexLimits,
    add_planned_sections,
    build_index_markdown,
    build_world_indexes,
    parse_index_name_path,
    read_index,
    write_indexes,
)

__all__ = [
    "CATALOGS",
    "IndexCatalog",
    "IndexLimits",
    "add_planned_sections",
    "build_index_markdown",
    "build_world_indexes",
    "parse_index_name_path",
    "read_index",
    "write_indexes",
]
