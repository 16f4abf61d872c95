"""Collaborator contracts and the in-memory backend."""

from buildplan_orchestrator.backends.base import AssetWorld, IndexEntry, ScriptGenerator
from buildplan_orchestrator.backends.generator import TemplateScriptGenerator
from buildplan_orchestrator.backends.memory import MemoryWorld

__all__ = [
    "AssetWorld",
    "IndexEntry",
    "MemoryWorld",
    "ScriptGenerator",
    "TemplateScriptGenerator",
]
