"""Offline script generator that renders a behaviour stub from the capability registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

from buildplan_orchestrator.planning.prompt_templates import PromptTemplateEngine, render_script_stub

if TYPE_CHECKING:
    from buildplan_orchestrator.domain.models import FeatureRequest
    from buildplan_orchestrator.hydration.registry import CapabilityRegistry


class TemplateScriptGenerator:
    """Writes a class named after the request, declaring any fields the registry lists for it."""

    def __init__(
        self,
        registry: CapabilityRegistry | None = None,
        *,
        engine: PromptTemplateEngine | None = None,
    ) -> None:
        self._registry = registry
        self._engine = engine or PromptTemplateEngine()
        self.calls: list[str] = []

    async def generate(self, request: FeatureRequest, *, context: str = "") -> str:
        class_name = request.name.strip()
        self.calls.append(class_name)
        fields: list[tuple[str, str]] = []
        if self._registry is not None:
            for field_spec in self._registry.fields_for(class_name):
                fields.append((field_spec.label, field_spec.name))
        summary = request.notes if request.notes.strip() else context
        return render_script_stub(class_name, summary=summary, fields=fields, engine=self._engine)


__all__ = ["TemplateScriptGenerator"]
