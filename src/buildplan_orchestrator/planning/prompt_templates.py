"""
buildplan-orchestrator — prompt and stub templates

File: src/buildplan_orchestrator/planning/prompt_templates.py
Last updated: 2026-10-17

Purpose
- Render the plan-generation prompts sent to the language-model transport.
- Render the script stub written by the template script generator.

What should be included in this file
- Built-in Jinja2 templates with strict placeholders.
- Deterministic hashing of rendered prompts for run logs.

Functional requirements
- Rendering fails on any missing or unexpected variable.
- The same inputs always render the same text.

Non-functional requirements
- No filesystem access; templates ship with the module.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from jinja2 import Environment, StrictUndefined, TemplateSyntaxError, UndefinedError, meta

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

PLAN_REQUEST_SCHEMA: Final[str] = (
    'Return ONLY a JSON object with the schema: {"featureRequests":[{"id":"optional",'
    '"type":"folder|script|scene|prefab|material|asset","name":"DisplayName",'
    '"path":"Assets/...","dependsOn":["id1","id2"],"notes":"optional"}]}. '
    "All paths must live under {{ project_root }}. For scripts, path must be the folder "
    "(not the .cs file) and name must be a valid identifier (letters/numbers/underscore, "
    "start with letter or underscore, no spaces). For prefabs, path can be a folder or a "
    ".prefab path; notes should mention cube/box, sphere, capsule, cylinder, plane, quad, "
    "character controller, or empty. For scenes, path should be a .unity asset path or a "
    'folder; include notes like "prefabs: A,B" and "managers: X,Y" and add dependsOn to '
    "those prefabs/scripts. For materials, path can be a folder or a .mat path. Avoid names "
    "already present in the Script/Prefab/Scene/Asset indexes."
)

_TEMPLATES: Final[dict[str, str]] = {
    "plan": (
        PLAN_REQUEST_SCHEMA
        + "\n\nProject intent: {{ intent }}\n"
        "{% for title, body in indexes %}\n{{ title }}:\n{{ body }}\n{% endfor %}"
    ),
    "phase_outline": (
        "Decide how many phases are needed to reach a fully functional prototype. "
        'Return ONLY JSON: {"phases":[{"id":"phase_1","name":"Short Name",'
        '"goal":"One sentence goal"}]}. Keep 2-5 phases.\n\n'
        "Project intent: {{ intent }}\n"
        "{% for title, body in indexes %}\n{{ title }}:\n{{ body }}\n{% endfor %}"
    ),
    "phase_requests": (
        PLAN_REQUEST_SCHEMA
        + "\n\nProject intent: {{ intent }}\n"
        "Phase: {{ phase_id }} {{ phase_name }}\n"
        "Goal: {{ phase_goal }}\n"
        "Only include feature requests needed for this phase.\n"
        "{% for title, body in indexes %}\n{{ title }}:\n{{ body }}\n{% endfor %}"
    ),
    "script_stub": (
        "using UnityEngine;\n"
        "\n"
        "// {{ summary }}\n"
        "public class {{ class_name }} : MonoBehaviour\n"
        "{\n"
        "{% for field_type, field_name in fields %}"
        "    public {{ field_type }} {{ field_name }};\n"
        "{% endfor %}"
        "}\n"
    ),
}


class PromptTemplateError(RuntimeError):
    """Base error for prompt template rendering."""


class PromptTemplateVariableError(PromptTemplateError, ValueError):
    """Raised for missing or unexpected template variables."""


@dataclass(frozen=True, slots=True)
class RenderedPrompt:
    """Rendered text plus hashes for run logs."""

    template_name: str
    prompt: str
    prompt_hash: str
    template_hash: str
    declared_variables: tuple[str, ...]


class PromptTemplateEngine:
    """Strict renderer over the built-in templates."""

    def __init__(self, templates: Mapping[str, str] | None = None) -> None:
        self._templates = dict(_TEMPLATES if templates is None else templates)
        self._environment = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            trim_blocks=False,
            lstrip_blocks=False,
            newline_sequence="\n",
            keep_trailing_newline=True,
        )

    @property
    def template_names(self) -> tuple[str, ...]:
        return tuple(sorted(self._templates))

    def render(self, template_name: str, *, variables: Mapping[str, object]) -> RenderedPrompt:
        source = self._templates.get(template_name)
        if source is None:
            raise PromptTemplateError(f"unknown template: {template_name!r}")

        try:
            parsed = self._environment.parse(source)
        except TemplateSyntaxError as exc:
            raise PromptTemplateError(f"template {template_name!r} is invalid: {exc}") from exc
        declared = tuple(sorted(meta.find_undeclared_variables(parsed)))

        missing = sorted(set(declared) - set(variables))
        if missing:
            raise PromptTemplateVariableError(
                "missing required template variables: " + ", ".join(missing)
            )
        unexpected = sorted(set(variables) - set(declared))
        if unexpected:
            raise PromptTemplateVariableError(
                "unexpected variables were provided: " + ", ".join(unexpected)
            )

        try:
            rendered = self._environment.from_string(source).render(**variables)
        except UndefinedError as exc:
            raise PromptTemplateVariableError(str(exc)) from exc

        rendered = _normalize_newlines(rendered)
        return RenderedPrompt(
            template_name=template_name,
            prompt=rendered,
            prompt_hash=_sha256_text(rendered),
            template_hash=_sha256_text(source),
            declared_variables=declared,
        )


def render_plan_prompt(
    intent: str,
    *,
    indexes: Mapping[str, str] | None = None,
    project_root: str = "Assets/Project",
    engine: PromptTemplateEngine | None = None,
) -> RenderedPrompt:
    """Render the flat plan prompt, embedding non-empty index documents in title order."""
    renderer = engine or PromptTemplateEngine()
    return renderer.render(
        "plan",
        variables={
            "intent": intent.strip(),
            "indexes": _index_pairs(indexes),
            "project_root": project_root,
        },
    )


def render_phase_outline_prompt(
    intent: str,
    *,
    indexes: Mapping[str, str] | None = None,
    engine: PromptTemplateEngine | None = None,
) -> RenderedPrompt:
    renderer = engine or PromptTemplateEngine()
    return renderer.render(
        "phase_outline",
        variables={"intent": intent.strip(), "indexes": _index_pairs(indexes)},
    )


def render_phase_requests_prompt(
    intent: str,
    *,
    phase_id: str,
    phase_name: str,
    phase_goal: str,
    indexes: Mapping[str, str] | None = None,
    project_root: str = "Assets/Project",
    engine: PromptTemplateEngine | None = None,
) -> RenderedPrompt:
    renderer = engine or PromptTemplateEngine()
    return renderer.render(
        "phase_requests",
        variables={
            "intent": intent.strip(),
            "phase_id": phase_id,
            "phase_name": phase_name,
            "phase_goal": phase_goal,
            "indexes": _index_pairs(indexes),
            "project_root": project_root,
        },
    )


def render_script_stub(
    class_name: str,
    *,
    summary: str = "",
    fields: Sequence[tuple[str, str]] = (),
    engine: PromptTemplateEngine | None = None,
) -> str:
    """Source text for a behaviour class with the given public reference fields."""
    renderer = engine or PromptTemplateEngine()
    first_line = summary.strip().splitlines()[0] if summary.strip() else f"{class_name} behaviour."
    return renderer.render(
        "script_stub",
        variables={"class_name": class_name, "summary": first_line, "fields": list(fields)},
    ).prompt


def _index_pairs(indexes: Mapping[str, str] | None) -> list[tuple[str, str]]:
    if not indexes:
        return []
    return [(title, body.strip()) for title, body in sorted(indexes.items()) if body.strip()]


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


__all__ = [
    "PLAN_REQUEST_SCHEMA",
    "PromptTemplateEngine",
    "PromptTemplateError",
    "PromptTemplateVariableError",
    "RenderedPrompt",
    "render_phase_outline_prompt",
    "render_phase_requests_prompt",
    "render_plan_prompt",
    "render_script_stub",
]
