"""In-memory object graph shared by scenes, prefabs and the reference resolver.

Nodes compare by identity: two nodes with the same name are different objects.
A component's ``values`` holds its reference fields; ``None`` (or an empty list
for collections) marks a field as unresolved.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field


@dataclass(eq=False, slots=True)
class Component:
    type_name: str
    owner: SceneObject | None = field(default=None, repr=False)
    values: dict[str, object] = field(default_factory=dict)

    def get(self, field_name: str) -> object:
        return self.values.get(field_name)

    def assign(self, field_name: str, value: object) -> None:
        self.values[field_name] = value


@dataclass(eq=False, slots=True)
class Transform:
    owner: SceneObject = field(repr=False)

    @property
    def type_name(self) -> str:
        return "Transform"

    @property
    def parent(self) -> Transform | None:
        parent = self.owner.parent
        return None if parent is None else parent.transform


@dataclass(eq=False, slots=True)
class SceneObject:
    """A named node with children and attached components."""

    name: str
    parent: SceneObject | None = field(default=None, repr=False)
    children: list[SceneObject] = field(default_factory=list)
    components: list[Component] = field(default_factory=list)
    source_prefab: Prefab | None = field(default=None, repr=False)
    _transform: Transform | None = field(default=None, repr=False)

    @property
    def transform(self) -> Transform:
        if self._transform is None:
            self._transform = Transform(owner=self)
        return self._transform

    def add_child(self, child: SceneObject) -> SceneObject:
        if child.parent is not None and child in child.parent.children:
            child.parent.children.remove(child)
        child.parent = self
        self.children.append(child)
        return child

    def create_child(self, name: str) -> SceneObject:
        return self.add_child(SceneObject(name=name))

    def add_component(self, type_name: str) -> Component:
        component = Component(type_name=type_name, owner=self)
        self.components.append(component)
        return component

    def get_component(self, type_name: str) -> Component | None:
        folded = type_name.casefold()
        for component in self.components:
            if component.type_name.casefold() == folded:
                return component
        return None

    def iter_tree(self) -> Iterator[SceneObject]:
        """This node and every descendant, pre-order."""
        yield self
        for child in self.children:
            yield from child.iter_tree()


@dataclass(eq=False, slots=True)
class Prefab:
    name: str
    path: str
    root: SceneObject

    def iter_components(self) -> Iterator[Component]:
        for node in self.root.iter_tree():
            yield from node.components


@dataclass(eq=False, slots=True)
class DataAsset:
    name: str
    type_name: str
    path: str


@dataclass(eq=False, slots=True)
class Scene:
    name: str
    path: str
    roots: list[SceneObject] = field(default_factory=list)

    def iter_objects(self) -> Iterator[SceneObject]:
        for root in self.roots:
            yield from root.iter_tree()

    def iter_components(self) -> Iterator[Component]:
        for node in self.iter_objects():
            yield from node.components

    def find(self, name: str) -> SceneObject | None:
        """First node named exactly ``name``, pre-order."""
        for node in self.iter_objects():
            if node.name == name:
                return node
        return None

    def add_root(self, node: SceneObject) -> SceneObject:
        if node.parent is not None and node in node.parent.children:
            node.parent.children.remove(node)
        node.parent = None
        self.roots.append(node)
        return node

    def instantiate(self, prefab: Prefab) -> SceneObject:
        """Add a copy of ``prefab`` as a new root and return it."""
        instance = _copy_tree(prefab.root, parent=None)
        instance.source_prefab = prefab
        return self.add_root(instance)


def is_under(node: SceneObject, ancestor: SceneObject) -> bool:
    """``True`` when ``node`` is ``ancestor`` or one of its descendants."""
    current: SceneObject | None = node
    while current is not None:
        if current is ancestor:
            return True
        current = current.parent
    return False


def _copy_tree(node: SceneObject, *, parent: SceneObject | None) -> SceneObject:
    clone = SceneObject(name=node.name, parent=parent)
    for component in node.components:
        clone.components.append(
            Component(type_name=component.type_name, owner=clone, values=dict(component.values))
        )
    for child in node.children:
        clone.children.append(_copy_tree(child, parent=clone))
    return clone


__all__ = [
    "Component",
    "DataAsset",
    "Prefab",
    "Scene",
    "SceneObject",
    "Transform",
    "is_under",
]
