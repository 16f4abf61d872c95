"""Unit tests for the scene object graph."""

from __future__ import annotations

from buildplan_orchestrator.hydration.object_graph import Prefab, Scene, SceneObject, is_under


def test_add_child_reparents_node() -> None:
    first = SceneObject(name="First")
    second = SceneObject(name="Second")
    child = first.create_child("Child")

    second.add_child(child)

    assert child.parent is second
    assert first.children == []
    assert second.children == [child]


def test_transform_is_stable_and_follows_parent() -> None:
    root = SceneObject(name="Root")
    child = root.create_child("Child")

    assert child.transform is child.transform
    assert child.transform.type_name == "Transform"
    assert child.transform.parent is root.transform
    assert root.transform.parent is None


def test_get_component_ignores_case() -> None:
    node = SceneObject(name="Player")
    health = node.add_component("Health")

    assert node.get_component("health") is health
    assert node.get_component("Mover") is None
    assert health.owner is node


def test_scene_find_is_preorder_and_exact() -> None:
    level = SceneObject(name="Level")
    nested = level.create_child("Spawner")
    later = SceneObject(name="Spawner")
    scene = Scene(name="Main", path="Assets/Project/Scenes/Main.unity", roots=[level, later])

    assert scene.find("Spawner") is nested
    assert scene.find("spawner") is None
    assert [node.name for node in scene.iter_objects()] == ["Level", "Spawner", "Spawner"]


def test_instantiate_copies_prefab_tree() -> None:
    root = SceneObject(name="Enemy")
    health = root.add_component("Health")
    health.assign("max", 10)
    root.create_child("Weapon").add_component("Gun")
    prefab = Prefab(name="Enemy", path="Assets/Project/Prefabs/Enemy.prefab", root=root)
    scene = Scene(name="Main", path="Assets/Project/Scenes/Main.unity")

    instance = scene.instantiate(prefab)
    instance.get_component("Health").assign("max", 99)  # type: ignore[union-attr]

    assert scene.roots == [instance]
    assert instance is not root
    assert instance.source_prefab is prefab
    assert health.get("max") == 10
    assert [node.name for node in instance.iter_tree()] == ["Enemy", "Weapon"]
    assert instance.children[0].parent is instance
    assert [component.type_name for component in scene.iter_components()] == ["Health", "Gun"]


def test_add_root_detaches_from_parent() -> None:
    parent = SceneObject(name="Parent")
    child = parent.create_child("Child")
    scene = Scene(name="Main", path="Assets/Project/Scenes/Main.unity", roots=[parent])

    scene.add_root(child)

    assert child.parent is None
    assert parent.children == []
    assert scene.roots == [parent, child]


def test_is_under_walks_ancestors() -> None:
    root = SceneObject(name="Managers")
    leaf = root.create_child("Audio").create_child("Music")
    other = SceneObject(name="Other")

    assert is_under(leaf, root)
    assert is_under(root, root)
    assert not is_under(other, root)
