import logging

import pytest

from scopegraph.graph_internal import Inherits, ProvidedAttr, ScopeGraphInternal
from scopegraph.one_to_n_map import StateError
from scopegraph.scope import Expression, Scope, ScopeIndex


def _graph_with_root(data=None):
    graph = ScopeGraphInternal()
    root = graph.add_scope(Scope(name="global", data=dict(data or {})))
    return graph, root


def test_add_scope_assigns_successive_indices():
    graph, root = _graph_with_root()
    child = graph.add_scope(Scope(name="child", ancestor=root))
    assert child == root.successor()
    assert graph.scope_at(child).name == "child"
    assert graph.scope_at(root).name == "global"


def test_add_scope_with_ancestor_creates_hierarchy_edge():
    graph, root = _graph_with_root()
    child = graph.add_scope(Scope(name="child", ancestor=root))
    assert graph.descendant_edges_of(root) == [(child, [])]
    assert graph.descendant_edges_of(child) == []


def test_inheritance_relation_and_superscope():
    graph, root = _graph_with_root()
    child = graph.add_scope(Scope(name="child", ancestor=root))
    graph.add_inheritance_relation(child, root)
    assert graph.superscope_of(child) == root
    assert graph.superscope_of(root) is None
    assert graph.superscope_edge_of(child) == (root, Inherits())
    assert graph.subscope_edges_of(root) == [(child, Inherits())]


def test_second_inheritance_relation_raises():
    graph, root = _graph_with_root()
    child = graph.add_scope(Scope(name="child", ancestor=root))
    graph.add_inheritance_relation(child, root)
    with pytest.raises(StateError):
        graph.add_inheritance_relation(child, root)


def test_reference_without_superscope_raises():
    graph, root = _graph_with_root()
    with pytest.raises(StateError, match="does not have any superscope"):
        graph.add_reference_to_inherits_edge(root, "global")


def test_subscopes_referencing():
    graph, root = _graph_with_root({"the_var": "hi"})
    first = graph.add_scope(Scope(name="widget", ancestor=root))
    second = graph.add_scope(Scope(name="widget2", ancestor=root))
    graph.add_inheritance_relation(first, root)
    graph.add_inheritance_relation(second, root)
    graph.add_reference_to_inherits_edge(first, "the_var")
    assert graph.subscopes_referencing(root, "the_var") == [first]
    assert graph.subscopes_referencing(root, "shadowed_var") == []


def test_provided_attr_registration_and_lookup():
    graph, root = _graph_with_root({"global_1": "hi"})
    child = graph.add_scope(Scope(name="foo", ancestor=root))
    attr = ProvidedAttr("arg_1", Expression.var_ref("global_1"))
    graph.register_scope_provides_attr(root, child, attr)
    assert graph.descendant_edges_of(root) == [(child, [attr])]
    assert graph.scopes_getting_attr_using(root, "global_1") == [(child, attr)]
    assert graph.scopes_getting_attr_using(root, "global_2") == []


def test_provided_attr_with_wrong_ancestor_raises():
    graph, root = _graph_with_root()
    child = graph.add_scope(Scope(name="foo", ancestor=root))
    other = graph.add_scope(Scope(name="bar", ancestor=root))
    with pytest.raises(StateError):
        graph.register_scope_provides_attr(other, child, ProvidedAttr("a", Expression.literal("x")))


def test_provided_attr_between_unconnected_scopes_is_logged(caplog):
    graph, root = _graph_with_root()
    loose = graph.add_scope(Scope(name="loose"))
    with caplog.at_level(logging.ERROR):
        graph.register_scope_provides_attr(root, loose, ProvidedAttr("a", Expression.literal("x")))
    assert "not connected in the hierarchy map" in caplog.text
    assert graph.descendant_edges_of(root) == []


def test_remove_scope_removes_descendants():
    graph, root = _graph_with_root()
    foo = graph.add_scope(Scope(name="foo", ancestor=root))
    bar = graph.add_scope(Scope(name="bar", ancestor=foo))
    graph.add_inheritance_relation(foo, root)
    graph.add_inheritance_relation(bar, root)
    graph.remove_scope(foo)
    assert graph.scope_at(foo) is None
    assert graph.scope_at(bar) is None
    assert graph.descendant_edges_of(root) == []
    assert graph.subscope_edges_of(root) == []
    assert graph.scope_at(root).name == "global"


def test_validate_rejects_inaccessible_inherited_variable():
    graph, root = _graph_with_root()
    child = graph.add_scope(Scope(name="child", ancestor=root))
    graph.add_inheritance_relation(child, root)
    graph.add_reference_to_inherits_edge(child, "missing")
    with pytest.raises(StateError, match="doesn't have access"):
        graph.validate()


def test_validate_accepts_transitive_inheritance():
    graph, root = _graph_with_root({"global": "hi"})
    first = graph.add_scope(Scope(name="1", ancestor=root))
    second = graph.add_scope(Scope(name="2", ancestor=first))
    graph.add_inheritance_relation(first, root)
    graph.add_inheritance_relation(second, first)
    graph.add_reference_to_inherits_edge(second, "global")
    with pytest.raises(StateError):
        graph.validate()
    graph.add_reference_to_inherits_edge(first, "global")
    graph.validate()
    assert graph.superscope_edge_of(first)[1].references == {"global"}


def test_validate_rejects_dangling_hierarchy_parent():
    graph = ScopeGraphInternal()
    graph.add_scope(Scope(name="orphan", ancestor=ScopeIndex(42)))
    with pytest.raises(StateError, match="hierarchy_relations values"):
        graph.validate()


def test_clear_removes_scopes_but_keeps_counting():
    graph, root = _graph_with_root()
    child = graph.add_scope(Scope(name="child", ancestor=root))
    graph.clear()
    assert graph.scope_at(root) is None
    new_root = graph.add_scope(Scope(name="global"))
    assert new_root == child.successor()
    assert graph.descendant_edges_of(root) == []


def test_visualize_renders_dot_graph():
    graph, root = _graph_with_root({"global_1": "hi", "EWW_HIDDEN": "x"})
    child = graph.add_scope(Scope(name="foo", ancestor=root))
    graph.add_inheritance_relation(child, root)
    graph.register_scope_provides_attr(root, child, ProvidedAttr("arg_1", Expression.var_ref("global_1")))
    output = graph.visualize()
    assert output.startswith("digraph {\n")
    assert output.endswith("}")
    assert f'"{root!r}" -> "{child!r}"[label="ancestor"]' in output
    assert 'color = "red"' in output
    assert 'color = "blue"' in output
    assert ":arg_1 `global_1`" in output
    assert "EWW_HIDDEN" not in output
    assert "global_1" in output