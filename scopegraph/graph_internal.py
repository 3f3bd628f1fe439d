"""Internal representation of the scope graph; may be transiently inconsistent while edited."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from scopegraph.one_to_n_map import OneToNElementsMap, StateError
from scopegraph.scope import Expression, Scope, ScopeIndex

_log = logging.getLogger(__name__)


@dataclass
class ProvidedAttr:
    """An ancestor provides ``attr_name``, computed from ``expression``, to a descendant."""

    attr_name: str
    expression: Expression


@dataclass
class Inherits:
    """A subscope inherits from a superscope, referencing these variables from it."""

    references: set[str] = field(default_factory=set)


def _format_set(values: set[str]) -> str:
    return "{" + ", ".join(repr(value) for value in sorted(values)) + "}"


class ScopeGraphInternal:
    """Scopes with hierarchy (ancestor to descendant) and inheritance (superscope to subscope) edges."""

    def __init__(self) -> None:
        self.last_index = ScopeIndex(0)
        self.scopes: dict[ScopeIndex, Scope] = {}
        self.hierarchy_relations: OneToNElementsMap[ScopeIndex, list[ProvidedAttr]] = OneToNElementsMap()
        self.inheritance_relations: OneToNElementsMap[ScopeIndex, Inherits] = OneToNElementsMap()

    def __repr__(self) -> str:
        return f"ScopeGraphInternal(last_index={self.last_index!r}, scopes={self.scopes!r})"

    def clear(self) -> None:
        self.scopes.clear()
        self.inheritance_relations.clear()
        self.hierarchy_relations.clear()

    def add_scope(self, scope: Scope) -> ScopeIndex:
        """Add a scope, linking it to its ancestor if it has one, and return its new index."""
        index = self.last_index
        if scope.ancestor is not None:
            try:
                self.hierarchy_relations.insert(index, scope.ancestor, [])
            except StateError:
                pass
        self.scopes[index] = scope
        self.last_index = index.successor()
        return index

    def descendant_edges_of(self, index: ScopeIndex) -> list[tuple[ScopeIndex, list[ProvidedAttr]]]:
        return self.hierarchy_relations.get_children_edges_of(index)

    def subscope_edges_of(self, index: ScopeIndex) -> list[tuple[ScopeIndex, Inherits]]:
        return self.inheritance_relations.get_children_edges_of(index)

    def superscope_edge_of(self, index: ScopeIndex) -> tuple[ScopeIndex, Inherits] | None:
        return self.inheritance_relations.get_parent_edge_of(index)

    def remove_scope(self, index: ScopeIndex) -> None:
        """Remove a scope together with all of its descendants."""
        self.scopes.pop(index, None)
        for descendant in list(self.hierarchy_relations.parent_to_children.get(index, ())):
            self.remove_scope(descendant)
        self.hierarchy_relations.remove(index)
        self.inheritance_relations.remove(index)

    def add_inheritance_relation(self, a: ScopeIndex, b: ScopeIndex) -> None:
        """Make ``a`` a subscope of ``b``; raises StateError if ``a`` already has a superscope."""
        self.inheritance_relations.insert(a, b, Inherits())

    def register_scope_provides_attr(self, a: ScopeIndex, b: ScopeIndex, edge: ProvidedAttr) -> None:
        """Register that scope ``a`` provides an attribute to its descendant ``b``."""
        entry = self.hierarchy_relations.get_parent_edge_of(b)
        if entry is None:
            _log.error(
                "Tried to register a provided attribute edge between two scopes "
                "that are not connected in the hierarchy map"
            )
            return
        superscope, edges = entry
        if superscope != a:
            raise StateError(
                "Hierarchy map had a different superscope for a given scope than what was given here"
            )
        edges.append(edge)

    def scope_at(self, index: ScopeIndex) -> Scope | None:
        return self.scopes.get(index)

    def subscopes_referencing(self, index: ScopeIndex, var_name: str) -> list[ScopeIndex]:
        """Subscopes of ``index`` whose inheritance edge directly references ``var_name``."""
        return [
            scope
            for scope, edge in self.inheritance_relations.get_children_edges_of(index)
            if var_name in edge.references
        ]

    def superscope_of(self, index: ScopeIndex) -> ScopeIndex | None:
        return self.inheritance_relations.get_parent_of(index)

    def scopes_getting_attr_using(self, index: ScopeIndex, var_name: str) -> list[tuple[ScopeIndex, ProvidedAttr]]:
        """Descendants given an attribute by ``index`` whose expression references ``var_name``."""
        return [
            (child, edge)
            for child, edges in self.hierarchy_relations.get_children_edges_of(index)
            for edge in edges
            if edge.expression.references_var(var_name)
        ]

    def add_reference_to_inherits_edge(self, subscope: ScopeIndex, var_name: str) -> None:
        """Record that ``subscope`` references ``var_name`` from its direct superscope."""
        entry = self.inheritance_relations.get_parent_edge_of(subscope)
        if entry is None:
            raise StateError(f"Given scope {subscope!r} does not have any superscope")
        entry[1].references.add(var_name)

    def validate(self) -> None:
        """Check the graph's invariants; raises StateError on the first violation."""
        for child, (parent, _edges) in self.hierarchy_relations.child_to_parent.items():
            if child not in self.scopes:
                raise StateError("hierarchy_relations lists key that is not in graph")
            if parent not in self.scopes:
                raise StateError("hierarchy_relations values lists scope that is not in graph")

        inheritance = self.inheritance_relations.child_to_parent
        for child, (parent_index, edge) in inheritance.items():
            if child not in self.scopes:
                raise StateError("inheritance_relations lists key that is not in graph")
            parent_scope = self.scopes.get(parent_index)
            if parent_scope is None:
                raise StateError("inheritance_relations values lists scope that is not in graph")
            parent_edge = inheritance.get(parent_index)
            for var in edge.references:
                has_access = var in parent_scope.data or (
                    parent_edge is not None and var in parent_edge[1].references
                )
                if not has_access:
                    raise StateError("scope inherited variable that parent scope doesn't have access to")

        self.hierarchy_relations.validate()
        self.inheritance_relations.validate()

    def visualize(self) -> str:
        """Render the graph in Graphviz dot format."""
        lines = ["digraph {"]
        for index, scope in sorted(self.scopes.items()):
            data = [(name, value) for name, value in scope.data.items() if not name.startswith("EWW")]
            listeners = [
                f"on {name}: {[repr(list(listener.needed_variables)) for listener in group]!r}"
                for name, group in scope.listeners.items()
            ]
            label = f"data: {data!r}, listeners: {listeners!r}".replace('"', "'")
            lines.append(f'  "{index!r}"[label="{scope.name}\\n{label}"]')
            if scope.ancestor is not None:
                lines.append(f'  "{scope.ancestor!r}" -> "{index!r}"[label="ancestor"]')

        for child, (parent, edges) in self.hierarchy_relations.child_to_parent.items():
            for edge in edges:
                label = f":{edge.attr_name} `{edge.expression!r}`".replace('"', "'")
                lines.append(f'  "{parent!r}" -> "{child!r}" [color = "red", label = "{label}"]')

        for child, (parent, edge) in self.inheritance_relations.child_to_parent.items():
            label = f"inherits({_format_set(edge.references)})".replace('"', "'")
            lines.append(f'  "{child!r}" -> "{parent!r}" [color = "blue", label = "{label}"]')

        return "\n".join(lines) + "\n}"