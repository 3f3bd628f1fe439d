"""A graph of scopes that share variables, provide attributes and notify listeners."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from scopegraph.graph_internal import ProvidedAttr, ScopeGraphInternal
from scopegraph.one_to_n_map import StateError
from scopegraph.scope import Expression, Listener, Scope, ScopeIndex

_log = logging.getLogger(__name__)

_LISTENER_ERROR = "Error while updating UI after state change"


@dataclass(frozen=True)
class RemoveScope:
    """Event asking the graph to remove a scope and its descendants."""

    scope_index: ScopeIndex


class ScopeGraph:
    """Scopes that inherit variables from superscopes and provide attributes to descendants.

    Subscopes see every variable of their superscope; each inheritance step records
    the variables referenced through it. Ancestors provide attributes to the
    descendants created within them, recomputing them when their inputs change.
    """

    def __init__(self, global_vars: Mapping[str, Any], event_sender: Any = None) -> None:
        self.graph = ScopeGraphInternal()
        self.event_sender = event_sender
        self.root_index = self._add_global_scope(global_vars)

    def __repr__(self) -> str:
        return f"ScopeGraph(root_index={self.root_index!r}, graph={self.graph!r})"

    def _add_global_scope(self, global_vars: Mapping[str, Any]) -> ScopeIndex:
        root_index = self.graph.add_scope(Scope("global", None, dict(global_vars)))
        self.graph.scopes[root_index].node_index = root_index
        return root_index

    def update_global_value(self, var_name: str, value: Any) -> None:
        self.update_value(self.root_index, var_name, value)

    def handle_scope_graph_event(self, event: RemoveScope) -> None:
        match event:
            case RemoveScope(scope_index=scope_index):
                self.remove_scope(scope_index)
            case _:
                raise StateError(f"Unknown scope graph event {event!r}")

    def clear(self, global_vars: Mapping[str, Any]) -> None:
        """Drop all state and start over with a fresh global scope."""
        self.graph.clear()
        self.root_index = self._add_global_scope(global_vars)

    def remove_scope(self, scope_index: ScopeIndex) -> None:
        self.graph.remove_scope(scope_index)

    def validate(self) -> None:
        self.graph.validate()

    def visualize(self) -> str:
        return self.graph.visualize()

    def currently_used_globals(self) -> set[str]:
        return self.variables_used_in_self_or_subscopes_of(self.root_index)

    def currently_unused_globals(self) -> set[str]:
        return set(self.global_scope().data) - self.currently_used_globals()

    def scope_at(self, index: ScopeIndex) -> Scope | None:
        return self.graph.scope_at(index)

    def global_scope(self) -> Scope:
        scope = self.graph.scope_at(self.root_index)
        if scope is None:
            raise StateError("No root scope in graph")
        return scope

    def evaluate_in_scope(self, index: ScopeIndex, expr: Expression) -> Any:
        """Evaluate ``expr`` in a scope.

        Raises StateError if a referenced variable is not visible there. Any other
        evaluation failure is logged and yields an empty string.
        """
        values = self.lookup_variables_in_scope(index, expr.collect_var_refs())
        try:
            return expr.eval(values)
        except Exception as err:  # evaluation failures are reported, not propagated
            _log.error("%s", err)
            return ""

    def register_new_scope(
        self,
        name: str,
        superscope: ScopeIndex | None,
        calling_scope: ScopeIndex,
        attributes: Mapping[str, Expression],
    ) -> ScopeIndex:
        """Add a scope created within ``calling_scope`` and return its index."""
        # Evaluate everything first so a failure leaves the graph untouched.
        scope_variables = {
            attr_name: self.evaluate_in_scope(calling_scope, expression)
            for attr_name, expression in attributes.items()
        }

        new_index = self.graph.add_scope(Scope(name, calling_scope, scope_variables))
        if superscope is not None:
            self.graph.add_inheritance_relation(new_index, superscope)
        self.graph.scopes[new_index].node_index = new_index

        for attr_name, expression in attributes.items():
            var_refs = expression.collect_var_refs()
            if var_refs:
                self.graph.register_scope_provides_attr(
                    calling_scope, new_index, ProvidedAttr(attr_name, expression)
                )
                for used_variable in var_refs:
                    self.register_scope_referencing_variable(calling_scope, used_variable)

        self.validate()
        return new_index

    def _call_listener(self, listener: Listener, values: dict[str, Any]) -> None:
        try:
            listener.f(self, values)
        except Exception as err:  # listener failures must not break state propagation
            _log.error("%s: %s", _LISTENER_ERROR, err)

    def register_listener(self, scope_index: ScopeIndex, listener: Listener) -> None:
        """Register a listener and call it once with the current values.

        A listener without needed variables is only called once, not registered.
        """
        if not listener.needed_variables:
            self._call_listener(listener, {})
            return

        for required_var in listener.needed_variables:
            self.register_scope_referencing_variable(scope_index, required_var)
        scope = self.graph.scope_at(scope_index)
        if scope is None:
            raise StateError("Scope not in graph")
        for required_var in listener.needed_variables:
            scope.listeners.setdefault(required_var, []).append(listener)

        values = self.lookup_variables_in_scope(scope_index, listener.needed_variables)
        self._call_listener(listener, values)
        self.validate()

    def register_scope_referencing_variable(self, scope_index: ScopeIndex, var_name: str) -> None:
        """Record that a scope uses ``var_name``, along every inheritance step up to its owner."""
        current = scope_index
        while True:
            scope = self.graph.scope_at(current)
            if scope is None:
                raise StateError("scope not in graph")
            if var_name in scope.data:
                return
            superscope = self.graph.superscope_of(current)
            if superscope is None:
                raise StateError(f"Variable {var_name} not in scope")
            self.graph.add_reference_to_inherits_edge(current, var_name)
            current = superscope

    def update_value(self, original_scope_index: ScopeIndex, updated_var: str, new_value: Any) -> None:
        """Set a variable in the closest scope defining it and propagate the change."""
        scope_index = self.find_scope_with_variable(original_scope_index, updated_var)
        if scope_index is None:
            raise StateError(f"Variable {updated_var} not scope")
        scope = self.graph.scope_at(scope_index)
        if scope is not None and updated_var in scope.data:
            scope.data[updated_var] = new_value
        self.notify_value_changed(scope_index, updated_var)
        self.graph.validate()

    def notify_value_changed(self, scope_index: ScopeIndex, updated_var: str) -> None:
        """Recompute dependent attributes, run listeners and notify referencing subscopes."""
        for referencing_scope, edge in list(self.graph.scopes_getting_attr_using(scope_index, updated_var)):
            try:
                value = self.evaluate_in_scope(scope_index, edge.expression)
                self.update_value(referencing_scope, edge.attr_name, value)
            except StateError as err:
                _log.error("%s", err)

        self._call_listeners_in_scope(scope_index, updated_var)

        for subscope in self.graph.subscopes_referencing(scope_index, updated_var):
            self.notify_value_changed(subscope, updated_var)

    def _call_listeners_in_scope(self, scope_index: ScopeIndex, updated_var: str) -> None:
        scope = self.graph.scope_at(scope_index)
        if scope is None:
            raise StateError("Scope not in graph")
        for listener in list(scope.listeners.get(updated_var, ())):
            values = self.lookup_variables_in_scope(scope_index, listener.needed_variables)
            self._call_listener(listener, values)

    def find_scope_with_variable(self, index: ScopeIndex, var_name: str) -> ScopeIndex | None:
        """The closest scope, following superscopes, that defines ``var_name``."""
        current: ScopeIndex | None = index
        while current is not None:
            scope = self.graph.scope_at(current)
            if scope is None:
                return None
            if var_name in scope.data:
                return current
            current = self.graph.superscope_of(current)
        return None

    def lookup_variable_in_scope(self, index: ScopeIndex, var_name: str) -> Any | None:
        """The value of ``var_name`` visible from a scope, or None when it is not visible."""
        found = self.find_scope_with_variable(index, var_name)
        if found is None:
            return None
        return self.graph.scopes[found].data[var_name]

    def variables_used_in_self_or_subscopes_of(self, index: ScopeIndex) -> set[str]:
        """Variables used by a scope or any of its descendants; empty for unknown scopes."""
        scope = self.scope_at(index)
        if scope is None:
            return set()

        variables = set(scope.listeners)
        descendant_edges = self.graph.descendant_edges_of(index)
        for _, provided_attrs in descendant_edges:
            for attr in provided_attrs:
                variables.update(attr.expression.collect_var_refs())
        for _, edge in self.graph.subscope_edges_of(index):
            variables.update(edge.references)

        superscope_edge = self.graph.superscope_edge_of(index)
        if superscope_edge is not None:
            variables.update(superscope_edge[1].references)

        for descendant, _ in descendant_edges:
            used = self.variables_used_in_self_or_subscopes_of(descendant)
            descendant_scope = self.scope_at(descendant)
            shadowed = set(descendant_scope.data) if descendant_scope is not None else set()
            variables.update(used - shadowed)

        return variables

    def lookup_variables_in_scope(self, scope_index: ScopeIndex, vars: Iterable[str]) -> dict[str, Any]:
        """Values of all ``vars`` visible from a scope; raises StateError if one is missing."""
        result: dict[str, Any] = {}
        for name in vars:
            found = self.find_scope_with_variable(scope_index, name)
            if found is None:
                raise StateError(f"Variable {name} neither in scope nor any superscope")
            result[name] = self.graph.scopes[found].data[name]
        return result