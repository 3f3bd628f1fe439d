"""Scopes, their indices, listeners and the expressions evaluated in them."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from scopegraph.one_to_n_map import StateError


@dataclass(frozen=True, order=True)
class ScopeIndex:
    """Unique identifier of a scope within a scope graph."""

    value: int

    def __repr__(self) -> str:
        return f"ScopeIndex({self.value})"

    def successor(self) -> ScopeIndex:
        """The index that follows this one."""
        return ScopeIndex(self.value + 1)


@dataclass(frozen=True)
class _Literal:
    value: Any

    def __repr__(self) -> str:
        return repr(self.value)


@dataclass(frozen=True)
class _VarRef:
    name: str

    def __repr__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Expression:
    """A small expression: a literal, a variable reference, or a string concatenation of those."""

    terms: tuple[_Literal | _VarRef | Expression, ...]
    concatenated: bool = False

    @classmethod
    def literal(cls, value: Any) -> Expression:
        return cls((_Literal(value),))

    @classmethod
    def var_ref(cls, name: str) -> Expression:
        return cls((_VarRef(name),))

    @classmethod
    def concat(cls, *parts: Expression) -> Expression:
        return cls(tuple(parts), concatenated=True)

    def collect_var_refs(self) -> list[str]:
        """Names of all variables referenced, in order of appearance."""
        refs: list[str] = []
        for term in self.terms:
            if isinstance(term, _VarRef):
                refs.append(term.name)
            elif isinstance(term, Expression):
                refs.extend(term.collect_var_refs())
        return refs

    def references_var(self, name: str) -> bool:
        return name in self.collect_var_refs()

    def eval(self, values: Mapping[str, Any]) -> Any:
        """Evaluate with the given variable values; raises StateError for unknown variables."""
        results = [self._eval_term(term, values) for term in self.terms]
        if self.concatenated:
            return "".join(str(result) for result in results)
        return results[0]

    @staticmethod
    def _eval_term(term: _Literal | _VarRef | Expression, values: Mapping[str, Any]) -> Any:
        if isinstance(term, _Literal):
            return term.value
        if isinstance(term, _VarRef):
            try:
                return values[term.name]
            except KeyError:
                raise StateError(f"Unknown variable {term.name}") from None
        return term.eval(values)

    def __repr__(self) -> str:
        inner = ", ".join(repr(term) for term in self.terms)
        return f"concat({inner})" if self.concatenated else inner


@dataclass(eq=False)
class Listener:
    """A callback run with the values of ``needed_variables`` whenever one of them changes."""

    needed_variables: list[str]
    f: Callable[[Any, dict[str, Any]], None]

    def __repr__(self) -> str:
        return f"Listener(needed_variables={self.needed_variables!r}, f=function)"


@dataclass
class Scope:
    """A set of variables, plus the listeners reacting to changes of variables visible in it.

    Listeners may refer to variables defined in superscopes rather than here.
    ``node_index`` is set by the graph once the scope has been added to it.
    """

    name: str
    ancestor: ScopeIndex | None = None
    data: dict[str, Any] = field(default_factory=dict)
    listeners: dict[str, list[Listener]] = field(default_factory=dict)
    node_index: ScopeIndex = field(default_factory=lambda: ScopeIndex(0))