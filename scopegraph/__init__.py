"""Nested variable scopes with inheritance, provided attributes and change listeners."""

__version__ = "0.1.0"
__all__ = ["util", "one_to_n_map", "scope", "graph_internal", "scope_graph"]