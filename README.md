# scopegraph

A small library for keeping variables in a graph of nested scopes and
reacting when their values change. It has no dependencies outside the
standard library.

Each scope holds its own variables. A scope may **inherit** from one
superscope, which gives it read access to the superscope's variables
(and, through it, to those further up). A scope may also have an
**ancestor**: the scope it was created within, which can provide it
attributes computed from expressions over the ancestor's variables. When
a variable changes, the graph re-evaluates the attributes that depend on
it and calls every listener that needs it, in the scope where it changed
and in every subscope that references it.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

### `scopegraph.scope_graph`

`ScopeGraph(global_vars, event_sender=None)` is the public graph. It
starts with one scope named `global` holding `global_vars`, at
`root_index`. `event_sender` is only stored as an attribute; the graph
never calls it.

- `register_new_scope(name, superscope, calling_scope, attributes)` adds
  a scope created within `calling_scope`, optionally inheriting from
  `superscope`. `attributes` maps attribute names to `Expression`s, which
  are evaluated in `calling_scope` to give the new scope's variables.
  Attributes that use variables are recomputed when those variables
  change.
- `register_listener(scope_index, listener)` registers a `Listener` and
  calls it once with the current values. A listener with no needed
  variables is called once and not registered.
- `register_scope_referencing_variable(scope_index, var_name)` records
  that a scope uses a variable, along each inheritance step up to the
  scope that defines it.
- `update_value(scope_index, var_name, value)` and
  `update_global_value(var_name, value)` set a variable in the closest
  scope that defines it and propagate the change;
  `notify_value_changed` does the propagation alone.
- `find_scope_with_variable`, `lookup_variable_in_scope` (returns `None`
  when the name is not visible) and `lookup_variables_in_scope` resolve
  names through the inheritance chain.
- `evaluate_in_scope(index, expr)` evaluates an `Expression` in a scope.
- `variables_used_in_self_or_subscopes_of`, `currently_used_globals` and
  `currently_unused_globals` report which variables are in use.
- `remove_scope(index)` removes a scope and all its descendants;
  `handle_scope_graph_event(RemoveScope(index))` does the same from an
  event object. `clear(global_vars)` starts over with a fresh global
  scope.
- `scope_at`, `global_scope`, `validate` and `visualize` (Graphviz `dot`
  text) inspect the graph.

The graph checks its invariants with `validate` after each scope or
listener registration and each update.

### `scopegraph.scope`

`ScopeIndex`, `Scope`, `Listener(needed_variables, f)` — where `f` is
called as `f(graph, values)` — and `Expression`. An `Expression` is built
with `Expression.literal(value)`, `Expression.var_ref(name)` or
`Expression.concat(*parts)` (string concatenation), and offers
`collect_var_refs`, `references_var` and `eval(values)`.

### `scopegraph.graph_internal`

`ScopeGraphInternal`, the storage behind `ScopeGraph`, with the edge types
`ProvidedAttr` (an attribute an ancestor provides to a descendant) and
`Inherits` (the variables a subscope references from its superscope).

### `scopegraph.one_to_n_map`

`OneToNElementsMap`, a map from each child to one parent with data on
each edge, and `StateError`, the exception raised throughout the package
when state is used inconsistently.

### `scopegraph.util`

Small helpers: `unindent`, `trim_lines`, `is_blank`,
`replace_env_var_references` (replaces `${NAME}` by the environment value
or by nothing), `enum_parse`, `list_difference` and `avg`.

## Example

```python
from scopegraph.scope import Expression, Listener
from scopegraph.scope_graph import ScopeGraph

graph = ScopeGraph({"greeting": "hi"})
window = graph.register_new_scope("window", graph.root_index, graph.root_index, {})
label = graph.register_new_scope(
    "label", None, window,
    {"text": Expression.concat(Expression.var_ref("greeting"), Expression.literal("!"))},
)

seen = []
graph.register_listener(label, Listener(["text"], lambda g, values: seen.append(values["text"])))
graph.update_global_value("greeting", "hello")
assert seen == ["hi!", "hello!"]
```

## Errors

Referring to a variable that no reachable scope defines raises
`StateError`. An exception raised by a listener is logged and does not
stop the update. An expression that fails to evaluate for any reason
other than a missing variable is logged and yields an empty string.

## What it does not do

The package only keeps state and calls listeners. It draws no widgets,
reads no configuration files, runs no commands and has no command-line
entry point; the `event_sender` given to `ScopeGraph` is not used to send
anything.