"""Exact model counting for CNF models.

Two exact methods:

- `bdd` compiles the model into a reduced ordered BDD over the model's
  variable order and counts satisfying paths;
- `search` runs a DPLL-style search with unit propagation and a memo table
  keyed by residual states (see search.py).

Both return Python ints, so counts beyond 2**64 are exact.
"""

from __future__ import annotations

import time

from bdd import BDD, DEFAULT_NODE_LIMIT
from model import Model
from search import DEFAULT_CACHE_LIMIT, count_models, ensure_recursion_headroom

COUNT_METHODS = ("bdd", "search")


def count_with_bdd(model: Model, node_limit: int = DEFAULT_NODE_LIMIT, verbose: bool = False) -> int:
    manager = BDD(model.num_variables, node_limit=node_limit)
    ensure_recursion_headroom(model.num_variables)
    root = manager.cnf(model.clauses)
    total = manager.sat_count(root)
    if verbose:
        print(
            f"[count] bdd nodes={len(manager)} reachable={manager.reachable(root)}"
        )
    return total


def count(
    model: Model,
    method: str = "bdd",
    node_limit: int = DEFAULT_NODE_LIMIT,
    cache_limit: int = DEFAULT_CACHE_LIMIT,
    verbose: bool = False,
) -> int:
    """Return the exact number of assignments satisfying `model`.

    method: "bdd" (default) or "search".
    node_limit: maximum BDD nodes before ResourceExhausted.
    cache_limit: maximum memo entries of the search method before ResourceExhausted.
    """
    model.validate()
    t0 = time.perf_counter()
    method = method.lower()
    if method == "bdd":
        total = count_with_bdd(model, node_limit=node_limit, verbose=verbose)
    elif method == "search":
        total = count_models(model, cache_limit=cache_limit)
    else:
        raise ValueError(f"Unknown count method {method}")
    if verbose:
        print(
            f"[count] kind={model.kind} vars={model.num_variables} clauses={len(model.clauses)} "
            f"method={method} count={total} time {time.perf_counter() - t0:.3f}s"
        )
    return total
