"""Maximum-weight satisfying assignments of CNF models.

Objective: maximize sum(w_k for true x_k) subject to every clause.

Among optimal assignments the lexicographically smallest one is returned,
reading variables in model order with false < true. Every backend returns the
same assignment, so results are reproducible and backends can be raced.

The native backend ("bnb") is a branch-and-bound over the residual-state
search of search.py:
- at each variable the locally promising value is tried first (true for a
  positive weight, false otherwise);
- unit propagation runs after every decision;
- the second branch is skipped when its optimistic bound (its own weight plus
  every remaining positive weight) cannot beat the first branch, or can only
  tie it while being lexicographically larger;
- subtree optima are memoized per residual state.
"""

from __future__ import annotations

import concurrent.futures
import multiprocessing
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from errors import BackendNotAvailable, Unsatisfiable
from model import Assignment, Model, Weights
from search import (
    DEFAULT_CACHE_LIMIT,
    MemoTable,
    State,
    decide,
    ensure_recursion_headroom,
    forced_value,
    initial_state,
)
from solver_backends import (
    CPSAT_AVAILABLE,
    EXTERNAL_BACKENDS,
    MAXSAT_AVAILABLE,
    ORTOOLS_LINEAR_AVAILABLE,
    BackendSession,
    BackendSpec,
    create_backend_session,
)

RACE_BACKENDS = ("bnb",) + EXTERNAL_BACKENDS
OPTIMIZE_BACKENDS = RACE_BACKENDS + ("race",)


@dataclass
class OptimizeResult:
    assignment: Assignment
    value: int
    backend: str
    runtime: float
    nodes: int = 0  # search states expanded (bnb) or backend solves (external)
    pruned: int = 0


def assignment_value(weights: Sequence[int], assignment: Sequence[bool]) -> int:
    return sum(w for w, bit in zip(weights, assignment) if bit)


def _branch_and_bound(
    model: Model, weights: Sequence[int], cache_limit: int
) -> Tuple[Assignment, int, int, int]:
    n = model.num_variables
    root = initial_state(model)
    if root is None:
        raise Unsatisfiable(f"{model.kind} model has conflicting unit clauses")

    # positive_suffix[k]: sum of positive weights of variables k..n (1-based).
    positive_suffix = [0] * (n + 2)
    for k in range(n, 0, -1):
        positive_suffix[k] = positive_suffix[k + 1] + max(weights[k - 1], 0)

    # state -> (value, bit, child state) of the best completion, or None if infeasible.
    memo: Dict[State, Optional[Tuple[int, bool, Optional[State]]]] = MemoTable(
        cache_limit
    )
    stats = {"nodes": 0, "pruned": 0}

    def best(state: State) -> Optional[Tuple[int, bool, Optional[State]]]:
        var = state[0]
        if var > n:
            return 0, False, None
        if state in memo:
            return memo[state]
        stats["nodes"] += 1
        w = weights[var - 1]
        fixed = forced_value(state)
        if fixed is not None:
            order: Tuple[bool, ...] = (fixed,)
        elif w > 0:
            order = (True, False)
        else:
            order = (False, True)

        found: Optional[Tuple[int, bool, Optional[State]]] = None
        for value in order:
            gain = w if value else 0
            if found is not None:
                bound = gain + positive_suffix[var + 1]
                # found[1] is the other value, so a tie only matters if this branch is false.
                if bound < found[0] or (bound == found[0] and value):
                    stats["pruned"] += 1
                    continue
            child = decide(state, value)
            if child is None:
                continue
            sub = best(child)
            if sub is None:
                continue
            cand = (gain + sub[0], value, child)
            if (
                found is None
                or cand[0] > found[0]
                or (cand[0] == found[0] and not value)
            ):
                found = cand
        memo[state] = found
        return found

    ensure_recursion_headroom(n)
    top = best(root)
    if top is None:
        raise Unsatisfiable(f"no assignment satisfies the {model.kind} model")

    # Every state on the chosen path was expanded, so the memo holds it.
    bits: List[bool] = []
    state: Optional[State] = root
    while state is not None and state[0] <= n:
        _, bit, state = memo[state]
        bits.append(bit)
    return tuple(bits), top[0], stats["nodes"], stats["pruned"]


def canonicalize(
    session: BackendSession,
    num_variables: int,
    weights: Sequence[int],
    verbose: bool = False,
) -> Tuple[Assignment, int, int]:
    """Turn any optimum of `session` into the lexicographically smallest optimum.

    Variables are fixed to false in order whenever that keeps the optimum
    reachable; otherwise to true. Returns (assignment, value, solves).
    """
    current = session.solve([])
    if current is None:
        raise Unsatisfiable("no assignment satisfies the model")
    target = assignment_value(weights, current)
    solves = 1
    fixed: List[int] = []
    for var in range(1, num_variables + 1):
        if not current[var - 1]:
            fixed.append(-var)
            continue
        trial = session.solve(fixed + [-var])
        solves += 1
        if trial is not None and assignment_value(weights, trial) == target:
            fixed.append(-var)
            current = trial
        else:
            fixed.append(var)
    if verbose:
        print(f"[optimize] canonicalized with {solves} solves, value={target}")
    return tuple(bool(b) for b in current), target, solves


def _solve_external(
    backend: str, model: Model, weights: Sequence[int], threads: int, verbose: bool
) -> Tuple[Assignment, int, int]:
    spec = BackendSpec(
        num_variables=model.num_variables, clauses=model.clauses, weights=weights
    )
    session = create_backend_session(backend, spec, threads)
    try:
        return canonicalize(session, model.num_variables, weights, verbose=verbose)
    finally:
        session.close()


def _available_backends() -> List[str]:
    return [
        name
        for name, available in [
            ("bnb", True),
            ("cpsat", CPSAT_AVAILABLE),
            ("maxsat", MAXSAT_AVAILABLE),
            ("cbc", ORTOOLS_LINEAR_AVAILABLE),
        ]
        if available
    ]


def optimize(
    model: Model,
    weights: Weights,
    maximize: bool = True,
    backend: str = "bnb",
    race_backends: Optional[Sequence[str]] = None,
    threads: int = 1,
    cache_limit: int = DEFAULT_CACHE_LIMIT,
    verbose: bool = False,
    _runner_overrides: Optional[Dict[str, Callable[[], OptimizeResult]]] = None,
) -> OptimizeResult:
    """Return the lexicographically smallest optimal satisfying assignment and its value.

    weights: mapping vertex -> int, or a sequence in variable order.
    maximize: False minimizes instead (same tie-break).
    backend: bnb (native, default), cpsat, cbc, maxsat, or race.
    race_backends: when backend == "race", which backends to run in parallel (defaults to available set).
    cache_limit: bound on bnb memo entries before ResourceExhausted.
    """
    model.validate()
    vec = model.weight_vector(weights)
    signed = vec if maximize else [-w for w in vec]
    backend = backend.lower()

    if backend == "race":
        res = race_optimize(
            model,
            signed,
            backend_names=race_backends or _available_backends(),
            threads=threads,
            cache_limit=cache_limit,
            verbose=verbose,
            runner_overrides=_runner_overrides,
        )
    else:
        res = _optimize_single_backend(
            model, signed, backend, threads=threads, cache_limit=cache_limit, verbose=verbose
        )
    if not maximize:
        res.value = -res.value
    return res


def _optimize_single_backend(
    model: Model,
    weights: Sequence[int],
    backend: str,
    threads: int,
    cache_limit: int,
    verbose: bool,
) -> OptimizeResult:
    t0 = time.perf_counter()
    if backend == "bnb":
        assignment, value, nodes, pruned = _branch_and_bound(model, weights, cache_limit)
    elif backend in EXTERNAL_BACKENDS:
        assignment, value, nodes = _solve_external(
            backend, model, weights, threads, verbose
        )
        pruned = 0
    else:
        raise ValueError(f"Unknown backend {backend}")
    runtime = time.perf_counter() - t0
    if verbose:
        print(
            f"[optimize] backend={backend} kind={model.kind} value={value} "
            f"nodes={nodes} pruned={pruned} time {runtime:.3f}s"
        )
    return OptimizeResult(
        assignment=assignment,
        value=value,
        backend=backend,
        runtime=runtime,
        nodes=nodes,
        pruned=pruned,
    )


def race_optimize(
    model: Model,
    weights: Sequence[int],
    backend_names: Sequence[str],
    threads: int = 1,
    cache_limit: int = DEFAULT_CACHE_LIMIT,
    verbose: bool = False,
    runner_overrides: Optional[Dict[str, Callable[[], OptimizeResult]]] = None,
) -> OptimizeResult:
    """Run multiple backends in parallel and return the first successful result.

    Backends run in spawned processes, so the native search does not hold the
    GIL against the others. The call returns as soon as one backend succeeds;
    the losers are abandoned, not waited for. A losing process still runs to
    completion in the background.
    """

    names = list(backend_names)
    if not names:
        raise ValueError("race requires at least one backend")
    overrides = runner_overrides or {}
    unknown = [n for n in names if n not in overrides and n not in RACE_BACKENDS]
    if unknown:
        raise ValueError(f"Unknown race backend(s) {', '.join(unknown)}")

    if runner_overrides:
        executor: concurrent.futures.Executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=len(names)
        )
    else:
        try:
            ctx = multiprocessing.get_context("spawn")
            executor = concurrent.futures.ProcessPoolExecutor(
                max_workers=len(names), mp_context=ctx
            )
        except (OSError, NotImplementedError):
            # no process support here; threads still race correctly
            executor = concurrent.futures.ThreadPoolExecutor(max_workers=len(names))

    errors: List[Tuple[str, Exception]] = []
    try:
        futures = {}
        for name in names:
            if name in overrides:
                fut = executor.submit(overrides[name])
            else:
                fut = executor.submit(
                    _optimize_single_backend,
                    model,
                    weights,
                    name,
                    threads,
                    cache_limit,
                    verbose,
                )
            futures[fut] = name
        for fut in concurrent.futures.as_completed(futures):
            name = futures[fut]
            try:
                return fut.result()
            except Unsatisfiable:
                raise
            except Exception as exc:
                if verbose:
                    print(f"[race] backend={name} failed: {exc}")
                errors.append((name, exc))
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    msg = "; ".join(f"{name}: {err}" for name, err in errors)
    raise BackendNotAvailable(f"all race backends failed: {msg}")
